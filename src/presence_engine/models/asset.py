"""Asset models: uploaded images and their metadata layers."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from presence_engine.models.base import Base, JSONDocument

if TYPE_CHECKING:
    from presence_engine.models.annotation import Annotation


class Asset(Base):
    """An uploaded image.

    Effective capture time and coordinates are not stored here; they are
    resolved by MetadataView from the EXIF and manual layers below.
    """

    __tablename__ = "assets"

    asset_id: Mapped[UUID] = mapped_column(primary_key=True)
    filename: Mapped[str] = mapped_column(String(1024))
    content_type: Mapped[str | None] = mapped_column(String(255))
    uploader_id: Mapped[UUID | None] = mapped_column(index=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    exif: Mapped[AssetExifMetadata | None] = relationship(back_populates="asset")
    manual: Mapped[AssetManualMetadata | None] = relationship(back_populates="asset")
    annotations: Mapped[list[Annotation]] = relationship(back_populates="asset")
    ignored_entities: Mapped[list[AssetIgnoredEntity]] = relationship(back_populates="asset")


class AssetExifMetadata(Base):
    """Metadata extracted from the image file at upload time."""

    __tablename__ = "asset_metadata_exif"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.asset_id", ondelete="CASCADE"), primary_key=True
    )
    capture_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    camera_make: Mapped[str | None] = mapped_column(String(255))
    camera_model: Mapped[str | None] = mapped_column(String(255))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    altitude: Mapped[float | None] = mapped_column(Float)
    exif_raw: Mapped[dict[str, Any]] = mapped_column(JSONDocument, default=dict)

    asset: Mapped[Asset] = relationship(back_populates="exif")


class AssetManualMetadata(Base):
    """User override of extracted metadata. At most one row per asset.

    Subject coordinates place the photographed subject when it is not where
    the camera stood; they only affect derived presences.
    """

    __tablename__ = "asset_metadata_manual"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.asset_id", ondelete="CASCADE"), primary_key=True
    )
    display_name: Mapped[str | None] = mapped_column(Text)
    capture_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    subject_latitude: Mapped[float | None] = mapped_column(Float)
    subject_longitude: Mapped[float | None] = mapped_column(Float)
    altitude: Mapped[float | None] = mapped_column(Float)
    created_by: Mapped[UUID | None] = mapped_column()
    updated_by: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    asset: Mapped[Asset] = relationship(back_populates="manual")


class AssetIgnoredEntity(Base):
    """Entity for which no auto-presence may be derived from this asset.

    This is the per-asset ignore list. Rows are the user-facing way to undo an
    auto-derived presence permanently; deleting the presence alone would see it
    recreated by the next synchronization pass.
    """

    __tablename__ = "asset_ignored_entities"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.asset_id", ondelete="CASCADE"), primary_key=True
    )
    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), primary_key=True
    )
    created_by: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    asset: Mapped[Asset] = relationship(back_populates="ignored_entities")
