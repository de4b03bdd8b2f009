"""Annotation models: regions of an asset and the entities they depict."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from presence_engine.models.base import Base

if TYPE_CHECKING:
    from presence_engine.models.asset import Asset


class Annotation(Base):
    """An annotation bound to exactly one asset."""

    __tablename__ = "annotations"

    annotation_id: Mapped[UUID] = mapped_column(primary_key=True)
    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.asset_id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    asset: Mapped[Asset] = relationship(back_populates="annotations")
    entity_links: Mapped[list[AnnotationEntityLink]] = relationship(back_populates="annotation")


class AnnotationEntityLink(Base):
    """States that an entity appears in the annotation's asset.

    This is the source fact that drives presence derivation. The same entity
    may be linked from several annotations on one asset.
    """

    __tablename__ = "annotation_entity_links"

    link_id: Mapped[UUID] = mapped_column(primary_key=True)
    annotation_id: Mapped[UUID] = mapped_column(
        ForeignKey("annotations.annotation_id", ondelete="CASCADE"), index=True
    )
    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str | None] = mapped_column(String(255))
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    annotation: Mapped[Annotation] = relationship(back_populates="entity_links")
