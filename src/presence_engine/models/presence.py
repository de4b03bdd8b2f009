"""Presence models: an entity observed at a time and (optionally) a place."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from presence_engine.models.base import Base, JSONDocument


class Presence(Base):
    """A timeline record placing one or more entities at a time and place.

    Presences are either entered manually or derived from an asset by the
    synchronizer. Derived presences carry an ``autoFrom*`` marker in
    ``details`` and fill ``source_entity_id``; together with the source asset
    and source type it forms the dedup key, so at most one derived presence
    exists per (asset, source type, entity). Manual presences leave
    ``source_entity_id`` NULL and never collide with that key.
    """

    __tablename__ = "presences"

    presence_id: Mapped[UUID] = mapped_column(primary_key=True)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    observed_by: Mapped[UUID | None] = mapped_column()
    source_asset_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("assets.asset_id", ondelete="SET NULL"), index=True
    )
    source_type: Mapped[str | None] = mapped_column(String(64))
    source_entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE")
    )
    """Entity this presence was derived for. NULL for manual presences."""

    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict[str, Any]] = mapped_column(JSONDocument, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    memberships: Mapped[list[PresenceEntity]] = relationship(back_populates="presence")

    __table_args__ = (
        Index(
            "uq_presences_derived_source",
            "source_asset_id",
            "source_type",
            "source_entity_id",
            unique=True,
        ),
    )


class PresenceEntity(Base):
    """Membership of an entity in a presence."""

    __tablename__ = "presence_entities"

    presence_id: Mapped[UUID] = mapped_column(
        ForeignKey("presences.presence_id", ondelete="CASCADE"), primary_key=True
    )
    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), primary_key=True, index=True
    )
    role: Mapped[str | None] = mapped_column(String(255))
    confidence: Mapped[float | None] = mapped_column(Float, default=1.0)

    presence: Mapped[Presence] = relationship(back_populates="memberships")
