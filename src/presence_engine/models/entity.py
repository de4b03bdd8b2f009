"""Entity models for real-world subjects and the links between them."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from presence_engine.models.base import Base, JSONDocument


class Entity(Base):
    """A typed real-world subject: a person, vehicle, location, ...

    Entities are never deleted implicitly. Deleting one cascades to its
    attributes and links.
    """

    __tablename__ = "entities"

    entity_id: Mapped[UUID] = mapped_column(primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(255), index=True)
    display_name: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    attributes: Mapped[list[EntityAttribute]] = relationship(back_populates="entity")


class EntityAttribute(Base):
    """A named, JSON-valued attribute of an entity.

    Location entities carry their position as an attribute named
    ``coordinates`` holding ``{"latitude": ..., "longitude": ...}``.
    """

    __tablename__ = "entity_attributes"

    attribute_id: Mapped[UUID] = mapped_column(primary_key=True)
    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), index=True
    )
    attribute_name: Mapped[str] = mapped_column(String(255), index=True)
    attribute_value: Mapped[Any] = mapped_column(JSONDocument)
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    entity: Mapped[Entity] = relationship(back_populates="attributes")


class EntityLink(Base):
    """A directed, typed relation between two entities ("owns", "associated-with").

    Connectivity queries treat these edges as undirected.
    """

    __tablename__ = "entity_links"

    link_id: Mapped[UUID] = mapped_column(primary_key=True)
    from_entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), index=True
    )
    to_entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"), index=True
    )
    relation_type: Mapped[str] = mapped_column(String(255))
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
