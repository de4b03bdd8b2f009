"""Directed, typed links between entities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.entity import EntityLink
from presence_engine.utils.timeutils import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityLinkRecord:
    link_id: UUID
    from_entity_id: UUID
    to_entity_id: UUID
    relation_type: str
    confidence: float
    notes: str | None
    created_by: UUID | None
    created_at: datetime | None


_LINK_COLUMNS = (
    EntityLink.link_id,
    EntityLink.from_entity_id,
    EntityLink.to_entity_id,
    EntityLink.relation_type,
    EntityLink.confidence,
    EntityLink.notes,
    EntityLink.created_by,
    EntityLink.created_at,
)


class EntityLinkService:
    """Create, delete and list entity links.

    Usage:
        service = EntityLinkService(session)
        link = await service.create_entity_link(owner_id, car_id, "owns")
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_entity_link(
        self,
        from_entity_id: UUID | None,
        to_entity_id: UUID | None,
        relation_type: str | None,
        *,
        confidence: float | None = None,
        notes: str | None = None,
        created_by: UUID | None = None,
    ) -> EntityLinkRecord:
        """Create a link ``from_entity_id -> to_entity_id``.

        Raises:
            ValueError: If either endpoint or the relation type is missing.
        """
        if from_entity_id is None or to_entity_id is None:
            raise ValueError("from_entity_id and to_entity_id are required")
        if not relation_type:
            raise ValueError("relation_type is required")

        link_id = uuid4()
        self._session.add(
            EntityLink(
                link_id=link_id,
                from_entity_id=from_entity_id,
                to_entity_id=to_entity_id,
                relation_type=relation_type,
                confidence=1.0 if confidence is None else confidence,
                notes=notes,
                created_by=created_by,
            )
        )
        await self._session.flush()
        logger.info(
            "Linked entity %s -[%s]-> %s", from_entity_id, relation_type, to_entity_id
        )

        row = (
            await self._session.execute(select(*_LINK_COLUMNS).where(EntityLink.link_id == link_id))
        ).one()
        return _record(row)

    async def delete_entity_link(self, link_id: UUID) -> bool:
        result = await self._session.execute(
            delete(EntityLink).where(EntityLink.link_id == link_id)
        )
        return bool(result.rowcount)

    async def list_links_for_entity(
        self, entity_id: UUID, *, limit: int = 100, offset: int = 0
    ) -> list[EntityLinkRecord]:
        """Links touching the entity in either direction, newest first."""
        stmt = (
            select(*_LINK_COLUMNS)
            .where(
                or_(EntityLink.from_entity_id == entity_id, EntityLink.to_entity_id == entity_id)
            )
            .order_by(EntityLink.created_at.desc(), EntityLink.link_id)
            .limit(limit)
            .offset(offset)
        )
        return [_record(row) for row in await self._session.execute(stmt)]


def _record(row) -> EntityLinkRecord:
    return EntityLinkRecord(
        link_id=row.link_id,
        from_entity_id=row.from_entity_id,
        to_entity_id=row.to_entity_id,
        relation_type=row.relation_type,
        confidence=row.confidence,
        notes=row.notes,
        created_by=row.created_by,
        created_at=ensure_utc(row.created_at),
    )
