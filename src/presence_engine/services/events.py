"""Timeline events: incidents with a time, a title and an optional place."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.event import Event, EventEntity
from presence_engine.services.presences import validate_point
from presence_engine.utils.timeutils import ensure_utc
from presence_engine.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    Event.event_id,
    Event.occurred_at,
    Event.latitude,
    Event.longitude,
    Event.title,
    Event.description,
    Event.created_by,
    Event.created_at,
    Event.details,
)


@dataclass(frozen=True)
class EventRecord:
    event_id: UUID
    occurred_at: datetime
    latitude: float | None
    longitude: float | None
    title: str
    description: str | None
    created_by: UUID | None
    created_at: datetime | None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Any) -> EventRecord:
        return cls(
            event_id=row.event_id,
            occurred_at=ensure_utc(row.occurred_at),
            latitude=row.latitude,
            longitude=row.longitude,
            title=row.title,
            description=row.description,
            created_by=row.created_by,
            created_at=ensure_utc(row.created_at),
            details=dict(row.details or {}),
        )


class EventService:
    """Create, delete and list events.

    Usage:
        service = EventService(session)
        event = await service.create_event(occurred_at, "Break-in", latitude=1.0, longitude=2.0)
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_event(
        self,
        occurred_at: datetime | None,
        title: str | None,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        description: str | None = None,
        created_by: UUID | None = None,
        details: dict[str, Any] | None = None,
        entity_ids: Iterable[UUID] = (),
    ) -> EventRecord:
        """Create an event, optionally attaching participating entities.

        Raises:
            ValueError: If occurred_at or title is missing, or the coordinate
                pair is incomplete or invalid.
        """
        if occurred_at is None:
            raise ValueError("occurred_at is required")
        if not title:
            raise ValueError("title is required")
        point = validate_point(latitude, longitude)

        event_id = uuid4()
        self._session.add(
            Event(
                event_id=event_id,
                occurred_at=occurred_at,
                latitude=point.latitude if point else None,
                longitude=point.longitude if point else None,
                title=title,
                description=description,
                created_by=created_by,
                details=dict(details or {}),
            )
        )
        await self._session.flush()

        for entity_id in set(entity_ids):
            await self._session.execute(
                dialect_insert(self._session, EventEntity)
                .values(event_id=event_id, entity_id=entity_id, confidence=1.0)
                .on_conflict_do_nothing(index_elements=["event_id", "entity_id"])
            )

        logger.info("Created event %s (%s)", event_id, title)
        row = (
            await self._session.execute(select(*EVENT_COLUMNS).where(Event.event_id == event_id))
        ).one()
        return EventRecord.from_row(row)

    async def delete_event(self, event_id: UUID) -> bool:
        await self._session.execute(delete(EventEntity).where(EventEntity.event_id == event_id))
        result = await self._session.execute(delete(Event).where(Event.event_id == event_id))
        return bool(result.rowcount)

    async def list_events(
        self,
        *,
        before: datetime | None = None,
        after: datetime | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[EventRecord]:
        """Events within [after, before], newest first."""
        stmt = select(*EVENT_COLUMNS)
        if before is not None:
            stmt = stmt.where(Event.occurred_at <= before)
        if after is not None:
            stmt = stmt.where(Event.occurred_at >= after)
        stmt = stmt.order_by(Event.occurred_at.desc(), Event.event_id).limit(limit).offset(offset)
        return [EventRecord.from_row(row) for row in await self._session.execute(stmt)]
