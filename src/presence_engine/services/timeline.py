"""Per-entity timeline queries.

Looking up the timeline of an entity also surfaces what is directly linked to
it: a person's timeline includes sightings of the car they own. The widening
is exactly one hop (see ``EntityConnectivityResolver``).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.annotation import Annotation, AnnotationEntityLink
from presence_engine.models.asset import Asset
from presence_engine.models.event import Event, EventEntity
from presence_engine.models.presence import Presence, PresenceEntity
from presence_engine.services.connectivity import EntityConnectivityResolver
from presence_engine.services.events import EVENT_COLUMNS, EventRecord
from presence_engine.services.presences import PRESENCE_COLUMNS, PresenceRecord


class TimelineService:
    """Presences, events and assets for an entity and its direct neighbours.

    Usage:
        timeline = TimelineService(session)
        presences = await timeline.presences_for_entity(person_id)
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        connectivity: EntityConnectivityResolver | None = None,
    ) -> None:
        self._session = session
        self._connectivity = connectivity or EntityConnectivityResolver(session)

    async def presences_for_entity(
        self, entity_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> list[PresenceRecord]:
        """Presences of the entity or any connected entity, newest first."""
        connected = await self._connectivity.connected_entity_ids(entity_id)
        matching = select(PresenceEntity.presence_id).where(PresenceEntity.entity_id.in_(connected))
        stmt = (
            select(*PRESENCE_COLUMNS)
            .where(Presence.presence_id.in_(matching))
            .order_by(Presence.observed_at.desc(), Presence.presence_id)
            .limit(limit)
            .offset(offset)
        )
        return [PresenceRecord.from_row(row) for row in await self._session.execute(stmt)]

    async def events_for_entity(
        self, entity_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> list[EventRecord]:
        connected = await self._connectivity.connected_entity_ids(entity_id)
        matching = select(EventEntity.event_id).where(EventEntity.entity_id.in_(connected))
        stmt = (
            select(*EVENT_COLUMNS)
            .where(Event.event_id.in_(matching))
            .order_by(Event.occurred_at.desc(), Event.event_id)
            .limit(limit)
            .offset(offset)
        )
        return [EventRecord.from_row(row) for row in await self._session.execute(stmt)]

    async def asset_ids_for_entity(self, entity_id: UUID) -> list[UUID]:
        """Live assets annotated with the entity or a connected entity."""
        connected = await self._connectivity.connected_entity_ids(entity_id)
        stmt = (
            select(Annotation.asset_id)
            .join(
                AnnotationEntityLink,
                AnnotationEntityLink.annotation_id == Annotation.annotation_id,
            )
            .join(Asset, Asset.asset_id == Annotation.asset_id)
            .where(AnnotationEntityLink.entity_id.in_(connected), Asset.deleted_at.is_(None))
            .distinct()
            .order_by(Annotation.asset_id)
        )
        return list((await self._session.execute(stmt)).scalars())
