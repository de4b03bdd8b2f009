"""Manual presence records and the shared read model for all presences."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Row, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.enums import SourceType
from presence_engine.models.presence import Presence, PresenceEntity
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.services.presence_store import PresenceStore, is_auto_presence
from presence_engine.utils.geo import GeoPoint
from presence_engine.utils.timeutils import ensure_utc

logger = logging.getLogger(__name__)

PRESENCE_COLUMNS = (
    Presence.presence_id,
    Presence.observed_at,
    Presence.observed_by,
    Presence.source_asset_id,
    Presence.source_type,
    Presence.latitude,
    Presence.longitude,
    Presence.notes,
    Presence.details,
    Presence.created_at,
)


@dataclass(frozen=True)
class PresenceMember:
    """An entity's membership in a presence."""

    entity_id: UUID
    role: str | None = None
    confidence: float = 1.0


@dataclass(frozen=True)
class PresenceRecord:
    presence_id: UUID
    observed_at: datetime
    observed_by: UUID | None
    source_asset_id: UUID | None
    source_type: str | None
    latitude: float | None
    longitude: float | None
    notes: str | None
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def is_auto(self) -> bool:
        return is_auto_presence(self.details)

    @classmethod
    def from_row(cls, row: Row[Any]) -> PresenceRecord:
        return cls(
            presence_id=row.presence_id,
            observed_at=ensure_utc(row.observed_at),
            observed_by=row.observed_by,
            source_asset_id=row.source_asset_id,
            source_type=row.source_type,
            latitude=row.latitude,
            longitude=row.longitude,
            notes=row.notes,
            details=dict(row.details or {}),
            created_at=ensure_utc(row.created_at),
        )


def validate_point(latitude: float | None, longitude: float | None) -> GeoPoint | None:
    """Both or neither; a given pair must be a valid coordinate.

    Raises:
        ValueError: On a half pair or out-of-range values.
    """
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise ValueError("Both latitude and longitude must be provided together")
    return GeoPoint(float(latitude), float(longitude))


class PresenceService:
    """CRUD for presences as users see them.

    Presences created here are manual: they never carry the derived-presence
    dedup key, so synchronization leaves them alone.

    Usage:
        service = PresenceService(session)
        record = await service.create_presence(observed_at, [PresenceMember(entity_id)])
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        ignore_list: IgnoreListStore | None = None,
    ) -> None:
        self._session = session
        self._ignore_list = ignore_list or IgnoreListStore(session)
        self._store = PresenceStore(session)

    async def create_presence(
        self,
        observed_at: datetime | None,
        entities: Sequence[PresenceMember],
        *,
        observed_by: UUID | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        notes: str | None = None,
        details: dict[str, Any] | None = None,
        source_asset_id: UUID | None = None,
    ) -> PresenceRecord:
        """Record that entities were at a time and, optionally, a place.

        Raises:
            ValueError: If observed_at is missing, no entity is given, or the
                coordinate pair is incomplete or invalid.
        """
        if observed_at is None:
            raise ValueError("observed_at is required")
        if not entities:
            raise ValueError("At least one entity is required")
        point = validate_point(latitude, longitude)

        presence_id = uuid4()
        self._session.add(
            Presence(
                presence_id=presence_id,
                observed_at=observed_at,
                observed_by=observed_by,
                source_asset_id=source_asset_id,
                source_type=SourceType.MANUAL.value,
                source_entity_id=None,
                latitude=point.latitude if point else None,
                longitude=point.longitude if point else None,
                notes=notes,
                details=dict(details or {}),
            )
        )
        await self._session.flush()

        for member in entities:
            await self._store.upsert_membership(
                presence_id, member.entity_id, role=member.role, confidence=member.confidence
            )

        logger.info("Created presence %s with %d entities", presence_id, len(entities))
        row = (
            await self._session.execute(
                select(*PRESENCE_COLUMNS).where(Presence.presence_id == presence_id)
            )
        ).one()
        return PresenceRecord.from_row(row)

    async def get_presence(self, presence_id: UUID) -> PresenceRecord | None:
        result = await self._session.execute(
            select(*PRESENCE_COLUMNS).where(Presence.presence_id == presence_id)
        )
        row = result.one_or_none()
        return PresenceRecord.from_row(row) if row is not None else None

    async def list_presences(
        self,
        *,
        before: datetime | None = None,
        after: datetime | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[PresenceRecord]:
        """Presences within [after, before], newest first."""
        stmt = select(*PRESENCE_COLUMNS)
        if before is not None:
            stmt = stmt.where(Presence.observed_at <= before)
        if after is not None:
            stmt = stmt.where(Presence.observed_at >= after)
        stmt = (
            stmt.order_by(Presence.observed_at.desc(), Presence.presence_id)
            .limit(limit)
            .offset(offset)
        )
        return [PresenceRecord.from_row(row) for row in await self._session.execute(stmt)]

    async def get_presence_entities(self, presence_id: UUID) -> list[PresenceMember]:
        result = await self._session.execute(
            select(PresenceEntity.entity_id, PresenceEntity.role, PresenceEntity.confidence)
            .where(PresenceEntity.presence_id == presence_id)
            .order_by(PresenceEntity.entity_id)
        )
        return [
            PresenceMember(
                entity_id=row.entity_id,
                role=row.role,
                confidence=1.0 if row.confidence is None else row.confidence,
            )
            for row in result
        ]

    async def delete_presence(self, presence_id: UUID) -> bool:
        """Delete a presence and its memberships.

        Deleting a presence derived from annotation links also adds its
        entities to the source asset's ignore list, so the next
        synchronization does not bring it back.

        Returns:
            False if the presence did not exist.
        """
        row = (
            await self._session.execute(
                select(Presence.source_asset_id, Presence.source_type).where(
                    Presence.presence_id == presence_id
                )
            )
        ).one_or_none()
        if row is None:
            return False

        if (
            row.source_asset_id is not None
            and row.source_type == SourceType.ANNOTATION_ENTITY_LINK.value
        ):
            members = await self.get_presence_entities(presence_id)
            entity_ids = [member.entity_id for member in members]
            if entity_ids:
                await self._ignore_list.add(row.source_asset_id, entity_ids)
                logger.info(
                    "Ignoring %d entities on asset %s after presence deletion",
                    len(entity_ids),
                    row.source_asset_id,
                )

        return await self._store.delete_presence(presence_id)
