"""Storage operations for derived presences.

Every write here is idempotent: calling it twice with the same arguments
leaves the same rows as calling it once. Derived presences are addressed by
their dedup key (source asset, source type, entity), backed by a unique
index, so concurrent writers cannot create duplicates; an insert that loses
the race returns the winner's row instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.enums import PresenceMarker, SourceType
from presence_engine.models.presence import Presence, PresenceEntity
from presence_engine.utils.geo import GeoPoint, point_or_none
from presence_engine.utils.timeutils import ensure_utc
from presence_engine.utils.upsert import dialect_insert


@dataclass(frozen=True)
class StoredPresence:
    """The fields of a derived presence the synchronizer compares against."""

    presence_id: UUID
    observed_at: datetime
    location: GeoPoint | None
    details: dict[str, Any]


def is_auto_presence(details: dict[str, Any] | None) -> bool:
    """True if presence metadata carries an ``autoFrom*`` marker."""
    if not details:
        return False
    return any(details.get(marker.value) is True for marker in PresenceMarker)


class PresenceStore:
    """Idempotent reads and writes of derived presences and memberships."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_auto_presence(
        self,
        asset_id: UUID,
        entity_id: UUID,
        source_type: SourceType = SourceType.ANNOTATION_ENTITY_LINK,
    ) -> StoredPresence | None:
        stmt = select(
            Presence.presence_id,
            Presence.observed_at,
            Presence.latitude,
            Presence.longitude,
            Presence.details,
        ).where(
            Presence.source_asset_id == asset_id,
            Presence.source_type == source_type.value,
            Presence.source_entity_id == entity_id,
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return StoredPresence(
            presence_id=row.presence_id,
            observed_at=ensure_utc(row.observed_at),
            location=point_or_none(row.latitude, row.longitude),
            details=dict(row.details or {}),
        )

    async def insert_auto_presence(
        self,
        *,
        asset_id: UUID,
        entity_id: UUID,
        observed_at: datetime,
        location: GeoPoint | None,
        details: dict[str, Any],
        observed_by: UUID | None = None,
        source_type: SourceType = SourceType.ANNOTATION_ENTITY_LINK,
    ) -> tuple[UUID, bool]:
        """Insert a derived presence unless one already holds the dedup key.

        Returns:
            Tuple of (presence_id, created). ``created`` is False when an
            existing row was found instead.
        """
        stmt = (
            dialect_insert(self._session, Presence)
            .values(
                presence_id=uuid4(),
                observed_at=observed_at,
                observed_by=observed_by,
                source_asset_id=asset_id,
                source_type=source_type.value,
                source_entity_id=entity_id,
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                details=details,
            )
            .on_conflict_do_nothing(
                index_elements=["source_asset_id", "source_type", "source_entity_id"]
            )
            .returning(Presence.presence_id)
        )
        presence_id = (await self._session.execute(stmt)).scalar_one_or_none()
        if presence_id is not None:
            return presence_id, True

        existing = await self.find_auto_presence(asset_id, entity_id, source_type)
        if existing is None:  # pragma: no cover - conflicting row vanished mid-call
            raise RuntimeError(f"Presence for asset {asset_id}, entity {entity_id} disappeared")
        return existing.presence_id, False

    async def update_presence_observation(
        self,
        presence_id: UUID,
        *,
        observed_at: datetime,
        location: GeoPoint | None,
        details: dict[str, Any],
    ) -> None:
        """Overwrite time, coordinates and metadata. ``location=None`` clears the point."""
        await self._session.execute(
            update(Presence)
            .where(Presence.presence_id == presence_id)
            .values(
                observed_at=observed_at,
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                details=details,
            )
        )

    async def delete_presence(self, presence_id: UUID) -> bool:
        await self._session.execute(
            delete(PresenceEntity).where(PresenceEntity.presence_id == presence_id)
        )
        result = await self._session.execute(
            delete(Presence).where(Presence.presence_id == presence_id)
        )
        return bool(result.rowcount)

    async def delete_auto_presence(
        self,
        asset_id: UUID,
        entity_id: UUID,
        source_type: SourceType = SourceType.ANNOTATION_ENTITY_LINK,
    ) -> bool:
        """Remove the derived presence for (asset, entity), if any."""
        existing = await self.find_auto_presence(asset_id, entity_id, source_type)
        if existing is None:
            return False
        return await self.delete_presence(existing.presence_id)

    async def upsert_membership(
        self,
        presence_id: UUID,
        entity_id: UUID,
        *,
        role: str | None = None,
        confidence: float | None = 1.0,
    ) -> bool:
        """Attach an entity to a presence. An existing membership is kept as is.

        Returns:
            True if a membership row was created.
        """
        stmt = (
            dialect_insert(self._session, PresenceEntity)
            .values(
                presence_id=presence_id,
                entity_id=entity_id,
                role=role,
                confidence=1.0 if confidence is None else confidence,
            )
            .on_conflict_do_nothing(index_elements=["presence_id", "entity_id"])
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)
