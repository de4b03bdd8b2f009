"""Presence synchronization: keep derived presences in step with their sources.

An annotation on an asset that links an entity says "this entity appears in
this asset". From that fact, plus the asset's effective time and place, the
synchronizer derives one presence per (asset, entity):

1. Resolve effective observation time (manual > EXIF > upload). No time, no work.
2. Resolve effective coordinates; a subject point overrides the camera point.
3. Load the asset's ignore list.
4. Load the distinct entities linked through any annotation on the asset.
5. For each entity:
   - ignored: delete any derived presence, stop
   - no presence yet: create one (with membership) only if coordinates resolve
   - presence exists: refresh time and coordinates, clearing the point if the
     coordinates no longer resolve, and stamp the auto marker

Running a pass twice with unchanged inputs writes nothing the second time.
Manual presences are never read or written here: they do not carry the
dedup key the store looks presences up by.

The pass locks the asset row for its duration so that two concurrent passes
for the same asset serialize; the dedup unique index covers the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.annotation import Annotation, AnnotationEntityLink
from presence_engine.models.asset import Asset
from presence_engine.models.enums import PresenceMarker
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.services.metadata_view import EffectiveAssetInfo, MetadataView
from presence_engine.services.presence_store import PresenceStore, StoredPresence
from presence_engine.utils.geo import GeoPoint

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """What a synchronization pass changed."""

    asset_id: UUID | None
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    skipped: str | None = None
    """Why the pass did nothing (missing asset, no time), if it did nothing."""

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted

    def merge(self, other: SyncResult) -> None:
        self.created += other.created
        self.updated += other.updated
        self.deleted += other.deleted
        self.unchanged += other.unchanged


@dataclass(frozen=True)
class _LinkSource:
    """How a presence is attributed: marker, extra metadata and membership."""

    marker: PresenceMarker
    extra: dict[str, Any]
    role: str | None = None
    confidence: float | None = 1.0

    def details(self, existing: dict[str, Any] | None = None) -> dict[str, Any]:
        merged = dict(existing or {})
        merged.update(self.extra)
        merged[self.marker.value] = True
        return merged


_ASSET_SOURCE = _LinkSource(marker=PresenceMarker.AUTO_FROM_ASSET, extra={})


class PresenceSynchronizer:
    """Reconciles derived presences for an asset against its linked entities.

    Usage:
        async with async_session_factory() as session:
            sync = PresenceSynchronizer(session)
            result = await sync.sync_asset(asset_id, user_id)
            await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        metadata_view: MetadataView | None = None,
        ignore_list: IgnoreListStore | None = None,
        store: PresenceStore | None = None,
    ) -> None:
        self._session = session
        self._ignore_list = ignore_list or IgnoreListStore(session)
        self._metadata_view = metadata_view or MetadataView(session, ignore_list=self._ignore_list)
        self._store = store or PresenceStore(session)

    async def sync_asset(self, asset_id: UUID, acting_user_id: UUID | None = None) -> SyncResult:
        """Recompute every derived presence for one asset.

        Args:
            asset_id: The asset whose metadata, links or ignore list changed.
            acting_user_id: Recorded as ``observed_by`` on created presences.

        Returns:
            SyncResult with per-outcome counts.
        """
        await self._lock_asset(asset_id)
        info = await self._metadata_view.get_effective_asset_info(asset_id)
        if info is None:
            return SyncResult(asset_id=asset_id, skipped="asset not found")
        observed_at = info.observed_at
        if observed_at is None:
            return SyncResult(asset_id=asset_id, skipped="no observation time")

        result = SyncResult(asset_id=asset_id)
        for entity_id in sorted(await self.linked_entity_ids(asset_id)):
            outcome = await self._reconcile(
                info, observed_at, entity_id, _ASSET_SOURCE, acting_user_id
            )
            result.merge(outcome)

        logger.debug(
            "Synced presences for asset %s: +%d ~%d -%d =%d",
            asset_id,
            result.created,
            result.updated,
            result.deleted,
            result.unchanged,
        )
        return result

    async def sync_annotation_link(
        self,
        annotation_id: UUID,
        entity_id: UUID,
        acting_user_id: UUID | None = None,
        *,
        role: str | None = None,
        confidence: float | None = None,
    ) -> SyncResult:
        """Reconcile the single (asset, entity) pair behind one annotation link.

        Called after a link is created or removed. When no annotation on the
        asset links the entity any more, the derived presence is deleted;
        while another annotation still links it, the presence stays.
        """
        asset_id = await self._asset_for_annotation(annotation_id)
        if asset_id is None:
            return SyncResult(asset_id=None, skipped="annotation not found")

        await self._lock_asset(asset_id)
        if not await self._is_linked(asset_id, entity_id):
            deleted = await self._store.delete_auto_presence(asset_id, entity_id)
            if deleted:
                logger.info(
                    "Removed presence for asset %s, entity %s: no remaining links",
                    asset_id,
                    entity_id,
                )
            return SyncResult(asset_id=asset_id, deleted=int(deleted))

        info = await self._metadata_view.get_effective_asset_info(asset_id)
        if info is None:
            return SyncResult(asset_id=asset_id, skipped="asset not found")
        observed_at = info.observed_at
        if observed_at is None:
            return SyncResult(asset_id=asset_id, skipped="no observation time")

        source = _LinkSource(
            marker=PresenceMarker.AUTO_FROM_ANNOTATION,
            extra={"annotationId": str(annotation_id), "entityId": str(entity_id)},
            role=role,
            confidence=confidence,
        )
        return await self._reconcile(info, observed_at, entity_id, source, acting_user_id)

    async def linked_entity_ids(self, asset_id: UUID) -> set[UUID]:
        """Distinct entities linked through any annotation on the asset."""
        stmt = (
            select(AnnotationEntityLink.entity_id)
            .join(Annotation, Annotation.annotation_id == AnnotationEntityLink.annotation_id)
            .where(Annotation.asset_id == asset_id)
            .distinct()
        )
        return set((await self._session.execute(stmt)).scalars())

    async def _reconcile(
        self,
        info: EffectiveAssetInfo,
        observed_at: datetime,
        entity_id: UUID,
        source: _LinkSource,
        acting_user_id: UUID | None,
    ) -> SyncResult:
        asset_id = info.asset_id
        location = info.presence_location

        if entity_id in info.ignored_entity_ids:
            deleted = await self._store.delete_auto_presence(asset_id, entity_id)
            return SyncResult(asset_id=asset_id, deleted=int(deleted))

        existing = await self._store.find_auto_presence(asset_id, entity_id)
        if existing is None:
            if location is None:
                # Never create a presence the map cannot place
                return SyncResult(asset_id=asset_id, unchanged=1)
            presence_id, created = await self._store.insert_auto_presence(
                asset_id=asset_id,
                entity_id=entity_id,
                observed_at=observed_at,
                location=location,
                details=source.details(),
                observed_by=acting_user_id,
            )
            await self._store.upsert_membership(
                presence_id, entity_id, role=source.role, confidence=source.confidence
            )
            if created:
                return SyncResult(asset_id=asset_id, created=1)
            # Lost an insert race; bring the winner's row up to date
            existing = await self._store.find_auto_presence(asset_id, entity_id)
            if existing is None:  # pragma: no cover
                return SyncResult(asset_id=asset_id, unchanged=1)

        details = source.details(existing.details)
        if _is_current(existing, observed_at, location, details):
            return SyncResult(asset_id=asset_id, unchanged=1)

        await self._store.update_presence_observation(
            existing.presence_id,
            observed_at=observed_at,
            location=location,
            details=details,
        )
        return SyncResult(asset_id=asset_id, updated=1)

    async def _lock_asset(self, asset_id: UUID) -> None:
        # Row lock on PostgreSQL; SQLite serializes writers on its own.
        await self._session.execute(
            select(Asset.asset_id).where(Asset.asset_id == asset_id).with_for_update()
        )

    async def _asset_for_annotation(self, annotation_id: UUID) -> UUID | None:
        result = await self._session.execute(
            select(Annotation.asset_id).where(Annotation.annotation_id == annotation_id)
        )
        return result.scalar_one_or_none()

    async def _is_linked(self, asset_id: UUID, entity_id: UUID) -> bool:
        stmt = (
            select(AnnotationEntityLink.link_id)
            .join(Annotation, Annotation.annotation_id == AnnotationEntityLink.annotation_id)
            .where(Annotation.asset_id == asset_id, AnnotationEntityLink.entity_id == entity_id)
            .limit(1)
        )
        return (await self._session.execute(stmt)).first() is not None


def _is_current(
    stored: StoredPresence,
    observed_at: datetime,
    location: GeoPoint | None,
    details: dict[str, Any],
) -> bool:
    return (
        stored.observed_at == observed_at
        and stored.location == location
        and stored.details == details
    )
