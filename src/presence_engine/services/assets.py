"""Asset write paths that feed presence synchronization.

Each operation applies its own change first, then re-runs presence
synchronization for the asset as a secondary effect. A synchronization
failure is logged and reported in the result; it never undoes or fails the
metadata change itself.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.asset import Asset, AssetManualMetadata
from presence_engine.services.effects import SecondaryEffect, run_secondary_effect
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.services.patches import ManualMetadataPatch, apply_patch
from presence_engine.services.presence_sync import PresenceSynchronizer, SyncResult
from presence_engine.utils.geo import GeoPoint, point_or_none
from presence_engine.utils.timeutils import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualMetadataResult:
    """The stored override after an update, plus the presence sync outcome."""

    asset_id: UUID
    display_name: str | None
    capture_timestamp: datetime | None
    altitude: float | None
    location: GeoPoint | None
    subject_location: GeoPoint | None
    presence_sync: SecondaryEffect[SyncResult]


@dataclass(frozen=True)
class IgnoreListResult:
    asset_id: UUID
    ignored_entity_ids: frozenset[UUID]
    presence_sync: SecondaryEffect[SyncResult]


class AssetService:
    """Manual metadata and ignore-list updates for assets.

    Usage:
        service = AssetService(session)
        result = await service.update_manual_metadata(asset_id, patch, user_id)
        await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        synchronizer: PresenceSynchronizer | None = None,
        ignore_list: IgnoreListStore | None = None,
    ) -> None:
        self._session = session
        self._ignore_list = ignore_list or IgnoreListStore(session)
        self._synchronizer = synchronizer or PresenceSynchronizer(
            session, ignore_list=self._ignore_list
        )

    async def update_manual_metadata(
        self,
        asset_id: UUID,
        patch: ManualMetadataPatch,
        user_id: UUID | None = None,
    ) -> ManualMetadataResult:
        """Apply a patch to the asset's manual override, creating it if needed.

        Args:
            asset_id: The asset to update.
            patch: Per-field keep/clear/set changes. Coordinate pairs are
                validated when the patch is built.
            user_id: Recorded as creator/updater of the override.

        Returns:
            ManualMetadataResult with the stored values.

        Raises:
            ValueError: If the asset does not exist or is deleted.
        """
        await self._require_asset(asset_id)

        manual = await self._session.get(AssetManualMetadata, asset_id)
        if manual is None:
            manual = AssetManualMetadata(asset_id=asset_id, created_by=user_id)
            self._session.add(manual)

        manual.display_name = apply_patch(manual.display_name, patch.display_name)
        manual.capture_timestamp = apply_patch(manual.capture_timestamp, patch.capture_timestamp)
        manual.altitude = apply_patch(manual.altitude, patch.altitude)

        location = apply_patch(point_or_none(manual.latitude, manual.longitude), patch.location)
        manual.latitude = location.latitude if location else None
        manual.longitude = location.longitude if location else None

        subject = apply_patch(
            point_or_none(manual.subject_latitude, manual.subject_longitude),
            patch.subject_location,
        )
        manual.subject_latitude = subject.latitude if subject else None
        manual.subject_longitude = subject.longitude if subject else None

        manual.updated_by = user_id
        await self._session.flush()
        logger.info("Updated manual metadata for asset %s", asset_id)

        display_name = manual.display_name
        capture_timestamp = ensure_utc(manual.capture_timestamp)
        altitude = manual.altitude

        effect = await self._sync(asset_id, user_id)
        return ManualMetadataResult(
            asset_id=asset_id,
            display_name=display_name,
            capture_timestamp=capture_timestamp,
            altitude=altitude,
            location=location,
            subject_location=subject,
            presence_sync=effect,
        )

    async def set_ignored_entities(
        self,
        asset_id: UUID,
        entity_ids: Iterable[UUID],
        user_id: UUID | None = None,
    ) -> IgnoreListResult:
        """Replace the asset's ignore list, then resync its presences."""
        await self._require_asset(asset_id)
        ignored = await self._ignore_list.replace(asset_id, entity_ids, user_id=user_id)
        effect = await self._sync(asset_id, user_id)
        return IgnoreListResult(asset_id=asset_id, ignored_entity_ids=ignored, presence_sync=effect)

    async def ignore_entity(
        self, asset_id: UUID, entity_id: UUID, user_id: UUID | None = None
    ) -> IgnoreListResult:
        """Stop deriving a presence for this entity from this asset, and remove it."""
        await self._require_asset(asset_id)
        await self._ignore_list.add(asset_id, [entity_id], user_id=user_id)
        effect = await self._sync(asset_id, user_id)
        return IgnoreListResult(
            asset_id=asset_id,
            ignored_entity_ids=await self._ignore_list.get(asset_id),
            presence_sync=effect,
        )

    async def unignore_entity(
        self, asset_id: UUID, entity_id: UUID, user_id: UUID | None = None
    ) -> IgnoreListResult:
        """Allow the presence again; the next sync recreates it if still linked."""
        await self._require_asset(asset_id)
        await self._ignore_list.remove(asset_id, [entity_id])
        effect = await self._sync(asset_id, user_id)
        return IgnoreListResult(
            asset_id=asset_id,
            ignored_entity_ids=await self._ignore_list.get(asset_id),
            presence_sync=effect,
        )

    async def _require_asset(self, asset_id: UUID) -> None:
        result = await self._session.execute(
            select(Asset.asset_id).where(Asset.asset_id == asset_id, Asset.deleted_at.is_(None))
        )
        if result.scalar_one_or_none() is None:
            raise ValueError(f"Asset {asset_id} not found")

    async def _sync(self, asset_id: UUID, user_id: UUID | None) -> SecondaryEffect[SyncResult]:
        return await run_secondary_effect(
            self._session,
            "Presence sync",
            lambda: self._synchronizer.sync_asset(asset_id, user_id),
            asset_id=asset_id,
        )
