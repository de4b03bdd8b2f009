"""Per-asset ignore lists for derived presences."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.asset import AssetIgnoredEntity
from presence_engine.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)


class IgnoreListStore:
    """Set of entity ids per asset for which auto-presences are suppressed.

    The store only records membership. Callers re-run presence
    synchronization for the asset after changing it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, asset_id: UUID) -> frozenset[UUID]:
        result = await self._session.execute(
            select(AssetIgnoredEntity.entity_id).where(AssetIgnoredEntity.asset_id == asset_id)
        )
        return frozenset(result.scalars())

    async def contains(self, asset_id: UUID, entity_id: UUID) -> bool:
        result = await self._session.execute(
            select(AssetIgnoredEntity.entity_id).where(
                AssetIgnoredEntity.asset_id == asset_id,
                AssetIgnoredEntity.entity_id == entity_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add(
        self,
        asset_id: UUID,
        entity_ids: Iterable[UUID],
        *,
        user_id: UUID | None = None,
    ) -> int:
        """Add entities to the list. Already-present ids are left as they are.

        Returns:
            Number of ids newly added.
        """
        added = 0
        for entity_id in set(entity_ids):
            stmt = (
                dialect_insert(self._session, AssetIgnoredEntity)
                .values(asset_id=asset_id, entity_id=entity_id, created_by=user_id)
                .on_conflict_do_nothing(index_elements=["asset_id", "entity_id"])
            )
            result = await self._session.execute(stmt)
            added += result.rowcount or 0
        if added:
            logger.debug("Ignoring %d entities for asset %s", added, asset_id)
        return added

    async def remove(self, asset_id: UUID, entity_ids: Iterable[UUID]) -> int:
        """Remove entities from the list. Returns the number removed."""
        ids = set(entity_ids)
        if not ids:
            return 0
        result = await self._session.execute(
            delete(AssetIgnoredEntity).where(
                AssetIgnoredEntity.asset_id == asset_id,
                AssetIgnoredEntity.entity_id.in_(ids),
            )
        )
        return result.rowcount or 0

    async def replace(
        self,
        asset_id: UUID,
        entity_ids: Iterable[UUID],
        *,
        user_id: UUID | None = None,
    ) -> frozenset[UUID]:
        """Make the list exactly ``entity_ids``. Returns the new contents."""
        wanted = frozenset(entity_ids)
        current = await self.get(asset_id)
        await self.remove(asset_id, current - wanted)
        await self.add(asset_id, wanted - current, user_id=user_id)
        return wanted
