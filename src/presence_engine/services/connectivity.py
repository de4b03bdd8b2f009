"""One-hop entity connectivity.

Timeline and map lookups "for entity X" also show what is directly linked to
X (the owner of a vehicle, the vehicle of an owner). The neighbourhood is one
hop in either direction over EntityLink and is never expanded transitively.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, union
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.entity import EntityLink


@dataclass(frozen=True)
class DirectLink:
    """A neighbour of an entity and the link that connects them."""

    link_id: UUID
    other_entity_id: UUID
    relation_type: str
    outgoing: bool
    """True if the link points from the queried entity to the neighbour."""


class EntityConnectivityResolver:
    """Answers "which entities are directly linked to X".

    Usage:
        resolver = EntityConnectivityResolver(session)
        ids = await resolver.connected_entity_ids(entity_id)
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def connected_entity_ids(self, entity_id: UUID) -> set[UUID]:
        """The entity itself plus every entity one link away, either direction."""
        stmt = union(
            select(EntityLink.to_entity_id).where(EntityLink.from_entity_id == entity_id),
            select(EntityLink.from_entity_id).where(EntityLink.to_entity_id == entity_id),
        )
        result = await self._session.execute(stmt)
        connected = set(result.scalars())
        connected.add(entity_id)
        return connected

    async def get_direct_links(self, entity_id: UUID) -> list[DirectLink]:
        stmt = (
            select(EntityLink)
            .where(
                (EntityLink.from_entity_id == entity_id) | (EntityLink.to_entity_id == entity_id)
            )
            .order_by(EntityLink.created_at.desc(), EntityLink.link_id)
        )
        links = (await self._session.execute(stmt)).scalars().all()
        return [
            DirectLink(
                link_id=link.link_id,
                other_entity_id=(
                    link.to_entity_id if link.from_entity_id == entity_id else link.from_entity_id
                ),
                relation_type=link.relation_type,
                outgoing=link.from_entity_id == entity_id,
            )
            for link in links
        ]
