"""Linking entities to annotations.

A link is the source fact behind a derived presence. Creating or removing one
reconciles the affected (asset, entity) presence afterwards, best-effort: the
link change stands even if the presence update fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.annotation import Annotation, AnnotationEntityLink
from presence_engine.services.effects import SecondaryEffect, run_secondary_effect
from presence_engine.services.presence_sync import PresenceSynchronizer, SyncResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityLinkResult:
    """A created or removed annotation link and the presence sync outcome."""

    link_id: UUID
    annotation_id: UUID
    entity_id: UUID
    role: str | None
    confidence: float
    notes: str | None
    presence_sync: SecondaryEffect[SyncResult]


class AnnotationLinkService:
    """Create and remove annotation → entity links.

    Usage:
        service = AnnotationLinkService(session)
        result = await service.link_entity(annotation_id, entity_id, role="driver")
        await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        synchronizer: PresenceSynchronizer | None = None,
    ) -> None:
        self._session = session
        self._synchronizer = synchronizer or PresenceSynchronizer(session)

    async def link_entity(
        self,
        annotation_id: UUID,
        entity_id: UUID,
        *,
        role: str | None = None,
        confidence: float | None = None,
        notes: str | None = None,
        observed_by: UUID | None = None,
    ) -> EntityLinkResult:
        """Link an entity to an annotation and derive its presence.

        Args:
            annotation_id: Annotation the entity appears in.
            entity_id: The entity.
            role: Free-form relation (e.g. "driver"); copied to the presence
                membership.
            confidence: Link confidence, default 1.0.
            notes: Free text stored on the link.
            observed_by: Recorded on a presence created by this link.

        Raises:
            ValueError: If the annotation does not exist.
        """
        exists = await self._session.execute(
            select(Annotation.annotation_id).where(Annotation.annotation_id == annotation_id)
        )
        if exists.scalar_one_or_none() is None:
            raise ValueError(f"Annotation {annotation_id} not found")

        link = AnnotationEntityLink(
            link_id=uuid4(),
            annotation_id=annotation_id,
            entity_id=entity_id,
            role=role,
            confidence=1.0 if confidence is None else confidence,
            notes=notes,
        )
        self._session.add(link)
        await self._session.flush()
        logger.info("Linked entity %s to annotation %s", entity_id, annotation_id)

        return EntityLinkResult(
            link_id=link.link_id,
            annotation_id=annotation_id,
            entity_id=entity_id,
            role=link.role,
            confidence=link.confidence,
            notes=link.notes,
            presence_sync=await self._sync(
                annotation_id, entity_id, observed_by, role=role, confidence=confidence
            ),
        )

    async def unlink_entity(self, link_id: UUID) -> EntityLinkResult:
        """Remove a link; drops the derived presence if no other link remains.

        Raises:
            ValueError: If the link does not exist.
        """
        row = (
            await self._session.execute(
                select(
                    AnnotationEntityLink.annotation_id,
                    AnnotationEntityLink.entity_id,
                    AnnotationEntityLink.role,
                    AnnotationEntityLink.confidence,
                    AnnotationEntityLink.notes,
                ).where(AnnotationEntityLink.link_id == link_id)
            )
        ).one_or_none()
        if row is None:
            raise ValueError("Entity link not found")

        await self._session.execute(
            delete(AnnotationEntityLink).where(AnnotationEntityLink.link_id == link_id)
        )
        logger.info("Unlinked entity %s from annotation %s", row.entity_id, row.annotation_id)

        return EntityLinkResult(
            link_id=link_id,
            annotation_id=row.annotation_id,
            entity_id=row.entity_id,
            role=row.role,
            confidence=row.confidence,
            notes=row.notes,
            presence_sync=await self._sync(row.annotation_id, row.entity_id, None),
        )

    async def list_links(self, annotation_id: UUID) -> list[AnnotationEntityLink]:
        result = await self._session.execute(
            select(AnnotationEntityLink)
            .where(AnnotationEntityLink.annotation_id == annotation_id)
            .order_by(AnnotationEntityLink.created_at, AnnotationEntityLink.link_id)
        )
        return list(result.scalars().all())

    async def _sync(
        self,
        annotation_id: UUID,
        entity_id: UUID,
        user_id: UUID | None,
        *,
        role: str | None = None,
        confidence: float | None = None,
    ) -> SecondaryEffect[SyncResult]:
        return await run_secondary_effect(
            self._session,
            "Presence sync",
            lambda: self._synchronizer.sync_annotation_link(
                annotation_id, entity_id, user_id, role=role, confidence=confidence
            ),
            annotation_id=annotation_id,
            entity_id=entity_id,
        )
