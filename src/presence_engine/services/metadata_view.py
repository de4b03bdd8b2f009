"""Effective asset metadata.

For each asset, manual overrides win over extracted EXIF, field by field:

- observed time: manual capture time, else EXIF capture time, else upload time
- capture time:  manual capture time, else EXIF capture time (no upload fallback)
- coordinates:   manual pair if both halves are set, else the EXIF pair
- subject point: manual subject pair only
- device key:    lower(make) | lower(model), None if either is unknown

``resolve_effective_info`` is the pure projection; ``MetadataView`` loads the
stored facts it needs.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.asset import Asset, AssetExifMetadata, AssetManualMetadata
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.utils.geo import GeoPoint, point_or_none
from presence_engine.utils.timeutils import ensure_utc


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def device_identity(make: str | None, model: str | None) -> str | None:
    """Case-insensitive camera identity, or None unless both parts are known."""
    mk = _norm(make)
    md = _norm(model)
    if not mk or not md:
        return None
    return f"{mk}|{md}"


@dataclass(frozen=True)
class AssetFacts:
    """Stored metadata for one asset, before override resolution."""

    asset_id: UUID
    uploaded_at: datetime | None = None
    exif_capture_timestamp: datetime | None = None
    exif_latitude: float | None = None
    exif_longitude: float | None = None
    camera_make: str | None = None
    camera_model: str | None = None
    manual_capture_timestamp: datetime | None = None
    manual_latitude: float | None = None
    manual_longitude: float | None = None
    subject_latitude: float | None = None
    subject_longitude: float | None = None


@dataclass(frozen=True)
class EffectiveAssetInfo:
    """An asset's metadata after manual overrides are applied."""

    asset_id: UUID
    observed_at: datetime | None
    capture_time: datetime | None
    location: GeoPoint | None
    subject_location: GeoPoint | None
    camera_make: str | None
    camera_model: str | None
    ignored_entity_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def device_key(self) -> str | None:
        return device_identity(self.camera_make, self.camera_model)

    @property
    def presence_location(self) -> GeoPoint | None:
        """Where the depicted subject was: the subject point if set, else the camera."""
        return self.subject_location or self.location


def resolve_effective_info(
    facts: AssetFacts,
    ignored_entity_ids: frozenset[UUID] = frozenset(),
) -> EffectiveAssetInfo:
    """Apply override precedence to stored facts. Pure; performs no I/O."""
    capture_time = ensure_utc(facts.manual_capture_timestamp) or ensure_utc(
        facts.exif_capture_timestamp
    )
    observed_at = capture_time or ensure_utc(facts.uploaded_at)

    location = point_or_none(facts.manual_latitude, facts.manual_longitude) or point_or_none(
        facts.exif_latitude, facts.exif_longitude
    )

    return EffectiveAssetInfo(
        asset_id=facts.asset_id,
        observed_at=observed_at,
        capture_time=capture_time,
        location=location,
        subject_location=point_or_none(facts.subject_latitude, facts.subject_longitude),
        camera_make=facts.camera_make,
        camera_model=facts.camera_model,
        ignored_entity_ids=ignored_entity_ids,
    )


def _facts_query() -> Any:
    return (
        select(
            Asset.asset_id,
            Asset.uploaded_at,
            AssetExifMetadata.capture_timestamp.label("exif_capture_timestamp"),
            AssetExifMetadata.latitude.label("exif_latitude"),
            AssetExifMetadata.longitude.label("exif_longitude"),
            AssetExifMetadata.camera_make,
            AssetExifMetadata.camera_model,
            AssetManualMetadata.capture_timestamp.label("manual_capture_timestamp"),
            AssetManualMetadata.latitude.label("manual_latitude"),
            AssetManualMetadata.longitude.label("manual_longitude"),
            AssetManualMetadata.subject_latitude,
            AssetManualMetadata.subject_longitude,
        )
        .outerjoin(AssetExifMetadata, AssetExifMetadata.asset_id == Asset.asset_id)
        .outerjoin(AssetManualMetadata, AssetManualMetadata.asset_id == Asset.asset_id)
        .where(Asset.deleted_at.is_(None))
    )


def _facts_from_row(row: Any) -> AssetFacts:
    return AssetFacts(**row._asdict())


class MetadataView:
    """Read projection of effective asset metadata.

    Usage:
        view = MetadataView(session)
        info = await view.get_effective_asset_info(asset_id)
    """

    def __init__(
        self, session: AsyncSession, *, ignore_list: IgnoreListStore | None = None
    ) -> None:
        self._session = session
        self._ignore_list = ignore_list or IgnoreListStore(session)

    async def get_effective_asset_info(self, asset_id: UUID) -> EffectiveAssetInfo | None:
        """Resolve one asset. Returns None for missing or soft-deleted assets."""
        result = await self._session.execute(_facts_query().where(Asset.asset_id == asset_id))
        row = result.one_or_none()
        if row is None:
            return None
        ignored = await self._ignore_list.get(asset_id)
        return resolve_effective_info(_facts_from_row(row), ignored)

    async def list_dated_images(self) -> Sequence[EffectiveAssetInfo]:
        """All live image assets whose capture time resolves.

        Upload time does not count: it says when the file arrived, not when
        the picture was taken. Ignore lists are not loaded.
        """
        stmt = _facts_query().where(
            Asset.content_type.like("image/%"),
            func.coalesce(
                AssetManualMetadata.capture_timestamp, AssetExifMetadata.capture_timestamp
            ).is_not(None),
        )
        result = await self._session.execute(stmt)
        return [resolve_effective_info(_facts_from_row(row)) for row in result]
