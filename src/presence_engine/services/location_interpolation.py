"""Location suggestions for photos that have a capture time but no coordinates.

Cameras without GPS still stamp a capture time. When the same camera took a
geotagged photo shortly before and another shortly after, the photo in
between was probably taken on the straight line between them. This module
proposes that position; it never writes it.

Algorithm, per camera (lowercased make + model, both required):

1. Sort the camera's dated photos by (time, asset id).
2. For each photo without coordinates, take the nearest earlier and nearest
   later photo that have coordinates.
3. Skip unless prev.time < photo.time < next.time and
   0 < next.time - prev.time <= window.
4. Blend latitude and longitude independently with
   w = (t - prev.t) / (next.t - prev.t).

Only the single nearest bracketing pair is used; there is no multi-point fit.
"""

from __future__ import annotations

import bisect
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.config import settings
from presence_engine.services.metadata_view import EffectiveAssetInfo, MetadataView
from presence_engine.utils.geo import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BracketPoint:
    """A geotagged photo used as one end of an interpolation bracket."""

    asset_id: UUID
    capture_time: datetime
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationSuggestion:
    """A proposed position for a photo, with the evidence behind it."""

    asset_id: UUID
    capture_time: datetime
    camera_make: str | None
    camera_model: str | None
    device_key: str
    proposed_latitude: float
    proposed_longitude: float
    prev: BracketPoint
    next: BracketPoint
    span_minutes: float
    weight: float


@dataclass(frozen=True)
class _Dated:
    info: EffectiveAssetInfo
    time: datetime
    device_key: str

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.time, str(self.info.asset_id))


@dataclass(frozen=True)
class _Known:
    """A geotagged member of a camera group and its index in that group."""

    index: int
    item: _Dated
    location: GeoPoint

    def bracket(self) -> BracketPoint:
        return BracketPoint(
            asset_id=self.item.info.asset_id,
            capture_time=self.item.time,
            latitude=self.location.latitude,
            longitude=self.location.longitude,
        )


def resolve_window_minutes(value: float | None) -> float:
    """Apply the default and the one-minute floor to a window in minutes.

    A missing or zero window means the configured default. There is no upper
    bound here; only the stored project setting is capped.
    """
    if not value:
        value = settings.location_interpolation_max_minutes
    return float(max(1, value))


def interpolate(prev: GeoPoint, next_: GeoPoint, weight: float) -> GeoPoint:
    """Per-axis linear blend; ``weight`` 0 gives ``prev``, 1 gives ``next_``."""
    return GeoPoint(
        prev.latitude + weight * (next_.latitude - prev.latitude),
        prev.longitude + weight * (next_.longitude - prev.longitude),
    )


def suggest_for_group(group: Sequence[_Dated], window: timedelta) -> list[LocationSuggestion]:
    """Suggestions for one camera's photos. ``group`` must be sorted."""
    known = [
        _Known(index=i, item=item, location=item.info.location)
        for i, item in enumerate(group)
        if item.info.location is not None
    ]
    if len(known) < 2:
        return []
    known_indexes = [k.index for k in known]

    suggestions: list[LocationSuggestion] = []
    for i, item in enumerate(group):
        if item.info.location is not None:
            continue

        # Nearest known index on each side of i
        pos = bisect.bisect_left(known_indexes, i)
        if pos == 0 or pos == len(known):
            continue
        prev = known[pos - 1]
        nxt = known[pos]

        if not (prev.item.time < item.time < nxt.item.time):
            continue
        span = nxt.item.time - prev.item.time
        if span <= timedelta(0) or span > window:
            continue

        weight = (item.time - prev.item.time) / span
        proposed = interpolate(prev.location, nxt.location, weight)

        suggestions.append(
            LocationSuggestion(
                asset_id=item.info.asset_id,
                capture_time=item.time,
                camera_make=item.info.camera_make,
                camera_model=item.info.camera_model,
                device_key=item.device_key,
                proposed_latitude=proposed.latitude,
                proposed_longitude=proposed.longitude,
                prev=prev.bracket(),
                next=nxt.bracket(),
                span_minutes=span / timedelta(minutes=1),
                weight=weight,
            )
        )
    return suggestions


def suggest_locations(
    assets: Iterable[EffectiveAssetInfo],
    max_window_minutes: float | None = None,
) -> list[LocationSuggestion]:
    """Pure form of the analysis over already-resolved assets."""
    window = timedelta(minutes=resolve_window_minutes(max_window_minutes))

    by_device: dict[str, list[_Dated]] = defaultdict(list)
    for info in assets:
        device_key = info.device_key
        if info.capture_time is None or device_key is None:
            continue
        by_device[device_key].append(
            _Dated(info=info, time=info.capture_time, device_key=device_key)
        )

    out: list[LocationSuggestion] = []
    for device_key, group in by_device.items():
        if len(group) < 2:
            continue
        group.sort(key=lambda d: d.sort_key)
        found = suggest_for_group(group, window)
        if found:
            logger.debug("%d location suggestions for camera %s", len(found), device_key)
        out.extend(found)

    out.sort(key=lambda s: (s.capture_time, str(s.asset_id)))
    return out


class LocationInterpolator:
    """Read-only batch analysis proposing coordinates for photos that lack them.

    Usage:
        interpolator = LocationInterpolator(session)
        suggestions = await interpolator.suggest_interpolated_locations(30)
    """

    def __init__(self, session: AsyncSession, *, metadata_view: MetadataView | None = None) -> None:
        self._metadata_view = metadata_view or MetadataView(session)

    async def suggest_interpolated_locations(
        self,
        max_window_minutes: float | None = None,
    ) -> list[LocationSuggestion]:
        """Propose coordinates from same-camera neighbours in time.

        Args:
            max_window_minutes: Widest allowed gap between the two bracketing
                photos. Defaults to ``settings.location_interpolation_max_minutes``;
                at least one minute, with no upper bound.

        Returns:
            Suggestions sorted by (capture time, asset id).
        """
        assets = await self._metadata_view.list_dated_images()
        return suggest_locations(assets, max_window_minutes)
