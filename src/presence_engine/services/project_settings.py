"""Project-level settings backed by the ``project_settings`` key/value table.

The home location is stored like any other setting. When auto-update is on,
every read recomputes it from the data and persists the result; when off,
the stored value is returned untouched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.config import settings
from presence_engine.models.project_setting import ProjectSetting
from presence_engine.services.effects import run_secondary_effect
from presence_engine.services.home_location import HomeLocationAggregator
from presence_engine.utils.geo import GeoPoint
from presence_engine.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)

HOME_LOCATION_KEY = "project.homeLocation"
HOME_AUTO_UPDATE_KEY = "project.homeAutoUpdate"
INTERPOLATION_MAX_MINUTES_KEY = "assets.locationInterpolation.maxMinutes"

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def normalize_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, dict):
        return normalize_bool(value.get("enabled"), default)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return default


def normalize_int(value: Any, *, default: int, minimum: int, maximum: int) -> int:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = int(value) if not isinstance(value, str) else int(value.strip(), 10)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, number))


def _stored_point(value: Any) -> GeoPoint | None:
    if not isinstance(value, dict):
        return None
    try:
        return GeoPoint(float(value["lat"]), float(value["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ProjectSettings:
    """Effective project settings as returned to callers."""

    home_location: GeoPoint | None
    home_auto_update: bool
    location_interpolation_max_minutes: int


class ProjectSettingsService:
    """Read and update project settings, including the home location.

    Usage:
        service = ProjectSettingsService(session)
        current = await service.get_project_settings()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        aggregator: HomeLocationAggregator | None = None,
    ) -> None:
        self._session = session
        self._aggregator = aggregator or HomeLocationAggregator(session)

    async def get_value(self, key: str) -> Any:
        result = await self._session.execute(
            select(ProjectSetting.value).where(ProjectSetting.key == key)
        )
        return result.scalar_one_or_none()

    async def set_value(self, key: str, value: Any, updated_by: UUID | None = None) -> None:
        stmt = dialect_insert(self._session, ProjectSetting).values(
            key=key, value=value, updated_by=updated_by
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "value": stmt.excluded.value,
                "updated_by": stmt.excluded.updated_by,
                "updated_at": func.now(),
            },
        )
        await self._session.execute(stmt)

    async def get_project_settings(
        self, *, recompute_if_auto_update: bool = True
    ) -> ProjectSettings:
        """Current settings; refreshes the stored home location when auto-update is on.

        A failed recompute is logged and the stored value is returned instead.
        """
        auto_update = normalize_bool(
            await self.get_value(HOME_AUTO_UPDATE_KEY), settings.home_auto_update_default
        )
        home = _stored_point(await self.get_value(HOME_LOCATION_KEY))

        if auto_update and recompute_if_auto_update:
            effect = await run_secondary_effect(
                self._session, "Home location recompute", self._recompute_home
            )
            if effect.ok and effect.result is not None:
                home = effect.result

        max_minutes = normalize_int(
            await self.get_value(INTERPOLATION_MAX_MINUTES_KEY),
            default=settings.location_interpolation_max_minutes,
            minimum=1,
            maximum=settings.location_interpolation_max_minutes_limit,
        )

        return ProjectSettings(
            home_location=home,
            home_auto_update=auto_update,
            location_interpolation_max_minutes=max_minutes,
        )

    async def update_project_settings(
        self,
        *,
        home_lat: float | None = None,
        home_lng: float | None = None,
        home_auto_update: bool | None = None,
        location_interpolation_max_minutes: int | None = None,
        updated_by: UUID | None = None,
    ) -> ProjectSettings:
        """Apply the given changes; ``None`` leaves a setting as it is.

        Raises:
            ValueError: If only one of home_lat/home_lng is given, or either
                is not a finite number.
        """
        home: GeoPoint | None = None
        if home_lat is not None or home_lng is not None:
            if home_lat is None or home_lng is None:
                raise ValueError("Both homeLat and homeLng must be provided together")
            lat = float(home_lat)
            lng = float(home_lng)
            if not (math.isfinite(lat) and math.isfinite(lng)):
                raise ValueError("homeLat/homeLng must be valid numbers")
            home = GeoPoint(lat, lng)

        if home_auto_update is not None:
            await self.set_value(HOME_AUTO_UPDATE_KEY, bool(home_auto_update), updated_by)

        if location_interpolation_max_minutes is not None:
            minutes = normalize_int(
                location_interpolation_max_minutes,
                default=settings.location_interpolation_max_minutes,
                minimum=1,
                maximum=settings.location_interpolation_max_minutes_limit,
            )
            await self.set_value(INTERPOLATION_MAX_MINUTES_KEY, minutes, updated_by)

        if home is not None:
            await self.set_value(
                HOME_LOCATION_KEY, {"lat": home.latitude, "lng": home.longitude}, updated_by
            )

        return await self.get_project_settings()

    async def recalculate_home_location(self, updated_by: UUID | None = None) -> ProjectSettings:
        """Recompute and store the home location regardless of auto-update."""
        computed = await self._aggregator.compute_home_location()
        if computed is not None:
            await self.set_value(
                HOME_LOCATION_KEY,
                {"lat": computed.latitude, "lng": computed.longitude},
                updated_by,
            )
        return await self.get_project_settings(recompute_if_auto_update=False)

    async def _recompute_home(self) -> GeoPoint | None:
        computed = await self._aggregator.compute_home_location()
        if computed is not None:
            await self.set_value(
                HOME_LOCATION_KEY, {"lat": computed.latitude, "lng": computed.longitude}
            )
        return computed
