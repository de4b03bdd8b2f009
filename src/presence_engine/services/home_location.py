"""Home location: the centroid of everything the project has placed on a map.

Points are collected from four independent sources into one multiset:

- effective coordinates of every live asset (manual pair, else EXIF)
- event coordinates
- presence coordinates
- ``coordinates`` attributes of ``location`` entities

The result is the planar mean of latitudes and of longitudes. It only seeds
the default map view, so no spherical correction is applied.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.asset import Asset, AssetExifMetadata, AssetManualMetadata
from presence_engine.models.entity import Entity, EntityAttribute
from presence_engine.models.enums import COORDINATES_ATTRIBUTE, LOCATION_ENTITY_TYPE
from presence_engine.models.event import Event
from presence_engine.models.presence import Presence
from presence_engine.utils.geo import GeoPoint, coerce_coordinate, mean_point, point_or_none

logger = logging.getLogger(__name__)


def point_from_attribute(value: Any) -> GeoPoint | None:
    """Read ``{"latitude": ..., "longitude": ...}`` from an attribute value."""
    if not isinstance(value, dict):
        return None
    lat = coerce_coordinate(value.get("latitude"))
    lng = coerce_coordinate(value.get("longitude"))
    return point_or_none(lat, lng)


class HomeLocationAggregator:
    """Computes the project's representative coordinate.

    Usage:
        home = await HomeLocationAggregator(session).compute_home_location()
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def compute_home_location(self) -> GeoPoint | None:
        """Mean of all known points, or None if nothing has coordinates."""
        points = [point async for point in self.iter_points()]
        home = mean_point(points)
        logger.debug("Home location from %d points: %s", len(points), home)
        return home

    async def iter_points(self) -> AsyncIterator[GeoPoint]:
        assets = await self._session.execute(self._asset_points())
        for manual_lat, manual_lng, exif_lat, exif_lng in assets:
            point = point_or_none(manual_lat, manual_lng) or point_or_none(exif_lat, exif_lng)
            if point is not None:
                yield point

        for stmt in (self._event_points(), self._presence_points()):
            for lat, lng in await self._session.execute(stmt):
                point = point_or_none(lat, lng)
                if point is not None:
                    yield point

        attributes = await self._session.execute(
            select(EntityAttribute.attribute_value)
            .join(Entity, Entity.entity_id == EntityAttribute.entity_id)
            .where(
                func.lower(Entity.entity_type) == LOCATION_ENTITY_TYPE,
                func.lower(EntityAttribute.attribute_name) == COORDINATES_ATTRIBUTE,
            )
        )
        for value in attributes.scalars():
            point = point_from_attribute(value)
            if point is not None:
                yield point

    def _asset_points(self) -> Any:
        return (
            select(
                AssetManualMetadata.latitude,
                AssetManualMetadata.longitude,
                AssetExifMetadata.latitude,
                AssetExifMetadata.longitude,
            )
            .select_from(Asset)
            .outerjoin(AssetExifMetadata, AssetExifMetadata.asset_id == Asset.asset_id)
            .outerjoin(AssetManualMetadata, AssetManualMetadata.asset_id == Asset.asset_id)
            .where(Asset.deleted_at.is_(None))
        )

    def _event_points(self) -> Any:
        return select(Event.latitude, Event.longitude).where(
            Event.latitude.is_not(None), Event.longitude.is_not(None)
        )

    def _presence_points(self) -> Any:
        return select(Presence.latitude, Presence.longitude).where(
            Presence.latitude.is_not(None), Presence.longitude.is_not(None)
        )
