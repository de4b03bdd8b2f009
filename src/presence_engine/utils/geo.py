"""Coordinate helpers.

All geometry here is planar: latitude and longitude are treated as
independent axes. Callers only ever blend points that are close together
(short interpolation brackets, centroids used as a map default), where the
error of ignoring the sphere is negligible.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError("Latitude and longitude must be finite numbers")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude {self.latitude} is outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} is outside [-180, 180]")


def point_or_none(latitude: float | None, longitude: float | None) -> GeoPoint | None:
    """Build a point from stored halves, or None unless both are usable."""
    if latitude is None or longitude is None:
        return None
    try:
        return GeoPoint(float(latitude), float(longitude))
    except ValueError:
        return None


def coerce_coordinate(value: Any) -> float | None:
    """Read one coordinate half from a loosely-typed JSON value.

    Accepts finite numbers and plain decimal strings ("60.17", "-3"); anything
    else (booleans, exponents, blanks) is ignored.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.strip()
        if _NUMERIC_RE.match(text):
            return float(text)
    return None


def mean_point(points: Iterable[GeoPoint]) -> GeoPoint | None:
    """Arithmetic mean of latitudes and of longitudes, or None if empty."""
    count = 0
    lat_sum = 0.0
    lng_sum = 0.0
    for point in points:
        count += 1
        lat_sum += point.latitude
        lng_sum += point.longitude
    if count == 0:
        return None
    return GeoPoint(lat_sum / count, lng_sum / count)
