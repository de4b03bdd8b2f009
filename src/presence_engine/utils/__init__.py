"""Utility modules for the presence engine."""

from presence_engine.utils.geo import GeoPoint, coerce_coordinate, mean_point, point_or_none
from presence_engine.utils.timeutils import ensure_utc

__all__ = [
    "GeoPoint",
    "coerce_coordinate",
    "ensure_utc",
    "mean_point",
    "point_or_none",
]
