"""Presence synchronization and temporal-geospatial interpolation engine."""

__version__ = "0.1.0"
