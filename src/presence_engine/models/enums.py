"""Enumerations for the presence engine data model."""

from enum import Enum


class SourceType(str, Enum):
    """Where a presence came from."""

    ANNOTATION_ENTITY_LINK = "annotation_entity_link"  # derived from an annotation link
    MANUAL = "manual"  # entered by a user


class PresenceMarker(str, Enum):
    """Keys in Presence.details that flag a presence as auto-derived.

    Only presences carrying one of these markers are rewritten or removed by
    the synchronizer.
    """

    AUTO_FROM_ASSET = "autoFromAsset"
    AUTO_FROM_ANNOTATION = "autoFromAnnotation"


class EffectStatus(str, Enum):
    """Outcome of a best-effort secondary effect."""

    APPLIED = "applied"
    FAILED = "failed"


LOCATION_ENTITY_TYPE = "location"
COORDINATES_ATTRIBUTE = "coordinates"
