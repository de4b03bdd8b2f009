"""Database models for the presence engine."""

from presence_engine.models.annotation import Annotation, AnnotationEntityLink
from presence_engine.models.asset import (
    Asset,
    AssetExifMetadata,
    AssetIgnoredEntity,
    AssetManualMetadata,
)
from presence_engine.models.base import Base, JSONDocument
from presence_engine.models.entity import Entity, EntityAttribute, EntityLink
from presence_engine.models.enums import (
    COORDINATES_ATTRIBUTE,
    LOCATION_ENTITY_TYPE,
    EffectStatus,
    PresenceMarker,
    SourceType,
)
from presence_engine.models.event import Event, EventEntity
from presence_engine.models.presence import Presence, PresenceEntity
from presence_engine.models.project_setting import ProjectSetting

__all__ = [
    "COORDINATES_ATTRIBUTE",
    "LOCATION_ENTITY_TYPE",
    "Annotation",
    "AnnotationEntityLink",
    "Asset",
    "AssetExifMetadata",
    "AssetIgnoredEntity",
    "AssetManualMetadata",
    "Base",
    "EffectStatus",
    "Entity",
    "EntityAttribute",
    "EntityLink",
    "Event",
    "EventEntity",
    "JSONDocument",
    "Presence",
    "PresenceEntity",
    "PresenceMarker",
    "ProjectSetting",
    "SourceType",
]
