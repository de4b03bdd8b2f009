"""Business logic services for the presence engine."""

from presence_engine.services.annotation_links import AnnotationLinkService, EntityLinkResult
from presence_engine.services.assets import AssetService, IgnoreListResult, ManualMetadataResult
from presence_engine.services.connectivity import DirectLink, EntityConnectivityResolver
from presence_engine.services.effects import SecondaryEffect, run_secondary_effect
from presence_engine.services.entity_links import EntityLinkRecord, EntityLinkService
from presence_engine.services.events import EventRecord, EventService
from presence_engine.services.home_location import HomeLocationAggregator
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.services.location_interpolation import (
    BracketPoint,
    LocationInterpolator,
    LocationSuggestion,
)
from presence_engine.services.metadata_view import EffectiveAssetInfo, MetadataView
from presence_engine.services.patches import CLEAR, KEEP, ManualMetadataPatch, SetTo
from presence_engine.services.presence_sync import PresenceSynchronizer, SyncResult
from presence_engine.services.presences import PresenceMember, PresenceRecord, PresenceService
from presence_engine.services.project_settings import ProjectSettings, ProjectSettingsService
from presence_engine.services.timeline import TimelineService

__all__ = [
    "AnnotationLinkService",
    "AssetService",
    "BracketPoint",
    "CLEAR",
    "DirectLink",
    "EffectiveAssetInfo",
    "EntityConnectivityResolver",
    "EntityLinkRecord",
    "EntityLinkResult",
    "EntityLinkService",
    "EventRecord",
    "EventService",
    "HomeLocationAggregator",
    "IgnoreListResult",
    "IgnoreListStore",
    "KEEP",
    "LocationInterpolator",
    "LocationSuggestion",
    "ManualMetadataPatch",
    "ManualMetadataResult",
    "MetadataView",
    "PresenceMember",
    "PresenceRecord",
    "PresenceService",
    "PresenceSynchronizer",
    "ProjectSettings",
    "ProjectSettingsService",
    "SecondaryEffect",
    "SetTo",
    "SyncResult",
    "TimelineService",
    "run_secondary_effect",
]
