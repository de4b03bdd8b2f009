"""Pydantic schemas for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GeoPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    latitude: float
    longitude: float


class BracketPointOut(BaseModel):
    """One of the two geotagged photos a suggestion is interpolated between."""

    model_config = ConfigDict(from_attributes=True)

    asset_id: UUID
    capture_time: datetime
    latitude: float
    longitude: float


class LocationSuggestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    asset_id: UUID
    capture_time: datetime
    camera_make: str | None = None
    camera_model: str | None = None
    device_key: str
    proposed_latitude: float
    proposed_longitude: float
    prev: BracketPointOut
    next: BracketPointOut
    span_minutes: float
    weight: float = Field(ge=0.0, le=1.0)


class LocationSuggestionsResponse(BaseModel):
    max_window_minutes: float
    suggestions: list[LocationSuggestionOut]


class DirectLinkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    link_id: UUID
    other_entity_id: UUID
    relation_type: str
    outgoing: bool


class ConnectedEntitiesResponse(BaseModel):
    entity_id: UUID
    connected_entity_ids: list[UUID]
    links: list[DirectLinkOut]


class ProjectSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    home_location: GeoPointOut | None = None
    home_auto_update: bool
    location_interpolation_max_minutes: int


class ProjectSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    home_lat: float | None = None
    home_lng: float | None = None
    home_auto_update: bool | None = None
    location_interpolation_max_minutes: int | None = None
