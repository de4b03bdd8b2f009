"""FastAPI application for the presence engine."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine import __version__
from presence_engine.db import get_session, init_db
from presence_engine.schemas import (
    ConnectedEntitiesResponse,
    DirectLinkOut,
    LocationSuggestionOut,
    LocationSuggestionsResponse,
    ProjectSettingsOut,
    ProjectSettingsUpdate,
)
from presence_engine.services.connectivity import EntityConnectivityResolver
from presence_engine.services.location_interpolation import (
    LocationInterpolator,
    resolve_window_minutes,
)
from presence_engine.services.project_settings import ProjectSettingsService

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    await init_db()
    yield


app = FastAPI(
    title="Presence Engine",
    description="Derived presence timelines, location suggestions and home location",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/suggestions/locations", response_model=LocationSuggestionsResponse)
async def location_suggestions(
    session: SessionDep,
    max_minutes: Annotated[float | None, Query(gt=0)] = None,
) -> LocationSuggestionsResponse:
    """Proposed coordinates for dated photos without GPS.

    Without ``max_minutes`` the project's configured window is used.
    """
    if max_minutes is None:
        project = await ProjectSettingsService(session).get_project_settings(
            recompute_if_auto_update=False
        )
        max_minutes = project.location_interpolation_max_minutes
    window = resolve_window_minutes(max_minutes)

    suggestions = await LocationInterpolator(session).suggest_interpolated_locations(window)
    return LocationSuggestionsResponse(
        max_window_minutes=window,
        suggestions=[LocationSuggestionOut.model_validate(s) for s in suggestions],
    )


@app.get("/entities/{entity_id}/connected", response_model=ConnectedEntitiesResponse)
async def connected_entities(entity_id: UUID, session: SessionDep) -> ConnectedEntitiesResponse:
    resolver = EntityConnectivityResolver(session)
    connected = await resolver.connected_entity_ids(entity_id)
    links = await resolver.get_direct_links(entity_id)
    return ConnectedEntitiesResponse(
        entity_id=entity_id,
        connected_entity_ids=sorted(connected, key=str),
        links=[DirectLinkOut.model_validate(link) for link in links],
    )


@app.get("/project/home-location", response_model=ProjectSettingsOut)
async def get_home_location(session: SessionDep) -> ProjectSettingsOut:
    """Current project settings; refreshes the home location if auto-update is on."""
    current = await ProjectSettingsService(session).get_project_settings()
    await session.commit()
    return ProjectSettingsOut.model_validate(current)


@app.put("/project/home-location", response_model=ProjectSettingsOut)
async def update_home_location(
    body: ProjectSettingsUpdate, session: SessionDep
) -> ProjectSettingsOut:
    try:
        updated = await ProjectSettingsService(session).update_project_settings(
            home_lat=body.home_lat,
            home_lng=body.home_lng,
            home_auto_update=body.home_auto_update,
            location_interpolation_max_minutes=body.location_interpolation_max_minutes,
        )
    except ValueError as exc:
        await session.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    await session.commit()
    return ProjectSettingsOut.model_validate(updated)


@app.post("/project/home-location/recalculate", response_model=ProjectSettingsOut)
async def recalculate_home_location(session: SessionDep) -> ProjectSettingsOut:
    updated = await ProjectSettingsService(session).recalculate_home_location()
    await session.commit()
    return ProjectSettingsOut.model_validate(updated)
