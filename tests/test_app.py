"""Tests for the FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from presence_engine import __version__
from presence_engine.app import app
from presence_engine.db import get_session
from presence_engine.models import Asset, AssetExifMetadata, Entity, EntityLink

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests use the test database."""

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()


async def test_health() -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


async def test_location_suggestions(
    client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    base = datetime(2024, 8, 10, 10, 0, tzinfo=UTC)
    assets = [
        Asset(asset_id=uuid4(), filename=f"p{i}.jpg", content_type="image/jpeg") for i in range(3)
    ]
    coords = [(60.00, 24.00), None, (60.02, 24.02)]
    async with session_factory() as session:
        session.add_all(assets)
        await session.flush()
        for i, (asset, point) in enumerate(zip(assets, coords, strict=True)):
            session.add(
                AssetExifMetadata(
                    asset_id=asset.asset_id,
                    capture_timestamp=base.replace(minute=10 * i),
                    camera_make="Acme",
                    camera_model="X100",
                    latitude=point[0] if point else None,
                    longitude=point[1] if point else None,
                    exif_raw={},
                )
            )
        await session.commit()

    response = await client.get("/suggestions/locations")
    narrow = await client.get("/suggestions/locations", params={"max_minutes": 15})

    assert response.status_code == 200
    body = response.json()
    assert body["max_window_minutes"] == 30
    [suggestion] = body["suggestions"]
    assert suggestion["asset_id"] == str(assets[1].asset_id)
    assert suggestion["proposed_latitude"] == pytest.approx(60.01)
    assert suggestion["prev"]["asset_id"] == str(assets[0].asset_id)
    assert narrow.json()["suggestions"] == []


async def test_connected_entities(
    client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    a = Entity(entity_id=uuid4(), entity_type="person")
    b = Entity(entity_id=uuid4(), entity_type="vehicle")
    async with session_factory() as session:
        session.add_all([a, b])
        await session.flush()
        session.add(
            EntityLink(
                link_id=uuid4(),
                from_entity_id=a.entity_id,
                to_entity_id=b.entity_id,
                relation_type="owns",
            )
        )
        await session.commit()

    response = await client.get(f"/entities/{b.entity_id}/connected")

    assert response.status_code == 200
    body = response.json()
    assert set(body["connected_entity_ids"]) == {str(a.entity_id), str(b.entity_id)}
    assert body["links"][0]["outgoing"] is False
    assert body["links"][0]["relation_type"] == "owns"


async def test_home_location_roundtrip(client: AsyncClient) -> None:
    initial = await client.get("/project/home-location")
    assert initial.status_code == 200
    assert initial.json()["home_location"] is None

    updated = await client.put(
        "/project/home-location", json={"home_lat": 59.33, "home_lng": 18.07}
    )
    assert updated.status_code == 200
    assert updated.json()["home_location"] == {"latitude": 59.33, "longitude": 18.07}

    reread = await client.get("/project/home-location")
    assert reread.json()["home_location"] == {"latitude": 59.33, "longitude": 18.07}


async def test_home_location_rejects_half_pair(client: AsyncClient) -> None:
    response = await client.put("/project/home-location", json={"home_lat": 59.33})

    assert response.status_code == 422
    assert "homeLat and homeLng" in response.json()["detail"]
