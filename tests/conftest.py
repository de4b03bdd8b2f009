"""Shared pytest fixtures for presence engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from presence_engine.config import settings
from presence_engine.models import (
    Annotation,
    AnnotationEntityLink,
    Asset,
    AssetExifMetadata,
    AssetManualMetadata,
    Base,
    Entity,
    EntityAttribute,
    EntityLink,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# SQLite in memory unless TEST_DATABASE_URL points at a scratch PostgreSQL database
TEST_DATABASE_URL = settings.test_database_url


def _use_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINT works on SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine.

    This creates all tables at the start and drops them at the end.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
        _use_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables after tests
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(
    test_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session with transaction rollback.

    Each test gets its own transaction that is rolled back at the end,
    ensuring test isolation without needing to recreate tables.
    """
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        async with session.begin():
            yield session
            # Rollback to ensure test isolation
            await session.rollback()


def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


# Type aliases for factory fixtures
MakeAsset = Callable[..., Asset]
MakeExif = Callable[..., AssetExifMetadata]
MakeManual = Callable[..., AssetManualMetadata]
MakeEntity = Callable[..., Entity]
MakeAnnotation = Callable[..., Annotation]
MakeAnnotationLink = Callable[..., AnnotationEntityLink]
MakeEntityLink = Callable[..., EntityLink]
Persist = Callable[..., Awaitable[None]]


@pytest.fixture
def persist(db_session: AsyncSession) -> Persist:
    """Add and flush objects one by one, in the order given.

    Flushing each object separately keeps parent rows ahead of child rows on
    databases that enforce foreign keys immediately.
    """

    async def _persist(*objects: Any) -> None:
        for obj in objects:
            db_session.add(obj)
            await db_session.flush()

    return _persist


@pytest.fixture
def make_asset() -> MakeAsset:
    """Factory fixture for creating Asset instances."""

    def _make(
        *,
        asset_id: UUID | None = None,
        content_type: str = "image/jpeg",
        uploaded_at: datetime | None = None,
        deleted_at: datetime | None = None,
    ) -> Asset:
        asset_id = asset_id or uuid4()
        return Asset(
            asset_id=asset_id,
            filename=f"{asset_id.hex[:8]}.jpg",
            content_type=content_type,
            uploaded_at=uploaded_at or utc(2024, 6, 1, 12, 0),
            deleted_at=deleted_at,
        )

    return _make


@pytest.fixture
def make_exif() -> MakeExif:
    """Factory fixture for creating AssetExifMetadata instances."""

    def _make(
        asset_id: UUID,
        *,
        capture_timestamp: datetime | None = None,
        camera_make: str | None = None,
        camera_model: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> AssetExifMetadata:
        return AssetExifMetadata(
            asset_id=asset_id,
            capture_timestamp=capture_timestamp,
            camera_make=camera_make,
            camera_model=camera_model,
            latitude=latitude,
            longitude=longitude,
            exif_raw={},
        )

    return _make


@pytest.fixture
def make_manual() -> MakeManual:
    """Factory fixture for creating AssetManualMetadata instances."""

    def _make(asset_id: UUID, **fields: Any) -> AssetManualMetadata:
        return AssetManualMetadata(asset_id=asset_id, **fields)

    return _make


@pytest.fixture
def make_entity() -> MakeEntity:
    """Factory fixture for creating Entity instances."""

    def _make(
        *,
        entity_id: UUID | None = None,
        entity_type: str = "person",
        display_name: str | None = None,
    ) -> Entity:
        return Entity(
            entity_id=entity_id or uuid4(),
            entity_type=entity_type,
            display_name=display_name,
        )

    return _make


@pytest.fixture
def make_attribute() -> Callable[..., EntityAttribute]:
    """Factory fixture for creating EntityAttribute instances."""

    def _make(entity_id: UUID, name: str, value: Any) -> EntityAttribute:
        return EntityAttribute(
            attribute_id=uuid4(),
            entity_id=entity_id,
            attribute_name=name,
            attribute_value=value,
            confidence=1.0,
        )

    return _make


@pytest.fixture
def make_annotation() -> MakeAnnotation:
    """Factory fixture for creating Annotation instances."""

    def _make(asset_id: UUID, *, title: str | None = None) -> Annotation:
        return Annotation(annotation_id=uuid4(), asset_id=asset_id, title=title)

    return _make


@pytest.fixture
def make_annotation_link() -> MakeAnnotationLink:
    """Factory fixture for creating AnnotationEntityLink instances."""

    def _make(
        annotation_id: UUID,
        entity_id: UUID,
        *,
        role: str | None = None,
        confidence: float = 1.0,
    ) -> AnnotationEntityLink:
        return AnnotationEntityLink(
            link_id=uuid4(),
            annotation_id=annotation_id,
            entity_id=entity_id,
            role=role,
            confidence=confidence,
        )

    return _make


@pytest.fixture
def make_entity_link() -> MakeEntityLink:
    """Factory fixture for creating EntityLink instances."""

    def _make(
        from_entity_id: UUID,
        to_entity_id: UUID,
        relation_type: str = "associated-with",
    ) -> EntityLink:
        return EntityLink(
            link_id=uuid4(),
            from_entity_id=from_entity_id,
            to_entity_id=to_entity_id,
            relation_type=relation_type,
            confidence=1.0,
        )

    return _make
