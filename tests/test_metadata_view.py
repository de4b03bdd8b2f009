"""Tests for effective asset metadata and coordinate helpers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models import Asset, AssetExifMetadata, AssetManualMetadata
from presence_engine.services.ignore_list import IgnoreListStore
from presence_engine.services.metadata_view import (
    AssetFacts,
    MetadataView,
    device_identity,
    resolve_effective_info,
)
from presence_engine.utils.geo import GeoPoint, coerce_coordinate, mean_point, point_or_none

Persist = Callable[..., Awaitable[None]]

UPLOADED = datetime(2024, 1, 1, tzinfo=UTC)
EXIF_TIME = datetime(2023, 12, 24, 18, 0, tzinfo=UTC)
MANUAL_TIME = datetime(2023, 12, 24, 17, 0, tzinfo=UTC)


class TestResolveEffectiveInfo:
    """Tests for override precedence."""

    def test_manual_overrides_exif(self) -> None:
        info = resolve_effective_info(
            AssetFacts(
                asset_id=uuid4(),
                uploaded_at=UPLOADED,
                exif_capture_timestamp=EXIF_TIME,
                exif_latitude=1.0,
                exif_longitude=1.0,
                manual_capture_timestamp=MANUAL_TIME,
                manual_latitude=2.0,
                manual_longitude=2.0,
            )
        )

        assert info.observed_at == MANUAL_TIME
        assert info.capture_time == MANUAL_TIME
        assert info.location == GeoPoint(2.0, 2.0)

    def test_half_manual_pair_falls_back_to_exif(self) -> None:
        info = resolve_effective_info(
            AssetFacts(
                asset_id=uuid4(),
                exif_latitude=1.0,
                exif_longitude=1.0,
                manual_latitude=2.0,
            )
        )

        assert info.location == GeoPoint(1.0, 1.0)

    def test_upload_time_only_for_observation(self) -> None:
        info = resolve_effective_info(AssetFacts(asset_id=uuid4(), uploaded_at=UPLOADED))

        assert info.observed_at == UPLOADED
        assert info.capture_time is None
        assert info.location is None

    def test_naive_timestamps_are_utc(self) -> None:
        info = resolve_effective_info(
            AssetFacts(asset_id=uuid4(), exif_capture_timestamp=datetime(2023, 12, 24, 18, 0))
        )

        assert info.capture_time == EXIF_TIME

    def test_presence_location_prefers_subject(self) -> None:
        info = resolve_effective_info(
            AssetFacts(
                asset_id=uuid4(),
                exif_latitude=1.0,
                exif_longitude=1.0,
                subject_latitude=3.0,
                subject_longitude=3.0,
            )
        )

        assert info.location == GeoPoint(1.0, 1.0)
        assert info.presence_location == GeoPoint(3.0, 3.0)

    @pytest.mark.parametrize(
        ("make", "model", "expected"),
        [
            ("Acme", "X100", "acme|x100"),
            ("  ACME", "x100 ", "acme|x100"),
            ("Acme", None, None),
            ("", "X100", None),
            (None, None, None),
        ],
    )
    def test_device_identity(
        self, make: str | None, model: str | None, expected: str | None
    ) -> None:
        assert device_identity(make, model) == expected


class TestMetadataView:
    """Tests for MetadataView against stored rows."""

    async def test_effective_info_with_ignore_list(
        self,
        db_session: AsyncSession,
        persist: Persist,
        make_asset: Callable[..., Asset],
        make_exif: Callable[..., AssetExifMetadata],
        make_manual: Callable[..., AssetManualMetadata],
    ) -> None:
        asset = make_asset(uploaded_at=UPLOADED)
        await persist(
            asset,
            make_exif(asset.asset_id, capture_timestamp=EXIF_TIME, camera_make="Acme",
                      camera_model="X100"),
            make_manual(asset.asset_id, latitude=5.0, longitude=6.0),
        )
        ignored = uuid4()
        await IgnoreListStore(db_session).add(asset.asset_id, [ignored])

        info = await MetadataView(db_session).get_effective_asset_info(asset.asset_id)

        assert info is not None
        assert info.observed_at == EXIF_TIME
        assert info.location == GeoPoint(5.0, 6.0)
        assert info.device_key == "acme|x100"
        assert info.ignored_entity_ids == frozenset({ignored})

    async def test_missing_and_deleted_assets(
        self,
        db_session: AsyncSession,
        persist: Persist,
        make_asset: Callable[..., Asset],
    ) -> None:
        deleted = make_asset(deleted_at=UPLOADED)
        await persist(deleted)
        view = MetadataView(db_session)

        assert await view.get_effective_asset_info(uuid4()) is None
        assert await view.get_effective_asset_info(deleted.asset_id) is None


class TestGeoHelpers:
    def test_point_validation(self) -> None:
        with pytest.raises(ValueError):
            GeoPoint(91.0, 0.0)
        with pytest.raises(ValueError):
            GeoPoint(0.0, float("inf"))

    def test_point_or_none(self) -> None:
        assert point_or_none(1.0, None) is None
        assert point_or_none(200.0, 0.0) is None
        assert point_or_none(0.0, 0.0) == GeoPoint(0.0, 0.0)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1, 1.0),
            ("-3.5", -3.5),
            (" 2 ", 2.0),
            ("1e3", None),
            (False, None),
            (float("nan"), None),
        ],
    )
    def test_coerce_coordinate(self, value: object, expected: float | None) -> None:
        assert coerce_coordinate(value) == expected

    def test_mean_point(self) -> None:
        assert mean_point([]) is None
        assert mean_point([GeoPoint(0.0, 0.0), GeoPoint(2.0, 2.0)]) == GeoPoint(1.0, 1.0)
