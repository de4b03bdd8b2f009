"""Three-state patch values for manual metadata overrides.

A field in a patch is either left alone, cleared, or set to a new value.
These are distinct variants rather than sentinel values so that "clear" can
never be confused with "not provided".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from presence_engine.utils.geo import GeoPoint

T = TypeVar("T")


@dataclass(frozen=True)
class Keep:
    """Leave the stored value unchanged."""


@dataclass(frozen=True)
class Clear:
    """Remove the stored value."""


@dataclass(frozen=True)
class SetTo(Generic[T]):
    """Replace the stored value."""

    value: T


FieldPatch = Keep | Clear | SetTo[T]

KEEP = Keep()
CLEAR = Clear()


def apply_patch(current: T | None, patch: FieldPatch[T]) -> T | None:
    """Return the value a field holds after ``patch`` is applied."""
    if isinstance(patch, SetTo):
        return patch.value
    if isinstance(patch, Clear):
        return None
    return current


def coordinate_patch(
    latitude: FieldPatch[float],
    longitude: FieldPatch[float],
    *,
    label: str = "latitude and longitude",
) -> FieldPatch[GeoPoint]:
    """Combine per-axis patches into one point patch.

    Both halves must agree: both kept, both cleared, or both set.

    Raises:
        ValueError: If only one half is set, or the halves disagree.
    """
    if isinstance(latitude, SetTo) and isinstance(longitude, SetTo):
        return SetTo(GeoPoint(float(latitude.value), float(longitude.value)))
    if isinstance(latitude, Clear) and isinstance(longitude, Clear):
        return CLEAR
    if isinstance(latitude, Keep) and isinstance(longitude, Keep):
        return KEEP
    raise ValueError(f"Both {label} must be provided together")


@dataclass(frozen=True)
class ManualMetadataPatch:
    """Changes to an asset's manual metadata override. Every field defaults to keep."""

    display_name: FieldPatch[str] = KEEP
    capture_timestamp: FieldPatch[datetime] = KEEP
    altitude: FieldPatch[float] = KEEP
    location: FieldPatch[GeoPoint] = KEEP
    subject_location: FieldPatch[GeoPoint] = KEEP

    @classmethod
    def from_fields(
        cls,
        *,
        display_name: FieldPatch[str] = KEEP,
        capture_timestamp: FieldPatch[datetime] = KEEP,
        altitude: FieldPatch[float] = KEEP,
        latitude: FieldPatch[float] = KEEP,
        longitude: FieldPatch[float] = KEEP,
        subject_latitude: FieldPatch[float] = KEEP,
        subject_longitude: FieldPatch[float] = KEEP,
    ) -> ManualMetadataPatch:
        """Build a patch from per-axis coordinate patches, validating the pairs."""
        return cls(
            display_name=display_name,
            capture_timestamp=capture_timestamp,
            altitude=altitude,
            location=coordinate_patch(latitude, longitude),
            subject_location=coordinate_patch(
                subject_latitude, subject_longitude, label="subject latitude and longitude"
            ),
        )

    @property
    def is_empty(self) -> bool:
        return all(
            isinstance(p, Keep)
            for p in (
                self.display_name,
                self.capture_timestamp,
                self.altitude,
                self.location,
                self.subject_location,
            )
        )
