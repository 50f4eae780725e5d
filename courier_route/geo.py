"""Geographic value types and the great-circle metric.

Contract:
- `GeoPoint` and `Stop` are immutable and validated on construction.
- `distance_km` is the haversine distance on a sphere of radius 6371 km.
- `distance_matrix_km` uses the same formula for every pair; by convention
  index 0 of the matrix is the origin.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0


class InvalidCoordinate(ValueError):
    """Raised when a latitude/longitude is outside its valid range."""


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        lat = float(self.lat)
        lon = float(self.lon)
        if not (math.isfinite(lat) and -90.0 <= lat <= 90.0):
            raise InvalidCoordinate(f"latitude must be in [-90, 90] (got {self.lat})")
        if not (math.isfinite(lon) and -180.0 <= lon <= 180.0):
            raise InvalidCoordinate(f"longitude must be in [-180, 180] (got {self.lon})")
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lon", lon)

    def as_param(self) -> str:
        """`lat,lon` string as navigation providers expect it."""
        return f"{self.lat},{self.lon}"


@dataclass(frozen=True, eq=False)
class Stop:
    """A delivery stop.

    Identity is the `stop_id`: two stops at the same coordinate stay distinct.
    `name`, `address` and `meta` belong to the caller and are only carried.
    """

    stop_id: str
    point: GeoPoint
    name: str = ""
    address: str = ""
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stop):
            return NotImplemented
        return self.stop_id == other.stop_id

    def __hash__(self) -> int:
        return hash(self.stop_id)

    @property
    def lat(self) -> float:
        return self.point.lat

    @property
    def lon(self) -> float:
        return self.point.lon


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(dlon / 2.0) ** 2
    )
    # rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def distance_matrix_km(points: Sequence[GeoPoint]) -> np.ndarray:
    """All-pairs haversine distances as an (n, n) array."""
    n = len(points)
    if n == 0:
        return np.zeros((0, 0), dtype=float)

    lat = np.array([p.lat for p in points], dtype=float)
    lon = np.array([p.lon for p in points], dtype=float)

    dlat = np.radians(lat[None, :] - lat[:, None])
    dlon = np.radians(lon[None, :] - lon[:, None])
    cos_lat = np.cos(np.radians(lat))

    h = np.sin(dlat / 2.0) ** 2 + cos_lat[:, None] * cos_lat[None, :] * np.sin(dlon / 2.0) ** 2
    h = np.clip(h, 0.0, 1.0)
    mat = 2.0 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(h))
    np.fill_diagonal(mat, 0.0)
    return mat
