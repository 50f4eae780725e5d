"""Split an ordered tour into requests for a navigation provider.

Every provider request carries its start point plus the stops, so a batch
holds at most `max_points_per_request - 1` stops. Batches are contiguous and
keep tour order; concatenated they give back the tour.

Modes:
- "fixed_origin": each batch starts at the depot (the courier app's default).
- "chained": each batch after the first starts at the previous batch's
  last stop, so the batches read as one continuous journey.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..geo import GeoPoint, Stop

BATCH_MODES = ("fixed_origin", "chained")


@dataclass(frozen=True)
class Batch:
    index: int
    origin: GeoPoint
    stops: Tuple[Stop, ...]

    @property
    def destination(self) -> Stop:
        return self.stops[-1]

    @property
    def waypoints(self) -> Tuple[Stop, ...]:
        return self.stops[:-1]

    @property
    def points(self) -> List[GeoPoint]:
        """origin, waypoints..., destination."""
        return [self.origin] + [s.point for s in self.stops]


def batch(
    origin: GeoPoint,
    tour: Sequence[Stop],
    max_points_per_request: int,
    *,
    mode: str = "fixed_origin",
) -> List[Batch]:
    if isinstance(max_points_per_request, bool) or not isinstance(max_points_per_request, int):
        raise ValueError(f"max_points_per_request must be an int (got {max_points_per_request!r})")
    if max_points_per_request < 2:
        raise ValueError(f"max_points_per_request must be >= 2 (got {max_points_per_request})")
    if mode not in BATCH_MODES:
        raise ValueError(f"Unknown batch mode: {mode} (expected one of {BATCH_MODES})")

    size = max_points_per_request - 1
    stops = list(tour)

    batches: List[Batch] = []
    start = origin
    for i in range(0, len(stops), size):
        chunk = tuple(stops[i : i + size])
        batches.append(Batch(index=len(batches), origin=start, stops=chunk))
        if mode == "chained":
            start = chunk[-1].point

    return batches
