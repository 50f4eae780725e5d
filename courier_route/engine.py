"""Public entry points of the route engine.

Callers resolve addresses to coordinates beforehand and hand in `Stop`
values; the engine does no I/O and keeps no state between calls.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .geo import GeoPoint, Stop
from .metrics import estimate_distance_km
from .routing.batching import Batch, batch
from .routing.tsp import TwoOptResult, build_initial_tour, two_opt


class RouteInputError(ValueError):
    """Raised when the caller hands in an inconsistent stop set."""


class MissingOriginError(RouteInputError):
    pass


class DuplicateStopError(RouteInputError):
    pass


def _validate(origin: Optional[GeoPoint], stops: Sequence[Stop]) -> None:
    if stops and origin is None:
        raise MissingOriginError(f"origin is required to route {len(stops)} stop(s)")

    seen = set()
    dups = []
    for s in stops:
        if s.stop_id in seen:
            dups.append(s.stop_id)
        seen.add(s.stop_id)
    if dups:
        raise DuplicateStopError(f"stop ids must be unique; duplicated: {sorted(set(dups))}")


def optimize_tour(
    origin: Optional[GeoPoint],
    stops: Sequence[Stop],
    *,
    improve_2opt: bool = True,
    max_moves: Optional[int] = None,
    time_limit_sec: Optional[float] = None,
) -> Tuple[List[Stop], TwoOptResult]:
    """Nearest-neighbor construction followed by 2-opt.

    Returns the initial tour alongside the refinement outcome so callers can
    report how much 2-opt gained.
    """
    _validate(origin, stops)
    if not stops:
        return [], TwoOptResult(tour=[], moves=0, budget_exhausted=False)

    initial = build_initial_tour(origin, stops)
    if not improve_2opt:
        return initial, TwoOptResult(tour=list(initial), moves=0, budget_exhausted=False)

    result = two_opt(origin, initial, max_moves=max_moves, time_limit_sec=time_limit_sec)
    return initial, result


def compute_optimized_tour(
    origin: Optional[GeoPoint],
    stops: Sequence[Stop],
    *,
    max_moves: Optional[int] = None,
    time_limit_sec: Optional[float] = None,
) -> List[Stop]:
    _, result = optimize_tour(origin, stops, max_moves=max_moves, time_limit_sec=time_limit_sec)
    return result.tour


def estimate_route_distance_km(origin: Optional[GeoPoint], ordered_stops: Sequence[Stop]) -> float:
    _validate(origin, ordered_stops)
    if not ordered_stops:
        return 0.0
    return estimate_distance_km(origin, ordered_stops)


def batch_for_provider(
    origin: Optional[GeoPoint],
    ordered_stops: Sequence[Stop],
    max_points_per_request: int,
    *,
    mode: str = "fixed_origin",
) -> List[Batch]:
    _validate(origin, ordered_stops)
    return batch(origin, ordered_stops, max_points_per_request, mode=mode)
