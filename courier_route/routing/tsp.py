"""Tour construction and improvement for a single courier.

Contract:
- The origin (depot) is a fixed anchor and is never part of the tour.
- Input `stops` / `tour` are lists of `Stop`; every function returns a new
  list that is a permutation of its input.
- Paths are open: origin -> first stop -> ... -> last stop, no return leg.

Construction is greedy nearest neighbor; improvement is first-improvement
2-opt on a precomputed haversine matrix where node 0 is the origin.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..geo import GeoPoint, Stop, distance_km, distance_matrix_km

logger = logging.getLogger(__name__)

# km; smaller gains are floating-point jitter, not improvements
IMPROVEMENT_EPS_KM = 1e-4


@dataclass(frozen=True)
class TwoOptResult:
    tour: List[Stop]
    moves: int
    budget_exhausted: bool


def build_initial_tour(origin: GeoPoint, stops: Sequence[Stop]) -> List[Stop]:
    """Nearest-neighbor tour starting at `origin`.

    Ties go to the stop that appears first in `stops`, which keeps the
    output reproducible for identical input.
    """
    remaining = list(stops)
    route: List[Stop] = []
    cur = origin

    while remaining:
        best_idx = 0
        best_d = float("inf")
        for idx, stop in enumerate(remaining):
            d = distance_km(cur, stop.point)
            if d < best_d:
                best_d = d
                best_idx = idx
        nxt = remaining.pop(best_idx)
        route.append(nxt)
        cur = nxt.point

    return route


def two_opt(
    origin: GeoPoint,
    tour: Sequence[Stop],
    *,
    max_moves: Optional[int] = None,
    time_limit_sec: Optional[float] = None,
) -> TwoOptResult:
    """Improve `tour` with 2-opt moves until no move gains more than eps.

    Args:
        origin: Fixed start of the path.
        tour: Initial visiting order.
        max_moves: Stop after this many applied improving moves.
        time_limit_sec: Stop after this much wall-clock time.

    Returns:
        TwoOptResult. When a budget runs out, `tour` is the best order found
        so far and `budget_exhausted` is True.
    """
    stops = list(tour)
    if max_moves is not None and max_moves < 0:
        raise ValueError(f"max_moves must be >= 0 (got {max_moves})")
    if time_limit_sec is not None and time_limit_sec < 0:
        raise ValueError(f"time_limit_sec must be >= 0 (got {time_limit_sec})")

    if len(stops) < 3:
        return TwoOptResult(tour=stops, moves=0, budget_exhausted=False)

    dist = distance_matrix_km([origin] + [s.point for s in stops])
    # path[p] is the matrix node at path position p; node 0 (origin) stays first
    path = np.arange(len(stops) + 1)
    m = len(path)

    t0 = time.monotonic()
    moves = 0
    exhausted = False

    def _out_of_time() -> bool:
        return time_limit_sec is not None and time.monotonic() - t0 >= time_limit_sec

    improved = True
    while improved:
        improved = False
        if _out_of_time():
            exhausted = True
            break

        for i in range(0, m - 3):
            a, b = path[i], path[i + 1]
            # candidate k runs over i+2 .. m-2; k == i+1 would reverse one stop
            ks = np.arange(i + 2, m - 1)
            c = path[ks]
            d = path[ks + 1]
            delta = dist[a, c] + dist[b, d] - dist[a, b] - dist[c, d]

            hits = np.flatnonzero(delta < -IMPROVEMENT_EPS_KM)
            if hits.size:
                # the move cap only counts when there is a move left to make
                if max_moves is not None and moves >= max_moves:
                    exhausted = True
                    break
                k = int(ks[hits[0]])
                path[i + 1 : k + 1] = path[i + 1 : k + 1][::-1].copy()
                moves += 1
                improved = True
                break

            if _out_of_time():
                exhausted = True
                break

        if exhausted:
            break

    if exhausted:
        logger.info("2-opt budget exhausted after %d moves; keeping best tour so far", moves)
    else:
        logger.debug("2-opt converged after %d moves", moves)

    return TwoOptResult(
        tour=[stops[int(node) - 1] for node in path[1:]],
        moves=moves,
        budget_exhausted=exhausted,
    )


def refine(
    origin: GeoPoint,
    tour: Sequence[Stop],
    *,
    max_moves: Optional[int] = None,
    time_limit_sec: Optional[float] = None,
) -> List[Stop]:
    return two_opt(origin, tour, max_moves=max_moves, time_limit_sec=time_limit_sec).tour
