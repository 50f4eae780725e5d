"""Route length estimation and KPI computation.

Contract:
- Lengths are one-way: origin -> first stop -> ... -> last stop, no return leg.
- KPIs are pure/deterministic given the tours, so runs can be compared.
"""

from __future__ import annotations

from typing import List, Sequence

from .geo import GeoPoint, Stop, distance_km


def leg_distances_km(origin: GeoPoint, tour: Sequence[Stop]) -> List[float]:
    """Length of the leg arriving at each stop, in tour order."""
    legs: List[float] = []
    prev = origin
    for stop in tour:
        legs.append(distance_km(prev, stop.point))
        prev = stop.point
    return legs


def estimate_distance_km(origin: GeoPoint, tour: Sequence[Stop]) -> float:
    return float(sum(leg_distances_km(origin, tour)))


def compute_kpis(
    origin: GeoPoint,
    initial_tour: Sequence[Stop],
    optimized_tour: Sequence[Stop],
    *,
    refine_moves: int = 0,
    refine_budget_exhausted: bool = False,
    n_batches: int = 0,
) -> dict:
    """Summarize one optimization.

    `saved_rate` is a fraction (0..1) of the initial length.
    """
    initial_km = estimate_distance_km(origin, initial_tour)
    optimized_km = estimate_distance_km(origin, optimized_tour)
    saved_km = initial_km - optimized_km

    return {
        "n_stops": len(optimized_tour),
        "initial_km": initial_km,
        "optimized_km": optimized_km,
        "saved_km": saved_km,
        "saved_rate": float(saved_km / initial_km) if initial_km > 0 else 0.0,
        "refine_moves": int(refine_moves),
        "refine_budget_exhausted": bool(refine_budget_exhausted),
        "n_batches": int(n_batches),
    }
