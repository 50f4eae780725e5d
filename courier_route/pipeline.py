"""Route planning pipeline.

Flow:
1) Load the stop table and drop stops that need no visit
2) Nearest-neighbor tour from the origin
3) 2-opt refinement (optionally under a move/time budget)
4) Split into provider-sized batches
5) Emit artifacts:
   - route.csv     (one row per stop, in visiting order)
   - batches.csv   (one row per provider request)
   - metrics.csv   (one-row KPI table)
   - route.json    (optional, ordered stops with their metadata)

Given the same config and stop table the output is identical.
"""

from __future__ import annotations

import logging
import os
import time
from typing import List, Sequence

import pandas as pd

from .config import RouteConfig, save_json
from .engine import optimize_tour
from .geo import GeoPoint, Stop
from .metrics import compute_kpis, leg_distances_km
from .routing.batching import Batch, batch
from .stops import load_stops

logger = logging.getLogger(__name__)


ROUTE_COLUMNS = ["seq", "stop_id", "name", "address", "lat", "lon", "leg_km", "cumulative_km", "batch"]
BATCH_COLUMNS = ["batch", "n_stops", "origin", "waypoints", "destination", "stop_ids"]


def _jsonable(v):
    # numpy scalars from pandas rows
    if hasattr(v, "item"):
        v = v.item()
    if isinstance(v, (str, int, float, bool)) or v is None:
        return v
    return str(v)


def _route_rows(origin: GeoPoint, tour: Sequence[Stop], batches: Sequence[Batch]) -> List[dict]:
    batch_of = {s.stop_id: b.index for b in batches for s in b.stops}
    rows: List[dict] = []
    cum = 0.0
    for seq, (stop, leg) in enumerate(zip(tour, leg_distances_km(origin, tour)), start=1):
        cum += leg
        rows.append(
            {
                "seq": seq,
                "stop_id": stop.stop_id,
                "name": stop.name,
                "address": stop.address,
                "lat": stop.lat,
                "lon": stop.lon,
                "leg_km": leg,
                "cumulative_km": cum,
                "batch": batch_of[stop.stop_id],
            }
        )
    return rows


def _batch_rows(batches: Sequence[Batch]) -> List[dict]:
    return [
        {
            "batch": b.index,
            "n_stops": len(b.stops),
            "origin": b.origin.as_param(),
            "waypoints": "|".join(s.point.as_param() for s in b.waypoints),
            "destination": b.destination.point.as_param(),
            "stop_ids": ",".join(s.stop_id for s in b.stops),
        }
        for b in batches
    ]


def _route_json(rc: RouteConfig, tour: Sequence[Stop]) -> dict:
    return {
        "origin": {"name": rc.origin_name, "lat": rc.origin.lat, "lon": rc.origin.lon},
        "stops": [
            {
                "seq": i,
                "id": s.stop_id,
                "name": s.name,
                "address": s.address,
                "lat": s.lat,
                "lon": s.lon,
                "meta": {k: _jsonable(v) for k, v in s.meta.items()},
            }
            for i, s in enumerate(tour, start=1)
        ],
    }


def _save_outputs(
    out_dir: str,
    route_df: pd.DataFrame,
    batches_df: pd.DataFrame,
    kpis: dict,
    *,
    route_json: dict | None,
) -> None:
    os.makedirs(out_dir, exist_ok=True)
    route_df.to_csv(os.path.join(out_dir, "route.csv"), index=False, encoding="utf-8-sig")
    batches_df.to_csv(os.path.join(out_dir, "batches.csv"), index=False, encoding="utf-8-sig")
    pd.DataFrame([kpis]).to_csv(os.path.join(out_dir, "metrics.csv"), index=False, encoding="utf-8-sig")

    if route_json is not None:
        save_json(route_json, os.path.join(out_dir, "route.json"))


def run(cfg: dict, out_dir: str) -> dict:
    """Plan one route and write artifacts. Returns the KPI dict."""
    t0 = time.time()
    os.makedirs(out_dir, exist_ok=True)

    rc = RouteConfig.from_cfg(cfg)
    table = load_stops(rc.stops_path, on_unresolved=rc.on_unresolved, skip_statuses=rc.skip_statuses)
    logger.info("Loaded %d stop(s) from %s", len(table.stops), rc.stops_path)

    initial, result = optimize_tour(
        rc.origin,
        table.stops,
        improve_2opt=rc.improve_2opt,
        max_moves=rc.max_moves,
        time_limit_sec=rc.time_limit_sec,
    )
    tour = result.tour
    batches = batch(rc.origin, tour, rc.max_points_per_request, mode=rc.batch_mode)

    kpis = compute_kpis(
        rc.origin,
        initial,
        tour,
        refine_moves=result.moves,
        refine_budget_exhausted=result.budget_exhausted,
        n_batches=len(batches),
    )
    kpis["n_excluded"] = len(table.excluded_ids)
    kpis["n_skipped"] = len(table.skipped_ids)
    kpis["runtime_total_sec"] = float(time.time() - t0)

    logger.info(
        "Route: %d stops, %.2f km -> %.2f km (%d 2-opt moves), %d batch(es)",
        kpis["n_stops"],
        kpis["initial_km"],
        kpis["optimized_km"],
        kpis["refine_moves"],
        kpis["n_batches"],
    )

    route_df = pd.DataFrame(_route_rows(rc.origin, tour, batches), columns=ROUTE_COLUMNS)
    batches_df = pd.DataFrame(_batch_rows(batches), columns=BATCH_COLUMNS)
    _save_outputs(
        out_dir,
        route_df,
        batches_df,
        kpis,
        route_json=_route_json(rc, tour) if rc.write_route_json else None,
    )
    return kpis
