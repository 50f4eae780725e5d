"""Stop table loading.

Responsibilities
- Read a table of already-geocoded stops (CSV, or Excel via openpyxl).
- Drop stops that no longer need a visit (e.g. status "delivered").
- Apply the caller's policy for stops without coordinates.

Notes
- Geocoding happens upstream; a row with an empty lat/lon is "unresolved".
- Coordinates that are present but out of range raise `InvalidCoordinate`;
  they are never clamped or silently dropped.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import pandas as pd

from .config import ConfigError
from .geo import GeoPoint, Stop

logger = logging.getLogger(__name__)

REQUIRED_STOP_COLUMNS = ["id", "lat", "lon"]
CARRIED_COLUMNS = ["name", "address", "status"]


class StopTableError(ConfigError):
    """Raised when a stop table cannot be used."""


class UnresolvedStopError(ValueError):
    """Raised under the "abort" policy when a stop has no coordinates."""


@dataclass(frozen=True)
class StopTable:
    stops: List[Stop]
    excluded_ids: List[str]
    skipped_ids: List[str]


def read_stop_table(path: str) -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Stop table not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in (".xlsx", ".xls"):
        df = pd.read_excel(path, dtype={"id": str})
    elif ext == ".csv":
        df = pd.read_csv(path, dtype={"id": str}, encoding="utf-8-sig")
    else:
        raise StopTableError(f"Unsupported stop table format: {ext} @ {path}")

    missing = [c for c in REQUIRED_STOP_COLUMNS if c not in df.columns]
    if missing:
        raise StopTableError(
            f"stop table missing required columns: {missing}. "
            f"Available columns: {list(df.columns)}"
        )
    return df


def _text(v) -> str:
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return ""
    return str(v).strip()


def stops_from_frame(
    df: pd.DataFrame,
    *,
    on_unresolved: str = "exclude",
    skip_statuses: Iterable[str] = ("delivered",),
) -> StopTable:
    """Turn table rows into `Stop` values.

    Args:
        df: Output of read_stop_table().
        on_unresolved: "exclude" drops rows without coordinates (logged),
            "abort" raises UnresolvedStopError listing them.
        skip_statuses: Rows whose status matches (case-insensitive) are left out.

    Returns:
        StopTable with the stops in table order and the ids that were left out.
    """
    if on_unresolved not in ("exclude", "abort"):
        raise ConfigError(f"Invalid unresolved policy: {on_unresolved}")
    skip = {s.strip().lower() for s in skip_statuses}

    stops: List[Stop] = []
    excluded: List[str] = []
    skipped: List[str] = []

    for pos, row in df.reset_index(drop=True).iterrows():
        stop_id = _text(row.get("id")) or f"row{pos}"

        status = _text(row.get("status"))
        if status and status.lower() in skip:
            skipped.append(stop_id)
            continue

        lat, lon = row.get("lat"), row.get("lon")
        if pd.isna(lat) or pd.isna(lon):
            excluded.append(stop_id)
            continue

        meta = {
            str(k): v
            for k, v in row.items()
            if k not in REQUIRED_STOP_COLUMNS and k not in CARRIED_COLUMNS and not pd.isna(v)
        }
        if status:
            meta["status"] = status

        stops.append(
            Stop(
                stop_id=stop_id,
                point=GeoPoint(lat=float(lat), lon=float(lon)),
                name=_text(row.get("name")),
                address=_text(row.get("address")),
                meta=meta,
            )
        )

    if excluded:
        if on_unresolved == "abort":
            raise UnresolvedStopError(f"stops without coordinates: {excluded}")
        logger.warning("Excluding %d unresolved stop(s): %s", len(excluded), excluded)
    if skipped:
        logger.info("Skipping %d stop(s) by status", len(skipped))

    return StopTable(stops=stops, excluded_ids=excluded, skipped_ids=skipped)


def load_stops(
    path: str,
    *,
    on_unresolved: str = "exclude",
    skip_statuses: Sequence[str] = ("delivered",),
) -> StopTable:
    return stops_from_frame(
        read_stop_table(path),
        on_unresolved=on_unresolved,
        skip_statuses=skip_statuses,
    )
