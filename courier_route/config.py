"""Configuration utilities.

- YAML in, fail fast on missing files or malformed sections.
- Layering is explicit: base files, then scenario, then dotted overrides.
- Typed views (`RouteConfig`) are built once per run and never mutated.
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .geo import GeoPoint, InvalidCoordinate
from .routing.batching import BATCH_MODES

UNRESOLVED_POLICIES = ("exclude", "abort")


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


def load_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        obj = yaml.safe_load(f)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ConfigError(f"YAML root must be a mapping. Got: {type(obj).__name__} @ {path}")
    return obj


def save_yaml(obj: Dict[str, Any], path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(obj, f, allow_unicode=True, sort_keys=False)


def save_json(obj: Any, path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def now_tag() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive merge; `override` wins, nested mappings are merged key by key."""
    out = deepcopy(base)

    def rec(a: Dict[str, Any], b: Dict[str, Any]) -> None:
        for k, v in b.items():
            if isinstance(v, dict) and isinstance(a.get(k), dict):
                rec(a[k], v)
            else:
                a[k] = deepcopy(v)

    rec(out, override)
    return out


def deep_set(cfg: Dict[str, Any], dotted_path: str, value: Any) -> None:
    keys = dotted_path.split(".")
    cur: Dict[str, Any] = cfg
    for k in keys[:-1]:
        nxt = cur.get(k)
        if nxt is None:
            nxt = {}
            cur[k] = nxt
        if not isinstance(nxt, dict):
            raise ConfigError(
                f"Cannot deep-set '{dotted_path}': '{k}' is not a mapping (got {type(nxt).__name__})"
            )
        cur = nxt
    cur[keys[-1]] = value


def coerce_scalar(v: Any) -> Any:
    """Best-effort typing for values written as strings in YAML or on the CLI.

    "none"/"null"/"~" -> None, "true"/"false" -> bool, numerals -> int/float,
    anything else stays a string.
    """
    if v is None or isinstance(v, (int, float, bool)):
        return v
    if not isinstance(v, str):
        return v

    s = v.strip()
    lo = s.lower()
    if lo in ("none", "null", "~"):
        return None
    if lo in ("true", "false"):
        return lo == "true"
    try:
        if "." in s or "e" in lo:
            return float(s)
        return int(s)
    except ValueError:
        return s


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = cfg.get(name, {})
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ConfigError(f"'{name}' section must be a mapping (got {type(sec).__name__})")
    return sec


def _optional_number(sec: Dict[str, Any], key: str, cast) -> Optional[Any]:
    raw = coerce_scalar(sec.get(key))
    if raw is None:
        return None
    try:
        val = cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {raw!r}") from e
    if val < 0:
        raise ConfigError(f"{key} must be >= 0 (got {val})")
    return val


@dataclass(frozen=True)
class RouteConfig:
    origin: GeoPoint
    origin_name: str
    stops_path: str
    on_unresolved: str
    skip_statuses: Tuple[str, ...]
    improve_2opt: bool
    max_moves: Optional[int]
    time_limit_sec: Optional[float]
    max_points_per_request: int
    batch_mode: str
    write_route_json: bool

    @staticmethod
    def from_cfg(cfg: Dict[str, Any]) -> "RouteConfig":
        paths = _section(cfg, "paths")
        origin_cfg = _section(cfg, "origin")
        stops_cfg = _section(cfg, "stops")
        routing_cfg = _section(cfg, "routing")
        batching_cfg = _section(cfg, "batching")
        out_cfg = _section(cfg, "outputs")

        try:
            origin = GeoPoint(lat=float(origin_cfg["lat"]), lon=float(origin_cfg["lon"]))
        except KeyError as e:
            raise ConfigError(f"Missing origin config key: {e}") from e
        except InvalidCoordinate:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid origin: {e}") from e

        stops_path = paths.get("stops_csv")
        if not stops_path:
            raise ConfigError("Missing 'paths.stops_csv' in config")

        on_unresolved = str(stops_cfg.get("on_unresolved", "exclude")).lower()
        if on_unresolved not in UNRESOLVED_POLICIES:
            raise ConfigError(
                f"stops.on_unresolved must be one of {UNRESOLVED_POLICIES} (got {on_unresolved})"
            )

        skip = stops_cfg.get("skip_statuses", ["delivered"])
        if skip is None:
            skip = []
        if not isinstance(skip, list):
            raise ConfigError(f"stops.skip_statuses must be a list (got {type(skip).__name__})")

        max_pts = coerce_scalar(batching_cfg.get("max_points_per_request", 10))
        if not isinstance(max_pts, int) or isinstance(max_pts, bool) or max_pts < 2:
            raise ConfigError(f"batching.max_points_per_request must be an int >= 2 (got {max_pts!r})")

        batch_mode = str(batching_cfg.get("mode", "fixed_origin"))
        if batch_mode not in BATCH_MODES:
            raise ConfigError(f"batching.mode must be one of {BATCH_MODES} (got {batch_mode})")

        return RouteConfig(
            origin=origin,
            origin_name=str(origin_cfg.get("name") or "origin"),
            stops_path=str(stops_path),
            on_unresolved=on_unresolved,
            skip_statuses=tuple(str(s).strip().lower() for s in skip),
            improve_2opt=bool(coerce_scalar(routing_cfg.get("improve_2opt", True))),
            max_moves=_optional_number(routing_cfg, "max_moves", int),
            time_limit_sec=_optional_number(routing_cfg, "time_limit_sec", float),
            max_points_per_request=max_pts,
            batch_mode=batch_mode,
            write_route_json=bool(coerce_scalar(out_cfg.get("write_route_json", True))),
        )


@dataclass(frozen=True)
class ExperimentSpec:
    exp_name: str
    param_path: str
    values: List[Any]


def load_experiment_spec(path: str) -> ExperimentSpec:
    data = load_yaml(path)
    exp_name = str(data.get("exp_name") or "exp")
    param_path = str(data.get("param_path") or "")
    values = data.get("values")

    if not param_path:
        raise ConfigError(f"Missing 'param_path' in sweep config: {path}")
    if not isinstance(values, list) or not values:
        raise ConfigError(f"Missing or invalid 'values' in sweep config: {path}")

    return ExperimentSpec(
        exp_name=exp_name,
        param_path=param_path,
        values=[coerce_scalar(v) for v in values],
    )
