from __future__ import annotations

import argparse
import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, List

import pandas as pd

from .config import deep_set, load_experiment_spec, load_yaml, merge_dicts, now_tag, save_yaml
from .logging_utils import setup_logger
from .pipeline import run as run_pipeline


LEADERBOARD_KEY_COLS = [
    "variant",
    "param_path",
    "param_value",
    "n_stops",
    "initial_km",
    "optimized_km",
    "saved_km",
    "saved_rate",
    "refine_moves",
    "refine_budget_exhausted",
    "n_batches",
    "runtime_total_sec",
]


def _slug(s: str) -> str:
    s = s.strip().lower()
    s = re.sub(r"[^a-z0-9_\-]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return s or "x"


def _fmt_variant_id(v: Any) -> str:
    if v is None:
        return "v_none"
    if isinstance(v, bool):
        return f"v_{str(v).lower()}"
    if isinstance(v, int):
        return f"v_{v:d}"
    if isinstance(v, float):
        return f"v_{v:.2f}"
    return f"v_{_slug(str(v))}"


def build_config(bases: List[str], scenario: str | None, stops: str | None) -> dict:
    cfg: dict = {}
    for b in bases:
        cfg = merge_dicts(cfg, load_yaml(b))
    if scenario:
        cfg = merge_dicts(cfg, load_yaml(scenario))
    if stops:
        deep_set(cfg, "paths.stops_csv", stops)
    return cfg


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="courier-route", description="Order delivery stops and split them for navigation")
    p.add_argument("--base", action="append", default=None, help="Base YAML (repeatable, later wins)")
    p.add_argument("--scenario", default=None, help="Scenario YAML merged over the base")
    p.add_argument("--stops", default=None, help="Stop table (CSV/XLSX); overrides paths.stops_csv")
    p.add_argument("--sweep", default=None, help="Sweep YAML: exp_name, param_path, values")
    p.add_argument("--exp-tag", default=None)
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)

    cfg0 = build_config(args.base or ["configs/base.yaml"], args.scenario, args.stops)

    run_root = cfg0.get("paths", {}).get("run_root", "runs")
    sweep = load_experiment_spec(args.sweep) if args.sweep else None
    exp_name = sweep.exp_name if sweep else "route"
    exp_tag = args.exp_tag or f"{exp_name}_{now_tag()}"
    exp_dir = os.path.join(run_root, exp_tag)
    os.makedirs(exp_dir, exist_ok=True)

    # handlers on the package logger so engine modules log through them
    logger = setup_logger("courier_route", Path(exp_dir) / "run.log", level=args.log_level.upper())

    if sweep is None:
        save_yaml(cfg0, os.path.join(exp_dir, "config_resolved.yaml"))
        run_pipeline(cfg0, exp_dir)
        logger.info("[DONE] artifacts written to %s", exp_dir)
        return

    rows = []
    for v in sweep.values:
        cfg = deepcopy(cfg0)
        deep_set(cfg, sweep.param_path, v)

        var_id = _fmt_variant_id(v)
        out_dir = os.path.join(exp_dir, var_id)
        os.makedirs(out_dir, exist_ok=True)
        save_yaml(cfg, os.path.join(out_dir, "config_resolved.yaml"))

        logger.info("Running %s=%s", sweep.param_path, v)
        kpis = run_pipeline(cfg, out_dir)
        kpis["variant"] = var_id
        kpis["param_path"] = sweep.param_path
        kpis["param_value"] = "" if v is None else str(v)
        rows.append(kpis)

    lb = pd.DataFrame(rows)
    for c in LEADERBOARD_KEY_COLS:
        if c not in lb.columns:
            lb[c] = None
    lb = lb[LEADERBOARD_KEY_COLS + [c for c in lb.columns if c not in LEADERBOARD_KEY_COLS]]

    lb_path = os.path.join(exp_dir, "leaderboard.csv")
    lb.to_csv(lb_path, index=False, encoding="utf-8-sig")
    logger.info("[DONE] %s", lb_path)


if __name__ == "__main__":
    main()
