import os

import pandas as pd
import yaml

from courier_route.cli import _fmt_variant_id, main


def _base(tmp_path):
    cfg = {
        "paths": {"run_root": str(tmp_path / "runs"), "stops_csv": "data/sample_stops.csv"},
        "origin": {"lat": 25.6866, "lon": -100.3161},
    }
    path = tmp_path / "base.yaml"
    path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return str(path)


def test_single_run(tmp_path):
    main(["--base", _base(tmp_path), "--exp-tag", "one"])

    out = tmp_path / "runs" / "one"
    assert os.path.exists(out / "config_resolved.yaml")
    assert os.path.exists(out / "route.csv")
    assert os.path.exists(out / "run.log")


def test_sweep_writes_leaderboard(tmp_path):
    scenario = tmp_path / "scenario.yaml"
    scenario.write_text("batching:\n  mode: chained\n", encoding="utf-8")

    main(
        [
            "--base",
            _base(tmp_path),
            "--scenario",
            str(scenario),
            "--sweep",
            "configs/sweeps/batch_size.yaml",
            "--exp-tag",
            "sweep",
        ]
    )

    exp = tmp_path / "runs" / "sweep"
    lb = pd.read_csv(exp / "leaderboard.csv")
    assert list(lb["variant"]) == ["v_4", "v_6", "v_10", "v_25"]
    assert list(lb["n_batches"]) == [4, 2, 2, 1]
    # batch size does not change the order
    assert lb["optimized_km"].nunique() == 1

    resolved = yaml.safe_load((exp / "v_4" / "config_resolved.yaml").read_text(encoding="utf-8"))
    assert resolved["batching"] == {"mode": "chained", "max_points_per_request": 4}


def test_variant_ids():
    assert _fmt_variant_id(None) == "v_none"
    assert _fmt_variant_id(True) == "v_true"
    assert _fmt_variant_id(0.5) == "v_0.50"
    assert _fmt_variant_id("Fixed Origin") == "v_fixed_origin"
