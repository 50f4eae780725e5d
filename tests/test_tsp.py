from types import SimpleNamespace

import numpy as np
import pytest

from courier_route.geo import GeoPoint, Stop
from courier_route.metrics import estimate_distance_km
from courier_route.routing import tsp
from courier_route.routing.tsp import build_initial_tour, refine, two_opt

ORIGIN = GeoPoint(0.0, 0.0)


def _stops(coords):
    return [Stop(f"s{i}", GeoPoint(lat, lon)) for i, (lat, lon) in enumerate(coords)]


def _ids(tour):
    return [s.stop_id for s in tour]


def _random_stops(seed, n):
    rng = np.random.default_rng(seed)
    lats = rng.uniform(25.55, 25.80, size=n)
    lons = rng.uniform(-100.45, -100.20, size=n)
    return [Stop(f"r{i}", GeoPoint(float(a), float(b))) for i, (a, b) in enumerate(zip(lats, lons))]


def test_nearest_neighbor_degenerate_inputs():
    assert build_initial_tour(ORIGIN, []) == []
    one = _stops([(1, 1)])
    assert _ids(build_initial_tour(ORIGIN, one)) == ["s0"]


def test_nearest_neighbor_tie_goes_to_earliest_stop():
    # (0,1) and (1,0) are equally far from the origin
    stops = _stops([(0, 1), (0, 2), (1, 0)])
    tour = build_initial_tour(ORIGIN, stops)
    assert _ids(tour)[0] == "s0"
    assert _ids(tour) == ["s0", "s1", "s2"]

    flipped = [stops[2], stops[1], stops[0]]
    assert _ids(build_initial_tour(ORIGIN, flipped))[0] == "s2"


def test_nearest_neighbor_keeps_duplicate_coordinates():
    stops = _stops([(0, 1), (0, 1), (0, 1)])
    tour = build_initial_tour(ORIGIN, stops)
    assert _ids(tour) == ["s0", "s1", "s2"]


def test_nearest_neighbor_does_not_mutate_input():
    stops = _stops([(0, 3), (0, 1), (0, 2)])
    before = _ids(stops)
    tour = build_initial_tour(ORIGIN, stops)
    assert _ids(stops) == before
    assert _ids(tour) == ["s1", "s2", "s0"]


def test_refine_uncrosses_path():
    # origin -> (0,2) -> (0,1) -> (0,3) doubles back; straight order is shorter
    tour = _stops([(0, 2), (0, 1), (0, 3)])
    out = refine(ORIGIN, tour)
    assert _ids(out) == ["s1", "s0", "s2"]
    assert estimate_distance_km(ORIGIN, out) < estimate_distance_km(ORIGIN, tour)


def test_refine_short_tours_unchanged():
    for coords in ([], [(0, 1)], [(0, 2), (0, 1)]):
        tour = _stops(coords)
        res = two_opt(ORIGIN, tour)
        assert _ids(res.tour) == _ids(tour)
        assert res.moves == 0
        assert res.tour is not tour


@pytest.mark.parametrize("seed", range(8))
def test_refine_is_permutation_and_never_worse(seed):
    stops = _random_stops(seed, 25)
    origin = GeoPoint(25.6866, -100.3161)
    initial = build_initial_tour(origin, stops)
    res = two_opt(origin, initial)

    assert sorted(_ids(res.tour)) == sorted(_ids(stops))
    assert len(res.tour) == len(stops)
    assert estimate_distance_km(origin, res.tour) <= estimate_distance_km(origin, initial)
    assert not res.budget_exhausted


def test_refine_reaches_local_optimum():
    stops = _random_stops(42, 20)
    origin = GeoPoint(25.6866, -100.3161)
    once = refine(origin, build_initial_tour(origin, stops))
    again = two_opt(origin, once)
    assert again.moves == 0
    assert _ids(again.tour) == _ids(once)


def test_zero_move_budget_returns_input_order():
    tour = _stops([(0, 2), (0, 1), (0, 3)])
    res = two_opt(ORIGIN, tour, max_moves=0)
    assert _ids(res.tour) == _ids(tour)
    assert res.moves == 0
    assert res.budget_exhausted


def test_move_budget_caps_moves_and_never_worsens():
    stops = _random_stops(7, 40)
    origin = GeoPoint(25.6866, -100.3161)
    # a scrambled start leaves plenty of improving moves
    start = list(reversed(stops))
    res = two_opt(origin, start, max_moves=2)
    assert res.moves <= 2
    assert sorted(_ids(res.tour)) == sorted(_ids(stops))
    assert estimate_distance_km(origin, res.tour) <= estimate_distance_km(origin, start)


def test_zero_time_budget_returns_input_order():
    stops = _random_stops(3, 30)
    origin = GeoPoint(25.6866, -100.3161)
    res = two_opt(origin, stops, time_limit_sec=0.0)
    assert res.budget_exhausted
    assert _ids(res.tour) == _ids(stops)


def test_negative_budget_is_rejected():
    with pytest.raises(ValueError):
        two_opt(ORIGIN, _stops([(0, 1)] * 3), max_moves=-1)


def test_converging_on_last_allowed_move_is_not_exhaustion():
    tour = _stops([(0, 2), (0, 1), (0, 3)])
    free = two_opt(ORIGIN, tour)
    capped = two_opt(ORIGIN, tour, max_moves=free.moves)

    assert free.moves == 1
    assert _ids(capped.tour) == _ids(free.tour)
    assert capped.moves == free.moves
    assert not capped.budget_exhausted


def test_time_budget_running_out_mid_search(monkeypatch):
    stops = _random_stops(11, 40)
    origin = GeoPoint(25.6866, -100.3161)
    start = list(reversed(stops))

    # clock stands still for the first 60 reads, then jumps past the limit
    reads = {"n": 0}

    def fake_monotonic():
        reads["n"] += 1
        return 0.0 if reads["n"] <= 60 else 1e6

    monkeypatch.setattr(tsp, "time", SimpleNamespace(monotonic=fake_monotonic))
    res = two_opt(origin, start, time_limit_sec=10.0)

    assert res.budget_exhausted
    assert res.moves >= 1
    assert sorted(_ids(res.tour)) == sorted(_ids(stops))
    assert estimate_distance_km(origin, res.tour) < estimate_distance_km(origin, start)
