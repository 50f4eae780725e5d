import pytest

from courier_route.geo import GeoPoint, Stop
from courier_route.routing.batching import batch

ORIGIN = GeoPoint(25.6866, -100.3161)


def _tour(n):
    return [Stop(f"s{i}", GeoPoint(25.60 + i * 0.01, -100.30)) for i in range(n)]


def test_ten_stops_nine_points_per_request():
    tour = _tour(10)
    batches = batch(ORIGIN, tour, 9)

    assert [len(b.stops) for b in batches] == [8, 2]
    assert all(b.origin == ORIGIN for b in batches)
    assert [b.index for b in batches] == [0, 1]


@pytest.mark.parametrize("n", [0, 1, 2, 7, 8, 9, 23])
@pytest.mark.parametrize("max_pts", [2, 3, 9, 10, 25])
def test_concatenation_reproduces_tour(n, max_pts):
    tour = _tour(n)
    batches = batch(ORIGIN, tour, max_pts)

    flat = [s for b in batches for s in b.stops]
    assert [s.stop_id for s in flat] == [s.stop_id for s in tour]
    assert all(1 <= len(b.stops) <= max_pts - 1 for b in batches)
    assert all(len(b.points) <= max_pts for b in batches)


def test_points_waypoints_destination():
    tour = _tour(4)
    (b,) = batch(ORIGIN, tour, 10)

    assert b.destination.stop_id == "s3"
    assert [s.stop_id for s in b.waypoints] == ["s0", "s1", "s2"]
    assert b.points[0] == ORIGIN
    assert b.points[1:] == [s.point for s in tour]


def test_chained_mode_starts_at_previous_destination():
    tour = _tour(7)
    batches = batch(ORIGIN, tour, 4, mode="chained")

    assert [len(b.stops) for b in batches] == [3, 3, 1]
    assert batches[0].origin == ORIGIN
    assert batches[1].origin == tour[2].point
    assert batches[2].origin == tour[5].point


def test_empty_tour_has_no_batches():
    assert batch(ORIGIN, [], 10) == []


@pytest.mark.parametrize("max_pts", [1, 0, -3])
def test_too_small_request_limit(max_pts):
    with pytest.raises(ValueError):
        batch(ORIGIN, _tour(3), max_pts)


def test_unknown_mode():
    with pytest.raises(ValueError):
        batch(ORIGIN, _tour(3), 5, mode="zigzag")


@pytest.mark.parametrize("max_pts", [2.7, 10.0, True, "10"])
def test_non_integer_request_limit(max_pts):
    with pytest.raises(ValueError):
        batch(ORIGIN, _tour(3), max_pts)
