import pytest

from step_tracker.distance import DistanceAccumulator
from step_tracker.models import PositionSample
from step_tracker.utils import haversine_distance

TRACK = [
    (47.6200, -122.3490),
    (47.6209, -122.3490),
    (47.6209, -122.3478),
    (47.6215, -122.3470),
]


def test_single_sample_adds_nothing():
    acc = DistanceAccumulator()
    assert acc.on_position(PositionSample(*TRACK[0])) == 0.0
    assert (acc.last_position.latitude, acc.last_position.longitude) == TRACK[0]


def test_total_is_sum_of_pairwise_distances():
    acc = DistanceAccumulator()
    for lat, lon in TRACK:
        total = acc.on_position(PositionSample(lat, lon))
    expected = sum(
        haversine_distance(a[0], a[1], b[0], b[1]) for a, b in zip(TRACK, TRACK[1:])
    )
    assert total == pytest.approx(expected)


def test_identical_coordinates_add_zero():
    acc = DistanceAccumulator()
    acc.on_position(PositionSample(47.62, -122.349))
    assert acc.on_position(PositionSample(47.62, -122.349)) == 0.0


def test_one_thousandth_degree_latitude_is_about_111_meters():
    acc = DistanceAccumulator()
    acc.on_position(PositionSample(0.0, 0.0))
    assert acc.on_position(PositionSample(0.001, 0.0)) == pytest.approx(111.19, abs=0.05)


def test_noisy_jump_is_counted_in_full():
    acc = DistanceAccumulator()
    acc.on_position(PositionSample(47.62, -122.349))
    jump = acc.on_position(PositionSample(47.63, -122.349))
    assert jump > 1000


def test_rebaseline_skips_leg_across_pause():
    acc = DistanceAccumulator()
    acc.on_position(PositionSample(*TRACK[0]))
    before = acc.on_position(PositionSample(*TRACK[1]))
    acc.rebaseline()
    assert acc.on_position(PositionSample(*TRACK[3])) == before
