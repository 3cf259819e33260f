import math
from dataclasses import replace

import pytest

from tryon_tracker.config import SmoothingSettings
from tryon_tracker.garment_placement import estimate_placement
from tryon_tracker.temporal_smoother import (
    PlacementSmoother,
    lerp,
    lerp_angle,
    smooth_bounds,
    wrap_angle,
)

from helpers import keypoints


@pytest.fixture
def target():
    return estimate_placement(keypoints(), 1000, 1000)


def test_first_frame_passes_through(target):
    assert smooth_bounds(None, target) is target


def test_moves_quarter_of_the_way(target):
    start = replace(target, center_x=100.0, width=200.0)

    result = smooth_bounds(start, target, 0.25)

    assert result.center_x == pytest.approx(100 + (500 - 100) * 0.25)
    assert result.width == pytest.approx(200 + (500 - 200) * 0.25)
    assert result.center_y == pytest.approx(target.center_y)


def test_converges_geometrically(target):
    smoother = PlacementSmoother()
    smoother.smooth(replace(target, center_x=0.0))

    errors = []
    for _ in range(50):
        errors.append(abs(smoother.smooth(target).center_x - target.center_x))

    for n, error in enumerate(errors, start=1):
        assert error == pytest.approx(500 * 0.75 ** n)
    assert errors[-1] < 1e-3


def test_rotation_takes_short_arc():
    result = lerp_angle(3.0, -3.0, 0.25)

    assert 3.0 < result < 3.0 + (2 * math.pi - 6.0) * 0.25 + 1e-9
    assert result == pytest.approx(3.0 + (2 * math.pi - 6.0) * 0.25)
    assert lerp_angle(-3.0, 3.0, 0.25) == pytest.approx(-3.0 - (2 * math.pi - 6.0) * 0.25)


def test_rotation_field_uses_short_arc(target):
    previous = replace(target, rotation=3.0)

    result = smooth_bounds(previous, replace(target, rotation=-3.0), 0.25)

    assert abs(result.rotation - 3.0) < 0.1


def test_wrap_angle_range():
    assert wrap_angle(math.pi) == pytest.approx(math.pi)
    assert wrap_angle(-math.pi) == pytest.approx(math.pi)
    assert wrap_angle(3 * math.pi / 2) == pytest.approx(-math.pi / 2)
    assert wrap_angle(0.5) == 0.5


def test_lerp():
    assert lerp(10.0, 20.0, 0.25) == 12.5
    assert lerp(10.0, 20.0, 1.0) == 20.0


def test_reset_forgets_state(target):
    smoother = PlacementSmoother()
    smoother.smooth(replace(target, center_x=0.0))
    smoother.reset()

    assert smoother.state is None
    assert smoother.smoothed_count == 0
    assert smoother.smooth(target) is target


def test_disabled_smoothing_returns_raw(target):
    smoother = PlacementSmoother(SmoothingSettings(enabled=False))
    smoother.smooth(replace(target, center_x=0.0))

    assert smoother.smooth(target) is target
    assert smoother.smoothed_count == 2
