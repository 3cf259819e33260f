"""
Temporal smoother for garment placement.

Applies a fixed-factor exponential filter to every field of BodyBounds to
suppress detector jitter. Rotation is interpolated along the shortest arc
so the box never spins the long way round at the +/-pi boundary.
"""

import math
from dataclasses import fields, replace
from typing import Optional

from tryon_tracker.garment_placement import BodyBounds
from tryon_tracker.logger import get_logger
from tryon_tracker.config import SMOOTHING_FACTOR, SmoothingSettings

logger = get_logger("PlacementSmoother")

TWO_PI = 2.0 * math.pi


def lerp(current: float, target: float, factor: float) -> float:
    return current + (target - current) * factor


def wrap_angle(delta: float) -> float:
    """Normalize an angle difference into (-pi, pi]."""
    while delta > math.pi:
        delta -= TWO_PI
    while delta <= -math.pi:
        delta += TWO_PI
    return delta


def lerp_angle(current: float, target: float, factor: float) -> float:
    """Interpolate between two angles (radians) along the shortest path."""
    return current + wrap_angle(target - current) * factor


def smooth_bounds(
    previous: Optional[BodyBounds],
    target: BodyBounds,
    alpha: float = SMOOTHING_FACTOR
) -> BodyBounds:
    """
    Move the previous placement a fraction alpha toward the target.

    Args:
        previous: Last published placement, or None on the first frame.
        target: Raw placement for the current frame.
        alpha: Smoothing factor in (0, 1].

    Returns:
        Smoothed placement (the target itself when previous is None).
    """
    if previous is None:
        return target

    values = {}
    for f in fields(BodyBounds):
        current = getattr(previous, f.name)
        goal = getattr(target, f.name)
        if f.name == "rotation":
            values[f.name] = lerp_angle(current, goal, alpha)
        else:
            values[f.name] = lerp(current, goal, alpha)
    return replace(previous, **values)


class PlacementSmoother:
    """
    Owns the smoothing state for one tracking run.

    The state is exactly one value: the last published placement. It is
    cleared by reset() whenever tracking stops or restarts.
    """

    def __init__(self, settings: Optional[SmoothingSettings] = None):
        self.settings = settings or SmoothingSettings()
        self._state: Optional[BodyBounds] = None
        self._smoothed_count = 0

    @property
    def state(self) -> Optional[BodyBounds]:
        """Last published placement, or None before the first frame."""
        return self._state

    @property
    def smoothed_count(self) -> int:
        """Number of placements produced since the last reset."""
        return self._smoothed_count

    def smooth(self, target: BodyBounds) -> BodyBounds:
        """
        Smooth a raw placement against the current state and store the result.

        Args:
            target: Raw placement for the current frame.

        Returns:
            The placement to publish.
        """
        if self.settings.enabled:
            result = smooth_bounds(self._state, target, self.settings.alpha)
        else:
            result = target
        self._state = result
        self._smoothed_count += 1
        return result

    def reset(self) -> None:
        """Forget the previous placement."""
        self._state = None
        self._smoothed_count = 0
        logger.debug("PlacementSmoother reset")
