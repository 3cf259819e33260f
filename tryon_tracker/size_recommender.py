"""
Size recommendation from torso landmarks.

Estimates shoulder and chest width from the shoulder landmarks and picks
the closest entry of a product's size chart.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from tryon_tracker.config import DEFAULT_SIZE_CHART, SIZE_KEYS, FitCalibration
from tryon_tracker.keypoint_extractor import PoseKeypoints


@dataclass(frozen=True)
class SizeMeasurement:
    """Reference measurements for one size, in centimeters."""
    shoulder: float
    chest: float


class SizeChart:
    """
    Immutable mapping of size label -> SizeMeasurement.

    Iteration always follows S, M, L, XL, regardless of input order.
    """

    def __init__(self, entries: Mapping[str, SizeMeasurement]):
        unknown = set(entries) - set(SIZE_KEYS)
        if unknown:
            raise ValueError(f"Unknown size label(s): {', '.join(sorted(unknown))}")
        if not entries:
            raise ValueError("Size chart must contain at least one size")
        self._entries = {key: entries[key] for key in SIZE_KEYS if key in entries}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "SizeChart":
        """
        Create a chart from {"S": {"shoulder": 42, "chest": 96}, ...}.

        Raises:
            ValueError: If a label is unknown or a measurement is missing.
        """
        entries = {}
        for size, values in data.items():
            try:
                entries[size] = SizeMeasurement(
                    shoulder=float(values["shoulder"]),
                    chest=float(values["chest"])
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid measurements for size {size}: {e}") from e
        return cls(entries)

    @classmethod
    def default(cls) -> "SizeChart":
        return cls.from_dict(DEFAULT_SIZE_CHART)

    def __getitem__(self, size: str) -> SizeMeasurement:
        return self._entries[size]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, size: object) -> bool:
        return size in self._entries

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SizeChart) and self._entries == other._entries

    def __repr__(self) -> str:
        return f"SizeChart({self._entries!r})"

    def items(self):
        return self._entries.items()

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {k: {"shoulder": v.shoulder, "chest": v.chest} for k, v in self._entries.items()}


@dataclass(frozen=True)
class SizeRecommendation:
    """
    Best-fit size for one frame.

    Attributes:
        recommended_size: Size label (S, M, L, XL).
        shoulder_width: Estimated shoulder width, whole centimeters.
        chest_width: Estimated chest width, whole centimeters.
        confidence: Lowest landmark visibility [0, 1].
    """
    recommended_size: str
    shoulder_width: int
    chest_width: int
    confidence: float

    @property
    def match_percent(self) -> int:
        """Confidence as a whole percentage, for display."""
        return round_half_up(self.confidence * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommendedSize": self.recommended_size,
            "shoulderWidth": self.shoulder_width,
            "chestWidth": self.chest_width,
            "confidence": self.confidence,
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (44.5 -> 45)."""
    return int(math.floor(value + 0.5))


def recommend(
    keypoints: PoseKeypoints,
    size_chart: Optional[SizeChart] = None,
    calibration: Optional[FitCalibration] = None
) -> SizeRecommendation:
    """
    Recommend a size for the detected torso.

    shoulder_cm = |right_shoulder.x - left_shoulder.x| * scale
    chest_cm = shoulder_cm * chest_ratio

    The size minimizing |chart.shoulder - shoulder_cm| + |chart.chest - chest_cm|
    wins; on a tie the earlier label in S, M, L, XL order is kept.

    Args:
        keypoints: Accepted torso landmarks.
        size_chart: Product size chart (default chart if None).
        calibration: Scale and ratio factors (defaults if None).

    Returns:
        SizeRecommendation with rounded widths and visibility confidence.
    """
    chart = size_chart if size_chart is not None else SizeChart.default()
    calibration = calibration or FitCalibration()

    shoulder_cm = abs(keypoints.right_shoulder.x - keypoints.left_shoulder.x) * calibration.shoulder_cm_scale
    chest_cm = shoulder_cm * calibration.chest_ratio

    best_size = None
    best_diff = math.inf
    for size, ref in chart.items():
        diff = abs(ref.shoulder - shoulder_cm) + abs(ref.chest - chest_cm)
        if diff < best_diff:
            best_diff = diff
            best_size = size

    return SizeRecommendation(
        recommended_size=best_size,
        shoulder_width=round_half_up(shoulder_cm),
        chest_width=round_half_up(chest_cm),
        confidence=keypoints.min_visibility
    )
