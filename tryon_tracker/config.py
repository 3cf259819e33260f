"""
Configuration constants for TryOnTracker.

This module contains all tunable parameters for camera capture,
pose detection, garment placement, size recommendation and smoothing.
"""

from dataclasses import dataclass, field
from typing import Final


# Camera configuration (ideal resolution, user-facing)
CAMERA_WIDTH: Final[int] = 1280
CAMERA_HEIGHT: Final[int] = 720
CAMERA_FPS: Final[int] = 30
DEFAULT_CAMERA_INDEX: Final[int] = 0
CAMERA_MIRROR: Final[bool] = True  # Selfie view for a user-facing camera
CAMERA_MAX_READ_FAILURES: Final[int] = 30  # Consecutive empty reads before the stream counts as lost

# Frame size used when a frame reports no dimensions
FALLBACK_FRAME_WIDTH: Final[int] = 640
FALLBACK_FRAME_HEIGHT: Final[int] = 480

# MediaPipe Pose configuration
MEDIAPIPE_MODEL_COMPLEXITY: Final[int] = 0  # Lite model for performance
MEDIAPIPE_MIN_DETECTION_CONFIDENCE: Final[float] = 0.5
MEDIAPIPE_MIN_TRACKING_CONFIDENCE: Final[float] = 0.5
MEDIAPIPE_SMOOTH_LANDMARKS: Final[bool] = True

# Keypoint acceptance gate
# A frame is accepted only if every torso landmark is strictly above this.
MIN_VISIBILITY: Final[float] = 0.3

# Size recommendation calibration
# Empirical constants, calibrated against a single reference camera distance.
SHOULDER_CM_SCALE: Final[float] = 100.0  # Normalized width -> centimeters
CHEST_TO_SHOULDER_RATIO: Final[float] = 2.2

# Garment placement
GARMENT_WIDTH_MULTIPLIER: Final[float] = 2.5  # x shoulder width
GARMENT_HEIGHT_MULTIPLIER: Final[float] = 1.7  # x torso height
ANCHOR_EXPAND_FACTOR: Final[float] = 0.4  # Lateral expansion of skeleton anchors

# Temporal smoothing (exponential, fixed factor)
SMOOTHING_FACTOR: Final[float] = 0.25

# Overlay rendering
OVERLAY_POINT_RADIUS: Final[int] = 24
OVERLAY_LINE_THICKNESS: Final[int] = 8
OVERLAY_COLOR_BGR: Final[tuple[int, int, int]] = (94, 197, 34)  # Green
OVERLAY_GARMENT_OPACITY: Final[float] = 0.9

# Session messages
START_ERROR_MESSAGE: Final[str] = (
    "Unable to access camera or load pose detection model. "
    "Please allow camera permissions and try again."
)

# Logging
LOG_FILENAME: Final[str] = "tryon_tracker.log"
LOG_MAX_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: Final[int] = 3

# Exit codes
EXIT_SUCCESS: Final[int] = 0
EXIT_CATALOG_ERROR: Final[int] = 1
EXIT_CAMERA_ERROR: Final[int] = 2
EXIT_RUNTIME_ERROR: Final[int] = 3

# Size labels in evaluation order (ties resolve to the earlier label)
SIZE_KEYS: Final[tuple[str, ...]] = ("S", "M", "L", "XL")

# Reference measurements (cm) for products without their own size chart
DEFAULT_SIZE_CHART: dict[str, dict[str, float]] = {
    "S": {"shoulder": 42, "chest": 96},
    "M": {"shoulder": 44, "chest": 102},
    "L": {"shoulder": 46, "chest": 108},
    "XL": {"shoulder": 48, "chest": 114},
}


@dataclass(frozen=True)
class FitCalibration:
    """Container for size recommendation calibration factors."""

    shoulder_cm_scale: float = SHOULDER_CM_SCALE
    chest_ratio: float = CHEST_TO_SHOULDER_RATIO


@dataclass(frozen=True)
class PlacementSettings:
    """Container for garment box multipliers."""

    width_multiplier: float = GARMENT_WIDTH_MULTIPLIER
    height_multiplier: float = GARMENT_HEIGHT_MULTIPLIER
    expand_factor: float = ANCHOR_EXPAND_FACTOR


@dataclass(frozen=True)
class SmoothingSettings:
    """Container for placement smoothing settings."""

    enabled: bool = True
    alpha: float = SMOOTHING_FACTOR  # Higher = more responsive, more jitter


@dataclass(frozen=True)
class TrackerSettings:
    """All per-session tuning in one place."""

    min_visibility: float = MIN_VISIBILITY
    calibration: FitCalibration = field(default_factory=FitCalibration)
    placement: PlacementSettings = field(default_factory=PlacementSettings)
    smoothing: SmoothingSettings = field(default_factory=SmoothingSettings)
