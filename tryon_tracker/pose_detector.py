"""
Pose detector backends for TryOnTracker.

Defines a model-agnostic PoseDetector interface plus two adapters:
MediaPipe Pose (Solutions API or Tasks API) and a scripted detector that
replays fixed candidates, used for demos and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np

from tryon_tracker.logger import get_logger
from tryon_tracker.config import (
    MEDIAPIPE_MODEL_COMPLEXITY,
    MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
    MEDIAPIPE_MIN_TRACKING_CONFIDENCE,
    MEDIAPIPE_SMOOTH_LANDMARKS,
)

logger = get_logger("PoseDetector")


class ModelLoadError(Exception):
    """Raised when the pose model cannot be created or downloaded."""
    pass


@dataclass(frozen=True)
class RawKeypoint:
    """A named detector keypoint in pixel space."""
    name: str
    x: float
    y: float
    score: Optional[float] = None


@dataclass(frozen=True)
class PoseCandidate:
    """One detected person as returned by a backend."""
    keypoints: tuple[RawKeypoint, ...] = field(default_factory=tuple)
    score: Optional[float] = None

    def get(self, name: str) -> Optional[RawKeypoint]:
        """Get keypoint by name."""
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None


class PoseDetector(ABC):
    """
    Model adapter interface.

    Implementations take an RGB image (H, W, 3 uint8) and return zero or
    more pose candidates with named keypoints in pixel coordinates.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def estimate(self, rgb_image: np.ndarray) -> list[PoseCandidate]: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self) -> "PoseDetector":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MediaPipePoseDetector(PoseDetector):
    """
    Single-person pose detector using MediaPipe Pose.

    Supports both the Solutions API (mp.solutions.pose) and the Tasks API
    (PoseLandmarker), preferring the Solutions API when it is present.
    MediaPipe reports normalized coordinates; they are scaled to pixels so
    every backend hands the same shape of data downstream.
    """

    def __init__(
        self,
        model_complexity: int = MEDIAPIPE_MODEL_COMPLEXITY,
        min_detection_confidence: float = MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = MEDIAPIPE_MIN_TRACKING_CONFIDENCE,
        smooth_landmarks: bool = MEDIAPIPE_SMOOTH_LANDMARKS
    ):
        """
        Initialize pose detector settings. The model itself is created in
        initialize(), which may take seconds.

        Args:
            model_complexity: Model complexity (0=Lite, 1=Full, 2=Heavy).
            min_detection_confidence: Minimum detection confidence.
            min_tracking_confidence: Minimum tracking confidence.
            smooth_landmarks: Let MediaPipe filter landmarks across frames.
        """
        self.model_complexity = model_complexity
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.smooth_landmarks = smooth_landmarks

        self._mp = None
        self._pose = None  # Solutions API Pose object
        self._landmarker = None  # Tasks API PoseLandmarker object
        self._timestamp_ms = 0
        self._frame_count = 0

    @property
    def name(self) -> str:
        return "mediapipe_pose"

    @property
    def is_initialized(self) -> bool:
        return self._pose is not None or self._landmarker is not None

    def initialize(self) -> None:
        """
        Create the MediaPipe model.

        Raises:
            ModelLoadError: If MediaPipe is missing or the model fails to load.
        """
        if self.is_initialized:
            return

        try:
            import mediapipe as mp
        except ImportError as e:
            raise ModelLoadError(
                "MediaPipe is required for live pose tracking. "
                "Install with: pip install 'tryon-tracker[pose]'"
            ) from e

        self._mp = mp
        try:
            if hasattr(mp, "solutions") and hasattr(mp.solutions, "pose"):
                self._initialize_solutions_api()
            elif hasattr(mp, "tasks"):
                self._initialize_tasks_api()
            else:
                raise ModelLoadError(
                    "MediaPipe installation incomplete. "
                    "Neither Solutions API nor Tasks API found."
                )
        except ModelLoadError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize MediaPipe Pose: {e}")
            raise ModelLoadError(f"Failed to initialize MediaPipe Pose: {e}") from e

    def _initialize_solutions_api(self) -> None:
        """Initialize using Solutions API."""
        logger.debug("Initializing MediaPipe Pose (Solutions API)...")

        self._pose = self._mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=self.model_complexity,
            enable_segmentation=False,
            smooth_landmarks=self.smooth_landmarks,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )

        logger.info(f"MediaPipe Pose initialized (Solutions API, complexity={self.model_complexity})")

    def _initialize_tasks_api(self) -> None:
        """Initialize using Tasks API (downloads the model on first use)."""
        from tryon_tracker.model_manager import ensure_pose_landmarker_model
        from mediapipe.tasks import python as mp_python
        from mediapipe.tasks.python import vision as mp_vision

        logger.info("Initializing MediaPipe Pose (Tasks API)...")
        model_path = ensure_pose_landmarker_model(self.model_complexity)

        options = mp_vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=model_path),
            running_mode=mp_vision.RunningMode.VIDEO,
            num_poses=1,
            min_pose_detection_confidence=self.min_detection_confidence,
            min_pose_presence_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )
        self._landmarker = mp_vision.PoseLandmarker.create_from_options(options)
        self._timestamp_ms = 0

        logger.info("MediaPipe Pose initialized (Tasks API, VIDEO mode)")

    def estimate(self, rgb_image: np.ndarray) -> list[PoseCandidate]:
        """
        Run single-pose inference on an RGB image.

        Args:
            rgb_image: RGB image as numpy array (H, W, 3).

        Returns:
            A list with one candidate, or an empty list if no person is found.

        Raises:
            RuntimeError: If called before initialize().
        """
        if not self.is_initialized:
            raise RuntimeError("MediaPipePoseDetector is not initialized")

        self._frame_count += 1
        h, w = rgb_image.shape[:2]

        if self._pose is not None:
            results = self._pose.process(rgb_image)
            if not results or not results.pose_landmarks:
                return []
            landmarks = results.pose_landmarks.landmark
        else:
            if not rgb_image.flags["C_CONTIGUOUS"]:
                rgb_image = np.ascontiguousarray(rgb_image)
            mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb_image)
            self._timestamp_ms += 33  # ~30 FPS
            result = self._landmarker.detect_for_video(mp_image, self._timestamp_ms)
            if not result.pose_landmarks:
                return []
            landmarks = result.pose_landmarks[0]

        return [PoseCandidate(keypoints=tuple(self._to_keypoints(landmarks, w, h)))]

    def _to_keypoints(self, landmarks, width: int, height: int) -> Iterable[RawKeypoint]:
        """Map MediaPipe landmark indices to named keypoints."""
        mapping = {
            "left_shoulder": 11,
            "right_shoulder": 12,
            "left_hip": 23,
            "right_hip": 24,
        }
        for name, idx in mapping.items():
            if idx >= len(landmarks):
                continue
            lm = landmarks[idx]
            yield RawKeypoint(
                name=name,
                x=float(lm.x) * width,
                y=float(lm.y) * height,
                score=float(getattr(lm, "visibility", 0.0) or 0.0)
            )

    def close(self) -> None:
        """Release MediaPipe resources."""
        if self._pose:
            self._pose.close()
            self._pose = None
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
        logger.debug(f"MediaPipePoseDetector closed after {self._frame_count} frames")


class ScriptedPoseDetector(PoseDetector):
    """
    Deterministic detector replaying a fixed sequence of results.

    Each script entry is either a list of candidates, or an Exception
    instance which is raised for that frame. When the script runs out it
    starts over if loop=True, otherwise nothing is detected.
    """

    def __init__(
        self,
        script: Sequence[object],
        loop: bool = False,
        fail_on_initialize: Optional[Exception] = None
    ):
        self._script = list(script)
        self._loop = loop
        self._fail_on_initialize = fail_on_initialize
        self._index = 0
        self._initialized = False
        self.closed = False
        self.calls = 0

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        if self._fail_on_initialize is not None:
            raise self._fail_on_initialize
        self._initialized = True
        self.closed = False
        logger.info(f"ScriptedPoseDetector ready ({len(self._script)} scripted frames)")

    def estimate(self, rgb_image: np.ndarray) -> list[PoseCandidate]:
        if not self._initialized:
            raise RuntimeError("ScriptedPoseDetector is not initialized")

        self.calls += 1
        if not self._script:
            return []

        if self._index < len(self._script):
            entry = self._script[self._index]
            self._index += 1
        elif self._loop:
            entry = self._script[self._index % len(self._script)]
            self._index += 1
        else:
            return []

        if isinstance(entry, Exception):
            raise entry
        return list(entry)

    def close(self) -> None:
        self._initialized = False
        self.closed = True


def make_candidate(
    points: dict[str, tuple[float, float, float]],
    width: int,
    height: int
) -> PoseCandidate:
    """
    Build a candidate from normalized (x, y, score) points.

    Args:
        points: Joint name -> normalized (x, y, score).
        width: Frame width in pixels.
        height: Frame height in pixels.

    Returns:
        PoseCandidate with pixel-space keypoints.
    """
    return PoseCandidate(keypoints=tuple(
        RawKeypoint(name=name, x=x * width, y=y * height, score=score)
        for name, (x, y, score) in points.items()
    ))
