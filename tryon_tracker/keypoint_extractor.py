"""
Keypoint extraction for TryOnTracker.

Turns raw detector output into the four normalized torso landmarks used for
fit estimation, and gates frames on landmark visibility.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from tryon_tracker.logger import get_logger
from tryon_tracker.config import MIN_VISIBILITY, FALLBACK_FRAME_WIDTH, FALLBACK_FRAME_HEIGHT
from tryon_tracker.pose_detector import PoseCandidate, PoseDetector

logger = get_logger("KeypointExtractor")


@dataclass(frozen=True)
class Landmark:
    """Single body landmark in normalized image space."""
    x: float  # Normalized x [0, 1]
    y: float  # Normalized y [0, 1]
    visibility: float = 0.0


# Stand-in for a joint the detector did not report
UNKNOWN_LANDMARK = Landmark(x=0.5, y=0.5, visibility=0.0)


@dataclass(frozen=True)
class PoseKeypoints:
    """
    Torso landmarks for one accepted frame.

    Attributes:
        left_shoulder: Left shoulder landmark.
        right_shoulder: Right shoulder landmark.
        left_hip: Left hip landmark.
        right_hip: Right hip landmark.
    """
    left_shoulder: Landmark
    right_shoulder: Landmark
    left_hip: Landmark
    right_hip: Landmark

    @property
    def min_visibility(self) -> float:
        """Lowest visibility across the four landmarks."""
        return min(lm.visibility for lm in self.as_list())

    def as_list(self) -> list[Landmark]:
        return [self.left_shoulder, self.right_shoulder, self.left_hip, self.right_hip]

    def to_dict(self) -> dict[str, dict[str, float]]:
        """Serialize with the storefront's camelCase joint names."""
        return {
            key: {"x": lm.x, "y": lm.y, "visibility": lm.visibility}
            for key, lm in (
                ("leftShoulder", self.left_shoulder),
                ("rightShoulder", self.right_shoulder),
                ("leftHip", self.left_hip),
                ("rightHip", self.right_hip),
            )
        }


def frame_dimensions(frame: Optional[np.ndarray]) -> tuple[int, int]:
    """
    Get (width, height) of a frame, falling back to 640x480.

    Args:
        frame: Image array or None.

    Returns:
        (width, height) in pixels.
    """
    if frame is None or frame.ndim < 2:
        return FALLBACK_FRAME_WIDTH, FALLBACK_FRAME_HEIGHT
    h, w = frame.shape[:2]
    return (w or FALLBACK_FRAME_WIDTH), (h or FALLBACK_FRAME_HEIGHT)


class KeypointExtractor:
    """
    Converts detector candidates into gated PoseKeypoints.

    Attributes:
        min_visibility: Frames are accepted only when every landmark's
            visibility is strictly greater than this value.
    """

    def __init__(self, min_visibility: float = MIN_VISIBILITY):
        self.min_visibility = min_visibility
        self._error_count = 0
        self._rejected_count = 0
        self._pending: Optional[asyncio.Future] = None

    @property
    def error_count(self) -> int:
        """Number of frames where the detector raised."""
        return self._error_count

    @property
    def rejected_count(self) -> int:
        """Number of frames dropped by the visibility gate."""
        return self._rejected_count

    @property
    def pending_inference(self) -> Optional[asyncio.Future]:
        """Detector call still running in the executor, if any."""
        if self._pending is not None and not self._pending.done():
            return self._pending
        return None

    def extract(
        self,
        candidates: Sequence[PoseCandidate],
        width: int,
        height: int
    ) -> Optional[PoseKeypoints]:
        """
        Map the first candidate's joints to PoseKeypoints.

        Args:
            candidates: Detector output for one frame.
            width: Frame width in pixels.
            height: Frame height in pixels.

        Returns:
            PoseKeypoints if all four landmarks pass the gate, None otherwise.
        """
        if not candidates:
            return None

        width = width or FALLBACK_FRAME_WIDTH
        height = height or FALLBACK_FRAME_HEIGHT
        candidate = candidates[0]

        def landmark(name: str) -> Landmark:
            kp = candidate.get(name)
            if kp is None:
                return UNKNOWN_LANDMARK
            return Landmark(
                x=kp.x / width,
                y=kp.y / height,
                visibility=float(kp.score or 0.0)
            )

        keypoints = PoseKeypoints(
            left_shoulder=landmark("left_shoulder"),
            right_shoulder=landmark("right_shoulder"),
            left_hip=landmark("left_hip"),
            right_hip=landmark("right_hip"),
        )

        if keypoints.min_visibility <= self.min_visibility:
            self._rejected_count += 1
            logger.debug(
                f"Pose rejected: min visibility {keypoints.min_visibility:.2f} "
                f"<= {self.min_visibility}"
            )
            return None

        return keypoints

    async def extract_from_frame(
        self,
        detector: PoseDetector,
        frame: np.ndarray
    ) -> Optional[PoseKeypoints]:
        """
        Run the detector on a frame off the event loop and extract keypoints.

        A detector error costs one frame: it is logged and the frame yields
        no keypoints.

        Args:
            detector: Initialized pose detector.
            frame: RGB frame (H, W, 3).

        Returns:
            PoseKeypoints or None.
        """
        loop = asyncio.get_running_loop()
        inference = loop.run_in_executor(None, detector.estimate, frame)
        self._pending = inference
        try:
            # Shielded: if the caller is cancelled, the future still tracks the thread
            candidates = await asyncio.shield(inference)
        except Exception as e:
            self._pending = None
            self._error_count += 1
            logger.warning(f"Pose detection error: {e}")
            return None

        self._pending = None
        width, height = frame_dimensions(frame)
        return self.extract(candidates, width, height)
