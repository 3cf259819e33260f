"""
Frame sources for TryOnTracker.

CameraManager wraps OpenCV VideoCapture for the user-facing webcam and
hands out RGB frames. SyntheticFrameSource stands in for it in simulation
runs. Both satisfy the FrameSource protocol used by TrackingSession.
"""

import sys
import time
from typing import Optional

import cv2
import numpy as np

from tryon_tracker.logger import get_logger
from tryon_tracker.config import (
    CAMERA_WIDTH,
    CAMERA_HEIGHT,
    CAMERA_FPS,
    CAMERA_MAX_READ_FAILURES,
    DEFAULT_CAMERA_INDEX,
)

logger = get_logger("CameraManager")


class CameraError(Exception):
    """Raised when the webcam is missing, denied, or stops delivering frames."""
    pass


def _capture_backends() -> list[int]:
    """OpenCV capture backends to try, in order, for this platform."""
    if sys.platform == "win32":
        return [cv2.CAP_DSHOW, cv2.CAP_ANY]  # DirectShow opens webcams faster
    return [cv2.CAP_ANY]


class CameraManager:
    """
    Webcam capture for the try-on preview.

    The requested resolution is an ideal; whatever the device delivers is
    used as-is, since landmarks are normalized by the real frame size.
    A few failed reads in a row are tolerated (None is returned); a longer
    run means the device went away and raises CameraError.

    Attributes:
        camera_index: Index of the camera device.
        width: Requested capture width in pixels.
        height: Requested capture height in pixels.
        fps: Requested frame rate.
    """

    def __init__(
        self,
        camera_index: int = DEFAULT_CAMERA_INDEX,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
        fps: int = CAMERA_FPS,
        max_read_failures: int = CAMERA_MAX_READ_FAILURES
    ):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.fps = fps
        self.max_read_failures = max_read_failures

        self._capture: Optional[cv2.VideoCapture] = None
        self._frames_captured = 0
        self._failed_reads = 0
        self._dropped_frames = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    @property
    def resolution(self) -> tuple[int, int]:
        """Delivered (width, height), or (0, 0) while closed."""
        if self._capture is None:
            return 0, 0
        return (
            int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    @property
    def frames_captured(self) -> int:
        return self._frames_captured

    @property
    def dropped_frames(self) -> int:
        """Reads that returned no frame since open()."""
        return self._dropped_frames

    def open(self) -> None:
        """
        Acquire the webcam.

        Raises:
            CameraError: If no backend can open the device (missing, busy,
                or permission denied).
        """
        if self._capture is not None:
            logger.warning("Camera already open, reopening")
            self.close()

        logger.info(f"Opening camera {self.camera_index}...")
        capture = None
        for backend in _capture_backends():
            capture = cv2.VideoCapture(self.camera_index, backend)
            if capture.isOpened():
                break
            capture.release()
            capture = None
            logger.debug(f"Capture backend {backend} could not open camera {self.camera_index}")

        if capture is None:
            raise CameraError(f"Cannot open camera {self.camera_index} (missing, busy or access denied)")

        requested = {
            cv2.CAP_PROP_FRAME_WIDTH: self.width,
            cv2.CAP_PROP_FRAME_HEIGHT: self.height,
            cv2.CAP_PROP_FPS: self.fps,
            cv2.CAP_PROP_BUFFERSIZE: 1,  # Always hand out the newest frame
        }
        for prop, value in requested.items():
            capture.set(prop, value)

        self._capture = capture
        self._frames_captured = 0
        self._failed_reads = 0
        self._dropped_frames = 0

        delivered = self.resolution
        if delivered != (self.width, self.height):
            logger.info(f"Camera delivers {delivered[0]}x{delivered[1]} (asked for {self.width}x{self.height})")
        else:
            logger.info(f"Camera opened at {self.width}x{self.height}")

    def close(self) -> None:
        """Release the webcam. Safe to call repeatedly."""
        if self._capture is None:
            return
        self._capture.release()
        self._capture = None
        logger.info(
            f"Camera {self.camera_index} released "
            f"({self._frames_captured} frames, {self._dropped_frames} dropped)"
        )

    def read_frame_rgb(self) -> Optional[np.ndarray]:
        """
        Grab the next frame as RGB.

        Returns:
            RGB image (H, W, 3), or None if no frame was ready.

        Raises:
            CameraError: If the camera is closed or has stopped delivering
                frames.
        """
        if self._capture is None:
            raise CameraError("Camera is not open")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            self._dropped_frames += 1
            self._failed_reads += 1
            if self._failed_reads >= self.max_read_failures:
                raise CameraError(f"No frames from camera {self.camera_index} in {self._failed_reads} reads")
            return None

        self._failed_reads = 0
        self._frames_captured += 1
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def __enter__(self) -> "CameraManager":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SyntheticFrameSource:
    """
    Flat-colored frames paced at a fixed rate.

    Pairs with ScriptedPoseDetector so the whole pipeline can run without
    a webcam.
    """

    def __init__(
        self,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
        fps: float = CAMERA_FPS,
        color: tuple[int, int, int] = (40, 40, 40)
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.color = color
        self._is_open = False
        self._frames_captured = 0

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frames_captured(self) -> int:
        return self._frames_captured

    def open(self) -> None:
        self._is_open = True
        self._frames_captured = 0
        logger.info(f"Synthetic camera opened: {self.width}x{self.height}")

    def close(self) -> None:
        self._is_open = False

    def read_frame_rgb(self) -> Optional[np.ndarray]:
        if not self._is_open:
            raise CameraError("Camera is not open")
        if self.fps > 0:
            time.sleep(1.0 / self.fps)
        self._frames_captured += 1
        frame = np.empty((self.height, self.width, 3), dtype=np.uint8)
        frame[:] = self.color
        return frame


def probe_cameras(max_index: int = 10) -> list[int]:
    """
    Find camera indices that can be opened.

    Args:
        max_index: Number of indices to probe, starting at 0.

    Returns:
        Openable camera indices in ascending order.
    """
    found = []
    for index in range(max_index):
        capture = cv2.VideoCapture(index)
        try:
            if capture.isOpened():
                found.append(index)
        finally:
            capture.release()

    logger.debug(f"Cameras found: {found}")
    return found


def resolve_camera_index(requested: int = -1) -> int:
    """
    Pick the camera to track with.

    Args:
        requested: Camera index asked for on the command line (-1 = any).

    Returns:
        The requested index if it can be opened, else the first camera found.

    Raises:
        CameraError: If no camera can be opened at all.
    """
    found = probe_cameras()
    if not found:
        raise CameraError("No cameras found")

    if requested in found:
        return requested
    if requested >= 0:
        logger.warning(f"Camera {requested} not available, using camera {found[0]}")
    else:
        logger.info(f"Using camera {found[0]}")
    return found[0]
