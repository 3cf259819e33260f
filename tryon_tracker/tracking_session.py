"""
Tracking session controller for TryOnTracker.

Owns the camera, the pose detector, the frame-loop task and the smoothing
state for one try-on run, and publishes a TrackingSnapshot to observers
after every accepted frame and on every state change.

Lifecycle:
    IDLE -> STARTING -> TRACKING -> STOPPING -> IDLE
    STARTING -> ERROR -> (start again) -> STARTING
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Protocol

import numpy as np

from tryon_tracker.logger import get_logger
from tryon_tracker.config import START_ERROR_MESSAGE, TrackerSettings
from tryon_tracker.garment_placement import BodyBounds, estimate_placement
from tryon_tracker.keypoint_extractor import KeypointExtractor, PoseKeypoints, frame_dimensions
from tryon_tracker.pose_detector import PoseDetector
from tryon_tracker.size_recommender import SizeChart, SizeRecommendation, recommend
from tryon_tracker.temporal_smoother import PlacementSmoother

logger = get_logger("TrackingSession")

# Pause before polling again when the camera has no frame ready
FRAME_NOT_READY_DELAY = 0.01  # seconds
# Longest wait for an in-flight inference when stopping
LOOP_STOP_TIMEOUT = 2.0  # seconds


class FrameSource(Protocol):
    """What the session needs from a camera."""

    def open(self) -> None: ...

    def read_frame_rgb(self) -> Optional[np.ndarray]: ...

    def close(self) -> None: ...


class SessionState(Enum):
    """Lifecycle state of a tracking session."""
    IDLE = auto()
    STARTING = auto()
    TRACKING = auto()
    STOPPING = auto()
    ERROR = auto()


@dataclass(frozen=True)
class TrackingSnapshot:
    """Read-only view of the session published to observers."""
    state: SessionState
    keypoints: Optional[PoseKeypoints] = None
    body_bounds: Optional[BodyBounds] = None
    size_recommendation: Optional[SizeRecommendation] = None
    error: Optional[str] = None
    frame_width: int = 0
    frame_height: int = 0

    @property
    def is_tracking(self) -> bool:
        return self.state == SessionState.TRACKING

    def to_dict(self) -> dict:
        return {
            "keypoints": self.keypoints.to_dict() if self.keypoints else None,
            "bodyBounds": self.body_bounds.to_dict() if self.body_bounds else None,
            "sizeRecommendation": (
                self.size_recommendation.to_dict() if self.size_recommendation else None
            ),
            "isTracking": self.is_tracking,
            "error": self.error,
        }


SnapshotCallback = Callable[[TrackingSnapshot], None]


class TrackingSession:
    """
    Drives the per-frame pose-to-fit pipeline.

    Each tick reads one frame, runs the keypoint extractor, and for an
    accepted pose computes the size recommendation and the smoothed garment
    placement before publishing. Ticks never overlap: inference for a frame
    completes before the next frame is read.

    Attributes:
        settings: Gate, calibration, placement and smoothing settings.
    """

    def __init__(
        self,
        camera_factory: Callable[[], FrameSource],
        detector_factory: Callable[[], PoseDetector],
        size_chart: Optional[SizeChart] = None,
        settings: Optional[TrackerSettings] = None
    ):
        """
        Initialize the session. Nothing is acquired until start().

        Args:
            camera_factory: Creates a fresh, unopened frame source per run.
            detector_factory: Creates a fresh, uninitialized detector per run.
            size_chart: Size chart of the product being tried on.
            settings: Tuning settings (defaults if None).
        """
        self._camera_factory = camera_factory
        self._detector_factory = detector_factory
        self._size_chart = size_chart or SizeChart.default()
        self.settings = settings or TrackerSettings()

        self._state = SessionState.IDLE
        self._error: Optional[str] = None
        self._camera: Optional[FrameSource] = None
        self._detector: Optional[PoseDetector] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._run_id = 0

        self._extractor = KeypointExtractor(self.settings.min_visibility)
        self._smoother = PlacementSmoother(self.settings.smoothing)
        self._observers: list[SnapshotCallback] = []

        self._snapshot = TrackingSnapshot(state=SessionState.IDLE)
        self._latest_frame: Optional[np.ndarray] = None

        # Stats
        self._frames_read = 0
        self._frames_published = 0
        self._start_time = 0.0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> TrackingSnapshot:
        """Most recently published snapshot."""
        return self._snapshot

    @property
    def latest_frame(self) -> Optional[np.ndarray]:
        """Last frame read from the camera, for preview rendering."""
        return self._latest_frame

    @property
    def is_tracking(self) -> bool:
        return self._state == SessionState.TRACKING

    @property
    def size_chart(self) -> SizeChart:
        return self._size_chart

    @size_chart.setter
    def size_chart(self, chart: SizeChart) -> None:
        """Switch products; applies from the next accepted frame."""
        self._size_chart = chart

    @property
    def frames_read(self) -> int:
        return self._frames_read

    @property
    def frames_published(self) -> int:
        return self._frames_published

    @property
    def inference_errors(self) -> int:
        return self._extractor.error_count

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register an observer for published snapshots.

        Args:
            callback: Called with each new TrackingSnapshot.

        Returns:
            A function that removes the observer.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _publish(self, snapshot: TrackingSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot observer failed")

    def _set_state(self, state: SessionState, error: Optional[str] = None) -> None:
        """Change state and publish the state change (values are kept)."""
        logger.debug(f"Session state: {self._state.name} -> {state.name}")
        self._state = state
        self._error = error
        prev = self._snapshot
        self._publish(TrackingSnapshot(
            state=state,
            keypoints=prev.keypoints,
            body_bounds=prev.body_bounds,
            size_recommendation=prev.size_recommendation,
            error=error,
            frame_width=prev.frame_width,
            frame_height=prev.frame_height,
        ))

    def _clear_results(self) -> None:
        self._smoother.reset()
        self._latest_frame = None
        self._snapshot = TrackingSnapshot(state=self._state, error=self._error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Acquire the detector and camera, then begin the frame loop.

        Returns:
            True if the session reached TRACKING, False otherwise. On failure
            the session is in ERROR with a user-facing message, and nothing
            acquired during this attempt is retained.
        """
        if self._state in (SessionState.STARTING, SessionState.TRACKING, SessionState.STOPPING):
            logger.warning(f"start() ignored while {self._state.name}")
            return self._state == SessionState.TRACKING

        self._run_id += 1
        run_id = self._run_id
        self._clear_results()
        self._set_state(SessionState.STARTING)
        logger.info("Starting tracking session...")

        loop = asyncio.get_running_loop()
        detector: Optional[PoseDetector] = None
        camera: Optional[FrameSource] = None

        try:
            detector = self._detector_factory()
            await loop.run_in_executor(None, detector.initialize)
            if run_id != self._run_id:
                raise _StartAborted()

            camera = self._camera_factory()
            await loop.run_in_executor(None, camera.open)
            if run_id != self._run_id:
                raise _StartAborted()

        except _StartAborted:
            logger.info("Start aborted by stop()")
            self._release(camera, detector)
            return False
        except Exception as e:
            logger.error(f"Camera/Model error: {e}")
            self._release(camera, detector)
            if run_id == self._run_id:
                self._set_state(SessionState.ERROR, error=START_ERROR_MESSAGE)
            return False

        self._camera = camera
        self._detector = detector
        self._frames_read = 0
        self._frames_published = 0
        self._start_time = time.perf_counter()

        self._set_state(SessionState.TRACKING)
        self._loop_task = asyncio.create_task(self._frame_loop(run_id))
        logger.info(f"Tracking started ({detector.name})")
        return True

    async def stop(self) -> None:
        """
        Stop tracking and release every resource. Safe to call repeatedly,
        before start() has finished, or from an observer.

        The frame loop gets LOOP_STOP_TIMEOUT seconds to finish before it is
        cancelled. A detector call that outlives the timeout keeps running
        in its executor thread, and the detector is closed once it returns.
        """
        if self._state == SessionState.IDLE and self._loop_task is None:
            return

        was_tracking = self._state == SessionState.TRACKING
        self._run_id += 1  # Late results from the old run are discarded
        self._set_state(SessionState.STOPPING)

        task = self._loop_task
        self._loop_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(task, timeout=LOOP_STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Frame loop did not finish in time, cancelled")

        camera, detector = self._camera, self._detector
        self._camera = None
        self._detector = None
        inference = self._extractor.pending_inference
        if inference is not None and detector is not None:
            logger.warning("Pose inference still running, detector closes when it returns")
            self._release(camera, None)
            inference.add_done_callback(lambda _: self._release(None, detector))
        else:
            self._release(camera, detector)

        if was_tracking:
            self._log_stats()

        self._clear_results()
        self._set_state(SessionState.IDLE)
        logger.info("Tracking session stopped")

    async def close(self) -> None:
        """Teardown; same as stop()."""
        await self.stop()

    async def __aenter__(self) -> "TrackingSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _release(self, camera: Optional[FrameSource], detector: Optional[PoseDetector]) -> None:
        """Close camera and detector, logging (not raising) close errors."""
        if camera is not None:
            try:
                camera.close()
            except Exception as e:
                logger.error(f"Error closing camera: {e}")
        if detector is not None:
            try:
                detector.close()
            except Exception as e:
                logger.error(f"Error closing pose detector: {e}")

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    async def _frame_loop(self, run_id: int) -> None:
        """Process frames until the run is superseded by stop()."""
        loop = asyncio.get_running_loop()
        camera = self._camera
        detector = self._detector

        while run_id == self._run_id:
            try:
                frame = await loop.run_in_executor(None, camera.read_frame_rgb)
            except Exception as e:
                logger.error(f"Camera stream failed: {e}")
                if run_id == self._run_id:
                    await self._fail_run(str(e))
                return

            if run_id != self._run_id:
                return

            if frame is None:
                await asyncio.sleep(FRAME_NOT_READY_DELAY)
                continue

            self._latest_frame = frame
            self._frames_read += 1

            keypoints = await self._extractor.extract_from_frame(detector, frame)
            if run_id != self._run_id:
                return  # Stopped during inference
            if keypoints is None:
                continue

            try:
                self._process_keypoints(keypoints, frame)
            except Exception:
                logger.exception("Failed to process pose keypoints")

    def _process_keypoints(self, keypoints: PoseKeypoints, frame: np.ndarray) -> None:
        width, height = frame_dimensions(frame)
        recommendation = recommend(keypoints, self._size_chart, self.settings.calibration)
        raw_bounds = estimate_placement(keypoints, width, height, self.settings.placement)
        bounds = self._smoother.smooth(raw_bounds)

        self._frames_published += 1
        self._publish(TrackingSnapshot(
            state=self._state,
            keypoints=keypoints,
            body_bounds=bounds,
            size_recommendation=recommendation,
            frame_width=width,
            frame_height=height,
        ))

    async def _fail_run(self, reason: str) -> None:
        """Tear down after the camera stream dies mid-session."""
        self._run_id += 1
        self._loop_task = None
        camera, detector = self._camera, self._detector
        self._camera = None
        self._detector = None
        self._release(camera, detector)
        self._log_stats()
        self._clear_results()
        self._set_state(SessionState.ERROR, error=f"Camera stream ended: {reason}")

    def _log_stats(self) -> None:
        if self._frames_read == 0:
            return
        elapsed = time.perf_counter() - self._start_time
        avg_fps = self._frames_read / elapsed if elapsed > 0 else 0.0
        logger.info(
            f"Processed {self._frames_read} frames in {elapsed:.1f}s "
            f"({avg_fps:.1f} FPS average), published {self._frames_published}, "
            f"inference errors {self._extractor.error_count}"
        )


class _StartAborted(Exception):
    """Internal: stop() was called while start() was pending."""
