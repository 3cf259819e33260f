"""Shared builders and fakes for the test suite."""

import asyncio
import threading
import time
from typing import Callable, Optional

import numpy as np

from tryon_tracker.camera_manager import CameraError
from tryon_tracker.keypoint_extractor import Landmark, PoseKeypoints
from tryon_tracker.pose_detector import PoseCandidate, ScriptedPoseDetector, make_candidate

FRAME_W = 640
FRAME_H = 480


def keypoints(
    ls=(0.4, 0.3), rs=(0.6, 0.3), lh=(0.42, 0.6), rh=(0.58, 0.6),
    visibility=(0.9, 0.9, 0.9, 0.9)
) -> PoseKeypoints:
    return PoseKeypoints(
        left_shoulder=Landmark(*ls, visibility[0]),
        right_shoulder=Landmark(*rs, visibility[1]),
        left_hip=Landmark(*lh, visibility[2]),
        right_hip=Landmark(*rh, visibility[3]),
    )


def candidate(
    ls=(0.35, 0.3, 0.9), rs=(0.65, 0.3, 0.9), lh=(0.4, 0.65, 0.9), rh=(0.6, 0.65, 0.9),
    width=FRAME_W, height=FRAME_H
) -> PoseCandidate:
    return make_candidate(
        {"left_shoulder": ls, "right_shoulder": rs, "left_hip": lh, "right_hip": rh},
        width, height
    )


class FakeCamera:
    """Frame source returning black frames without real timing."""

    def __init__(self, width=FRAME_W, height=FRAME_H, fail_open: Optional[Exception] = None):
        self.width = width
        self.height = height
        self.fail_open = fail_open
        self.opened = False
        self.closed = False
        self.open_calls = 0
        self.reads = 0

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_open is not None:
            raise self.fail_open
        self.opened = True
        self.closed = False

    def read_frame_rgb(self):
        if not self.opened:
            raise CameraError("Camera is not open")
        self.reads += 1
        time.sleep(0.001)
        return np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def close(self) -> None:
        self.opened = False
        self.closed = True


class BlockingDetector(ScriptedPoseDetector):
    """Scripted detector whose initialize/estimate wait for an event."""

    def __init__(self, script, block_initialize=False, block_estimate=False):
        super().__init__(script)
        self.release = threading.Event()
        self.entered = threading.Event()
        self._block_initialize = block_initialize
        self._block_estimate = block_estimate

    def initialize(self) -> None:
        if self._block_initialize:
            self.entered.set()
            self.release.wait(timeout=5)
        super().initialize()

    def estimate(self, rgb_image):
        if self._block_estimate:
            self.entered.set()
            self.release.wait(timeout=5)
        return super().estimate(rgb_image)


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll predicate on the event loop until true or fail after timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
