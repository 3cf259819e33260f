import numpy as np
import pytest

from tryon_tracker.pose_detector import (
    MediaPipePoseDetector,
    ScriptedPoseDetector,
    make_candidate,
)

from helpers import candidate

FRAME = np.zeros((480, 640, 3), dtype=np.uint8)


def test_make_candidate_scales_to_pixels():
    result = make_candidate({"left_shoulder": (0.25, 0.5, 0.8)}, 640, 480)

    kp = result.get("left_shoulder")
    assert (kp.x, kp.y, kp.score) == (160.0, 240.0, 0.8)
    assert result.get("right_hip") is None


def test_scripted_detector_replays_then_stops():
    first, second = [candidate()], [candidate(ls=(0.1, 0.3, 0.9))]
    detector = ScriptedPoseDetector([first, second])

    with detector:
        assert detector.estimate(FRAME) == first
        assert detector.estimate(FRAME) == second
        assert detector.estimate(FRAME) == []

    assert detector.closed
    assert detector.calls == 3


def test_scripted_detector_loops():
    detector = ScriptedPoseDetector([[candidate()], []], loop=True)
    detector.initialize()

    results = [len(detector.estimate(FRAME)) for _ in range(5)]

    assert results == [1, 0, 1, 0, 1]


def test_scripted_detector_raises_scripted_errors():
    detector = ScriptedPoseDetector([RuntimeError("boom")])
    detector.initialize()

    with pytest.raises(RuntimeError, match="boom"):
        detector.estimate(FRAME)


def test_estimate_requires_initialize():
    with pytest.raises(RuntimeError):
        ScriptedPoseDetector([]).estimate(FRAME)
    with pytest.raises(RuntimeError):
        MediaPipePoseDetector().estimate(FRAME)


def test_mediapipe_detector_close_without_initialize():
    detector = MediaPipePoseDetector(model_complexity=1)

    detector.close()

    assert detector.name == "mediapipe_pose"
    assert not detector.is_initialized
