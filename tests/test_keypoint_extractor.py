import asyncio

import numpy as np
import pytest

from tryon_tracker.keypoint_extractor import (
    KeypointExtractor,
    UNKNOWN_LANDMARK,
    frame_dimensions,
)
from tryon_tracker.pose_detector import PoseCandidate, RawKeypoint, ScriptedPoseDetector

from helpers import FRAME_H, FRAME_W, candidate


def test_landmarks_are_normalized_by_frame_size():
    extractor = KeypointExtractor()
    kp = extractor.extract([candidate()], FRAME_W, FRAME_H)

    assert kp is not None
    assert kp.left_shoulder.x == pytest.approx(0.35)
    assert kp.right_shoulder.x == pytest.approx(0.65)
    assert kp.left_hip.y == pytest.approx(0.65)
    assert kp.right_hip.visibility == pytest.approx(0.9)


def test_no_candidates_yields_nothing():
    assert KeypointExtractor().extract([], FRAME_W, FRAME_H) is None


def test_visibility_exactly_at_threshold_is_rejected():
    extractor = KeypointExtractor()
    kp = extractor.extract([candidate(ls=(0.35, 0.3, 0.3))], FRAME_W, FRAME_H)

    assert kp is None
    assert extractor.rejected_count == 1


def test_visibility_just_above_threshold_is_accepted():
    kp = KeypointExtractor().extract([candidate(rh=(0.6, 0.65, 0.31))], FRAME_W, FRAME_H)

    assert kp is not None
    assert kp.min_visibility == pytest.approx(0.31)


def test_missing_joint_becomes_unknown_and_rejects_frame():
    partial = PoseCandidate(keypoints=(
        RawKeypoint("left_shoulder", 100, 100, 0.9),
        RawKeypoint("right_shoulder", 300, 100, 0.9),
        RawKeypoint("left_hip", 120, 300, 0.9),
    ))
    extractor = KeypointExtractor(min_visibility=-1.0)  # Let the sentinel through

    kp = extractor.extract([partial], FRAME_W, FRAME_H)

    assert kp.right_hip == UNKNOWN_LANDMARK
    assert KeypointExtractor().extract([partial], FRAME_W, FRAME_H) is None


def test_missing_score_counts_as_zero():
    no_score = PoseCandidate(keypoints=tuple(
        RawKeypoint(name, 100, 100, None)
        for name in ("left_shoulder", "right_shoulder", "left_hip", "right_hip")
    ))
    kp = KeypointExtractor(min_visibility=-1.0).extract([no_score], FRAME_W, FRAME_H)

    assert kp.min_visibility == 0.0


def test_only_first_candidate_is_used():
    first = candidate(ls=(0.1, 0.3, 0.9))
    second = candidate(ls=(0.2, 0.3, 0.9))

    kp = KeypointExtractor().extract([first, second], FRAME_W, FRAME_H)

    assert kp.left_shoulder.x == pytest.approx(0.1)


def test_zero_frame_size_falls_back_to_default():
    kp = KeypointExtractor().extract([candidate(width=640, height=480)], 0, 0)

    assert kp.left_shoulder.x == pytest.approx(0.35)
    assert frame_dimensions(None) == (640, 480)
    assert frame_dimensions(np.zeros((720, 1280, 3), dtype=np.uint8)) == (1280, 720)


def test_to_dict_uses_camel_case_names():
    kp = KeypointExtractor().extract([candidate()], FRAME_W, FRAME_H)

    assert set(kp.to_dict()) == {"leftShoulder", "rightShoulder", "leftHip", "rightHip"}


def test_detector_error_costs_one_frame():
    detector = ScriptedPoseDetector([RuntimeError("inference failed"), [candidate()]])
    detector.initialize()
    extractor = KeypointExtractor()
    frame = np.zeros((FRAME_H, FRAME_W, 3), dtype=np.uint8)

    async def run():
        return [
            await extractor.extract_from_frame(detector, frame),
            await extractor.extract_from_frame(detector, frame),
        ]

    failed, recovered = asyncio.run(run())

    assert failed is None
    assert recovered is not None
    assert extractor.error_count == 1
