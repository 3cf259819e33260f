from dataclasses import replace

import cv2
import numpy as np

from tryon_tracker.config import OVERLAY_COLOR_BGR
from tryon_tracker.garment_placement import estimate_placement
from tryon_tracker.overlay import (
    draw_garment,
    draw_skeleton,
    load_garment_image,
    parse_hex_color,
    render_preview,
)
from tryon_tracker.size_recommender import recommend
from tryon_tracker.tracking_session import SessionState, TrackingSnapshot

from helpers import keypoints


def black(width=200, height=200):
    return np.zeros((height, width, 3), dtype=np.uint8)


def box(center_x=100.0, center_y=100.0, width=40.0, height=20.0, rotation=0.0):
    bounds = estimate_placement(keypoints(), 200, 200)
    return replace(bounds, center_x=center_x, center_y=center_y, width=width, height=height, rotation=rotation)


def test_garment_blended_at_opacity():
    garment = np.full((10, 10, 3), 255, dtype=np.uint8)

    result = draw_garment(black(), garment, box())

    assert abs(int(result[100, 100, 0]) - int(255 * 0.9)) <= 1
    assert result[5, 5].sum() == 0
    assert result[100, 125].sum() == 0  # Outside the 40 px wide box


def test_garment_is_tinted_with_selected_color():
    garment = np.full((10, 10, 3), 255, dtype=np.uint8)

    result = draw_garment(black(), garment, box(), opacity=1.0, tint=parse_hex_color("#ff8000"))

    assert tuple(result[100, 100]) == (0, 128, 255)


def test_parse_hex_color():
    assert parse_hex_color("#1f2937") == (0x37, 0x29, 0x1f)
    assert parse_hex_color("#fff") == (255, 255, 255)
    assert parse_hex_color("navy") is None
    assert parse_hex_color("#zzzzzz") is None
    assert parse_hex_color(None) is None


def test_transparent_garment_pixels_leave_frame():
    garment = np.zeros((10, 10, 4), dtype=np.uint8)
    garment[..., :3] = 255

    result = draw_garment(black(), garment, box())

    assert result.sum() == 0


def test_rotated_garment_covers_rotated_area():
    garment = np.full((10, 10, 3), 255, dtype=np.uint8)

    result = draw_garment(black(), garment, box(width=80, height=10, rotation=np.pi / 2))

    assert result[130, 100].sum() > 0
    assert result[100, 130].sum() == 0


def test_offscreen_garment_is_clipped():
    garment = np.full((10, 10, 3), 255, dtype=np.uint8)

    result = draw_garment(black(), garment, box(center_x=-500, center_y=-500))

    assert result.shape == (200, 200, 3)
    assert result.sum() == 0


def test_tiny_box_draws_nothing():
    frame = black()

    assert draw_garment(frame, np.full((10, 10, 3), 255, np.uint8), box(width=1, height=1)) is frame


def test_skeleton_marks_anchors():
    bounds = estimate_placement(keypoints(), 200, 200)
    frame = draw_skeleton(black(), bounds)

    x, y = (int(round(v)) for v in bounds.anchors[0])
    assert tuple(frame[y, x]) == OVERLAY_COLOR_BGR


def test_render_preview_mirrors_and_keeps_shape():
    kp = keypoints(ls=(0.1, 0.5), rs=(0.3, 0.5), lh=(0.12, 0.8), rh=(0.28, 0.8))
    bounds = estimate_placement(kp, 320, 240)
    snapshot = TrackingSnapshot(
        state=SessionState.TRACKING,
        keypoints=kp,
        body_bounds=bounds,
        size_recommendation=recommend(kp),
        frame_width=320,
        frame_height=240,
    )
    frame = np.zeros((240, 320, 3), dtype=np.uint8)

    plain = render_preview(frame, snapshot, mirror=False)
    mirrored = render_preview(frame, snapshot, mirror=True)

    x, y = (int(round(v)) for v in bounds.anchors[0])
    assert plain.shape == (240, 320, 3)
    assert tuple(plain[y, x]) == OVERLAY_COLOR_BGR
    assert tuple(mirrored[y, 319 - x]) == OVERLAY_COLOR_BGR


def test_render_preview_idle_draws_no_skeleton():
    frame = np.zeros((240, 320, 3), dtype=np.uint8)

    result = render_preview(frame, TrackingSnapshot(state=SessionState.IDLE), mirror=False)

    assert result.sum() == 0


def test_load_garment_image(tmp_path):
    path = tmp_path / "tee.png"
    cv2.imwrite(str(path), np.full((8, 8, 4), 200, dtype=np.uint8))

    image = load_garment_image(str(path))

    assert image.shape == (8, 8, 4)
    assert load_garment_image(str(tmp_path / "missing.png")) is None
    assert load_garment_image("https://cdn.example.com/tee.png") is None
    assert load_garment_image("") is None
