"""
Preview rendering for TryOnTracker.

Draws the garment image, the torso skeleton and the size badge onto a
camera frame. All drawing happens on BGR images, as OpenCV expects.
"""

import math
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from tryon_tracker.logger import get_logger
from tryon_tracker.config import (
    CAMERA_MIRROR,
    OVERLAY_COLOR_BGR,
    OVERLAY_GARMENT_OPACITY,
    OVERLAY_LINE_THICKNESS,
    OVERLAY_POINT_RADIUS,
)
from tryon_tracker.garment_placement import BodyBounds
from tryon_tracker.size_recommender import SizeRecommendation
from tryon_tracker.tracking_session import TrackingSnapshot

logger = get_logger("Overlay")

# Skeleton edges between anchors: shoulders, hips, left side, right side
SKELETON_EDGES = [(0, 1), (2, 3), (0, 2), (1, 3)]


def load_garment_image(image_path: str) -> Optional[np.ndarray]:
    """
    Load a garment image from a local path, keeping any alpha channel.

    Args:
        image_path: Local file path (remote URLs are not fetched).

    Returns:
        BGR or BGRA image, or None if unavailable.
    """
    if not image_path or "://" in image_path:
        logger.debug(f"Garment image not local, skipping: {image_path!r}")
        return None
    if not Path(image_path).is_file():
        logger.warning(f"Garment image not found: {image_path}")
        return None

    image = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if image is None:
        logger.warning(f"Cannot decode garment image: {image_path}")
        return None
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image


def parse_hex_color(value: Optional[str]) -> Optional[tuple[int, int, int]]:
    """
    Convert a "#rrggbb" or "#rgb" catalog color to a BGR tuple.

    Returns:
        BGR tuple, or None if the value is empty or not a hex color.
    """
    if not value:
        return None
    digits = value.strip().lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        logger.debug(f"Unsupported garment color: {value!r}")
        return None
    try:
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        logger.debug(f"Unsupported garment color: {value!r}")
        return None
    return b, g, r


def draw_skeleton(
    image: np.ndarray,
    bounds: BodyBounds,
    color: tuple[int, int, int] = OVERLAY_COLOR_BGR,
    radius: int = OVERLAY_POINT_RADIUS,
    thickness: int = OVERLAY_LINE_THICKNESS
) -> np.ndarray:
    """
    Draw the four expanded anchors and the lines joining them.

    Args:
        image: BGR image to draw on (modified in place).
        bounds: Smoothed placement.
        color: BGR color.
        radius: Anchor circle radius in pixels.
        thickness: Line thickness in pixels.

    Returns:
        The same image.
    """
    points = [(int(round(x)), int(round(y))) for x, y in bounds.anchors]

    for start, end in SKELETON_EDGES:
        cv2.line(image, points[start], points[end], color, thickness)

    for pt in points:
        cv2.circle(image, pt, radius, color, -1)

    return image


def draw_garment(
    image: np.ndarray,
    garment: np.ndarray,
    bounds: BodyBounds,
    opacity: float = OVERLAY_GARMENT_OPACITY,
    tint: Optional[tuple[int, int, int]] = None
) -> np.ndarray:
    """
    Blend a garment image into the placement box.

    The garment is scaled to the box size, rotated by the box rotation and
    centered on the box center. Transparent garment pixels and anything
    outside the frame are left untouched.

    A tint multiplies the garment colors, so a white garment takes the
    tint color exactly.

    Args:
        image: BGR frame.
        garment: BGR or BGRA garment image.
        bounds: Placement box.
        opacity: Overall garment opacity [0, 1].
        tint: BGR color multiplied into the garment, or None.

    Returns:
        New BGR image with the garment blended in.
    """
    frame_h, frame_w = image.shape[:2]
    box_w = int(round(bounds.width))
    box_h = int(round(bounds.height))
    if box_w < 2 or box_h < 2:
        return image

    resized = cv2.resize(garment, (box_w, box_h), interpolation=cv2.INTER_AREA)
    if resized.shape[2] == 4:
        color = resized[:, :, :3]
        alpha = resized[:, :, 3]
    else:
        color = resized
        alpha = np.full((box_h, box_w), 255, dtype=np.uint8)

    if tint is not None:
        factors = np.array(tint, dtype=np.float32) / 255.0
        color = np.rint(color.astype(np.float32) * factors).astype(np.uint8)

    # Image y axis points down, so a positive rotation is clockwise on screen
    matrix = cv2.getRotationMatrix2D((box_w / 2, box_h / 2), -math.degrees(bounds.rotation), 1.0)
    matrix[0, 2] += bounds.center_x - box_w / 2
    matrix[1, 2] += bounds.center_y - box_h / 2

    warped_color = cv2.warpAffine(color, matrix, (frame_w, frame_h), flags=cv2.INTER_LINEAR, borderValue=0)
    warped_alpha = cv2.warpAffine(alpha, matrix, (frame_w, frame_h), flags=cv2.INTER_LINEAR, borderValue=0)

    weight = (warped_alpha.astype(np.float32) / 255.0 * opacity)[..., None]
    blended = image.astype(np.float32) * (1.0 - weight) + warped_color.astype(np.float32) * weight
    return blended.astype(np.uint8)


def draw_size_badge(
    image: np.ndarray,
    recommendation: SizeRecommendation,
    product_name: Optional[str] = None
) -> np.ndarray:
    """Draw the recommended size, match percentage and measurements."""
    lines = [
        f"Size {recommendation.recommended_size}  ({recommendation.match_percent}% match)",
        f"Shoulder {recommendation.shoulder_width} cm  Chest {recommendation.chest_width} cm",
    ]
    if product_name:
        lines.insert(0, product_name)

    y = 30
    for text in lines:
        cv2.putText(image, text, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 0), 4)
        cv2.putText(image, text, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)
        y += 32
    return image


def render_preview(
    rgb_frame: np.ndarray,
    snapshot: TrackingSnapshot,
    garment: Optional[np.ndarray] = None,
    product_name: Optional[str] = None,
    garment_color: Optional[str] = None,
    fps: Optional[float] = None,
    mirror: bool = CAMERA_MIRROR
) -> np.ndarray:
    """
    Compose the preview shown to the shopper.

    Args:
        rgb_frame: Camera frame (RGB).
        snapshot: Latest published session snapshot.
        garment: Garment image for the selected product, if any.
        product_name: Product name for the badge.
        garment_color: Selected catalog color used to tint the garment.
        fps: Measured frame rate to display.
        mirror: Flip horizontally (selfie view) before drawing text.

    Returns:
        BGR image ready for cv2.imshow.
    """
    display = cv2.cvtColor(rgb_frame, cv2.COLOR_RGB2BGR)

    bounds = snapshot.body_bounds
    if snapshot.is_tracking and bounds is not None:
        if garment is not None:
            display = draw_garment(display, garment, bounds, tint=parse_hex_color(garment_color))
        draw_skeleton(display, bounds)

    if mirror:
        display = cv2.flip(display, 1)

    if snapshot.is_tracking and snapshot.size_recommendation is not None:
        draw_size_badge(display, snapshot.size_recommendation, product_name)
    elif snapshot.error:
        cv2.putText(
            display, snapshot.error[:80], (10, 30),
            cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2
        )

    if fps is not None:
        cv2.putText(
            display, f"FPS: {fps:.1f}", (10, display.shape[0] - 15),
            cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 255), 2
        )

    return display
