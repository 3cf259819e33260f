"""
Garment placement from torso landmarks.

Computes an oriented box (center, size, rotation) for the garment overlay,
plus laterally expanded shoulder/hip anchors used to draw the skeleton.
"""

import math
from dataclasses import dataclass
from typing import Optional

from tryon_tracker.config import PlacementSettings
from tryon_tracker.keypoint_extractor import PoseKeypoints


@dataclass(frozen=True)
class BodyBounds:
    """
    Garment placement transform in pixel space.

    The anchors are the four torso corners, pushed outward horizontally.
    The box (center, width, height, rotation) is derived from the raw
    landmarks and is not affected by the anchor expansion.
    """
    left_shoulder_x: float
    left_shoulder_y: float
    right_shoulder_x: float
    right_shoulder_y: float
    left_hip_x: float
    left_hip_y: float
    right_hip_x: float
    right_hip_y: float
    center_x: float
    center_y: float
    width: float
    height: float
    rotation: float  # Radians

    @property
    def anchors(self) -> list[tuple[float, float]]:
        """Corner anchors: left shoulder, right shoulder, left hip, right hip."""
        return [
            (self.left_shoulder_x, self.left_shoulder_y),
            (self.right_shoulder_x, self.right_shoulder_y),
            (self.left_hip_x, self.left_hip_y),
            (self.right_hip_x, self.right_hip_y),
        ]

    def to_dict(self) -> dict[str, float]:
        return {
            "leftShoulderX": self.left_shoulder_x,
            "leftShoulderY": self.left_shoulder_y,
            "rightShoulderX": self.right_shoulder_x,
            "rightShoulderY": self.right_shoulder_y,
            "leftHipX": self.left_hip_x,
            "leftHipY": self.left_hip_y,
            "rightHipX": self.right_hip_x,
            "rightHipY": self.right_hip_y,
            "centerX": self.center_x,
            "centerY": self.center_y,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
        }


def estimate_placement(
    keypoints: PoseKeypoints,
    frame_width: int,
    frame_height: int,
    settings: Optional[PlacementSettings] = None
) -> BodyBounds:
    """
    Estimate the raw (unsmoothed) garment placement for one frame.

    Args:
        keypoints: Accepted torso landmarks (normalized).
        frame_width: Frame width in pixels.
        frame_height: Frame height in pixels.
        settings: Box multipliers and anchor expansion.

    Returns:
        BodyBounds in pixel coordinates.
    """
    settings = settings or PlacementSettings()

    ls_x = keypoints.left_shoulder.x * frame_width
    ls_y = keypoints.left_shoulder.y * frame_height
    rs_x = keypoints.right_shoulder.x * frame_width
    rs_y = keypoints.right_shoulder.y * frame_height
    lh_x = keypoints.left_hip.x * frame_width
    lh_y = keypoints.left_hip.y * frame_height
    rh_x = keypoints.right_hip.x * frame_width
    rh_y = keypoints.right_hip.y * frame_height

    # Mean of the two line angles; both stay near horizontal for an upright torso
    shoulder_angle = math.atan2(rs_y - ls_y, rs_x - ls_x)
    hip_angle = math.atan2(rh_y - lh_y, rh_x - lh_x)
    rotation = (shoulder_angle + hip_angle) / 2

    shoulder_center_x = (ls_x + rs_x) / 2
    shoulder_center_y = (ls_y + rs_y) / 2
    hip_center_x = (lh_x + rh_x) / 2
    hip_center_y = (lh_y + rh_y) / 2

    shoulder_width = math.hypot(rs_x - ls_x, rs_y - ls_y)
    torso_height = math.hypot(hip_center_x - shoulder_center_x, hip_center_y - shoulder_center_y)

    shoulder_expand = (rs_x - ls_x) * settings.expand_factor
    hip_expand = (rh_x - lh_x) * settings.expand_factor

    return BodyBounds(
        left_shoulder_x=ls_x - shoulder_expand,
        left_shoulder_y=ls_y,
        right_shoulder_x=rs_x + shoulder_expand,
        right_shoulder_y=rs_y,
        left_hip_x=lh_x - hip_expand,
        left_hip_y=lh_y,
        right_hip_x=rh_x + hip_expand,
        right_hip_y=rh_y,
        center_x=(shoulder_center_x + hip_center_x) / 2,
        center_y=(shoulder_center_y + hip_center_y) / 2,
        width=shoulder_width * settings.width_multiplier,
        height=torso_height * settings.height_multiplier,
        rotation=rotation,
    )
