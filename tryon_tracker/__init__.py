"""
TryOnTracker - Live garment overlay and size recommendation from body pose.

Tracks the shopper's shoulders and hips through the webcam, places the
selected garment over the torso and recommends a size from the product's
size chart.
"""

__version__ = "1.0.0"
__author__ = "TryOnTracker Team"

from tryon_tracker.camera_manager import CameraManager, CameraError, SyntheticFrameSource
from tryon_tracker.catalog_loader import Catalog, CatalogLoadError, Product, load_catalog
from tryon_tracker.garment_placement import BodyBounds, estimate_placement
from tryon_tracker.keypoint_extractor import KeypointExtractor, Landmark, PoseKeypoints
from tryon_tracker.pose_detector import (
    MediaPipePoseDetector,
    ModelLoadError,
    PoseCandidate,
    PoseDetector,
    RawKeypoint,
    ScriptedPoseDetector,
)
from tryon_tracker.size_recommender import SizeChart, SizeMeasurement, SizeRecommendation, recommend
from tryon_tracker.temporal_smoother import PlacementSmoother, lerp_angle, smooth_bounds
from tryon_tracker.tracking_session import SessionState, TrackingSession, TrackingSnapshot

__all__ = [
    "CameraManager",
    "CameraError",
    "SyntheticFrameSource",
    "Catalog",
    "CatalogLoadError",
    "Product",
    "load_catalog",
    "BodyBounds",
    "estimate_placement",
    "KeypointExtractor",
    "Landmark",
    "PoseKeypoints",
    "MediaPipePoseDetector",
    "ModelLoadError",
    "PoseCandidate",
    "PoseDetector",
    "RawKeypoint",
    "ScriptedPoseDetector",
    "SizeChart",
    "SizeMeasurement",
    "SizeRecommendation",
    "recommend",
    "PlacementSmoother",
    "lerp_angle",
    "smooth_bounds",
    "SessionState",
    "TrackingSession",
    "TrackingSnapshot",
]
