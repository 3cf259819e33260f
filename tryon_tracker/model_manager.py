"""
Pose landmarker model cache for the MediaPipe Tasks API.

Recent MediaPipe releases drop the bundled Solutions API, and the Tasks
API needs a .task model file on disk. This module fetches the variant that
matches the configured model complexity into a per-user cache.
"""

import os
import sys
import time
import urllib.request
from pathlib import Path
from typing import Optional

from tryon_tracker.logger import get_logger

logger = get_logger("ModelManager")

# Index = MediaPipe model complexity
POSE_LANDMARKER_VARIANTS = ("lite", "full", "heavy")
POSE_LANDMARKER_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{variant}/float16/latest/pose_landmarker_{variant}.task"
)

DOWNLOAD_TIMEOUT = 120  # seconds
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # bytes
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds, multiplied by the attempt number


class ModelDownloadError(RuntimeError):
    """Raised when the pose model cannot be fetched."""
    pass


def get_model_cache_dir() -> Path:
    """
    Per-user cache directory for model files, created on demand.

    %LOCALAPPDATA%/TryOnTracker/mediapipe_models on Windows,
    $XDG_CACHE_HOME (or ~/.cache)/TryOnTracker/mediapipe_models elsewhere.
    """
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or os.path.expanduser("~")
    else:
        base = os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")

    cache_dir = Path(base) / "TryOnTracker" / "mediapipe_models"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def model_variant(model_complexity: int) -> str:
    """Landmarker variant for a model complexity, clamped to lite..heavy."""
    index = max(0, min(int(model_complexity), len(POSE_LANDMARKER_VARIANTS) - 1))
    return POSE_LANDMARKER_VARIANTS[index]


def ensure_pose_landmarker_model(model_complexity: int = 0) -> str:
    """
    Return a local path to the pose landmarker model, downloading it once.

    Args:
        model_complexity: 0=lite, 1=full, 2=heavy.

    Returns:
        Path to the .task file.

    Raises:
        ModelDownloadError: If every download attempt fails.
    """
    variant = model_variant(model_complexity)
    model_path = get_model_cache_dir() / f"pose_landmarker_{variant}.task"

    if model_path.exists():
        logger.debug(f"Using cached pose model: {model_path}")
        return str(model_path)

    url = POSE_LANDMARKER_URL.format(variant=variant)
    logger.info(f"Fetching pose landmarker model ({variant})...")

    last_error: Optional[Exception] = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            _download_model(url, model_path)
            logger.info(f"Pose model saved to {model_path}")
            return str(model_path)
        except Exception as e:
            last_error = e
            logger.warning(f"Model download attempt {attempt}/{MAX_RETRIES} failed: {e}")
            if attempt < MAX_RETRIES:
                time.sleep(RETRY_DELAY * attempt)

    raise ModelDownloadError(
        f"Failed to download the pose model after {MAX_RETRIES} attempts. "
        "Check your internet connection and try again."
    ) from last_error


def _download_model(url: str, dest_path: Path) -> None:
    """Stream url into dest_path through a .part file, replacing atomically."""
    part_path = dest_path.with_name(dest_path.name + ".part")
    request = urllib.request.Request(url, headers={"User-Agent": "TryOnTracker/1.0"})

    try:
        with urllib.request.urlopen(request, timeout=DOWNLOAD_TIMEOUT) as response, \
                open(part_path, "wb") as out:
            expected = int(response.headers.get("Content-Length") or 0)
            received = 0
            for chunk in iter(lambda: response.read(DOWNLOAD_CHUNK_SIZE), b""):
                out.write(chunk)
                received += len(chunk)

        if expected and received != expected:
            raise IOError(f"Truncated download: {received} of {expected} bytes")

        part_path.replace(dest_path)
    finally:
        if part_path.exists():
            part_path.unlink()
