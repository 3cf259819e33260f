#!/usr/bin/env python3
"""
Virtual Try-On Tracker

Main entry point for TryOnTracker. Tracks the shopper's torso with the
webcam, overlays the selected garment and recommends a size.

Usage:
    tryon-tracker [--catalog <path>] [--product <id>] [--camera <index>]
                  [--simulate] [--debug] [--no-window] [--max-frames N]
                  [--log-dir <path>]

Keys (preview window):
    q / ESC  quit
    n / p    next / previous product
    c        next color of the product
    s        stop or restart tracking

Exit Codes:
    0 - Success
    1 - Catalog error
    2 - Camera error
    3 - Runtime error
"""

import argparse
import asyncio
import math
import signal
import sys
import time
from typing import Optional

import cv2
import numpy as np

from tryon_tracker.config import (
    EXIT_SUCCESS,
    EXIT_CATALOG_ERROR,
    EXIT_CAMERA_ERROR,
    EXIT_RUNTIME_ERROR,
    CAMERA_WIDTH,
    CAMERA_HEIGHT,
    TrackerSettings,
)
from tryon_tracker.logger import setup_logging, get_logger
from tryon_tracker.catalog_loader import Catalog, CatalogLoadError, Product, load_catalog
from tryon_tracker.camera_manager import CameraManager, CameraError, SyntheticFrameSource, resolve_camera_index
from tryon_tracker.pose_detector import MediaPipePoseDetector, PoseDetector, ScriptedPoseDetector, make_candidate
from tryon_tracker.tracking_session import SessionState, TrackingSession, TrackingSnapshot
from tryon_tracker.overlay import load_garment_image, render_preview

# Preview refresh interval (seconds)
PREVIEW_INTERVAL = 1.0 / 60
WINDOW_NAME = "Virtual Try-On"


def simulated_pose_script(
    width: int = CAMERA_WIDTH,
    height: int = CAMERA_HEIGHT,
    frames: int = 300
) -> list[list]:
    """
    Script a shopper standing in frame and swaying gently.

    Every 50th frame has a poorly visible hip, so the visibility gate is
    exercised during simulation.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.
        frames: Number of scripted frames.

    Returns:
        Script entries for ScriptedPoseDetector.
    """
    script = []
    for i in range(frames):
        phase = 2 * math.pi * i / 90
        sway = 0.02 * math.sin(phase)
        tilt = 0.01 * math.sin(phase / 2)
        half_shoulder = 0.15 + 0.005 * math.cos(phase)
        hip_visibility = 0.2 if i % 50 == 49 else 0.85
        points = {
            "left_shoulder": (0.5 - half_shoulder + sway, 0.35 - tilt, 0.9),
            "right_shoulder": (0.5 + half_shoulder + sway, 0.35 + tilt, 0.92),
            "left_hip": (0.5 - 0.11 + sway, 0.7 - tilt, hip_visibility),
            "right_hip": (0.5 + 0.11 + sway, 0.7 + tilt, 0.88),
        }
        script.append([make_candidate(points, width, height)])
    return script


def _first_color(product: Optional[Product]) -> Optional[str]:
    if product is None or not product.colors:
        return None
    return product.colors[0]


class TryOnApp:
    """
    Main application for the virtual try-on preview.

    Wires the catalog, camera, pose detector and tracking session together
    and drives the preview window and keyboard controls.
    """

    def __init__(
        self,
        catalog: Catalog,
        product_id: Optional[str] = None,
        camera_index: int = 0,
        simulate: bool = False,
        show_window: bool = True,
        max_frames: int = 0,
        settings: Optional[TrackerSettings] = None
    ):
        """
        Initialize try-on application.

        Args:
            catalog: Loaded product catalog (may be empty).
            product_id: Product to start with (first product if None).
            camera_index: Camera device index.
            simulate: Use a scripted detector and synthetic frames.
            show_window: Show the OpenCV preview window.
            max_frames: Stop after this many frames (0 = run until quit).
            settings: Tracker tuning settings.
        """
        self.catalog = catalog
        self.camera_index = camera_index
        self.simulate = simulate
        self.show_window = show_window
        self.max_frames = max_frames

        self._logger = get_logger("App")
        self._running = False
        self._garments: dict[str, Optional[np.ndarray]] = {}
        self._last_size: Optional[str] = None

        self.product: Optional[Product] = None
        if product_id:
            self.product = catalog.get(product_id)
            if self.product is None:
                self._logger.warning(f"Product {product_id} not in catalog, using first product")
        if self.product is None and catalog.products:
            self.product = catalog.products[0]
        self.color: Optional[str] = _first_color(self.product)

        self.session = TrackingSession(
            camera_factory=self._create_camera,
            detector_factory=self._create_detector,
            size_chart=self.product.size_chart if self.product else None,
            settings=settings
        )
        self.session.subscribe(self._on_snapshot)

    def _create_camera(self):
        if self.simulate:
            return SyntheticFrameSource()
        return CameraManager(camera_index=self.camera_index)

    def _create_detector(self) -> PoseDetector:
        if self.simulate:
            return ScriptedPoseDetector(simulated_pose_script(), loop=True)
        return MediaPipePoseDetector()

    def _on_snapshot(self, snapshot: TrackingSnapshot) -> None:
        """Log size changes and session errors."""
        if snapshot.error:
            self._logger.error(snapshot.error)

        recommendation = snapshot.size_recommendation
        if recommendation is None:
            self._last_size = None
            return
        if recommendation.recommended_size != self._last_size:
            self._last_size = recommendation.recommended_size
            self._logger.info(
                f"Recommended size: {recommendation.recommended_size} "
                f"(shoulder {recommendation.shoulder_width} cm, "
                f"chest {recommendation.chest_width} cm, "
                f"{recommendation.match_percent}% match)"
            )

    def select_product(self, product: Optional[Product]) -> None:
        """Switch the garment being tried on."""
        if product is None:
            return
        self.product = product
        self.session.size_chart = product.size_chart
        self.color = _first_color(product)
        self._logger.info(f"Trying on: {product.name}")

    def cycle_color(self) -> Optional[str]:
        """Select the product's next color, wrapping to the first."""
        if self.product is None or not self.product.colors:
            return None
        colors = self.product.colors
        index = colors.index(self.color) if self.color in colors else -1
        self.color = colors[(index + 1) % len(colors)]
        self._logger.info(f"Color: {self.color}")
        return self.color

    def _garment_for(self, product: Optional[Product]) -> Optional[np.ndarray]:
        if product is None:
            return None
        if product.id not in self._garments:
            self._garments[product.id] = load_garment_image(product.image_url)
        return self._garments[product.id]

    async def run(self) -> int:
        """
        Start tracking and run the preview loop until quit.

        Returns:
            Exit code.
        """
        self._running = True
        self._logger.info("Starting try-on preview...")

        try:
            if not await self.session.start() and not self.show_window:
                return EXIT_CAMERA_ERROR

            start_time = time.perf_counter()
            while self._running:
                if self.max_frames and self.session.frames_read >= self.max_frames:
                    self._logger.info(f"Reached {self.max_frames} frames")
                    break

                if self.show_window:
                    await self._handle_key(self._show_preview(start_time))
                elif self.session.state == SessionState.ERROR:
                    return EXIT_CAMERA_ERROR

                await asyncio.sleep(PREVIEW_INTERVAL)

            return EXIT_SUCCESS
        finally:
            await self.stop()

    def _show_preview(self, start_time: float) -> int:
        """Draw one preview frame and return the pressed key (-1 if none)."""
        frame = self.session.latest_frame
        if frame is None:
            frame = np.zeros((CAMERA_HEIGHT, CAMERA_WIDTH, 3), dtype=np.uint8)

        elapsed = time.perf_counter() - start_time
        fps = self.session.frames_read / elapsed if elapsed > 0 else 0.0

        display = render_preview(
            frame,
            self.session.snapshot,
            garment=self._garment_for(self.product),
            product_name=self.product.name if self.product else None,
            garment_color=self.color,
            fps=fps
        )
        cv2.imshow(WINDOW_NAME, display)
        return cv2.waitKey(1) & 0xFF

    async def _handle_key(self, key: int) -> None:
        if key in (ord("q"), 27):  # q or ESC
            self._logger.info("Quit key pressed")
            self._running = False
        elif key == ord("n"):
            self.select_product(self.catalog.next_product(self.product.id if self.product else None))
        elif key == ord("p"):
            self.select_product(self.catalog.previous_product(self.product.id if self.product else None))
        elif key == ord("c"):
            self.cycle_color()
        elif key == ord("s"):
            if self.session.is_tracking:
                await self.session.stop()
            else:
                await self.session.start()

    def request_stop(self) -> None:
        """Ask the preview loop to exit (signal-safe)."""
        self._running = False

    async def stop(self) -> None:
        """Stop tracking and close the preview window."""
        self._running = False
        await self.session.stop()
        if self.show_window:
            cv2.destroyAllWindows()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Virtual Try-On Tracker - garment overlay and size recommendation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0  Success
  1  Catalog error (file not found, invalid JSON)
  2  Camera error (camera or pose model not available)
  3  Runtime error (unexpected error)

Examples:
  tryon-tracker --catalog products.json
  tryon-tracker --catalog products.json --product hoodie-01 --camera 1
  tryon-tracker --simulate --no-window --max-frames 120
"""
    )

    parser.add_argument(
        "--catalog",
        help="Path to product catalog JSON (default size chart if omitted)"
    )

    parser.add_argument(
        "--product",
        default=None,
        help="Product id to try on first"
    )

    parser.add_argument(
        "--camera", "-c",
        type=int,
        default=-1,
        help="Camera index (default: auto-detect)"
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a scripted shopper instead of the webcam and pose model"
    )

    parser.add_argument(
        "--no-window",
        action="store_true",
        help="Run without the preview window"
    )

    parser.add_argument(
        "--max-frames",
        type=int,
        default=0,
        help="Stop after this many frames (0 = run until quit)"
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for the rotating log file"
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)

    logger = setup_logging(debug=args.debug, log_dir=args.log_dir)
    logger.info("Virtual Try-On Tracker starting...")

    if args.catalog:
        try:
            catalog = load_catalog(args.catalog)
        except CatalogLoadError as e:
            logger.error(f"Failed to load catalog: {e}")
            return EXIT_CATALOG_ERROR
    else:
        catalog = Catalog()

    camera_index = 0
    if not args.simulate:
        try:
            camera_index = resolve_camera_index(args.camera)
        except CameraError as e:
            logger.error(f"Camera selection failed: {e}")
            return EXIT_CAMERA_ERROR

    app = TryOnApp(
        catalog=catalog,
        product_id=args.product,
        camera_index=camera_index,
        simulate=args.simulate,
        show_window=not args.no_window,
        max_frames=args.max_frames
    )

    async def run_app() -> int:
        # add_signal_handler is not available on Windows
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, app.request_stop)
        return await app.run()

    try:
        return asyncio.run(run_app())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_SUCCESS
    except Exception as e:
        logger.exception(f"Runtime error: {e}")
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
