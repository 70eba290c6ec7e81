#!/usr/bin/env python3
"""
Palm Anchor Tracker

Main entry point for the PalmAnchorTracker module.
Anchors a virtual object on the palm of a tracked hand using MediaPipe
hand landmarks and draws it over the live camera feed.

Usage:
    palm-anchor-tracker [--profile <path>] [--camera-facing user|environment]
                        [--model <path>] [--headless] [--debug]

Exit Codes:
    0 - Success
    1 - Profile error
    2 - Camera error
    3 - Runtime error
    4 - Model error
"""

import argparse
import asyncio
import signal
import sys
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

from .anchor_pipeline import AnchorFrame, AnchorPipeline
from .camera_manager import CameraError, CameraManager
from .config import (
    DISPLAY_FPS,
    EXIT_CAMERA_ERROR,
    EXIT_MODEL_ERROR,
    EXIT_PROFILE_ERROR,
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    FACING_ENVIRONMENT,
    FACING_USER,
)
from .hand_detector import HandDetector
from .landmarks import HandLandmarks
from .logger import get_logger, setup_logging
from .model_manager import ModelDownloadError
from .overlay_renderer import OverlayRenderer
from .profile_loader import (
    ProfileLoadError,
    TrackerProfile,
    create_default_profile,
    load_profile,
)

WINDOW_NAME = "Palm Anchor Tracker"

# Idle wait when the camera has no new frame (seconds)
FRAME_RETRY_DELAY = 0.005


class AppState(Enum):
    """Lifecycle of the application, shown in the status overlay."""
    IDLE = "idle"
    LOADING_MODEL = "loading_model"
    REQUESTING_PERMISSION = "requesting_permission"
    RUNNING = "running"
    ERROR = "error"


class PalmAnchorApp:
    """
    Main application for palm-anchored overlays.

    Runs two cooperative asyncio tasks on one event loop:
    a detection loop (capture, landmark detection, presence and pose
    extraction) and a display loop (smoothing tick and rendering at
    DISPLAY_FPS). Both feed through a shared AnchorPipeline.
    """

    def __init__(
        self,
        profile: TrackerProfile,
        facing_mode: Optional[str] = None,
        model_path: Optional[str] = None,
        headless: bool = False,
        debug: bool = False
    ):
        """
        Initialize palm anchor application.

        Args:
            profile: Loaded profile configuration.
            facing_mode: Initial camera, overrides the profile if given.
            model_path: Hand landmarker model bundle, or None for the cached download.
            headless: Run without a window.
            debug: Draw raw landmarks and log poses.
        """
        self.profile = profile
        self.facing_mode = facing_mode or profile.facing_mode
        self.model_path = model_path
        self.headless = headless
        self.debug = debug

        self._logger = get_logger("App")
        self._state = AppState.IDLE
        self._running = False
        self._stopped = False
        self._stop_requested = False

        # Components
        self._camera: Optional[CameraManager] = None
        self._detector: Optional[HandDetector] = None
        self._pipeline: Optional[AnchorPipeline] = None
        self._renderer = OverlayRenderer(profile.settings.viewport)

        # Event loop plumbing
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None
        self._tasks: list[asyncio.Task] = []
        self._inflight: Optional[asyncio.Future] = None
        self._toggle_requested = False
        self._loop_error: Optional[BaseException] = None

        # Latest inputs for display
        self._latest_frame: Optional[np.ndarray] = None
        self._latest_hand: Optional[HandLandmarks] = None
        self._last_detected_ts = -1

        # Stats
        self._frame_count = 0
        self._display_count = 0
        self._start_time = 0.0
        self._last_fps_time = 0.0
        self._last_fps_count = 0
        self._fps = 0.0

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def pipeline(self) -> Optional[AnchorPipeline]:
        return self._pipeline

    def _set_state(self, state: AppState) -> None:
        if state != self._state:
            self._logger.debug(f"State: {self._state.value} -> {state.value}")
            self._state = state

    def initialize(self) -> None:
        """
        Initialize detector, camera and pipeline.

        Raises:
            ModelDownloadError: If the model cannot be fetched.
            CameraError: If no camera can be opened.
        """
        self._logger.info(f"Initializing palm anchor tracker (profile: {self.profile.name})...")

        self._set_state(AppState.LOADING_MODEL)
        try:
            self._detector = HandDetector(self.profile.settings.detector, self.model_path)
            self._detector.initialize()
        except Exception:
            self._set_state(AppState.ERROR)
            raise

        self._set_state(AppState.REQUESTING_PERMISSION)
        self._camera = CameraManager(
            facing_mode=self.facing_mode,
            front_index=self.profile.front_camera_index,
            rear_index=self.profile.rear_camera_index
        )
        try:
            self._camera.open()
        except CameraError:
            self._set_state(AppState.ERROR)
            raise

        self._build_pipeline()
        self._logger.info("Palm anchor tracker initialized")

    def _build_pipeline(self) -> None:
        """Create a fresh pipeline for the current camera's mirroring and aspect."""
        self._pipeline = AnchorPipeline(
            settings=self.profile.settings,
            mirrored=self._camera.is_mirrored,
            aspect=self._camera.aspect
        )
        self._latest_frame = None
        self._latest_hand = None

    async def run(self) -> None:
        """
        Run detection and display loops until stopped.

        Raises:
            RuntimeError: If initialize() has not been called.
        """
        if self._pipeline is None or self._camera is None:
            raise RuntimeError("initialize() must be called before run()")

        if self._stop_requested:
            self._logger.info("Stop requested during startup, not starting loops")
            self.stop()
            return

        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._running = True
        self._start_time = time.perf_counter()
        self._last_fps_time = self._start_time

        self._logger.info("Starting tracking loops...")
        self._start_loops()
        self._set_state(AppState.RUNNING)

        try:
            while self._running:
                await self._wake.wait()
                self._wake.clear()

                if self._toggle_requested and self._running:
                    self._toggle_requested = False
                    await self.toggle_camera()
        finally:
            await self._stop_loops()
            self.stop()

        if self._loop_error is not None:
            raise self._loop_error

    def _start_loops(self) -> None:
        self._tasks = [
            asyncio.create_task(self._detection_loop(), name="detection"),
            asyncio.create_task(self._display_loop(), name="display"),
        ]
        for task in self._tasks:
            task.add_done_callback(self._on_loop_done)

    async def _stop_loops(self) -> None:
        """Cancel both loops and wait for them, including in-flight camera work."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._inflight is not None:
            await asyncio.wait([self._inflight])
            self._inflight = None

    def _on_loop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._logger.error(f"{task.get_name()} loop failed: {error}")
            self._loop_error = error
            self._set_state(AppState.ERROR)
            self.request_stop()

    async def _offload(self, func: Callable, *args):
        """Run a blocking call in a worker thread, tracked so shutdown can wait for it."""
        self._inflight = asyncio.ensure_future(asyncio.to_thread(func, *args))
        return await asyncio.shield(self._inflight)

    async def _detection_loop(self) -> None:
        """Capture frames and feed detections into the pipeline."""
        camera, detector, pipeline = self._camera, self._detector, self._pipeline

        while self._running:
            result = await self._offload(camera.read_frame)
            if result is None:
                await asyncio.sleep(FRAME_RETRY_DELAY)
                continue

            frame, timestamp_ms = result
            self._latest_frame = frame

            if timestamp_ms <= self._last_detected_ts:
                await asyncio.sleep(0)
                continue
            self._last_detected_ts = timestamp_ms

            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

            def detect() -> Optional[HandLandmarks]:
                hand = detector.detect(rgb, timestamp_ms)
                self._latest_hand = hand
                return hand

            pipeline.run_detection(detect, float(timestamp_ms))
            self._frame_count += 1

            # Yield so the display loop keeps its cadence
            await asyncio.sleep(0)

    async def _display_loop(self) -> None:
        """Advance smoothing and draw once per display frame."""
        pipeline = self._pipeline
        interval = 1.0 / DISPLAY_FPS

        while self._running:
            started = time.perf_counter()

            anchor = pipeline.tick()
            self._display_count += 1
            self._update_fps()

            if self.headless:
                if self.debug and self._display_count % DISPLAY_FPS == 0:
                    self._log_pose(anchor)
            else:
                self._show_frame(anchor)
                self._handle_key(cv2.waitKey(1) & 0xFF)

            elapsed = time.perf_counter() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    def _show_frame(self, anchor: AnchorFrame) -> None:
        frame = self._latest_frame
        if frame is None:
            return

        hand_status = "Hand: tracking" if anchor.visible else "Hand: show your palm"
        status_lines = [
            f"State: {self._state.value}",
            hand_status,
            f"Camera: {self._camera.facing_mode}  FPS: {self._fps:.1f}",
        ]

        display = self._renderer.render(
            frame,
            anchor,
            mirrored=self._camera.is_mirrored,
            status_lines=status_lines,
            hand=self._latest_hand if self.debug else None
        )
        cv2.imshow(WINDOW_NAME, display)

    def _handle_key(self, key: int) -> None:
        if key == ord('q') or key == 27:  # q or ESC
            self._logger.info("Quit key pressed")
            self.request_stop()
        elif key == ord('c'):
            self._logger.info("Camera toggle requested")
            self.request_toggle()

    def _log_pose(self, anchor: AnchorFrame) -> None:
        x, y, z = anchor.position
        self._logger.debug(
            f"visible={anchor.visible} position=({x:.3f}, {y:.3f}, {z:.3f}) "
            f"scale={anchor.scale:.3f} orientation={tuple(round(v, 3) for v in anchor.orientation)}"
        )

    def _update_fps(self) -> None:
        """Update detection FPS calculation."""
        current_time = time.perf_counter()
        elapsed = current_time - self._last_fps_time

        if elapsed >= 1.0:
            self._fps = (self._frame_count - self._last_fps_count) / elapsed
            self._last_fps_count = self._frame_count
            self._last_fps_time = current_time

    def _wake_supervisor(self) -> None:
        if self._loop is not None and self._wake is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._wake.set)

    def request_toggle(self) -> None:
        """Ask the supervisor to switch between front and rear camera."""
        self._toggle_requested = True
        self._wake_supervisor()

    def request_stop(self) -> None:
        """Ask the loops to finish; safe to call from a signal handler."""
        self._stop_requested = True
        self._running = False
        self._wake_supervisor()

    async def toggle_camera(self) -> None:
        """
        Switch facing mode and restart the loops on the new camera.

        Both loops are cancelled and awaited before the camera and
        pipeline are rebuilt.

        Raises:
            CameraError: If no camera can be opened after switching.
        """
        await self._stop_loops()

        self._camera.close()
        facing_mode = self._camera.toggle_facing_mode()
        self._logger.info(f"Switching to {facing_mode} camera")

        self._set_state(AppState.REQUESTING_PERMISSION)
        try:
            self._camera.open()
        except CameraError:
            self._set_state(AppState.ERROR)
            raise

        self._build_pipeline()
        self._set_state(AppState.RUNNING)
        self._start_loops()

    def stop(self) -> None:
        """Stop the loops and release resources."""
        self._running = False
        if self._stopped:
            return
        self._stopped = True
        self._logger.info("Stopping palm anchor tracker...")

        if self._detector:
            self._detector.close()

        if self._camera:
            self._camera.close()

        if not self.headless:
            cv2.destroyAllWindows()

        if self._state != AppState.ERROR:
            self._set_state(AppState.IDLE)

        # Print stats
        if self._frame_count > 0:
            elapsed = time.perf_counter() - self._start_time
            avg_fps = self._frame_count / elapsed if elapsed > 0 else 0
            self._logger.info(
                f"Tracking stopped. Processed {self._frame_count} frames "
                f"in {elapsed:.1f}s ({avg_fps:.1f} FPS average)"
            )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Palm Anchor Tracker - Virtual objects anchored on your palm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0  Success
  1  Profile error (file not found, invalid JSON)
  2  Camera error (camera not available)
  3  Runtime error (unexpected error)
  4  Model error (model missing or download failed)

Keys:
  q / ESC  Quit
  c        Switch between front and rear camera

Examples:
  palm-anchor-tracker
  palm-anchor-tracker --profile rabbit.json --camera-facing environment
  palm-anchor-tracker --headless --debug
"""
    )

    parser.add_argument(
        "--profile", "-p",
        default=None,
        help="Path to JSON profile file (default: built-in settings)"
    )

    parser.add_argument(
        "--camera-facing", "-c",
        choices=[FACING_USER, FACING_ENVIRONMENT],
        default=None,
        help="Initial camera: user (front, mirrored) or environment (rear)"
    )

    parser.add_argument(
        "--model", "-m",
        default=None,
        help="Path to hand_landmarker.task (default: download and cache)"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a display window"
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging and landmark drawing"
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)

    # Setup logging
    logger = setup_logging(debug=args.debug)
    logger.info("Palm Anchor Tracker starting...")

    # Load profile
    if args.profile:
        try:
            profile = load_profile(args.profile)
        except ProfileLoadError as e:
            logger.error(f"Failed to load profile: {e}")
            return EXIT_PROFILE_ERROR
    else:
        profile = create_default_profile()

    if args.model and not Path(args.model).is_file():
        logger.error(f"Model file not found: {args.model}")
        return EXIT_MODEL_ERROR

    app: Optional[PalmAnchorApp] = None

    try:
        app = PalmAnchorApp(
            profile=profile,
            facing_mode=args.camera_facing,
            model_path=args.model,
            headless=args.headless,
            debug=args.debug
        )

        # Setup signal handler for graceful shutdown
        def signal_handler(sig, frame):
            logger.info("Received shutdown signal")
            if app:
                app.request_stop()

        signal.signal(signal.SIGINT, signal_handler)
        # SIGTERM is not available on Windows
        if sys.platform != 'win32':
            signal.signal(signal.SIGTERM, signal_handler)

        # Initialize and run
        app.initialize()
        asyncio.run(app.run())

        return EXIT_SUCCESS

    except ModelDownloadError as e:
        logger.error(f"Model error: {e}")
        return EXIT_MODEL_ERROR
    except CameraError as e:
        logger.error(f"Camera error: {e}")
        return EXIT_CAMERA_ERROR
    except Exception as e:
        logger.exception(f"Runtime error: {e}")
        return EXIT_RUNTIME_ERROR
    finally:
        if app:
            app.stop()


if __name__ == "__main__":
    sys.exit(main())
