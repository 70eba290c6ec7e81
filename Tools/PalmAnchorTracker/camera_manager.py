"""
Camera manager for PalmAnchorTracker.

Provides an OpenCV VideoCapture wrapper with facing-mode selection
(front "user" camera vs rear "environment" camera) and frame timestamps.
"""

import sys
import time
from typing import Optional

import cv2
import numpy as np

from .config import (
    CAMERA_WIDTH,
    CAMERA_HEIGHT,
    CAMERA_FPS,
    FRONT_CAMERA_INDEX,
    REAR_CAMERA_INDEX,
    FACING_USER,
    FACING_ENVIRONMENT,
    DEFAULT_FACING_MODE,
)
from .logger import get_logger

logger = get_logger("CameraManager")


class CameraError(Exception):
    """Raised when camera operations fail."""
    pass


def _open_capture(index: int) -> Optional[cv2.VideoCapture]:
    """Open a capture device, preferring DirectShow on Windows."""
    if sys.platform == "win32":
        capture = cv2.VideoCapture(index, cv2.CAP_DSHOW)
        if capture.isOpened():
            return capture
        capture.release()
        logger.debug("DirectShow failed, trying default backend")

    capture = cv2.VideoCapture(index)
    if capture.isOpened():
        return capture
    capture.release()
    return None


class CameraManager:
    """
    Manages webcam capture using OpenCV VideoCapture.

    Attributes:
        facing_mode: "user" (front, mirrored) or "environment" (rear).
        front_index: Device index of the front camera.
        rear_index: Device index of the rear camera.
        width: Requested capture width in pixels.
        height: Requested capture height in pixels.
        fps: Requested frames per second.
    """

    def __init__(
        self,
        facing_mode: str = DEFAULT_FACING_MODE,
        front_index: int = FRONT_CAMERA_INDEX,
        rear_index: int = REAR_CAMERA_INDEX,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
        fps: int = CAMERA_FPS
    ):
        """
        Initialize camera manager.

        Args:
            facing_mode: Which camera to open first.
            front_index: Device index used for the "user" facing mode.
            rear_index: Device index used for the "environment" facing mode.
            width: Desired capture width.
            height: Desired capture height.
            fps: Desired frame rate.
        """
        if facing_mode not in (FACING_USER, FACING_ENVIRONMENT):
            raise CameraError(f"Unknown facing mode '{facing_mode}'")

        self.facing_mode = facing_mode
        self.front_index = front_index
        self.rear_index = rear_index
        self.width = width
        self.height = height
        self.fps = fps

        self._capture: Optional[cv2.VideoCapture] = None
        self._is_open = False
        self._last_timestamp_ms = 0

    @property
    def is_open(self) -> bool:
        """Check if camera is currently open."""
        return self._is_open and self._capture is not None

    @property
    def is_mirrored(self) -> bool:
        """Front-facing cameras are shown mirrored (selfie view)."""
        return self.facing_mode == FACING_USER

    @property
    def actual_width(self) -> int:
        """Get actual capture width."""
        if self._capture:
            return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        return 0

    @property
    def actual_height(self) -> int:
        if self._capture:
            return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return 0

    @property
    def aspect(self) -> float:
        """Width / height of the opened stream, requested size if unknown."""
        w, h = self.actual_width, self.actual_height
        if w > 0 and h > 0:
            return w / h
        return self.width / self.height

    def open(self) -> None:
        """
        Open the camera for the current facing mode.

        Falls back to any available camera if the specific one
        cannot be opened.

        Raises:
            CameraError: If no camera can be opened.
        """
        if self._is_open:
            logger.warning("Camera already open, closing first")
            self.close()

        index = self.front_index if self.facing_mode == FACING_USER else self.rear_index
        logger.info(f"Opening {self.facing_mode} camera (index {index})...")

        capture = _open_capture(index)
        if capture is None:
            logger.warning(f"Camera {index} unavailable, retrying with any camera")
            for fallback in list_available_cameras():
                capture = _open_capture(fallback)
                if capture is not None:
                    index = fallback
                    break

        if capture is None:
            raise CameraError(f"Failed to open a camera for facing mode '{self.facing_mode}'")

        self._capture = capture

        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture.set(cv2.CAP_PROP_FPS, self.fps)
        self._capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)  # Minimize latency

        actual_w = self.actual_width
        actual_h = self.actual_height
        logger.info(
            f"Camera {index} opened: {actual_w}x{actual_h} @ "
            f"{self._capture.get(cv2.CAP_PROP_FPS):.1f} FPS"
        )

        if actual_w != self.width or actual_h != self.height:
            logger.warning(
                f"Requested {self.width}x{self.height}, got {actual_w}x{actual_h}"
            )

        self._is_open = True

    def close(self) -> None:
        """Close the camera and release resources."""
        if self._capture:
            logger.info("Closing camera")
            self._capture.release()
            self._capture = None
        self._is_open = False

    def toggle_facing_mode(self) -> str:
        """
        Switch between front and rear facing modes.

        The camera must be reopened for the change to take effect.

        Returns:
            The new facing mode.
        """
        self.facing_mode = FACING_ENVIRONMENT if self.facing_mode == FACING_USER else FACING_USER
        return self.facing_mode

    def read_frame(self) -> Optional[tuple[np.ndarray, int]]:
        """
        Read a single BGR frame.

        Returns:
            (frame, timestamp_ms), or None if read failed or the frame
            has no pixels yet.

        Raises:
            CameraError: If camera is not open.
        """
        if not self._is_open or self._capture is None:
            raise CameraError("Camera is not open")

        ret, frame = self._capture.read()

        if not ret or frame is None:
            logger.warning("Failed to read frame from camera")
            return None

        if frame.shape[0] == 0 or frame.shape[1] == 0:
            return None

        # Strictly increasing, MediaPipe VIDEO mode rejects repeats
        timestamp_ms = max(int(time.perf_counter() * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        return frame, timestamp_ms

    def __enter__(self) -> "CameraManager":
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def list_available_cameras(max_index: int = 10) -> list[int]:
    """
    Enumerate available camera indices.

    Args:
        max_index: Maximum index to probe.

    Returns:
        List of available camera indices.
    """
    available = []

    for i in range(max_index):
        cap = _open_capture(i)
        if cap is not None:
            available.append(i)
            cap.release()

    logger.debug(f"Available cameras: {available}")
    return available
