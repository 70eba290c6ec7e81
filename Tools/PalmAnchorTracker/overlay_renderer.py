"""
Overlay renderer for PalmAnchorTracker.

Draws the smoothed anchor pose over the video frame with OpenCV, using
the same virtual perspective camera the viewport projector assumes.
A wireframe box stands in for the anchored object, with its base on the
palm, plus an axis gizmo.
"""

import math
from typing import Optional

import cv2
import numpy as np

from .anchor_pipeline import AnchorFrame
from .config import ViewportSettings
from .geometry import quaternion_to_matrix
from .landmarks import HandLandmarks

# Hand connections (same as MediaPipe)
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),  # Thumb
    (0, 5), (5, 6), (6, 7), (7, 8),  # Index
    (0, 9), (9, 10), (10, 11), (11, 12),  # Middle
    (0, 13), (13, 14), (14, 15), (15, 16),  # Ring
    (0, 17), (17, 18), (18, 19), (19, 20),  # Pinky
    (5, 9), (9, 13), (13, 17)  # Palm
]

# Near plane for the virtual camera (world units)
NEAR_PLANE = 0.01

# Object-space box, base at y=0 so it sits on the palm
BOX_HALF_WIDTH = 0.35
BOX_HEIGHT = 0.7
BOX_VERTICES = np.array([
    [-BOX_HALF_WIDTH, 0.0, -BOX_HALF_WIDTH],
    [BOX_HALF_WIDTH, 0.0, -BOX_HALF_WIDTH],
    [BOX_HALF_WIDTH, 0.0, BOX_HALF_WIDTH],
    [-BOX_HALF_WIDTH, 0.0, BOX_HALF_WIDTH],
    [-BOX_HALF_WIDTH, BOX_HEIGHT, -BOX_HALF_WIDTH],
    [BOX_HALF_WIDTH, BOX_HEIGHT, -BOX_HALF_WIDTH],
    [BOX_HALF_WIDTH, BOX_HEIGHT, BOX_HALF_WIDTH],
    [-BOX_HALF_WIDTH, BOX_HEIGHT, BOX_HALF_WIDTH],
])
BOX_EDGES = [
    (0, 1), (1, 2), (2, 3), (3, 0),  # Base
    (4, 5), (5, 6), (6, 7), (7, 4),  # Top
    (0, 4), (1, 5), (2, 6), (3, 7),  # Sides
]

AXIS_LENGTH = 0.8
AXIS_COLORS = [(0, 0, 255), (0, 255, 0), (255, 0, 0)]  # X red, Y green, Z blue (BGR)
BOX_COLOR = (0, 215, 255)


class OverlayRenderer:
    """
    Renders an AnchorFrame onto BGR video frames.

    Attributes:
        settings: Virtual camera parameters.
    """

    def __init__(self, settings: Optional[ViewportSettings] = None):
        """
        Initialize overlay renderer.

        Args:
            settings: Virtual camera parameters, or None for defaults.
        """
        self.settings = settings or ViewportSettings()
        self._tan_half_fov = math.tan(math.radians(self.settings.fov_deg) / 2.0)

    def project_points(
        self,
        points: np.ndarray,
        width: int,
        height: int
    ) -> list[Optional[tuple[int, int]]]:
        """
        Project world points to pixel coordinates.

        Args:
            points: (N, 3) world coordinates.
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            Pixel (x, y) per point, None for points behind the near plane.
        """
        aspect = width / height
        pixels: list[Optional[tuple[int, int]]] = []

        for x, y, z in np.asarray(points, dtype=np.float64):
            depth = self.settings.distance - z
            if depth <= NEAR_PLANE:
                pixels.append(None)
                continue

            ndc_x = x / (depth * self._tan_half_fov * aspect)
            ndc_y = y / (depth * self._tan_half_fov)
            pixels.append((
                int(round((ndc_x + 1.0) / 2.0 * width)),
                int(round((1.0 - ndc_y) / 2.0 * height)),
            ))

        return pixels

    def object_to_world(self, frame: AnchorFrame, local_points: np.ndarray) -> np.ndarray:
        """Apply scale, rotation and translation of the anchor to local points."""
        rotation = quaternion_to_matrix(np.array(frame.orientation))
        scaled = np.asarray(local_points, dtype=np.float64) * frame.scale
        return scaled @ rotation.T + np.array(frame.position)

    def draw_anchor(self, image: np.ndarray, frame: AnchorFrame) -> np.ndarray:
        """Draw the box and axes of a visible anchor (image modified in place)."""
        if not frame.visible:
            return image

        h, w = image.shape[:2]

        corners = self.project_points(self.object_to_world(frame, BOX_VERTICES), w, h)
        for start, end in BOX_EDGES:
            if corners[start] is not None and corners[end] is not None:
                cv2.line(image, corners[start], corners[end], BOX_COLOR, 2, cv2.LINE_AA)

        axes_local = np.vstack([np.zeros(3), np.eye(3) * AXIS_LENGTH])
        origin, *tips = self.project_points(self.object_to_world(frame, axes_local), w, h)
        if origin is not None:
            for tip, color in zip(tips, AXIS_COLORS):
                if tip is not None:
                    cv2.line(image, origin, tip, color, 2, cv2.LINE_AA)
            cv2.circle(image, origin, 4, (255, 255, 255), -1)

        return image

    def render(
        self,
        frame_bgr: np.ndarray,
        anchor: AnchorFrame,
        mirrored: bool,
        status_lines: Optional[list[str]] = None,
        hand: Optional[HandLandmarks] = None
    ) -> np.ndarray:
        """
        Compose the display image.

        The video is flipped for a front camera (selfie view) before the
        overlay is drawn, since the anchor is already in mirrored space.

        Args:
            frame_bgr: Camera frame (not modified).
            anchor: Smoothed anchor state.
            mirrored: Front-facing camera.
            status_lines: Text lines drawn in the top-left corner.
            hand: Optional raw landmarks to draw for debugging.

        Returns:
            New BGR image.
        """
        display = frame_bgr.copy()

        if hand is not None:
            draw_landmarks(display, hand)

        if mirrored:
            display = cv2.flip(display, 1)

        self.draw_anchor(display, anchor)

        for i, line in enumerate(status_lines or []):
            cv2.putText(
                display, line, (10, 30 + i * 28),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 255), 2
            )

        return display


def draw_landmarks(
    image: np.ndarray,
    hand_landmarks: HandLandmarks,
    draw_connections: bool = True
) -> np.ndarray:
    """
    Draw hand landmarks on an image.

    Args:
        image: BGR image to draw on (modified in place).
        hand_landmarks: Detected hand landmarks.
        draw_connections: Draw connections between landmarks.

    Returns:
        Image with landmarks drawn.
    """
    h, w = image.shape[:2]
    points = hand_landmarks.landmarks

    if draw_connections:
        for start_idx, end_idx in HAND_CONNECTIONS:
            if end_idx >= len(points):
                continue
            start, end = points[start_idx], points[end_idx]
            cv2.line(
                image,
                (int(start.x * w), int(start.y * h)),
                (int(end.x * w), int(end.y * h)),
                (0, 0, 255), 2
            )

    for lm in points:
        cv2.circle(image, (int(lm.x * w), int(lm.y * h)), 3, (0, 255, 0), -1)

    return image
