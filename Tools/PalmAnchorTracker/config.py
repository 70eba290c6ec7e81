"""
Configuration constants for PalmAnchorTracker.

This module contains all tunable parameters for camera capture,
hand detection, pose extraction, viewport projection and smoothing.
"""

from dataclasses import dataclass, field
from typing import Final


# Camera configuration
CAMERA_WIDTH: Final[int] = 1280
CAMERA_HEIGHT: Final[int] = 720
CAMERA_FPS: Final[int] = 30
FRONT_CAMERA_INDEX: Final[int] = 0
REAR_CAMERA_INDEX: Final[int] = 1
FACING_USER: Final[str] = "user"  # Front-facing (selfie) camera, mirrored
FACING_ENVIRONMENT: Final[str] = "environment"  # Rear camera, not mirrored
DEFAULT_FACING_MODE: Final[str] = FACING_USER

# MediaPipe configuration
MEDIAPIPE_MAX_NUM_HANDS: Final[int] = 1
MEDIAPIPE_MIN_DETECTION_CONFIDENCE: Final[float] = 0.5
MEDIAPIPE_MIN_PRESENCE_CONFIDENCE: Final[float] = 0.5
MEDIAPIPE_MIN_TRACKING_CONFIDENCE: Final[float] = 0.5

# Hand landmark layout
NUM_HAND_LANDMARKS: Final[int] = 21

# =============================================================================
# Pose Extraction
# =============================================================================

# 0 = pure wrist anchor, 1 = pure middle-finger knuckle anchor.
# Tuned at 0 for the "object on palm" look, keep as is.
ANCHOR_BLEND_RATIO: Final[float] = 0.0

# Wrist -> middle knuckle distance (normalized) times this gives object scale
SCALE_MULTIPLIER: Final[float] = 12.0

# Squared length below which the projected wrist->knuckle vector is treated
# as vertical (hand pointing straight up/down) and the palm normal is used instead
VERTICAL_FORWARD_THRESHOLD: Final[float] = 0.01

# Vectors shorter than this are considered degenerate (coincident landmarks)
MIN_VECTOR_LENGTH: Final[float] = 1e-6

# =============================================================================
# Viewport Projection (virtual camera)
# =============================================================================
VIRTUAL_CAMERA_DISTANCE: Final[float] = 5.0  # World units from origin
VIRTUAL_CAMERA_FOV_DEG: Final[float] = 50.0  # Vertical field of view
ANCHOR_DEPTH: Final[float] = -10.0  # Fixed world Z of the anchored object

# =============================================================================
# Presence & Smoothing
# =============================================================================
PRESENCE_HYSTERESIS_MS: Final[float] = 50.0  # Silence required before hiding

# Per display frame blend factors (0 = frozen, 1 = snap)
POSITION_BLEND: Final[float] = 0.2
SCALE_BLEND: Final[float] = 0.1  # Slower than position, reads as "breathing"
ORIENTATION_BLEND: Final[float] = 0.15

DISPLAY_FPS: Final[int] = 60

# Logging
LOG_FILENAME: Final[str] = "palm_anchor_tracker.log"
LOG_MAX_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: Final[int] = 3

# Exit codes
EXIT_SUCCESS: Final[int] = 0
EXIT_PROFILE_ERROR: Final[int] = 1
EXIT_CAMERA_ERROR: Final[int] = 2
EXIT_RUNTIME_ERROR: Final[int] = 3
EXIT_MODEL_ERROR: Final[int] = 4


@dataclass
class ExtractorSettings:
    """Container for pose extraction parameters."""

    anchor_blend_ratio: float = ANCHOR_BLEND_RATIO
    scale_multiplier: float = SCALE_MULTIPLIER
    vertical_forward_threshold: float = VERTICAL_FORWARD_THRESHOLD
    min_vector_length: float = MIN_VECTOR_LENGTH
    include_depth_in_scale: bool = False  # Image-plane distance only by default


@dataclass
class ViewportSettings:
    """Container for virtual camera parameters used by projection and rendering."""

    fov_deg: float = VIRTUAL_CAMERA_FOV_DEG
    distance: float = VIRTUAL_CAMERA_DISTANCE
    anchor_depth: float = ANCHOR_DEPTH


@dataclass
class SmoothingSettings:
    """Container for per-channel blend factors."""

    position: float = POSITION_BLEND
    scale: float = SCALE_BLEND
    orientation: float = ORIENTATION_BLEND


@dataclass
class DetectorSettings:
    """Container for MediaPipe hand landmarker settings."""

    max_num_hands: int = MEDIAPIPE_MAX_NUM_HANDS
    min_detection_confidence: float = MEDIAPIPE_MIN_DETECTION_CONFIDENCE
    min_presence_confidence: float = MEDIAPIPE_MIN_PRESENCE_CONFIDENCE
    min_tracking_confidence: float = MEDIAPIPE_MIN_TRACKING_CONFIDENCE


@dataclass
class TrackerSettings:
    """All settings of the anchor pipeline, fixed at construction."""

    hysteresis_ms: float = PRESENCE_HYSTERESIS_MS
    extractor: ExtractorSettings = field(default_factory=ExtractorSettings)
    viewport: ViewportSettings = field(default_factory=ViewportSettings)
    smoothing: SmoothingSettings = field(default_factory=SmoothingSettings)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
