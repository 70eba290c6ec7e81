"""
PalmAnchorTracker - Virtual objects anchored on the palm using MediaPipe hand landmarks.

The core pipeline (presence gate, pose extractor, viewport projector and
temporal smoother) is importable without MediaPipe; HandDetector and the
application entry point live in hand_detector and palm_anchor_tracker.
"""

__version__ = "1.0.0"
__author__ = "AROverlay Team"

from .config import TrackerSettings
from .landmarks import HandLandmarks, Landmark, LandmarkIndex
from .presence_gate import PresenceGate, PresenceState
from .pose_extractor import PoseExtractor, RawPose, ForwardSource
from .viewport_projector import ViewportProjector
from .temporal_smoother import TemporalSmoother, SmoothedPose
from .anchor_pipeline import AnchorPipeline, AnchorFrame
from .profile_loader import TrackerProfile, ProfileLoadError, load_profile
from .camera_manager import CameraManager, CameraError

__all__ = [
    "TrackerSettings",
    "HandLandmarks",
    "Landmark",
    "LandmarkIndex",
    "PresenceGate",
    "PresenceState",
    "PoseExtractor",
    "RawPose",
    "ForwardSource",
    "ViewportProjector",
    "TemporalSmoother",
    "SmoothedPose",
    "AnchorPipeline",
    "AnchorFrame",
    "TrackerProfile",
    "ProfileLoadError",
    "load_profile",
    "CameraManager",
    "CameraError",
]
