"""
Profile loader for PalmAnchorTracker.

Loads and validates JSON tracking profiles. Profile properties use
camelCase, e.g.:

    {
      "name": "Rabbit on palm",
      "facingMode": "user",
      "frontCameraIndex": 0,
      "rearCameraIndex": 1,
      "hysteresisMs": 50,
      "anchor": {"blendRatio": 0.0, "scaleMultiplier": 12.0},
      "smoothing": {"position": 0.2, "scale": 0.1, "orientation": 0.15},
      "virtualCamera": {"fovDeg": 50.0, "distance": 5.0, "anchorDepth": -10.0},
      "detection": {"minDetectionConfidence": 0.5}
    }

Every section and key is optional except "name".
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from .config import (
    DEFAULT_FACING_MODE,
    FACING_ENVIRONMENT,
    FACING_USER,
    FRONT_CAMERA_INDEX,
    REAR_CAMERA_INDEX,
    DetectorSettings,
    ExtractorSettings,
    SmoothingSettings,
    TrackerSettings,
    ViewportSettings,
)
from .logger import get_logger

logger = get_logger("ProfileLoader")


class ProfileLoadError(Exception):
    """Raised when profile loading or validation fails."""
    pass


@dataclass
class TrackerProfile:
    """
    Profile configuration loaded from JSON.

    Attributes:
        name: Profile display name.
        facing_mode: Initial camera, "user" or "environment".
        front_camera_index: Device index of the front camera.
        rear_camera_index: Device index of the rear camera.
        settings: Anchor pipeline settings.
    """

    name: str
    facing_mode: str = DEFAULT_FACING_MODE
    front_camera_index: int = FRONT_CAMERA_INDEX
    rear_camera_index: int = REAR_CAMERA_INDEX
    settings: TrackerSettings = field(default_factory=TrackerSettings)


def _get_number(
    section: dict[str, Any],
    key: str,
    default: float,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None
) -> float:
    """Read a numeric value, falling back to default and clamping to range."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Invalid value for '{key}': {value!r}, using {default}")
        return default

    value = float(value)
    clamped = value
    if minimum is not None:
        clamped = max(minimum, clamped)
    if maximum is not None:
        clamped = min(maximum, clamped)
    if clamped != value:
        logger.warning(f"'{key}'={value} out of range, clamped to {clamped}")
    return clamped


def _get_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        logger.warning(f"Invalid value for '{key}': {value!r}, using {default}")
        return default
    return value


def _get_section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key, {})
    if not isinstance(section, dict):
        logger.warning(f"Section '{key}' is not an object, using defaults")
        return {}
    return section


def _parse_settings(data: dict[str, Any]) -> TrackerSettings:
    """Build TrackerSettings from the profile sections."""
    defaults = TrackerSettings()

    anchor = _get_section(data, "anchor")
    include_depth = anchor.get("includeDepthInScale", defaults.extractor.include_depth_in_scale)
    if not isinstance(include_depth, bool):
        include_depth = defaults.extractor.include_depth_in_scale
    extractor = ExtractorSettings(
        anchor_blend_ratio=_get_number(anchor, "blendRatio", defaults.extractor.anchor_blend_ratio, 0.0, 1.0),
        scale_multiplier=_get_number(anchor, "scaleMultiplier", defaults.extractor.scale_multiplier, 0.0),
        vertical_forward_threshold=_get_number(
            anchor, "verticalForwardThreshold", defaults.extractor.vertical_forward_threshold, 0.0
        ),
        include_depth_in_scale=include_depth,
    )

    smoothing_data = _get_section(data, "smoothing")
    smoothing = SmoothingSettings(
        position=_get_number(smoothing_data, "position", defaults.smoothing.position, 0.0, 1.0),
        scale=_get_number(smoothing_data, "scale", defaults.smoothing.scale, 0.0, 1.0),
        orientation=_get_number(smoothing_data, "orientation", defaults.smoothing.orientation, 0.0, 1.0),
    )

    camera = _get_section(data, "virtualCamera")
    viewport = ViewportSettings(
        fov_deg=_get_number(camera, "fovDeg", defaults.viewport.fov_deg, 1.0, 179.0),
        distance=_get_number(camera, "distance", defaults.viewport.distance, 0.0),
        anchor_depth=_get_number(camera, "anchorDepth", defaults.viewport.anchor_depth),
    )

    detection = _get_section(data, "detection")
    detector = DetectorSettings(
        min_detection_confidence=_get_number(
            detection, "minDetectionConfidence", defaults.detector.min_detection_confidence, 0.0, 1.0
        ),
        min_presence_confidence=_get_number(
            detection, "minPresenceConfidence", defaults.detector.min_presence_confidence, 0.0, 1.0
        ),
        min_tracking_confidence=_get_number(
            detection, "minTrackingConfidence", defaults.detector.min_tracking_confidence, 0.0, 1.0
        ),
    )

    return TrackerSettings(
        hysteresis_ms=_get_number(data, "hysteresisMs", defaults.hysteresis_ms, 0.0),
        extractor=extractor,
        viewport=viewport,
        smoothing=smoothing,
        detector=detector,
    )


def parse_profile(data: Any) -> TrackerProfile:
    """
    Validate a decoded JSON document and build a TrackerProfile.

    Raises:
        ProfileLoadError: If the document is not an object or lacks a name.
    """
    if not isinstance(data, dict):
        raise ProfileLoadError("Profile root must be a JSON object")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ProfileLoadError("Missing required field: name")

    facing_mode = data.get("facingMode", DEFAULT_FACING_MODE)
    if facing_mode not in (FACING_USER, FACING_ENVIRONMENT):
        logger.warning(f"Invalid facingMode '{facing_mode}', defaulting to {DEFAULT_FACING_MODE}")
        facing_mode = DEFAULT_FACING_MODE

    profile = TrackerProfile(
        name=name,
        facing_mode=facing_mode,
        front_camera_index=_get_int(data, "frontCameraIndex", FRONT_CAMERA_INDEX),
        rear_camera_index=_get_int(data, "rearCameraIndex", REAR_CAMERA_INDEX),
        settings=_parse_settings(data),
    )

    logger.info(f"Loaded profile: {profile.name}")
    logger.debug(f"  Facing mode: {profile.facing_mode}")
    logger.debug(f"  Cameras: front={profile.front_camera_index}, rear={profile.rear_camera_index}")
    logger.debug(f"  Hysteresis: {profile.settings.hysteresis_ms}ms")
    logger.debug(f"  Smoothing: {profile.settings.smoothing}")
    return profile


def load_profile(path: Union[str, Path]) -> TrackerProfile:
    """
    Load a tracking profile from a JSON file.

    Args:
        path: Path to the JSON profile.

    Returns:
        Parsed TrackerProfile.

    Raises:
        ProfileLoadError: If the file is missing, unreadable or invalid.
    """
    profile_path = Path(path)
    if not profile_path.is_file():
        raise ProfileLoadError(f"Profile file not found: {profile_path}")

    try:
        with open(profile_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ProfileLoadError(f"Invalid JSON in profile {profile_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ProfileLoadError(f"Profile {profile_path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ProfileLoadError(f"Cannot read profile {profile_path}: {e}") from e

    return parse_profile(data)


def create_default_profile() -> TrackerProfile:
    """
    Create a default profile with standard settings.

    Returns:
        TrackerProfile with default values.
    """
    return TrackerProfile(name="Default")
