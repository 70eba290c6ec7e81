"""
Temporal smoother for PalmAnchorTracker.

Blends a persistent "current" pose toward the latest raw pose once per
display frame, independent of detection cadence, so the overlay never
snaps. Position and scale use exponential interpolation, orientation
uses slerp.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import SmoothingSettings
from .geometry import IDENTITY_QUATERNION, lerp, normalize_quaternion, slerp
from .logger import get_logger

logger = get_logger("TemporalSmoother")


@dataclass
class SmoothedPose:
    """
    Persistent smoothed pose read by the renderer.

    Attributes:
        position: World position [x, y, z].
        scale: Isotropic scale as a 3-vector (all components equal).
        orientation: Unit quaternion [x, y, z, w].
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    orientation: np.ndarray = field(default_factory=lambda: IDENTITY_QUATERNION.copy())

    def copy(self) -> "SmoothedPose":
        return SmoothedPose(
            position=self.position.copy(),
            scale=self.scale.copy(),
            orientation=self.orientation.copy()
        )

    def is_finite(self) -> bool:
        return bool(
            np.all(np.isfinite(self.position))
            and np.all(np.isfinite(self.scale))
            and np.all(np.isfinite(self.orientation))
        )


class TemporalSmoother:
    """
    Per-channel exponential smoother for position, scale and orientation.

    Usage:
        smoother = TemporalSmoother()

        # Whenever a detection yields a pose:
        smoother.set_target(position, scale, orientation)

        # Every display frame:
        pose = smoother.tick()
    """

    def __init__(self, settings: Optional[SmoothingSettings] = None):
        """
        Initialize the smoother.

        Args:
            settings: Blend factors, or None for defaults.
        """
        self.settings = settings or SmoothingSettings()
        for name in ("position", "scale", "orientation"):
            value = getattr(self.settings, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} blend must be in [0, 1], got {value}")

        self._pose = SmoothedPose()
        self._target_position: Optional[np.ndarray] = None
        self._target_scale: Optional[float] = None
        self._target_orientation: Optional[np.ndarray] = None
        self._tick_count = 0

    def set_target(
        self,
        position: Optional[np.ndarray] = None,
        scale: Optional[float] = None,
        orientation: Optional[np.ndarray] = None
    ) -> None:
        """
        Store new raw targets without blending.

        Non-finite values are rejected and leave that channel's target as is.
        """
        if position is not None:
            position = np.asarray(position, dtype=np.float64).reshape(3)
            if np.all(np.isfinite(position)):
                self._target_position = position.copy()
            else:
                logger.warning("Invalid raw position (NaN/Inf), keeping previous target")

        if scale is not None:
            if np.isfinite(scale) and scale >= 0:
                self._target_scale = float(scale)
            else:
                logger.warning(f"Invalid raw scale {scale}, keeping previous target")

        if orientation is not None:
            orientation = np.asarray(orientation, dtype=np.float64).reshape(4)
            if np.all(np.isfinite(orientation)) and np.linalg.norm(orientation) > 0:
                self._target_orientation = normalize_quaternion(orientation)
            else:
                logger.warning("Invalid raw orientation, keeping previous target")

    def tick(
        self,
        raw_position: Optional[np.ndarray] = None,
        raw_scale: Optional[float] = None,
        raw_orientation: Optional[np.ndarray] = None
    ) -> SmoothedPose:
        """
        Advance one display frame.

        Raw values given here replace the stored targets first. Channels
        without a target yet are left at their defaults.

        Returns:
            Snapshot of the smoothed pose after this frame.
        """
        self.set_target(raw_position, raw_scale, raw_orientation)
        s = self.settings

        if self._target_position is not None:
            self._pose.position = lerp(self._pose.position, self._target_position, s.position)

        if self._target_scale is not None:
            target = np.full(3, self._target_scale)
            self._pose.scale = lerp(self._pose.scale, target, s.scale)

        if self._target_orientation is not None:
            self._pose.orientation = normalize_quaternion(
                slerp(self._pose.orientation, self._target_orientation, s.orientation)
            )

        self._tick_count += 1
        return self._pose.copy()

    @property
    def has_target(self) -> bool:
        """True once at least one raw sample has arrived."""
        return (
            self._target_position is not None
            or self._target_scale is not None
            or self._target_orientation is not None
        )

    @property
    def pose(self) -> SmoothedPose:
        """Snapshot of the current smoothed pose."""
        return self._pose.copy()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def reset(self) -> None:
        """Restore defaults and forget all targets."""
        self._pose = SmoothedPose()
        self._target_position = None
        self._target_scale = None
        self._target_orientation = None
        self._tick_count = 0
