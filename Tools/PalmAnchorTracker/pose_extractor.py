"""
Pose extractor for PalmAnchorTracker.

Turns one set of 21 hand landmarks into a raw anchor pose:
  - anchor: wrist (optionally blended toward the middle knuckle),
    in normalized image space
  - scale: apparent hand size, a depth-free proxy for distance
  - orientation: yaw-only "billboard" basis that keeps the object
    upright while it turns to face along the hand

The forward axis is chosen by an explicit decision table
(see select_forward) so the fallback policy can be tested on its own.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import numpy as np

from .config import ExtractorSettings
from .geometry import WORLD_UP, quaternion_from_basis, safe_normalize
from .landmarks import HandLandmarks, Landmark, distance_2d, distance_3d
from .logger import get_logger

logger = get_logger("PoseExtractor")


class ForwardSource(Enum):
    """Which rule produced the forward (+Z) axis."""
    HAND_DIRECTION = auto()  # Horizontal projection of knuckle -> wrist
    PALM_NORMAL = auto()     # Hand points straight up/down, use palm normal
    PREVIOUS = auto()        # No usable forward, keep last valid orientation
    DEGENERATE = auto()      # Coincident landmarks, no pose this call


@dataclass(frozen=True, eq=False)
class RawPose:
    """
    Unsmoothed pose derived from a single landmark set.

    Attributes:
        anchor: (x, y, z) in normalized image space, not mirrored.
        scale: Non-negative size estimate.
        orientation: Unit quaternion [x, y, z, w].
        basis: 3x3 matrix whose columns are the X, Y, Z axes.
        forward_source: Decision-table row that produced the forward axis.
    """
    anchor: np.ndarray
    scale: float
    orientation: np.ndarray
    basis: np.ndarray
    forward_source: ForwardSource


@dataclass(frozen=True, eq=False)
class HandAxes:
    """Intermediate hand vectors in aspect-corrected view space. None = degenerate."""
    finger_direction: Optional[np.ndarray]
    palm_across: Optional[np.ndarray]
    palm_normal: Optional[np.ndarray]
    toward_user: np.ndarray

    @property
    def is_degenerate(self) -> bool:
        return (
            self.finger_direction is None
            or self.palm_across is None
            or self.palm_normal is None
        )


def to_view_vector(landmark: Landmark, mirrored: bool, aspect: float) -> np.ndarray:
    """
    Convert a landmark into a depth-aware vector for angle computations.

    x is mirrored for a front-facing camera, y and z are negated so that
    +y is up and +z is toward the camera, and x/z are stretched by the
    viewport aspect ratio to undo the non-square projection.
    """
    x = (1.0 - landmark.x) if mirrored else landmark.x
    return np.array([x * aspect, -landmark.y, -landmark.z * aspect])


def blend_anchor(wrist: Landmark, middle_mcp: Landmark, ratio: float) -> np.ndarray:
    """Anchor between wrist (ratio 0) and middle knuckle (ratio 1)."""
    return np.array([
        wrist.x * (1.0 - ratio) + middle_mcp.x * ratio,
        wrist.y * (1.0 - ratio) + middle_mcp.y * ratio,
        wrist.z * (1.0 - ratio) + middle_mcp.z * ratio,
    ])


def hand_scale(
    wrist: Landmark,
    middle_mcp: Landmark,
    multiplier: float,
    include_depth: bool = False
) -> float:
    """Wrist to middle knuckle distance times multiplier (image plane unless include_depth)."""
    if include_depth:
        return distance_3d(wrist, middle_mcp) * abs(multiplier)
    return distance_2d(wrist, middle_mcp) * abs(multiplier)


def hand_axes(
    wrist: Landmark,
    middle_mcp: Landmark,
    index_mcp: Landmark,
    pinky_mcp: Landmark,
    mirrored: bool,
    aspect: float,
    min_length: float
) -> HandAxes:
    """Compute finger direction, palm lateral axis and palm normal."""
    v_wrist = to_view_vector(wrist, mirrored, aspect)
    v_middle = to_view_vector(middle_mcp, mirrored, aspect)
    v_index = to_view_vector(index_mcp, mirrored, aspect)
    v_pinky = to_view_vector(pinky_mcp, mirrored, aspect)

    finger_direction = safe_normalize(v_middle - v_wrist, min_length)
    palm_across = safe_normalize(v_pinky - v_index, min_length)

    palm_normal = None
    if finger_direction is not None and palm_across is not None:
        palm_normal = safe_normalize(np.cross(palm_across, finger_direction), min_length)
        # Point toward the camera whatever the handedness or finger spread
        if palm_normal is not None and palm_normal[2] < 0:
            palm_normal = -palm_normal

    return HandAxes(
        finger_direction=finger_direction,
        palm_across=palm_across,
        palm_normal=palm_normal,
        toward_user=v_wrist - v_middle,
    )


def select_forward(
    axes: HandAxes,
    vertical_threshold: float,
    min_length: float
) -> tuple[ForwardSource, Optional[np.ndarray]]:
    """
    Pick the unnormalized forward vector.

    | condition                               | source         |
    |-----------------------------------------|----------------|
    | any hand axis is zero length            | DEGENERATE     |
    | |flat(toward_user)|^2 >= threshold      | HAND_DIRECTION |
    | flat(palm_normal) is non-zero           | PALM_NORMAL    |
    | otherwise                               | PREVIOUS       |

    flat() zeroes the vertical component, locking "up" to world up.
    """
    if axes.is_degenerate:
        return ForwardSource.DEGENERATE, None

    flat_forward = np.array([axes.toward_user[0], 0.0, axes.toward_user[2]])
    if float(np.dot(flat_forward, flat_forward)) >= vertical_threshold:
        return ForwardSource.HAND_DIRECTION, flat_forward

    flat_normal = np.array([axes.palm_normal[0], 0.0, axes.palm_normal[2]])
    if float(np.linalg.norm(flat_normal)) >= min_length:
        return ForwardSource.PALM_NORMAL, flat_normal

    return ForwardSource.PREVIOUS, None


def basis_from_forward(forward: np.ndarray, min_length: float) -> Optional[np.ndarray]:
    """
    Build an orthonormal basis with Y = world up and Z along forward.

    Returns:
        3x3 matrix with columns X, Y, Z, or None if forward is degenerate.
    """
    z_axis = safe_normalize(forward, min_length)
    if z_axis is None:
        return None

    y_axis = WORLD_UP
    x_axis = safe_normalize(np.cross(y_axis, z_axis), min_length)
    if x_axis is None:
        return None

    # Re-orthogonalize Z after the substitutions above
    z_axis = safe_normalize(np.cross(x_axis, y_axis), min_length)
    if z_axis is None:
        return None

    return np.column_stack([x_axis, y_axis, z_axis])


class PoseExtractor:
    """
    Computes a RawPose from hand landmarks.

    Remembers the last valid pose; degenerate landmark sets produce
    no pose for that call and leave it untouched.
    """

    def __init__(
        self,
        settings: Optional[ExtractorSettings] = None,
        mirrored: bool = True,
        aspect: float = 1.0
    ):
        """
        Initialize pose extractor.

        Args:
            settings: Extraction parameters, or None for defaults.
            mirrored: True for a front-facing (selfie) camera.
            aspect: Viewport width / height.
        """
        if aspect <= 0:
            raise ValueError(f"aspect must be > 0, got {aspect}")

        self.settings = settings or ExtractorSettings()
        self.mirrored = mirrored
        self.aspect = aspect

        self._last_valid: Optional[RawPose] = None
        self._rejected_count = 0

    def extract(self, hand: HandLandmarks) -> Optional[RawPose]:
        """
        Extract a raw pose from one landmark set.

        Args:
            hand: Landmarks of the detected hand.

        Returns:
            RawPose, or None if the landmark set is malformed or degenerate.
        """
        if not hand.is_complete:
            self._rejected_count += 1
            logger.debug(f"Rejected incomplete landmark set ({len(hand.landmarks)} points)")
            return None

        s = self.settings
        wrist, middle = hand.wrist, hand.middle_mcp

        axes = hand_axes(
            wrist, middle, hand.index_mcp, hand.pinky_mcp,
            self.mirrored, self.aspect, s.min_vector_length
        )
        source, forward = select_forward(axes, s.vertical_forward_threshold, s.min_vector_length)

        if source is ForwardSource.DEGENERATE:
            self._rejected_count += 1
            logger.debug("Rejected degenerate landmark set (coincident knuckles)")
            return None

        if source is ForwardSource.PREVIOUS:
            if self._last_valid is None:
                self._rejected_count += 1
                logger.debug("No usable forward axis and no previous orientation")
                return None
            basis = self._last_valid.basis
            orientation = self._last_valid.orientation
        else:
            basis = basis_from_forward(forward, s.min_vector_length)
            if basis is None:
                self._rejected_count += 1
                return None
            orientation = quaternion_from_basis(basis[:, 0], basis[:, 1], basis[:, 2])

        pose = RawPose(
            anchor=blend_anchor(wrist, middle, s.anchor_blend_ratio),
            scale=hand_scale(wrist, middle, s.scale_multiplier, s.include_depth_in_scale),
            orientation=orientation,
            basis=basis,
            forward_source=source,
        )
        self._last_valid = pose
        return pose

    @property
    def last_valid(self) -> Optional[RawPose]:
        """Most recent successfully extracted pose."""
        return self._last_valid

    @property
    def rejected_count(self) -> int:
        """Number of landmark sets that produced no pose."""
        return self._rejected_count

    def reset(self) -> None:
        """Forget the last valid pose."""
        self._last_valid = None
        self._rejected_count = 0
