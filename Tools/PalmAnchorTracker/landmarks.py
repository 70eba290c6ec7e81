"""
Hand landmark data types.

Kept free of MediaPipe imports so the pose pipeline can be used
(and tested) with landmarks from any source.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .config import NUM_HAND_LANDMARKS


# MediaPipe landmark indices
class LandmarkIndex:
    """MediaPipe hand landmark indices."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


@dataclass(frozen=True)
class Landmark:
    """Single hand landmark with 3D coordinates and visibility."""
    x: float  # Normalized x [0, 1]
    y: float  # Normalized y [0, 1]
    z: float  # Relative depth, origin at the wrist
    visibility: float = 1.0

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


@dataclass
class HandLandmarks:
    """
    Complete hand landmark data for one detected hand.

    Attributes:
        landmarks: List of 21 hand landmarks.
        handedness: 'Left' or 'Right'.
        score: Detection confidence score.
    """
    landmarks: list[Landmark]
    handedness: str = "Right"
    score: float = 1.0
    timestamp_ms: Optional[float] = field(default=None, compare=False)

    @classmethod
    def from_points(
        cls,
        points: Iterable[tuple[float, float, float]],
        handedness: str = "Right",
        score: float = 1.0
    ) -> "HandLandmarks":
        """Build from plain (x, y, z) tuples."""
        return cls(
            landmarks=[Landmark(x=float(x), y=float(y), z=float(z)) for x, y, z in points],
            handedness=handedness,
            score=score
        )

    @property
    def is_complete(self) -> bool:
        """True if all 21 landmarks are present with finite coordinates."""
        return (
            len(self.landmarks) >= NUM_HAND_LANDMARKS
            and all(lm.is_finite() for lm in self.landmarks[:NUM_HAND_LANDMARKS])
        )

    @property
    def wrist(self) -> Landmark:
        return self.landmarks[LandmarkIndex.WRIST]

    @property
    def index_mcp(self) -> Landmark:
        return self.landmarks[LandmarkIndex.INDEX_MCP]

    @property
    def middle_mcp(self) -> Landmark:
        return self.landmarks[LandmarkIndex.MIDDLE_MCP]

    @property
    def pinky_mcp(self) -> Landmark:
        return self.landmarks[LandmarkIndex.PINKY_MCP]


def distance_2d(lm1: Landmark, lm2: Landmark) -> float:
    """
    Calculate 2D distance between two landmarks (ignoring z).

    Args:
        lm1: First landmark.
        lm2: Second landmark.

    Returns:
        Euclidean distance in normalized image-plane coordinates.
    """
    return math.hypot(lm1.x - lm2.x, lm1.y - lm2.y)


def distance_3d(lm1: Landmark, lm2: Landmark) -> float:
    """Calculate 3D distance between two landmarks."""
    return math.sqrt(
        (lm1.x - lm2.x) ** 2 +
        (lm1.y - lm2.y) ** 2 +
        (lm1.z - lm2.z) ** 2
    )
