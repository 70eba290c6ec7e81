"""
Anchor pipeline for PalmAnchorTracker.

Owns the presence gate, pose extractor, viewport projector and temporal
smoother, and the state they share between the detection callback and
the display callback. All shared state is guarded by one lock and
readers only ever receive immutable snapshots.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .config import TrackerSettings
from .landmarks import HandLandmarks
from .logger import get_logger
from .pose_extractor import PoseExtractor, RawPose
from .presence_gate import PresenceGate
from .temporal_smoother import TemporalSmoother
from .viewport_projector import ViewportProjector

logger = get_logger("AnchorPipeline")


@dataclass(frozen=True)
class AnchorFrame:
    """
    What the renderer reads once per display frame.

    Attributes:
        visible: Debounced hand presence.
        position: World position (x, y, z).
        scale: Isotropic scale.
        orientation: Unit quaternion (x, y, z, w).
    """
    visible: bool
    position: tuple[float, float, float]
    scale: float
    orientation: tuple[float, float, float, float]


class AnchorPipeline:
    """
    Wires the anchor components together.

    Detection side (per detector result):
        visible = pipeline.process_detection(hand, now_ms)

    Display side (per display frame):
        frame = pipeline.tick()
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        mirrored: bool = True,
        aspect: float = 1.0
    ):
        """
        Initialize anchor pipeline.

        Args:
            settings: Pipeline settings, or None for defaults.
            mirrored: True for a front-facing (selfie) camera.
            aspect: Viewport width / height.
        """
        self.settings = settings or TrackerSettings()
        self.mirrored = mirrored
        self.aspect = aspect

        self._lock = threading.Lock()
        self._gate = PresenceGate(self.settings.hysteresis_ms)
        self._extractor = PoseExtractor(self.settings.extractor, mirrored, aspect)
        self._projector = ViewportProjector(self.settings.viewport, mirrored, aspect)
        self._smoother = TemporalSmoother(self.settings.smoothing)

        self._latest_raw: Optional[RawPose] = None
        self._latest_world_position: Optional[np.ndarray] = None
        self._detection_count = 0
        self._failure_count = 0

        logger.info(
            f"AnchorPipeline initialized (mirrored={mirrored}, aspect={aspect:.3f}, "
            f"hysteresis={self.settings.hysteresis_ms}ms)"
        )

    def process_detection(self, hand: Optional[HandLandmarks], now_ms: float) -> bool:
        """
        Feed one landmark source result.

        Presence follows the source's own report. A degenerate landmark set
        still counts as a detection for presence but produces no new pose.

        Args:
            hand: Detected hand, or None if no hand was found.
            now_ms: Current timestamp in milliseconds.

        Returns:
            Debounced visibility.
        """
        with self._lock:
            self._detection_count += 1
            visible = self._gate.update(hand is not None, now_ms)

            if hand is None:
                return visible

            raw = self._extractor.extract(hand)
            if raw is None:
                return visible

            world_position = self._projector.project(raw.anchor)
            self._latest_raw = raw
            self._latest_world_position = world_position
            self._smoother.set_target(world_position, raw.scale, raw.orientation)

            return visible

    def run_detection(
        self,
        detect: Callable[[], Optional[HandLandmarks]],
        now_ms: float
    ) -> bool:
        """
        Invoke the landmark source and process its result.

        A source that raises is treated as "no hand" for this cycle.

        Args:
            detect: Zero-argument callable returning landmarks or None.
            now_ms: Current timestamp in milliseconds.

        Returns:
            Debounced visibility.
        """
        try:
            hand = detect()
        except Exception as e:
            with self._lock:
                self._failure_count += 1
            logger.warning(f"Detection failed, treating as no hand: {e}")
            hand = None

        return self.process_detection(hand, now_ms)

    def tick(self) -> AnchorFrame:
        """
        Advance the smoother one display frame and snapshot the result.

        Returns:
            Visibility plus smoothed pose.
        """
        with self._lock:
            pose = self._smoother.tick()
            visible = self._gate.is_visible

        return AnchorFrame(
            visible=visible,
            position=tuple(float(v) for v in pose.position),
            scale=float(pose.scale[0]),
            orientation=tuple(float(v) for v in pose.orientation),
        )

    def snapshot(self) -> AnchorFrame:
        """Current state without advancing the smoother."""
        with self._lock:
            pose = self._smoother.pose
            visible = self._gate.is_visible

        return AnchorFrame(
            visible=visible,
            position=tuple(float(v) for v in pose.position),
            scale=float(pose.scale[0]),
            orientation=tuple(float(v) for v in pose.orientation),
        )

    @property
    def latest_raw_pose(self) -> Optional[RawPose]:
        """Most recent valid raw pose."""
        with self._lock:
            return self._latest_raw

    @property
    def latest_world_position(self) -> Optional[np.ndarray]:
        """World position of the most recent valid raw pose."""
        with self._lock:
            if self._latest_world_position is None:
                return None
            return self._latest_world_position.copy()

    @property
    def detection_count(self) -> int:
        with self._lock:
            return self._detection_count

    @property
    def failure_count(self) -> int:
        """Number of detector invocations that raised."""
        with self._lock:
            return self._failure_count

    def reset(self) -> None:
        """Reset presence, extractor and smoother state."""
        with self._lock:
            self._gate.reset()
            self._extractor.reset()
            self._smoother.reset()
            self._latest_raw = None
            self._latest_world_position = None
        logger.debug("AnchorPipeline reset")
