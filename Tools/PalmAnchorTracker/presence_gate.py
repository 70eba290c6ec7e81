"""
Presence gate for PalmAnchorTracker.

Debounces the raw per-call hand detection signal so that single-frame
detector dropouts do not make the overlay flicker. Appearance is
immediate, disappearance waits for a short window of silence.
"""

from dataclasses import dataclass

from .config import PRESENCE_HYSTERESIS_MS
from .logger import get_logger

logger = get_logger("PresenceGate")


@dataclass
class PresenceState:
    """Debounced presence state."""
    detected: bool = False
    last_detected_at_ms: float = 0.0


class PresenceGate:
    """
    Converts per-call detections into a debounced visibility flag.

    Usage:
        gate = PresenceGate()

        # Every detection call:
        visible = gate.update(hand is not None, now_ms)
    """

    def __init__(self, hysteresis_ms: float = PRESENCE_HYSTERESIS_MS):
        """
        Initialize presence gate.

        Args:
            hysteresis_ms: Minimum silence (ms) before presence is dropped.
        """
        if hysteresis_ms < 0:
            raise ValueError(f"hysteresis_ms must be >= 0, got {hysteresis_ms}")

        self.hysteresis_ms = hysteresis_ms
        self._state = PresenceState()

    def update(self, has_detection: bool, now_ms: float) -> bool:
        """
        Feed one detection result.

        Args:
            has_detection: Whether the landmark source found a hand this call.
            now_ms: Current timestamp in milliseconds.

        Returns:
            Current debounced visibility.
        """
        if has_detection:
            self._state.last_detected_at_ms = now_ms
            if not self._state.detected:
                self._state.detected = True
                logger.debug("Hand found")
        elif self._state.detected:
            silence_ms = now_ms - self._state.last_detected_at_ms
            if silence_ms > self.hysteresis_ms:
                self._state.detected = False
                logger.debug(f"Hand lost after {silence_ms:.0f}ms without detection")

        return self._state.detected

    @property
    def is_visible(self) -> bool:
        """Current debounced visibility."""
        return self._state.detected

    @property
    def state(self) -> PresenceState:
        """Copy of the current presence state."""
        return PresenceState(
            detected=self._state.detected,
            last_detected_at_ms=self._state.last_detected_at_ms
        )

    def reset(self) -> None:
        """Reset to 'no hand'."""
        self._state = PresenceState()
