"""
Hand detector using the MediaPipe Tasks Hand Landmarker.

Acts as the landmark source of the pipeline: one call per video frame,
returning the first detected hand or None.
"""

from typing import Optional

import numpy as np

try:
    import mediapipe as mp
    from mediapipe.tasks import python as mp_python
    from mediapipe.tasks.python import vision as mp_vision
except ImportError as e:
    raise ImportError(
        "MediaPipe is required. Install with: pip install mediapipe"
    ) from e

from .config import DetectorSettings
from .landmarks import HandLandmarks, Landmark
from .logger import get_logger
from .model_manager import ensure_hand_landmarker_model

logger = get_logger("HandDetector")

class HandDetector:
    """
    Hand detector using MediaPipe Hand Landmarker in VIDEO mode.

    VIDEO mode keeps tracking state between frames and requires strictly
    increasing timestamps; frames whose timestamp has not advanced are
    skipped without running the model.
    """

    def __init__(
        self,
        settings: Optional[DetectorSettings] = None,
        model_path: Optional[str] = None
    ):
        """
        Initialize hand detector.

        Args:
            settings: Detector settings, or None for defaults.
            model_path: Path to a hand_landmarker.task bundle, or None to
                        download/cache the default model.
        """
        self.settings = settings or DetectorSettings()
        self.model_path = model_path

        self._landmarker = None
        self._is_initialized = False
        self._last_timestamp_ms = -1

        logger.info(
            f"HandDetector created (max_hands={self.settings.max_num_hands}, "
            f"min_detection_confidence={self.settings.min_detection_confidence})"
        )

    def initialize(self) -> None:
        """Load the Hand Landmarker model."""
        if self._is_initialized:
            return

        model_path = self.model_path or ensure_hand_landmarker_model()
        logger.debug(f"Model path: {model_path}")

        base_options = mp_python.BaseOptions(model_asset_path=model_path)
        options = mp_vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=mp_vision.RunningMode.VIDEO,
            num_hands=self.settings.max_num_hands,
            min_hand_detection_confidence=self.settings.min_detection_confidence,
            min_hand_presence_confidence=self.settings.min_presence_confidence,
            min_tracking_confidence=self.settings.min_tracking_confidence
        )

        try:
            self._landmarker = mp_vision.HandLandmarker.create_from_options(options)
        except Exception as e:
            logger.error(f"Failed to create HandLandmarker: {e}")
            raise

        self._last_timestamp_ms = -1
        self._is_initialized = True
        logger.info("MediaPipe Hand Landmarker initialized (VIDEO mode)")

    def close(self) -> None:
        """Release MediaPipe resources."""
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
        self._is_initialized = False
        logger.debug("HandDetector closed")

    def detect(self, rgb_image: np.ndarray, timestamp_ms: int) -> Optional[HandLandmarks]:
        """
        Detect hand landmarks in an RGB image.

        Args:
            rgb_image: RGB image as numpy array (H, W, 3).
            timestamp_ms: Capture timestamp in milliseconds.

        Returns:
            HandLandmarks if a hand is detected, None otherwise
            (including for a stale timestamp).
        """
        if not self._is_initialized:
            self.initialize()

        timestamp_ms = int(timestamp_ms)
        if timestamp_ms <= self._last_timestamp_ms:
            logger.debug(f"Skipping stale frame (timestamp {timestamp_ms}ms)")
            return None
        self._last_timestamp_ms = timestamp_ms

        if not rgb_image.flags['C_CONTIGUOUS']:
            rgb_image = np.ascontiguousarray(rgb_image)

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_image)
        result = self._landmarker.detect_for_video(mp_image, timestamp_ms)

        if not result.hand_landmarks:
            return None

        # Single target: first hand only
        hand_landmarks = result.hand_landmarks[0]

        handedness = "Right"
        score = 1.0
        if result.handedness:
            category = result.handedness[0][0]
            handedness = category.category_name
            score = category.score

        landmarks = [
            Landmark(
                x=lm.x,
                y=lm.y,
                z=lm.z,
                visibility=lm.visibility if lm.visibility is not None else 1.0
            )
            for lm in hand_landmarks
        ]

        return HandLandmarks(
            landmarks=landmarks,
            handedness=handedness,
            score=score,
            timestamp_ms=timestamp_ms
        )

    def __enter__(self) -> "HandDetector":
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
