"""
MediaPipe model file manager.

Downloads and caches the Hand Landmarker model bundle used by HandDetector.
"""

import os
import sys
import time
import urllib.request
from pathlib import Path

from .logger import get_logger

logger = get_logger("ModelManager")

# Model configuration
HAND_LANDMARKER_URL = "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task"
HAND_LANDMARKER_FILENAME = "hand_landmarker.task"
HAND_LANDMARKER_SIZE_MB = 7.5  # Approximate size in MB

# Download settings
DOWNLOAD_TIMEOUT = 120  # seconds
DOWNLOAD_CHUNK_SIZE = 8192  # bytes
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds


class ModelDownloadError(RuntimeError):
    """Raised when the model cannot be downloaded."""
    pass


def get_model_cache_dir() -> Path:
    """
    Get the model cache directory.

    Returns:
        Path to model cache directory (creates if needed).
    """
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))
    else:
        base = os.environ.get("XDG_CACHE_HOME", os.path.expanduser("~/.cache"))

    cache_dir = Path(base) / "PalmAnchor" / "mediapipe_models"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def ensure_hand_landmarker_model() -> str:
    """
    Ensure the hand landmarker model is available.

    Downloads the model if not present in cache.

    Returns:
        Path to the model file.

    Raises:
        ModelDownloadError: If download fails after retries.
    """
    model_path = get_model_cache_dir() / HAND_LANDMARKER_FILENAME

    if model_path.exists():
        logger.debug(f"Using cached model: {model_path}")
        return str(model_path)

    logger.info(f"Downloading hand landmarker model (~{HAND_LANDMARKER_SIZE_MB} MB) from {HAND_LANDMARKER_URL}")

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            _download_model(HAND_LANDMARKER_URL, model_path)
            logger.info(f"Model downloaded: {model_path}")
            return str(model_path)
        except OSError as e:
            logger.warning(f"Download attempt {attempt}/{MAX_RETRIES} failed: {e}")
            if attempt < MAX_RETRIES:
                time.sleep(RETRY_DELAY * attempt)
            else:
                raise ModelDownloadError(
                    f"Failed to download MediaPipe model after {MAX_RETRIES} attempts. "
                    f"Check your internet connection or pass --model."
                ) from e

    raise ModelDownloadError("Model download failed")


def _download_model(url: str, dest_path: Path) -> None:
    """
    Download a model file, writing through a temp file.

    Args:
        url: URL to download from.
        dest_path: Destination file path.
    """
    temp_path = dest_path.with_suffix(".tmp")

    try:
        request = urllib.request.Request(
            url,
            headers={"User-Agent": "PalmAnchorTracker/1.0"}
        )

        with urllib.request.urlopen(request, timeout=DOWNLOAD_TIMEOUT) as response:
            total_size = int(response.headers.get("Content-Length", 0))
            downloaded = 0
            next_report = 25.0

            with open(temp_path, "wb") as f:
                while True:
                    chunk = response.read(DOWNLOAD_CHUNK_SIZE)
                    if not chunk:
                        break

                    f.write(chunk)
                    downloaded += len(chunk)

                    if total_size > 0 and downloaded / total_size * 100 >= next_report:
                        logger.debug(f"Download progress: {next_report:.0f}%")
                        next_report += 25.0

        temp_path.replace(dest_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise
