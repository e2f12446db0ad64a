"""
Audio I/O Module

Default audio reader capability: decode, downmix and resample a file into a
mono float32 signal. Decoding is delegated to librosa.
"""

import logging
from typing import Optional

import librosa
import numpy as np

from audioprint import config

logger = logging.getLogger(__name__)


def read_mono(
    file_path: str,
    sample_rate: int = config.SAMPLE_RATE,
    duration_ms: int = 0,
    start_ms: int = 0
) -> np.ndarray:
    """
    Read an audio file as mono samples at the requested sample rate.

    Parameters:
        file_path: Path to audio file
        sample_rate: Target sample rate (Hz)
        duration_ms: Milliseconds to read (0 = until the end)
        start_ms: Milliseconds to skip from the start

    Returns:
        Mono float32 array

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If duration_ms or start_ms is negative
    """
    if duration_ms < 0 or start_ms < 0:
        raise ValueError(
            f"duration_ms and start_ms must be non-negative, got {duration_ms}, {start_ms}"
        )

    offset = start_ms / 1000.0
    duration: Optional[float] = duration_ms / 1000.0 if duration_ms > 0 else None

    audio, sr = librosa.load(
        file_path,
        sr=sample_rate,
        mono=True,
        offset=offset,
        duration=duration
    )
    logger.debug("Read %d samples at %d Hz from %s", len(audio), sr, file_path)

    return audio.astype(np.float32)


def validate_audio(audio: np.ndarray, min_samples: int = 0) -> None:
    """
    Validate a mono signal for processing.

    Parameters:
        audio: Audio array to validate
        min_samples: Minimum number of samples required

    Raises:
        ValueError: If audio is invalid
    """
    if audio.ndim != 1:
        raise ValueError(f"Audio must be mono (1-D), got shape {audio.shape}")

    if len(audio) == 0:
        raise ValueError("Audio array is empty")

    if not np.isfinite(audio).all():
        raise ValueError("Audio contains NaN or infinite values")

    if len(audio) < min_samples:
        raise ValueError(
            f"Audio too short: {len(audio)} samples (minimum {min_samples})"
        )
