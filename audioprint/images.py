"""
Fingerprint Image Module

Cuts a log-spectrogram into fixed-size fingerprint images.

CUTTING RULE:
- A sample cursor starts at stride.first_stride
- An image is cut at frame cursor // overlap while it fits in the spectrogram
- The cursor then advances by image_length * overlap + stride.next_stride()
"""

from typing import List

import numpy as np

from audioprint.strides import Stride


def image_start_frames(
    n_frames: int,
    stride: Stride,
    image_length: int,
    overlap: int
) -> List[int]:
    """
    Start frame of every image that fits in n_frames.

    Consumes the stride (random strides draw from their generator), so pass a
    fresh stride per spectrogram.

    Raises:
        ValueError: If a stride would not move the cursor forward
    """
    if image_length <= 0 or overlap <= 0:
        raise ValueError("image_length and overlap must be positive")

    samples_per_image = image_length * overlap

    starts = []
    cursor = stride.first_stride
    while cursor // overlap + image_length <= n_frames:
        starts.append(cursor // overlap)

        advance = samples_per_image + stride.next_stride()
        if advance <= 0:
            raise ValueError(
                f"Stride {stride!r} does not advance past the previous image (advance {advance})"
            )
        cursor += advance

    return starts


def cut_log_spectrogram(
    log_spectrogram: np.ndarray,
    stride: Stride,
    image_length: int,
    overlap: int
) -> List[np.ndarray]:
    """
    Cut a log-spectrogram into fingerprint images.

    CONTRACT:
    - Input: log_spectrogram (width, log_bins)
    - Output: list of (image_length, log_bins) float32 copies, in time order
    - Images overlap when the stride is negative

    Parameters:
        log_spectrogram: Log-binned spectrogram, one row per frame
        stride: Stride policy between consecutive images (samples)
        image_length: Frames per image
        overlap: Samples per spectrogram frame

    Returns:
        List of fingerprint images
    """
    starts = image_start_frames(len(log_spectrogram), stride, image_length, overlap)
    return [
        np.array(log_spectrogram[start:start + image_length], dtype=np.float32)
        for start in starts
    ]
