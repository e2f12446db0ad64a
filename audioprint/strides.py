"""
Stride Policies

A stride tells the image extractor how many samples to skip between the end
of one fingerprint image and the start of the next. Negative strides make
consecutive images overlap.

Database insertion uses wide static strides; queries use narrow random
strides so that at least one query image lands close to a database image
regardless of the alignment offset between the two recordings.
"""

from typing import Optional

import numpy as np


class Stride:
    """
    Base stride policy.

    Subclasses implement next_stride(); first_stride is the sample offset of
    the first image.
    """

    first_stride: int = 0

    def next_stride(self) -> int:
        raise NotImplementedError


class StaticStride(Stride):
    """Constant gap (in samples) between consecutive images."""

    def __init__(self, stride: int, first_stride: int = 0):
        if first_stride < 0:
            raise ValueError(f"first_stride must be non-negative, got {first_stride}")
        self.stride = stride
        self.first_stride = first_stride

    def next_stride(self) -> int:
        return self.stride

    def __repr__(self) -> str:
        return f"StaticStride(stride={self.stride}, first_stride={self.first_stride})"


class RandomStride(Stride):
    """
    Random gap drawn uniformly from [min_stride, max_stride).

    The first image also starts at a random offset from the same range.
    Pass a seed for reproducible cuts.
    """

    def __init__(self, min_stride: int, max_stride: int, seed: Optional[int] = None):
        if not (0 <= min_stride < max_stride):
            raise ValueError(
                f"Random stride range must satisfy 0 <= min < max, got [{min_stride}, {max_stride})"
            )
        self.min_stride = min_stride
        self.max_stride = max_stride
        self._rng = np.random.default_rng(seed)
        self.first_stride = self._draw()

    def _draw(self) -> int:
        return int(self._rng.integers(self.min_stride, self.max_stride))

    def next_stride(self) -> int:
        return self._draw()

    def __repr__(self) -> str:
        return f"RandomStride(min_stride={self.min_stride}, max_stride={self.max_stride})"


class IncrementalStaticStride(Stride):
    """
    Consecutive images start `increment` samples apart.

    Expressed as a gap this is increment - samples_per_fingerprint, so images
    overlap whenever increment < samples_per_fingerprint.
    """

    def __init__(self, increment: int, samples_per_fingerprint: int, first_stride: int = 0):
        if increment <= 0:
            raise ValueError(f"increment must be positive, got {increment}")
        if first_stride < 0:
            raise ValueError(f"first_stride must be non-negative, got {first_stride}")
        self.increment = increment
        self.samples_per_fingerprint = samples_per_fingerprint
        self.first_stride = first_stride

    def next_stride(self) -> int:
        return -self.samples_per_fingerprint + self.increment

    def __repr__(self) -> str:
        return (
            f"IncrementalStaticStride(increment={self.increment}, "
            f"samples_per_fingerprint={self.samples_per_fingerprint})"
        )


class IncrementalRandomStride(Stride):
    """Consecutive images start a random [min, max) number of samples apart."""

    def __init__(
        self,
        min_increment: int,
        max_increment: int,
        samples_per_fingerprint: int,
        seed: Optional[int] = None
    ):
        if not (0 < min_increment < max_increment):
            raise ValueError(
                f"Increment range must satisfy 0 < min < max, got [{min_increment}, {max_increment})"
            )
        self.min_increment = min_increment
        self.max_increment = max_increment
        self.samples_per_fingerprint = samples_per_fingerprint
        self._rng = np.random.default_rng(seed)
        self.first_stride = int(self._rng.integers(min_increment, max_increment))

    def next_stride(self) -> int:
        increment = int(self._rng.integers(self.min_increment, self.max_increment))
        return -self.samples_per_fingerprint + increment

    def __repr__(self) -> str:
        return (
            f"IncrementalRandomStride(min_increment={self.min_increment}, "
            f"max_increment={self.max_increment}, "
            f"samples_per_fingerprint={self.samples_per_fingerprint})"
        )
