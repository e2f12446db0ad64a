"""
Error Types for Fingerprinting and Similarity.

All errors are local, recoverable conditions: the caller decides whether to
retry, skip the track/pair, or propagate.
"""


class AudioprintError(Exception):
    """Base class for all audioprint errors."""


class ModelConstructionError(AudioprintError):
    """
    A Gaussian model cannot be built for this coefficient matrix.

    Raised for singular or near-singular covariance matrices and for inputs
    with too few frames. The track cannot be compared with the KL divergence;
    Hamming and cosine comparisons on raw features remain usable.
    """


class DimensionMismatchError(AudioprintError):
    """Two representations of unequal dimension were compared."""

    def __init__(self, left: int, right: int, what: str = 'dimension'):
        self.left = left
        self.right = right
        super().__init__(f"Cannot compare {what} {left} with {what} {right}")


class TruncatedModelError(AudioprintError):
    """A serialized model buffer is shorter than its header announces."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Serialized model needs {expected} bytes, buffer has {actual}"
        )


class UnsupportedDistanceKindError(AudioprintError):
    """The distance selector does not name a known distance kind."""


class MissingInverseError(AudioprintError):
    """A model built without inverse covariance was given to the KL divergence."""
