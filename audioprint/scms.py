"""
Statistical Cluster Model Module (Scms)

A Gaussian representation of a track: the mean vector, covariance and inverse
covariance of its coefficient frames (typically MFCCs). The distance between
two models is computed with the symmetrized Kullback-Leibler divergence (see
distance.py).

PACKED STORAGE:
- cov and icov are symmetric dim x dim matrices stored as their upper
  triangle (diagonal included), row-major
- covlen = dim * (dim + 1) / 2
- index(i, k) = i * dim - (i * i + i) / 2 + k for i <= k (swap when i > k)
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from audioprint.errors import ModelConstructionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONDITION: float = 1e12


# =============================================================================
# PACKED SYMMETRIC MATRIX ACCESS
# =============================================================================

def packed_length(dim: int) -> int:
    """Number of stored entries of a packed symmetric dim x dim matrix."""
    return (dim * dim + dim) // 2


def packed_index(i, k, dim: int):
    """
    Offset of element (i, k) in a packed symmetric matrix.

    Element (i, k) and (k, i) share the same offset. i and k may be integer
    arrays of the same shape, giving an array of offsets.
    """
    low = np.minimum(i, k)
    high = np.maximum(i, k)
    return low * dim - (low * low + low) // 2 + high


def packed_index_table(dim: int) -> np.ndarray:
    """
    (dim, dim) table of packed offsets, table[i, k] == packed_index(i, k, dim).

    Indexing a packed array with it yields the full symmetric matrix.
    """
    i, k = np.meshgrid(np.arange(dim), np.arange(dim), indexing='ij')
    return packed_index(i, k, dim)


def pack_symmetric(matrix: np.ndarray) -> np.ndarray:
    """Upper triangle (diagonal included) of a square matrix, row-major."""
    matrix = np.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {matrix.shape}")
    dim = matrix.shape[0]
    rows, cols = np.triu_indices(dim)
    packed = np.empty(packed_length(dim), dtype=matrix.dtype)
    packed[packed_index(rows, cols, dim)] = matrix[rows, cols]
    return packed


def unpack_symmetric(packed: np.ndarray, dim: int) -> np.ndarray:
    """Full symmetric matrix from its packed upper triangle."""
    packed = np.asarray(packed)
    if len(packed) != packed_length(dim):
        raise ValueError(
            f"Packed length {len(packed)} does not match dim {dim} "
            f"(expected {packed_length(dim)})"
        )
    return packed[packed_index_table(dim)]


# =============================================================================
# GAUSSIAN MODEL
# =============================================================================

def _frozen_float32(values, name: str) -> np.ndarray:
    array = np.array(values, dtype=np.float32)
    if array.ndim != 1:
        raise ValueError(f"{name} must be 1-D, got shape {array.shape}")
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class GaussianModel:
    """
    Immutable Gaussian cluster model of one track.

    Attributes:
        dim: Model dimension
        mean: (dim,) float32 mean vector
        cov: (covlen,) float32 packed covariance
        icov: (covlen,) float32 packed inverse covariance, all zeros for a
            model built without inverse
        bit_string: Optional bool fingerprint used by the Hamming distance
    """
    dim: int
    mean: np.ndarray
    cov: np.ndarray
    icov: np.ndarray
    bit_string: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.dim <= 0:
            raise ValueError(f"Model dimension must be positive, got {self.dim}")

        mean = _frozen_float32(self.mean, 'mean')
        cov = _frozen_float32(self.cov, 'cov')
        icov = _frozen_float32(self.icov, 'icov')

        covlen = packed_length(self.dim)
        if len(mean) != self.dim:
            raise ValueError(f"mean has {len(mean)} entries, expected {self.dim}")
        if len(cov) != covlen or len(icov) != covlen:
            raise ValueError(
                f"cov/icov have {len(cov)}/{len(icov)} entries, expected {covlen}"
            )

        object.__setattr__(self, 'mean', mean)
        object.__setattr__(self, 'cov', cov)
        object.__setattr__(self, 'icov', icov)

        if self.bit_string is not None:
            bits = np.array(self.bit_string, dtype=bool).ravel()
            bits.flags.writeable = False
            object.__setattr__(self, 'bit_string', bits)

    def __eq__(self, other):
        if not isinstance(other, GaussianModel):
            return NotImplemented
        return (
            self.dim == other.dim
            and np.array_equal(self.mean, other.mean)
            and np.array_equal(self.cov, other.cov)
            and np.array_equal(self.icov, other.icov)
        )

    @property
    def covlen(self) -> int:
        return packed_length(self.dim)

    @property
    def has_inverse(self) -> bool:
        """False for models built without inverse (no KL divergence)."""
        return bool(np.any(self.icov != 0.0))

    def cov_at(self, i: int, k: int) -> float:
        return float(self.cov[packed_index(i, k, self.dim)])

    def icov_at(self, i: int, k: int) -> float:
        return float(self.icov[packed_index(i, k, self.dim)])

    def covariance_matrix(self) -> np.ndarray:
        return unpack_symmetric(self.cov, self.dim)

    def inverse_covariance_matrix(self) -> np.ndarray:
        return unpack_symmetric(self.icov, self.dim)

    def to_array(self) -> np.ndarray:
        """Flattened [mean | cov | icov] as float64, the DTW representation."""
        return np.concatenate((self.mean, self.cov, self.icov)).astype(np.float64)

    def with_bit_string(self, bits: np.ndarray) -> 'GaussianModel':
        """Copy of this model carrying a Hamming bit string."""
        return replace(self, bit_string=bits)


# =============================================================================
# MODEL CONSTRUCTION
# =============================================================================

def compute_mean(coefficients: np.ndarray) -> np.ndarray:
    """Row-wise mean of a (dim, n_frames) matrix, float64."""
    return np.mean(np.asarray(coefficients, dtype=np.float64), axis=1)


def compute_covariance(coefficients: np.ndarray, mean: np.ndarray) -> np.ndarray:
    """
    Covariance of a (dim, n_frames) matrix around a given mean.

    Normalized by n_frames - 1.
    """
    data = np.asarray(coefficients, dtype=np.float64)
    centered = data - mean[:, np.newaxis]
    return (centered @ centered.T) / (data.shape[1] - 1)


def invert_covariance(covariance: np.ndarray, max_condition: float = DEFAULT_MAX_CONDITION) -> np.ndarray:
    """
    Inverse of a covariance matrix.

    Raises:
        ModelConstructionError: If the matrix is singular, or its condition
            number exceeds max_condition
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        condition = np.linalg.cond(covariance)
    if not np.isfinite(condition) or condition > max_condition:
        raise ModelConstructionError(
            f"Covariance matrix is singular or ill-conditioned "
            f"(condition number {condition:.3g} > {max_condition:.3g})"
        )

    try:
        inverse = np.linalg.inv(covariance)
    except np.linalg.LinAlgError as e:
        raise ModelConstructionError(f"Covariance matrix is singular: {e}") from e

    if not np.isfinite(inverse).all():
        raise ModelConstructionError("Inverse covariance contains non-finite values")

    return inverse


def _coefficient_matrix(coefficients: np.ndarray) -> np.ndarray:
    data = np.asarray(coefficients, dtype=np.float64)
    if data.ndim != 2 or data.shape[0] == 0:
        raise ValueError(f"Coefficients must be a (dim, n_frames) matrix, got shape {data.shape}")
    if data.shape[1] < 2:
        raise ModelConstructionError(
            f"At least 2 frames are needed for a covariance, got {data.shape[1]}"
        )
    if not np.isfinite(data).all():
        raise ModelConstructionError("Coefficients contain NaN or infinite values")
    return data


def build_model(
    coefficients: np.ndarray,
    max_condition: float = DEFAULT_MAX_CONDITION,
    name: Optional[str] = None
) -> GaussianModel:
    """
    Compute a Gaussian model from the coefficient matrix of a track.

    CONTRACT:
    - Input: coefficients (dim, n_frames), n_frames >= 2, all finite
    - Output: GaussianModel with packed float32 cov / icov
    - Raises ModelConstructionError instead of returning a partial model

    Parameters:
        coefficients: Coefficient matrix, one column per frame (e.g. MFCCs)
        max_condition: Largest accepted covariance condition number
        name: Track name for log messages

    Returns:
        Immutable GaussianModel
    """
    start = time.perf_counter()
    label = name or 'track'

    data = _coefficient_matrix(coefficients)
    mean = compute_mean(data)
    covariance = compute_covariance(data, mean)

    try:
        inverse = invert_covariance(covariance, max_condition)
    except ModelConstructionError:
        logger.info("Model construction failed for %s: singular covariance", label)
        raise

    model = GaussianModel(
        dim=data.shape[0],
        mean=mean,
        cov=pack_symmetric(covariance),
        icov=pack_symmetric(inverse)
    )

    logger.debug(
        "Model for %s created in %.1f ms", label, (time.perf_counter() - start) * 1000.0
    )
    return model


def build_model_without_inverse(
    coefficients: np.ndarray,
    name: Optional[str] = None
) -> GaussianModel:
    """
    Gaussian model with mean and covariance only; icov is left all zeros.

    Works for rank-deficient coefficient matrices. The result can be compared
    with cosine, Hamming and DTW distances; the KL divergence rejects it.

    Raises:
        ModelConstructionError: Too few frames, or non-finite coefficients
    """
    data = _coefficient_matrix(coefficients)
    mean = compute_mean(data)
    covariance = compute_covariance(data, mean)

    logger.debug("Model without inverse created for %s", name or 'track')
    return GaussianModel(
        dim=data.shape[0],
        mean=mean,
        cov=pack_symmetric(covariance),
        icov=np.zeros(packed_length(data.shape[0]), dtype=np.float32)
    )
