"""
Distance Kernel Module - Similarity Between Track Representations

Every distance is a pure function over two models; compute_distance selects
one through the DistanceKind enumeration.

KINDS:
- KULLBACK_LEIBLER: symmetrized KL divergence between two Gaussian models
- COSINE: 1 - cos(mean1, mean2) + 1 - cos(cov1, cov2)
- HAMMING: differing bits between the models' bit strings
- DTW_*: dynamic time warping over [mean | cov | icov] with the named step cost

SCRATCH BUFFERS:
- DistanceConfiguration owns the reusable buffers of the KL kernel
- A configuration may be reused across calls with the same dim, but must not
  be shared between concurrent calls
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from audioprint.capabilities import DtwFunction, StepCost, dtw_cost
from audioprint.errors import (
    DimensionMismatchError,
    MissingInverseError,
    UnsupportedDistanceKindError,
)
from audioprint.scms import GaussianModel, packed_index, packed_index_table, packed_length

logger = logging.getLogger(__name__)


class DistanceKind(Enum):
    """Selectable distance between two models."""
    KULLBACK_LEIBLER = "kullback_leibler"
    COSINE = "cosine"
    HAMMING = "hamming"
    DTW_EUCLIDEAN = "dtw_euclidean"
    DTW_SQUARED_EUCLIDEAN = "dtw_squared_euclidean"
    DTW_MANHATTAN = "dtw_manhattan"
    DTW_MAXIMUM = "dtw_maximum"


class DistanceConfiguration:
    """
    Scratch buffers and index tables for the KL kernel at one dimension.

    Attributes:
        dim: Model dimension
        covlen: Packed matrix length, dim * (dim + 1) / 2
        mean_diff: (dim,) scratch for s1.mean - s2.mean
        added_icov: (covlen,) scratch for s1.icov + s2.icov
        cross: (covlen,) scratch for s1.cov * s2.icov + s2.cov * s1.icov
        cross_swapped: (covlen,) scratch for s2.cov * s1.icov
        added_full: (dim, dim) scratch for the unpacked s1.icov + s2.icov
        product: (dim,) scratch for added_full @ mean_diff
        trace_weights: (covlen,) 1 on the diagonal, 2 off the diagonal
        full_index: (dim, dim) packed offset of every (i, k)
    """

    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        self.dim = dim
        self.covlen = packed_length(dim)
        self.mean_diff = np.zeros(dim, dtype=np.float64)
        self.added_icov = np.zeros(self.covlen, dtype=np.float64)
        self.cross = np.zeros(self.covlen, dtype=np.float64)
        self.cross_swapped = np.zeros(self.covlen, dtype=np.float64)
        self.added_full = np.zeros((dim, dim), dtype=np.float64)
        self.product = np.zeros(dim, dtype=np.float64)

        diagonal = np.arange(dim)
        self.trace_weights = np.full(self.covlen, 2.0)
        self.trace_weights[packed_index(diagonal, diagonal, dim)] = 1.0
        self.full_index = packed_index_table(dim)

    def __repr__(self) -> str:
        return f"DistanceConfiguration(dim={self.dim})"


# =============================================================================
# KULLBACK-LEIBLER DIVERGENCE
# =============================================================================

def kl_divergence(
    s1: GaussianModel,
    s2: GaussianModel,
    configuration: Optional[DistanceConfiguration] = None
) -> float:
    """
    Symmetrized Kullback-Leibler divergence between two Gaussian models.

    CONTRACT:
    - Requires s1.dim == s2.dim (and configuration.dim when given), checked
      before any computation
    - Requires both models to carry an inverse covariance
    - trace = sum over packed (i, k) of w(i, k) * (s1.cov * s2.icov + s2.cov * s1.icov),
      w = 1 on the diagonal and 2 off it (full-matrix symmetry)
    - quad = (s1.mean - s2.mean)^T (s1.icov + s2.icov) (s1.mean - s2.mean)
    - result = (trace + quad) / 4 - dim / 2
    - kl_divergence(a, b) == kl_divergence(b, a)
    - May be slightly negative for identical models (roundoff)
    - Writes only into configuration buffers, no per-call allocation

    Parameters:
        s1: First model
        s2: Second model
        configuration: Scratch buffers to reuse (None = allocate per call)

    Returns:
        Divergence (0 for identical distributions)

    Raises:
        DimensionMismatchError: If the dimensions differ
        MissingInverseError: If either model was built without inverse
    """
    if s1.dim != s2.dim:
        raise DimensionMismatchError(s1.dim, s2.dim)
    if configuration is None:
        configuration = DistanceConfiguration(s1.dim)
    elif configuration.dim != s1.dim:
        raise DimensionMismatchError(configuration.dim, s1.dim)
    if not (s1.has_inverse and s2.has_inverse):
        raise MissingInverseError(
            "Kullback-Leibler divergence needs models with an inverse covariance"
        )

    added_icov = configuration.added_icov
    mean_diff = configuration.mean_diff
    cross = configuration.cross
    cross_swapped = configuration.cross_swapped

    np.add(s1.icov, s2.icov, out=added_icov, dtype=np.float64)

    np.multiply(s1.cov, s2.icov, out=cross, dtype=np.float64)
    np.multiply(s2.cov, s1.icov, out=cross_swapped, dtype=np.float64)
    np.add(cross, cross_swapped, out=cross)
    total = float(np.dot(configuration.trace_weights, cross))

    np.subtract(s1.mean, s2.mean, out=mean_diff, dtype=np.float64)

    # Full symmetric matrix read through the packed accessor table
    np.take(added_icov, configuration.full_index, out=configuration.added_full)
    np.dot(configuration.added_full, mean_diff, out=configuration.product)
    total += float(np.dot(mean_diff, configuration.product))

    return total / 4.0 - configuration.dim / 2.0


# =============================================================================
# COSINE
# =============================================================================

def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine of the angle between two vectors over their shared prefix.

    Returns 0 when either magnitude is 0.
    """
    n = min(len(a), len(b))
    x = np.asarray(a[:n], dtype=np.float64)
    y = np.asarray(b[:n], dtype=np.float64)

    magnitude = np.sqrt(np.dot(x, x)) * np.sqrt(np.dot(y, y))
    if magnitude == 0:
        return 0.0
    return float(np.dot(x, y) / magnitude)


def cosine_distance(s1: GaussianModel, s2: GaussianModel) -> float:
    """1 - cos(mean1, mean2) + 1 - cos(cov1, cov2), in [0, 4]."""
    mean_term = 1.0 - cosine_similarity(s1.mean, s2.mean)
    cov_term = 1.0 - cosine_similarity(s1.cov, s2.cov)
    return mean_term + cov_term


# =============================================================================
# HAMMING
# =============================================================================

def hamming_distance(bits_a: np.ndarray, bits_b: np.ndarray) -> int:
    """
    Number of positions at which two bit strings differ.

    Raises:
        DimensionMismatchError: If the bit strings differ in length
    """
    a = np.asarray(bits_a, dtype=bool).ravel()
    b = np.asarray(bits_b, dtype=bool).ravel()
    if a.size != b.size:
        raise DimensionMismatchError(a.size, b.size, what='bit string length')
    return int(np.count_nonzero(a != b))


def model_hamming_distance(s1: GaussianModel, s2: GaussianModel) -> int:
    """Hamming distance between the bit strings attached to two models."""
    if s1.bit_string is None or s2.bit_string is None:
        raise ValueError("Both models need a bit_string for the Hamming distance")
    return hamming_distance(s1.bit_string, s2.bit_string)


# =============================================================================
# DYNAMIC TIME WARPING
# =============================================================================

def dtw_distance(
    s1: GaussianModel,
    s2: GaussianModel,
    step: StepCost = StepCost.EUCLIDEAN,
    dtw: Optional[DtwFunction] = None
) -> float:
    """
    Warping cost between the flattened [mean | cov | icov] of two models.

    Parameters:
        s1: First model
        s2: Second model
        step: Local step cost
        dtw: Injected DTW capability (None = capabilities.dtw_cost)

    Returns:
        Cost reported by the DTW capability
    """
    if dtw is None:
        dtw = dtw_cost
    return float(dtw(s1.to_array(), s2.to_array(), step))


# =============================================================================
# DISPATCH
# =============================================================================

_DISPATCH = {
    DistanceKind.KULLBACK_LEIBLER: lambda s1, s2, cfg, dtw: kl_divergence(s1, s2, cfg),
    DistanceKind.COSINE: lambda s1, s2, cfg, dtw: cosine_distance(s1, s2),
    DistanceKind.HAMMING: lambda s1, s2, cfg, dtw: float(model_hamming_distance(s1, s2)),
    DistanceKind.DTW_EUCLIDEAN:
        lambda s1, s2, cfg, dtw: dtw_distance(s1, s2, StepCost.EUCLIDEAN, dtw),
    DistanceKind.DTW_SQUARED_EUCLIDEAN:
        lambda s1, s2, cfg, dtw: dtw_distance(s1, s2, StepCost.SQUARED_EUCLIDEAN, dtw),
    DistanceKind.DTW_MANHATTAN:
        lambda s1, s2, cfg, dtw: dtw_distance(s1, s2, StepCost.MANHATTAN, dtw),
    DistanceKind.DTW_MAXIMUM:
        lambda s1, s2, cfg, dtw: dtw_distance(s1, s2, StepCost.MAXIMUM, dtw),
}


def resolve_distance_kind(kind: Union[DistanceKind, str]) -> DistanceKind:
    """
    Map a selector (enum member, value or member name) to a DistanceKind.

    Raises:
        UnsupportedDistanceKindError: If the selector names no known kind
    """
    if isinstance(kind, DistanceKind):
        return kind
    try:
        return DistanceKind(kind)
    except (ValueError, TypeError):
        pass
    if isinstance(kind, str) and kind.upper() in DistanceKind.__members__:
        return DistanceKind[kind.upper()]
    raise UnsupportedDistanceKindError(f"Unknown distance kind: {kind!r}")


def compute_distance(
    s1: GaussianModel,
    s2: GaussianModel,
    kind: Union[DistanceKind, str] = DistanceKind.KULLBACK_LEIBLER,
    configuration: Optional[DistanceConfiguration] = None,
    dtw: Optional[DtwFunction] = None
) -> float:
    """
    Distance between two models for the selected kind.

    Parameters:
        s1: First model
        s2: Second model
        kind: Distance selector
        configuration: KL scratch buffers to reuse (ignored by other kinds)
        dtw: Injected DTW capability (DTW kinds only)

    Returns:
        Distance value (smaller = more similar)

    Raises:
        UnsupportedDistanceKindError: If kind is not recognized
        DimensionMismatchError: If the models cannot be compared
        MissingInverseError: If the KL divergence meets a model without inverse
    """
    kind = resolve_distance_kind(kind)
    return _DISPATCH[kind](s1, s2, configuration, dtw)


def rank_models(
    query: GaussianModel,
    candidates: Sequence[GaussianModel],
    kind: Union[DistanceKind, str] = DistanceKind.KULLBACK_LEIBLER,
    dtw: Optional[DtwFunction] = None
) -> List[Tuple[int, float]]:
    """
    Rank candidate models by distance to a query model.

    One DistanceConfiguration is reused for the whole ranking. Candidates that
    cannot be compared with the query (other dimension, or no inverse
    covariance under the KL divergence) are excluded and logged.

    Parameters:
        query: Query model
        candidates: Models to rank
        kind: Distance selector
        dtw: Injected DTW capability (DTW kinds only)

    Returns:
        List of (candidate_index, distance), most similar first
    """
    kind = resolve_distance_kind(kind)
    configuration = DistanceConfiguration(query.dim)

    ranked = []
    for index, candidate in enumerate(candidates):
        try:
            value = compute_distance(query, candidate, kind, configuration, dtw)
        except (DimensionMismatchError, MissingInverseError) as e:
            logger.warning("Excluding candidate %d from ranking: %s", index, e)
            continue
        ranked.append((index, value))

    ranked.sort(key=lambda pair: pair[1])
    return ranked
