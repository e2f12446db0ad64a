"""
Model Codec Module - Byte-Exact Model Serialization

BINARY LAYOUT (little-endian regardless of host byte order):
- int32   dim
- float32 mean[dim]
- float32 cov[covlen]     covlen = dim * (dim + 1) / 2
- float32 icov[covlen]

Total size: 4 + 4 * (dim + 2 * covlen) bytes, e.g. 784 bytes for dim = 13.
Every field is read and written through an explicit little-endian dtype, so
big-endian hosts byte-swap each 4-byte field.
"""

import struct

import numpy as np

from audioprint.distance import kl_divergence
from audioprint.errors import TruncatedModelError
from audioprint.scms import GaussianModel, packed_length

HEADER = struct.Struct('<i')
FLOAT_DTYPE = np.dtype('<f4')


def serialized_size(dim: int) -> int:
    """Number of bytes of a serialized model of dimension dim."""
    return HEADER.size + FLOAT_DTYPE.itemsize * (dim + 2 * packed_length(dim))


def model_to_bytes(model: GaussianModel) -> bytes:
    """
    Serialize a model.

    Parameters:
        model: Model to serialize

    Returns:
        serialized_size(model.dim) bytes
    """
    body = np.concatenate((model.mean, model.cov, model.icov)).astype(FLOAT_DTYPE)
    return HEADER.pack(model.dim) + body.tobytes()


def model_from_bytes(buf: bytes) -> GaussianModel:
    """
    Deserialize a model.

    CONTRACT:
    - dim is read from the header, never assumed
    - Trailing bytes after the model are ignored

    Parameters:
        buf: Serialized model

    Returns:
        GaussianModel equal field-for-field to the serialized one

    Raises:
        TruncatedModelError: If buf is shorter than its header announces, or
            too short to hold a header, or the header dim is not positive
    """
    view = memoryview(buf)
    if len(view) < HEADER.size:
        raise TruncatedModelError(HEADER.size, len(view))

    (dim,) = HEADER.unpack_from(view, 0)
    if dim <= 0:
        raise TruncatedModelError(serialized_size(max(dim, 1)), len(view))

    expected = serialized_size(dim)
    if len(view) < expected:
        raise TruncatedModelError(expected, len(view))

    covlen = packed_length(dim)
    values = np.frombuffer(view, dtype=FLOAT_DTYPE, count=dim + 2 * covlen, offset=HEADER.size)
    values = values.astype(np.float32)

    return GaussianModel(
        dim=dim,
        mean=values[:dim],
        cov=values[dim:dim + covlen],
        icov=values[dim + covlen:]
    )


def distance_from_bytes(a: bytes, b: bytes) -> float:
    """KL divergence between two serialized models."""
    return kl_divergence(model_from_bytes(a), model_from_bytes(b))
