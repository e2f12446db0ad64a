"""
Injected Capabilities

The pipeline consumes four external capabilities through narrow callables:

- AudioReader: read_mono(path, sample_rate, duration_ms, start_ms) -> float32[]
- FFTTransform: fft(samples, offset, size, window) -> float32[2 * size]
  (interleaved: even index = real part, odd index = imaginary part)
- WindowFunction: coefficients() -> float32[size]
- DtwFunction: dtw(x, y, step) -> float

Default implementations backed by scipy and librosa live here (audio reading
lives in audio_io). Tests substitute deterministic stand-ins for any of them.
"""

from enum import Enum
from typing import Callable

import librosa
import numpy as np
import scipy.fft
from scipy import signal as scipy_signal


class StepCost(Enum):
    """Local step cost used by dynamic time warping."""
    EUCLIDEAN = "euclidean"
    SQUARED_EUCLIDEAN = "squared_euclidean"
    MANHATTAN = "manhattan"
    MAXIMUM = "maximum"


AudioReader = Callable[[str, int, int, int], np.ndarray]
FFTTransform = Callable[[np.ndarray, int, int, np.ndarray], np.ndarray]
DtwFunction = Callable[[np.ndarray, np.ndarray, StepCost], float]


class WindowFunction:
    """
    Fixed-length window coefficients, computed once and shared read-only.

    Parameters:
        name: Any window name accepted by scipy.signal.get_window
        size: Number of coefficients (the transform size)
    """

    def __init__(self, name: str = 'hann', size: int = 2048):
        if size <= 0:
            raise ValueError(f"Window size must be positive, got {size}")
        self.name = name
        self.size = size
        coefficients = scipy_signal.get_window(name, size, fftbins=True).astype(np.float32)
        coefficients.flags.writeable = False
        self._coefficients = coefficients

    def coefficients(self) -> np.ndarray:
        return self._coefficients

    def __repr__(self) -> str:
        return f"WindowFunction(name={self.name!r}, size={self.size})"


def scipy_fft_forward(
    samples: np.ndarray,
    offset: int,
    size: int,
    window: np.ndarray
) -> np.ndarray:
    """
    Forward FFT of one windowed frame.

    CONTRACT:
    - Reads samples[offset:offset + size], never writes to samples
    - Output: (2 * size,) float32, interleaved real/imaginary parts
    - Raises ValueError if the frame runs past the end of samples

    Parameters:
        samples: Mono signal
        offset: First sample of the frame
        size: Transform size
        window: Window coefficients (length size)

    Returns:
        Interleaved complex spectrum
    """
    frame = np.asarray(samples[offset:offset + size], dtype=np.float64)
    if len(frame) != size:
        raise ValueError(
            f"Frame at offset {offset} has {len(frame)} samples, expected {size}"
        )

    spectrum = scipy.fft.fft(frame * window)

    interleaved = np.empty(2 * size, dtype=np.float32)
    interleaved[0::2] = spectrum.real
    interleaved[1::2] = spectrum.imag
    return interleaved


def _local_costs(a: np.ndarray, b: np.ndarray, step: StepCost) -> np.ndarray:
    """Pairwise step costs between every row of a and every row of b."""
    diff = a[:, np.newaxis, :] - b[np.newaxis, :, :]

    if step == StepCost.EUCLIDEAN:
        return np.sqrt(np.sum(diff ** 2, axis=2))
    elif step == StepCost.SQUARED_EUCLIDEAN:
        return np.sum(diff ** 2, axis=2)
    elif step == StepCost.MANHATTAN:
        return np.sum(np.abs(diff), axis=2)
    elif step == StepCost.MAXIMUM:
        return np.max(np.abs(diff), axis=2)
    else:
        raise ValueError(f"Unknown step cost: {step}")


def dtw_cost(x: np.ndarray, y: np.ndarray, step: StepCost = StepCost.EUCLIDEAN) -> float:
    """
    Total warping cost between two sequences.

    Unconstrained dynamic time warping with both boundary points fixed. 1-D
    inputs are treated as sequences of scalars, 2-D inputs as sequences of
    vectors (rows).

    Parameters:
        x: First sequence
        y: Second sequence
        step: Local step cost

    Returns:
        Accumulated cost of the optimal warping path (inf if either is empty)
    """
    a = np.asarray(x, dtype=np.float64)
    b = np.asarray(y, dtype=np.float64)
    if a.size == 0 or b.size == 0:
        return float("inf")

    if a.ndim == 1:
        a = a[:, np.newaxis]
    if b.ndim == 1:
        b = b[:, np.newaxis]

    costs = _local_costs(a, b, step)

    # Steps (1, 1), (0, 1), (1, 0) with unit weights, both endpoints fixed
    accumulated = librosa.sequence.dtw(C=costs, backtrack=False)
    return float(accumulated[-1, -1])
