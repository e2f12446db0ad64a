"""
Spectrum Kernel Module - Normalization, Spectrogram and Log-Spectrogram

DESIGN CONSTRAINTS:
- No I/O operations
- No config module imports - all parameters are explicit
- FFT and window are injected capabilities, consumed as black boxes

PROCESSING PIPELINE:
1. RMS normalization (samples -> samples, in place)
2. Spectrogram (samples -> (width, wdft_size / 2 + 1) power frames)
3. Log-frequency index (config -> log_bins + 1 boundary indices)
4. Log-spectrogram (samples -> (width, log_bins) band energies)

FRAME GRID:
- width = max(0, (n_samples - wdft_size) // overlap)
- Frame i covers samples [i * overlap, i * overlap + wdft_size)
"""

import logging
import warnings

import numpy as np

from audioprint.capabilities import FFTTransform

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT PARAMETERS (Explicit - No Config Imports)
# =============================================================================

DEFAULT_RMS_SCALE: float = 10.0
DEFAULT_MIN_RMS: float = 0.1
DEFAULT_MAX_RMS: float = 3.0


# =============================================================================
# SIGNAL NORMALIZATION
# =============================================================================

def normalize_in_place(
    samples: np.ndarray,
    rms_scale: float = DEFAULT_RMS_SCALE,
    min_rms: float = DEFAULT_MIN_RMS,
    max_rms: float = DEFAULT_MAX_RMS
) -> float:
    """
    Normalize signal power in place.

    CONTRACT:
    - Input: samples (1D float array, mutated in place)
    - rms = sqrt(mean(samples ** 2)) * rms_scale, clamped into [min_rms, max_rms]
    - Every sample is divided by rms, then clipped into [-1, 1]
    - All-zero input stays all-zero (rms floor, no division by zero)

    Parameters:
        samples: Mono signal (float32 or float64)
        rms_scale: Multiplier applied to the measured RMS
        min_rms: Lower clamp for the divisor
        max_rms: Upper clamp for the divisor

    Returns:
        The divisor that was applied
    """
    if len(samples) == 0:
        return min_rms

    # float64 accumulation, the reduction is associative so any chunking is fine
    squares = float(np.dot(samples.astype(np.float64), samples.astype(np.float64)))
    rms = np.sqrt(squares / len(samples)) * rms_scale
    logger.debug("Scaled RMS: %f", rms)

    rms = float(min(max(rms, min_rms), max_rms))

    samples /= samples.dtype.type(rms)
    np.clip(samples, -1.0, 1.0, out=samples)

    return rms


# =============================================================================
# SPECTROGRAM
# =============================================================================

def spectrogram_width(n_samples: int, wdft_size: int, overlap: int) -> int:
    """Number of frames for a signal of n_samples."""
    return max(0, (n_samples - wdft_size) // overlap)


def power_spectrum(complex_signal: np.ndarray, wdft_size: int) -> np.ndarray:
    """
    Per-bin power of one interleaved complex spectrum.

    CONTRACT:
    - Input: (2 * wdft_size,) interleaved real/imaginary parts
    - Output: (wdft_size / 2 + 1,) float32
    - power[j] = (re / (wdft_size / 2)) ** 2 + (img / (wdft_size / 2)) ** 2

    Parameters:
        complex_signal: FFT output
        wdft_size: Transform size

    Returns:
        Power per bin for bins [0, wdft_size / 2]
    """
    n_bins = wdft_size // 2 + 1
    half = wdft_size / 2.0
    re = complex_signal[0:2 * n_bins:2].astype(np.float64) / half
    img = complex_signal[1:2 * n_bins:2].astype(np.float64) / half
    return (re * re + img * img).astype(np.float32)


def create_spectrogram(
    samples: np.ndarray,
    fft: FFTTransform,
    window: np.ndarray,
    overlap: int,
    wdft_size: int
) -> np.ndarray:
    """
    Compute the windowed power spectrogram.

    CONTRACT:
    - Input: samples (1D, already normalized if normalization is wanted)
    - Output: (width, wdft_size / 2 + 1) float32, values >= 0
    - Each frame reads only its slice of samples and the shared window
    - Deterministic given a deterministic fft

    Parameters:
        samples: Mono signal (read-only)
        fft: Injected transform, fft(samples, offset, size, window)
        window: Window coefficients (length wdft_size)
        overlap: Hop between frames (samples)
        wdft_size: Transform size (samples)

    Returns:
        Power spectrogram, one row per frame
    """
    if len(window) != wdft_size:
        raise ValueError(
            f"Window length {len(window)} does not match wdft_size {wdft_size}"
        )

    width = spectrogram_width(len(samples), wdft_size, overlap)
    frames = np.zeros((width, wdft_size // 2 + 1), dtype=np.float32)

    for i in range(width):
        complex_signal = fft(samples, i * overlap, wdft_size, window)
        frames[i] = power_spectrum(complex_signal, wdft_size)

    return frames


# =============================================================================
# LOGARITHMIC FREQUENCY INDEX
# =============================================================================

def freq_to_index(freq: float, sample_rate: int, spectrum_length: int) -> int:
    """
    Index in the spectrum vector of a frequency.

    N points in time correspond to N / 2 + 1 points in frequency covering
    [0, sample_rate / 2]. E.g. 318 Hz at 5512 Hz with N = 2048 is bin 118.

    Parameters:
        freq: Frequency in Hz
        sample_rate: Sample rate in Hz
        spectrum_length: Transform size N

    Returns:
        Bin index (rounded half to even)
    """
    fraction = freq / (sample_rate / 2.0)
    return int(np.rint((spectrum_length / 2 + 1) * fraction))


def generate_static_log_frequencies(
    sample_rate: int,
    wdft_size: int,
    min_frequency: float,
    max_frequency: float,
    log_bins: int,
    log_base: float
) -> np.ndarray:
    """
    Band boundaries spaced evenly in log_base space.

    CONTRACT:
    - Output: (log_bins + 1,) int array, non-decreasing
    - index[i] = freq_to_index(log_base ** (log_min + i * delta))

    Returns:
        Boundary indices into the linear spectrum
    """
    log_min = np.log(min_frequency) / np.log(log_base)
    log_max = np.log(max_frequency) / np.log(log_base)
    delta = (log_max - log_min) / log_bins

    indexes = np.zeros(log_bins + 1, dtype=np.int64)
    for i in range(log_bins + 1):
        freq = float(np.power(log_base, log_min + i * delta))
        indexes[i] = freq_to_index(freq, sample_rate, wdft_size)

    return indexes


def generate_dynamic_log_frequencies(
    sample_rate: int,
    wdft_size: int,
    min_frequency: float,
    max_frequency: float,
    log_bins: int
) -> np.ndarray:
    """
    Band boundaries with the log base derived from the frequency range.

    CONTRACT:
    - log_base = exp(ln(max_frequency / min_frequency) / log_bins)
    - min_coefficient = wdft_size / sample_rate * min_frequency
    - index[j] = floor((log_base ** j - 1) * min_coefficient) + floor(min_coefficient)
    - Output: (log_bins + 1,) int array, non-decreasing

    See dynamic_log_band_ends for the per-band upper bound, which this table
    does not use.

    Returns:
        Boundary indices into the linear spectrum
    """
    log_base = np.exp(np.log(max_frequency / min_frequency) / log_bins)
    min_coefficient = wdft_size / sample_rate * min_frequency

    j = np.arange(log_bins + 1, dtype=np.float64)
    starts = np.floor((np.power(log_base, j) - 1.0) * min_coefficient)
    return (starts + np.floor(min_coefficient)).astype(np.int64)


def dynamic_log_band_ends(
    sample_rate: int,
    wdft_size: int,
    min_frequency: float,
    max_frequency: float,
    log_bins: int
) -> np.ndarray:
    """
    Upper bound of each band in the dynamic layout.

    end[j] = floor((log_base ** (j + 1) - 1) * min_coefficient). Unlike the
    index table this is not offset by floor(min_coefficient), so end[j] trails
    index[j + 1] by exactly that offset.

    Returns:
        (log_bins + 1,) int array
    """
    log_base = np.exp(np.log(max_frequency / min_frequency) / log_bins)
    min_coefficient = wdft_size / sample_rate * min_frequency

    j = np.arange(log_bins + 1, dtype=np.float64)
    return np.floor((np.power(log_base, j + 1.0) - 1.0) * min_coefficient).astype(np.int64)


def generate_log_frequencies(
    sample_rate: int,
    wdft_size: int,
    min_frequency: float,
    max_frequency: float,
    log_bins: int,
    log_base: float,
    use_dynamic_log_base: bool = False
) -> np.ndarray:
    """
    Band boundaries for the selected algorithm.

    Parameters:
        sample_rate: Sample rate in Hz
        wdft_size: Transform size
        min_frequency: Lowest band edge in Hz
        max_frequency: Highest band edge in Hz
        log_bins: Number of bands
        log_base: Base for the static layout (ignored by the dynamic one)
        use_dynamic_log_base: Select the dynamic layout

    Returns:
        (log_bins + 1,) non-decreasing int array
    """
    if use_dynamic_log_base:
        indexes = generate_dynamic_log_frequencies(
            sample_rate, wdft_size, min_frequency, max_frequency, log_bins
        )
    else:
        indexes = generate_static_log_frequencies(
            sample_rate, wdft_size, min_frequency, max_frequency, log_bins, log_base
        )

    validate_log_frequency_index(indexes, log_bins, wdft_size)
    return indexes


def validate_log_frequency_index(indexes: np.ndarray, log_bins: int, wdft_size: int) -> None:
    """
    Check the boundary table before aggregation.

    Raises:
        ValueError: If the table has the wrong length, decreases, or points
            outside the transform
    """
    if len(indexes) != log_bins + 1:
        raise ValueError(
            f"Log frequency index must have {log_bins + 1} entries, got {len(indexes)}"
        )
    if np.any(np.diff(indexes) < 0):
        raise ValueError("Log frequency index must be non-decreasing")
    if indexes[0] < 0 or indexes[-1] > wdft_size:
        raise ValueError(
            f"Log frequency index out of range [0, {wdft_size}]: "
            f"[{indexes[0]}, {indexes[-1]}]"
        )


# =============================================================================
# LOG-SPECTROGRAM
# =============================================================================

def extract_log_bins(
    spectrum: np.ndarray,
    log_frequency_index: np.ndarray,
    log_bins: int
) -> np.ndarray:
    """
    Average band power over each logarithmic band.

    CONTRACT:
    - Input: spectrum (interleaved complex, length 2 * N)
    - half_width = N / 2
    - band[i] = mean over k in [index[i], index[i + 1]) of
      (re[k] / half_width) ** 2 + (img[k] / half_width) ** 2
    - An empty band (index[i] == index[i + 1]) is 0

    Returns:
        (log_bins,) float32 band energies
    """
    width = len(spectrum) // 2
    half_width = width / 2.0

    re = spectrum[0::2].astype(np.float64) / half_width
    img = spectrum[1::2].astype(np.float64) / half_width
    power = re * re + img * img

    # Prefix sums give every band sum in one pass
    cumulative = np.concatenate(([0.0], np.cumsum(power)))
    low = log_frequency_index[:log_bins]
    high = log_frequency_index[1:log_bins + 1]
    counts = high - low

    band_sums = cumulative[high] - cumulative[low]
    bands = np.zeros(log_bins, dtype=np.float64)
    np.divide(band_sums, counts, out=bands, where=counts > 0)

    return bands.astype(np.float32)


def create_log_spectrogram(
    samples: np.ndarray,
    fft: FFTTransform,
    window: np.ndarray,
    overlap: int,
    wdft_size: int,
    log_frequency_index: np.ndarray,
    log_bins: int
) -> np.ndarray:
    """
    Compute the log-binned spectrogram.

    CONTRACT:
    - Input: samples (1D, normalized by the caller if wanted)
    - Output: (width, log_bins) float32, values >= 0
    - One log frame per spectrogram frame

    Parameters:
        samples: Mono signal (read-only)
        fft: Injected transform, fft(samples, offset, size, window)
        window: Window coefficients (length wdft_size)
        overlap: Hop between frames (samples)
        wdft_size: Transform size (samples)
        log_frequency_index: (log_bins + 1,) boundary table
        log_bins: Number of bands

    Returns:
        Log-spectrogram, one row per frame
    """
    if len(window) != wdft_size:
        raise ValueError(
            f"Window length {len(window)} does not match wdft_size {wdft_size}"
        )
    validate_log_frequency_index(log_frequency_index, log_bins, wdft_size)

    counts = np.diff(log_frequency_index)
    if np.any(counts == 0):
        warnings.warn(
            f"{int(np.sum(counts == 0))} of {log_bins} log bands are empty and will be zero; "
            "widen the frequency range or reduce log_bins"
        )

    width = spectrogram_width(len(samples), wdft_size, overlap)
    frames = np.zeros((width, log_bins), dtype=np.float32)

    for i in range(width):
        complex_signal = fft(samples, i * overlap, wdft_size, window)
        frames[i] = extract_log_bins(complex_signal, log_frequency_index, log_bins)

    return frames
