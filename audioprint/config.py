"""
audioprint - Configuration

All tunable parameters and constants with documentation.
Every default value includes rationale.
"""

from typing import Tuple

# =============================================================================
# SPECTROGRAM PARAMETERS
# =============================================================================

# Sample rate the audio is read at (Hz)
# Why: 5512 Hz keeps the 318-2000 Hz band where most perceptual energy lives,
#      and makes every fingerprint cheap to compute
SAMPLE_RATE: int = 5512

# Size of the windowed DFT block (samples)
# Why: 2048 samples at 5512 Hz ≈ 371ms, long enough to resolve the low bands
WDFT_SIZE: int = 2048

# Hop between consecutive spectrogram frames (samples)
# Why: 64 samples ≈ 11.6ms, fine time resolution for alignment-free matching
OVERLAP: int = 64

# Whether to RMS-normalize the signal before the log-spectrogram
# Why: False keeps the raw energy scale, which the reference database was built with
NORMALIZE_SIGNAL: bool = False

# Window function applied to every frame (scipy.signal.get_window name)
# Why: Hann window has low spectral leakage and is the usual choice for STFTs
WINDOW_FUNCTION: str = 'hann'

# =============================================================================
# SIGNAL NORMALIZATION PARAMETERS
# =============================================================================

# Scale applied to the measured RMS before clamping
# Why: Empirical; maps typical program material into the clamp range
RMS_SCALE: float = 10.0

# Lower/upper bounds for the scaled RMS divisor
# Why: Empirically detected; the floor avoids division by zero on silence,
#      the ceiling avoids blowing up very loud masters
MIN_RMS: float = 0.1
MAX_RMS: float = 3.0

# =============================================================================
# LOGARITHMIC BAND PARAMETERS
# =============================================================================

# Frequency range taken into account (Hz)
# Why: 318-2000 Hz is the band most robust to codecs and background noise
MIN_FREQUENCY: int = 318
MAX_FREQUENCY: int = 2000

# Number of logarithmically spaced bands
# Why: 32 bands is a power of two, which the Haar decomposition requires
LOG_BINS: int = 32

# Log base used for the static band layout
# Why: Base 2 spaces bands by fractions of an octave
LOG_BASE: float = 2.0

# Derive the log base from the frequency range instead of LOG_BASE
# Why: False keeps the static layout the reference database was built with
USE_DYNAMIC_LOG_BASE: bool = False

# =============================================================================
# FINGERPRINT IMAGE PARAMETERS
# =============================================================================

# Frames per fingerprint image
# Why: 128 frames * 64 samples = 8192 samples ≈ 1.48s, and a power of two
FINGERPRINT_LENGTH: int = 128

# Samples covered by one fingerprint image
# Why: FINGERPRINT_LENGTH * OVERLAP, kept explicit for the incremental strides
SAMPLES_PER_FINGERPRINT: int = FINGERPRINT_LENGTH * OVERLAP

# Number of top wavelets kept per fingerprint
# Why: 200 of 4096 coefficients keeps the dominant structure and drops noise
TOP_WAVELETS: int = 200

# Gap between consecutive database images (samples)
# Why: 5115 samples ≈ 928ms keeps the reference database compact
DATABASE_STRIDE: int = 5115

# Random gap range between consecutive query images (samples)
# Why: 0-253 samples ≈ 0-46ms, dense query images maximize the chance of
#      landing near a database image at an arbitrary offset
QUERY_STRIDE_MIN: int = 0
QUERY_STRIDE_MAX: int = 253

# =============================================================================
# GAUSSIAN MODEL PARAMETERS
# =============================================================================

# Number of MFCC coefficients (model dimension)
# Why: 20 coefficients capture the spectral envelope without modeling pitch
N_MFCC: int = 20

# Number of mel filterbank bands
# Why: 36 bands cover 0 - SAMPLE_RATE/2 with filters several bins wide
N_MELS: int = 36

# Maximum condition number accepted for the covariance matrix
# Why: Beyond 1e12 the float64 inverse loses most significant digits and the
#      float32 packed inverse is meaningless
MAX_CONDITION: float = 1e12

# =============================================================================
# OUTPUT PARAMETERS
# =============================================================================

# JSON schema version for exported models
# Why: Versioning allows future format changes while maintaining compatibility
SCHEMA_VERSION: str = "1.0.0"

# Plot resolution (dots per inch)
# Why: 150 DPI is good balance of quality and file size for screen viewing
PLOT_DPI: int = 150

# Plot figure size (width, height in inches)
# Why: Wider than tall, spectrograms are long in time and short in frequency
PLOT_FIGSIZE: Tuple[int, int] = (14, 6)
