"""
Fingerprinting Parameters Module - Configuration Surface

These parameters control every stage of the pipeline. Kernel modules never
read them directly; FingerprintService unpacks them into explicit arguments.

USAGE:
    from audioprint.params import FingerprintingConfig, DEFAULT_CONFIG

    # Use default (database insertion) config
    config = DEFAULT_CONFIG

    # Create custom config
    custom = FingerprintingConfig(
        spectrum=SpectrumParams(normalize_signal=True),
        log_bins=LogBinParams(use_dynamic_log_base=True)
    )
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from audioprint import config
from audioprint.strides import (
    IncrementalRandomStride,
    IncrementalStaticStride,
    RandomStride,
    StaticStride,
    Stride,
)


@dataclass(frozen=True)
class SpectrumParams:
    """
    Spectrogram parameters.

    Attributes:
        sample_rate: Sample rate the audio is read at (default 5512 Hz)
        wdft_size: Transform size in samples (default 2048 ≈ 371ms)
        overlap: Hop between frames in samples (default 64 ≈ 11.6ms)
        window_function: scipy.signal window name (default 'hann')
        normalize_signal: RMS-normalize before the log-spectrogram (default False)
        rms_scale: Multiplier applied to the measured RMS (default 10)
        min_rms: Lower clamp of the normalization divisor (default 0.1)
        max_rms: Upper clamp of the normalization divisor (default 3.0)
    """
    sample_rate: int = config.SAMPLE_RATE
    wdft_size: int = config.WDFT_SIZE
    overlap: int = config.OVERLAP
    window_function: str = config.WINDOW_FUNCTION
    normalize_signal: bool = config.NORMALIZE_SIGNAL
    rms_scale: float = config.RMS_SCALE
    min_rms: float = config.MIN_RMS
    max_rms: float = config.MAX_RMS


@dataclass(frozen=True)
class LogBinParams:
    """
    Logarithmic band layout parameters.

    Attributes:
        min_frequency: Lowest band edge in Hz (default 318)
        max_frequency: Highest band edge in Hz (default 2000)
        log_bins: Number of bands (default 32)
        log_base: Base of the static layout (default 2.0)
        use_dynamic_log_base: Derive the base from the frequency range (default False)
    """
    min_frequency: int = config.MIN_FREQUENCY
    max_frequency: int = config.MAX_FREQUENCY
    log_bins: int = config.LOG_BINS
    log_base: float = config.LOG_BASE
    use_dynamic_log_base: bool = config.USE_DYNAMIC_LOG_BASE


@dataclass(frozen=True)
class FingerprintParams:
    """
    Fingerprint image parameters.

    Attributes:
        fingerprint_length: Frames per image (default 128)
        samples_per_fingerprint: Samples covered by one image, must equal
            fingerprint_length * overlap (default 8192); incremental strides
            subtract it to turn a start-to-start increment into a gap
        top_wavelets: Haar coefficients kept per fingerprint (default 200)
    """
    fingerprint_length: int = config.FINGERPRINT_LENGTH
    samples_per_fingerprint: int = config.SAMPLES_PER_FINGERPRINT
    top_wavelets: int = config.TOP_WAVELETS


@dataclass(frozen=True)
class ModelParams:
    """
    Gaussian model parameters.

    Attributes:
        n_mfcc: Model dimension (default 20)
        n_mels: Mel bands feeding the DCT (default 36)
        max_condition: Largest accepted covariance condition number (default 1e12)
    """
    n_mfcc: int = config.N_MFCC
    n_mels: int = config.N_MELS
    max_condition: float = config.MAX_CONDITION


@dataclass
class FingerprintingConfig:
    """
    Complete configuration aggregating all parameter groups plus the stride.

    The stride is the only stateful member (random strides own their RNG), so
    build a fresh config per extraction run when reproducibility matters.

    Example usage:
        config = FingerprintingConfig()  # Database insertion defaults
        config = query_config(seed=7)    # Query-time random strides
    """
    spectrum: SpectrumParams = field(default_factory=SpectrumParams)
    log_bins: LogBinParams = field(default_factory=LogBinParams)
    fingerprint: FingerprintParams = field(default_factory=FingerprintParams)
    model: ModelParams = field(default_factory=ModelParams)
    stride: Stride = field(default_factory=lambda: StaticStride(config.DATABASE_STRIDE))

    def to_dict(self) -> Dict:
        """
        Export all parameters as a flat dictionary for JSON serialization.

        Returns:
            Dictionary with all parameter values
        """
        return {
            # Spectrum params
            'sample_rate': self.spectrum.sample_rate,
            'wdft_size': self.spectrum.wdft_size,
            'overlap': self.spectrum.overlap,
            'window_function': self.spectrum.window_function,
            'normalize_signal': self.spectrum.normalize_signal,
            'rms_scale': self.spectrum.rms_scale,
            'min_rms': self.spectrum.min_rms,
            'max_rms': self.spectrum.max_rms,

            # Log bin params
            'min_frequency': self.log_bins.min_frequency,
            'max_frequency': self.log_bins.max_frequency,
            'log_bins': self.log_bins.log_bins,
            'log_base': self.log_bins.log_base,
            'use_dynamic_log_base': self.log_bins.use_dynamic_log_base,

            # Fingerprint params
            'fingerprint_length': self.fingerprint.fingerprint_length,
            'samples_per_fingerprint': self.fingerprint.samples_per_fingerprint,
            'top_wavelets': self.fingerprint.top_wavelets,
            'stride': repr(self.stride),

            # Model params
            'n_mfcc': self.model.n_mfcc,
            'n_mels': self.model.n_mels,
            'max_condition': self.model.max_condition,
        }


# Default configuration instance (database insertion strides)
DEFAULT_CONFIG = FingerprintingConfig()


def query_config(base: Optional[FingerprintingConfig] = None, seed: Optional[int] = None) -> FingerprintingConfig:
    """
    Derive a query-time configuration with narrow random strides.

    Parameters:
        base: Configuration to derive from (None = defaults)
        seed: Seed for the random stride (None = nondeterministic)

    Returns:
        New FingerprintingConfig sharing every parameter group with base
    """
    if base is None:
        base = FingerprintingConfig()
    stride = RandomStride(config.QUERY_STRIDE_MIN, config.QUERY_STRIDE_MAX, seed=seed)
    return replace(base, stride=stride)


def incremental_config(
    increment: int,
    base: Optional[FingerprintingConfig] = None,
    first_stride: int = 0
) -> FingerprintingConfig:
    """
    Derive a configuration whose images start `increment` samples apart.

    Parameters:
        increment: Samples between the starts of consecutive images
        base: Configuration to derive from (None = defaults)
        first_stride: Sample offset of the first image

    Returns:
        New FingerprintingConfig with an IncrementalStaticStride
    """
    if base is None:
        base = FingerprintingConfig()
    stride = IncrementalStaticStride(
        increment, base.fingerprint.samples_per_fingerprint, first_stride=first_stride
    )
    return replace(base, stride=stride)


def incremental_query_config(
    min_increment: int,
    max_increment: int,
    base: Optional[FingerprintingConfig] = None,
    seed: Optional[int] = None
) -> FingerprintingConfig:
    """Derive a configuration whose images start a random [min, max) samples apart."""
    if base is None:
        base = FingerprintingConfig()
    stride = IncrementalRandomStride(
        min_increment, max_increment, base.fingerprint.samples_per_fingerprint, seed=seed
    )
    return replace(base, stride=stride)


def validate_config(cfg: FingerprintingConfig) -> bool:
    """
    Validate configuration parameters for consistency.

    Parameters:
        cfg: FingerprintingConfig instance to validate

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    spectrum = cfg.spectrum
    log_bins = cfg.log_bins

    # Check positive values
    if spectrum.sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    if spectrum.wdft_size <= 0 or spectrum.wdft_size % 2 != 0:
        raise ValueError("wdft_size must be a positive even number")
    if spectrum.overlap <= 0:
        raise ValueError("overlap must be positive")
    if log_bins.log_bins <= 0:
        raise ValueError("log_bins must be positive")
    if cfg.fingerprint.fingerprint_length <= 0:
        raise ValueError("fingerprint_length must be positive")
    if cfg.fingerprint.top_wavelets <= 0:
        raise ValueError("top_wavelets must be positive")

    # Incremental strides rely on the image span in samples
    expected_span = cfg.fingerprint.fingerprint_length * spectrum.overlap
    if cfg.fingerprint.samples_per_fingerprint != expected_span:
        raise ValueError(
            f"samples_per_fingerprint ({cfg.fingerprint.samples_per_fingerprint}) must equal "
            f"fingerprint_length * overlap ({expected_span})"
        )

    # Check ranges
    if not (0.0 < spectrum.min_rms < spectrum.max_rms):
        raise ValueError("RMS clamp must satisfy 0 < min_rms < max_rms")
    if spectrum.rms_scale <= 0.0:
        raise ValueError("rms_scale must be positive")
    if not (0 < log_bins.min_frequency < log_bins.max_frequency):
        raise ValueError("frequency range must satisfy 0 < min_frequency < max_frequency")
    if log_bins.max_frequency > spectrum.sample_rate / 2:
        raise ValueError("max_frequency must not exceed the Nyquist frequency")
    if log_bins.log_base <= 1.0:
        raise ValueError("log_base must be greater than 1")
    if cfg.model.n_mfcc <= 0 or cfg.model.n_mels < cfg.model.n_mfcc:
        raise ValueError("n_mfcc must be positive and n_mels >= n_mfcc")
    if cfg.model.max_condition <= 1.0:
        raise ValueError("max_condition must be greater than 1")

    return True


# Validate default config on import
validate_config(DEFAULT_CONFIG)
