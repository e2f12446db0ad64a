"""
Fingerprinting Pipeline

FingerprintService wires the injected capabilities (audio reader, FFT,
window, DTW) to the kernels:

    samples -> normalize -> spectrogram -> log-spectrogram
        -> fingerprint images -> bit fingerprints      (duplicate detection)
    samples -> normalize -> spectrogram -> MFCC
        -> Gaussian model                              (similarity ranking)

The caller's sample buffer is never modified; normalization runs on a copy.
"""

import logging
from typing import List, Optional

import numpy as np

from audioprint import features, images, scms, spectrum, wavelets
from audioprint.audio_io import read_mono, validate_audio
from audioprint.capabilities import (
    AudioReader,
    DtwFunction,
    FFTTransform,
    WindowFunction,
    scipy_fft_forward,
)
from audioprint.distance import DistanceKind, compute_distance
from audioprint.errors import ModelConstructionError
from audioprint.params import FingerprintingConfig, validate_config
from audioprint.scms import GaussianModel
from audioprint.strides import Stride

logger = logging.getLogger(__name__)


class FingerprintService:
    """
    Entry point of the pipeline.

    Parameters:
        config: Fingerprinting configuration (None = database defaults)
        fft: FFT capability (None = scipy)
        window: Window capability (None = config.spectrum.window_function)
        audio_reader: Audio reader capability (None = librosa)
        dtw: DTW capability used by DTW distances (None = built-in)
    """

    def __init__(
        self,
        config: Optional[FingerprintingConfig] = None,
        fft: Optional[FFTTransform] = None,
        window: Optional[WindowFunction] = None,
        audio_reader: Optional[AudioReader] = None,
        dtw: Optional[DtwFunction] = None
    ):
        if config is None:
            config = FingerprintingConfig()
        validate_config(config)

        self.config = config
        self.fft = fft if fft is not None else scipy_fft_forward
        self.window = window if window is not None else WindowFunction(
            config.spectrum.window_function, config.spectrum.wdft_size
        )
        self.audio_reader = audio_reader if audio_reader is not None else read_mono
        self.dtw = dtw

        if len(self.window.coefficients()) != config.spectrum.wdft_size:
            raise ValueError(
                f"Window has {len(self.window.coefficients())} coefficients, "
                f"expected wdft_size {config.spectrum.wdft_size}"
            )

        log_bins = config.log_bins
        self.log_frequency_index = spectrum.generate_log_frequencies(
            config.spectrum.sample_rate,
            config.spectrum.wdft_size,
            log_bins.min_frequency,
            log_bins.max_frequency,
            log_bins.log_bins,
            log_bins.log_base,
            log_bins.use_dynamic_log_base
        )

    # -------------------------------------------------------------------------
    # Audio
    # -------------------------------------------------------------------------

    def read_mono(self, file_path: str, duration_ms: int = 0, start_ms: int = 0) -> np.ndarray:
        """Read a file through the audio reader capability."""
        return self.audio_reader(file_path, self.config.spectrum.sample_rate, duration_ms, start_ms)

    def _prepared(self, samples: np.ndarray, normalize: bool) -> np.ndarray:
        prepared = np.array(samples, dtype=np.float32)
        validate_audio(prepared)
        if normalize:
            params = self.config.spectrum
            spectrum.normalize_in_place(
                prepared, params.rms_scale, params.min_rms, params.max_rms
            )
        return prepared

    # -------------------------------------------------------------------------
    # Spectrograms
    # -------------------------------------------------------------------------

    def create_spectrogram(self, samples: np.ndarray) -> np.ndarray:
        """
        Power spectrogram of a signal, always RMS-normalized first.

        Returns:
            (width, wdft_size / 2 + 1) float32
        """
        prepared = self._prepared(samples, normalize=True)
        return spectrum.create_spectrogram(
            prepared,
            self.fft,
            self.window.coefficients(),
            self.config.spectrum.overlap,
            self.config.spectrum.wdft_size
        )

    def create_log_spectrogram(self, samples: np.ndarray) -> np.ndarray:
        """
        Log-binned spectrogram, normalized when config.spectrum.normalize_signal.

        Returns:
            (width, log_bins) float32
        """
        prepared = self._prepared(samples, normalize=self.config.spectrum.normalize_signal)
        return spectrum.create_log_spectrogram(
            prepared,
            self.fft,
            self.window.coefficients(),
            self.config.spectrum.overlap,
            self.config.spectrum.wdft_size,
            self.log_frequency_index,
            self.config.log_bins.log_bins
        )

    def create_log_spectrogram_from_file(self, file_path: str) -> np.ndarray:
        """Read a file and compute its log-spectrogram."""
        return self.create_log_spectrogram(self.read_mono(file_path))

    # -------------------------------------------------------------------------
    # Duplicate detection
    # -------------------------------------------------------------------------

    def create_fingerprint_images(
        self,
        samples: np.ndarray,
        stride: Optional[Stride] = None
    ) -> List[np.ndarray]:
        """
        Cut the log-spectrogram of a signal into fingerprint images.

        Parameters:
            samples: Mono signal
            stride: Stride policy (None = config.stride)

        Returns:
            List of (fingerprint_length, log_bins) images
        """
        if stride is None:
            stride = self.config.stride
        log_spectrogram = self.create_log_spectrogram(samples)
        return images.cut_log_spectrogram(
            log_spectrogram,
            stride,
            self.config.fingerprint.fingerprint_length,
            self.config.spectrum.overlap
        )

    def create_fingerprints(
        self,
        samples: np.ndarray,
        stride: Optional[Stride] = None
    ) -> List[np.ndarray]:
        """
        Bit fingerprints (top-wavelet sign encodings) of a signal.

        Returns:
            List of (2 * fingerprint_length * log_bins,) bool arrays
        """
        top_wavelets = self.config.fingerprint.top_wavelets
        return [
            wavelets.image_to_fingerprint(image, top_wavelets)
            for image in self.create_fingerprint_images(samples, stride)
        ]

    # -------------------------------------------------------------------------
    # Similarity modeling
    # -------------------------------------------------------------------------

    def create_coefficients(self, samples: np.ndarray) -> np.ndarray:
        """MFCC matrix (n_mfcc, n_frames) of a signal."""
        power = self.create_spectrogram(samples)
        return features.compute_mfcc(
            power,
            self.config.spectrum.sample_rate,
            n_mfcc=self.config.model.n_mfcc,
            n_mels=self.config.model.n_mels
        )

    def create_model(self, samples: np.ndarray, name: Optional[str] = None) -> GaussianModel:
        """
        Gaussian model of a signal, with a median-threshold bit string attached.

        Raises:
            ModelConstructionError: If the covariance cannot be inverted
        """
        coefficients = self.create_coefficients(samples)
        model = scms.build_model(coefficients, self.config.model.max_condition, name=name)
        return model.with_bit_string(wavelets.bit_string_from_values(model.mean))

    def create_model_without_inverse(self, samples: np.ndarray, name: Optional[str] = None) -> GaussianModel:
        """
        Gaussian model of a signal without an inverse covariance.

        Such a model is rejected by the KL divergence but can be compared
        with cosine, Hamming and DTW distances.
        """
        coefficients = self.create_coefficients(samples)
        model = scms.build_model_without_inverse(coefficients, name=name)
        return model.with_bit_string(wavelets.bit_string_from_values(model.mean))

    def try_create_model(
        self,
        samples: np.ndarray,
        name: Optional[str] = None,
        fallback_without_inverse: bool = False
    ) -> Optional[GaussianModel]:
        """
        Like create_model, but returns None for tracks that cannot be modeled.

        Parameters:
            samples: Mono signal
            name: Track name for log messages
            fallback_without_inverse: Return a model without inverse covariance
                instead of None when the covariance cannot be inverted

        Returns:
            GaussianModel, or None when the track is skipped
        """
        try:
            return self.create_model(samples, name=name)
        except ModelConstructionError as e:
            if not fallback_without_inverse:
                logger.warning("Skipping %s: %s", name or 'track', e)
                return None
            logger.warning("No inverse covariance for %s: %s", name or 'track', e)

        try:
            return self.create_model_without_inverse(samples, name=name)
        except ModelConstructionError as e:
            logger.warning("Skipping %s: %s", name or 'track', e)
            return None

    def create_model_from_file(self, file_path: str) -> GaussianModel:
        """Read a file and compute its Gaussian model."""
        return self.create_model(self.read_mono(file_path), name=str(file_path))

    def distance(
        self,
        s1: GaussianModel,
        s2: GaussianModel,
        kind: DistanceKind = DistanceKind.KULLBACK_LEIBLER
    ) -> float:
        """Distance between two models, using this service's DTW capability."""
        return compute_distance(s1, s2, kind, dtw=self.dtw)
