"""
Spectrum Kernel Test Suite

Tests for normalization, spectrogram and log-spectrogram computation.
Verifies:
- Kernel isolation (no config, plotting or decoding dependencies)
- Normalization bounds and clamping
- Frame grid and power scaling with deterministic stand-in FFTs
- Log frequency index invariants for both layouts
"""

from pathlib import Path

import numpy as np
import pytest

from audioprint import spectrum
from audioprint.capabilities import WindowFunction, scipy_fft_forward


# =============================================================================
# STAND-IN CAPABILITIES
# =============================================================================

def unit_fft(samples, offset, size, window):
    """Every bin has real part size / 2, so every bin has power 1."""
    out = np.zeros(2 * size, dtype=np.float32)
    out[0::2] = size / 2
    return out


def ramp_spectrum(n_bins: int) -> np.ndarray:
    """Interleaved spectrum whose bin k has power k ** 2 after scaling."""
    half_width = n_bins / 2
    out = np.zeros(2 * n_bins, dtype=np.float32)
    out[0::2] = np.arange(n_bins) * half_width
    return out


def generate_sine(freq: float, sr: int, n_samples: int) -> np.ndarray:
    t = np.arange(n_samples) / sr
    return (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)


# =============================================================================
# KERNEL ISOLATION TESTS
# =============================================================================

KERNEL_MODULES = [
    'spectrum.py', 'images.py', 'wavelets.py', 'features.py',
    'scms.py', 'distance.py', 'codec.py',
]


class TestKernelIsolation:
    """Kernel modules take every parameter explicitly."""

    @pytest.mark.parametrize('module', KERNEL_MODULES)
    def test_no_config_imports(self, module):
        """Kernel modules should not import the config module."""
        source = (Path(__file__).parent.parent / 'audioprint' / module).read_text()

        assert 'from audioprint import config' not in source
        assert 'audioprint.config' not in source
        assert 'audioprint.params' not in source

    @pytest.mark.parametrize('module', KERNEL_MODULES)
    def test_no_io_dependencies(self, module):
        """Kernel modules should not decode audio or plot."""
        source = (Path(__file__).parent.parent / 'audioprint' / module).read_text()

        assert 'librosa.load' not in source
        assert 'matplotlib' not in source
        if module != 'features.py':
            assert 'librosa' not in source


# =============================================================================
# NORMALIZATION TESTS
# =============================================================================

class TestNormalizeInPlace:
    """Tests for normalize_in_place."""

    def test_output_within_unit_range(self):
        """Every normalized sample lies in [-1, 1]."""
        rng = np.random.default_rng(0)
        samples = (rng.normal(size=4096) * 50).astype(np.float32)

        spectrum.normalize_in_place(samples)

        assert np.all(samples >= -1.0)
        assert np.all(samples <= 1.0)

    def test_all_zero_signal(self):
        """Silence stays silent, the divisor is clamped to the floor."""
        samples = np.zeros(1024, dtype=np.float32)

        rms = spectrum.normalize_in_place(samples)

        assert rms == pytest.approx(0.1)
        assert np.all(samples == 0.0)
        assert np.all(np.isfinite(samples))

    def test_rms_ceiling(self):
        """256 ones: scaled RMS is 10, clamped to 3, so every sample is 1/3."""
        samples = np.ones(256, dtype=np.float32)

        rms = spectrum.normalize_in_place(samples)

        assert rms == pytest.approx(3.0)
        np.testing.assert_allclose(samples, 1.0 / 3.0, rtol=1e-6)

    def test_rms_floor(self):
        """A very quiet signal is divided by the 0.1 floor."""
        samples = np.full(512, 0.001, dtype=np.float32)

        rms = spectrum.normalize_in_place(samples)

        assert rms == pytest.approx(0.1)
        np.testing.assert_allclose(samples, 0.01, rtol=1e-5)

    def test_rms_within_range(self):
        """A constant 0.2 signal has scaled RMS 2.0 and is not clamped."""
        samples = np.full(512, 0.2, dtype=np.float32)

        rms = spectrum.normalize_in_place(samples)

        assert rms == pytest.approx(2.0, rel=1e-6)
        np.testing.assert_allclose(samples, 0.1, rtol=1e-5)

    def test_mutates_in_place(self):
        """The same buffer is modified, nothing new is returned."""
        samples = np.ones(256, dtype=np.float32)
        before = samples

        spectrum.normalize_in_place(samples)

        assert samples is before
        assert samples[0] != 1.0

    def test_empty_signal(self):
        """Empty input is left untouched."""
        samples = np.zeros(0, dtype=np.float32)
        assert spectrum.normalize_in_place(samples) == pytest.approx(0.1)
        assert len(samples) == 0


# =============================================================================
# SPECTROGRAM TESTS
# =============================================================================

class TestCreateSpectrogram:
    """Tests for create_spectrogram."""

    def test_width_and_bins(self):
        """width = (n - wdft_size) // overlap, bins = wdft_size / 2 + 1."""
        samples = np.zeros(1000, dtype=np.float32)
        window = np.ones(64, dtype=np.float32)

        frames = spectrum.create_spectrogram(samples, unit_fft, window, overlap=16, wdft_size=64)

        assert frames.shape == ((1000 - 64) // 16, 33)

    def test_power_is_scaled_by_half_size(self):
        """A component of magnitude wdft_size / 2 has power 1."""
        samples = np.zeros(1000, dtype=np.float32)
        window = np.ones(64, dtype=np.float32)

        frames = spectrum.create_spectrogram(samples, unit_fft, window, overlap=16, wdft_size=64)

        np.testing.assert_allclose(frames, 1.0)

    def test_frame_offsets(self):
        """Frame i asks the transform for offset i * overlap."""
        offsets = []

        def recording_fft(samples, offset, size, window):
            offsets.append(offset)
            return unit_fft(samples, offset, size, window)

        samples = np.zeros(200, dtype=np.float32)
        spectrum.create_spectrogram(samples, recording_fft, np.ones(32), overlap=8, wdft_size=32)

        assert offsets == [i * 8 for i in range((200 - 32) // 8)]

    def test_short_signal_has_no_frames(self):
        """A signal shorter than one transform yields an empty spectrogram."""
        samples = np.zeros(10, dtype=np.float32)

        frames = spectrum.create_spectrogram(samples, unit_fft, np.ones(64), overlap=16, wdft_size=64)

        assert frames.shape == (0, 33)

    def test_window_length_mismatch(self):
        """The window must match the transform size."""
        with pytest.raises(ValueError):
            spectrum.create_spectrogram(
                np.zeros(1000), unit_fft, np.ones(32), overlap=16, wdft_size=64
            )

    def test_sine_peak_with_scipy_fft(self):
        """A 64 Hz sine at 1024 Hz with a 256-point transform peaks at bin 16."""
        sr, wdft_size = 1024, 256
        samples = generate_sine(64.0, sr, 4096)
        window = WindowFunction('hann', wdft_size).coefficients()

        frames = spectrum.create_spectrogram(samples, scipy_fft_forward, window, 128, wdft_size)

        assert frames.shape[1] == wdft_size // 2 + 1
        assert np.all(np.argmax(frames, axis=1) == 16)
        assert np.all(frames >= 0.0)


class TestScipyFFT:
    """Tests for the default FFT capability."""

    def test_interleaved_layout(self):
        """Even entries are real parts, odd entries imaginary parts."""
        rng = np.random.default_rng(1)
        samples = rng.normal(size=300).astype(np.float32)
        window = np.hanning(64)

        out = scipy_fft_forward(samples, 100, 64, window)
        expected = np.fft.fft(samples[100:164].astype(np.float64) * window)

        assert out.shape == (128,)
        np.testing.assert_allclose(out[0::2], expected.real, rtol=1e-4, atol=1e-4)
        np.testing.assert_allclose(out[1::2], expected.imag, rtol=1e-4, atol=1e-4)

    def test_frame_past_end(self):
        """Reading past the end of the signal is an error."""
        with pytest.raises(ValueError):
            scipy_fft_forward(np.zeros(100), 80, 64, np.ones(64))


# =============================================================================
# LOG FREQUENCY INDEX TESTS
# =============================================================================

DEFAULT_LAYOUT = dict(
    sample_rate=5512, wdft_size=2048, min_frequency=318, max_frequency=2000, log_bins=32
)

LAYOUTS = [
    (5512, 2048, 318, 2000, 32, 2.0),
    (5512, 2048, 318, 2000, 32, np.e),
    (11025, 4096, 100, 5000, 64, 2.0),
    (44100, 2048, 20, 20000, 16, 10.0),
    (8000, 512, 300, 3400, 8, 2.0),
]


class TestLogFrequencies:
    """Tests for the static and dynamic log frequency layouts."""

    def test_static_default_layout(self):
        """318 Hz maps to bin 118 and 2000 Hz to bin 744."""
        indexes = spectrum.generate_static_log_frequencies(log_base=2.0, **DEFAULT_LAYOUT)

        assert len(indexes) == 33
        assert indexes[0] == 118
        assert indexes[-1] == 744

    def test_dynamic_default_layout(self):
        """Dynamic layout starts at floor(min coefficient)."""
        indexes = spectrum.generate_dynamic_log_frequencies(**DEFAULT_LAYOUT)

        assert len(indexes) == 33
        assert indexes[0] == 118
        assert indexes[-1] == 742

    def test_dynamic_band_ends_trail_next_start(self):
        """Unused band ends differ from the next boundary by floor(min coefficient)."""
        indexes = spectrum.generate_dynamic_log_frequencies(**DEFAULT_LAYOUT)
        ends = spectrum.dynamic_log_band_ends(**DEFAULT_LAYOUT)

        np.testing.assert_array_equal(ends[:-1], indexes[1:] - 118)

    @pytest.mark.parametrize('use_dynamic', [False, True])
    @pytest.mark.parametrize('layout', LAYOUTS)
    def test_non_decreasing_with_expected_length(self, layout, use_dynamic):
        """Both layouts give log_bins + 1 non-decreasing boundaries."""
        sr, wdft_size, min_f, max_f, log_bins, log_base = layout

        indexes = spectrum.generate_log_frequencies(
            sr, wdft_size, min_f, max_f, log_bins, log_base, use_dynamic_log_base=use_dynamic
        )

        assert len(indexes) == log_bins + 1
        assert np.all(np.diff(indexes) >= 0)
        assert indexes[-1] <= wdft_size

    def test_freq_to_index(self):
        """300 Hz at 5512 Hz with a 2048-point transform is bin 112."""
        assert spectrum.freq_to_index(300.0, 5512, 2048) == 112

    def test_decreasing_index_rejected(self):
        """A decreasing boundary table is malformed."""
        with pytest.raises(ValueError):
            spectrum.validate_log_frequency_index(np.array([0, 4, 2, 8]), 3, 16)

    def test_wrong_length_rejected(self):
        """The table must have log_bins + 1 entries."""
        with pytest.raises(ValueError):
            spectrum.validate_log_frequency_index(np.array([0, 4, 8]), 3, 16)


# =============================================================================
# LOG-SPECTROGRAM TESTS
# =============================================================================

class TestExtractLogBins:
    """Tests for extract_log_bins."""

    def test_band_means(self):
        """Each band is the mean power over [low, high)."""
        bands = spectrum.extract_log_bins(ramp_spectrum(8), np.array([0, 2, 4, 8]), 3)

        np.testing.assert_allclose(bands, [0.5, 6.5, 31.5])

    def test_empty_band_is_zero(self):
        """A band with low == high has zero energy."""
        bands = spectrum.extract_log_bins(ramp_spectrum(8), np.array([0, 0, 4]), 2)

        np.testing.assert_allclose(bands, [0.0, 3.5])


class TestCreateLogSpectrogram:
    """Tests for create_log_spectrogram."""

    def test_shape_and_values(self):
        """Unit-power bins average to 1 in every band."""
        samples = np.zeros(200, dtype=np.float32)

        frames = spectrum.create_log_spectrogram(
            samples, unit_fft, np.ones(8), overlap=4, wdft_size=8,
            log_frequency_index=np.array([0, 2, 4, 8]), log_bins=3
        )

        assert frames.shape == ((200 - 8) // 4, 3)
        np.testing.assert_allclose(frames, 1.0)

    def test_empty_band_warns(self):
        """Empty bands are reported."""
        with pytest.warns(UserWarning):
            spectrum.create_log_spectrogram(
                np.zeros(64), unit_fft, np.ones(8), overlap=4, wdft_size=8,
                log_frequency_index=np.array([0, 0, 4]), log_bins=2
            )

    def test_malformed_index_rejected(self):
        """Aggregation refuses a decreasing boundary table."""
        with pytest.raises(ValueError):
            spectrum.create_log_spectrogram(
                np.zeros(64), unit_fft, np.ones(8), overlap=4, wdft_size=8,
                log_frequency_index=np.array([0, 4, 2]), log_bins=2
            )
