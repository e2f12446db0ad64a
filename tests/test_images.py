"""
Fingerprint Image and Wavelet Test Suite

Tests for stride policies, log-spectrogram cutting and the Haar/top-wavelet
bit encoding.
"""

import numpy as np
import pytest

from audioprint import images, wavelets
from audioprint.strides import (
    IncrementalRandomStride,
    IncrementalStaticStride,
    RandomStride,
    StaticStride,
)

IMAGE_LENGTH = 10
OVERLAP = 4
SAMPLES_PER_IMAGE = IMAGE_LENGTH * OVERLAP


def frame_index_spectrogram(n_frames: int, log_bins: int = 4) -> np.ndarray:
    """Every value in row i equals i, so an image reveals where it was cut."""
    return np.repeat(np.arange(n_frames, dtype=np.float32)[:, np.newaxis], log_bins, axis=1)


# =============================================================================
# STRIDE TESTS
# =============================================================================

class TestStrides:
    """Tests for the stride policies."""

    def test_static_stride(self):
        s = StaticStride(5115)
        assert s.first_stride == 0
        assert [s.next_stride() for _ in range(3)] == [5115, 5115, 5115]

    def test_incremental_static_stride(self):
        """Gap is increment - samples_per_fingerprint."""
        s = IncrementalStaticStride(512, 8192)
        assert s.next_stride() == 512 - 8192

    def test_random_stride_range(self):
        s = RandomStride(0, 253, seed=7)
        draws = [s.next_stride() for _ in range(500)]
        assert min(draws) >= 0
        assert max(draws) < 253
        assert 0 <= s.first_stride < 253

    def test_random_stride_seeded(self):
        """Same seed, same draws."""
        a = RandomStride(0, 253, seed=3)
        b = RandomStride(0, 253, seed=3)
        assert a.first_stride == b.first_stride
        assert [a.next_stride() for _ in range(20)] == [b.next_stride() for _ in range(20)]

    @pytest.mark.parametrize('bounds', [(5, 5), (10, 2), (-1, 4)])
    def test_random_stride_invalid_range(self, bounds):
        with pytest.raises(ValueError):
            RandomStride(*bounds)

    def test_incremental_random_stride_invalid_range(self):
        with pytest.raises(ValueError):
            IncrementalRandomStride(0, 5, SAMPLES_PER_IMAGE)

    def test_incremental_static_stride_invalid(self):
        with pytest.raises(ValueError):
            IncrementalStaticStride(0, SAMPLES_PER_IMAGE)


# =============================================================================
# CUTTING TESTS
# =============================================================================

class TestCutLogSpectrogram:
    """Tests for cut_log_spectrogram."""

    def test_adjacent_images(self):
        """Zero stride places images back to back."""
        cut = images.cut_log_spectrogram(
            frame_index_spectrogram(35), StaticStride(0), IMAGE_LENGTH, OVERLAP
        )

        assert [img[0, 0] for img in cut] == [0, 10, 20]

    def test_image_shape_and_dtype(self):
        cut = images.cut_log_spectrogram(
            frame_index_spectrogram(35, log_bins=6), StaticStride(0), IMAGE_LENGTH, OVERLAP
        )

        for img in cut:
            assert img.shape == (IMAGE_LENGTH, 6)
            assert img.dtype == np.float32

    def test_positive_stride_skips_frames(self):
        """A stride of 8 samples skips 2 frames between images."""
        starts = images.image_start_frames(35, StaticStride(8), IMAGE_LENGTH, OVERLAP)

        assert starts == [0, 12, 24]

    def test_first_stride_offsets_first_image(self):
        starts = images.image_start_frames(35, StaticStride(0, first_stride=20), IMAGE_LENGTH, OVERLAP)

        assert starts[0] == 5

    def test_incremental_static_overlap(self):
        """Images start every increment samples and overlap."""
        stride = IncrementalStaticStride(8, SAMPLES_PER_IMAGE)

        cut = images.cut_log_spectrogram(frame_index_spectrogram(35), stride, IMAGE_LENGTH, OVERLAP)

        assert [img[0, 0] for img in cut] == list(range(0, 26, 2))
        assert cut[1][0, 0] == 2

    def test_every_image_fits(self):
        """No image extends past the end of the spectrogram."""
        n_frames = 200
        starts = images.image_start_frames(
            n_frames, RandomStride(0, 20, seed=1), IMAGE_LENGTH, OVERLAP
        )

        assert starts
        assert all(start + IMAGE_LENGTH <= n_frames for start in starts)

    def test_random_stride_images_do_not_overlap(self):
        """Non-negative random gaps keep images disjoint."""
        starts = images.image_start_frames(
            200, RandomStride(0, 20, seed=1), IMAGE_LENGTH, OVERLAP
        )

        assert np.all(np.diff(starts) >= IMAGE_LENGTH)

    def test_random_stride_reproducible(self):
        a = images.image_start_frames(200, RandomStride(0, 20, seed=9), IMAGE_LENGTH, OVERLAP)
        b = images.image_start_frames(200, RandomStride(0, 20, seed=9), IMAGE_LENGTH, OVERLAP)

        assert a == b

    def test_incremental_random_stride(self):
        """Starts advance by 4 to 8 samples, i.e. 1 or 2 frames."""
        stride = IncrementalRandomStride(4, 9, SAMPLES_PER_IMAGE, seed=2)

        starts = images.image_start_frames(100, stride, IMAGE_LENGTH, OVERLAP)

        assert set(np.diff(starts)) <= {1, 2}

    def test_short_spectrogram(self):
        """Fewer frames than one image yields no images."""
        cut = images.cut_log_spectrogram(
            frame_index_spectrogram(9), StaticStride(0), IMAGE_LENGTH, OVERLAP
        )

        assert cut == []

    def test_non_advancing_stride_rejected(self):
        """A stride that cancels the image length would loop forever."""
        with pytest.raises(ValueError):
            images.image_start_frames(35, StaticStride(-SAMPLES_PER_IMAGE), IMAGE_LENGTH, OVERLAP)

    def test_images_are_copies(self):
        log_spectrogram = frame_index_spectrogram(35)
        cut = images.cut_log_spectrogram(log_spectrogram, StaticStride(0), IMAGE_LENGTH, OVERLAP)

        cut[0][:] = -1.0

        assert log_spectrogram[0, 0] == 0.0


# =============================================================================
# WAVELET TESTS
# =============================================================================

class TestHaar:
    """Tests for the Haar decomposition."""

    def test_constant_array(self):
        """All energy of a constant lands in the first coefficient."""
        result = wavelets.haar_decompose_array(np.ones(4))

        np.testing.assert_allclose(result, [1.0, 0.0, 0.0, 0.0], atol=1e-12)

    def test_step_array(self):
        """A step shows up in the first detail coefficient."""
        result = wavelets.haar_decompose_array(np.array([1.0, 1.0, -1.0, -1.0]))

        np.testing.assert_allclose(result, [0.0, 1.0, 0.0, 0.0], atol=1e-12)

    def test_norm_scaled(self):
        """The orthonormal steps preserve energy up to the 1 / sqrt(n) prescale."""
        rng = np.random.default_rng(0)
        values = rng.normal(size=64)

        result = wavelets.haar_decompose_array(values)

        assert np.linalg.norm(result) == pytest.approx(np.linalg.norm(values) / 8.0)

    def test_image_norm_scaled(self):
        rng = np.random.default_rng(1)
        image = rng.normal(size=(16, 8))

        result = wavelets.haar_decompose_image(image)

        assert result.shape == (16, 8)
        assert np.linalg.norm(result) == pytest.approx(np.linalg.norm(image) / np.sqrt(16 * 8))

    def test_input_not_modified(self):
        image = np.arange(32, dtype=np.float32).reshape(8, 4)
        before = image.copy()

        wavelets.haar_decompose_image(image)

        np.testing.assert_array_equal(image, before)


class TestTopWavelets:
    """Tests for the sign encoding of the strongest coefficients."""

    def test_sign_encoding(self):
        """-5 at index 1 sets bit 3, 3 at index 0 sets bit 0."""
        bits = wavelets.extract_top_wavelets(np.array([[3.0, -5.0], [0.0, 1.0]]), 2)

        expected = np.zeros(8, dtype=bool)
        expected[[0, 3]] = True
        np.testing.assert_array_equal(bits, expected)

    def test_zero_coefficients_not_encoded(self):
        bits = wavelets.extract_top_wavelets(np.array([[3.0, -5.0], [0.0, 1.0]]), 4)

        assert np.flatnonzero(bits).tolist() == [0, 3, 6]

    def test_fingerprint_size(self):
        rng = np.random.default_rng(2)
        image = rng.random((128, 32))

        bits = wavelets.image_to_fingerprint(image, 200)

        assert bits.shape == (2 * 128 * 32,)
        assert bits.dtype == bool
        assert np.count_nonzero(bits) == 200

    def test_at_most_one_bit_per_coefficient(self):
        rng = np.random.default_rng(3)
        bits = wavelets.image_to_fingerprint(rng.normal(size=(16, 8)), 50)

        pairs = bits.reshape(-1, 2)
        assert not np.any(pairs[:, 0] & pairs[:, 1])

    def test_same_image_same_fingerprint(self):
        rng = np.random.default_rng(4)
        image = rng.random((32, 16))

        np.testing.assert_array_equal(
            wavelets.image_to_fingerprint(image, 64),
            wavelets.image_to_fingerprint(image.copy(), 64)
        )


class TestBitString:
    def test_median_threshold(self):
        bits = wavelets.bit_string_from_values(np.array([1.0, 2.0, 3.0, 4.0]))

        np.testing.assert_array_equal(bits, [False, False, True, True])

    def test_empty(self):
        assert wavelets.bit_string_from_values(np.array([])).shape == (0,)
