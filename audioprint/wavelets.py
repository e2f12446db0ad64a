"""
Wavelet Fingerprint Module

Turns fingerprint images into compact bit fingerprints:
1. Standard 2-D Haar decomposition of the image
2. Keep the top_wavelets coefficients with the largest magnitude
3. Encode each kept coefficient's sign in two bits

Two images of the same audio share most of their dominant coefficients, so
the Hamming distance between their bit fingerprints stays small.
"""

import numpy as np


def haar_decompose_array(values: np.ndarray) -> np.ndarray:
    """
    Standard 1-D Haar decomposition along the last axis.

    CONTRACT:
    - Input: (..., n) array, n a power of two for a complete decomposition
    - Output: new float64 array of the same shape
    - values are scaled by 1 / sqrt(n), then each level replaces the first
      2h entries with h averages followed by h differences (both / sqrt(2))

    Parameters:
        values: Array to decompose (not modified)

    Returns:
        Haar coefficients
    """
    result = np.array(values, dtype=np.float64)
    h = result.shape[-1]
    result /= np.sqrt(h)

    sqrt2 = np.sqrt(2.0)
    while h > 1:
        h //= 2
        even = result[..., 0:2 * h:2].copy()
        odd = result[..., 1:2 * h:2].copy()
        result[..., :h] = (even + odd) / sqrt2
        result[..., h:2 * h] = (even - odd) / sqrt2

    return result


def haar_decompose_image(image: np.ndarray) -> np.ndarray:
    """
    Standard 2-D Haar decomposition: every row, then every column.

    Parameters:
        image: (rows, cols) fingerprint image (not modified)

    Returns:
        (rows, cols) float64 Haar coefficients
    """
    rows_done = haar_decompose_array(image)
    return haar_decompose_array(rows_done.T).T


def extract_top_wavelets(coefficients: np.ndarray, top_wavelets: int) -> np.ndarray:
    """
    Encode the signs of the strongest coefficients.

    CONTRACT:
    - Input: (rows, cols) coefficients
    - Output: (2 * rows * cols,) bool
    - Coefficients are ranked by descending absolute value (stable)
    - For each of the top_wavelets strongest, at flat index idx:
      positive -> bit 2 * idx, negative -> bit 2 * idx + 1, zero -> no bit

    Parameters:
        coefficients: Decomposed image
        top_wavelets: Number of coefficients to keep

    Returns:
        Bit fingerprint
    """
    flat = np.asarray(coefficients, dtype=np.float64).ravel()
    order = np.argsort(-np.abs(flat), kind='stable')[:top_wavelets]

    bits = np.zeros(2 * flat.size, dtype=bool)
    kept = flat[order]
    bits[2 * order[kept > 0]] = True
    bits[2 * order[kept < 0] + 1] = True

    return bits


def image_to_fingerprint(image: np.ndarray, top_wavelets: int) -> np.ndarray:
    """Haar-decompose an image and encode its top wavelets."""
    return extract_top_wavelets(haar_decompose_image(image), top_wavelets)


def bit_string_from_values(values: np.ndarray) -> np.ndarray:
    """
    Median-threshold bit string of a feature vector.

    Each bit is set where the value lies above the median, the same
    thresholding perceptual image hashes use.

    Parameters:
        values: 1-D feature vector

    Returns:
        (len(values),) bool array
    """
    flat = np.asarray(values, dtype=np.float64).ravel()
    if flat.size == 0:
        return np.zeros(0, dtype=bool)
    return flat > np.median(flat)
