"""
Feature Extraction Module

Mel-frequency cepstral coefficients computed from a power spectrogram.
The (n_mfcc, n_frames) coefficient matrix is the input of the Gaussian
model builder.
"""

from typing import Optional

import librosa
import numpy as np

# Floor for mel band energies before taking the log (-100 dB)
MIN_MEL_ENERGY: float = 1e-10


def compute_mfcc(
    spectrogram: np.ndarray,
    sample_rate: int,
    n_mfcc: int = 20,
    n_mels: int = 36,
    fmin: float = 0.0,
    fmax: Optional[float] = None
) -> np.ndarray:
    """
    Compute MFCC coefficients per frame.

    CONTRACT:
    - Input: spectrogram (n_frames, n_bins) power frames, n_bins = wdft_size / 2 + 1
    - Output: (n_mfcc, n_frames) float32
    - mfcc = DCT-II(power_to_db(mel_energy, amin=MIN_MEL_ENERGY))[:n_mfcc]
    - Deterministic: same input -> same output

    Parameters:
        spectrogram: Power spectrogram, one row per frame
        sample_rate: Sample rate (Hz)
        n_mfcc: Number of coefficients to keep
        n_mels: Number of mel bands
        fmin: Lowest mel filter edge (Hz)
        fmax: Highest mel filter edge (Hz, None = sample_rate / 2)

    Returns:
        Coefficient matrix, one column per frame
    """
    if n_mfcc > n_mels:
        raise ValueError(f"n_mfcc ({n_mfcc}) cannot exceed n_mels ({n_mels})")

    n_frames, n_bins = spectrogram.shape
    if n_frames == 0:
        return np.zeros((n_mfcc, 0), dtype=np.float32)

    # librosa works on (n_bins, n_frames) and infers n_fft from n_bins
    mel_energy = librosa.feature.melspectrogram(
        S=np.asarray(spectrogram, dtype=np.float64).T,
        sr=sample_rate,
        n_fft=2 * (n_bins - 1),
        n_mels=n_mels,
        fmin=fmin,
        fmax=fmax
    )
    log_mel = librosa.power_to_db(mel_energy, ref=1.0, amin=MIN_MEL_ENERGY, top_db=None)

    mfccs = librosa.feature.mfcc(S=log_mel, n_mfcc=n_mfcc, dct_type=2, norm='ortho')

    return mfccs.astype(np.float32)
