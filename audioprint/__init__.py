"""
audioprint - Source Modules

This package contains the core modules for audio fingerprinting and
similarity modeling:
- spectrum: Signal normalization, spectrogram and log-spectrogram computation
- images: Cutting the log-spectrogram into fingerprint images
- strides: Stride policies between consecutive fingerprint images
- wavelets: Haar decomposition and top-wavelet bit fingerprints
- features: Mel filterbank and MFCC coefficient matrices
- scms: Gaussian cluster model (mean, covariance, inverse covariance)
- distance: Distance kernels (KL divergence, cosine, Hamming, DTW)
- codec: Byte-exact model serialization
- pipeline: FingerprintService wiring the injected capabilities together
- audio_io / capabilities: Default audio, FFT, window and DTW implementations
- export: JSON and plot generation
"""

__version__ = "1.0.0"
