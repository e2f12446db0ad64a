"""
Export Module

Generate JSON outputs and plots for models and spectrograms.
All JSON outputs follow a versioned schema for consistency.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

from audioprint import config
from audioprint.scms import GaussianModel


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


def model_to_dict(model: GaussianModel, name: Optional[str] = None) -> Dict:
    """
    Describe a model as a JSON-ready dict.

    Parameters:
        model: Model to describe
        name: Optional track name

    Returns:
        Dict with schema_version, name, dim, mean, cov, icov and bit_string
    """
    return {
        'schema_version': config.SCHEMA_VERSION,
        'name': name,
        'dim': model.dim,
        'mean': model.mean,
        'cov': model.cov,
        'icov': model.icov,
        'bit_string': model.bit_string,
    }


def fingerprints_to_dict(fingerprints: List[np.ndarray], params: Dict) -> Dict:
    """
    Summarize bit fingerprints of one track.

    Each fingerprint is stored as the list of its set bit positions.
    """
    return {
        'schema_version': config.SCHEMA_VERSION,
        'params': params,
        'n_fingerprints': len(fingerprints),
        'fingerprint_bits': len(fingerprints[0]) if fingerprints else 0,
        'fingerprints': [np.flatnonzero(bits) for bits in fingerprints],
    }


def save_json(data: Dict, output_path: Path) -> None:
    """
    Save dict as formatted JSON.

    Parameters:
        data: Dict to save
        output_path: Path to output file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2, cls=NumpyEncoder)


def plot_spectrogram(
    frames: np.ndarray,
    output_path: Path,
    title: str = 'Spectrogram',
    log_scale: bool = True
) -> None:
    """
    Plot a (width, bins) spectrogram with time on the x axis.

    Parameters:
        frames: Spectrogram, one row per frame
        output_path: Path to save PNG
        title: Plot title
        log_scale: Show energies in dB
    """
    values = np.asarray(frames, dtype=np.float64).T
    if log_scale:
        values = 10.0 * np.log10(np.maximum(values, 1e-10))

    fig, ax = plt.subplots(figsize=config.PLOT_FIGSIZE)
    image = ax.imshow(values, origin='lower', aspect='auto', cmap='magma')
    ax.set_xlabel('Frame')
    ax.set_ylabel('Band')
    ax.set_title(title)
    fig.colorbar(image, ax=ax, label='dB' if log_scale else 'Energy')

    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=config.PLOT_DPI, bbox_inches='tight')
    plt.close(fig)


def plot_model(model: GaussianModel, output_path: Path, title: str = 'Gaussian model') -> None:
    """
    Plot mean vector, covariance and inverse covariance of a model.

    Parameters:
        model: Model to plot
        output_path: Path to save PNG
        title: Plot title
    """
    fig, axes = plt.subplots(1, 3, figsize=config.PLOT_FIGSIZE)

    axes[0].bar(np.arange(model.dim), model.mean, color='steelblue')
    axes[0].set_title('Mean')
    axes[0].set_xlabel('Coefficient')

    for ax, matrix, label in (
        (axes[1], model.covariance_matrix(), 'Covariance'),
        (axes[2], model.inverse_covariance_matrix(), 'Inverse covariance'),
    ):
        image = ax.imshow(matrix, cmap='coolwarm', interpolation='nearest')
        ax.set_title(label)
        fig.colorbar(image, ax=ax, fraction=0.046)

    fig.suptitle(title)
    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=config.PLOT_DPI, bbox_inches='tight')
    plt.close(fig)
