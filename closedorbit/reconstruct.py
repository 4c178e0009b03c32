"""Reconstruction and validation of compressed orbits.

Resynthesizes a body's position sequence from its (possibly truncated)
frequency set and measures how far it lands from the simulated baseline.

Each component contributes

    amplitude * (cos θ, sin θ),   θ = -(2π t freq + phase)

at fractional period position t = i / frames. The sign convention matches
closedorbit.spectrum.fft_to_freq, so an untruncated frequency set reproduces
the analyzed samples exactly (up to round-off).
"""

from typing import Iterable, List, Sequence

import numpy as np
from numpy.typing import NDArray

# Largest angle matrix built at once by inverse_analyze (float64 entries)
MAX_CHUNK_ELEMENTS = 1 << 19


def inverse_analyze(frames: int, body) -> NDArray[np.float64]:
    """Resynthesize `frames` evenly spaced positions over one period.

    Parameters
    ----------
    frames : int
        Number of samples to produce. Sample i is at t = i / frames.
    body : BakedBody
        Anything with a `frequencies` list of FrequencyComponent.

    Returns
    -------
    positions : ndarray, shape (frames, 2)

    Raises
    ------
    ValueError
        If frames is not positive or the result is not finite.

    Examples
    --------
    >>> from closedorbit.spectrum import BakedBody, FrequencyComponent
    >>> circle = BakedBody([FrequencyComponent(freq=-1.0, amplitude=2.0, phase=0.0)])
    >>> inverse_analyze(4, circle).round(12)
    array([[ 2.,  0.],
           [ 0.,  2.],
           [-2.,  0.],
           [-0., -2.]])
    """
    if frames <= 0:
        raise ValueError(f"frames must be positive, got {frames}")

    positions = np.zeros((frames, 2), dtype=np.float64)
    if not body.frequencies:
        return check_finite(positions, "reconstructed positions")

    freq = np.array([c.freq for c in body.frequencies])
    amplitude = np.array([c.amplitude for c in body.frequencies])
    phase = np.array([c.phase for c in body.frequencies])

    # Bound the (samples x components) angle matrix to MAX_CHUNK_ELEMENTS
    rows = max(1, MAX_CHUNK_ELEMENTS // len(freq))
    for start in range(0, frames, rows):
        t = np.arange(start, min(start + rows, frames), dtype=np.float64) / frames

        theta = np.multiply.outer(t, freq)
        theta *= 2.0 * np.pi
        theta += phase
        np.negative(theta, out=theta)

        positions[start:start + len(t), 0] = np.cos(theta) @ amplitude
        np.sin(theta, out=theta)
        positions[start:start + len(t), 1] = theta @ amplitude

    return check_finite(positions, "reconstructed positions")


def rms_error(lhs: Sequence, rhs: Sequence) -> float:
    """Mean squared Euclidean distance between two position sequences.

    Parameters
    ----------
    lhs, rhs : array_like, shape (n, 2)
        Position sequences of equal length.

    Returns
    -------
    float
        (1/n) Σ |lhs_i - rhs_i|².

    Notes
    -----
    No final square root is taken: every tolerance in the package (closure
    threshold 1e-3 in particular) is in squared-distance units.
    """
    lhs = np.asarray(lhs, dtype=float)
    rhs = np.asarray(rhs, dtype=float)
    if lhs.shape != rhs.shape:
        raise ValueError(f"Shape mismatch: {lhs.shape} vs {rhs.shape}")
    if len(lhs) == 0:
        return 0.0

    diff = lhs - rhs
    return float(np.sum(diff * diff) / len(lhs))


def check_finite(values, what: str = "values"):
    """Return `values` unchanged, or raise ValueError if any entry is NaN/Inf."""
    array = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(array)):
        n_bad = int(np.size(array) - np.count_nonzero(np.isfinite(array)))
        raise ValueError(f"Non-finite {what}: {n_bad} of {array.size} entries are NaN or Inf")
    return values


def reconstruction_errors(
    bodies: Iterable,
    baselines: Sequence,
    frames: int,
) -> List[float]:
    """Reconstruct every body at `frames` samples and compare to its baseline.

    Parameters
    ----------
    bodies : Iterable[BakedBody]
        Frequency sets, in body order.
    baselines : array_like, shape (n_bodies, frames, 2)
        Body-major simulated positions.
    frames : int
        Samples per body.

    Returns
    -------
    List[float]
        rms_error per body.
    """
    return [
        rms_error(inverse_analyze(frames, body), baseline)
        for body, baseline in zip(bodies, baselines)
    ]
