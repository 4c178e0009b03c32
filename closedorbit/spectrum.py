"""Frequency analysis and compression of periodic trajectories.

Each body's closed trajectory is treated as a complex signal z_n = x_n + i y_n
sampled at N evenly spaced instants of one period. Its discrete Fourier
transform (numpy.fft.fft, X_k = Σ z_n exp(-2πi kn/N)) is rewritten as a sum
of rotating vectors

    z(t) = Σ_k amplitude_k * exp(-i (2π t freq_k + phase_k)),   t in [0, 1)

with the bin-to-frequency mapping

    bin 0            -> freq 0          (DC: the body's mean position)
    0 < k < N // 2   -> freq -k
    k >= N // 2      -> freq N - k

amplitude_k = |X_k| / N and phase_k = atan2(-Im X_k, Re X_k). The same
convention is used by closedorbit.reconstruct.inverse_analyze; a full,
untruncated frequency set round-trips to the input samples.

Compression drops components whose amplitude does not exceed a cutoff. The
DC component can be exempted (keep_dc=True, the default): dropping it biases
the reconstructed centroid toward the origin.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import warnings

import numpy as np

from closedorbit.dynamics import by_body
from closedorbit.reconstruct import check_finite


@dataclass
class FrequencyComponent:
    """One rotating term of a body's orbit.

    Attributes
    ----------
    freq : float
        Signed, integer-valued number of turns per period.
    amplitude : float
        Radius of the rotating vector (>= 0).
    phase : float
        Angle offset [rad], in (-π, π].
    """

    freq: float
    amplitude: float
    phase: float

    def sample(self, at: float) -> np.ndarray:
        """Position contributed at fractional period position `at`, shape (2,)."""
        theta = -(2.0 * np.pi * at * self.freq + self.phase)
        return self.amplitude * np.array([np.cos(theta), np.sin(theta)])

    def is_dc(self) -> bool:
        return self.freq == 0.0

    def to_dict(self, decimals: Optional[int] = None) -> dict:
        values = {'freq': self.freq, 'amplitude': self.amplitude, 'phase': self.phase}
        if decimals is not None:
            values = {key: round(float(value), decimals) for key, value in values.items()}
        return values


@dataclass
class BakedBody:
    """Ordered frequency set describing one body's compressed orbit."""

    frequencies: List[FrequencyComponent] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.frequencies)

    def dc(self) -> Optional[FrequencyComponent]:
        """The zero-frequency component, if retained."""
        for component in self.frequencies:
            if component.is_dc():
                return component
        return None

    def optimize(self, cutoff: float, keep_dc: bool = True, label: str = "") -> Tuple[int, int]:
        """Drop negligible components in place.

        Parameters
        ----------
        cutoff : float
            Components with amplitude <= cutoff are dropped. Must be >= 0.
        keep_dc : bool, optional
            Keep the DC component whatever its amplitude (default: True).
        label : str, optional
            Prefix for the printed counts and warnings, e.g. "figure-eight body 0".

        Returns
        -------
        (before, after) : Tuple[int, int]
            Component counts, also printed.
        """
        if not cutoff >= 0:
            raise ValueError(f"cutoff must be non-negative, got {cutoff}")

        original_length = len(self.frequencies)
        self.frequencies = [
            component for component in self.frequencies
            if component.amplitude > cutoff or (keep_dc and component.is_dc())
        ]
        new_length = len(self.frequencies)

        prefix = f"[{label}] " if label else ""
        print(f"{prefix}optimized #freqs from {original_length} to {new_length}")
        if original_length > 1 and all(c.is_dc() for c in self.frequencies):
            warnings.warn(
                f"{prefix}cutoff {cutoff:g} removed every rotating component; "
                f"the body will be reconstructed as a fixed point",
                RuntimeWarning
            )

        return original_length, new_length

    def to_dict(self, decimals: Optional[int] = None) -> dict:
        return {'frequencies': [c.to_dict(decimals) for c in self.frequencies]}


def fft_to_freq(idx: int, value: complex, frame_num: int) -> FrequencyComponent:
    """Convert DFT bin `idx` of an N = frame_num point transform to a component.

    Examples
    --------
    >>> fft_to_freq(0, 4 + 0j, 4)
    FrequencyComponent(freq=0.0, amplitude=1.0, phase=0.0)
    >>> fft_to_freq(1, 0 + 4j, 8).freq
    -1.0
    >>> fft_to_freq(7, 0 + 4j, 8).freq
    1.0
    """
    half = frame_num // 2

    if idx == 0:
        freq = 0.0
    elif idx < half:
        freq = -float(idx)
    else:
        freq = float(frame_num - idx)

    # atan2 returns -π for a negative real bin with -0.0 imaginary part
    phase = float(np.arctan2(-value.imag, value.real)) + 0.0
    if phase <= -np.pi:
        phase = np.pi

    return FrequencyComponent(
        freq=freq,
        amplitude=float(abs(value)) / frame_num,
        phase=phase,
    )


def analyze_body(positions) -> BakedBody:
    """Full (untruncated) frequency set of one body's positions, shape (N, 2)."""
    positions = np.asarray(positions, dtype=float)
    signal = positions[:, 0] + 1j * positions[:, 1]
    spectrum = np.fft.fft(signal)

    frame_num = len(signal)
    return BakedBody([
        fft_to_freq(idx, value, frame_num)
        for idx, value in enumerate(spectrum)
    ])


def analyze(trajectory, max_workers: Optional[int] = None) -> List[BakedBody]:
    """
    Frequency sets of every body in a trajectory.

    Parameters
    ----------
    trajectory : array_like, shape (n_frames, n_bodies, 2)
        Frame-major positions covering exactly one period (no repeated
        end sample).
    max_workers : int, optional
        Thread pool size for the per-body transforms (default: one per body).

    Returns
    -------
    List[BakedBody]
        One entry per body, in body order, each with n_frames components.

    Raises
    ------
    ValueError
        If the trajectory is empty or contains NaN/Inf.
    """
    trajectory = np.asarray(trajectory, dtype=float)
    if trajectory.ndim != 3 or trajectory.shape[0] == 0 or trajectory.shape[2] != 2:
        raise ValueError(f"Expected trajectory of shape (n_frames, n_bodies, 2), got {trajectory.shape}")
    check_finite(trajectory, "trajectory positions")

    per_body = by_body(trajectory)
    workers = max_workers or max(1, len(per_body))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(analyze_body, per_body))
