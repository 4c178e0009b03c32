"""Visualization module for the closed-orbit baker.

This module renders a baked orbit as an animated GIF:
- One animation frame per chunk of `subframes` trajectory samples
- About ten faint body markers per chunk, drawn on a persistent canvas so
  the orbit's trail builds up over the loop
- Current body positions drawn on top

Design principles:
- Renders the compressed (reconstructed) trajectory, so the GIF shows what
  the exported frequency sets actually describe
- Consistent color cycle (red, green, blue, ...)
- Frames are prepared in parallel and reassembled in frame order
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional
import math

import numpy as np
from pathlib import Path

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter

from closedorbit.bodies import SimulationConfig

BODY_COLORS = ['red', 'green', 'blue', 'orange', 'purple', 'brown', 'pink']

# Markers drawn per animation frame (every n-th sample of the chunk)
SAMPLES_PER_FRAME = 10


def _sample_chunk(chunk: np.ndarray) -> np.ndarray:
    stride = max(1, math.ceil(len(chunk) / SAMPLES_PER_FRAME))
    return chunk[::stride]


def frame_chunks(
    positions: np.ndarray,
    subframes: int,
    max_workers: Optional[int] = None,
) -> List[np.ndarray]:
    """Split a trajectory into per-frame marker sets.

    Parameters
    ----------
    positions : ndarray, shape (n_samples, n_bodies, 2)
        Frame-major trajectory.
    subframes : int
        Samples per animation frame. The last chunk may be shorter.
    max_workers : int, optional
        Thread pool size (default: executor default).

    Returns
    -------
    List[ndarray]
        One array per animation frame, shape (k, n_bodies, 2) with
        k <= SAMPLES_PER_FRAME, in frame order.
    """
    if subframes <= 0:
        raise ValueError(f"subframes must be positive, got {subframes}")

    positions = np.asarray(positions, dtype=float)
    chunks = [positions[i:i + subframes] for i in range(0, len(positions), subframes)]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(_sample_chunk, chunks))


def render_orbit_gif(
    sim_config: SimulationConfig,
    baked_orbit,
    output_path: str,
    size_px: int = 400,
    fps: int = 50,
) -> Path:
    """Render a baked orbit's compressed trajectory to an animated GIF.

    Parameters
    ----------
    sim_config : SimulationConfig
        Supplies `subframes` (samples per animation frame).
    baked_orbit : BakedOrbit
        Orbit to draw; uses `positions` and `name`.
    output_path : str
        Output file path (e.g., "output/figure-eight.gif").
    size_px : int, optional
        Width and height of the square image (default: 400).
    fps : int, optional
        Playback rate (default: 50, i.e. 20 ms per frame).

    Returns
    -------
    Path
        The written file.
    """
    positions = np.asarray(baked_orbit.positions, dtype=float)
    n_bodies = positions.shape[1]
    frames = frame_chunks(positions, sim_config.subframes)

    dpi = 100
    fig, ax = plt.subplots(figsize=(size_px / dpi, size_px / dpi), dpi=dpi)
    fig.patch.set_facecolor((100 / 255, 100 / 255, 100 / 255))
    ax.set_facecolor((100 / 255, 100 / 255, 100 / 255))
    ax.set_position([0, 0, 1, 1])
    ax.set_axis_off()

    # Equal aspect ratio, centered on the data
    lo = positions.reshape(-1, 2).min(axis=0)
    hi = positions.reshape(-1, 2).max(axis=0)
    mid = (lo + hi) / 2.0
    half = max(float(np.max(hi - lo)) / 2.0, 1e-6) * 1.15
    ax.set_xlim(mid[0] - half, mid[0] + half)
    ax.set_ylim(mid[1] - half, mid[1] + half)

    colors = [BODY_COLORS[i % len(BODY_COLORS)] for i in range(n_bodies)]
    current = ax.scatter(positions[0, :, 0], positions[0, :, 1], c=colors, s=40, zorder=10)

    def update(frame_idx):
        samples = frames[frame_idx]
        for body in range(n_bodies):
            ax.scatter(samples[:, body, 0], samples[:, body, 1],
                       color=colors[body], s=25, alpha=0.05, linewidths=0)
        current.set_offsets(samples[-1])
        return [current]

    animation = FuncAnimation(fig, update, frames=len(frames), blit=False)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    animation.save(str(output_path), writer=PillowWriter(fps=fps), dpi=dpi)
    plt.close(fig)

    print(f"Saved {len(frames)}-frame animation of '{baked_orbit.name}' to {output_path}")
    return output_path
