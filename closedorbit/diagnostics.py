"""Diagnostics module for the closed-orbit baker.

This module provides functions for monitoring conserved quantities and the
numerical quality of a simulated period.

Key diagnostics:
- Total kinetic energy: T = Σ (1/2) m_a v_a²
- Gravitational potential energy (G = 1): U = -Σ_{a<b} m_a m_b / r_ab
- Total energy: E = T + U
- Total momentum: P = Σ m_a v_a (conserved exactly by the integrator)
- Start-end drift of a trajectory: how far one claimed period is from closing

None of these feed back into the pipeline. The optional energy tag on an
orbit configuration is passed through untouched; total_energy is only
printed next to it in run summaries.
"""

from typing import List

import numpy as np

from closedorbit.reconstruct import rms_error


def total_kinetic_energy(bodies: List) -> float:
    """Compute total kinetic energy of the system.

    Formula:
        T = Σ_a (1/2) m_a v_a²

    Examples
    --------
    >>> from closedorbit.bodies import Body
    >>> bodies = [
    ...     Body(mass=1.0, position=[0, 0], velocity=[1, 0]),
    ...     Body(mass=2.0, position=[1, 0], velocity=[0, 0.5]),
    ... ]
    >>> total_kinetic_energy(bodies)
    0.75
    """
    T = 0.0
    for body in bodies:
        T += 0.5 * body.mass * float(np.dot(body.velocity, body.velocity))
    return T


def potential_energy(bodies: List) -> float:
    """Compute gravitational pair potential energy with G = 1.

    Formula:
        U = -Σ_{a<b} m_a m_b / r_ab

    Notes
    -----
    For a single body there are no pairs and U = 0.

    Raises
    ------
    ValueError
        If two bodies share a position (U diverges).
    """
    U = 0.0
    for i, body_a in enumerate(bodies):
        for j in range(i + 1, len(bodies)):
            body_b = bodies[j]
            r_ab = float(np.linalg.norm(body_b.position - body_a.position))
            if r_ab == 0.0:
                raise ValueError(
                    f"Bodies {i} and {j} have identical positions. "
                    f"Potential energy diverges."
                )
            U += -body_a.mass * body_b.mass / r_ab
    return U


def total_energy(bodies: List) -> float:
    """Total energy E = T + U. Negative for bound systems."""
    return total_kinetic_energy(bodies) + potential_energy(bodies)


def total_momentum(bodies: List) -> np.ndarray:
    """Total linear momentum P = Σ m_a v_a, shape (2,)."""
    P = np.zeros(2)
    for body in bodies:
        P += body.mass * body.velocity
    return P


def start_end_drift(trajectory) -> float:
    """Mean squared distance between the first and last sample.

    Parameters
    ----------
    trajectory : array_like, shape (n_frames, n_bodies, 2)
        Frame-major positions.

    Returns
    -------
    float
        rms_error(trajectory[0], trajectory[-1]), averaged over bodies. Zero
        for an orbit that closes exactly after the sampled span.
    """
    trajectory = np.asarray(trajectory, dtype=float)
    return rms_error(trajectory[0], trajectory[-1])
