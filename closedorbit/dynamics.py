"""
Time integration module for the closed-orbit baker.

This module implements a fixed-step symplectic (kick-drift) integrator for
planar N-body gravity with unit gravitational constant, and the sampler that
records one full period of an orbit.

Integration scheme (one step of size dt):
1. For every unordered pair (i, j), compute the Newtonian force from the
   positions at the start of the step:
       F_ij = m_i * m_j / |r_i - r_j|²   along  (r_i - r_j) / |r_i - r_j|
2. Apply equal and opposite impulses dt * F_ij to the two velocities
   (divided by each body's mass).
3. Drift all positions: x += v * dt.

Physics notes:
- Positions are not touched until every impulse of the step is applied, so
  all forces of a step see the same position snapshot.
- Pairwise impulses cancel exactly, so total momentum is conserved to
  round-off (Newton's third law).
- Coincident positions make the force undefined. The integrator does not
  check for them; non-finite state is rejected downstream.
"""

import warnings
from typing import List

import numpy as np
from numpy.typing import NDArray

from closedorbit.bodies import Body, Orbit, SimulationConfig
from closedorbit.diagnostics import start_end_drift

# Type aliases
Trajectory = NDArray[np.float64]  # Shape (n_frames, n_bodies, 2)

# Start-end drift above this is reported as a RuntimeWarning
DRIFT_WARNING_THRESHOLD = 1e-3


# ============================================================================
# Core integration functions
# ============================================================================

def step(dt: float, bodies: List[Body]) -> None:
    """
    Advance all bodies by exactly one timestep, in place.

    Parameters
    ----------
    dt : float
        Timestep [code units]. May be any finite value; a negative dt runs
        the system backward.
    bodies : List[Body]
        Bodies to advance. Modified IN-PLACE.

    Examples
    --------
    >>> a = Body(mass=1.0, position=[-1.0, 0.0], velocity=[0.0, 0.0])
    >>> b = Body(mass=1.0, position=[1.0, 0.0], velocity=[0.0, 0.0])
    >>> step(0.1, [a, b])
    >>> a.velocity  # pulled toward b with |F| = 1/4
    array([0.025, 0.   ])

    See Also
    --------
    apply_forces : Velocity kick
    update_positions : Position drift
    """
    apply_forces(dt, bodies)
    update_positions(dt, bodies)


def apply_forces(dt: float, bodies: List[Body]) -> None:
    """
    Kick every velocity with the pairwise gravitational impulses.

    Parameters
    ----------
    dt : float
        Timestep [code units].
    bodies : List[Body]
        Bodies whose velocities are updated IN-PLACE. Positions are only read.

    Notes
    -----
    For the pair (i, j) with separation delta = x_i - x_j and r² = |delta|²:

        impulse = dt * (m_i * m_j / r²) * delta / r
        v_i -= impulse / m_i
        v_j += impulse / m_j

    The momentum changes m_i * Δv_i and m_j * Δv_j are exactly opposite.
    For a single body the loop is empty and the velocity is unchanged.
    """
    n = len(bodies)
    for i in range(n):
        body = bodies[i]
        for j in range(i + 1, n):
            other = bodies[j]

            delta = body.position - other.position
            r2 = float(np.dot(delta, delta))
            force = body.mass * other.mass / r2

            impulse = (dt * force / np.sqrt(r2)) * delta
            body.velocity -= impulse / body.mass
            other.velocity += impulse / other.mass


def update_positions(dt: float, bodies: List[Body]) -> None:
    """Drift every position by velocity * dt, in place."""
    for body in bodies:
        body.position += body.velocity * dt


# ============================================================================
# Period sampling
# ============================================================================

def simulate(
    sim_config: SimulationConfig,
    orbit: Orbit,
    verbose: bool = False,
) -> Trajectory:
    """
    Sample one full period of an orbit.

    The period is split into sim_config.n_samples equal sample intervals;
    each interval is integrated with sim_config.substeps micro-steps.

    Parameters
    ----------
    sim_config : SimulationConfig
        Sampling density (frames, subframes, substeps).
    orbit : Orbit
        Initial conditions and period. Not modified; a copy of the bodies
        is integrated.
    verbose : bool, optional
        Print progress roughly every 10% of the period (default: False).

    Returns
    -------
    trajectory : ndarray, shape (n_samples + 1, n_bodies, 2)
        Frame-major positions. trajectory[0] is the initial state and
        trajectory[-1] the state after one claimed period.

    Notes
    -----
    The start-end drift (mean squared distance between the first and last
    sample, averaged over bodies) is always printed. A large drift means the
    period and initial conditions do not describe a periodic orbit; it is a
    diagnostic, not an error, and only raises a RuntimeWarning.

    With the defaults (140 frames x 100 subframes x 100 substeps) one period
    takes 1.4 million steps.
    """
    frame_num = sim_config.n_samples
    timestep = sim_config.timestep(orbit.period)
    substeps = sim_config.substeps
    dt = timestep / substeps

    bodies = orbit.fresh_bodies()
    history = np.zeros((frame_num + 1, len(bodies), 2), dtype=np.float64)

    for i, body in enumerate(bodies):
        history[0, i] = body.position

    progress_every = max(1, frame_num // 10)

    for sample in range(1, frame_num + 1):
        for _ in range(substeps):
            step(dt, bodies)

        for i, body in enumerate(bodies):
            history[sample, i] = body.position

        if verbose and sample % progress_every == 0:
            print(f"  [{orbit.name}] sample {sample:6d}/{frame_num} "
                  f"({sample / frame_num:6.1%})  t={sample * timestep:.6f}")

    drift = start_end_drift(history)
    print(f"[{orbit.name}] start-end simulation drift: {drift:.6e}")
    if drift > DRIFT_WARNING_THRESHOLD:
        warnings.warn(
            f"Orbit '{orbit.name}': start-end drift {drift:.3e} exceeds "
            f"{DRIFT_WARNING_THRESHOLD:.1e}; period may not match initial conditions",
            RuntimeWarning
        )

    return history


def by_body(trajectory: Trajectory) -> Trajectory:
    """Frame-major (n_frames, n_bodies, 2) -> body-major (n_bodies, n_frames, 2)."""
    return np.swapaxes(np.asarray(trajectory, dtype=float), 0, 1)


def by_frame(per_body: Trajectory) -> Trajectory:
    """Body-major (n_bodies, n_frames, 2) -> frame-major (n_frames, n_bodies, 2)."""
    return np.swapaxes(np.asarray(per_body, dtype=float), 0, 1)
