"""
Baking pipeline: from orbit configuration to compressed frequency sets.

bake() runs the full per-orbit pipeline:
1. Validate the configuration and build the Orbit (fail fast)
2. Simulate one closed, seam-free period (closure.simulate_closed)
3. Analyze every body's trajectory into frequency components
4. Truncate negligible components (cutoff, DC policy)
5. Reconstruct each body from its truncated set and report the error
   against the closed simulation

bake_all() fans a batch of independent orbits out over an executor and
collects results in submission order. A failing orbit (invalid config,
closure failure, non-finite numbers) is captured in its BakeResult and never
aborts the others.
"""

from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import time

import numpy as np

from closedorbit.bodies import OrbitConfig, SimulationConfig
from closedorbit.closure import DEFAULT_CLOSURE_TOLERANCE, simulate_closed
from closedorbit.dynamics import Trajectory, by_body, by_frame
from closedorbit.reconstruct import check_finite, inverse_analyze, rms_error
from closedorbit.spectrum import BakedBody, analyze

DEFAULT_CUTOFF = 0.001


@dataclass
class BakedOrbit:
    """Compressed orbit handed to the renderer and the exporter.

    Attributes
    ----------
    name : str
    period : float
    energy : float or None
        Opaque tag from the configuration, unchanged.
    bodies : List[BakedBody]
        Truncated frequency sets, in body order.
    positions : ndarray, shape (n_frames, n_bodies, 2)
        Trajectory reconstructed from `bodies` (what the renderer draws).
    diagnostics : dict
        'forward_drift', 'backward_drift', 'closure_errors',
        'component_counts' [(before, after) per body],
        'optimization_errors' [per body], 'elapsed_seconds'.
    """

    name: str
    period: float
    energy: Optional[float]
    bodies: List[BakedBody]
    positions: Trajectory
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def check_finite(self) -> "BakedOrbit":
        """Raise ValueError if any exported number is NaN/Inf."""
        check_finite(self.period, f"period of orbit '{self.name}'")
        if self.energy is not None:
            check_finite(self.energy, f"energy of orbit '{self.name}'")
        for i, body in enumerate(self.bodies):
            values = [(c.freq, c.amplitude, c.phase) for c in body.frequencies]
            check_finite(np.array(values, dtype=float).reshape(-1, 3),
                         f"frequency components of orbit '{self.name}' body {i}")
        return self

    def to_dict(self, decimals: Optional[int] = 8) -> dict:
        return {
            'name': self.name,
            'period': self.period,
            'energy': self.energy,
            'bodies': [body.to_dict(decimals) for body in self.bodies],
        }


@dataclass
class BakeResult:
    """Outcome of one orbit in a batch: exactly one of orbit/error is set."""

    index: int
    name: str
    orbit: Optional[BakedOrbit] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def bake(
    sim_config: SimulationConfig,
    orbit_config: OrbitConfig,
    cutoff: float = DEFAULT_CUTOFF,
    keep_dc: bool = True,
    closure_tolerance: float = DEFAULT_CLOSURE_TOLERANCE,
    verbose: bool = False,
) -> BakedOrbit:
    """
    Run the full pipeline for one orbit.

    Parameters
    ----------
    sim_config : SimulationConfig
        Sampling density.
    orbit_config : OrbitConfig
        Orbit specification; validated before any simulation.
    cutoff : float, optional
        Amplitude cutoff for truncation (default: 0.001).
    keep_dc : bool, optional
        Exempt the DC component from truncation (default: True).
    closure_tolerance : float, optional
        Forward/backward mismatch threshold (default: 1e-3).
    verbose : bool, optional
        Print integration progress (default: False).

    Returns
    -------
    BakedOrbit

    Raises
    ------
    ValueError
        Invalid configuration, or non-finite numbers anywhere downstream.
    ClosureError
        Initial conditions do not close at the stated period.
    """
    t_start = time.time()
    orbit = orbit_config.to_orbit()

    closed = simulate_closed(sim_config, orbit, tolerance=closure_tolerance, verbose=verbose)
    simulated = closed.positions

    baked_bodies = analyze(simulated)
    component_counts = [
        body.optimize(cutoff, keep_dc=keep_dc, label=f"{orbit.name} body {i}")
        for i, body in enumerate(baked_bodies)
    ]

    total_frames = len(simulated)
    compressed = []
    optimization_errors = []
    for body, baseline in zip(baked_bodies, by_body(simulated)):
        positions = inverse_analyze(total_frames, body)
        error = rms_error(positions, baseline)
        print(f"[{orbit.name}] optimization error: {error:.6e}")
        compressed.append(positions)
        optimization_errors.append(error)

    baked = BakedOrbit(
        name=orbit.name,
        period=orbit.period,
        energy=orbit.energy,
        bodies=baked_bodies,
        positions=by_frame(compressed),
        diagnostics={
            'forward_drift': closed.forward_drift,
            'backward_drift': closed.backward_drift,
            'closure_errors': closed.closure_errors,
            'component_counts': component_counts,
            'optimization_errors': optimization_errors,
            'elapsed_seconds': time.time() - t_start,
        },
    )
    return baked.check_finite()


def bake_all(
    sim_config: SimulationConfig,
    orbit_configs: Sequence[OrbitConfig],
    cutoff: float = DEFAULT_CUTOFF,
    keep_dc: bool = True,
    closure_tolerance: float = DEFAULT_CLOSURE_TOLERANCE,
    max_workers: Optional[int] = None,
    processes: bool = False,
    verbose: bool = False,
) -> List[BakeResult]:
    """
    Bake a batch of independent orbits in parallel.

    Parameters
    ----------
    sim_config : SimulationConfig
    orbit_configs : Sequence[OrbitConfig]
    cutoff, keep_dc, closure_tolerance, verbose
        Passed to bake() for every orbit.
    max_workers : int, optional
        Executor size (default: executor's own default).
    processes : bool, optional
        Use a ProcessPoolExecutor instead of threads (default: False).
        The integrator is pure Python, so processes give real parallelism
        across orbits at the cost of pickling inputs and results.

    Returns
    -------
    List[BakeResult]
        One per input, in input order regardless of completion order.
        Failed orbits carry the exception message in `error`.
    """
    executor_cls = ProcessPoolExecutor if processes else ThreadPoolExecutor

    with executor_cls(max_workers=max_workers) as executor:
        return _collect(executor, sim_config, orbit_configs, cutoff, keep_dc,
                        closure_tolerance, verbose)


def _collect(
    executor: Executor,
    sim_config: SimulationConfig,
    orbit_configs: Sequence[OrbitConfig],
    cutoff: float,
    keep_dc: bool,
    closure_tolerance: float,
    verbose: bool,
) -> List[BakeResult]:
    futures = [
        executor.submit(bake, sim_config, orbit_config, cutoff, keep_dc,
                        closure_tolerance, verbose)
        for orbit_config in orbit_configs
    ]

    results = []
    for index, (orbit_config, future) in enumerate(zip(orbit_configs, futures)):
        name = str(orbit_config.name)
        try:
            results.append(BakeResult(index=index, name=name, orbit=future.result()))
        except Exception as e:
            print(f"[{name}] FAILED: {type(e).__name__}: {e}")
            results.append(BakeResult(index=index, name=name, error=f"{type(e).__name__}: {e}"))
    return results
