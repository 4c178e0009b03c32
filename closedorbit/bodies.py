"""Body, Orbit and SimulationConfig dataclasses for the closed-orbit baker.

This module defines the plain value types that flow through the pipeline:
- Body: a point mass with a 2D position and velocity
- Orbit: an ordered list of bodies plus the period they claim to repeat at
- SimulationConfig: how finely one period is sampled

Gravity uses a unit gravitational constant. A body's index within its list
is its identity for the whole pipeline (simulation, analysis, reconstruction).
"""

from dataclasses import dataclass
from typing import List, Optional
import copy
import numpy as np


@dataclass
class Body:
    """A point mass moving in the plane.

    Attributes
    ----------
    mass : float
        Mass [code units, G = 1]. Must be positive.
    position : np.ndarray
        Position vector, shape (2,).
    velocity : np.ndarray
        Velocity vector, shape (2,).
    name : str, optional
        Display label used in summaries and plots (default: "").

    Notes
    -----
    Bodies are mutated in place by the integrator. Use `Orbit.fresh_bodies()`
    to obtain an independent copy before simulating.

    Examples
    --------
    >>> body = Body(mass=1.0, position=[-1.0, 0.0], velocity=[0.347113, 0.532727])
    >>> body.position
    array([-1.,  0.])
    >>> body.momentum
    array([0.347113, 0.532727])
    """

    mass: float
    position: np.ndarray
    velocity: np.ndarray
    name: str = ""

    def __post_init__(self):
        """Validate mass and coerce vectors to float arrays of shape (2,)."""
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

        if self.position.shape != (2,):
            raise ValueError(f"Position must have shape (2,), got {self.position.shape}")
        if self.velocity.shape != (2,):
            raise ValueError(f"Velocity must have shape (2,), got {self.velocity.shape}")

        self.mass = float(self.mass)
        if not self.mass > 0:
            raise ValueError(f"Mass must be positive, got {self.mass}")

    @property
    def momentum(self) -> np.ndarray:
        """Linear momentum p = m v."""
        return self.mass * self.velocity

    @property
    def kinetic_energy(self) -> float:
        """Kinetic energy KE = (1/2) m v²."""
        return 0.5 * self.mass * float(np.dot(self.velocity, self.velocity))

    def __str__(self) -> str:
        label = self.name or "body"
        return (
            f"Body '{label}': m={self.mass:.6g}, "
            f"x=[{self.position[0]:+.6f}, {self.position[1]:+.6f}], "
            f"v=[{self.velocity[0]:+.6f}, {self.velocity[1]:+.6f}]"
        )


@dataclass
class Orbit:
    """Initial conditions of a claimed periodic orbit.

    Attributes
    ----------
    name : str
        Orbit identifier, used for output file names.
    initial_conditions : List[Body]
        Bodies at t = 0. Treated as immutable; simulations work on copies.
    period : float
        Claimed period of exact repetition. Must be positive.
    energy : float, optional
        Opaque tag carried through to the export unchanged (default: None).
    """

    name: str
    initial_conditions: List[Body]
    period: float
    energy: Optional[float] = None

    def __post_init__(self):
        if len(self.initial_conditions) == 0:
            raise ValueError(f"Orbit '{self.name}' has no bodies")
        self.period = float(self.period)
        if not self.period > 0:
            raise ValueError(f"Orbit '{self.name}': period must be positive, got {self.period}")

    @property
    def n_bodies(self) -> int:
        return len(self.initial_conditions)

    def fresh_bodies(self) -> List[Body]:
        """Return an independent, mutable copy of the initial conditions."""
        return copy.deepcopy(self.initial_conditions)

    def reversed(self) -> "Orbit":
        """Return the time-reversed orbit: same positions, negated velocities.

        Newtonian gravity is time-reversible, so simulating the reversed orbit
        forward is the same as simulating this orbit backward.
        """
        bodies = self.fresh_bodies()
        for body in bodies:
            body.velocity = -body.velocity
        return Orbit(
            name=self.name,
            initial_conditions=bodies,
            period=self.period,
            energy=self.energy,
        )

    def initial_positions(self) -> np.ndarray:
        """Positions at t = 0, shape (n_bodies, 2)."""
        return np.array([body.position for body in self.initial_conditions])


@dataclass
class SimulationConfig:
    """Sampling density of one simulated period.

    Attributes
    ----------
    frames : int
        Number of output (animation) frames per period.
    subframes : int
        Recorded samples per output frame. The trajectory holds
        frames * subframes samples after the initial one.
    substeps : int
        Integrator micro-steps per recorded sample. Fixed for
        reproducibility; raising it trades speed for accuracy.
    """

    frames: int = 140
    subframes: int = 100
    substeps: int = 100

    def __post_init__(self):
        for attr in ('frames', 'subframes', 'substeps'):
            value = getattr(self, attr)
            if int(value) != value or value <= 0:
                raise ValueError(f"SimulationConfig.{attr} must be a positive integer, got {value}")
            setattr(self, attr, int(value))

    @property
    def n_samples(self) -> int:
        """Number of recorded samples per period, excluding the initial one."""
        return self.frames * self.subframes

    def timestep(self, period: float) -> float:
        """Time between two recorded samples."""
        return period / self.n_samples


@dataclass
class OrbitConfig:
    """Unvalidated orbit specification, as read from a configuration file.

    Fields are stored as given, missing ones as None. Problems (missing
    fields, mismatched list lengths, non-positive period or mass, malformed
    vectors) are reported by validate() and turned into a ValueError by
    to_orbit(), so one bad entry in a batch never prevents the others from
    loading.

    Attributes
    ----------
    name : str
    period : float or None
    masses : list of float
    positions : list of [x, y]
    velocities : list of [vx, vy]
    energy : float, optional
        Opaque tag passed through to the export.
    """

    name: str
    period: float
    masses: List
    positions: List
    velocities: List
    energy: Optional[float] = None

    def validate(self) -> List[str]:
        """Return a list of problems; empty if the orbit can be built."""
        problems = []
        label = f"Orbit '{self.name}'"

        if self.period is None:
            problems.append(f"{label}: period is missing")
        else:
            try:
                period = float(self.period)
                if not period > 0 or not np.isfinite(period):
                    problems.append(f"{label}: period must be positive and finite, got {self.period}")
            except (TypeError, ValueError):
                problems.append(f"{label}: period is not a number: {self.period!r}")

        if self.energy is not None:
            try:
                if not np.isfinite(float(self.energy)):
                    problems.append(f"{label}: energy must be finite, got {self.energy}")
            except (TypeError, ValueError):
                problems.append(f"{label}: energy is not a number: {self.energy!r}")

        lists = {}
        for field_name in ('masses', 'positions', 'velocities'):
            value = getattr(self, field_name)
            if value is None:
                problems.append(f"{label}: {field_name} is missing")
            elif not isinstance(value, (list, tuple, np.ndarray)):
                problems.append(f"{label}: {field_name} must be a list, got {value!r}")
            else:
                lists[field_name] = value

        if len(lists) == 3:
            lengths = {key: len(value) for key, value in lists.items()}
            if len(set(lengths.values())) != 1:
                problems.append(
                    f"{label}: masses, positions and velocities must have the same length, "
                    f"got {lengths['masses']}, {lengths['positions']}, {lengths['velocities']}"
                )
            elif lengths['masses'] == 0:
                problems.append(f"{label}: at least one body is required")

        for i, mass in enumerate(lists.get('masses', [])):
            try:
                if not float(mass) > 0 or not np.isfinite(float(mass)):
                    problems.append(f"{label}: mass {i} must be positive and finite, got {mass}")
            except (TypeError, ValueError):
                problems.append(f"{label}: mass {i} is not a number: {mass!r}")

        for kind, vectors in (('position', lists.get('positions', [])),
                              ('velocity', lists.get('velocities', []))):
            for i, vector in enumerate(vectors):
                try:
                    array = np.array(vector, dtype=float)
                except (TypeError, ValueError):
                    problems.append(f"{label}: {kind} {i} is not numeric: {vector!r}")
                    continue
                if array.shape != (2,):
                    problems.append(f"{label}: {kind} {i} must be [x, y], got {vector!r}")
                elif not np.all(np.isfinite(array)):
                    problems.append(f"{label}: {kind} {i} must be finite, got {vector!r}")

        return problems

    def to_orbit(self) -> Orbit:
        """Build the Orbit, failing fast on any validation problem.

        Raises
        ------
        ValueError
            With every problem found, before any simulation work.
        """
        problems = self.validate()
        if problems:
            raise ValueError("; ".join(problems))

        bodies = [
            Body(mass=mass, position=position, velocity=velocity, name=f"{self.name}[{i}]")
            for i, (mass, position, velocity)
            in enumerate(zip(self.masses, self.positions, self.velocities))
        ]
        return Orbit(
            name=self.name,
            initial_conditions=bodies,
            period=float(self.period),
            energy=None if self.energy is None else float(self.energy),
        )
