"""Shared fixtures: reference orbits and small sampling densities."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from closedorbit.bodies import OrbitConfig, SimulationConfig
from closedorbit.closure import simulate_closed

FIGURE_EIGHT_PERIOD = 6.325897

# Two unit masses at separation 1 on a circular orbit: |F| = 1, r = 0.5,
# v = sqrt(r * F / m) = sqrt(0.5), T = 2*pi*r / v
CIRCULAR_SPEED = np.sqrt(0.5)
CIRCULAR_PERIOD = 2.0 * np.pi * 0.5 / CIRCULAR_SPEED


def figure_eight_config(name="figure-eight", **overrides):
    fields = dict(
        name=name,
        period=FIGURE_EIGHT_PERIOD,
        energy=-1.287146,
        masses=[1.0, 1.0, 1.0],
        positions=[[-1.0, 0.0], [1.0, 0.0], [0.0, 0.0]],
        velocities=[[0.347113, 0.532727], [0.347113, 0.532727], [-0.694226, -1.065454]],
    )
    fields.update(overrides)
    return OrbitConfig(**fields)


def circular_config(name="circular", **overrides):
    fields = dict(
        name=name,
        period=CIRCULAR_PERIOD,
        masses=[1.0, 1.0],
        positions=[[0.5, 0.0], [-0.5, 0.0]],
        velocities=[[0.0, CIRCULAR_SPEED], [0.0, -CIRCULAR_SPEED]],
    )
    fields.update(overrides)
    return OrbitConfig(**fields)


@pytest.fixture
def figure_eight():
    return figure_eight_config().to_orbit()


@pytest.fixture
def circular():
    return circular_config().to_orbit()


@pytest.fixture
def small_sim():
    """200 samples per period, 100 integrator steps per sample."""
    return SimulationConfig(frames=20, subframes=10, substeps=100)


@pytest.fixture
def tiny_sim():
    """64 samples per period, 50 integrator steps per sample."""
    return SimulationConfig(frames=16, subframes=4, substeps=50)


@pytest.fixture(scope="session")
def closed_figure_eight():
    """Closed figure-eight trajectory, computed once per test session."""
    sim_config = SimulationConfig(frames=20, subframes=10, substeps=100)
    return simulate_closed(sim_config, figure_eight_config().to_orbit())
