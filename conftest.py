"""Shared pytest fixtures."""

import pytest

from nova_fractal.core.root_solver import SolverConfig


@pytest.fixture
def seeded_solver():
    """Solver config with a fixed seed so root order is reproducible."""
    return SolverConfig(seed=1234)
