"""Shared fixtures for dynocc tests.

- Reference simulation (R=100, J=5, K=10) reused by likelihood, fitting
  and benchmark tests
- Small hand-written data sets for exact checks
- A false-positive simulation

For non-fixture helpers (make_data, all_zero_probability), see helpers.py.
"""

import pytest

from dynocc.benchmarking import REFERENCE
from dynocc.models import simulate
from dynocc.models.hmm.base import OccupancyParams
from tests.helpers import make_data

REFERENCE_SEED = 24

# ══════════════════════════════════════════════════════════════════════════════
# SIMULATED DATA
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(scope="session")
def reference_sim():
    """Reference design: R=100, J=5, K=10, ψ₁=0.6, p=0.7, γ=0.3, ε=0.5."""
    return REFERENCE.simulate(seed=REFERENCE_SEED)


@pytest.fixture(scope="session")
def reference_data(reference_sim):
    return reference_sim.data


@pytest.fixture(scope="session")
def small_sim():
    """Quick simulation for fitting smoke tests (R=60, J=4, K=4)."""
    return simulate(60, 4, 4, psi=0.6, p=0.6, gamma=0.25, epsilon=0.35, seed=3)


@pytest.fixture(scope="session")
def fp_sim():
    """False-positive simulation with uncertain and certain detections."""
    return simulate(
        200, 4, 3, psi=0.5, p=0.6, gamma=0.2, epsilon=0.3, p10=0.05, b=0.4, seed=11
    )


# ══════════════════════════════════════════════════════════════════════════════
# HAND-WRITTEN DATA
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def params():
    return OccupancyParams(psi=0.6, p=0.7, gamma=0.3, epsilon=0.5)


@pytest.fixture
def two_season_data():
    """Four sites, K=2 seasons of J=3 surveys; site 0 is never detected."""
    return make_data(
        [
            [0, 0, 0, 0, 0, 0],
            [1, 0, 1, 0, 0, 0],
            [0, 0, 0, 0, 1, 1],
            [1, 1, 1, 1, 1, 1],
        ],
        surveys_per_season=[3, 3],
    )
