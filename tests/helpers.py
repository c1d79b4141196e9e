"""Shared test helpers (non-fixtures).

These are utilities that can be imported directly into test modules.
For fixtures, see conftest.py.
"""

import numpy as np

from dynocc.models.data import EncounterData
from dynocc.models.hmm.base import ObservationModel, OccasionStructure


def make_data(
    histories,
    surveys_per_season,
    multiplicity=None,
    model: ObservationModel = ObservationModel.STANDARD,
) -> EncounterData:
    """Build EncounterData from a list of histories and per-season survey counts."""
    return EncounterData(
        histories=np.asarray(histories),
        structure=OccasionStructure.from_surveys(surveys_per_season),
        model=model,
        multiplicity=multiplicity,
    )


def all_zero_probability(psi, p, gamma, epsilon, n_surveys: int) -> float:
    """Closed-form probability of no detections over two seasons of n_surveys each.

    Sums the four latent paths (z1, z2):
        (0, 0): (1 - ψ)(1 - γ)
        (0, 1): (1 - ψ) γ q
        (1, 0): ψ q ε
        (1, 1): ψ q (1 - ε) q
    where q = (1 - p)^J is the chance of missing an occupied site all season.
    """
    q = (1.0 - p) ** n_surveys
    return (1.0 - psi) * ((1.0 - gamma) + gamma * q) + psi * q * (epsilon + (1.0 - epsilon) * q)


def assert_recovery_ci(result, truth, name: str, n_se: float | None = None):
    """Assert the fitted interval for one parameter covers the truth.

    With n_se given, the interval is estimate ± n_se · SE (or posterior SD)
    instead of the reported 95% interval, for a looser gate on single data sets.
    """
    if n_se is None:
        lower, upper = result.lower[name], result.upper[name]
    else:
        half = n_se * result.std_errors[name]
        lower, upper = result.estimates[name] - half, result.estimates[name] + half
    true = float(getattr(truth, name))
    assert lower <= true <= upper, (
        f"{result.method} {name}: truth {true:.3f} outside [{lower:.3f}, {upper:.3f}] "
        f"(estimate {result.estimates[name]:.3f})"
    )
