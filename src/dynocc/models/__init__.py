"""Dynamic occupancy models: data, likelihoods, simulation and fitting."""

from dynocc.models.colext import (
    ColextObjective,
    colext_negative_log_likelihood,
    colext_site_log_likelihoods,
    posterior_occupancy,
    season_emissions,
    smoothed_occupancy,
)
from dynocc.models.data import EncounterData
from dynocc.models.derived import (
    equilibrium_occupancy,
    growth_rate,
    projected_occupancy,
    turnover,
)
from dynocc.models.inference import METHODS, FitResult, fit
from dynocc.models.simulate import SimulatedData, simulate

__all__ = [
    # Data
    "EncounterData",
    "SimulatedData",
    "simulate",
    # Season-level likelihood
    "ColextObjective",
    "colext_negative_log_likelihood",
    "colext_site_log_likelihoods",
    "season_emissions",
    "posterior_occupancy",
    "smoothed_occupancy",
    # Derived quantities
    "projected_occupancy",
    "growth_rate",
    "turnover",
    "equilibrium_occupancy",
    # Fitting
    "METHODS",
    "FitResult",
    "fit",
]
