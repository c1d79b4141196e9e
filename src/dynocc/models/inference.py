"""Fitting front-ends for dynamic occupancy data.

Separates inference from the likelihood definition. fit() dispatches to:

- hmm: maximum likelihood on the occasion-level forward algorithm (the
  hand-written HMM template fitted by a quasi-Newton optimizer).
- colext: maximum likelihood on the season-collapsed forward algorithm (the
  formulation of dedicated occupancy packages).
- nuts: Bayesian fit with NUTS; latent states marginalised by the forward
  algorithm and added to the model with numpyro.factor().
- gibbs: Bayesian data-augmentation Gibbs sampler with the latent occupancy
  states sampled explicitly (the state-space formulation of BUGS/JAGS).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

import numpy as np
import polars as pl

from dynocc.models.hmm.base import OccupancyParams

if TYPE_CHECKING:
    from dynocc.models.data import EncounterData

Method = Literal["hmm", "colext", "nuts", "gibbs"]
METHODS: tuple[str, ...] = ("hmm", "colext", "nuts", "gibbs")


@dataclass
class FitResult:
    """Uniform container for MLE and posterior fits.

    For MLE methods, std_errors are delta-method standard errors and
    lower/upper are back-transformed 95% Wald intervals on the logit scale.
    For Bayesian methods they are posterior SDs and 95% equal-tailed
    credible intervals, and samples holds the draws.
    """

    method: Method
    parameter_names: tuple[str, ...]
    estimates: dict[str, float]
    std_errors: dict[str, float]
    lower: dict[str, float]
    upper: dict[str, float]
    runtime_s: float
    nll: float | None = None
    aic: float | None = None
    samples: dict[str, np.ndarray] | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def params(self) -> OccupancyParams:
        """Point estimates as OccupancyParams."""
        return OccupancyParams(**self.estimates)

    def summary_frame(self) -> pl.DataFrame:
        """One row per parameter: estimate, std_error, lower, upper."""
        names = list(self.parameter_names)
        return pl.DataFrame(
            {
                "method": [self.method] * len(names),
                "parameter": names,
                "estimate": [self.estimates[n] for n in names],
                "std_error": [self.std_errors[n] for n in names],
                "lower": [self.lower[n] for n in names],
                "upper": [self.upper[n] for n in names],
            }
        )

    def print_summary(self) -> None:
        """Print a parameter table for this fit."""
        print(f"\nFit method: {self.method}  ({self.runtime_s:.2f}s)")
        if self.nll is not None:
            print(f"Negative log-likelihood: {self.nll:.4f}   AIC: {self.aic:.4f}")
        print(f"{'Parameter':<12} {'Estimate':>10} {'SE/SD':>10} {'2.5%':>10} {'97.5%':>10}")
        print("-" * 56)
        for name in self.parameter_names:
            print(
                f"{name:<12} {self.estimates[name]:>10.4f} {self.std_errors[name]:>10.4f} "
                f"{self.lower[name]:>10.4f} {self.upper[name]:>10.4f}"
            )


def fit(data: EncounterData, method: Method = "hmm", **kwargs: Any) -> FitResult:
    """Fit the dynamic occupancy model with the specified method.

    Args:
        data: encounter histories
        method: "hmm" (default), "colext", "nuts" or "gibbs"
        **kwargs: method-specific arguments

    Returns:
        FitResult with estimates, uncertainty and runtime
    """
    if method == "hmm":
        from dynocc.models.hmm.objective import OccupancyObjective
        from dynocc.models.mle import fit_mle

        return fit_mle(OccupancyObjective(data), method="hmm", **kwargs)
    elif method == "colext":
        from dynocc.models.colext import ColextObjective
        from dynocc.models.mle import fit_mle

        return fit_mle(ColextObjective(data), method="colext", **kwargs)
    elif method == "nuts":
        from dynocc.models.bayes import fit_nuts

        return fit_nuts(data, **kwargs)
    elif method == "gibbs":
        from dynocc.models.bayes import fit_gibbs

        return fit_gibbs(data, **kwargs)
    else:
        raise ValueError(
            f"Unknown inference method: {method!r}. Use 'hmm', 'colext', 'nuts' or 'gibbs'."
        )
