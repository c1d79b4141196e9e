"""Replicated-simulation benchmarks for the dynamic occupancy fitters.

Each replicate simulates a data set from a ReferenceProblem, fits it with
every requested method and records estimate, uncertainty, interval coverage
and runtime per parameter. summarize_benchmark() reduces the long table to
bias, RMSE, coverage and mean runtime per method and parameter.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

import jax.numpy as jnp
import polars as pl

from dynocc.models.hmm.base import OccupancyParams
from dynocc.models.hmm.objective import LikelihoodObjective
from dynocc.models.inference import METHODS, fit
from dynocc.models.simulate import SimulatedData, simulate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceProblem:
    """Simulation design and generating truth for a benchmark."""

    name: str
    n_sites: int
    n_surveys: int
    n_seasons: int
    psi: float
    p: float
    gamma: float
    epsilon: float

    @property
    def truth(self) -> OccupancyParams:
        return OccupancyParams(psi=self.psi, p=self.p, gamma=self.gamma, epsilon=self.epsilon)

    def simulate(self, seed: int = 0) -> SimulatedData:
        return simulate(
            self.n_sites,
            self.n_surveys,
            self.n_seasons,
            psi=self.psi,
            p=self.p,
            gamma=self.gamma,
            epsilon=self.epsilon,
            seed=seed,
        )

    def print_ground_truth(self) -> None:
        print(f"Problem: {self.name}  R={self.n_sites} J={self.n_surveys} K={self.n_seasons}")
        print(
            f"  psi={self.psi:.3f}  p={self.p:.3f}  "
            f"gamma={self.gamma:.3f}  epsilon={self.epsilon:.3f}"
        )


REFERENCE = ReferenceProblem(
    name="reference",
    n_sites=100,
    n_surveys=5,
    n_seasons=10,
    psi=0.6,
    p=0.7,
    gamma=0.3,
    epsilon=0.5,
)


def run_benchmark(
    problem: ReferenceProblem = REFERENCE,
    methods: Sequence[str] = ("hmm", "colext"),
    n_replicates: int = 10,
    seed: int = 0,
    method_kwargs: dict[str, dict] | None = None,
) -> pl.DataFrame:
    """Simulate and fit n_replicates data sets with every method.

    Args:
        problem: design and truth
        methods: subset of dynocc.models.METHODS
        n_replicates: number of simulated data sets
        seed: replicate r is simulated with seed + r
        method_kwargs: per-method keyword arguments for fit()

    Returns:
        Long DataFrame with one row per (replicate, method, parameter):
        replicate, method, parameter, truth, estimate, std_error, lower,
        upper, covered, runtime_s
    """
    unknown = [m for m in methods if m not in METHODS]
    if unknown:
        raise ValueError(f"Unknown inference methods: {unknown}. Choose from {METHODS}.")
    method_kwargs = method_kwargs or {}
    truth = problem.truth

    rows = []
    for replicate in range(n_replicates):
        sim = problem.simulate(seed=seed + replicate)
        for method in methods:
            t0 = time.perf_counter()
            result = fit(sim.data, method=method, **method_kwargs.get(method, {}))
            logger.debug(
                "replicate %d %s: %.2fs", replicate, method, time.perf_counter() - t0
            )
            for name in result.parameter_names:
                true_value = float(getattr(truth, name))
                rows.append(
                    {
                        "replicate": replicate,
                        "method": method,
                        "parameter": name,
                        "truth": true_value,
                        "estimate": result.estimates[name],
                        "std_error": result.std_errors[name],
                        "lower": result.lower[name],
                        "upper": result.upper[name],
                        "covered": result.lower[name] <= true_value <= result.upper[name],
                        "runtime_s": result.runtime_s,
                    }
                )
        logger.info("Benchmark replicate %d/%d done", replicate + 1, n_replicates)

    return pl.DataFrame(rows)


def summarize_benchmark(df: pl.DataFrame) -> pl.DataFrame:
    """Bias, RMSE, interval coverage and mean runtime per method and parameter."""
    error = pl.col("estimate") - pl.col("truth")
    return (
        df.group_by(["method", "parameter"], maintain_order=True)
        .agg(
            pl.col("truth").first(),
            pl.col("estimate").mean().alias("mean_estimate"),
            error.mean().alias("bias"),
            (error**2).mean().sqrt().alias("rmse"),
            pl.col("covered").mean().alias("coverage"),
            pl.col("runtime_s").mean().alias("mean_runtime_s"),
            pl.len().alias("n_replicates"),
        )
        .sort(["method", "parameter"])
    )


def time_objective(objective: LikelihoodObjective, theta, n_calls: int = 100) -> float:
    """Mean wall-clock seconds per objective evaluation, excluding compilation."""
    theta = jnp.asarray(theta, dtype=float)
    objective(theta).block_until_ready()
    t0 = time.perf_counter()
    for _ in range(n_calls):
        objective(theta).block_until_ready()
    return (time.perf_counter() - t0) / n_calls
