"""Parameter recovery on one simulated dynamic occupancy data set.

Ground truth comes from the simulation block of config.yaml (the reference
design: 100 sites, 5 surveys, 10 seasons). Fits with every method, prints
one recovery table per method, the smoothed vs realised occupancy
trajectory and a final comparison.

Usage:
    uv run python -m tools.recovery                     # all methods
    uv run python -m tools.recovery --methods hmm,colext
"""

from __future__ import annotations

import argparse
import logging

import numpy as np

from dynocc.models import METHODS, fit, simulate, smoothed_occupancy
from dynocc.models.derived import projected_occupancy
from dynocc.utils.config import get_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def header(title: str):
    w = 70
    print("=" * w)
    print(f" {title}")
    print("=" * w)


def print_recovery(name: str, true_val, estimate, se, lower, upper) -> bool:
    """Print one row of recovery stats. Returns True if the 95% interval covers truth."""
    true = float(true_val)
    covered = lower <= true <= upper
    bias = estimate - true
    tag = "OK" if covered else "MISS"
    print(
        f"  {name:<10s}  true={true:.3f}  est={estimate:.3f}+-{se:.3f}"
        f"  95%CI=[{lower:.3f},{upper:.3f}]  {tag}  bias={bias:+.3f}"
    )
    return covered


def print_trajectory(realised, smoothed, projected):
    """Season-by-season occupancy: realised z-mean, smoothed posterior, projection."""
    print(f"  {'season':>6s}  {'realised':>9s}  {'smoothed':>9s}  {'projected':>9s}")
    for k, (r, s, p) in enumerate(zip(realised, smoothed, projected, strict=True)):
        print(f"  {k + 1:>6d}  {r:>9.3f}  {s:>9.3f}  {p:>9.3f}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(methods: list[str]):
    config = get_config()
    sim_cfg = config.simulation

    header("SIMULATE")
    sim = simulate(
        sim_cfg.n_sites,
        sim_cfg.n_surveys,
        sim_cfg.n_seasons,
        psi=sim_cfg.psi,
        p=sim_cfg.p,
        gamma=sim_cfg.gamma,
        epsilon=sim_cfg.epsilon,
        seed=sim_cfg.seed,
    )
    data = sim.data
    print(f"R={data.n_sites}  J={sim_cfg.n_surveys}  K={data.n_seasons}")
    print(f"Naive occupancy:    {np.round(data.naive_occupancy(), 2)}")
    print(f"Realised occupancy: {np.round(sim.true_occupancy, 2)}")
    print()

    truth = sim.true_params
    summary = {}
    for method in methods:
        header(f"FIT: {method.upper()}")
        result = fit(data, method=method, **config.method_kwargs(method))
        n_covered = 0
        for name in result.parameter_names:
            n_covered += print_recovery(
                name,
                getattr(truth, name),
                result.estimates[name],
                result.std_errors[name],
                result.lower[name],
                result.upper[name],
            )
        if result.nll is not None:
            print(f"  nll={result.nll:.4f}  AIC={result.aic:.4f}")
        print(f"  Time={result.runtime_s:.2f}s  covered={n_covered}/{len(result.parameter_names)}")
        print()
        summary[method] = result

    header("OCCUPANCY TRAJECTORY (first method)")
    first = summary[methods[0]]
    print_trajectory(
        sim.true_occupancy,
        smoothed_occupancy(first.params, data),
        np.asarray(projected_occupancy(first.params, data.n_seasons)),
    )
    print()

    if len(summary) > 1:
        header("COMPARISON")
        names = truth._fields[:4]
        print(f"{'Method':<10s}  {'Time(s)':>8s}  " + "  ".join(f"{n:>8s}" for n in names))
        print("-" * (22 + 10 * len(names)))
        for method, res in summary.items():
            ests = "  ".join(f"{res.estimates[n]:>8.3f}" for n in names)
            print(f"{method:<10s}  {res.runtime_s:>8.2f}  {ests}")
        truths = "  ".join(f"{float(getattr(truth, n)):>8.3f}" for n in names)
        print(f"{'truth':<10s}  {'':>8s}  {truths}")


if __name__ == "__main__":
    config = get_config()
    logging.basicConfig(level=config.logging.level, format=config.logging.format)

    parser = argparse.ArgumentParser(description="Single-data-set parameter recovery")
    parser.add_argument("--methods", default="all", help="Comma-separated methods or 'all'")
    args = parser.parse_args()

    if args.methods == "all":
        methods = list(METHODS)
    else:
        methods = [m.strip() for m in args.methods.split(",")]
    main(methods)
