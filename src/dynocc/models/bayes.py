"""Bayesian fitting of the dynamic occupancy model.

Two samplers with Uniform(0, 1) = Beta(1, 1) priors on every probability:

- NUTS: the latent occupancy states are marginalised by the forward
  algorithm and the site log-likelihoods enter the NumPyro model through
  numpyro.factor(), so the sampler only sees the parameters.
- Gibbs: data augmentation. Latent states are drawn jointly per site by
  forward-filtering backward-sampling over seasons, then every parameter
  is drawn from its conjugate Beta full conditional. Standard
  observation model only.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Literal

import jax
import jax.numpy as jnp
import jax.random as random
import numpy as np
import numpyro
import numpyro.distributions as dist
from jax import lax, vmap
from numpyro.diagnostics import effective_sample_size, split_gelman_rubin
from numpyro.infer import MCMC, NUTS, init_to_median

from dynocc.errors import InputShapeError
from dynocc.models.colext import _colext_terms, _season_emissions, filter_seasons
from dynocc.models.hmm.base import ObservationModel, OccupancyParams
from dynocc.models.hmm.forward import _site_terms
from dynocc.models.hmm.matrices import _between_season_matrix, _initial_distribution
from dynocc.models.inference import FitResult

if TYPE_CHECKING:
    from dynocc.models.data import EncounterData

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# POSTERIOR SUMMARIES
# ══════════════════════════════════════════════════════════════════════════════


def summarize_draws(
    method: str,
    chains: dict[str, np.ndarray],
    runtime_s: float,
    diagnostics: dict | None = None,
) -> FitResult:
    """Build a FitResult from chain-grouped draws.

    Args:
        method: "nuts" or "gibbs"
        chains: parameter name -> (n_chains, n_draws) draws
        runtime_s: wall-clock sampling time
        diagnostics: extra sampler diagnostics

    Returns:
        FitResult with posterior means, SDs and 95% equal-tailed intervals;
        per-parameter n_eff and r_hat are added to diagnostics
    """
    diagnostics = dict(diagnostics or {})
    names = tuple(chains)
    estimates, sds, lower, upper, samples = {}, {}, {}, {}, {}
    n_eff, r_hat = {}, {}
    for name in names:
        grouped = np.asarray(chains[name], dtype=float)
        flat = grouped.reshape(-1)
        samples[name] = flat
        estimates[name] = float(np.mean(flat))
        sds[name] = float(np.std(flat))
        lower[name] = float(np.percentile(flat, 2.5))
        upper[name] = float(np.percentile(flat, 97.5))
        n_eff[name] = float(effective_sample_size(grouped))
        r_hat[name] = float(split_gelman_rubin(grouped))

    worst = max(r_hat.values())
    if np.isfinite(worst) and worst > 1.1:
        logger.warning("%s: max split R-hat %.3f > 1.1; chains may not have mixed", method, worst)

    diagnostics.update({"n_eff": n_eff, "r_hat": r_hat})
    return FitResult(
        method=method,
        parameter_names=names,
        estimates=estimates,
        std_errors=sds,
        lower=lower,
        upper=upper,
        runtime_s=runtime_s,
        samples=samples,
        diagnostics=diagnostics,
    )


# ══════════════════════════════════════════════════════════════════════════════
# NUTS
# ══════════════════════════════════════════════════════════════════════════════


def occupancy_model(
    histories: jnp.ndarray,
    season_codes: jnp.ndarray,
    multiplicity: jnp.ndarray,
    between: jnp.ndarray,
    model: ObservationModel = ObservationModel.STANDARD,
    likelihood: Literal["hmm", "colext"] = "hmm",
) -> None:
    """NumPyro model: uniform priors plus the marginal likelihood as a factor."""
    values = {name: numpyro.sample(name, dist.Uniform(0.0, 1.0)) for name in model.parameter_names}
    params = OccupancyParams(**values)
    if likelihood == "colext":
        terms = _colext_terms(params, season_codes, multiplicity, model)
    else:
        terms = _site_terms(params, histories, multiplicity, between, model)
    numpyro.factor("log_likelihood", jnp.sum(terms))


def fit_nuts(
    data: EncounterData,
    num_warmup: int = 500,
    num_samples: int = 1000,
    num_chains: int = 1,
    seed: int = 0,
    target_accept_prob: float = 0.85,
    likelihood: Literal["hmm", "colext"] = "hmm",
    progress_bar: bool = False,
) -> FitResult:
    """Sample the posterior with NUTS on the marginal likelihood.

    Args:
        data: encounter histories
        num_warmup: warmup iterations per chain
        num_samples: retained draws per chain
        num_chains: number of chains (run sequentially unless host devices
            are configured for parallel chains)
        seed: PRNG seed
        target_accept_prob: NUTS step-size adaptation target
        likelihood: "hmm" (occasion-level) or "colext" (season-collapsed)
        progress_bar: show the NumPyro progress bar

    Returns:
        FitResult with posterior summaries and draws
    """
    if likelihood not in ("hmm", "colext"):
        raise ValueError(f"Unknown likelihood: {likelihood!r}. Use 'hmm' or 'colext'.")

    t0 = time.perf_counter()
    kernel = NUTS(
        occupancy_model,
        init_strategy=init_to_median(num_samples=15),
        target_accept_prob=target_accept_prob,
    )
    mcmc = MCMC(
        kernel,
        num_warmup=num_warmup,
        num_samples=num_samples,
        num_chains=num_chains,
        chain_method="sequential",
        progress_bar=progress_bar,
    )
    mcmc.run(
        random.PRNGKey(seed),
        jnp.asarray(data.histories),
        jnp.asarray(data.season_array()),
        jnp.asarray(data.multiplicity),
        jnp.asarray(data.structure.between_season),
        model=data.model,
        likelihood=likelihood,
        extra_fields=("diverging",),
    )
    runtime = time.perf_counter() - t0

    grouped = mcmc.get_samples(group_by_chain=True)
    divergences = int(np.sum(np.asarray(mcmc.get_extra_fields()["diverging"])))
    if divergences:
        logger.warning("NUTS reported %d divergent transitions", divergences)
    logger.info("NUTS: %d chains x %d draws in %.2fs", num_chains, num_samples, runtime)

    chains = {name: np.asarray(grouped[name]) for name in data.model.parameter_names}
    return summarize_draws(
        "nuts",
        chains,
        runtime,
        diagnostics={"divergences": divergences, "likelihood": likelihood, "mcmc": mcmc},
    )


# ══════════════════════════════════════════════════════════════════════════════
# GIBBS (DATA AUGMENTATION)
# ══════════════════════════════════════════════════════════════════════════════


def backward_sample(key, filtered: jnp.ndarray, phi: jnp.ndarray) -> jnp.ndarray:
    """Draw z_1..z_K for one site from its forward-filtered distributions.

    Args:
        key: PRNG key
        filtered: (K, 2) P(z_k | y_1..y_k) from filter_seasons
        phi: (2, 2) between-season transition matrix

    Returns:
        (K,) int32 sampled occupancy states
    """
    keys = random.split(key, filtered.shape[0])
    z_last = random.bernoulli(keys[-1], filtered[-1, 1]).astype(jnp.int32)

    def back(z_next, inputs):
        alpha, step_key = inputs
        weights = alpha * phi[:, z_next]
        prob = weights[1] / jnp.maximum(jnp.sum(weights), jnp.finfo(weights.dtype).tiny)
        z = random.bernoulli(step_key, prob).astype(jnp.int32)
        return z, z

    _, earlier = lax.scan(back, z_last, (filtered[:-1], keys[:-1]), reverse=True)
    return jnp.concatenate([earlier, z_last[None]])


def _sample_states(key, probs: jnp.ndarray, season_codes: jnp.ndarray) -> jnp.ndarray:
    """(R, K) latent states drawn by FFBS given probability-scale (psi, p, gamma, epsilon)."""
    params = OccupancyParams(*(probs[i] for i in range(4)))
    emissions = _season_emissions(params, season_codes, ObservationModel.STANDARD)
    initial = _initial_distribution(params)
    phi = _between_season_matrix(params)
    filtered, _ = vmap(filter_seasons, in_axes=(None, None, 0))(initial, phi, emissions)
    keys = random.split(key, season_codes.shape[0])
    return vmap(backward_sample, in_axes=(0, 0, None))(keys, filtered, phi)


def _sample_params(key, z: jnp.ndarray, n_detected: jnp.ndarray, n_surveyed: jnp.ndarray):
    """Conjugate Beta(1, 1) updates of (psi, p, gamma, epsilon) given the states."""
    k_psi, k_p, k_gamma, k_eps = random.split(key, 4)
    z = z.astype(n_detected.dtype)
    n_sites = z.shape[0]

    occupied_first = jnp.sum(z[:, 0])
    psi = random.beta(k_psi, 1.0 + occupied_first, 1.0 + n_sites - occupied_first)

    detections = jnp.sum(z * n_detected)
    misses = jnp.sum(z * (n_surveyed - n_detected))
    p = random.beta(k_p, 1.0 + detections, 1.0 + misses)

    prev, nxt = z[:, :-1], z[:, 1:]
    colonized = jnp.sum((1.0 - prev) * nxt)
    stayed_empty = jnp.sum((1.0 - prev) * (1.0 - nxt))
    gamma = random.beta(k_gamma, 1.0 + colonized, 1.0 + stayed_empty)

    went_extinct = jnp.sum(prev * (1.0 - nxt))
    persisted = jnp.sum(prev * nxt)
    epsilon = random.beta(k_eps, 1.0 + went_extinct, 1.0 + persisted)

    return jnp.stack([psi, p, gamma, epsilon])


@functools.partial(jax.jit, static_argnames=("num_warmup", "num_samples"))
def _run_chain(
    key,
    init: jnp.ndarray,
    season_codes: jnp.ndarray,
    n_detected: jnp.ndarray,
    n_surveyed: jnp.ndarray,
    num_warmup: int,
    num_samples: int,
):
    def gibbs_step(probs, step_key):
        z_key, theta_key = random.split(step_key)
        z = _sample_states(z_key, probs, season_codes)
        return _sample_params(theta_key, z, n_detected, n_surveyed), z

    def warmup(probs, step_key):
        probs, _ = gibbs_step(probs, step_key)
        return probs, None

    def sample(carry, step_key):
        probs, z_sum = carry
        probs, z = gibbs_step(probs, step_key)
        return (probs, z_sum + z), (probs, jnp.mean(z, axis=0))

    warm_key, sample_key = random.split(key)
    probs, _ = lax.scan(warmup, init, random.split(warm_key, num_warmup))
    z_sum = jnp.zeros(season_codes.shape[:2], dtype=n_detected.dtype)
    (_, z_sum), (draws, occupancy) = lax.scan(
        sample, (probs, z_sum), random.split(sample_key, num_samples)
    )
    return draws, occupancy, z_sum / num_samples


def expand_sites(data: EncounterData) -> np.ndarray:
    """(R', K, Jmax) season codes with each history repeated by its multiplicity.

    Raises:
        InputShapeError: if a multiplicity is not a whole number
    """
    mult = np.asarray(data.multiplicity, dtype=float)
    counts = np.rint(mult).astype(int)
    if not np.allclose(mult, counts):
        raise InputShapeError(
            "The Gibbs sampler needs whole-number multiplicities; "
            "use the hmm, colext or nuts methods for weighted histories"
        )
    return np.repeat(data.season_array(), counts, axis=0)


def fit_gibbs(
    data: EncounterData,
    num_warmup: int = 500,
    num_samples: int = 2000,
    num_chains: int = 2,
    seed: int = 0,
) -> FitResult:
    """Data-augmentation Gibbs sampler with FFBS state updates.

    Args:
        data: encounter histories (standard observation model)
        num_warmup: discarded iterations per chain
        num_samples: retained iterations per chain
        num_chains: independent chains, vectorized with vmap
        seed: PRNG seed

    Returns:
        FitResult with posterior summaries; samples also holds the
        finite-sample occupancy per season ("occupancy", (n_draws, K)) and
        diagnostics["z_mean"] the posterior mean state of every expanded site

    Raises:
        NotImplementedError: for the false-positive observation model
        InputShapeError: for non-integer multiplicities
    """
    if data.model is not ObservationModel.STANDARD:
        raise NotImplementedError("The Gibbs sampler supports the standard observation model only")

    season_codes = expand_sites(data)
    n_detected = (season_codes == 1).sum(axis=2).astype(float)
    n_surveyed = (season_codes >= 0).sum(axis=2).astype(float)

    t0 = time.perf_counter()
    key = random.PRNGKey(seed)
    init_key, chain_key = random.split(key)
    inits = random.uniform(init_key, (num_chains, 4), minval=0.2, maxval=0.8)

    run = functools.partial(
        _run_chain,
        season_codes=jnp.asarray(season_codes),
        n_detected=jnp.asarray(n_detected),
        n_surveyed=jnp.asarray(n_surveyed),
        num_warmup=num_warmup,
        num_samples=num_samples,
    )
    draws, occupancy, z_mean = vmap(run)(random.split(chain_key, num_chains), inits)
    draws = np.asarray(draws)
    runtime = time.perf_counter() - t0
    logger.info("Gibbs: %d chains x %d draws in %.2fs", num_chains, num_samples, runtime)

    names = ObservationModel.STANDARD.parameter_names
    chains = {name: draws[:, :, i] for i, name in enumerate(names)}
    result = summarize_draws(
        "gibbs", chains, runtime, diagnostics={"z_mean": np.asarray(z_mean).mean(axis=0)}
    )
    result.samples["occupancy"] = np.asarray(occupancy).reshape(-1, season_codes.shape[1])
    return result
