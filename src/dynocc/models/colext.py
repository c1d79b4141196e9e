"""Season-collapsed likelihood for dynamic occupancy (colext formulation).

Within a season the state is fixed, so the surveys of site i in season k
collapse into one emission vector

    e[i, k, s] = Π_j B[y_ijk, s]

and the forward recursion runs over the K seasons with the between-season
transition matrix only. This is the formulation used by maximum-likelihood
packages such as Unmarked's colext; it is algebraically identical to the
occasion-level recursion in dynocc.models.hmm.forward.

The same season-level filter provides smoothed occupancy probabilities
(forward-backward) and the filtered distributions consumed by the
forward-filter backward-sample step of the Gibbs sampler.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax, vmap

from dynocc.models.hmm.base import (
    ObservationModel,
    OccupancyParams,
    emission_rows,
    params_from_logit,
    validate_params,
)
from dynocc.models.hmm.forward import _rescale, check_degenerate
from dynocc.models.hmm.matrices import (
    _between_season_matrix,
    _emission_matrix,
    _initial_distribution,
)
from dynocc.models.hmm.objective import LikelihoodObjective

if TYPE_CHECKING:
    from dynocc.models.data import EncounterData


def _season_emissions(
    params: OccupancyParams, season_codes: jnp.ndarray, model: ObservationModel
) -> jnp.ndarray:
    """(R, K, 2) probability of each season's survey codes given the state."""
    emission = _emission_matrix(params, model)
    per_survey = emission[emission_rows(season_codes, model.n_codes)]  # (R, K, J, 2)
    return jnp.prod(per_survey, axis=2)


def filter_seasons(
    initial: jnp.ndarray, phi: jnp.ndarray, emissions: jnp.ndarray
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Scaled forward filter over seasons for one site.

    Args:
        initial: (2,) first-season state distribution
        phi: (2, 2) between-season transition matrix
        emissions: (K, 2) season emission vectors

    Returns:
        filtered: (K, 2) P(z_k | y_1..y_k), rows sum to 1 (zeros if degenerate)
        log_lik: log P(y_1..y_K)
    """
    alpha, log_scale = _rescale(initial * emissions[0], jnp.zeros(()))

    def step(carry, emission):
        alpha, log_scale = carry
        alpha, log_scale = _rescale((alpha @ phi) * emission, log_scale)
        return (alpha, log_scale), alpha

    (_, log_lik), rest = lax.scan(step, (alpha, log_scale), emissions[1:])
    filtered = jnp.concatenate([alpha[None, :], rest], axis=0)
    return filtered, log_lik


def _smooth_seasons(
    initial: jnp.ndarray, phi: jnp.ndarray, emissions: jnp.ndarray
) -> jnp.ndarray:
    """(K,) posterior P(z_k = 1 | y) for one site by forward-backward."""
    filtered, _ = filter_seasons(initial, phi, emissions)

    def back(beta, emission):
        beta = phi @ (emission * beta)
        beta = beta / jnp.maximum(jnp.sum(beta), jnp.finfo(beta.dtype).tiny)
        return beta, beta

    last = jnp.ones(2, dtype=filtered.dtype)
    _, betas = lax.scan(back, last, emissions[1:], reverse=True)
    betas = jnp.concatenate([betas, last[None, :]], axis=0)
    joint = filtered * betas
    return joint[:, 1] / jnp.maximum(jnp.sum(joint, axis=1), jnp.finfo(joint.dtype).tiny)


@functools.partial(jax.jit, static_argnames=("model",))
def _colext_terms(
    params: OccupancyParams,
    season_codes: jnp.ndarray,
    multiplicity: jnp.ndarray,
    model: ObservationModel,
) -> jnp.ndarray:
    emissions = _season_emissions(params, season_codes, model)
    initial = _initial_distribution(params)
    phi = _between_season_matrix(params)
    _, log_lik = vmap(filter_seasons, in_axes=(None, None, 0))(initial, phi, emissions)
    return jnp.where(multiplicity > 0, multiplicity * log_lik, 0.0)


@functools.partial(jax.jit, static_argnames=("model",))
def _posterior_occupancy(
    params: OccupancyParams, season_codes: jnp.ndarray, model: ObservationModel
) -> jnp.ndarray:
    emissions = _season_emissions(params, season_codes, model)
    initial = _initial_distribution(params)
    phi = _between_season_matrix(params)
    return vmap(_smooth_seasons, in_axes=(None, None, 0))(initial, phi, emissions)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════


def season_emissions(params: OccupancyParams, data: EncounterData) -> jnp.ndarray:
    """(R, K, 2) season emission vectors for every site."""
    validate_params(params, data.model)
    return _season_emissions(params, jnp.asarray(data.season_array()), data.model)


def colext_site_log_likelihoods(params: OccupancyParams, data: EncounterData) -> jnp.ndarray:
    """Per-site weighted log-likelihoods from the season-level recursion."""
    validate_params(params, data.model)
    return _colext_terms(
        params, jnp.asarray(data.season_array()), jnp.asarray(data.multiplicity), data.model
    )


def colext_negative_log_likelihood(params: OccupancyParams, data: EncounterData) -> float:
    """Total negative log-likelihood; raises NumericalDegeneracyError like the HMM version."""
    terms = colext_site_log_likelihoods(params, data)
    check_degenerate(terms)
    return float(-jnp.sum(terms))


def posterior_occupancy(params: OccupancyParams, data: EncounterData) -> np.ndarray:
    """(R, K) smoothed probability that each site is occupied in each season."""
    validate_params(params, data.model)
    return np.asarray(
        _posterior_occupancy(params, jnp.asarray(data.season_array()), data.model)
    )


def smoothed_occupancy(params: OccupancyParams, data: EncounterData) -> np.ndarray:
    """(K,) finite-sample occupancy: site-mean of posterior_occupancy."""
    post = posterior_occupancy(params, data)
    weights = np.asarray(data.multiplicity)[:, None]
    return (post * weights).sum(axis=0) / weights.sum()


class ColextObjective(LikelihoodObjective):
    """Season-collapsed objective with the same interface as OccupancyObjective."""

    def __init__(self, data: EncounterData):
        self._season_codes = jnp.asarray(data.season_array())
        self._multiplicity = jnp.asarray(data.multiplicity)
        super().__init__(data)

    def _terms(self, theta: jnp.ndarray) -> jnp.ndarray:
        params = params_from_logit(theta, self.model)
        return _colext_terms(params, self._season_codes, self._multiplicity, self.model)
