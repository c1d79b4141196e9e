"""Forward-algorithm likelihood for dynamic occupancy histories.

For one site with codes y_0..y_{N-1}:

    α_0 = δ ⊙ B[y_0]
    α_j = (α_{j-1} Φ_{j-1}) ⊙ B[y_j]        j = 1..N-1
    log L = log Σ α_{N-1}

The recursion is run in scaled form: α is renormalised after every step and
the log normalisers are accumulated, which equals log Σ α without underflow.
A normaliser of zero (an impossible sequence) makes the site's contribution
-inf; eager entry points turn that into NumericalDegeneracyError.

Sites are independent given the parameters, so contributions are computed
with vmap and summed at the end.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax, vmap

from dynocc.errors import NumericalDegeneracyError
from dynocc.models.hmm.base import (
    ObservationModel,
    OccupancyParams,
    emission_rows,
    validate_params,
)
from dynocc.models.hmm.matrices import HMMMatrices, _build_matrices

if TYPE_CHECKING:
    from dynocc.models.data import EncounterData

logger = logging.getLogger(__name__)


def _rescale(alpha: jnp.ndarray, log_scale: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Normalise α to sum 1 and add log Σα to the running log scale."""
    total = jnp.sum(alpha)
    positive = total > 0.0
    safe_total = jnp.where(positive, total, 1.0)
    log_scale = log_scale + jnp.where(positive, jnp.log(safe_total), -jnp.inf)
    return alpha / safe_total, log_scale


def forward_log_likelihood(
    matrices: HMMMatrices,
    history: jnp.ndarray,
    multiplicity: float | jnp.ndarray = 1.0,
) -> jnp.ndarray:
    """Log-likelihood contribution of one site history.

    Args:
        matrices: HMM arrays from build_matrices()
        history: (N,) event codes, -1 for missing surveys
        multiplicity: number of sites sharing this history

    Returns:
        multiplicity * log P(history), -inf if the history is impossible
    """
    n_codes = matrices.emission.shape[0] - 1
    emissions = matrices.emission[emission_rows(history, n_codes)]  # (N, 2)

    alpha, log_scale = _rescale(matrices.initial * emissions[0], jnp.zeros(()))

    def step(carry, inputs):
        alpha, log_scale = carry
        phi, emission = inputs
        alpha = (alpha @ phi) * emission
        return _rescale(alpha, log_scale), None

    (_, log_lik), _ = lax.scan(step, (alpha, log_scale), (matrices.transition, emissions[1:]))

    multiplicity = jnp.asarray(multiplicity, dtype=log_lik.dtype)
    return jnp.where(multiplicity > 0, multiplicity * log_lik, 0.0)


@functools.partial(jax.jit, static_argnames=("model",))
def _site_terms(
    params: OccupancyParams,
    histories: jnp.ndarray,
    multiplicity: jnp.ndarray,
    between_mask: jnp.ndarray,
    model: ObservationModel,
) -> jnp.ndarray:
    """(R,) weighted log-likelihood contributions; jitted, no validation."""
    matrices = _build_matrices(params, between_mask, model)
    return vmap(forward_log_likelihood, in_axes=(None, 0, 0))(matrices, histories, multiplicity)


def site_log_likelihoods(params: OccupancyParams, data: EncounterData) -> jnp.ndarray:
    """Per-site weighted log-likelihoods (may contain -inf).

    Raises:
        ParameterDomainError: if a probability is outside (0, 1)
    """
    validate_params(params, data.model)
    return _site_terms(
        params,
        jnp.asarray(data.histories),
        jnp.asarray(data.multiplicity),
        jnp.asarray(data.structure.between_season),
        data.model,
    )


def check_degenerate(site_terms: jnp.ndarray) -> None:
    """Raise NumericalDegeneracyError if any site term is not finite."""
    terms = np.asarray(site_terms)
    bad = np.flatnonzero(~np.isfinite(terms))
    if bad.size:
        logger.warning("Forward probabilities vanished for %d site(s)", bad.size)
        raise NumericalDegeneracyError(bad.tolist())


def negative_log_likelihood(params: OccupancyParams, data: EncounterData) -> float:
    """Total negative log-likelihood -Σ_sites multiplicity · log L_site.

    Raises:
        ParameterDomainError: if a probability is outside (0, 1)
        NumericalDegeneracyError: if any site history has zero probability
    """
    terms = site_log_likelihoods(params, data)
    check_degenerate(terms)
    return float(-jnp.sum(terms))
