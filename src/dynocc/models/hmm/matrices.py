"""Emission and transition matrices of the dynamic occupancy HMM.

Conventions:
    emission[c, s]      = P(observation code c | state s); rows are codes,
                          columns are states (0 = unoccupied, 1 = occupied).
                          A final all-ones row serves MISSING occasions.
    transition[t, r, s] = P(state s at occasion t+1 | state r at occasion t)
    initial[s]          = P(state s at occasion 0) = [1 - ψ₁, ψ₁]

The matrices are rebuilt on every likelihood evaluation and returned as an
immutable HMMMatrices tuple; nothing is cached between calls.
"""

from __future__ import annotations

from typing import NamedTuple

import jax.numpy as jnp

from dynocc.models.hmm.base import (
    ObservationModel,
    OccasionStructure,
    OccupancyParams,
    validate_params,
)


class HMMMatrices(NamedTuple):
    """Per-evaluation HMM arrays."""

    initial: jnp.ndarray  # (2,)
    emission: jnp.ndarray  # (n_codes + 1, 2)
    transition: jnp.ndarray  # (N - 1, 2, 2)


def _initial_distribution(params: OccupancyParams) -> jnp.ndarray:
    psi = jnp.asarray(params.psi)
    return jnp.stack([1.0 - psi, psi])


def _emission_matrix(params: OccupancyParams, model: ObservationModel) -> jnp.ndarray:
    p = jnp.asarray(params.p)
    zero = jnp.zeros_like(p)
    one = jnp.ones_like(p)
    if model is ObservationModel.FALSE_POSITIVE:
        p10 = jnp.asarray(params.p10)
        b = jnp.asarray(params.b)
        rows = [
            jnp.stack([1.0 - p10, 1.0 - p]),
            jnp.stack([p10, p * (1.0 - b)]),
            jnp.stack([zero, p * b]),
        ]
    else:
        rows = [
            jnp.stack([one, 1.0 - p]),
            jnp.stack([zero, p]),
        ]
    rows.append(jnp.stack([one, one]))
    return jnp.stack(rows)


def _between_season_matrix(params: OccupancyParams) -> jnp.ndarray:
    gamma = jnp.asarray(params.gamma)
    epsilon = jnp.asarray(params.epsilon)
    return jnp.stack(
        [
            jnp.stack([1.0 - gamma, gamma]),
            jnp.stack([epsilon, 1.0 - epsilon]),
        ]
    )


def _transition_matrices(params: OccupancyParams, between_mask: jnp.ndarray) -> jnp.ndarray:
    phi = _between_season_matrix(params)
    eye = jnp.eye(2, dtype=phi.dtype)
    mask = jnp.asarray(between_mask, dtype=bool)[:, None, None]
    return jnp.where(mask, phi, eye)


def _build_matrices(
    params: OccupancyParams, between_mask: jnp.ndarray, model: ObservationModel
) -> HMMMatrices:
    """Jittable matrix construction (no validation)."""
    return HMMMatrices(
        initial=_initial_distribution(params),
        emission=_emission_matrix(params, model),
        transition=_transition_matrices(params, between_mask),
    )


def build_emission_matrix(
    params: OccupancyParams, model: ObservationModel = ObservationModel.STANDARD
) -> jnp.ndarray:
    """Emission matrix B with the trailing MISSING row.

    Raises:
        ParameterDomainError: if a probability is outside (0, 1)
    """
    validate_params(params, model)
    return _emission_matrix(params, model)


def build_transition_matrices(
    params: OccupancyParams, structure: OccasionStructure
) -> jnp.ndarray:
    """Per-slot transition matrices Φ, shape (N - 1, 2, 2).

    Raises:
        ParameterDomainError: if a probability is outside (0, 1)
    """
    validate_params(params, ObservationModel.STANDARD)
    return _transition_matrices(params, structure.between_season)


def build_matrices(
    params: OccupancyParams,
    structure: OccasionStructure,
    model: ObservationModel = ObservationModel.STANDARD,
) -> HMMMatrices:
    """Validate parameters and build all HMM arrays for one evaluation."""
    validate_params(params, model)
    return _build_matrices(params, structure.between_season, model)
