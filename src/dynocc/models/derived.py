"""Derived population quantities of the dynamic occupancy model."""

from __future__ import annotations

import jax.numpy as jnp
from jax import lax

from dynocc.models.hmm.base import OccupancyParams


def projected_occupancy(params: OccupancyParams, n_seasons: int) -> jnp.ndarray:
    """(K,) expected occupancy ψ_k from ψ_{k+1} = ψ_k (1 - ε) + (1 - ψ_k) γ."""
    psi = jnp.asarray(params.psi, dtype=float)
    gamma = jnp.asarray(params.gamma)
    epsilon = jnp.asarray(params.epsilon)

    def step(psi_k, _):
        psi_next = psi_k * (1.0 - epsilon) + (1.0 - psi_k) * gamma
        return psi_next, psi_next

    _, rest = lax.scan(step, psi, None, length=n_seasons - 1)
    return jnp.concatenate([psi[None], rest])


def growth_rate(occupancy: jnp.ndarray) -> jnp.ndarray:
    """(K-1,) λ_k = ψ_{k+1} / ψ_k."""
    return occupancy[1:] / occupancy[:-1]


def turnover(params: OccupancyParams, occupancy: jnp.ndarray) -> jnp.ndarray:
    """(K-1,) probability an occupied site in season k+1 is newly colonized."""
    return (1.0 - occupancy[:-1]) * params.gamma / occupancy[1:]


def equilibrium_occupancy(params: OccupancyParams) -> jnp.ndarray:
    """Stationary occupancy γ / (γ + ε)."""
    return params.gamma / (params.gamma + params.epsilon)
