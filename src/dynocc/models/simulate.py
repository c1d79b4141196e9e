"""Simulate detection/non-detection data from a dynamic occupancy model.

    z_i1 ~ Bernoulli(ψ₁)
    z_ik ~ Bernoulli(z_i,k-1 (1 - ε) + (1 - z_i,k-1) γ)        k = 2..K
    y_ijk ~ Bernoulli(z_ik p)                                  j = 1..J

With p10 and b given, observations follow the false-positive model instead:
occupied sites are detected with probability p and each detection is
recorded as certain (code 2) with probability b, otherwise uncertain (code
1); unoccupied sites yield uncertain false detections with probability p10.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax.numpy as jnp
import jax.random as random
import numpy as np
from jax import lax

from dynocc.errors import InputShapeError
from dynocc.models.data import EncounterData
from dynocc.models.hmm.base import (
    EventCode,
    ObservationModel,
    OccupancyParams,
    validate_params,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SimulatedData:
    """Simulated data set with its generating truth.

    Attributes:
        detections: (R, J, K) codes, NaN for missing surveys
        z: (R, K) true latent occupancy states
        data: the detections as EncounterData
        true_params: generating parameters
    """

    detections: np.ndarray
    z: np.ndarray
    data: EncounterData
    true_params: OccupancyParams

    @property
    def model(self) -> ObservationModel:
        return self.data.model

    @property
    def true_occupancy(self) -> np.ndarray:
        """(K,) realised proportion of occupied sites per season."""
        return self.z.mean(axis=0)


def _simulate_states(key, n_sites: int, n_seasons: int, params: OccupancyParams) -> jnp.ndarray:
    """(R, K) boolean latent occupancy."""
    init_key, key = random.split(key)
    z0 = random.bernoulli(init_key, params.psi, (n_sites,))
    if n_seasons == 1:
        return z0[:, None]

    def step(z_prev, step_key):
        prob = jnp.where(z_prev, 1.0 - params.epsilon, params.gamma)
        z = random.bernoulli(step_key, prob)
        return z, z

    _, rest = lax.scan(step, z0, random.split(key, n_seasons - 1))
    return jnp.concatenate([z0[None, :], rest], axis=0).T


def _simulate_observations(
    key, z: jnp.ndarray, n_surveys: int, params: OccupancyParams, model: ObservationModel
) -> jnp.ndarray:
    """(R, J, K) integer event codes given the states."""
    n_sites, n_seasons = z.shape
    shape = (n_sites, n_surveys, n_seasons)
    occupied = jnp.broadcast_to(z[:, None, :], shape)
    detect_key, certain_key = random.split(key)

    if model is ObservationModel.STANDARD:
        detected = random.bernoulli(detect_key, params.p, shape) & occupied
        return detected.astype(jnp.int32)

    u = random.uniform(detect_key, shape)
    certain = random.bernoulli(certain_key, params.b, shape)
    true_code = jnp.where(
        u < params.p,
        jnp.where(certain, int(EventCode.CONFIRMED), int(EventCode.DETECTED)),
        int(EventCode.NOT_DETECTED),
    )
    false_code = jnp.where(u < params.p10, int(EventCode.DETECTED), int(EventCode.NOT_DETECTED))
    return jnp.where(occupied, true_code, false_code).astype(jnp.int32)


def simulate(
    n_sites: int,
    n_surveys: int,
    n_seasons: int,
    psi: float,
    p: float,
    gamma: float,
    epsilon: float,
    seed: int = 0,
    p10: float | None = None,
    b: float | None = None,
    missing_rate: float = 0.0,
) -> SimulatedData:
    """Simulate one dynamic occupancy data set.

    Args:
        n_sites: R
        n_surveys: J, surveys per season
        n_seasons: K
        psi: initial occupancy ψ₁
        p: detection probability
        gamma: colonization probability
        epsilon: extinction probability
        seed: PRNG seed
        p10: false-detection probability (enables the false-positive model)
        b: probability a true detection is certain (false-positive model)
        missing_rate: fraction of surveys dropped at random (recorded as NaN)

    Returns:
        SimulatedData

    Raises:
        InputShapeError: if a size is not a positive integer
        ParameterDomainError: if a probability is outside (0, 1)
    """
    for name, size in (("n_sites", n_sites), ("n_surveys", n_surveys), ("n_seasons", n_seasons)):
        if int(size) != size or size < 1:
            raise InputShapeError(f"{name} must be a positive integer, got {size}")
    if not 0.0 <= missing_rate < 1.0:
        raise InputShapeError(f"missing_rate must be in [0, 1), got {missing_rate}")
    if (p10 is None) != (b is None):
        raise InputShapeError("The false-positive model needs both p10 and b")

    model = ObservationModel.STANDARD if p10 is None else ObservationModel.FALSE_POSITIVE
    params = OccupancyParams(psi=psi, p=p, gamma=gamma, epsilon=epsilon, p10=p10, b=b)
    validate_params(params, model)

    key = random.PRNGKey(seed)
    state_key, obs_key, missing_key = random.split(key, 3)
    z = _simulate_states(state_key, n_sites, n_seasons, params)
    codes = _simulate_observations(obs_key, z, n_surveys, params, model)

    detections = np.array(codes, dtype=float)
    if missing_rate > 0.0:
        dropped = np.asarray(random.bernoulli(missing_key, missing_rate, detections.shape))
        detections[dropped] = np.nan

    logger.debug(
        "Simulated R=%d J=%d K=%d (%s model), naive occupancy in season 1: %.3f",
        n_sites,
        n_surveys,
        n_seasons,
        model.value,
        float(np.mean(np.nansum(detections[:, :, 0], axis=1) > 0)),
    )

    return SimulatedData(
        detections=detections,
        z=np.asarray(z, dtype=np.int32),
        data=EncounterData.from_detection_array(detections, model=model),
        true_params=params,
    )
