"""Parameter, observation-code and occasion-structure types for the HMM.

A dynamic occupancy data set is a set of site histories over N occasions.
Occasions are secondary surveys nested in K primary seasons; the latent
occupancy state is static within a season and changes between seasons by
colonization (γ) and extinction (ε).

The hidden state has two values, indexed 0 = unoccupied and 1 = occupied.
Observation codes index the rows of the emission matrix (see EventCode).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from dynocc.errors import InputShapeError, ParameterDomainError

N_STATES = 2


class EventCode(IntEnum):
    """Observation code recorded for one site on one occasion.

    The false-positive model distinguishes uncertain detections (DETECTED)
    from certain ones (CONFIRMED). MISSING marks a survey that was not
    conducted; it maps to an all-ones emission row.
    """

    MISSING = -1
    NOT_DETECTED = 0
    DETECTED = 1
    CONFIRMED = 2

    def emission_row(self, n_codes: int) -> int:
        """Row of the extended emission matrix for this code."""
        if self is EventCode.MISSING:
            return n_codes
        return int(self)


def emission_rows(codes: jnp.ndarray, n_codes: int) -> jnp.ndarray:
    """Vectorized EventCode.emission_row over an integer code array."""
    codes = jnp.asarray(codes)
    return jnp.where(codes < 0, n_codes, codes)


def first_detection(history) -> int | None:
    """Occasion (0-based) of the first detection, or None if never detected."""
    history = np.asarray(history)
    hits = np.flatnonzero(history > 0)
    if hits.size == 0:
        return None
    return int(hits[0])


class ObservationModel(StrEnum):
    """Observation process of the occupancy HMM.

    STANDARD: codes {0, 1}; no false detections at unoccupied sites.
    FALSE_POSITIVE: codes {0, 1, 2} (none, uncertain, certain) with false
        detections at rate p10 and certain classification at rate b.
    """

    STANDARD = "standard"
    FALSE_POSITIVE = "false_positive"

    @property
    def parameter_names(self) -> tuple[str, ...]:
        if self is ObservationModel.FALSE_POSITIVE:
            return ("psi", "p", "gamma", "epsilon", "p10", "b")
        return ("psi", "p", "gamma", "epsilon")

    @property
    def n_params(self) -> int:
        return len(self.parameter_names)

    @property
    def n_codes(self) -> int:
        return 3 if self is ObservationModel.FALSE_POSITIVE else 2


class OccupancyParams(NamedTuple):
    """Probability-scale parameters of the dynamic occupancy model.

    psi: initial (first-season) occupancy ψ₁
    p: detection probability at an occupied site (p11 in the
        false-positive model)
    gamma: colonization probability γ
    epsilon: extinction probability ε
    p10: false-detection probability at an unoccupied site (optional)
    b: probability a true detection is recorded as certain (optional)
    """

    psi: jnp.ndarray
    p: jnp.ndarray
    gamma: jnp.ndarray
    epsilon: jnp.ndarray
    p10: jnp.ndarray | None = None
    b: jnp.ndarray | None = None

    def as_dict(self, model: ObservationModel = ObservationModel.STANDARD) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in model.parameter_names}


# ══════════════════════════════════════════════════════════════════════════════
# LOGIT TRANSFORMS
# ══════════════════════════════════════════════════════════════════════════════


def logit(x: jnp.ndarray) -> jnp.ndarray:
    """Logit link, log(x / (1 - x))."""
    x = jnp.asarray(x)
    return jnp.log(x) - jnp.log1p(-x)


def expit(x: jnp.ndarray) -> jnp.ndarray:
    """Inverse logit, exp(x) / (1 + exp(x))."""
    return jax.nn.sigmoid(jnp.asarray(x))


def params_from_logit(
    theta: jnp.ndarray, model: ObservationModel = ObservationModel.STANDARD
) -> OccupancyParams:
    """Map an unconstrained logit-scale vector to OccupancyParams.

    Args:
        theta: (n_params,) vector ordered as model.parameter_names
        model: observation model

    Returns:
        OccupancyParams with every entry in (0, 1)
    """
    theta = jnp.asarray(theta)
    if theta.shape != (model.n_params,):
        raise InputShapeError(
            f"Expected a parameter vector of shape ({model.n_params},) for the "
            f"{model.value} model, got {theta.shape}"
        )
    probs = expit(theta)
    return OccupancyParams(*(probs[i] for i in range(model.n_params)))


def params_to_logit(
    params: OccupancyParams, model: ObservationModel = ObservationModel.STANDARD
) -> jnp.ndarray:
    """Inverse of params_from_logit."""
    validate_params(params, model)
    return jnp.stack([logit(getattr(params, name)) for name in model.parameter_names])


def validate_params(
    params: OccupancyParams, model: ObservationModel = ObservationModel.STANDARD
) -> None:
    """Raise ParameterDomainError unless every used probability is in (0, 1).

    Operates on concrete values; do not call inside jitted code.
    """
    for name in model.parameter_names:
        value = getattr(params, name)
        if value is None:
            raise ParameterDomainError(
                f"The {model.value} model requires parameter '{name}'"
            )
        arr = np.asarray(value, dtype=float)
        if not np.all(np.isfinite(arr)) or np.any(arr <= 0.0) or np.any(arr >= 1.0):
            raise ParameterDomainError(
                f"Parameter '{name}'={arr.tolist()} must lie strictly inside (0, 1)"
            )


# ══════════════════════════════════════════════════════════════════════════════
# OCCASION STRUCTURE
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OccasionStructure:
    """Assignment of the N occasions to K seasons.

    Transition slot t (t = 0..N-2) sits between occasions t and t+1. It is a
    within-season slot (identity transition) when both occasions share a
    season, and a between-season slot (colonization/extinction) otherwise.
    """

    season_of_occasion: tuple[int, ...]

    def __post_init__(self):
        seasons = np.asarray(self.season_of_occasion, dtype=int)
        if seasons.ndim != 1 or seasons.size == 0:
            raise InputShapeError("An occasion structure needs at least one occasion")
        if seasons[0] != 0:
            raise InputShapeError(f"Seasons must start at 0, got {seasons[0]}")
        steps = np.diff(seasons)
        if np.any((steps != 0) & (steps != 1)):
            raise InputShapeError(
                "Season indices must be non-decreasing and contiguous "
                f"(got {list(self.season_of_occasion)})"
            )

    @classmethod
    def balanced(cls, n_seasons: int, n_surveys: int) -> OccasionStructure:
        """K seasons with J surveys each (N = K * J)."""
        if n_seasons < 1 or n_surveys < 1:
            raise InputShapeError(
                f"Need at least one season and one survey, got K={n_seasons}, J={n_surveys}"
            )
        return cls(tuple(int(k) for k in np.repeat(np.arange(n_seasons), n_surveys)))

    @classmethod
    def from_surveys(cls, surveys_per_season) -> OccasionStructure:
        """Seasons with unequal numbers of surveys."""
        counts = [int(c) for c in surveys_per_season]
        if not counts or any(c < 1 for c in counts):
            raise InputShapeError(f"Every season needs at least one survey, got {counts}")
        return cls(tuple(int(k) for k in np.repeat(np.arange(len(counts)), counts)))

    @classmethod
    def from_slots(
        cls,
        n_occasions: int,
        within_slots,
        between_slots,
        n_seasons: int | None = None,
    ) -> OccasionStructure:
        """Build from explicit within/between-season transition slots.

        Args:
            n_occasions: N
            within_slots: slot indices with identity transitions
            between_slots: slot indices with colonization/extinction
            n_seasons: K, checked against the number of between slots

        Raises:
            InputShapeError: if the slots do not partition 0..N-2
        """
        within = [int(t) for t in within_slots]
        between = [int(t) for t in between_slots]
        if n_occasions < 1:
            raise InputShapeError(f"n_occasions must be positive, got {n_occasions}")
        if len(within) + len(between) != n_occasions - 1:
            raise InputShapeError(
                f"{len(within)} within-season + {len(between)} between-season slots "
                f"!= N - 1 = {n_occasions - 1}"
            )
        slots = set(within) | set(between)
        if slots != set(range(n_occasions - 1)):
            raise InputShapeError(
                "Within- and between-season slots must partition 0..N-2 without overlap"
            )
        if n_seasons is not None and len(between) != n_seasons - 1:
            raise InputShapeError(
                f"{n_seasons} seasons need {n_seasons - 1} between-season slots, "
                f"got {len(between)}"
            )
        mask = np.zeros(n_occasions - 1, dtype=int)
        mask[between] = 1
        seasons = np.concatenate([[0], np.cumsum(mask)])
        return cls(tuple(int(k) for k in seasons))

    @property
    def n_occasions(self) -> int:
        return len(self.season_of_occasion)

    @property
    def n_seasons(self) -> int:
        return self.season_of_occasion[-1] + 1

    @property
    def surveys_per_season(self) -> tuple[int, ...]:
        counts = np.bincount(np.asarray(self.season_of_occasion), minlength=self.n_seasons)
        return tuple(int(c) for c in counts)

    @property
    def is_balanced(self) -> bool:
        return len(set(self.surveys_per_season)) == 1

    @property
    def between_season(self) -> np.ndarray:
        """(N-1,) boolean mask, True on between-season slots."""
        return np.diff(np.asarray(self.season_of_occasion)) == 1

    @property
    def within_slots(self) -> tuple[int, ...]:
        return tuple(int(t) for t in np.flatnonzero(~self.between_season))

    @property
    def between_slots(self) -> tuple[int, ...]:
        return tuple(int(t) for t in np.flatnonzero(self.between_season))

    def season_slices(self) -> list[slice]:
        """Occasion slice covering each season, in order."""
        bounds = np.concatenate([[0], np.cumsum(self.surveys_per_season)])
        return [slice(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:], strict=True)]
