"""Optimizer-facing negative log-likelihood on the logit scale.

An objective maps an unconstrained parameter vector θ (ordered as
ObservationModel.parameter_names) to the total negative log-likelihood.
Objectives hold only immutable data arrays and jitted pure functions, so one
instance can be evaluated at many parameter points, from line searches,
multi-start loops or vmap, without interference.

Degenerate evaluations (a site history with zero probability) are returned
as +inf by __call__ so an optimizer can backtrack; evaluate() raises
NumericalDegeneracyError instead, and ParameterDomainError when expit
saturates a probability to exactly 0 or 1.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import jax
import jax.numpy as jnp
from jax import vmap

from dynocc.models.hmm.base import ObservationModel, params_from_logit, validate_params
from dynocc.models.hmm.forward import _site_terms, check_degenerate

if TYPE_CHECKING:
    from dynocc.models.data import EncounterData

DEFAULT_FD_STEP = 1e-5


class LikelihoodObjective:
    """Shared machinery; subclasses implement _terms(theta) -> (R,) log-liks."""

    def __init__(self, data: EncounterData):
        self.data = data
        self.model: ObservationModel = data.model
        self._value = jax.jit(self._nll)
        self._value_and_grad = jax.jit(jax.value_and_grad(self._nll))
        self._hessian = jax.jit(jax.hessian(self._nll))
        self._site_terms = jax.jit(self._terms)

    def _terms(self, theta: jnp.ndarray) -> jnp.ndarray:
        raise NotImplementedError

    def _nll(self, theta: jnp.ndarray) -> jnp.ndarray:
        nll = -jnp.sum(self._terms(theta))
        return jnp.where(jnp.isfinite(nll), nll, jnp.inf)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self.model.parameter_names

    @property
    def n_params(self) -> int:
        return self.model.n_params

    def __call__(self, theta: jnp.ndarray) -> jnp.ndarray:
        """Negative log-likelihood at θ (+inf when degenerate)."""
        return self._value(jnp.asarray(theta, dtype=float))

    def site_terms(self, theta: jnp.ndarray) -> jnp.ndarray:
        """(R,) weighted per-site log-likelihoods at θ."""
        return self._site_terms(jnp.asarray(theta, dtype=float))

    def value_and_grad(
        self,
        theta: jnp.ndarray,
        method: Literal["auto", "numeric"] = "auto",
        step: float = DEFAULT_FD_STEP,
    ) -> tuple[jnp.ndarray, jnp.ndarray]:
        """Objective value and gradient with respect to θ.

        Args:
            theta: (n_params,) logit-scale parameters
            method: "auto" for reverse-mode autodiff, "numeric" for central
                finite differences
            step: finite-difference step (numeric only)
        """
        theta = jnp.asarray(theta, dtype=float)
        if method == "auto":
            return self._value_and_grad(theta)
        if method == "numeric":
            return self._value(theta), self.numeric_gradient(theta, step)
        raise ValueError(f"Unknown gradient method: {method!r}. Use 'auto' or 'numeric'.")

    def numeric_gradient(self, theta: jnp.ndarray, step: float = DEFAULT_FD_STEP) -> jnp.ndarray:
        """Central finite-difference gradient."""
        theta = jnp.asarray(theta, dtype=float)
        shifts = jnp.eye(theta.shape[0]) * step
        upper = vmap(self._value)(theta + shifts)
        lower = vmap(self._value)(theta - shifts)
        return (upper - lower) / (2.0 * step)

    def hessian(self, theta: jnp.ndarray) -> jnp.ndarray:
        """(n_params, n_params) Hessian of the objective at θ."""
        return self._hessian(jnp.asarray(theta, dtype=float))

    def evaluate(self, theta) -> float:
        """Eager evaluation that raises instead of returning +inf.

        Raises:
            InputShapeError: if θ has the wrong length
            ParameterDomainError: if a back-transformed probability saturates to 0 or 1
            NumericalDegeneracyError: if any site history has zero probability
        """
        theta = jnp.asarray(theta, dtype=float)
        validate_params(params_from_logit(theta, self.model), self.model)
        terms = self.site_terms(theta)
        check_degenerate(terms)
        return float(-jnp.sum(terms))


class OccupancyObjective(LikelihoodObjective):
    """Occasion-level forward-algorithm objective.

    Example:
        objective = OccupancyObjective(data)
        value, grad = objective.value_and_grad(jnp.zeros(4))
    """

    def __init__(self, data: EncounterData):
        self._histories = jnp.asarray(data.histories)
        self._multiplicity = jnp.asarray(data.multiplicity)
        self._between = jnp.asarray(data.structure.between_season)
        super().__init__(data)

    def _terms(self, theta: jnp.ndarray) -> jnp.ndarray:
        params = params_from_logit(theta, self.model)
        return _site_terms(params, self._histories, self._multiplicity, self._between, self.model)
