"""Dynamic (multi-season) occupancy models in JAX.

Simulates detection histories, evaluates the hidden-Markov-model likelihood
of dynamic occupancy data, and fits it by maximum likelihood (occasion-level
and season-collapsed forward algorithms) or by MCMC (NUTS with the states
marginalised, or data-augmentation Gibbs with explicit states).
"""

import jax

# Likelihood surfaces and Hessian-based standard errors need double precision.
jax.config.update("jax_enable_x64", True)

from dynocc.errors import (  # noqa: E402
    DynoccError,
    InputShapeError,
    NumericalDegeneracyError,
    ParameterDomainError,
)

__all__ = [
    "DynoccError",
    "InputShapeError",
    "NumericalDegeneracyError",
    "ParameterDomainError",
]
