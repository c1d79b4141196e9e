"""Hidden-Markov-model likelihood for dynamic occupancy data.

The latent occupancy state is integrated out with the forward algorithm:
- base: parameter, event-code and occasion-structure types, logit transforms
- matrices: emission/transition matrix construction (per evaluation)
- forward: per-site scaled forward recursion and total likelihood
- objective: logit-scale objective with autodiff/numeric gradients
"""

from dynocc.models.hmm.base import (
    EventCode,
    ObservationModel,
    OccasionStructure,
    OccupancyParams,
    expit,
    first_detection,
    logit,
    params_from_logit,
    params_to_logit,
    validate_params,
)
from dynocc.models.hmm.forward import (
    forward_log_likelihood,
    negative_log_likelihood,
    site_log_likelihoods,
)
from dynocc.models.hmm.matrices import (
    HMMMatrices,
    build_emission_matrix,
    build_matrices,
    build_transition_matrices,
)
from dynocc.models.hmm.objective import LikelihoodObjective, OccupancyObjective

__all__ = [
    # Types
    "EventCode",
    "ObservationModel",
    "OccasionStructure",
    "OccupancyParams",
    "HMMMatrices",
    # Transforms
    "logit",
    "expit",
    "params_from_logit",
    "params_to_logit",
    "validate_params",
    "first_detection",
    # Matrices
    "build_emission_matrix",
    "build_transition_matrices",
    "build_matrices",
    # Likelihood
    "forward_log_likelihood",
    "site_log_likelihoods",
    "negative_log_likelihood",
    "LikelihoodObjective",
    "OccupancyObjective",
]
