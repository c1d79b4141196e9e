"""Low-detection problem: few surveys and p = 0.3.

With J = 3 the chance of missing an occupied site in a season is
0.7³ ≈ 0.34, so occupancy and turnover are only weakly identified from
the naive detection pattern and interval coverage is a harder test.
"""

from __future__ import annotations

from dynocc.benchmarking import ReferenceProblem

LOW_DETECTION = ReferenceProblem(
    name="low_detection",
    n_sites=150,
    n_surveys=3,
    n_seasons=6,
    psi=0.4,
    p=0.3,
    gamma=0.2,
    epsilon=0.3,
)
