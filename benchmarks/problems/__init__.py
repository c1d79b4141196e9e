"""Benchmark problem registry.

Every ReferenceProblem used by benchmarks/run.py must be registered in
ALL_PROBLEMS so it can be selected with --problem.
"""

from benchmarks.problems.low_detection import LOW_DETECTION
from dynocc.benchmarking import REFERENCE

ALL_PROBLEMS: dict = {
    "reference": REFERENCE,
    "low_detection": LOW_DETECTION,
}
