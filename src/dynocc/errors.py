"""Exception types raised by likelihood evaluation and data setup.

All of these are raised eagerly, on concrete values, before or after a
jitted computation. Traced code never raises; the optimizer-facing
objective reports degenerate evaluations as ``+inf`` instead.
"""

from __future__ import annotations


class DynoccError(Exception):
    """Base class for dynocc errors."""


class ParameterDomainError(DynoccError, ValueError):
    """A probability is not strictly inside (0, 1)."""


class InputShapeError(DynoccError, ValueError):
    """Encounter data or occasion structure is inconsistent."""


class NumericalDegeneracyError(DynoccError, ArithmeticError):
    """The forward vector of one or more sites summed to zero.

    Attributes:
        sites: indices of the sites whose observation sequence has zero
            probability under the evaluated parameters
    """

    def __init__(self, sites: list[int], message: str | None = None):
        self.sites = list(sites)
        if message is None:
            shown = ", ".join(str(s) for s in self.sites[:10])
            more = "" if len(self.sites) <= 10 else f" (+{len(self.sites) - 10} more)"
            message = (
                f"Forward probabilities vanished for {len(self.sites)} site(s): "
                f"{shown}{more}"
            )
        super().__init__(message)
