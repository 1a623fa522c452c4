"""Fatal error conditions raised by the path-integral Monte Carlo engine.

None of these are used for control flow inside a trial move: a hard-core
overlap there is reported through `PotentialResult.overlap` and simply leads
to a rejected move. The exceptions below are reserved for conditions that
abort the whole run.
"""

from __future__ import annotations


class PIMCError(RuntimeError):
    """Base class for all fatal run errors."""


class InvalidConfiguration(PIMCError, ValueError):
    """Run parameters are missing, malformed or outside their allowed range."""


class InvalidInitialConfiguration(PIMCError):
    """The starting ring-polymer configuration cannot be simulated."""


class ConfigurationCorruption(PIMCError):
    """A previously accepted configuration was found to contain an overlap."""


class FinalConsistencyViolation(PIMCError):
    """Incrementally tracked energies disagree with a full recomputation."""

    def __init__(
        self,
        message: str,
        *,
        tracked: tuple[float, float],
        recomputed: tuple[float, float],
    ) -> None:
        super().__init__(message)
        self.tracked = tracked
        self.recomputed = recomputed
