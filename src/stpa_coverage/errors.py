"""Exception types raised by the coverage engine."""

from __future__ import annotations

from typing import Sequence


class CoverageEngineError(Exception):
    """Base class for engine errors."""


class GraphCycleError(CoverageEngineError):
    """The control-structure graph contains a cycle between controllers."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Control structure contains a cycle through: {', '.join(self.cycle)}")


class InsufficientControllersError(CoverageEngineError):
    """Fewer than two in-scope controllers are available for combination analysis."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"At least 2 in-scope controllers are required, found {count}")


class InvalidConfigurationError(CoverageEngineError, ValueError):
    """An enumeration option is out of range for the current snapshot."""
