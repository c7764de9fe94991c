"""
Exception and warning taxonomy for the NCP Analyzer.

Fatal conditions derive from ValueError so callers (and the CLI) can
treat them as validation errors. Non-fatal conditions are warnings that
the pipeline collects and returns with its results.
"""

from __future__ import annotations

from typing import Optional


class NCPAnalyzerError(ValueError):
    """Base class for all fatal NCP Analyzer errors."""


class InvalidConfiguration(NCPAnalyzerError):
    """Bad counts, ranges, tables or aggregation rules."""


class UnknownShape(InvalidConfiguration):
    """A supply-benefit shape identifier outside the supported set."""

    def __init__(self, shape: str):
        self.shape = shape
        super().__init__(f"Unknown supply-benefit shape: {shape!r}")


class MissingAccessEntry(NCPAnalyzerError):
    """An NCP (or NCP/group cell) has no entry in the access table."""

    def __init__(self, ncp: str, group: Optional[str] = None):
        self.ncp = ncp
        self.group = group
        if group is None:
            message = f"NCP {ncp!r} is missing from the access table"
        else:
            message = f"Access fraction missing for NCP {ncp!r}, group {group!r}"
        super().__init__(message)


class DegeneratePriority(NCPAnalyzerError):
    """A stakeholder group whose priority points sum to zero."""

    def __init__(self, group: str):
        self.group = group
        super().__init__(
            f"Priority points for stakeholder group {group!r} sum to zero"
        )


class DegenerateBaseline(NCPAnalyzerError):
    """A baseline netNCP mean of zero, which makes relative change undefined."""

    def __init__(self, group: str, forest_type: str):
        self.group = group
        self.forest_type = forest_type
        super().__init__(
            f"Baseline netNCP mean is zero for group {group!r}, "
            f"forest type {forest_type!r}"
        )


class RangeViolationWarning(UserWarning):
    """Realised supply outside the declared [supply_min, supply_max]."""


class ThresholdWarning(UserWarning):
    """Threshold not strictly inside (supply_min, supply_max)."""


class UndefinedSpreadWarning(UserWarning):
    """Sample standard deviation undefined because a cell has one replicate."""
