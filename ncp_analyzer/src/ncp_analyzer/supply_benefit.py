"""
Supply-benefit (SB) relationships.

Maps realised supply of an NCP onto a benefit/detriment score. Four
shapes are supported:

- linear_benefits: 0 at supply_min, 1 at supply_max
- linear_detriments: 0 at supply_min, -1 at supply_max
- threshold_cubic_benefits: 0 below the threshold, cubic rise to 1 at supply_max
- detriments_threshold_benefits: negative below the threshold, 0 at the
  threshold, 1 at supply_max

Values outside [supply_min, supply_max] are extrapolated with a
RangeViolationWarning rather than clipped.
"""

from __future__ import annotations

import logging
import warnings
from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import numpy as np
import pandas as pd

from ncp_analyzer.errors import (
    InvalidConfiguration,
    RangeViolationWarning,
    ThresholdWarning,
    UnknownShape,
)

if TYPE_CHECKING:
    from ncp_analyzer.config import NCPSpec

logger = logging.getLogger(__name__)

DIAGNOSTIC_POINTS = 50


class Shape(str, Enum):
    """Supported supply-benefit shapes."""

    LINEAR_BENEFITS = "linear_benefits"
    LINEAR_DETRIMENTS = "linear_detriments"
    THRESHOLD_CUBIC_BENEFITS = "threshold_cubic_benefits"
    DETRIMENTS_THRESHOLD_BENEFITS = "detriments_threshold_benefits"

    @classmethod
    def parse(cls, value: Any) -> "Shape":
        """Convert a shape identifier to a Shape, raising UnknownShape if invalid."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise UnknownShape(str(value)) from None

    @property
    def uses_threshold(self) -> bool:
        return self in (
            Shape.THRESHOLD_CUBIC_BENEFITS,
            Shape.DETRIMENTS_THRESHOLD_BENEFITS,
        )


def _linear_benefits(s, lo, hi, threshold):
    return (s - lo) / (hi - lo)


def _linear_detriments(s, lo, hi, threshold):
    return -(s - lo) / (hi - lo)


def _threshold_cubic_benefits(s, lo, hi, threshold):
    return np.where(s < threshold, 0.0, (s ** 3 - lo ** 3) / (hi ** 3 - lo ** 3))


def _detriments_threshold_benefits(s, lo, hi, threshold):
    # Same expression below and above the threshold: negative below, 0 at it
    return (s - threshold) / (hi - threshold)


SHAPE_FUNCTIONS: Dict[Shape, Callable[..., np.ndarray]] = {
    Shape.LINEAR_BENEFITS: _linear_benefits,
    Shape.LINEAR_DETRIMENTS: _linear_detriments,
    Shape.THRESHOLD_CUBIC_BENEFITS: _threshold_cubic_benefits,
    Shape.DETRIMENTS_THRESHOLD_BENEFITS: _detriments_threshold_benefits,
}


def validate_sb_parameters(
    supply_min: float,
    supply_max: float,
    shape: Shape,
    threshold: Optional[float] = None,
    label: str = ""
) -> None:
    """
    Check SB parameters before evaluation.

    Raises:
        InvalidConfiguration: min >= max, missing threshold for a threshold
            shape, or threshold equal to supply_max for
            detriments_threshold_benefits (division by zero)

    Warns:
        ThresholdWarning: threshold not strictly between min and max
    """
    where = f" for {label}" if label else ""

    if not np.isfinite(supply_min) or not np.isfinite(supply_max):
        raise InvalidConfiguration(f"Supply range{where} must be finite")

    if supply_min >= supply_max:
        raise InvalidConfiguration(
            f"supply_min ({supply_min}) must be below supply_max ({supply_max}){where}"
        )

    if not shape.uses_threshold:
        if threshold is not None:
            logger.debug(f"Threshold ignored for shape {shape.value}{where}")
        return

    if threshold is None:
        raise InvalidConfiguration(f"Shape {shape.value} requires a threshold{where}")

    if not (supply_min < threshold < supply_max):
        warnings.warn(
            f"Threshold {threshold} is not strictly between supply_min "
            f"({supply_min}) and supply_max ({supply_max}){where}; proceeding anyway",
            ThresholdWarning,
            stacklevel=3,
        )

    if shape is Shape.DETRIMENTS_THRESHOLD_BENEFITS and threshold == supply_max:
        raise InvalidConfiguration(
            f"Threshold equals supply_max ({supply_max}){where}; "
            f"{shape.value} is undefined"
        )


def sb_relationship(
    supply: Any = None,
    supply_min: float = 0.0,
    supply_max: float = 1.0,
    shape: Any = Shape.LINEAR_BENEFITS,
    threshold: Optional[float] = None,
    label: str = "",
    n_points: int = DIAGNOSTIC_POINTS
) -> pd.DataFrame:
    """
    Evaluate a supply-benefit relationship.

    Args:
        supply: Realised supply (scalar or array-like). If None, the shape is
            evaluated on n_points evenly spaced values from supply_min to
            supply_max.
        supply_min: Supply at which benefit starts
        supply_max: Supply at which benefit saturates
        shape: Shape or shape identifier
        threshold: Threshold for threshold shapes
        label: NCP name used in warnings and errors
        n_points: Number of diagnostic points when supply is None

    Returns:
        DataFrame with columns: supply, benefit
    """
    shape = Shape.parse(shape)
    supply_min = float(supply_min)
    supply_max = float(supply_max)
    threshold = None if threshold is None else float(threshold)

    validate_sb_parameters(supply_min, supply_max, shape, threshold, label)

    if supply is None:
        values = np.linspace(supply_min, supply_max, n_points)
    else:
        values = np.atleast_1d(np.asarray(supply, dtype=float))
        outside = (values < supply_min) | (values > supply_max)
        n_outside = int(np.count_nonzero(outside))
        if n_outside:
            where = f" for {label}" if label else ""
            warnings.warn(
                f"{n_outside} supply value(s){where} outside "
                f"[{supply_min}, {supply_max}] (observed {np.nanmin(values):.4g} "
                f"to {np.nanmax(values):.4g}); extrapolating",
                RangeViolationWarning,
                stacklevel=2,
            )

    benefit = SHAPE_FUNCTIONS[shape](values, supply_min, supply_max, threshold)

    return pd.DataFrame({
        "supply": values,
        "benefit": np.asarray(benefit, dtype=float),
    })


def sb_curve(ncp: "NCPSpec", n_points: int = DIAGNOSTIC_POINTS) -> pd.DataFrame:
    """Diagnostic SB curve for one NCP across its declared supply range."""
    curve = sb_relationship(
        None,
        ncp.supply_min,
        ncp.supply_max,
        ncp.shape,
        ncp.threshold,
        label=ncp.name,
        n_points=n_points,
    )
    curve.insert(0, "ncp", ncp.name)
    return curve
