"""
Supply aggregation.

Reduces raw indicators to one potential supply value per NCP. Rules:

- sum: sum of the named indicator fields
- direct: a single indicator passed through unchanged
- mean_normalized: each field is min-max scaled to [0, 1] and the scaled
  fields are averaged

Normalization for mean_normalized uses the extrema of each field over the
whole dataset (all forest types and replicates), so supply values are
relative to the dataset: one outlier moves every record.
"""

from __future__ import annotations

import logging
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from ncp_analyzer.config import AggregationMethod, AggregationRule, NCPSpec
from ncp_analyzer.errors import InvalidConfiguration
from ncp_analyzer.schema import FOREST_TYPE, REPLICATE

logger = logging.getLogger(__name__)


def collect_extrema(
    indicators: pd.DataFrame,
    fields: Sequence[str]
) -> Dict[str, Tuple[float, float]]:
    """First pass: global (min, max) of each field across all records."""
    return {
        f: (float(indicators[f].min()), float(indicators[f].max()))
        for f in fields
    }


def normalize_fields(
    indicators: pd.DataFrame,
    extrema: Dict[str, Tuple[float, float]]
) -> pd.DataFrame:
    """
    Second pass: min-max scale each field using precomputed extrema.

    A field with identical min and max carries no contrast and is mapped
    to 0.
    """
    scaled = {}
    for f, (lo, hi) in extrema.items():
        if np.isclose(lo, hi):
            logger.warning(f"Indicator {f!r} is constant ({lo}); normalized to 0")
            scaled[f] = np.zeros(len(indicators), dtype=float)
        else:
            scaled[f] = (indicators[f].to_numpy(dtype=float) - lo) / (hi - lo)
    return pd.DataFrame(scaled, index=indicators.index)


def _check_rule(ncp_name: str, rule: AggregationRule, available: Sequence[str]) -> None:
    if not rule.fields:
        raise InvalidConfiguration(f"NCP {ncp_name!r} aggregates no indicator fields")

    missing = [f for f in rule.fields if f not in available]
    if missing:
        raise InvalidConfiguration(
            f"NCP {ncp_name!r} references unknown indicators: {missing}"
        )

    if rule.method is AggregationMethod.DIRECT and len(rule.fields) != 1:
        raise InvalidConfiguration(
            f"NCP {ncp_name!r} uses 'direct' aggregation with {len(rule.fields)} fields; "
            f"exactly one is required"
        )


def aggregate_supply(
    indicators: pd.DataFrame,
    ncps: Sequence[NCPSpec]
) -> pd.DataFrame:
    """
    Compute potential supply per NCP for every indicator record.

    Args:
        indicators: Output of generate_indicators
        ncps: NCP definitions carrying the aggregation rules

    Returns:
        DataFrame with columns: forest_type, replicate, <ncp>...
    """
    available = [c for c in indicators.columns if c not in (FOREST_TYPE, REPLICATE)]

    for ncp in ncps:
        _check_rule(ncp.name, ncp.aggregation, available)

    # Pass one over the whole dataset before any record is mapped
    normalized_fields = sorted({
        f
        for ncp in ncps
        if ncp.aggregation.method is AggregationMethod.MEAN_NORMALIZED
        for f in ncp.aggregation.fields
    })
    normalized = normalize_fields(indicators, collect_extrema(indicators, normalized_fields))

    supply = indicators[[FOREST_TYPE, REPLICATE]].copy()

    for ncp in ncps:
        rule = ncp.aggregation
        fields = list(rule.fields)

        if rule.method is AggregationMethod.SUM:
            supply[ncp.name] = indicators[fields].sum(axis=1)
        elif rule.method is AggregationMethod.DIRECT:
            supply[ncp.name] = indicators[fields[0]].astype(float)
        elif rule.method is AggregationMethod.MEAN_NORMALIZED:
            supply[ncp.name] = normalized[fields].mean(axis=1)
        else:
            raise InvalidConfiguration(f"Unsupported aggregation method: {rule.method}")

        logger.debug(f"Supply for {ncp.name}: {rule.method.value} of {fields}")

    logger.info(f"Aggregated supply for {len(ncps)} NCPs over {len(supply)} records")
    return supply
