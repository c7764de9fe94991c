"""
Metrics computations for the NCP Analyzer.

Implements the scoring stages downstream of realised supply:
- Benefits (supply-benefit transformation per NCP)
- Relative priority (per stakeholder group)
- Weighted scores (benefit x relative priority)
- netNCP per replicate and its mean/sd across replicates
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from ncp_analyzer.config import NCPSpec
from ncp_analyzer.errors import (
    DegeneratePriority,
    InvalidConfiguration,
    UndefinedSpreadWarning,
)
from ncp_analyzer.schema import (
    BENEFIT,
    FOREST_TYPE,
    GROUP,
    NCP,
    NET_NCP,
    POINTS,
    REALISED_SUPPLY,
    RELATIVE_PRIORITY,
    REPLICATE,
    WEIGHTED_SCORE,
)
from ncp_analyzer.supply_benefit import sb_relationship
from ncp_analyzer.utils import ensure_deterministic_sort

logger = logging.getLogger(__name__)


def compute_benefits(
    realised: pd.DataFrame,
    ncps: Sequence[NCPSpec]
) -> pd.DataFrame:
    """
    Map realised supply to benefit using each NCP's SB relationship.

    Returns:
        Copy of realised with an added 'benefit' column
    """
    specs = {n.name: n for n in ncps}
    result = realised.copy()
    result[BENEFIT] = np.nan

    for ncp_name in result[NCP].unique():
        spec = specs.get(ncp_name)
        if spec is None:
            raise InvalidConfiguration(f"No SB definition for NCP {ncp_name!r}")

        mask = result[NCP] == ncp_name
        curve = sb_relationship(
            result.loc[mask, REALISED_SUPPLY].to_numpy(),
            spec.supply_min,
            spec.supply_max,
            spec.shape,
            spec.threshold,
            label=ncp_name,
        )
        result.loc[mask, BENEFIT] = curve["benefit"].to_numpy()

    logger.info(f"Computed benefits for {result[NCP].nunique()} NCPs")
    return result


def normalize_priorities(
    priority: pd.DataFrame,
    skip_degenerate: bool = False
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Convert raw priority points to relative priority per stakeholder group.

    relative_priority = points / sum of that group's points across NCPs

    Args:
        priority: Priority table indexed by NCP, one column per group
        skip_degenerate: If True, groups whose points sum to zero are left
            out and reported instead of raising

    Returns:
        Tuple of (DataFrame with columns ncp, group, points, relative_priority,
        list of skipped groups)

    Raises:
        InvalidConfiguration: Negative or missing points
        DegeneratePriority: A group's points sum to zero (unless skip_degenerate)
    """
    values = priority.astype(float)

    is_missing = values.isna()
    if is_missing.any().any():
        missing = [
            f"{ncp}/{group}"
            for ncp in values.index
            for group in values.columns
            if is_missing.at[ncp, group]
        ]
        raise InvalidConfiguration(f"Priority points missing for: {missing[:10]}")

    if (values < 0).any().any():
        raise InvalidConfiguration("Priority points must be non-negative")

    totals = values.sum(axis=0)
    degenerate = [str(g) for g in totals.index if totals[g] == 0]

    if degenerate and not skip_degenerate:
        raise DegeneratePriority(degenerate[0])

    for group in degenerate:
        logger.error(f"Priority points for {group!r} sum to zero; group skipped")

    frames = []
    for group in values.columns:
        if str(group) in degenerate:
            continue
        points = values[group]
        frames.append(pd.DataFrame({
            NCP: [str(i) for i in values.index],
            GROUP: str(group),
            POINTS: points.to_numpy(),
            RELATIVE_PRIORITY: (points / totals[group]).to_numpy(),
        }))

    if frames:
        relative = pd.concat(frames, ignore_index=True)
    else:
        relative = pd.DataFrame(columns=[NCP, GROUP, POINTS, RELATIVE_PRIORITY])

    return ensure_deterministic_sort(relative, [GROUP, NCP]), degenerate


def weight_scores(
    benefits: pd.DataFrame,
    relative_priority: pd.DataFrame,
    excluded_groups: Iterable[str] = ()
) -> pd.DataFrame:
    """
    Multiply benefit by relative priority.

    Rows for excluded groups are dropped. Every other (NCP, group) pair in
    benefits must have a relative priority.

    Returns:
        DataFrame with benefit columns plus relative_priority, weighted_score
    """
    excluded = set(excluded_groups)
    kept = benefits[~benefits[GROUP].isin(excluded)]

    weighted = kept.merge(
        relative_priority[[NCP, GROUP, RELATIVE_PRIORITY]],
        on=[NCP, GROUP],
        how="left",
    )

    unweighted = weighted[weighted[RELATIVE_PRIORITY].isna()]
    if not unweighted.empty:
        pairs = sorted(set(zip(unweighted[NCP], unweighted[GROUP])))
        raise InvalidConfiguration(
            f"No priority for (NCP, group) pairs: {pairs[:10]}"
        )

    weighted[WEIGHTED_SCORE] = weighted[BENEFIT] * weighted[RELATIVE_PRIORITY]
    return ensure_deterministic_sort(weighted, [NCP, FOREST_TYPE, REPLICATE, GROUP])


def compute_net_ncp(weighted: pd.DataFrame) -> pd.DataFrame:
    """
    Sum weighted scores across NCPs.

    Returns:
        DataFrame with columns: group, forest_type, replicate, net_ncp
    """
    net = (
        weighted
        .groupby([GROUP, FOREST_TYPE, REPLICATE], sort=True)[WEIGHTED_SCORE]
        .sum()
        .reset_index()
        .rename(columns={WEIGHTED_SCORE: NET_NCP})
    )
    return net


def summarise_net_ncp(net: pd.DataFrame) -> pd.DataFrame:
    """
    Mean and sample standard deviation (ddof=1) of netNCP across replicates.

    A (group, forest_type) cell with a single replicate has sd = NaN and an
    UndefinedSpreadWarning is emitted.

    Returns:
        DataFrame with columns: group, forest_type, n_replicates, mean, sd
    """
    overall = (
        net
        .groupby([GROUP, FOREST_TYPE], sort=True)[NET_NCP]
        .agg(n_replicates="count", mean="mean", sd="std")
        .reset_index()
    )

    single = overall[overall["n_replicates"] < 2]
    if not single.empty:
        cells = [f"{g}/{f}" for g, f in zip(single[GROUP], single[FOREST_TYPE])]
        warnings.warn(
            f"netNCP sd undefined (single replicate) for: {cells}",
            UndefinedSpreadWarning,
            stacklevel=2,
        )

    return overall
