"""
netNCP pipeline.

Pure, in-memory orchestration of the scoring stages:
indicators -> supply -> realised supply -> benefit -> weighted score ->
netNCP. Nothing here touches the filesystem; see analysis.py for the
run that writes tables, figures and the report.
"""

from __future__ import annotations

import contextlib
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pandas as pd

from ncp_analyzer.access import apply_access
from ncp_analyzer.config import NCPSpec, ScenarioConfig
from ncp_analyzer.errors import (
    RangeViolationWarning,
    ThresholdWarning,
    UndefinedSpreadWarning,
)
from ncp_analyzer.generator import generate_indicators
from ncp_analyzer.metrics import (
    compute_benefits,
    compute_net_ncp,
    normalize_priorities,
    summarise_net_ncp,
    weight_scores,
)
from ncp_analyzer.supply import aggregate_supply

logger = logging.getLogger(__name__)

COLLECTED_WARNINGS = (RangeViolationWarning, ThresholdWarning, UndefinedSpreadWarning)


@dataclass
class PipelineResults:
    """Container for all tables produced by one pipeline run."""

    indicators: pd.DataFrame = field(default_factory=pd.DataFrame)
    supply: pd.DataFrame = field(default_factory=pd.DataFrame)
    realised: pd.DataFrame = field(default_factory=pd.DataFrame)
    benefits: pd.DataFrame = field(default_factory=pd.DataFrame)
    relative_priority: pd.DataFrame = field(default_factory=pd.DataFrame)
    weighted: pd.DataFrame = field(default_factory=pd.DataFrame)
    net_ncp: pd.DataFrame = field(default_factory=pd.DataFrame)
    net_ncp_overall: pd.DataFrame = field(default_factory=pd.DataFrame)

    # Metadata
    seed: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    aborted_groups: Dict[str, str] = field(default_factory=dict)


@contextlib.contextmanager
def collect_warnings(sink: List[str]) -> Iterator[None]:
    """
    Record analysis warnings raised inside the block into sink.

    Range, threshold and spread warnings are logged and appended as
    strings; any other warning is re-emitted unchanged. Warnings raised
    before an exception leaves the block are still recorded.
    """
    caught: List[warnings.WarningMessage] = []
    try:
        with warnings.catch_warnings(record=True) as recorded:
            warnings.simplefilter("always")
            try:
                yield
            finally:
                caught = list(recorded)
    finally:
        for w in caught:
            if issubclass(w.category, COLLECTED_WARNINGS):
                message = f"{w.category.__name__}: {w.message}"
                logger.warning(message)
                if message not in sink:
                    sink.append(message)
            else:
                warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)


def score_supply(
    supply: pd.DataFrame,
    access: pd.DataFrame,
    priority: pd.DataFrame,
    ncps: Sequence[NCPSpec]
) -> PipelineResults:
    """
    Run every stage downstream of potential supply.

    A stakeholder group whose priority points sum to zero is aborted on its
    own; other groups are scored normally and the aborted group is listed
    in results.aborted_groups.

    Returns:
        PipelineResults with everything but indicators filled in
    """
    results = PipelineResults(supply=supply)
    ncp_names = [n.name for n in ncps]

    extra = [n for n in priority.index if n not in ncp_names]
    if extra:
        logger.debug(f"Priority rows without NCP definition ignored: {extra}")

    with collect_warnings(results.warnings):
        results.realised = apply_access(supply, access)
        results.benefits = compute_benefits(results.realised, ncps)

        results.relative_priority, degenerate = normalize_priorities(
            priority.reindex(ncp_names),
            skip_degenerate=True,
        )
        for group in degenerate:
            results.aborted_groups[group] = "DegeneratePriority: priority points sum to zero"

        results.weighted = weight_scores(
            results.benefits,
            results.relative_priority,
            excluded_groups=degenerate,
        )
        results.net_ncp = compute_net_ncp(results.weighted)
        results.net_ncp_overall = summarise_net_ncp(results.net_ncp)

    if results.net_ncp_overall.empty:
        logger.error("No stakeholder group could be scored")

    return results


def run_pipeline(config: ScenarioConfig, seed: Any = None) -> PipelineResults:
    """
    Execute the full netNCP pipeline for a scenario.

    Args:
        config: Scenario configuration
        seed: Overrides config.seed when given

    Returns:
        PipelineResults with all intermediate and final tables
    """
    seed = config.seed if seed is None else seed
    logger.info(f"Running netNCP pipeline (seed={seed})")

    indicators = generate_indicators(config.forest_types, seed)
    supply = aggregate_supply(indicators, config.ncps)

    results = score_supply(supply, config.access, config.priority, config.ncps)
    results.indicators = indicators
    results.seed = seed if isinstance(seed, int) else None

    logger.info(
        f"netNCP computed for {results.net_ncp_overall.shape[0]} "
        f"(group, forest type) cells"
    )
    return results
