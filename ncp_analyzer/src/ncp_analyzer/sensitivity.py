"""
Sensitivity analysis of netNCP.

Re-scores the scenario under a fixed plan of perturbations:

- Baseline: no perturbation
- Change in supply: one NCP's potential supply column scaled by (1 + change)
- Change in access: one group's access column scaled by (1 + change),
  clamped to [0, 1]

Indicators and potential supply are generated once, so every scenario
differs from the baseline only in the perturbed input. Results are
reported as relative change of the netNCP mean against the baseline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ncp_analyzer.config import ScenarioConfig
from ncp_analyzer.errors import DegenerateBaseline, InvalidConfiguration
from ncp_analyzer.generator import generate_indicators
from ncp_analyzer.pipeline import PipelineResults, score_supply
from ncp_analyzer.schema import (
    BASELINE,
    CHANGE,
    CHANGE_IN_ACCESS,
    CHANGE_IN_SUPPLY,
    FOREST_TYPE,
    GROUP,
    SENSITIVITY_DETAIL,
    SENSITIVITY_TYPE,
)
from ncp_analyzer.supply import aggregate_supply
from ncp_analyzer.utils import ensure_deterministic_sort, format_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Perturbation:
    """One entry of the sensitivity plan."""

    sensitivity_type: str
    sensitivity_detail: str
    change: float

    @property
    def label(self) -> str:
        if self.sensitivity_type == BASELINE:
            return BASELINE
        return f"{self.sensitivity_type}: {self.sensitivity_detail} {format_change(self.change)}"


@dataclass
class SensitivityResults:
    """Container for sensitivity analysis outputs."""

    plan: List[Perturbation] = field(default_factory=list)
    table: pd.DataFrame = field(default_factory=pd.DataFrame)
    relative_change: pd.DataFrame = field(default_factory=pd.DataFrame)
    baseline: Optional[PipelineResults] = None
    warnings: List[str] = field(default_factory=list)
    aborted: Dict[str, str] = field(default_factory=dict)


def build_plan(
    ncp_names: Sequence[str],
    groups: Sequence[str],
    changes: Sequence[float] = (0.1, -0.1)
) -> List[Perturbation]:
    """Enumerate the baseline plus every supply and access perturbation."""
    plan = [Perturbation(BASELINE, BASELINE, 0.0)]

    for change in changes:
        for ncp in ncp_names:
            plan.append(Perturbation(CHANGE_IN_SUPPLY, ncp, float(change)))

    for change in changes:
        for group in groups:
            plan.append(Perturbation(CHANGE_IN_ACCESS, group, float(change)))

    return plan


def perturb_supply(supply: pd.DataFrame, ncp: str, change: float) -> pd.DataFrame:
    """Scale one NCP's potential supply column by (1 + change)."""
    if ncp not in supply.columns:
        raise InvalidConfiguration(f"Cannot perturb supply of unknown NCP {ncp!r}")

    perturbed = supply.copy()
    perturbed[ncp] = perturbed[ncp] * (1 + change)
    return perturbed


def perturb_access(access: pd.DataFrame, group: str, change: float) -> pd.DataFrame:
    """Scale one group's access column by (1 + change), clamped to [0, 1]."""
    if group not in access.columns:
        raise InvalidConfiguration(f"Cannot perturb access of unknown group {group!r}")

    perturbed = access.copy()
    perturbed[group] = (perturbed[group] * (1 + change)).clip(lower=0.0, upper=1.0)
    return perturbed


def apply_perturbation(
    perturbation: Perturbation,
    supply: pd.DataFrame,
    access: pd.DataFrame
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Return the (supply, access) inputs for one scenario."""
    if perturbation.sensitivity_type == BASELINE:
        return supply, access
    if perturbation.sensitivity_type == CHANGE_IN_SUPPLY:
        return (
            perturb_supply(supply, perturbation.sensitivity_detail, perturbation.change),
            access,
        )
    if perturbation.sensitivity_type == CHANGE_IN_ACCESS:
        return (
            supply,
            perturb_access(access, perturbation.sensitivity_detail, perturbation.change),
        )
    raise InvalidConfiguration(f"Unknown sensitivity type: {perturbation.sensitivity_type!r}")


def drop_degenerate_baselines(
    table: pd.DataFrame
) -> Tuple[pd.DataFrame, List[Tuple[str, str]]]:
    """
    Remove (group, forest_type) cells whose baseline netNCP mean is zero.

    Returns:
        Tuple of (table without those cells, list of dropped cells)
    """
    baseline = table[table[SENSITIVITY_TYPE] == BASELINE]
    zero = baseline[baseline["mean"] == 0]
    cells = sorted(set(zip(zero[GROUP], zero[FOREST_TYPE])))

    if not cells:
        return table, []

    keys = pd.MultiIndex.from_frame(table[[GROUP, FOREST_TYPE]])
    kept = table[~keys.isin(cells)].reset_index(drop=True)
    return kept, cells


def compute_relative_change(table: pd.DataFrame) -> pd.DataFrame:
    """
    Relative change of each scenario's netNCP mean against the baseline.

    relative_change = (mean - baseline_mean) / baseline_mean, matched on
    (group, forest_type).

    Raises:
        DegenerateBaseline: A baseline mean is exactly zero
        InvalidConfiguration: No baseline row for a (group, forest_type)
    """
    baseline = (
        table[table[SENSITIVITY_TYPE] == BASELINE][[GROUP, FOREST_TYPE, "mean"]]
        .rename(columns={"mean": "baseline_mean"})
    )

    for _, row in baseline.iterrows():
        if row["baseline_mean"] == 0:
            raise DegenerateBaseline(row[GROUP], row[FOREST_TYPE])

    result = table.merge(baseline, on=[GROUP, FOREST_TYPE], how="left")

    orphans = result[result["baseline_mean"].isna()]
    if not orphans.empty:
        cells = sorted(set(zip(orphans[GROUP], orphans[FOREST_TYPE])))
        raise InvalidConfiguration(f"No baseline netNCP for: {cells}")

    result["relative_change"] = (
        (result["mean"] - result["baseline_mean"]) / result["baseline_mean"]
    )
    return result


def run_sensitivity(
    config: ScenarioConfig,
    seed: Any = None,
    changes: Optional[Sequence[float]] = None
) -> SensitivityResults:
    """
    Run the full sensitivity plan for a scenario.

    Args:
        config: Scenario configuration
        seed: Overrides config.seed when given
        changes: Perturbation magnitudes; defaults to config.sensitivity_changes

    A (group, forest_type) cell whose baseline netNCP mean is zero has no
    relative change; it is left out of relative_change and listed in
    results.aborted, and the other cells are reported normally.

    Returns:
        SensitivityResults with the plan, the stacked netNCP table and the
        relative-change table
    """
    seed = config.seed if seed is None else seed
    changes = config.sensitivity_changes if changes is None else tuple(changes)

    indicators = generate_indicators(config.forest_types, seed)
    supply = aggregate_supply(indicators, config.ncps)

    results = SensitivityResults(
        plan=build_plan(config.ncp_names, config.groups, changes)
    )
    logger.info(f"Sensitivity plan: {len(results.plan)} scenarios")

    frames = []
    for perturbation in results.plan:
        scenario_supply, scenario_access = apply_perturbation(
            perturbation, supply, config.access
        )
        scored = score_supply(scenario_supply, scenario_access, config.priority, config.ncps)

        if perturbation.sensitivity_type == BASELINE:
            scored.indicators = indicators
            results.baseline = scored

        for message in scored.warnings:
            tagged = f"[{perturbation.label}] {message}"
            if tagged not in results.warnings:
                results.warnings.append(tagged)

        overall = scored.net_ncp_overall.copy()
        overall.insert(0, CHANGE, perturbation.change)
        overall.insert(0, SENSITIVITY_DETAIL, perturbation.sensitivity_detail)
        overall.insert(0, SENSITIVITY_TYPE, perturbation.sensitivity_type)
        frames.append(overall)

    results.table = pd.concat(frames, ignore_index=True)

    scorable, degenerate = drop_degenerate_baselines(results.table)
    for group, forest_type in degenerate:
        error = DegenerateBaseline(group, forest_type)
        logger.error(f"{error}; cell left out of the sensitivity results")
        results.aborted[f"{group}/{forest_type}"] = f"DegenerateBaseline: {error}"
        results.warnings.append(f"Sensitivity not computed for {group}/{forest_type} ({error})")

    results.relative_change = compute_relative_change(scorable)

    logger.info(f"Sensitivity analysis complete: {len(results.relative_change)} rows")
    return results


def summarise_sensitivity(relative_change: pd.DataFrame) -> pd.DataFrame:
    """
    Largest absolute relative change per group and sensitivity type.

    Returns:
        DataFrame with columns: group, sensitivity_type, sensitivity_detail,
        change, forest_type, relative_change
    """
    perturbed = relative_change[relative_change[SENSITIVITY_TYPE] != BASELINE].copy()
    if perturbed.empty:
        return pd.DataFrame(columns=[
            GROUP, SENSITIVITY_TYPE, SENSITIVITY_DETAIL, CHANGE, FOREST_TYPE, "relative_change",
        ])

    perturbed["_abs"] = perturbed["relative_change"].abs()
    idx = perturbed.groupby([GROUP, SENSITIVITY_TYPE])["_abs"].idxmax()
    top = perturbed.loc[idx, [
        GROUP, SENSITIVITY_TYPE, SENSITIVITY_DETAIL, CHANGE, FOREST_TYPE, "relative_change",
    ]]
    return ensure_deterministic_sort(top, [GROUP, SENSITIVITY_TYPE])
