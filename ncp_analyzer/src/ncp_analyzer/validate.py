"""
Scenario validation and QA checks for the NCP Analyzer.

Runs every configuration check up front and reports all findings at once,
instead of stopping at the first error the pipeline would raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from ncp_analyzer.config import AggregationMethod, ScenarioConfig
from ncp_analyzer.schema import get_key_columns, get_required_columns

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a single validation check."""

    check_name: str
    passed: bool
    message: str
    severity: str = "error"  # "error", "warning", "info"
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QAReport:
    """Complete QA report for a scenario."""

    validations: List[ValidationResult] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        """Check if all error-level validations passed."""
        return all(v.passed for v in self.validations if v.severity == "error")

    @property
    def error_count(self) -> int:
        return sum(1 for v in self.validations if not v.passed and v.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for v in self.validations if not v.passed and v.severity == "warning")

    def to_dataframe(self) -> pd.DataFrame:
        """Convert validations to DataFrame."""
        return pd.DataFrame([
            {
                "check": v.check_name,
                "passed": v.passed,
                "severity": v.severity,
                "message": v.message,
            }
            for v in self.validations
        ], columns=["check", "passed", "severity", "message"])


def validate_replicate_counts(config: ScenarioConfig) -> ValidationResult:
    """Every forest type needs at least one replicate."""
    bad = {ft.name: ft.n_replicates for ft in config.forest_types if ft.n_replicates <= 0}

    if bad:
        return ValidationResult(
            check_name="replicate_counts",
            passed=False,
            message=f"Non-positive replicate counts: {bad}",
            severity="error",
            details={"forest_types": bad},
        )

    single = [ft.name for ft in config.forest_types if ft.n_replicates == 1]
    if single:
        return ValidationResult(
            check_name="replicate_counts",
            passed=False,
            message=f"Single replicate (sd undefined) for: {single}",
            severity="warning",
        )

    return ValidationResult(
        check_name="replicate_counts",
        passed=True,
        message=f"All {len(config.forest_types)} forest types have replicates",
        severity="info",
    )


def validate_indicator_sets(config: ScenarioConfig) -> ValidationResult:
    """All forest types must define the same indicators."""
    expected = set(config.indicator_names)
    mismatched = {
        ft.name: sorted(expected - set(ft.indicators))
        for ft in config.forest_types
        if set(ft.indicators) != expected
    }

    if mismatched:
        return ValidationResult(
            check_name="indicator_sets",
            passed=False,
            message=f"Forest types missing indicators: {mismatched}",
            severity="error",
            details={"missing": mismatched},
        )

    return ValidationResult(
        check_name="indicator_sets",
        passed=True,
        message=f"{len(expected)} indicators shared by all forest types",
        severity="info",
    )


def validate_aggregation_rules(config: ScenarioConfig) -> ValidationResult:
    """Aggregation rules must reference known indicators."""
    available = set(config.indicator_names)
    problems = {}

    for ncp in config.ncps:
        rule = ncp.aggregation
        unknown = [f for f in rule.fields if f not in available]
        if not rule.fields:
            problems[ncp.name] = "no fields"
        elif unknown:
            problems[ncp.name] = f"unknown fields {unknown}"
        elif rule.method is AggregationMethod.DIRECT and len(rule.fields) != 1:
            problems[ncp.name] = "direct aggregation needs exactly one field"

    if problems:
        return ValidationResult(
            check_name="aggregation_rules",
            passed=False,
            message=f"Invalid aggregation rules: {problems}",
            severity="error",
            details=problems,
        )

    return ValidationResult(
        check_name="aggregation_rules",
        passed=True,
        message=f"Aggregation rules valid for {len(config.ncps)} NCPs",
        severity="info",
    )


def validate_sb_ranges(config: ScenarioConfig) -> List[ValidationResult]:
    """Supply ranges must be increasing; thresholds should sit inside them."""
    results = []

    for ncp in config.ncps:
        name = f"sb_{ncp.name}"

        if not ncp.supply_min < ncp.supply_max:
            results.append(ValidationResult(
                check_name=name,
                passed=False,
                message=f"{ncp.name}: supply_min {ncp.supply_min} >= supply_max {ncp.supply_max}",
                severity="error",
            ))
            continue

        if ncp.shape.uses_threshold:
            if ncp.threshold is None:
                results.append(ValidationResult(
                    check_name=name,
                    passed=False,
                    message=f"{ncp.name}: shape {ncp.shape.value} requires a threshold",
                    severity="error",
                ))
                continue

            if not ncp.supply_min < ncp.threshold < ncp.supply_max:
                results.append(ValidationResult(
                    check_name=name,
                    passed=False,
                    message=(
                        f"{ncp.name}: threshold {ncp.threshold} outside "
                        f"({ncp.supply_min}, {ncp.supply_max})"
                    ),
                    severity="warning",
                ))
                continue

        results.append(ValidationResult(
            check_name=name,
            passed=True,
            message=f"{ncp.name}: {ncp.shape.value} on [{ncp.supply_min}, {ncp.supply_max}]",
            severity="info",
        ))

    return results


def validate_table_coverage(
    table: pd.DataFrame,
    ncp_names: Sequence[str],
    table_name: str
) -> ValidationResult:
    """Every NCP needs a complete row in the table."""
    missing_rows = [n for n in ncp_names if n not in table.index]
    present = [n for n in ncp_names if n in table.index]
    empty_cells = [
        f"{n}/{g}"
        for n in present
        for g in table.columns
        if pd.isna(table.at[n, g])
    ]

    if missing_rows or empty_cells:
        return ValidationResult(
            check_name=f"{table_name}_coverage",
            passed=False,
            message=(
                f"{table_name} table missing NCPs {missing_rows} "
                f"and cells {empty_cells[:10]}"
            ),
            severity="error",
            details={"missing_ncps": missing_rows, "empty_cells": empty_cells},
        )

    return ValidationResult(
        check_name=f"{table_name}_coverage",
        passed=True,
        message=f"{table_name} table covers all {len(ncp_names)} NCPs",
        severity="info",
    )


def validate_access_range(access: pd.DataFrame) -> ValidationResult:
    """Access fractions must lie in [0, 1]."""
    values = access.to_numpy(dtype=float)
    bad = int(np.count_nonzero((values < 0) | (values > 1)))

    if bad:
        return ValidationResult(
            check_name="access_range",
            passed=False,
            message=f"{bad} access fractions outside [0, 1]",
            severity="error",
        )

    return ValidationResult(
        check_name="access_range",
        passed=True,
        message="All access fractions in [0, 1]",
        severity="info",
    )


def validate_priority_points(
    priority: pd.DataFrame,
    ncp_names: Sequence[str]
) -> List[ValidationResult]:
    """Points must be non-negative; zero-sum groups will be skipped."""
    values = priority.reindex(ncp_names).astype(float)
    results = []

    if (values < 0).any().any():
        results.append(ValidationResult(
            check_name="priority_non_negative",
            passed=False,
            message="Negative priority points found",
            severity="error",
        ))
    else:
        results.append(ValidationResult(
            check_name="priority_non_negative",
            passed=True,
            message="All priority points non-negative",
            severity="info",
        ))

    totals = values.sum(axis=0)
    zero = [str(g) for g in totals.index if totals[g] == 0]

    results.append(ValidationResult(
        check_name="priority_totals",
        passed=not zero,
        message=(
            f"Groups with zero total priority (will be skipped): {zero}"
            if zero else "Every group has positive total priority"
        ),
        severity="warning" if zero else "info",
        details={"zero_groups": zero},
    ))

    return results


def validate_group_alignment(
    access: pd.DataFrame,
    priority: pd.DataFrame
) -> ValidationResult:
    """Groups with access must also have priorities."""
    access_groups = [str(c) for c in access.columns]
    priority_groups = {str(c) for c in priority.columns}

    missing = [g for g in access_groups if g not in priority_groups]
    if missing:
        return ValidationResult(
            check_name="group_alignment",
            passed=False,
            message=f"Groups in access table without priorities: {missing}",
            severity="error",
        )

    extra = sorted(priority_groups - set(access_groups))
    if extra:
        return ValidationResult(
            check_name="group_alignment",
            passed=False,
            message=f"Priority groups without access (ignored): {extra}",
            severity="warning",
        )

    return ValidationResult(
        check_name="group_alignment",
        passed=True,
        message=f"{len(access_groups)} stakeholder groups aligned",
        severity="info",
    )


def validate_output_tables(tables: Dict[str, pd.DataFrame]) -> List[ValidationResult]:
    """
    Check result tables against their declared schemas.

    Args:
        tables: Dict of schema name (e.g. "NET_NCP") -> table

    Returns:
        One ValidationResult per table
    """
    results = []

    for name, df in tables.items():
        check_name = f"output_{name.lower()}"
        required = get_required_columns(name)
        keys = get_key_columns(name)

        missing = [c for c in required if c not in df.columns]
        if missing:
            results.append(ValidationResult(
                check_name=check_name,
                passed=False,
                message=f"{name} missing columns: {missing}",
                severity="error",
                details={"missing_columns": missing},
            ))
            continue

        n_dupes = int(df.duplicated(subset=keys).sum()) if keys else 0
        if n_dupes:
            results.append(ValidationResult(
                check_name=check_name,
                passed=False,
                message=f"{name} has {n_dupes} duplicate rows for key {keys}",
                severity="error",
            ))
            continue

        results.append(ValidationResult(
            check_name=check_name,
            passed=True,
            message=f"{name}: {len(df)} rows, schema OK",
            severity="info",
        ))

    return results


def run_all_validations(config: ScenarioConfig) -> QAReport:
    """Run all validation checks on a scenario."""
    report = QAReport()
    ncp_names = config.ncp_names

    report.validations.append(validate_replicate_counts(config))
    report.validations.append(validate_indicator_sets(config))
    report.validations.append(validate_aggregation_rules(config))
    report.validations.extend(validate_sb_ranges(config))

    report.validations.append(validate_table_coverage(config.access, ncp_names, "access"))
    report.validations.append(validate_access_range(config.access))

    report.validations.append(validate_table_coverage(config.priority, ncp_names, "priority"))
    if all(n in config.priority.index for n in ncp_names):
        report.validations.extend(validate_priority_points(config.priority, ncp_names))

    report.validations.append(validate_group_alignment(config.access, config.priority))

    report.summary = {
        "total_checks": len(report.validations),
        "passed": sum(1 for v in report.validations if v.passed),
        "failed": sum(1 for v in report.validations if not v.passed),
        "errors": report.error_count,
        "warnings": report.warning_count,
    }

    return report


def generate_qa_summary(
    config: ScenarioConfig,
    output_path: Path
) -> pd.DataFrame:
    """Generate and save QA summary report."""
    report = run_all_validations(config)
    qa_df = report.to_dataframe()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    qa_df.to_csv(output_path, index=False, encoding="utf-8-sig")

    logger.info(f"QA Report: {report.summary}")

    if not report.passed:
        logger.warning(f"QA validation has {report.error_count} errors")

    return qa_df
