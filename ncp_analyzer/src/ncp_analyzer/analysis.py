"""
netNCP Analysis Orchestrator.

Runs the complete analysis for a scenario and writes its outputs:
- Step 0: Load scenario (and optional access/priority workbook)
- Step 1: QA checks
- Step 2: netNCP pipeline
- Step 3: Sensitivity analysis
- Step 4: Tables, figures and HTML report
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ncp_analyzer.config import NCPSpec, load_config
from ncp_analyzer.io import load_workbook, save_csv, save_outputs
from ncp_analyzer.pipeline import PipelineResults, run_pipeline
from ncp_analyzer.plots import generate_plots
from ncp_analyzer.report import generate_html_report
from ncp_analyzer.sensitivity import (
    SensitivityResults,
    run_sensitivity,
    summarise_sensitivity,
)
from ncp_analyzer.utils import create_output_dirs
from ncp_analyzer.validate import QAReport, generate_qa_summary, validate_output_tables

logger = logging.getLogger(__name__)

# Output table name -> schema it is checked against
OUTPUT_SCHEMAS = {
    "indicators": "INDICATORS",
    "supply": "SUPPLY",
    "realised_supply": "REALISED",
    "benefits": "BENEFITS",
    "relative_priority": "RELATIVE_PRIORITY",
    "weighted_scores": "WEIGHTED",
    "net_ncp": "NET_NCP",
    "net_ncp_overall": "NET_NCP_OVERALL",
    "sensitivity": "SENSITIVITY",
}


@dataclass
class AnalysisResults:
    """Container for all outputs of one analysis run."""

    pipeline: PipelineResults = field(default_factory=PipelineResults)
    sensitivity: Optional[SensitivityResults] = None
    sensitivity_top: pd.DataFrame = field(default_factory=pd.DataFrame)
    ncps: List[NCPSpec] = field(default_factory=list)

    # QA
    qa_summary: pd.DataFrame = field(default_factory=pd.DataFrame)

    # Metadata
    input_file: str = ""
    output_dir: str = ""
    run_timestamp: str = ""
    plot_paths: Dict[str, Path] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def run_analysis(
    config_path: Optional[str | Path],
    output_dir: str | Path,
    seed: Optional[int] = None,
    workbook: Optional[str | Path] = None,
    with_sensitivity: bool = True
) -> AnalysisResults:
    """
    Execute the complete netNCP analysis and write all outputs.

    Args:
        config_path: Scenario YAML (None for the packaged default)
        output_dir: Directory for outputs
        seed: Overrides the scenario seed
        workbook: Optional Excel workbook with ACCESS / PRIORITY sheets that
            replace the scenario's tables
        with_sensitivity: Run the sensitivity plan as well

    Returns:
        AnalysisResults with all outputs
    """
    output_dir = Path(output_dir)

    logger.info("Loading scenario...")
    config = load_config(Path(config_path) if config_path is not None else None)

    if workbook is not None:
        tables, missing = load_workbook(Path(workbook))
        config = config.with_tables(
            access=tables.get("ACCESS"),
            priority=tables.get("PRIORITY"),
        )
        if missing:
            logger.info(f"Workbook sheets not provided, scenario tables kept: {missing}")

    results = AnalysisResults(
        ncps=list(config.ncps),
        input_file=config.source,
        output_dir=str(output_dir),
        run_timestamp=datetime.now().isoformat(),
    )

    logger.info(f"Starting netNCP analysis: {config.source}")
    logger.info(f"Output directory: {output_dir}")

    dirs = create_output_dirs(output_dir)

    # Step 1: QA
    logger.info("Validating scenario...")
    results.qa_summary = generate_qa_summary(config, dirs["tables"] / "qa_summary.csv")

    # Step 2: Pipeline
    logger.info("Computing netNCP...")
    results.pipeline = run_pipeline(config, seed=seed)
    pipeline = results.pipeline
    results.warnings.extend(pipeline.warnings)
    for group, reason in pipeline.aborted_groups.items():
        results.warnings.append(f"Group {group} not scored ({reason})")

    tables = {
        "indicators": pipeline.indicators,
        "supply": pipeline.supply,
        "realised_supply": pipeline.realised,
        "benefits": pipeline.benefits,
        "relative_priority": pipeline.relative_priority,
        "weighted_scores": pipeline.weighted,
        "net_ncp": pipeline.net_ncp,
        "net_ncp_overall": pipeline.net_ncp_overall,
    }

    # Step 3: Sensitivity
    if with_sensitivity and not pipeline.net_ncp_overall.empty:
        logger.info("Running sensitivity analysis...")
        results.sensitivity = run_sensitivity(config, seed=seed)
        for cell, reason in results.sensitivity.aborted.items():
            results.warnings.append(f"Sensitivity not computed for {cell} ({reason})")
        results.sensitivity_top = summarise_sensitivity(results.sensitivity.relative_change)
        tables["sensitivity"] = results.sensitivity.relative_change
        tables["sensitivity_top"] = results.sensitivity_top

    # Step 4: Outputs
    output_checks = QAReport(validations=validate_output_tables({
        OUTPUT_SCHEMAS[name]: df for name, df in tables.items() if name in OUTPUT_SCHEMAS
    }))
    if not output_checks.passed:
        logger.warning(f"Output tables fail {output_checks.error_count} schema checks")
    results.qa_summary = pd.concat(
        [results.qa_summary, output_checks.to_dataframe()], ignore_index=True
    )
    save_csv(results.qa_summary, dirs["tables"] / "qa_summary.csv")

    save_outputs(tables, output_dir)

    logger.info("Generating visualizations...")
    results.plot_paths = generate_plots(
        config.ncps,
        pipeline.benefits,
        pipeline.net_ncp_overall,
        output_dir,
        relative_change=(
            results.sensitivity.relative_change if results.sensitivity is not None else None
        ),
    )

    logger.info("Generating HTML report...")
    generate_html_report(
        results,
        results.plot_paths,
        dirs["reports"] / "report_netncp.html",
    )

    logger.info(f"netNCP analysis complete. Outputs in: {output_dir}")

    return results
