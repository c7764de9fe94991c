"""
Smoke tests for the NCP Analyzer.

Tests configuration loading, validation, workbook overrides and a full
analysis run with the built-in scenario.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
import yaml


def create_override_workbook(path: Path) -> None:
    """Create a workbook that overrides the access table only."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        access = pd.DataFrame({
            "NCP": ["Climate_regulation", "Timber", "Aesthetic", "Health_risk", "Water_regulation"],
            "Foresters": [1.0, 1.0, 1.0, 1.0, 1.0],
            "Conservationists": [1.0, 1.0, 1.0, 1.0, 1.0],
            "Locals": [0.5, 0.5, 0.5, 0.5, 0.5],
        })
        access.to_excel(writer, sheet_name="Access", index=False)


class TestConfig:
    """Scenario loading and parsing."""

    def test_default_config(self) -> None:
        from ncp_analyzer.config import default_config

        config = default_config()

        assert config.seed == 42
        assert [ft.name for ft in config.forest_types] == ["Beech", "Spruce"]
        assert config.ncp_names == [
            "Climate_regulation", "Timber", "Aesthetic", "Health_risk", "Water_regulation",
        ]
        assert config.groups == ["Foresters", "Conservationists", "Locals"]
        assert config.sensitivity_changes == (0.1, -0.1)

    def test_packaged_yaml_matches_default(self) -> None:
        from ncp_analyzer.config import DEFAULT_CONFIG_PATH, default_config, load_config

        assert DEFAULT_CONFIG_PATH.exists()

        loaded = load_config()
        default = default_config()

        assert loaded.ncps == default.ncps
        assert loaded.forest_types == default.forest_types
        pd.testing.assert_frame_equal(loaded.access, default.access)
        pd.testing.assert_frame_equal(loaded.priority, default.priority)

    def test_load_yaml(self, tmp_path: Path, minimal_scenario) -> None:
        from ncp_analyzer.config import load_config

        path = tmp_path / "scenario.yml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(minimal_scenario, f)

        config = load_config(path)

        assert config.source == str(path)
        assert config.ncp_names == ["P", "Q", "R"]
        assert config.get_ncp("R").aggregation.method.value == "mean_normalized"

    def test_missing_file(self, tmp_path: Path) -> None:
        from ncp_analyzer.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yml")

    def test_malformed_scenarios(self, minimal_scenario) -> None:
        from ncp_analyzer.config import config_from_dict
        from ncp_analyzer.errors import InvalidConfiguration, UnknownShape

        broken = dict(minimal_scenario)
        del broken["access"]
        with pytest.raises(InvalidConfiguration, match="access"):
            config_from_dict(broken)

        minimal_scenario["ncps"]["P"]["shape"] = "logistic"
        with pytest.raises(UnknownShape):
            config_from_dict(minimal_scenario)

        minimal_scenario["ncps"]["P"]["shape"] = "linear_benefits"
        minimal_scenario["ncps"]["P"]["aggregation"]["method"] = "median"
        with pytest.raises(InvalidConfiguration, match="aggregation method"):
            config_from_dict(minimal_scenario)

    def test_unknown_ncp(self) -> None:
        from ncp_analyzer.config import default_config
        from ncp_analyzer.errors import InvalidConfiguration

        with pytest.raises(InvalidConfiguration):
            default_config().get_ncp("Recreation")


class TestValidation:
    """Tests for scenario validation."""

    def test_default_scenario_passes(self) -> None:
        from ncp_analyzer.config import default_config
        from ncp_analyzer.validate import run_all_validations

        report = run_all_validations(default_config())

        assert report.passed
        assert report.error_count == 0
        assert report.summary["total_checks"] == len(report.validations)

    def test_access_out_of_range(self, minimal_config) -> None:
        from ncp_analyzer.validate import run_all_validations

        access = minimal_config.access.copy()
        access.loc["P", "G1"] = 1.2
        report = run_all_validations(minimal_config.with_tables(access=access))

        assert not report.passed
        failed = {v.check_name for v in report.validations if not v.passed}
        assert "access_range" in failed

    def test_zero_priority_group_is_warning(self, minimal_config) -> None:
        from ncp_analyzer.validate import validate_priority_points

        priority = minimal_config.priority.copy()
        priority["G2"] = 0.0
        results = {v.check_name: v for v in validate_priority_points(priority, ["P", "Q", "R"])}

        assert results["priority_non_negative"].passed
        assert not results["priority_totals"].passed
        assert results["priority_totals"].severity == "warning"
        assert results["priority_totals"].details["zero_groups"] == ["G2"]

    def test_threshold_outside_range_is_warning(self, minimal_scenario) -> None:
        from ncp_analyzer.config import config_from_dict
        from ncp_analyzer.validate import validate_sb_ranges

        minimal_scenario["ncps"]["Q"]["shape"] = "threshold_cubic_benefits"
        minimal_scenario["ncps"]["Q"]["threshold"] = 50
        results = validate_sb_ranges(config_from_dict(minimal_scenario))

        q = [v for v in results if v.check_name == "sb_Q"][0]
        assert not q.passed
        assert q.severity == "warning"

    def test_coverage(self, minimal_config) -> None:
        from ncp_analyzer.validate import validate_table_coverage

        result = validate_table_coverage(minimal_config.access, ["P", "Q", "R", "S"], "access")

        assert not result.passed
        assert result.details["missing_ncps"] == ["S"]

    def test_output_tables_pass(self, minimal_config) -> None:
        from ncp_analyzer.pipeline import run_pipeline
        from ncp_analyzer.validate import validate_output_tables

        results = run_pipeline(minimal_config)
        checks = validate_output_tables({
            "SUPPLY": results.supply,
            "BENEFITS": results.benefits,
            "NET_NCP": results.net_ncp,
            "NET_NCP_OVERALL": results.net_ncp_overall,
        })

        assert [v.check_name for v in checks] == [
            "output_supply", "output_benefits", "output_net_ncp", "output_net_ncp_overall",
        ]
        assert all(v.passed for v in checks)

    def test_output_table_failures(self, minimal_config) -> None:
        from ncp_analyzer.pipeline import run_pipeline
        from ncp_analyzer.validate import validate_output_tables

        overall = run_pipeline(minimal_config).net_ncp_overall
        missing, dupes = validate_output_tables({
            "NET_NCP_OVERALL": overall.drop(columns=["sd"]),
            "NET_NCP": pd.DataFrame({
                "group": ["G1", "G1"],
                "forest_type": ["A", "A"],
                "replicate": [1, 1],
                "net_ncp": [0.1, 0.2],
            }),
        })

        assert not missing.passed
        assert missing.severity == "error"
        assert missing.details["missing_columns"] == ["sd"]
        assert not dupes.passed
        assert "duplicate" in dupes.message


class TestWorkbook:
    """Access/priority overrides read from Excel."""

    @pytest.fixture
    def workbook(self, tmp_path: Path) -> Path:
        """Create override workbook fixture."""
        wb_path = tmp_path / "tables.xlsx"
        create_override_workbook(wb_path)
        return wb_path

    def test_load_workbook(self, workbook: Path) -> None:
        from ncp_analyzer.io import load_workbook

        tables, missing = load_workbook(workbook)

        assert "ACCESS" in tables
        assert missing == ["PRIORITY"]

        access = tables["ACCESS"]
        assert access.index.name == "ncp"
        assert list(access.columns) == ["Foresters", "Conservationists", "Locals"]
        assert access.loc["Timber", "Locals"] == 0.5

    def test_missing_workbook(self, tmp_path: Path) -> None:
        from ncp_analyzer.io import load_workbook

        with pytest.raises(FileNotFoundError):
            load_workbook(tmp_path / "missing.xlsx")

    def test_duplicate_rows(self) -> None:
        from ncp_analyzer.errors import InvalidConfiguration
        from ncp_analyzer.io import sheet_to_table

        df = pd.DataFrame({"ncp": ["Timber", "Timber"], "Locals": [0.1, 0.2]})

        with pytest.raises(InvalidConfiguration, match="Duplicate"):
            sheet_to_table(df, "ACCESS")

    def test_upper_case_ncp_header(self) -> None:
        from ncp_analyzer.io import sheet_to_table

        df = pd.DataFrame({"NCP": ["Timber", "Aesthetic"], "Locals": [0.1, 0.2]})
        table = sheet_to_table(df, "ACCESS")

        assert table.index.name == "ncp"
        assert table.loc["Aesthetic", "Locals"] == 0.2


class TestAnalysis:
    """Full analysis with the built-in scenario."""

    @pytest.fixture
    def output_dir(self, tmp_path: Path) -> Path:
        """Create output directory fixture."""
        out = tmp_path / "outputs"
        out.mkdir()
        return out

    def test_full_analysis(self, output_dir: Path) -> None:
        from ncp_analyzer.analysis import run_analysis

        results = run_analysis(config_path=None, output_dir=output_dir)

        assert not results.pipeline.net_ncp_overall.empty
        assert len(results.pipeline.net_ncp_overall) == 6
        assert results.sensitivity is not None
        assert len(results.sensitivity.plan) == 17
        assert not results.sensitivity_top.empty

        assert (output_dir / "tables" / "net_ncp_overall.csv").exists()
        assert (output_dir / "tables" / "sensitivity.csv").exists()
        assert (output_dir / "tables" / "qa_summary.csv").exists()
        assert (output_dir / "tables" / "netncp_tables.xlsx").exists()
        assert (output_dir / "figures" / "sb_curves.png").exists()
        assert (output_dir / "figures" / "net_ncp.png").exists()
        assert (output_dir / "figures" / "sensitivity.png").exists()
        assert (output_dir / "reports" / "report_netncp.html").exists()

        html = (output_dir / "reports" / "report_netncp.html").read_text(encoding="utf-8")
        assert "Foresters" in html

    def test_without_sensitivity(self, output_dir: Path, tmp_path: Path) -> None:
        from ncp_analyzer.analysis import run_analysis

        wb_path = tmp_path / "tables.xlsx"
        create_override_workbook(wb_path)

        results = run_analysis(
            config_path=None,
            output_dir=output_dir,
            workbook=wb_path,
            with_sensitivity=False,
        )

        assert results.sensitivity is None
        assert not (output_dir / "tables" / "sensitivity.csv").exists()
        assert not (output_dir / "figures" / "sensitivity.png").exists()

        realised = results.pipeline.realised
        locals_access = realised[realised["group"] == "Locals"]["access"]
        assert (locals_access == 0.5).all()

    def test_determinism(self, output_dir: Path) -> None:
        """Test that same seed produces identical output."""
        from ncp_analyzer.analysis import run_analysis

        out1 = output_dir / "run1"
        out2 = output_dir / "run2"

        run_analysis(None, out1, with_sensitivity=False)
        run_analysis(None, out2, with_sensitivity=False)

        for csv_name in ["indicators.csv", "net_ncp.csv", "net_ncp_overall.csv"]:
            df1 = pd.read_csv(out1 / "tables" / csv_name)
            df2 = pd.read_csv(out2 / "tables" / csv_name)

            pd.testing.assert_frame_equal(df1, df2)

    def test_output_checks_in_qa_summary(self, output_dir: Path) -> None:
        from ncp_analyzer.analysis import run_analysis

        results = run_analysis(None, output_dir, with_sensitivity=False)

        qa = pd.read_csv(output_dir / "tables" / "qa_summary.csv")
        output_rows = qa[qa["check"].str.startswith("output_")]
        assert set(output_rows["check"]) == {
            "output_indicators", "output_supply", "output_realised", "output_benefits",
            "output_relative_priority", "output_weighted", "output_net_ncp",
            "output_net_ncp_overall",
        }
        assert output_rows["passed"].all()
        assert len(results.qa_summary) == len(qa)

    def test_group_without_access(self, output_dir: Path, tmp_path: Path, minimal_scenario) -> None:
        """Zero netNCP for a whole group still produces every output."""
        from ncp_analyzer.analysis import run_analysis

        for ncp in ("P", "Q", "R"):
            minimal_scenario["access"][ncp]["G2"] = 0.0
        path = tmp_path / "no_access.yml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(minimal_scenario, f)

        results = run_analysis(config_path=path, output_dir=output_dir)

        assert results.sensitivity is not None
        assert set(results.sensitivity.aborted) == {"G2/A", "G2/B"}
        assert any(w.startswith("Sensitivity not computed for G2/A") for w in results.warnings)
        assert (output_dir / "tables" / "net_ncp_overall.csv").exists()
        assert (output_dir / "tables" / "sensitivity.csv").exists()

        html = (output_dir / "reports" / "report_netncp.html").read_text(encoding="utf-8")
        assert "Cells left out of the sensitivity analysis" in html
        assert "G2/B" in html


class TestCli:
    """Command-line entry points."""

    def test_version(self) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer import __version__
        from ncp_analyzer.cli import app

        result = CliRunner().invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_run(self, tmp_path: Path) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        out = tmp_path / "outputs"
        result = CliRunner().invoke(app, ["run", "--outdir", str(out), "--no-sensitivity"])

        assert result.exit_code == 0
        assert (out / "tables" / "net_ncp_overall.csv").exists()
        assert not (out / "tables" / "sensitivity.csv").exists()

    def test_run_invalid_scenario(self, tmp_path: Path, minimal_scenario) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        minimal_scenario["ncps"]["P"]["shape"] = "logistic"
        path = tmp_path / "bad.yml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(minimal_scenario, f)

        out = tmp_path / "outputs"
        result = CliRunner().invoke(app, ["run", "--config", str(path), "--outdir", str(out)])

        assert result.exit_code == 1
        assert not (out / "tables" / "net_ncp_overall.csv").exists()

    def test_validate(self) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        result = CliRunner().invoke(app, ["validate"])

        assert result.exit_code == 0

    def test_validate_failing_scenario(self, tmp_path: Path, minimal_scenario) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        minimal_scenario["access"]["P"]["G1"] = 1.2
        path = tmp_path / "bad_access.yml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(minimal_scenario, f)

        result = CliRunner().invoke(app, ["validate", "--config", str(path)])

        assert result.exit_code == 1

    def test_curve(self) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        result = CliRunner().invoke(app, ["curve", "Timber", "--points", "5"])

        assert result.exit_code == 0
        assert "Timber" in result.output

    def test_curve_unknown_ncp(self) -> None:
        from typer.testing import CliRunner

        from ncp_analyzer.cli import app

        result = CliRunner().invoke(app, ["curve", "Recreation"])

        assert result.exit_code == 1


class TestUtils:
    """Tests for utility functions."""

    def test_pick_col(self) -> None:
        from ncp_analyzer.utils import pick_col

        df = pd.DataFrame({"NCP": [1], "Locals": [2]})

        assert pick_col(df, ["ncp", "ncp_name"]) == "NCP"
        assert pick_col(df, ["locals"]) == "Locals"
        assert pick_col(df, ["nonexistent"]) is None

        with pytest.raises(ValueError):
            pick_col(df, ["nonexistent"], required=True)

    def test_format_change(self) -> None:
        from ncp_analyzer.utils import format_change

        assert format_change(0.1) == "+10%"
        assert format_change(-0.1) == "-10%"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
