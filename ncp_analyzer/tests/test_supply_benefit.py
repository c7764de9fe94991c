"""
Tests for supply-benefit relationships.
"""

from __future__ import annotations

import numpy as np
import pytest


class TestShapes:
    """Boundary values of every SB shape."""

    def test_linear_benefits_boundaries(self) -> None:
        from ncp_analyzer.supply_benefit import sb_relationship

        result = sb_relationship([0.0, 5.0, 10.0], 0, 10, "linear_benefits")

        assert result["benefit"].tolist() == pytest.approx([0.0, 0.5, 1.0])

    def test_linear_detriments_boundaries(self) -> None:
        from ncp_analyzer.supply_benefit import sb_relationship

        result = sb_relationship([0.0, 10.0], 0, 10, "linear_detriments")

        assert result["benefit"].tolist() == pytest.approx([0.0, -1.0])

    def test_detriments_mirror_benefits(self) -> None:
        """linear_detriments is the negation of linear_benefits."""
        from ncp_analyzer.supply_benefit import sb_relationship

        supply = np.linspace(2.0, 8.0, 7)
        benefits = sb_relationship(supply, 2, 8, "linear_benefits")["benefit"]
        detriments = sb_relationship(supply, 2, 8, "linear_detriments")["benefit"]

        np.testing.assert_allclose(detriments.to_numpy(), -benefits.to_numpy())

    def test_threshold_cubic(self) -> None:
        from ncp_analyzer.supply_benefit import sb_relationship

        result = sb_relationship(
            [0.0, 3.0, 4.999, 20.0], 0, 20, "threshold_cubic_benefits", threshold=5
        )
        benefit = result["benefit"].tolist()

        assert benefit[:3] == [0.0, 0.0, 0.0]
        assert benefit[3] == pytest.approx(1.0)

    def test_threshold_cubic_at_threshold(self) -> None:
        """At the threshold the cubic branch applies."""
        from ncp_analyzer.supply_benefit import sb_relationship

        result = sb_relationship([5.0], 0, 20, "threshold_cubic_benefits", threshold=5)

        assert result["benefit"].iloc[0] == pytest.approx(125 / 8000)

    def test_detriments_threshold_benefits(self) -> None:
        from ncp_analyzer.supply_benefit import sb_relationship

        result = sb_relationship(
            [0.0, 40.0, 100.0], 0, 100, "detriments_threshold_benefits", threshold=40
        )
        benefit = result["benefit"].tolist()

        assert benefit[0] == pytest.approx(-40 / 60)
        assert benefit[1] == pytest.approx(0.0)
        assert benefit[2] == pytest.approx(1.0)

    def test_scenario_examples(self) -> None:
        """Benefits for NCPs of the built-in scenario."""
        from ncp_analyzer.config import default_config
        from ncp_analyzer.supply_benefit import sb_relationship

        config = default_config()

        def benefit(name: str, supply: float) -> float:
            ncp = config.get_ncp(name)
            result = sb_relationship(
                [supply], ncp.supply_min, ncp.supply_max, ncp.shape, ncp.threshold, label=name
            )
            return float(result["benefit"].iloc[0])

        assert benefit("Aesthetic", 0.5) == pytest.approx(0.5)
        assert benefit("Timber", 3.0) == 0.0
        assert benefit("Timber", 20.0) == pytest.approx(1.0)
        assert benefit("Health_risk", 10.0) == pytest.approx(-1.0)
        assert benefit("Water_regulation", 40.0) == pytest.approx(0.0)

    def test_every_shape_dispatched(self) -> None:
        from ncp_analyzer.supply_benefit import SHAPE_FUNCTIONS, Shape

        assert set(SHAPE_FUNCTIONS) == set(Shape)


class TestDiagnosticCurve:
    """Evaluation without supply values."""

    def test_default_points(self) -> None:
        from ncp_analyzer.supply_benefit import DIAGNOSTIC_POINTS, sb_relationship

        result = sb_relationship(None, 0, 400, "linear_benefits")

        assert len(result) == DIAGNOSTIC_POINTS == 50
        assert result["supply"].iloc[0] == 0.0
        assert result["supply"].iloc[-1] == 400.0
        assert result["benefit"].is_monotonic_increasing

    def test_sb_curve(self) -> None:
        from ncp_analyzer.config import default_config
        from ncp_analyzer.supply_benefit import sb_curve

        timber = default_config().get_ncp("Timber")
        curve = sb_curve(timber, n_points=11)

        assert list(curve.columns) == ["ncp", "supply", "benefit"]
        assert len(curve) == 11
        assert (curve["ncp"] == "Timber").all()
        assert curve["benefit"].iloc[-1] == pytest.approx(1.0)


class TestParameterChecks:
    """Errors and warnings raised for bad parameters or inputs."""

    def test_out_of_range_warns_and_extrapolates(self) -> None:
        from ncp_analyzer.errors import RangeViolationWarning
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.warns(RangeViolationWarning):
            result = sb_relationship([1.5], 0, 1, "linear_benefits", label="Aesthetic")

        assert result["benefit"].iloc[0] == pytest.approx(1.5)

    def test_threshold_outside_range_warns(self) -> None:
        from ncp_analyzer.errors import ThresholdWarning
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.warns(ThresholdWarning):
            sb_relationship([10.0], 0, 20, "threshold_cubic_benefits", threshold=0)

    def test_threshold_at_max_is_invalid(self) -> None:
        from ncp_analyzer.errors import InvalidConfiguration, ThresholdWarning
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.warns(ThresholdWarning):
            with pytest.raises(InvalidConfiguration):
                sb_relationship([10.0], 0, 100, "detriments_threshold_benefits", threshold=100)

    def test_missing_threshold(self) -> None:
        from ncp_analyzer.errors import InvalidConfiguration
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.raises(InvalidConfiguration, match="requires a threshold"):
            sb_relationship([1.0], 0, 20, "threshold_cubic_benefits")

    def test_inverted_range(self) -> None:
        from ncp_analyzer.errors import InvalidConfiguration
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.raises(InvalidConfiguration):
            sb_relationship([1.0], 10, 10, "linear_benefits")

    def test_unknown_shape(self) -> None:
        from ncp_analyzer.errors import InvalidConfiguration, UnknownShape
        from ncp_analyzer.supply_benefit import sb_relationship

        with pytest.raises(UnknownShape) as excinfo:
            sb_relationship([1.0], 0, 1, "sigmoid")

        assert excinfo.value.shape == "sigmoid"
        assert isinstance(excinfo.value, InvalidConfiguration)
        assert isinstance(excinfo.value, ValueError)

    def test_shape_parse(self) -> None:
        from ncp_analyzer.supply_benefit import Shape

        assert Shape.parse(" linear_benefits ") is Shape.LINEAR_BENEFITS
        assert Shape.parse(Shape.LINEAR_DETRIMENTS) is Shape.LINEAR_DETRIMENTS
        assert Shape.THRESHOLD_CUBIC_BENEFITS.uses_threshold
        assert not Shape.LINEAR_BENEFITS.uses_threshold


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
