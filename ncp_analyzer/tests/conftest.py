"""
Shared fixtures for NCP Analyzer tests.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest


def create_minimal_scenario() -> Dict[str, Any]:
    """
    Two forest types, three NCPs and two groups.

    All indicator sds are zero, so every replicate of a forest type carries
    the mean and netNCP can be checked by hand:

    - A: x=2, y=10    B: x=4, y=20
    - P (direct x, 0-10), Q (sum x+y, 0-40), R (mean_normalized x,y, 0-1)
    - netNCP means: G1/A 0.0875, G1/B 0.675, G2/A 0.15, G2/B 0.3
    """
    return {
        "seed": 7,
        "forest_types": {
            "A": {"n_replicates": 3, "indicators": {"x": [2.0, 0.0], "y": [10.0, 0.0]}},
            "B": {"n_replicates": 3, "indicators": {"x": [4.0, 0.0], "y": [20.0, 0.0]}},
        },
        "ncps": {
            "P": {
                "aggregation": {"method": "direct", "fields": ["x"]},
                "supply_min": 0, "supply_max": 10, "shape": "linear_benefits",
            },
            "Q": {
                "aggregation": {"method": "sum", "fields": ["x", "y"]},
                "supply_min": 0, "supply_max": 40, "shape": "linear_benefits",
            },
            "R": {
                "aggregation": {"method": "mean_normalized", "fields": ["x", "y"]},
                "supply_min": 0, "supply_max": 1, "shape": "linear_benefits",
            },
        },
        "access": {
            "P": {"G1": 1.0, "G2": 0.0},
            "Q": {"G1": 0.5, "G2": 1.0},
            "R": {"G1": 1.0, "G2": 1.0},
        },
        "priority": {
            "P": {"G1": 1, "G2": 1},
            "Q": {"G1": 1, "G2": 1},
            "R": {"G1": 2, "G2": 0},
        },
    }


@pytest.fixture
def minimal_scenario() -> Dict[str, Any]:
    """Raw scenario mapping (fresh copy per test)."""
    return create_minimal_scenario()


@pytest.fixture
def minimal_config(minimal_scenario: Dict[str, Any]):
    """Parsed ScenarioConfig for the minimal scenario."""
    from ncp_analyzer.config import config_from_dict

    return config_from_dict(minimal_scenario, source="minimal")
