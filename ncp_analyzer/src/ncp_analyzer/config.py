"""
Scenario configuration for the NCP Analyzer.

A scenario bundles everything a pipeline run needs: the random seed,
indicator distributions per forest type, NCP definitions (aggregation
rule, SB shape and range), and the access and priority tables.
Scenarios are read from YAML; a built-in default is used when no
scenario file is available.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import yaml

from ncp_analyzer.errors import InvalidConfiguration
from ncp_analyzer.schema import NCP
from ncp_analyzer.supply_benefit import Shape

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "scenario.yml"

DEFAULT_SENSITIVITY_CHANGES = (0.1, -0.1)

# Used when config/scenario.yml is not shipped alongside the package
DEFAULT_SCENARIO: Dict[str, Any] = {
    "seed": 42,
    "forest_types": {
        "Beech": {
            "n_replicates": 5,
            "indicators": {
                "aboveground_carbon": [150.0, 20.0],
                "soil_carbon": [90.0, 10.0],
                "timber_growth": [8.0, 1.5],
                "tree_species_richness": [6.0, 1.5],
                "flower_cover": [25.0, 8.0],
                "tick_density": [6.0, 1.5],
                "soil_water_capacity": [55.0, 10.0],
            },
        },
        "Spruce": {
            "n_replicates": 5,
            "indicators": {
                "aboveground_carbon": [120.0, 15.0],
                "soil_carbon": [70.0, 10.0],
                "timber_growth": [14.0, 2.0],
                "tree_species_richness": [2.0, 0.8],
                "flower_cover": [10.0, 4.0],
                "tick_density": [3.0, 1.0],
                "soil_water_capacity": [35.0, 8.0],
            },
        },
    },
    "ncps": {
        "Climate_regulation": {
            "aggregation": {"method": "sum", "fields": ["aboveground_carbon", "soil_carbon"]},
            "supply_min": 0.0,
            "supply_max": 400.0,
            "shape": "linear_benefits",
        },
        "Timber": {
            "aggregation": {"method": "direct", "fields": ["timber_growth"]},
            "supply_min": 0.0,
            "supply_max": 20.0,
            "shape": "threshold_cubic_benefits",
            "threshold": 5.0,
        },
        "Aesthetic": {
            "aggregation": {
                "method": "mean_normalized",
                "fields": ["tree_species_richness", "flower_cover"],
            },
            "supply_min": 0.0,
            "supply_max": 1.0,
            "shape": "linear_benefits",
        },
        "Health_risk": {
            "aggregation": {"method": "direct", "fields": ["tick_density"]},
            "supply_min": 0.0,
            "supply_max": 10.0,
            "shape": "linear_detriments",
        },
        "Water_regulation": {
            "aggregation": {"method": "direct", "fields": ["soil_water_capacity"]},
            "supply_min": 0.0,
            "supply_max": 100.0,
            "shape": "detriments_threshold_benefits",
            "threshold": 40.0,
        },
    },
    "access": {
        "Climate_regulation": {"Foresters": 1.0, "Conservationists": 1.0, "Locals": 1.0},
        "Timber": {"Foresters": 1.0, "Conservationists": 0.2, "Locals": 0.5},
        "Aesthetic": {"Foresters": 0.6, "Conservationists": 1.0, "Locals": 1.0},
        "Health_risk": {"Foresters": 1.0, "Conservationists": 1.0, "Locals": 1.0},
        "Water_regulation": {"Foresters": 0.8, "Conservationists": 0.8, "Locals": 1.0},
    },
    "priority": {
        "Climate_regulation": {"Foresters": 10, "Conservationists": 30, "Locals": 15},
        "Timber": {"Foresters": 50, "Conservationists": 5, "Locals": 20},
        "Aesthetic": {"Foresters": 5, "Conservationists": 30, "Locals": 30},
        "Health_risk": {"Foresters": 20, "Conservationists": 10, "Locals": 25},
        "Water_regulation": {"Foresters": 15, "Conservationists": 25, "Locals": 10},
    },
    "sensitivity": {
        "changes": list(DEFAULT_SENSITIVITY_CHANGES),
    },
}


class AggregationMethod(str, Enum):
    """How raw indicators are reduced to one potential supply value."""

    SUM = "sum"
    DIRECT = "direct"
    MEAN_NORMALIZED = "mean_normalized"


@dataclass(frozen=True)
class IndicatorDistribution:
    """Normal distribution parameters for one raw indicator."""

    mean: float
    sd: float


@dataclass
class ForestTypeSpec:
    """Sampling design for one forest type."""

    name: str
    n_replicates: int
    indicators: Dict[str, IndicatorDistribution] = field(default_factory=dict)


@dataclass(frozen=True)
class AggregationRule:
    """Aggregation of indicator fields into potential supply."""

    method: AggregationMethod
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class NCPSpec:
    """Definition of one NCP: how supply is built and how it maps to benefit."""

    name: str
    aggregation: AggregationRule
    supply_min: float
    supply_max: float
    shape: Shape
    threshold: Optional[float] = None


@dataclass
class ScenarioConfig:
    """Complete input for a pipeline run."""

    seed: int
    forest_types: List[ForestTypeSpec]
    ncps: List[NCPSpec]
    access: pd.DataFrame
    priority: pd.DataFrame
    sensitivity_changes: Tuple[float, ...] = DEFAULT_SENSITIVITY_CHANGES
    source: str = "<default>"

    @property
    def ncp_names(self) -> List[str]:
        return [n.name for n in self.ncps]

    @property
    def groups(self) -> List[str]:
        """Stakeholder groups, in access table column order."""
        return [str(c) for c in self.access.columns]

    @property
    def indicator_names(self) -> List[str]:
        names = set()
        for ft in self.forest_types:
            names.update(ft.indicators)
        return sorted(names)

    def get_ncp(self, name: str) -> NCPSpec:
        for ncp in self.ncps:
            if ncp.name == name:
                return ncp
        raise InvalidConfiguration(f"Unknown NCP: {name!r}")

    def with_tables(
        self,
        access: Optional[pd.DataFrame] = None,
        priority: Optional[pd.DataFrame] = None
    ) -> "ScenarioConfig":
        """Return a copy with the access and/or priority tables replaced."""
        return dataclasses.replace(
            self,
            access=self.access if access is None else access,
            priority=self.priority if priority is None else priority,
        )


def _parse_distribution(value: Any, context: str) -> IndicatorDistribution:
    if isinstance(value, dict):
        mean, sd = value.get("mean"), value.get("sd")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        mean, sd = value
    else:
        raise InvalidConfiguration(
            f"Indicator {context} must be [mean, sd] or {{mean, sd}}, got {value!r}"
        )

    try:
        return IndicatorDistribution(mean=float(mean), sd=float(sd))
    except (TypeError, ValueError):
        raise InvalidConfiguration(
            f"Indicator {context} has non-numeric mean/sd: {value!r}"
        ) from None


def _parse_forest_types(raw: Dict[str, Any]) -> List[ForestTypeSpec]:
    if not isinstance(raw, dict) or not raw:
        raise InvalidConfiguration("forest_types must be a non-empty mapping")

    specs = []
    for name, entry in raw.items():
        entry = entry or {}
        try:
            n_replicates = int(entry.get("n_replicates", 0))
        except (TypeError, ValueError):
            raise InvalidConfiguration(
                f"n_replicates for forest type {name!r} must be an integer"
            ) from None

        indicators = {
            str(ind): _parse_distribution(value, f"{name}.{ind}")
            for ind, value in (entry.get("indicators") or {}).items()
        }
        specs.append(ForestTypeSpec(
            name=str(name),
            n_replicates=n_replicates,
            indicators=indicators,
        ))

    return specs


def _parse_ncps(raw: Dict[str, Any]) -> List[NCPSpec]:
    if not isinstance(raw, dict) or not raw:
        raise InvalidConfiguration("ncps must be a non-empty mapping")

    specs = []
    for name, entry in raw.items():
        entry = entry or {}
        agg = entry.get("aggregation") or {}

        try:
            method = AggregationMethod(str(agg.get("method", "")).strip())
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown aggregation method for NCP {name!r}: {agg.get('method')!r}"
            ) from None

        fields = agg.get("fields") or []
        if isinstance(fields, str):
            fields = [fields]

        try:
            supply_min = float(entry["supply_min"])
            supply_max = float(entry["supply_max"])
            threshold = entry.get("threshold")
            threshold = None if threshold is None else float(threshold)
        except KeyError as e:
            raise InvalidConfiguration(f"NCP {name!r} is missing {e.args[0]}") from None
        except (TypeError, ValueError):
            raise InvalidConfiguration(
                f"NCP {name!r} has a non-numeric supply range or threshold"
            ) from None

        specs.append(NCPSpec(
            name=str(name),
            aggregation=AggregationRule(method=method, fields=tuple(str(f) for f in fields)),
            supply_min=supply_min,
            supply_max=supply_max,
            shape=Shape.parse(entry.get("shape")),
            threshold=threshold,
        ))

    return specs


def table_from_mapping(raw: Dict[str, Dict[str, Any]], table_name: str) -> pd.DataFrame:
    """
    Build an NCP x stakeholder-group table from a nested mapping.

    Returns:
        DataFrame indexed by NCP with one float column per group
    """
    if not isinstance(raw, dict) or not raw:
        raise InvalidConfiguration(f"{table_name} must be a non-empty mapping")

    df = pd.DataFrame.from_dict(raw, orient="index")
    df.index = df.index.map(str)
    df.index.name = NCP
    df.columns = [str(c) for c in df.columns]

    try:
        return df.astype(float)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"{table_name} table contains non-numeric values") from None


def config_from_dict(raw: Dict[str, Any], source: str = "<dict>") -> ScenarioConfig:
    """Parse a scenario mapping (as loaded from YAML) into a ScenarioConfig."""
    if not isinstance(raw, dict):
        raise InvalidConfiguration(f"Scenario {source} must be a mapping")

    for key in ("forest_types", "ncps", "access", "priority"):
        if key not in raw:
            raise InvalidConfiguration(f"Scenario {source} is missing '{key}'")

    sensitivity = raw.get("sensitivity") or {}
    changes = sensitivity.get("changes", DEFAULT_SENSITIVITY_CHANGES)

    try:
        seed = int(raw.get("seed", 0))
        changes = tuple(float(c) for c in changes)
    except (TypeError, ValueError):
        raise InvalidConfiguration(
            f"Scenario {source} has a non-numeric seed or sensitivity change"
        ) from None

    return ScenarioConfig(
        seed=seed,
        forest_types=_parse_forest_types(raw["forest_types"]),
        ncps=_parse_ncps(raw["ncps"]),
        access=table_from_mapping(raw["access"], "access"),
        priority=table_from_mapping(raw["priority"], "priority"),
        sensitivity_changes=changes,
        source=source,
    )


def load_config(config_path: Optional[Path] = None) -> ScenarioConfig:
    """
    Load a scenario from YAML.

    Without an explicit path the packaged config/scenario.yml is used,
    falling back to DEFAULT_SCENARIO if that file is not present.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        InvalidConfiguration: If the scenario is malformed
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.warning(f"Scenario config not found: {DEFAULT_CONFIG_PATH}; using built-in default")
            return config_from_dict(copy.deepcopy(DEFAULT_SCENARIO), source="<default>")
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Scenario config not found: {config_path}")

    logger.info(f"Loading scenario: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    return config_from_dict(raw, source=str(config_path))


def default_config() -> ScenarioConfig:
    """The built-in tutorial scenario."""
    return config_from_dict(copy.deepcopy(DEFAULT_SCENARIO), source="<default>")
