"""
Schema definitions for the NCP Analyzer.

Defines the column layout of every table the pipeline produces and the
sheets accepted when access/priority tables are read from a workbook.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Sheets accepted in an override workbook (all optional)
OPTIONAL_SHEETS = [
    "ACCESS",
    "PRIORITY",
]

# Column names shared across stages
FOREST_TYPE = "forest_type"
REPLICATE = "replicate"
NCP = "ncp"
GROUP = "group"
POTENTIAL_SUPPLY = "potential_supply"
ACCESS = "access"
REALISED_SUPPLY = "realised_supply"
BENEFIT = "benefit"
POINTS = "points"
RELATIVE_PRIORITY = "relative_priority"
WEIGHTED_SCORE = "weighted_score"
NET_NCP = "net_ncp"

SENSITIVITY_TYPE = "sensitivity_type"
SENSITIVITY_DETAIL = "sensitivity_detail"
CHANGE = "change"

# Sensitivity scenario labels
BASELINE = "Baseline"
CHANGE_IN_SUPPLY = "Change in supply"
CHANGE_IN_ACCESS = "Change in access"


@dataclass
class TableSchema:
    """Schema definition for a single pipeline table."""

    name: str
    required_columns: List[str] = field(default_factory=list)
    key_columns: List[str] = field(default_factory=list)
    description: Optional[str] = None


SCHEMAS: Dict[str, TableSchema] = {
    "INDICATORS": TableSchema(
        name="INDICATORS",
        required_columns=[FOREST_TYPE, REPLICATE],
        key_columns=[FOREST_TYPE, REPLICATE],
        description="Raw indicator values, one column per indicator",
    ),

    "SUPPLY": TableSchema(
        name="SUPPLY",
        required_columns=[FOREST_TYPE, REPLICATE],
        key_columns=[FOREST_TYPE, REPLICATE],
        description="Potential supply, one column per NCP",
    ),

    "REALISED": TableSchema(
        name="REALISED",
        required_columns=[
            NCP, FOREST_TYPE, REPLICATE, GROUP,
            POTENTIAL_SUPPLY, ACCESS, REALISED_SUPPLY,
        ],
        key_columns=[NCP, FOREST_TYPE, REPLICATE, GROUP],
    ),

    "BENEFITS": TableSchema(
        name="BENEFITS",
        required_columns=[
            NCP, FOREST_TYPE, REPLICATE, GROUP,
            REALISED_SUPPLY, BENEFIT,
        ],
        key_columns=[NCP, FOREST_TYPE, REPLICATE, GROUP],
    ),

    "RELATIVE_PRIORITY": TableSchema(
        name="RELATIVE_PRIORITY",
        required_columns=[NCP, GROUP, POINTS, RELATIVE_PRIORITY],
        key_columns=[NCP, GROUP],
    ),

    "WEIGHTED": TableSchema(
        name="WEIGHTED",
        required_columns=[
            NCP, FOREST_TYPE, REPLICATE, GROUP,
            BENEFIT, RELATIVE_PRIORITY, WEIGHTED_SCORE,
        ],
        key_columns=[NCP, FOREST_TYPE, REPLICATE, GROUP],
    ),

    "NET_NCP": TableSchema(
        name="NET_NCP",
        required_columns=[GROUP, FOREST_TYPE, REPLICATE, NET_NCP],
        key_columns=[GROUP, FOREST_TYPE, REPLICATE],
    ),

    "NET_NCP_OVERALL": TableSchema(
        name="NET_NCP_OVERALL",
        required_columns=[GROUP, FOREST_TYPE, "n_replicates", "mean", "sd"],
        key_columns=[GROUP, FOREST_TYPE],
    ),

    "SENSITIVITY": TableSchema(
        name="SENSITIVITY",
        required_columns=[
            SENSITIVITY_TYPE, SENSITIVITY_DETAIL, CHANGE,
            GROUP, FOREST_TYPE, "mean", "sd", "relative_change",
        ],
        key_columns=[SENSITIVITY_TYPE, SENSITIVITY_DETAIL, CHANGE, GROUP, FOREST_TYPE],
    ),
}


def get_required_columns(table_name: str) -> List[str]:
    """Get required columns for a table."""
    if table_name not in SCHEMAS:
        return []
    return SCHEMAS[table_name].required_columns


def get_key_columns(table_name: str) -> List[str]:
    """Get the columns that uniquely identify a row of a table."""
    if table_name not in SCHEMAS:
        return []
    return SCHEMAS[table_name].key_columns
