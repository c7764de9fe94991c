"""
Access filtering.

Turns potential supply into realised supply per stakeholder group:
realised_supply = potential_supply x access_fraction. Every supply record
is replicated once per group in the access table.
"""

from __future__ import annotations

import logging

import pandas as pd

from ncp_analyzer.errors import InvalidConfiguration, MissingAccessEntry
from ncp_analyzer.schema import (
    ACCESS,
    FOREST_TYPE,
    GROUP,
    NCP,
    POTENTIAL_SUPPLY,
    REALISED_SUPPLY,
    REPLICATE,
)
from ncp_analyzer.utils import ensure_deterministic_sort

logger = logging.getLogger(__name__)


def validate_access_table(access: pd.DataFrame) -> None:
    """Raise InvalidConfiguration for fractions outside [0, 1]."""
    values = access.to_numpy(dtype=float)
    out_of_range = (values < 0) | (values > 1)

    if out_of_range.any():
        rows, cols = out_of_range.nonzero()
        cells = [f"{access.index[r]}/{access.columns[c]}" for r, c in zip(rows, cols)]
        raise InvalidConfiguration(f"Access fractions outside [0, 1]: {cells[:10]}")


def supply_to_long(supply: pd.DataFrame) -> pd.DataFrame:
    """Reshape wide supply (one column per NCP) to one row per NCP and record."""
    return supply.melt(
        id_vars=[FOREST_TYPE, REPLICATE],
        var_name=NCP,
        value_name=POTENTIAL_SUPPLY,
    )


def apply_access(supply: pd.DataFrame, access: pd.DataFrame) -> pd.DataFrame:
    """
    Apply the access filter to potential supply.

    Args:
        supply: Wide supply table from aggregate_supply
        access: Access table indexed by NCP, one column per stakeholder group

    Returns:
        DataFrame with columns: ncp, forest_type, replicate, group,
        potential_supply, access, realised_supply

    Raises:
        MissingAccessEntry: An NCP in the supply table has no access row, or
            an (NCP, group) cell is empty
        InvalidConfiguration: Access fractions outside [0, 1]
    """
    ncp_names = [c for c in supply.columns if c not in (FOREST_TYPE, REPLICATE)]

    for ncp in ncp_names:
        if ncp not in access.index:
            raise MissingAccessEntry(ncp)

    table = access.loc[ncp_names]
    for ncp in ncp_names:
        for group in table.columns:
            if pd.isna(table.at[ncp, group]):
                raise MissingAccessEntry(ncp, str(group))

    validate_access_table(table)

    unused = [n for n in access.index if n not in ncp_names]
    if unused:
        logger.debug(f"Access rows without supply ignored: {unused}")

    access_long = (
        table.rename_axis(index=NCP, columns=None)
        .reset_index()
        .melt(id_vars=NCP, var_name=GROUP, value_name=ACCESS)
    )

    realised = supply_to_long(supply).merge(access_long, on=NCP, how="inner")
    realised[REALISED_SUPPLY] = realised[POTENTIAL_SUPPLY] * realised[ACCESS]

    realised = realised[[
        NCP, FOREST_TYPE, REPLICATE, GROUP,
        POTENTIAL_SUPPLY, ACCESS, REALISED_SUPPLY,
    ]]

    logger.info(
        f"Realised supply: {len(ncp_names)} NCPs x {len(table.columns)} groups "
        f"-> {len(realised)} rows"
    )
    return ensure_deterministic_sort(realised, [NCP, FOREST_TYPE, REPLICATE, GROUP])
