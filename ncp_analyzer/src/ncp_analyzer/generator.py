"""
Synthetic indicator generation.

Draws per-replicate raw indicator values for each forest type from
normal distributions. The random source is always an explicit argument.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from ncp_analyzer.config import ForestTypeSpec
from ncp_analyzer.errors import InvalidConfiguration
from ncp_analyzer.schema import FOREST_TYPE, REPLICATE

logger = logging.getLogger(__name__)


def _check_forest_types(forest_types: Sequence[ForestTypeSpec]) -> List[str]:
    """Validate sampling design and return the shared indicator names."""
    if not forest_types:
        raise InvalidConfiguration("At least one forest type is required")

    indicator_sets = {}
    for ft in forest_types:
        if ft.n_replicates <= 0:
            raise InvalidConfiguration(
                f"Forest type {ft.name!r} has n_replicates={ft.n_replicates}; must be > 0"
            )
        for name, dist in ft.indicators.items():
            if dist.sd < 0 or not np.isfinite(dist.sd) or not np.isfinite(dist.mean):
                raise InvalidConfiguration(
                    f"Indicator {ft.name}.{name} has invalid distribution "
                    f"(mean={dist.mean}, sd={dist.sd})"
                )
        indicator_sets[ft.name] = frozenset(ft.indicators)

    reference = next(iter(indicator_sets.values()))
    for name, indicators in indicator_sets.items():
        if indicators != reference:
            raise InvalidConfiguration(
                f"Forest type {name!r} defines indicators {sorted(indicators)}, "
                f"expected {sorted(reference)}"
            )

    return sorted(reference)


def generate_indicators(
    forest_types: Sequence[ForestTypeSpec],
    seed: Any
) -> pd.DataFrame:
    """
    Sample raw indicator values for every (forest_type, replicate).

    Args:
        forest_types: Sampling design per forest type
        seed: Integer seed or numpy Generator. Sampling is reproducible for a
            given seed.

    Returns:
        DataFrame with columns: forest_type, replicate, <indicator>...
        Replicates are numbered from 1 within each forest type.

    Raises:
        InvalidConfiguration: Non-positive replicate counts, negative sd, or
            forest types that do not share the same indicators
    """
    indicator_names = _check_forest_types(forest_types)
    rng = np.random.default_rng(seed)

    frames = []
    for ft in forest_types:
        n = ft.n_replicates
        columns: Dict[str, Any] = {
            FOREST_TYPE: [ft.name] * n,
            REPLICATE: np.arange(1, n + 1),
        }
        for name in indicator_names:
            dist = ft.indicators[name]
            columns[name] = rng.normal(loc=dist.mean, scale=dist.sd, size=n)
        frames.append(pd.DataFrame(columns))

    indicators = pd.concat(frames, ignore_index=True)
    logger.info(
        f"Generated {len(indicators)} indicator records "
        f"({len(forest_types)} forest types, {len(indicator_names)} indicators)"
    )
    return indicators
