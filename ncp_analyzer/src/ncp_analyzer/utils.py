"""
Utility functions for the NCP Analyzer.

Provides column matching, deterministic sorting and output helpers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd


def pick_col(
    df: pd.DataFrame,
    candidates: Sequence[str],
    required: bool = False,
    context: str = ""
) -> Optional[str]:
    """
    Find the first column in df matching any candidate (case-insensitive).

    Args:
        df: DataFrame to search
        candidates: List of possible column names
        required: If True, raise ValueError when not found
        context: Context string for error messages

    Returns:
        Matched column name or None if not found and not required

    Raises:
        ValueError: If required=True and no match found
    """
    df_cols_lower = {str(c).lower().strip(): c for c in df.columns}

    for candidate in candidates:
        candidate_lower = candidate.lower().strip()
        if candidate_lower in df_cols_lower:
            return df_cols_lower[candidate_lower]

    if required:
        raise ValueError(
            f"Required column not found{f' for {context}' if context else ''}. "
            f"Tried: {list(candidates)}. Available: {list(df.columns)}"
        )

    return None


def normalize_columns(df: pd.DataFrame, inplace: bool = True) -> pd.DataFrame:
    """Trim whitespace from column names."""
    if not inplace:
        df = df.copy()

    df.columns = [str(c).strip() for c in df.columns]
    return df


def ensure_deterministic_sort(
    df: pd.DataFrame,
    sort_cols: List[str],
    ascending: bool = True
) -> pd.DataFrame:
    """
    Sort DataFrame deterministically.

    Always uses stable sort and resets the index afterwards.
    """
    valid_cols = [c for c in sort_cols if c in df.columns]

    if not valid_cols:
        return df.reset_index(drop=True)

    return df.sort_values(
        by=valid_cols,
        ascending=ascending,
        kind="stable",
        na_position="last"
    ).reset_index(drop=True)


def format_change(change: float) -> str:
    """Format a perturbation magnitude as a signed percentage, e.g. '+10%'."""
    return f"{change * 100:+.0f}%"


def create_output_dirs(output_dir: Path) -> Dict[str, Path]:
    """Create output directory structure."""
    dirs = {
        "root": output_dir,
        "tables": output_dir / "tables",
        "figures": output_dir / "figures",
        "reports": output_dir / "reports",
    }

    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)

    return dirs
