"""
Table I/O for the NCP Analyzer.

Loads access/priority overrides from an Excel workbook (sheets matched
case-insensitively) and saves result tables as CSV and Excel.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ncp_analyzer.errors import InvalidConfiguration
from ncp_analyzer.schema import NCP, OPTIONAL_SHEETS
from ncp_analyzer.utils import normalize_columns, pick_col

logger = logging.getLogger(__name__)

NCP_COLUMN_CANDIDATES = ["ncp", "ncp_name"]


def find_sheet(
    sheet_names: List[str],
    candidates: List[str],
    required: bool = False,
    context: str = ""
) -> Optional[str]:
    """
    Find a sheet name case-insensitively with whitespace trimming.

    Args:
        sheet_names: List of available sheet names in workbook
        candidates: List of possible sheet names to match
        required: If True, raise ValueError when not found
        context: Context string for error messages

    Returns:
        Matched sheet name or None if not found and not required
    """
    normalized = {s.strip().lower(): s for s in sheet_names}

    for candidate in candidates:
        candidate_lower = candidate.strip().lower()
        if candidate_lower in normalized:
            return normalized[candidate_lower]

    if required:
        raise ValueError(
            f"Required sheet not found{f' for {context}' if context else ''}. "
            f"Tried: {candidates}. Available: {sheet_names}"
        )

    return None


def sheet_to_table(df: pd.DataFrame, sheet_name: str) -> pd.DataFrame:
    """
    Convert a sheet with an ncp column plus one column per group into an
    NCP-indexed numeric table.
    """
    df = normalize_columns(df)
    ncp_col = pick_col(df, NCP_COLUMN_CANDIDATES, required=True, context=sheet_name)

    table = df.dropna(subset=[ncp_col]).copy()
    table[ncp_col] = table[ncp_col].astype(str).str.strip()
    table = table.set_index(ncp_col)
    table.index.name = NCP
    table.columns = [str(c) for c in table.columns]

    if table.index.duplicated().any():
        dupes = table.index[table.index.duplicated()].unique().tolist()
        raise InvalidConfiguration(f"Duplicate NCP rows in {sheet_name}: {dupes}")

    try:
        return table.astype(float)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"{sheet_name} contains non-numeric values") from None


def load_workbook(
    input_path: Path,
    sheets: Optional[List[str]] = None
) -> Tuple[Dict[str, pd.DataFrame], List[str]]:
    """
    Load access/priority tables from an Excel workbook.

    Args:
        input_path: Path to Excel file
        sheets: Sheet keys to look for (default: ACCESS, PRIORITY)

    Returns:
        Tuple of (dict of sheet key -> NCP-indexed table, list of missing sheets)

    Raises:
        FileNotFoundError: If input file doesn't exist
        InvalidConfiguration: If a sheet is malformed
    """
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    logger.info(f"Loading workbook: {input_path}")

    sheets = sheets or OPTIONAL_SHEETS
    data: Dict[str, pd.DataFrame] = {}
    missing: List[str] = []

    with pd.ExcelFile(input_path, engine="openpyxl") as xl:
        available_sheets = xl.sheet_names
        logger.info(f"Available sheets: {available_sheets}")

        for sheet_key in sheets:
            sheet_name = find_sheet(available_sheets, [sheet_key])
            if sheet_name:
                logger.info(f"Loading sheet: {sheet_name}")
                df = pd.read_excel(xl, sheet_name=sheet_name)
                data[sheet_key] = sheet_to_table(df, sheet_name)
            else:
                logger.warning(f"Sheet not found: {sheet_key}")
                missing.append(sheet_key)

    return data, missing


def save_csv(df: pd.DataFrame, path: Path, index: bool = False) -> None:
    """Save DataFrame to CSV with consistent encoding."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index, encoding="utf-8-sig")
    logger.info(f"Saved CSV: {path} ({len(df)} rows)")


def save_excel(
    dfs: Dict[str, pd.DataFrame],
    path: Path,
    index: bool = False
) -> None:
    """Save multiple DataFrames to Excel with each as a sheet."""
    path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, df in dfs.items():
            # Excel sheet names limited to 31 chars
            safe_name = sheet_name[:31]
            df.to_excel(writer, sheet_name=safe_name, index=index)

    logger.info(f"Saved Excel: {path} ({len(dfs)} sheets)")


def save_outputs(
    tables: Dict[str, pd.DataFrame],
    output_dir: Path,
    workbook_name: str = "netncp_tables.xlsx"
) -> Dict[str, Path]:
    """
    Save all tables as both CSV and combined Excel.

    Returns dict of table name -> CSV path
    """
    tables_dir = output_dir / "tables"
    tables_dir.mkdir(parents=True, exist_ok=True)

    saved_paths: Dict[str, Path] = {}

    for name, df in tables.items():
        csv_path = tables_dir / f"{name}.csv"
        save_csv(df, csv_path)
        saved_paths[name] = csv_path

    if tables:
        xlsx_path = tables_dir / workbook_name
        save_excel(tables, xlsx_path)
        saved_paths["_combined_xlsx"] = xlsx_path

    return saved_paths
