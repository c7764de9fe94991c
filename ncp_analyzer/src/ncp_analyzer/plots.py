"""
Figures for the NCP Analyzer.

- SB curves per NCP with observed realised supply overlaid
- netNCP mean +/- sd per stakeholder group and forest type
- Relative sensitivity change per group, faceted by perturbation type
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, Optional, Sequence

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ncp_analyzer.config import NCPSpec
from ncp_analyzer.schema import (
    BASELINE,
    BENEFIT,
    CHANGE,
    FOREST_TYPE,
    GROUP,
    NCP,
    REALISED_SUPPLY,
    SENSITIVITY_DETAIL,
    SENSITIVITY_TYPE,
)
from ncp_analyzer.supply_benefit import sb_curve
from ncp_analyzer.utils import format_change

logger = logging.getLogger(__name__)

PLOT_STYLE = {
    "figure.figsize": (10, 6),
    "figure.dpi": 150,
    "font.size": 10,
    "axes.titlesize": 12,
    "axes.labelsize": 10,
}


def _save(fig, path: Path) -> Path:
    fig.tight_layout()
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Generated: {path}")
    return path


def _grouped_bars(ax, pivot: pd.DataFrame, errors: Optional[pd.DataFrame] = None) -> None:
    """Draw one bar per column for every row of pivot."""
    n_series = max(len(pivot.columns), 1)
    width = 0.8 / n_series
    x = np.arange(len(pivot.index))

    for i, col in enumerate(pivot.columns):
        yerr = None
        if errors is not None and col in errors.columns:
            yerr = np.nan_to_num(errors[col].to_numpy(dtype=float))
        ax.bar(
            x - 0.4 + width * (i + 0.5),
            pivot[col].to_numpy(dtype=float),
            width,
            yerr=yerr,
            capsize=3 if yerr is not None else 0,
            label=str(col),
        )

    ax.set_xticks(x)
    ax.set_xticklabels([str(i) for i in pivot.index])
    ax.axhline(0, color="gray", linewidth=0.8)


def plot_sb_curves(
    ncps: Sequence[NCPSpec],
    benefits: pd.DataFrame,
    path: Path
) -> Path:
    """One subplot per NCP: SB curve plus observed (realised supply, benefit)."""
    n = len(ncps)
    ncols = min(3, n)
    nrows = math.ceil(n / ncols)

    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3.2 * nrows), squeeze=False)

    for ax, ncp in zip(axes.flat, ncps):
        curve = sb_curve(ncp)
        ax.plot(curve["supply"], curve["benefit"], color="black", linewidth=1.5, label="SB curve")

        observed = benefits[benefits[NCP] == ncp.name]
        for forest_type, sub in observed.groupby(FOREST_TYPE, sort=True):
            ax.scatter(
                sub[REALISED_SUPPLY], sub[BENEFIT],
                alpha=0.7, s=25, edgecolors="white", linewidth=0.5,
                label=str(forest_type),
            )

        if ncp.threshold is not None:
            ax.axvline(ncp.threshold, color="gray", linestyle="--", alpha=0.5)

        ax.axhline(0, color="gray", linewidth=0.8)
        ax.set_title(f"{ncp.name}\n({ncp.shape.value})")
        ax.set_xlabel("Realised supply")
        ax.set_ylabel("Benefit")
        ax.legend(fontsize=7)

    for ax in list(axes.flat)[n:]:
        ax.set_visible(False)

    return _save(fig, path)


def plot_net_ncp(net_ncp_overall: pd.DataFrame, path: Path) -> Path:
    """Bar chart of netNCP mean +/- sd per group, one bar per forest type."""
    fig, ax = plt.subplots()

    means = net_ncp_overall.pivot(index=GROUP, columns=FOREST_TYPE, values="mean")
    sds = net_ncp_overall.pivot(index=GROUP, columns=FOREST_TYPE, values="sd")
    _grouped_bars(ax, means, sds)

    ax.set_xlabel("Stakeholder group")
    ax.set_ylabel("netNCP (mean ± sd)")
    ax.set_title("netNCP by Stakeholder Group and Forest Type")
    ax.legend(title="Forest type")

    return _save(fig, path)


def plot_sensitivity(relative_change: pd.DataFrame, path: Path) -> Path:
    """Relative change per group x forest type, one panel per perturbation type."""
    perturbed = relative_change[relative_change[SENSITIVITY_TYPE] != BASELINE].copy()
    types = sorted(perturbed[SENSITIVITY_TYPE].unique())

    fig, axes = plt.subplots(len(types), 1, figsize=(12, 4.5 * len(types)), squeeze=False)

    perturbed["scenario"] = [
        f"{d} {format_change(c)}"
        for d, c in zip(perturbed[SENSITIVITY_DETAIL], perturbed[CHANGE])
    ]
    perturbed["cell"] = perturbed[GROUP] + "\n" + perturbed[FOREST_TYPE]

    for ax, sens_type in zip(axes.flat, types):
        subset = perturbed[perturbed[SENSITIVITY_TYPE] == sens_type]
        pivot = subset.pivot_table(
            index="cell", columns="scenario", values="relative_change", aggfunc="first"
        )
        _grouped_bars(ax, pivot * 100)

        ax.set_title(sens_type)
        ax.set_ylabel("Relative change in netNCP (%)")
        ax.legend(fontsize=7, ncol=2, bbox_to_anchor=(1.01, 1), loc="upper left")

    return _save(fig, path)


def generate_plots(
    ncps: Sequence[NCPSpec],
    benefits: pd.DataFrame,
    net_ncp_overall: pd.DataFrame,
    output_dir: Path,
    relative_change: Optional[pd.DataFrame] = None
) -> Dict[str, Path]:
    """Generate all figures into output_dir/figures."""
    figures_dir = output_dir / "figures"
    figures_dir.mkdir(parents=True, exist_ok=True)

    plt.rcParams.update(PLOT_STYLE)
    plot_paths: Dict[str, Path] = {}

    if ncps and not benefits.empty:
        plot_paths["sb_curves"] = plot_sb_curves(ncps, benefits, figures_dir / "sb_curves.png")

    if not net_ncp_overall.empty:
        plot_paths["net_ncp"] = plot_net_ncp(net_ncp_overall, figures_dir / "net_ncp.png")

    if relative_change is not None and (relative_change[SENSITIVITY_TYPE] != BASELINE).any():
        plot_paths["sensitivity"] = plot_sensitivity(
            relative_change, figures_dir / "sensitivity.png"
        )

    return plot_paths
