# -*- coding: utf-8 -*-
"""
figures/make_pse_figures.py  •  PSE pipeline

Diagnostic / summary figures from the compute_pse.py tables:

  ind_data    proportion of "1" responses vs X, one facet per ID, one line per condition
  ind_glm     same points with fitted logistic curves and the 0.5 reference
  group_glm   group proportions, fitted curves, dashed drop lines at each PSE
  mean_PSE    mean individual PSE per condition with +SD error bar

Plot bounds come from x_min / x_max in the YAML (data range when null);
they never feed back into the fit.

Anti-contradiction: requires psychometric/output/run_manifest.json and every
input CSV to carry the same run_hash.

Outputs:
  - figures/output/<stem>.pdf
  - figures/output/<stem>.png
"""
from __future__ import annotations

import argparse
import math
import os
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib as mpl
import matplotlib.pyplot as plt

from psychometric.manifest import enforce_run_hash
from psychometric.params import PKG, load_params
from psychometric.results import fitted_curves, resolve_x_bounds

mpl.rcParams.update({
    "font.family": "DejaVu Sans",
    "font.size":   9,
    "axes.linewidth": 0.6,
    "lines.linewidth": 1.0,
    "legend.fontsize": 7,
    "xtick.labelsize": 7,
    "ytick.labelsize": 7,
    "pdf.fonttype": 42,
    "ps.fonttype": 42,
})

Y_LABEL = 'Prop. of "1" responses'
MAX_TICKS = 25


# -----------------------------------------------------------------------------#
# Helpers
# -----------------------------------------------------------------------------#
def _require(path: str, label: str) -> str:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Missing {label}: {path}")
    return path


def _condition_colors(conditions: Sequence) -> Dict[str, tuple]:
    cmap = plt.get_cmap("tab10")
    return {str(c): cmap(i % 10) for i, c in enumerate(conditions)}


def _dedupe_legend(*axes):
    handles, labels = [], []
    for ax in axes:
        h, l = ax.get_legend_handles_labels()
        handles += h
        labels += l
    seen = set()
    h2, l2 = [], []
    for h, l in zip(handles, labels):
        if l in seen or l.strip() == "":
            continue
        seen.add(l)
        h2.append(h)
        l2.append(l)
    return h2, l2


def _ticks(x_min: float, x_max: float, step: float) -> np.ndarray:
    return np.arange(x_min, x_max + 0.5 * step, step)


def _facet_grid(n: int, panel_in: float = 2.4):
    ncols = max(1, int(math.ceil(math.sqrt(n))))
    nrows = max(1, int(math.ceil(n / ncols)))
    fig, axes = plt.subplots(nrows, ncols, figsize=(panel_in * ncols, panel_in * nrows),
                             sharex=True, sharey=True, squeeze=False)
    flat = axes.ravel()
    for ax in flat[n:]:
        ax.set_visible(False)
    return fig, flat[:n]


def _style_axes(ax, bounds: Tuple[float, float], step: float, ylim01: bool = True):
    ax.set_xlim(*bounds)
    ticks = _ticks(bounds[0], bounds[1], step)
    if ticks.size <= MAX_TICKS:
        ax.set_xticks(ticks)
    if ylim01:
        ax.set_ylim(-0.02, 1.02)
    ax.grid(True, linewidth=0.3, alpha=0.5)


# -----------------------------------------------------------------------------#
# Figure builders
# -----------------------------------------------------------------------------#
def plot_individual_data(cells: pd.DataFrame, bounds: Tuple[float, float], step: float = 1.0):
    ids = list(pd.unique(cells["ID"]))
    colors = _condition_colors(pd.unique(cells["Condition"]))
    fig, axes = _facet_grid(len(ids))
    for ax, pid in zip(axes, ids):
        sub = cells[cells["ID"] == pid]
        for cond, df_c in sub.groupby("Condition", sort=False):
            df_c = df_c.sort_values("X")
            ax.plot(df_c["X"], df_c["prop"], marker="o", ms=3, color=colors[str(cond)], label=str(cond))
        ax.set_title(f"ID {pid}", fontsize=8)
        _style_axes(ax, bounds, step)
    axes[0].set_ylabel(Y_LABEL)
    h, l = _dedupe_legend(*axes)
    fig.legend(h, l, loc="upper right", title="Condition", frameon=False)
    fig.supxlabel("X")
    return fig


def plot_individual_fits(cells: pd.DataFrame, table: pd.DataFrame, bounds: Tuple[float, float],
                         step: float = 1.0, n_points: int = 200):
    ids = list(pd.unique(cells["ID"]))
    colors = _condition_colors(pd.unique(cells["Condition"]))
    curves = fitted_curves(table, bounds[0], bounds[1], n_points)
    fig, axes = _facet_grid(len(ids))
    for ax, pid in zip(axes, ids):
        sub = cells[cells["ID"] == pid]
        for cond, df_c in sub.groupby("Condition", sort=False):
            col = colors[str(cond)]
            ax.scatter(df_c["X"], df_c["prop"], s=12, color=col, label=str(cond))
            cur = curves[(curves["ID"] == pid) & (curves["Condition"] == cond)]
            if len(cur):
                ax.plot(cur["X"], cur["p"], color=col)
        ax.axhline(0.5, linestyle="--", linewidth=0.8, color="lightgrey")
        ax.set_title(f"ID {pid}", fontsize=8)
        _style_axes(ax, bounds, step)
    axes[0].set_ylabel(Y_LABEL)
    h, l = _dedupe_legend(*axes)
    fig.legend(h, l, loc="upper right", title="Condition", frameon=False)
    fig.supxlabel("X")
    return fig


def plot_group_fits(cells: pd.DataFrame, table: pd.DataFrame, bounds: Tuple[float, float],
                    step: float = 1.0, n_points: int = 200):
    colors = _condition_colors(pd.unique(cells["Condition"]))
    curves = fitted_curves(table, bounds[0], bounds[1], n_points)
    fig, ax = plt.subplots(figsize=(6.0, 4.0))

    for cond, df_c in cells.groupby("Condition", sort=False):
        col = colors[str(cond)]
        ax.scatter(df_c["X"], df_c["prop"], s=18, color=col, label=str(cond))
        cur = curves[curves["Condition"] == cond]
        if len(cur):
            ax.plot(cur["X"], cur["p"], color=col)

    ax.axhline(0.5, linestyle="--", linewidth=1.0, color="lightgrey")
    for _, row in table[table["pse.defined"].astype(bool)].iterrows():
        pse = float(row["pse"])
        if bounds[0] <= pse <= bounds[1]:
            ax.plot([pse, pse], [0.0, 0.5], linestyle="--", linewidth=1.0,
                    color=colors.get(str(row["Condition"]), "0.3"))

    _style_axes(ax, bounds, step, ylim01=False)
    ax.set_ylim(0, 1)
    ax.set_yticks(np.arange(0, 1.01, 0.25))
    ax.set_xlabel("X")
    ax.set_ylabel(Y_LABEL)
    h, l = _dedupe_legend(ax)
    ax.legend(h, l, title="Condition", loc="best", frameon=True)
    return fig


def plot_mean_pse(summary: pd.DataFrame):
    colors = _condition_colors(summary["Condition"])
    fig, ax = plt.subplots(figsize=(5.0, 4.0))
    xs = np.arange(len(summary))
    means = summary["mPSE"].to_numpy(dtype=float)
    sds = np.nan_to_num(summary["sdPSE"].to_numpy(dtype=float), nan=0.0)
    ax.bar(xs, means, width=0.5, color=[colors[str(c)] for c in summary["Condition"]])
    # upper-only error bar
    ax.errorbar(xs, means, yerr=np.vstack([np.zeros_like(sds), sds]), fmt="none",
                ecolor="grey", elinewidth=1.3, capsize=6, alpha=0.9)
    ax.set_xticks(xs)
    ax.set_xticklabels([str(c) for c in summary["Condition"]])
    ax.set_xlabel("Condition")
    ax.set_ylabel("Mean PSE")
    for x, n in zip(xs, summary["n"]):
        ax.annotate(f"n={int(n)}", (x, 0), xytext=(0, 3), textcoords="offset points",
                    ha="center", fontsize=6, color="white")
    return fig


# -----------------------------------------------------------------------------#
# Main
# -----------------------------------------------------------------------------#
def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(description="Create PSE diagnostic and summary figures.")
    p.add_argument("--config", default=os.getenv("PSE_CONFIG"),
                   help="Path to YAML config (default: env PSE_CONFIG; else default_params.yml).")
    p.add_argument("--results-dir", default=os.path.join(PKG, "output"),
                   help="Directory holding the compute_pse.py outputs.")
    p.add_argument("--out-dir", default=os.path.join(os.path.dirname(os.path.abspath(__file__)), "output"))
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> List[str]:
    args = parse_args(argv)
    params, params_path = load_params(args.config)
    res_dir = args.results_dir

    names = ["cells_individual.csv", "cells_group.csv", "PSE_data.csv", "PSE_group.csv", "PSE_summary.csv"]
    dfs = {n: pd.read_csv(_require(os.path.join(res_dir, n), n)) for n in names}
    run_hash = enforce_run_hash(res_dir, dfs)

    cells_ind = dfs["cells_individual.csv"]
    cells_grp = dfs["cells_group.csv"]
    bounds = resolve_x_bounds(cells_ind["X"], params.get("x_min"), params.get("x_max"))
    step = float(params["x_step"])
    n_points = int(params["n_points"])

    figs = {
        "ind_data": plot_individual_data(cells_ind, bounds, step),
        "ind_glm": plot_individual_fits(cells_ind, dfs["PSE_data.csv"], bounds, step, n_points),
        "group_glm": plot_group_fits(cells_grp, dfs["PSE_group.csv"], bounds, step, n_points),
        "mean_PSE": plot_mean_pse(dfs["PSE_summary.csv"]),
    }

    os.makedirs(args.out_dir, exist_ok=True)
    pdf_meta = {"Title": "PSE figures", "Subject": f"run_hash={run_hash}"}
    written = []
    for stem, fig in figs.items():
        out_pdf = os.path.join(args.out_dir, f"{stem}.pdf")
        out_png = os.path.join(args.out_dir, f"{stem}.png")
        fig.savefig(out_pdf, bbox_inches="tight", metadata=pdf_meta)
        fig.savefig(out_png, dpi=int(params.get("figure_dpi", 150)), bbox_inches="tight")
        plt.close(fig)
        written += [out_pdf, out_png]
        print(f"Saved: {out_pdf} and {out_png}")

    print(f"run_hash={run_hash}")
    print(f"config={params_path}")
    return written


if __name__ == "__main__":
    main()
