# -*- coding: utf-8 -*-
"""
psychometric/results.py  •  PSE pipeline

Result tables handed to export and plotting:

  - build_result_table   one row per (ID?, Condition) unit, failed fits included
  - summarise_pse        mean / SD of defined individual PSEs per Condition
  - fitted_curves        expit(a + b x) on a grid (plot data only)
  - resolve_x_bounds     x_min / x_max for plots (config value or data range)
"""
from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from psychometric.aggregate import Unit, unit_order
from psychometric.fit_logistic import logistic
from psychometric.pse import PSEResult

RESULT_COLUMNS: List[str] = ["Condition", "a", "b", "pse", "p.value"]
DIAGNOSTIC_COLUMNS: List[str] = [
    "se.a", "se.b", "z.value", "n.trials", "n.levels", "converged", "fit.status", "pse.defined",
]


def _as_list(results: Union[Mapping[Unit, PSEResult], Iterable[PSEResult]]) -> List[PSEResult]:
    if isinstance(results, Mapping):
        return list(results.values())
    return list(results)


def build_result_table(results: Union[Mapping[Unit, PSEResult], Iterable[PSEResult]],
                       individual: Optional[bool] = None) -> pd.DataFrame:
    """
    Columns: [ID,] Condition, a, b, pse, p.value, then diagnostics.
    Rows ordered by ID then Condition (same key order as the aggregation).
    """
    items = sorted(_as_list(results), key=lambda r: unit_order(r.unit))
    if individual is None:
        individual = bool(items) and items[0].unit[0] is not None

    cols = (["ID"] if individual else []) + RESULT_COLUMNS + DIAGNOSTIC_COLUMNS
    rows = []
    for r in items:
        f = r.fit
        uid, cond = r.unit
        row = [uid] if individual else []
        row += [
            cond, f.intercept, f.slope, r.pse, f.slope_p_value,
            f.intercept_se, f.slope_se, f.z_value, f.n_trials, f.n_levels,
            f.converged, f.status, r.pse_defined,
        ]
        rows.append(row)
    return pd.DataFrame(rows, columns=cols)


def summarise_pse(table: pd.DataFrame) -> pd.DataFrame:
    """Per Condition: mPSE, sdPSE (ddof=1), n over rows with a defined PSE."""
    conditions = pd.unique(table["Condition"])
    ok = table[table["pse.defined"].astype(bool)]
    agg = ok.groupby("Condition", sort=False)["pse"].agg(mPSE="mean", sdPSE="std", n="count")
    out = agg.reindex(conditions)
    out["n"] = out["n"].fillna(0).astype(int)
    out.index.name = "Condition"
    return out.reset_index()


def resolve_x_bounds(x_values: Iterable[float], x_min: Optional[float] = None,
                     x_max: Optional[float] = None) -> Tuple[float, float]:
    x = np.asarray(list(x_values), dtype=float)
    x = x[np.isfinite(x)]
    lo = float(x_min) if x_min is not None else (float(x.min()) if x.size else 0.0)
    hi = float(x_max) if x_max is not None else (float(x.max()) if x.size else 1.0)
    if hi <= lo:
        lo, hi = lo - 0.5, lo + 0.5
    return lo, hi


def fitted_curves(table: pd.DataFrame, x_min: float, x_max: float, n_points: int = 200) -> pd.DataFrame:
    """Long table [ID,] Condition, X, p for every row with a converged fit."""
    grid = np.linspace(float(x_min), float(x_max), int(n_points))
    keys = (["ID"] if "ID" in table.columns else []) + ["Condition"]
    frames = []
    for _, row in table[table["converged"].astype(bool)].iterrows():
        df = pd.DataFrame({"X": grid, "p": logistic(grid, row["a"], row["b"])})
        for k in reversed(keys):
            df.insert(0, k, row[k])
        frames.append(df)
    if not frames:
        return pd.DataFrame(columns=keys + ["X", "p"])
    return pd.concat(frames, ignore_index=True)
