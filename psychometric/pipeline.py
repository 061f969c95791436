# -*- coding: utf-8 -*-
"""
psychometric/pipeline.py  •  PSE pipeline

trials → cells → logistic fits → PSE → result tables, at the individual
(ID, Condition) and group (Condition) levels.

Pure function of the validated input: no global state, no randomness, so two
runs on the same table are bit-identical. Units are fitted one after another
in key order; each fit only reads its own cells.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from psychometric.aggregate import GroupCell, Unit, aggregate_group, aggregate_individual, cells_by_unit
from psychometric.fit_logistic import fit_cells
from psychometric.pse import PSE_FLOOR, PSE_UNDEFINED_SLOPE, PSEResult, compute_pse
from psychometric.results import build_result_table
from psychometric.trials import TrialDataset

FIT_DEFAULTS: Dict[str, Any] = {
    "max_iter": 25,
    "tol": 1e-8,
    "coef_limit": 1e6,
    "pse_floor": PSE_FLOOR,
}


@dataclass(frozen=True)
class PipelineSummary:
    n_rows: int
    n_valid: int
    n_excluded: int
    excluded_by_reason: Mapping[str, int]
    n_units_individual: int
    n_units_group: int
    n_failed_individual: int
    n_failed_group: int
    n_undefined_pse: int

    def lines(self) -> List[str]:
        reasons = ", ".join(f"{k}={v}" for k, v in self.excluded_by_reason.items()) or "none"
        return [
            f"rows: {self.n_rows} read, {self.n_valid} valid, {self.n_excluded} excluded ({reasons})",
            f"individual fits: {self.n_units_individual} unit(s), {self.n_failed_individual} failed",
            f"group fits: {self.n_units_group} condition(s), {self.n_failed_group} failed",
            f"undefined PSE (zero slope): {self.n_undefined_pse}",
        ]

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["excluded_by_reason"] = dict(self.excluded_by_reason)
        return d


@dataclass
class PSEAnalysis:
    dataset: TrialDataset
    cells_individual: List[GroupCell]
    cells_group: List[GroupCell]
    individual: Dict[Unit, PSEResult]
    group: Dict[Unit, PSEResult]
    individual_table: pd.DataFrame
    group_table: pd.DataFrame
    summary: PipelineSummary
    params: Dict[str, Any] = field(default_factory=dict)


def _fit_options(p: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    opts = dict(FIT_DEFAULTS)
    if p:
        opts.update({k: p[k] for k in FIT_DEFAULTS if k in p and p[k] is not None})
    return {
        "max_iter": int(opts["max_iter"]),
        "tol": float(opts["tol"]),
        "coef_limit": float(opts["coef_limit"]),
        "pse_floor": float(opts["pse_floor"]),
    }


def fit_units(cells: Sequence[GroupCell], p: Optional[Mapping[str, Any]] = None) -> Dict[Unit, PSEResult]:
    """One logistic fit + PSE per (ID?, Condition) unit, keyed by unit."""
    o = _fit_options(p)
    out: Dict[Unit, PSEResult] = {}
    for unit, unit_cells in cells_by_unit(cells).items():
        fit = fit_cells(unit_cells, max_iter=o["max_iter"], tol=o["tol"], coef_limit=o["coef_limit"])
        out[unit] = compute_pse(fit, floor=o["pse_floor"])
    return out


def analyse_dataset(dataset: TrialDataset, p: Optional[Mapping[str, Any]] = None) -> PSEAnalysis:
    cells_ind = aggregate_individual(dataset)
    cells_grp = aggregate_group(dataset)

    res_ind = fit_units(cells_ind, p)
    res_grp = fit_units(cells_grp, p)

    all_res = list(res_ind.values()) + list(res_grp.values())
    report = dataset.report
    summary = PipelineSummary(
        n_rows=report.n_rows,
        n_valid=report.n_valid,
        n_excluded=report.n_rejected,
        excluded_by_reason=dict(report.by_reason),
        n_units_individual=len(res_ind),
        n_units_group=len(res_grp),
        n_failed_individual=sum(not r.fit.valid for r in res_ind.values()),
        n_failed_group=sum(not r.fit.valid for r in res_grp.values()),
        n_undefined_pse=sum(r.pse_status == PSE_UNDEFINED_SLOPE for r in all_res),
    )

    return PSEAnalysis(
        dataset=dataset,
        cells_individual=cells_ind,
        cells_group=cells_grp,
        individual=res_ind,
        group=res_grp,
        individual_table=build_result_table(res_ind, individual=True),
        group_table=build_result_table(res_grp, individual=False),
        summary=summary,
        params=_fit_options(p),
    )


def run_pipeline(df_trials: pd.DataFrame, p: Optional[Mapping[str, Any]] = None) -> PSEAnalysis:
    """Validate a raw trial table and run the full analysis. `p` may carry `columns` and fit options."""
    columns = p.get("columns") if p else None
    dataset = TrialDataset.from_frame(df_trials, columns=columns)
    return analyse_dataset(dataset, p)
