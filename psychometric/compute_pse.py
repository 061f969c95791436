#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
psychometric/compute_pse.py  •  PSE pipeline

Per participant and condition: logistic regression of Y on X, intercept (a),
slope (b), Wald p-value of the slope and PSE = -a/b. Same at the group
(condition) level.

Reads:
  - trials file from params `data_path` (or --data): .csv / .txt / .xlsx / .xlsm
    with columns ID, Condition, X, Y (names remappable in YAML)
  - psychometric/default_params.yml or PSE_CONFIG / --config

Writes (into psychometric/output or --out-dir):
  - PSE_data.csv / PSE_data.xlsx        individual table
  - PSE_group.csv / PSE_group.xlsx      group table
  - PSE_summary.csv                     mean / SD of individual PSE per condition
  - cells_individual.csv                prop, ones, n, zeros per ID x Condition x X
  - cells_group.csv                     prop, ones, n, zeros per Condition x X
  - run_manifest.json

Every CSV carries a run_hash column matching the manifest.
"""
from __future__ import annotations

import argparse
import os
import warnings
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from psychometric.aggregate import cells_to_frame
from psychometric.errors import InvalidInputError, PSEWarning
from psychometric.manifest import compute_run_hash, sha256_of_file, write_run_manifest
from psychometric.params import PKG, ROOT, load_params
from psychometric.pipeline import PSEAnalysis, run_pipeline
from psychometric.results import summarise_pse

CSV_SUFFIXES = (".csv", ".txt", ".tsv")
EXCEL_SUFFIXES = (".xlsx", ".xlsm")


# -----------------------------------------------------------------------------#
# Input
# -----------------------------------------------------------------------------#
def read_trials(path: str, sheet=0, sep: str = ",") -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Missing trials file: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext in CSV_SUFFIXES:
        return pd.read_csv(path, sep=("\t" if ext == ".tsv" and sep == "," else sep))
    if ext in EXCEL_SUFFIXES:
        return pd.read_excel(path, sheet_name=sheet, engine="openpyxl")
    raise ValueError(f"Unsupported trials file type '{ext}'; expected one of {CSV_SUFFIXES + EXCEL_SUFFIXES}.")


def combine_condition_factors(df: pd.DataFrame, factors: Sequence[str], target: str = "Condition") -> pd.DataFrame:
    """Join several factor columns into one Condition label, e.g. Female + Brown → Female_Brown."""
    factors = list(factors)
    missing = [c for c in factors if c not in df.columns]
    if missing:
        raise InvalidInputError(f"condition_factors refer to missing column(s) {missing}.")
    df = df.copy()
    incomplete = df[factors].isna().any(axis=1)
    combined = df[factors].astype(str).agg("_".join, axis=1)
    df[target] = combined.where(~incomplete, np.nan)
    return df


def _resolve_data_path(data_path: str, params_path: str) -> str:
    if os.path.isabs(data_path):
        return data_path
    for base in (os.getcwd(), os.path.dirname(params_path), ROOT):
        cand = os.path.join(base, data_path)
        if os.path.exists(cand):
            return os.path.abspath(cand)
    return os.path.abspath(data_path)


# -----------------------------------------------------------------------------#
# Output
# -----------------------------------------------------------------------------#
def _stamp(df: pd.DataFrame, run_hash: str) -> pd.DataFrame:
    df = df.copy()
    df["run_hash"] = run_hash
    return df


def write_outputs(analysis: PSEAnalysis, out_dir: str, run_hash: str, write_xlsx: bool = True) -> Dict[str, str]:
    os.makedirs(out_dir, exist_ok=True)
    tables = {
        "PSE_data": analysis.individual_table,
        "PSE_group": analysis.group_table,
        "PSE_summary": summarise_pse(analysis.individual_table),
        "cells_individual": cells_to_frame(analysis.cells_individual, individual=True),
        "cells_group": cells_to_frame(analysis.cells_group, individual=False),
    }

    outputs: Dict[str, str] = {}
    for stem, df in tables.items():
        path = os.path.join(out_dir, f"{stem}.csv")
        _stamp(df, run_hash).to_csv(path, index=False)
        outputs[f"{stem}_csv"] = path

    if write_xlsx:
        for stem in ("PSE_data", "PSE_group"):
            path = os.path.join(out_dir, f"{stem}.xlsx")
            with pd.ExcelWriter(path, engine="openpyxl") as writer:
                _stamp(tables[stem], run_hash).to_excel(writer, sheet_name=stem, index=False)
            outputs[f"{stem}_xlsx"] = path

    return outputs


# -----------------------------------------------------------------------------#
# Main
# -----------------------------------------------------------------------------#
def parse_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Compute logistic fits and PSE per participant and condition.")
    ap.add_argument(
        "--config",
        default=os.getenv("PSE_CONFIG"),
        help="Path to YAML config (default: env var PSE_CONFIG; else psychometric/default_params.yml).",
    )
    ap.add_argument("--data", default=None, help="Trials file; overrides data_path from the YAML.")
    ap.add_argument("--out-dir", default=None, help="Output directory (default: psychometric/output).")
    ap.add_argument("--no-xlsx", action="store_true", help="Skip the .xlsx copies of the result tables.")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> PSEAnalysis:
    args = parse_args(argv)
    p, params_path = load_params(args.config)
    if args.data:
        p["data_path"] = args.data
    if args.no_xlsx:
        p["write_xlsx"] = False

    data_path = _resolve_data_path(str(p["data_path"]), params_path)
    out_dir = os.path.abspath(args.out_dir) if args.out_dir else os.path.join(PKG, "output")

    df_trials = read_trials(data_path, sheet=p["sheet"], sep=p["sep"])
    if p["condition_factors"]:
        df_trials = combine_condition_factors(df_trials, p["condition_factors"], p["columns"]["condition"])

    input_sha = sha256_of_file(data_path)
    run_hash = compute_run_hash(p, input_sha)

    with warnings.catch_warnings(record=True) as caught:
        # appended: a caller's "error" filter (e.g. -W error::...) still wins
        warnings.simplefilter("always", PSEWarning, append=True)
        analysis = run_pipeline(df_trials, p)

    outputs = write_outputs(analysis, out_dir, run_hash, write_xlsx=bool(p["write_xlsx"]))
    manifest_path = write_run_manifest(
        out_dir=out_dir,
        run_hash=run_hash,
        config_path=params_path,
        params=p,
        input_path=data_path,
        input_sha256=input_sha,
        outputs=outputs,
        summary=analysis.summary.as_dict(),
        repo_root=ROOT,
    )

    for w in caught:
        print(f"warning [{w.category.__name__}]: {w.message}")

    print(analysis.individual_table[["ID", "Condition", "a", "b", "pse", "p.value"]].head().to_string(index=False))
    for line in analysis.summary.lines():
        print(line)
    print(f"Saved PSE tables → {out_dir}")
    print(f"Wrote run manifest → {manifest_path}")
    print(f"run_hash={run_hash}")
    return analysis


if __name__ == "__main__":
    main()
