# -*- coding: utf-8 -*-
"""
psychometric/simulate_trials.py  •  PSE pipeline

Synthetic trial tables for checking the fit:
    P(Y=1 | x, condition) = expit(a_c + b_c * x)

  - simulate_trials   Bernoulli draws from numpy default_rng(seed); optional
                      per-participant intercept jitter (intercept_sd)
  - expected_trials   deterministic: round(n * p) ones per level, no noise

Writes (CLI):
  - psychometric/output/simulated_trials.csv   ID, Condition, X, Y
"""
from __future__ import annotations

import argparse
import os
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from psychometric.fit_logistic import logistic
from psychometric.params import PKG

Coef = Union[float, Mapping[str, float]]


def _coef_for(coef: Coef, condition: str) -> float:
    if isinstance(coef, Mapping):
        if condition not in coef:
            raise ValueError(f"No coefficient given for condition '{condition}'.")
        return float(coef[condition])
    return float(coef)


def _expand(rows: List[tuple]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["ID", "Condition", "X", "Y"])


def simulate_trials(
    ids: Sequence,
    conditions: Sequence[str],
    x_levels: Sequence[float],
    n_per_level: int,
    intercepts: Coef,
    slopes: Coef,
    seed: int = 52,
    intercept_sd: float = 0.0,
) -> pd.DataFrame:
    """One row per trial; trial order shuffled within each participant."""
    if int(n_per_level) < 1:
        raise ValueError("Require n_per_level >= 1")
    rng = np.random.default_rng(int(seed))
    x_levels = np.asarray(x_levels, dtype=float)

    frames = []
    for pid in ids:
        shift = float(rng.normal(0.0, intercept_sd)) if intercept_sd > 0 else 0.0
        rows = []
        for cond in conditions:
            a = _coef_for(intercepts, cond) + shift
            b = _coef_for(slopes, cond)
            prob = logistic(x_levels, a, b)
            y = rng.binomial(1, np.repeat(prob, int(n_per_level)))
            xs = np.repeat(x_levels, int(n_per_level))
            rows.extend((pid, cond, float(x), int(v)) for x, v in zip(xs, y))
        df = _expand(rows)
        frames.append(df.iloc[rng.permutation(len(df))])
    return pd.concat(frames, ignore_index=True)


def expected_trials(
    ids: Sequence,
    conditions: Sequence[str],
    x_levels: Sequence[float],
    n_per_level: int,
    intercepts: Coef,
    slopes: Coef,
) -> pd.DataFrame:
    """Noise-free table with round(n * p) ones at every level."""
    rows = []
    n = int(n_per_level)
    for pid in ids:
        for cond in conditions:
            a = _coef_for(intercepts, cond)
            b = _coef_for(slopes, cond)
            for x in x_levels:
                k = int(round(n * float(logistic(x, a, b))))
                rows.extend([(pid, cond, float(x), 1)] * k + [(pid, cond, float(x), 0)] * (n - k))
    return _expand(rows)


def parse_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Simulate psychometric trials (ID, Condition, X, Y).")
    ap.add_argument("--n-ids", type=int, default=10)
    ap.add_argument("--conditions", nargs="+", default=["A", "B"])
    ap.add_argument("--x-levels", nargs="+", type=float, default=[1, 2, 3, 4, 5, 6])
    ap.add_argument("--n-per-level", type=int, default=20)
    ap.add_argument("--intercepts", nargs="+", type=float, default=[-4.2, -2.8],
                    help="One intercept per condition (same order as --conditions).")
    ap.add_argument("--slopes", nargs="+", type=float, default=[1.2, 1.2],
                    help="One slope per condition (same order as --conditions).")
    ap.add_argument("--intercept-sd", type=float, default=0.4)
    ap.add_argument("--seed", type=int, default=52)
    ap.add_argument("--out", default=os.path.join(PKG, "output", "simulated_trials.csv"))
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> str:
    args = parse_args(argv)
    if len(args.intercepts) != len(args.conditions) or len(args.slopes) != len(args.conditions):
        raise ValueError("Need one intercept and one slope per condition.")

    df = simulate_trials(
        ids=list(range(1, int(args.n_ids) + 1)),
        conditions=args.conditions,
        x_levels=args.x_levels,
        n_per_level=args.n_per_level,
        intercepts=dict(zip(args.conditions, args.intercepts)),
        slopes=dict(zip(args.conditions, args.slopes)),
        seed=args.seed,
        intercept_sd=args.intercept_sd,
    )
    os.makedirs(os.path.dirname(os.path.abspath(args.out)), exist_ok=True)
    df.to_csv(args.out, index=False)

    for cond, a, b in zip(args.conditions, args.intercepts, args.slopes):
        print(f"{cond}: a={a:.3f} b={b:.3f} true PSE={-a / b:.4f}")
    print(f"Saved {len(df)} simulated trials → {args.out}")
    return args.out


if __name__ == "__main__":
    main()
