from __future__ import annotations

import os
import sys
from pathlib import Path

import pandas as pd
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _counts_to_trials(counts):
    """{(ID, Condition): {x: (ones, n)}} → one row per trial."""
    rows = []
    for (pid, cond), levels in counts.items():
        for x, (ones, n) in levels.items():
            rows += [(pid, cond, float(x), 1)] * ones
            rows += [(pid, cond, float(x), 0)] * (n - ones)
    return pd.DataFrame(rows, columns=["ID", "Condition", "X", "Y"])


@pytest.fixture
def counts_to_trials():
    return _counts_to_trials


@pytest.fixture
def scenario_trials():
    # A: mostly 1 at low X, mostly 0 at high X; B reversed. n=10 per cell.
    return _counts_to_trials({
        (1, "A"): {1: (8, 10), 2: (5, 10), 3: (2, 10)},
        (1, "B"): {1: (2, 10), 2: (5, 10), 3: (8, 10)},
        (2, "A"): {1: (9, 10), 2: (6, 10), 3: (2, 10)},
        (2, "B"): {1: (1, 10), 2: (4, 10), 3: (8, 10)},
    })
