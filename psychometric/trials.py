# -*- coding: utf-8 -*-
"""
psychometric/trials.py  •  PSE pipeline

Validated, immutable trial table.

Input: one row per trial with
  - ID         participant identifier (non-empty; str or int)
  - Condition  categorical label (several factors pre-combined, e.g. Female_Brown)
  - X          continuous predictor (finite)
  - Y          binary response, exactly 0 or 1

Rows failing validation are excluded and counted per reason
(missing_id, missing_condition, non_finite_x, non_binary_y); a single
InvalidRecordWarning per reason is emitted. Missing columns, an empty table or
a table without a single valid row raise InvalidInputError.
"""
from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from psychometric.errors import InvalidInputError, InvalidRecordWarning

UnitId = Union[int, str]

DEFAULT_COLUMNS: Dict[str, str] = {"id": "ID", "condition": "Condition", "x": "X", "y": "Y"}
REJECTION_REASONS: Tuple[str, ...] = ("missing_id", "missing_condition", "non_finite_x", "non_binary_y")


@dataclass(frozen=True)
class TrialRecord:
    id: UnitId
    condition: str
    x: float
    y: int


@dataclass(frozen=True)
class RejectionReport:
    """Row accounting of one validation pass."""
    n_rows: int
    by_reason: Mapping[str, int] = field(default_factory=dict)

    @property
    def n_rejected(self) -> int:
        return int(sum(self.by_reason.values()))

    @property
    def n_valid(self) -> int:
        return self.n_rows - self.n_rejected


def _is_missing(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() == ""
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def _label(v: Any) -> Any:
    """Numpy scalars → python; integral floats → int (pandas upcasts int columns holding NaN)."""
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return v


def _normalise_id(v: Any) -> Optional[UnitId]:
    if _is_missing(v):
        return None
    v = _label(v)
    if isinstance(v, bool):
        return str(v)
    if isinstance(v, int):
        return v
    return str(v).strip()


def _normalise_condition(v: Any) -> Optional[str]:
    if _is_missing(v):
        return None
    return str(_label(v)).strip()


def resolve_columns(columns: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    cols = dict(DEFAULT_COLUMNS)
    if columns:
        unknown = set(columns).difference(DEFAULT_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown column role(s): {sorted(unknown)}; expected {sorted(DEFAULT_COLUMNS)}.")
        cols.update({k: str(v) for k, v in columns.items()})
    return cols


class TrialDataset:
    """Immutable collection of validated TrialRecords plus the rejection report."""

    def __init__(self, records: Iterable[TrialRecord], report: RejectionReport):
        self._records: Tuple[TrialRecord, ...] = tuple(records)
        self.report = report

    @property
    def records(self) -> Tuple[TrialRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TrialRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"TrialDataset(n_valid={len(self)}, n_rejected={self.report.n_rejected})"

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(r.id, r.condition, r.x, r.y) for r in self._records],
            columns=["ID", "Condition", "X", "Y"],
        )

    # ------------------------------------------------------------------ build
    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]],
                  columns: Optional[Mapping[str, str]] = None) -> "TrialDataset":
        return cls.from_frame(pd.DataFrame.from_records(list(rows)), columns=columns)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, columns: Optional[Mapping[str, str]] = None) -> "TrialDataset":
        cols = resolve_columns(columns)

        missing = [cols[role] for role in ("id", "condition", "x", "y") if cols[role] not in df.columns]
        if missing:
            raise InvalidInputError(
                f"Trial table is missing required column(s) {missing}; "
                f"found {list(map(str, df.columns))}."
            )
        if len(df) == 0:
            raise InvalidInputError("Trial table is empty.")

        ids = [_normalise_id(v) for v in df[cols["id"]].tolist()]
        conds = [_normalise_condition(v) for v in df[cols["condition"]].tolist()]
        xs = pd.to_numeric(df[cols["x"]], errors="coerce").to_numpy(dtype=float)
        ys = pd.to_numeric(df[cols["y"]], errors="coerce").to_numpy(dtype=float)

        counts = {reason: 0 for reason in REJECTION_REASONS}
        records = []
        for rid, cond, x, y in zip(ids, conds, xs, ys):
            # first failing check names the reason
            if rid is None:
                counts["missing_id"] += 1
            elif cond is None:
                counts["missing_condition"] += 1
            elif not math.isfinite(x):
                counts["non_finite_x"] += 1
            elif not (y == 0.0 or y == 1.0):
                counts["non_binary_y"] += 1
            else:
                records.append(TrialRecord(id=rid, condition=cond, x=float(x), y=int(y)))

        report = RejectionReport(n_rows=int(len(df)), by_reason={k: v for k, v in counts.items() if v > 0})
        for reason, n in report.by_reason.items():
            warnings.warn(
                f"Excluded {n} of {report.n_rows} trial row(s): {reason}.",
                InvalidRecordWarning,
                stacklevel=2,
            )

        if not records:
            raise InvalidInputError(f"No valid trial rows ({report.n_rows} row(s) all rejected).")

        return cls(records, report)
