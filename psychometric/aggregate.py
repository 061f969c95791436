# -*- coding: utf-8 -*-
"""
psychometric/aggregate.py  •  PSE pipeline

Binomial count cells.

  individual level: key (ID, Condition, X)
  group level:      key (Condition, X), pooled over IDs

Keys compare exactly (one X value per stimulus level, no tolerance banding).
Cells are emitted sorted by key so that downstream fits run in a
reproducible order: numbers before strings, numbers numerically, strings
lexicographically.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from psychometric.trials import TrialRecord, UnitId

Unit = Tuple[Optional[UnitId], str]


@dataclass(frozen=True)
class GroupCell:
    id: Optional[UnitId]
    condition: str
    x: float
    ones: int
    zeros: int

    @property
    def n(self) -> int:
        return self.ones + self.zeros

    @property
    def prop(self) -> float:
        return self.ones / self.n

    @property
    def unit(self) -> Unit:
        return (self.id, self.condition)


def label_order(v: Any) -> Tuple[int, float, str]:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return (0, float(v), "")
    return (1, 0.0, str(v))


def unit_order(unit: Unit) -> Tuple[Tuple[int, float, str], Tuple[int, float, str]]:
    uid, cond = unit
    return (label_order(uid) if uid is not None else (-1, 0.0, ""), label_order(cond))


def _aggregate(trials: Iterable[TrialRecord], by_id: bool) -> List[GroupCell]:
    counts: Dict[Tuple[Optional[UnitId], str, float], List[int]] = {}
    for r in trials:
        key = (r.id if by_id else None, r.condition, r.x)
        c = counts.setdefault(key, [0, 0])
        if r.y == 1:
            c[0] += 1
        else:
            c[1] += 1

    keys = sorted(counts, key=lambda k: (unit_order((k[0], k[1])), k[2]))
    return [GroupCell(id=k[0], condition=k[1], x=k[2], ones=counts[k][0], zeros=counts[k][1]) for k in keys]


def aggregate_individual(trials: Iterable[TrialRecord]) -> List[GroupCell]:
    """Counts per (ID, Condition, X)."""
    return _aggregate(trials, by_id=True)


def aggregate_group(trials: Iterable[TrialRecord]) -> List[GroupCell]:
    """Counts per (Condition, X), pooling all IDs."""
    return _aggregate(trials, by_id=False)


def cells_by_unit(cells: Sequence[GroupCell]) -> Dict[Unit, Tuple[GroupCell, ...]]:
    """Group cells by (ID?, Condition); keeps the emitted cell order."""
    out: Dict[Unit, List[GroupCell]] = {}
    for c in cells:
        out.setdefault(c.unit, []).append(c)
    return {u: tuple(cs) for u, cs in out.items()}


def cells_to_frame(cells: Sequence[GroupCell], individual: Optional[bool] = None) -> pd.DataFrame:
    """Averaged table: [ID,] Condition, X, prop, ones, n, zeros."""
    if individual is None:
        individual = bool(cells) and cells[0].id is not None
    cols = (["ID"] if individual else []) + ["Condition", "X", "prop", "ones", "n", "zeros"]
    rows = []
    for c in cells:
        row = [c.id] if individual else []
        rows.append(row + [c.condition, c.x, c.prop, c.ones, c.n, c.zeros])
    return pd.DataFrame(rows, columns=cols)
