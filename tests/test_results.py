from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from psychometric.fit_logistic import STATUS_NON_IDENTIFIABLE, FitResult
from psychometric.pse import PSE_NO_FIT, PSE_OK, PSE_UNDEFINED_SLOPE, PSEResult
from psychometric.results import (
    DIAGNOSTIC_COLUMNS,
    RESULT_COLUMNS,
    build_result_table,
    fitted_curves,
    resolve_x_bounds,
    summarise_pse,
)

NAN = float("nan")


def _res(unit, a, b, status="ok", pse_status=PSE_OK):
    fit = FitResult(unit=unit, intercept=a, slope=b, slope_p_value=0.03, status=status)
    pse = -a / b if pse_status == PSE_OK else NAN
    return PSEResult(fit=fit, pse=pse, pse_status=pse_status)


def test_individual_table_layout_and_order():
    results = {
        (2, "A"): _res((2, "A"), 2.0, -1.0),
        (1, "B"): _res((1, "B"), -3.0, 1.5),
        (1, "A"): _res((1, "A"), 4.0, -2.0),
    }
    table = build_result_table(results)

    assert list(table.columns) == ["ID"] + RESULT_COLUMNS + DIAGNOSTIC_COLUMNS
    assert list(zip(table["ID"], table["Condition"])) == [(1, "A"), (1, "B"), (2, "A")]
    assert table["pse"].tolist() == pytest.approx([2.0, 2.0, 2.0])
    assert table["p.value"].tolist() == [0.03] * 3


def test_group_table_has_no_id_column():
    table = build_result_table([_res((None, "B"), 1.0, 1.0), _res((None, "A"), 1.0, -1.0)])
    assert "ID" not in table.columns
    assert table["Condition"].tolist() == ["A", "B"]


def test_failed_units_stay_in_the_table():
    failed = PSEResult(
        fit=FitResult(unit=(1, "B"), intercept=NAN, slope=NAN, slope_p_value=NAN, status=STATUS_NON_IDENTIFIABLE),
        pse=NAN, pse_status=PSE_NO_FIT,
    )
    table = build_result_table([_res((1, "A"), 1.0, -1.0), failed], individual=True)

    row = table.iloc[1]
    assert row["Condition"] == "B"
    assert math.isnan(row["a"]) and math.isnan(row["pse"])
    assert not row["converged"]
    assert row["fit.status"] == STATUS_NON_IDENTIFIABLE
    assert not row["pse.defined"]


def test_empty_results_give_empty_table():
    table = build_result_table([], individual=False)
    assert table.empty
    assert list(table.columns) == RESULT_COLUMNS + DIAGNOSTIC_COLUMNS


def test_summary_uses_defined_pse_only():
    table = build_result_table([
        _res((1, "A"), 2.0, -1.0),
        _res((2, "A"), 4.0, -1.0),
        _res((3, "A"), 1.0, 0.0, pse_status=PSE_UNDEFINED_SLOPE),
        _res((1, "B"), 1.0, 0.0, pse_status=PSE_UNDEFINED_SLOPE),
    ])
    summary = summarise_pse(table)

    assert list(summary.columns) == ["Condition", "mPSE", "sdPSE", "n"]
    a = summary.set_index("Condition").loc["A"]
    assert a["mPSE"] == pytest.approx(3.0)
    assert a["sdPSE"] == pytest.approx(np.std([2.0, 4.0], ddof=1))
    assert a["n"] == 2
    b = summary.set_index("Condition").loc["B"]
    assert b["n"] == 0
    assert math.isnan(b["mPSE"])


def test_resolve_x_bounds():
    assert resolve_x_bounds([3.0, 1.0, 2.0]) == (1.0, 3.0)
    assert resolve_x_bounds([3.0, 1.0, 2.0], x_min=0, x_max=10) == (0.0, 10.0)
    assert resolve_x_bounds([2.0, 2.0]) == (1.5, 2.5)
    assert resolve_x_bounds([1.0, np.nan, 4.0], x_max=None) == (1.0, 4.0)


def test_fitted_curves_cover_converged_rows_only():
    failed = PSEResult(
        fit=FitResult(unit=(2, "A"), intercept=NAN, slope=NAN, slope_p_value=NAN, status=STATUS_NON_IDENTIFIABLE),
        pse=NAN, pse_status=PSE_NO_FIT,
    )
    table = build_result_table([_res((1, "A"), 2.0, -1.0), failed])
    curves = fitted_curves(table, 0.0, 4.0, n_points=5)

    assert list(curves.columns) == ["ID", "Condition", "X", "p"]
    assert len(curves) == 5
    assert curves["X"].tolist() == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert curves.loc[curves["X"] == 2.0, "p"].iloc[0] == pytest.approx(0.5)
    assert curves["p"].is_monotonic_decreasing


def test_fitted_curves_empty_when_nothing_converged():
    curves = fitted_curves(pd.DataFrame(columns=["Condition", "a", "b", "converged"]), 0.0, 1.0)
    assert curves.empty
    assert list(curves.columns) == ["Condition", "X", "p"]
