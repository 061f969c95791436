from __future__ import annotations

import dataclasses

import numpy as np
import pandas as pd
import pytest

from psychometric.errors import InvalidInputError, InvalidRecordWarning
from psychometric.trials import TrialDataset, TrialRecord


def test_valid_rows_are_kept_in_order(scenario_trials):
    ds = TrialDataset.from_frame(scenario_trials)

    assert len(ds) == len(scenario_trials) == 120
    assert ds.report.n_rejected == 0
    assert ds.records[0] == TrialRecord(id=1, condition="A", x=1.0, y=1)


def test_records_are_immutable(scenario_trials):
    ds = TrialDataset.from_frame(scenario_trials)
    with pytest.raises(dataclasses.FrozenInstanceError):
        ds.records[0].y = 0


@pytest.mark.parametrize("missing", ["ID", "Condition", "X", "Y"])
def test_missing_column_is_fatal(scenario_trials, missing):
    with pytest.raises(InvalidInputError, match=missing):
        TrialDataset.from_frame(scenario_trials.drop(columns=[missing]))


def test_empty_table_is_fatal():
    with pytest.raises(InvalidInputError, match="empty"):
        TrialDataset.from_frame(pd.DataFrame(columns=["ID", "Condition", "X", "Y"]))


def test_all_rows_invalid_is_fatal():
    df = pd.DataFrame({"ID": [1, 2], "Condition": ["A", "A"], "X": [1.0, 2.0], "Y": [2, 3]})
    with pytest.warns(InvalidRecordWarning):
        with pytest.raises(InvalidInputError, match="No valid"):
            TrialDataset.from_frame(df)


def test_invalid_rows_are_excluded_and_counted():
    df = pd.DataFrame({
        "ID":        [1,     1,    None, 1,     1,     1,      1,   1],
        "Condition": ["A",   "A",  "A",  "",    "A",   "A",    "A", "A"],
        "X":         [1.0,   2.0,  1.0,  1.0,   "abc", np.inf, 3.0, 3.0],
        "Y":         [1,     0,    1,    1,     1,     0,      2,   "yes"],
    })
    with pytest.warns(InvalidRecordWarning) as record:
        ds = TrialDataset.from_frame(df)

    assert len(ds) == 2
    assert ds.report.n_rows == 8
    assert ds.report.n_rejected == 6
    assert ds.report.n_valid == 2
    assert dict(ds.report.by_reason) == {
        "missing_id": 1,
        "missing_condition": 1,
        "non_finite_x": 2,
        "non_binary_y": 2,
    }
    assert len(record) == 4


def test_float_response_values_are_accepted():
    df = pd.DataFrame({"ID": ["p1", "p1"], "Condition": ["A", "A"], "X": [1, 2], "Y": [1.0, 0.0]})
    ds = TrialDataset.from_frame(df)
    assert [r.y for r in ds] == [1, 0]


def test_integral_float_ids_become_ints():
    # pandas upcasts an int column holding a NaN to float
    df = pd.DataFrame({"ID": [1.0, 2.0, np.nan], "Condition": ["A"] * 3, "X": [1.0] * 3, "Y": [1, 0, 1]})
    with pytest.warns(InvalidRecordWarning):
        ds = TrialDataset.from_frame(df)
    assert [r.id for r in ds] == [1, 2]
    assert all(isinstance(r.id, int) for r in ds)


def test_column_names_can_be_remapped():
    df = pd.DataFrame({"subj": ["s1"], "cond": ["A"], "intensity": [0.5], "resp": [1]})
    ds = TrialDataset.from_frame(df, columns={"id": "subj", "condition": "cond", "x": "intensity", "y": "resp"})
    assert ds.records == (TrialRecord(id="s1", condition="A", x=0.5, y=1),)


def test_unknown_column_role_is_rejected(scenario_trials):
    with pytest.raises(ValueError, match="Unknown column role"):
        TrialDataset.from_frame(scenario_trials, columns={"subject": "ID"})


def test_from_rows_matches_from_frame(scenario_trials):
    rows = scenario_trials.to_dict("records")
    assert TrialDataset.from_rows(rows).records == TrialDataset.from_frame(scenario_trials).records


def test_to_frame_round_trips_columns(scenario_trials):
    out = TrialDataset.from_frame(scenario_trials).to_frame()
    assert list(out.columns) == ["ID", "Condition", "X", "Y"]
    assert len(out) == len(scenario_trials)
