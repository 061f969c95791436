from __future__ import annotations

import pandas as pd

from psychometric.aggregate import (
    GroupCell,
    aggregate_group,
    aggregate_individual,
    cells_by_unit,
    cells_to_frame,
)
from psychometric.trials import TrialDataset


def _dataset(rows):
    return TrialDataset.from_frame(pd.DataFrame(rows, columns=["ID", "Condition", "X", "Y"]))


def test_counts_conserve_trials(scenario_trials):
    ds = TrialDataset.from_frame(scenario_trials)
    for cells in (aggregate_individual(ds), aggregate_group(ds)):
        assert sum(c.ones for c in cells) + sum(c.zeros for c in cells) == len(ds)
        assert sum(c.ones for c in cells) == int(scenario_trials["Y"].sum())
        for c in cells:
            assert c.n >= 1
            assert c.prop == c.ones / c.n


def test_every_trial_lands_in_exactly_one_cell(scenario_trials):
    ds = TrialDataset.from_frame(scenario_trials)
    cells = aggregate_individual(ds)
    keys = [(c.id, c.condition, c.x) for c in cells]
    assert len(keys) == len(set(keys)) == 12
    for r in ds:
        matching = [c for c in cells if (c.id, c.condition, c.x) == (r.id, r.condition, r.x)]
        assert len(matching) == 1


def test_individual_cell_values(scenario_trials):
    cells = aggregate_individual(TrialDataset.from_frame(scenario_trials))
    assert cells[0] == GroupCell(id=1, condition="A", x=1.0, ones=8, zeros=2)
    assert cells[0].prop == 0.8
    assert cells[0].unit == (1, "A")


def test_group_cells_pool_participants(scenario_trials):
    cells = aggregate_group(TrialDataset.from_frame(scenario_trials))
    assert len(cells) == 6
    first = cells[0]
    assert (first.id, first.condition, first.x) == (None, "A", 1.0)
    assert (first.ones, first.n) == (17, 20)


def test_x_keys_are_exact():
    ds = _dataset([(1, "A", 1.0, 1), (1, "A", 1.0000001, 0), (1, "A", 1.0, 0)])
    cells = aggregate_individual(ds)
    assert [(c.x, c.ones, c.zeros) for c in cells] == [(1.0, 1, 1), (1.0000001, 0, 1)]


def test_order_is_deterministic_numbers_before_strings():
    rows = [
        ("b", "B", 2.0, 1), (10, "A", 1.0, 0), (2, "B", 3.0, 1),
        ("a", "A", 1.0, 1), (2, "A", 2.0, 0), (2, "A", 1.0, 1),
    ]
    cells = aggregate_individual(_dataset(rows))
    assert [(c.id, c.condition, c.x) for c in cells] == [
        (2, "A", 1.0), (2, "A", 2.0), (2, "B", 3.0), (10, "A", 1.0), ("a", "A", 1.0), ("b", "B", 2.0),
    ]
    assert cells == aggregate_individual(_dataset(list(reversed(rows))))


def test_cells_by_unit_groups_all_levels(scenario_trials):
    units = cells_by_unit(aggregate_individual(TrialDataset.from_frame(scenario_trials)))
    assert list(units) == [(1, "A"), (1, "B"), (2, "A"), (2, "B")]
    assert all(len(cs) == 3 for cs in units.values())
    assert [c.x for c in units[(2, "B")]] == [1.0, 2.0, 3.0]


def test_cells_to_frame_columns(scenario_trials):
    ds = TrialDataset.from_frame(scenario_trials)
    ind = cells_to_frame(aggregate_individual(ds))
    grp = cells_to_frame(aggregate_group(ds))
    assert list(ind.columns) == ["ID", "Condition", "X", "prop", "ones", "n", "zeros"]
    assert list(grp.columns) == ["Condition", "X", "prop", "ones", "n", "zeros"]
    assert (ind["ones"] + ind["zeros"] == ind["n"]).all()
