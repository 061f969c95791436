from __future__ import annotations

import pandas as pd
import pytest

from psychometric.pipeline import run_pipeline
from psychometric.simulate_trials import expected_trials, main, simulate_trials


def test_simulated_table_shape():
    df = simulate_trials(ids=[1, 2, 3], conditions=["A", "B"], x_levels=[1, 2, 3, 4], n_per_level=5,
                         intercepts=-2.5, slopes=1.0, seed=1)
    assert list(df.columns) == ["ID", "Condition", "X", "Y"]
    assert len(df) == 3 * 2 * 4 * 5
    assert set(df["Y"].unique()) <= {0, 1}
    assert df.groupby(["ID", "Condition", "X"]).size().eq(5).all()


def test_seed_makes_draws_reproducible():
    kw = dict(ids=[1, 2], conditions=["A"], x_levels=[1, 2, 3], n_per_level=10, intercepts=-2.0, slopes=1.0,
              intercept_sd=0.5)
    pd.testing.assert_frame_equal(simulate_trials(seed=7, **kw), simulate_trials(seed=7, **kw))
    assert not simulate_trials(seed=7, **kw).equals(simulate_trials(seed=8, **kw))


def test_per_condition_coefficients():
    with pytest.raises(ValueError, match="condition 'B'"):
        simulate_trials(ids=[1], conditions=["A", "B"], x_levels=[1, 2], n_per_level=1,
                        intercepts={"A": 0.0}, slopes=1.0)
    with pytest.raises(ValueError):
        simulate_trials(ids=[1], conditions=["A"], x_levels=[1, 2], n_per_level=0, intercepts=0.0, slopes=1.0)


def test_expected_trials_round_trip_through_the_pipeline():
    df = expected_trials(ids=[1, 2], conditions=["A", "B"], x_levels=[1, 2, 3, 4, 5, 6], n_per_level=200,
                         intercepts={"A": -4.2, "B": -2.8}, slopes={"A": 1.2, "B": 1.2})
    grp = run_pipeline(df).group_table.set_index("Condition")

    assert grp.loc["A", "pse"] == pytest.approx(3.5, abs=0.05)
    assert grp.loc["B", "pse"] == pytest.approx(2.8 / 1.2, abs=0.05)


def test_main_writes_csv(tmp_path, capsys):
    out = tmp_path / "sim.csv"
    path = main(["--n-ids", "2", "--n-per-level", "3", "--out", str(out)])

    assert path == str(out)
    df = pd.read_csv(out)
    assert len(df) == 2 * 2 * 6 * 3
    assert "true PSE" in capsys.readouterr().out


def test_main_needs_one_coefficient_per_condition(tmp_path):
    with pytest.raises(ValueError, match="one intercept"):
        main(["--conditions", "A", "B", "C", "--out", str(tmp_path / "x.csv")])
