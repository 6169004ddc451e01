"""
tests/test_simulate.py

Unit tests for longplot.simulate, including recovery of the simulated
effects by the statistics engine.
"""

import pytest
import numpy as np
import pandas as pd

from longplot import simulate
from longplot.stats import compute


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def df_default():
    return simulate.simulate_trial(seed=0)


@pytest.fixture(scope="module")
def df_large():
    """Large low-noise trial so simulated effects are recovered closely."""
    return simulate.simulate_trial(
        n_per_arm=400, arms=("Placebo", "Drug"), effects={"Drug": -10.0},
        noise_sd=1.0, seed=1,
    )


# ---------------------------------------------------------------------------
# simulate_trial
# ---------------------------------------------------------------------------

class TestSimulateTrial:

    def test_columns(self, df_default):
        assert list(df_default.columns) == ["subject_id", "arm", "site", "visit", "week", "measure"]

    def test_shape(self, df_default):
        assert len(df_default) == 2 * 20 * 4
        assert df_default["subject_id"].nunique() == 40

    def test_visit_labels(self, df_default):
        assert df_default["visit"].unique().tolist() == ["Baseline", "Week 4", "Week 8", "Week 12"]

    def test_numeric_visits(self):
        df = simulate.simulate_trial(n_per_arm=2, visit_labels=False, seed=0)
        assert df["visit"].unique().tolist() == [0, 4, 8, 12]
        assert df.attrs["baseline"] == 0

    def test_reproducible(self):
        a = simulate.simulate_trial(n_per_arm=5, seed=7)
        b = simulate.simulate_trial(n_per_arm=5, seed=7)
        pd.testing.assert_frame_equal(a, b)

    def test_sites_round_robin(self):
        df = simulate.simulate_trial(n_per_arm=6, n_sites=3, seed=0)
        per_site = df.groupby("site")["subject_id"].nunique()
        assert per_site.tolist() == [4, 4, 4]

    def test_dropout_removes_later_visits(self):
        df = simulate.simulate_trial(n_per_arm=50, dropout_rate=0.5, seed=3)
        visits_per_subject = df.groupby("subject_id").size()
        assert visits_per_subject.min() >= 1
        assert (visits_per_subject < 4).any()
        # every subject keeps their baseline
        assert df[df["visit"] == "Baseline"]["subject_id"].nunique() == 100

    def test_study_day(self):
        df = simulate.simulate_trial(n_per_arm=5, study_day_jitter=3, seed=0)
        offset = df["study_day"] - (df["week"] * 7 + 1)
        assert offset.abs().max() <= 3
        assert (offset[df["week"] == 0] == 0).all()

    @pytest.mark.parametrize("kwargs", [
        {"response_type": "sigmoid"},
        {"dropout_rate": 1.0},
        {"visit_weeks": (0,)},
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            simulate.simulate_trial(**kwargs)


# ---------------------------------------------------------------------------
# ground truth
# ---------------------------------------------------------------------------

class TestGroundTruth:

    def test_metadata(self, df_default):
        truth = simulate.get_ground_truth(df_default)
        assert truth["arms"] == ["Placebo", "Drug A"]
        assert truth["effects"] == {"Placebo": 0.0, "Drug A": -5.0}
        assert truth["baseline"] == "Baseline"
        assert truth["n_subjects"] == {"Drug A": 20, "Placebo": 20}

    @pytest.mark.parametrize("response_type, expected", [
        ("linear", [0.0, 1 / 3, 2 / 3, 1.0]),
        ("step", [0.0, 1.0, 1.0, 1.0]),
    ])
    def test_expected_change_shape(self, response_type, expected):
        df = simulate.simulate_trial(
            n_per_arm=2, effects={"Drug A": -6.0}, response_type=response_type, seed=0,
        )
        curve = simulate.get_ground_truth(df)["expected_change"]["Drug A"]
        np.testing.assert_allclose(curve, [-6.0 * e for e in expected])

    def test_plateau_monotone(self):
        df = simulate.simulate_trial(n_per_arm=2, effects={"Drug A": 4.0},
                                     response_type="plateau", seed=0)
        curve = simulate.get_ground_truth(df)["expected_change"]["Drug A"]
        assert curve[0] == 0
        assert curve[-1] == pytest.approx(4.0)
        assert np.all(np.diff(curve) > 0)
        assert curve[1] > 4.0 / 3

    def test_no_metadata_raises(self):
        with pytest.raises(ValueError, match="simulation metadata"):
            simulate.get_ground_truth(pd.DataFrame({"a": [1]}))

    def test_engine_recovers_effect(self, df_large):
        truth = simulate.get_ground_truth(df_large)
        rows = compute(df_large, "measure ~ visit | arm", "subject_id", truth["baseline"])
        for arm, curve in truth["expected_change"].items():
            arm_rows = [r for r in rows if r.group == (arm,)]
            observed = [r.change_center for r in arm_rows]
            np.testing.assert_allclose(observed, curve, atol=0.3)
