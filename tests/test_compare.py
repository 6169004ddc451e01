"""
tests/test_compare.py

Unit tests for longplot.compare.
"""

import pytest
import numpy as np
import pandas as pd
from scipy import stats as sps

from longplot import simulate
from longplot.compare import (
    adjust_pvalues,
    annotate,
    compare_timepoints,
    significance_marker,
)
from longplot.errors import MissingFieldError, UnsupportedComparisonError
from longplot.stats import compute


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def df_effect():
    """Two arms with a large separation after baseline."""
    return simulate.simulate_trial(
        n_per_arm=25, arms=("Placebo", "Drug"), effects={"Drug": -20.0},
        response_type="step", baseline_sd=2.0, noise_sd=1.0, seed=11,
    )


@pytest.fixture(scope="module")
def df_three_arms():
    return simulate.simulate_trial(
        n_per_arm=20, arms=("Placebo", "Low", "High"),
        effects={"Low": -8.0, "High": -16.0}, baseline_sd=2.0, seed=5,
    )


@pytest.fixture
def df_small():
    return pd.DataFrame({
        "sid": [1, 2, 3, 4, 5, 6, 1, 2, 3, 4, 5, 6],
        "arm": ["A", "A", "A", "B", "B", "B"] * 2,
        "t": [0] * 6 + [1] * 6,
        "y": [1.0, 2.0, 3.0, 1.5, 2.5, 3.5, 1.0, 2.0, 3.0, 11.0, 12.0, 13.5],
    })


# ---------------------------------------------------------------------------
# compare_timepoints
# ---------------------------------------------------------------------------

class TestCompareTimepoints:

    def test_one_row_per_timepoint(self, df_effect):
        res = compare_timepoints(df_effect, "measure ~ visit | arm", "subject_id")
        assert res["timepoint"].tolist() == ["Baseline", "Week 4", "Week 8", "Week 12"]
        assert list(res.columns) == [
            "timepoint", "test", "statistic", "p_value",
            "adjusted_p_value", "significance", "n_groups",
        ]

    def test_two_groups_use_welch(self, df_small):
        res = compare_timepoints(df_small, "y ~ t | arm", "sid")
        assert (res["test"] == "welch_t").all()
        a = [1.0, 2.0, 3.0]
        b = [11.0, 12.0, 13.5]
        expected = sps.ttest_ind(a, b, equal_var=False).pvalue
        assert res.loc[res["timepoint"] == 1, "p_value"].iloc[0] == pytest.approx(expected)

    def test_three_groups_use_anova(self, df_three_arms):
        res = compare_timepoints(df_three_arms, "measure ~ visit | arm", "subject_id")
        assert (res["test"] == "anova").all()
        assert (res["n_groups"] == 3).all()

    def test_effect_detected_after_baseline(self, df_effect):
        res = compare_timepoints(df_effect, "measure ~ visit | arm", "subject_id")
        post = res[res["timepoint"] != "Baseline"]
        assert (post["significance"] == "***").all()

    def test_adjusted_not_below_raw(self, df_effect):
        res = compare_timepoints(df_effect, "measure ~ visit | arm", "subject_id")
        assert (res["adjusted_p_value"] >= res["p_value"] - 1e-12).all()

    def test_single_value_group_not_usable(self):
        df = pd.DataFrame({
            "sid": [1, 2, 3],
            "arm": ["A", "A", "B"],
            "t": [0, 0, 0],
            "y": [1.0, 2.0, 3.0],
        })
        res = compare_timepoints(df, "y ~ t | arm", "sid")
        row = res.iloc[0]
        assert row["test"] is None
        assert np.isnan(row["p_value"])
        assert row["significance"] == ""
        assert row["n_groups"] == 1

    def test_zero_variance_is_undefined(self):
        df = pd.DataFrame({
            "sid": [1, 2, 3, 4],
            "arm": ["A", "A", "B", "B"],
            "t": [0, 0, 0, 0],
            "y": [1.0, 1.0, 1.0, 1.0],
        })
        res = compare_timepoints(df, "y ~ t | arm", "sid")
        assert np.isnan(res["p_value"].iloc[0])
        assert res["significance"].iloc[0] == ""

    def test_duplicate_subject_rows_collapsed(self, df_small):
        doubled = pd.concat([df_small, df_small.assign(y=df_small["y"] + 100)])
        res = compare_timepoints(doubled, "y ~ t | arm", "sid")
        base = compare_timepoints(df_small, "y ~ t | arm", "sid")
        np.testing.assert_allclose(res["p_value"], base["p_value"])

    def test_no_group_field_raises(self, df_small):
        with pytest.raises(UnsupportedComparisonError):
            compare_timepoints(df_small, "y ~ t", "sid")

    def test_two_group_fields_raise(self, df_small):
        df = df_small.assign(sex="F")
        with pytest.raises(UnsupportedComparisonError):
            compare_timepoints(df, "y ~ t | arm + sex", "sid")

    def test_missing_cluster_field(self, df_small):
        with pytest.raises(MissingFieldError, match="subject"):
            compare_timepoints(df_small, "y ~ t | arm", "subject")


# ---------------------------------------------------------------------------
# adjustment and markers
# ---------------------------------------------------------------------------

class TestAdjustment:

    def test_benjamini_hochberg(self):
        adjusted = adjust_pvalues([0.01, 0.04, 0.03])
        np.testing.assert_allclose(adjusted, [0.03, 0.04, 0.04])

    def test_nan_left_out(self):
        adjusted = adjust_pvalues([0.01, np.nan, 0.02])
        assert np.isnan(adjusted[1])
        np.testing.assert_allclose(adjusted[[0, 2]], [0.02, 0.02])

    def test_all_nan(self):
        assert np.isnan(adjust_pvalues([np.nan, np.nan])).all()

    @pytest.mark.parametrize("p, marker", [
        (0.0005, "***"),
        (0.005, "**"),
        (0.03, "*"),
        (0.05, "ns"),
        (0.7, "ns"),
        (None, ""),
        (float("nan"), ""),
    ])
    def test_markers(self, p, marker):
        assert significance_marker(p) == marker


# ---------------------------------------------------------------------------
# annotate
# ---------------------------------------------------------------------------

class TestAnnotate:

    def test_rows_share_timepoint_result(self, df_effect):
        rows = compute(df_effect, "measure ~ visit | arm", "subject_id", "Baseline")
        annotated = annotate(rows, df_effect, "measure ~ visit | arm", "subject_id")
        assert len(annotated) == len(rows)
        by_time = {}
        for r in annotated:
            by_time.setdefault(r.timepoint, set()).add((r.p_value, r.significance))
        assert all(len(v) == 1 for v in by_time.values())

    def test_original_rows_untouched(self, df_effect):
        rows = compute(df_effect, "measure ~ visit | arm", "subject_id", "Baseline")
        annotate(rows, df_effect, "measure ~ visit | arm", "subject_id")
        assert all(r.p_value is None and r.significance == "" for r in rows)

    def test_statistics_unchanged(self, df_effect):
        rows = compute(df_effect, "measure ~ visit | arm", "subject_id", "Baseline")
        annotated = annotate(rows, df_effect, "measure ~ visit | arm", "subject_id")
        assert [r.center for r in annotated] == [r.center for r in rows]

    def test_untestable_timepoint_stays_empty(self):
        df = pd.DataFrame({
            "sid": [1, 2, 3, 4, 1, 2],
            "arm": ["A", "A", "B", "B", "A", "A"],
            "t": [0, 0, 0, 0, 1, 1],
            "y": [1.0, 2.0, 5.0, 6.5, 2.0, 3.0],
        })
        rows = compute(df, "y ~ t | arm", "sid", 0)
        annotated = annotate(rows, df, "y ~ t | arm", "sid")
        late = [r for r in annotated if r.timepoint == 1]
        assert all(r.p_value is None and r.significance == "" for r in late)
        early = [r for r in annotated if r.timepoint == 0]
        assert all(r.p_value is not None for r in early)

    def test_ungrouped_raises(self, df_small):
        rows = compute(df_small, "y ~ t", "sid", 0)
        with pytest.raises(UnsupportedComparisonError):
            annotate(rows, df_small, "y ~ t", "sid")
