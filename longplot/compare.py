"""
longplot/compare.py

Between-group significance testing per timepoint.

    compare_timepoints — one test per timepoint on the raw outcome values:
                         Welch t-test for two groups, one-way ANOVA for three
                         or more. P-values are Benjamini–Hochberg adjusted
                         across timepoints.

    annotate           — copy those results onto the SummaryRows produced by
                         longplot.stats.compute.

Only single-factor designs are supported: the formula must name exactly one
grouping field.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from longplot.errors import UnsupportedComparisonError
from longplot.formula import FormulaSpec, parse
from longplot.stats import SummaryRow, require_fields

logger = logging.getLogger(__name__)

# (threshold, marker), checked in order against the adjusted p-value
SIGNIFICANCE_LEVELS = ((0.001, "***"), (0.01, "**"), (0.05, "*"))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compare_timepoints(
    raw_data: pd.DataFrame,
    spec: Union[str, FormulaSpec],
    cluster_key: str,
) -> pd.DataFrame:
    """
    Test for a difference between groups at every timepoint.

    Parameters
    ----------
    raw_data : pd.DataFrame
        The same long-format table passed to compute().
    spec : str or FormulaSpec
        Formula with exactly one grouping field, e.g. ``"aval ~ visit | arm"``.
    cluster_key : str
        Subject identifier. Only the first row per (subject, timepoint) is
        used.

    Returns
    -------
    pd.DataFrame
        One row per timepoint (in order of first appearance) with columns:
          timepoint         — time value
          test              — "welch_t", "anova" or None when not testable
          statistic         — t or F statistic (NaN when not testable)
          p_value           — unadjusted p-value (NaN when not testable)
          adjusted_p_value  — Benjamini–Hochberg adjusted p-value
          significance      — "***", "**", "*", "ns", or "" when undefined
          n_groups          — number of groups with more than one value

    Raises
    ------
    UnsupportedComparisonError
        If the formula does not name exactly one grouping field.
    MissingFieldError
        If the outcome, time, group or cluster field is absent.
    """
    spec = parse(spec)
    if len(spec.groups) != 1:
        raise UnsupportedComparisonError(
            "Group comparisons need exactly one grouping field; "
            f"formula '{spec}' has {len(spec.groups)}."
        )
    group = spec.groups[0]
    require_fields(raw_data, [spec.outcome, spec.time, group, cluster_key])

    df = (
        raw_data[[cluster_key, spec.time, group, spec.outcome]]
        .dropna(subset=[spec.time, group])
        .drop_duplicates(subset=[cluster_key, spec.time])
    )

    records = []
    for timepoint, tp_df in df.groupby(spec.time, sort=False, observed=True):
        samples = [
            g[spec.outcome].dropna().to_numpy(dtype=float)
            for _, g in tp_df.groupby(group, sort=False, observed=True)
        ]
        usable = [s for s in samples if len(s) > 1]
        test, statistic, p_value = _run_test(usable)
        records.append({
            "timepoint": timepoint.item() if isinstance(timepoint, np.generic) else timepoint,
            "test": test,
            "statistic": statistic,
            "p_value": p_value,
            "n_groups": len(usable),
        })

    result = pd.DataFrame(
        records, columns=["timepoint", "test", "statistic", "p_value", "n_groups"]
    )
    result["p_value"] = result["p_value"].astype(float)
    result["statistic"] = result["statistic"].astype(float)
    result["adjusted_p_value"] = adjust_pvalues(result["p_value"].to_numpy())
    result["significance"] = result["adjusted_p_value"].apply(significance_marker)

    logger.debug(
        "Compared %s across %d timepoints (%d testable)",
        group, len(result), int(result["p_value"].notna().sum()),
    )
    return result[[
        "timepoint", "test", "statistic", "p_value",
        "adjusted_p_value", "significance", "n_groups",
    ]]


def annotate(
    rows: Sequence[SummaryRow],
    raw_data: pd.DataFrame,
    spec: Union[str, FormulaSpec],
    cluster_key: str,
) -> List[SummaryRow]:
    """
    Attach per-timepoint p-values and significance markers to summary rows.

    Every row at a given timepoint receives that timepoint's result, so all
    groups plotted at that timepoint carry the same marker. Rows at a
    timepoint that could not be tested keep ``p_value=None`` and an empty
    marker. The input rows are not modified.

    Raises
    ------
    UnsupportedComparisonError
        If the formula does not name exactly one grouping field.
    """
    results = compare_timepoints(raw_data, spec, cluster_key)
    by_time = {
        row.timepoint: row for row in results.itertuples(index=False)
    }

    annotated = []
    for row in rows:
        hit = by_time.get(row.timepoint)
        if hit is None or np.isnan(hit.p_value):
            annotated.append(replace(row, p_value=None, adjusted_p_value=None, significance=""))
            continue
        annotated.append(replace(
            row,
            p_value=float(hit.p_value),
            adjusted_p_value=float(hit.adjusted_p_value),
            significance=hit.significance,
        ))
    return annotated


def adjust_pvalues(p_values) -> np.ndarray:
    """
    Benjamini–Hochberg adjustment over the defined entries of ``p_values``.

    NaN entries are excluded from the adjustment and stay NaN.
    """
    p = np.asarray(p_values, dtype=float)
    adjusted = np.full(p.shape, np.nan)
    mask = ~np.isnan(p)
    if mask.any():
        _, adjusted[mask], _, _ = multipletests(p[mask], method="fdr_bh")
    return adjusted


def significance_marker(p: Optional[float]) -> str:
    """Return the star marker for an adjusted p-value ("" when undefined)."""
    if p is None or np.isnan(p):
        return ""
    for threshold, marker in SIGNIFICANCE_LEVELS:
        if p < threshold:
            return marker
    return "ns"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _run_test(samples: List[np.ndarray]):
    """Welch t-test for two samples, one-way ANOVA for more."""
    if len(samples) < 2:
        return None, np.nan, np.nan

    if len(samples) == 2:
        test = "welch_t"
        statistic, p_value = stats.ttest_ind(samples[0], samples[1], equal_var=False)
    else:
        test = "anova"
        statistic, p_value = stats.f_oneway(*samples)

    if not np.isfinite(p_value):
        # e.g. every group has zero variance
        return None, np.nan, np.nan
    return test, float(statistic), float(p_value)
