"""
longplot/preprocess.py

Data-preparation helpers that sit in front of the statistics engine.

Clinical datasets often record a continuous study day rather than a nominal
visit. apply_visit_windows maps those days onto named visit windows so the
engine can summarise by visit. check_baseline reports whether groups are
already unbalanced at baseline, which matters when reading change-from-
baseline plots.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import kruskal, mannwhitneyu

from longplot.errors import LongplotError
from longplot.formula import FormulaSpec, parse
from longplot.stats import require_fields

logger = logging.getLogger(__name__)


def apply_visit_windows(
    df: pd.DataFrame,
    time: str,
    windows: Dict[str, Tuple[float, float]],
    label_col: Optional[str] = None,
) -> pd.DataFrame:
    """
    Assign each row to a named visit window based on a continuous time field.

    Parameters
    ----------
    df : pd.DataFrame
        Long-format dataframe.
    time : str
        Continuous time column, e.g. study day.
    windows : dict
        Mapping of visit label to an inclusive (low, high) range, e.g.
        ``{"Baseline": (-7, 1), "Week 4": (22, 35)}``. Labels are emitted as
        an ordered Categorical in the order the windows are given.
    label_col : str, optional
        Name of the new column. Defaults to ``"<time>_window"``.

    Returns
    -------
    pd.DataFrame
        Copy of ``df`` with the label column added. Rows that fall outside
        every window get a missing label and are excluded from any later
        summary.

    Raises
    ------
    ValueError
        If a window has low > high, or two windows overlap.
    MissingFieldError
        If ``time`` is not a column of ``df``.

    Examples
    --------
    >>> days = pd.DataFrame({"subject_id": [1, 1], "ady": [1, 30], "aval": [5.0, 6.0]})
    >>> apply_visit_windows(days, "ady", {"Baseline": (-7, 1), "Week 4": (22, 35)})["ady_window"].tolist()
    ['Baseline', 'Week 4']
    """
    require_fields(df, [time])
    if not windows:
        raise ValueError("windows must name at least one visit window.")

    bounds = []
    for label, (low, high) in windows.items():
        if low > high:
            raise ValueError(
                f"Visit window '{label}' has low bound {low} above high bound {high}."
            )
        bounds.append((low, high, label))

    ordered = sorted(bounds, key=lambda b: (b[0], b[1]))
    for (lo_a, hi_a, a), (lo_b, hi_b, b) in zip(ordered, ordered[1:]):
        if lo_b <= hi_a:
            raise ValueError(f"Visit windows '{a}' and '{b}' overlap.")

    label_col = label_col or f"{time}_window"
    values = pd.to_numeric(df[time], errors="coerce").to_numpy(dtype=float)

    labels = np.full(len(df), None, dtype=object)
    for low, high, label in bounds:
        labels[(values >= low) & (values <= high)] = label

    result = df.copy()
    result[label_col] = pd.Categorical(labels, categories=list(windows), ordered=True)

    unassigned = int(pd.isna(labels).sum())
    if unassigned:
        logger.warning(
            "%d row(s) fall outside every visit window and were left unlabelled.",
            unassigned,
        )
    return result


def check_baseline(
    df: pd.DataFrame,
    spec: Union[str, FormulaSpec],
    cluster_key: str,
    baseline: Any,
    alpha: float = 0.05,
) -> Dict[str, Any]:
    """
    Test whether groups differ in the outcome at baseline.

    Uses the first grouping field of ``spec``. Two groups are compared with a
    two-sided Mann-Whitney U test, three or more with Kruskal-Wallis. A
    significant result means part of any later difference in change from
    baseline may reflect groups that started apart.

    Parameters
    ----------
    df : pd.DataFrame
        Long-format dataframe, as passed to ``longplot.compute``.
    spec : str or FormulaSpec
        Formula with at least one grouping field.
    cluster_key : str
        Subject identifier; one baseline value per subject is used.
    baseline : scalar
        The baseline timepoint value.
    alpha : float
        Significance threshold for the ``significant`` flag.

    Returns
    -------
    dict
        groups      — DataFrame with one row per group: group, n, mean, sd
        test        — "mann_whitney", "kruskal" or None
        p_value     — float, or None when fewer than two groups have data
        significant — True if p_value < alpha

    Raises
    ------
    LongplotError
        If the formula has no grouping field.
    """
    spec = parse(spec)
    if not spec.groups:
        raise LongplotError(
            f"check_baseline needs a grouping field; formula '{spec}' has none."
        )
    group = spec.groups[0]
    require_fields(df, [spec.outcome, spec.time, group, cluster_key])

    at_baseline = (
        df[df[spec.time] == baseline]
        .drop_duplicates(subset=cluster_key)
        .dropna(subset=[group, spec.outcome])
    )

    records = []
    samples = []
    for label, g in at_baseline.groupby(group, sort=False, observed=True):
        values = g[spec.outcome].to_numpy(dtype=float)
        samples.append(values)
        records.append({
            "group": label,
            "n": len(values),
            "mean": float(values.mean()),
            "sd": float(values.std(ddof=1)) if len(values) > 1 else np.nan,
        })
    summary = pd.DataFrame(records, columns=["group", "n", "mean", "sd"])

    test, p = None, None
    if len(samples) == 2 and all(len(s) > 0 for s in samples):
        test = "mann_whitney"
        _, p = mannwhitneyu(samples[0], samples[1], alternative="two-sided")
    elif len(samples) > 2:
        test = "kruskal"
        _, p = kruskal(*samples)
    else:
        logger.warning(
            "Baseline check skipped: %s has fewer than two groups at %s=%r.",
            group, spec.time, baseline,
        )

    if p is not None:
        p = float(p) if np.isfinite(p) else None

    return {
        "groups": summary,
        "test": test,
        "p_value": p,
        "significant": bool(p is not None and p < alpha),
    }
