"""
longplot/stats.py

Statistics engine: per-timepoint summaries of observed values and of
within-subject change from baseline.

The work is a short pipeline of pure stages; each takes the previous stage's
output and returns a new object, so every stage can be tested on its own:

    bind            — check that the referenced fields and the baseline
                      exist, classify the time axis, fix the timepoint order.
    add_change      — outcome minus the subject's own baseline outcome.
    summarize_cells — one SummaryRow per (group, timepoint) cell carrying
                      both the observed and the change statistics.

compute() runs the three stages. summary_frame() flattens the rows into the
table the renderer draws from.

Degenerate cells never raise. A cell with a single value is flagged
``insufficient_data``; for mean summaries its SD and SE are None and its
bounds collapse onto the center. A change series with no values (every
subject in the cell lacks a baseline) has None for every change statistic.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats as sps

from longplot.config import StatsOptions
from longplot.errors import BaselineNotFoundError, LongplotError, MissingFieldError
from longplot.formula import FormulaSpec, parse

logger = logging.getLogger(__name__)

# Half-width factor for the median interval, center ± 1.57·IQR/√n. A normal
# approximation, not an exact nonparametric interval.
MEDIAN_CI_FACTOR = 1.57
WHISKER_IQR = 1.5

_NUMBERED_LABEL = re.compile(r"^(\D*?)\s*(\d+(?:\.\d+)?)\s*$")

_STAT_FIELDS = (
    "n", "center", "spread", "standard_error", "lower", "upper",
    "q25", "q75", "insufficient_data",
)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SummaryRow:
    """
    Statistics for one (group, timepoint) cell.

    Observed-value fields describe the outcome itself; ``change_*`` fields
    describe each subject's outcome minus that subject's baseline outcome.
    ``spread`` is the SD for mean summaries and the IQR for median and
    boxplot summaries. ``lower``/``upper`` are the error bounds the renderer
    draws (SE, confidence interval, quartiles or whiskers depending on the
    summary statistic). ``p_value``, ``adjusted_p_value`` and
    ``significance`` stay empty until ``longplot.compare.annotate`` fills
    them.
    """

    group: Tuple[Any, ...]
    group_label: str
    timepoint: Any
    time_rank: int
    is_continuous: bool
    summary_statistic: str

    n: int
    center: float
    spread: Optional[float]
    standard_error: Optional[float]
    lower: float
    upper: float
    q25: float
    q75: float
    insufficient_data: bool

    change_n: int
    change_center: Optional[float]
    change_spread: Optional[float]
    change_standard_error: Optional[float]
    change_lower: Optional[float]
    change_upper: Optional[float]
    change_q25: Optional[float]
    change_q75: Optional[float]
    change_insufficient_data: bool

    p_value: Optional[float] = None
    adjusted_p_value: Optional[float] = None
    significance: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class LongitudinalView:
    """
    A schema-checked projection of the input table.

    Holds a private copy of only the referenced columns together with the
    facts established while checking them, so later stages never look
    fields up by loose strings or re-derive the time-axis type.
    """

    data: pd.DataFrame
    spec: FormulaSpec
    cluster_key: str
    baseline: Any
    is_continuous: bool
    time_order: Tuple[Any, ...]

    @property
    def outcome(self) -> str:
        return self.spec.outcome

    @property
    def time(self) -> str:
        return self.spec.time

    @property
    def groups(self) -> Tuple[str, ...]:
        return self.spec.groups

    @property
    def change_column(self) -> str:
        return "change" if "change" not in self.data.columns else "change_from_baseline"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute(
    data: pd.DataFrame,
    spec: Union[str, FormulaSpec],
    cluster_key: str,
    baseline: Any,
    options: Union[StatsOptions, str, dict, None] = None,
) -> List[SummaryRow]:
    """
    Summarise observed values and change from baseline per group and timepoint.

    Parameters
    ----------
    data : pd.DataFrame
        Long-format table, one row per subject per timepoint.
    spec : str or FormulaSpec
        Formula naming the outcome, time and grouping fields, e.g.
        ``"measure ~ visit | arm"``. Facet fields are ignored here; split the
        data per facet panel before calling (``longplot.viz.lplot`` does).
    cluster_key : str
        Field identifying the subject each row belongs to.
    baseline : scalar
        Timepoint value that change is measured against. Must occur in the
        time field.
    options : StatsOptions, str or dict, optional
        Summary options. A string is shorthand for ``summary_statistic``.
        Defaults to ``StatsOptions()`` (mean ± SE).

    Returns
    -------
    list of SummaryRow
        One row per (group, timepoint) cell with a defined observed center,
        ordered by group (first appearance in the data) then timepoint.

    Raises
    ------
    InvalidSummaryStatisticError
        If the summary statistic is not supported.
    MissingFieldError
        If any referenced field is absent; all absent fields are named.
    BaselineNotFoundError
        If ``baseline`` does not occur in the time field.

    Examples
    --------
    >>> df = pd.DataFrame({
    ...     "subject_id": [1, 1, 1],
    ...     "visit": [0, 1, 2],
    ...     "measure": [50, 55, 60],
    ... })
    >>> rows = compute(df, "measure ~ visit", "subject_id", baseline=0)
    >>> [r.change_center for r in rows]
    [0.0, 5.0, 10.0]
    """
    options = _coerce_options(options)
    view = bind(data, spec, cluster_key, baseline)
    frame = add_change(view)
    rows = summarize_cells(view, frame, options)
    logger.debug(
        "Summarised %d rows into %d cells (%s, statistic=%s)",
        len(frame), len(rows), view.spec, options.summary_statistic,
    )
    return rows


def bind(
    data: pd.DataFrame,
    spec: Union[str, FormulaSpec],
    cluster_key: str,
    baseline: Any,
) -> LongitudinalView:
    """
    Validate the table against the formula and return a bound view.

    Raises
    ------
    MissingFieldError
        If the outcome, time, grouping or cluster field is absent.
    BaselineNotFoundError
        If ``baseline`` is not one of the time field's values.
    LongplotError
        If the outcome field is not numeric.
    """
    spec = parse(spec)
    if not isinstance(data, pd.DataFrame):
        data = pd.DataFrame(data)

    required = [spec.outcome, spec.time, *spec.groups, cluster_key]
    require_fields(data, required)

    time_values = data[spec.time]
    if not _contains(time_values, baseline):
        raise BaselineNotFoundError(baseline, spec.time)

    outcome_values = data[spec.outcome]
    if not pd.api.types.is_numeric_dtype(outcome_values) or pd.api.types.is_bool_dtype(outcome_values):
        raise LongplotError(
            f"Outcome variable '{spec.outcome}' must be numeric, "
            f"got dtype {outcome_values.dtype}."
        )

    is_continuous = _is_continuous(time_values)
    columns = list(dict.fromkeys(required))
    projected = data[columns].copy()
    projected[spec.outcome] = projected[spec.outcome].astype(float)

    return LongitudinalView(
        data=projected,
        spec=spec,
        cluster_key=cluster_key,
        baseline=baseline,
        is_continuous=is_continuous,
        time_order=canonical_time_order(time_values, baseline, is_continuous),
    )


def require_fields(data: pd.DataFrame, fields: Sequence[str]) -> None:
    """Raise one MissingFieldError naming every field absent from ``data``."""
    missing = [f for f in dict.fromkeys(fields) if f not in data.columns]
    if missing:
        raise MissingFieldError(missing)


def canonical_time_order(
    values,
    baseline: Any,
    is_continuous: Optional[bool] = None,
) -> Tuple[Any, ...]:
    """
    Deterministic ordering of the distinct timepoints.

    Continuous (numeric) time is sorted ascending. Categorical time puts the
    baseline first and keeps the remaining values in the order they are first
    encountered. Two refinements apply to the non-baseline values: a pandas
    Categorical column uses its declared category order, and labels that
    form a numbered series ("Week 4", "Week 8", "Week 12") are put in
    numeric order among themselves while unnumbered labels such as
    "Screening" stay where they were first seen. Missing values are ignored.

    Examples
    --------
    >>> canonical_time_order(["Week 8", "Baseline", "Week 4"], "Baseline")
    ('Baseline', 'Week 4', 'Week 8')
    >>> canonical_time_order(["Screening", "Baseline", "Follow-up"], "Baseline")
    ('Baseline', 'Screening', 'Follow-up')
    """
    values = pd.Series(values)
    if is_continuous is None:
        is_continuous = _is_continuous(values)

    if is_continuous:
        return tuple(_py(v) for v in np.sort(values.dropna().unique()))

    if isinstance(values.dtype, pd.CategoricalDtype):
        present = set(values.dropna().unique())
        levels = [c for c in values.cat.categories if c in present]
    else:
        levels = pd.unique(values.dropna()).tolist()
        levels = _numbered_series_order([v for v in levels if v != baseline])

    return (baseline, *(_py(v) for v in levels if v != baseline))


def add_change(view: LongitudinalView) -> pd.DataFrame:
    """
    Add each row's change from its subject's baseline outcome.

    Returns a new frame with an extra ``change`` column (named
    ``change_from_baseline`` if the data already has a ``change`` field).
    Subjects without a baseline row, or with a missing baseline outcome,
    get a missing change at every timepoint; their observed values are
    untouched.
    """
    df = view.data.copy()
    cluster = view.cluster_key

    at_baseline = df[df[view.time] == view.baseline]
    baseline_outcome = (
        at_baseline.drop_duplicates(subset=cluster)
        .set_index(cluster)[view.outcome]
    )
    df[view.change_column] = df[view.outcome] - df[cluster].map(baseline_outcome)

    without_baseline = set(df[cluster].dropna().unique()) - set(baseline_outcome.dropna().index)
    if without_baseline:
        logger.warning(
            "%d subject(s) have no %s value at baseline %s=%r; their change "
            "values are left missing.",
            len(without_baseline), view.outcome, view.time, view.baseline,
        )
    return df


def summarize_cells(
    view: LongitudinalView,
    frame: pd.DataFrame,
    options: StatsOptions,
) -> List[SummaryRow]:
    """
    Compute observed and change statistics for every (group, timepoint) cell.

    Rows with a missing group label or timepoint belong to no cell. Cells
    whose observed center is undefined (every outcome missing) are dropped.
    """
    statistic = options.summary_statistic
    level = options.confidence_level
    change_col = view.change_column
    time_rank = {t: i for i, t in enumerate(view.time_order)}

    keys = [*view.groups, view.time]
    if view.groups:
        group_order = {
            tuple(_py(v) for v in key): i
            for i, key in enumerate(
                frame[list(view.groups)].dropna().drop_duplicates().itertuples(index=False, name=None)
            )
        }
    else:
        group_order = {(): 0}

    rows = []
    for key, cell in frame.groupby(keys, sort=False, observed=True):
        key = tuple(_py(k) for k in (key if isinstance(key, tuple) else (key,)))
        group, timepoint = key[:-1], key[-1]

        observed = _summarize(cell[view.outcome].to_numpy(), statistic, level)
        if observed["center"] is None:
            continue
        change = _summarize(cell[change_col].to_numpy(), statistic, level)

        rows.append(SummaryRow(
            group=group,
            group_label=".".join(str(g) for g in group) if group else "all",
            timepoint=timepoint,
            time_rank=time_rank[timepoint],
            is_continuous=view.is_continuous,
            summary_statistic=statistic,
            **observed,
            **{f"change_{name}": value for name, value in change.items()},
        ))

    rows.sort(key=lambda r: (group_order[r.group], r.time_rank))
    return rows


def summary_frame(rows: Sequence[SummaryRow], view: str = "observed") -> pd.DataFrame:
    """
    Flatten SummaryRows into the table consumed by the renderer.

    Both views share one column layout — group, timepoint, is_continuous,
    summary_statistic, n, center, spread, standard_error, lower, upper, q25,
    q75, insufficient_data, p_value, adjusted_p_value, significance — so the
    renderer draws either without knowing which it has. For the change view
    the ``change_*`` statistics fill those columns. Statistics that are not
    computable appear as NaN; rows whose center is NaN are not drawn.
    Categorical timepoints become an ordered Categorical in canonical order.

    Parameters
    ----------
    rows : sequence of SummaryRow
    view : str
        "observed" or "change".

    Raises
    ------
    ValueError
        If view is not "observed" or "change".
    """
    if view not in ("observed", "change"):
        raise ValueError(f"Unknown view '{view}'. Choose from: 'observed', 'change'.")
    prefix = "" if view == "observed" else "change_"

    records = []
    for row in rows:
        record = {
            "group": row.group_label,
            "timepoint": row.timepoint,
            "time_rank": row.time_rank,
            "is_continuous": row.is_continuous,
            "summary_statistic": row.summary_statistic,
        }
        for name in _STAT_FIELDS:
            record[name] = getattr(row, prefix + name)
        record["p_value"] = row.p_value
        record["adjusted_p_value"] = row.adjusted_p_value
        record["significance"] = row.significance
        records.append(record)

    columns = [
        "group", "timepoint", "time_rank", "is_continuous", "summary_statistic",
        *_STAT_FIELDS, "p_value", "adjusted_p_value", "significance",
    ]
    result = pd.DataFrame(records, columns=columns)
    float_cols = ["center", "spread", "standard_error", "lower", "upper",
                  "q25", "q75", "p_value", "adjusted_p_value"]
    for col in float_cols:
        result[col] = pd.to_numeric(result[col], errors="coerce").astype(float)

    if len(result) and not bool(result["is_continuous"].iloc[0]):
        order = (
            result.drop_duplicates("time_rank")
            .sort_values("time_rank")["timepoint"].tolist()
        )
        result["timepoint"] = pd.Categorical(result["timepoint"], categories=order, ordered=True)
    return result


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _summarize(values, statistic: str, confidence_level: Optional[float]) -> Dict[str, Any]:
    """Statistics for one series of cell values; NaNs are ignored."""
    x = np.asarray(values, dtype=float)
    x = x[~np.isnan(x)]
    n = int(x.size)

    if n == 0:
        return {
            "n": 0, "center": None, "spread": None, "standard_error": None,
            "lower": None, "upper": None, "q25": None, "q75": None,
            "insufficient_data": True,
        }

    q25, q75 = (float(q) for q in np.percentile(x, [25, 75]))
    iqr = q75 - q25
    standard_error = None

    if statistic in ("mean", "mean_se"):
        center = float(x.mean())
        if n < 2:
            spread = None
            lower = upper = center
        else:
            spread = float(x.std(ddof=1))
            standard_error = spread / np.sqrt(n)
            half_width = standard_error
            if statistic == "mean" and confidence_level is not None:
                t_crit = float(sps.t.ppf((1 + confidence_level) / 2, df=n - 1))
                half_width = t_crit * standard_error
            lower, upper = center - half_width, center + half_width

    elif statistic == "median":
        center = float(np.median(x))
        spread = iqr
        if confidence_level is None:
            lower, upper = q25, q75
        else:
            half_width = MEDIAN_CI_FACTOR * iqr / np.sqrt(n)
            lower, upper = center - half_width, center + half_width

    elif statistic == "boxplot":
        center = float(np.median(x))
        spread = iqr
        lower = max(float(x.min()), q25 - WHISKER_IQR * iqr)
        upper = min(float(x.max()), q75 + WHISKER_IQR * iqr)

    else:
        raise ValueError(f"Unknown summary statistic '{statistic}'.")

    return {
        "n": n,
        "center": center,
        "spread": spread,
        "standard_error": None if standard_error is None else float(standard_error),
        "lower": float(lower),
        "upper": float(upper),
        "q25": q25,
        "q75": q75,
        "insufficient_data": n < 2,
    }


def _numbered_series_order(labels: list) -> list:
    """
    Put each '<prefix> <number>' series in numeric order within the slots
    its labels already occupy; other labels keep their positions.
    """
    slots: Dict[str, List[int]] = {}
    numbers = {}
    for i, label in enumerate(labels):
        match = _NUMBERED_LABEL.match(str(label))
        if match:
            slots.setdefault(match.group(1).strip().lower(), []).append(i)
            numbers[i] = float(match.group(2))

    ordered = list(labels)
    for positions in slots.values():
        by_number = sorted(positions, key=numbers.__getitem__)
        for slot, source in zip(positions, by_number):
            ordered[slot] = labels[source]
    return ordered


def _coerce_options(options) -> StatsOptions:
    if options is None:
        return StatsOptions()
    if isinstance(options, StatsOptions):
        return options
    if isinstance(options, str):
        return StatsOptions(summary_statistic=options)
    if isinstance(options, dict):
        return StatsOptions(**options)
    raise TypeError(
        f"options must be a StatsOptions, str or dict, got {type(options).__name__}"
    )


def _is_continuous(values: pd.Series) -> bool:
    return bool(
        pd.api.types.is_numeric_dtype(values)
        and not pd.api.types.is_bool_dtype(values)
    )


def _contains(values: pd.Series, value: Any) -> bool:
    try:
        return bool((values == value).any())
    except TypeError:
        return False


def _py(value):
    """numpy scalar -> plain Python scalar, so rows compare cleanly."""
    return value.item() if isinstance(value, np.generic) else value
