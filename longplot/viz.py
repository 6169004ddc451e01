"""
longplot/viz.py

Rendering of longitudinal summaries.

    generate_plot  — draw one summary_frame() table onto a matplotlib axes:
                     lines and points per group with error bars or ribbons,
                     or box glyphs for boxplot summaries.

    lplot          — the one-call entry point: parse the formula, compute the
                     summaries per facet panel, optionally add significance
                     markers, and draw observed values, change from baseline,
                     or both side by side.

The drawing code does no statistics; everything it shows comes from the
SummaryRows produced by longplot.stats.
"""

import logging
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from longplot.compare import annotate
from longplot.config import ERROR_TYPES, PlotOptions, StatsOptions, resolve_options
from longplot.errors import BaselineNotFoundError, LongplotError
from longplot.formula import FormulaSpec, parse, parse_facet_formula
from longplot.stats import bind, compute, require_fields, summary_frame
from longplot.themes import (
    CLINICAL_PALETTES,
    PUBLICATION_THEMES,
    assign_treatment_colors,
    publication_style,
    theme_palette,
)

logger = logging.getLogger(__name__)

PLOT_TYPES = ("obs", "change", "both")

_ERRORBAR_COLOR = "black"
_REFLINE_COLOR = "red"
_NO_MARKER = ("", "ns")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_plot(
    stats: pd.DataFrame,
    error_type: str = "bar",
    jitter_width: float = 0.1,
    ax=None,
    xlab: Optional[str] = None,
    ylab: Optional[str] = None,
    title: Optional[str] = None,
    subtitle: Optional[str] = None,
    caption: Optional[str] = None,
    color_palette=None,
    reference_lines: Optional[List[Dict[str, Any]]] = None,
    show_sample_sizes: bool = False,
    statistical_annotations: bool = False,
    use_boxplot: bool = False,
    ribbon_alpha: float = 0.2,
    ribbon_fill: Optional[str] = None,
    figsize: tuple = (6, 4),
) -> plt.Figure:
    """
    Draw a summary table as a longitudinal plot.

    Parameters
    ----------
    stats : pd.DataFrame
        Output of ``longplot.summary_frame`` (observed or change view).
        Rows whose center is NaN are skipped.
    error_type : str
        "bar" for error bars, "band" for shaded ribbons. Ignored when
        ``use_boxplot`` is True.
    jitter_width : float
        Horizontal dodge spread between groups. 0 draws groups on top of
        each other.
    ax : matplotlib.axes.Axes, optional
        Axes to draw into. A new figure is created when None.
    xlab, ylab, title, subtitle, caption : str, optional
        Text labels. The subtitle goes under the title; the caption sits
        below the axes, right-aligned.
    color_palette : list or dict, optional
        Colours per group, either in group order or keyed by group label.
        Defaults to the seaborn palette.
    reference_lines : list of dict, optional
        Each dict has ``value`` and optionally ``axis`` ("y" default or
        "x"), ``color``, ``linestyle``, ``linewidth`` and ``alpha``. On a
        categorical time axis an x value may be a timepoint label.
    show_sample_sizes : bool
        Label each point with "n = k".
    statistical_annotations : bool
        Draw significance markers above timepoints whose marker is not
        "ns" or empty.
    use_boxplot : bool
        Draw box glyphs (q25–q75 box, whiskers to lower/upper, median line)
        instead of lines and points.
    ribbon_alpha : float
        Ribbon opacity for error_type="band".
    ribbon_fill : str, optional
        Single ribbon colour instead of each group's colour.
    figsize : tuple
        Figure size when a new figure is created.

    Returns
    -------
    matplotlib.figure.Figure

    Raises
    ------
    ValueError
        If error_type is not "bar" or "band".
    """
    if error_type not in ERROR_TYPES:
        raise ValueError(
            f"Invalid error_type '{error_type}'. Must be one of: {', '.join(ERROR_TYPES)}"
        )

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()

    plot_df = stats[stats["center"].notna()].copy()
    groups = list(dict.fromkeys(stats["group"]))
    colors = _resolve_colors(groups, color_palette)

    # ── Time axis ────────────────────────────────────────────────────────────
    is_categorical = isinstance(stats["timepoint"].dtype, pd.CategoricalDtype)
    if is_categorical:
        levels = list(stats["timepoint"].cat.categories)
        position = {level: float(i) for i, level in enumerate(levels)}
        plot_df["base_x"] = plot_df["timepoint"].map(position).astype(float)
    else:
        levels = None
        position = {}
        plot_df["base_x"] = plot_df["timepoint"].astype(float)

    dodged = len(groups) > 1 and jitter_width > 0
    offsets = {
        g: ((i - (len(groups) - 1) / 2) * jitter_width / len(groups)) if dodged else 0.0
        for i, g in enumerate(groups)
    }
    plot_df["x"] = plot_df["base_x"] + plot_df["group"].map(offsets)

    # ── One layer set per group ──────────────────────────────────────────────
    half_box = 0.25 / len(groups) if dodged else 0.3
    for group in groups:
        grp = plot_df[plot_df["group"] == group].sort_values("x")
        if grp.empty:
            continue
        color = colors[group]
        label = None if group == "all" else str(group)

        if use_boxplot:
            _draw_boxes(ax, grp, color, half_box, label)
            continue

        ax.plot(grp["x"], grp["center"], color=color, marker="o", lw=1.5,
                ms=4, label=label, zorder=3)
        bounded = grp[grp["lower"].notna() & grp["upper"].notna()]
        if bounded.empty:
            continue
        if error_type == "bar":
            ax.errorbar(
                bounded["x"], bounded["center"],
                yerr=[bounded["center"] - bounded["lower"], bounded["upper"] - bounded["center"]],
                fmt="none", ecolor=_ERRORBAR_COLOR, alpha=0.3, capsize=3, zorder=2,
            )
        else:
            ax.fill_between(
                bounded["x"], bounded["lower"], bounded["upper"],
                color=ribbon_fill or color, alpha=ribbon_alpha, lw=0, zorder=1,
            )

    # ── Annotations ──────────────────────────────────────────────────────────
    if show_sample_sizes:
        for row in plot_df.itertuples(index=False):
            ax.annotate(
                f"n = {int(row.n)}", (row.x, row.center),
                textcoords="offset points", xytext=(0, 6),
                ha="center", fontsize=7, alpha=0.7,
            )

    if statistical_annotations:
        _draw_significance(ax, plot_df)

    for ref in reference_lines or []:
        _draw_reference_line(ax, ref, position)

    # ── Labels and axes ──────────────────────────────────────────────────────
    if levels is not None:
        ax.set_xticks(range(len(levels)))
        ax.set_xticklabels([str(level) for level in levels])
        ax.set_xlim(-0.5, len(levels) - 0.5)

    ax.set_xlabel(xlab or "")
    ax.set_ylabel(ylab or "")
    heading = "\n".join(t for t in (title, subtitle) if t)
    if heading:
        ax.set_title(heading)
    if caption:
        ax.annotate(
            caption, xy=(1, 0), xycoords="axes fraction",
            xytext=(0, -32), textcoords="offset points",
            ha="right", va="top", fontsize=8,
        )
    if any(g != "all" for g in groups):
        ax.legend(frameon=False, fontsize=8)

    return fig


def lplot(
    df: pd.DataFrame,
    form,
    cluster_var: str = "subject_id",
    baseline_value: Any = "baseline",
    plot_type: str = "obs",
    error_type: Optional[str] = None,
    facet_form: Optional[str] = None,
    options: Optional[Tuple[StatsOptions, PlotOptions]] = None,
    clinical_mode: bool = False,
    publication_ready: bool = False,
    xlab: Optional[str] = None,
    ylab: Optional[str] = None,
    ylab2: Optional[str] = None,
    title: Optional[str] = "Observed Values",
    title2: Optional[str] = "Change from Baseline",
    subtitle: Optional[str] = None,
    subtitle2: Optional[str] = None,
    caption: Optional[str] = None,
    caption2: Optional[str] = None,
    figsize: Optional[tuple] = None,
    **option_overrides,
) -> plt.Figure:
    """
    Plot observed values and/or change from baseline for longitudinal data.

    Parameters
    ----------
    df : pd.DataFrame
        Long-format data, one row per subject per timepoint.
    form : str or FormulaSpec
        ``"outcome ~ time"``, ``"outcome ~ time | group"`` or
        ``"outcome ~ time | group ~ facet"``. Up to two facet fields are
        allowed: the first splits columns, the second rows.
    cluster_var : str
        Subject identifier column.
    baseline_value : scalar
        Timepoint value used as baseline for change.
    plot_type : str
        "obs", "change" or "both" (side by side).
    error_type : str, optional
        "bar" or "band". Shorthand for the PlotOptions field.
    facet_form : str, optional
        Separate ``"rows ~ cols"`` facet formula. Cannot be combined with
        facets in ``form``.
    options : tuple of (StatsOptions, PlotOptions), optional
        Fully resolved options, e.g. from ``resolve_options``. When given,
        presets and option overrides must not be passed.
    clinical_mode, publication_ready : bool
        Convenience presets, expanded by ``resolve_options``.
    xlab, ylab, ylab2, title, title2, subtitle, subtitle2, caption, caption2 : str
        Labels for the observed (unsuffixed) and change (``2``) plots.
        Axis labels default to the formula's field names.
    figsize : tuple, optional
        Overall figure size.
    **option_overrides
        Any StatsOptions or PlotOptions field, e.g. ``summary_statistic``,
        ``confidence_level``, ``jitter_width``, ``show_sample_sizes``,
        ``theme``, ``reference_lines``.

    Returns
    -------
    matplotlib.figure.Figure

    Raises
    ------
    ValueError
        For an invalid plot_type, error_type or option value.
    MissingFieldError, BaselineNotFoundError, MalformedSpecError
        Propagated from formula parsing and data binding.

    Examples
    --------
    >>> from longplot import simulate
    >>> df = simulate.simulate_trial(seed=0)
    >>> fig = lplot(df, "measure ~ visit | arm", baseline_value="Baseline",
    ...             plot_type="both", clinical_mode=True)
    """
    if not isinstance(df, pd.DataFrame):
        raise TypeError("Input 'df' must be a pandas DataFrame")
    if plot_type not in PLOT_TYPES:
        raise ValueError(
            f"Invalid plot_type '{plot_type}'. Must be one of: {', '.join(PLOT_TYPES)}"
        )

    if error_type is not None:
        option_overrides["error_type"] = error_type
    if options is not None:
        if option_overrides or clinical_mode or publication_ready:
            raise TypeError("Pass either resolved options or presets/overrides, not both.")
        stats_opts, plot_opts = options
    else:
        stats_opts, plot_opts = resolve_options(
            clinical_mode=clinical_mode,
            publication_ready=publication_ready,
            **option_overrides,
        )

    spec = parse(form)
    facet_rows, facet_cols = _facet_fields(spec, facet_form)
    require_fields(df, [f for f in (facet_rows, facet_cols) if f is not None])
    # fail early, before any panel is split off
    bind(df, spec, cluster_var, baseline_value)

    theme = plot_opts.theme
    if theme is not None and theme not in PUBLICATION_THEMES and theme not in CLINICAL_PALETTES:
        raise ValueError(
            f"Unknown theme '{theme}'. Choose from: "
            f"{', '.join(sorted(set(PUBLICATION_THEMES) | set(CLINICAL_PALETTES)))}."
        )

    color_palette = plot_opts.color_palette
    if color_palette is None and plot_opts.treatment_colors == "standard":
        color_palette = assign_treatment_colors(_group_labels(df, spec))
    if color_palette is None and theme is not None:
        color_palette = theme_palette(theme)
    # fixed across panels, so a group keeps its colour where others are absent
    group_colors = _resolve_colors(_group_labels(df, spec), color_palette)

    annotate_panels = plot_opts.statistical_annotations
    if annotate_panels and len(spec.groups) != 1:
        logger.warning(
            "Statistical annotations need exactly one grouping field; formula '%s' "
            "has %d. Annotations skipped.", spec, len(spec.groups),
        )
        annotate_panels = False

    row_levels = _levels(df, facet_rows)
    col_levels = _levels(df, facet_cols)
    views = {"obs": ["observed"], "change": ["change"], "both": ["observed", "change"]}[plot_type]
    nrow, ncol = len(row_levels), len(col_levels)

    labels = {
        "observed": dict(ylab=ylab or spec.outcome, title=title,
                         subtitle=subtitle, caption=caption),
        "change": dict(ylab=ylab2 or f"{spec.outcome} change", title=title2,
                       subtitle=subtitle2, caption=caption2),
    }
    xlab = xlab or spec.time

    style = publication_style(theme if theme in PUBLICATION_THEMES else "default") \
        if theme is not None else nullcontext()

    with style:
        if figsize is None:
            figsize = (5.5 * ncol * len(views), 4.2 * nrow)
        fig, axes = plt.subplots(nrow, ncol * len(views), figsize=figsize, squeeze=False)

        for r, row_level in enumerate(row_levels):
            for c, col_level in enumerate(col_levels):
                panel = _panel_data(df, facet_rows, row_level, facet_cols, col_level)
                panel_name = _panel_name(facet_rows, row_level, facet_cols, col_level)

                try:
                    rows = compute(panel, spec, cluster_var, baseline_value, stats_opts)
                except BaselineNotFoundError:
                    logger.warning("Panel %s has no baseline rows; left empty.", panel_name)
                    rows = []
                if annotate_panels and rows:
                    rows = annotate(rows, panel, spec, cluster_var)

                for v, view in enumerate(views):
                    ax = axes[r][c + v * ncol]
                    frame = summary_frame(rows, view)
                    text = dict(labels[view])
                    if panel_name:
                        text["title"] = f"{text['title']} ({panel_name})" if text["title"] else panel_name
                    generate_plot(
                        frame,
                        error_type=plot_opts.error_type,
                        jitter_width=plot_opts.jitter_width,
                        ax=ax,
                        xlab=xlab,
                        color_palette=group_colors,
                        reference_lines=plot_opts.reference_lines,
                        show_sample_sizes=plot_opts.show_sample_sizes,
                        statistical_annotations=annotate_panels,
                        use_boxplot=stats_opts.summary_statistic == "boxplot",
                        ribbon_alpha=plot_opts.ribbon_alpha,
                        ribbon_fill=plot_opts.ribbon_fill,
                        **text,
                    )

        logger.debug(
            "Rendered %s (%s) in %d x %d panel(s)", spec, plot_type, nrow, ncol,
        )
        fig.tight_layout()
    return fig


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _resolve_colors(groups: Sequence, color_palette) -> Dict[Any, str]:
    """Colour per group label from a list, a dict, or the seaborn default."""
    default = sns.color_palette(n_colors=max(len(groups), 1)).as_hex()
    if color_palette is None:
        return {g: default[i] for i, g in enumerate(groups)}
    if isinstance(color_palette, dict):
        return {
            g: color_palette.get(g, default[i]) for i, g in enumerate(groups)
        }
    palette = list(color_palette)
    return {g: palette[i % len(palette)] for i, g in enumerate(groups)}


def _draw_boxes(ax, grp: pd.DataFrame, color: str, half: float, label) -> None:
    for i, row in enumerate(grp.itertuples(index=False)):
        ax.add_patch(plt.Rectangle(
            (row.x - half, row.q25), 2 * half, row.q75 - row.q25,
            facecolor=color, edgecolor="black", alpha=0.8, lw=1,
            label=label if i == 0 else None, zorder=2,
        ))
        ax.vlines(row.x, row.q75, row.upper, color="black", lw=1, zorder=1)
        ax.vlines(row.x, row.lower, row.q25, color="black", lw=1, zorder=1)
        ax.hlines(row.center, row.x - half, row.x + half, color="black", lw=1.5, zorder=3)
    ax.autoscale_view()


def _draw_significance(ax, plot_df: pd.DataFrame) -> None:
    """One marker per timepoint, above the highest error bound drawn there."""
    marked = plot_df[~plot_df["significance"].isin(_NO_MARKER) & plot_df["significance"].notna()]
    if marked.empty:
        return
    marked = marked.assign(top=marked[["upper", "center"]].max(axis=1))
    for x, tp in marked.groupby("base_x", sort=False):
        ax.annotate(
            tp["significance"].iloc[0], (x, tp["top"].max()),
            textcoords="offset points", xytext=(0, 12),
            ha="center", fontsize=10, fontweight="bold",
        )


def _draw_reference_line(ax, ref: Dict[str, Any], position: Dict[Any, float]) -> None:
    if "value" not in ref:
        raise ValueError("Each reference line needs a 'value'.")
    axis = ref.get("axis", "y")
    style = dict(
        color=ref.get("color", _REFLINE_COLOR),
        linestyle=ref.get("linestyle", "--"),
        linewidth=ref.get("linewidth", 0.5),
        alpha=ref.get("alpha", 0.7),
        zorder=0,
    )
    if axis == "y":
        ax.axhline(ref["value"], **style)
    elif axis == "x":
        ax.axvline(position.get(ref["value"], ref["value"]), **style)
    else:
        raise ValueError(f"Reference line axis must be 'x' or 'y', got '{axis}'.")


def _facet_fields(spec: FormulaSpec, facet_form: Optional[str]):
    """(row field, column field) from the formula or a separate facet formula."""
    if facet_form is not None:
        if spec.facets:
            raise LongplotError(
                "Facets given both in the formula and in facet_form; use one."
            )
        return parse_facet_formula(facet_form)
    if len(spec.facets) > 2:
        raise LongplotError(
            f"At most two facet fields are supported, got {len(spec.facets)}."
        )
    cols = spec.facets[0] if spec.facets else None
    rows = spec.facets[1] if len(spec.facets) > 1 else None
    return rows, cols


def _levels(df: pd.DataFrame, field: Optional[str]) -> list:
    if field is None:
        return [None]
    values = df[field]
    if isinstance(values.dtype, pd.CategoricalDtype):
        present = set(values.dropna())
        return [c for c in values.cat.categories if c in present]
    return pd.unique(values.dropna()).tolist()


def _panel_data(df, row_field, row_level, col_field, col_level) -> pd.DataFrame:
    mask = np.ones(len(df), dtype=bool)
    if row_field is not None:
        mask &= (df[row_field] == row_level).to_numpy()
    if col_field is not None:
        mask &= (df[col_field] == col_level).to_numpy()
    return df[mask]


def _panel_name(row_field, row_level, col_field, col_level) -> str:
    parts = []
    if row_field is not None:
        parts.append(f"{row_field} = {row_level}")
    if col_field is not None:
        parts.append(f"{col_field} = {col_level}")
    return ", ".join(parts)


def _group_labels(df: pd.DataFrame, spec: FormulaSpec) -> list:
    if not spec.groups:
        return ["all"]
    combos = df[list(spec.groups)].dropna().drop_duplicates()
    return [".".join(str(v) for v in combo) for combo in combos.itertuples(index=False, name=None)]
