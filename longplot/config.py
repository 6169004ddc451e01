"""
longplot/config.py

Option bundles for the statistics engine and the renderer.

``StatsOptions`` is the only configuration the engine reads. ``PlotOptions``
covers presentation. Convenience presets (clinical, publication) are expanded
into explicit values by ``resolve_options`` before anything is computed, so
no composite mode flag ever reaches the engine.
"""

from dataclasses import dataclass, fields
from typing import Optional, List, Dict, Any, Tuple

from longplot.errors import InvalidSummaryStatisticError

SUMMARY_STATISTICS = ("mean", "mean_se", "median", "boxplot")
ERROR_TYPES = ("bar", "band")


@dataclass(frozen=True)
class StatsOptions:
    """Options for ``longplot.stats.compute``.

    Attributes:
        summary_statistic: One of "mean", "mean_se", "median", "boxplot".
            "mean" uses a t-based confidence interval when confidence_level
            is given and mean ± SE otherwise; "mean_se" always uses mean ± SE.
        confidence_level: Optional level in (0, 1), e.g. 0.95. Ignored by
            "mean_se" and "boxplot".
    """

    summary_statistic: str = "mean"
    confidence_level: Optional[float] = None

    def __post_init__(self):
        if self.summary_statistic not in SUMMARY_STATISTICS:
            raise InvalidSummaryStatisticError(self.summary_statistic, SUMMARY_STATISTICS)
        if self.confidence_level is not None:
            level = self.confidence_level
            if isinstance(level, bool) or not isinstance(level, (int, float)) or not 0 < level < 1:
                raise ValueError(
                    f"confidence_level must be a float in (0, 1), got {level!r}"
                )


@dataclass
class PlotOptions:
    """Presentation options for ``longplot.viz``.

    Attributes:
        error_type: "bar" (error bars) or "band" (ribbons).
        jitter_width: Horizontal dodge between groups; 0 disables it.
        color_palette: Explicit colours, a list or a {group: colour} dict.
        treatment_colors: "standard" to colour groups by clinical convention.
        show_sample_sizes: Annotate each point with its n.
        statistical_annotations: Run group comparisons and mark significance.
        theme: Publication theme name (see ``longplot.themes``).
        reference_lines: Dicts with value, axis ("x"/"y"), color, linestyle.
        ribbon_alpha: Ribbon opacity in [0, 1].
        ribbon_fill: Single fill colour for ribbons instead of group colours.
    """

    error_type: str = "bar"
    jitter_width: float = 0.1
    color_palette: Optional[Any] = None
    treatment_colors: Optional[str] = None
    show_sample_sizes: bool = False
    statistical_annotations: bool = False
    theme: Optional[str] = None
    reference_lines: Optional[List[Dict[str, Any]]] = None
    ribbon_alpha: float = 0.2
    ribbon_fill: Optional[str] = None

    def __post_init__(self):
        if self.error_type not in ERROR_TYPES:
            raise ValueError(
                f"Invalid error_type '{self.error_type}'. "
                f"Must be one of: {', '.join(ERROR_TYPES)}"
            )
        if isinstance(self.jitter_width, bool) or not isinstance(self.jitter_width, (int, float)) \
                or self.jitter_width < 0:
            raise ValueError("jitter_width must be a non-negative numeric value")
        if not 0 <= self.ribbon_alpha <= 1:
            raise ValueError(f"ribbon_alpha must be in [0, 1], got {self.ribbon_alpha}")
        if self.treatment_colors not in (None, "standard"):
            raise ValueError(
                f"Unknown treatment_colors '{self.treatment_colors}'. Choose from: 'standard'."
            )


def resolve_options(
    clinical_mode: bool = False,
    publication_ready: bool = False,
    **overrides,
) -> Tuple[StatsOptions, PlotOptions]:
    """
    Expand convenience presets into explicit option bundles.

    Parameters
    ----------
    clinical_mode : bool
        Clinical-trial defaults: 95% confidence interval, standard treatment
        colours, sample sizes, significance annotations and the "nejm" theme.
    publication_ready : bool
        Publication defaults: "nature" theme, 95% confidence interval and
        sample sizes. Clinical defaults take precedence where both apply.
    **overrides
        Any field of StatsOptions or PlotOptions. Explicit values always win
        over preset values; unknown names raise TypeError.

    Returns
    -------
    tuple of (StatsOptions, PlotOptions)
    """
    stats_names = {f.name for f in fields(StatsOptions)}
    plot_names = {f.name for f in fields(PlotOptions)}
    unknown = set(overrides) - stats_names - plot_names
    if unknown:
        raise TypeError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    preset: Dict[str, Any] = {}
    if publication_ready:
        preset.update(theme="nature", confidence_level=0.95, show_sample_sizes=True)
    if clinical_mode:
        preset.update(
            confidence_level=0.95,
            treatment_colors="standard",
            show_sample_sizes=True,
            statistical_annotations=True,
            theme="nejm",
        )

    # None means "not set" for optional overrides, so presets still apply.
    merged = dict(preset)
    for key, value in overrides.items():
        if value is None and key in preset:
            continue
        merged[key] = value

    stats_opts = StatsOptions(**{k: v for k, v in merged.items() if k in stats_names})
    plot_opts = PlotOptions(**{k: v for k, v in merged.items() if k in plot_names})
    return stats_opts, plot_opts
