"""
longplot — Longitudinal summaries and change-from-baseline plots

Top-level package exposing the longplot public API.
"""

from longplot import simulate
from longplot.errors import (
    LongplotError,
    MalformedSpecError,
    MissingFieldError,
    BaselineNotFoundError,
    InvalidSummaryStatisticError,
    UnsupportedComparisonError,
)
from longplot.formula import FormulaSpec, parse, parse_facet_formula
from longplot.config import StatsOptions, PlotOptions, resolve_options
from longplot.stats import SummaryRow, LongitudinalView, compute, summary_frame
from longplot.compare import compare_timepoints, annotate
from longplot.preprocess import apply_visit_windows, check_baseline
from longplot.themes import (
    CLINICAL_PALETTES,
    clinical_colors,
    assign_treatment_colors,
    get_colorblind_palette,
    get_publication_theme,
    publication_style,
    apply_publication_style,
)
from longplot.export import (
    JOURNAL_SPECS,
    save_publication,
    publication_panels,
    get_journal_specs,
    list_journals,
)
from longplot.cdisc import suggest_clinical_vars, validate_cdisc_data, get_cdisc_template
from longplot.viz import generate_plot, lplot

__version__ = "0.1.0"
__all__ = [
    "simulate",
    "LongplotError",
    "MalformedSpecError",
    "MissingFieldError",
    "BaselineNotFoundError",
    "InvalidSummaryStatisticError",
    "UnsupportedComparisonError",
    "FormulaSpec",
    "parse",
    "parse_facet_formula",
    "StatsOptions",
    "PlotOptions",
    "resolve_options",
    "SummaryRow",
    "LongitudinalView",
    "compute",
    "summary_frame",
    "compare_timepoints",
    "annotate",
    "apply_visit_windows",
    "check_baseline",
    "CLINICAL_PALETTES",
    "clinical_colors",
    "assign_treatment_colors",
    "get_colorblind_palette",
    "get_publication_theme",
    "publication_style",
    "apply_publication_style",
    "JOURNAL_SPECS",
    "save_publication",
    "publication_panels",
    "get_journal_specs",
    "list_journals",
    "suggest_clinical_vars",
    "validate_cdisc_data",
    "get_cdisc_template",
    "generate_plot",
    "lplot",
]
