"""
tests/test_config.py

Unit tests for longplot.config.
"""

import pytest

from longplot.config import PlotOptions, StatsOptions, resolve_options
from longplot.errors import InvalidSummaryStatisticError


# ---------------------------------------------------------------------------
# StatsOptions / PlotOptions
# ---------------------------------------------------------------------------

class TestStatsOptions:

    def test_defaults(self):
        opts = StatsOptions()
        assert opts.summary_statistic == "mean"
        assert opts.confidence_level is None

    @pytest.mark.parametrize("stat", ["mean", "mean_se", "median", "boxplot"])
    def test_valid_statistics(self, stat):
        assert StatsOptions(stat).summary_statistic == stat

    def test_invalid_statistic(self):
        with pytest.raises(InvalidSummaryStatisticError, match="Must be one of"):
            StatsOptions("geometric")

    @pytest.mark.parametrize("level", [0, 1, 1.5, -0.2, True, "0.95"])
    def test_invalid_confidence_level(self, level):
        with pytest.raises(ValueError):
            StatsOptions(confidence_level=level)

    def test_frozen(self):
        opts = StatsOptions()
        with pytest.raises(AttributeError):
            opts.summary_statistic = "median"


class TestPlotOptions:

    def test_defaults(self):
        opts = PlotOptions()
        assert opts.error_type == "bar"
        assert opts.jitter_width == 0.1

    def test_invalid_error_type(self):
        with pytest.raises(ValueError, match="error_type"):
            PlotOptions(error_type="whisker")

    @pytest.mark.parametrize("width", [-0.1, "wide", True])
    def test_invalid_jitter(self, width):
        with pytest.raises(ValueError, match="jitter_width"):
            PlotOptions(jitter_width=width)

    def test_invalid_ribbon_alpha(self):
        with pytest.raises(ValueError):
            PlotOptions(ribbon_alpha=2)

    def test_invalid_treatment_colors(self):
        with pytest.raises(ValueError):
            PlotOptions(treatment_colors="rainbow")


# ---------------------------------------------------------------------------
# resolve_options
# ---------------------------------------------------------------------------

class TestResolveOptions:

    def test_no_presets(self):
        stats_opts, plot_opts = resolve_options()
        assert stats_opts == StatsOptions()
        assert plot_opts == PlotOptions()

    def test_clinical_preset(self):
        stats_opts, plot_opts = resolve_options(clinical_mode=True)
        assert stats_opts.confidence_level == 0.95
        assert plot_opts.treatment_colors == "standard"
        assert plot_opts.show_sample_sizes
        assert plot_opts.statistical_annotations
        assert plot_opts.theme == "nejm"

    def test_publication_preset(self):
        stats_opts, plot_opts = resolve_options(publication_ready=True)
        assert stats_opts.confidence_level == 0.95
        assert plot_opts.theme == "nature"
        assert plot_opts.show_sample_sizes
        assert not plot_opts.statistical_annotations

    def test_clinical_theme_wins_over_publication(self):
        _, plot_opts = resolve_options(clinical_mode=True, publication_ready=True)
        assert plot_opts.theme == "nejm"

    def test_explicit_override_wins(self):
        stats_opts, plot_opts = resolve_options(
            clinical_mode=True, confidence_level=0.9, theme="fda",
            statistical_annotations=False,
        )
        assert stats_opts.confidence_level == 0.9
        assert plot_opts.theme == "fda"
        assert not plot_opts.statistical_annotations

    def test_none_override_keeps_preset(self):
        stats_opts, _ = resolve_options(clinical_mode=True, confidence_level=None)
        assert stats_opts.confidence_level == 0.95

    def test_overrides_split_between_bundles(self):
        stats_opts, plot_opts = resolve_options(summary_statistic="median", error_type="band")
        assert stats_opts.summary_statistic == "median"
        assert plot_opts.error_type == "band"

    def test_unknown_option(self):
        with pytest.raises(TypeError, match="colour"):
            resolve_options(colour="red")

    def test_invalid_value_propagates(self):
        with pytest.raises(InvalidSummaryStatisticError):
            resolve_options(summary_statistic="mode")
