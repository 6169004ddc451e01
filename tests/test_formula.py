"""
tests/test_formula.py

Unit tests for longplot.formula.
"""

import pytest

from longplot.errors import MalformedSpecError
from longplot.formula import FormulaSpec, parse, parse_facet_formula


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

class TestParse:

    def test_outcome_and_time(self):
        spec = parse("measure ~ visit")
        assert spec == FormulaSpec(outcome="measure", time="visit")
        assert spec.groups == ()
        assert spec.facets == ()

    def test_single_group(self):
        spec = parse("measure ~ visit | arm")
        assert spec.groups == ("arm",)

    def test_multiple_groups_keep_order(self):
        spec = parse("measure ~ visit | arm + sex")
        assert spec.groups == ("arm", "sex")

    def test_groups_and_facets(self):
        spec = parse("aval ~ avisit | trt01p ~ site + region")
        assert spec.outcome == "aval"
        assert spec.time == "avisit"
        assert spec.groups == ("trt01p",)
        assert spec.facets == ("site", "region")

    def test_facets_without_groups(self):
        spec = parse("measure ~ visit ~ site")
        assert spec.groups == ()
        assert spec.facets == ("site",)

    def test_whitespace_is_trimmed(self):
        spec = parse("  measure~visit|  arm +sex ")
        assert spec == FormulaSpec("measure", "visit", ("arm", "sex"))

    def test_formula_spec_passes_through(self):
        spec = FormulaSpec("y", "t", ("g",))
        assert parse(spec) is spec

    def test_variables_deduplicated_in_order(self):
        spec = parse("y ~ t | g ~ g + f")
        assert spec.variables == ("y", "t", "g", "f")

    def test_group_label(self):
        assert parse("y ~ t | a + b").group_label == "a + b"
        assert parse("y ~ t").group_label is None

    def test_str_round_trips(self):
        text = "y ~ t | a + b ~ f"
        assert str(parse(text)) == text

    @pytest.mark.parametrize("text", [
        "measure visit",
        "~ visit",
        "measure ~ ",
        "measure ~ | arm",
        "measure ~ visit |",
        "measure ~ visit | arm +",
        "measure ~ visit | arm ~ ",
    ])
    def test_malformed_raises(self, text):
        with pytest.raises(MalformedSpecError):
            parse(text)

    def test_non_string_raises(self):
        with pytest.raises(MalformedSpecError, match="string"):
            parse(42)

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            parse("no tilde here")

    def test_fields_not_checked(self):
        # existence is the engine's job, not the parser's
        assert parse("does_not_exist ~ neither").outcome == "does_not_exist"


# ---------------------------------------------------------------------------
# parse_facet_formula
# ---------------------------------------------------------------------------

class TestParseFacetFormula:

    def test_rows_and_cols(self):
        assert parse_facet_formula("site ~ sex") == ("site", "sex")

    def test_dot_means_none(self):
        assert parse_facet_formula(". ~ site") == (None, "site")
        assert parse_facet_formula("site ~ .") == ("site", None)

    def test_blank_side(self):
        assert parse_facet_formula("~ site") == (None, "site")

    def test_both_empty_raises(self):
        with pytest.raises(MalformedSpecError):
            parse_facet_formula(". ~ .")

    def test_no_tilde_raises(self):
        with pytest.raises(MalformedSpecError):
            parse_facet_formula("site")
