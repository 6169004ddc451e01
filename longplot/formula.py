"""
longplot/formula.py

Parsing of the compact plotting formula into named field references.

    y ~ x                       outcome and time only
    y ~ x | g1 + g2             with grouping fields
    y ~ x | g1 ~ f1 + f2        with grouping and facet fields
    y ~ x ~ f1                  facets without grouping

The parser is purely textual. Whether the referenced fields exist is checked
later by the statistics engine, which has the data.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from longplot.errors import MalformedSpecError


@dataclass(frozen=True)
class FormulaSpec:
    """
    Field references extracted from a formula string.

    Attributes
    ----------
    outcome : str
        Measured variable (left of the first ``~``).
    time : str
        Time or visit variable.
    groups : tuple of str
        Grouping fields, in the order written. Empty when ungrouped.
    facets : tuple of str
        Facet fields, in the order written. Empty when not faceted.
    """

    outcome: str
    time: str
    groups: Tuple[str, ...] = ()
    facets: Tuple[str, ...] = ()

    @property
    def variables(self) -> Tuple[str, ...]:
        """Every referenced field, in formula order, without duplicates."""
        seen = []
        for name in (self.outcome, self.time, *self.groups, *self.facets):
            if name not in seen:
                seen.append(name)
        return tuple(seen)

    @property
    def group_label(self) -> Optional[str]:
        return " + ".join(self.groups) if self.groups else None

    def __str__(self) -> str:
        text = f"{self.outcome} ~ {self.time}"
        if self.groups:
            text += " | " + " + ".join(self.groups)
        if self.facets:
            text += " ~ " + " + ".join(self.facets)
        return text


def parse(spec_text: Union[str, FormulaSpec]) -> FormulaSpec:
    """
    Parse a formula string into a FormulaSpec.

    Parameters
    ----------
    spec_text : str or FormulaSpec
        Formula text such as ``"measure ~ visit | arm ~ site"``. An existing
        FormulaSpec is returned unchanged.

    Returns
    -------
    FormulaSpec

    Raises
    ------
    MalformedSpecError
        If the text has no ``~``, the outcome or time token is empty, or a
        group/facet list contains an empty term.

    Examples
    --------
    >>> parse("measure ~ visit | arm")
    FormulaSpec(outcome='measure', time='visit', groups=('arm',), facets=())
    """
    if isinstance(spec_text, FormulaSpec):
        return spec_text
    if not isinstance(spec_text, str):
        raise MalformedSpecError(
            f"Formula must be a string, got {type(spec_text).__name__}."
        )
    if "~" not in spec_text:
        raise MalformedSpecError(
            f"Formula '{spec_text}' has no '~' separating outcome from time."
        )

    outcome, remainder = spec_text.split("~", 1)
    outcome = outcome.strip()

    group_part = None
    facet_part = None
    if "|" in remainder:
        time, group_part = remainder.split("|", 1)
        if "~" in group_part:
            group_part, facet_part = group_part.split("~", 1)
    elif "~" in remainder:
        time, facet_part = remainder.split("~", 1)
    else:
        time = remainder
    time = time.strip()

    if not outcome:
        raise MalformedSpecError(f"Formula '{spec_text}' has an empty outcome.")
    if not time:
        raise MalformedSpecError(f"Formula '{spec_text}' has an empty time variable.")

    groups = _split_terms(group_part, spec_text, "group")
    facets = _split_terms(facet_part, spec_text, "facet")

    return FormulaSpec(outcome=outcome, time=time, groups=groups, facets=facets)


def parse_facet_formula(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Parse a separate ``rows ~ cols`` facet formula.

    Either side may be ``.`` or blank to mean "no faceting on this axis".

    Returns
    -------
    tuple of (rows, cols)
        Field names or None.
    """
    if not isinstance(text, str) or "~" not in text:
        raise MalformedSpecError(
            f"Facet formula must look like 'rows ~ cols', got {text!r}."
        )
    rows, cols = (part.strip() for part in text.split("~", 1))
    rows = None if rows in ("", ".") else rows
    cols = None if cols in ("", ".") else cols
    if rows is None and cols is None:
        raise MalformedSpecError(f"Facet formula {text!r} names no fields.")
    return rows, cols


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _split_terms(part: Optional[str], spec_text: str, kind: str) -> Tuple[str, ...]:
    if part is None:
        return ()
    terms = tuple(t.strip() for t in part.split("+"))
    if any(not t for t in terms):
        raise MalformedSpecError(
            f"Formula '{spec_text}' has an empty {kind} term."
        )
    return terms
