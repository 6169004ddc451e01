"""
longplot/errors.py

Exception types raised by longplot.

Every error derives from ``LongplotError``, which is itself a ``ValueError``,
so code that already guards calls with ``except ValueError`` keeps working.
All of them signal bad arguments and are raised before any statistic is
computed.
"""


class LongplotError(ValueError):
    """Base class for all longplot argument errors."""


class MalformedSpecError(LongplotError):
    """The formula text does not follow ``y ~ x | groups ~ facets``."""


class MissingFieldError(LongplotError):
    """One or more referenced fields are absent from the dataset."""

    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__(
            "The following required columns are missing from the data frame: "
            + ", ".join(str(f) for f in self.fields)
        )


class BaselineNotFoundError(LongplotError):
    """The baseline value does not occur in the time field."""

    def __init__(self, baseline, time_field: str):
        self.baseline = baseline
        self.time_field = time_field
        super().__init__(
            f"The baseline value '{baseline}' is not present in the "
            f"time variable '{time_field}'."
        )


class InvalidSummaryStatisticError(LongplotError):
    """The requested summary statistic is not one of the supported kinds."""

    def __init__(self, value, valid=("mean", "mean_se", "median", "boxplot")):
        self.value = value
        super().__init__(
            f"Invalid summary_statistic '{value}'. "
            f"Must be one of: {', '.join(valid)}"
        )


class UnsupportedComparisonError(LongplotError):
    """Group comparisons need exactly one grouping field."""
