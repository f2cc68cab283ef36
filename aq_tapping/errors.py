"""
Exception and warning types raised by the analysis pipeline.

Input problems, degenerate statistics and incomplete result objects each
stop the run with their own error type. Inconsistent prose values only warn.
"""


class DataValidationError(ValueError):
    """Input file is missing, unparsable, or does not match the expected schema."""


class GenderRecodingError(DataValidationError):
    """Gender column is not on the raw 1/2 scale (e.g. it was already recoded)."""


class StatisticalPreconditionError(ValueError):
    """A statistic is undefined for the data it was given."""


class RenderError(KeyError):
    """A renderer received a result object without a field it needs."""

    def __init__(self, section: str, field: str):
        self.section = section
        self.field = field
        super().__init__(f"{section}: result is missing required field '{field}'")

    def __str__(self) -> str:
        return self.args[0]


class DataConsistencyWarning(UserWarning):
    """A stated value disagrees with the value computed from the data."""
