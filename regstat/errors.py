"""
Exception taxonomy for regstat.

Every error is terminal for the operation that raised it; nothing in the
package retries or recovers.  The classes also derive from the closest
built-in exception so callers that only know about ``ValueError`` keep
working.
"""


class RegstatError(Exception):
    """Base class for all regstat errors."""


class InvalidInput(RegstatError, ValueError):
    """Malformed response / predictor / candidate specification or data."""


class ModelFitError(RegstatError, ArithmeticError):
    """
    OLS fit could not be computed.

    Raised for a rank-deficient design matrix (collinear or constant
    predictors), a constant response, or too few observations for the
    number of coefficients.  ``candidate`` is set when the failure happened
    while forward selection was evaluating that candidate.
    """

    def __init__(self, message, predictors=None, candidate=None):
        super().__init__(message)
        self.predictors = list(predictors) if predictors is not None else []
        self.candidate = candidate


class DegenerateTableError(RegstatError, ValueError):
    """Contingency table smaller than 2x2 or with a zero expected cell."""


class UnknownLevelError(RegstatError, ValueError):
    """Categorical value at prediction time that was not seen during fit."""

    def __init__(self, column, level, known_levels):
        self.column = column
        self.level = level
        self.known_levels = list(known_levels)
        super().__init__(
            f"Unknown level {level!r} for categorical predictor "
            f"{column!r}; levels seen during fit: {self.known_levels}"
        )
