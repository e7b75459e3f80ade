"""
regstat: regression and contingency statistics for analysis reports

Forward selection of linear-model predictors by adjusted R², OLS fitting
with categorical predictors and prediction intervals, and the chi-square
test of independence, on datasets cleaned through pure pipelines.
"""

from .contingency import (
    ChiSquareResult, chi_square_contributions, chi_square_independence,
    chi_square_test, crosstab, expected_counts,
)
from .dataset import Dataset, bucketize, clean, pipeline
from .errors import (
    DegenerateTableError, InvalidInput, ModelFitError, RegstatError,
    UnknownLevelError,
)
from .model import LinearModel, LinearModelFitter, Prediction, fit_model
from .selection import ForwardSelector, SelectionResult, forward_select

__version__ = "0.1.0"

__all__ = [
    "Dataset", "bucketize", "clean", "pipeline",
    "LinearModel", "LinearModelFitter", "Prediction", "fit_model",
    "ForwardSelector", "SelectionResult", "forward_select",
    "ChiSquareResult", "chi_square_test", "chi_square_independence",
    "chi_square_contributions", "crosstab", "expected_counts",
    "RegstatError", "InvalidInput", "ModelFitError",
    "DegenerateTableError", "UnknownLevelError",
]
