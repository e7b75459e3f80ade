"""
Chi-square test of independence for two categorical variables.
"""

import warnings
from typing import NamedTuple

import numpy as np
import pandas as pd
from scipy import stats

from .dataset import Dataset
from .errors import DegenerateTableError, InvalidInput

MIN_EXPECTED = 5


class ChiSquareResult(NamedTuple):
    statistic: float
    degrees_of_freedom: int
    p_value: float


def _as_counts(observed):
    """Validate a contingency table and return it as a float array."""
    try:
        counts = np.asarray(observed, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Contingency table must hold numeric counts") from exc
    if counts.ndim != 2:
        raise InvalidInput(
            f"Contingency table must be 2-D, got {counts.ndim}-D")
    if not np.all(np.isfinite(counts)):
        raise InvalidInput("Contingency table holds non-finite values")
    if np.any(counts < 0):
        raise InvalidInput("Contingency table holds negative counts")
    if np.any(counts != np.round(counts)):
        raise InvalidInput("Contingency table holds non-integer counts")
    rows, cols = counts.shape
    if rows < 2 or cols < 2:
        raise DegenerateTableError(
            f"Need at least 2 rows and 2 columns, got {rows}x{cols}")
    return counts


def _expected(counts):
    row_totals = counts.sum(axis=1)
    col_totals = counts.sum(axis=0)
    grand_total = counts.sum()
    if grand_total == 0:
        raise DegenerateTableError("Contingency table is empty")
    expected = np.outer(row_totals, col_totals) / grand_total
    if np.any(expected == 0):
        empty_rows = np.flatnonzero(row_totals == 0).tolist()
        empty_cols = np.flatnonzero(col_totals == 0).tolist()
        raise DegenerateTableError(
            f"Zero expected count(s): empty rows {empty_rows}, "
            f"empty columns {empty_cols}")
    return expected


def expected_counts(observed):
    """
    Expected cell counts under independence.

    ``expected[i, j] = row_total[i] * col_total[j] / grand_total``.  A
    DataFrame input gives a DataFrame with the same labels.
    """
    expected = _expected(_as_counts(observed))
    if isinstance(observed, pd.DataFrame):
        return pd.DataFrame(expected, index=observed.index,
                            columns=observed.columns)
    return expected


def chi_square_test(observed, warn_small=True):
    """
    Pearson chi-square test of independence (no continuity correction).

    Parameters
    ----------
    observed : array-like or pd.DataFrame
        Two-dimensional table of non-negative integer counts, rows = levels
        of one variable, columns = levels of the other.
    warn_small : bool, default=True
        Emit a UserWarning when an expected count is below 5.

    Returns
    -------
    ChiSquareResult
        ``(statistic, degrees_of_freedom, p_value)``.

    Raises
    ------
    DegenerateTableError
        Fewer than 2 rows or columns, or a zero expected count.
    InvalidInput
        Not 2-D, or negative / non-integer / non-finite counts.
    """
    counts = _as_counts(observed)
    expected = _expected(counts)

    if warn_small and np.any(expected < MIN_EXPECTED):
        warnings.warn(
            f"{int(np.sum(expected < MIN_EXPECTED))} cell(s) have expected "
            f"count below {MIN_EXPECTED}; the chi-square approximation may "
            f"be unreliable",
            UserWarning, stacklevel=2,
        )

    statistic = float(np.sum((counts - expected) ** 2 / expected))
    rows, cols = counts.shape
    dof = (rows - 1) * (cols - 1)
    p_value = float(stats.chi2.sf(statistic, dof))
    return ChiSquareResult(statistic, dof, p_value)


def chi_square_contributions(observed):
    """
    Per-cell breakdown: observed, expected, contribution (O-E)²/E and the
    Pearson residual (O-E)/sqrt(E), one row per cell.
    """
    counts = _as_counts(observed)
    expected = _expected(counts)
    if isinstance(observed, pd.DataFrame):
        row_labels, col_labels = list(observed.index), list(observed.columns)
    else:
        row_labels = list(range(counts.shape[0]))
        col_labels = list(range(counts.shape[1]))

    rows = []
    for i, r in enumerate(row_labels):
        for j, c in enumerate(col_labels):
            o, e = counts[i, j], expected[i, j]
            rows.append({
                'Row': r, 'Column': c,
                'Observed': o, 'Expected': e,
                'Contribution': (o - e) ** 2 / e,
                'Residual': (o - e) / np.sqrt(e),
            })
    return pd.DataFrame(rows)


def crosstab(dataset, row, column):
    """Contingency table of two categorical columns of a Dataset."""
    if not isinstance(dataset, Dataset):
        raise InvalidInput(
            f"Expected a Dataset, got {type(dataset).__name__}")
    dataset.require_columns([row, column])
    if row == column:
        raise InvalidInput("Row and column variables must differ")
    for col in (row, column):
        if not dataset.is_categorical(col):
            raise InvalidInput(f"Column {col!r} is not categorical")
    dataset.require_complete([row, column])

    frame = dataset.frame
    table = pd.crosstab(frame[row].astype(object), frame[column].astype(object))
    return table.reindex(index=dataset.levels(row),
                         columns=dataset.levels(column), fill_value=0)


def chi_square_independence(dataset, row, column, warn_small=True):
    """Cross-tabulate two categorical columns and test their independence."""
    return chi_square_test(crosstab(dataset, row, column),
                           warn_small=warn_small)
