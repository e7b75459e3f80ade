"""
Dataset: a pandas DataFrame with declared semantic column types.

Every column is either ``'numeric'`` or ``'categorical'``; every categorical
column has a reference (baseline) level that fixes how the coefficients of
its other levels are read.  A Dataset is never modified in place: each
cleaning step returns a new Dataset, so steps compose into a pipeline with
no shared state between them.
"""

import warnings
from functools import reduce

import numpy as np
import pandas as pd

from .errors import InvalidInput

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'
KINDS = (NUMERIC, CATEGORICAL)


# ---------------------------------------------------------------------------
# Column helpers
# ---------------------------------------------------------------------------

def infer_kind(series):
    """Numeric dtypes (bool excluded) are numeric, everything else categorical."""
    if (pd.api.types.is_numeric_dtype(series)
            and not pd.api.types.is_bool_dtype(series)):
        return NUMERIC
    return CATEGORICAL


def observed_levels(series):
    """
    Distinct non-missing labels of *series* in level order.

    A pandas ``Categorical`` keeps its declared category order (unused
    categories are dropped); any other column is sorted.
    """
    values = series.dropna()
    if isinstance(series.dtype, pd.CategoricalDtype):
        seen = set(values.unique())
        return [c for c in series.cat.categories if c in seen]
    uniques = list(pd.unique(values))
    try:
        return sorted(uniques)
    except TypeError:
        return sorted(uniques, key=str)


def bucketize(values, breaks, labels, right=False):
    """
    Recode numeric values into ordered categorical buckets.

    Parameters
    ----------
    values : array-like
        Numeric values; missing values stay missing.
    breaks : sequence of float
        Strictly increasing cut points.  ``k`` breaks define ``k + 1``
        buckets: below the first break, between consecutive breaks, and
        at or above the last break.
    labels : sequence
        One label per bucket, ``len(breaks) + 1`` of them.
    right : bool, default=False
        If False, buckets are closed on the left (``[a, b)``), so a value
        equal to a break falls in the upper bucket.  If True, buckets are
        closed on the right (``(a, b]``).

    Returns
    -------
    pd.Series
        Ordered categorical with categories in *labels* order.
    """
    breaks = [float(b) for b in breaks]
    labels = list(labels)
    if len(labels) != len(breaks) + 1:
        raise InvalidInput(
            f"bucketize needs len(breaks) + 1 labels: got {len(breaks)} "
            f"break(s) and {len(labels)} label(s)"
        )
    if len(set(labels)) != len(labels):
        raise InvalidInput(f"Bucket labels must be unique: {labels}")
    if any(hi <= lo for lo, hi in zip(breaks, breaks[1:])):
        raise InvalidInput(f"Breaks must be strictly increasing: {breaks}")

    series = values if isinstance(values, pd.Series) else pd.Series(values)
    if not pd.api.types.is_numeric_dtype(series):
        raise InvalidInput("bucketize requires numeric values")

    edges = [-np.inf] + breaks + [np.inf]
    return pd.cut(series, bins=edges, labels=labels, right=right,
                  ordered=True)


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------

class Dataset:
    """
    Observations by variables, each variable typed numeric or categorical.

    Parameters
    ----------
    frame : pd.DataFrame or mapping of column -> values
        The data.  It is copied; later changes to *frame* do not leak in.
    categorical : iterable of str, optional
        Columns to treat as categorical regardless of dtype.
    numeric : iterable of str, optional
        Columns to treat as numeric.  Values are converted with
        ``pd.to_numeric``; a column that cannot be converted is an error.
    reference : dict, optional
        ``{column: level}`` reference level per categorical column.  Columns
        not listed get the first level in level order.
    """

    def __init__(self, frame, categorical=None, numeric=None, reference=None):
        if not isinstance(frame, pd.DataFrame):
            frame = pd.DataFrame(frame)
        frame = frame.copy().reset_index(drop=True)
        frame.columns = [str(c) for c in frame.columns]
        if frame.columns.duplicated().any():
            dupes = frame.columns[frame.columns.duplicated()].tolist()
            raise InvalidInput(f"Duplicate column names: {dupes}")

        categorical = set(categorical or ())
        numeric = set(numeric or ())
        both = categorical & numeric
        if both:
            raise InvalidInput(
                f"Columns declared both numeric and categorical: "
                f"{sorted(both)}"
            )
        unknown = (categorical | numeric | set(reference or {})) - set(
            frame.columns)
        if unknown:
            raise InvalidInput(f"Unknown column(s): {sorted(unknown)}")

        kinds = {}
        for col in frame.columns:
            if col in categorical:
                kinds[col] = CATEGORICAL
            elif col in numeric:
                try:
                    frame[col] = pd.to_numeric(frame[col])
                except (TypeError, ValueError) as exc:
                    raise InvalidInput(
                        f"Column {col!r} declared numeric but holds "
                        f"non-numeric values"
                    ) from exc
                kinds[col] = NUMERIC
            else:
                kinds[col] = infer_kind(frame[col])

        levels = {}
        references = {}
        for col, kind in kinds.items():
            if kind != CATEGORICAL:
                continue
            levels[col] = observed_levels(frame[col])
            if reference and col in reference:
                if reference[col] not in levels[col]:
                    raise InvalidInput(
                        f"Reference level {reference[col]!r} is not an "
                        f"observed level of {col!r}: {levels[col]}"
                    )
                references[col] = reference[col]
            elif levels[col]:
                references[col] = levels[col][0]

        for col in (reference or {}):
            if kinds[col] != CATEGORICAL:
                raise InvalidInput(
                    f"Reference level given for numeric column {col!r}")

        self._frame = frame
        self._kinds = kinds
        self._levels = levels
        self._references = references

    # ---- constructors ----------------------------------------------------

    @classmethod
    def from_csv(cls, path, categorical=None, numeric=None, reference=None,
                 **read_kwargs):
        """Load a flat file with ``pd.read_csv`` and declare its columns."""
        frame = pd.read_csv(path, **read_kwargs)
        return cls(frame, categorical=categorical, numeric=numeric,
                   reference=reference)

    # ---- inspection --------------------------------------------------------

    @property
    def frame(self):
        """A copy of the underlying DataFrame."""
        return self._frame.copy()

    @property
    def columns(self):
        return list(self._frame.columns)

    @property
    def shape(self):
        return self._frame.shape

    def __len__(self):
        return len(self._frame)

    def __contains__(self, column):
        return column in self._kinds

    def __getitem__(self, column):
        self.require_columns([column])
        return self._frame[column].copy()

    def __repr__(self):
        n_cat = sum(k == CATEGORICAL for k in self._kinds.values())
        return (f"Dataset(n={len(self)}, numeric={len(self._kinds) - n_cat}, "
                f"categorical={n_cat})")

    def kind(self, column):
        self.require_columns([column])
        return self._kinds[column]

    @property
    def kinds(self):
        return dict(self._kinds)

    def is_numeric(self, column):
        return self.kind(column) == NUMERIC

    def is_categorical(self, column):
        return self.kind(column) == CATEGORICAL

    def levels(self, column):
        """Observed levels of a categorical column, in level order."""
        if not self.is_categorical(column):
            raise InvalidInput(f"Column {column!r} is not categorical")
        return list(self._levels[column])

    def reference(self, column):
        if not self.is_categorical(column):
            raise InvalidInput(f"Column {column!r} is not categorical")
        return self._references.get(column)

    @property
    def references(self):
        return dict(self._references)

    def non_reference_levels(self, column):
        ref = self.reference(column)
        return [lvl for lvl in self._levels[column] if lvl != ref]

    def missing_counts(self, columns=None):
        cols = self.columns if columns is None else list(columns)
        self.require_columns(cols)
        return self._frame[cols].isna().sum()

    def describe(self):
        """One row per column: kind, missing count, levels or mean/std."""
        rows = []
        for col in self.columns:
            s = self._frame[col]
            row = {
                'Column': col,
                'Kind': self._kinds[col],
                'Missing': int(s.isna().sum()),
            }
            if self._kinds[col] == CATEGORICAL:
                row['Levels'] = len(self._levels[col])
                row['Reference'] = self._references.get(col)
            else:
                row['Mean'] = s.mean()
                row['Std'] = s.std()
            rows.append(row)
        return pd.DataFrame(rows).set_index('Column')

    # ---- validation --------------------------------------------------------

    def require_columns(self, columns):
        missing = [c for c in columns if c not in self._kinds]
        if missing:
            raise InvalidInput(f"Unknown column(s): {missing}")

    def require_complete(self, columns=None):
        """Raise InvalidInput naming every involved column with missing values."""
        counts = self.missing_counts(columns)
        bad = counts[counts > 0]
        if len(bad) > 0:
            details = ", ".join(f"{c}({n})" for c, n in bad.items())
            raise InvalidInput(
                f"Missing values in {len(bad)} column(s): {details}"
            )

    def require_finite(self, columns=None):
        """Raise InvalidInput naming every numeric column holding inf/-inf."""
        cols = self.columns if columns is None else list(columns)
        self.require_columns(cols)
        bad = []
        for col in cols:
            if self._kinds[col] != NUMERIC:
                continue
            values = self._frame[col].dropna().to_numpy(dtype=np.float64)
            n_bad = int(np.sum(~np.isfinite(values)))
            if n_bad:
                bad.append(f"{col}({n_bad})")
        if bad:
            raise InvalidInput(
                f"Non-finite values in {len(bad)} numeric column(s): "
                f"{', '.join(bad)}"
            )

    # ---- transformations (each returns a new Dataset) ------------------------

    def _derive(self, frame, kinds, reference=None):
        """Build a new Dataset from *frame*, carrying kinds and references."""
        kinds = {c: k for c, k in kinds.items() if c in frame.columns}
        explicit = dict(reference or {})
        carried = {}
        for col, level in self._references.items():
            if col in explicit or kinds.get(col) != CATEGORICAL:
                continue
            if level in observed_levels(frame[col]):
                carried[col] = level
            else:
                warnings.warn(
                    f"Reference level {level!r} of {col!r} no longer "
                    f"observed; falling back to the first level",
                    UserWarning, stacklevel=3,
                )
        carried.update(explicit)
        return Dataset(
            frame,
            categorical=[c for c, k in kinds.items() if k == CATEGORICAL],
            numeric=[c for c, k in kinds.items() if k == NUMERIC],
            reference=carried,
        )

    def drop(self, columns):
        columns = [columns] if isinstance(columns, str) else list(columns)
        self.require_columns(columns)
        return self._derive(self._frame.drop(columns=columns), self._kinds)

    def select(self, columns):
        columns = [columns] if isinstance(columns, str) else list(columns)
        self.require_columns(columns)
        return self._derive(self._frame[columns], self._kinds)

    def rename(self, mapping):
        self.require_columns(list(mapping))
        kinds = {mapping.get(c, c): k for c, k in self._kinds.items()}
        frame = self._frame.rename(columns=mapping)
        new = self._derive(frame, kinds, reference={
            mapping.get(c, c): lvl for c, lvl in self._references.items()
        })
        return new

    def filter(self, mask):
        """Keep the rows where *mask* (boolean array or callable) is true."""
        if callable(mask):
            mask = mask(self._frame.copy())
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (len(self),):
            raise InvalidInput(
                f"Row mask has shape {mask.shape}, expected ({len(self)},)")
        return self._derive(self._frame.loc[mask], self._kinds)

    def drop_missing(self, columns=None):
        """Drop rows with a missing value in *columns* (default: all)."""
        cols = self.columns if columns is None else list(columns)
        self.require_columns(cols)
        return self._derive(self._frame.dropna(subset=cols), self._kinds)

    def recode(self, column, mapping, new_column=None, kind=None):
        """
        Replace values of *column* via *mapping*; unmapped values are kept.

        The result is written to *new_column* (default: *column* itself)
        with its kind inferred unless *kind* is given.
        """
        self.require_columns([column])
        target = new_column or column
        source = self._frame[column].astype(object)
        recoded = source.map(lambda v: mapping.get(v, v)
                             if not pd.isna(v) else v)
        recoded = recoded.infer_objects()
        return self._with_column(target, recoded, kind)

    def bucketize(self, column, breaks, labels, new_column=None,
                  right=False, reference=None):
        """Recode a numeric column into ordered buckets (see :func:`bucketize`)."""
        if not self.is_numeric(column):
            raise InvalidInput(f"Column {column!r} is not numeric")
        target = new_column or column
        buckets = bucketize(self._frame[column], breaks, labels, right=right)
        return self._with_column(target, buckets, CATEGORICAL, reference)

    def derive(self, name, func, kind=None, reference=None):
        """Add (or replace) column *name* computed as ``func(frame)``."""
        values = func(self._frame.copy())
        if not isinstance(values, pd.Series):
            values = pd.Series(np.asarray(values), index=self._frame.index)
        if len(values) != len(self):
            raise InvalidInput(
                f"Derived column {name!r} has {len(values)} values, "
                f"expected {len(self)}")
        return self._with_column(name, values.reset_index(drop=True), kind,
                                 reference)

    def as_categorical(self, column, reference=None, levels=None):
        """Treat *column* as categorical, optionally fixing the level order."""
        self.require_columns([column])
        values = self._frame[column]
        if levels is not None:
            values = pd.Series(pd.Categorical(values, categories=list(levels),
                                              ordered=True))
            lost = self._frame[column].notna() & values.isna()
            if lost.any():
                raise InvalidInput(
                    f"Values of {column!r} missing from levels {list(levels)}")
            observed = observed_levels(values)
            if reference is None and observed:
                reference = observed[0]
        return self._with_column(column, values, CATEGORICAL, reference)

    def as_numeric(self, column):
        self.require_columns([column])
        try:
            values = pd.to_numeric(self._frame[column].astype(object))
        except (TypeError, ValueError) as exc:
            raise InvalidInput(
                f"Column {column!r} cannot be converted to numeric") from exc
        return self._with_column(column, values, NUMERIC)

    def set_reference(self, column, level):
        if not self.is_categorical(column):
            raise InvalidInput(f"Column {column!r} is not categorical")
        if level not in self._levels[column]:
            raise InvalidInput(
                f"{level!r} is not an observed level of {column!r}: "
                f"{self._levels[column]}")
        return self._derive(self._frame, self._kinds, reference={column: level})

    def _with_column(self, name, values, kind=None, reference=None):
        frame = self._frame.copy()
        frame[name] = values.values if isinstance(values, pd.Series) else values
        kinds = dict(self._kinds)
        kinds[name] = kind or infer_kind(frame[name])
        if kinds[name] not in KINDS:
            raise InvalidInput(f"Unknown column kind {kinds[name]!r}")
        references = {}
        if reference is not None:
            references[name] = reference
        elif kinds[name] == CATEGORICAL and name in self._references:
            # a rewritten column starts from its own first level again
            levels = observed_levels(frame[name])
            if levels and self._references[name] not in levels:
                references[name] = levels[0]
        return self._derive(frame, kinds, reference=references)


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------

def _step_label(step):
    if isinstance(step, tuple):
        return step[0]
    return getattr(step, '__name__', repr(step))


def _step_func(step):
    if isinstance(step, tuple):
        return step[1]
    return step


def pipeline(*steps):
    """
    Compose cleaning steps left to right into a single step.

    Each step is a callable ``Dataset -> Dataset`` or a ``(label, callable)``
    pair.
    """
    funcs = [_step_func(s) for s in steps]

    def run(dataset):
        return reduce(lambda d, f: _checked(f(d), f), funcs, dataset)

    run.__name__ = " | ".join(_step_label(s) for s in steps) or 'identity'
    return run


def _checked(result, step):
    if not isinstance(result, Dataset):
        raise InvalidInput(
            f"Cleaning step {_step_label(step)} returned "
            f"{type(result).__name__}, expected Dataset")
    return result


def clean(dataset, *steps, verbose=False):
    """
    Run cleaning *steps* on *dataset* and return the cleaned copy.

    With ``verbose=True`` the shape after every step is printed.
    """
    if verbose:
        print("DATA CLEANING")
        print("-" * 60)
        print(f"  Start: n={len(dataset)}, p={dataset.shape[1]}")
    for step in steps:
        dataset = _checked(_step_func(step)(dataset), step)
        if verbose:
            print(f"  * {_step_label(step)}: n={len(dataset)}, "
                  f"p={dataset.shape[1]}")
    if verbose:
        print()
    return dataset
