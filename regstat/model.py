"""
Ordinary least squares with numeric and categorical predictors.

Categorical predictors are expanded into one indicator column per observed
non-reference level; the intercept then stands for the reference levels.
A fit returns an immutable :class:`LinearModel` holding coefficients,
goodness-of-fit statistics, fitted values and residuals, and the pieces
needed for prediction intervals.
"""

from collections.abc import Mapping
from typing import NamedTuple

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.base import BaseEstimator
from sklearn.linear_model import LinearRegression

from .dataset import CATEGORICAL, NUMERIC, Dataset
from .errors import InvalidInput, ModelFitError, UnknownLevelError

INTERCEPT = '(Intercept)'


class Prediction(NamedTuple):
    """Point estimate and prediction interval for one new observation."""
    fit: float
    lower: float
    upper: float
    level: float


# ---------------------------------------------------------------------------
# Design matrix
# ---------------------------------------------------------------------------

def _term_name(predictor, level):
    return f"{predictor}[{level}]"


def _encoding(dataset, predictors):
    """Describe how each predictor becomes design-matrix columns."""
    encoding = []
    for pred in predictors:
        if dataset.kind(pred) == NUMERIC:
            encoding.append({'predictor': pred, 'kind': NUMERIC,
                             'terms': [pred]})
        else:
            dummies = dataset.non_reference_levels(pred)
            encoding.append({
                'predictor': pred,
                'kind': CATEGORICAL,
                'levels': dataset.levels(pred),
                'reference': dataset.reference(pred),
                'dummies': dummies,
                'terms': [_term_name(pred, lvl) for lvl in dummies],
            })
    return encoding


def _design(frame, encoding):
    """Build the (n, p) design matrix, intercept column excluded."""
    cols = []
    for enc in encoding:
        values = frame[enc['predictor']]
        if enc['kind'] == NUMERIC:
            cols.append(values.to_numpy(dtype=np.float64))
        else:
            values = values.astype(object)
            for lvl in enc['dummies']:
                cols.append((values == lvl).to_numpy(dtype=np.float64))
    if not cols:
        return np.empty((len(frame), 0))
    return np.column_stack(cols)


def _check_fit_inputs(dataset, response, predictors):
    if not isinstance(dataset, Dataset):
        raise InvalidInput(
            f"Expected a Dataset, got {type(dataset).__name__}")
    if isinstance(predictors, str):
        predictors = [predictors]
    predictors = list(predictors)
    dataset.require_columns([response] + predictors)
    if not dataset.is_numeric(response):
        raise InvalidInput(f"Response {response!r} must be numeric")
    if response in predictors:
        raise InvalidInput(
            f"Response {response!r} cannot also be a predictor")
    if len(set(predictors)) != len(predictors):
        dupes = sorted({p for p in predictors if predictors.count(p) > 1})
        raise InvalidInput(f"Repeated predictor(s): {dupes}")
    dataset.require_complete([response] + predictors)
    dataset.require_finite([response] + predictors)
    return predictors


# ---------------------------------------------------------------------------
# Fitted model
# ---------------------------------------------------------------------------

class LinearModel:
    """
    A fitted OLS model.  Read-only once created.

    Attributes
    ----------
    response : str
    predictors : tuple of str
        Predictor names in the order they were given to the fit.
    terms : tuple of str
        Coefficient names; categorical levels appear as ``name[level]``.
    intercept : float
    coefficients : pd.Series
        One entry per term (intercept excluded).
    r2, adj_r2 : float
    n_obs, df_resid : int
    sigma : float
        Residual standard error.
    fitted_values, residuals : np.ndarray
        One value per training observation (read-only arrays).
    confidence : float
        Default level for intervals.
    """

    def __init__(self, response, encoding, params, y, design, xtx_inv,
                 confidence):
        n, p = design.shape
        fitted = params[0] + design @ params[1:]
        residuals = y - fitted
        ss_res = float(np.sum(residuals ** 2))
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        df_resid = n - p - 1
        r2 = 1.0 - ss_res / ss_tot
        sigma2 = ss_res / df_resid

        with np.errstate(divide='ignore', invalid='ignore'):
            std_errors = np.sqrt(np.clip(np.diag(xtx_inv) * sigma2, 0, None))
            t_values = params / std_errors
        p_values = 2.0 * stats.t.sf(np.abs(t_values), df_resid)

        for arr in (params, fitted, residuals, std_errors, t_values,
                    p_values, xtx_inv):
            arr.setflags(write=False)

        set_ = object.__setattr__
        set_(self, 'response', response)
        set_(self, '_encoding', tuple(encoding))
        set_(self, 'predictors',
             tuple(enc['predictor'] for enc in encoding))
        set_(self, 'terms',
             tuple(t for enc in encoding for t in enc['terms']))
        set_(self, '_params', params)
        set_(self, '_std_errors', std_errors)
        set_(self, '_t_values', t_values)
        set_(self, '_p_values', p_values)
        set_(self, '_xtx_inv', xtx_inv)
        set_(self, 'fitted_values', fitted)
        set_(self, 'residuals', residuals)
        set_(self, 'n_obs', n)
        set_(self, 'n_params', p)
        set_(self, 'df_resid', df_resid)
        set_(self, 'ss_res', ss_res)
        set_(self, 'ss_tot', ss_tot)
        set_(self, 'r2', r2)
        set_(self, 'adj_r2', 1.0 - (1.0 - r2) * (n - 1) / df_resid)
        set_(self, 'sigma', float(np.sqrt(sigma2)))
        set_(self, 'confidence', confidence)

    def __setattr__(self, name, value):
        raise AttributeError(f"LinearModel is immutable; cannot set {name!r}")

    def __delattr__(self, name):
        raise AttributeError(f"LinearModel is immutable; cannot delete {name!r}")

    def __repr__(self):
        return (f"LinearModel({self.response} ~ "
                f"{' + '.join(self.predictors) or '1'}, n={self.n_obs}, "
                f"R2={self.r2:.4f}, adj_R2={self.adj_r2:.4f})")

    # ---- coefficients --------------------------------------------------

    @property
    def intercept(self):
        return float(self._params[0])

    @property
    def coefficients(self):
        return pd.Series(self._params[1:].copy(), index=list(self.terms),
                         name='Estimate')

    def reference_levels(self):
        """``{predictor: reference level}`` for the categorical predictors."""
        return {enc['predictor']: enc['reference'] for enc in self._encoding
                if enc['kind'] == CATEGORICAL}

    def confidence_intervals(self, level=None):
        """Confidence interval of every coefficient, intercept first."""
        level = self._check_level(level)
        t_crit = stats.t.ppf(1 - (1 - level) / 2, self.df_resid)
        half = t_crit * self._std_errors
        return pd.DataFrame(
            {'CI_lower': self._params - half, 'CI_upper': self._params + half},
            index=[INTERCEPT] + list(self.terms),
        )

    def coefficient_table(self, level=None):
        """Estimate, standard error, t value, p value and CI per coefficient."""
        table = pd.DataFrame(
            {
                'Estimate': self._params,
                'Std_Error': self._std_errors,
                't_value': self._t_values,
                'p_value': self._p_values,
            },
            index=[INTERCEPT] + list(self.terms),
        )
        return table.join(self.confidence_intervals(level))

    # ---- prediction ----------------------------------------------------

    def _check_level(self, level):
        level = self.confidence if level is None else level
        if not 0 < level < 1:
            raise InvalidInput(f"Confidence level must be in (0, 1): {level}")
        return level

    def _validate_rows(self, frame):
        missing = [p for p in self.predictors if p not in frame.columns]
        if missing:
            raise InvalidInput(f"Observation lacks predictor(s): {missing}")
        for enc in self._encoding:
            values = frame[enc['predictor']]
            if values.isna().any():
                raise InvalidInput(
                    f"Missing value for predictor {enc['predictor']!r}")
            if enc['kind'] == NUMERIC:
                # numeric predictors take numbers only, never numeric strings
                if any(isinstance(v, (str, bytes)) for v in values):
                    raise InvalidInput(
                        f"Non-numeric value for numeric predictor "
                        f"{enc['predictor']!r}")
                try:
                    numbers = pd.to_numeric(values)
                except (TypeError, ValueError) as exc:
                    raise InvalidInput(
                        f"Non-numeric value for numeric predictor "
                        f"{enc['predictor']!r}") from exc
                if not np.all(np.isfinite(numbers.to_numpy(dtype=np.float64))):
                    raise InvalidInput(
                        f"Non-finite value for numeric predictor "
                        f"{enc['predictor']!r}")
                frame[enc['predictor']] = numbers
            else:
                for value in values.astype(object):
                    if value not in enc['levels']:
                        raise UnknownLevelError(enc['predictor'], value,
                                                enc['levels'])
        return frame

    def _rows_to_design(self, rows):
        if isinstance(rows, Dataset):
            frame = rows.frame
        elif isinstance(rows, pd.DataFrame):
            frame = rows.copy()
        else:
            raise InvalidInput(
                f"Expected a DataFrame or Dataset, got {type(rows).__name__}")
        frame = self._validate_rows(frame.reset_index(drop=True))
        return _design(frame, self._encoding)

    def predict(self, observation, level=None):
        """
        Predict the response for one new observation.

        Parameters
        ----------
        observation : mapping, pd.Series or one-row pd.DataFrame
            Predictor name -> value.  Extra keys are ignored.  Numeric
            predictors must be given as finite numbers; strings such as
            ``'1.5'`` are rejected with InvalidInput.
        level : float, optional
            Prediction-interval level; defaults to ``self.confidence``.

        Returns
        -------
        Prediction
            ``fit`` ± t(1 - α/2, df_resid) · sigma · sqrt(1 + x0ᵀ(XᵀX)⁻¹x0).
        """
        level = self._check_level(level)
        if isinstance(observation, pd.DataFrame):
            if len(observation) != 1:
                raise InvalidInput(
                    f"Expected a single observation, got {len(observation)} "
                    f"rows; use predict_frame for several")
            frame = observation
        elif isinstance(observation, pd.Series):
            frame = observation.to_frame().T
        elif isinstance(observation, Mapping):
            frame = pd.DataFrame([dict(observation)])
        else:
            raise InvalidInput(
                f"Observation must be a mapping, got "
                f"{type(observation).__name__}")

        x0 = self._rows_to_design(frame)[0]
        fit = float(self._params[0] + x0 @ self._params[1:])

        z0 = np.concatenate([[1.0], x0])
        se_pred = self.sigma * np.sqrt(1.0 + z0 @ self._xtx_inv @ z0)
        t_crit = stats.t.ppf(1 - (1 - level) / 2, self.df_resid)
        half = float(t_crit * se_pred)
        return Prediction(fit, fit - half, fit + half, float(level))

    def predict_frame(self, rows):
        """Point predictions for every row of a DataFrame or Dataset."""
        design = self._rows_to_design(rows)
        return self._params[0] + design @ self._params[1:]

    # ---- reporting -----------------------------------------------------

    def summary(self, print_fn=print):
        """Print the coefficient table and fit statistics."""
        table = self.coefficient_table()
        print_fn("=" * 70)
        print_fn(f"LINEAR MODEL: {self.response} ~ "
                 f"{' + '.join(self.predictors) or '1'}")
        print_fn("=" * 70)
        print_fn(f"  {'Term':28s}  {'Estimate':>11s}  {'Std.Err':>10s}  "
                 f"{'t':>8s}  {'p':>8s}")
        print_fn("-" * 70)
        for term, row in table.iterrows():
            print_fn(f"  {str(term):28s}  {row['Estimate']:>11.4f}  "
                     f"{row['Std_Error']:>10.4f}  {row['t_value']:>8.2f}  "
                     f"{row['p_value']:>8.4f}")
        refs = self.reference_levels()
        if refs:
            print_fn("-" * 70)
            for pred, ref in refs.items():
                print_fn(f"  Reference level of {pred}: {ref}")
        print_fn("-" * 70)
        print_fn(f"  Residual std. error : {self.sigma:.4f} on "
                 f"{self.df_resid} degrees of freedom")
        print_fn(f"  R²                  : {self.r2:.4f}")
        print_fn(f"  Adjusted R²         : {self.adj_r2:.4f}")
        print_fn(f"  Observations        : {self.n_obs}")
        print_fn("=" * 70)


# ---------------------------------------------------------------------------
# Fitter
# ---------------------------------------------------------------------------

class LinearModelFitter(BaseEstimator):
    """
    Fit OLS models on a :class:`~regstat.dataset.Dataset`.

    Parameters
    ----------
    confidence : float, default=0.95
        Default level of the fitted models' confidence and prediction
        intervals.
    verbose : bool, default=False
        Print each fitted model's summary.
    """

    def __init__(self, confidence=0.95, verbose=False):
        self.confidence = confidence
        self.verbose = verbose

    def fit(self, dataset, response, predictors=()):
        """
        Fit ``response ~ predictors`` by ordinary least squares.

        Raises
        ------
        InvalidInput
            Unknown or categorical response, response among the predictors,
            repeated predictors, or missing or non-finite values in
            involved columns.
        ModelFitError
            Rank-deficient design, a categorical predictor with a single
            observed level, constant response, or no residual degrees of
            freedom.
        """
        if not 0 < self.confidence < 1:
            raise InvalidInput(
                f"confidence must be in (0, 1): {self.confidence}")
        predictors = _check_fit_inputs(dataset, response, predictors)

        frame = dataset.frame
        encoding = _encoding(dataset, predictors)
        constant = [enc['predictor'] for enc in encoding
                    if enc['kind'] == CATEGORICAL and not enc['dummies']]
        if constant:
            raise ModelFitError(
                f"Categorical predictor(s) {constant} have fewer than 2 "
                f"observed levels (constant predictors)",
                predictors=predictors)
        X = _design(frame, encoding)
        y = frame[response].to_numpy(dtype=np.float64)
        n, p = X.shape

        if n - p - 1 <= 0:
            raise ModelFitError(
                f"{n} observation(s) cannot support {p} coefficient(s) "
                f"plus an intercept", predictors=predictors)
        if np.all(y == y[0]):
            raise ModelFitError(
                f"Response {response!r} is constant; R² is undefined",
                predictors=predictors)

        Z = np.column_stack([np.ones(n), X])
        rank = np.linalg.matrix_rank(Z)
        if rank < p + 1:
            raise ModelFitError(
                f"Singular design for predictors {predictors}: rank {rank} "
                f"< {p + 1} columns (collinear or constant predictors)",
                predictors=predictors)
        try:
            xtx_inv = np.linalg.inv(Z.T @ Z)
        except np.linalg.LinAlgError as exc:
            raise ModelFitError(
                f"Cannot invert XᵀX for predictors {predictors}",
                predictors=predictors) from exc

        if p > 0:
            mdl = LinearRegression().fit(X, y)
            params = np.concatenate([[mdl.intercept_], mdl.coef_])
        else:
            params = np.array([y.mean()])

        model = LinearModel(response, encoding, params, y, X, xtx_inv,
                            self.confidence)
        if self.verbose:
            model.summary()
        return model


# ---------------------------------------------------------------------------
# Convenience function
# ---------------------------------------------------------------------------

def fit_model(dataset, response, predictors=(), confidence=0.95,
              verbose=False):
    """
    One-liner convenience function.

    Returns
    -------
    LinearModel
        Fitted model.
    """
    return LinearModelFitter(confidence=confidence, verbose=verbose).fit(
        dataset, response, predictors)
