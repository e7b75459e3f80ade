"""
Tests for the OLS fitter and fitted-model prediction.

Run with:  python -m pytest tests/ -v
Or:        python tests/test_model.py
"""

import numpy as np
import pandas as pd
import pytest
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from regstat import (
    Dataset, InvalidInput, LinearModelFitter, ModelFitError,
    UnknownLevelError, fit_model,
)


def _movies(n=400, seed=42):
    """Synthetic movie table: rating depends on score, runtime and genre."""
    rng = np.random.RandomState(seed)
    genre = rng.choice(['Action', 'Comedy', 'Drama'], size=n)
    critics = rng.uniform(0, 100, size=n)
    runtime = rng.normal(105, 20, size=n)
    offset = pd.Series(genre).map({'Action': -1.0, 'Comedy': 0.7,
                                   'Drama': 0.0}).values
    rating = (3.5 + 0.03 * critics + 0.008 * runtime + offset
              + rng.randn(n) * 0.2)
    frame = pd.DataFrame({
        'imdb_rating': rating,
        'critics_score': critics,
        'runtime': runtime,
        'genre': genre,
    })
    return Dataset(frame, reference={'genre': 'Drama'})


def test_recovers_generating_coefficients():
    """Noise-plus-linear data: coefficients close to the generating ones."""
    rng = np.random.RandomState(42)
    n = 2000
    critics = rng.uniform(0, 100, size=n)
    runtime = rng.normal(105, 20, size=n)
    rating = 3.5 + 0.03 * critics + 0.008 * runtime + rng.randn(n) * 0.3
    data = Dataset(pd.DataFrame({'imdb_rating': rating,
                                 'critics_score': critics,
                                 'runtime': runtime}))

    model = fit_model(data, 'imdb_rating', ['critics_score', 'runtime'])

    assert abs(model.coefficients['critics_score'] - 0.03) < 0.003
    assert abs(model.coefficients['runtime'] - 0.008) < 0.003
    assert abs(model.intercept - 3.5) < 0.3
    print(f"  PASS: Coefficients recovered "
          f"({model.coefficients.round(4).to_dict()})")


def test_matches_sklearn_and_adjusted_formula():
    """R² agrees with scikit-learn; adjusted R² follows its formula."""
    from sklearn.linear_model import LinearRegression

    data = _movies()
    model = fit_model(data, 'imdb_rating', ['critics_score', 'runtime'])

    X = data.frame[['critics_score', 'runtime']]
    y = data.frame['imdb_rating']
    ols = LinearRegression().fit(X, y)

    n, p = len(data), 2
    assert abs(model.r2 - ols.score(X, y)) < 1e-10
    expected_adj = 1 - (1 - model.r2) * (n - 1) / (n - p - 1)
    assert abs(model.adj_r2 - expected_adj) < 1e-12
    assert model.df_resid == n - p - 1
    np.testing.assert_allclose(model.residuals,
                               y.values - model.fitted_values)
    print(f"  PASS: R² matches sklearn ({model.r2:.6f})")


def test_categorical_dummy_expansion():
    """One indicator per non-reference level; offsets are recovered."""
    data = _movies(n=600)
    model = fit_model(data, 'imdb_rating', ['critics_score', 'genre'])

    assert model.terms == ('critics_score', 'genre[Action]', 'genre[Comedy]')
    assert model.reference_levels() == {'genre': 'Drama'}
    assert abs(model.coefficients['genre[Action]'] - (-1.0)) < 0.1
    assert abs(model.coefficients['genre[Comedy]'] - 0.7) < 0.1
    print(f"  PASS: Categorical expansion ({model.terms})")


def test_reference_level_changes_terms_not_fit():
    """Moving the reference level relabels coefficients, keeps the fit."""
    data = _movies()
    drama = fit_model(data, 'imdb_rating', ['genre'])
    action = fit_model(data.set_reference('genre', 'Action'),
                       'imdb_rating', ['genre'])

    assert action.terms == ('genre[Comedy]', 'genre[Drama]')
    assert abs(drama.r2 - action.r2) < 1e-10
    assert abs(action.coefficients['genre[Drama]']
               + drama.coefficients['genre[Action]']) < 1e-8
    print("  PASS: Reference level only relabels coefficients")


def test_predict_training_row_matches_fitted_value():
    """Predicting an original row returns its stored fitted value."""
    data = _movies()
    predictors = ['critics_score', 'runtime', 'genre']
    model = fit_model(data, 'imdb_rating', predictors)
    frame = data.frame

    for i in [0, 17, 123, len(frame) - 1]:
        pred = model.predict(frame.iloc[i].to_dict())
        assert abs(pred.fit - model.fitted_values[i]) < 1e-9
        assert pred.lower < pred.fit < pred.upper

    np.testing.assert_allclose(model.predict_frame(frame),
                               model.fitted_values, atol=1e-9)
    print("  PASS: Training-row predictions match fitted values")


def test_prediction_interval_formula():
    """Interval equals fit ± t * s * sqrt(1 + x0'(X'X)^-1 x0)."""
    from scipy import stats

    data = _movies()
    model = fit_model(data, 'imdb_rating', ['critics_score', 'runtime'])
    frame = data.frame

    Z = np.column_stack([np.ones(len(frame)),
                         frame['critics_score'], frame['runtime']])
    z0 = np.array([1.0, 80.0, 120.0])
    se = model.sigma * np.sqrt(1 + z0 @ np.linalg.inv(Z.T @ Z) @ z0)
    t_crit = stats.t.ppf(0.975, len(frame) - 3)

    pred = model.predict({'critics_score': 80.0, 'runtime': 120.0})
    assert pred.level == 0.95
    assert type(pred.fit) is float
    assert type(pred.lower) is float and type(pred.upper) is float
    assert abs((pred.upper - pred.fit) - t_crit * se) < 1e-8
    assert abs((pred.fit - pred.lower) - t_crit * se) < 1e-8

    wide = model.predict({'critics_score': 80.0, 'runtime': 120.0},
                         level=0.99)
    assert wide.upper - wide.lower > pred.upper - pred.lower
    print(f"  PASS: Prediction interval [{pred.lower:.3f}, {pred.upper:.3f}]")


def test_unknown_level_raises():
    """A genre not seen during fit is rejected, not defaulted."""
    data = _movies()
    model = fit_model(data, 'imdb_rating', ['critics_score', 'genre'])

    with pytest.raises(UnknownLevelError) as info:
        model.predict({'critics_score': 50.0, 'genre': 'Horror'})
    assert info.value.column == 'genre'
    assert info.value.level == 'Horror'
    assert set(info.value.known_levels) == {'Action', 'Comedy', 'Drama'}
    print("  PASS: Unknown level raises UnknownLevelError")


def test_bad_observations_raise():
    data = _movies()
    model = fit_model(data, 'imdb_rating', ['critics_score', 'genre'])

    with pytest.raises(InvalidInput):
        model.predict({'critics_score': 50.0})
    with pytest.raises(InvalidInput):
        model.predict({'critics_score': 'high', 'genre': 'Drama'})
    with pytest.raises(InvalidInput, match="critics_score"):
        model.predict({'critics_score': '1.5', 'genre': 'Drama'})
    with pytest.raises(InvalidInput, match="critics_score"):
        model.predict({'critics_score': np.inf, 'genre': 'Drama'})
    with pytest.raises(InvalidInput):
        model.predict({'critics_score': -np.inf, 'genre': 'Drama'})
    with pytest.raises(InvalidInput):
        model.predict({'critics_score': 50.0, 'genre': 'Drama'}, level=1.5)
    print("  PASS: Malformed observations rejected")


def test_singular_design_raises():
    """Collinear and constant predictors make the fit fail."""
    rng = np.random.RandomState(0)
    n = 50
    x = rng.randn(n)
    frame = pd.DataFrame({
        'y': x + rng.randn(n),
        'x': x,
        'x_double': 2 * x,
        'const': np.ones(n),
        'studio': ['Same'] * n,
    })
    data = Dataset(frame)

    with pytest.raises(ModelFitError) as info:
        fit_model(data, 'y', ['x', 'x_double'])
    assert info.value.predictors == ['x', 'x_double']
    with pytest.raises(ModelFitError):
        fit_model(data, 'y', ['const'])
    with pytest.raises(ModelFitError, match="studio") as info:
        fit_model(data, 'y', ['x', 'studio'])
    assert info.value.predictors == ['x', 'studio']
    with pytest.raises(ModelFitError):
        fit_model(data.select(['y', 'x']).filter(np.arange(n) < 2), 'y', ['x'])
    print("  PASS: Singular designs raise ModelFitError")


def test_invalid_fit_inputs():
    data = _movies()
    with pytest.raises(InvalidInput):
        fit_model(data, 'imdb_rating', ['imdb_rating'])
    with pytest.raises(InvalidInput):
        fit_model(data, 'genre', ['critics_score'])
    with pytest.raises(InvalidInput):
        fit_model(data, 'imdb_rating', ['runtime', 'runtime'])
    with pytest.raises(InvalidInput):
        fit_model(data, 'imdb_rating', ['budget'])

    frame = data.frame
    frame.loc[3, 'runtime'] = np.nan
    with pytest.raises(InvalidInput):
        fit_model(Dataset(frame), 'imdb_rating', ['runtime'])

    frame = data.frame
    frame.loc[3, 'runtime'] = np.inf
    with pytest.raises(InvalidInput, match="runtime"):
        fit_model(Dataset(frame), 'imdb_rating', ['critics_score', 'runtime'])
    frame.loc[3, 'runtime'] = 100.0
    frame.loc[5, 'imdb_rating'] = -np.inf
    with pytest.raises(InvalidInput, match="imdb_rating"):
        fit_model(Dataset(frame), 'imdb_rating', ['runtime'])
    print("  PASS: Invalid fit inputs raise InvalidInput")


def test_intercept_only_model():
    data = _movies()
    model = fit_model(data, 'imdb_rating', [])
    assert model.r2 == pytest.approx(0.0, abs=1e-12)
    assert model.adj_r2 == pytest.approx(0.0, abs=1e-12)
    assert model.intercept == pytest.approx(data['imdb_rating'].mean())
    print("  PASS: Intercept-only model")


def test_coefficient_table_matches_linregress():
    """Single-predictor standard error and p value agree with scipy."""
    from scipy import stats

    data = _movies()
    model = fit_model(data, 'imdb_rating', ['critics_score'])
    ref = stats.linregress(data['critics_score'], data['imdb_rating'])

    table = model.coefficient_table()
    row = table.loc['critics_score']
    assert row['Estimate'] == pytest.approx(ref.slope)
    assert row['Std_Error'] == pytest.approx(ref.stderr)
    assert row['p_value'] == pytest.approx(ref.pvalue, abs=1e-12)
    assert row['CI_lower'] < row['Estimate'] < row['CI_upper']
    assert list(table.index) == ['(Intercept)', 'critics_score']
    print("  PASS: Coefficient table matches scipy.stats.linregress")


def test_model_is_immutable():
    data = _movies()
    model = fit_model(data, 'imdb_rating', ['runtime'])

    with pytest.raises(AttributeError):
        model.r2 = 1.0
    with pytest.raises(ValueError):
        model.fitted_values[0] = 0.0
    coefs = model.coefficients
    coefs['runtime'] = 99.0
    assert model.coefficients['runtime'] != 99.0
    print("  PASS: Fitted model is read-only")


def test_fitter_params_and_summary(capsys):
    """Fitter carries its config like an estimator; verbose prints summary."""
    fitter = LinearModelFitter(confidence=0.9, verbose=True)
    assert fitter.get_params() == {'confidence': 0.9, 'verbose': True}

    model = fitter.fit(_movies(), 'imdb_rating', ['critics_score', 'genre'])
    out = capsys.readouterr().out
    assert 'LINEAR MODEL' in out
    assert 'Reference level of genre: Drama' in out
    assert model.predict({'critics_score': 50, 'genre': 'Comedy'}).level == 0.9
    print("  PASS: Fitter params and verbose summary")


if __name__ == '__main__':
    print("=" * 60)
    print("regstat — model tests")
    print("=" * 60)
    sys.exit(pytest.main([__file__, '-v']))
