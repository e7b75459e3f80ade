"""
Example: what makes a movie popular?
=====================================
Cleans a movie-ratings table, runs forward selection by adjusted R² to
model the IMDb rating, and predicts the rating of a new film with a 95%
prediction interval.

Pass the path of a movies CSV (columns as below) to use real data;
without one a synthetic table with the same columns is generated.
"""

import sys

import numpy as np
import pandas as pd

# If running from the repo root (not pip-installed), uncomment:
# import sys; sys.path.insert(0, '..')

from regstat import Dataset, ForwardSelector, clean

# ------------------------------------------------------------------
# 1.  Load data
# ------------------------------------------------------------------
if len(sys.argv) > 1:
    raw = Dataset.from_csv(sys.argv[1])
    print(f"Loaded {sys.argv[1]}.\n")
else:
    rng = np.random.RandomState(2024)
    n = 650
    genre = rng.choice(['Drama', 'Comedy', 'Action & Adventure',
                        'Mystery & Suspense', 'Documentary', 'Horror'], n)
    frame = pd.DataFrame({
        'title': [f"Movie {i}" for i in range(n)],
        'title_type': rng.choice(['Feature Film', 'Documentary', 'TV Movie'],
                                 n, p=[0.9, 0.07, 0.03]),
        'genre': genre,
        'runtime': rng.normal(105, 19, n).round(),
        'mpaa_rating': rng.choice(['G', 'PG', 'PG-13', 'R', 'Unrated'], n),
        'thtr_rel_year': rng.randint(1970, 2015, n),
        'thtr_rel_month': rng.randint(1, 13, n),
        'critics_score': rng.randint(1, 101, n),
        'best_pic_nom': rng.choice(['no', 'yes'], n, p=[0.96, 0.04]),
    })
    frame.loc[rng.choice(n, 3, replace=False), 'runtime'] = np.nan
    genre_effect = frame['genre'].map({
        'Drama': 0.3, 'Comedy': -0.2, 'Action & Adventure': -0.3,
        'Mystery & Suspense': 0.0, 'Documentary': 0.6, 'Horror': -0.5})
    frame['imdb_rating'] = (
        4.2 + 0.03 * frame['critics_score'] + 0.006 * frame['runtime']
        + genre_effect + 0.4 * (frame['best_pic_nom'] == 'yes')
        + rng.randn(n) * 0.45
    ).round(1)
    raw = Dataset(frame)
    print("Generated a synthetic movies table.\n")

print(f"Dataset: n={len(raw)}, p={raw.shape[1]}\n")

# ------------------------------------------------------------------
# 2.  Clean: each step returns a new Dataset
# ------------------------------------------------------------------
movies = clean(
    raw,
    ('complete runtime', lambda d: d.drop_missing(['runtime'])),
    ('feature films', lambda d: d.filter(
        lambda f: f['title_type'] == 'Feature Film')),
    ('release decade', lambda d: d.bucketize(
        'thtr_rel_year', [1980, 1990, 2000, 2010],
        ['1970s', '1980s', '1990s', '2000s', '2010s'], new_column='decade')),
    ('oscar season', lambda d: d.derive(
        'oscar_season',
        lambda f: np.where(f['thtr_rel_month'].isin([10, 11, 12]),
                           'yes', 'no'),
        reference='no')),
    ('drop unused', lambda d: d.drop(['title', 'title_type',
                                      'thtr_rel_year', 'thtr_rel_month'])),
    ('drama baseline', lambda d: d.set_reference('genre', 'Drama')),
    verbose=True,
)

# ------------------------------------------------------------------
# 3.  Forward selection by adjusted R²
# ------------------------------------------------------------------
candidates = ['genre', 'runtime', 'mpaa_rating', 'critics_score',
              'best_pic_nom', 'decade', 'oscar_season']
selector = ForwardSelector(verbose=True)
result = selector.select(movies, 'imdb_rating', candidates)

print()
result.model.summary()

# ------------------------------------------------------------------
# 4.  Predict a new film
# ------------------------------------------------------------------
new_film = {
    'genre': 'Drama', 'runtime': 128, 'mpaa_rating': 'R',
    'critics_score': 91, 'best_pic_nom': 'yes', 'decade': '2010s',
    'oscar_season': 'yes',
}
pred = result.model.predict(new_film)
print(f"\nPredicted IMDb rating: {pred.fit:.2f}  "
      f"({pred.level:.0%} PI {pred.lower:.2f} to {pred.upper:.2f})")
