"""
Example: is confidence in science independent of education?
============================================================
Recodes a survey's highest-degree answer into three groups and tests its
independence from confidence in the scientific community with a
chi-square test.

Pass the path of a survey CSV with ``degree`` and ``consci`` columns to
use real data; otherwise a synthetic sample is generated.
"""

import sys

import numpy as np
import pandas as pd

# If running from the repo root (not pip-installed), uncomment:
# import sys; sys.path.insert(0, '..')

from regstat import (
    Dataset, chi_square_contributions, chi_square_independence, clean,
    crosstab,
)

# ------------------------------------------------------------------
# 1.  Load data
# ------------------------------------------------------------------
if len(sys.argv) > 1:
    raw = Dataset.from_csv(sys.argv[1])
else:
    rng = np.random.RandomState(7)
    n = 1200
    degree = rng.choice(['Lt High School', 'High School', 'Junior College',
                         'Bachelor', 'Graduate'], n,
                        p=[0.15, 0.5, 0.08, 0.17, 0.10])
    p_great = pd.Series(degree).map({
        'Lt High School': 0.30, 'High School': 0.38, 'Junior College': 0.40,
        'Bachelor': 0.48, 'Graduate': 0.55}).values
    u = rng.uniform(size=n)
    consci = np.where(u < p_great, 'A Great Deal',
                      np.where(u < p_great + 0.5, 'Only Some',
                               'Hardly Any')).astype(object)
    consci[rng.choice(n, 40, replace=False)] = None
    raw = Dataset(pd.DataFrame({'degree': degree, 'consci': consci}))

# ------------------------------------------------------------------
# 2.  Clean and recode
# ------------------------------------------------------------------
survey = clean(
    raw,
    ('answered', lambda d: d.drop_missing(['degree', 'consci'])),
    ('degree groups', lambda d: d.recode('degree', {
        'Lt High School': 'High school or less',
        'High School': 'High school or less',
        'Junior College': 'College',
        'Bachelor': 'College',
        'Graduate': 'Graduate',
    })),
    verbose=True,
)

# ------------------------------------------------------------------
# 3.  Test independence
# ------------------------------------------------------------------
table = crosstab(survey, 'degree', 'consci')
print(table)
print()

statistic, dof, p_value = chi_square_independence(survey, 'degree', 'consci')
print(f"Chi-square = {statistic:.3f}, df = {dof}, p = {p_value:.4g}")
print()
print(chi_square_contributions(table)
      .sort_values('Contribution', ascending=False)
      .to_string(index=False))
