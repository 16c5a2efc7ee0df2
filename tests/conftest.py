"""
Shared fixtures.
"""

import numpy as np
import pandas as pd
import pytest


# Orthogonal polynomial scores on 8 equally spaced points: each column is
# orthogonal to the constant and to every other column.
LINEAR_8 = np.array([-7, -5, -3, -1, 1, 3, 5, 7], dtype=float)
QUADRATIC_8 = np.array([7, 1, -3, -5, -5, -3, 1, 7], dtype=float)
CUBIC_8 = np.array([-7, 5, 7, 3, -3, -7, -5, 7], dtype=float)


@pytest.fixture
def line_data():
    """y = x exactly, 4 rows."""
    return pd.DataFrame({'x': [1.0, 2.0, 3.0, 4.0], 'y': [1.0, 2.0, 3.0, 4.0]})


@pytest.fixture
def regression_data():
    """Well-conditioned Gaussian data (100 obs, 3 predictors)."""
    np.random.seed(42)
    n = 100
    data = pd.DataFrame({
        'x1': np.random.randn(n),
        'x2': np.random.randn(n),
        'x3': np.random.randn(n),
    })
    data['y'] = 1.0 + 2.0 * data['x1'] - 1.5 * data['x2'] + 0.5 * np.random.randn(n)
    return data


@pytest.fixture
def orthogonal_data():
    """
    y depends on x1 only; x2 is exactly orthogonal to the constant, x1
    and the residual of y ~ x1, so adding it leaves the RSS unchanged.
    """
    x1 = np.arange(1.0, 9.0)
    return pd.DataFrame({
        'x1': x1,
        'x2': CUBIC_8,
        'y': 2.0 * x1 + 0.1 * QUADRATIC_8,
    })


@pytest.fixture
def count_data():
    """Poisson counts in two groups (means 3 and 7)."""
    return pd.DataFrame({
        'group': ['a', 'a', 'a', 'b', 'b', 'b'],
        'count': [2.0, 3.0, 4.0, 5.0, 7.0, 9.0],
    })


@pytest.fixture
def binary_data():
    """0/1 outcomes in two groups (proportions 0.5 and 0.75)."""
    return pd.DataFrame({
        'group': ['a'] * 4 + ['b'] * 4,
        'y': [0.0, 1.0, 1.0, 0.0, 1.0, 1.0, 1.0, 0.0],
    })


@pytest.fixture
def poisson_data():
    """Counts increasing with x."""
    np.random.seed(42)
    n = 200
    x = np.random.uniform(0, 2, n)
    noise = np.random.randn(n)
    return pd.DataFrame({
        'x': x,
        'noise': noise,
        'count': np.random.poisson(np.exp(0.5 + 0.8 * x)).astype(float),
    })
