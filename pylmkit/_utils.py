"""
Input validation shared by the Fitter, contrast coding and Model II fits.
"""

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype, is_bool_dtype

from .exceptions import SchemaError


def _finite(values, name, ndim, dtype):
    values = np.asarray(values, dtype=dtype)
    if values.ndim != ndim:
        raise ValueError(f"{name} must be {ndim}-dimensional")
    if not np.all(np.isfinite(values)):
        raise SchemaError(f"{name} contains NaN or Inf")
    return values


def check_array(X, name='X', dtype=np.float64):
    """Validate a 2-D block of finite values."""
    return _finite(X, name, 2, dtype)


def check_vector(y, name='y', dtype=np.float64):
    """Validate a 1-D sequence of finite values."""
    return _finite(y, name, 1, dtype)


def is_categorical(series: pd.Series) -> bool:
    """True for columns that need contrast coding before fitting."""
    if is_bool_dtype(series):
        return False
    return not is_numeric_dtype(series)


def check_columns(data: pd.DataFrame, columns, numeric: bool = True):
    """
    Check that every name in ``columns`` is a column of ``data``.

    With ``numeric=True`` a categorical column is rejected as well, since
    it has to go through contrast coding first.
    """
    if not isinstance(data, pd.DataFrame):
        raise SchemaError(f"data must be a pandas DataFrame, got {type(data).__name__}")

    missing = [c for c in columns if c not in data.columns]
    if missing:
        raise SchemaError(f"Columns not found in data: {missing}")

    if len(set(columns)) != len(columns):
        raise SchemaError(f"Duplicate column names: {list(columns)}")

    if numeric:
        for c in columns:
            if is_categorical(data[c]):
                raise SchemaError(
                    f"Column '{c}' is categorical; expand it with "
                    f"expand_factors() before fitting"
                )
