"""
Dataset input.

Reads a rectangular delimited text file into a DataFrame, inferring
numeric vs. categorical columns from their content.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd
from pandas.api.types import is_numeric_dtype, is_bool_dtype

from .exceptions import SchemaError

logger = logging.getLogger(__name__)


def read_dataset(
    path: Union[str, Path],
    sep: str = ",",
    categorical: Optional[Iterable[str]] = None,
    **kwargs
) -> pd.DataFrame:
    """
    Read a delimited text file.

    Parameters
    ----------
    path : str or Path
        File with a header row
    sep : str
        Field delimiter
    categorical : iterable of str, optional
        Columns to treat as categorical even if their content is numeric
        (e.g. coded group numbers)
    **kwargs
        Passed to pandas.read_csv

    Returns
    -------
    DataFrame
        Numeric columns as float/int, every other column as ``category``

    Raises
    ------
    SchemaError
        Repeated header names, or a ``categorical`` name that is not a
        column
    """
    # read_csv renames repeated names ('a', 'a.1'), so check the raw header
    if "header" not in kwargs and "names" not in kwargs:
        header = pd.read_csv(path, sep=sep, header=None, nrows=1, dtype=str,
                             skiprows=kwargs.get("skiprows")).iloc[0]
        if header.duplicated().any():
            raise SchemaError(
                f"Duplicate column names in {path}: {sorted(set(header[header.duplicated()]))}"
            )

    data = pd.read_csv(path, sep=sep, **kwargs)

    forced = set(categorical or ())
    missing = forced - set(data.columns)
    if missing:
        raise SchemaError(f"Columns not found in {path}: {sorted(missing)}")

    for column in data.columns:
        series = data[column]
        if column in forced or not (is_numeric_dtype(series) or is_bool_dtype(series)):
            data[column] = series.astype("category")

    logger.debug("Read %d rows x %d columns from %s", data.shape[0], data.shape[1], path)
    return data


__all__ = ["read_dataset"]
