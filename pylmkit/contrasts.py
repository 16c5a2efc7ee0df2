"""
Contrast coding for categorical predictors.

Each scheme is a pure function from a level count k to a k × (k-1)
coding matrix, replicating R's contr.treatment, contr.sum,
contr.helmert and contr.poly.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ._utils import is_categorical
from .exceptions import SchemaError


def _check_levels(k: int) -> int:
    k = int(k)
    if k < 2:
        raise SchemaError(f"contrasts need at least 2 levels, got {k}")
    return k


def contr_treatment(k: int) -> np.ndarray:
    """Dummy coding against the first level (the reference)."""
    k = _check_levels(k)
    return np.eye(k)[:, 1:]


def contr_sum(k: int) -> np.ndarray:
    """Deviation coding: the last level is coded -1 in every column."""
    k = _check_levels(k)
    C = np.zeros((k, k - 1))
    C[:k - 1, :] = np.eye(k - 1)
    C[k - 1, :] = -1.0
    return C


def contr_helmert(k: int) -> np.ndarray:
    """Each level against the mean of the levels before it."""
    k = _check_levels(k)
    C = np.zeros((k, k - 1))
    for j in range(k - 1):
        C[:j + 1, j] = -1.0
        C[j + 1, j] = j + 1
    return C


def contr_poly(k: int) -> np.ndarray:
    """
    Orthonormal polynomial contrasts on equally spaced scores.

    Column j is the degree-(j+1) polynomial in the centered scores,
    orthogonalized against all lower degrees and scaled to unit length.
    Signs follow R (positive association with the raw power).
    """
    k = _check_levels(k)
    scores = np.arange(1, k + 1, dtype=np.float64)
    scores -= scores.mean()
    V = np.vander(scores, k, increasing=True)
    Q, R = np.linalg.qr(V)
    Q = Q * np.sign(np.diag(R))
    return Q[:, 1:]


CONTRAST_SCHEMES = {
    "treatment": contr_treatment,
    "sum": contr_sum,
    "helmert": contr_helmert,
    "poly": contr_poly,
}


def contrast_matrix(scheme: str, k: int) -> np.ndarray:
    """
    Coding matrix for a named scheme.

    Parameters
    ----------
    scheme : {'treatment', 'sum', 'helmert', 'poly'}
    k : int
        Number of levels (at least 2)

    Returns
    -------
    ndarray, shape (k, k-1)
    """
    try:
        func = CONTRAST_SCHEMES[scheme]
    except KeyError:
        raise ValueError(
            f"Unknown contrast scheme: {scheme!r}\n"
            f"Valid options: {', '.join(repr(s) for s in CONTRAST_SCHEMES)}"
        ) from None
    return func(k)


def _column_suffixes(scheme: str, levels: Sequence) -> list:
    k = len(levels)
    if scheme == "treatment":
        return [str(level) for level in levels[1:]]
    if scheme == "poly":
        named = [".L", ".Q", ".C"]
        return [named[j] if j < 3 else f"^{j + 1}" for j in range(k - 1)]
    return [str(j + 1) for j in range(k - 1)]


@dataclass(frozen=True)
class Factor:
    """
    A categorical variable with its contrast coding.

    Attributes
    ----------
    name : str
        Variable name
    levels : tuple
        Ordered distinct levels
    scheme : str
        Contrast scheme name
    """
    name: str
    levels: Tuple
    scheme: str = "treatment"

    def __post_init__(self):
        if len(set(self.levels)) != len(self.levels):
            raise SchemaError(f"Factor '{self.name}' has duplicate levels")
        C = self.matrix
        augmented = np.column_stack([np.ones(len(self.levels)), C])
        if np.linalg.matrix_rank(augmented) != len(self.levels):
            raise SchemaError(
                f"Contrasts for '{self.name}' are not independent of the intercept"
            )

    @classmethod
    def from_series(cls, series: pd.Series, scheme: str = "treatment",
                    levels: Optional[Sequence] = None, name: Optional[str] = None):
        """
        Build a Factor from a column.

        Levels default to the categories of a categorical column, or the
        sorted distinct values otherwise (as R's factor() does). Categories
        with no rows are dropped, as lm() does with drop.unused.levels.
        """
        if levels is None:
            if isinstance(series.dtype, pd.CategoricalDtype):
                levels = list(series.cat.remove_unused_categories().cat.categories)
            else:
                values = series.dropna().unique()
                levels = sorted(values, key=lambda v: (str(type(v)), v))
        return cls(name=name if name is not None else str(series.name),
                   levels=tuple(levels), scheme=scheme)

    @property
    def n_levels(self) -> int:
        return len(self.levels)

    @property
    def matrix(self) -> np.ndarray:
        """Contrast matrix, shape (levels, levels - 1)."""
        return contrast_matrix(self.scheme, len(self.levels))

    @property
    def columns(self) -> list:
        """Names of the coded predictor columns."""
        return [f"{self.name}{s}" for s in _column_suffixes(self.scheme, self.levels)]

    def contrasts(self) -> pd.DataFrame:
        """Contrast matrix labelled by level and column (R's contrasts())."""
        return pd.DataFrame(self.matrix, index=list(self.levels), columns=self.columns)

    def encode(self, series: pd.Series) -> pd.DataFrame:
        """
        Map each value of ``series`` to its row of the contrast matrix.

        Raises
        ------
        SchemaError
            If a value is missing or not one of the levels
        """
        lookup = {level: i for i, level in enumerate(self.levels)}
        codes = []
        for value in series:
            try:
                codes.append(lookup[value])
            except (KeyError, TypeError):
                raise SchemaError(
                    f"Value {value!r} of '{self.name}' is not one of its levels "
                    f"{list(self.levels)}"
                ) from None
        return pd.DataFrame(self.matrix[np.asarray(codes, dtype=np.intp)],
                            index=series.index, columns=self.columns)


def expand_factors(
    data: pd.DataFrame,
    contrasts: Optional[Dict[str, str]] = None,
    default: str = "treatment",
) -> Tuple[pd.DataFrame, Dict[str, Factor]]:
    """
    Replace categorical columns by their contrast-coded columns.

    Parameters
    ----------
    data : DataFrame
        Dataset; the input is not modified
    contrasts : dict, optional
        Scheme per column name. Naming a numeric column here treats it
        as categorical too.
    default : str
        Scheme for categorical columns not listed in ``contrasts``

    Returns
    -------
    expanded : DataFrame
        Coded columns take the place of each factor, other columns
        are kept in order
    factors : dict
        Variable name -> Factor

    Examples
    --------
    >>> expanded, factors = expand_factors(df, contrasts={'dose': 'poly'})
    >>> factors['dose'].columns
    ['dose.L', 'dose.Q']
    """
    contrasts = dict(contrasts or {})
    contrast_matrix(default, 2)

    unknown = [c for c in contrasts if c not in data.columns]
    if unknown:
        raise SchemaError(f"Columns not found in data: {unknown}")

    pieces = []
    factors = {}
    for column in data.columns:
        series = data[column]
        if column in contrasts or is_categorical(series):
            factor = Factor.from_series(series, scheme=contrasts.get(column, default),
                                        name=str(column))
            factors[column] = factor
            pieces.append(factor.encode(series))
        else:
            pieces.append(series.to_frame())

    expanded = pd.concat(pieces, axis=1) if pieces else data.copy()
    if expanded.columns.duplicated().any():
        dupes = list(expanded.columns[expanded.columns.duplicated()])
        raise SchemaError(f"Coded column names clash with existing columns: {dupes}")
    return expanded, factors


__all__ = [
    "contr_treatment",
    "contr_sum",
    "contr_helmert",
    "contr_poly",
    "contrast_matrix",
    "CONTRAST_SCHEMES",
    "Factor",
    "expand_factors",
]
