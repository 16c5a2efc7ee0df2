"""
Model II simple regression (in the manner of R's lmodel2).

When both variables carry measurement error, ordinary least squares
underestimates the slope. Major axis (MA) and standardized major axis
(SMA) lines treat the two variables symmetrically. The fits expose
``residuals`` so they can be scored next to ordinary models with
``comparator.score``.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass

from ._utils import check_columns, check_vector
from .exceptions import NumericalError, SchemaError

METHODS = ("ols", "ma", "sma")


@dataclass(frozen=True, eq=False)
class ModelIIFit:
    """A straight line y = intercept + slope * x."""
    method: str
    response: str
    predictor: str
    intercept: float
    slope: float
    r: float                 # Pearson correlation
    residuals: np.ndarray    # Vertical residuals y - ŷ

    @property
    def angle(self) -> float:
        """Angle of the line with the x axis, in degrees."""
        return float(np.degrees(np.arctan(self.slope)))

    @property
    def n_obs(self) -> int:
        return len(self.residuals)

    def predict(self, x) -> np.ndarray:
        return self.intercept + self.slope * np.asarray(x, dtype=np.float64)

    def __repr__(self):
        return (f"ModelIIFit({self.method}: {self.response} = {self.intercept:.4f} "
                f"+ {self.slope:.4f} * {self.predictor})")


def fit_model2(data: pd.DataFrame, response: str, predictor: str,
               method: str = "ma") -> ModelIIFit:
    """
    Fit a Model II regression line.

    Parameters
    ----------
    data : DataFrame
    response, predictor : str
        Numeric columns
    method : {'ols', 'ma', 'sma'}
        Ordinary least squares, major axis, standardized major axis

    Raises
    ------
    SchemaError
        Fewer than 3 rows, or a constant column
    NumericalError
        MA or SMA on uncorrelated variables, where the line is undefined
    """
    method = method.lower()
    if method not in METHODS:
        raise ValueError(
            f"Unknown method: {method!r}\n"
            f"Valid options: {', '.join(repr(m) for m in METHODS)}"
        )
    check_columns(data, [response, predictor])
    y = check_vector(data[response].to_numpy(dtype=np.float64), name=response)
    x = check_vector(data[predictor].to_numpy(dtype=np.float64), name=predictor)

    if len(y) < 3:
        raise SchemaError("Model II regression needs at least 3 observations")

    xc = x - x.mean()
    yc = y - y.mean()
    sxx = np.sum(xc ** 2)
    syy = np.sum(yc ** 2)
    sxy = np.sum(xc * yc)
    if sxx == 0 or syy == 0:
        raise SchemaError("Model II regression needs non-constant variables")
    r = sxy / np.sqrt(sxx * syy)

    if method == "ols":
        slope = sxy / sxx
    elif sxy == 0:
        raise NumericalError(f"{method.upper()} slope is undefined for uncorrelated variables")
    elif method == "ma":
        d = syy - sxx
        slope = (d + np.sqrt(d ** 2 + 4 * sxy ** 2)) / (2 * sxy)
    else:
        slope = np.sign(sxy) * np.sqrt(syy / sxx)

    intercept = y.mean() - slope * x.mean()
    residuals = y - (intercept + slope * x)
    residuals.setflags(write=False)

    return ModelIIFit(method=method, response=response, predictor=predictor,
                      intercept=float(intercept), slope=float(slope), r=float(r),
                      residuals=residuals)


def model2_table(data: pd.DataFrame, response: str, predictor: str) -> pd.DataFrame:
    """All three lines side by side (lmodel2's regression.results)."""
    fits = [fit_model2(data, response, predictor, method) for method in METHODS]
    return pd.DataFrame({
        "Method": [f.method.upper() for f in fits],
        "Intercept": [f.intercept for f in fits],
        "Slope": [f.slope for f in fits],
        "Angle (degrees)": [f.angle for f in fits],
    })


__all__ = ["ModelIIFit", "fit_model2", "model2_table"]
