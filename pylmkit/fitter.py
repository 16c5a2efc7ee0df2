"""
Model fitting with an R-style interface.

This is the user-facing entry point: ``fit`` for any family, with
``lm`` and ``glm`` as convenience wrappers.
"""

import logging
import numpy as np
import pandas as pd
from typing import Optional, Sequence, Union

from ._backends import get_backend
from ._core.families import Family, get_family
from ._core.irls import fit_glm
from ._utils import check_array, check_vector, check_columns
from .control import FitControl
from .exceptions import SchemaError
from .model import FittedModel

logger = logging.getLogger(__name__)


def _covariance(ls_result, dispersion: float) -> np.ndarray:
    """σ² (X'WX)⁻¹ from the pivoted R factor, in original column order."""
    R = ls_result.qr_R
    R_inv = np.linalg.inv(R)
    unscaled = R_inv @ R_inv.T
    pivot = ls_result.qr_pivot[:ls_result.rank] - 1
    p = len(ls_result.coef)
    vcov = np.full((p, p), np.nan)
    vcov[np.ix_(pivot, pivot)] = unscaled * dispersion
    return vcov


def fit(
    data: pd.DataFrame,
    response: str,
    predictors: Sequence[str],
    family: Union[str, Family] = "gaussian",
    weights: Optional[Union[str, np.ndarray]] = None,
    control: Optional[FitControl] = None,
    backend: str = 'auto',
) -> FittedModel:
    """
    Fit a linear or generalized linear model.

    Parameters
    ----------
    data : DataFrame
        Dataset containing the response and predictor columns
    response : str
        Response column
    predictors : list of str
        Predictor columns, all numeric. Categorical variables must be
        expanded with expand_factors() first. An empty list fits the
        intercept-only model.
    family : str or Family
        'gaussian' (OLS via QR), 'binomial' or 'poisson' (IRLS)
    weights : str or array, optional
        Prior weights (column name or values)
    control : FitControl, optional
        IRLS tolerance, iteration cap and rank tolerance
    backend : str
        Computational backend: 'auto', 'cpu'

    Returns
    -------
    FittedModel

    Raises
    ------
    SchemaError
        Missing or non-numeric column, non-finite values, response
        outside the family's support
    SingularMatrixError
        Rank-deficient design matrix
    ConvergenceError
        IRLS did not converge within control.maxit iterations

    Examples
    --------
    >>> model = fit(mtcars, 'mpg', ['wt', 'hp'])
    >>> model = fit(admissions, 'admit', ['gre', 'gpa'], family='binomial')
    """
    control = control or FitControl()
    control.validate()
    family = get_family(family)

    if isinstance(predictors, str):
        predictors = [predictors]
    predictors = list(predictors)
    if response in predictors:
        raise SchemaError(f"Response '{response}' is also listed as a predictor")
    check_columns(data, [response] + predictors)

    y = check_vector(data[response].to_numpy(dtype=np.float64), name=response)
    n = len(y)
    if n == 0:
        raise SchemaError("data has no rows")
    X = check_array(data[predictors].to_numpy(dtype=np.float64).reshape(n, len(predictors)),
                    name='predictors')
    family.validate_response(y)

    if weights is None:
        w = np.ones(n)
    else:
        if isinstance(weights, str):
            check_columns(data, [weights])
            weights = data[weights].to_numpy()
        w = check_vector(weights, name='weights')
        if len(w) != n:
            raise SchemaError(f"weights has length {len(w)}, data has {n} rows")
        if np.any(w < 0):
            raise SchemaError("weights must be non-negative")

    engine = get_backend(backend)

    if family.name == "gaussian":
        ls = engine.fit_linear_model(X, y, weights=w, tol=control.tol)
        coef = ls.coef
        mu = ls.fitted_values
        eta = mu
        working = w
        deviance = float(np.sum(family.dev_resids(y, mu, w)))
        iterations = 0
        boundary = False
    else:
        result = fit_glm(X, y, family, weights=w, control=control, backend=engine)
        ls = result.ls_result
        coef = result.coef
        mu = result.fitted_values
        eta = result.linear_predictors
        working = result.working_weights
        deviance = result.deviance
        iterations = result.iterations
        boundary = result.boundary

    # Zero-weight rows are left out of the solve
    df_residual = ls.df_residual

    if family.fixed_dispersion:
        dispersion = 1.0
    elif df_residual > 0:
        dispersion = deviance / df_residual
    else:
        dispersion = np.nan

    wtdmu = np.sum(w * y) / np.sum(w)
    null_deviance = float(np.sum(family.dev_resids(y, np.full(n, wtdmu), w)))

    model = FittedModel(
        response=response,
        predictors=tuple(predictors),
        family=family,
        coefficients=np.array(coef, dtype=np.float64),
        fitted_values=np.array(mu, dtype=np.float64),
        linear_predictors=np.array(eta, dtype=np.float64),
        residuals=y - mu,
        prior_weights=w.copy(),
        working_weights=np.array(working, dtype=np.float64),
        n_obs=n,
        rank=ls.rank,
        df_residual=df_residual,
        deviance=deviance,
        null_deviance=null_deviance,
        loglik=family.loglik(y, mu, w, deviance),
        dispersion=dispersion,
        vcov=_covariance(ls, dispersion),
        iterations=iterations,
        converged=True,
        boundary=boundary,
        backend_name=engine.name,
        data=data,
    )
    logger.debug("Fitted %r", model)
    return model


def lm(data: pd.DataFrame, response: str, predictors: Sequence[str], **kwargs) -> FittedModel:
    """
    Fit a linear regression model (like R's lm()).

    Examples
    --------
    >>> model = lm(mtcars, 'mpg', ['wt', 'hp'])
    >>> model.summary()
    """
    return fit(data, response, predictors, family="gaussian", **kwargs)


def glm(data: pd.DataFrame, response: str, predictors: Sequence[str],
        family: Union[str, Family] = "gaussian", **kwargs) -> FittedModel:
    """
    Fit a generalized linear model (like R's glm()).

    Examples
    --------
    >>> model = glm(counts, 'events', ['dose'], family='poisson')
    """
    return fit(data, response, predictors, family=family, **kwargs)


__all__ = ["fit", "lm", "glm"]
