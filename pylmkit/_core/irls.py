"""
Generalized linear models via IRLS.

Follows R's glm.fit(): every iteration is a weighted least-squares solve
delegated to the backend, with R's convergence criterion

    |dev - dev_old| / (|dev| + 0.1) < epsilon
"""

import logging
import warnings
import numpy as np
from dataclasses import dataclass
from typing import Optional

from .families import Family
from .._backends.base import BackendBase, LinearModelResult
from ..control import FitControl
from ..exceptions import ConvergenceError

logger = logging.getLogger(__name__)

# R: 10 * .Machine$double.eps
_MU_EPS = 10 * np.finfo(np.float64).eps


@dataclass
class IRLSResult:
    """Results from IRLS fitting."""
    coef: np.ndarray               # Coefficients (intercept first)
    linear_predictors: np.ndarray  # η
    fitted_values: np.ndarray      # μ
    working_weights: np.ndarray    # w·(dμ/dη)²/V(μ) at the final μ
    deviance: float
    iterations: int
    converged: bool
    boundary: bool
    ls_result: LinearModelResult   # Last weighted least-squares solve


def fit_glm(
    X: np.ndarray,
    y: np.ndarray,
    family: Family,
    weights: Optional[np.ndarray] = None,
    control: Optional[FitControl] = None,
    backend: BackendBase = None,
) -> IRLSResult:
    """
    Fit generalized linear model by iteratively reweighted least squares.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Design matrix (WITHOUT intercept)
    y : ndarray, shape (n,)
        Response vector
    family : Family
        GLM family
    weights : ndarray, optional
        Prior weights (number of trials for binomial proportions)
    control : FitControl, optional
        Convergence tolerance, iteration cap, rank tolerance
    backend : Backend, optional
        Computational backend

    Returns
    -------
    result : IRLSResult

    Raises
    ------
    ConvergenceError
        If the deviance has not settled after control.maxit iterations,
        or a non-finite deviance cannot be repaired by step halving.
    SingularMatrixError
        If a weighted least-squares step is rank-deficient.
    """
    if backend is None:
        from .._backends import get_backend
        backend = get_backend('cpu')
    control = control or FitControl()

    n = len(y)
    prior = np.ones(n) if weights is None else np.asarray(weights, dtype=np.float64)
    X_full = np.column_stack([np.ones(n), X])

    mu = family.mustart(y, prior)
    eta = family.linkfun(mu)
    dev_old = float(np.sum(family.dev_resids(y, mu, prior)))
    coef_old = None
    converged = False
    boundary = False
    ls = None
    coef = None

    for iteration in range(1, control.maxit + 1):
        mu_eta_val = family.mu_eta(eta)
        good = (prior > 0) & (mu_eta_val != 0)

        z = np.zeros(n)
        z[good] = eta[good] + (y[good] - mu[good]) / mu_eta_val[good]
        w = np.zeros(n)
        w[good] = prior[good] * mu_eta_val[good] ** 2 / family.variance(mu[good])

        ls = backend.fit_linear_model(X, z, weights=w, tol=control.tol)
        coef = ls.coef

        eta = X_full @ coef
        mu = family.linkinv(eta)
        dev = float(np.sum(family.dev_resids(y, mu, prior)))

        # Step halving while the deviance is infinite
        halvings = 0
        while not np.isfinite(dev):
            if coef_old is None or halvings >= control.maxit:
                logger.warning("IRLS: cannot correct step size at iteration %d", iteration)
                raise ConvergenceError(
                    "IRLS produced a non-finite deviance that step halving "
                    "could not correct",
                    iterations=iteration, deviance=dev,
                )
            halvings += 1
            boundary = True
            coef = (coef + coef_old) / 2
            eta = X_full @ coef
            mu = family.linkinv(eta)
            dev = float(np.sum(family.dev_resids(y, mu, prior)))

        logger.debug("IRLS iteration %d: deviance = %.10g", iteration, dev)

        if abs(dev - dev_old) / (abs(dev) + 0.1) < control.epsilon:
            converged = True
            break

        dev_old = dev
        coef_old = coef

    if not converged:
        logger.warning(
            "IRLS did not converge in %d iterations (deviance %.6g)",
            control.maxit, dev,
        )
        raise ConvergenceError(
            f"IRLS did not converge in {control.maxit} iterations",
            iterations=control.maxit, deviance=dev,
        )

    if family.name == "binomial" and (np.any(mu > 1 - _MU_EPS) or np.any(mu < _MU_EPS)):
        warnings.warn("fitted probabilities numerically 0 or 1 occurred",
                      RuntimeWarning, stacklevel=3)
    if family.name == "poisson" and np.any(mu < _MU_EPS):
        warnings.warn("fitted rates numerically 0 occurred",
                      RuntimeWarning, stacklevel=3)

    working = prior * family.mu_eta(eta) ** 2 / family.variance(mu)

    return IRLSResult(
        coef=coef,
        linear_predictors=eta,
        fitted_values=mu,
        working_weights=working,
        deviance=dev,
        iterations=iteration,
        converged=converged,
        boundary=boundary,
        ls_result=ls,
    )
