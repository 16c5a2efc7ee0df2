"""
Backend interface.

A backend solves one (weighted) least-squares problem with an intercept
and reports enough of its QR factorization for the Fitter to build the
coefficient covariance. The Fitter and the IRLS loop only ever talk to
this interface.
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Optional
from dataclasses import dataclass


@dataclass
class LinearModelResult:
    """Solution of one weighted least-squares problem."""
    coef: np.ndarray          # Intercept first; NaN where aliased
    residuals: np.ndarray     # y - fitted, all rows
    fitted_values: np.ndarray # Includes the offset
    rank: int
    df_residual: int          # Rows with positive weight minus rank
    qr_R: np.ndarray          # rank x rank upper triangle of the pivoted QR
    qr_pivot: np.ndarray      # 1-indexed column order, R convention


class BackendBase(ABC):
    """Least-squares engine used by the Fitter."""

    name = "base"
    precision = None

    @abstractmethod
    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None,
        offset: Optional[np.ndarray] = None,
        tol: Optional[float] = None,
        singular_ok: bool = False
    ) -> LinearModelResult:
        """
        Solve min ||sqrt(w) (y - offset - [1 X] b)||.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Predictor columns; the intercept column is added here
        y : ndarray, shape (n,)
            Response vector
        weights : ndarray, optional
            Non-negative row weights; zero-weight rows are left out of
            the solve but still get fitted values and residuals
        offset : ndarray, optional
            Known component of the linear predictor
        tol : float, optional
            Relative pivot tolerance for the rank decision
        singular_ok : bool
            Return NaN for aliased coefficients instead of raising

        Returns
        -------
        LinearModelResult

        Raises
        ------
        SingularMatrixError
            Design is rank-deficient and singular_ok is False
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Describe the engine (for summaries and bug reports)."""
        pass
