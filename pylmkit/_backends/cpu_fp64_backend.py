"""
CPU least-squares backend (NumPy + SciPy, FP64).

Rows are scaled by sqrt(weight) and the system is solved by Householder
QR with column pivoting, as R's lm.fit does through LINPACK dqrls.
"""

import numpy as np
import scipy
from scipy.linalg import qr, solve_triangular
from typing import Optional

from .base import BackendBase, LinearModelResult
from ..exceptions import SingularMatrixError

# lm.fit's default relative tolerance
DEFAULT_TOL = 1e-7


def _numerical_rank(R: np.ndarray, tol: float) -> int:
    """Number of pivots at least ``tol`` times the largest one."""
    pivots = np.abs(np.diag(R))
    if pivots.size == 0 or pivots[0] == 0:
        return 0
    return int(np.count_nonzero(pivots >= tol * pivots[0]))


class CPUBackendFP64(BackendBase):
    """Deterministic FP64 solver; identical inputs give identical bits."""

    name = "cpu_fp64"
    precision = "fp64"

    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None,
        offset: Optional[np.ndarray] = None,
        tol: Optional[float] = None,
        singular_ok: bool = False
    ) -> LinearModelResult:
        y = np.asarray(y, dtype=np.float64)
        n = len(y)
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            X = X[:, np.newaxis]
        design = np.column_stack([np.ones(n), X])
        p = design.shape[1]
        target = y if offset is None else y - offset

        if weights is None:
            good = np.ones(n, dtype=bool)
            A, b = design, target
        else:
            weights = np.asarray(weights, dtype=np.float64)
            good = weights > 0
            if not good.any():
                raise ValueError("All weights are zero")
            root_w = np.sqrt(weights[good])
            A = design[good] * root_w[:, np.newaxis]
            b = target[good] * root_w
        n_good = int(good.sum())

        if n_good < p and not singular_ok:
            raise SingularMatrixError(
                f"Singular fit: {p} coefficients but only {n_good} observations",
                rank=n_good, n_columns=p,
            )

        tol = DEFAULT_TOL if tol is None else tol
        Q, R, perm = qr(A, mode='economic', pivoting=True)
        rank = _numerical_rank(R, tol)
        if rank < p and not singular_ok:
            raise SingularMatrixError(
                f"Singular fit: rank {rank} < {p} columns",
                rank=rank, n_columns=p,
            )

        coef = np.full(p, np.nan)
        if rank > 0:
            kept = perm[:rank]
            coef[kept] = solve_triangular(R[:rank, :rank], Q[:, :rank].T @ b)
            fitted = design[:, kept] @ coef[kept]
        else:
            fitted = np.zeros(n)
        if offset is not None:
            fitted = fitted + offset

        return LinearModelResult(
            coef=coef,
            residuals=y - fitted,
            fitted_values=fitted,
            rank=rank,
            df_residual=n_good - rank,
            qr_R=R[:rank, :rank],
            qr_pivot=perm.astype(np.int64) + 1,
        )

    def get_device_info(self) -> dict:
        return {
            'backend': 'cpu',
            'precision': self.precision,
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
