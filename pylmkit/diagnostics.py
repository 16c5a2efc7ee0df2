"""
Residual diagnostics for fitted models.

Normality (Shapiro-Wilk, QQ correlation), homoscedasticity (studentized
Breusch-Pagan, as lmtest::bptest) and leverage/influence (as R's
influence.measures). Every function is pure: it reads the model and the
data the model was fit on, nothing else.
"""

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional
from scipy import stats
from scipy.linalg import qr, solve_triangular

from ._backends import get_backend
from .control import DiagnosticsControl
from .model import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalityResult:
    """Normality checks on a residual sequence."""
    statistic: float        # Shapiro-Wilk W
    pvalue: float
    qq_correlation: float   # corr(sorted standardized residuals, normal quantiles)
    n: int


@dataclass(frozen=True)
class HeteroscedasticityResult:
    """Studentized Breusch-Pagan test."""
    statistic: float
    df: int
    pvalue: float


@dataclass(frozen=True, eq=False)
class InfluenceMeasures:
    """
    Per-observation influence statistics.

    ``table`` has R's influence.measures layout: one ``dfb.<coef>``
    column per coefficient, then ``dffit``, ``cov.r``, ``cook.d`` and
    ``hat``. ``is_influential`` flags the same cells with R's cut-offs.
    """
    table: pd.DataFrame
    is_influential: pd.DataFrame
    sigma: np.ndarray         # Leave-one-out residual scale

    @property
    def hat(self) -> np.ndarray:
        return self.table["hat"].to_numpy()

    @property
    def cooks_distance(self) -> np.ndarray:
        return self.table["cook.d"].to_numpy()

    @property
    def dffits(self) -> np.ndarray:
        return self.table["dffit"].to_numpy()

    @property
    def covratio(self) -> np.ndarray:
        return self.table["cov.r"].to_numpy()

    @property
    def dfbetas(self) -> pd.DataFrame:
        return self.table[[c for c in self.table.columns if c.startswith("dfb.")]]

    @property
    def influential_rows(self) -> list:
        """Row labels flagged by at least one measure."""
        return list(self.table.index[self.is_influential.any(axis=1).to_numpy()])


@dataclass(frozen=True, eq=False)
class DiagnosticsReport:
    """Everything diagnose() computes for one model."""
    residuals: np.ndarray
    normality: NormalityResult
    heteroscedasticity: HeteroscedasticityResult
    influence: InfluenceMeasures

    @property
    def influential(self) -> list:
        return self.influence.influential_rows

    def summary(self):
        """Print a short diagnostics report."""
        print()
        print("=" * 80)
        print("REGRESSION DIAGNOSTICS")
        print("=" * 80)
        print()
        nt = self.normality
        print("Normality of residuals:")
        print(f"  Shapiro-Wilk W = {nt.statistic:.4f}, p-value = {nt.pvalue:.4g}")
        print(f"  QQ correlation = {nt.qq_correlation:.4f}")
        print()
        bp = self.heteroscedasticity
        print("Homoscedasticity (studentized Breusch-Pagan):")
        print(f"  BP = {bp.statistic:.4f}, df = {bp.df}, p-value = {bp.pvalue:.4g}")
        print()
        print("Influence:")
        print(f"  max hat     = {np.nanmax(self.influence.hat):.4f}")
        if np.all(np.isnan(self.influence.cooks_distance)):
            print("  max Cook's D = NA")
        else:
            print(f"  max Cook's D = {np.nanmax(self.influence.cooks_distance):.4f}")
        print(f"  influential observations: {self.influential or 'none'}")
        print("=" * 80)
        print()


def _ppoints(n: int) -> np.ndarray:
    """R's ppoints(): plotting positions for QQ plots."""
    a = 3 / 8 if n <= 10 else 0.5
    return (np.arange(1, n + 1) - a) / (n + 1 - 2 * a)


def normality_test(residuals, control: Optional[DiagnosticsControl] = None) -> NormalityResult:
    """
    Shapiro-Wilk test and QQ correlation of a residual sequence.

    W and its p-value are NaN outside 3 <= n <= control.shapiro_max_n,
    and every statistic is NaN when the residuals are constant.
    """
    control = control or DiagnosticsControl()
    control.validate()
    r = np.asarray(residuals, dtype=np.float64)
    n = len(r)

    if n < 3 or np.ptp(r) == 0:
        return NormalityResult(np.nan, np.nan, np.nan, n)

    if n <= control.shapiro_max_n:
        w_stat, pvalue = stats.shapiro(r)
    else:
        w_stat, pvalue = np.nan, np.nan

    z = np.sort((r - r.mean()) / r.std(ddof=1))
    q = stats.norm.ppf(_ppoints(n))
    qq = float(np.corrcoef(z, q)[0, 1])

    return NormalityResult(float(w_stat), float(pvalue), qq, n)


def breusch_pagan(model: FittedModel) -> HeteroscedasticityResult:
    """
    Studentized (Koenker) Breusch-Pagan test.

    Squared Pearson residuals are regressed on the model's predictors;
    the statistic is n·R² of that auxiliary regression, chi-square with
    one degree of freedom per predictor.
    """
    df = len(model.predictors)
    good = model.prior_weights > 0
    u = model.pearson_residuals[good] ** 2
    n = len(u)
    tss = np.sum((u - u.mean()) ** 2)

    if df == 0 or tss == 0:
        return HeteroscedasticityResult(np.nan, df, np.nan)

    X = model.design_matrix()[good, 1:]
    aux = get_backend('cpu').fit_linear_model(X, u)
    r_squared = 1 - np.sum(aux.residuals ** 2) / tss
    statistic = float(n * r_squared)
    return HeteroscedasticityResult(statistic, df, float(stats.chi2.sf(statistic, df)))


def influence_measures(model: FittedModel) -> InfluenceMeasures:
    """
    Leverage and influence per observation (R's influence.measures).

    Works on the weighted design sqrt(W)·X with Pearson residuals, so a
    Gaussian fit gives the classical OLS quantities and a GLM uses its
    final IRLS weights. Cook's distance is scaled by the model's
    dispersion (1 for binomial and Poisson). Rows with zero weight get NaN.
    """
    X = model.design_matrix()
    w = model.working_weights
    good = w > 0
    k = X.shape[1]

    Xw = X * np.sqrt(w)[:, np.newaxis]
    r = model.pearson_residuals

    Q, R, P = qr(Xw[good], mode='economic', pivoting=True)
    hat = np.full(model.n_obs, np.nan)
    hat[good] = np.sum(Q[:, :k] ** 2, axis=1)

    R_inv = solve_triangular(R[:k, :k], np.eye(k), lower=False)
    xtx_inv = np.empty((k, k))
    xtx_inv[np.ix_(P, P)] = R_inv @ R_inv.T

    n = int(np.sum(good))
    with np.errstate(divide='ignore', invalid='ignore'):
        rss = np.sum(r[good] ** 2)
        s = np.sqrt(rss / (n - k))
        sigma = np.sqrt((rss - r ** 2 / (1 - hat)) / (n - k - 1))

        cook = r ** 2 * hat / (model.dispersion * k * (1 - hat) ** 2)
        dffit = r * np.sqrt(hat) / (sigma * (1 - hat))
        cov_r = (sigma / s) ** (2 * k) / (1 - hat)

        coef_change = (Xw @ xtx_inv) * (r / (1 - hat))[:, np.newaxis]
        dfbetas = coef_change / (sigma[:, np.newaxis] * np.sqrt(np.diag(xtx_inv))[np.newaxis, :])

    columns = [f"dfb.{name}" for name in model.var_names]
    table = pd.DataFrame(dfbetas, index=model.data.index, columns=columns)
    table["dffit"] = dffit
    table["cov.r"] = cov_r
    table["cook.d"] = cook
    table["hat"] = hat

    with np.errstate(divide='ignore', invalid='ignore'):
        flags = pd.DataFrame(np.abs(dfbetas) > 1, index=table.index, columns=columns)
        flags["dffit"] = np.abs(dffit) > 3 * np.sqrt(k / (n - k))
        flags["cov.r"] = np.abs(1 - cov_r) > 3 * k / (n - k)
        flags["cook.d"] = stats.f.cdf(cook, k, n - k) > 0.5
        flags["hat"] = hat > 3 * k / n

    return InfluenceMeasures(table=table, is_influential=flags, sigma=sigma)


def diagnose(model: FittedModel, control: Optional[DiagnosticsControl] = None) -> DiagnosticsReport:
    """
    Compute residual diagnostics for a fitted model.

    Parameters
    ----------
    model : FittedModel
    control : DiagnosticsControl, optional

    Returns
    -------
    DiagnosticsReport
        Residuals, normality and homoscedasticity tests, influence
        measures and the labels of influential rows
    """
    residuals = np.asarray(model.residuals)
    if model.family.name == "gaussian":
        normal_input = model.pearson_residuals
    else:
        normal_input = model.deviance_residuals

    report = DiagnosticsReport(
        residuals=residuals,
        normality=normality_test(normal_input, control),
        heteroscedasticity=breusch_pagan(model),
        influence=influence_measures(model),
    )
    logger.debug("Diagnostics for %r: %d influential rows",
                 model, len(report.influential))
    return report


__all__ = [
    "NormalityResult",
    "HeteroscedasticityResult",
    "InfluenceMeasures",
    "DiagnosticsReport",
    "normality_test",
    "breusch_pagan",
    "influence_measures",
    "diagnose",
]
