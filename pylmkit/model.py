"""
Fitted model object with R-style interface and output.

A FittedModel is created by the Fitter and never changes afterwards:
the dataclass is frozen and every array it holds is read-only.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Tuple, Union
from scipy import stats

from ._core.families import Family
from .exceptions import SchemaError


@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Result of fitting a linear or generalized linear model.

    Examples
    --------
    >>> from pylmkit import fit
    >>> model = fit(mtcars, 'mpg', ['wt', 'hp'])
    >>> model.summary()      # Prints a table like R's summary.lm
    >>> model.coef           # Named coefficients
    >>> model.aic            # Akaike information criterion
    >>> model.predict(new_cars)
    """
    response: str
    predictors: Tuple[str, ...]
    family: Family

    coefficients: np.ndarray       # Intercept first
    fitted_values: np.ndarray      # μ
    linear_predictors: np.ndarray  # η
    residuals: np.ndarray          # Response residuals y - μ
    prior_weights: np.ndarray
    working_weights: np.ndarray

    n_obs: int
    rank: int
    df_residual: int

    deviance: float
    null_deviance: float
    loglik: float
    dispersion: float
    vcov: np.ndarray

    iterations: int = 0
    converged: bool = True
    boundary: bool = False         # IRLS step halving was needed
    backend_name: str = "cpu_fp64"

    data: pd.DataFrame = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        for name in ("coefficients", "fitted_values", "linear_predictors",
                     "residuals", "prior_weights", "working_weights", "vcov"):
            getattr(self, name).setflags(write=False)

    # ------------------------------------------------------------------
    # Coefficients and inference

    @property
    def var_names(self):
        return ['Intercept'] + list(self.predictors)

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    @property
    def std_errors(self) -> np.ndarray:
        return np.sqrt(np.diag(self.vcov))

    @property
    def statistics(self) -> np.ndarray:
        """t values (Gaussian) or z values (fixed dispersion)."""
        return self.coefficients / self.std_errors

    @property
    def pvalues(self) -> np.ndarray:
        """Two-tailed p-values for each coefficient."""
        if self.family.fixed_dispersion:
            return 2 * stats.norm.sf(np.abs(self.statistics))
        return 2 * stats.t.sf(np.abs(self.statistics), self.df_residual)

    def conf_int(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Wald confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)
        """
        if self.family.fixed_dispersion:
            crit = stats.norm.ppf(1 - alpha / 2)
        else:
            crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        return pd.DataFrame({
            'lower': self.coefficients - crit * self.std_errors,
            'upper': self.coefficients + crit * self.std_errors,
        }, index=self.var_names)

    # ------------------------------------------------------------------
    # Fit statistics

    @property
    def n_params(self) -> int:
        """Parameters counted by AIC (coefficients plus sigma for Gaussian)."""
        return self.rank + self.family.n_extra_params

    @property
    def rss(self) -> float:
        """Residual sum of squares (response scale, prior-weighted)."""
        return float(np.sum(self.prior_weights * self.residuals ** 2))

    def information_criterion(self, k: float = 2.0) -> float:
        """-2 log L + k * n_params (k=2: AIC, k=log(n): BIC)."""
        return -2 * self.loglik + k * self.n_params

    @property
    def aic(self) -> float:
        return self.information_criterion(2.0)

    @property
    def bic(self) -> float:
        return self.information_criterion(np.log(self.n_obs))

    @property
    def r_squared(self) -> float:
        """Multiple R-squared (Gaussian only, NaN otherwise)."""
        if self.family.name != "gaussian":
            return np.nan
        return 1 - self.deviance / self.null_deviance if self.null_deviance > 0 else 0.0

    @property
    def adj_r_squared(self) -> float:
        if self.family.name != "gaussian" or self.df_residual <= 0:
            return np.nan
        return 1 - (1 - self.r_squared) * (self.n_obs - 1) / self.df_residual

    # ------------------------------------------------------------------
    # Residuals on other scales

    @property
    def y(self) -> np.ndarray:
        return self.fitted_values + self.residuals

    @property
    def pearson_residuals(self) -> np.ndarray:
        return (self.residuals * np.sqrt(self.prior_weights)
                / np.sqrt(self.family.variance(self.fitted_values)))

    @property
    def deviance_residuals(self) -> np.ndarray:
        d = self.family.dev_resids(self.y, self.fitted_values, self.prior_weights)
        return np.sign(self.residuals) * np.sqrt(np.maximum(d, 0))

    def design_matrix(self) -> np.ndarray:
        """Model matrix with the intercept column first."""
        X = self.data[list(self.predictors)].to_numpy(dtype=np.float64)
        return np.column_stack([np.ones(self.n_obs), X])

    # ------------------------------------------------------------------

    def predict(self, newdata: Union[pd.DataFrame, np.ndarray],
                type: str = 'response') -> np.ndarray:
        """
        Predict for new data.

        Parameters
        ----------
        newdata : DataFrame or array
            New predictor values
            - If DataFrame: must have columns matching self.predictors
            - If array: must have one column per predictor
        type : {'response', 'link'}
            Scale of the predictions

        Returns
        -------
        array
            Predicted values
        """
        if isinstance(newdata, pd.DataFrame):
            missing = [c for c in self.predictors if c not in newdata.columns]
            if missing:
                raise SchemaError(f"Columns not found in newdata: {missing}")
            X_new = newdata[list(self.predictors)].to_numpy(dtype=np.float64)
        else:
            X_new = np.asarray(newdata, dtype=np.float64).reshape(-1, len(self.predictors))

        eta = self.coefficients[0] + X_new @ self.coefficients[1:]
        if type == 'link':
            return eta
        if type == 'response':
            return self.family.linkinv(eta)
        raise ValueError(f"Unknown prediction type: {type!r}")

    def summary(self):
        """
        Print summary of results (like R's summary.lm / summary.glm).
        """
        gaussian = self.family.name == "gaussian"
        stat_label = 'z value' if self.family.fixed_dispersion else 't value'
        p_label = 'Pr(>|z|)' if self.family.fixed_dispersion else 'Pr(>|t|)'

        print()
        print("=" * 80)
        print("LINEAR REGRESSION RESULTS" if gaussian
              else f"GENERALIZED LINEAR MODEL RESULTS ({self.family.name})")
        print("=" * 80)
        print()

        print(f"Formula: {self.response} ~ {' + '.join(self.predictors) or '1'}")
        print(f"Number of observations: {self.n_obs}")
        print(f"Degrees of freedom: {self.df_residual} (residual), {self.rank - 1} (model)")
        print()

        label = "Residuals:" if gaussian else "Deviance Residuals:"
        resid = self.residuals if gaussian else self.deviance_residuals
        q = np.quantile(resid, [0, 0.25, 0.5, 0.75, 1])
        print(label)
        for name, value in zip(["Min", "1Q", "Median", "3Q", "Max"], q):
            print(f"  {name + ':':<8}{value:>10.4f}")
        print()

        print("Coefficients:")
        print("-" * 80)
        print(f"{'Variable':<20} {'Estimate':>12} {'Std. Error':>12} {stat_label:>10} {p_label:>12}")
        print("-" * 80)

        for i, name in enumerate(self.var_names):
            p = self.pvalues[i]
            if np.isnan(p):
                sig = ''
                p_str = 'NA'
            else:
                if p < 0.001:
                    sig = ' ***'
                elif p < 0.01:
                    sig = ' **'
                elif p < 0.05:
                    sig = ' *'
                elif p < 0.1:
                    sig = ' .'
                else:
                    sig = ''

                p_str = f"{p:.4f}" if p >= 0.0001 else "<.0001"

            print(f"{name:<20} {self.coefficients[i]:>12.4f} {self.std_errors[i]:>12.4f} "
                  f"{self.statistics[i]:>10.3f} {p_str:>12}{sig}")

        print("-" * 80)
        print("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        print()

        if gaussian:
            sigma = np.sqrt(self.dispersion)
            print(f"Residual standard error: {sigma:.4f} on {self.df_residual} degrees of freedom")
            print(f"Multiple R-squared:      {self.r_squared:.4f}")
            print(f"Adjusted R-squared:      {self.adj_r_squared:.4f}")
        else:
            print(f"(Dispersion parameter for {self.family.name} family taken to be "
                  f"{self.dispersion:g})")
            print(f"    Null deviance: {self.null_deviance:.4f} on {self.n_obs - 1} degrees of freedom")
            print(f"Residual deviance: {self.deviance:.4f} on {self.df_residual} degrees of freedom")
            print(f"Number of Fisher Scoring iterations: {self.iterations}")
        print(f"AIC: {self.aic:.4f}")

        print()
        print(f"Backend: {self.backend_name}")
        print("=" * 80)
        print()

    def __repr__(self):
        rhs = ' + '.join(self.predictors) or '1'
        return (f"FittedModel({self.response} ~ {rhs}, family={self.family.name}, "
                f"n={self.n_obs}, AIC={self.aic:.3f})")
