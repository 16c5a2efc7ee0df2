"""
Model comparison.

Nested models are compared by AIC difference and relative likelihood
(``compare``) or by an F / chi-square test (``anova``); any models,
nested or not, can be scored by error metrics (``score``) and ranked by
Akaike weights (``aic_table``).
"""

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Sequence
from scipy import stats

from .exceptions import IncomparableModelsError
from .model import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ComparisonResult:
    """AIC comparison of a model and a larger model nested around it."""
    model_a: FittedModel
    model_b: FittedModel
    delta_aic: float            # AIC(B) - AIC(A)
    relative_likelihood: float  # exp(-delta_aic / 2)

    @property
    def preferred(self) -> FittedModel:
        """The model with the lower AIC (the smaller one on ties)."""
        return self.model_b if self.delta_aic < 0 else self.model_a

    def __repr__(self):
        return (f"ComparisonResult(delta_aic={self.delta_aic:.4f}, "
                f"relative_likelihood={self.relative_likelihood:.4g})")


@dataclass(frozen=True)
class AnovaResult:
    """Nested-model test, laid out like R's anova() table."""
    test: str                  # 'F' or 'Chisq'
    df_residual: tuple         # (A, B)
    deviance: tuple            # (A, B); RSS for Gaussian
    df: int
    statistic: float
    pvalue: float

    @property
    def table(self) -> pd.DataFrame:
        change = self.deviance[0] - self.deviance[1]
        if self.test == "F":
            return pd.DataFrame({
                "Res.Df": list(self.df_residual),
                "RSS": list(self.deviance),
                "Df": [np.nan, self.df],
                "Sum of Sq": [np.nan, change],
                "F": [np.nan, self.statistic],
                "Pr(>F)": [np.nan, self.pvalue],
            }, index=[1, 2])
        return pd.DataFrame({
            "Resid. Df": list(self.df_residual),
            "Resid. Dev": list(self.deviance),
            "Df": [np.nan, self.df],
            "Deviance": [np.nan, change],
            "Pr(>Chi)": [np.nan, self.pvalue],
        }, index=[1, 2])


def _same_data(model_a: FittedModel, model_b: FittedModel) -> bool:
    if model_a.data is None or model_b.data is None:
        return False
    if model_a.data is not model_b.data and not model_a.data.equals(model_b.data):
        return False
    return np.array_equal(model_a.prior_weights, model_b.prior_weights)


def _check_comparable(model_a: FittedModel, model_b: FittedModel) -> None:
    if model_a.response != model_b.response:
        raise IncomparableModelsError(
            f"Models have different responses: '{model_a.response}' vs '{model_b.response}'"
        )
    if not _same_data(model_a, model_b):
        raise IncomparableModelsError("Models were fit on different datasets")
    if model_a.family != model_b.family:
        raise IncomparableModelsError(
            f"Models have different families: {model_a.family.name} vs {model_b.family.name}"
        )


def _check_nested(model_a: FittedModel, model_b: FittedModel) -> None:
    _check_comparable(model_a, model_b)
    extra = set(model_a.predictors) - set(model_b.predictors)
    if extra:
        raise IncomparableModelsError(
            f"Models are not nested: {sorted(extra)} not in the second model"
        )


def compare(model_a: FittedModel, model_b: FittedModel) -> ComparisonResult:
    """
    Compare nested models by AIC.

    Parameters
    ----------
    model_a : FittedModel
        Smaller model
    model_b : FittedModel
        Model whose predictors include all of model_a's

    Returns
    -------
    ComparisonResult
        ``delta_aic = AIC(B) - AIC(A)`` and the relative likelihood
        ``exp(-delta_aic / 2)`` of B with respect to A

    Raises
    ------
    IncomparableModelsError
        Models are not nested, or differ in data, response or family

    Notes
    -----
    A Gaussian fit with exactly zero residual sum of squares has
    log-likelihood +inf and AIC -inf (as in R), so ``delta_aic`` and the
    relative likelihood come out NaN when both models fit perfectly.
    """
    _check_nested(model_a, model_b)
    delta = model_b.aic - model_a.aic
    with np.errstate(over='ignore', invalid='ignore'):
        relative = float(np.exp(-delta / 2))
    return ComparisonResult(model_a, model_b, float(delta), relative)


def anova(model_a: FittedModel, model_b: FittedModel) -> AnovaResult:
    """
    Test a model against a larger nested model.

    Gaussian models get an F test on the residual sums of squares;
    binomial and Poisson models a chi-square test on the deviance drop.
    """
    _check_nested(model_a, model_b)
    df = model_a.df_residual - model_b.df_residual
    dev_a, dev_b = model_a.deviance, model_b.deviance

    if df <= 0:
        statistic = pvalue = np.nan
    elif model_b.family.fixed_dispersion:
        statistic = dev_a - dev_b
        pvalue = float(stats.chi2.sf(statistic, df))
    else:
        with np.errstate(divide='ignore', invalid='ignore'):
            statistic = ((dev_a - dev_b) / df) / (dev_b / model_b.df_residual)
        pvalue = float(stats.f.sf(statistic, df, model_b.df_residual))

    return AnovaResult(
        test="Chisq" if model_b.family.fixed_dispersion else "F",
        df_residual=(model_a.df_residual, model_b.df_residual),
        deviance=(dev_a, dev_b),
        df=df,
        statistic=float(statistic),
        pvalue=pvalue,
    )


def rmse(residuals) -> float:
    """Root mean squared residual."""
    r = np.asarray(residuals, dtype=np.float64)
    return float(np.sqrt(np.mean(r ** 2)))


def mdae(residuals) -> float:
    """Median absolute residual (mean of the two middle values for even n)."""
    return float(np.median(np.abs(np.asarray(residuals, dtype=np.float64))))


def mae(residuals) -> float:
    """Mean absolute residual."""
    return float(np.mean(np.abs(np.asarray(residuals, dtype=np.float64))))


METRICS = {
    "rmse": rmse,
    "mdae": mdae,
    "mae": mae,
}


def score(model, metric: str = "rmse") -> float:
    """
    Scalar score of a fitted model, for comparing models that need not
    be nested (or even of the same kind).

    Parameters
    ----------
    model : FittedModel or ModelIIFit
        Anything with a ``residuals`` sequence; 'aic' and 'bic' need a
        likelihood-based model
    metric : {'rmse', 'mdae', 'mae', 'aic', 'bic'}
    """
    metric = metric.lower()
    if metric in ("aic", "bic"):
        if not hasattr(model, metric):
            raise ValueError(f"{type(model).__name__} has no likelihood; cannot compute {metric}")
        return float(getattr(model, metric))

    if metric not in METRICS:
        raise ValueError(
            f"Unknown metric: {metric!r}\n"
            f"Valid options: 'rmse', 'mdae', 'mae', 'aic', 'bic'"
        )
    residuals = np.asarray(model.residuals)
    if residuals.size == 0:
        raise ValueError("model has no residuals")
    return METRICS[metric](residuals)


def _label(model: FittedModel) -> str:
    return f"{model.response} ~ {' + '.join(model.predictors) or '1'}"


def aic_table(models: Sequence[FittedModel], names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Rank models fit to the same data by AIC.

    Returns a DataFrame sorted by AIC with the number of parameters,
    AIC, delta AIC to the best model, Akaike weight, RMSE and MdAE.
    A perfect Gaussian fit has AIC -inf, which makes the deltas and
    weights NaN.
    """
    models = list(models)
    if not models:
        raise ValueError("no models to compare")
    for other in models[1:]:
        _check_comparable(models[0], other)

    index = list(names) if names is not None else [_label(m) for m in models]
    if len(index) != len(models):
        raise ValueError("names must match models one to one")

    aic = np.array([m.aic for m in models])
    delta = aic - np.min(aic)
    with np.errstate(invalid='ignore'):
        rel = np.exp(-delta / 2)
        weight = rel / np.sum(rel)

    table = pd.DataFrame({
        "n_params": [m.n_params for m in models],
        "aic": aic,
        "delta_aic": delta,
        "weight": weight,
        "rmse": [score(m, "rmse") for m in models],
        "mdae": [score(m, "mdae") for m in models],
    }, index=index)
    return table.sort_values("aic", kind="stable")


__all__ = [
    "ComparisonResult",
    "AnovaResult",
    "compare",
    "anova",
    "score",
    "rmse",
    "mdae",
    "mae",
    "aic_table",
]
