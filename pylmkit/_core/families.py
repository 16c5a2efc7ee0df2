"""
GLM family definitions.

Defines link functions, variance functions, deviance residuals and
log-likelihoods, following R's family objects.
"""

import numpy as np
from abc import ABC, abstractmethod
from scipy import special, stats

from ..exceptions import SchemaError


class Family(ABC):
    """Base class for GLM families."""

    # Parameters estimated besides the coefficients (sigma for Gaussian)
    n_extra_params = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Family name."""
        pass

    @property
    def fixed_dispersion(self) -> bool:
        """Whether the dispersion is known (1) rather than estimated."""
        return True

    @abstractmethod
    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        """Link function: η = g(μ)"""
        pass

    @abstractmethod
    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link: μ = g⁻¹(η)"""
        pass

    @abstractmethod
    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        """Derivative: dμ/dη"""
        pass

    @abstractmethod
    def variance(self, mu: np.ndarray) -> np.ndarray:
        """Variance function: V(μ)"""
        pass

    @abstractmethod
    def dev_resids(self, y: np.ndarray, mu: np.ndarray, wt: np.ndarray) -> np.ndarray:
        """Squared deviance residuals (unit deviances times weights)."""
        pass

    @abstractmethod
    def loglik(self, y: np.ndarray, mu: np.ndarray, wt: np.ndarray,
               dev: float) -> float:
        """Maximized log-likelihood at μ."""
        pass

    @abstractmethod
    def mustart(self, y: np.ndarray, wt: np.ndarray) -> np.ndarray:
        """Starting values for μ (R's family$initialize)."""
        pass

    def validate_response(self, y: np.ndarray) -> None:
        """Raise SchemaError if y is outside the family's support."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}()"

    def __eq__(self, other):
        return isinstance(other, Family) and self.name == other.name

    def __hash__(self):
        return hash(self.name)


class Gaussian(Family):
    """Gaussian family with identity link."""

    n_extra_params = 1

    @property
    def name(self) -> str:
        return "gaussian"

    @property
    def fixed_dispersion(self) -> bool:
        return False

    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        return mu

    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        return eta

    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        return np.ones_like(eta)

    def variance(self, mu: np.ndarray) -> np.ndarray:
        return np.ones_like(mu)

    def dev_resids(self, y, mu, wt):
        return wt * (y - mu) ** 2

    def loglik(self, y, mu, wt, dev):
        # logLik.lm: zero-weight rows do not count
        good = wt > 0
        n = np.sum(good)
        if dev <= 0:
            return np.inf
        return 0.5 * (np.sum(np.log(wt[good]))
                      - n * (np.log(2 * np.pi) + 1 - np.log(n) + np.log(dev)))

    def mustart(self, y, wt):
        return y.copy()


class Binomial(Family):
    """
    Binomial family with logit link.

    The response is a proportion in [0, 1]; prior weights are the number
    of trials (1 for 0/1 data). Replicates R's thresholding at ±30 to
    prevent overflow in the inverse link.
    """

    # Thresholds from R's family.c
    THRESH = 30.0
    MTHRESH = -30.0
    EPS = np.finfo(np.float64).eps

    @property
    def name(self) -> str:
        return "binomial"

    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        """Logit: η = log(μ/(1-μ))"""
        return np.log(mu / (1 - mu))

    def _exp_eta(self, eta):
        # R's family.c: exp(η) replaced by ε / 1/ε outside ±30
        inner = np.exp(np.clip(eta, self.MTHRESH, self.THRESH))
        return np.where(eta < self.MTHRESH, self.EPS,
                        np.where(eta > self.THRESH, 1 / self.EPS, inner))

    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        """μ = e^η / (1 + e^η)"""
        t = self._exp_eta(eta)
        return t / (1 + t)

    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        """dμ/dη = e^η / (1 + e^η)², ε outside ±30"""
        t = self._exp_eta(eta)
        outside = (eta < self.MTHRESH) | (eta > self.THRESH)
        return np.where(outside, self.EPS, t / (1 + t) ** 2)

    def variance(self, mu: np.ndarray) -> np.ndarray:
        """Variance: V(μ) = μ(1-μ)"""
        return mu * (1 - mu)

    def dev_resids(self, y, mu, wt):
        return 2 * wt * (special.xlogy(y, y / mu)
                         + special.xlogy(1 - y, (1 - y) / (1 - mu)))

    def loglik(self, y, mu, wt, dev):
        m = np.round(wt)
        successes = np.round(m * y)
        return float(np.sum(stats.binom.logpmf(successes, m, mu)))

    def mustart(self, y, wt):
        return (wt * y + 0.5) / (wt + 1)

    def validate_response(self, y):
        if np.any(y < 0) or np.any(y > 1):
            raise SchemaError("binomial response must lie in [0, 1]")


class Poisson(Family):
    """Poisson family with log link."""

    @property
    def name(self) -> str:
        return "poisson"

    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        return np.log(mu)

    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        return np.maximum(np.exp(eta), np.finfo(np.float64).eps)

    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        return np.maximum(np.exp(eta), np.finfo(np.float64).eps)

    def variance(self, mu: np.ndarray) -> np.ndarray:
        return mu

    def dev_resids(self, y, mu, wt):
        return 2 * wt * (special.xlogy(y, y / mu) - (y - mu))

    def loglik(self, y, mu, wt, dev):
        return float(np.sum(wt * stats.poisson.logpmf(np.round(y), mu)))

    def mustart(self, y, wt):
        return y + 0.1

    def validate_response(self, y):
        if np.any(y < 0):
            raise SchemaError("poisson response must be non-negative")
        if np.any(y != np.round(y)):
            raise SchemaError("poisson response must hold integer counts")


FAMILIES = {
    "gaussian": Gaussian,
    "binomial": Binomial,
    "poisson": Poisson,
}


def get_family(family) -> Family:
    """Resolve a family name or instance."""
    if isinstance(family, Family):
        return family
    if isinstance(family, str) and family.lower() in FAMILIES:
        return FAMILIES[family.lower()]()
    raise ValueError(
        f"Unknown family: {family!r}\n"
        f"Valid options: {', '.join(repr(k) for k in FAMILIES)}"
    )


__all__ = ["Family", "Gaussian", "Binomial", "Poisson", "get_family"]
