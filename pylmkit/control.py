"""
Per-call configuration objects.

There are no process-wide options: every knob travels with the call
that uses it (like R's glm.control(), but never set globally).
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FitControl:
    """
    Fitter settings.

    Attributes
    ----------
    epsilon : float
        IRLS convergence tolerance on the relative deviance change
    maxit : int
        Maximum IRLS iterations
    tol : float, optional
        Relative QR rank tolerance (None = 1e-7, as lm.fit)
    """
    epsilon: float = 1e-8
    maxit: int = 25
    tol: Optional[float] = None

    def validate(self) -> None:
        if not self.epsilon > 0:
            raise ValueError("epsilon must be positive")
        if self.maxit <= 0:
            raise ValueError("maxit must be positive")
        if self.tol is not None and not self.tol > 0:
            raise ValueError("tol must be positive")


@dataclass(frozen=True)
class StepControl:
    """
    Stepwise selection settings.

    Attributes
    ----------
    k : float
        Penalty per parameter (2 gives AIC, log(n) gives BIC)
    threshold : float
        Minimum criterion improvement required to take a step
    max_steps : int
        Upper bound on the number of steps
    """
    k: float = 2.0
    threshold: float = 1e-7
    max_steps: int = 1000

    def validate(self) -> None:
        if not self.k >= 0:
            raise ValueError("k must be non-negative")
        if not self.threshold >= 0:
            raise ValueError("threshold must be non-negative")
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")


@dataclass(frozen=True)
class DiagnosticsControl:
    """Diagnostics settings."""
    shapiro_max_n: int = 5000

    def validate(self) -> None:
        if self.shapiro_max_n < 3:
            raise ValueError("shapiro_max_n must be at least 3")


__all__ = ["FitControl", "StepControl", "DiagnosticsControl"]
