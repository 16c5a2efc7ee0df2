"""
Core algorithms (backend-agnostic).
"""

from .families import Family, Gaussian, Binomial, Poisson, get_family
from .irls import fit_glm, IRLSResult

__all__ = [
    "Family",
    "Gaussian",
    "Binomial",
    "Poisson",
    "get_family",
    "fit_glm",
    "IRLSResult",
]
