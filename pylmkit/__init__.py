"""
pylmkit: linear and generalized linear model fitting, diagnostics,
comparison and stepwise selection with R-compatible numerics.
"""

__version__ = "1.0.0"

# Main user-facing API
from .fitter import fit, lm, glm
from .model import FittedModel
from .contrasts import Factor, contrast_matrix, expand_factors
from .data import read_dataset
from .diagnostics import (
    diagnose,
    DiagnosticsReport,
    normality_test,
    breusch_pagan,
    influence_measures,
)
from .comparator import compare, ComparisonResult, anova, score, aic_table
from .stepwise import select, select_path, StepResult
from .model2 import fit_model2, model2_table, ModelIIFit
from .control import FitControl, StepControl, DiagnosticsControl
from ._core.families import Family, Gaussian, Binomial, Poisson
from .exceptions import (
    PyLMKitError,
    SchemaError,
    NumericalError,
    SingularMatrixError,
    ConvergenceError,
    IncomparableModelsError,
)

# Backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'fit',
    'lm',
    'glm',
    'FittedModel',
    'Factor',
    'contrast_matrix',
    'expand_factors',
    'read_dataset',
    'diagnose',
    'DiagnosticsReport',
    'normality_test',
    'breusch_pagan',
    'influence_measures',
    'compare',
    'ComparisonResult',
    'anova',
    'score',
    'aic_table',
    'select',
    'select_path',
    'StepResult',
    'fit_model2',
    'model2_table',
    'ModelIIFit',
    'FitControl',
    'StepControl',
    'DiagnosticsControl',
    'Family',
    'Gaussian',
    'Binomial',
    'Poisson',
    'PyLMKitError',
    'SchemaError',
    'NumericalError',
    'SingularMatrixError',
    'ConvergenceError',
    'IncomparableModelsError',
    'get_backend',
    'list_available_backends',
]
