"""
Exception hierarchy.

Every error raised by pylmkit derives from PyLMKitError, so callers can
catch the whole family in one place. Errors are raised immediately and
never retried; no partial results are returned.
"""


class PyLMKitError(Exception):
    """Base class for all pylmkit errors."""
    pass


class SchemaError(PyLMKitError, ValueError):
    """A column is missing, has the wrong type, or holds invalid values."""
    pass


class NumericalError(PyLMKitError):
    """A numerical procedure could not produce a valid result."""
    pass


class SingularMatrixError(NumericalError):
    """The design matrix is rank-deficient."""

    def __init__(self, message: str, rank: int = None, n_columns: int = None):
        super().__init__(message)
        self.rank = rank
        self.n_columns = n_columns


class ConvergenceError(NumericalError):
    """IRLS did not converge within the iteration limit."""

    def __init__(self, message: str, iterations: int = None, deviance: float = None):
        super().__init__(message)
        self.iterations = iterations
        self.deviance = deviance


class IncomparableModelsError(PyLMKitError, ValueError):
    """Models are not nested, or were fit on different data."""
    pass


__all__ = [
    "PyLMKitError",
    "SchemaError",
    "NumericalError",
    "SingularMatrixError",
    "ConvergenceError",
    "IncomparableModelsError",
]
