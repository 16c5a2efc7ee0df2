"""
Test the least-squares backend.
"""

import pytest
import numpy as np
from pylmkit._backends import get_backend, list_available_backends
from pylmkit.exceptions import SingularMatrixError


class TestBackendSelection:
    """Test backend lookup."""

    def test_list_backends(self):
        """Test backend listing."""
        backends = list_available_backends()
        assert isinstance(backends, list)
        assert 'cpu' in backends

    def test_auto_backend_selects_something(self):
        """Test auto backend returns valid backend."""
        backend = get_backend('auto')
        assert backend is not None
        assert hasattr(backend, 'fit_linear_model')

    def test_backend_instance_passes_through(self):
        backend = get_backend('cpu')
        assert get_backend(backend) is backend

    def test_invalid_backend_name(self):
        """Test error on invalid backend name."""
        with pytest.raises(ValueError, match="Unknown backend"):
            get_backend('invalid_backend')


class TestCPUBackend:
    """Test CPU backend."""

    def test_cpu_backend_creation(self):
        """Test CPU backend initializes correctly."""
        backend = get_backend('cpu')
        assert backend.name == 'cpu_fp64'
        assert backend.precision == 'fp64'

    def test_cpu_device_info(self):
        """Test CPU backend device info."""
        info = get_backend('cpu').get_device_info()
        assert info['backend'] == 'cpu'
        assert info['precision'] == 'fp64'

    def test_cpu_simple_regression(self):
        """Test simple regression on CPU."""
        backend = get_backend('cpu')

        np.random.seed(42)
        n, p = 100, 3
        X = np.random.randn(n, p)
        beta_true = np.array([1.0, 2.0, -1.5])
        y = X @ beta_true + 0.1 * np.random.randn(n)

        result = backend.fit_linear_model(X, y)

        assert result.coef.shape == (p + 1,)  # +1 for intercept
        assert result.residuals.shape == (n,)
        assert result.fitted_values.shape == (n,)
        assert result.rank == p + 1
        assert result.df_residual == n - p - 1

        # Same answer as a plain least-squares solve
        X_full = np.column_stack([np.ones(n), X])
        expected, *_ = np.linalg.lstsq(X_full, y, rcond=None)
        np.testing.assert_allclose(result.coef, expected, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(result.residuals, y - X_full @ expected, atol=1e-10)

    def test_cpu_weighted_regression(self):
        """Weighted fit equals OLS on rows scaled by sqrt(w)."""
        backend = get_backend('cpu')

        np.random.seed(42)
        n, p = 50, 2
        X = np.random.randn(n, p)
        y = np.random.randn(n)
        weights = np.random.uniform(0.5, 1.5, n)

        result = backend.fit_linear_model(X, y, weights=weights)

        sw = np.sqrt(weights)
        X_full = np.column_stack([np.ones(n), X])
        expected, *_ = np.linalg.lstsq(X_full * sw[:, None], y * sw, rcond=None)
        np.testing.assert_allclose(result.coef, expected, rtol=1e-10, atol=1e-12)

    def test_zero_weights_drop_rows(self):
        backend = get_backend('cpu')

        np.random.seed(42)
        X = np.random.randn(20, 1)
        y = np.random.randn(20)
        weights = np.ones(20)
        weights[:5] = 0

        result = backend.fit_linear_model(X, y, weights=weights)
        subset = backend.fit_linear_model(X[5:], y[5:])

        np.testing.assert_allclose(result.coef, subset.coef, rtol=1e-10)
        assert result.df_residual == 15 - 2
        # Left out of the solve but still fitted
        np.testing.assert_allclose(result.fitted_values[:5], subset.coef[0] + X[:5, 0] * subset.coef[1])

    def test_all_zero_weights(self):
        backend = get_backend('cpu')
        with pytest.raises(ValueError, match="All weights are zero"):
            backend.fit_linear_model(np.ones((3, 1)), np.ones(3), weights=np.zeros(3))

    def test_cpu_with_offset(self):
        """Test regression with offset on CPU."""
        backend = get_backend('cpu')

        np.random.seed(42)
        n, p = 50, 2
        X = np.random.randn(n, p)
        y = np.random.randn(n)
        offset = np.random.randn(n)

        result = backend.fit_linear_model(X, y, offset=offset)

        assert result.coef.shape == (p + 1,)
        assert result.fitted_values.shape == (n,)
        np.testing.assert_allclose(result.residuals, y - result.fitted_values)

    def test_intercept_only(self):
        backend = get_backend('cpu')
        y = np.array([1.0, 2.0, 6.0])

        result = backend.fit_linear_model(np.empty((3, 0)), y)

        np.testing.assert_allclose(result.coef, [3.0])
        assert result.rank == 1


class TestNumericalCorrectness:
    """Test numerical correctness."""

    def test_perfect_fit(self):
        """Test backend handles perfect fit correctly."""
        np.random.seed(42)
        n, p = 50, 3
        X = np.random.randn(n, p)
        beta_true = np.array([2.0, -1.0, 0.5])
        y = X @ beta_true  # Perfect fit, no noise

        result = get_backend('cpu').fit_linear_model(X, y)

        assert np.allclose(result.coef[1:], beta_true, atol=1e-10)
        assert np.allclose(result.residuals, 0, atol=1e-10)

    def test_deterministic(self):
        """Test repeated fits are bit-identical."""
        backend = get_backend('auto')

        np.random.seed(42)
        X = np.random.randn(100, 3)
        y = np.random.randn(100)

        result1 = backend.fit_linear_model(X, y)
        result2 = backend.fit_linear_model(X, y)

        assert np.array_equal(result1.coef, result2.coef)
        assert np.array_equal(result1.residuals, result2.residuals)

    def test_rank_deficient_raises(self):
        """Collinear design is rejected by default."""
        np.random.seed(42)
        X = np.random.randn(50, 2)
        X = np.column_stack([X, X[:, 0] + X[:, 1]])  # Third col is dependent
        y = np.random.randn(50)

        with pytest.raises(SingularMatrixError) as excinfo:
            get_backend('cpu').fit_linear_model(X, y)
        assert excinfo.value.rank == 3
        assert excinfo.value.n_columns == 4

    def test_rank_deficient_allowed(self):
        """With singular_ok the aliased coefficient comes back NaN."""
        np.random.seed(42)
        X = np.random.randn(50, 2)
        X = np.column_stack([X, X[:, 0] + X[:, 1]])
        y = np.random.randn(50)

        result = get_backend('cpu').fit_linear_model(X, y, singular_ok=True)

        assert result.rank < 4
        assert np.sum(np.isnan(result.coef)) == 1

    def test_more_columns_than_rows(self):
        X = np.arange(9.0).reshape(3, 3)
        with pytest.raises(SingularMatrixError):
            get_backend('cpu').fit_linear_model(X, np.arange(3.0))
