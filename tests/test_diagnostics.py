"""
Test residual diagnostics against leave-one-out refits and direct formulas.
"""

import pytest
import numpy as np
import pandas as pd
from scipy import stats

from pylmkit import fit, diagnose, normality_test, breusch_pagan, influence_measures
from pylmkit.control import DiagnosticsControl


def _loo_fits(X, y):
    """Coefficients, fitted values and residual scale with each row left out."""
    n, p = X.shape
    out = []
    for i in range(n):
        keep = np.arange(n) != i
        beta, *_ = np.linalg.lstsq(X[keep], y[keep], rcond=None)
        resid = y[keep] - X[keep] @ beta
        sigma = np.sqrt(np.sum(resid ** 2) / (n - 1 - p))
        out.append((beta, X @ beta, sigma))
    return out


@pytest.fixture
def small_data():
    np.random.seed(42)
    n = 20
    data = pd.DataFrame({'x1': np.random.randn(n), 'x2': np.random.randn(n)})
    data['y'] = 1 + data['x1'] - data['x2'] + 0.3 * np.random.randn(n)
    return data


class TestInfluence:

    def test_hat_values(self, small_data):
        model = fit(small_data, 'y', ['x1', 'x2'])
        infl = influence_measures(model)

        X = model.design_matrix()
        H = X @ np.linalg.inv(X.T @ X) @ X.T
        np.testing.assert_allclose(infl.hat, np.diag(H), rtol=1e-10)
        assert np.sum(infl.hat) == pytest.approx(3.0)

    def test_against_leave_one_out(self, small_data):
        model = fit(small_data, 'y', ['x1', 'x2'])
        infl = influence_measures(model)

        X = model.design_matrix()
        y = small_data['y'].to_numpy()
        n, p = X.shape
        s2 = model.dispersion
        xtx_inv = np.linalg.inv(X.T @ X)

        loo = _loo_fits(X, y)
        cook = np.array([np.sum((model.fitted_values - f) ** 2) / (p * s2) for _, f, _ in loo])
        sigma = np.array([s for _, _, s in loo])
        dffits = np.array([(model.fitted_values[i] - loo[i][1][i]) / (loo[i][2] * np.sqrt(infl.hat[i]))
                           for i in range(n)])
        dfbetas = np.array([(model.coefficients - b) / (s * np.sqrt(np.diag(xtx_inv)))
                            for b, _, s in loo])

        np.testing.assert_allclose(infl.cooks_distance, cook, rtol=1e-8)
        np.testing.assert_allclose(infl.sigma, sigma, rtol=1e-8)
        np.testing.assert_allclose(infl.dffits, dffits, rtol=1e-8)
        np.testing.assert_allclose(infl.dfbetas.to_numpy(), dfbetas, rtol=1e-8, atol=1e-12)

    def test_covratio(self, small_data):
        model = fit(small_data, 'y', ['x1', 'x2'])
        infl = influence_measures(model)

        X = model.design_matrix()
        y = small_data['y'].to_numpy()
        full = model.dispersion * np.linalg.inv(X.T @ X)
        for i, (_, _, sigma) in enumerate(_loo_fits(X, y)[:5]):
            keep = np.arange(len(y)) != i
            reduced = sigma ** 2 * np.linalg.inv(X[keep].T @ X[keep])
            expected = np.linalg.det(reduced) / np.linalg.det(full)
            assert infl.covratio[i] == pytest.approx(expected, rel=1e-8)

    def test_table_layout(self, small_data):
        model = fit(small_data, 'y', ['x1', 'x2'])
        infl = influence_measures(model)
        assert list(infl.table.columns) == [
            'dfb.Intercept', 'dfb.x1', 'dfb.x2', 'dffit', 'cov.r', 'cook.d', 'hat'
        ]
        assert list(infl.is_influential.columns) == list(infl.table.columns)
        assert infl.is_influential.dtypes.map(lambda d: d == bool).all()

    def test_outlier_flagged(self):
        x = np.arange(1.0, 21.0)
        y = 2 * x + np.tile([0.3, -0.3], 10)
        x = np.append(x, 60.0)
        y = np.append(y, 0.0)
        data = pd.DataFrame({'x': x, 'y': y}, index=[f"row{i}" for i in range(21)])

        model = fit(data, 'y', ['x'])
        report = diagnose(model)

        assert 'row20' in report.influential
        assert np.argmax(report.influence.cooks_distance) == 20

    def test_glm_hat_trace(self, poisson_data):
        model = fit(poisson_data, 'count', ['x'], family='poisson')
        infl = influence_measures(model)
        assert np.sum(infl.hat) == pytest.approx(2.0)
        assert np.all(infl.cooks_distance >= 0)


class TestNormality:

    def test_matches_shapiro(self):
        np.random.seed(42)
        r = np.random.randn(100)
        result = normality_test(r)
        w, p = stats.shapiro(r)
        assert result.statistic == pytest.approx(w)
        assert result.pvalue == pytest.approx(p)
        assert result.n == 100

    def test_qq_correlation_normal_vs_skewed(self):
        np.random.seed(42)
        normal = normality_test(np.random.randn(200))
        skewed = normality_test(np.random.exponential(size=200))
        assert normal.qq_correlation > 0.98
        assert skewed.qq_correlation < normal.qq_correlation

    def test_too_few_values(self):
        result = normality_test([1.0, 2.0])
        assert np.isnan(result.statistic) and np.isnan(result.qq_correlation)

    def test_constant_residuals(self):
        result = normality_test(np.zeros(10))
        assert np.isnan(result.statistic)

    def test_shapiro_size_limit(self):
        np.random.seed(42)
        result = normality_test(np.random.randn(50), DiagnosticsControl(shapiro_max_n=20))
        assert np.isnan(result.statistic)
        assert not np.isnan(result.qq_correlation)


class TestBreuschPagan:

    def test_matches_auxiliary_regression(self, small_data):
        model = fit(small_data, 'y', ['x1', 'x2'])
        result = breusch_pagan(model)

        u = model.residuals ** 2
        X = model.design_matrix()
        gamma, *_ = np.linalg.lstsq(X, u, rcond=None)
        r2 = 1 - np.sum((u - X @ gamma) ** 2) / np.sum((u - u.mean()) ** 2)

        assert result.df == 2
        assert result.statistic == pytest.approx(len(u) * r2, rel=1e-8)
        assert result.pvalue == pytest.approx(stats.chi2.sf(len(u) * r2, 2), rel=1e-8)

    def test_detects_heteroscedasticity(self):
        np.random.seed(42)
        n = 200
        x = np.random.uniform(0, 5, n)
        y = 1 + 2 * x + (0.1 + x ** 2) * np.random.randn(n)
        model = fit(pd.DataFrame({'x': x, 'y': y}), 'y', ['x'])
        assert breusch_pagan(model).pvalue < 0.001

    def test_intercept_only(self, small_data):
        result = breusch_pagan(fit(small_data, 'y', []))
        assert result.df == 0
        assert np.isnan(result.statistic)


class TestDiagnose:

    def test_report(self, regression_data, capsys):
        model = fit(regression_data, 'y', ['x1', 'x2'])
        report = diagnose(model)

        np.testing.assert_array_equal(report.residuals, model.residuals)
        assert report.normality.n == 100
        assert report.heteroscedasticity.df == 2
        assert len(report.influence.hat) == 100

        report.summary()
        assert 'Breusch-Pagan' in capsys.readouterr().out

    def test_perfect_fit_does_not_raise(self, line_data):
        report = diagnose(fit(line_data, 'y', ['x']))
        np.testing.assert_allclose(report.residuals, 0.0, atol=1e-10)
        assert report.normality.n == 4
        assert report.influence.table.shape == (4, 6)

    def test_pure(self, regression_data):
        model = fit(regression_data, 'y', ['x1'])
        a = diagnose(model)
        b = diagnose(model)
        pd.testing.assert_frame_equal(a.influence.table, b.influence.table)
