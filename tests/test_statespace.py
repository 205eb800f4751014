"""Tests for the state-space kernel."""

import numpy as np
import pytest
from scipy.stats import norm
from statsmodels.tsa.statespace.sarimax import SARIMAX

from arima_forecaster.statespace import (
    StateSpace,
    ar_polynomial,
    constrain_stationary,
    kalman_filter,
    ma_polynomial,
    roots_outside_unit_circle,
    unconstrain_stationary,
)


class TestTransforms:
    @pytest.mark.parametrize("k", [1, 2, 3, 5])
    def test_constrained_values_are_stationary(self, k):
        rng = np.random.default_rng(k)
        for _ in range(20):
            phi = constrain_stationary(rng.normal(scale=3.0, size=k))
            assert roots_outside_unit_circle(phi, -1.0)

    def test_round_trip(self):
        x = np.array([0.4, -1.2, 0.7])
        np.testing.assert_allclose(unconstrain_stationary(constrain_stationary(x)), x, atol=1e-8)

    def test_ar1_maps_to_scaled_tanh(self):
        phi = constrain_stationary([0.5])
        assert phi[0] == pytest.approx(np.tanh(0.5) * 0.9999)

    def test_unconstrain_rejects_explosive(self):
        with pytest.raises(ValueError):
            unconstrain_stationary([1.5])

    def test_empty(self):
        assert len(constrain_stationary([])) == 0
        assert len(unconstrain_stationary([])) == 0


class TestPolynomials:
    def test_seasonal_ar_expansion(self):
        # (1 - 0.5B)(1 - 0.3B^4) = 1 - 0.5B - 0.3B^4 + 0.15B^5
        np.testing.assert_allclose(ar_polynomial([0.5], [0.3], 4), [0.5, 0, 0, 0.3, -0.15])

    def test_seasonal_ma_expansion(self):
        # (1 + 0.4B)(1 + 0.2B^2) = 1 + 0.4B + 0.2B^2 + 0.08B^3
        np.testing.assert_allclose(ma_polynomial([0.4], [0.2], 2), [0.4, 0.2, 0.08])

    def test_unit_root_detected(self):
        assert not roots_outside_unit_circle([1.0], -1.0)
        assert roots_outside_unit_circle([0.5], -1.0)
        assert not roots_outside_unit_circle([-1.0], 1.0)


class TestKalmanFilter:
    def test_state_dimension(self):
        assert StateSpace([0.5, 0.2], [0.3]).r == 2
        assert StateSpace([], [0.3, 0.1, 0.2]).r == 4
        assert StateSpace([], []).r == 1

    def test_white_noise_loglik_matches_gaussian(self):
        rng = np.random.default_rng(0)
        y = rng.normal(scale=2.0, size=200)
        out = kalman_filter(y, StateSpace([], []))
        sigma2 = np.mean(y ** 2)
        expected = norm.logpdf(y, scale=np.sqrt(sigma2)).sum()
        assert out.loglik() == pytest.approx(expected, rel=1e-10)
        np.testing.assert_allclose(out.innovations, y)

    def test_ar1_first_variance_is_stationary_variance(self):
        y = np.random.default_rng(1).normal(size=50)
        out = kalman_filter(y, StateSpace([0.6], []))
        assert out.variances[0] == pytest.approx(1.0 / (1.0 - 0.36))
        assert out.variances[1] == pytest.approx(1.0)
        np.testing.assert_allclose(out.innovations[1:], y[1:] - 0.6 * y[:-1])

    def test_ma1_innovations_invert_the_filter(self):
        rng = np.random.default_rng(2)
        e = rng.normal(size=400)
        y = e.copy()
        y[1:] += 0.5 * e[:-1]
        out = kalman_filter(y, StateSpace([], [0.5]))
        # prediction variance settles to 1 and innovations to the true shocks
        assert out.variances[-1] == pytest.approx(1.0, abs=1e-6)
        np.testing.assert_allclose(out.innovations[-50:], e[-50:], atol=1e-4)

    def test_lyapunov_covariance(self):
        system = StateSpace([0.5, -0.2], [0.4])
        P = system.initial_covariance()
        np.testing.assert_allclose(P, system.T @ P @ system.T.T + system.RR, atol=1e-10)


class TestAgainstStatsmodels:
    """Exact likelihood at sigma^2 = 1 must match SARIMAX's."""

    @pytest.mark.parametrize(
        "order,seasonal_order,params,ar,ma",
        [
            ((0, 0, 0), (1, 0, 0, 4), [0.6], ar_polynomial([], [0.6], 4), []),
            ((0, 0, 0), (0, 0, 1, 4), [0.6], [], ma_polynomial([], [0.6], 4)),
            ((2, 0, 0), (0, 0, 0, 0), [0.0, 0.6], [0.0, 0.6], []),
        ],
        ids=["seasonal_ar", "seasonal_ma", "ar2_lag1_gap"],
    )
    def test_loglik_matches_sarimax(self, order, seasonal_order, params, ar, ma):
        y = np.random.default_rng(5).normal(size=200)
        out = kalman_filter(y, StateSpace(ar, ma))
        ours = -0.5 * (len(y) * np.log(2 * np.pi) + out.sum_log_f + out.sum_sq)
        expected = SARIMAX(y, order=order, seasonal_order=seasonal_order, trend="n").loglike(
            np.r_[params, 1.0]
        )
        assert ours == pytest.approx(expected, rel=1e-6)

    def test_seasonal_ar_prediction_variance_settles(self):
        y = np.random.default_rng(6).normal(size=60)
        out = kalman_filter(y, StateSpace(ar_polynomial([], [0.6], 4), []))
        np.testing.assert_allclose(out.variances[:4], 1.0 / (1.0 - 0.36))
        np.testing.assert_allclose(out.variances[4:], 1.0, atol=1e-9)
