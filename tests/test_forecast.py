"""Tests for the Forecaster."""

import numpy as np
import pandas as pd
import pytest

from arima_forecaster import (
    DifferencedSeries,
    Forecaster,
    ModelSpec,
    ParameterEstimator,
    PreconditionError,
    TimeSeries,
)
from arima_forecaster.forecast import propagate

from conftest import as_series, simulate_arima


@pytest.fixture
def fitted111(arima111):
    return ParameterEstimator().fit(DifferencedSeries(arima111, d=1), ModelSpec(p=1, d=1, q=1))


class TestForecaster:
    def test_requires_model(self):
        with pytest.raises(PreconditionError):
            Forecaster().forecast(10)

    def test_shapes_and_timestamps(self, fitted111, arima111):
        result = Forecaster(fitted111).forecast(30, levels=(80, 0.95))
        assert result.horizon == 30
        assert len(result.mean) == len(result.variance) == 30
        assert result.levels == (80.0, 95.0)
        assert result.index[0] == arima111.future_index(1)[0]
        assert result.index.freqstr == "B"

    @pytest.mark.parametrize(
        "spec,d",
        [
            (ModelSpec(p=1, d=1, q=1), 1),
            (ModelSpec(p=2, d=1), 1),
            (ModelSpec(q=2, d=1, constant=True), 1),
            (ModelSpec(p=1, d=2, q=1), 2),
            (ModelSpec(p=1, q=1, constant=True), 0),
        ],
    )
    def test_variance_non_decreasing(self, spec, d):
        y = simulate_arima(250, phi=[0.5], theta=[0.3], d=d, seed=13)
        fit = ParameterEstimator().fit(DifferencedSeries(as_series(y), d=d), spec)
        variance = Forecaster(fit).forecast(40).variance
        assert np.all(np.diff(variance) >= -1e-9 * variance[:-1])

    def test_random_walk_variance_grows_linearly(self, random_walk):
        fit = ParameterEstimator().fit(DifferencedSeries(random_walk, d=1), ModelSpec(d=1))
        variance = Forecaster(fit).forecast(10).variance
        np.testing.assert_allclose(variance, fit.sigma2 * np.arange(1, 11), rtol=1e-10)
        np.testing.assert_allclose(Forecaster(fit).forecast(10).mean, random_walk.values[-1])

    def test_drift_extends_linearly(self, random_walk):
        fit = ParameterEstimator().fit(DifferencedSeries(random_walk, d=1), ModelSpec(d=1, constant=True))
        mean = Forecaster(fit).forecast(5).mean
        expected = random_walk.values[-1] + fit.constant * np.arange(1, 6)
        np.testing.assert_allclose(mean, expected, rtol=1e-10)

    def test_stationary_forecast_reverts_to_mean(self):
        y = 20.0 + simulate_arima(400, phi=[0.6], seed=21)
        fit = ParameterEstimator().fit(DifferencedSeries(as_series(y)), ModelSpec(p=1, constant=True))
        result = Forecaster(fit).forecast(200)
        assert result.mean[-1] == pytest.approx(fit.constant, abs=1e-6)
        # long-run variance reaches the process variance sigma^2 / (1 - phi^2)
        assert result.variance[-1] == pytest.approx(fit.sigma2 / (1 - fit.ar[0] ** 2), rel=1e-6)

    def test_intervals_nested_and_symmetric(self, fitted111):
        result = Forecaster(fitted111).forecast(15)
        lo80, hi80 = result.intervals[80.0]
        lo95, hi95 = result.intervals[95.0]
        assert np.all(lo95 <= lo80) and np.all(hi80 <= hi95)
        np.testing.assert_allclose(hi95 - result.mean, result.mean - lo95)
        np.testing.assert_allclose(hi95 - result.mean, 1.959963984540054 * result.std, rtol=1e-9)

    def test_first_step_matches_filter(self, fitted111, arima111):
        diff_mean, variance = propagate(fitted111, 1)
        assert diff_mean[0] == pytest.approx(fitted111.state[0])
        assert variance[0] == pytest.approx(fitted111.sigma2 * fitted111.state_cov[0, 0])
        mean = Forecaster(fitted111).forecast(1).mean
        assert mean[0] == pytest.approx(arima111.values[-1] + fitted111.state[0])

    def test_seasonal_forecast_repeats_pattern(self):
        pattern = np.array([1.0, 5.0, 3.0, 9.0])
        rng = np.random.default_rng(0)
        y = np.tile(pattern, 25) + rng.normal(scale=0.01, size=100)
        idx = pd.date_range("2000-01-01", periods=100, freq="QS")
        data = DifferencedSeries(TimeSeries(y, index=idx), D=1, period=4)
        fit = ParameterEstimator().fit(data, ModelSpec(D=1, period=4))
        result = Forecaster(fit).forecast(8)
        np.testing.assert_allclose(result.mean, np.tile(y[-4:], 2))
        # variance steps up once per season
        assert result.variance[4] == pytest.approx(2 * result.variance[0])

    def test_to_frame(self, fitted111):
        frame = Forecaster(fitted111).forecast(5).to_frame()
        assert list(frame.columns) == ["forecast", "std", "lower_80", "upper_80", "lower_95", "upper_95"]
        assert len(frame) == 5

    def test_model_argument_overrides(self, fitted111):
        result = Forecaster().forecast(3, model=fitted111)
        assert result.horizon == 3


@pytest.mark.slow
class TestCoverage:
    def test_95_interval_tracks_true_process(self):
        coverage = []
        for seed in range(100):
            y = simulate_arima(330, phi=[0.5], theta=[0.3], d=1, seed=1000 + seed)
            train, future = y[:300], y[300:]
            fit = ParameterEstimator().fit(DifferencedSeries(as_series(train), d=1), ModelSpec(p=1, d=1, q=1))
            result = Forecaster(fit).forecast(30, levels=(95,))
            lo, hi = result.intervals[95.0]
            coverage.append(np.mean((future >= lo) & (future <= hi)))
        assert np.mean(coverage) >= 0.90
