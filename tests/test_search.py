"""Tests for the automatic order search."""

import threading
from types import SimpleNamespace

import numpy as np
import pytest

from arima_forecaster import (
    DifferencedSeries,
    EstimationFailure,
    ModelOrderSearch,
    ModelSpec,
    ParameterEstimator,
    SearchExhaustedError,
)
from arima_forecaster.search import is_better

from conftest import as_series, simulate_arima


class _RecordingEstimator(ParameterEstimator):
    """Counts fits per spec; optionally fails every candidate."""

    def __init__(self, fail=False):
        super().__init__()
        self.fail = fail
        self.calls = []
        self._lock = threading.Lock()

    def fit(self, data, spec, start_params=None):
        with self._lock:
            self.calls.append(spec)
        if self.fail:
            raise EstimationFailure("forced", {"spec": spec.label})
        return super().fit(data, spec, start_params)


def _fake(score, **orders):
    return SimpleNamespace(spec=ModelSpec(**orders), score=lambda criterion: score)


class TestTieBreak:
    def test_lower_score_wins(self):
        assert is_better(_fake(10.0, p=2, q=2), _fake(11.0))

    def test_equal_scores_prefer_smaller_total_order(self):
        assert is_better(_fake(10.0, p=1), _fake(10.0 + 1e-9, p=1, q=1))
        assert not is_better(_fake(10.0, p=1, q=1), _fake(10.0, p=1))

    def test_equal_total_prefers_smaller_p(self):
        assert is_better(_fake(5.0, q=1), _fake(5.0, p=1))

    def test_equal_orders_prefer_no_constant(self):
        assert is_better(_fake(5.0, p=1), _fake(5.0, p=1, constant=True))

    def test_anything_beats_nothing(self):
        assert is_better(_fake(1e9), None)


class TestStepwise:
    def test_white_noise_selects_order_zero_with_bic(self, white_noise):
        data = DifferencedSeries(white_noise)
        result = ModelOrderSearch(criterion="bic").search(data)
        assert result.spec.total_order == 0

    @pytest.mark.slow
    def test_white_noise_mostly_order_zero_with_aicc(self):
        picks = []
        for seed in range(5):
            y = 10.0 + np.random.default_rng(100 + seed).normal(size=500)
            result = ModelOrderSearch().search(DifferencedSeries(as_series(y)))
            best_total = result.spec.total_order
            lowest_close = min(
                spec.total_order
                for spec, score in result.leaderboard
                if score - result.score <= 2.0
            )
            picks.append(best_total == 0 or lowest_close == 0)
        assert sum(picks) >= 3

    def test_recovers_low_order_for_arma11(self, arima111):
        data = DifferencedSeries(arima111, d=1)
        result = ModelOrderSearch().search(data)
        assert result.spec.d == 1
        assert result.spec.p <= 2 and result.spec.q <= 2
        assert result.n_fitted >= 4
        assert result.leaderboard[0][0] == result.spec

    def test_no_candidate_refitted(self, arima111):
        estimator = _RecordingEstimator()
        ModelOrderSearch(estimator=estimator).search(DifferencedSeries(arima111, d=1))
        assert len(estimator.calls) == len(set(estimator.calls))

    def test_iteration_budget(self, arima111):
        result = ModelOrderSearch(max_steps=1).search(DifferencedSeries(arima111, d=1))
        assert result.iterations <= 1

    def test_bounds_respected(self, arima111):
        estimator = _RecordingEstimator()
        ModelOrderSearch(max_p=1, max_q=1, max_order=1, estimator=estimator).search(
            DifferencedSeries(arima111, d=1)
        )
        assert all(s.p <= 1 and s.q <= 1 and s.total_order <= 1 for s in estimator.calls)

    def test_no_constant_with_double_differencing(self):
        y = simulate_arima(200, phi=[0.4], d=2, seed=4)
        estimator = _RecordingEstimator()
        ModelOrderSearch(estimator=estimator).search(DifferencedSeries(as_series(y), d=2))
        assert not any(s.constant for s in estimator.calls)

    def test_parallel_matches_sequential(self, arima111):
        data = DifferencedSeries(arima111, d=1)
        serial = ModelOrderSearch(max_workers=1).search(data)
        threaded = ModelOrderSearch(max_workers=4).search(data)
        assert serial.spec == threaded.spec
        assert serial.best.aicc == pytest.approx(threaded.best.aicc)

    def test_all_failures_exhaust_search(self, arima111):
        with pytest.raises(SearchExhaustedError) as info:
            ModelOrderSearch(estimator=_RecordingEstimator(fail=True)).search(
                DifferencedSeries(arima111, d=1)
            )
        assert "ARIMA(0,1,0)" in info.value.context["tried"]

    def test_failed_candidates_do_not_abort(self, arima111):
        class _FailOnMA(ParameterEstimator):
            def fit(self, data, spec, start_params=None):
                if spec.q:
                    raise EstimationFailure("forced", {"spec": spec.label})
                return super().fit(data, spec, start_params)

        result = ModelOrderSearch(estimator=_FailOnMA()).search(DifferencedSeries(arima111, d=1))
        assert result.spec.q == 0
        assert any(s.q for s in result.failed)


class TestExhaustive:
    def test_grid_size(self, white_noise):
        estimator = _RecordingEstimator()
        result = ModelOrderSearch(
            mode="exhaustive", max_p=2, max_q=2, max_order=3, estimator=estimator
        ).search(DifferencedSeries(white_noise))
        pairs = {(s.p, s.q) for s in estimator.calls}
        assert pairs == {(p, q) for p in range(3) for q in range(3) if p + q <= 3}
        # every pair with and without the intercept
        assert len(estimator.calls) == 2 * len(pairs)
        assert result.iterations == 1

    def test_seasonal_grid_includes_seasonal_terms(self):
        rng = np.random.default_rng(2)
        y = np.tile([0.0, 2.0, -1.0, 1.0], 30) + rng.normal(size=120)
        data = DifferencedSeries(as_series(y, freq="QS"), d=0, D=1, period=4)
        estimator = _RecordingEstimator()
        ModelOrderSearch(
            mode="exhaustive", seasonal=True, max_p=1, max_q=1, max_P=1, max_Q=1,
            max_order=2, estimator=estimator,
        ).search(data)
        assert any(s.P for s in estimator.calls)
        assert all(s.period == 4 and s.D == 1 for s in estimator.calls)
