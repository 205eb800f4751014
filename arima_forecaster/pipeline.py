"""End-to-end automatic ARIMA: stationarity -> order search -> forecast/diagnostics."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Tuple

from .config import ForecastConfig
from .diagnostics import DiagnosticReport, ResidualDiagnostics
from .exceptions import ForecasterError, PreconditionError
from .forecast import Forecaster, ForecastResult
from .model import FittedModel
from .search import ModelOrderSearch, SearchResult
from .series import TimeSeries
from .stationarity import StationarityAnalyzer, StationarityResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    model: FittedModel
    search: SearchResult
    stationarity: StationarityResult
    forecast: ForecastResult
    diagnostics: DiagnosticReport

    @property
    def warnings(self) -> Tuple[str, ...]:
        return self.stationarity.warnings

    def summary(self):
        out = self.model.summary()
        out["ljung_box_pvalue"] = self.diagnostics.pvalue
        out["adequate"] = self.diagnostics.adequate
        out["warnings"] = list(self.warnings)
        return out


class AutoARIMA:
    """Fit the best ARIMA for a series and forecast from it.

    Example::

        engine = AutoARIMA(ForecastConfig(horizon=30)).fit(series)
        engine.model_.spec.label      # e.g. "ARIMA(1,1,1)"
        engine.forecast().to_frame()
    """

    def __init__(self, config=None, **overrides):
        if config is None:
            config = ForecastConfig(**overrides)
        elif overrides:
            config = ForecastConfig.from_dict({**config.to_dict(), **overrides})
        self.config = config
        self.model_ = None
        self.search_ = None
        self.stationarity_ = None

    def fit(self, series):
        series = TimeSeries.coerce(series)
        logger.info("Fitting automatic ARIMA on %r", series)
        stationarity = StationarityAnalyzer.from_config(self.config).analyze(series)
        try:
            search = ModelOrderSearch.from_config(self.config).search(stationarity.differenced)
        except ForecasterError as exc:
            raise exc.with_context(d=stationarity.d, D=stationarity.D)
        self.stationarity_ = stationarity
        self.search_ = search
        self.model_ = search.best
        return self

    def _require_model(self):
        if self.model_ is None:
            raise PreconditionError("call fit() before forecasting or diagnostics")
        return self.model_

    def forecast(self, horizon=None, levels=None):
        model = self._require_model()
        return Forecaster(model).forecast(
            horizon if horizon is not None else self.config.horizon,
            levels if levels is not None else self.config.levels,
        )

    def diagnose(self):
        model = self._require_model()
        return ResidualDiagnostics(
            alpha=self.config.diagnostics_alpha, lags=self.config.ljung_box_lags
        ).check(model)

    def run(self, series, horizon=None, levels=None):
        """Fit, then forecast and check residuals concurrently."""
        self.fit(series)
        with ThreadPoolExecutor(max_workers=2) as pool:
            fc = pool.submit(self.forecast, horizon, levels)
            dx = pool.submit(self.diagnose)
            forecast, diagnostics = fc.result(), dx.result()
        return PipelineResult(
            model=self.model_,
            search=self.search_,
            stationarity=self.stationarity_,
            forecast=forecast,
            diagnostics=diagnostics,
        )


def auto_arima(series, config=None, **overrides):
    """Functional shortcut for ``AutoARIMA(config, **overrides).run(series)``."""
    return AutoARIMA(config, **overrides).run(series)
