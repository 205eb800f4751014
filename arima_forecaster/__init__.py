"""Automatic ARIMA order selection, estimation and forecasting."""

from .config import ForecastConfig
from .diagnostics import DiagnosticReport, ResidualDiagnostics, ljung_box
from .estimator import ParameterEstimator
from .evaluation import AccuracyEvaluator, AccuracyMetrics, EvaluationResult
from .exceptions import (
    ConfigurationError,
    DegenerateSeriesError,
    EstimationFailure,
    ForecasterError,
    InsufficientDataError,
    IrregularSeriesError,
    NonStationaryWarning,
    PreconditionError,
    SearchExhaustedError,
)
from .forecast import Forecaster, ForecastResult
from .model import FittedModel, ModelSpec
from .pipeline import AutoARIMA, PipelineResult, auto_arima
from .search import ModelOrderSearch, SearchResult
from .series import DifferencedSeries, TimeSeries, difference, integrate
from .stationarity import StationarityAnalyzer, StationarityResult

__version__ = "0.1.0"

__all__ = [
    "AccuracyEvaluator",
    "AccuracyMetrics",
    "AutoARIMA",
    "ConfigurationError",
    "DegenerateSeriesError",
    "DiagnosticReport",
    "DifferencedSeries",
    "EstimationFailure",
    "EvaluationResult",
    "FittedModel",
    "ForecastConfig",
    "ForecastResult",
    "Forecaster",
    "ForecasterError",
    "InsufficientDataError",
    "IrregularSeriesError",
    "ModelOrderSearch",
    "ModelSpec",
    "NonStationaryWarning",
    "ParameterEstimator",
    "PipelineResult",
    "PreconditionError",
    "ResidualDiagnostics",
    "SearchExhaustedError",
    "SearchResult",
    "StationarityAnalyzer",
    "StationarityResult",
    "TimeSeries",
    "auto_arima",
    "difference",
    "integrate",
    "ljung_box",
]
