"""Hold-out accuracy of the automatic pipeline."""

import logging
import math
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error
from statsmodels.tsa.stattools import acf

from .config import ForecastConfig
from .exceptions import InsufficientDataError
from .forecast import ForecastResult
from .model import FittedModel
from .pipeline import AutoARIMA
from .report import comparison_frame
from .series import TimeSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccuracyMetrics:
    rmse: float
    mae: float
    mape: float
    mase: float
    me: float
    mpe: float
    acf1: float

    def to_dict(self):
        return {
            "RMSE": self.rmse, "MAE": self.mae, "MAPE": self.mape, "MASE": self.mase,
            "ME": self.me, "MPE": self.mpe, "ACF1": self.acf1,
        }


@dataclass(frozen=True)
class EvaluationResult:
    metrics: AccuracyMetrics
    naive: AccuracyMetrics
    model: FittedModel
    forecast: ForecastResult
    train: TimeSeries
    test: TimeSeries

    @property
    def beats_naive(self):
        return self.metrics.rmse <= self.naive.rmse

    def comparison(self):
        return comparison_frame(self.test.to_pandas(), self.forecast.mean)


def mase_scale(train, lag=1):
    """Mean absolute lag-``lag`` difference of the training values."""
    train = np.asarray(train, dtype=float)
    if len(train) <= lag:
        return math.nan
    return float(np.mean(np.abs(train[lag:] - train[:-lag])))


def compute_metrics(actual, forecast, scale):
    a = np.asarray(actual, dtype=float)
    f = np.asarray(forecast, dtype=float)
    n = min(len(a), len(f))
    if n == 0:
        nan = math.nan
        return AccuracyMetrics(nan, nan, nan, nan, nan, nan, nan)
    a, f = a[:n], f[:n]
    err = a - f
    mae = mean_absolute_error(a, f)
    rmse = math.sqrt(mean_squared_error(a, f))
    with np.errstate(divide="ignore", invalid="ignore"):
        mape = float(np.mean(np.abs(err / a)) * 100)
        mpe = float(np.mean(err / a) * 100)
    mase = mae / scale if scale and math.isfinite(scale) else math.nan
    acf1 = math.nan
    if n > 2 and np.var(err) > 0:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            acf1 = float(acf(err, nlags=1, fft=False)[1])
    return AccuracyMetrics(
        rmse=float(rmse), mae=float(mae), mape=mape, mase=float(mase),
        me=float(np.mean(err)), mpe=mpe, acf1=acf1,
    )


class AccuracyEvaluator:
    """Chronological train/test split, refit on the prefix, score the suffix."""

    def __init__(self, config=None):
        self.config = config or ForecastConfig()

    def split_point(self, n):
        if self.config.test_horizon is not None:
            n_train = n - self.config.test_horizon
        else:
            n_train = int(math.floor(self.config.train_fraction * n))
        if n_train < 1 or n_train >= n:
            raise InsufficientDataError(
                "train/test split leaves an empty part",
                {"length": n, "n_train": n_train},
            )
        return n_train

    def evaluate(self, series):
        series = TimeSeries.coerce(series)
        train, test = series.split(self.split_point(len(series)))
        engine = AutoARIMA(self.config).fit(train)
        forecast = engine.forecast(horizon=len(test))

        # scaled by the sampling frequency whether or not seasonal terms are modelled
        lag = self.config.period if len(train) > self.config.period else 1
        scale = mase_scale(train.values, lag)
        metrics = compute_metrics(test.values, forecast.mean, scale)
        naive = compute_metrics(test.values, np.full(len(test), train.values[-1]), scale)
        logger.info(
            "Hold-out %s: RMSE=%.4f (naive %.4f) MASE=%.3f",
            engine.model_.spec.label, metrics.rmse, naive.rmse, metrics.mase,
        )
        return EvaluationResult(
            metrics=metrics,
            naive=naive,
            model=engine.model_,
            forecast=forecast,
            train=train,
            test=test,
        )


def metrics_frame(result):
    """Model and naive metrics side by side."""
    return pd.DataFrame({"model": result.metrics.to_dict(), "naive": result.naive.to_dict()})
