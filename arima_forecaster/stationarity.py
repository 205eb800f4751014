"""Choose differencing orders with unit-root and seasonal-strength tests."""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import adfuller

from .exceptions import DegenerateSeriesError, InsufficientDataError, NonStationaryWarning
from .series import DifferencedSeries, TimeSeries, difference

logger = logging.getLogger(__name__)

MIN_POINTS = 10
SEASONAL_STRENGTH_THRESHOLD = 0.64
_VARIANCE_EPS = 1e-10


@dataclass(frozen=True)
class StationarityResult:
    differenced: DifferencedSeries
    adf_statistic: Optional[float]
    adf_pvalue: Optional[float]
    seasonal_strength: Optional[float] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def d(self):
        return self.differenced.d

    @property
    def D(self):
        return self.differenced.D

    @property
    def stationary(self):
        return not self.warnings


def minimum_length(period=1):
    return max(MIN_POINTS, 3 * period if period > 1 else 0)


def seasonal_strength(values, period):
    """STL seasonal strength: 1 - Var(remainder) / Var(seasonal + remainder)."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        res = STL(np.asarray(values, dtype=float), period=period, robust=True).fit()
    detrended = res.seasonal + res.resid
    denom = np.var(detrended)
    if denom <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(res.resid) / denom))


def adf_test(values):
    """Augmented Dickey-Fuller statistic and p-value (lag chosen by AIC)."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        stat, pvalue = adfuller(np.asarray(values, dtype=float), autolag="AIC")[:2]
    return float(stat), float(pvalue)


class StationarityAnalyzer:
    """Difference a series until the ADF test rejects a unit root.

    With ``period > 1`` the seasonal difference is decided first from the STL
    seasonal strength, then regular differences are added one at a time.
    """

    def __init__(self, alpha=0.05, max_d=2, period=1, max_D=0):
        self.alpha = alpha
        self.max_d = max_d
        self.period = max(int(period), 1)
        self.max_D = max_D if self.period > 1 else 0

    @classmethod
    def from_config(cls, config):
        return cls(
            alpha=config.stationarity_alpha,
            max_d=config.max_d,
            period=config.seasonal_period,
            max_D=config.max_D,
        )

    def analyze(self, series):
        series = TimeSeries.coerce(series)
        min_len = minimum_length(self.period)
        scale = max(1.0, float(np.mean(np.square(series.values)))) if len(series) else 1.0

        D, strength = self._seasonal_order(series, min_len, scale)
        x = difference(series.values, D, self.period)

        d = 0
        while True:
            self._check(x, min_len, scale, d, D)
            stat, pvalue = adf_test(x)
            logger.debug("ADF d=%d D=%d stat=%.4f p=%.4f", d, D, stat, pvalue)
            if pvalue < self.alpha:
                notes = ()
                break
            if d >= self.max_d:
                msg = (
                    f"unit root not rejected after {d} differences "
                    f"(ADF p={pvalue:.3f}); continuing with d={d}"
                )
                warnings.warn(msg, NonStationaryWarning, stacklevel=2)
                logger.warning(msg)
                notes = (msg,)
                break
            x = difference(x, 1)
            d += 1

        logger.info("Differencing chosen: d=%d D=%d (n_effective=%d)", d, D, len(x))
        return StationarityResult(
            differenced=DifferencedSeries(series, d=d, D=D, period=self.period),
            adf_statistic=stat,
            adf_pvalue=pvalue,
            seasonal_strength=strength,
            warnings=notes,
        )

    def _seasonal_order(self, series, min_len, scale):
        if self.max_D == 0 or len(series) < 2 * self.period:
            return 0, None
        x = series.values
        D = 0
        strength = None
        while D < self.max_D and len(x) >= 2 * self.period:
            self._check(x, min_len, scale, 0, D)
            strength = seasonal_strength(x, self.period)
            if strength < SEASONAL_STRENGTH_THRESHOLD:
                break
            x = difference(x, 1, self.period)
            D += 1
        return D, strength

    @staticmethod
    def _check(x, min_len, scale, d, D):
        if len(x) < min_len:
            raise InsufficientDataError(
                "series too short after differencing",
                {"length": len(x), "minimum": min_len, "d": d, "D": D},
            )
        if np.var(x) <= _VARIANCE_EPS * scale:
            raise DegenerateSeriesError(
                "series has zero variance after differencing", {"d": d, "D": D}
            )
