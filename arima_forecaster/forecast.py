"""Multi-step forecasts with Gaussian prediction intervals."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm

from .config import normalize_level
from .exceptions import ConfigurationError, PreconditionError
from .model import FittedModel
from .series import integration_polynomial
from .statespace import StateSpace, ar_polynomial, ma_polynomial

logger = logging.getLogger(__name__)


def _level_key(level):
    return f"{level:g}"


@dataclass(frozen=True)
class ForecastResult:
    horizon: int
    index: pd.Index
    mean: np.ndarray
    variance: np.ndarray
    intervals: Dict[float, Tuple[np.ndarray, np.ndarray]] = field(default_factory=dict)

    @property
    def std(self):
        return np.sqrt(self.variance)

    @property
    def levels(self):
        return tuple(self.intervals)

    def lower(self, level):
        return self.intervals[normalize_level(level)][0]

    def upper(self, level):
        return self.intervals[normalize_level(level)][1]

    def to_frame(self):
        frame = pd.DataFrame({"forecast": self.mean, "std": self.std}, index=self.index)
        for level, (lo, hi) in self.intervals.items():
            frame[f"lower_{_level_key(level)}"] = lo
            frame[f"upper_{_level_key(level)}"] = hi
        return frame


class Forecaster:
    """Propagate a fitted model past the end of its series."""

    def __init__(self, model=None):
        self.model = model

    def forecast(self, horizon, levels=(80, 95), model=None):
        model = model if model is not None else self.model
        if not isinstance(model, FittedModel):
            raise PreconditionError("forecast requested before a model was fitted")
        if horizon < 1:
            raise ConfigurationError("horizon must be >= 1", {"horizon": horizon})

        diff_mean, variance = propagate(model, horizon)
        data = model.data
        mean = data.undifference(diff_mean)
        intervals = {}
        sd = np.sqrt(variance)
        for level in sorted({normalize_level(lv) for lv in levels}):
            z = norm.ppf(0.5 + level / 200.0)
            intervals[level] = (_frozen(mean - z * sd), _frozen(mean + z * sd))

        logger.debug("Forecast %d steps from %s", horizon, model.spec.label)
        return ForecastResult(
            horizon=horizon,
            index=data.source.future_index(horizon),
            mean=_frozen(mean),
            variance=_frozen(variance),
            intervals=intervals,
        )


def _frozen(values):
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def propagate(model, horizon):
    """Differenced-scale point path and original-scale error variances.

    The ARMA state is augmented with the last L = d + D*m levels of the
    original series so the covariance recursion also covers undifferencing.
    Those levels are known at the forecast origin and start with zero
    covariance; the ARMA block starts at the filter's predicted covariance.
    """
    spec = model.spec
    full_ar = ar_polynomial(model.ar, model.seasonal_ar, spec.period)
    full_ma = ma_polynomial(model.ma, model.seasonal_ma, spec.period)
    system = StateSpace(full_ar, full_ma)
    r = system.r
    c = integration_polynomial(spec.d, spec.D, spec.period)
    L = len(c)

    # point path on the differenced scale
    a = np.array(model.state, dtype=float)
    diff_mean = np.empty(horizon)
    for h in range(horizon):
        diff_mean[h] = model.constant + a[0]
        a = system.T @ a

    # transition of the augmented deviation state [alpha; y_{t-1} .. y_{t-L}]
    size = r + L
    A = np.zeros((size, size))
    A[:r, :r] = system.T
    obs = np.zeros(size)
    obs[0] = 1.0
    obs[r:] = c
    if L:
        A[r, :] = obs
        if L > 1:
            A[r + 1 :, r : size - 1] = np.eye(L - 1)
    noise = np.zeros((size, size))
    noise[:r, :r] = system.RR

    cov = np.zeros((size, size))
    cov[:r, :r] = model.state_cov
    variance = np.empty(horizon)
    for h in range(horizon):
        variance[h] = obs @ cov @ obs
        cov = A @ cov @ A.T + noise
    return diff_mean, model.sigma2 * variance
