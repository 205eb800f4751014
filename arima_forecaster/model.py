"""Model orders and fitted-model values."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .exceptions import ConfigurationError
from .series import DifferencedSeries


@dataclass(frozen=True, order=True)
class ModelSpec:
    """ARIMA(p,d,q)(P,D,Q)[m] with an optional constant.

    The constant is an intercept when d + D == 0 and a drift when
    d + D == 1; it is not allowed with more differencing.
    """

    p: int = 0
    d: int = 0
    q: int = 0
    P: int = 0
    D: int = 0
    Q: int = 0
    period: int = 1
    constant: bool = False

    def __post_init__(self):
        for name in ("p", "d", "q", "P", "D", "Q"):
            if getattr(self, name) < 0:
                raise ConfigurationError("model orders must be non-negative", {name: getattr(self, name)})
        if self.d > 2 or self.D > 2:
            raise ConfigurationError("differencing orders are capped at 2", {"d": self.d, "D": self.D})
        if self.period < 1:
            raise ConfigurationError("period must be >= 1", {"period": self.period})
        if (self.P or self.D or self.Q) and self.period == 1:
            raise ConfigurationError("seasonal terms need period > 1", {"spec": self.label})
        if self.constant and self.d + self.D > 1:
            raise ConfigurationError("constant not allowed with d + D > 1", {"spec": self.label})

    @property
    def order(self):
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self):
        return (self.P, self.D, self.Q, self.period)

    @property
    def is_seasonal(self):
        return bool(self.P or self.D or self.Q)

    @property
    def total_order(self):
        return self.p + self.q + self.P + self.Q

    @property
    def n_arma(self):
        """Number of AR/MA coefficients."""
        return self.total_order

    @property
    def n_params(self):
        """Estimated parameters including the constant and sigma^2."""
        return self.total_order + int(self.constant) + 1

    @property
    def label(self):
        text = f"ARIMA({self.p},{self.d},{self.q})"
        if self.is_seasonal:
            text += f"({self.P},{self.D},{self.Q})[{self.period}]"
        if self.constant:
            text += " with drift" if self.d + self.D == 1 else " with mean"
        return text

    def __str__(self):
        return self.label


def _frozen(values):
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class FittedModel:
    """Estimation output for one ModelSpec."""

    spec: ModelSpec
    data: DifferencedSeries = field(repr=False)
    ar: np.ndarray
    ma: np.ndarray
    seasonal_ar: np.ndarray
    seasonal_ma: np.ndarray
    constant: float
    sigma2: float
    loglik: float
    aic: float
    aicc: float
    bic: float
    n_obs: int
    residuals: np.ndarray = field(repr=False)
    state: np.ndarray = field(repr=False)
    state_cov: np.ndarray = field(repr=False)
    std_errors: Optional[np.ndarray] = field(default=None, repr=False)
    n_iter: int = 0

    def __post_init__(self):
        for name in ("ar", "ma", "seasonal_ar", "seasonal_ma", "residuals", "state", "state_cov"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        if self.std_errors is not None:
            object.__setattr__(self, "std_errors", _frozen(self.std_errors))

    @property
    def n_params(self):
        return self.spec.n_params

    def score(self, criterion="aicc"):
        return getattr(self, criterion)

    @property
    def param_names(self):
        names = ["drift" if self.spec.d + self.spec.D == 1 else "intercept"] if self.spec.constant else []
        names += [f"ar{i + 1}" for i in range(self.spec.p)]
        names += [f"ma{i + 1}" for i in range(self.spec.q)]
        names += [f"sar{i + 1}" for i in range(self.spec.P)]
        names += [f"sma{i + 1}" for i in range(self.spec.Q)]
        return names

    @property
    def params(self):
        values = [self.constant] if self.spec.constant else []
        values += list(self.ar) + list(self.ma) + list(self.seasonal_ar) + list(self.seasonal_ma)
        return dict(zip(self.param_names, values))

    def summary(self):
        """Plain-dict summary for reporting layers."""
        errors = {}
        if self.std_errors is not None:
            errors = dict(zip(self.param_names, (float(v) for v in self.std_errors)))
        return {
            "model": self.spec.label,
            "order": self.spec.order,
            "seasonal_order": self.spec.seasonal_order,
            "coefficients": {k: float(v) for k, v in self.params.items()},
            "std_errors": errors,
            "sigma2": float(self.sigma2),
            "loglik": float(self.loglik),
            "aic": float(self.aic),
            "aicc": float(self.aicc),
            "bic": float(self.bic),
            "n_obs": int(self.n_obs),
        }
