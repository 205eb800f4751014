"""Engine configuration."""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SEARCH_MODES = ("stepwise", "exhaustive")
CRITERIA = ("aicc", "aic", "bic")


@dataclass
class ForecastConfig:
    """Configuration for one pipeline run.

    - period: observations per season (252 for trading days, 12 for months);
    - seasonal: search seasonal (P, D, Q) terms at ``period``;
    - max_p / max_q / max_P / max_Q: per-term order bounds;
    - max_order: bound on p + q + P + Q;
    - max_d / max_D: differencing bounds (never above 2);
    - search_mode: "stepwise" or "exhaustive";
    - criterion: "aicc", "aic" or "bic";
    - max_steps: stepwise neighbour-expansion budget;
    - max_iter: optimizer iteration cap per candidate;
    - allow_constant: consider intercept (d+D == 0) / drift (d+D == 1);
    - stationarity_alpha / diagnostics_alpha: test significance levels;
    - ljung_box_lags: Ljung-Box lag, None for min(10, n // 5);
    - horizon / levels: forecast length and interval levels in percent;
    - train_fraction / test_horizon: accuracy split (test_horizon wins if set);
    - leaderboard_size: candidates kept on the search result;
    - max_workers: threads for candidate fitting, None for min(4, cpu count).
    """

    period: int = 1
    seasonal: bool = False
    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_order: int = 5
    max_d: int = 2
    max_D: int = 1
    search_mode: str = "stepwise"
    criterion: str = "aicc"
    max_steps: int = 94
    max_iter: int = 200
    allow_constant: bool = True
    stationarity_alpha: float = 0.05
    diagnostics_alpha: float = 0.05
    ljung_box_lags: Optional[int] = None
    horizon: int = 30
    levels: Tuple[float, ...] = (80.0, 95.0)
    train_fraction: float = 0.8
    test_horizon: Optional[int] = None
    leaderboard_size: int = 5
    max_workers: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.search_mode = str(self.search_mode).lower()
        self.criterion = str(self.criterion).lower()
        self.levels = tuple(normalize_level(lv) for lv in self.levels)
        self._validate()

    def _validate(self):
        if self.period < 1:
            raise ConfigurationError("period must be >= 1", {"period": self.period})
        for name in ("max_p", "max_q", "max_P", "max_Q", "max_order", "max_d", "max_D"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative", {name: getattr(self, name)})
        if self.max_d > 2 or self.max_D > 2:
            raise ConfigurationError(
                "differencing orders are capped at 2",
                {"max_d": self.max_d, "max_D": self.max_D},
            )
        if self.search_mode not in SEARCH_MODES:
            raise ConfigurationError("unknown search mode", {"search_mode": self.search_mode})
        if self.criterion not in CRITERIA:
            raise ConfigurationError("unknown information criterion", {"criterion": self.criterion})
        if self.max_steps < 1 or self.max_iter < 1:
            raise ConfigurationError(
                "iteration budgets must be positive",
                {"max_steps": self.max_steps, "max_iter": self.max_iter},
            )
        for name in ("stationarity_alpha", "diagnostics_alpha"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1)", {name: value})
        if self.horizon < 1:
            raise ConfigurationError("horizon must be >= 1", {"horizon": self.horizon})
        if not 0.0 < self.train_fraction < 1.0:
            raise ConfigurationError(
                "train_fraction must be in (0, 1)", {"train_fraction": self.train_fraction}
            )
        if self.test_horizon is not None and self.test_horizon < 1:
            raise ConfigurationError("test_horizon must be >= 1", {"test_horizon": self.test_horizon})
        if self.ljung_box_lags is not None and self.ljung_box_lags < 1:
            raise ConfigurationError(
                "ljung_box_lags must be >= 1", {"ljung_box_lags": self.ljung_box_lags}
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers must be >= 1", {"max_workers": self.max_workers})

    @property
    def seasonal_period(self):
        """Season length actually modelled (1 when seasonal terms are off)."""
        return self.period if self.seasonal and self.period > 1 else 1

    @classmethod
    def from_dict(cls, payload):
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in payload.items() if k in known}
        extra = {k: v for k, v in payload.items() if k not in known}
        if "levels" in kwargs:
            kwargs["levels"] = tuple(kwargs["levels"])
        if extra:
            logger.warning("Unrecognised config keys kept in extra: %s", ", ".join(sorted(extra)))
            kwargs["extra"] = {**kwargs.get("extra", {}), **extra}
        return cls(**kwargs)

    @classmethod
    def from_json(cls, text):
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"invalid config payload: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigurationError("config payload must be a JSON object")
        return cls.from_dict(payload)

    def to_dict(self):
        payload = asdict(self)
        payload["levels"] = list(self.levels)
        return payload


def normalize_level(level):
    """Accept 95 or 0.95 and return the level in percent."""
    value = float(level)
    if 0.0 < value < 1.0:
        value *= 100.0
    if not 0.0 < value < 100.0:
        raise ConfigurationError("confidence level must be in (0, 100)", {"level": level})
    return value
