"""Error taxonomy for the forecasting engine.

Every error carries a human readable ``message`` and a ``context`` dict
(candidate order, series lengths, ...) so callers can tell which stage and
which candidate produced it.

    ForecasterError
    ├── InsufficientDataError
    ├── DegenerateSeriesError
    ├── IrregularSeriesError
    ├── ConfigurationError
    ├── EstimationFailure        (recovered by the order search)
    ├── SearchExhaustedError
    └── PreconditionError

``NonStationaryWarning`` is a warning, not an error: the pipeline keeps going
with the maximum differencing order and records the message on its result.
"""

from typing import Any, Dict, Optional


class ForecasterError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self):
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"

    def with_context(self, **extra):
        """Attach more context and return self so it can be re-raised."""
        self.context.update(extra)
        return self


class InsufficientDataError(ForecasterError, ValueError):
    """Series too short for the requested orders or season."""


class DegenerateSeriesError(ForecasterError, ValueError):
    """Series (or its differenced form) has numerically zero variance."""


class IrregularSeriesError(ForecasterError, ValueError):
    """Timestamps are not strictly increasing or have no constant period."""


class ConfigurationError(ForecasterError, ValueError):
    """Invalid configuration value."""


class EstimationFailure(ForecasterError):
    """Optimizer did not converge or the information matrix is singular."""


class SearchExhaustedError(ForecasterError):
    """No candidate order admitted a valid fit."""


class PreconditionError(ForecasterError, RuntimeError):
    """Forecast or diagnostics requested before a model exists."""


class NonStationaryWarning(UserWarning):
    """Maximum differencing reached without rejecting a unit root."""
