"""Immutable series values and (un)differencing."""

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset

from .exceptions import InsufficientDataError, IrregularSeriesError


def _read_only(values):
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def to_series_1d(x):
    """Coerce a DataFrame/Series/array-like into a clean 1-D float Series."""
    if isinstance(x, TimeSeries):
        return x.to_pandas()
    if isinstance(x, pd.DataFrame):
        if "price" in x.columns:
            s = x["price"].copy()
        elif "Close" in x.columns:
            s = x["Close"].copy()
        else:
            s = x.iloc[:, 0].copy()
    elif isinstance(x, pd.Series):
        s = x.copy()
    else:
        s = pd.Series(np.asarray(x, dtype=float).ravel())
    s = pd.to_numeric(s, errors="coerce").dropna()
    s.name = "price"
    return s


class TimeSeries:
    """Read-only (timestamp, value) sequence with a constant sampling period.

    The index is either a ``DatetimeIndex`` with an inferable frequency or a
    plain integer position index. Values are stored in a read-only array.
    """

    __slots__ = ("_values", "_index", "_freq", "name")

    def __init__(self, values, index=None, freq=None, name="price"):
        values = _read_only(values)
        if values.ndim != 1:
            raise IrregularSeriesError("series must be one-dimensional", {"ndim": values.ndim})
        if not np.all(np.isfinite(values)):
            raise IrregularSeriesError("series contains non-finite values")
        if index is None:
            index = pd.RangeIndex(len(values))
        index = pd.Index(index)
        if len(index) != len(values):
            raise IrregularSeriesError(
                "index and values differ in length",
                {"index": len(index), "values": len(values)},
            )
        if isinstance(index, pd.DatetimeIndex):
            index, freq = self._check_datetime_index(index, freq)
        else:
            index, freq = self._check_position_index(index)
        self._values = values
        self._index = index
        self._freq = freq
        self.name = name

    @staticmethod
    def _check_datetime_index(index, freq):
        if not index.is_monotonic_increasing or not index.is_unique:
            raise IrregularSeriesError("timestamps must be strictly increasing")
        if freq is None:
            freq = index.freq
        if freq is None and len(index) >= 3:
            freq = pd.infer_freq(index)
        if freq is None:
            raise IrregularSeriesError(
                "cannot infer a constant sampling period", {"length": len(index)}
            )
        offset = to_offset(freq)
        try:
            index = pd.DatetimeIndex(index, freq=offset)
        except ValueError as exc:
            raise IrregularSeriesError(
                "timestamps do not follow the sampling period", {"freq": offset.freqstr}
            ) from exc
        return index, offset

    @staticmethod
    def _check_position_index(index):
        if len(index) == 0:
            return pd.RangeIndex(0), None
        positions = np.asarray(index)
        if not np.issubdtype(positions.dtype, np.integer):
            raise IrregularSeriesError(
                "index must be timestamps or integer positions", {"dtype": str(positions.dtype)}
            )
        steps = np.diff(positions)
        if len(steps) and (steps[0] <= 0 or np.any(steps != steps[0])):
            raise IrregularSeriesError("positions must be evenly spaced and increasing")
        step = int(steps[0]) if len(steps) else 1
        return pd.RangeIndex(int(positions[0]), int(positions[-1]) + step, step), None

    @classmethod
    def coerce(cls, x, freq=None):
        """Build a TimeSeries from a TimeSeries, Series, DataFrame or array-like."""
        if isinstance(x, TimeSeries):
            return x
        s = to_series_1d(x)
        index = s.index
        if not isinstance(index, pd.DatetimeIndex) and not pd.api.types.is_integer_dtype(index):
            try:
                index = pd.DatetimeIndex(pd.to_datetime(index))
            except (TypeError, ValueError):
                index = None
        return cls(s.to_numpy(dtype=float), index=index, freq=freq, name=s.name or "price")

    @property
    def values(self):
        return self._values

    @property
    def index(self):
        return self._index

    @property
    def freq(self):
        return self._freq

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        freq = self._freq.freqstr if self._freq is not None else "positional"
        return f"TimeSeries(n={len(self)}, freq={freq}, name={self.name!r})"

    def to_pandas(self):
        return pd.Series(np.array(self._values), index=self._index.copy(), name=self.name)

    def head(self, n):
        return TimeSeries(self._values[:n], self._index[:n], self._freq, self.name)

    def tail(self, n):
        start = len(self) - n
        return TimeSeries(self._values[start:], self._index[start:], self._freq, self.name)

    def split(self, n_train):
        """Chronological split into (prefix, suffix)."""
        if not 0 < n_train < len(self):
            raise InsufficientDataError(
                "split point must leave both parts non-empty",
                {"n_train": n_train, "length": len(self)},
            )
        return self.head(n_train), self.tail(len(self) - n_train)

    def future_index(self, steps):
        """Timestamps (or positions) for ``steps`` points past the last one."""
        if isinstance(self._index, pd.DatetimeIndex):
            start = self._index[-1] + self._freq
            return pd.date_range(start=start, periods=steps, freq=self._freq)
        step = self._index.step if len(self._index) else 1
        last = self._index[-1] if len(self._index) else -step
        return pd.RangeIndex(last + step, last + step * (steps + 1), step)


def difference(values, d=1, lag=1):
    """Apply lag-``lag`` differencing ``d`` times; returns a new array."""
    x = np.asarray(values, dtype=float)
    for _ in range(d):
        if len(x) <= lag:
            raise InsufficientDataError(
                "series too short to difference", {"length": len(x), "lag": lag}
            )
        x = x[lag:] - x[:-lag]
    return x


def integrate(diffed, history, d=1, lag=1):
    """Invert :func:`difference` for values that follow ``history``.

    ``history`` is the undifferenced series up to the first differenced point;
    at least ``d * lag`` values are needed.
    """
    out = np.asarray(diffed, dtype=float)
    if d == 0:
        return out.copy()
    history = np.asarray(history, dtype=float)
    if len(history) < d * lag:
        raise InsufficientDataError(
            "not enough history to undifference", {"needed": d * lag, "given": len(history)}
        )
    # last ``lag`` values of each intermediate differencing level
    heads = [difference(history, k, lag)[-lag:] for k in range(d)]
    for head in reversed(heads):
        acc = np.empty(lag + len(out))
        acc[:lag] = head
        for i in range(len(out)):
            acc[lag + i] = acc[i] + out[i]
        out = acc[lag:]
    return out


def integration_polynomial(d, D=0, period=1):
    """Coefficients c with y_t = w_t + sum_j c[j-1] * y_{t-j}."""
    poly = np.array([1.0])
    for _ in range(d):
        poly = np.convolve(poly, [1.0, -1.0])
    seasonal = np.zeros(period + 1)
    seasonal[0], seasonal[-1] = 1.0, -1.0
    for _ in range(D):
        poly = np.convolve(poly, seasonal)
    return -poly[1:]


class DifferencedSeries:
    """A TimeSeries after D seasonal and d regular differences."""

    __slots__ = ("source", "d", "D", "period", "_values")

    def __init__(self, source, d=0, D=0, period=1):
        source = TimeSeries.coerce(source)
        self.source = source
        self.d = int(d)
        self.D = int(D)
        self.period = max(int(period), 1)
        x = difference(source.values, self.D, self.period)
        self._values = _read_only(difference(x, self.d, 1))

    @property
    def values(self):
        return self._values

    @property
    def n_effective(self):
        return len(self._values)

    @property
    def n_lost(self):
        return self.d + self.D * self.period

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return (
            f"DifferencedSeries(d={self.d}, D={self.D}, period={self.period}, "
            f"n_effective={self.n_effective})"
        )

    def undifference(self, future):
        """Map a differenced future path back to the original scale."""
        history = self.source.values
        seasonal_history = difference(history, self.D, self.period)
        path = integrate(future, seasonal_history, self.d, 1)
        return integrate(path, history, self.D, self.period)
