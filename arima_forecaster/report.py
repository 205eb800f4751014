"""Tabular views and CSV bytes for reporting layers."""

from io import BytesIO

import numpy as np
import pandas as pd


def summary_frame(model):
    """Coefficient table with standard errors."""
    names = model.param_names
    errors = model.std_errors if model.std_errors is not None else np.full(len(names), np.nan)
    return pd.DataFrame(
        {"coef": [model.params[n] for n in names], "std_err": list(errors)},
        index=pd.Index(names, name="param"),
    )


def comparison_frame(actual, forecast):
    """Actual vs forecast over their common length, indexed like ``actual``."""
    actual = actual if isinstance(actual, pd.Series) else pd.Series(np.asarray(actual, dtype=float))
    forecast = np.asarray(forecast, dtype=float)
    n = min(len(actual), len(forecast))
    frame = pd.DataFrame(
        {"Actual": actual.values[:n], "Forecast": forecast[:n]}, index=actual.index[:n]
    )
    frame["Error"] = frame["Actual"] - frame["Forecast"]
    return frame


def to_csv_bytes(df):
    buf = BytesIO()
    df.to_csv(buf, index=True)
    buf.seek(0)
    return buf
