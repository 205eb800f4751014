"""Shared synthetic series for the test suite."""

import numpy as np
import pandas as pd
import pytest

from arima_forecaster import TimeSeries


def simulate_arima(n, phi=(), theta=(), d=0, seed=0, sigma=1.0, start=100.0, burn=200):
    """ARIMA(p,d,q) path: w_t = sum phi_i w_{t-i} + e_t + sum theta_j e_{t-j}, integrated d times."""
    rng = np.random.default_rng(seed)
    phi = np.asarray(phi, dtype=float)
    theta = np.asarray(theta, dtype=float)
    total = n + burn
    e = rng.normal(scale=sigma, size=total)
    w = np.zeros(total)
    for t in range(total):
        ar = sum(phi[i] * w[t - i - 1] for i in range(len(phi)) if t - i - 1 >= 0)
        ma = sum(theta[j] * e[t - j - 1] for j in range(len(theta)) if t - j - 1 >= 0)
        w[t] = ar + e[t] + ma
    w = w[burn:]
    y = w
    for _ in range(d):
        y = start + np.concatenate([[0.0], np.cumsum(y)])[1:]
    return y


def as_series(values, freq="B", start="2015-01-02"):
    index = pd.date_range(start=start, periods=len(values), freq=freq)
    return TimeSeries(values, index=index)


@pytest.fixture
def white_noise():
    rng = np.random.default_rng(7)
    return as_series(10.0 + rng.normal(size=400))


@pytest.fixture
def random_walk():
    rng = np.random.default_rng(11)
    return as_series(100.0 + np.cumsum(rng.normal(size=300)))


@pytest.fixture
def arima111():
    return as_series(simulate_arima(300, phi=[0.5], theta=[0.3], d=1, seed=42))
