"""ARMA state-space form and the Kalman filter likelihood.

The ARMA(p, q) process

    w_t = phi_1 w_{t-1} + ... + phi_p w_{t-p} + e_t + theta_1 e_{t-1} + ... + theta_q e_{t-q}

is written in Harvey's form with state dimension r = max(p, q + 1):

    a_{t+1} = T a_t + R e_{t+1},    w_t = Z a_t

where T has the AR coefficients in its first column and an identity
super-diagonal, R = (1, theta_1, ..., theta_{r-1}) and Z = (1, 0, ..., 0).
The filter runs with unit innovation variance so sigma^2 can be concentrated
out of the likelihood.
"""

import math

import numpy as np
from scipy.linalg import solve_discrete_lyapunov

_LOG_2PI = math.log(2.0 * math.pi)
_STEADY_TOL = 1e-9
_MAX_PACF = 0.9999


def constrain_stationary(unconstrained):
    """Map R^k onto stationary AR coefficients.

    Each value goes through tanh to a partial autocorrelation in (-1, 1);
    Durbin-Levinson turns the partial autocorrelations into coefficients.
    """
    r = np.tanh(np.asarray(unconstrained, dtype=float)) * _MAX_PACF
    k = len(r)
    phi = np.zeros(k)
    for i in range(k):
        prev = phi[:i].copy()
        phi[i] = r[i]
        phi[:i] = prev - r[i] * prev[::-1]
    return phi


def unconstrain_stationary(coefficients):
    """Inverse of :func:`constrain_stationary` (step-down recursion)."""
    phi = np.asarray(coefficients, dtype=float).copy()
    k = len(phi)
    r = np.zeros(k)
    for i in range(k - 1, -1, -1):
        r[i] = phi[i]
        if abs(r[i]) >= 1.0:
            raise ValueError("coefficients are not stationary")
        if i:
            head = phi[:i]
            phi[:i] = (head + r[i] * head[::-1]) / (1.0 - r[i] ** 2)
    return np.arctanh(np.clip(r / _MAX_PACF, -1 + 1e-12, 1 - 1e-12))


def ar_polynomial(phi, seasonal_phi=(), period=1):
    """Full AR coefficients of (1 - phi(B)) (1 - Phi(B^m))."""
    poly = np.concatenate([[1.0], -np.asarray(phi, dtype=float)])
    seasonal = np.zeros(len(seasonal_phi) * period + 1)
    seasonal[0] = 1.0
    for j, c in enumerate(seasonal_phi, start=1):
        seasonal[j * period] = -c
    return -np.convolve(poly, seasonal)[1:]


def ma_polynomial(theta, seasonal_theta=(), period=1):
    """Full MA coefficients of (1 + theta(B)) (1 + Theta(B^m))."""
    poly = np.concatenate([[1.0], np.asarray(theta, dtype=float)])
    seasonal = np.zeros(len(seasonal_theta) * period + 1)
    seasonal[0] = 1.0
    for j, c in enumerate(seasonal_theta, start=1):
        seasonal[j * period] = c
    return np.convolve(poly, seasonal)[1:]


def roots_outside_unit_circle(coefficients, sign=-1.0):
    """True when 1 + sign * sum(c_j z^j) has all roots with |z| > 1."""
    coefficients = np.trim_zeros(np.asarray(coefficients, dtype=float), "b")
    if len(coefficients) == 0:
        return True
    poly = np.concatenate([[1.0], sign * coefficients])
    roots = np.roots(poly[::-1])
    return bool(np.all(np.abs(roots) > 1.0))


class StateSpace:
    """Harvey-form system matrices for given full AR/MA coefficients."""

    def __init__(self, ar, ma):
        ar = np.asarray(ar, dtype=float)
        ma = np.asarray(ma, dtype=float)
        self.r = max(len(ar), len(ma) + 1, 1)
        r = self.r
        self.T = np.zeros((r, r))
        self.T[: len(ar), 0] = ar
        if r > 1:
            self.T[np.arange(r - 1), np.arange(1, r)] = 1.0
        self.R = np.zeros(r)
        self.R[0] = 1.0
        self.R[1 : len(ma) + 1] = ma
        self.RR = np.outer(self.R, self.R)

    def initial_covariance(self):
        """Stationary covariance P = T P T' + R R'."""
        if self.r == 1:
            t = self.T[0, 0]
            return np.array([[1.0 / (1.0 - t * t)]])
        P = solve_discrete_lyapunov(self.T, self.RR)
        return (P + P.T) / 2.0


class FilterOutput:
    __slots__ = ("innovations", "variances", "state", "state_cov", "sum_sq")

    def __init__(self, innovations, variances, state, state_cov, sum_sq):
        self.innovations = innovations
        self.variances = variances
        self.state = state
        self.state_cov = state_cov
        self.sum_sq = sum_sq

    @property
    def nobs(self):
        return len(self.innovations)

    @property
    def sum_log_f(self):
        return float(np.sum(np.log(self.variances)))

    @property
    def sigma2(self):
        return self.sum_sq / self.nobs

    def loglik(self):
        """Gaussian log-likelihood with sigma^2 concentrated out."""
        n = self.nobs
        sigma2 = self.sigma2
        if not np.isfinite(sigma2) or sigma2 <= 0:
            return -np.inf
        return -0.5 * (n * (_LOG_2PI + 1.0 + math.log(sigma2)) + self.sum_log_f)


def kalman_filter(y, system):
    """Run the filter over ``y`` (already demeaned) with unit innovation variance.

    Returns one-step prediction errors, their variances and the predicted
    state/covariance for the step after the last observation.
    """
    y = np.asarray(y, dtype=float)
    n = len(y)
    T, RR = system.T, system.RR
    a = np.zeros(system.r)
    P = system.initial_covariance()
    innovations = np.empty(n)
    variances = np.empty(n)
    sum_sq = 0.0
    steady = False
    K = None
    F = None
    for t in range(n):
        if not steady:
            F = P[0, 0]
            if not np.isfinite(F) or F <= 0.0:
                raise FloatingPointError("non-positive prediction variance")
            TP0 = T @ P[:, 0]
            K = TP0 / F
        v = y[t] - a[0]
        innovations[t] = v
        variances[t] = F
        sum_sq += v * v / F
        a = T @ a + K * v
        if not steady:
            P_next = T @ P @ T.T + RR - np.outer(K, TP0)
            # a fixed point of the whole Riccati recursion, not just of F
            if np.max(np.abs(P_next - P)) < _STEADY_TOL * F:
                steady = True
            P = P_next
    return FilterOutput(innovations, variances, a, P, sum_sq)
