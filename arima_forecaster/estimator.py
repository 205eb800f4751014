"""Maximum-likelihood ARMA estimation on a differenced series."""

import logging
import math
import warnings

import numpy as np
from scipy.optimize import minimize
from statsmodels.tools.numdiff import approx_hess3

from .exceptions import EstimationFailure, InsufficientDataError
from .model import FittedModel, ModelSpec
from .series import DifferencedSeries
from .statespace import (
    StateSpace,
    ar_polynomial,
    constrain_stationary,
    kalman_filter,
    ma_polynomial,
    roots_outside_unit_circle,
    unconstrain_stationary,
)

logger = logging.getLogger(__name__)

_MAX_CONDITION = 1e12


class _Layout:
    """Slices of the optimizer vector: [constant] + ar + ma + sar + sma."""

    def __init__(self, spec):
        self.spec = spec
        sizes = [int(spec.constant), spec.p, spec.q, spec.P, spec.Q]
        bounds = np.cumsum([0] + sizes)
        self.const, self.ar, self.ma, self.sar, self.sma = (
            slice(bounds[i], bounds[i + 1]) for i in range(5)
        )
        self.size = int(bounds[-1])

    def split(self, x):
        """Natural parameters from an unconstrained vector."""
        constant = float(x[self.const][0]) if self.spec.constant else 0.0
        return (
            constant,
            constrain_stationary(x[self.ar]),
            -constrain_stationary(x[self.ma]),
            constrain_stationary(x[self.sar]),
            -constrain_stationary(x[self.sma]),
        )

    def natural(self, x):
        constant, ar, ma, sar, sma = self.split(x)
        head = [constant] if self.spec.constant else []
        return np.concatenate([head, ar, ma, sar, sma])

    def unconstrain(self, constant, ar, ma, sar, sma):
        head = [constant] if self.spec.constant else []
        return np.concatenate([
            head,
            unconstrain_stationary(ar),
            unconstrain_stationary(-np.asarray(ma, dtype=float)),
            unconstrain_stationary(sar),
            unconstrain_stationary(-np.asarray(sma, dtype=float)),
        ])

    def from_natural(self, theta):
        theta = np.asarray(theta, dtype=float)
        constant = float(theta[self.const][0]) if self.spec.constant else 0.0
        return constant, theta[self.ar], theta[self.ma], theta[self.sar], theta[self.sma]


def information_criteria(loglik, k, n):
    """AIC, AICc and BIC for ``k`` parameters on ``n`` observations."""
    if n - k - 1 <= 0:
        raise InsufficientDataError(
            "too few observations for the number of parameters", {"n": n, "k": k}
        )
    aic = -2.0 * loglik + 2.0 * k
    aicc = aic + 2.0 * k * (k + 1) / (n - k - 1)
    bic = -2.0 * loglik + k * math.log(n)
    return aic, aicc, bic


class ParameterEstimator:
    """Fit ARMA coefficients by exact Gaussian likelihood.

    The optimizer works on unconstrained values that map through partial
    autocorrelations, so every evaluated AR polynomial is stationary and
    every MA polynomial invertible.
    """

    def __init__(self, max_iter=200, gtol=1e-5):
        self.max_iter = max_iter
        self.gtol = gtol

    def fit(self, data, spec, start_params=None):
        """Estimate ``spec`` on ``data`` and return a :class:`FittedModel`.

        ``start_params`` are natural-scale values in the order
        [constant] + ar + ma + sar + sma.
        """
        if not isinstance(data, DifferencedSeries):
            data = DifferencedSeries(data, d=spec.d, D=spec.D, period=spec.period)
        if (data.d, data.D) != (spec.d, spec.D):
            raise EstimationFailure(
                "spec differencing does not match the series",
                {"spec": spec.label, "d": data.d, "D": data.D},
            )
        w = data.values
        n = len(w)
        k = spec.n_params
        if n - k - 1 <= 0:
            raise InsufficientDataError(
                "too few observations for the requested orders",
                {"spec": spec.label, "n": n, "k": k},
            )

        layout = _Layout(spec)
        x0 = self._start(layout, w, start_params)

        def objective(x):
            try:
                return -self._loglik(layout, x, w)
            except (FloatingPointError, np.linalg.LinAlgError, ValueError):
                return np.inf

        n_iter = 0
        if layout.size:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                res = minimize(
                    objective,
                    x0,
                    method="BFGS",
                    options={"maxiter": self.max_iter, "gtol": self.gtol},
                )
            n_iter = int(res.nit)
            if not np.isfinite(res.fun):
                raise EstimationFailure("likelihood is not finite at the optimum", {"spec": spec.label})
            if not res.success and n_iter >= self.max_iter:
                raise EstimationFailure(
                    "optimizer hit the iteration limit", {"spec": spec.label, "n_iter": n_iter}
                )
            x_hat = res.x
        else:
            x_hat = x0

        constant, ar, ma, sar, sma = layout.split(x_hat)
        full_ar = ar_polynomial(ar, sar, spec.period)
        full_ma = ma_polynomial(ma, sma, spec.period)
        if not roots_outside_unit_circle(full_ar, -1.0) or not roots_outside_unit_circle(full_ma, 1.0):
            raise EstimationFailure("estimate on the admissible boundary", {"spec": spec.label})

        system = StateSpace(full_ar, full_ma)
        try:
            out = kalman_filter(w - constant, system)
        except (FloatingPointError, np.linalg.LinAlgError) as exc:
            raise EstimationFailure(f"filter failed at the optimum: {exc}", {"spec": spec.label}) from exc
        loglik = out.loglik()
        if not np.isfinite(loglik):
            raise EstimationFailure("likelihood is not finite at the optimum", {"spec": spec.label})

        std_errors = self._std_errors(layout, x_hat, w, spec)
        aic, aicc, bic = information_criteria(loglik, k, n)
        logger.debug("Fitted %s: loglik=%.3f aicc=%.3f iters=%d", spec.label, loglik, aicc, n_iter)

        return FittedModel(
            spec=spec,
            data=data,
            ar=ar,
            ma=ma,
            seasonal_ar=sar,
            seasonal_ma=sma,
            constant=constant,
            sigma2=out.sigma2,
            loglik=loglik,
            aic=aic,
            aicc=aicc,
            bic=bic,
            n_obs=n,
            residuals=out.innovations,
            state=out.state,
            state_cov=out.state_cov,
            std_errors=std_errors,
            n_iter=n_iter,
        )

    @staticmethod
    def _loglik(layout, x, w):
        constant, ar, ma, sar, sma = layout.split(x)
        period = layout.spec.period
        system = StateSpace(ar_polynomial(ar, sar, period), ma_polynomial(ma, sma, period))
        return kalman_filter(w - constant, system).loglik()

    @staticmethod
    def _start(layout, w, start_params):
        spec = layout.spec
        if start_params is not None:
            start_params = np.asarray(start_params, dtype=float)
            if len(start_params) != layout.size:
                raise EstimationFailure(
                    "start_params has the wrong length",
                    {"spec": spec.label, "expected": layout.size, "given": len(start_params)},
                )
            try:
                return layout.unconstrain(*layout.from_natural(start_params))
            except ValueError as exc:
                raise EstimationFailure(
                    "start_params are not stationary/invertible", {"spec": spec.label}
                ) from exc
        x0 = np.zeros(layout.size)
        if spec.constant:
            x0[layout.const] = float(np.mean(w))
        return x0

    def _std_errors(self, layout, x_hat, w, spec):
        """Standard errors from the numerical Hessian of -loglik at the optimum."""
        if not layout.size:
            return np.zeros(0)
        theta = layout.natural(x_hat)

        def negloglik(params):
            constant, ar, ma, sar, sma = layout.from_natural(params)
            system = StateSpace(ar_polynomial(ar, sar, spec.period), ma_polynomial(ma, sma, spec.period))
            try:
                return -kalman_filter(w - constant, system).loglik()
            except (FloatingPointError, np.linalg.LinAlgError, ValueError):
                return np.inf

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            hess = approx_hess3(theta, negloglik)
        if not np.all(np.isfinite(hess)):
            raise EstimationFailure("information matrix is not finite", {"spec": spec.label})
        hess = (hess + hess.T) / 2.0
        if np.linalg.cond(hess) > _MAX_CONDITION:
            raise EstimationFailure("information matrix is singular", {"spec": spec.label})
        cov = np.linalg.inv(hess)
        diag = np.diag(cov)
        return np.where(diag > 0, np.sqrt(np.abs(diag)), np.nan)
