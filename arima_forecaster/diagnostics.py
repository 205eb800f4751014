"""Portmanteau checks on model residuals."""

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf, pacf

from .exceptions import InsufficientDataError, PreconditionError
from .model import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticReport:
    statistic: float
    pvalue: float
    lags: int
    df: int
    alpha: float
    adequate: bool
    residual_acf: np.ndarray
    residual_pacf: np.ndarray


def default_lags(n, k=0):
    """min(10, n // 5), but never fewer than k + 1 so the test keeps a degree of freedom."""
    return max(min(10, n // 5), k + 1, 1)


def ljung_box(residuals, lags=None, model_df=0):
    """Ljung-Box Q over lags 1..L against chi^2 with L - model_df degrees of freedom."""
    x = np.asarray(residuals, dtype=float)
    if lags is None:
        lags = default_lags(len(x), model_df)
    if lags <= model_df:
        lags = model_df + 1
    if len(x) <= lags + 1:
        raise InsufficientDataError(
            "too few residuals for the Ljung-Box lag", {"n": len(x), "lags": lags}
        )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        table = acorr_ljungbox(x, lags=[lags], model_df=model_df, return_df=True)
    row = table.iloc[-1]
    return float(row["lb_stat"]), float(row["lb_pvalue"]), int(lags)


class ResidualDiagnostics:
    """Ljung-Box adequacy check for a fitted model."""

    def __init__(self, alpha=0.05, lags=None):
        self.alpha = alpha
        self.lags = lags

    def check(self, model):
        if not isinstance(model, FittedModel):
            raise PreconditionError("diagnostics requested before a model was fitted")
        resid = model.residuals
        k = model.spec.n_arma
        lags = self.lags if self.lags is not None else default_lags(len(resid), k)
        statistic, pvalue, lags = ljung_box(resid, lags, k)
        nlags = min(lags, len(resid) // 2 - 1)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            r_acf = acf(resid, nlags=nlags, fft=False)
            r_pacf = pacf(resid, nlags=nlags, method="ywmle")
        adequate = bool(pvalue >= self.alpha)
        if not adequate:
            logger.warning(
                "Residual autocorrelation left in %s (Q=%.2f, p=%.4f)",
                model.spec.label, statistic, pvalue,
            )
        return DiagnosticReport(
            statistic=statistic,
            pvalue=pvalue,
            lags=lags,
            df=lags - k,
            alpha=self.alpha,
            adequate=adequate,
            residual_acf=r_acf,
            residual_pacf=r_pacf,
        )
