# -*- coding: utf-8 -*-
"""
psychometric/fit_logistic.py  •  PSE pipeline

Binomial-count logistic regression for one (ID?, Condition) unit:

    logit P(Y=1 | x) = a + b * x

Each GroupCell contributes `n` Bernoulli trials with `ones` successes at `x`
(the cbind(ones, zeros) ~ X encoding). Fitted by iteratively reweighted least
squares (Fisher scoring, canonical link, so expected = observed information):

  - start:        mu = (ones + 0.5) / (n + 1)
  - step:         weighted LS of working response z on [1, x] via sqrt(W) lstsq
  - convergence:  |dev - dev_old| / (|dev| + 0.1) < tol
  - cap:          max_iter iterations

Standard errors come from inv(X' W X) at the final estimate; the slope p-value
is the two-sided Wald test against the standard normal.

Failure handling (never raises for data problems):
  - non_identifiable  < 2 distinct x, or every trial in one Y class
  - separated         a threshold on x splits zeros from ones (complete or
                      quasi-complete separation: the MLE is at infinity), or
                      the iteration cap is hit with fitted probabilities at 0/1
  - not_converged     iteration cap reached, or a coefficient on the
                      standardised design (eta at mean x, b * sd(x)) grows past
                      coef_limit; both are free of the units of X
  - singular          rank-deficient weighted design
Failed fits carry NaN coefficients and emit a warning. A converged fit with
some fitted probabilities numerically 0 or 1 is kept (steep curve over a wide
X range; separation is already ruled out) and only noted in `message`.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.special import expit, logit, xlogy
from scipy.stats import binom, norm

from psychometric.aggregate import GroupCell, Unit
from psychometric.errors import FitConvergenceWarning, NonIdentifiableGroupWarning

EPS = 1e-12
MU_EPS = float(np.finfo(float).eps)
SATURATION_EPS = 10.0 * MU_EPS

STATUS_OK = "ok"
STATUS_NON_IDENTIFIABLE = "non_identifiable"
STATUS_SEPARATED = "separated"
STATUS_NOT_CONVERGED = "not_converged"
STATUS_SINGULAR = "singular"


@dataclass(frozen=True)
class FitResult:
    unit: Unit
    intercept: float
    slope: float
    slope_p_value: float
    intercept_se: float = float("nan")
    slope_se: float = float("nan")
    z_value: float = float("nan")
    deviance: float = float("nan")
    null_deviance: float = float("nan")
    log_likelihood: float = float("nan")
    n_iter: int = 0
    n_trials: int = 0
    n_levels: int = 0
    status: str = STATUS_OK
    message: str = ""

    @property
    def converged(self) -> bool:
        return self.status == STATUS_OK

    @property
    def valid(self) -> bool:
        return self.converged and bool(np.isfinite(self.intercept) and np.isfinite(self.slope))


# -----------------------------------------------------------------------------#
# Model / utilities
# -----------------------------------------------------------------------------#
def logistic(x: np.ndarray, a: float, b: float) -> np.ndarray:
    """Stable logistic: P(Y=1|x) = expit(a + b*x)."""
    return expit(float(a) + float(b) * np.asarray(x, dtype=float))


def unit_label(unit: Unit) -> str:
    uid, cond = unit
    return f"Condition={cond}" if uid is None else f"ID={uid}, Condition={cond}"


def _binomial_deviance(ones: np.ndarray, zeros: np.ndarray, mu: np.ndarray) -> float:
    n = ones + zeros
    return float(2.0 * np.sum(xlogy(ones, ones / (n * mu)) + xlogy(zeros, zeros / (n * (1.0 - mu)))))


def _null_deviance(ones: np.ndarray, zeros: np.ndarray) -> float:
    p = float(np.sum(ones)) / float(np.sum(ones + zeros))
    if p <= 0.0 or p >= 1.0:
        return 0.0
    return _binomial_deviance(ones, zeros, np.full_like(ones, p, dtype=float))


def _collapse_levels(cells: Sequence[GroupCell]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(x, ones, zeros) with one row per distinct x, sorted by x."""
    x_raw = np.array([c.x for c in cells], dtype=float)
    x, inv = np.unique(x_raw, return_inverse=True)
    ones = np.zeros(x.size, dtype=float)
    zeros = np.zeros(x.size, dtype=float)
    np.add.at(ones, inv, np.array([c.ones for c in cells], dtype=float))
    np.add.at(zeros, inv, np.array([c.zeros for c in cells], dtype=float))
    return x, ones, zeros


def is_separated(ones: np.ndarray, zeros: np.ndarray) -> bool:
    """
    Complete / quasi-complete separation along sorted x levels.

    True when every zero sits at or below every one (or the reverse), i.e. a
    threshold on x splits the outcomes with at most one mixed level on it.
    """
    ones = np.asarray(ones, dtype=float)
    zeros = np.asarray(zeros, dtype=float)
    idx_one = np.flatnonzero(ones > 0)
    idx_zero = np.flatnonzero(zeros > 0)
    if idx_one.size == 0 or idx_zero.size == 0:
        return False
    increasing = idx_zero.max() <= idx_one.min()
    decreasing = idx_one.max() <= idx_zero.min()
    return bool(increasing or decreasing)


def _standardised(beta: np.ndarray, x_center: float, x_scale: float) -> np.ndarray:
    """(a, b) re-expressed on (x - mean) / sd: eta at the mean x and the change over one sd."""
    return np.array([beta[0] + beta[1] * x_center, beta[1] * x_scale])


def _saturated(p: np.ndarray) -> bool:
    return bool(np.any(p < SATURATION_EPS) or np.any(p > 1.0 - SATURATION_EPS))


def _failed(unit: Unit, status: str, message: str, *, n_trials: int, n_levels: int,
            null_deviance: float, n_iter: int = 0) -> FitResult:
    nan = float("nan")
    return FitResult(
        unit=unit, intercept=nan, slope=nan, slope_p_value=nan,
        null_deviance=null_deviance, n_iter=int(n_iter),
        n_trials=int(n_trials), n_levels=int(n_levels),
        status=status, message=message,
    )


# -----------------------------------------------------------------------------#
# IRLS
# -----------------------------------------------------------------------------#
def _irls(x: np.ndarray, ones: np.ndarray, zeros: np.ndarray, *,
          max_iter: int, tol: float, coef_limit: float) -> Tuple[str, str, Optional[np.ndarray], np.ndarray, float, int]:
    """
    Returns (status, message, beta, mu, deviance, n_iter).
    beta is None unless the loop produced finite coefficients.
    """
    n = ones + zeros
    y = ones / n
    X = np.column_stack([np.ones_like(x), x])
    x_center = float(np.mean(x))
    x_scale = float(np.std(x))

    mu = (ones + 0.5) / (n + 1.0)
    eta = logit(mu)
    dev_old = _binomial_deviance(ones, zeros, mu)
    beta = None

    for it in range(1, int(max_iter) + 1):
        var = mu * (1.0 - mu)
        z = eta + (y - mu) / var
        sqrt_w = np.sqrt(n * var)

        beta_new, _, rank, _ = np.linalg.lstsq(X * sqrt_w[:, None], z * sqrt_w, rcond=None)
        if rank < X.shape[1]:
            return STATUS_SINGULAR, f"rank-deficient weighted design at iteration {it}", beta, mu, np.nan, it
        if not np.all(np.isfinite(beta_new)):
            return STATUS_NOT_CONVERGED, f"non-finite coefficients at iteration {it}", beta, mu, np.nan, it
        if np.max(np.abs(_standardised(beta_new, x_center, x_scale))) > float(coef_limit):
            return (STATUS_NOT_CONVERGED,
                    f"coefficients diverging (|standardised coef| > {float(coef_limit):g}) at iteration {it}",
                    beta_new, mu, np.nan, it)

        beta = beta_new
        eta = X @ beta
        mu = np.clip(expit(eta), MU_EPS, 1.0 - MU_EPS)
        dev = _binomial_deviance(ones, zeros, mu)

        if abs(dev - dev_old) / (abs(dev) + 0.1) < float(tol):
            return STATUS_OK, "", beta, mu, dev, it
        dev_old = dev

    return STATUS_NOT_CONVERGED, f"no convergence within {int(max_iter)} iterations", beta, mu, np.nan, int(max_iter)


def fit_cells(cells: Sequence[GroupCell], max_iter: int = 25, tol: float = 1e-8,
              coef_limit: float = 1e6) -> FitResult:
    """Fit logit P(Y=1|x) = a + b*x to the cells of one (ID?, Condition) unit."""
    if not cells:
        raise ValueError("fit_cells requires at least one cell.")
    units = {c.unit for c in cells}
    if len(units) != 1:
        raise ValueError(f"fit_cells expects cells of a single unit; got {len(units)}.")
    unit = cells[0].unit
    label = unit_label(unit)

    x, ones, zeros = _collapse_levels(cells)
    n_trials = int(np.sum(ones + zeros))
    n_levels = int(x.size)
    null_dev = _null_deviance(ones, zeros)

    if n_levels < 2 or np.sum(ones) == 0 or np.sum(zeros) == 0:
        msg = (f"{n_levels} distinct X level(s)" if n_levels < 2
               else "no variation in Y")
        warnings.warn(f"{label}: fit skipped, {msg}.", NonIdentifiableGroupWarning, stacklevel=2)
        return _failed(unit, STATUS_NON_IDENTIFIABLE, msg,
                       n_trials=n_trials, n_levels=n_levels, null_deviance=null_dev)

    if is_separated(ones, zeros):
        msg = "perfect separation: outcomes split by a threshold on X (MLE at infinity)"
        warnings.warn(f"{label}: {msg}.", FitConvergenceWarning, stacklevel=2)
        return _failed(unit, STATUS_SEPARATED, msg,
                       n_trials=n_trials, n_levels=n_levels, null_deviance=null_dev)

    status, msg, beta, mu, dev, n_iter = _irls(x, ones, zeros, max_iter=max_iter, tol=tol, coef_limit=coef_limit)

    note = ""
    if beta is not None and status in (STATUS_OK, STATUS_NOT_CONVERGED):
        p_raw = expit(np.column_stack([np.ones_like(x), x]) @ beta)
        if _saturated(p_raw):
            if status == STATUS_OK:
                note = "fitted probabilities numerically 0 or 1 at some X"
            elif msg.startswith("no convergence"):
                status, msg = STATUS_SEPARATED, f"{msg}; fitted probabilities numerically 0 or 1"

    cov = None
    if status == STATUS_OK:
        X = np.column_stack([np.ones_like(x), x])
        w = (ones + zeros) * mu * (1.0 - mu)
        try:
            cov = np.linalg.inv(X.T @ (w[:, None] * X))
        except np.linalg.LinAlgError:
            status, msg = STATUS_SINGULAR, "singular information matrix"
        else:
            if not np.all(np.isfinite(cov)) or np.any(np.diag(cov) <= 0):
                status, msg = STATUS_SINGULAR, "information matrix not positive definite"

    if status != STATUS_OK:
        warnings.warn(f"{label}: {msg}.", FitConvergenceWarning, stacklevel=2)
        return _failed(unit, status, msg, n_trials=n_trials, n_levels=n_levels,
                       null_deviance=null_dev, n_iter=n_iter)

    se = np.sqrt(np.diag(cov))
    a_hat, b_hat = float(beta[0]), float(beta[1])
    z_b = b_hat / float(se[1])
    p_b = float(2.0 * norm.sf(abs(z_b)))
    loglik = float(np.sum(binom.logpmf(ones, ones + zeros, mu)))

    return FitResult(
        unit=unit,
        intercept=a_hat,
        slope=b_hat,
        slope_p_value=p_b,
        intercept_se=float(se[0]),
        slope_se=float(se[1]),
        z_value=float(z_b),
        deviance=float(dev),
        null_deviance=null_dev,
        log_likelihood=loglik,
        n_iter=int(n_iter),
        n_trials=n_trials,
        n_levels=n_levels,
        status=STATUS_OK,
        message=note,
    )
