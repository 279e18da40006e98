"""Reduction functions for feature aggregation.

Every reducer takes a 2D array of shape ``(n_group_rows, n_samples)`` and
returns one value per sample. Missing-value policy belongs to the reducer:
most accept ``na_rm`` to ignore ``NaN`` instead of propagating it.

Reference:
    Tukey, J. W. (1977). Exploratory Data Analysis. Addison-Wesley.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np

logger = logging.getLogger(__name__)


def _nan_reduce(func, x: np.ndarray) -> np.ndarray:
    # all-NaN columns yield NaN without a RuntimeWarning
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return func(x, axis=0)


def col_means(x: np.ndarray, na_rm: bool = False) -> np.ndarray:
    """Per-sample mean of the group rows."""
    return _nan_reduce(np.nanmean, x) if na_rm else np.mean(x, axis=0)


def col_medians(x: np.ndarray, na_rm: bool = False) -> np.ndarray:
    """Per-sample median of the group rows."""
    return _nan_reduce(np.nanmedian, x) if na_rm else np.median(x, axis=0)


def col_sums(x: np.ndarray, na_rm: bool = False) -> np.ndarray:
    """
    Per-sample sum of the group rows.

    With ``na_rm=True`` a sample whose values are all missing sums to 0.
    """
    return np.nansum(x, axis=0) if na_rm else np.sum(x, axis=0)


def median_polish(
    x: np.ndarray,
    max_iter: int = 10,
    eps: float = 0.01,
    na_rm: bool = True,
) -> np.ndarray:
    """
    Tukey median polish summary: overall effect plus sample (column) effects.

    Model: ``y_ij = mu + alpha_i + beta_j + e_ij``; returns ``mu + beta_j``.
    Values should be log-transformed.

    Parameters
    ----------
    x : np.ndarray
        Group rows ``(n_rows, n_samples)``.
    max_iter : int, default 10
        Maximum number of row/column sweeps.
    eps : float, default 0.01
        Convergence threshold on the relative change of the sum of absolute
        residuals.
    na_rm : bool, default True
        Ignore missing values when computing medians.
    """

    def _median(a: np.ndarray, axis: int | None = None):
        if not na_rm:
            return np.median(a, axis=axis)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            return np.nanmedian(a, axis=axis)

    residuals = np.array(x, dtype=np.float64)
    overall = 0.0
    row_effects = np.zeros(residuals.shape[0])
    col_effects = np.zeros(residuals.shape[1])
    old_sum = 0.0
    converged = False

    for _ in range(max_iter):
        row_delta = _median(residuals, axis=1)
        residuals = residuals - row_delta[:, np.newaxis]
        row_effects = row_effects + row_delta
        delta = _median(col_effects)
        col_effects = col_effects - delta
        overall += delta

        col_delta = _median(residuals, axis=0)
        residuals = residuals - col_delta[np.newaxis, :]
        col_effects = col_effects + col_delta
        delta = _median(row_effects)
        row_effects = row_effects - delta
        overall += delta

        new_sum = float(np.nansum(np.abs(residuals)))
        if new_sum == 0 or abs(new_sum - old_sum) < eps * new_sum:
            converged = True
            break
        old_sum = new_sum

    if not converged:
        logger.debug("Median polish did not converge after %d iterations", max_iter)
    return overall + col_effects


def top_n(x: np.ndarray, n: int = 3, na_rm: bool = True) -> np.ndarray:
    """
    Mean of the ``n`` most intense rows per sample.

    Missing values never rank among the most intense; a sample without any
    value gives ``NaN``.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if not na_rm and np.isnan(x).any():
        return np.where(np.isnan(x).any(axis=0), np.nan, top_n(x, n=n, na_rm=True))
    ordered = np.sort(np.where(np.isnan(x), -np.inf, x), axis=0)[::-1][:n]
    ordered[np.isneginf(ordered)] = np.nan
    return _nan_reduce(np.nanmean, ordered)


REDUCERS = {
    "mean": col_means,
    "median": col_medians,
    "sum": col_sums,
    "median_polish": median_polish,
    "top3": top_n,
}
"""Reducers available by name in :func:`aggregate_features`."""
