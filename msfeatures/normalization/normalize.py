"""Sample-wise normalization of quantitative assays.

Reference:
    Bolstad, B. M., Irizarry, R. A., Astrand, M., & Speed, T. P. (2003).
    A comparison of normalization methods for high density oligonucleotide
    array data based on variance and bias assessment. BMC Bioinformatics, 4, 9.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
from scipy.stats import rankdata

from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import ValidationError
from msfeatures.core.types import MatrixTransform

logger = logging.getLogger(__name__)


def _column_stat(X: np.ndarray, stat) -> np.ndarray:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return stat(X, axis=0, keepdims=True)


def center_median(X: np.ndarray) -> np.ndarray:
    """Subtract the median of each sample."""
    return X - _column_stat(X, np.nanmedian)


def center_mean(X: np.ndarray) -> np.ndarray:
    """Subtract the mean of each sample."""
    return X - _column_stat(X, np.nanmean)


def div_median(X: np.ndarray) -> np.ndarray:
    """Divide each sample by its median."""
    return X / _column_stat(X, np.nanmedian)


def div_mean(X: np.ndarray) -> np.ndarray:
    """Divide each sample by its mean."""
    return X / _column_stat(X, np.nanmean)


def quantiles(X: np.ndarray) -> np.ndarray:
    """
    Quantile normalization: give every sample the same distribution.

    Mathematical Formulation:
        Given matrix X with N features (rows) and M samples (cols):

        1. Sort each column: X_sorted[k, j] = k-th order statistic of column j
        2. Reference distribution: q_bar[k] = mean(X_sorted[k, :])
        3. For x[i, j] with rank r[i, j] in column j: x_norm[i, j] = q_bar[r[i, j]]

    Ties receive the average of their quantiles (``rankdata(method="average")``
    with linear interpolation). Only non-missing values are ranked; NaN
    stays in place.
    """
    n_features, n_samples = X.shape
    nan_mask = np.isnan(X)

    X_sorted = np.full_like(X, np.nan)
    for j in range(n_samples):
        valid = ~nan_mask[:, j]
        # sorted values fill the top rows of the column
        X_sorted[: valid.sum(), j] = np.sort(X[valid, j])

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        reference = np.nanmean(X_sorted, axis=1)
    reference[np.isnan(reference)] = 0.0

    X_normalized = np.full_like(X, np.nan)
    for j in range(n_samples):
        valid = ~nan_mask[:, j]
        if not valid.any():
            continue
        ranks = rankdata(X[valid, j], method="average") - 1
        X_normalized[valid, j] = np.interp(ranks, np.arange(n_features), reference)
    return X_normalized


NORMALIZATION_METHODS: dict[str, MatrixTransform] = {
    "center.median": center_median,
    "center.mean": center_mean,
    "div.median": div_median,
    "div.mean": div_mean,
    "quantiles": quantiles,
}


def normalize(
    container: MsContainer,
    assay_name: str,
    new_name: str,
    method: str = "center.median",
) -> MsContainer:
    """
    Normalize the samples of an assay and store the result as a new assay.

    Parameters
    ----------
    container : MsContainer
        Container holding the assay.
    assay_name : str
        Name of the assay to normalize. Log-transformed data is expected for
        the centering methods.
    new_name : str
        Name of the new assay.
    method : str, default "center.median"
        One of "center.median", "center.mean", "div.median", "div.mean",
        "quantiles". Missing values are ignored when computing statistics.

    Returns
    -------
    MsContainer
        New container with the normalized assay linked one-to-one to the source.

    Raises
    ------
    AssayNotFoundError
        If the assay does not exist.
    ValidationError
        If the method is unknown.

    Examples
    --------
    >>> container = normalize(container, "log_proteins", "norm_proteins")
    """
    if method not in NORMALIZATION_METHODS:
        raise ValidationError(
            f"Unknown normalization method '{method}'. "
            f"Available: {list(NORMALIZATION_METHODS)}"
        )
    X = container.get_assay(assay_name).X.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        X_norm = NORMALIZATION_METHODS[method](X)

    logger.info("Normalized '%s' (%s) -> '%s'", assay_name, method, new_name)
    return container.add_transformed_assay(
        assay_name,
        new_name,
        X_norm,
        action="normalize",
        params={"method": method},
        description=f"{method} normalization on '{assay_name}' -> '{new_name}'.",
    )
