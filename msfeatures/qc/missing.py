"""Missing value handling for mass-spectrometry quantitative data.

Search engines often report undetected values as zeros or infinities; they
are turned into ``NaN`` before any analysis. The summaries and filters below
then operate on ``NaN`` only.

References
----------
Vanderaa, C., & Gatto, L. (2023). Revisiting the Thorny Issue of Missing
Values in Single-Cell Proteomics. arXiv:2304.06654
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
import polars as pl

from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class NaSummary:
    """Missing value counts of a container.

    Attributes
    ----------
    total : pl.DataFrame
        One row per assay: ``assay``, ``n_na``, ``p_na``.
    rows : pl.DataFrame
        One row per feature: ``assay``, ``name``, ``n_na``, ``p_na``.
    cols : pl.DataFrame
        One row per sample and assay: ``assay``, ``name``, ``n_na``, ``p_na``.
    """

    total: pl.DataFrame
    rows: pl.DataFrame
    cols: pl.DataFrame


def _assay_names(container: MsContainer, assays: Iterable[str] | str | None) -> list[str]:
    if assays is None:
        return container.names
    names = [assays] if isinstance(assays, str) else list(assays)
    for name in names:
        container.get_assay(name)
    return names


def _replace_values(
    container: MsContainer,
    assays: Iterable[str] | str | None,
    predicate,
    action: str,
) -> MsContainer:
    names = _assay_names(container, assays)
    result = container
    for name in names:
        assay = container[name]
        X = assay.X.copy()
        hits = predicate(X)
        n_hits = int(hits.sum())
        if n_hits == 0:
            continue
        X[hits] = np.nan
        result = result.replace_assay(name, assay.with_X(X))
        logger.info("Set %d value(s) of assay '%s' to NaN", n_hits, name)
    return result.log_operation(action=action, params={"assays": names})


def zero_is_na(container: MsContainer, assays: Iterable[str] | str | None = None) -> MsContainer:
    """Replace zeros by NaN in the given assays (default: all)."""
    return _replace_values(container, assays, lambda X: X == 0, "zero_is_na")


def infinite_is_na(
    container: MsContainer, assays: Iterable[str] | str | None = None
) -> MsContainer:
    """Replace infinite values by NaN in the given assays (default: all)."""
    return _replace_values(container, assays, np.isinf, "infinite_is_na")


def n_na(container: MsContainer, assays: Iterable[str] | str | None = None) -> NaSummary:
    """
    Count missing values per assay, per feature and per sample.

    Proportions of empty assays, features or samples are reported as NaN.

    Examples
    --------
    >>> summary = n_na(container, "peptides")
    >>> summary.total
    shape: (1, 3)
    """
    names = _assay_names(container, assays)
    total, rows, cols = [], [], []
    for name in names:
        assay = container[name]
        missing = np.isnan(assay.X)
        n_features, n_samples = assay.shape
        size = missing.size
        n_total = int(missing.sum())
        total.append({"assay": name, "n_na": n_total, "p_na": n_total / size if size else np.nan})

        row_counts = missing.sum(axis=1)
        rows.append(
            pl.DataFrame(
                {
                    "assay": [name] * n_features,
                    "name": assay.feature_ids.to_list(),
                    "n_na": row_counts.astype(np.int64),
                    "p_na": row_counts / n_samples if n_samples else np.full(n_features, np.nan),
                },
                schema={"assay": pl.Utf8, "name": pl.Utf8, "n_na": pl.Int64, "p_na": pl.Float64},
            )
        )
        col_counts = missing.sum(axis=0)
        cols.append(
            pl.DataFrame(
                {
                    "assay": [name] * n_samples,
                    "name": assay.sample_ids.to_list(),
                    "n_na": col_counts.astype(np.int64),
                    "p_na": col_counts / n_features if n_features else np.full(n_samples, np.nan),
                },
                schema={"assay": pl.Utf8, "name": pl.Utf8, "n_na": pl.Int64, "p_na": pl.Float64},
            )
        )

    schema = {"assay": pl.Utf8, "name": pl.Utf8, "n_na": pl.Int64, "p_na": pl.Float64}
    return NaSummary(
        total=pl.DataFrame(
            total, schema={"assay": pl.Utf8, "n_na": pl.Int64, "p_na": pl.Float64}
        ),
        rows=pl.concat(rows) if rows else pl.DataFrame(schema=schema),
        cols=pl.concat(cols) if cols else pl.DataFrame(schema=schema),
    )


def filter_na(
    container: MsContainer,
    assays: Iterable[str] | str | None = None,
    pna: float = 0.0,
) -> MsContainer:
    """
    Remove features with too many missing values.

    Parameters
    ----------
    container : MsContainer
        Container to filter.
    assays : Iterable[str] | str, optional
        Assays to filter. Defaults to all.
    pna : float, default 0.0
        Highest proportion of missing values a kept feature may have. The
        default keeps only complete features.

    Returns
    -------
    MsContainer
        New container in the ``FILTERED`` state; links are kept.
    """
    if not 0.0 <= pna <= 1.0:
        raise ValidationError(f"pna must be within [0, 1], got {pna}")

    names = _assay_names(container, assays)
    new_assays = dict(container.assays)
    for name in names:
        assay = container[name]
        if assay.n_samples == 0:
            continue
        p_missing = np.isnan(assay.X).mean(axis=1)
        keep = np.where(p_missing <= pna)[0]
        if keep.size == assay.n_features:
            continue
        new_assays[name] = assay.subset(keep)
        logger.info(
            "filter_na on '%s': kept %d of %d features", name, keep.size, assay.n_features
        )

    result = container.with_assays(new_assays, filtered=True)
    return result.log_operation(action="filter_na", params={"assays": names, "pna": pna})
