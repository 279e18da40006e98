"""Long-format export of container assays."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np
import polars as pl

from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import MissingColumnError

__all__ = ["long_format"]

logger = logging.getLogger(__name__)


def _assay_long(
    container: MsContainer,
    name: str,
    row_vars: list[str],
    col_vars: list[str],
) -> pl.DataFrame:
    assay = container.get_assay(name)
    n_features, n_samples = assay.shape

    frame = pl.DataFrame(
        {
            "assay": [name] * (n_features * n_samples),
            "rowname": np.repeat(assay.feature_ids.to_numpy(), n_samples),
            "colname": np.tile(assay.sample_ids.to_numpy(), n_features),
            "value": assay.X.reshape(-1),
        },
        schema={"assay": pl.Utf8, "rowname": pl.Utf8, "colname": pl.Utf8, "value": pl.Float64},
    )

    parts = [frame]
    for col in row_vars:
        if col not in assay.var.columns:
            raise MissingColumnError(col, name)
    if row_vars:
        # feature-major layout: each feature row repeated once per sample
        rows = np.repeat(np.arange(n_features), n_samples)
        parts.append(assay.var.select(row_vars)[rows.tolist(), :])

    if col_vars:
        obs = container.col_data(name)
        for col in col_vars:
            if col not in obs.columns:
                raise MissingColumnError(col, "obs")
        cols = np.tile(np.arange(n_samples), n_features)
        parts.append(obs.select(col_vars)[cols.tolist(), :])
    return pl.concat(parts, how="horizontal") if len(parts) > 1 else frame


def long_format(
    container: MsContainer,
    assays: str | Iterable[str] | None = None,
    row_vars: Iterable[str] | None = None,
    col_vars: Iterable[str] | None = None,
) -> pl.DataFrame:
    """
    Stack assays into one long table, one row per assay, feature and sample.

    Parameters
    ----------
    container : MsContainer
        Container to export.
    assays : str or Iterable[str], optional
        Assay name or names to export, in container order. All assays when None.
    row_vars : Iterable[str], optional
        Feature metadata columns to add; each must exist in every exported
        assay.
    col_vars : Iterable[str], optional
        Shared sample metadata columns to add.

    Returns
    -------
    pl.DataFrame
        Columns ``assay``, ``rowname``, ``colname``, ``value`` followed by the
        requested metadata, ordered by assay, then feature, then sample.

    Raises
    ------
    AssayNotFoundError
        If an assay name is not registered.
    MissingColumnError
        If a requested metadata column is absent.

    Examples
    --------
    >>> long_format(container, ["proteins"], row_vars=["Protein"], col_vars=["Condition"])
    """
    if isinstance(assays, str):
        assays = [assays]
    selected = set(assays) if assays is not None else set(container.names)
    for name in selected:
        container.get_assay(name)
    row_vars = list(row_vars or [])
    col_vars = list(col_vars or [])

    frames = [
        _assay_long(container, name, row_vars, col_vars)
        for name in container.names
        if name in selected
    ]
    if not frames:
        return pl.DataFrame(
            schema={"assay": pl.Utf8, "rowname": pl.Utf8, "colname": pl.Utf8, "value": pl.Float64}
        )
    result = pl.concat(frames, how="diagonal_relaxed")
    logger.debug("Exported %d values from %d assay(s)", result.height, len(frames))
    return result
