"""Feature aggregation: build a coarser assay from a finer one.

Rows of a source assay (e.g. PSMs) are grouped by a feature metadata column
(e.g. peptide sequence) and each group is reduced to one row of a new target
assay. The aggregation is recorded as an :class:`AggregationLink`, so rows of
the two assays can be related afterwards.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import polars as pl

from msfeatures.aggregation.reducers import REDUCERS
from msfeatures.core.container import MsContainer
from msfeatures.core.exceptions import (
    DuplicateNameError,
    ShapeMismatchError,
    ValidationError,
)
from msfeatures.core.graph import group_features, linkage_from_groups
from msfeatures.core.structures import AggregationLink, Assay
from msfeatures.core.types import ReduceFunction

logger = logging.getLogger(__name__)

COUNT_COL = ".n"


def _resolve_reducer(fun: str | ReduceFunction) -> ReduceFunction:
    if callable(fun):
        return fun
    if fun not in REDUCERS:
        raise ValidationError(
            f"Unknown reduction '{fun}'. Available: {list(REDUCERS)}"
        )
    return REDUCERS[fun]


def _aggregated_var(
    source: Assay,
    group_col: str,
    groups: list[tuple[object, np.ndarray]],
) -> pl.DataFrame:
    """
    Feature metadata of the aggregated assay.

    Holds the group id, the grouping value, the number of contributing rows
    and every source column whose value is constant inside each group.
    """
    keys = [key for key, _ in groups]
    counts = [len(rows) for _, rows in groups]
    var = pl.DataFrame(
        {
            "_index": [str(key) for key in keys],
            group_col: pl.Series(group_col, keys, dtype=source.var[group_col].dtype),
            COUNT_COL: pl.Series(COUNT_COL, counts, dtype=pl.Int64),
        }
    )

    candidates = [
        c for c in source.var.columns if c not in (group_col, source.feature_id_col, "_index", COUNT_COL)
    ]
    if not candidates or not groups:
        return var

    grouped = (
        source.var.filter(pl.col(group_col).is_not_null())
        .group_by(group_col, maintain_order=True)
        .agg(
            [pl.col(c).n_unique().alias(f"{c}__n") for c in candidates]
            + [pl.col(c).first() for c in candidates]
        )
    )
    invariant = [c for c in candidates if grouped[f"{c}__n"].max() == 1]
    if invariant:
        var = var.with_columns([grouped[c] for c in invariant])
    return var


def aggregate_features(
    container: MsContainer,
    source: str,
    group_col: str,
    target: str,
    fun: str | ReduceFunction = "mean",
    **fun_kwargs: Any,
) -> MsContainer:
    """
    Aggregate the features of one assay into a new assay.

    Parameters
    ----------
    container : MsContainer
        Container holding the source assay.
    source : str
        Name of the assay to aggregate.
    group_col : str
        Feature metadata column of ``source`` defining the groups. One new
        feature is created per distinct value, in first-encountered order.
    target : str
        Name of the new assay.
    fun : str | callable, default "mean"
        Reduction applied to each group: a registered name ("mean",
        "median", "sum", "median_polish", "top3") or a callable taking an
        array ``(n_group_rows, n_samples)`` and returning ``n_samples`` values.
    **fun_kwargs
        Passed to ``fun`` unchanged (e.g. ``na_rm=True``).

    Returns
    -------
    MsContainer
        New container with the aggregated assay and the link from ``source``
        to ``target``. Its feature metadata holds the grouping value, the
        number of aggregated rows in ``.n`` and the source columns that are
        constant within groups.

    Raises
    ------
    AssayNotFoundError
        If ``source`` is not in the container.
    DuplicateNameError
        If ``target`` already exists.
    MissingColumnError
        If ``group_col`` is not a feature metadata column of ``source``.
    ShapeMismatchError
        If the reduction does not return one value per sample.

    Examples
    --------
    >>> container = aggregate_features(
    ...     container, "psms", "Sequence", "peptides", fun="median", na_rm=True
    ... )
    >>> container["peptides"].var[".n"].to_list()
    [3, 3, 4]
    """
    source_assay = container.get_assay(source)
    if target in container:
        raise DuplicateNameError(target)
    reducer = _resolve_reducer(fun)

    groups = group_features(source_assay, group_col)
    n_samples = source_assay.n_samples
    X = source_assay.X

    # groups are reduced sequentially to keep the output order fixed
    values = np.empty((len(groups), n_samples), dtype=np.float64)
    for i, (key, rows) in enumerate(groups):
        reduced = np.asarray(reducer(X[rows, :], **fun_kwargs), dtype=np.float64)
        if reduced.shape != (n_samples,):
            raise ShapeMismatchError(
                f"Reduction returned shape {reduced.shape} for group '{key}', "
                f"expected ({n_samples},)"
            )
        values[i] = reduced

    assay = Assay(
        X=values,
        var=_aggregated_var(source_assay, group_col, groups),
        obs=source_assay.obs,
        sample_id_col=source_assay.sample_id_col,
    )
    link = AggregationLink(
        source_assay=source,
        target_assay=target,
        linkage=linkage_from_groups(source_assay, groups),
        group_col=group_col,
    )
    result = container.add_assay(target, assay, link=link)

    logger.info(
        "Aggregated %d features of '%s' into %d features of '%s' by '%s'",
        source_assay.n_features,
        source,
        assay.n_features,
        target,
        group_col,
    )
    fun_name = fun if isinstance(fun, str) else getattr(fun, "__name__", repr(fun))
    return result.log_operation(
        action="aggregate_features",
        params={
            "source": source,
            "target": target,
            "group_col": group_col,
            "fun": fun_name,
            **{k: v for k, v in fun_kwargs.items() if isinstance(v, (bool, int, float, str))},
        },
        description=f"Aggregated '{source}' into '{target}' by '{group_col}'.",
    )
