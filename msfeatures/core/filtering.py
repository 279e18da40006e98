"""Type-safe feature filtering for msfeatures containers.

Predicates are Polars expressions over feature metadata (``var``) columns.
Filtering is scoped by column presence: a predicate only applies to the
assays whose feature metadata holds every column it references, and leaves
the other assays untouched. Relationship links are kept as recorded; related
row queries on the result simply skip rows that were removed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import polars as pl
from polars.exceptions import PolarsError

from msfeatures.core.exceptions import (
    FeatureNotFoundError,
    InvalidPredicateError,
    ShapeMismatchError,
    ValidationError,
)
from msfeatures.core.types import BooleanMask, FeatureIDs, Indices

if TYPE_CHECKING:
    from msfeatures.core.container import MsContainer
    from msfeatures.core.structures import Assay

logger = logging.getLogger(__name__)

_CONDITIONS = {
    "==": lambda col, value: col == value,
    "!=": lambda col, value: col != value,
    "<": lambda col, value: col < value,
    "<=": lambda col, value: col <= value,
    ">": lambda col, value: col > value,
    ">=": lambda col, value: col >= value,
    "in": lambda col, value: col.is_in(list(value)),
    "not_in": lambda col, value: ~col.is_in(list(value)),
    "contains": lambda col, value: col.cast(pl.Utf8).str.contains(value, literal=True),
    "startswith": lambda col, value: col.cast(pl.Utf8).str.starts_with(value),
    "endswith": lambda col, value: col.cast(pl.Utf8).str.ends_with(value),
}


@dataclass
class FilterCriteria:
    """
    Type-safe criteria for filtering features.

    Each factory method creates a criteria object for one filtering approach.
    Expression and variable criteria can be applied across a whole container;
    ids, indices and masks are positional and target a single assay.

    Parameters
    ----------
    criteria_type : str
        Type of filtering criteria ("ids", "indices", "mask", "expression",
        "variable").
    value : object
        The filtering value (IDs, indices, mask, or expression).

    Raises
    ------
    ValueError
        If criteria_type is not one of the valid types

    Examples
    --------
    >>> criteria = FilterCriteria.by_expression(pl.col("pval") < 0.05)
    >>> container.filter_features(criteria)

    >>> criteria = FilterCriteria.by_variable("Reverse", "+", "!=")
    >>> container.filter_features(criteria)

    >>> criteria = FilterCriteria.by_ids(["P123", "P456"])
    >>> container.filter_features(criteria, assays=["proteins"])
    """

    criteria_type: str
    value: object

    def __post_init__(self):
        valid_types = {"ids", "indices", "mask", "expression", "variable"}
        if self.criteria_type not in valid_types:
            raise ValueError(
                f"Invalid criteria_type: {self.criteria_type}. Must be one of {valid_types}"
            )

    @classmethod
    def by_ids(cls, ids: FeatureIDs) -> FilterCriteria:
        """Keep the features with these identifiers."""
        return cls(criteria_type="ids", value=ids)

    @classmethod
    def by_indices(cls, indices: Indices) -> FilterCriteria:
        """Keep the features at these row positions."""
        return cls(criteria_type="indices", value=indices)

    @classmethod
    def by_mask(cls, mask: BooleanMask) -> FilterCriteria:
        """Keep the features where ``mask`` is True."""
        return cls(criteria_type="mask", value=mask)

    @classmethod
    def by_expression(cls, expr: pl.Expr) -> FilterCriteria:
        """
        Keep the features for which a boolean Polars expression holds.

        Examples
        --------
        >>> FilterCriteria.by_expression((pl.col("pval") < 0.05) & (pl.col("score") > 2))
        """
        return cls(criteria_type="expression", value=expr)

    @classmethod
    def by_variable(cls, field: str, value: Any, condition: str = "==") -> FilterCriteria:
        """
        Compare one feature variable against a value.

        Parameters
        ----------
        field : str
            Feature metadata column.
        value : object
            Value to compare with; a collection for ``in`` / ``not_in``.
        condition : str, default "=="
            One of ``==, !=, <, <=, >, >=, in, not_in, contains, startswith,
            endswith``.

        Examples
        --------
        >>> FilterCriteria.by_variable("Potential.contaminant", "+", "!=")
        >>> FilterCriteria.by_variable("PEP", 0.05, "<")
        """
        if condition not in _CONDITIONS:
            raise ValueError(
                f"Invalid condition: {condition}. Must be one of {sorted(_CONDITIONS)}"
            )
        return cls(criteria_type="variable", value=_CONDITIONS[condition](pl.col(field), value))

    @property
    def is_positional(self) -> bool:
        return self.criteria_type in ("ids", "indices", "mask")


def referenced_columns(expr: pl.Expr) -> list[str]:
    """Column names a Polars expression reads."""
    return list(dict.fromkeys(expr.meta.root_names()))


def resolve_filter_criteria(criteria: FilterCriteria, assay: Assay) -> np.ndarray:
    """
    Resolve FilterCriteria to the positional indices of the features to keep.

    Raises
    ------
    InvalidPredicateError
        If an expression does not evaluate to booleans.
    ShapeMismatchError
        If a mask length does not match the number of features.
    FeatureNotFoundError
        If an identifier is not a feature of the assay.
    """
    if criteria.criteria_type in ("expression", "variable"):
        expr: pl.Expr = criteria.value  # type: ignore[assignment]
        try:
            mask_result = assay.var.select(expr).to_series()
        except PolarsError as e:
            raise InvalidPredicateError(f"Predicate could not be evaluated: {e}") from e
        if mask_result.dtype != pl.Boolean:
            raise InvalidPredicateError(
                f"Predicate must produce a boolean result, got {mask_result.dtype}"
            )
        if mask_result.len() != assay.n_features:
            raise InvalidPredicateError("Predicate must produce one value per feature.")
        # null comparisons drop the row
        return np.where(mask_result.fill_null(False).to_numpy())[0]

    elif criteria.criteria_type == "mask":
        mask_arr = (
            criteria.value.to_numpy()  # type: ignore[attr-defined]
            if isinstance(criteria.value, pl.Series)
            else np.asarray(criteria.value)
        )
        if mask_arr.shape[0] != assay.n_features:
            raise ShapeMismatchError(
                f"Mask length ({mask_arr.shape[0]}) does not match "
                f"number of features ({assay.n_features})"
            )
        if mask_arr.dtype != bool:
            raise ValidationError(f"Mask must be boolean array, got {mask_arr.dtype}")
        return np.where(mask_arr)[0]

    elif criteria.criteria_type == "indices":
        indices = np.asarray(criteria.value, dtype=np.int64)
        if indices.size and (indices.min() < 0 or indices.max() >= assay.n_features):
            raise ValidationError(
                f"Feature indices out of range for {assay.n_features} features"
            )
        return indices

    elif criteria.criteria_type == "ids":
        ids = criteria.value
        if isinstance(ids, np.ndarray):
            id_list = ids.tolist()
        elif isinstance(ids, pl.Series):
            id_list = ids.to_list()
        else:
            id_list = list(ids)  # type: ignore[call-overload]

        positions = assay.feature_index
        for item_id in id_list:
            if item_id not in positions:
                raise FeatureNotFoundError(item_id)
        return np.array([positions[item_id] for item_id in id_list], dtype=np.int64)

    else:
        # This should never happen due to __post_init__ validation
        raise ValueError(f"Unknown criteria type: {criteria.criteria_type}")


def _target_assays(container: MsContainer, assays: Iterable[str] | str | None) -> list[str]:
    if assays is None:
        return container.names
    names = [assays] if isinstance(assays, str) else list(assays)
    for name in names:
        container.get_assay(name)
    return names


def filter_features(
    container: MsContainer,
    predicate: pl.Expr | FilterCriteria,
    assays: Iterable[str] | str | None = None,
) -> MsContainer:
    """
    Keep only the features satisfying a predicate, across the container.

    Parameters
    ----------
    container : MsContainer
        Container to filter.
    predicate : pl.Expr | FilterCriteria
        Boolean expression over feature metadata columns, or criteria.
        Positional criteria (ids, indices, mask) require exactly one assay in
        ``assays``.
    assays : Iterable[str] | str, optional
        Restrict filtering to these assays. Defaults to all.

    Returns
    -------
    MsContainer
        New container in the ``FILTERED`` state. Assays lacking any column
        the predicate references are returned unchanged, as are assays in
        which every row satisfies it.

    Raises
    ------
    InvalidPredicateError
        If a referenced column is absent from every targeted assay, if no
        assay holds all referenced columns, or if the predicate does not
        evaluate to booleans.

    Examples
    --------
    >>> filtered = filter_features(container, pl.col("pval") < 0.05)
    """
    criteria = (
        predicate if isinstance(predicate, FilterCriteria) else FilterCriteria.by_expression(predicate)
    )
    names = _target_assays(container, assays)

    if criteria.is_positional:
        if len(names) != 1:
            raise ValidationError(
                f"'{criteria.criteria_type}' criteria apply to exactly one assay, got {names}"
            )
        applicable = names
        description = criteria.criteria_type
    else:
        if not isinstance(criteria.value, pl.Expr):
            raise InvalidPredicateError(
                f"Predicate must be a Polars expression, got {type(criteria.value).__name__}"
            )
        columns = referenced_columns(criteria.value)
        available: set[str] = set()
        for name in names:
            available.update(container[name].var.columns)
        missing = [c for c in columns if c not in available]
        if missing:
            raise InvalidPredicateError(
                f"Predicate references column(s) {missing} absent from every assay."
            )
        applicable = [n for n in names if set(columns) <= set(container[n].var.columns)]
        if not applicable:
            raise InvalidPredicateError(
                f"No assay holds all of the predicate columns {columns}."
            )
        description = str(criteria.value)

    new_assays = dict(container.assays)
    for name in names:
        assay = container[name]
        if name not in applicable:
            logger.debug("Assay '%s' lacks predicate columns; left unfiltered", name)
            continue
        keep = resolve_filter_criteria(criteria, assay)
        if keep.size == assay.n_features and np.array_equal(keep, np.arange(assay.n_features)):
            continue
        new_assays[name] = assay.subset(keep)
        logger.info(
            "Filtered assay '%s': kept %d of %d features", name, keep.size, assay.n_features
        )

    result = container.with_assays(new_assays, filtered=True)
    return result.log_operation(
        action="filter_features",
        params={"predicate": description, "assays": applicable},
        description=f"Filtered features of {applicable}.",
    )


def _extend_to_transformed_copies(container: MsContainer, keep: dict[str, set[str]]) -> None:
    """
    Add the rows of one-to-one (transformation) links to ``keep``.

    Both ends of such a link hold the same ids, so a kept row is kept in
    every transformed copy of its assay and in the assay it was copied from.
    Repeated until no link adds rows, which covers chains of transformations.
    """
    one_to_one = [link for link in container.links if link.is_one_to_one]
    changed = True
    while changed:
        changed = False
        for link in one_to_one:
            for src, dst in (
                (link.source_assay, link.target_assay),
                (link.target_assay, link.source_assay),
            ):
                ids = keep.get(src)
                if not ids:
                    continue
                present = container[dst].feature_index
                new_ids = {fid for fid in ids if fid in present} - keep.get(dst, set())
                if new_ids:
                    keep.setdefault(dst, set()).update(new_ids)
                    changed = True


def subset_by_feature(
    container: MsContainer,
    feature_ids: str | Iterable[str],
    assay_name: str | None = None,
) -> MsContainer:
    """
    Keep the given features and every row related to them.

    For each id, the assays holding it (or only ``assay_name``) are located;
    the feature, its ancestors (coarser rows) and its descendants (finer
    rows) are kept, as are the same rows in transformed copies of any kept
    assay. Assays left without rows are dropped.

    Examples
    --------
    >>> sub = subset_by_feature(container, "P42227")
    >>> sub.names
    ['psms', 'peptides', 'proteins']

    Raises
    ------
    FeatureNotFoundError
        If an id is found in no assay (or not in ``assay_name``).
    """
    ids = [feature_ids] if isinstance(feature_ids, str) else list(feature_ids)
    keep: dict[str, set[str]] = {}
    for fid in ids:
        if assay_name is not None:
            if fid not in container.get_assay(assay_name).feature_index:
                raise FeatureNotFoundError(fid, assay_name)
            hits = [assay_name]
        else:
            hits = [n for n in container.names if fid in container[n].feature_index]
            if not hits:
                raise FeatureNotFoundError(fid)
        for name in hits:
            keep.setdefault(name, set()).add(fid)
            for direction in ("ancestor", "descendant"):
                related = container.rows_related_to(name, fid, direction)
                for other, other_ids in related.items():
                    keep.setdefault(other, set()).update(other_ids)
    _extend_to_transformed_copies(container, keep)

    new_assays = {}
    for name in container.names:
        wanted = keep.get(name)
        if not wanted:
            continue
        assay = container[name]
        indices = [i for i, f in enumerate(assay.feature_ids.to_list()) if f in wanted]
        new_assays[name] = assay.subset(indices)

    result = container.with_assays(new_assays, filtered=True)
    return result.log_operation(
        action="subset_by_feature",
        params={"features": ids, "assay": assay_name},
    )
