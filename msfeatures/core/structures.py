from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl

from msfeatures.core.exceptions import ShapeMismatchError, ValidationError


@dataclass
class ProvenanceLog:
    """
    Record of an operation performed on a container.
    """

    timestamp: str
    action: str
    params: dict[str, Any]
    software_version: str | None = None
    description: str | None = None


def _default_ids(prefix: str, n: int) -> list[str]:
    return [f"{prefix}{i + 1}" for i in range(n)]


def _prepare_metadata(df: pl.DataFrame, id_col: str, label: str) -> pl.DataFrame:
    """Validate an id column and cast it to strings."""
    if id_col not in df.columns:
        raise ValidationError(f"{label} ID column '{id_col}' not found.")
    if df[id_col].null_count() > 0:
        raise ValidationError(f"{label} ID column '{id_col}' contains missing values.")
    if df[id_col].dtype != pl.Utf8:
        df = df.with_columns(pl.col(id_col).cast(pl.Utf8))
    if df[id_col].n_unique() != df.height:
        raise ValidationError(f"{label} ID column '{id_col}' is not unique.")
    return df


class Assay:
    """
    One quantitative table: a feature x sample matrix with its metadata.

    The matrix is copied to ``float64`` on construction and published
    read-only. Operations never modify an assay; they build new ones with
    :meth:`subset`, :meth:`select_samples` or :meth:`with_X`.

    Parameters
    ----------
    X : array-like
        Quantitative values, shape ``(n_features, n_samples)``. Missing
        values are ``NaN``.
    var : pl.DataFrame, optional
        Feature metadata, one row per matrix row. Generated when omitted.
    obs : pl.DataFrame, optional
        Sample metadata, one row per matrix column. Generated when omitted.
    feature_id_col : str, default "_index"
        Column of ``var`` holding unique feature identifiers.
    sample_id_col : str, default "_index"
        Column of ``obs`` holding unique sample identifiers.

    Raises
    ------
    ShapeMismatchError
        If ``X`` is not 2-D or metadata heights disagree with it.
    ValidationError
        If an id column is missing, has nulls or is not unique, or ``X`` is
        not numeric.

    Examples
    --------
    >>> X = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    >>> var = pl.DataFrame({"_index": ["p1", "p2", "p3"]})
    >>> obs = pl.DataFrame({"_index": ["s1", "s2"]})
    >>> Assay(X, var, obs)
    <Assay n_features=3, n_samples=2>
    """

    def __init__(
        self,
        X: Any,
        var: pl.DataFrame | None = None,
        obs: pl.DataFrame | None = None,
        feature_id_col: str = "_index",
        sample_id_col: str = "_index",
    ) -> None:
        try:
            matrix = np.array(X, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Assay matrix must be numeric: {e}") from e
        if matrix.ndim != 2:
            raise ShapeMismatchError(f"Assay matrix must be 2-D, got {matrix.ndim} dimension(s).")

        n_features, n_samples = matrix.shape
        if var is None:
            var = pl.DataFrame({feature_id_col: _default_ids("feature", n_features)})
        if obs is None:
            obs = pl.DataFrame({sample_id_col: _default_ids("sample", n_samples)})

        if var.height != n_features:
            raise ShapeMismatchError(
                f"Feature dimension mismatch: matrix has {n_features} rows, "
                f"var has {var.height}"
            )
        if obs.height != n_samples:
            raise ShapeMismatchError(
                f"Sample dimension mismatch: matrix has {n_samples} columns, "
                f"obs has {obs.height}"
            )

        self.feature_id_col = feature_id_col
        self.sample_id_col = sample_id_col
        self.var: pl.DataFrame = _prepare_metadata(var, feature_id_col, "Feature")
        self.obs: pl.DataFrame = _prepare_metadata(obs, sample_id_col, "Sample")

        matrix.setflags(write=False)
        self._X = matrix
        self._feature_pos: dict[str, int] | None = None

    @property
    def X(self) -> np.ndarray:
        """Read-only quantitative matrix ``(n_features, n_samples)``."""
        return self._X

    @property
    def n_features(self) -> int:
        return self._X.shape[0]

    @property
    def n_samples(self) -> int:
        return self._X.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self._X.shape

    @property
    def feature_ids(self) -> pl.Series:
        return self.var[self.feature_id_col]

    @property
    def sample_ids(self) -> pl.Series:
        return self.obs[self.sample_id_col]

    @property
    def feature_index(self) -> dict[str, int]:
        """Mapping feature id -> row position."""
        if self._feature_pos is None:
            self._feature_pos = {fid: i for i, fid in enumerate(self.feature_ids.to_list())}
        return self._feature_pos

    def __repr__(self) -> str:
        return f"<Assay n_features={self.n_features}, n_samples={self.n_samples}>"

    def equals(self, other: Assay) -> bool:
        """Row-for-row equality of matrix (NaN-aware) and metadata."""
        return (
            self.shape == other.shape
            and self.feature_id_col == other.feature_id_col
            and self.sample_id_col == other.sample_id_col
            and np.array_equal(self._X, other.X, equal_nan=True)
            and self.var.equals(other.var)
            and self.obs.equals(other.obs)
        )

    def subset(self, feature_indices: list[int] | np.ndarray) -> Assay:
        """
        Return a new Assay with a subset of features, in the given order.
        """
        idx = np.asarray(feature_indices, dtype=np.int64)
        return Assay(
            X=self._X[idx, :],
            var=self.var[idx.tolist(), :] if idx.size else self.var.clear(),
            obs=self.obs,
            feature_id_col=self.feature_id_col,
            sample_id_col=self.sample_id_col,
        )

    def select_samples(self, sample_indices: list[int] | np.ndarray) -> Assay:
        """
        Return a new Assay restricted to the given sample columns.
        """
        idx = np.asarray(sample_indices, dtype=np.int64)
        return Assay(
            X=self._X[:, idx],
            var=self.var,
            obs=self.obs[idx.tolist(), :] if idx.size else self.obs.clear(),
            feature_id_col=self.feature_id_col,
            sample_id_col=self.sample_id_col,
        )

    def with_X(self, X: Any) -> Assay:
        """
        Return a new Assay with the same metadata and a replacement matrix.

        Used to store results computed outside the container (log
        transformation, normalization, imputation, model fits).
        """
        new_X = np.asarray(X, dtype=np.float64)
        if new_X.shape != self.shape:
            raise ShapeMismatchError(
                f"Replacement matrix has shape {new_X.shape}, assay has {self.shape}"
            )
        return Assay(
            X=new_X,
            var=self.var,
            obs=self.obs,
            feature_id_col=self.feature_id_col,
            sample_id_col=self.sample_id_col,
        )


@dataclass(frozen=True)
class AggregationLink:
    """
    Feature relationship from a source assay to a target assay.

    Each row of ``linkage`` maps one source feature (e.g. a peptide) to the
    target feature (e.g. a protein) it contributed to. ``group_col`` names the
    grouping variable used for the aggregation, or is ``None`` for one-to-one
    links created by transformations.
    """

    source_assay: str
    target_assay: str
    # Linkage table: must contain 'source_id' and 'target_id' columns mapping feature IDs.
    linkage: pl.DataFrame
    group_col: str | None = None

    def __post_init__(self) -> None:
        required_cols = {"source_id", "target_id"}
        if not required_cols.issubset(set(self.linkage.columns)):
            raise ValidationError(f"Linkage DataFrame must contain columns: {required_cols}")
        if self.source_assay == self.target_assay:
            raise ValidationError(f"Link from assay '{self.source_assay}' to itself.")

    @property
    def n_edges(self) -> int:
        return self.linkage.height

    @property
    def is_one_to_one(self) -> bool:
        return self.group_col is None

    def targets_for(self, source_ids: list[str] | set[str]) -> list[str]:
        """Target ids linked to any of ``source_ids``, in linkage order."""
        hits = self.linkage.filter(pl.col("source_id").is_in(list(source_ids)))
        return hits["target_id"].unique(maintain_order=True).to_list()

    def sources_for(self, target_ids: list[str] | set[str]) -> list[str]:
        """Source ids linked to any of ``target_ids``, in linkage order."""
        hits = self.linkage.filter(pl.col("target_id").is_in(list(target_ids)))
        return hits["source_id"].unique(maintain_order=True).to_list()
