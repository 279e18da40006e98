"""MsFeatures: hierarchical containers for mass spectrometry quantitative data.

Holds several quantitative assays of the same samples (PSMs, peptides,
proteins) in one container, records how features of one assay were
aggregated into features of another, and keeps those relationships usable
while assays are filtered, transformed and summarised.

Key Features:
    - Copy-on-write container: MsContainer -> Assay, with shared sample metadata
    - Relationship graph between assays with row-level traversal
    - Aggregation by a grouping column (mean, median, sum, median polish, top3)
    - Metadata filtering scoped to the assays that hold the referenced columns
    - Missing values: summaries, zero/infinite replacement, filtering, imputation
    - Log transformation and normalization as linked, derived assays
    - Import from delimited tables with YAML configuration, long-format export

Quick Start:
    >>> import polars as pl
    >>> from msfeatures import aggregate_features, read_features
    >>> container = read_features(
    ...     "psms.tsv", quant_pattern="^Reporter", feature_id_col="PSM.ID"
    ... )
    >>> container = aggregate_features(container, "psms", "Sequence", "peptides")
    >>> container = aggregate_features(container, "peptides", "Protein", "proteins")
    >>> container = container.filter_features(pl.col("pval") < 0.05)
    >>> container.rows_related_to("proteins", "P12345", direction="descendant")

Version: v0.1.0
"""

from __future__ import annotations

import logging

__version__ = "0.1.0"

from msfeatures.aggregation import (
    COUNT_COL,
    REDUCERS,
    aggregate_features,
    col_means,
    col_medians,
    col_sums,
    median_polish,
    top_n,
)
from msfeatures.core import (
    AggregationLink,
    Assay,
    AssayNotFoundError,
    ConfigurationError,
    ContainerState,
    DependentAssayError,
    DuplicateNameError,
    FeatureNotFoundError,
    FilterCriteria,
    InvalidPredicateError,
    MissingColumnError,
    MsContainer,
    MsFeaturesError,
    NotFoundError,
    ProvenanceLog,
    RelationshipGraph,
    ShapeMismatchError,
    ValidationError,
    filter_features,
    group_features,
    subset_by_feature,
)
from msfeatures.impute import IMPUTATION_METHODS, impute
from msfeatures.io import (
    ImportConfig,
    IOFormatError,
    load_import_config,
    long_format,
    read_assay,
    read_features,
    save_import_config,
)
from msfeatures.normalization import NORMALIZATION_METHODS, log_transform, normalize
from msfeatures.qc import NaSummary, filter_na, infinite_is_na, n_na, zero_is_na

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # Core
    "MsContainer",
    "ContainerState",
    "Assay",
    "AggregationLink",
    "ProvenanceLog",
    "RelationshipGraph",
    "group_features",
    # Filtering
    "FilterCriteria",
    "filter_features",
    "subset_by_feature",
    # Aggregation
    "aggregate_features",
    "COUNT_COL",
    "REDUCERS",
    "col_means",
    "col_medians",
    "col_sums",
    "median_polish",
    "top_n",
    # Missing values
    "NaSummary",
    "n_na",
    "zero_is_na",
    "infinite_is_na",
    "filter_na",
    "impute",
    "IMPUTATION_METHODS",
    # Transforms
    "log_transform",
    "normalize",
    "NORMALIZATION_METHODS",
    # I/O
    "ImportConfig",
    "load_import_config",
    "save_import_config",
    "read_assay",
    "read_features",
    "long_format",
    # Exceptions
    "MsFeaturesError",
    "ValidationError",
    "DuplicateNameError",
    "ShapeMismatchError",
    "MissingColumnError",
    "InvalidPredicateError",
    "DependentAssayError",
    "NotFoundError",
    "AssayNotFoundError",
    "FeatureNotFoundError",
    "ConfigurationError",
    "IOFormatError",
]
