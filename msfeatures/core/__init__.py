from .container import ContainerState, MsContainer
from .exceptions import (
    AssayNotFoundError,
    ConfigurationError,
    DependentAssayError,
    DuplicateNameError,
    FeatureNotFoundError,
    InvalidPredicateError,
    MissingColumnError,
    MsFeaturesError,
    NotFoundError,
    ShapeMismatchError,
    ValidationError,
)
from .filtering import FilterCriteria, filter_features, subset_by_feature
from .graph import RelationshipGraph, group_features
from .structures import AggregationLink, Assay, ProvenanceLog

__all__ = [
    "MsContainer",
    "ContainerState",
    "Assay",
    "AggregationLink",
    "ProvenanceLog",
    "RelationshipGraph",
    "group_features",
    "FilterCriteria",
    "filter_features",
    "subset_by_feature",
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
]
