"""Exception hierarchy for msfeatures.

All errors raised by the container, the relationship graph and the
aggregation / filtering engine derive from :class:`MsFeaturesError`, so
callers can catch the whole family at once or a single kind precisely.
"""

from __future__ import annotations


class MsFeaturesError(Exception):
    """Base class for exceptions in msfeatures."""

    pass


class ValidationError(MsFeaturesError):
    """Raised when data or arguments fail structural validation."""

    pass


class DuplicateNameError(ValidationError):
    """Raised when an assay name is already registered in a container."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Assay '{name}' already exists.")


class ShapeMismatchError(ValidationError):
    """Raised when matrix and metadata dimensions disagree."""

    pass


class MissingColumnError(ValidationError):
    """Raised when a required metadata column is absent."""

    def __init__(self, column: str, where: str | None = None) -> None:
        self.column = column
        self.where = where
        message = f"Column '{column}' not found"
        if where:
            message = f"{message} in {where}"
        super().__init__(f"{message}.")


class InvalidPredicateError(ValidationError):
    """Raised when a filter predicate can never apply or cannot be evaluated."""

    pass


class DependentAssayError(ValidationError):
    """Raised when removing an assay that other assays were derived from."""

    def __init__(self, name: str, dependents: list[str]) -> None:
        self.name = name
        self.dependents = dependents
        super().__init__(
            f"Assay '{name}' has derived assays {dependents}. "
            "Use cascade=True to remove them as well."
        )


class NotFoundError(MsFeaturesError):
    """Raised when a requested item does not exist."""

    pass


class AssayNotFoundError(NotFoundError):
    """Raised when an assay name or index is not in the container."""

    def __init__(self, key: str | int, available: list[str] | None = None) -> None:
        self.key = key
        message = f"Assay {key!r} not found."
        if available is not None:
            message = f"{message} Available assays: {available}"
        super().__init__(message)


class FeatureNotFoundError(NotFoundError):
    """Raised when a feature identifier is not present."""

    def __init__(self, feature_id: str, assay_name: str | None = None) -> None:
        self.feature_id = feature_id
        self.assay_name = assay_name
        where = f"assay '{assay_name}'" if assay_name else "any assay"
        super().__init__(f"Feature '{feature_id}' not found in {where}.")


class ConfigurationError(MsFeaturesError):
    """Exception raised for configuration-related errors.

    Attributes
    ----------
    config_path : str | None
        Path to the configuration file that caused the error.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        if config_path:
            message = f"{message}: {config_path}"
        super().__init__(message)
