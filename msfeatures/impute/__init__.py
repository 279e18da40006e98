from .methods import (
    IMPUTATION_METHODS,
    impute,
    impute_knn,
    impute_min_det,
    impute_min_prob,
    impute_zero,
)

__all__ = [
    "impute",
    "IMPUTATION_METHODS",
    "impute_zero",
    "impute_min_det",
    "impute_min_prob",
    "impute_knn",
]
