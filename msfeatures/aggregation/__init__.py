from .core import COUNT_COL, aggregate_features
from .reducers import REDUCERS, col_means, col_medians, col_sums, median_polish, top_n

__all__ = [
    "aggregate_features",
    "COUNT_COL",
    "REDUCERS",
    "col_means",
    "col_medians",
    "col_sums",
    "median_polish",
    "top_n",
]
