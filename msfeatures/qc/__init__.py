"""Quality control: missing value summaries, replacement and filtering."""

from .missing import NaSummary, filter_na, infinite_is_na, n_na, zero_is_na

__all__ = [
    "NaSummary",
    "filter_na",
    "infinite_is_na",
    "n_na",
    "zero_is_na",
]
