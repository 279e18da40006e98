"""msfeatures core type definitions.

Concrete type aliases used across the container, graph and engine modules.

Examples
--------
>>> import numpy as np
>>> from msfeatures.core.types import ReduceFunction
>>>
>>> def first_row(x: np.ndarray) -> np.ndarray:
...     return x[0]
>>>
>>> fun: ReduceFunction = first_row
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal

import numpy as np
import polars as pl

# =============================================================================
# Matrix Type Aliases
# =============================================================================

type ReduceFunction = Callable[..., np.ndarray]
"""Reduction applied to one aggregation group.

Receives a 2D array of shape ``(n_group_rows, n_samples)`` (rows in source
order) plus any pass-through keyword arguments, and returns a 1D array of
length ``n_samples``.
"""

type MatrixTransform = Callable[..., np.ndarray]
"""Shape-preserving matrix transformation (normalization, imputation)."""

# =============================================================================
# ID and Index Type Aliases
# =============================================================================

type FeatureIDs = list[str] | np.ndarray | pl.Series
type Indices = list[int] | np.ndarray
type BooleanMask = np.ndarray | pl.Series

type AssayKey = str | int
"""Assay lookup key: name or position in container order."""

type Direction = Literal["ancestor", "descendant"]
"""Traversal direction in the relationship graph.

``"ancestor"`` walks towards coarser assays (peptide -> protein),
``"descendant"`` towards finer ones (protein -> peptides -> PSMs).
"""

__all__ = [
    "ReduceFunction",
    "MatrixTransform",
    "FeatureIDs",
    "Indices",
    "BooleanMask",
    "AssayKey",
    "Direction",
]
