"""Shared pytest fixtures for msfeatures tests.

Fixtures are organized by data structure: metadata, assays and containers.
The PSM assay holds 10 rows labelled with three peptide sequences in groups
of 3, 3 and 4; peptides SEQA and SEQB belong to protein P1, SEQC to P2.
"""

import numpy as np
import polars as pl
import pytest

from msfeatures import MsContainer, aggregate_features
from msfeatures.core import Assay

SEQUENCES = ["SEQA", "SEQB", "SEQA", "SEQC", "SEQB", "SEQA", "SEQC", "SEQC", "SEQB", "SEQC"]
PROTEINS = {"SEQA": "P1", "SEQB": "P1", "SEQC": "P2"}
PVALUES = [0.01, 0.2, 0.03, 0.5, 0.001, 0.04, 0.9, 0.02, 0.3, 0.6]


@pytest.fixture
def sample_obs() -> pl.DataFrame:
    """Sample metadata with 3 samples and their condition."""
    return pl.DataFrame(
        {
            "_index": ["S1", "S2", "S3"],
            "Condition": ["ctrl", "treat", "treat"],
        }
    )


@pytest.fixture
def psm_var() -> pl.DataFrame:
    """Feature metadata of 10 PSMs."""
    return pl.DataFrame(
        {
            "_index": [f"psm{i}" for i in range(1, 11)],
            "Sequence": SEQUENCES,
            "Protein": [PROTEINS[s] for s in SEQUENCES],
            "pval": PVALUES,
            "Reverse": ["", "", "", "+", "", "", "", "", "", ""],
        }
    )


@pytest.fixture
def psm_X() -> np.ndarray:
    """Row i (1-based) holds [i, 2i, 3i]."""
    rows = np.arange(1, 11, dtype=np.float64)[:, np.newaxis]
    return rows * np.array([1.0, 2.0, 3.0])


@pytest.fixture
def psm_assay(psm_X: np.ndarray, psm_var: pl.DataFrame, sample_obs: pl.DataFrame) -> Assay:
    return Assay(X=psm_X, var=psm_var, obs=sample_obs)


@pytest.fixture
def psm_container(psm_assay: Assay) -> MsContainer:
    """Container holding only the 'psms' assay."""
    return MsContainer({"psms": psm_assay})


@pytest.fixture
def linked_container(psm_container: MsContainer) -> MsContainer:
    """psms -> peptides (by Sequence) -> proteins (by Protein), mean reduction."""
    container = aggregate_features(psm_container, "psms", "Sequence", "peptides")
    return aggregate_features(container, "peptides", "Protein", "proteins")


@pytest.fixture
def missing_X() -> np.ndarray:
    """4 x 3 matrix with missing values in known positions."""
    return np.array(
        [
            [1.0, 2.0, 3.0],
            [np.nan, 5.0, 6.0],
            [np.nan, np.nan, 9.0],
            [np.nan, np.nan, np.nan],
        ]
    )


@pytest.fixture
def missing_container(missing_X: np.ndarray) -> MsContainer:
    var = pl.DataFrame({"_index": ["f1", "f2", "f3", "f4"]})
    obs = pl.DataFrame({"_index": ["S1", "S2", "S3"]})
    return MsContainer({"proteins": Assay(missing_X, var, obs)})
