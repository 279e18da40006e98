"""
Tests for the impute module.

Each method is tested with:
- Normal cases
- Parameter validation
- Edge cases (no missing values, all missing sample)
"""

import numpy as np
import polars as pl
import pytest

from msfeatures import MsContainer
from msfeatures.core import Assay, ValidationError
from msfeatures.impute import impute, impute_knn, impute_min_det, impute_min_prob, impute_zero


@pytest.fixture
def intensities() -> np.ndarray:
    rng = np.random.default_rng(42)
    X = rng.normal(20.0, 1.0, size=(30, 4))
    X[rng.random(X.shape) < 0.2] = np.nan
    return X


class TestImputeMethods:
    """Test the matrix-level imputation functions."""

    def test_zero(self, missing_X: np.ndarray) -> None:
        result = impute_zero(missing_X)
        assert result[3].tolist() == [0.0, 0.0, 0.0]
        assert result[0].tolist() == [1.0, 2.0, 3.0]

    def test_min_det(self, missing_X: np.ndarray) -> None:
        result = impute_min_det(missing_X, q=0.0)
        # column minimums of observed values
        np.testing.assert_array_equal(result[:, 0], [1.0, 1.0, 1.0, 1.0])
        np.testing.assert_array_equal(result[:, 1], [2.0, 5.0, 2.0, 2.0])

    def test_min_det_invalid_q(self, missing_X: np.ndarray) -> None:
        with pytest.raises(ValidationError):
            impute_min_det(missing_X, q=2.0)

    def test_min_prob_reproducible(self, intensities: np.ndarray) -> None:
        first = impute_min_prob(intensities, random_state=0)
        second = impute_min_prob(intensities, random_state=0)
        np.testing.assert_array_equal(first, second)
        assert not np.isnan(first).any()

    def test_min_prob_keeps_observed(self, intensities: np.ndarray) -> None:
        result = impute_min_prob(intensities, random_state=1)
        observed = ~np.isnan(intensities)
        np.testing.assert_array_equal(result[observed], intensities[observed])

    def test_min_prob_invalid_sigma(self, intensities: np.ndarray) -> None:
        with pytest.raises(ValidationError):
            impute_min_prob(intensities, tune_sigma=0.0)

    def test_knn(self, intensities: np.ndarray) -> None:
        result = impute_knn(intensities, k=3)
        assert result.shape == intensities.shape
        assert not np.isnan(result).any()

    def test_knn_no_missing(self) -> None:
        X = np.ones((3, 2))
        np.testing.assert_array_equal(impute_knn(X), X)

    def test_knn_invalid_k(self, intensities: np.ndarray) -> None:
        with pytest.raises(ValidationError):
            impute_knn(intensities, k=0)


class TestImputeContainer:
    """Test impute() on containers."""

    def test_new_linked_assay(self, missing_container: MsContainer) -> None:
        result = impute(missing_container, "proteins", "proteins_imp", method="zero")
        assert result.names == ["proteins", "proteins_imp"]
        assert not np.isnan(result["proteins_imp"].X).any()
        assert np.isnan(missing_container["proteins"].X).sum() == 6
        assert result.links.source_of("proteins_imp") == "proteins"
        assert result.history[-1].params["n_missing"] == 6

    def test_kwargs_passed(self) -> None:
        rng = np.random.default_rng(7)
        X = rng.normal(10.0, 1.0, size=(20, 3))
        X[0, 0] = np.nan
        var = pl.DataFrame({"_index": [f"p{i}" for i in range(20)]})
        container = MsContainer({"proteins": Assay(X, var=var)})
        result = impute(container, "proteins", "imp", method="knn", k=2)
        assert result.history[-1].params["k"] == 2

    def test_unknown_method(self, missing_container: MsContainer) -> None:
        with pytest.raises(ValidationError, match="Unknown imputation"):
            impute(missing_container, "proteins", "imp", method="mice")
