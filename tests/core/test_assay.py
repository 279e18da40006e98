"""Tests for Assay and AggregationLink structures."""

import numpy as np
import polars as pl
import pytest

from msfeatures.core import AggregationLink, Assay, ShapeMismatchError, ValidationError


class TestAssayCreation:
    """Test Assay construction and validation."""

    def test_basic_creation(self, psm_assay: Assay) -> None:
        """Test dimensions and identifiers of a valid assay."""
        assert psm_assay.shape == (10, 3)
        assert psm_assay.n_features == 10
        assert psm_assay.n_samples == 3
        assert psm_assay.feature_ids.to_list()[:2] == ["psm1", "psm2"]
        assert psm_assay.sample_ids.to_list() == ["S1", "S2", "S3"]

    def test_default_metadata(self) -> None:
        """Test ids are generated when metadata is omitted."""
        assay = Assay(np.zeros((2, 3)))
        assert assay.feature_ids.to_list() == ["feature1", "feature2"]
        assert assay.sample_ids.to_list() == ["sample1", "sample2", "sample3"]

    def test_matrix_is_copied_and_read_only(self) -> None:
        """Test the input array is not shared and cannot be written."""
        X = np.ones((2, 2))
        assay = Assay(X)
        X[0, 0] = 5.0
        assert assay.X[0, 0] == 1.0
        with pytest.raises(ValueError):
            assay.X[0, 0] = 3.0

    def test_integer_ids_cast_to_strings(self) -> None:
        var = pl.DataFrame({"_index": [10, 20]})
        assay = Assay(np.zeros((2, 1)), var=var)
        assert assay.feature_ids.dtype == pl.Utf8
        assert assay.feature_ids.to_list() == ["10", "20"]

    def test_feature_dimension_mismatch(self) -> None:
        var = pl.DataFrame({"_index": ["a", "b", "c"]})
        with pytest.raises(ShapeMismatchError, match="Feature dimension mismatch"):
            Assay(np.zeros((2, 2)), var=var)

    def test_sample_dimension_mismatch(self) -> None:
        obs = pl.DataFrame({"_index": ["S1"]})
        with pytest.raises(ShapeMismatchError, match="Sample dimension mismatch"):
            Assay(np.zeros((2, 2)), obs=obs)

    def test_not_two_dimensional(self) -> None:
        with pytest.raises(ShapeMismatchError):
            Assay(np.zeros(4))

    def test_duplicate_feature_ids(self) -> None:
        var = pl.DataFrame({"_index": ["a", "a"]})
        with pytest.raises(ValidationError, match="not unique"):
            Assay(np.zeros((2, 1)), var=var)

    def test_missing_id_column(self) -> None:
        var = pl.DataFrame({"name": ["a", "b"]})
        with pytest.raises(ValidationError, match="not found"):
            Assay(np.zeros((2, 1)), var=var)

    def test_null_ids(self) -> None:
        var = pl.DataFrame({"_index": ["a", None]})
        with pytest.raises(ValidationError, match="missing values"):
            Assay(np.zeros((2, 1)), var=var)

    def test_non_numeric_matrix(self) -> None:
        with pytest.raises(ValidationError, match="numeric"):
            Assay([["a", "b"]])

    def test_custom_feature_id_col(self) -> None:
        var = pl.DataFrame({"accession": ["P1", "P2"]})
        assay = Assay(np.zeros((2, 1)), var=var, feature_id_col="accession")
        assert assay.feature_index == {"P1": 0, "P2": 1}


class TestAssayOperations:
    """Test copy-producing Assay operations."""

    def test_subset_keeps_order(self, psm_assay: Assay) -> None:
        sub = psm_assay.subset([4, 0])
        assert sub.feature_ids.to_list() == ["psm5", "psm1"]
        np.testing.assert_array_equal(sub.X[:, 0], [5.0, 1.0])
        assert psm_assay.n_features == 10

    def test_subset_empty(self, psm_assay: Assay) -> None:
        sub = psm_assay.subset([])
        assert sub.shape == (0, 3)
        assert sub.var.columns == psm_assay.var.columns

    def test_select_samples(self, psm_assay: Assay) -> None:
        sub = psm_assay.select_samples([2, 0])
        assert sub.sample_ids.to_list() == ["S3", "S1"]
        np.testing.assert_array_equal(sub.X[0], [3.0, 1.0])

    def test_with_X(self, psm_assay: Assay) -> None:
        new = psm_assay.with_X(psm_assay.X * 2)
        assert new.var.equals(psm_assay.var)
        assert new.X[0, 0] == 2.0

    def test_with_X_shape_mismatch(self, psm_assay: Assay) -> None:
        with pytest.raises(ShapeMismatchError):
            psm_assay.with_X(np.zeros((3, 3)))

    def test_equals(self, psm_assay: Assay) -> None:
        same = psm_assay.subset(np.arange(10))
        assert psm_assay.equals(same)
        assert not psm_assay.equals(psm_assay.subset([0, 1]))

    def test_equals_with_nan(self) -> None:
        X = np.array([[np.nan, 1.0]])
        assert Assay(X).equals(Assay(X))


class TestAggregationLink:
    """Test AggregationLink validation and lookups."""

    @pytest.fixture
    def link(self) -> AggregationLink:
        linkage = pl.DataFrame(
            {
                "source_id": ["psm1", "psm2", "psm3", "psm4"],
                "target_id": ["SEQA", "SEQB", "SEQA", "SEQC"],
            }
        )
        return AggregationLink("psms", "peptides", linkage, group_col="Sequence")

    def test_missing_linkage_columns(self) -> None:
        with pytest.raises(ValidationError, match="source_id"):
            AggregationLink("a", "b", pl.DataFrame({"from": ["x"], "to": ["y"]}))

    def test_self_link_rejected(self) -> None:
        linkage = pl.DataFrame({"source_id": ["x"], "target_id": ["x"]})
        with pytest.raises(ValidationError, match="itself"):
            AggregationLink("a", "a", linkage)

    def test_targets_for(self, link: AggregationLink) -> None:
        assert link.targets_for(["psm3", "psm1", "psm4"]) == ["SEQA", "SEQC"]

    def test_sources_for(self, link: AggregationLink) -> None:
        assert link.sources_for({"SEQA"}) == ["psm1", "psm3"]

    def test_properties(self, link: AggregationLink) -> None:
        assert link.n_edges == 4
        assert not link.is_one_to_one
