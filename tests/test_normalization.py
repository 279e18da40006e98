"""Tests for log transformation and normalization."""

import numpy as np
import pytest

from msfeatures import MsContainer
from msfeatures.core import Assay, AssayNotFoundError, DuplicateNameError, ValidationError
from msfeatures.normalization import log_transform, normalize
from msfeatures.normalization.normalize import quantiles


class TestLogTransform:
    """Test log_transform."""

    def test_log2(self, psm_container: MsContainer) -> None:
        result = log_transform(psm_container, "psms", "log_psms")
        np.testing.assert_allclose(result["log_psms"].X, np.log2(psm_container["psms"].X))
        assert result.links.link("psms", "log_psms").is_one_to_one
        assert result.history[-1].params["base"] == 2.0

    def test_pseudo_count_and_base(self, psm_container: MsContainer) -> None:
        result = log_transform(psm_container, "psms", "log_psms", base=10.0, pc=1.0)
        np.testing.assert_allclose(
            result["log_psms"].X, np.log10(psm_container["psms"].X + 1.0)
        )

    def test_metadata_reused(self, psm_container: MsContainer) -> None:
        result = log_transform(psm_container, "psms", "log_psms")
        assert result["log_psms"].var.equals(psm_container["psms"].var)

    def test_invalid_base(self, psm_container: MsContainer) -> None:
        with pytest.raises(ValidationError):
            log_transform(psm_container, "psms", "log_psms", base=1.0)

    def test_existing_name(self, psm_container: MsContainer) -> None:
        with pytest.raises(DuplicateNameError):
            log_transform(psm_container, "psms", "psms")

    def test_zero_without_pseudo_count(self) -> None:
        container = MsContainer({"x": Assay(np.array([[0.0, 4.0]]))})
        result = log_transform(container, "x", "log_x")
        assert np.isneginf(result["log_x"].X[0, 0])
        assert result["log_x"].X[0, 1] == pytest.approx(2.0)


class TestNormalize:
    """Test sample-wise normalization methods."""

    def test_center_median(self, psm_container: MsContainer) -> None:
        result = normalize(psm_container, "psms", "norm", method="center.median")
        np.testing.assert_allclose(np.median(result["norm"].X, axis=0), [0.0, 0.0, 0.0])

    def test_center_mean(self, psm_container: MsContainer) -> None:
        result = normalize(psm_container, "psms", "norm", method="center.mean")
        np.testing.assert_allclose(result["norm"].X.mean(axis=0), [0.0, 0.0, 0.0], atol=1e-12)

    def test_div_median(self, psm_container: MsContainer) -> None:
        result = normalize(psm_container, "psms", "norm", method="div.median")
        np.testing.assert_allclose(np.median(result["norm"].X, axis=0), [1.0, 1.0, 1.0])

    def test_div_mean_ignores_missing(self, missing_container: MsContainer) -> None:
        result = normalize(missing_container, "proteins", "norm", method="div.mean")
        X = result["norm"].X
        np.testing.assert_allclose(X[0], [1.0, 2.0 / 3.5, 3.0 / 6.0])
        assert np.isnan(X[3]).all()

    def test_quantiles_equal_distributions(self) -> None:
        X = np.array([[5.0, 4.0, 3.0], [2.0, 1.0, 4.0], [3.0, 4.0, 6.0], [4.0, 2.0, 8.0]])
        result = quantiles(X)
        sorted_cols = np.sort(result, axis=0)
        np.testing.assert_allclose(sorted_cols[:, 0], sorted_cols[:, 2])

    def test_quantiles_keep_missing(self, missing_container: MsContainer) -> None:
        result = normalize(missing_container, "proteins", "norm", method="quantiles")
        np.testing.assert_array_equal(
            np.isnan(result["norm"].X), np.isnan(missing_container["proteins"].X)
        )

    def test_unknown_method(self, psm_container: MsContainer) -> None:
        with pytest.raises(ValidationError, match="Unknown normalization"):
            normalize(psm_container, "psms", "norm", method="vsn")

    def test_unknown_assay(self, psm_container: MsContainer) -> None:
        with pytest.raises(AssayNotFoundError):
            normalize(psm_container, "peptides", "norm")
