"""Tests for MsContainer: creation, copy-on-write updates and queries."""

import numpy as np
import polars as pl
import pytest

from msfeatures import MsContainer
from msfeatures.core import (
    AggregationLink,
    Assay,
    AssayNotFoundError,
    ContainerState,
    DependentAssayError,
    DuplicateNameError,
    FeatureNotFoundError,
    NotFoundError,
    ShapeMismatchError,
    ValidationError,
)


class TestContainerBasic:
    """Test container creation and read access."""

    def test_empty_container(self) -> None:
        container = MsContainer()
        assert len(container) == 0
        assert container.state == ContainerState.EMPTY
        assert container.n_samples == 0

    def test_populated_container(self, psm_container: MsContainer) -> None:
        assert psm_container.names == ["psms"]
        assert psm_container.state == ContainerState.POPULATED
        assert psm_container.sample_ids.to_list() == ["S1", "S2", "S3"]
        assert "Condition" in psm_container.obs.columns

    def test_get_assay_by_name_and_index(self, linked_container: MsContainer) -> None:
        assert linked_container["peptides"] is linked_container.get_assay(1)
        assert linked_container.get_assay(-1) is linked_container["proteins"]

    def test_get_assay_missing(self, psm_container: MsContainer) -> None:
        with pytest.raises(AssayNotFoundError, match="proteins"):
            psm_container.get_assay("proteins")
        with pytest.raises(AssayNotFoundError):
            psm_container.get_assay(5)

    def test_assays_view_is_read_only(self, psm_container: MsContainer) -> None:
        with pytest.raises(TypeError):
            psm_container.assays["other"] = psm_container["psms"]  # type: ignore[index]

    def test_iteration_and_membership(self, linked_container: MsContainer) -> None:
        assert list(linked_container) == ["psms", "peptides", "proteins"]
        assert "peptides" in linked_container
        assert "genes" not in linked_container

    def test_obs_must_describe_assay_samples(self, psm_assay: Assay) -> None:
        obs = pl.DataFrame({"_index": ["S1", "S2"]})
        with pytest.raises(ValidationError, match="S3"):
            MsContainer({"psms": psm_assay}, obs=obs)

    def test_obs_union_of_assays(self, psm_assay: Assay) -> None:
        other = Assay(np.zeros((1, 2)), obs=pl.DataFrame({"_index": ["S3", "S4"]}))
        container = MsContainer({"psms": psm_assay, "other": other})
        assert container.sample_ids.to_list() == ["S1", "S2", "S3", "S4"]

    def test_col_data(self, psm_container: MsContainer) -> None:
        col_data = psm_container.col_data("psms")
        assert col_data["Condition"].to_list() == ["ctrl", "treat", "treat"]

    def test_repr(self, linked_container: MsContainer) -> None:
        text = repr(linked_container)
        assert "peptides(3)" in text
        assert "state=linked" in text


class TestContainerUpdates:
    """Test that updates return new containers and leave the input untouched."""

    def test_add_assay(self, psm_container: MsContainer) -> None:
        new = psm_container.add_assay("extra", Assay(np.zeros((2, 3)), obs=psm_container.obs))
        assert new.names == ["psms", "extra"]
        assert psm_container.names == ["psms"]
        assert new["psms"] is psm_container["psms"]

    def test_add_assay_duplicate_name(self, psm_container: MsContainer) -> None:
        with pytest.raises(DuplicateNameError, match="psms"):
            psm_container.add_assay("psms", psm_container["psms"])

    def test_add_assay_extends_obs(self, psm_container: MsContainer) -> None:
        extra = Assay(np.zeros((1, 1)), obs=pl.DataFrame({"_index": ["S9"]}))
        new = psm_container.add_assay("extra", extra)
        assert new.sample_ids.to_list() == ["S1", "S2", "S3", "S9"]
        assert new.obs["Condition"].to_list()[-1] is None

    def test_add_assay_link_target_mismatch(self, psm_container: MsContainer) -> None:
        linkage = pl.DataFrame({"source_id": ["psm1"], "target_id": ["x"]})
        link = AggregationLink("psms", "other", linkage)
        assay = Assay(np.zeros((1, 3)), var=pl.DataFrame({"_index": ["x"]}), obs=psm_container.obs)
        with pytest.raises(ValidationError, match="other"):
            psm_container.add_assay("extra", assay, link=link)

    def test_replace_assay_keeps_links(self, linked_container: MsContainer) -> None:
        peptides = linked_container["peptides"]
        new = linked_container.replace_assay("peptides", peptides.with_X(peptides.X + 1))
        assert len(new.links) == 2
        assert new["peptides"].X[0, 0] == peptides.X[0, 0] + 1

    def test_replace_assay_requires_same_features(self, linked_container: MsContainer) -> None:
        with pytest.raises(ShapeMismatchError):
            linked_container.replace_assay("peptides", linked_container["peptides"].subset([0]))

    def test_add_transformed_assay(self, psm_container: MsContainer) -> None:
        X = np.log2(psm_container["psms"].X)
        new = psm_container.add_transformed_assay("psms", "log_psms", X)
        assert new.names == ["psms", "log_psms"]
        assert new.links.source_of("log_psms") == "psms"
        assert new.links.link("psms", "log_psms").is_one_to_one
        assert new.history[-1].action == "add_transformed_assay"
        assert new.rows_related_to("psms", "psm4", "ancestor") == {"log_psms": ["psm4"]}

    def test_add_transformed_assay_wrong_shape(self, psm_container: MsContainer) -> None:
        with pytest.raises(ShapeMismatchError):
            psm_container.add_transformed_assay("psms", "bad", np.zeros((2, 2)))

    def test_select_samples(self, linked_container: MsContainer) -> None:
        sub = linked_container.select_samples(["S3", "S1"])
        assert sub.sample_ids.to_list() == ["S3", "S1"]
        for name in sub:
            assert sub[name].sample_ids.to_list() == ["S3", "S1"]
        assert sub.state == ContainerState.FILTERED

    def test_select_unknown_sample(self, psm_container: MsContainer) -> None:
        with pytest.raises(NotFoundError):
            psm_container.select_samples(["S7"])

    def test_log_operation(self, psm_container: MsContainer) -> None:
        new = psm_container.log_operation("custom", {"k": 1}, description="note")
        assert len(new.history) == len(psm_container.history) + 1
        assert new.history[-1].params == {"k": 1}


class TestRemoveAssay:
    """Test the removal policy for assays with derived assays."""

    def test_remove_leaf(self, linked_container: MsContainer) -> None:
        new = linked_container.remove_assay("proteins")
        assert new.names == ["psms", "peptides"]
        assert len(new.links) == 1

    def test_remove_with_derived_assays_rejected(self, linked_container: MsContainer) -> None:
        with pytest.raises(DependentAssayError) as exc_info:
            linked_container.remove_assay("peptides")
        assert exc_info.value.dependents == ["proteins"]
        assert linked_container.names == ["psms", "peptides", "proteins"]

    def test_remove_cascade(self, linked_container: MsContainer) -> None:
        new = linked_container.remove_assay("psms", cascade=True)
        assert new.names == []
        assert len(new.links) == 0
        assert new.history[-1].params["removed"] == ["psms", "peptides", "proteins"]

    def test_remove_unknown(self, linked_container: MsContainer) -> None:
        with pytest.raises(AssayNotFoundError):
            linked_container.remove_assay("genes")


class TestContainerRowsRelatedTo:
    """Test related-row queries through the container."""

    def test_descendants_of_protein(self, linked_container: MsContainer) -> None:
        related = linked_container.rows_related_to("proteins", "P2", "descendant")
        assert related == {
            "peptides": ["SEQC"],
            "psms": ["psm4", "psm7", "psm8", "psm10"],
        }

    def test_ancestors_of_psm(self, linked_container: MsContainer) -> None:
        related = linked_container.rows_related_to("psms", "psm5", "ancestor")
        assert related == {"peptides": ["SEQB"], "proteins": ["P1"]}

    def test_unknown_row(self, linked_container: MsContainer) -> None:
        with pytest.raises(FeatureNotFoundError, match="P9"):
            linked_container.rows_related_to("proteins", "P9")

    def test_round_trip(self, linked_container: MsContainer) -> None:
        """Every PSM is among the descendants of its peptide and protein."""
        for psm in linked_container["psms"].feature_ids.to_list():
            ancestors = linked_container.rows_related_to("psms", psm, "ancestor")
            for assay_name, ids in ancestors.items():
                for parent in ids:
                    descendants = linked_container.rows_related_to(assay_name, parent)
                    assert psm in descendants["psms"]
