from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import polars as pl

from msfeatures.core.exceptions import (
    AssayNotFoundError,
    DependentAssayError,
    DuplicateNameError,
    FeatureNotFoundError,
    NotFoundError,
    ShapeMismatchError,
    ValidationError,
)
from msfeatures.core.graph import RelationshipGraph
from msfeatures.core.structures import AggregationLink, Assay, ProvenanceLog
from msfeatures.core.types import AssayKey, Direction

if TYPE_CHECKING:
    from msfeatures.core.filtering import FilterCriteria

logger = logging.getLogger(__name__)


class ContainerState(Enum):
    """Lifecycle state of a container."""

    EMPTY = "empty"  # no assays
    POPULATED = "populated"  # assays, no links
    LINKED = "linked"  # at least one link
    FILTERED = "filtered"  # row-reduced copy, links kept


class MsContainer:
    """
    Top-level container: assays by name, shared sample metadata, feature
    relationships and provenance.

    Containers are copy-on-write. Every method that changes content returns a
    new container; unchanged assays and links are shared by reference, and
    the original container stays valid.

    Parameters
    ----------
    assays : Mapping[str, Assay], optional
        Assays in container order.
    obs : pl.DataFrame, optional
        Shared sample metadata. Every sample of every assay must appear in it.
        When omitted it is the first-seen union of the assays' sample tables.
    links : RelationshipGraph | Iterable[AggregationLink], optional
        Feature relationships between the assays.
    history : Iterable[ProvenanceLog], optional
        Provenance log.
    sample_id_col : str, default "_index"
        Column of ``obs`` holding unique sample identifiers.
    """

    def __init__(
        self,
        assays: Mapping[str, Assay] | None = None,
        obs: pl.DataFrame | None = None,
        links: RelationshipGraph | Iterable[AggregationLink] | None = None,
        history: Iterable[ProvenanceLog] | None = None,
        sample_id_col: str = "_index",
        *,
        filtered: bool = False,
    ):
        self.sample_id_col = sample_id_col
        self._assays: dict[str, Assay] = dict(assays) if assays is not None else {}
        for name, assay in self._assays.items():
            if not isinstance(assay, Assay):
                raise ValidationError(
                    f"Assay '{name}' must be an Assay, got {type(assay).__name__}"
                )

        if obs is None:
            obs = pl.DataFrame({sample_id_col: []}, schema={sample_id_col: pl.Utf8})
            for assay in self._assays.values():
                obs = self._extend_obs(obs, assay)
        if sample_id_col not in obs.columns:
            raise ValidationError(f"Sample ID column '{sample_id_col}' not found in obs.")
        if obs[sample_id_col].n_unique() != obs.height:
            raise ValidationError(f"Sample ID column '{sample_id_col}' is not unique.")
        if obs[sample_id_col].dtype != pl.Utf8:
            obs = obs.with_columns(pl.col(sample_id_col).cast(pl.Utf8))

        self._obs: pl.DataFrame = obs
        self._graph = links if isinstance(links, RelationshipGraph) else RelationshipGraph(links)
        self._history: tuple[ProvenanceLog, ...] = tuple(history) if history is not None else ()
        self._filtered = filtered

        self._validate()

    def _validate(self) -> None:
        """
        Check that every assay sample is described in obs and every link
        connects registered assays.
        """
        known = set(self._obs[self.sample_id_col].to_list())
        for name, assay in self._assays.items():
            unknown = [s for s in assay.sample_ids.to_list() if s not in known]
            if unknown:
                raise ValidationError(
                    f"Samples {unknown} of assay '{name}' not found in container obs."
                )
        self._graph.validate(self._assays)

    def _extend_obs(self, obs: pl.DataFrame, assay: Assay) -> pl.DataFrame:
        """Append the samples of ``assay`` that ``obs`` does not describe yet."""
        known = set(obs[self.sample_id_col].to_list())
        new_rows = assay.obs.rename({assay.sample_id_col: self.sample_id_col}).filter(
            ~pl.col(self.sample_id_col).is_in(list(known))
        )
        if new_rows.height == 0:
            return obs
        return pl.concat([obs, new_rows], how="diagonal_relaxed")

    def _evolve(self, **changes: Any) -> MsContainer:
        params: dict[str, Any] = {
            "assays": self._assays,
            "obs": self._obs,
            "links": self._graph,
            "history": self._history,
            "sample_id_col": self.sample_id_col,
            "filtered": self._filtered,
        }
        params.update(changes)
        return MsContainer(**params)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def assays(self) -> Mapping[str, Assay]:
        """Read-only view of the assays, in container order."""
        return MappingProxyType(self._assays)

    @property
    def names(self) -> list[str]:
        return list(self._assays)

    @property
    def obs(self) -> pl.DataFrame:
        return self._obs

    @property
    def n_samples(self) -> int:
        return self._obs.height

    @property
    def sample_ids(self) -> pl.Series:
        return self._obs[self.sample_id_col]

    @property
    def links(self) -> RelationshipGraph:
        return self._graph

    @property
    def history(self) -> list[ProvenanceLog]:
        return list(self._history)

    @property
    def state(self) -> ContainerState:
        if not self._assays:
            return ContainerState.EMPTY
        if self._filtered:
            return ContainerState.FILTERED
        if len(self._graph):
            return ContainerState.LINKED
        return ContainerState.POPULATED

    def __len__(self) -> int:
        return len(self._assays)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self._assays

    def __getitem__(self, key: AssayKey) -> Assay:
        return self.get_assay(key)

    def __repr__(self) -> str:
        assays_desc = ", ".join(f"{k}({v.n_features})" for k, v in self._assays.items())
        return (
            f"<MsContainer n_samples={self.n_samples}, assays=[{assays_desc}], "
            f"state={self.state.value}>"
        )

    def get_assay(self, key: AssayKey) -> Assay:
        """
        Look up an assay by name or by position in container order.

        Raises
        ------
        AssayNotFoundError
            If no assay has that name or the index is out of range.
        """
        if isinstance(key, bool):
            raise AssayNotFoundError(key, self.names)
        if isinstance(key, int):
            names = self.names
            if -len(names) <= key < len(names):
                return self._assays[names[key]]
            raise AssayNotFoundError(key, names)
        if key not in self._assays:
            raise AssayNotFoundError(key, self.names)
        return self._assays[key]

    def col_data(self, assay_name: str) -> pl.DataFrame:
        """Shared sample metadata for the samples of one assay, in assay order."""
        assay = self.get_assay(assay_name)
        positions = {sid: i for i, sid in enumerate(self.sample_ids.to_list())}
        return self._obs[[positions[s] for s in assay.sample_ids.to_list()], :]

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def add_assay(
        self, name: str, assay: Assay, link: AggregationLink | None = None
    ) -> MsContainer:
        """
        Register a new assay.

        Parameters
        ----------
        name : str
            Assay name (e.g. 'psms', 'peptides', 'proteins').
        assay : Assay
            Assay object. New sample ids are appended to ``obs``.
        link : AggregationLink, optional
            Relationship from an existing assay to the new one.

        Returns
        -------
        MsContainer
            New container holding the assay.

        Raises
        ------
        DuplicateNameError
            If ``name`` is already registered.
        """
        if name in self._assays:
            raise DuplicateNameError(name)
        if not isinstance(assay, Assay):
            raise ValidationError(f"Expected an Assay, got {type(assay).__name__}")

        assays = {**self._assays, name: assay}
        changes: dict[str, Any] = {
            "assays": assays,
            "obs": self._extend_obs(self._obs, assay),
        }
        if link is not None:
            if link.target_assay != name:
                raise ValidationError(
                    f"Link targets '{link.target_assay}', expected '{name}'."
                )
            changes["links"] = self._graph.add_link(link)
            changes["filtered"] = False
        logger.debug("Adding assay '%s' with %d features", name, assay.n_features)
        return self._evolve(**changes)

    def replace_assay(self, name: str, assay: Assay) -> MsContainer:
        """
        Replace an assay's content while keeping its name and links.

        The new assay must have the same feature ids, in the same order.
        """
        old = self.get_assay(name)
        if not old.feature_ids.equals(assay.feature_ids):
            raise ShapeMismatchError(
                f"Replacement for assay '{name}' must keep its {old.n_features} feature ids."
            )
        return self._evolve(
            assays={**self._assays, name: assay},
            obs=self._extend_obs(self._obs, assay),
        )

    def remove_assay(self, name: str, cascade: bool = False) -> MsContainer:
        """
        Remove an assay and the links touching it.

        An assay from which other assays were derived (e.g. peptides that
        were aggregated into proteins) is only removed with ``cascade=True``;
        every derived assay is then removed as well.

        Raises
        ------
        AssayNotFoundError
            If ``name`` is not registered.
        DependentAssayError
            If derived assays exist and ``cascade`` is False.
        """
        self.get_assay(name)
        dependents = self._graph.derived_assays(name, recursive=True)
        if dependents and not cascade:
            raise DependentAssayError(name, dependents)

        removed = [name, *dependents]
        assays = {k: v for k, v in self._assays.items() if k not in removed}
        logger.info("Removing assay(s) %s", removed)
        return self._evolve(
            assays=assays, links=self._graph.without_assays(removed)
        ).log_operation(
            action="remove_assay",
            params={"assay": name, "cascade": cascade, "removed": removed},
        )

    def with_assays(self, assays: Mapping[str, Assay], *, filtered: bool = True) -> MsContainer:
        """
        Return a container holding ``assays``, a subset of the current names.

        Links touching assays that are no longer present are dropped.
        """
        unknown = [k for k in assays if k not in self._assays]
        if unknown:
            raise AssayNotFoundError(unknown[0], self.names)
        dropped = [k for k in self._assays if k not in assays]
        ordered = {k: assays[k] for k in self._assays if k in assays}
        return self._evolve(
            assays=ordered,
            links=self._graph.without_assays(dropped) if dropped else self._graph,
            filtered=filtered,
        )

    def add_transformed_assay(
        self,
        source: str,
        name: str,
        X: Any,
        *,
        action: str = "add_transformed_assay",
        params: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> MsContainer:
        """
        Store a matrix computed from ``source`` as a new assay.

        The new assay reuses the source metadata and is linked to it
        one-to-one, so related-row queries traverse the transformation.

        Raises
        ------
        ShapeMismatchError
            If ``X`` does not have the source assay's shape.
        """
        source_assay = self.get_assay(source)
        if name in self._assays:
            raise DuplicateNameError(name)
        assay = source_assay.with_X(X)
        feature_ids = assay.feature_ids.to_list()
        graph = self._graph.add_one_to_one_link(source, name, feature_ids)
        container = self._evolve(
            assays={**self._assays, name: assay}, links=graph, filtered=False
        )
        return container.log_operation(
            action=action,
            params={"source": source, "name": name, **(params or {})},
            description=description,
        )

    def select_samples(self, sample_ids: Iterable[str]) -> MsContainer:
        """
        Keep only the given samples, in the given order, in every assay.

        Raises
        ------
        NotFoundError
            If a sample id is not described in ``obs``.
        """
        wanted = list(sample_ids)
        positions = {sid: i for i, sid in enumerate(self.sample_ids.to_list())}
        missing = [s for s in wanted if s not in positions]
        if missing:
            raise NotFoundError(f"Sample IDs not found: {missing}")

        assays = {}
        for name, assay in self._assays.items():
            own = {sid: i for i, sid in enumerate(assay.sample_ids.to_list())}
            assays[name] = assay.select_samples([own[s] for s in wanted if s in own])
        obs = self._obs[[positions[s] for s in wanted], :] if wanted else self._obs.clear()
        return self._evolve(assays=assays, obs=obs, filtered=True).log_operation(
            action="select_samples", params={"samples": wanted}
        )

    def log_operation(
        self,
        action: str,
        params: dict[str, Any],
        description: str | None = None,
        software_version: str | None = None,
    ) -> MsContainer:
        """
        Return a container whose history ends with a new provenance entry.
        """
        log = ProvenanceLog(
            timestamp=datetime.now().isoformat(),
            action=action,
            params=params,
            software_version=software_version,
            description=description,
        )
        return self._evolve(history=(*self._history, log))

    # ------------------------------------------------------------------
    # Relationship queries and filtering
    # ------------------------------------------------------------------

    def rows_related_to(
        self, assay_name: str, row_id: str, direction: Direction = "descendant"
    ) -> dict[str, list[str]]:
        """
        Rows of other assays related to ``row_id`` of ``assay_name``.

        See :meth:`RelationshipGraph.rows_related_to`. Rows removed by
        filtering are left out of the result.

        Raises
        ------
        AssayNotFoundError
            If ``assay_name`` is not registered.
        FeatureNotFoundError
            If ``row_id`` is not a feature of that assay.
        """
        assay = self.get_assay(assay_name)
        if row_id not in assay.feature_index:
            raise FeatureNotFoundError(row_id, assay_name)
        return self._graph.rows_related_to(assay_name, row_id, direction, self._assays)

    def filter_features(
        self,
        predicate: pl.Expr | FilterCriteria,
        assays: Iterable[str] | None = None,
    ) -> MsContainer:
        """Shortcut for :func:`msfeatures.core.filtering.filter_features`."""
        from msfeatures.core.filtering import filter_features

        return filter_features(self, predicate, assays=assays)

