"""Relationship graph between assays.

Links are recorded when an assay is derived from another one (aggregation or
transformation). Each link maps rows of the source assay to rows of the
target assay. The graph is a forest at the assay level: an assay has at most
one source, but may have several derived assays.

Row-level traversal uses proteomics terminology:

- ``"ancestor"`` follows links from source to target (PSM -> peptide ->
  protein), towards coarser features.
- ``"descendant"`` follows links from target to source (protein -> peptides
  -> PSMs), towards finer features.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator, Mapping

import numpy as np
import polars as pl

from msfeatures.core.exceptions import (
    MissingColumnError,
    NotFoundError,
    ValidationError,
)
from msfeatures.core.structures import AggregationLink, Assay
from msfeatures.core.types import Direction

logger = logging.getLogger(__name__)

_DIRECTIONS = ("ancestor", "descendant")


def group_features(assay: Assay, group_col: str) -> list[tuple[object, np.ndarray]]:
    """
    Group the rows of an assay by the values of a feature metadata column.

    Groups are returned in first-encountered order of their value along the
    rows of the assay; row positions inside a group keep their source order.
    Rows with a null grouping value belong to no group.

    Parameters
    ----------
    assay : Assay
        Assay whose rows are grouped.
    group_col : str
        Column of ``assay.var`` holding the grouping variable.

    Returns
    -------
    list[tuple[object, np.ndarray]]
        ``(group value, row positions)`` pairs.

    Raises
    ------
    MissingColumnError
        If ``group_col`` is not a column of ``assay.var``.
    """
    if group_col not in assay.var.columns:
        raise MissingColumnError(group_col, "feature metadata")

    indexed = assay.var.select(pl.col(group_col)).with_row_index("__row")
    n_null = indexed[group_col].null_count()
    if n_null:
        logger.warning(
            "%d row(s) with missing '%s' are not assigned to any group", n_null, group_col
        )
        indexed = indexed.filter(pl.col(group_col).is_not_null())

    grouped = indexed.group_by(group_col, maintain_order=True).agg(pl.col("__row"))
    return [
        (key, np.asarray(rows, dtype=np.int64))
        for key, rows in grouped.select(group_col, "__row").iter_rows()
    ]


def linkage_from_groups(assay: Assay, groups: list[tuple[object, np.ndarray]]) -> pl.DataFrame:
    """Build the ``source_id`` / ``target_id`` table for grouped rows."""
    feature_ids = assay.feature_ids.to_list()
    source_ids: list[str] = []
    target_ids: list[str] = []
    for key, rows in groups:
        target = str(key)
        for row in rows:
            source_ids.append(feature_ids[row])
            target_ids.append(target)
    return pl.DataFrame(
        {"source_id": source_ids, "target_id": target_ids},
        schema={"source_id": pl.Utf8, "target_id": pl.Utf8},
    )


class RelationshipGraph:
    """
    Ordered collection of :class:`AggregationLink` keyed by assay names.

    Graphs are never modified after construction; :meth:`add_link`,
    :meth:`record_aggregation` and :meth:`without_assays` return new graphs
    sharing the unchanged links.
    """

    def __init__(self, links: Iterable[AggregationLink] | None = None) -> None:
        self._links: dict[tuple[str, str], AggregationLink] = {}
        for link in links or []:
            self._insert(link)

    def _insert(self, link: AggregationLink) -> None:
        key = (link.source_assay, link.target_assay)
        if key in self._links:
            raise ValidationError(
                f"Link from '{link.source_assay}' to '{link.target_assay}' already exists."
            )
        existing = self.source_of(link.target_assay)
        if existing is not None:
            raise ValidationError(
                f"Assay '{link.target_assay}' is already derived from '{existing}'."
            )
        if link.source_assay in self.derived_assays(link.target_assay, recursive=True):
            raise ValidationError(
                f"Link from '{link.source_assay}' to '{link.target_assay}' would create a cycle."
            )
        self._links[key] = link

    @property
    def links(self) -> list[AggregationLink]:
        return list(self._links.values())

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[AggregationLink]:
        return iter(self.links)

    def __contains__(self, key: object) -> bool:
        return key in self._links

    def __repr__(self) -> str:
        edges = ", ".join(f"{s}->{t}" for s, t in self._links)
        return f"<RelationshipGraph [{edges}]>"

    def add_link(self, link: AggregationLink) -> RelationshipGraph:
        """Return a new graph with ``link`` added."""
        graph = RelationshipGraph(self._links.values())
        graph._insert(link)
        return graph

    def record_aggregation(
        self,
        source_name: str,
        source: Assay,
        target_name: str,
        group_col: str,
    ) -> RelationshipGraph:
        """
        Record that ``target_name`` aggregates ``source_name`` by ``group_col``.

        One target row exists per distinct grouping value, named after the
        value, in first-encountered order.

        Raises
        ------
        MissingColumnError
            If ``group_col`` is absent from the source feature metadata.
        """
        groups = group_features(source, group_col)
        link = AggregationLink(
            source_assay=source_name,
            target_assay=target_name,
            linkage=linkage_from_groups(source, groups),
            group_col=group_col,
        )
        return self.add_link(link)

    def add_one_to_one_link(
        self, source_name: str, target_name: str, feature_ids: list[str]
    ) -> RelationshipGraph:
        """Link every feature of ``source_name`` to the same id in ``target_name``."""
        linkage = pl.DataFrame(
            {"source_id": feature_ids, "target_id": feature_ids},
            schema={"source_id": pl.Utf8, "target_id": pl.Utf8},
        )
        return self.add_link(AggregationLink(source_name, target_name, linkage))

    def link(self, source_name: str, target_name: str) -> AggregationLink:
        try:
            return self._links[(source_name, target_name)]
        except KeyError:
            raise NotFoundError(
                f"No link from '{source_name}' to '{target_name}'."
            ) from None

    def source_of(self, assay_name: str) -> str | None:
        """Name of the assay ``assay_name`` was derived from, if any."""
        for source, target in self._links:
            if target == assay_name:
                return source
        return None

    def derived_assays(self, assay_name: str, recursive: bool = False) -> list[str]:
        """Assays derived from ``assay_name``, breadth-first when recursive."""
        result: list[str] = []
        queue = deque([assay_name])
        while queue:
            current = queue.popleft()
            for source, target in self._links:
                if source == current and target not in result:
                    result.append(target)
                    if recursive:
                        queue.append(target)
        return result

    def without_assays(self, names: Iterable[str]) -> RelationshipGraph:
        """Return a new graph without the links touching any of ``names``."""
        dropped = set(names)
        return RelationshipGraph(
            link
            for (source, target), link in self._links.items()
            if source not in dropped and target not in dropped
        )

    def validate(self, assays: Mapping[str, Assay]) -> None:
        """
        Check that every link connects two assays present in ``assays``.
        """
        for source, target in self._links:
            if source not in assays:
                raise ValidationError(f"Link source assay '{source}' not found.")
            if target not in assays:
                raise ValidationError(f"Link target assay '{target}' not found.")

    def rows_related_to(
        self,
        assay_name: str,
        row_id: str,
        direction: Direction,
        assays: Mapping[str, Assay] | None = None,
    ) -> dict[str, list[str]]:
        """
        Rows related to one feature in every other reachable assay.

        Links are followed transitively in ``direction``. When ``assays`` is
        given, ids are ordered by row position in their assay, and rows that
        are no longer present (e.g. removed by filtering) are left out together
        with everything reached only through them. Otherwise ids keep linkage
        order.

        Parameters
        ----------
        assay_name : str
            Assay holding ``row_id``.
        row_id : str
            Feature identifier to start from.
        direction : {"ancestor", "descendant"}
            Towards coarser (``"ancestor"``) or finer (``"descendant"``) assays.
        assays : Mapping[str, Assay], optional
            Current assays used to order and narrow the result.

        Returns
        -------
        dict[str, list[str]]
            Related ids per reachable assay, in breadth-first assay order.
            Lists may be empty.

        Examples
        --------
        >>> graph.rows_related_to("proteins", "P1", "descendant")
        {'peptides': ['pep1', 'pep2'], 'psms': ['psm1', 'psm2', 'psm5']}
        """
        if direction not in _DIRECTIONS:
            raise ValidationError(
                f"Invalid direction '{direction}'. Must be one of {_DIRECTIONS}"
            )

        found: dict[str, list[str]] = {}
        queue: deque[tuple[str, list[str]]] = deque([(assay_name, [row_id])])
        visited = {assay_name}
        while queue:
            current, ids = queue.popleft()
            for (source, target), link in self._links.items():
                if direction == "ancestor" and source == current:
                    nxt, related = target, link.targets_for(ids) if ids else []
                elif direction == "descendant" and target == current:
                    nxt, related = source, link.sources_for(ids) if ids else []
                else:
                    continue
                if nxt in visited:
                    continue
                visited.add(nxt)
                if assays is not None:
                    if nxt not in assays:
                        continue
                    # removed rows break the path to further assays
                    present = assays[nxt].feature_index
                    related = [fid for fid in related if fid in present]
                found[nxt] = related
                queue.append((nxt, related))

        if assays is None:
            return found

        ordered: dict[str, list[str]] = {}
        for name, ids in found.items():
            wanted = set(ids)
            ordered[name] = [fid for fid in assays[name].feature_ids.to_list() if fid in wanted]
        return ordered
