"""The graph capability: primitive operations every traversal is composed from."""

from __future__ import annotations

import itertools
import random
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import AbstractContextManager
from typing import Any, Hashable, Iterable

from killrvideo.exceptions import InvalidArgumentError
from killrvideo.models.base import GraphElement
from killrvideo.models.edge import Edge
from killrvideo.models.vertex import Vertex
from killrvideo.predicates import as_predicate


class GraphCapability(ABC):
    """Primitive graph operations consumed by the traversal engine.

    Backends implement navigation, lookup and mutation against their store.
    The stream primitives (filtering, sampling, grouping, ranking and set
    exclusion) work on already-hydrated elements and are shared by all backends.
    Nothing here caches graph data: every navigation call re-reads the store.
    """

    # === Start ===

    @abstractmethod
    def vertex(self, graph_id: int) -> Vertex:
        """Return the vertex with the given id or raise EntityNotFoundError."""

    @abstractmethod
    def vertices(self, label: str | None = None, **properties: Any) -> list[Vertex]:
        """Return vertices, optionally restricted by label and property equality."""

    @abstractmethod
    def edges(self, label: str | None = None) -> list[Edge]:
        """Return edges, optionally restricted by label."""

    # === Navigation ===

    @abstractmethod
    def out_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        """Edges leaving ``vertex``."""

    @abstractmethod
    def in_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        """Edges entering ``vertex``."""

    def out_vertex(self, edge: Edge) -> Vertex:
        """The vertex an edge leaves."""
        return self.vertex(edge.start_id)

    def in_vertex(self, edge: Edge) -> Vertex:
        """The vertex an edge enters."""
        return self.vertex(edge.end_id)

    def traverse_out(self, vertex: Vertex, label: str | None = None) -> list[Vertex]:
        return [self.in_vertex(e) for e in self.out_edges(vertex, label)]

    def traverse_in(self, vertex: Vertex, label: str | None = None) -> list[Vertex]:
        return [self.out_vertex(e) for e in self.in_edges(vertex, label)]

    # === Upsert primitives ===

    @abstractmethod
    def lookup_or_none(self, label: str, key: str, value: Any) -> Vertex | None:
        """Return one vertex with ``label`` whose ``key`` equals ``value``, or None."""

    @abstractmethod
    def create(self, label: str, properties: dict[str, Any] | None = None) -> Vertex:
        """Create and return a new vertex."""

    @abstractmethod
    def set_property(self, element: GraphElement, key: str, value: Any) -> GraphElement:
        """Overwrite one property and return the refreshed element."""

    @abstractmethod
    def create_edge(
        self,
        label: str,
        from_v: Vertex,
        to_v: Vertex,
        properties: dict[str, Any] | None = None,
    ) -> Edge:
        """Create and return a directed edge ``from_v -> to_v``."""

    @abstractmethod
    def locked(self, key: str) -> AbstractContextManager:
        """Make everything run inside the block exclusive with respect to ``key``.

        Must be re-entrant for the calling thread.
        """

    # === Stream primitives ===

    def filter(self, elements: Iterable[GraphElement], key: str, predicate: Any) -> list:
        pred = as_predicate(predicate)
        return [e for e in elements if pred.test(e.get(key))]

    def has_label(self, elements: Iterable[GraphElement], *labels: str) -> list:
        wanted = set(labels)
        return [e for e in elements if e.label in wanted]

    def sample(self, elements: Iterable[Any], n: int, rng: random.Random) -> list:
        """Pick at most ``n`` elements at random, keeping their stream order."""
        items = list(elements)
        if len(items) <= n:
            return items
        picked = sorted(rng.sample(range(len(items)), n))
        return [items[i] for i in picked]

    def group_count(self, elements: Iterable[Any], by: str | None = None) -> dict[Hashable, int]:
        """Count elements by identity, or by the value of property ``by``.

        Keys keep the order in which they were first seen.
        """
        if by is None:
            return dict(Counter(elements))
        return dict(Counter(e.get(by) for e in elements))

    def sort(self, mapping: dict, by: str = "values", descending: bool = False) -> dict:
        """Order a mapping by its values or keys. Stable, so ties keep their order."""
        if by not in ("keys", "values"):
            raise InvalidArgumentError(f"sort by must be 'keys' or 'values', not {by!r}")
        index = 1 if by == "values" else 0
        ordered = sorted(mapping.items(), key=lambda kv: kv[index], reverse=descending)
        return dict(ordered)

    def limit(self, elements: Iterable[Any], n: int) -> list:
        """The first ``n`` elements; nothing past them is pulled from the stream."""
        return list(itertools.islice(elements, n))

    def exclude(self, elements: Iterable[Any], members: Iterable[Any]) -> list:
        """Drop elements present in ``members`` (exact identity match)."""
        banned = set(members)
        return [e for e in elements if e not in banned]
