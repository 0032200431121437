"""In-process property graph implementing the graph capability."""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from killrvideo.capability import GraphCapability
from killrvideo.exceptions import EntityNotFoundError
from killrvideo.models.base import GraphElement
from killrvideo.models.edge import Edge
from killrvideo.models.vertex import Vertex
from killrvideo.utils.serialization import dict_to_element

log = logging.getLogger(__name__)


class MemoryGraph(GraphCapability):
    """Dict-backed property graph.

    Records are stored as plain dicts and every read hydrates fresh element
    models, so callers never share mutable state with the store. All access
    is serialized by one re-entrant lock; ``locked(key)`` hands out a separate
    re-entrant lock per key for check-then-act sequences, kept only while a
    thread holds or waits for it.

    Usage:
        graph = MemoryGraph()
        alice = graph.create("Person", {"person_id": "p1", "name": "Alice"})
        movie = graph.create("Movie", {"title": "Heat"})
        graph.create_edge("Actor", movie, alice)
    """

    def __init__(self, name: str = "memory"):
        self._name = name
        self._ids = itertools.count(1)
        self._mutex = threading.RLock()
        # key -> [lock, holders and waiters]; dropped when the count reaches zero
        self._key_locks: dict[str, list] = {}
        self._vertices: dict[int, dict] = {}
        self._edges: dict[int, dict] = {}
        self._out: dict[int, list[int]] = {}
        self._in: dict[int, list[int]] = {}

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._vertices)

    # === Hydration ===

    def _hydrate(self, graph_id: int) -> GraphElement:
        if graph_id in self._vertices:
            record = self._vertices[graph_id]
        else:
            record = self._edges[graph_id]
        return dict_to_element(
            {**record, "properties": dict(record["properties"]), "graph_id": graph_id}
        )

    # === Start ===

    def vertex(self, graph_id: int) -> Vertex:
        with self._mutex:
            if graph_id not in self._vertices:
                raise EntityNotFoundError(f"No vertex with id {graph_id}")
            return self._hydrate(graph_id)

    def vertices(self, label: str | None = None, **properties: Any) -> list[Vertex]:
        with self._mutex:
            return [
                self._hydrate(vid)
                for vid, record in self._vertices.items()
                if (label is None or record["label"] == label)
                and all(record["properties"].get(k) == v for k, v in properties.items())
            ]

    def edges(self, label: str | None = None) -> list[Edge]:
        with self._mutex:
            return [
                self._hydrate(eid)
                for eid, record in self._edges.items()
                if label is None or record["label"] == label
            ]

    # === Navigation ===

    def out_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        return self._adjacent(self._out, vertex, label)

    def in_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        return self._adjacent(self._in, vertex, label)

    def _adjacent(self, index: dict[int, list[int]], vertex: Vertex, label: str | None) -> list[Edge]:
        if vertex.graph_id is None:
            raise EntityNotFoundError("Cannot traverse from a vertex without graph_id")
        with self._mutex:
            return [
                self._hydrate(eid)
                for eid in index.get(vertex.graph_id, [])
                if label is None or self._edges[eid]["label"] == label
            ]

    # === Upsert primitives ===

    def lookup_or_none(self, label: str, key: str, value: Any) -> Vertex | None:
        matches = self.vertices(label, **{key: value})
        if len(matches) > 1:
            log.warning("Found %d %s vertices with %s=%r", len(matches), label, key, value)
        return matches[0] if matches else None

    def create(self, label: str, properties: dict[str, Any] | None = None) -> Vertex:
        props = {k: v for k, v in (properties or {}).items() if v is not None}
        with self._mutex:
            graph_id = next(self._ids)
            record = {"label": label, "properties": props}
            # Validate against the label's model before anything is stored
            vertex = dict_to_element({**record, "graph_id": graph_id})
            self._vertices[graph_id] = record
            self._out[graph_id] = []
            self._in[graph_id] = []
        log.debug("Created vertex %s", vertex)
        return vertex

    def set_property(self, element: GraphElement, key: str, value: Any) -> GraphElement:
        if element.graph_id is None:
            raise EntityNotFoundError("Cannot update element without graph_id")
        with self._mutex:
            store = self._vertices if element.graph_id in self._vertices else self._edges
            record = store.get(element.graph_id)
            if record is None:
                raise EntityNotFoundError(f"No element with id {element.graph_id}")
            props = dict(record["properties"])
            if value is None:
                props.pop(key, None)
            else:
                props[key] = value
            updated = dict_to_element(
                {**record, "properties": props, "graph_id": element.graph_id}
            )
            record["properties"] = props
        log.debug("Set %s=%r on %s[%s]", key, value, updated.label, updated.graph_id)
        return updated

    def create_edge(
        self,
        label: str,
        from_v: Vertex,
        to_v: Vertex,
        properties: dict[str, Any] | None = None,
    ) -> Edge:
        if from_v.graph_id is None or to_v.graph_id is None:
            raise EntityNotFoundError(
                "Both vertices must be persisted before creating an edge"
            )
        props = {k: v for k, v in (properties or {}).items() if v is not None}
        with self._mutex:
            for vid in (from_v.graph_id, to_v.graph_id):
                if vid not in self._vertices:
                    raise EntityNotFoundError(f"No vertex with id {vid}")
            graph_id = next(self._ids)
            record = {
                "label": label,
                "start_id": from_v.graph_id,
                "end_id": to_v.graph_id,
                "properties": props,
            }
            edge = dict_to_element({**record, "graph_id": graph_id})
            self._edges[graph_id] = record
            self._out[from_v.graph_id].append(graph_id)
            self._in[to_v.graph_id].append(graph_id)
        log.debug("Created edge %s (%s -> %s)", edge, from_v.graph_id, to_v.graph_id)
        return edge

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        with self._mutex:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._mutex:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]
