"""Traversal source: spawns executable KillrVideo traversals over a graph."""

from __future__ import annotations

import random
from typing import Any, TYPE_CHECKING

from killrvideo.predicates import P
from killrvideo.schema import (
    KEY_PERSON_ID,
    KEY_TITLE,
    KEY_USER_ID,
    VERTEX_MOVIE,
    VERTEX_PERSON,
    VERTEX_USER,
)
from killrvideo.traversal.builder import TraversalContext
from killrvideo.traversal.dsl import ACTOR_SAMPLE_SIZE, KillrVideoTraversal

if TYPE_CHECKING:
    from killrvideo.capability import GraphCapability
    from killrvideo.config import Settings


class KillrVideoTraversalSource:
    """Start point for traversals over one graph.

    Every execution gets a fresh context: empty aggregates and a random
    generator seeded with ``seed`` (or ``settings.sample_seed``). A seeded
    source therefore returns the same sampled results on every run; an
    unseeded one does not.

    Usage:
        g = KillrVideoTraversalSource(MemoryGraph(), seed=42)
        g.users("u1").recommend(5, 8).to_list()
    """

    def __init__(
        self,
        graph: "GraphCapability",
        seed: int | None = None,
        settings: "Settings | None" = None,
    ):
        self._graph = graph
        if seed is None and settings is not None:
            seed = settings.sample_seed
        self._seed = seed
        self._sample_size = settings.sample_size if settings is not None else ACTOR_SAMPLE_SIZE

    @property
    def graph(self) -> "GraphCapability":
        return self._graph

    @property
    def seed(self) -> int | None:
        return self._seed

    @property
    def sample_size(self) -> int:
        """Actors sampled per movie by recommend() when no size is given."""
        return self._sample_size

    def new_context(self) -> TraversalContext:
        return TraversalContext(self._graph, random.Random(self._seed))

    def traversal(self) -> KillrVideoTraversal:
        """An empty traversal bound to this source."""
        return KillrVideoTraversal(source=self)

    # === Start steps ===

    def V(self, *graph_ids: int) -> KillrVideoTraversal:
        return self.traversal().V(*graph_ids)

    def E(self, label: str | None = None) -> KillrVideoTraversal:
        return self.traversal().E(label)

    def inject(self, *objs: Any) -> KillrVideoTraversal:
        return self.traversal().inject(*objs)

    def movies(self, *titles: str) -> KillrVideoTraversal:
        """Movies, or the movies with the given titles."""
        return self._by_key(VERTEX_MOVIE, KEY_TITLE, titles)

    def users(self, *user_ids: str) -> KillrVideoTraversal:
        return self._by_key(VERTEX_USER, KEY_USER_ID, user_ids)

    def persons(self, *person_ids: str) -> KillrVideoTraversal:
        return self._by_key(VERTEX_PERSON, KEY_PERSON_ID, person_ids)

    def add_v(self, label: str, **properties: Any) -> KillrVideoTraversal:
        return self.traversal().inject(None).add_v(label, **properties)

    def ensure_person(self, person_id: str, name: str) -> KillrVideoTraversal:
        return self.traversal().inject(None).ensure_person(person_id, name)

    def _by_key(self, label: str, key: str, values: tuple) -> KillrVideoTraversal:
        traversal = self.traversal()
        if not values:
            return traversal.has_vertices(label)
        if len(values) == 1:
            return traversal.has_vertices(label, **{key: values[0]})
        return traversal.has_vertices(label).has(key, P.within(*values))
