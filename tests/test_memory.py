"""Tests for the in-process graph and the shared stream primitives."""

import random
import threading

import pytest
from pydantic import ValidationError

from killrvideo.exceptions import EntityNotFoundError, InvalidArgumentError
from killrvideo.memory import MemoryGraph
from killrvideo.models import Movie, Person, Rated, Vertex
from killrvideo.predicates import P


class TestVertices:
    def test_create_hydrates_registered_model(self, empty_graph):
        person = empty_graph.create("Person", {"person_id": "p1", "name": "Al"})
        assert isinstance(person, Person)
        assert person.graph_id is not None
        assert empty_graph.vertex(person.graph_id) == person

    def test_none_properties_are_not_stored(self, empty_graph):
        movie = empty_graph.create("Movie", {"title": "Heat", "year": None})
        assert movie.properties == {"title": "Heat"}

    def test_invalid_properties_are_rejected_before_storing(self, empty_graph):
        with pytest.raises(ValidationError):
            empty_graph.create("Person", {"name": "No id"})
        assert len(empty_graph) == 0

    def test_unknown_vertex(self, empty_graph):
        with pytest.raises(EntityNotFoundError):
            empty_graph.vertex(42)

    def test_vertices_by_label_and_properties(self, graph):
        assert len(graph.vertices("Movie")) == 10
        assert [m.title for m in graph.vertices("Movie", year=1995)] == ["Heat", "Casino"]
        assert graph.vertices("Movie", title="Nope") == []
        assert len(graph.vertices()) == 18

    def test_reads_return_fresh_copies(self, graph, elements):
        copy = graph.vertex(elements.heat.graph_id)
        copy.title = "Changed"
        assert graph.vertex(elements.heat.graph_id).title == "Heat"


class TestEdges:
    def test_create_edge(self, empty_graph):
        user = empty_graph.create("User", {"user_id": "u1"})
        movie = empty_graph.create("Movie", {"title": "Heat"})
        rated = empty_graph.create_edge("Rated", user, movie, {"rating": 9})
        assert isinstance(rated, Rated)
        assert (rated.start_id, rated.end_id) == (user.graph_id, movie.graph_id)
        assert empty_graph.out_vertex(rated) == user
        assert empty_graph.in_vertex(rated) == movie

    def test_invalid_rating_is_rejected(self, empty_graph):
        user = empty_graph.create("User", {"user_id": "u1"})
        movie = empty_graph.create("Movie", {"title": "Heat"})
        with pytest.raises(ValidationError):
            empty_graph.create_edge("Rated", user, movie, {"rating": 11})
        assert empty_graph.edges() == []

    def test_unsaved_vertex(self, empty_graph):
        movie = empty_graph.create("Movie", {"title": "Heat"})
        with pytest.raises(EntityNotFoundError):
            empty_graph.create_edge("Actor", movie, Person(person_id="p1"))

    def test_adjacency_keeps_creation_order(self, graph, elements):
        actors = graph.traverse_out(elements.heat, "Actor")
        assert [p.person_id for p in actors] == ["p1", "p2"]
        movies = graph.traverse_in(elements.de_niro, "Actor")
        assert [m.title for m in movies] == ["Heat", "Ronin", "Casino", "Righteous Kill"]

    def test_label_filter(self, graph, elements):
        assert len(graph.in_edges(elements.heat)) == 4
        assert graph.in_edges(elements.heat, "Actor") == []
        assert len(graph.out_edges(elements.heat, "Actor")) == 2

    def test_traversal_from_unsaved_vertex(self, graph):
        with pytest.raises(EntityNotFoundError):
            graph.out_edges(Movie(title="Ghost"))


class TestUpsertPrimitives:
    def test_lookup_or_none(self, graph, elements):
        assert graph.lookup_or_none("Person", "person_id", "p2") == elements.pacino
        assert graph.lookup_or_none("Person", "person_id", "p99") is None

    def test_lookup_warns_on_duplicates(self, empty_graph, caplog):
        empty_graph.create("Person", {"person_id": "p1"})
        empty_graph.create("Person", {"person_id": "p1"})
        with caplog.at_level("WARNING", logger="killrvideo.memory"):
            assert empty_graph.lookup_or_none("Person", "person_id", "p1") is not None
        assert "Found 2 Person vertices" in caplog.text

    def test_set_property(self, graph, elements):
        updated = graph.set_property(elements.reno, "name", "Jean Reno Jr.")
        assert updated.name == "Jean Reno Jr."
        assert graph.vertex(elements.reno.graph_id).name == "Jean Reno Jr."

    def test_set_property_to_none_removes_it(self, graph, elements):
        updated = graph.set_property(elements.heat, "year", None)
        assert updated.year is None
        assert "year" not in graph.vertex(elements.heat.graph_id).properties

    def test_set_property_is_validated(self, graph):
        edge = graph.edges("Rated")[0]
        with pytest.raises(ValidationError):
            graph.set_property(edge, "rating", 12)
        assert graph.edges("Rated")[0].rating == 9

    def test_set_property_on_unknown_element(self, empty_graph):
        with pytest.raises(EntityNotFoundError):
            empty_graph.set_property(Movie(title="Ghost"), "year", 2000)

    def test_locked_is_reentrant(self, empty_graph):
        with empty_graph.locked("Person:p1"):
            with empty_graph.locked("Person:p1"):
                empty_graph.create("Person", {"person_id": "p1"})
        assert len(empty_graph) == 1

    def test_key_locks_are_dropped_after_use(self, empty_graph):
        with empty_graph.locked("Person:p1"):
            with empty_graph.locked("Person:p1"):
                assert list(empty_graph._key_locks) == ["Person:p1"]
            assert list(empty_graph._key_locks) == ["Person:p1"]
        assert empty_graph._key_locks == {}

    def test_key_lock_is_dropped_on_error(self, empty_graph):
        with pytest.raises(RuntimeError):
            with empty_graph.locked("Person:p1"):
                raise RuntimeError("boom")
        assert empty_graph._key_locks == {}

    def test_locked_excludes_other_threads(self, empty_graph):
        inside = threading.Event()
        release = threading.Event()
        acquired = []

        def holder():
            with empty_graph.locked("k"):
                inside.set()
                release.wait(5)

        def contender():
            with empty_graph.locked("k"):
                acquired.append(release.is_set())

        first = threading.Thread(target=holder)
        first.start()
        inside.wait(5)
        second = threading.Thread(target=contender)
        second.start()
        second.join(0.2)
        release.set()
        first.join()
        second.join()
        assert acquired == [True]
        assert empty_graph._key_locks == {}


class TestStreamPrimitives:
    def test_filter(self, graph):
        movies = graph.filter(graph.vertices("Movie"), "year", P.lt(1980))
        assert {m.title for m in movies} == {"Alien", "Jaws"}

    def test_has_label(self, graph):
        assert len(graph.has_label(graph.vertices(), "Person", "User")) == 8

    def test_sample_keeps_stream_order(self, empty_graph):
        picked = empty_graph.sample(range(10), 4, random.Random(1))
        assert len(picked) == 4
        assert picked == sorted(picked)

    def test_sample_smaller_stream(self, empty_graph):
        assert empty_graph.sample([1, 2], 5, random.Random(1)) == [1, 2]

    def test_group_count_keeps_first_seen_order(self, empty_graph):
        assert list(empty_graph.group_count(["b", "a", "b"]).items()) == [("b", 2), ("a", 1)]

    def test_group_count_by_property(self, graph):
        assert graph.group_count(graph.edges("Rated"), "rating")[9] == 2

    def test_sort_is_stable(self, empty_graph):
        ranked = empty_graph.sort({"x": 1, "y": 2, "z": 1}, "values", descending=True)
        assert list(ranked) == ["y", "x", "z"]

    def test_sort_rejects_unknown_order(self, empty_graph):
        with pytest.raises(InvalidArgumentError):
            empty_graph.sort({}, "rating")

    def test_limit(self, empty_graph):
        assert empty_graph.limit(iter(range(100)), 3) == [0, 1, 2]
        assert empty_graph.limit([1], 0) == []

    def test_exclude(self, graph, elements):
        movies = graph.vertices("Movie")
        remaining = graph.exclude(movies, [graph.vertex(elements.heat.graph_id)])
        assert len(remaining) == 9
        assert elements.heat not in remaining

    def test_plain_vertex_for_unknown_label(self, empty_graph):
        studio = empty_graph.create("Studio", {"name": "Warner"})
        assert type(studio) is Vertex
        assert studio.label == "Studio"
