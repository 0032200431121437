"""Shared test fixtures."""

from types import SimpleNamespace

import pytest

from killrvideo.memory import MemoryGraph
from killrvideo.traversal.source import KillrVideoTraversalSource


def build_movie_graph() -> tuple[MemoryGraph, SimpleNamespace]:
    """A small KillrVideo graph.

    Actors (Movie -> Person), created in this order:
        Heat: De Niro, Pacino
        Ronin: De Niro, Reno
        Casino: De Niro
        Righteous Kill: De Niro, Pacino
        Insomnia: Pacino
        Alien: Weaver
        Aliens: Weaver

    Ratings (User -> Movie):
        u1 (25): Heat 9, Jaws 8, Up 7, Alien 5, Cats 3
        u2 (40): Heat 7, Ronin 10
        u3 (17): Heat 2
        u5 (30): Heat 9
    """
    graph = MemoryGraph()
    e = SimpleNamespace()

    for attr, title, year in [
        ("heat", "Heat", 1995),
        ("ronin", "Ronin", 1998),
        ("casino", "Casino", 1995),
        ("righteous_kill", "Righteous Kill", 2008),
        ("insomnia", "Insomnia", 2002),
        ("alien", "Alien", 1979),
        ("aliens", "Aliens", 1986),
        ("jaws", "Jaws", 1975),
        ("up", "Up", 2009),
        ("cats", "Cats", 2019),
    ]:
        setattr(e, attr, graph.create("Movie", {"title": title, "year": year}))

    for attr, person_id, name in [
        ("de_niro", "p1", "Robert De Niro"),
        ("pacino", "p2", "Al Pacino"),
        ("reno", "p3", "Jean Reno"),
        ("weaver", "p4", "Sigourney Weaver"),
    ]:
        setattr(e, attr, graph.create("Person", {"person_id": person_id, "name": name}))

    for movie, person in [
        (e.heat, e.de_niro),
        (e.heat, e.pacino),
        (e.ronin, e.de_niro),
        (e.ronin, e.reno),
        (e.casino, e.de_niro),
        (e.righteous_kill, e.de_niro),
        (e.righteous_kill, e.pacino),
        (e.insomnia, e.pacino),
        (e.alien, e.weaver),
        (e.aliens, e.weaver),
    ]:
        graph.create_edge("Actor", movie, person)

    for attr, user_id, age in [("u1", "u1", 25), ("u2", "u2", 40), ("u3", "u3", 17), ("u5", "u5", 30)]:
        setattr(e, attr, graph.create("User", {"user_id": user_id, "age": age}))

    for user, movie, rating in [
        (e.u1, e.heat, 9),
        (e.u1, e.jaws, 8),
        (e.u1, e.up, 7),
        (e.u1, e.alien, 5),
        (e.u1, e.cats, 3),
        (e.u2, e.heat, 7),
        (e.u2, e.ronin, 10),
        (e.u3, e.heat, 2),
        (e.u5, e.heat, 9),
    ]:
        graph.create_edge("Rated", user, movie, {"rating": rating})

    return graph, e


@pytest.fixture
def movie_graph():
    return build_movie_graph()


@pytest.fixture
def graph(movie_graph):
    return movie_graph[0]


@pytest.fixture
def elements(movie_graph):
    return movie_graph[1]


@pytest.fixture
def g(graph):
    return KillrVideoTraversalSource(graph, seed=42)


@pytest.fixture
def empty_graph():
    return MemoryGraph()


@pytest.fixture
def empty_g(empty_graph):
    return KillrVideoTraversalSource(empty_graph, seed=42)
