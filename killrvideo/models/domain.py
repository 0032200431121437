"""Element models of the KillrVideo movie/actor/rating domain."""

from __future__ import annotations

from pydantic import Field

from killrvideo.schema import (
    EDGE_ACTOR,
    EDGE_RATED,
    MAX_RATING,
    MIN_RATING,
    VERTEX_MOVIE,
    VERTEX_PERSON,
    VERTEX_USER,
)

from .edge import Edge
from .vertex import Vertex


class Person(Vertex):
    """Someone who worked on a movie. ``person_id`` never changes once assigned."""

    __label__ = VERTEX_PERSON
    person_id: str
    name: str | None = None


class Movie(Vertex):
    __label__ = VERTEX_MOVIE
    movie_id: str | None = None
    title: str | None = None
    year: int | None = None
    duration: int | None = None
    country: str | None = None


class User(Vertex):
    __label__ = VERTEX_USER
    user_id: str | None = None
    age: int | None = Field(default=None, ge=0)
    gender: str | None = None


class Actor(Edge):
    """Movie -> Person."""

    __label__ = EDGE_ACTOR


class Rated(Edge):
    """User -> Movie, carrying a rating in [0, 10]."""

    __label__ = EDGE_RATED
    rating: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
