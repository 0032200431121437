"""Vertex model for graph vertices."""

from __future__ import annotations

from typing import ClassVar

from .base import GraphElement


class Vertex(GraphElement):
    """Base class for graph vertex models.

    Define vertex types by subclassing:

        class Person(Vertex):
            __label__ = "Person"
            person_id: str
            name: str | None = None
    """

    __label__: ClassVar[str | None] = None
    __kind__: ClassVar[str] = "vertex"
