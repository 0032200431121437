"""Edge model for directed, labeled graph edges."""

from __future__ import annotations

from typing import ClassVar

from pydantic import PrivateAttr

from .base import GraphElement


class Edge(GraphElement):
    """Base class for graph edge models.

    Define edge types by subclassing:

        class Rated(Edge):
            __label__ = "Rated"
            rating: int
    """

    __label__: ClassVar[str | None] = None
    __kind__: ClassVar[str] = "edge"

    _start_id: int | None = PrivateAttr(default=None)
    _end_id: int | None = PrivateAttr(default=None)

    @property
    def start_id(self) -> int | None:
        """Graph id of the vertex the edge leaves."""
        return self._start_id

    @property
    def end_id(self) -> int | None:
        """Graph id of the vertex the edge enters."""
        return self._end_id
