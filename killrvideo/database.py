"""Connection pool management for the Apache AGE backend."""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from psycopg import Connection
from psycopg_pool import ConnectionPool

from killrvideo.exceptions import GraphExistsError, GraphNotFoundError, KillrVideoError

if TYPE_CHECKING:
    from killrvideo.config import Settings
    from killrvideo.graph import AgeGraph
    from killrvideo.traversal.source import KillrVideoTraversalSource

log = logging.getLogger(__name__)

DEFAULT_GRAPH = "killrvideo"


def _configure_age_connection(conn: Connection) -> None:
    """Load AGE and put ag_catalog on the search path of a new pooled connection.

    Runs in autocommit so the connection goes back to the pool idle, not INTRANS.
    """
    conn.autocommit = True
    conn.execute("LOAD 'age'")
    conn.execute('SET search_path = ag_catalog, "$user", public')
    conn.autocommit = False


class Database:
    """A pooled PostgreSQL/AGE server holding the KillrVideo graph.

    Usage:
        with Database.from_settings() as db:
            g = db.traversal(create=True)
            g.users("u1").recommend(5, 8).to_list()
    """

    def __init__(self, dsn: str, graph_name: str = DEFAULT_GRAPH, **pool_kwargs):
        self._dsn = dsn
        self._graph_name = graph_name
        pool_kwargs.setdefault("min_size", 1)
        pool_kwargs.setdefault("max_size", 10)
        pool_kwargs.setdefault("open", True)
        self._pool = ConnectionPool(dsn, configure=_configure_age_connection, **pool_kwargs)
        self._settings: "Settings | None" = None

    @classmethod
    def from_settings(cls, settings: "Settings | None" = None) -> "Database":
        """Build a Database from Settings (read from the environment by default)."""
        from killrvideo.config import get_settings

        settings = settings or get_settings()
        if not settings.dsn:
            raise KillrVideoError("No DSN configured; set KILLRVIDEO_DSN")
        db = cls(
            settings.dsn,
            graph_name=settings.graph_name,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        db._settings = settings
        return db

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def graph_name(self) -> str:
        return self._graph_name

    def _fetch(self, sql: str, params: tuple = ()) -> list[tuple[Any, ...]]:
        with self._pool.connection() as conn:
            return conn.execute(sql, params).fetchall()

    def _run(self, sql: str, params: tuple = ()) -> None:
        with self._pool.connection() as conn:
            conn.execute(sql, params)

    # === Graph Management ===

    def graph(self, name: str | None = None, create: bool = False) -> "AgeGraph":
        """Handle on a graph (the configured one by default).

        With ``create=True`` a missing graph is created together with the
        KillrVideo labels and indexes.
        """
        from killrvideo.graph import AgeGraph

        name = name or self._graph_name
        if self.graph_exists(name):
            return AgeGraph(name=name, db=self)
        if not create:
            raise GraphNotFoundError(f"Graph '{name}' does not exist")
        graph = self.create_graph(name)
        graph.ensure_schema()
        return graph

    def traversal(
        self,
        name: str | None = None,
        create: bool = False,
        seed: int | None = None,
    ) -> "KillrVideoTraversalSource":
        """A traversal source over ``graph(name, create)``, configured from this database's settings."""
        from killrvideo.traversal.source import KillrVideoTraversalSource

        return KillrVideoTraversalSource(self.graph(name, create), seed=seed, settings=self._settings)

    def create_graph(self, name: str) -> "AgeGraph":
        """Create an empty graph. Labels are added on first write or by ensure_schema()."""
        from killrvideo.graph import AgeGraph

        if self.graph_exists(name):
            raise GraphExistsError(f"Graph '{name}' already exists")
        self._run("SELECT create_graph(%s)", (name,))
        log.info("Created graph: %s", name)
        return AgeGraph(name=name, db=self)

    def drop_graph(self, name: str, cascade: bool = True) -> None:
        if not self.graph_exists(name):
            raise GraphNotFoundError(f"Graph '{name}' does not exist")
        self._run("SELECT drop_graph(%s, %s)", (name, cascade))
        log.info("Dropped graph: %s", name)

    def graph_exists(self, name: str) -> bool:
        with self._pool.connection() as conn:
            row = conn.execute("SELECT 1 FROM ag_catalog.ag_graph WHERE name = %s", (name,)).fetchone()
        return row is not None

    def list_graphs(self) -> list[str]:
        return [row[0] for row in self._fetch("SELECT name FROM ag_catalog.ag_graph")]

    def close(self) -> None:
        self._pool.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args) -> None:
        self.close()
