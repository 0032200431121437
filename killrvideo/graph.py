"""Apache AGE implementation of the graph capability."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, TYPE_CHECKING

from psycopg import Connection

from killrvideo.capability import GraphCapability
from killrvideo.exceptions import EntityNotFoundError
from killrvideo.models.base import GraphElement
from killrvideo.models.edge import Edge
from killrvideo.models.vertex import Vertex
from killrvideo.schema import (
    EDGE_ACTOR,
    EDGE_RATED,
    KEY_PERSON_ID,
    VERTEX_MOVIE,
    VERTEX_PERSON,
    VERTEX_USER,
)
from killrvideo.utils.serialization import (
    cypher_identifier,
    dict_to_element,
    dollar_quote,
    format_cypher_value,
    parse_agtype,
    substitute_cypher_params,
)

if TYPE_CHECKING:
    from killrvideo.database import Database

log = logging.getLogger(__name__)


class AgeGraph(GraphCapability):
    """Graph capability backed by a named Apache AGE graph.

    Every primitive is one Cypher statement run through AGE's SQL wrapper.
    Inside ``locked(key)`` the calling thread is pinned to a single pooled
    connection holding an open transaction and a transaction-scoped advisory
    lock on ``key``; statements issued by that thread run on it until the
    outermost block exits and commits.
    """

    def __init__(self, name: str, db: "Database"):
        self._name = name
        self._db = db
        self._local = threading.local()

    @property
    def name(self) -> str:
        return self._name

    # === Cypher Execution ===

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        pinned = getattr(self._local, "conn", None)
        if pinned is not None:
            yield pinned
            return
        with self._db.pool.connection() as conn:
            yield conn

    def _execute_cypher(
        self,
        cypher: str,
        params: dict[str, Any] | None = None,
        columns: list[str] | None = None,
    ) -> list[dict]:
        """Execute Cypher within AGE's SQL wrapper.

        Args:
            cypher: Cypher query string with optional $param placeholders.
            params: Parameter values to substitute into the Cypher.
            columns: Column names for the AS clause. Defaults to single "result".

        Returns:
            List of parsed result dicts, one per row (multi-column rows are
            keyed by column name).
        """
        resolved_cypher = substitute_cypher_params(cypher, params)
        columns = columns or ["result"]
        col_clause = ", ".join(f"{c} agtype" for c in columns)

        sql = f"SELECT * FROM cypher('{self._name}', {dollar_quote(resolved_cypher)}) AS ({col_clause})"
        log.debug("Executing: %s", sql)

        with self._connection() as conn:
            rows = conn.execute(sql).fetchall()

        if len(columns) == 1:
            return [parse_agtype(row[0]) for row in rows]
        return [
            {col: parse_agtype(val) for col, val in zip(columns, row)} for row in rows
        ]

    def _elements(self, cypher: str, params: dict[str, Any] | None = None) -> list:
        return [
            dict_to_element(r)
            for r in self._execute_cypher(cypher, params)
            if "graph_id" in r
        ]

    # === Start ===

    def vertex(self, graph_id: int) -> Vertex:
        found = self._elements(f"MATCH (n) WHERE id(n) = {int(graph_id)} RETURN n")
        if not found:
            raise EntityNotFoundError(f"No vertex with id {graph_id}")
        return found[0]

    def vertices(self, label: str | None = None, **properties: Any) -> list[Vertex]:
        pattern = f"(n:{cypher_identifier(label)})" if label else "(n)"
        cypher = f"MATCH {pattern}"
        if properties:
            conditions = " AND ".join(
                f"n.{cypher_identifier(k)} = ${k}" for k in properties
            )
            cypher += f" WHERE {conditions}"
        return self._elements(f"{cypher} RETURN n", properties)

    def edges(self, label: str | None = None) -> list[Edge]:
        return self._elements(f"MATCH ()-[e{_label_suffix(label)}]->() RETURN e")

    # === Navigation ===

    def out_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        return self._elements(
            f"MATCH (n)-[e{_label_suffix(label)}]->() "
            f"WHERE id(n) = {_require_id(vertex)} RETURN e"
        )

    def in_edges(self, vertex: Vertex, label: str | None = None) -> list[Edge]:
        return self._elements(
            f"MATCH ()-[e{_label_suffix(label)}]->(n) "
            f"WHERE id(n) = {_require_id(vertex)} RETURN e"
        )

    def traverse_out(self, vertex: Vertex, label: str | None = None) -> list[Vertex]:
        return self._elements(
            f"MATCH (n)-[{_label_suffix(label)}]->(m) "
            f"WHERE id(n) = {_require_id(vertex)} RETURN m"
        )

    def traverse_in(self, vertex: Vertex, label: str | None = None) -> list[Vertex]:
        return self._elements(
            f"MATCH (m)-[{_label_suffix(label)}]->(n) "
            f"WHERE id(n) = {_require_id(vertex)} RETURN m"
        )

    # === Upsert primitives ===

    def lookup_or_none(self, label: str, key: str, value: Any) -> Vertex | None:
        matches = self._elements(
            f"MATCH (n:{cypher_identifier(label)}) "
            f"WHERE n.{cypher_identifier(key)} = $value RETURN n LIMIT 2",
            {"value": value},
        )
        if len(matches) > 1:
            log.warning("Found several %s vertices with %s=%r", label, key, value)
        return matches[0] if matches else None

    def create(self, label: str, properties: dict[str, Any] | None = None) -> Vertex:
        props = {k: v for k, v in (properties or {}).items() if v is not None}
        # Validate against the label's model before anything is written
        dict_to_element({"label": label, "properties": props})
        self.ensure_label(label)

        cypher = f"CREATE (n:{cypher_identifier(label)} {format_cypher_value(props)}) RETURN n"
        return self._elements(cypher)[0]

    def set_property(self, element: GraphElement, key: str, value: Any) -> GraphElement:
        graph_id = _require_id(element)
        props = dict(element.properties)
        if value is None:
            props.pop(key, None)
        else:
            props[key] = value
        candidate = {"label": element.label, "properties": props}
        if isinstance(element, Edge):
            candidate.update(start_id=element.start_id, end_id=element.end_id)
        dict_to_element(candidate)

        pattern = "()-[n]->()" if isinstance(element, Edge) else "(n)"
        key = cypher_identifier(key)
        if value is None:
            change = f"REMOVE n.{key}"
        else:
            change = f"SET n.{key} = {format_cypher_value(value)}"
        found = self._elements(
            f"MATCH {pattern} WHERE id(n) = {graph_id} {change} RETURN n"
        )
        if not found:
            raise EntityNotFoundError(f"No element with id {graph_id}")
        return found[0]

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
        dict_to_element({"label": label, "start_id": from_v.graph_id, "properties": props})
        self.ensure_label(label, kind="e")

        cypher = (
            f"MATCH (a), (b) WHERE id(a) = {int(from_v.graph_id)} AND id(b) = {int(to_v.graph_id)} "
            f"CREATE (a)-[e:{cypher_identifier(label)} {format_cypher_value(props)}]->(b) RETURN e"
        )
        found = self._elements(cypher)
        if not found:
            raise EntityNotFoundError(
                f"Vertices {from_v.graph_id} and {to_v.graph_id} must both exist"
            )
        return found[0]

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        pinned = getattr(self._local, "conn", None)
        if pinned is not None:
            # Advisory locks are re-entrant within a transaction
            pinned.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))
            yield
            return

        with self._db.pool.connection() as conn:
            with conn.transaction():
                conn.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))
                self._local.conn = conn
                try:
                    yield
                finally:
                    self._local.conn = None

    # === Schema Management ===

    def ensure_label(self, label: str, kind: str = "v") -> None:
        """Ensure a vertex or edge label exists in the graph, creating if needed.

        Args:
            label: The label name.
            kind: "v" for vertex, "e" for edge.
        """
        label = cypher_identifier(label)
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = %s AND table_name = %s",
                (self._name, label),
            ).fetchone()

            if row is None:
                fn = "create_vlabel" if kind == "v" else "create_elabel"
                conn.execute(f"SELECT {fn}(%s, %s)", (self._name, label))
                log.info("Created %s label: %s", "vertex" if kind == "v" else "edge", label)

    def create_index(self, label: str, field: str, unique: bool = False) -> None:
        """Create a PostgreSQL index on a property field of a label.

        Args:
            label: The label (backing table) to index.
            field: The property key to index.
            unique: If True, create a unique index.
        """
        label = cypher_identifier(label)
        field = cypher_identifier(field)
        idx_name = f"idx_{self._name}_{label}_{field}".lower()
        unique_str = "UNIQUE " if unique else ""

        with self._connection() as conn:
            conn.execute(
                f"CREATE {unique_str}INDEX IF NOT EXISTS {idx_name} "
                f'ON {self._name}."{label}" ((properties::json->>\'{field}\'))'
            )
        log.info("Created index: %s", idx_name)

    def ensure_schema(self) -> None:
        """Create the domain labels and a unique index on Person.person_id.

        The unique index turns a lost ensure_person race into a storage error
        instead of a duplicate Person.
        """
        for label in (VERTEX_MOVIE, VERTEX_PERSON, VERTEX_USER):
            self.ensure_label(label)
        for label in (EDGE_ACTOR, EDGE_RATED):
            self.ensure_label(label, kind="e")
        self.create_index(VERTEX_PERSON, KEY_PERSON_ID, unique=True)


def _require_id(element: GraphElement) -> int:
    if element.graph_id is None:
        raise EntityNotFoundError(
            f"{element.label} has no graph_id; persist it before traversing"
        )
    return int(element.graph_id)


def _label_suffix(label: str | None) -> str:
    return f":{cypher_identifier(label)}" if label else ""
