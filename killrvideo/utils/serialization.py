"""Conversions between Python values, Cypher literals, agtype results and element models."""

from __future__ import annotations

import itertools
import json
import math
import re
from typing import Any

from killrvideo.exceptions import InvalidArgumentError
from killrvideo.models.base import GraphElement
from killrvideo.models.edge import Edge
from killrvideo.models.vertex import Vertex

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def cypher_identifier(name: str) -> str:
    """Return ``name`` if it is safe to splice into Cypher as a label or key."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise InvalidArgumentError(f"Not a valid label or property key: {name!r}")
    return name


def format_cypher_value(val: Any) -> str:
    """Format a Python value for safe inline use in a Cypher query string.

    AGE's Cypher doesn't support $param bind variables natively,
    so values must be safely interpolated into the Cypher text.
    """
    if val is None:
        return "null"
    elif isinstance(val, bool):
        return "true" if val else "false"
    elif isinstance(val, (int, float)):
        if isinstance(val, float) and not math.isfinite(val):
            raise InvalidArgumentError(f"Cypher has no literal for {val!r}")
        return repr(val)
    elif isinstance(val, str):
        escaped = val.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    elif isinstance(val, (list, tuple)):
        items = ", ".join(format_cypher_value(v) for v in val)
        return f"[{items}]"
    elif isinstance(val, dict):
        items = ", ".join(
            f"{cypher_identifier(k)}: {format_cypher_value(v)}" for k, v in val.items()
        )
        return "{" + items + "}"
    else:
        return format_cypher_value(str(val))


def dollar_quote(body: str) -> str:
    """Wrap ``body`` in a PostgreSQL dollar quote whose delimiter does not occur in it.

    Plain ``$$`` is used whenever possible; string values holding ``$$`` get
    a tagged quote such as ``$cypher_1$`` instead.
    """
    delimiter = "$$"
    for n in itertools.count(1):
        if delimiter not in body:
            return f"{delimiter} {body} {delimiter}"
        delimiter = f"$cypher_{n}$"


def substitute_cypher_params(cypher: str, params: dict[str, Any] | None) -> str:
    """Replace $param placeholders in a Cypher string with formatted values."""
    if not params:
        return cypher
    result = cypher
    # Longest keys first so $name never clobbers $name_2
    for key in sorted(params.keys(), key=len, reverse=True):
        pattern = re.compile(r"\$" + re.escape(key) + r"(?![a-zA-Z0-9_])")
        replacement = format_cypher_value(params[key])
        result = pattern.sub(lambda _m: replacement, result)
    return result


def parse_agtype(val: Any) -> dict:
    """Parse a single agtype result value into a dict.

    AGE returns results as strings in one of these formats:
      - Vertex: '{"id": N, "label": "L", "properties": {...}}::vertex'
      - Edge: '{"id": N, "label": "L", "start_id": N, "end_id": N, "properties": {...}}::edge'
      - Scalar: '42', '"text"', 'true', 'null'

    For vertex/edge results, the 'id' key is renamed to 'graph_id'. Scalars are
    wrapped as {"value": ...}.
    """
    if val is None:
        return {}

    if isinstance(val, dict):
        return val

    if isinstance(val, (int, float, bool)):
        return {"value": val}

    val_str = str(val).strip()
    val_str = re.sub(r"([\]}])::\w+", r"\1", val_str)
    val_str = re.sub(r"::\w+$", "", val_str).strip()

    if val_str.startswith(("{", "[", '"')) or val_str in ("null", "true", "false"):
        try:
            parsed = json.loads(val_str)
        except json.JSONDecodeError:
            return {"raw": val_str}
        if isinstance(parsed, dict):
            if "id" in parsed and "properties" in parsed:
                parsed["graph_id"] = parsed.pop("id")
            return parsed
        return {"value": parsed}

    for cast in (int, float):
        try:
            return {"value": cast(val_str)}
        except ValueError:
            continue

    return {"raw": val_str}


def dict_to_element(data: dict) -> GraphElement:
    """Hydrate an element model from a parsed vertex/edge dict.

    The registered model for the label is used when there is one, otherwise a
    plain Vertex or Edge. A dict is an edge when it carries ``start_id``.
    """
    is_edge = "start_id" in data
    kind = "edge" if is_edge else "vertex"
    label = data.get("label")
    model_class = GraphElement.for_label(kind, label) or (Edge if is_edge else Vertex)

    instance = model_class(**data.get("properties", {}))
    instance._graph_id = data.get("graph_id")
    instance._label = label
    if is_edge:
        instance._start_id = data.get("start_id")
        instance._end_id = data.get("end_id")
    return instance
