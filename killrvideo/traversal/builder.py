"""Fluent, lazily executed traversal pipelines over a graph capability."""

from __future__ import annotations

import itertools
import logging
import random
from typing import Any, Callable, Iterable, Iterator, TYPE_CHECKING

from killrvideo.exceptions import (
    EntityNotFoundError,
    InvalidArgumentError,
    KillrVideoError,
    MultipleResultsError,
)
from killrvideo.predicates import as_predicate

if TYPE_CHECKING:
    from killrvideo.capability import GraphCapability
    from killrvideo.traversal.source import KillrVideoTraversalSource

log = logging.getLogger(__name__)


class Traverser:
    """One object moving through a traversal, with the marks bound along its way."""

    __slots__ = ("obj", "marks")

    def __init__(self, obj: Any, marks: dict[str, Any] | None = None):
        self.obj = obj
        self.marks = marks if marks is not None else {}

    def __repr__(self) -> str:
        return f"Traverser({self.obj!r})"

    def split(self, obj: Any) -> "Traverser":
        """A traverser for ``obj`` that keeps this traverser's marks."""
        return Traverser(obj, self.marks)

    def mark(self, name: str) -> "Traverser":
        return Traverser(self.obj, {**self.marks, name: self.obj})


class TraversalContext:
    """State of a single traversal execution.

    ``side_effects`` holds named aggregates; they live exactly as long as the
    execution and are readable by every later step of it, including steps of
    sub-traversals.
    """

    def __init__(self, graph: "GraphCapability", rng: random.Random | None = None):
        self.graph = graph
        self.rng = rng or random.Random()
        self.side_effects: dict[str, list] = {}


StepFn = Callable[[TraversalContext, Iterator[Traverser]], Iterator[Traverser]]


class Step:
    """A named stage of a traversal: a function from a traverser stream to a traverser stream."""

    __slots__ = ("name", "args", "fn")

    def __init__(self, name: str, fn: StepFn, *args: Any):
        self.name = name
        self.args = args
        self.fn = fn

    def __call__(self, ctx: TraversalContext, stream: Iterator[Traverser]) -> Iterator[Traverser]:
        return self.fn(ctx, stream)

    def __repr__(self) -> str:
        return f"{self.name}({', '.join(repr(a) for a in self.args)})"


def _check_count(name: str, n: Any) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative int, not {n!r}")
    return n


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise InvalidArgumentError(f"Names must be non-empty strings, not {name!r}")
    return name


def _given(*args: Any) -> tuple:
    return tuple(a for a in args if a is not None)


def _marked(t: Traverser, name: str) -> Any:
    if name not in t.marks:
        raise KillrVideoError(f"No object marked {name!r} on this traverser")
    return t.marks[name]


class Traversal:
    """A chain of steps, built fluently and run when iterated.

    Traversals spawned from a traversal source are bound to its graph and can
    be executed; anonymous traversals (from ``__``) are unbound and only serve
    as arguments to other steps, running against the caller's execution.

    Usage:
        movies = g.persons("p1").in_("Actor").has("year", P.gt(1990)).to_list()
        g.movies("Heat").branch(__.actors(), __.identity(), __.fold()).next()
    """

    def __init__(self, source: "KillrVideoTraversalSource | None" = None):
        self._source = source
        self._steps: list[Step] = []

    def __str__(self) -> str:
        prefix = "g" if self._source is not None else "__"
        return ".".join([prefix, *(repr(s) for s in self._steps)])

    def __repr__(self) -> str:
        return self.__str__()

    def __iter__(self) -> Iterator[Any]:
        return (t.obj for t in self._execute())

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    def _add(self, name: str, fn: StepFn, *args: Any) -> "Traversal":
        self._steps.append(Step(name, fn, *args))
        return self

    def _flat_map(self, name: str, fn: Callable[[TraversalContext, Any], Iterable], *args: Any) -> "Traversal":
        def step(ctx, stream):
            for t in stream:
                for obj in fn(ctx, t.obj):
                    yield t.split(obj)

        return self._add(name, step, *args)

    def _map(self, name: str, fn: Callable[[TraversalContext, Any], Any], *args: Any) -> "Traversal":
        def step(ctx, stream):
            for t in stream:
                yield t.split(fn(ctx, t.obj))

        return self._add(name, step, *args)

    def _apply(self, ctx: TraversalContext, stream: Iterator[Traverser]) -> Iterator[Traverser]:
        for step in self._steps:
            stream = step(ctx, stream)
        return stream

    def _execute(self) -> Iterator[Traverser]:
        if self._source is None:
            raise KillrVideoError(
                "Anonymous traversals cannot be executed on their own; "
                "spawn the traversal from a traversal source"
            )
        ctx = self._source.new_context()
        log.debug("Running %s", self)
        return self._apply(ctx, iter([Traverser(None)]))

    # === Start ===

    def V(self, *graph_ids: int) -> "Traversal":
        """All vertices, or those with the given ids."""
        def vertices(ctx, _):
            if not graph_ids:
                return ctx.graph.vertices()
            return [ctx.graph.vertex(i) for i in graph_ids]

        return self._flat_map("V", vertices, *graph_ids)

    def E(self, label: str | None = None) -> "Traversal":
        return self._flat_map("E", lambda ctx, _: ctx.graph.edges(label), *_given(label))

    def has_vertices(self, label: str, **properties: Any) -> "Traversal":
        """Vertices with ``label`` whose properties equal the given values."""
        return self._flat_map(
            "has_vertices",
            lambda ctx, _: ctx.graph.vertices(label, **properties),
            label,
            *(f"{k}={v!r}" for k, v in properties.items()),
        )

    def inject(self, *objs: Any) -> "Traversal":
        return self._flat_map("inject", lambda ctx, _: objs, *objs)

    # === Navigation ===

    def out(self, label: str | None = None) -> "Traversal":
        return self._flat_map("out", lambda ctx, v: ctx.graph.traverse_out(v, label), *_given(label))

    def in_(self, label: str | None = None) -> "Traversal":
        return self._flat_map("in_", lambda ctx, v: ctx.graph.traverse_in(v, label), *_given(label))

    def out_e(self, label: str | None = None) -> "Traversal":
        return self._flat_map("out_e", lambda ctx, v: ctx.graph.out_edges(v, label), *_given(label))

    def in_e(self, label: str | None = None) -> "Traversal":
        return self._flat_map("in_e", lambda ctx, v: ctx.graph.in_edges(v, label), *_given(label))

    def out_v(self) -> "Traversal":
        """The vertex each edge leaves."""
        return self._map("out_v", lambda ctx, e: ctx.graph.out_vertex(e))

    def in_v(self) -> "Traversal":
        """The vertex each edge enters."""
        return self._map("in_v", lambda ctx, e: ctx.graph.in_vertex(e))

    # === Filtering ===

    def has(self, key: str, value: Any) -> "Traversal":
        """Keep elements whose property ``key`` equals ``value`` or satisfies a P predicate."""
        pred = as_predicate(value)
        return self._flat_map("has", lambda ctx, e: ctx.graph.filter([e], key, pred), key, pred)

    def has_label(self, *labels: str) -> "Traversal":
        if not labels:
            raise InvalidArgumentError("has_label needs at least one label")
        return self._flat_map("has_label", lambda ctx, e: ctx.graph.has_label([e], *labels), *labels)

    def filter(self, condition: "Traversal") -> "Traversal":
        """Keep traversers for which ``condition`` yields anything."""
        def step(ctx, stream):
            for t in stream:
                if next(condition._apply(ctx, iter([t])), None) is not None:
                    yield t

        return self._add("filter", step, condition)

    def dedup(self) -> "Traversal":
        def step(ctx, stream):
            seen = set()
            for t in stream:
                if t.obj not in seen:
                    seen.add(t.obj)
                    yield t

        return self._add("dedup", step)

    def exclude(self, name: str) -> "Traversal":
        """Drop objects held in the aggregate ``name``.

        Waits for the whole incoming stream first, so an upstream aggregate of
        the same name is complete before membership is tested.
        """
        _check_name(name)

        def step(ctx, stream):
            items = list(stream)
            allowed = set(ctx.graph.exclude((t.obj for t in items), ctx.side_effects.get(name, ())))
            for t in items:
                if t.obj in allowed:
                    yield t

        return self._add("exclude", step, name)

    def limit(self, n: int) -> "Traversal":
        _check_count("limit", n)
        return self._add("limit", lambda ctx, stream: iter(ctx.graph.limit(stream, n)), n)

    def sample(self, n: int) -> "Traversal":
        """Keep at most ``n`` traversers, picked with the execution's random generator."""
        _check_count("sample", n)
        return self._add("sample", lambda ctx, stream: iter(ctx.graph.sample(stream, n, ctx.rng)), n)

    # === Marks ===

    def mark(self, name: str) -> "Traversal":
        """Bind the current object under ``name`` for a later ``select(name)``."""
        _check_name(name)

        def step(ctx, stream):
            for t in stream:
                yield t.mark(name)

        return self._add("mark", step, name)

    def select(self, name: str) -> "Traversal":
        _check_name(name)

        def step(ctx, stream):
            for t in stream:
                yield t.split(_marked(t, name))

        return self._add("select", step, name)

    # === Branching ===

    def identity(self) -> "Traversal":
        return self._add("identity", lambda ctx, stream: stream)

    def local(self, sub: "Traversal") -> "Traversal":
        """Run ``sub`` separately for each traverser (barriers inside stay per-traverser)."""
        def step(ctx, stream):
            for t in stream:
                yield from sub._apply(ctx, iter([t]))

        return self._add("local", step, sub)

    def branch(self, condition: "Traversal", then: "Traversal", otherwise: "Traversal") -> "Traversal":
        """Route each traverser into ``then`` if ``condition`` yields anything, else ``otherwise``."""
        def step(ctx, stream):
            for t in stream:
                matched = next(condition._apply(ctx, iter([t])), None) is not None
                yield from (then if matched else otherwise)._apply(ctx, iter([t]))

        return self._add("branch", step, condition, then, otherwise)

    def coalesce(self, *subs: "Traversal") -> "Traversal":
        """Emit the results of the first sub-traversal that yields anything."""
        if not subs:
            raise InvalidArgumentError("coalesce needs at least one traversal")

        def step(ctx, stream):
            for t in stream:
                for sub in subs:
                    results = iter(sub._apply(ctx, iter([t])))
                    first = next(results, None)
                    if first is not None:
                        yield first
                        yield from results
                        break

        return self._add("coalesce", step, *subs)

    def exclusive(self, key: str, sub: "Traversal") -> "Traversal":
        """Run ``sub`` for each traverser while holding the graph's lock on ``key``."""
        _check_name(key)

        def step(ctx, stream):
            for t in stream:
                with ctx.graph.locked(key):
                    results = list(sub._apply(ctx, iter([t])))
                yield from results

        return self._add("exclusive", step, key, sub)

    # === Aggregation ===

    def aggregate(self, name: str) -> "Traversal":
        """Collect every object of the stream into the aggregate ``name``.

        A barrier: nothing passes on until the whole stream is collected.
        """
        _check_name(name)

        def step(ctx, stream):
            items = list(stream)
            ctx.side_effects.setdefault(name, []).extend(t.obj for t in items)
            return iter(items)

        return self._add("aggregate", step, name)

    def fold(self) -> "Traversal":
        def step(ctx, stream):
            items = list(stream)
            marks = items[0].marks if items else {}
            yield Traverser([t.obj for t in items], marks)

        return self._add("fold", step)

    def unfold(self) -> "Traversal":
        """Flatten lists into their items and mappings into (key, value) pairs."""
        def unfold(ctx, obj):
            if isinstance(obj, dict):
                return obj.items()
            if isinstance(obj, (list, tuple, set, frozenset)):
                return obj
            return [obj]

        return self._flat_map("unfold", unfold)

    def count(self) -> "Traversal":
        def step(ctx, stream):
            yield Traverser(sum(1 for _ in stream))

        return self._add("count", step)

    def group_count(self, by: str | None = None) -> "Traversal":
        """Reduce the stream to one mapping of object (or its ``by`` property) to occurrences."""
        def step(ctx, stream):
            yield Traverser(ctx.graph.group_count((t.obj for t in stream), by))

        return self._add("group_count", step, *_given(by))

    def order(self, by: str | None = None, descending: bool = False) -> "Traversal":
        """Sort the stream by property ``by`` (or the objects themselves)."""
        def step(ctx, stream):
            key = (lambda t: t.obj.get(by)) if by else (lambda t: t.obj)
            return iter(sorted(stream, key=key, reverse=descending))

        return self._add("order", step, *_given(by))

    def sort(self, by: str = "values", descending: bool = False) -> "Traversal":
        """Order the entries of each mapping by its "keys" or "values"."""
        if by not in ("keys", "values"):
            raise InvalidArgumentError(f"sort by must be 'keys' or 'values', not {by!r}")
        return self._map("sort", lambda ctx, m: ctx.graph.sort(m, by, descending), by, descending)

    def limit_local(self, n: int) -> "Traversal":
        """Keep the first ``n`` entries of each mapping or list."""
        _check_count("limit_local", n)

        def limit(ctx, obj):
            if isinstance(obj, dict):
                return dict(itertools.islice(obj.items(), n))
            return list(itertools.islice(obj, n))

        return self._map("limit_local", limit, n)

    def select_keys(self) -> "Traversal":
        return self._map("select_keys", lambda ctx, m: list(m.keys()))

    def select_values(self) -> "Traversal":
        return self._map("select_values", lambda ctx, m: list(m.values()))

    def values(self, *keys: str) -> "Traversal":
        """Property values of each element (missing properties are skipped)."""
        def values(ctx, e):
            wanted = keys or tuple(e.properties)
            return [v for v in (e.get(k) for k in wanted) if v is not None]

        return self._flat_map("values", values, *keys)

    # === Mutation ===

    def lookup(self, label: str, key: str, value: Any) -> "Traversal":
        """The vertex with ``label`` whose ``key`` equals ``value``, if there is one."""
        def lookup(ctx, _):
            found = ctx.graph.lookup_or_none(label, key, value)
            return [] if found is None else [found]

        return self._flat_map("lookup", lookup, label, key, value)

    def add_v(self, label: str, **properties: Any) -> "Traversal":
        _check_name(label)
        return self._map(
            "add_v",
            lambda ctx, _: ctx.graph.create(label, properties),
            label,
            *(f"{k}={v!r}" for k, v in properties.items()),
        )

    def add_e(
        self,
        label: str,
        from_mark: str | None = None,
        to_mark: str | None = None,
        **properties: Any,
    ) -> "Traversal":
        """Create an edge for each traverser.

        Each end is the object bound to the given mark, or the current object
        when no mark is given.
        """
        _check_name(label)

        def step(ctx, stream):
            for t in stream:
                from_v = _marked(t, from_mark) if from_mark else t.obj
                to_v = _marked(t, to_mark) if to_mark else t.obj
                yield t.split(ctx.graph.create_edge(label, from_v, to_v, properties))

        return self._add("add_e", step, label, *_given(from_mark, to_mark))

    def property(self, key: str, value: Any) -> "Traversal":
        """Overwrite property ``key`` on each element."""
        _check_name(key)
        return self._map("property", lambda ctx, e: ctx.graph.set_property(e, key, value), key, value)

    # === Terminal ===

    def to_list(self) -> list:
        return list(self)

    def to_set(self) -> set:
        return set(self)

    def first(self) -> Any | None:
        """The first result, or None."""
        return next(iter(self), None)

    def next(self) -> Any:
        """The first result; raises EntityNotFoundError when there is none."""
        for obj in self:
            return obj
        raise EntityNotFoundError(f"{self} produced no results")

    def one(self) -> Any:
        """Exactly one result. Raises if not exactly one result."""
        results = list(itertools.islice(iter(self), 2))
        if not results:
            raise EntityNotFoundError(f"{self} produced no results")
        if len(results) > 1:
            raise MultipleResultsError(f"{self} produced more than one result")
        return results[0]

    def iterate(self) -> "Traversal":
        """Run the traversal for its side effects, discarding results."""
        for _ in self._execute():
            pass
        return self


class AnonymousTraversal:
    """Factory for unbound traversals used as arguments to other steps.

    ``__.out("Actor")`` is shorthand for a fresh traversal of the factory's
    class with ``out("Actor")`` as its first step.
    """

    def __init__(self, traversal_class: type[Traversal] = Traversal):
        self._traversal_class = traversal_class

    def __repr__(self) -> str:
        return f"AnonymousTraversal({self._traversal_class.__name__})"

    def start(self) -> Traversal:
        """An empty anonymous traversal."""
        return self._traversal_class()

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._traversal_class(), name)
