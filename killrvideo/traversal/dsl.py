"""The KillrVideo traversal vocabulary.

Domain steps are ordinary traversal methods composed from the generic steps
of :class:`~killrvideo.traversal.builder.Traversal`, so they chain with each
other and with generic steps, and are equally available on anonymous
traversals through ``__``:

    g.users("u1").recommend(5, 8).values("title").to_list()
    g.movies("Heat").ensure_actor("p1", "Al Pacino").ensure_actor("p2", "Robert De Niro").iterate()
    g.movies("Heat").ratings().by_ages(18, 30).next()
"""

from __future__ import annotations

from typing import Any

from killrvideo.exceptions import InvalidArgumentError
from killrvideo.predicates import P
from killrvideo.schema import (
    EDGE_ACTOR,
    EDGE_RATED,
    KEY_AGE,
    KEY_NAME,
    KEY_PERSON_ID,
    KEY_RATING,
    MAX_AGE,
    MAX_RATING,
    MIN_AGE,
    MIN_RATING,
    VERTEX_PERSON,
)
from killrvideo.traversal.builder import AnonymousTraversal, Traversal

# Sampled actors per seen movie in recommend()
ACTOR_SAMPLE_SIZE = 3

# Aggregate holding the movies recommend() treats as already seen
SEEN = "seen"

# Mark for the movie ensure_actor() returns to; the caret keeps it out of the
# way of marks chosen by callers
MOVIE_MARK = "^movie"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _person_lock(person_id: str) -> str:
    return f"{VERTEX_PERSON}:{person_id}"


class KillrVideoTraversal(Traversal):
    """Traversal with the movie/actor/rating domain steps."""

    def actors(self) -> "KillrVideoTraversal":
        """From movies to the distinct people acting in them."""
        return self.out(EDGE_ACTOR).has_label(VERTEX_PERSON).dedup()

    def ratings(self) -> "KillrVideoTraversal":
        """From movies to the "Rated" edges pointing at them."""
        return self.in_e(EDGE_RATED)

    def rated(self, min_rating: int = 0, max_rating: int = 0) -> "KillrVideoTraversal":
        """From users to the movies they rated, filtered by rating.

        Zero means "no bound" on either side:

        - ``rated()`` / ``rated(0, 0)``: every rated movie;
        - ``rated(min, 0)``: rating strictly above ``min``;
        - ``rated(0, max)``: rating strictly below ``max``;
        - ``rated(min, max)``: ``min <= rating <= max``.

        Because zero doubles as "no bound", a filter on the literal rating 0
        cannot be expressed here; use ``out_e("Rated").has("rating", 0).in_v()``.
        """
        for name, value in (("min_rating", min_rating), ("max_rating", max_rating)):
            if not _is_int(value) or not MIN_RATING <= value <= MAX_RATING:
                raise InvalidArgumentError(
                    f"{name} must be an int between {MIN_RATING} and {MAX_RATING}, not {value!r}"
                )
        if min_rating and max_rating and min_rating > max_rating:
            raise InvalidArgumentError("min_rating cannot be greater than max_rating")

        if not min_rating and not max_rating:
            return self.out(EDGE_RATED)
        if not max_rating:
            rating = P.gt(min_rating)
        elif not min_rating:
            rating = P.lt(max_rating)
        else:
            rating = P.between(min_rating, max_rating)
        return self.out_e(EDGE_RATED).has(KEY_RATING, rating).in_v()

    def by_ages(self, start: int, end: int) -> "KillrVideoTraversal":
        """From "Rated" edges to a ``{rating: count}`` mapping for raters aged ``start``..``end``.

        Minors are excluded by construction: ``start`` must be at least 18.
        """
        if not _is_int(start) or not _is_int(end):
            raise InvalidArgumentError("Ages must be ints")
        if start < MIN_AGE:
            raise InvalidArgumentError(f"Age must be {MIN_AGE} or older")
        if start > end:
            raise InvalidArgumentError("Start age cannot be greater than end age")
        if end > MAX_AGE:
            raise InvalidArgumentError(f"End age cannot be greater than {MAX_AGE}")

        return self.filter(__.out_v().has(KEY_AGE, P.between(start, end))).group_count(by=KEY_RATING)

    def recommend(
        self,
        count: int,
        min_rating: int = 0,
        sample_size: int | None = None,
    ) -> "KillrVideoTraversal":
        """Recommend up to ``count`` movies for a user.

        Starts from the movies the user rated strictly above ``min_rating`` (the
        "seen" set; with ``min_rating=0``, every rated movie), samples up to
        ``sample_size`` actors from each, and collects the other movies those
        actors appear in. Candidates are ranked by how many sampled-actor paths
        reach them; ties keep the order in which candidates were first reached.

        A movie the user rated exactly ``min_rating``, or lower, is not in the
        seen set and can be recommended back.

        ``sample_size`` defaults to the sample size of the traversal source
        (ACTOR_SAMPLE_SIZE for anonymous traversals).

        Actor sampling draws from the execution's random generator, so results
        only repeat across runs when the traversal source is seeded.
        """
        if not _is_int(count) or count <= 0:
            raise InvalidArgumentError(f"count must be greater than zero, not {count!r}")
        if sample_size is None:
            sample_size = self._source.sample_size if self._source is not None else ACTOR_SAMPLE_SIZE
        if not _is_int(sample_size) or sample_size <= 0:
            raise InvalidArgumentError(f"sample_size must be greater than zero, not {sample_size!r}")

        return (
            self.rated(min_rating, 0)
            .aggregate(SEEN)
            .local(__.out_e(EDGE_ACTOR).sample(sample_size).in_v().fold())
            .unfold()
            .in_(EDGE_ACTOR)
            .exclude(SEEN)
            .group_count()
            .sort(by="values", descending=True)
            .limit_local(count)
            .select_keys()
            .unfold()
        )

    def ensure_person(self, person_id: str, name: str) -> "KillrVideoTraversal":
        """Return the "Person" with ``person_id``, creating it when missing.

        The name is overwritten on every call; ``person_id`` never changes once
        assigned. Lookup and creation run under the graph's lock for this
        person, so concurrent calls for one id create a single vertex.
        """
        if not isinstance(person_id, str) or not person_id:
            raise InvalidArgumentError("The person_id must not be None or empty")
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("The name of the person must not be None or empty")

        return self.exclusive(
            _person_lock(person_id),
            __.coalesce(
                __.lookup(VERTEX_PERSON, KEY_PERSON_ID, person_id),
                __.add_v(VERTEX_PERSON, **{KEY_PERSON_ID: person_id}),
            ).property(KEY_NAME, name),
        )

    def ensure_actor(self, person_id: str, name: str) -> "KillrVideoTraversal":
        """Attach the person ``person_id`` to each incoming movie as an actor.

        Creates the person (through ``ensure_person``) and the "Actor" edge only
        when the movie has no actor with that id yet, and returns the movie, so
        calls chain to attach several actors in one traversal.
        """
        attach = __.ensure_person(person_id, name).add_e(EDGE_ACTOR, from_mark=MOVIE_MARK)

        return (
            self.mark(MOVIE_MARK)
            .exclusive(
                _person_lock(person_id),
                __.branch(__.actors().has(KEY_PERSON_ID, person_id), __.identity(), attach),
            )
            .select(MOVIE_MARK)
        )


__ = AnonymousTraversal(KillrVideoTraversal)
