"""Custom exceptions for killrvideo."""


class KillrVideoError(Exception):
    """Base exception for all killrvideo errors."""


class InvalidArgumentError(KillrVideoError, ValueError):
    """Raised when a traversal step is given arguments outside its contract.

    Always raised while the traversal is being built, before the graph is touched.
    """


class GraphNotFoundError(KillrVideoError):
    """Raised when a graph does not exist."""


class GraphExistsError(KillrVideoError):
    """Raised when trying to create a graph that already exists."""


class EntityNotFoundError(KillrVideoError):
    """Raised when an element lookup returns no results."""


class MultipleResultsError(KillrVideoError):
    """Raised when a single-result traversal returns multiple results."""
