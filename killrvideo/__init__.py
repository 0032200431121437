"""killrvideo: a composable traversal layer over the KillrVideo movie graph."""

from .capability import GraphCapability
from .config import Settings, get_settings
from .database import Database
from .exceptions import (
    EntityNotFoundError,
    GraphExistsError,
    GraphNotFoundError,
    InvalidArgumentError,
    KillrVideoError,
    MultipleResultsError,
)
from .graph import AgeGraph
from .memory import MemoryGraph
from .models import Actor, Edge, GraphElement, Movie, Person, Rated, User, Vertex
from .predicates import P
from .traversal import KillrVideoTraversal, KillrVideoTraversalSource, Traversal, __

__version__ = "0.1.0"

__all__ = [
    "Actor",
    "AgeGraph",
    "Database",
    "Edge",
    "EntityNotFoundError",
    "GraphCapability",
    "GraphElement",
    "GraphExistsError",
    "GraphNotFoundError",
    "InvalidArgumentError",
    "KillrVideoError",
    "KillrVideoTraversal",
    "KillrVideoTraversalSource",
    "MemoryGraph",
    "Movie",
    "MultipleResultsError",
    "P",
    "Person",
    "Rated",
    "Settings",
    "Traversal",
    "User",
    "Vertex",
    "__",
    "get_settings",
]
