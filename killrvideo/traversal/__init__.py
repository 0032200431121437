from .builder import AnonymousTraversal, Step, Traversal, TraversalContext, Traverser
from .dsl import KillrVideoTraversal, __
from .source import KillrVideoTraversalSource

__all__ = [
    "AnonymousTraversal",
    "KillrVideoTraversal",
    "KillrVideoTraversalSource",
    "Step",
    "Traversal",
    "TraversalContext",
    "Traverser",
    "__",
]
