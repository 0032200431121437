from .base import GraphElement
from .vertex import Vertex
from .edge import Edge
from .domain import Actor, Movie, Person, Rated, User

__all__ = ["GraphElement", "Vertex", "Edge", "Actor", "Movie", "Person", "Rated", "User"]
