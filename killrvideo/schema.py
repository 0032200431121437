"""Vertex/edge labels and property keys of the KillrVideo graph."""

VERTEX_MOVIE = "Movie"
VERTEX_PERSON = "Person"
VERTEX_USER = "User"

EDGE_ACTOR = "Actor"
EDGE_RATED = "Rated"

KEY_AGE = "age"
KEY_MOVIE_ID = "movie_id"
KEY_NAME = "name"
KEY_PERSON_ID = "person_id"
KEY_RATING = "rating"
KEY_TITLE = "title"
KEY_USER_ID = "user_id"

MIN_RATING = 0
MAX_RATING = 10

MIN_AGE = 18
MAX_AGE = 120
