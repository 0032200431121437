"""Tests for Cypher literal formatting and agtype parsing."""

import pytest

from killrvideo.exceptions import InvalidArgumentError
from killrvideo.models import Movie, Person, Rated, Vertex
from killrvideo.models.edge import Edge
from killrvideo.utils.serialization import (
    cypher_identifier,
    dict_to_element,
    dollar_quote,
    format_cypher_value,
    parse_agtype,
    substitute_cypher_params,
)


class TestCypherIdentifier:
    def test_valid(self):
        assert cypher_identifier("person_id") == "person_id"
        assert cypher_identifier("Rated") == "Rated"

    @pytest.mark.parametrize("name", ["", "1abc", "name}) DETACH DELETE (n", "a-b", None])
    def test_invalid(self, name):
        with pytest.raises(InvalidArgumentError):
            cypher_identifier(name)


class TestFormatCypherValue:
    def test_none(self):
        assert format_cypher_value(None) == "null"

    def test_bool(self):
        assert format_cypher_value(True) == "true"
        assert format_cypher_value(False) == "false"

    def test_numbers(self):
        assert format_cypher_value(42) == "42"
        assert format_cypher_value(2.5) == "2.5"

    def test_string_escaping(self):
        assert format_cypher_value("it's") == "'it\\'s'"
        assert format_cypher_value("back\\slash") == "'back\\\\slash'"

    def test_list(self):
        assert format_cypher_value([1, "a"]) == "[1, 'a']"

    def test_map(self):
        assert format_cypher_value({"person_id": "p1", "age": 3}) == "{person_id: 'p1', age: 3}"

    def test_map_rejects_unsafe_keys(self):
        with pytest.raises(InvalidArgumentError):
            format_cypher_value({"a b": 1})

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_floats_are_rejected(self, value):
        with pytest.raises(InvalidArgumentError):
            format_cypher_value(value)

    def test_fallback_to_string(self):
        class Custom:
            def __str__(self):
                return "custom"

        assert format_cypher_value(Custom()) == "'custom'"


class TestDollarQuote:
    def test_plain_quote(self):
        assert dollar_quote("RETURN 1") == "$$ RETURN 1 $$"

    def test_body_with_dollar_dollar_gets_tagged_quote(self):
        assert dollar_quote("RETURN 'a$$b'") == "$cypher_1$ RETURN 'a$$b' $cypher_1$"

    def test_tag_never_occurs_in_body(self):
        body = "RETURN '$$ $cypher_1$'"
        assert dollar_quote(body) == f"$cypher_2$ {body} $cypher_2$"


class TestSubstituteCypherParams:
    def test_no_params(self):
        assert substitute_cypher_params("MATCH (n) RETURN n", None) == "MATCH (n) RETURN n"

    def test_values_are_formatted(self):
        result = substitute_cypher_params("WHERE n.person_id = $value", {"value": "p1"})
        assert result == "WHERE n.person_id = 'p1'"

    def test_longer_names_win(self):
        result = substitute_cypher_params("$name $name_2", {"name": "a", "name_2": "b"})
        assert result == "'a' 'b'"

    def test_dollar_in_value_is_literal(self):
        result = substitute_cypher_params("n.name = $name", {"name": "$5 \\1"})
        assert result == "n.name = '$5 \\\\1'"


class TestParseAgtype:
    def test_vertex(self):
        parsed = parse_agtype(
            '{"id": 844424930131969, "label": "Person", "properties": {"person_id": "p1"}}::vertex'
        )
        assert parsed == {"graph_id": 844424930131969, "label": "Person", "properties": {"person_id": "p1"}}

    def test_edge(self):
        parsed = parse_agtype(
            '{"id": 7, "label": "Rated", "end_id": 2, "start_id": 1, "properties": {"rating": 9}}::edge'
        )
        assert parsed["graph_id"] == 7
        assert parsed["start_id"] == 1
        assert parsed["end_id"] == 2

    def test_scalars(self):
        assert parse_agtype("42") == {"value": 42}
        assert parse_agtype("2.5") == {"value": 2.5}
        assert parse_agtype('"Heat"') == {"value": "Heat"}
        assert parse_agtype("true") == {"value": True}
        assert parse_agtype("null") == {"value": None}

    def test_python_values(self):
        assert parse_agtype(None) == {}
        assert parse_agtype(7) == {"value": 7}
        assert parse_agtype({"a": 1}) == {"a": 1}

    def test_unparseable(self):
        assert parse_agtype("not agtype") == {"raw": "not agtype"}


class TestDictToElement:
    def test_registered_vertex(self):
        person = dict_to_element(
            {"graph_id": 1, "label": "Person", "properties": {"person_id": "p1", "name": "Al"}}
        )
        assert isinstance(person, Person)
        assert person.graph_id == 1
        assert person.name == "Al"

    def test_registered_edge(self):
        rated = dict_to_element(
            {"graph_id": 5, "label": "Rated", "start_id": 1, "end_id": 2, "properties": {"rating": 8}}
        )
        assert isinstance(rated, Rated)
        assert (rated.start_id, rated.end_id) == (1, 2)

    def test_unknown_labels_fall_back(self):
        vertex = dict_to_element({"graph_id": 3, "label": "Studio", "properties": {"name": "W"}})
        edge = dict_to_element({"graph_id": 4, "label": "Made", "start_id": 3, "end_id": 1, "properties": {}})
        assert type(vertex) is Vertex
        assert type(edge) is Edge
        assert vertex.label == "Studio"
        assert vertex.get("name") == "W"

    def test_vertex_and_edge_labels_are_separate(self):
        assert isinstance(dict_to_element({"label": "Movie", "properties": {}}), Movie)
        assert type(dict_to_element({"label": "Movie", "start_id": 1, "properties": {}})) is Edge
