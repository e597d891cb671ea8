"""
Unit tests for the schema-driven query templates.
"""

import pytest

from jobgraph.errors import ContractViolation
from jobgraph.query_builder import QueryBuilder
from jobgraph.schema import USER, EntitySchema, StoreExpr


qb = QueryBuilder(USER)


def test_match_binds_only_present_key_fields():
    template = qb.make_match(["id", "email"])
    query = template({"id": "u1", "firstname": "Ann", "password": "x"})

    assert query.params == {"id": "u1"}
    assert "WHERE node.id = $id" in query.text
    assert "email" not in query.text
    assert query.text.startswith("MATCH (node:User)")


def test_match_joins_multiple_keys_with_and():
    query = qb.make_match(["id", "email"])({"id": "u1", "email": "a@b.c"})

    assert query.params == {"id": "u1", "email": "a@b.c"}
    assert "WHERE node.id = $id AND node.email = $email" in query.text


def test_match_without_keys_covers_whole_label():
    query = qb.make_match()({"id": "u1"})

    assert query.params == {}
    assert "WHERE" not in query.text
    assert query.text == "MATCH (node:User)\nRETURN node"


def test_match_drops_keys_outside_schema_input():
    schema = EntitySchema(label="Thing", fields=(("a", str), ("b", str)))
    query = QueryBuilder(schema).make_match(["a", "b"])({"b": 1, "c": 2})

    assert query.params == {"b": 1}


def test_unknown_key_field_is_rejected_when_building():
    with pytest.raises(ValueError):
        qb.make_match(["nickname"])


def test_merge_sets_schema_fields_and_create_only_extras():
    template = qb.make_merge(["id"], {"created": StoreExpr("timestamp()"), "source": "api"})
    query = template({"id": "u1", "firstname": "Ann", "skills": [{"name": "go"}]})

    lines = query.text.splitlines()
    assert lines[0] == "MERGE (node:User {id: $id})"
    assert lines[1] == "ON CREATE SET node.created = timestamp(), node.source = $_create_source"
    assert lines[2] == "SET node.firstname = $firstname"
    assert lines[-1] == "RETURN node"
    assert query.params == {"id": "u1", "firstname": "Ann", "_create_source": "api"}


def test_merge_with_only_key_has_no_set_clause():
    query = qb.make_merge(["id"])({"id": "u1"})

    assert query.text == "MERGE (node:User {id: $id})\nRETURN node"


def test_merge_requires_key_value():
    template = qb.make_merge(["id"])
    with pytest.raises(ContractViolation):
        template({"firstname": "Ann"})
    with pytest.raises(ContractViolation):
        template({"id": None})


def test_merge_needs_a_key_field():
    with pytest.raises(ValueError):
        qb.make_merge([])


def test_merge_placeholders_list_fields_and_literal_extras():
    template = qb.make_merge(["id"], {"created": StoreExpr("timestamp()"), "source": "api"})

    assert template.placeholders == USER.field_names + ("_create_source",)


def test_delete_by_key_detaches_relationships():
    query = qb.make_delete(["id"])({"id": "u1"})

    assert query.text.splitlines() == [
        "MATCH (node:User)",
        "WHERE node.id = $id",
        "DETACH DELETE node",
        "RETURN count(node) AS deleted",
    ]
    assert query.params == {"id": "u1"}


def test_delete_without_keys_covers_whole_label():
    query = qb.make_delete()(None)

    assert "WHERE" not in query.text
    assert query.params == {}


def test_templates_are_reusable():
    template = qb.make_match(["id"])

    first = template({"id": "u1"})
    second = template({"id": "u2"})

    assert first.text == second.text
    assert first.params == {"id": "u1"}
    assert second.params == {"id": "u2"}
