"""
Relationship queries: idempotent edge creation, traversal and removal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from .errors import ContractViolation
from .formatting import Entity, format_many
from .payloads import parse_object_list
from .pipeline import OperationResult
from .query_builder import Query
from .schema import IDENTIFIER, EntitySchema, StoreExpr
from .store import GraphStore


Targets = Union[Entity, Sequence[Entity]]


def _check_identifier(value: str, what: str) -> None:
    if not value or not IDENTIFIER.match(value):
        raise ContractViolation(f"Invalid {what}: {value!r}")


def _require_persisted(entity: Entity, role: str) -> None:
    if not entity.internal_id:
        raise ContractViolation(
            f"{role} {entity.label} {entity.data.get('id', '')!s} has no internal id; persist it first"
        )


def _as_list(targets: Targets | None) -> List[Entity]:
    if targets is None:
        return []
    if isinstance(targets, Entity):
        return [targets]
    return list(targets)


def build_relationship_query(
    source: Entity,
    label: str,
    targets: Targets,
    props: Mapping[str, Any] | None = None,
) -> Query:
    """
    One query that matches ``source`` and every target by internal id and
    merges a ``label`` edge to each. Re-running it creates no duplicates;
    ``props`` are written only when an edge is created.
    """
    if not label:
        raise ContractViolation("You must give this relationship a label")
    _check_identifier(label, "relationship label")
    _require_persisted(source, "Source")

    targets = _as_list(targets)
    if not targets:
        raise ContractViolation(f"{label} relationship needs at least one target")

    props = dict(props or {})
    literal: Dict[str, Any] = {}
    computed: List[Tuple[str, str]] = []
    for name, value in props.items():
        _check_identifier(name, "relationship property")
        if isinstance(value, StoreExpr):
            computed.append((name, value.text))
        else:
            literal[name] = value

    params: Dict[str, Any] = {"from": source.internal_id}
    matches = ["MATCH (a) WHERE elementId(a) = $from"]
    merges: List[str] = []
    for index, target in enumerate(targets):
        _require_persisted(target, "Target")
        ident = f"ident_{index}"
        rel = f"rel_{index}"
        params[ident] = target.internal_id
        matches.append(f"MATCH ({ident}) WHERE elementId({ident}) = ${ident}")
        merges.append(f"MERGE (a)-[{rel}:{label}]->({ident})")

        assignments = []
        if literal:
            assignments.append(f"{rel} += $props")
        assignments.extend(f"{rel}.{name} = {text}" for name, text in computed)
        if assignments:
            merges.append("ON CREATE SET " + ", ".join(assignments))

    if literal:
        params["props"] = literal

    lines = matches + merges + ["RETURN count(*) AS matched"]
    return Query("\n".join(lines), params)


async def create_relationship(
    store: GraphStore,
    source: Entity,
    label: str,
    targets: Targets | None,
    props: Mapping[str, Any] | None = None,
) -> OperationResult:
    """Create ``label`` edges from ``source`` to each target in one round-trip."""
    if not _as_list(targets):
        # Validate the label even when there is nothing to link.
        if not label:
            raise ContractViolation("You must give this relationship a label")
        return OperationResult(0, [])

    query = build_relationship_query(source, label, targets, props)
    records = await store.run(query.text, query.params)
    matched = records[0].get("matched", 0) if records else 0
    return OperationResult(matched, [query])


def build_traversal_query(schema: EntitySchema, key: str, value: Any, label: str) -> Query:
    _check_identifier(label, "relationship label")
    if key not in schema:
        raise ContractViolation(f"{key!r} is not a {schema.label} field")
    text = "\n".join(
        [
            f"MATCH (a:{schema.label} {{{key}: $key}})-[:{label}]->(node)",
            "RETURN node",
        ]
    )
    return Query(text, {"key": value})


async def traverse(
    store: GraphStore,
    schema: EntitySchema,
    key: str,
    value: Any,
    label: str,
    target_label: str = "",
) -> OperationResult:
    """Every node reached from the keyed source over ``label`` edges."""
    query = build_traversal_query(schema, key, value, label)
    records = await store.run(query.text, query.params)
    return OperationResult(format_many(target_label, records), [query])


@dataclass(frozen=True)
class RelationshipType:
    """An edge kind a caller may refer to by name, e.g. ``"skills"``."""

    name: str
    label: str
    target: EntitySchema
    match_fields: Tuple[str, ...]


def parse_descriptors(raw: Any) -> List[Dict[str, Any]]:
    """
    Relationship descriptors as a list of dicts.

    Accepts a list, or its JSON text; each item may itself be a dict or the
    JSON text of one.
    """
    return parse_object_list(raw, "relationship descriptor")


def _condition(rel: RelationshipType, descriptor: Mapping[str, Any], placeholder: str) -> str:
    for name in rel.match_fields:
        if descriptor.get(name) is not None:
            return f"b.{name} = ${placeholder}"
    raise ContractViolation(
        f"{rel.name} descriptor needs one of: {', '.join(rel.match_fields)}"
    )


def _match_value(rel: RelationshipType, descriptor: Mapping[str, Any]) -> Any:
    return next(descriptor[name] for name in rel.match_fields if descriptor.get(name) is not None)


def build_removal_query(
    schema: EntitySchema,
    key: str,
    value: Any,
    rel: RelationshipType,
    descriptors: Iterable[Mapping[str, Any]],
) -> Query:
    """
    Delete the ``rel`` edges from the keyed source to each described target.

    Targets stay in the graph. The first condition is introduced with
    ``WHERE`` and each following one with ``OR``.
    """
    descriptors = list(descriptors)
    if not descriptors:
        raise ContractViolation(f"No {rel.name} relationships to remove")

    params: Dict[str, Any] = {"key": value}
    lines = [f"MATCH (a:{schema.label} {{{key}: $key}})-[r:{rel.label}]->(b:{rel.target.label})"]
    for index, descriptor in enumerate(descriptors):
        placeholder = f"_{index}"
        prefix = "WHERE" if index == 0 else "OR"
        lines.append(f"{prefix} {_condition(rel, descriptor, placeholder)}")
        params[placeholder] = _match_value(rel, descriptor)
    lines.append("DELETE r")
    lines.append("RETURN count(r) AS deleted")
    return Query("\n".join(lines), params)
