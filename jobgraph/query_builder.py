"""
Parameterized Cypher templates built from an entity schema.

A :class:`QueryBuilder` is created once per label. Its ``make_*`` methods
return immutable :class:`QueryTemplate` values; calling a template with a
parameter mapping yields a :class:`Query` (text + bound parameters).

Only fields declared in the schema are ever bound. Unknown input fields are
dropped, and key fields missing from the input narrow the ``WHERE`` clause
instead of failing. An empty key set matches the whole label extent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import ContractViolation
from .schema import IDENTIFIER, EntitySchema, StoreExpr


NODE = "node"

MATCH = "match"
MERGE = "merge"
DELETE = "delete"


@dataclass(frozen=True)
class Query:
    """Query text plus the parameters bound to its placeholders."""

    text: str
    params: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"query": self.text, "params": dict(self.params)}


def _where(keys: Iterable[str], params: Mapping[str, Any]) -> Tuple[List[str], Dict[str, Any]]:
    present = [key for key in keys if key in params]
    clause = []
    if present:
        clause.append(
            "WHERE " + " AND ".join(f"{NODE}.{key} = ${key}" for key in present)
        )
    return clause, {key: params[key] for key in present}


@dataclass(frozen=True)
class QueryTemplate:
    """A reusable query shape for one (schema, keys, kind) combination."""

    schema: EntitySchema
    kind: str
    keys: Tuple[str, ...] = ()
    on_create: Tuple[Tuple[str, Any], ...] = ()

    @property
    def placeholders(self) -> Tuple[str, ...]:
        """Placeholder names this template may bind, in order."""
        if self.kind != MERGE:
            return self.keys
        literal = tuple(
            f"_create_{name}"
            for name, value in self.on_create
            if not isinstance(value, StoreExpr)
        )
        return self.schema.field_names + literal

    def __call__(self, params: Mapping[str, Any] | None = None) -> Query:
        data = self.schema.project(params)
        if self.kind == MATCH:
            return self._match(data)
        if self.kind == MERGE:
            return self._merge(data)
        return self._delete(data)

    def _match(self, data: Dict[str, Any]) -> Query:
        where, bound = _where(self.keys, data)
        lines = [f"MATCH ({NODE}:{self.schema.label})", *where, f"RETURN {NODE}"]
        return Query("\n".join(lines), bound)

    def _delete(self, data: Dict[str, Any]) -> Query:
        where, bound = _where(self.keys, data)
        lines = [
            f"MATCH ({NODE}:{self.schema.label})",
            *where,
            f"DETACH DELETE {NODE}",
            f"RETURN count({NODE}) AS deleted",
        ]
        return Query("\n".join(lines), bound)

    def _merge(self, data: Dict[str, Any]) -> Query:
        missing = [key for key in self.keys if data.get(key) is None]
        if missing:
            raise ContractViolation(
                f"{self.schema.label} upsert requires key field(s): {', '.join(missing)}"
            )

        match_map = ", ".join(f"{key}: ${key}" for key in self.keys)
        lines = [f"MERGE ({NODE}:{self.schema.label} {{{match_map}}})"]
        bound = dict(data)

        if self.on_create:
            assignments = []
            for name, value in self.on_create:
                if isinstance(value, StoreExpr):
                    assignments.append(f"{NODE}.{name} = {value.text}")
                else:
                    placeholder = f"_create_{name}"
                    assignments.append(f"{NODE}.{name} = ${placeholder}")
                    bound[placeholder] = value
            lines.append("ON CREATE SET " + ", ".join(assignments))

        updates = [name for name in data if name not in self.keys]
        if updates:
            lines.append("SET " + ", ".join(f"{NODE}.{name} = ${name}" for name in updates))

        lines.append(f"RETURN {NODE}")
        return Query("\n".join(lines), bound)


class QueryBuilder:
    """Builds match / merge / delete templates for a single entity schema."""

    def __init__(self, schema: EntitySchema) -> None:
        self.schema = schema

    def _keys(self, keys: Sequence[str] | None) -> Tuple[str, ...]:
        keys = tuple(keys or ())
        unknown = [key for key in keys if key not in self.schema]
        if unknown:
            raise ValueError(
                f"Key field(s) not declared on {self.schema.label}: {', '.join(unknown)}"
            )
        return keys

    def make_match(self, keys: Sequence[str] | None = None) -> QueryTemplate:
        return QueryTemplate(self.schema, MATCH, self._keys(keys))

    def make_merge(
        self,
        keys: Sequence[str],
        on_create: Mapping[str, Any] | None = None,
    ) -> QueryTemplate:
        """
        Upsert template matching on ``keys``.

        ``on_create`` values are applied only when the node is created. Use
        :class:`StoreExpr` for values the store computes (``timestamp()``).
        """
        keys = self._keys(keys)
        if not keys:
            raise ValueError(f"{self.schema.label} merge needs at least one key field")
        extras = tuple((on_create or {}).items())
        for name, _ in extras:
            if not IDENTIFIER.match(name):
                raise ValueError(f"Invalid on-create field name: {name!r}")
        return QueryTemplate(self.schema, MERGE, keys, extras)

    def make_delete(self, keys: Sequence[str] | None = None) -> QueryTemplate:
        return QueryTemplate(self.schema, DELETE, self._keys(keys))
