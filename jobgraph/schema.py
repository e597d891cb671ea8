"""
Entity schemas: which fields each node label carries.

A schema is only used to select the caller-supplied fields that may reach a
query. Anything not declared here is dropped before parameters are bound.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple


IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class StoreExpr:
    """An expression evaluated by the store, e.g. ``timestamp()``."""

    text: str


@dataclass(frozen=True)
class EntitySchema:
    """Label plus ordered field declarations (name -> python type)."""

    label: str
    fields: Tuple[Tuple[str, type], ...]

    def __post_init__(self) -> None:
        for name in (self.label, *self.field_names):
            if not IDENTIFIER.match(name):
                raise ValueError(f"Invalid identifier in schema {self.label!r}: {name!r}")

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.fields)

    @property
    def types(self) -> Dict[str, type]:
        return dict(self.fields)

    def __contains__(self, name: object) -> bool:
        return name in self.field_names

    def project(self, params: Mapping[str, Any] | None) -> Dict[str, Any]:
        """Keep only declared fields, in declaration order."""
        if not params:
            return {}
        return {name: params[name] for name in self.field_names if name in params}


USER = EntitySchema(
    label="User",
    fields=(
        ("id", str),  # LinkedIn id
        ("firstname", str),
        ("lastname", str),
        ("email", str),
        ("linkedInToken", str),
        ("profileImage", str),
    ),
)

SKILL = EntitySchema(
    label="Skill",
    fields=(
        ("name", str),
        ("normalized", str),
    ),
)

LOCATION = EntitySchema(
    label="Location",
    fields=(
        ("city", str),
        ("state", str),
        ("country", str),
    ),
)

# Nested objects arrive serialized as JSON text.
JOB = EntitySchema(
    label="Job",
    fields=(
        ("id", str),
        ("title", str),
        ("created", str),
        ("company", str),
        ("salary", str),
        ("equity", str),
        ("roles", str),
        ("skills", str),
        ("loc", str),
    ),
)
