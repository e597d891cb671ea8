"""
Skill nodes.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, List

from .errors import ContractViolation
from .formatting import format_many, format_single
from .payloads import parse_object, parse_object_list
from .pipeline import Operation, OperationResult
from .query_builder import QueryBuilder
from .schema import SKILL
from .store import GraphStore


qb = QueryBuilder(SKILL)

_single = partial(format_single, SKILL.label)
_many = partial(format_many, SKILL.label)

_match_all = qb.make_match()
_create = qb.make_merge(["name"])


def _prepare(params: Any) -> Dict[str, Any]:
    return SKILL.project(parse_object(params, "skill"))


def _create_many_setup(params: Any) -> List[Dict[str, Any]]:
    if isinstance(params, dict) and "list" in params:
        params = params["list"]
    return [SKILL.project(item) for item in parse_object_list(params, "skill list")]


def prepare_many(params: Any) -> List[Dict[str, Any]]:
    """
    Skills as they will be upserted. Raises :class:`ContractViolation` for a
    skill without a ``name`` so callers can reject the payload up front.
    """
    prepared = _create_many_setup(params)
    for skill in prepared:
        if skill.get("name") in (None, ""):
            raise ContractViolation(f"Skill requires a name: {skill!r}")
    return prepared


async def create(store: GraphStore, params: Any) -> OperationResult:
    """Upsert a skill by name."""
    return await Operation(_create, _single, setup=_prepare).execute(store, params)


async def create_many(store: GraphStore, params: Any) -> List[OperationResult]:
    """Upsert each skill; results keep the input order."""
    return await Operation(setup=_create_many_setup).map(create).execute(store, params)


async def get_all(store: GraphStore) -> OperationResult:
    return await Operation(_match_all, _many).execute(store)
