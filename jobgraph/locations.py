"""
Location nodes.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict

from .errors import ContractViolation
from .formatting import format_many, format_single
from .payloads import parse_object
from .pipeline import Operation, OperationResult
from .query_builder import QueryBuilder
from .schema import LOCATION
from .store import GraphStore


qb = QueryBuilder(LOCATION)

_single = partial(format_single, LOCATION.label)
_many = partial(format_many, LOCATION.label)

_match_all = qb.make_match()
_create = qb.make_merge(["city"])


def _prepare(params: Any) -> Dict[str, Any]:
    return LOCATION.project(parse_object(params, "location"))


def prepare(params: Any) -> Dict[str, Any]:
    """The location as it will be upserted; its ``city`` is required."""
    location = _prepare(params)
    if location.get("city") in (None, ""):
        raise ContractViolation(f"Location requires a city: {location!r}")
    return location


async def create(store: GraphStore, params: Any) -> OperationResult:
    """Upsert a location by city."""
    return await Operation(_create, _single, setup=_prepare).execute(store, params)


async def get_all(store: GraphStore) -> OperationResult:
    return await Operation(_match_all, _many).execute(store)
