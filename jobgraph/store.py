"""
Store access: the narrow request/response contract the query layers run on.

A store takes a query string and a flat parameter map and returns a list of
records. Each record maps a returned column name to a value; graph nodes come
back as :class:`StoreNode` so nothing above this module touches driver types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Protocol

from neo4j import AsyncDriver
from neo4j.exceptions import DriverError, Neo4jError
from neo4j.graph import Node

from .errors import StoreAccessError


logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass(frozen=True)
class StoreNode:
    """A node as returned by the store: labels, properties and its store id."""

    element_id: str
    labels: FrozenSet[str] = frozenset()
    properties: Mapping[str, Any] = field(default_factory=dict)


class GraphStore(Protocol):
    """Anything that can run a parameterized query."""

    async def run(self, query: str, params: Mapping[str, Any]) -> List[Record]:
        ...


def _convert(value: Any) -> Any:
    if isinstance(value, Node):
        return StoreNode(
            element_id=value.element_id,
            labels=frozenset(value.labels),
            properties=dict(value.items()),
        )
    if isinstance(value, list):
        return [_convert(item) for item in value]
    return value


class Neo4jStore:
    """:class:`GraphStore` backed by the async Neo4j driver."""

    def __init__(self, driver: AsyncDriver, database: str | None = None) -> None:
        self._driver = driver
        self._database = database

    async def run(self, query: str, params: Mapping[str, Any]) -> List[Record]:
        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(query, dict(params))
                return [
                    {key: _convert(value) for key, value in record.items()}
                    async for record in result
                ]
        except (Neo4jError, DriverError) as exc:
            logger.debug("Query failed: %s params=%s", query, params)
            raise StoreAccessError(str(exc)) from exc
