"""
Operation pipeline: build query -> run it -> format the records.

An :class:`Operation` binds a query template (any callable returning a
:class:`~jobgraph.query_builder.Query`) to a result formatter. Optional
``setup`` prepares raw input before the query is built, and post-processors
attached with :meth:`Operation.then` transform the formatted value. Store
failures propagate to the caller; nothing is formatted or defaulted then.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .query_builder import Query
from .store import GraphStore, Record


Formatter = Callable[[Sequence[Record]], Any]
Setup = Callable[[Any], Any]
PostProcessor = Callable[[Any], Any]
QueryFactory = Callable[[Any], Query]
ItemOperation = Callable[[GraphStore, Any], Awaitable[Any]]


@dataclass
class OperationResult:
    """A formatted value plus the queries that produced it."""

    value: Any
    queries: List[Query] = field(default_factory=list)

    def queries_as_dicts(self) -> List[Dict[str, Any]]:
        return [query.as_dict() for query in self.queries]


@dataclass(frozen=True)
class Operation:
    template: Optional[QueryFactory] = None
    formatter: Optional[Formatter] = None
    setup: Optional[Setup] = None
    post: Tuple[PostProcessor, ...] = ()

    def then(self, post_processor: PostProcessor) -> "Operation":
        """Return a copy that applies ``post_processor`` to the formatted value."""
        return replace(self, post=self.post + (post_processor,))

    def map(self, item_operation: ItemOperation) -> "MappedOperation":
        """
        Return an operation that runs ``item_operation`` once per input item.

        The input (after ``setup``) must be a sequence; results come back in
        input order.
        """
        return MappedOperation(self, item_operation)

    async def execute(self, store: GraphStore, params: Any = None) -> OperationResult:
        if self.setup is not None:
            params = self.setup(params)

        queries: List[Query] = []
        if self.template is None:
            value = params
        else:
            query = self.template(params)
            queries.append(query)
            records = await store.run(query.text, query.params)
            value = self.formatter(records) if self.formatter is not None else records

        for post_processor in self.post:
            value = post_processor(value)
        return OperationResult(value, queries)


@dataclass(frozen=True)
class MappedOperation:
    source: Operation
    item_operation: ItemOperation

    async def execute(self, store: GraphStore, params: Any = None) -> List[Any]:
        prepared = await self.source.execute(store, params)
        items = list(prepared.value or [])
        return list(
            await asyncio.gather(*(self.item_operation(store, item) for item in items))
        )
