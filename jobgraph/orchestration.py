"""
Composed writes: a primary upsert, nested upserts in parallel, then links.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .background import BackgroundTasks
from .errors import PartialWriteError
from .formatting import Entity
from .pipeline import OperationResult
from .store import GraphStore


logger = logging.getLogger(__name__)

PRIMARY = "primary"


@dataclass
class OrchestratedWrite:
    """
    Results of one composed operation.

    ``nested`` maps a group name to an :class:`OperationResult` or a list of
    them; ``edges`` holds edge writes that were awaited (fire-and-forget
    edges are not reported here).
    """

    primary: OperationResult
    nested: Dict[str, Any] = field(default_factory=dict)
    edges: Dict[str, OperationResult] = field(default_factory=dict)

    @property
    def entity(self) -> Optional[Entity]:
        return self.primary.value

    def nested_entities(self, group: str) -> List[Entity]:
        found = self.nested.get(group)
        if found is None:
            return []
        results = found if isinstance(found, list) else [found]
        return [result.value for result in results if result.value is not None]

    def results(self) -> List[OperationResult]:
        """Every result flattened in step order: primary, nested, edges."""
        flat = [self.primary]
        for value in list(self.nested.values()) + list(self.edges.values()):
            flat.extend(value if isinstance(value, list) else [value])
        return flat


Linker = Callable[[GraphStore, OrchestratedWrite], Awaitable[Any]]


async def orchestrate_write(
    store: GraphStore,
    background: BackgroundTasks,
    primary: Awaitable[OperationResult],
    nested: Mapping[str, Awaitable[Any]],
    link: Linker | None = None,
    name: str = "write",
) -> OrchestratedWrite:
    """
    Start the primary and every nested write together and wait for all of
    them. Once all settle successfully, ``link`` runs in the background and
    the collected results are returned without waiting for it.

    A single failing step is re-raised as is; with several steps, failures are
    wrapped in :class:`PartialWriteError`. Completed writes are kept.
    """
    steps: Dict[str, Awaitable[Any]] = {PRIMARY: primary, **nested}
    tasks = {step: asyncio.ensure_future(awaitable) for step, awaitable in steps.items()}
    outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)
    settled = dict(zip(tasks, outcomes))

    failures = {step: out for step, out in settled.items() if isinstance(out, BaseException)}
    if failures:
        completed = {step: out for step, out in settled.items() if step not in failures}
        if len(settled) == 1:
            raise failures[PRIMARY]
        logger.warning("%s: step(s) %s failed, %s completed", name, sorted(failures), sorted(completed))
        error = PartialWriteError(failures, completed)
        raise error from next(iter(failures.values()))

    write = OrchestratedWrite(primary=settled.pop(PRIMARY), nested=settled)
    if link is not None and write.entity is not None:
        background.spawn(link(store, write), name=f"{name}:link")
    return write
