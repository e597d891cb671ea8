"""
Exceptions raised by the query, pipeline and orchestration layers.
"""

from __future__ import annotations

from typing import Any, Dict


class JobGraphError(Exception):
    """Base class for all errors raised by this package."""


class ContractViolation(JobGraphError, ValueError):
    """Caller input broke an operation's contract; no query was sent."""


class EntityNotFound(JobGraphError, LookupError):
    """A single-entity read matched nothing."""

    def __init__(self, label: str, key: Dict[str, Any]) -> None:
        self.label = label
        self.key = dict(key)
        super().__init__(f"{label} not found for {self.key}")


class StoreAccessError(JobGraphError, RuntimeError):
    """The graph store rejected or failed to run a query."""


class PartialWriteError(JobGraphError):
    """
    One or more parallel sub-writes of an orchestrated write failed.

    Writes that did succeed are not rolled back; they are reported in
    ``completed`` next to the ``failures``.
    """

    def __init__(self, failures: Dict[str, BaseException], completed: Dict[str, Any]) -> None:
        self.failures = failures
        self.completed = completed
        steps = ", ".join(sorted(failures))
        super().__init__(f"Orchestrated write failed in step(s): {steps}")
