"""
Turn raw store records into domain entities.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from .store import Record, StoreNode


class Entity(BaseModel):
    """A labeled graph node: its field map and the id the store assigned it."""

    label: str
    data: Dict[str, Any] = Field(default_factory=dict)
    internal_id: str

    @classmethod
    def from_node(cls, node: StoreNode, label: str | None = None) -> "Entity":
        if label is None:
            label = sorted(node.labels)[0] if node.labels else ""
        return cls(label=label, data=dict(node.properties), internal_id=node.element_id)


def _nodes(records: Sequence[Record], column: str) -> List[StoreNode]:
    return [record[column] for record in records if record.get(column) is not None]


def format_single(label: str, records: Sequence[Record], column: str = "node") -> Optional[Entity]:
    """First returned node as an entity, or ``None`` when nothing matched."""
    nodes = _nodes(records, column)
    if not nodes:
        return None
    return Entity.from_node(nodes[0], label)


def format_many(label: str, records: Sequence[Record], column: str = "node") -> List[Entity]:
    """Every returned node as an entity, in store order."""
    return [Entity.from_node(node, label) for node in _nodes(records, column)]
