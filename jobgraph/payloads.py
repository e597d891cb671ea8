"""
Helpers for nested objects that arrive as JSON text.

Clients send skills, locations and relationship descriptors either as real
objects or as their JSON serialization ("stringified" objects).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from .errors import ContractViolation


def _loads(raw: Any, what: str) -> Any:
    if isinstance(raw, (str, bytes)):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ContractViolation(f"Malformed {what}: {exc}") from exc
    return raw


def parse_object(raw: Any, what: str = "object") -> Dict[str, Any]:
    """A dict from a dict or its JSON text. ``None`` and ``""`` give ``{}``."""
    if raw is None or raw == "":
        return {}
    value = _loads(raw, what)
    if not isinstance(value, dict):
        raise ContractViolation(f"{what} must be an object: {value!r}")
    return value


def parse_object_list(raw: Any, what: str = "object list") -> List[Dict[str, Any]]:
    """A list of dicts; the list and each item may be JSON text."""
    if raw is None or raw == "":
        return []
    value = _loads(raw, what)
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        raise ContractViolation(f"{what} must be a list: {value!r}")
    return [parse_object(item, what) for item in value]


def dumps(value: Any) -> str:
    """JSON text for ``value``; strings pass through unchanged."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)
