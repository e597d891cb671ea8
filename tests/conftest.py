"""
Shared fixtures: an in-memory graph that answers the query shapes this
package generates.
"""

from __future__ import annotations

import asyncio
import itertools
import re
from typing import Any, Callable, Dict, List, Mapping, Set, Tuple

import pytest

from jobgraph.background import BackgroundTasks
from jobgraph.store import StoreNode


MERGE_NODE = re.compile(r"^MERGE \(node:(\w+)(?: \{(.*)\})?\)$")
MATCH_NODE = re.compile(r"^MATCH \(node:(\w+)\)$")
MERGE_EDGE = re.compile(r"^MERGE \(a\)-\[(\w+):(\w+)\]->\((\w+)\)$")
TRAVERSE = re.compile(r"^MATCH \(a:(\w+) \{(\w+): \$key\}\)-\[:(\w+)\]->\(node\)$")
REMOVE = re.compile(r"^MATCH \(a:(\w+) \{(\w+): \$key\}\)-\[r:(\w+)\]->\(b:(\w+)\)$")
ASSIGN = re.compile(r"(\w+)\.(\w+) = (\$\w+|[\w()]+)")
CONDITION = re.compile(r"^(?:WHERE|OR) b\.(\w+) = \$(\w+)$")


class FakeGraph:
    """
    Tiny in-memory stand-in for the graph store.

    Understands node MERGE / MATCH / DETACH DELETE templates, edge MERGE by
    element id, one-hop traversals and edge removal. Anything else is answered
    from ``responses`` (query fragment -> records).
    """

    def __init__(self) -> None:
        self.nodes: Dict[str, Dict[str, Any]] = {}
        self.edges: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.responses: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, BaseException] = {}
        self.delays: Dict[Any, float] = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1000)

    # -- helpers used by tests

    def add_node(self, label: str, **props: Any) -> StoreNode:
        element_id = f"4:test:{next(self._ids)}"
        self.nodes[element_id] = {"labels": {label}, "props": dict(props)}
        return self.snapshot(element_id)

    def snapshot(self, element_id: str) -> StoreNode:
        node = self.nodes[element_id]
        return StoreNode(element_id, frozenset(node["labels"]), dict(node["props"]))

    def find(self, label: str, **props: Any) -> List[StoreNode]:
        return [
            self.snapshot(element_id)
            for element_id, node in self.nodes.items()
            if label in node["labels"]
            and all(node["props"].get(k) == v for k, v in props.items())
        ]

    def edge_labels(self, source_id: str, target_id: str) -> Set[str]:
        return {label for (src, label, dst) in self.edges if src == source_id and dst == target_id}

    def queries_containing(self, fragment: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [call for call in self.calls if fragment in call[0]]

    # -- store contract

    async def run(self, query: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        params = dict(params)
        self.calls.append((query, params))

        delay = self.delays.get(params.get("id") or params.get("name") or params.get("city"))
        if delay:
            await asyncio.sleep(delay)
        else:
            await asyncio.sleep(0)

        for fragment, exc in self.failures.items():
            if fragment in query:
                raise exc
        for fragment, records in self.responses.items():
            if fragment in query:
                return records
        return self._dispatch(query, params)

    def _dispatch(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        lines = [line.strip() for line in query.strip().splitlines()]
        first = lines[0]

        if first.startswith("MERGE (node:"):
            return self._merge_node(lines, params)
        if first == "MATCH (a) WHERE elementId(a) = $from":
            return self._merge_edges(lines, params)
        if TRAVERSE.match(first):
            return self._traverse(first, params)
        if REMOVE.match(first):
            return self._remove(lines, params)
        if MATCH_NODE.match(first):
            return self._match_nodes(lines, params)
        raise AssertionError(f"FakeGraph cannot answer:\n{query}")

    def _resolve(self, token: str, params: Dict[str, Any]) -> Any:
        if token.startswith("$"):
            return params[token[1:]]
        if token == "timestamp()":
            return next(self._clock)
        raise AssertionError(f"Unknown expression {token}")

    def _merge_node(self, lines: List[str], params: Dict[str, Any]) -> List[Dict[str, Any]]:
        label, keys = MERGE_NODE.match(lines[0]).groups()
        key_values = {}
        for pair in (keys or "").split(","):
            if pair.strip():
                name, placeholder = [part.strip() for part in pair.split(":")]
                key_values[name] = self._resolve(placeholder, params)

        found = self.find(label, **key_values)
        if found:
            element_id = found[0].element_id
            created = False
        else:
            element_id = self.add_node(label, **key_values).element_id
            created = True

        props = self.nodes[element_id]["props"]
        for line in lines[1:]:
            if line.startswith("ON CREATE SET") and not created:
                continue
            if line.startswith(("ON CREATE SET", "SET")):
                for _, name, token in ASSIGN.findall(line):
                    props[name] = self._resolve(token, params)
        return [{"node": self.snapshot(element_id)}]

    def _merge_edges(self, lines: List[str], params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if params["from"] not in self.nodes:
            return []
        for line in lines:
            ident = re.match(r"^MATCH \((\w+)\) WHERE elementId\(\1\) = \$\1$", line)
            if ident and params[ident.group(1)] not in self.nodes:
                return []

        current = None
        for line in lines:
            edge = MERGE_EDGE.match(line)
            if edge:
                rel, label, ident = edge.groups()
                current = (params["from"], label, params[ident])
                created = current not in self.edges
                if created:
                    self.edges[current] = {}
            elif line.startswith("ON CREATE SET") and current is not None and created:
                if f"{rel} += $props" in line:
                    self.edges[current].update(params.get("props", {}))
                for _, name, token in ASSIGN.findall(line):
                    self.edges[current][name] = self._resolve(token, params)
        return [{"matched": 1}]

    def _source(self, label: str, key: str, value: Any) -> str | None:
        found = self.find(label, **{key: value})
        return found[0].element_id if found else None

    def _traverse(self, line: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        label, key, rel = TRAVERSE.match(line).groups()
        source = self._source(label, key, params["key"])
        return [
            {"node": self.snapshot(dst)}
            for (src, edge_label, dst) in self.edges
            if src == source and edge_label == rel
        ]

    def _remove(self, lines: List[str], params: Dict[str, Any]) -> List[Dict[str, Any]]:
        label, key, rel, target_label = REMOVE.match(lines[0]).groups()
        source = self._source(label, key, params["key"])
        conditions = [CONDITION.match(line).groups() for line in lines[1:] if CONDITION.match(line)]

        doomed = []
        for (src, edge_label, dst) in self.edges:
            if src != source or edge_label != rel or target_label not in self.nodes[dst]["labels"]:
                continue
            props = self.nodes[dst]["props"]
            if any(props.get(name) == params[placeholder] for name, placeholder in conditions):
                doomed.append((src, edge_label, dst))
        for edge in doomed:
            del self.edges[edge]
        return [{"deleted": len(doomed)}]

    def _match_nodes(self, lines: List[str], params: Dict[str, Any]) -> List[Dict[str, Any]]:
        label = MATCH_NODE.match(lines[0]).group(1)
        wanted = {}
        for line in lines[1:]:
            if line.startswith("WHERE "):
                for _, name, token in ASSIGN.findall(line):
                    wanted[name] = self._resolve(token, params)
        found = self.find(label, **wanted)

        if "DETACH DELETE node" in lines:
            for node in found:
                del self.nodes[node.element_id]
                for edge in [e for e in self.edges if node.element_id in (e[0], e[2])]:
                    del self.edges[edge]
            return [{"deleted": len(found)}]
        return [{"node": node} for node in found]


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def background() -> BackgroundTasks:
    return BackgroundTasks()


@pytest.fixture
def make_node() -> Callable[..., StoreNode]:
    counter = itertools.count(1)

    def _make(label: str, **props: Any) -> StoreNode:
        return StoreNode(f"4:fixture:{next(counter)}", frozenset({label}), props)

    return _make
