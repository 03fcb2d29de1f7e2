"""Data models for the revision-level dependency graph."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Set, Tuple

from ..models import Revision


@dataclass(frozen=True)
class GraphNode:
    """A node in the dependency graph (one pinned revision)."""
    id: str
    name: str
    revision: str = ""
    is_unresolved: bool = False
    is_root: bool = False

    @classmethod
    def from_revision(cls, rev: Revision, is_root: bool = False) -> "GraphNode":
        return cls(
            id=node_id(rev),
            name=rev.name,
            revision=rev.revision,
            is_unresolved=rev.is_unresolved,
            is_root=is_root,
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        return {k: v for k, v in d.items() if v not in (None, False, "")}


@dataclass(frozen=True)
class GraphEdge:
    """An edge in the dependency graph, tagged with the worlds that produced it."""
    from_node: str
    to_node: str
    worlds: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        d = {"from_node": self.from_node, "to_node": self.to_node}
        if self.worlds:
            d["worlds"] = list(self.worlds)
        return d


def node_id(rev: Revision) -> str:
    return str(rev)


@dataclass(frozen=True)
class DependencyGraph:
    """Frozen dependency graph; nodes and edges are sorted by import path."""
    root: GraphNode
    nodes: Tuple[GraphNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    strategy: str = ""

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def node_names(self) -> Set[str]:
        return {n.name for n in self.nodes}

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "root": self.root.id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def to_json(self) -> str:
        """Canonical serialization: identical graphs give identical bytes."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _sort_key(node: GraphNode):
    return (not node.is_root, node.name, node.revision, node.is_unresolved)


class GraphBuilder:
    """Accumulates revision edges during analysis and freezes them on return.

    Self-edges are dropped and duplicate edges collapse, keeping the union of
    their world tags.
    """

    def __init__(self, root: Revision, strategy: str = ""):
        self.root = root
        self.strategy = strategy
        self._nodes: Dict[str, GraphNode] = {node_id(root): GraphNode.from_revision(root, is_root=True)}
        self._edges: Dict[Tuple[str, str], Set[str]] = defaultdict(set)

    def add_edge(self, src: Revision, dst: Revision, worlds: Iterable[str] = ()):
        if src == dst:
            return
        if dst == self.root:
            return
        src_id, dst_id = node_id(src), node_id(dst)
        self._nodes.setdefault(src_id, GraphNode.from_revision(src))
        self._nodes.setdefault(dst_id, GraphNode.from_revision(dst))
        self._edges[(src_id, dst_id)].update(worlds)

    def freeze(self) -> DependencyGraph:
        nodes = sorted(self._nodes.values(), key=_sort_key)
        order = {n.id: i for i, n in enumerate(nodes)}
        edges = [
            GraphEdge(from_node=a, to_node=b, worlds=tuple(sorted(w)))
            for (a, b), w in self._edges.items()
        ]
        edges.sort(key=lambda e: (order[e.from_node], order[e.to_node]))
        return DependencyGraph(
            root=self._nodes[node_id(self.root)],
            nodes=tuple(nodes),
            edges=tuple(edges),
            strategy=self.strategy,
        )
