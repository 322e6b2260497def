from __future__ import annotations

from collections import deque
from typing import Callable

from dag_planner.core.errors import NodeNotFoundError
from dag_planner.core.model import DependencyGraph, GraphNode, GraphStatistics


class GraphQueryService:
    """Read-only queries over a built graph.

    Nothing here needs the graph to be acyclic: transitive walks keep a
    visited set. No state is cached, so concurrent readers are safe.
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    def get_dependencies(self, node_id: str) -> list[str]:
        return list(self._node(node_id).dependencies)

    def get_dependents(self, node_id: str) -> list[str]:
        return list(self._node(node_id).dependents)

    def get_transitive_dependencies(self, node_id: str) -> list[str]:
        """Everything node_id waits on, directly or not. Sorted."""
        return self._walk(node_id, lambda n: n.dependencies)

    def get_transitive_dependents(self, node_id: str) -> list[str]:
        """Everything that waits on node_id; the impact set of a change to it."""
        return self._walk(node_id, lambda n: n.dependents)

    def depends_on(self, a: str, b: str) -> bool:
        self._node(b)
        return b in self.get_transitive_dependencies(a)

    def get_statistics(self) -> GraphStatistics:
        nodes = list(self._graph.nodes_by_id.values())
        max_depth = None
        if self._graph.has_depths:
            max_depth = max((n.depth for n in nodes), default=0)
        return GraphStatistics(
            total_nodes=len(nodes),
            total_edges=len(self._graph.edges),
            max_depth=max_depth,
            root_nodes=sum(1 for n in nodes if n.is_root),
            leaf_nodes=sum(1 for n in nodes if n.is_leaf),
            cycles=self._graph.cycles,
        )

    def _walk(self, node_id: str, neighbours: Callable[[GraphNode], tuple[str, ...]]) -> list[str]:
        # The start node is only included when a cycle leads back to it.
        start = self._node(node_id)
        seen: set[str] = set()
        q: deque[str] = deque(neighbours(start))
        while q:
            cur = q.popleft()
            if cur in seen:
                continue
            seen.add(cur)
            for nxt in neighbours(self._graph.nodes_by_id[cur]):
                if nxt not in seen:
                    q.append(nxt)
        return sorted(seen)

    def _node(self, node_id: str) -> GraphNode:
        node = self._graph.nodes_by_id.get(node_id)
        if node is None:
            raise NodeNotFoundError(
                code="E_NODE_NOT_FOUND",
                message=f"unknown node id: {node_id}",
                path=node_id,
                node_id=node_id,
            )
        return node
