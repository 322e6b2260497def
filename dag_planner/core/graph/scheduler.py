from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from dag_planner.core.errors import CircularDependencyError, ScheduleConsistencyError
from dag_planner.core.graph.cycles import detect_cycles, format_cycle
from dag_planner.core.model import DependencyGraph, GraphNode

logger = logging.getLogger(__name__)


def ordering_key(node: GraphNode) -> tuple[int, int, str]:
    """Tie-break among ready nodes: priority, then most dependents, then id."""
    return (node.item.priority, -len(node.dependents), node.id)


@dataclass(frozen=True)
class Schedule:
    order: tuple[str, ...]
    depths: dict[str, int]


class TopologicalScheduler:
    """Kahn's algorithm over dependency edges.

    A node becomes ready once every one of its dependencies has been emitted.
    Among ready nodes, ordering_key decides, so the output is fully
    deterministic for a given graph.

    Pass the cycles already reported by CycleDetector to skip re-detection.
    """

    def __init__(self, graph: DependencyGraph, cycles: Optional[Sequence[Sequence[str]]] = None) -> None:
        self._graph = graph
        self._cycles = cycles

    def schedule(self) -> Schedule:
        cycles = list(self._cycles) if self._cycles is not None else detect_cycles(self._graph)
        if cycles:
            raise circular_dependency_error(cycles)

        nodes = self._graph.nodes_by_id
        in_degree: dict[str, int] = {nid: len(n.dependencies) for nid, n in nodes.items()}
        ready = [ordering_key(n) for nid, n in nodes.items() if in_degree[nid] == 0]
        heapq.heapify(ready)

        order: list[str] = []
        depths: dict[str, int] = {}
        while ready:
            _, _, nid = heapq.heappop(ready)
            node = nodes[nid]
            order.append(nid)
            depths[nid] = 1 + max(depths[d] for d in node.dependencies) if node.dependencies else 0
            for dependent in node.dependents:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, ordering_key(nodes[dependent]))

        if len(order) != len(nodes):
            stuck = sorted(nid for nid, deg in in_degree.items() if deg > 0)
            logger.error(
                "scheduler defect: emitted %d of %d nodes with no cycles reported; stuck: %s",
                len(order),
                len(nodes),
                ", ".join(stuck),
            )
            raise ScheduleConsistencyError(emitted=len(order), total=len(nodes), stuck=stuck)

        logger.debug("scheduled %d nodes, max depth %d", len(order), max(depths.values(), default=0))
        return Schedule(order=tuple(order), depths=depths)


def circular_dependency_error(cycles: Sequence[Sequence[str]]) -> CircularDependencyError:
    first = format_cycle(tuple(cycles[0]))
    more = f" (and {len(cycles) - 1} more)" if len(cycles) > 1 else ""
    return CircularDependencyError(
        code="E_CIRCULAR_DEPENDENCY",
        message=f"dependency cycle detected: {first}{more}",
        path=cycles[0][0],
        cycles=tuple(tuple(c) for c in cycles),
    )


def critical_path(graph: DependencyGraph, order: Sequence[str]) -> tuple[str, ...]:
    """Longest effort-weighted dependency chain, root first.

    `order` must be a valid topological order of `graph`. Items without an
    effort estimate weigh 1.
    """
    if not order:
        return ()

    nodes = graph.nodes_by_id
    length: dict[str, float] = {}
    via: dict[str, Optional[str]] = {}
    for nid in order:
        node = nodes[nid]
        weight = node.item.effort if node.item.effort is not None else 1.0
        best: Optional[str] = None
        for dep in node.dependencies:
            if best is None or length[dep] > length[best]:
                best = dep
        length[nid] = weight + (length[best] if best is not None else 0.0)
        via[nid] = best

    end = order[0]
    for nid in order:
        if length[nid] > length[end]:
            end = nid

    path: list[str] = []
    cur: Optional[str] = end
    while cur is not None:
        path.append(cur)
        cur = via[cur]
    path.reverse()
    return tuple(path)
