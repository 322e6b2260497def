from __future__ import annotations

import logging

from dag_planner.core.model import DependencyGraph

logger = logging.getLogger(__name__)


class CycleDetector:
    """Depth-first search reporting every back-edge cycle in a graph.

    Each cyclic region is reported, but not every elementary cycle inside it:
    with A -> [B, C], B -> [A], C -> [B] only A -> B -> A is returned.

    Each cycle is the on-path segment from the repeated node back to itself,
    with the first id repeated at the end: ["A", "B", "C", "A"].
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    def detect(self) -> list[list[str]]:
        WHITE, GRAY, BLACK = 0, 1, 2
        nodes = self._graph.nodes_by_id
        state: dict[str, int] = {nid: WHITE for nid in nodes}
        emitted: set[tuple[str, ...]] = set()
        out: list[list[str]] = []

        for start in sorted(nodes):
            if state[start] != WHITE:
                continue

            # Iterative DFS; each frame holds the node and its next neighbour index.
            path: list[str] = [start]
            frames: list[tuple[str, int]] = [(start, 0)]
            state[start] = GRAY

            while frames:
                u, idx = frames[-1]
                deps = nodes[u].dependencies
                if idx == len(deps):
                    frames.pop()
                    path.pop()
                    state[u] = BLACK
                    continue

                frames[-1] = (u, idx + 1)
                v = deps[idx]
                if state[v] == GRAY:
                    cycle = path[path.index(v):] + [v]
                    key = _canonical(cycle)
                    if key not in emitted:
                        emitted.add(key)
                        out.append(cycle)
                elif state[v] == WHITE:
                    state[v] = GRAY
                    path.append(v)
                    frames.append((v, 0))

        if out:
            logger.debug("found %d dependency cycle(s)", len(out))
        return out


def _canonical(cycle: list[str]) -> tuple[str, ...]:
    # Rotate so the smallest id leads; drops the repeated closing id.
    body = cycle[:-1]
    pivot = body.index(min(body))
    return tuple(body[pivot:] + body[:pivot])


def detect_cycles(graph: DependencyGraph) -> list[list[str]]:
    return CycleDetector(graph).detect()


def format_cycle(cycle: list[str] | tuple[str, ...]) -> str:
    return " -> ".join(cycle)
