from __future__ import annotations

from collections import defaultdict

from dag_planner.core.errors import DepthsNotComputedError
from dag_planner.core.graph.scheduler import ordering_key
from dag_planner.core.model import DependencyGraph, GraphNode, ParallelGroup


class ParallelGroupPlanner:
    """Bucket nodes by depth.

    A dependency always sits at a strictly smaller depth than its dependent,
    so members of one group never depend on each other. Groups must still be
    run in ascending depth order.
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    def plan(self) -> list[ParallelGroup]:
        if not self._graph.has_depths:
            raise DepthsNotComputedError(
                code="E_DEPTHS_NOT_COMPUTED",
                message="graph has no depths; schedule it before planning parallel groups",
            )

        by_depth: dict[int, list[GraphNode]] = defaultdict(list)
        for node in self._graph.nodes_by_id.values():
            by_depth[node.depth].append(node)

        return [
            ParallelGroup(
                depth=depth,
                member_ids=tuple(n.id for n in sorted(by_depth[depth], key=ordering_key)),
            )
            for depth in sorted(by_depth)
        ]


def split_waves(group: ParallelGroup, max_workers: int) -> list[tuple[str, ...]]:
    """Chunk one group into waves of at most max_workers members."""
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    ids = group.member_ids
    return [ids[i : i + max_workers] for i in range(0, len(ids), max_workers)]
