from __future__ import annotations

import logging
from collections import defaultdict
from typing import Mapping, Optional, Sequence

from dag_planner.core.errors import ComponentNotFoundError, DuplicateNodeError
from dag_planner.core.model import DependencyGraph, GraphEdge, GraphNode, WorkItem

logger = logging.getLogger(__name__)


class GraphBuilder:
    """Turn an ordered list of work items into a DependencyGraph.

    When a resolution map is given, both an item's own id and each of its
    dependency references are looked up in it to find the node id they
    occupy. Without one, ids are used as-is.

    The builder does not look for cycles; see CycleDetector.
    """

    def __init__(self, resolution_map: Optional[Mapping[str, str]] = None) -> None:
        self._resolution_map = dict(resolution_map) if resolution_map is not None else None

    def build(self, items: Sequence[WorkItem]) -> DependencyGraph:
        # All state is local so a failed build leaves nothing behind.
        node_ids: list[str] = []
        items_by_node: dict[str, WorkItem] = {}

        for i, item in enumerate(items):
            nid = self._resolve_own(item, i)
            if nid in items_by_node:
                raise DuplicateNodeError(
                    code="E_DUPLICATE_NODE",
                    message=(
                        f"{item.id} resolves to node {nid}, "
                        f"already occupied by {items_by_node[nid].id}"
                    ),
                    path=f"items[{i}].id",
                    node_id=nid,
                )
            node_ids.append(nid)
            items_by_node[nid] = item

        weights: dict[tuple[str, str], int] = {}
        edge_order: list[tuple[str, str]] = []
        dependencies: dict[str, set[str]] = defaultdict(set)
        dependents: dict[str, set[str]] = defaultdict(set)

        for i, (nid, item) in enumerate(zip(node_ids, items)):
            for j, ref in enumerate(item.dependencies):
                target = self._resolve_reference(ref, item, f"items[{i}].dependencies[{j}]")
                if target not in items_by_node:
                    if target == ref:
                        message = f"{item.id} depends on unknown id: {ref}"
                    else:
                        # The map knows the reference but no item occupies its node.
                        message = f"{item.id} depends on {ref}, which resolves to unknown node {target}"
                    raise ComponentNotFoundError(
                        code="E_COMPONENT_NOT_FOUND",
                        message=message,
                        path=f"items[{i}].dependencies[{j}]",
                        reference=ref,
                        referenced_by=item.id,
                    )
                key = (nid, target)
                if key in weights:
                    weights[key] += 1
                    continue
                weights[key] = 1
                edge_order.append(key)
                dependencies[nid].add(target)
                dependents[target].add(nid)

        nodes_by_id = {
            nid: GraphNode(
                id=nid,
                item=items_by_node[nid],
                dependencies=tuple(sorted(dependencies.get(nid, ()))),
                dependents=tuple(sorted(dependents.get(nid, ()))),
            )
            for nid in node_ids
        }
        edges = [GraphEdge(source=s, target=t, weight=weights[(s, t)]) for s, t in edge_order]

        logger.debug("built graph: %d nodes, %d edges", len(nodes_by_id), len(edges))
        return DependencyGraph(nodes_by_id=nodes_by_id, edges=edges)

    def _resolve_own(self, item: WorkItem, index: int) -> str:
        if self._resolution_map is None:
            return item.id
        nid = self._resolution_map.get(item.id)
        if nid is None:
            raise ComponentNotFoundError(
                code="E_COMPONENT_NOT_FOUND",
                message=f"item {item.id} has no entry in the resolution map",
                path=f"items[{index}].id",
                reference=item.id,
                referenced_by=None,
            )
        return nid

    def _resolve_reference(self, ref: str, owner: WorkItem, path: str) -> str:
        if self._resolution_map is None:
            return ref
        target = self._resolution_map.get(ref)
        if target is None:
            raise ComponentNotFoundError(
                code="E_COMPONENT_NOT_FOUND",
                message=f"{owner.id} depends on unknown id: {ref}",
                path=path,
                reference=ref,
                referenced_by=owner.id,
            )
        return target


def build_graph(
    items: Sequence[WorkItem], resolution_map: Optional[Mapping[str, str]] = None
) -> DependencyGraph:
    return GraphBuilder(resolution_map).build(items)
