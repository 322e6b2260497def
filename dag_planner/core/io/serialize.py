from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from dag_planner.core.errors import ItemLoadError
from dag_planner.core.graph.query import GraphQueryService
from dag_planner.core.model import (
    DependencyGraph,
    ExecutionPlan,
    GraphEdge,
    GraphNode,
    ParallelGroup,
    WorkItem,
)


def graph_to_dict(graph: DependencyGraph) -> dict[str, Any]:
    stats = GraphQueryService(graph).get_statistics()
    return {
        "nodes": [
            {
                "id": n.id,
                "itemId": n.item.id,
                "references": list(n.item.dependencies),
                "priority": n.item.priority,
                "effort": n.item.effort,
                "metadata": dict(n.item.metadata),
                "depth": n.depth,
                "dependencies": list(n.dependencies),
                "dependents": list(n.dependents),
            }
            for n in graph.nodes_by_id.values()
        ],
        "edges": [{"from": e.source, "to": e.target, "weight": e.weight} for e in graph.edges],
        "statistics": {
            "totalNodes": stats.total_nodes,
            "totalEdges": stats.total_edges,
            "maxDepth": stats.max_depth,
            "rootNodes": stats.root_nodes,
            "leafNodes": stats.leaf_nodes,
            "cycles": [list(c) for c in stats.cycles],
        },
    }


def plan_to_dict(plan: ExecutionPlan) -> dict[str, Any]:
    return {
        "executionOrder": list(plan.execution_order),
        "parallelGroups": [
            {"depth": g.depth, "memberIds": list(g.member_ids)} for g in plan.parallel_groups
        ],
        "criticalPath": list(plan.critical_path),
    }


def plan_from_dict(data: dict[str, Any], *, file: str | None = None) -> ExecutionPlan:
    """Reload a plan written by plan_to_dict, without recomputing anything."""
    order = data.get("executionOrder")
    if not _is_list_of_str(order):
        raise _invalid("executionOrder must be an array of strings", file, "executionOrder")

    raw_groups = data.get("parallelGroups")
    if not isinstance(raw_groups, list):
        raise _invalid("parallelGroups must be an array", file, "parallelGroups")

    groups: list[ParallelGroup] = []
    for i, g in enumerate(raw_groups):
        if (
            not isinstance(g, dict)
            or not isinstance(g.get("depth"), int)
            or not _is_list_of_str(g.get("memberIds"))
        ):
            raise _invalid("group must be {depth: int, memberIds: [str]}", file, f"parallelGroups[{i}]")
        groups.append(ParallelGroup(depth=g["depth"], member_ids=tuple(g["memberIds"])))

    path = data.get("criticalPath", [])
    if not _is_list_of_str(path):
        raise _invalid("criticalPath must be an array of strings", file, "criticalPath")

    return ExecutionPlan(
        execution_order=tuple(order),
        parallel_groups=tuple(groups),
        critical_path=tuple(path),
    )


def graph_from_dict(data: dict[str, Any], *, file: str | None = None) -> DependencyGraph:
    """Reload a graph written by graph_to_dict.

    The edge list is authoritative: each node's dependencies and dependents are
    rebuilt from it, and stored lists that disagree with it are rejected.
    """
    raw_nodes = data.get("nodes")
    raw_edges = data.get("edges")
    if not isinstance(raw_nodes, list):
        raise _invalid("nodes must be an array", file, "nodes")
    if not isinstance(raw_edges, list):
        raise _invalid("edges must be an array", file, "edges")

    raw_by_id: dict[str, dict[str, Any]] = {}
    items: dict[str, WorkItem] = {}
    for i, n in enumerate(raw_nodes):
        where = f"nodes[{i}]"
        if not isinstance(n, dict) or not isinstance(n.get("id"), str):
            raise _invalid("node must be an object with a string id", file, where)
        if n["id"] in raw_by_id:
            raise _invalid(f"duplicate node id: {n['id']}", file, f"{where}.id")
        raw_by_id[n["id"]] = n
        items[n["id"]] = _item_from_dict(n, file, where)

    out_edges: dict[str, list[str]] = {nid: [] for nid in raw_by_id}
    in_edges: dict[str, list[str]] = {nid: [] for nid in raw_by_id}
    edges: list[GraphEdge] = []
    for i, e in enumerate(raw_edges):
        where = f"edges[{i}]"
        if not isinstance(e, dict) or not all(isinstance(e.get(k), str) and e[k] in raw_by_id for k in ("from", "to")):
            raise _invalid("edge endpoints must be known node ids", file, where)
        src, dst = e["from"], e["to"]
        if dst in out_edges[src]:
            raise _invalid(f"duplicate edge {src} -> {dst}", file, where)
        weight = e.get("weight", 1)
        if not _is_count(weight) or weight < 1:
            raise _invalid("weight must be a positive integer", file, f"{where}.weight")
        out_edges[src].append(dst)
        in_edges[dst].append(src)
        edges.append(GraphEdge(source=src, target=dst, weight=weight))

    nodes_by_id: dict[str, GraphNode] = {}
    for i, (nid, n) in enumerate(raw_by_id.items()):
        where = f"nodes[{i}]"
        deps = tuple(sorted(out_edges[nid]))
        dependents = tuple(sorted(in_edges[nid]))
        for key, expected in (("dependencies", deps), ("dependents", dependents)):
            stored = n.get(key)
            if stored is None:
                continue
            if not _is_list_of_str(stored):
                raise _invalid(f"{key} must be an array of strings", file, f"{where}.{key}")
            if sorted(stored) != list(expected):
                raise _invalid(f"{key} of {nid} disagree with the edge list", file, f"{where}.{key}")

        depth = n.get("depth")
        if depth is not None and (not _is_count(depth) or depth < 0):
            raise _invalid("depth must be null or a non-negative integer", file, f"{where}.depth")

        nodes_by_id[nid] = GraphNode(
            id=nid,
            item=items[nid],
            dependencies=deps,
            dependents=dependents,
            depth=depth,
        )

    cycles = (data.get("statistics") or {}).get("cycles") or []
    if not isinstance(cycles, list) or not all(_is_list_of_str(c) for c in cycles):
        raise _invalid("cycles must be an array of id arrays", file, "statistics.cycles")
    return DependencyGraph(
        nodes_by_id=nodes_by_id,
        edges=edges,
        cycles=tuple(tuple(c) for c in cycles),
    )


def _item_from_dict(n: dict[str, Any], file: str | None, where: str) -> WorkItem:
    item_id = n.get("itemId", n["id"])
    if not isinstance(item_id, str):
        raise _invalid("itemId must be a string", file, f"{where}.itemId")

    references = n.get("references")
    if references is None:
        references = []
    if not _is_list_of_str(references):
        raise _invalid("references must be an array of strings", file, f"{where}.references")

    # Saved graphs hold ordinals; labels such as "P1" are resolved before build.
    priority = n.get("priority", 2)
    if not _is_count(priority) or priority < 0:
        raise _invalid("priority must be a non-negative integer ordinal", file, f"{where}.priority")

    effort = n.get("effort")
    if effort is not None and (isinstance(effort, bool) or not isinstance(effort, (int, float)) or effort < 0):
        raise _invalid("effort must be null or a non-negative number", file, f"{where}.effort")

    metadata = n.get("metadata")
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise _invalid("metadata must be an object", file, f"{where}.metadata")

    return WorkItem(
        id=item_id,
        dependencies=tuple(references),
        priority=priority,
        effort=effort,
        metadata=metadata,
    )


def dump_json(payload: dict[str, Any], path: str) -> None:
    p = _prepare(path)
    p.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def dump_yaml(payload: dict[str, Any], path: str) -> None:
    p = _prepare(path)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(payload, f, sort_keys=False, default_flow_style=False, allow_unicode=True)


def _prepare(path: str) -> Path:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _invalid(message: str, file: str | None, path: str) -> ItemLoadError:
    return ItemLoadError(code="E_INVALID_PLAN", message=message, file=file, path=path)


def _is_count(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)
