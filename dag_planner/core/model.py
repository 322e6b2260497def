from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence


@dataclass(frozen=True)
class WorkItem:
    id: str
    dependencies: tuple[str, ...] = ()
    priority: int = 2  # ordinal, 0 = P0 (highest)

    effort: Optional[float] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        # Read-only view over a private copy; the caller keeps its dict.
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass(frozen=True)
class GraphEdge:
    source: str  # dependent
    target: str  # dependency
    weight: int = 1


@dataclass(frozen=True)
class GraphNode:
    id: str
    item: WorkItem
    dependencies: tuple[str, ...]  # outgoing edges, sorted
    dependents: tuple[str, ...]  # incoming edges, sorted
    depth: Optional[int] = None

    @property
    def is_root(self) -> bool:
        return not self.dependencies

    @property
    def is_leaf(self) -> bool:
        return not self.dependents


@dataclass(frozen=True)
class DependencyGraph:
    nodes_by_id: dict[str, GraphNode]
    edges: list[GraphEdge]
    cycles: tuple[tuple[str, ...], ...] = ()

    @property
    def has_depths(self) -> bool:
        return all(n.depth is not None for n in self.nodes_by_id.values())

    def with_depths(self, depths: Mapping[str, int]) -> DependencyGraph:
        nodes = {nid: replace(n, depth=depths[nid]) for nid, n in self.nodes_by_id.items()}
        return replace(self, nodes_by_id=nodes)

    def with_cycles(self, cycles: Sequence[Sequence[str]]) -> DependencyGraph:
        return replace(self, cycles=tuple(tuple(c) for c in cycles))


@dataclass(frozen=True)
class GraphStatistics:
    total_nodes: int
    total_edges: int
    max_depth: Optional[int]
    root_nodes: int
    leaf_nodes: int
    cycles: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class ParallelGroup:
    depth: int
    member_ids: tuple[str, ...]


@dataclass(frozen=True)
class ExecutionPlan:
    execution_order: tuple[str, ...]
    parallel_groups: tuple[ParallelGroup, ...]
    critical_path: tuple[str, ...] = ()

    def remaining(self, completed: set[str] | frozenset[str]) -> ExecutionPlan:
        """Drop completed ids so an interrupted run can replay the rest.

        Group depths are kept as-is; emptied groups are dropped.
        """
        order = tuple(nid for nid in self.execution_order if nid not in completed)
        groups: list[ParallelGroup] = []
        for g in self.parallel_groups:
            members = tuple(nid for nid in g.member_ids if nid not in completed)
            if members:
                groups.append(ParallelGroup(depth=g.depth, member_ids=members))
        path = tuple(nid for nid in self.critical_path if nid not in completed)
        return ExecutionPlan(execution_order=order, parallel_groups=tuple(groups), critical_path=path)


@dataclass(frozen=True)
class WorkItemSet:
    schema_version: str
    items: list[WorkItem]
    resolution_map: Optional[dict[str, str]] = None
