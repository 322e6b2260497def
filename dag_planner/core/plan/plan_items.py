from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from dag_planner.core.graph.builder import GraphBuilder
from dag_planner.core.graph.cycles import CycleDetector
from dag_planner.core.graph.groups import ParallelGroupPlanner
from dag_planner.core.graph.scheduler import TopologicalScheduler, critical_path
from dag_planner.core.model import DependencyGraph, ExecutionPlan, WorkItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    graph: DependencyGraph
    plan: ExecutionPlan


def analyze_items(
    items: Sequence[WorkItem], resolution_map: Optional[Mapping[str, str]] = None
) -> DependencyGraph:
    """Build the graph and record its cycles without scheduling.

    Raises ComponentNotFoundError/DuplicateNodeError on bad references.
    Cycles are reported on the returned graph, never raised.
    """
    graph = GraphBuilder(resolution_map).build(items)
    cycles = CycleDetector(graph).detect()
    return graph.with_cycles(cycles)


def plan_items(
    items: Sequence[WorkItem], resolution_map: Optional[Mapping[str, str]] = None
) -> PlanResult:
    """Run one planning pass: build, detect cycles, schedule, group.

    Each phase is fail-fast: a build error stops everything, and any cycle
    raises CircularDependencyError before an order is produced.
    """
    graph = analyze_items(items, resolution_map)
    schedule = TopologicalScheduler(graph, cycles=graph.cycles).schedule()
    graph = graph.with_depths(schedule.depths)
    groups = ParallelGroupPlanner(graph).plan()

    plan = ExecutionPlan(
        execution_order=schedule.order,
        parallel_groups=tuple(groups),
        critical_path=critical_path(graph, schedule.order),
    )
    logger.debug(
        "planned %d items into %d parallel groups", len(plan.execution_order), len(plan.parallel_groups)
    )
    return PlanResult(graph=graph, plan=plan)
