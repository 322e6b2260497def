from concurrent.futures import ThreadPoolExecutor

import pytest

from dag_planner.core.errors import NodeNotFoundError
from dag_planner.core.graph.builder import build_graph
from dag_planner.core.graph.query import GraphQueryService
from dag_planner.core.graph.scheduler import TopologicalScheduler
from dag_planner.core.model import DependencyGraph, WorkItem


def _item(iid: str, *deps: str) -> WorkItem:
    return WorkItem(id=iid, dependencies=tuple(deps))


def _diamond() -> DependencyGraph:
    # D -> B -> A, D -> C -> A, E standalone
    return build_graph([_item("A"), _item("B", "A"), _item("C", "A"), _item("D", "B", "C"), _item("E")])


def _closure(graph: DependencyGraph, node_id: str) -> set[str]:
    result = set(graph.nodes_by_id[node_id].dependencies)
    while True:
        grown = result | {d for nid in result for d in graph.nodes_by_id[nid].dependencies}
        if grown == result:
            return result
        result = grown


def test_direct_neighbours():
    svc = GraphQueryService(_diamond())

    assert svc.get_dependencies("D") == ["B", "C"]
    assert svc.get_dependencies("A") == []
    assert svc.get_dependents("A") == ["B", "C"]
    assert svc.get_dependents("D") == []


def test_transitive_dependencies_match_fixed_point():
    graph = _diamond()
    svc = GraphQueryService(graph)

    for nid in graph.nodes_by_id:
        got = svc.get_transitive_dependencies(nid)
        assert set(got) == _closure(graph, nid)
        assert got == svc.get_transitive_dependencies(nid)
        assert nid not in got


def test_transitive_dependents_give_impact_set():
    svc = GraphQueryService(_diamond())

    assert svc.get_transitive_dependents("A") == ["B", "C", "D"]
    assert svc.get_transitive_dependents("E") == []


def test_depends_on():
    svc = GraphQueryService(_diamond())

    assert svc.depends_on("D", "A") is True
    assert svc.depends_on("B", "A") is True
    assert svc.depends_on("A", "D") is False
    assert svc.depends_on("B", "C") is False
    assert svc.depends_on("A", "A") is False


def test_self_loop_makes_node_depend_on_itself():
    svc = GraphQueryService(build_graph([_item("A", "A")]))
    assert svc.depends_on("A", "A") is True


def test_transitive_walk_terminates_on_cycles():
    svc = GraphQueryService(build_graph([_item("A", "B"), _item("B", "C"), _item("C", "A"), _item("D", "A")]))

    assert svc.get_transitive_dependencies("D") == ["A", "B", "C"]
    assert svc.get_transitive_dependencies("A") == ["A", "B", "C"]
    assert svc.depends_on("A", "C") is True


def test_unknown_node_raises():
    svc = GraphQueryService(_diamond())

    with pytest.raises(NodeNotFoundError) as excinfo:
        svc.get_dependencies("NOPE")
    assert excinfo.value.node_id == "NOPE"

    with pytest.raises(NodeNotFoundError):
        svc.depends_on("A", "NOPE")


def test_statistics_before_and_after_scheduling():
    graph = build_graph([_item("CMP-001"), _item("CMP-002", "CMP-001"), _item("CMP-003", "CMP-001", "CMP-002")])

    before = GraphQueryService(graph).get_statistics()
    assert before.total_nodes == 3
    assert before.total_edges == 3
    assert before.max_depth is None

    scheduled = graph.with_depths(TopologicalScheduler(graph).schedule().depths)
    after = GraphQueryService(scheduled).get_statistics()
    assert after.max_depth == 2
    assert after.root_nodes == 1
    assert after.leaf_nodes == 1
    assert after.cycles == ()


def test_statistics_carry_recorded_cycles():
    graph = build_graph([_item("A", "B"), _item("B", "A")]).with_cycles([["A", "B", "A"]])

    stats = GraphQueryService(graph).get_statistics()

    assert stats.cycles == (("A", "B", "A"),)
    assert stats.root_nodes == 0


def test_concurrent_readers_agree():
    graph = _diamond()
    svc = GraphQueryService(graph)

    with ThreadPoolExecutor(max_workers=4) as ex:
        results = list(ex.map(svc.get_transitive_dependencies, ["D"] * 50))

    assert all(r == ["A", "B", "C"] for r in results)
