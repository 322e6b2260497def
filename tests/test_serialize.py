import json

import pytest
import yaml

from dag_planner.core.errors import ItemLoadError
from dag_planner.core.graph.query import GraphQueryService
from dag_planner.core.graph.scheduler import TopologicalScheduler
from dag_planner.core.io.serialize import (
    dump_json,
    dump_yaml,
    graph_from_dict,
    graph_to_dict,
    plan_from_dict,
    plan_to_dict,
)
from dag_planner.core.model import WorkItem
from dag_planner.core.plan.plan_items import analyze_items, plan_items


def _chain():
    return plan_items(
        [
            WorkItem(id="CMP-001", effort=3.0, metadata={"name": "Storage"}),
            WorkItem(id="CMP-002", dependencies=("CMP-001",)),
            WorkItem(id="CMP-003", dependencies=("CMP-001", "CMP-002", "CMP-002")),
        ]
    )


def test_graph_dict_shape():
    data = graph_to_dict(_chain().graph)

    assert [n["id"] for n in data["nodes"]] == ["CMP-001", "CMP-002", "CMP-003"]
    assert [n["depth"] for n in data["nodes"]] == [0, 1, 2]
    assert data["nodes"][0]["metadata"] == {"name": "Storage"}
    assert {"from": "CMP-003", "to": "CMP-002", "weight": 2} in data["edges"]
    assert data["statistics"] == {
        "totalNodes": 3,
        "totalEdges": 3,
        "maxDepth": 2,
        "rootNodes": 1,
        "leafNodes": 1,
        "cycles": [],
    }


def test_plan_dict_shape():
    data = plan_to_dict(_chain().plan)

    assert data == {
        "executionOrder": ["CMP-001", "CMP-002", "CMP-003"],
        "parallelGroups": [
            {"depth": 0, "memberIds": ["CMP-001"]},
            {"depth": 1, "memberIds": ["CMP-002"]},
            {"depth": 2, "memberIds": ["CMP-003"]},
        ],
        "criticalPath": ["CMP-001", "CMP-002", "CMP-003"],
    }


def test_saved_plan_reloads_without_recomputation(tmp_path):
    result = _chain()
    out = tmp_path / "out" / "plan.json"

    dump_json({"plan": plan_to_dict(result.plan)}, str(out))
    reloaded = plan_from_dict(json.loads(out.read_text(encoding="utf-8"))["plan"])

    assert reloaded == result.plan


def test_saved_graph_reloads(tmp_path):
    graph = _chain().graph
    out = tmp_path / "graph.yaml"

    dump_yaml(graph_to_dict(graph), str(out))
    reloaded = graph_from_dict(yaml.safe_load(out.read_text(encoding="utf-8")))

    assert reloaded.nodes_by_id == graph.nodes_by_id
    assert reloaded.edges == graph.edges


def test_cycles_survive_graph_reload():
    graph = analyze_items([WorkItem(id="A", dependencies=("B",)), WorkItem(id="B", dependencies=("A",))])

    reloaded = graph_from_dict(graph_to_dict(graph))

    assert reloaded.cycles == (("A", "B", "A"),)
    assert graph_to_dict(graph)["statistics"]["maxDepth"] is None


@pytest.mark.parametrize(
    "data, path",
    [
        ({"parallelGroups": []}, "executionOrder"),
        ({"executionOrder": [], "parallelGroups": [{"depth": "0", "memberIds": []}]}, "parallelGroups[0]"),
        ({"executionOrder": [], "parallelGroups": [], "criticalPath": "A"}, "criticalPath"),
    ],
)
def test_malformed_plan_is_rejected(data, path):
    with pytest.raises(ItemLoadError) as excinfo:
        plan_from_dict(data, file="plan.json")

    assert excinfo.value.code == "E_INVALID_PLAN"
    assert excinfo.value.path == path


def test_graph_with_dangling_edge_is_rejected():
    with pytest.raises(ItemLoadError) as excinfo:
        graph_from_dict({"nodes": [{"id": "A"}], "edges": [{"from": "A", "to": "B"}]})

    assert excinfo.value.path == "edges[0]"


def _saved_pair():
    return {
        "nodes": [
            {"id": "A", "priority": 1, "depth": 0, "dependencies": [], "dependents": ["B"]},
            {"id": "B", "priority": 2, "depth": 1, "dependencies": ["A"], "dependents": []},
        ],
        "edges": [{"from": "B", "to": "A", "weight": 1}],
    }


def test_reloaded_graph_can_be_scheduled_and_queried():
    reloaded = graph_from_dict(graph_to_dict(_chain().graph))

    assert TopologicalScheduler(reloaded).schedule().order == ("CMP-001", "CMP-002", "CMP-003")
    assert GraphQueryService(reloaded).get_transitive_dependents("CMP-001") == ["CMP-002", "CMP-003"]


def test_node_lists_are_rebuilt_from_edges_when_omitted():
    data = _saved_pair()
    for n in data["nodes"]:
        del n["dependencies"], n["dependents"]

    reloaded = graph_from_dict(data)

    assert reloaded.nodes_by_id["B"].dependencies == ("A",)
    assert reloaded.nodes_by_id["A"].dependents == ("B",)


@pytest.mark.parametrize(
    "mutate, path",
    [
        (lambda d: d["nodes"][0]["dependencies"].append("GHOST"), "nodes[0].dependencies"),
        (lambda d: d["nodes"][0].update(dependents=[]), "nodes[0].dependents"),
        (lambda d: d["nodes"][1].update(dependencies="A"), "nodes[1].dependencies"),
        (lambda d: d["nodes"][0].update(priority="P1"), "nodes[0].priority"),
        (lambda d: d["nodes"][0].update(priority=True), "nodes[0].priority"),
        (lambda d: d["nodes"][0].update(priority=-1), "nodes[0].priority"),
        (lambda d: d["nodes"][1].update(depth="1"), "nodes[1].depth"),
        (lambda d: d["nodes"][1].update(depth=-1), "nodes[1].depth"),
        (lambda d: d["nodes"][0].update(effort="3h"), "nodes[0].effort"),
        (lambda d: d["nodes"][0].update(metadata=["x"]), "nodes[0].metadata"),
        (lambda d: d["nodes"][1].update(references=[1]), "nodes[1].references"),
        (lambda d: d["nodes"].append({"id": "A"}), "nodes[2].id"),
        (lambda d: d["edges"][0].update(weight="x"), "edges[0].weight"),
        (lambda d: d["edges"][0].update(weight=1.5), "edges[0].weight"),
        (lambda d: d["edges"][0].update(weight=0), "edges[0].weight"),
        (lambda d: d["edges"].append({"from": "B", "to": "A"}), "edges[1]"),
        (lambda d: d["edges"][0].update({"from": ["B"]}), "edges[0]"),
        (lambda d: d.update(statistics={"cycles": "A"}), "statistics.cycles"),
    ],
)
def test_inconsistent_saved_graph_is_rejected(mutate, path):
    data = _saved_pair()
    mutate(data)

    with pytest.raises(ItemLoadError) as excinfo:
        graph_from_dict(data, file="graph.json")

    assert excinfo.value.code == "E_INVALID_PLAN"
    assert excinfo.value.path == path
    assert excinfo.value.file == "graph.json"
