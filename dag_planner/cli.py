from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from dag_planner.core.config import ConfigError, PlannerConfig, load_config
from dag_planner.core.errors import (
    CircularDependencyError,
    GraphError,
    ItemLoadError,
    ItemValidationError,
    ScheduleConsistencyError,
)
from dag_planner.core.graph.cycles import format_cycle
from dag_planner.core.graph.groups import split_waves
from dag_planner.core.graph.query import GraphQueryService
from dag_planner.core.io.load_items import load_document, load_items
from dag_planner.core.io.serialize import dump_json, dump_yaml, graph_to_dict, plan_from_dict, plan_to_dict
from dag_planner.core.model import ExecutionPlan, WorkItemSet
from dag_planner.core.plan.plan_items import PlanResult, analyze_items, plan_items
from dag_planner.core.validate.validate_items import validate_items

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Dependency-graph planner CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Optional planner config YAML"),
) -> None:
    """Validate items, build the graph and report cycles."""
    _check_format(format, ("text", "json"), "E_VALIDATE_UNKNOWN_FORMAT")
    config = _load_config_or_exit(config_file)
    item_set = _load_item_set_or_exit(path, config)

    try:
        graph = analyze_items(item_set.items, item_set.resolution_map)
    except GraphError as e:
        _fail([e], format=format, command="validate", exit_code=2)

    cycle_errors: list[GraphError] = [
        CircularDependencyError(
            code="E_CIRCULAR_DEPENDENCY",
            message=f"dependency cycle detected: {format_cycle(c)}",
            file=path,
            path=c[0],
            cycles=(c,),
        )
        for c in graph.cycles
    ]
    if cycle_errors:
        _fail(cycle_errors, format=format, command="validate", exit_code=2)

    stats = GraphQueryService(graph).get_statistics()
    roots = sorted(n.id for n in graph.nodes_by_id.values() if n.is_root)
    if format == "json":
        payload = {
            "tool": "dag-planner",
            "command": "validate",
            "ok": True,
            "error_count": 0,
            "errors": [],
            "summary": {
                "node_count": stats.total_nodes,
                "edge_count": stats.total_edges,
                "roots": roots,
            },
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.echo(f"OK: {stats.total_nodes} items, {stats.total_edges} edges")
    typer.echo("Roots: " + ", ".join(roots))


@app.command("plan")
def plan(
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write graph + plan here (.json or .yaml)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json|yaml"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Optional planner config YAML"),
) -> None:
    """Compute the execution order and parallel groups."""
    _check_format(format, ("text", "json", "yaml"), "E_PLAN_UNKNOWN_FORMAT")
    config = _load_config_or_exit(config_file)
    item_set = _load_item_set_or_exit(path, config)

    try:
        result = plan_items(item_set.items, item_set.resolution_map)
    except CircularDependencyError as e:
        errors: list[GraphError] = [
            CircularDependencyError(
                code=e.code,
                message=f"dependency cycle detected: {format_cycle(c)}",
                file=path,
                path=c[0],
                cycles=(c,),
            )
            for c in e.cycles
        ]
        _fail(errors, format=format, command="plan", exit_code=2)
    except GraphError as e:
        _fail([e], format=format, command="plan", exit_code=2)
    except ScheduleConsistencyError as e:
        typer.echo(f"INTERNAL ERROR: {e}", err=True)
        raise typer.Exit(code=3)

    payload = {"graph": graph_to_dict(result.graph), "plan": plan_to_dict(result.plan)}

    if out is not None:
        if Path(out).suffix.lower() == ".json":
            dump_json(payload, out)
        else:
            dump_yaml(payload, out)

    if format == "json":
        typer.echo(json.dumps(payload, indent=2))
    elif format == "yaml":
        typer.echo(yaml.safe_dump(payload, sort_keys=False, default_flow_style=False))
    else:
        _print_plan_table(result, config)

    if out is not None:
        typer.echo(f"OK: wrote plan to {out}", err=format != "text")


@app.command("query")
def query(
    path: str = typer.Argument(..., help="Path to a work-item file (.yaml/.yml/.json)"),
    node_id: str = typer.Argument(..., help="Node id to query"),
    transitive: bool = typer.Option(False, "--transitive", help="Follow edges transitively"),
    dependents: bool = typer.Option(False, "--dependents", help="Query dependents instead of dependencies"),
) -> None:
    """List a node's dependencies (or dependents)."""
    item_set = _load_item_set_or_exit(path, PlannerConfig())

    try:
        graph = analyze_items(item_set.items, item_set.resolution_map)
        svc = GraphQueryService(graph)
        if dependents:
            ids = svc.get_transitive_dependents(node_id) if transitive else svc.get_dependents(node_id)
        else:
            ids = svc.get_transitive_dependencies(node_id) if transitive else svc.get_dependencies(node_id)
    except GraphError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    for nid in ids:
        typer.echo(nid)


@app.command("resume")
def resume(
    plan_file: str = typer.Argument(..., help="Plan written by `plan --out`"),
    completed: list[str] = typer.Option([], "--completed", "-c", help="Completed id (repeatable)"),
) -> None:
    """Print what is left of a saved plan once some items are done."""
    try:
        doc = load_document(plan_file)
        saved = plan_from_dict(doc.get("plan", doc), file=plan_file)
    except ItemLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    remaining: ExecutionPlan = saved.remaining(frozenset(completed))
    typer.echo(json.dumps(plan_to_dict(remaining), indent=2))


def _print_plan_table(result: PlanResult, config: PlannerConfig) -> None:
    console = Console()
    table = Table(title="execution plan")
    table.add_column("Depth")
    table.add_column("Members")
    table.add_column("Waves")
    for g in result.plan.parallel_groups:
        waves = split_waves(g, config.max_workers)
        table.add_row(str(g.depth), ", ".join(g.member_ids), str(len(waves)))
    console.print(table)

    console.print("Order: " + " -> ".join(result.plan.execution_order))
    if result.plan.critical_path:
        console.print("Critical path: " + " -> ".join(result.plan.critical_path))


def _load_item_set_or_exit(path: str, config: PlannerConfig) -> WorkItemSet:
    try:
        doc = load_items(path)
    except ItemLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    item_set, errors = validate_items(doc, config)
    if errors or item_set is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    return item_set


def _load_config_or_exit(config_file: Optional[str]) -> PlannerConfig:
    try:
        return load_config(config_file)
    except FileNotFoundError:
        _print_errors(
            [
                ItemLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except ConfigError as e:
        _print_errors(
            [ItemValidationError(code="E_CONFIG_FILE_INVALID", message=str(e), path="config")]
        )
        raise typer.Exit(code=2)


def _check_format(format: str, allowed: tuple[str, ...], code: str) -> None:
    if format not in allowed:
        err = ItemValidationError(
            code=code,
            message=f"unknown format: {format} (choose one of: {', '.join(allowed)})",
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _fail(errors: list[GraphError], *, format: str, command: str, exit_code: int) -> NoReturn:
    if format == "json":
        payload: dict[str, Any] = {
            "tool": "dag-planner",
            "command": command,
            "ok": False,
            "error_count": len(errors),
            "errors": [
                {"code": e.code, "message": e.message, "file": e.file, "path": e.path, "severity": "error"}
                for e in errors
            ],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[GraphError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="dag-planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
