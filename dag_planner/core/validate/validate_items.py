from __future__ import annotations

from typing import Any, Iterable, Optional, cast

from dag_planner.core.config import PlannerConfig
from dag_planner.core.errors import ItemValidationError
from dag_planner.core.model import WorkItem, WorkItemSet


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def validate_items(
    doc: dict[str, Any], config: PlannerConfig | None = None
) -> tuple[Optional[WorkItemSet], list[ItemValidationError]]:
    """Validate a loosely-typed item document and convert it to WorkItems.

    Returns (item_set, errors). item_set is None when errors exist.
    Unknown dependency references are not checked here; the graph builder
    reports those against the resolution map.
    """

    config = config or PlannerConfig()
    file = cast(Optional[str], doc.get("__file__"))
    errors: list[ItemValidationError] = []

    schema_version = doc.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        errors.append(
            ItemValidationError(
                code="E_REQUIRED_FIELD",
                message="schema_version is required and must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    raw_items = doc.get("items")
    if not isinstance(raw_items, list):
        errors.append(
            ItemValidationError(
                code="E_REQUIRED_FIELD",
                message="items is required and must be an array",
                file=file,
                path="items",
            )
        )
        return None, _sorted(errors)

    items: list[WorkItem] = []
    seen: set[str] = set()

    for i, raw in enumerate(raw_items):
        item_path = f"items[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                ItemValidationError(
                    code="E_INVALID_TYPE",
                    message="item must be an object",
                    file=file,
                    path=item_path,
                )
            )
            continue

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            errors.append(
                ItemValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{item_path}.id",
                )
            )
            continue

        if iid in seen:
            errors.append(
                ItemValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate item id: {iid}",
                    file=file,
                    path=f"{item_path}.id",
                )
            )
            continue
        seen.add(iid)

        deps = raw.get("dependencies", [])
        if deps is None:
            deps = []
        if not _is_list_of_str(deps):
            errors.append(
                ItemValidationError(
                    code="E_INVALID_TYPE",
                    message="dependencies must be an array of strings",
                    file=file,
                    path=f"{item_path}.dependencies",
                )
            )
            continue

        priority = _parse_priority(raw.get("priority"), config)
        if priority is None:
            errors.append(
                ItemValidationError(
                    code="E_INVALID_ENUM",
                    message=(
                        f"priority must be one of {sorted(config.priority_levels)} "
                        "or a non-negative integer"
                    ),
                    file=file,
                    path=f"{item_path}.priority",
                )
            )
            continue

        effort = raw.get("effort")
        if effort is not None and (
            isinstance(effort, bool) or not isinstance(effort, (int, float)) or effort < 0
        ):
            errors.append(
                ItemValidationError(
                    code="E_INVALID_TYPE",
                    message="effort must be a non-negative number",
                    file=file,
                    path=f"{item_path}.effort",
                )
            )
            continue

        metadata = raw.get("metadata", {})
        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            errors.append(
                ItemValidationError(
                    code="E_INVALID_TYPE",
                    message="metadata must be an object",
                    file=file,
                    path=f"{item_path}.metadata",
                )
            )
            continue

        items.append(
            WorkItem(
                id=iid,
                dependencies=tuple(cast(list[str], deps)),
                priority=priority,
                effort=float(effort) if effort is not None else None,
                metadata=dict(metadata),
            )
        )

    resolution_map: Optional[dict[str, str]] = None
    if "resolution_map" in doc and doc.get("resolution_map") is not None:
        raw_map = doc.get("resolution_map")
        if not isinstance(raw_map, dict) or not all(
            isinstance(k, str) and isinstance(v, str) and v.strip() for k, v in raw_map.items()
        ):
            errors.append(
                ItemValidationError(
                    code="E_INVALID_TYPE",
                    message="resolution_map must be a mapping of string -> non-empty string",
                    file=file,
                    path="resolution_map",
                )
            )
        else:
            resolution_map = cast(dict[str, str], dict(raw_map))

    if errors:
        return None, _sorted(errors)

    return (
        WorkItemSet(
            schema_version=cast(str, schema_version),
            items=items,
            resolution_map=resolution_map,
        ),
        [],
    )


def _parse_priority(value: Any, config: PlannerConfig) -> Optional[int]:
    if value is None:
        return config.default_priority_ordinal
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        label = value.strip()
        if label in config.priority_levels:
            return config.priority_levels[label]
        return config.priority_levels.get(label.upper())
    return None


def _sorted(errors: Iterable[ItemValidationError]) -> list[ItemValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
