from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GraphError(Exception):
    """Base error envelope. Every error names the offending id(s) in its message."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<graph>"
        return f"{loc}: {self.code}: {self.message}"


class ItemLoadError(GraphError):
    pass


class ItemValidationError(GraphError):
    pass


@dataclass(frozen=True)
class ComponentNotFoundError(GraphError):
    reference: str = ""
    referenced_by: Optional[str] = None


@dataclass(frozen=True)
class DuplicateNodeError(GraphError):
    node_id: str = ""


@dataclass(frozen=True)
class CircularDependencyError(GraphError):
    cycles: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class NodeNotFoundError(GraphError):
    node_id: str = ""


class DepthsNotComputedError(GraphError):
    pass


class ScheduleConsistencyError(AssertionError):
    """The scheduler emitted fewer nodes than the graph holds.

    Raised only when cycle detection reported nothing, so it points at a defect
    in the engine rather than at the input data.
    """

    def __init__(self, emitted: int, total: int, stuck: list[str]) -> None:
        self.emitted = emitted
        self.total = total
        self.stuck = stuck
        super().__init__(
            f"scheduler emitted {emitted} of {total} nodes; never ready: {', '.join(stuck)}"
        )
