"""Containers describing query output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .document import TaskItem
from .query import QueryKind

NATURAL_MODES = {
    QueryKind.TABLE: "table",
    QueryKind.LIST: "list",
    QueryKind.TASK: "list",
    QueryKind.EMPTY: "table",
}


@dataclass(frozen=True, slots=True)
class QueryRow:
    """One result row: the source document path and its rendered field values."""

    path: str
    values: Mapping[str, str] = field(default_factory=dict)
    task: TaskItem | None = None

    def value(self, header: str, placeholder: str = "—") -> str:
        return self.values.get(header, placeholder)

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"path": self.path, "values": dict(self.values)}
        if self.task is not None:
            payload["task"] = {
                "text": self.task.text,
                "completed": self.task.completed,
                "line": self.task.line,
            }
        return payload


@dataclass(frozen=True, slots=True)
class QueryResult:
    kind: QueryKind
    headers: tuple[str, ...] = ()
    rows: tuple[QueryRow, ...] = ()
    render_mode: str | None = None
    error: str | None = None
    error_type: str | None = None
    query: str = ""
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def natural_mode(self) -> str:
        return NATURAL_MODES[self.kind]

    def as_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "query": self.query,
            "headers": list(self.headers),
            "rows": [row.as_dict() for row in self.rows],
            "render_mode": self.render_mode,
            "error": self.error,
            "error_type": self.error_type,
            "skipped": self.skipped,
        }


def failed_result(
    message: str,
    error_type: str,
    *,
    kind: QueryKind = QueryKind.EMPTY,
    query: str = "",
    render_mode: str | None = None,
) -> QueryResult:
    return QueryResult(
        kind=kind,
        error=message,
        error_type=error_type,
        query=query,
        render_mode=render_mode,
    )
