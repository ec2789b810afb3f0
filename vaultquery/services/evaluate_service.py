"""Evaluate parsed queries against the vault caches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from ..cache import VaultCache
from ..document import Document, TaskItem, normalize_tag
from ..errors import EvaluationError
from ..query import (
    And,
    Call,
    Compare,
    Expression,
    FieldRef,
    FieldSpec,
    FolderSource,
    Literal,
    Not,
    Or,
    QueryAST,
    QueryKind,
    Source,
    TagSource,
)
from ..results import QueryResult, QueryRow, failed_result
from ..text import Messages
from ..utils import join_vault_path
from ..values import (
    MISSING,
    PLACEHOLDER,
    compare,
    contains,
    is_truthy,
    render_value,
    resolve_path,
    sort_key,
)
from .cache_service import load_document_safe

logger = logging.getLogger(__name__)

Scope = Callable[[str], Any]

TASK_HEADERS = (Messages.TABLE_HEADER_TASK, Messages.TABLE_HEADER_COMPLETED)


def file_field(document: Document, name: str) -> Any:
    """Resolve a ``file.*`` built-in for *document*."""
    if name == "file.name":
        return document.name
    if name == "file.path":
        return document.path
    if name == "file.folder":
        return document.folder
    if name == "file.size":
        return document.size
    if name == "file.mtime":
        return datetime.fromtimestamp(document.modified_at)
    if name == "file.tags":
        return sorted(document.tags)
    if name == "file.outlinks":
        return sorted(document.outgoing_links)
    if name == "file.headings":
        return list(document.headings)
    return MISSING


def document_scope(document: Document, task: TaskItem | None = None) -> Scope:
    """Return a field resolver for one document, with task fields overlaid."""

    def resolve(name: str) -> Any:
        if task is not None:
            if name == "text":
                return task.text
            if name == "completed":
                return task.completed
            if name == "line":
                return task.line
        if name.startswith("file."):
            value = file_field(document, name)
            if value is not MISSING:
                return value
        return resolve_path(document.frontmatter, name)

    return resolve


def evaluate_expression(expression: Expression, scope: Scope) -> Any:
    """Evaluate *expression*; raises :class:`EvaluationError` on type mismatches."""
    if isinstance(expression, Literal):
        return expression.value
    if isinstance(expression, FieldRef):
        return scope(expression.name)
    if isinstance(expression, Not):
        return not is_truthy(evaluate_expression(expression.operand, scope))
    if isinstance(expression, And):
        return all(is_truthy(evaluate_expression(item, scope)) for item in expression.operands)
    if isinstance(expression, Or):
        return any(is_truthy(evaluate_expression(item, scope)) for item in expression.operands)
    if isinstance(expression, Compare):
        left = evaluate_expression(expression.left, scope)
        right = evaluate_expression(expression.right, scope)
        return compare(expression.op, left, right)
    if isinstance(expression, Call):
        args = [evaluate_expression(arg, scope) for arg in expression.args]
        if expression.name == "contains":
            return contains(args[0], args[1])
        raise EvaluationError(Messages.ERROR_PARSE_FUNCTION.format(name=expression.name))
    raise EvaluationError(f"Unsupported expression: {expression!r}")


def matches(expression: Expression | None, scope: Scope) -> bool:
    if expression is None:
        return True
    return is_truthy(evaluate_expression(expression, scope))


def source_matches(
    document: Document, sources: Sequence[Source], base_path: str = ""
) -> bool:
    """Return True when *document* belongs to any FROM source (union)."""
    if not sources:
        return True
    return any(_matches_source(document, source, base_path) for source in sources)


def _matches_source(document: Document, source: Source, base_path: str) -> bool:
    if isinstance(source, TagSource):
        return normalize_tag(source.tag) in document.tags
    if isinstance(source, FolderSource):
        return path_in_folder(document.path, join_vault_path(base_path, source.path))
    return False


def path_in_folder(path: str, prefix: str) -> bool:
    if not prefix:
        return True
    if path == prefix or path.startswith(prefix + "/"):
        return True
    stem, dot, _ext = path.rpartition(".")
    return bool(dot) and stem == prefix


@dataclass(slots=True)
class _Candidate:
    document: Document
    task: TaskItem | None
    scope: Scope
    values: dict[str, str]


class QueryEvaluator:
    """Runs a :class:`QueryAST` over the structure and content caches.

    The evaluator only reads through the caches. Per-document failures are
    logged and the document is skipped; a failed vault scan produces a result
    carrying ``error`` instead of raising.
    """

    def __init__(self, vault: VaultCache, *, placeholder: str = PLACEHOLDER) -> None:
        self.vault = vault
        self.placeholder = placeholder

    def evaluate(self, ast: QueryAST, base_path: str = "") -> QueryResult:
        if ast.is_empty:
            return QueryResult(kind=QueryKind.EMPTY)

        scan = self.vault.snapshot()
        if not scan.ok:
            return failed_result(scan.error or "", "StructureScanError", kind=ast.kind)

        headers = self._headers(ast)
        candidates: list[_Candidate] = []
        skipped = 0
        for entry in sorted(scan.entries, key=lambda item: item.path):
            document = load_document_safe(self.vault, entry.path)
            if document is None:
                skipped += 1
                continue
            if not source_matches(document, ast.sources, base_path):
                continue
            for task in self._tasks_for(ast, document):
                candidate = self._candidate(ast, document, task)
                if candidate is not None:
                    candidates.append(candidate)

        if ast.sort is not None:
            candidates = self._sort(ast, candidates)
        if ast.limit is not None:
            candidates = candidates[: ast.limit]

        rows = tuple(
            QueryRow(path=item.document.path, values=item.values, task=item.task)
            for item in candidates
        )
        return QueryResult(kind=ast.kind, headers=headers, rows=rows, skipped=skipped)

    def _headers(self, ast: QueryAST) -> tuple[str, ...]:
        if ast.kind is QueryKind.TASK:
            return TASK_HEADERS
        return tuple(spec.header for spec in ast.field_specs)

    @staticmethod
    def _tasks_for(ast: QueryAST, document: Document) -> Iterable[TaskItem | None]:
        if ast.kind is QueryKind.TASK:
            return document.tasks
        return (None,)

    def _candidate(
        self, ast: QueryAST, document: Document, task: TaskItem | None
    ) -> _Candidate | None:
        scope = document_scope(document, task)
        try:
            if not matches(ast.condition, scope):
                return None
            values = self._values(ast.field_specs, scope, task)
        except EvaluationError as exc:
            logger.debug("Excluding %s: %s", document.path, exc)
            return None
        return _Candidate(document=document, task=task, scope=scope, values=values)

    def _values(
        self, specs: Sequence[FieldSpec], scope: Scope, task: TaskItem | None
    ) -> dict[str, str]:
        if task is not None:
            return {
                Messages.TABLE_HEADER_TASK: task.text,
                Messages.TABLE_HEADER_COMPLETED: render_value(task.completed),
            }
        return {
            spec.header: render_value(
                evaluate_expression(spec.expression, scope), placeholder=self.placeholder
            )
            for spec in specs
        }

    def _sort(self, ast: QueryAST, candidates: list[_Candidate]) -> list[_Candidate]:
        assert ast.sort is not None
        field_name = ast.sort.field
        aliased = {spec.alias: spec.expression for spec in ast.field_specs if spec.alias}

        present: list[tuple[tuple[int, Any], _Candidate]] = []
        absent: list[_Candidate] = []
        for candidate in candidates:
            try:
                if field_name in aliased:
                    value = evaluate_expression(aliased[field_name], candidate.scope)
                else:
                    value = candidate.scope(field_name)
            except EvaluationError:
                value = MISSING
            if value is MISSING or value is None:
                absent.append(candidate)
            else:
                present.append((sort_key(value), candidate))
        present.sort(key=lambda pair: pair[0], reverse=ast.sort.descending)
        return [candidate for _, candidate in present] + absent
