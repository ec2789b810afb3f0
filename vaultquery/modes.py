"""Render mode registry and strategy helpers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Protocol, Sequence

from .config import (
    DEFAULT_COMPACT_MAX_CHARS,
    DEFAULT_SMART_THRESHOLD,
    SUPPORTED_RENDER_MODES,
)
from .errors import VaultQueryError
from .query import QueryKind
from .results import QueryResult, QueryRow
from .text import Messages
from .values import PLACEHOLDER

COMPACT_CELL_LIMIT = 60
SUMMARY_BUCKET_LIMIT = 10
SUMMARY_SAMPLE_LIMIT = 5


class RenderStrategy(Protocol):
    name: str

    def render(self, result: QueryResult) -> str:
        raise NotImplementedError


def wiki_link(path: str) -> str:
    target = path[:-3] if path.lower().endswith(".md") else path
    return f"[[{target}]]"


def escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\r\n", " ").replace("\n", " ")


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _trim_cell(text: str, limit: int = COMPACT_CELL_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def _table_headers(result: QueryResult) -> list[str]:
    return [Messages.TABLE_HEADER_FILE, *result.headers]


def _table_cells(result: QueryResult, row: QueryRow) -> list[str]:
    return [wiki_link(row.path)] + [row.value(header, PLACEHOLDER) for header in result.headers]


def _format_line(cells: Sequence[str]) -> str:
    return "| " + " | ".join(escape_cell(cell) for cell in cells) + " |"


def _preamble(result: QueryResult) -> str | None:
    """Return the text shown instead of rows for errors, empty queries and no rows."""
    if result.error is not None:
        return Messages.INFO_QUERY_ERROR.format(message=result.error)
    if result.kind is QueryKind.EMPTY:
        return Messages.INFO_EMPTY_QUERY
    if not result.rows:
        return Messages.INFO_NO_RESULTS
    return None


@dataclass(frozen=True, slots=True)
class TableMode(RenderStrategy):
    name: str = "table"

    def render(self, result: QueryResult) -> str:
        early = _preamble(result)
        if early is not None:
            return early
        headers = _table_headers(result)
        lines = [_format_line(headers), _format_line(["---"] * len(headers))]
        lines.extend(_format_line(_table_cells(result, row)) for row in result.rows)
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class ListMode(RenderStrategy):
    name: str = "list"

    def render(self, result: QueryResult) -> str:
        early = _preamble(result)
        if early is not None:
            return early
        return "\n".join(self.render_row(result, row) for row in result.rows)

    @staticmethod
    def render_row(result: QueryResult, row: QueryRow) -> str:
        link = wiki_link(row.path)
        if row.task is not None:
            mark = "x" if row.task.completed else " "
            return f"- [{mark}] {row.task.text} ({link})"
        if result.headers:
            return f"- {link}: {row.value(result.headers[0], PLACEHOLDER)}"
        return f"- {link}"


@dataclass(frozen=True, slots=True)
class CountMode(RenderStrategy):
    name: str = "count"

    def render(self, result: QueryResult) -> str:
        if result.error is not None or result.kind is QueryKind.EMPTY:
            return _preamble(result) or ""
        count = len(result.rows)
        return Messages.INFO_COUNT.format(count=count, plural=_plural(count))


@dataclass(frozen=True, slots=True)
class CompactMode(RenderStrategy):
    """Table with trimmed cells, stopping before the output exceeds ``max_chars``."""

    name: str = "compact"
    max_chars: int = DEFAULT_COMPACT_MAX_CHARS

    def render(self, result: QueryResult) -> str:
        early = _preamble(result)
        if early is not None:
            return early
        headers = _table_headers(result)
        lines = [_format_line(headers), _format_line(["---"] * len(headers))]
        size = sum(len(line) + 1 for line in lines)
        shown = 0
        for row in result.rows:
            line = _format_line([_trim_cell(cell) for cell in _table_cells(result, row)])
            if size + len(line) + 1 > self.max_chars:
                break
            lines.append(line)
            size += len(line) + 1
            shown += 1
        omitted = len(result.rows) - shown
        if omitted:
            lines.append("")
            lines.append(
                Messages.INFO_COMPACT_OMITTED.format(count=omitted, plural=_plural(omitted))
            )
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SummaryMode(RenderStrategy):
    """Histogram of one field's values plus a short sample of matching notes."""

    name: str = "summary"
    bucket_limit: int = SUMMARY_BUCKET_LIMIT
    sample_limit: int = SUMMARY_SAMPLE_LIMIT

    def render(self, result: QueryResult) -> str:
        early = _preamble(result)
        if early is not None:
            return early
        label, buckets = self.histogram(result)
        lines = [
            Messages.INFO_SUMMARY_TITLE.format(count=len(result.rows), field=label),
            "",
            _format_line([label, Messages.TABLE_HEADER_COUNT]),
            _format_line(["---", "---"]),
        ]
        for value, count in buckets[: self.bucket_limit]:
            lines.append(_format_line([_trim_cell(value), str(count)]))
        hidden = len(buckets) - self.bucket_limit
        if hidden > 0:
            lines.append(_format_line([Messages.INFO_SUMMARY_MORE.format(count=hidden), ""]))

        lines.extend(["", Messages.INFO_SUMMARY_SAMPLE])
        sample = result.rows[: self.sample_limit]
        lines.extend(f"- {wiki_link(row.path)}" for row in sample)
        remaining = len(result.rows) - len(sample)
        if remaining > 0:
            lines.append(Messages.INFO_SUMMARY_MORE.format(count=remaining))
        return "\n".join(lines)

    @staticmethod
    def histogram(result: QueryResult) -> tuple[str, list[tuple[str, int]]]:
        """Return the summarized field label and its ``(value, count)`` buckets."""
        if result.kind is QueryKind.TASK:
            label = Messages.TABLE_HEADER_COMPLETED
        elif result.headers:
            label = result.headers[0]
        else:
            label = Messages.TABLE_HEADER_FOLDER
        counter: Counter[str] = Counter()
        for row in result.rows:
            if label == Messages.TABLE_HEADER_FOLDER and not result.headers:
                folder, _, _ = row.path.rpartition("/")
                counter[folder or "/"] += 1
            else:
                counter[row.value(label, PLACEHOLDER)] += 1
        buckets = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
        return label, buckets


@dataclass(frozen=True, slots=True)
class SmartMode(RenderStrategy):
    """Natural mode for the query kind below ``threshold`` rows, summary at or above."""

    name: str = "smart"
    threshold: int = DEFAULT_SMART_THRESHOLD
    summary: SummaryMode = SummaryMode()

    def choose(self, result: QueryResult) -> str:
        if result.error is not None or not result.rows:
            return result.natural_mode
        if len(result.rows) >= self.threshold:
            return self.summary.name
        return result.natural_mode

    def render(self, result: QueryResult) -> str:
        chosen = self.choose(result)
        if chosen == self.summary.name:
            return self.summary.render(result)
        return get_strategy(chosen).render(result)


_STRATEGIES: Dict[str, RenderStrategy] = {
    "smart": SmartMode(),
    "table": TableMode(),
    "list": ListMode(),
    "count": CountMode(),
    "compact": CompactMode(),
    "summary": SummaryMode(),
}


def get_strategy(mode: str) -> RenderStrategy:
    try:
        return _STRATEGIES[mode]
    except KeyError as exc:
        allowed = ", ".join(SUPPORTED_RENDER_MODES)
        raise VaultQueryError(
            Messages.ERROR_MODE_INVALID.format(value=mode, allowed=allowed)
        ) from exc


def available_modes() -> list[str]:
    return sorted(_STRATEGIES.keys())


def configure_strategy(
    mode: str,
    *,
    threshold: int | None = None,
    max_chars: int | None = None,
) -> RenderStrategy:
    """Return the strategy for *mode* with the configured limits applied."""
    strategy = get_strategy(mode)
    if isinstance(strategy, SmartMode) and threshold is not None:
        return replace(strategy, threshold=threshold)
    if isinstance(strategy, CompactMode) and max_chars is not None:
        return replace(strategy, max_chars=max_chars)
    return strategy


def choose_mode(
    result: QueryResult, mode: str | None = None, *, threshold: int | None = None
) -> str:
    """Resolve the concrete mode that would render *result*."""
    name = (mode or result.render_mode or "smart").strip().lower()
    strategy = configure_strategy(name, threshold=threshold)
    if isinstance(strategy, SmartMode):
        return strategy.choose(result)
    return strategy.name


def render_results(
    result: QueryResult,
    mode: str | None = None,
    *,
    threshold: int | None = None,
    max_chars: int | None = None,
) -> str:
    """Format *result* in *mode* (falls back to the result's tag, then ``smart``)."""
    name = (mode or result.render_mode or "smart").strip().lower()
    strategy = configure_strategy(name, threshold=threshold, max_chars=max_chars)
    return strategy.render(result)
