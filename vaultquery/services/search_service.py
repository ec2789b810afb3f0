"""Logic helpers for the `vaultquery search` command and metadata lookups."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from ..cache import VaultCache
from ..errors import EvaluationError, VaultQueryError
from ..text import Messages
from ..utils import build_ignore_spec, is_ignored
from ..values import MISSING, compare, equals, parse_date, resolve_path
from .cache_service import load_document_safe
from .vault_service import text_stats

DEFAULT_MAX_RESULTS = 50
DEFAULT_CONTEXT_LINES = 2
RANGE_OPERATORS = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}


@dataclass(slots=True)
class ContentMatch:
    path: str
    line: int
    content: str
    context: str
    context_start: int
    context_end: int

    def as_dict(self) -> dict[str, object]:
        return {
            "file": self.path,
            "line": self.line,
            "content": self.content,
            "context": self.context,
            "context_range": {"start": self.context_start, "end": self.context_end},
        }


@dataclass(slots=True)
class SearchResponse:
    query: str
    matches: list[ContentMatch]
    total_matches: int
    searched_files: int

    @property
    def truncated(self) -> bool:
        return self.total_matches > len(self.matches)

    def as_dict(self) -> dict[str, object]:
        return {
            "query": self.query,
            "matches": [match.as_dict() for match in self.matches],
            "total_matches": self.total_matches,
            "searched_files": self.searched_files,
            "truncated": self.truncated,
        }


def compile_search_pattern(
    query: str, *, use_regex: bool = False, case_sensitive: bool = False
) -> re.Pattern[str]:
    if not query or not query.strip():
        raise VaultQueryError(Messages.ERROR_EMPTY_SEARCH)
    flags = 0 if case_sensitive else re.IGNORECASE
    source = query if use_regex else re.escape(query)
    try:
        return re.compile(source, flags)
    except re.error as exc:
        raise VaultQueryError(Messages.ERROR_INVALID_REGEX.format(reason=exc)) from exc


def search_content(
    vault: VaultCache,
    query: str,
    *,
    context_lines: int = DEFAULT_CONTEXT_LINES,
    max_results: int = DEFAULT_MAX_RESULTS,
    case_sensitive: bool = False,
    use_regex: bool = False,
    exclude_paths: Sequence[str] | None = None,
) -> SearchResponse:
    """Find lines matching *query* across every note, with surrounding context."""

    pattern = compile_search_pattern(query, use_regex=use_regex, case_sensitive=case_sensitive)
    exclude_spec = build_ignore_spec(exclude_paths) if exclude_paths else None
    context_lines = max(int(context_lines), 0)

    matches: list[ContentMatch] = []
    total = 0
    searched = 0
    for entry in sorted(vault.get_structure(), key=lambda item: item.path):
        if exclude_spec is not None and is_ignored(exclude_spec, entry.path, is_dir=False):
            continue
        document = load_document_safe(vault, entry.path)
        if document is None:
            continue
        searched += 1
        lines = document.raw.split("\n")
        for index, line in enumerate(lines):
            if not pattern.search(line):
                continue
            total += 1
            if len(matches) >= max_results:
                continue
            start = max(0, index - context_lines)
            end = min(len(lines) - 1, index + context_lines)
            matches.append(
                ContentMatch(
                    path=entry.path,
                    line=index + 1,
                    content=line,
                    context="\n".join(lines[start : end + 1]),
                    context_start=start + 1,
                    context_end=end + 1,
                )
            )
    return SearchResponse(query=query, matches=matches, total_matches=total, searched_files=searched)


@dataclass(slots=True)
class MetadataMatch:
    path: str
    frontmatter: dict[str, Any]
    modified: str
    size: int

    def as_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "frontmatter": self.frontmatter,
            "modified": self.modified,
            "size": self.size,
        }


def matches_criteria(metadata: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """Return True when *metadata* satisfies every criterion.

    Plain values test equality. Operator objects support ``$exists``, ``$in``,
    ``$regex`` (case-insensitive) and the range operators ``$gt``, ``$gte``,
    ``$lt`` and ``$lte``, which compare numbers and dates.
    """
    for key, expected in criteria.items():
        actual = resolve_path(metadata, key)
        if not isinstance(expected, Mapping):
            if not equals(actual, expected):
                return False
            continue
        if "$exists" in expected and bool(expected["$exists"]) != (actual is not MISSING):
            return False
        if "$in" in expected:
            options = expected["$in"]
            if not isinstance(options, (list, tuple)):
                options = [options]
            if actual is MISSING or actual is None:
                return False
            values = actual if isinstance(actual, (list, tuple)) else [actual]
            if not any(equals(value, option) for value in values for option in options):
                return False
        if "$regex" in expected:
            if actual is MISSING or actual is None:
                return False
            try:
                regex = re.compile(str(expected["$regex"]), re.IGNORECASE)
            except re.error as exc:
                raise VaultQueryError(Messages.ERROR_INVALID_REGEX.format(reason=exc)) from exc
            if not regex.search(str(actual)):
                return False
        for operator, symbol in RANGE_OPERATORS.items():
            if operator not in expected:
                continue
            try:
                if not compare(symbol, actual, expected[operator]):
                    return False
            except EvaluationError:
                return False
    return True


def _as_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    parsed = parse_date(value)
    if parsed is None:
        raise VaultQueryError(Messages.ERROR_DATE_INVALID.format(value=value))
    return parsed


def find_by_metadata(
    vault: VaultCache,
    criteria: Mapping[str, Any] | None = None,
    *,
    min_words: int | None = None,
    max_words: int | None = None,
    modified_after: str | datetime | None = None,
    modified_before: str | datetime | None = None,
) -> list[MetadataMatch]:
    """Return notes whose frontmatter, word count and mtime satisfy the filters."""

    after = _as_datetime(modified_after)
    before = _as_datetime(modified_before)
    results: list[MetadataMatch] = []
    for entry in sorted(vault.get_structure(), key=lambda item: item.path):
        modified = entry.modified.replace(tzinfo=None)
        if after is not None and modified < after:
            continue
        if before is not None and modified > before:
            continue
        document = load_document_safe(vault, entry.path)
        if document is None:
            continue
        if min_words is not None or max_words is not None:
            words = text_stats(document.body).words
            if min_words is not None and words < min_words:
                continue
            if max_words is not None and words > max_words:
                continue
        if criteria and not matches_criteria(document.frontmatter, criteria):
            continue
        results.append(
            MetadataMatch(
                path=entry.path,
                frontmatter=dict(document.frontmatter),
                modified=entry.modified.isoformat(),
                size=entry.size,
            )
        )
    return results
