"""Logic helpers for the `vaultquery scan`, `read` and `stats` commands."""

from __future__ import annotations

import logging
import posixpath
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from ..cache import VaultCache
from ..document import Document, FileEntry
from ..errors import VaultQueryError
from ..modes import render_results
from ..text import Messages
from ..utils import build_glob_spec, normalize_glob_patterns
from .cache_service import load_document_safe
from .query_service import execute_query

logger = logging.getLogger(__name__)

SCAN_SORT_KEYS = ("modified", "path", "size")
DEFAULT_SCAN_PATTERNS = ("**/*.md",)
STATS_TOP_LIMIT = 10

_DATAVIEW_BLOCK_RE = re.compile(r"```dataview[ \t]*\r?\n(.*?)```", re.DOTALL)
_WORD_RE = re.compile(r"\S+")


@dataclass(slots=True)
class TextStats:
    lines: int
    words: int
    characters: int

    def as_dict(self) -> dict[str, int]:
        return {"lines": self.lines, "words": self.words, "characters": self.characters}


def text_stats(text: str) -> TextStats:
    return TextStats(
        lines=len(text.split("\n")),
        words=len(_WORD_RE.findall(text)),
        characters=len(text),
    )


@dataclass(slots=True)
class ScanItem:
    entry: FileEntry
    frontmatter: dict[str, Any] | None = None
    preview: str | None = None
    stats: TextStats | None = None

    @property
    def path(self) -> str:
        return self.entry.path

    def as_dict(self) -> dict[str, object]:
        payload = self.entry.as_dict()
        if self.frontmatter is not None:
            payload["frontmatter"] = self.frontmatter
        if self.preview is not None:
            payload["preview"] = self.preview
        if self.stats is not None:
            payload["stats"] = self.stats.as_dict()
        return payload


@dataclass(slots=True)
class ScanResponse:
    files: list[ScanItem]
    total: int
    timestamp: str

    def as_dict(self) -> dict[str, object]:
        return {
            "files": [item.as_dict() for item in self.files],
            "total": self.total,
            "timestamp": self.timestamp,
        }


def scan_vault(
    vault: VaultCache,
    patterns: Sequence[str] | None = DEFAULT_SCAN_PATTERNS,
    *,
    sort_by: str = "modified",
    limit: int | None = None,
    include_frontmatter: bool = False,
    include_preview: bool = False,
    include_stats: bool = False,
    use_cache: bool = True,
) -> ScanResponse:
    """List vault documents, filtered by glob patterns and optionally enriched."""

    if sort_by not in SCAN_SORT_KEYS:
        raise VaultQueryError(
            Messages.ERROR_SORT_INVALID.format(value=sort_by, allowed=", ".join(SCAN_SORT_KEYS))
        )
    entries = vault.get_structure(force_refresh=not use_cache)
    spec = build_glob_spec(normalize_glob_patterns(patterns))
    if spec is not None:
        entries = [entry for entry in entries if spec.match_file(entry.path)]

    if sort_by == "modified":
        entries.sort(key=lambda entry: entry.modified_at, reverse=True)
    elif sort_by == "path":
        entries.sort(key=lambda entry: entry.path.casefold())
    else:
        entries.sort(key=lambda entry: entry.size, reverse=True)
    if limit is not None and limit > 0:
        entries = entries[:limit]

    items: list[ScanItem] = []
    enrich = include_frontmatter or include_preview or include_stats
    for entry in entries:
        item = ScanItem(entry=entry)
        document = load_document_safe(vault, entry.path) if enrich else None
        if document is not None:
            if include_frontmatter:
                item.frontmatter = dict(document.frontmatter)
            if include_preview:
                item.preview = document.preview
            if include_stats:
                item.stats = text_stats(document.body)
        items.append(item)
    return ScanResponse(
        files=items,
        total=len(items),
        timestamp=datetime.now().astimezone().isoformat(),
    )


@dataclass(slots=True)
class VaultStats:
    total_files: int
    total_size: int
    file_types: dict[str, int]
    largest_files: list[FileEntry]
    recently_modified: list[FileEntry]
    oldest_file: FileEntry | None = None
    newest_file: FileEntry | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "file_types": dict(self.file_types),
            "largest_files": [
                {"path": entry.path, "size": entry.size} for entry in self.largest_files
            ],
            "recently_modified": [
                {"path": entry.path, "modified": entry.modified.isoformat()}
                for entry in self.recently_modified
            ],
            "oldest_file": self.oldest_file.as_dict() if self.oldest_file else None,
            "newest_file": self.newest_file.as_dict() if self.newest_file else None,
        }


def vault_stats(vault: VaultCache) -> VaultStats:
    entries = vault.get_structure()
    file_types = Counter(
        posixpath.splitext(entry.path)[1].lower() or "no extension" for entry in entries
    )
    by_size = sorted(entries, key=lambda entry: entry.size, reverse=True)
    by_time = sorted(entries, key=lambda entry: entry.modified_at)
    return VaultStats(
        total_files=len(entries),
        total_size=sum(entry.size for entry in entries),
        file_types=dict(file_types),
        largest_files=by_size[:STATS_TOP_LIMIT],
        recently_modified=list(reversed(by_time))[:STATS_TOP_LIMIT],
        oldest_file=by_time[0] if by_time else None,
        newest_file=by_time[-1] if by_time else None,
    )


@dataclass(slots=True)
class NoteView:
    path: str
    content: str | None = None
    frontmatter: dict[str, Any] = field(default_factory=dict)
    headings: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    size: int | None = None
    modified: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, object]:
        if self.error is not None:
            return {"path": self.path, "error": self.error}
        return {
            "path": self.path,
            "content": self.content,
            "frontmatter": self.frontmatter,
            "headings": self.headings,
            "links": self.links,
            "tags": self.tags,
            "stats": {"size": self.size, "modified": self.modified},
        }


def normalize_note_path(path: str) -> str:
    """Return *path* as a vault-relative POSIX path, rejecting escapes from the vault."""
    candidate = (path or "").strip().replace("\\", "/").lstrip("/")
    normalized = posixpath.normpath(candidate) if candidate else ""
    if not normalized or normalized == "." or normalized.split("/")[0] == "..":
        raise VaultQueryError(Messages.ERROR_NOT_FOUND.format(path=path))
    return normalized


def read_notes(
    vault: VaultCache,
    paths: Sequence[str],
    *,
    render_dataview: bool = False,
    dataview_mode: str = "smart",
) -> list[NoteView]:
    """Read each path; failures are reported on the returned view, never raised."""

    notes: list[NoteView] = []
    for raw_path in paths:
        try:
            path = normalize_note_path(raw_path)
            document = vault.get_content(path)
        except VaultQueryError as exc:
            notes.append(NoteView(path=raw_path, error=str(exc)))
            continue
        content = document.body
        if render_dataview:
            content = render_dataview_blocks(vault, content, document, mode=dataview_mode)
        notes.append(_note_view(document, content))
    return notes


def _note_view(document: Document, content: str) -> NoteView:
    return NoteView(
        path=document.path,
        content=content,
        frontmatter=dict(document.frontmatter),
        headings=list(document.headings),
        links=sorted(document.outgoing_links),
        tags=sorted(document.tags),
        size=document.size,
        modified=datetime.fromtimestamp(document.modified_at).isoformat(),
    )


def render_dataview_blocks(
    vault: VaultCache, content: str, document: Document, *, mode: str = "smart"
) -> str:
    """Replace fenced ``dataview`` blocks with their rendered results.

    Quoted FROM folders resolve from the vault root. A block whose query
    fails is left in place.
    """

    def _replace(match: re.Match[str]) -> str:
        result = execute_query(vault, match.group(1).strip())
        if not result.ok:
            logger.warning(
                Messages.ERROR_QUERY_FAILED.format(kind=result.error_type, message=result.error)
            )
            return match.group(0)
        return render_results(result, mode)

    return _DATAVIEW_BLOCK_RE.sub(_replace, content)
