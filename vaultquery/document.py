"""Immutable note snapshots and the markdown/frontmatter parsing behind them."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

import frontmatter
import yaml
from charset_normalizer import from_bytes

from .errors import CacheReadError
from .text import Messages

PREVIEW_CHAR_LIMIT = 200

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_WIKILINK_RE = re.compile(r"!?\[\[([^\]|#^]+)(?:[#^][^\]|]*)?(?:\|[^\]]*)?\]\]")
_MDLINK_RE = re.compile(r"\[[^\]]*\]\(([^)\s]+?\.md)(?:#[^)]*)?\)")
_INLINE_TAG_RE = re.compile(r"(?<![\w/&#])#([A-Za-z0-9_][\w\-/]*)")
_TASK_RE = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s+(.*)$")


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Structure-cache view of one document: path plus size and mtime."""

    path: str
    size: int
    modified_at: float

    @property
    def modified(self) -> datetime:
        return datetime.fromtimestamp(self.modified_at)

    def as_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "size": self.size,
            "modified_at": self.modified_at,
            "modified": self.modified.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class TaskItem:
    text: str
    completed: bool
    line: int


@dataclass(frozen=True, slots=True)
class Document:
    """A point-in-time snapshot of one note. Never mutated after creation."""

    path: str
    size: int
    modified_at: float
    frontmatter: Mapping[str, Any]
    body: str
    raw: str = ""
    headings: tuple[str, ...] = ()
    outgoing_links: frozenset[str] = frozenset()
    inline_tags: frozenset[str] = frozenset()
    tasks: tuple[TaskItem, ...] = ()
    frontmatter_tags: tuple[str, ...] = field(default=())

    @property
    def name(self) -> str:
        base = posixpath.basename(self.path)
        stem, _ = posixpath.splitext(base)
        return stem

    @property
    def folder(self) -> str:
        return posixpath.dirname(self.path)

    @property
    def tags(self) -> frozenset[str]:
        return frozenset(self.frontmatter_tags) | self.inline_tags

    @property
    def preview(self) -> str:
        text = self.body.strip()
        if len(text) <= PREVIEW_CHAR_LIMIT:
            return text
        return text[:PREVIEW_CHAR_LIMIT] + "..."


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#").strip()


def tags_from_frontmatter(metadata: Mapping[str, Any]) -> tuple[str, ...]:
    """Return the ``tags`` (or ``tag``) field as a tuple of normalized names."""
    raw = metadata.get("tags", metadata.get("tag"))
    if raw is None:
        return ()
    if isinstance(raw, str):
        items: list[Any] = re.split(r"[,\s]+", raw)
    elif isinstance(raw, (list, tuple, set)):
        items = list(raw)
    else:
        items = [raw]
    tags: list[str] = []
    for item in items:
        if item is None or isinstance(item, (Mapping, list, tuple)):
            continue
        name = normalize_tag(str(item))
        if name and name not in tags:
            tags.append(name)
    return tuple(tags)


def decode_text(data: bytes) -> str:
    """Decode note bytes as UTF-8, falling back to charset detection."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        best = from_bytes(data).best()
        if best is None:
            raise
        return str(best)


def split_frontmatter(raw: str, *, path: str = "") -> tuple[dict[str, Any], str]:
    """Separate the leading YAML block from the body text."""
    try:
        metadata, content = frontmatter.parse(raw)
    except (yaml.YAMLError, TypeError, ValueError) as exc:
        raise CacheReadError(
            Messages.ERROR_FRONTMATTER_INVALID.format(path=path, reason=exc), path=path
        ) from exc
    if not isinstance(metadata, dict):
        metadata = {}
    return dict(metadata), content


def parse_document(path: str, raw: str, *, size: int, modified_at: float) -> Document:
    metadata, body = split_frontmatter(raw, path=path)
    headings: list[str] = []
    links: set[str] = set()
    inline_tags: set[str] = set()
    tasks: list[TaskItem] = []

    # Task line numbers count from the top of the raw file, frontmatter included.
    start = raw.find(body) if body else -1
    offset = raw.count("\n", 0, start) if start > 0 else 0
    in_fence = False
    for index, line in enumerate(body.splitlines(), start=1):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        heading = _HEADING_RE.match(line)
        if heading:
            headings.append(heading.group(2))
        task = _TASK_RE.match(line)
        if task:
            tasks.append(
                TaskItem(
                    text=task.group(2).strip(),
                    completed=task.group(1).lower() == "x",
                    line=index + offset,
                )
            )
        for match in _WIKILINK_RE.finditer(line):
            links.add(match.group(1).strip())
        for match in _MDLINK_RE.finditer(line):
            links.add(match.group(1).strip())
        for match in _INLINE_TAG_RE.finditer(line):
            if not match.group(1).isdigit():
                inline_tags.add(match.group(1))

    return Document(
        path=path,
        size=size,
        modified_at=modified_at,
        frontmatter=MappingProxyType(metadata),
        body=body,
        raw=raw,
        headings=tuple(headings),
        outgoing_links=frozenset(links),
        inline_tags=frozenset(inline_tags),
        tasks=tuple(tasks),
        frontmatter_tags=tags_from_frontmatter(metadata),
    )
