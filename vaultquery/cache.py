"""In-memory vault caches: structure, content and computed contexts.

Three tiers share one lifecycle owned by :class:`VaultCache`:

* :class:`StructureCache` maps every document path to its size and mtime.
  The whole map is rebuilt by a directory walk and swapped in at once; it is
  either entirely fresh or entirely stale.
* :class:`ContentCache` holds parsed :class:`~vaultquery.document.Document`
  snapshots for recently read paths, validated against the structure mtime
  and a TTL, bounded by insertion-order eviction.
* :class:`ContextCache` memoizes computed results keyed by a hash of their
  parameters. Any invalidation clears it completely; it does not track which
  documents a cached result depended on.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .config import (
    DEFAULT_CONTENT_CACHE_SIZE,
    DEFAULT_CONTENT_TTL,
    DEFAULT_CONTEXT_CACHE_SIZE,
    DEFAULT_CONTEXT_TTL,
    DEFAULT_EXTENSIONS,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_STRUCTURE_TTL,
)
from .document import Document, FileEntry, decode_text, parse_document
from .errors import CacheReadError, NotFoundError, StructureScanError
from .text import Messages
from .utils import collect_files, relative_posix

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
InvalidationListener = Callable[[str | None], None]
T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Outcome of reading the structure map; failures carry a message instead of raising."""

    entries: tuple[FileEntry, ...] = ()
    error: str | None = None
    scanned: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ContentEntry:
    document: Document
    cached_modified_at: float
    cached_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    structure_size: int
    content_cache_size: int
    context_cache_size: int
    last_full_scan_age: float | None

    def as_dict(self) -> dict[str, object]:
        return {
            "structure_size": self.structure_size,
            "content_cache_size": self.content_cache_size,
            "context_cache_size": self.context_cache_size,
            "last_full_scan_age": self.last_full_scan_age,
        }


def is_within_ttl(timestamp: float | None, ttl: float, now: float) -> bool:
    if timestamp is None:
        return False
    return now - timestamp < ttl


def context_key(params: Mapping[str, Any] | Sequence[Any] | str) -> str:
    """Return the stable cache hash for a parameter object."""

    canonical = json.dumps(params, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class StructureCache:
    """Point-in-time map of vault paths to :class:`FileEntry` records."""

    def __init__(
        self,
        root: Path | str,
        *,
        ttl: float = DEFAULT_STRUCTURE_TTL,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        ignore_patterns: Sequence[str] = DEFAULT_IGNORE_PATTERNS,
        include_hidden: bool = False,
        clock: Clock = time.monotonic,
        on_invalidate: InvalidationListener | None = None,
    ) -> None:
        self.root = Path(root).expanduser()
        self.ttl = float(ttl)
        self.extensions = tuple(extensions)
        self.ignore_patterns = tuple(ignore_patterns)
        self.include_hidden = include_hidden
        self._clock = clock
        self._on_invalidate = on_invalidate
        self._entries: Mapping[str, FileEntry] = MappingProxyType({})
        self._last_full_scan: float | None = None
        self.scan_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def last_full_scan(self) -> float | None:
        return self._last_full_scan

    def is_fresh(self) -> bool:
        return is_within_ttl(self._last_full_scan, self.ttl, self._clock())

    def age(self) -> float | None:
        if self._last_full_scan is None:
            return None
        return max(self._clock() - self._last_full_scan, 0.0)

    def snapshot(self, force_refresh: bool = False) -> ScanResult:
        """Return the current entries, rescanning when stale or forced."""
        if not force_refresh and self.is_fresh():
            return ScanResult(entries=tuple(self._entries.values()))
        return self.refresh()

    def refresh(self) -> ScanResult:
        """Walk the vault and atomically replace the structure map."""
        started = time.perf_counter()
        try:
            files = collect_files(
                self.root,
                include_hidden=self.include_hidden,
                extensions=self.extensions,
                ignore_patterns=self.ignore_patterns,
            )
        except OSError as exc:
            message = Messages.ERROR_SCAN_FAILED.format(path=self.root, reason=exc)
            logger.error(message)
            return ScanResult(error=message)

        root = self.root.resolve()
        entries: dict[str, FileEntry] = {}
        for file in files:
            try:
                stat = file.stat()
            except OSError as exc:
                logger.warning("Skipping %s during scan: %s", file, exc)
                continue
            rel_path = relative_posix(file, root)
            entries[rel_path] = FileEntry(
                path=rel_path,
                size=stat.st_size,
                modified_at=stat.st_mtime,
            )

        self._entries = MappingProxyType(entries)
        self._last_full_scan = self._clock()
        self.scan_count += 1
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Vault scan completed in %.1fms, found %d files", elapsed_ms, len(entries)
        )
        return ScanResult(entries=tuple(entries.values()), scanned=True)

    def get_structure(self, force_refresh: bool = False) -> list[FileEntry]:
        result = self.snapshot(force_refresh)
        if not result.ok:
            raise StructureScanError(result.error)
        return list(result.entries)

    def lookup(self, path: str) -> FileEntry | None:
        """Return the entry for *path*, populating the map first if it is stale."""
        result = self.snapshot()
        if not result.ok:
            raise StructureScanError(result.error)
        return self._entries.get(path)

    def invalidate(self, path: str) -> None:
        remaining = {key: value for key, value in self._entries.items() if key != path}
        self._entries = MappingProxyType(remaining)
        self._last_full_scan = None
        if self._on_invalidate is not None:
            self._on_invalidate(path)

    def clear(self) -> None:
        self._entries = MappingProxyType({})
        self._last_full_scan = None


class ContentCache:
    """Bounded map of path to parsed document, checked against the structure mtime."""

    def __init__(
        self,
        structure: StructureCache,
        *,
        ttl: float = DEFAULT_CONTENT_TTL,
        max_entries: int = DEFAULT_CONTENT_CACHE_SIZE,
        clock: Clock = time.monotonic,
        on_invalidate: InvalidationListener | None = None,
    ) -> None:
        self.structure = structure
        self.ttl = float(ttl)
        self.max_entries = max(int(max_entries), 1)
        self._clock = clock
        self._on_invalidate = on_invalidate
        self._entries: "OrderedDict[str, ContentEntry]" = OrderedDict()
        self._lock = Lock()
        self.read_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def get_content(self, path: str) -> Document:
        info = self.structure.lookup(path)
        if info is None:
            raise NotFoundError(Messages.ERROR_NOT_FOUND.format(path=path), path=path)

        with self._lock:
            cached = self._entries.get(path)
        if (
            cached is not None
            and cached.cached_modified_at == info.modified_at
            and is_within_ttl(cached.cached_at, self.ttl, self._clock())
        ):
            return cached.document

        document = self._read(info)
        entry = ContentEntry(
            document=document,
            cached_modified_at=info.modified_at,
            cached_at=self._clock(),
        )
        with self._lock:
            self._entries.pop(path, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[path] = entry
        return document

    def _read(self, info: FileEntry) -> Document:
        full_path = self.structure.root / info.path
        try:
            data = full_path.read_bytes()
            raw = decode_text(data)
        except (OSError, UnicodeDecodeError) as exc:
            raise CacheReadError(
                Messages.ERROR_READ_FAILED.format(path=info.path, reason=exc),
                path=info.path,
            ) from exc
        self.read_count += 1
        return parse_document(
            info.path,
            raw,
            size=info.size,
            modified_at=info.modified_at,
        )

    def invalidate(self, path: str) -> None:
        with self._lock:
            self._entries.pop(path, None)
        if self._on_invalidate is not None:
            self._on_invalidate(path)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@dataclass(slots=True)
class _ContextEntry:
    value: Any
    cached_at: float


class ContextCache:
    """Memoizes computed results keyed by a hash of their input parameters."""

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_CONTEXT_TTL,
        max_entries: int = DEFAULT_CONTEXT_CACHE_SIZE,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl = float(ttl)
        self.max_entries = max(int(max_entries), 1)
        self._clock = clock
        self._entries: "OrderedDict[str, _ContextEntry]" = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, params: Any) -> Any | None:
        key = context_key(params)
        with self._lock:
            cached = self._entries.get(key)
        if cached is None or not is_within_ttl(cached.cached_at, self.ttl, self._clock()):
            return None
        return cached.value

    def get_or_compute(
        self,
        params: Any,
        compute: Callable[[], T],
        *,
        cacheable: Callable[[T], bool] | None = None,
    ) -> T:
        key = context_key(params)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None and is_within_ttl(cached.cached_at, self.ttl, self._clock()):
            return cached.value

        value = compute()
        if cacheable is not None and not cacheable(value):
            return value
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[key] = _ContextEntry(value=value, cached_at=self._clock())
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@dataclass(slots=True)
class CacheSettings:
    structure_ttl: float = DEFAULT_STRUCTURE_TTL
    content_ttl: float = DEFAULT_CONTENT_TTL
    context_ttl: float = DEFAULT_CONTEXT_TTL
    content_cache_size: int = DEFAULT_CONTENT_CACHE_SIZE
    context_cache_size: int = DEFAULT_CONTEXT_CACHE_SIZE
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    ignore_patterns: tuple[str, ...] = field(default=DEFAULT_IGNORE_PATTERNS)
    include_hidden: bool = False


class VaultCache:
    """Owns the three cache tiers for one vault root and wires their invalidation."""

    def __init__(
        self,
        root: Path | str,
        settings: CacheSettings | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.settings = settings or CacheSettings()
        self._clock = clock
        self.contexts = ContextCache(
            ttl=self.settings.context_ttl,
            max_entries=self.settings.context_cache_size,
            clock=clock,
        )
        self.structure = StructureCache(
            root,
            ttl=self.settings.structure_ttl,
            extensions=self.settings.extensions,
            ignore_patterns=self.settings.ignore_patterns,
            include_hidden=self.settings.include_hidden,
            clock=clock,
            on_invalidate=self._clear_contexts,
        )
        self.content = ContentCache(
            self.structure,
            ttl=self.settings.content_ttl,
            max_entries=self.settings.content_cache_size,
            clock=clock,
            on_invalidate=self._clear_contexts,
        )

    @property
    def root(self) -> Path:
        return self.structure.root

    def _clear_contexts(self, _path: str | None = None) -> None:
        self.contexts.clear()

    def snapshot(self, force_refresh: bool = False) -> ScanResult:
        result = self.structure.snapshot(force_refresh)
        if force_refresh or result.scanned:
            # A rescan may add or drop documents that cached results counted on.
            self.contexts.clear()
        return result

    def get_structure(self, force_refresh: bool = False) -> list[FileEntry]:
        result = self.snapshot(force_refresh)
        if not result.ok:
            raise StructureScanError(result.error)
        return list(result.entries)

    def get_content(self, path: str) -> Document:
        return self.content.get_content(path)

    def get_or_compute(
        self,
        params: Any,
        compute: Callable[[], T],
        *,
        cacheable: Callable[[T], bool] | None = None,
    ) -> T:
        return self.contexts.get_or_compute(params, compute, cacheable=cacheable)

    def invalidate(self, path: str) -> None:
        """Drop *path* from every tier; the next structure read rescans."""
        self.content.invalidate(path)
        self.structure.invalidate(path)

    def invalidate_all(self) -> None:
        self.structure.clear()
        self.content.clear()
        self.contexts.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            structure_size=len(self.structure),
            content_cache_size=len(self.content),
            context_cache_size=len(self.contexts),
            last_full_scan_age=self.structure.age(),
        )
