"""Public Python API for vaultquery."""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Sequence

from .cache import CacheStats, VaultCache
from .config import Config, config_dir_context, config_from_json, load_config, resolve_vault_path
from .document import Document, FileEntry
from .errors import VaultQueryError
from .modes import available_modes, render_results as _render_results
from .results import QueryResult
from .services.cache_service import build_vault_cache
from .services.query_service import QueryRequest, QueryResponse, execute_query, run_query
from .services.search_service import (
    DEFAULT_CONTEXT_LINES,
    DEFAULT_MAX_RESULTS,
    MetadataMatch,
    SearchResponse,
    find_by_metadata,
    search_content,
)
from .services.vault_service import (
    DEFAULT_SCAN_PATTERNS,
    NoteView,
    ScanResponse,
    VaultStats,
    read_notes,
    scan_vault,
    vault_stats,
)
from .text import Messages
from .utils import resolve_directory


def _resolve_config(
    config: Config | Mapping[str, object] | str | None,
    config_dir: Path | str | None,
) -> Config:
    if isinstance(config, Config):
        return config
    try:
        if config_dir is not None:
            with config_dir_context(config_dir):
                base = load_config()
        else:
            base = load_config()
        if config is None:
            return base
        return config_from_json(config, base=base)
    except ValueError as exc:
        raise VaultQueryError(str(exc)) from exc


class VaultClient:
    """Session-style wrapper around one vault and its cache tiers.

    Each client owns its caches; two clients on the same vault share nothing.
    """

    def __init__(
        self,
        vault_path: Path | str | None = None,
        *,
        config: Config | Mapping[str, object] | str | None = None,
        config_dir: Path | str | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = _resolve_config(config, config_dir)
        raw_path = str(vault_path) if vault_path is not None else None
        resolved = resolve_vault_path(raw_path or self.config.vault_path)
        if not resolved:
            raise VaultQueryError(Messages.ERROR_VAULT_PATH_MISSING)
        try:
            self.vault_path = resolve_directory(resolved)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise VaultQueryError(str(exc)) from exc
        self.cache: VaultCache = build_vault_cache(
            self.config, self.vault_path, clock=clock or time.monotonic
        )

    def get_structure(self, force_refresh: bool = False) -> list[FileEntry]:
        return self.cache.get_structure(force_refresh)

    def get_content(self, path: str) -> Document:
        return self.cache.get_content(path)

    def invalidate(self, path: str) -> None:
        """Tell the caches *path* changed on disk."""
        self.cache.invalidate(path)

    def invalidate_all(self) -> None:
        self.cache.invalidate_all()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def execute_query(
        self,
        query: str,
        base_path: str = "",
        *,
        render_mode: str | None = None,
        force_refresh: bool = False,
    ) -> QueryResult:
        """Run *query*; failures come back on ``QueryResult.error``."""
        return execute_query(
            self.cache,
            query,
            base_path,
            render_mode=validate_mode(render_mode) or self.config.render_mode,
            force_refresh=force_refresh,
        )

    def render_results(self, result: QueryResult, mode: str | None = None) -> str:
        validate_mode(mode)
        return _render_results(
            result,
            mode,
            threshold=self.config.smart_threshold,
            max_chars=self.config.compact_max_chars,
        )

    def query(
        self,
        query: str,
        base_path: str = "",
        *,
        render_mode: str | None = None,
        force_refresh: bool = False,
    ) -> QueryResponse:
        """Execute and render in one call."""
        mode = validate_mode(render_mode) or self.config.render_mode
        request = QueryRequest(
            query=query,
            base_path=base_path,
            render_mode=mode,
            force_refresh=force_refresh,
            smart_threshold=self.config.smart_threshold,
            compact_max_chars=self.config.compact_max_chars,
        )
        return run_query(self.cache, request)

    def scan_vault(
        self,
        patterns: Sequence[str] | None = DEFAULT_SCAN_PATTERNS,
        *,
        sort_by: str = "modified",
        limit: int | None = None,
        include_frontmatter: bool = False,
        include_preview: bool = False,
        include_stats: bool = False,
        use_cache: bool = True,
    ) -> ScanResponse:
        return scan_vault(
            self.cache,
            patterns,
            sort_by=sort_by,
            limit=limit,
            include_frontmatter=include_frontmatter,
            include_preview=include_preview,
            include_stats=include_stats,
            use_cache=use_cache,
        )

    def vault_stats(self) -> VaultStats:
        return vault_stats(self.cache)

    def read_notes(
        self,
        paths: Sequence[str],
        *,
        render_dataview: bool = False,
        dataview_mode: str = "smart",
    ) -> list[NoteView]:
        return read_notes(
            self.cache,
            paths,
            render_dataview=render_dataview,
            dataview_mode=validate_mode(dataview_mode) or "smart",
        )

    def search_content(
        self,
        query: str,
        *,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        max_results: int = DEFAULT_MAX_RESULTS,
        case_sensitive: bool = False,
        use_regex: bool = False,
        exclude_paths: Sequence[str] | None = None,
    ) -> SearchResponse:
        return search_content(
            self.cache,
            query,
            context_lines=context_lines,
            max_results=max_results,
            case_sensitive=case_sensitive,
            use_regex=use_regex,
            exclude_paths=exclude_paths,
        )

    def find_by_metadata(
        self,
        criteria: Mapping[str, Any] | None = None,
        *,
        min_words: int | None = None,
        max_words: int | None = None,
        modified_after: str | datetime | None = None,
        modified_before: str | datetime | None = None,
    ) -> list[MetadataMatch]:
        return find_by_metadata(
            self.cache,
            criteria,
            min_words=min_words,
            max_words=max_words,
            modified_after=modified_after,
            modified_before=modified_before,
        )


def query(
    text: str,
    *,
    vault_path: Path | str | None = None,
    base_path: str = "",
    render_mode: str | None = None,
    config: Config | Mapping[str, object] | str | None = None,
) -> QueryResponse:
    """Run a single query against a fresh client."""

    client = VaultClient(vault_path, config=config)
    return client.query(text, base_path, render_mode=render_mode)


def validate_mode(mode: str | None) -> str | None:
    """Normalize a render mode name, raising :class:`VaultQueryError` when unknown."""
    if mode is None:
        return None
    normalized = mode.strip().lower()
    if normalized not in available_modes():
        allowed = ", ".join(available_modes())
        raise VaultQueryError(Messages.ERROR_MODE_INVALID.format(value=mode, allowed=allowed))
    return normalized
