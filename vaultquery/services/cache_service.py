"""Shared helpers for building and reading the vault caches."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from ..cache import CacheSettings, VaultCache
from ..config import Config
from ..document import Document
from ..errors import CacheReadError, NotFoundError, StructureScanError

logger = logging.getLogger(__name__)


def settings_from_config(config: Config) -> CacheSettings:
    return CacheSettings(
        structure_ttl=config.structure_ttl,
        content_ttl=config.content_ttl,
        context_ttl=config.context_ttl,
        content_cache_size=config.content_cache_size,
        context_cache_size=config.context_cache_size,
        extensions=tuple(config.extensions),
        ignore_patterns=tuple(config.ignore_patterns),
        include_hidden=config.include_hidden,
    )


def build_vault_cache(
    config: Config,
    root: Path | str,
    *,
    clock: Callable[[], float] | None = None,
) -> VaultCache:
    """Construct the cache tiers for *root* using the limits from *config*."""

    return VaultCache(
        Path(root).expanduser(),
        settings_from_config(config),
        clock=clock or time.monotonic,
    )


def load_document_safe(vault: VaultCache, path: str) -> Document | None:
    """Return the cached document for *path*, or None when it cannot be read."""

    try:
        return vault.get_content(path)
    except (NotFoundError, CacheReadError, StructureScanError) as exc:
        logger.warning("Skipping %s: %s", path, exc)
        return None
