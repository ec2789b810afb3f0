"""vaultquery package initialization."""

from __future__ import annotations

from .api import VaultClient, query
from .errors import (
    CacheReadError,
    EvaluationError,
    NotFoundError,
    ParseError,
    StructureScanError,
    VaultQueryError,
)

__all__ = [
    "__version__",
    "CacheReadError",
    "EvaluationError",
    "NotFoundError",
    "ParseError",
    "StructureScanError",
    "VaultClient",
    "VaultQueryError",
    "get_version",
    "query",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
