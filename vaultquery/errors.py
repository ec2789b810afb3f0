"""Exception taxonomy shared by the caches, parser and evaluator."""

from __future__ import annotations


class VaultQueryError(ValueError):
    """Raised when vaultquery input or state is invalid."""


class ParseError(VaultQueryError):
    """The query string is malformed; the query is not executed."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


class NotFoundError(VaultQueryError, LookupError):
    """The requested path is absent from the structure cache."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class EvaluationError(VaultQueryError):
    """A WHERE or field expression failed for a single document."""


class CacheReadError(VaultQueryError):
    """Reading or parsing one document from storage failed."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class StructureScanError(VaultQueryError):
    """The vault as a whole could not be enumerated."""
