"""Logic helpers for the `vaultquery query` command."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ..cache import VaultCache
from ..config import DEFAULT_COMPACT_MAX_CHARS, DEFAULT_RENDER_MODE, DEFAULT_SMART_THRESHOLD
from ..errors import ParseError
from ..modes import choose_mode, render_results
from ..query import parse
from ..results import QueryResult, failed_result
from ..utils import join_vault_path
from .evaluate_service import QueryEvaluator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QueryRequest:
    query: str
    base_path: str = ""
    render_mode: str = DEFAULT_RENDER_MODE
    force_refresh: bool = False
    smart_threshold: int = DEFAULT_SMART_THRESHOLD
    compact_max_chars: int = DEFAULT_COMPACT_MAX_CHARS


@dataclass(slots=True)
class QueryResponse:
    result: QueryResult
    rendered: str
    mode: str


def execute_query(
    vault: VaultCache,
    query: str,
    base_path: str = "",
    *,
    render_mode: str | None = None,
    force_refresh: bool = False,
) -> QueryResult:
    """Parse and evaluate *query*, memoized in the vault's context cache.

    Malformed queries and whole-vault failures come back as a result with
    ``error`` set; they are never raised and never cached.
    """
    base = join_vault_path("", base_path)
    if force_refresh:
        # A forced rescan clears the context cache, so the compute below runs.
        scan = vault.snapshot(force_refresh=True)
        if not scan.ok:
            logger.warning("Query failed: %s", scan.error)
            return failed_result(
                scan.error or "", "StructureScanError", query=query, render_mode=render_mode
            )

    def compute() -> QueryResult:
        return _evaluate(vault, query, base)

    result = vault.get_or_compute(
        {"op": "query", "query": query, "base_path": base},
        compute,
        cacheable=lambda value: value.ok,
    )
    return replace(result, render_mode=render_mode or result.render_mode)


def _evaluate(vault: VaultCache, query: str, base_path: str) -> QueryResult:
    try:
        ast = parse(query)
    except ParseError as exc:
        logger.debug("Query rejected: %s", exc)
        return failed_result(str(exc), "ParseError", query=query)
    result = QueryEvaluator(vault).evaluate(ast, base_path)
    if result.error is not None:
        logger.warning("Query failed: %s", result.error)
    return replace(result, query=query, render_mode=result.render_mode or result.natural_mode)


def run_query(vault: VaultCache, request: QueryRequest) -> QueryResponse:
    """Execute *request* and render it; raises :class:`VaultQueryError` on a bad mode."""
    result = execute_query(
        vault,
        request.query,
        request.base_path,
        render_mode=request.render_mode,
        force_refresh=request.force_refresh,
    )
    mode = choose_mode(result, request.render_mode, threshold=request.smart_threshold)
    rendered = render_results(
        result,
        request.render_mode,
        threshold=request.smart_threshold,
        max_chars=request.compact_max_chars,
    )
    return QueryResponse(result=result, rendered=rendered, mode=mode)

