from __future__ import annotations

from pathlib import Path

import vaultquery.services.query_service as query_service
from vaultquery.cache import VaultCache
from vaultquery.query import QueryKind
from vaultquery.services.query_service import QueryRequest, execute_query, run_query


def _note(root: Path, rel: str, frontmatter: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{frontmatter}\n---\nbody\n", encoding="utf-8")


def test_execute_query_returns_rows_and_natural_mode(tmp_path):
    _note(tmp_path, "a.md", "tags: [a]")
    _note(tmp_path, "b.md", "tags: [b]")
    vault = VaultCache(tmp_path)

    result = execute_query(vault, "LIST FROM #a")

    assert result.ok
    assert result.kind is QueryKind.LIST
    assert [row.path for row in result.rows] == ["a.md"]
    assert result.query == "LIST FROM #a"
    assert result.render_mode == "list"


def test_parse_error_is_returned_not_raised(tmp_path):
    vault = VaultCache(tmp_path)

    result = execute_query(vault, "SELECT * FROM x")

    assert not result.ok
    assert result.error_type == "ParseError"
    assert "SELECT" in (result.error or "")
    assert result.rows == ()
    assert len(vault.contexts) == 0


def test_results_are_memoized_until_invalidation(tmp_path, monkeypatch):
    _note(tmp_path, "a.md", "status: open")
    vault = VaultCache(tmp_path)
    calls = []
    original = query_service._evaluate

    def counting_evaluate(*args, **kwargs):
        calls.append(args[1])
        return original(*args, **kwargs)

    monkeypatch.setattr(query_service, "_evaluate", counting_evaluate)

    first = execute_query(vault, "LIST")
    second = execute_query(vault, "LIST", render_mode="count")
    assert len(calls) == 1
    assert first.rows == second.rows
    assert second.render_mode == "count"

    vault.invalidate("a.md")
    execute_query(vault, "LIST")
    assert len(calls) == 2


def test_new_note_visible_after_invalidate_or_forced_refresh(tmp_path):
    _note(tmp_path, "a.md", "status: open")
    vault = VaultCache(tmp_path)
    assert len(execute_query(vault, "LIST").rows) == 1

    _note(tmp_path, "b.md", "status: open")
    assert len(execute_query(vault, "LIST").rows) == 1

    vault.invalidate("b.md")
    assert len(execute_query(vault, "LIST").rows) == 2

    _note(tmp_path, "c.md", "status: open")
    assert len(execute_query(vault, "LIST", force_refresh=True).rows) == 3


def test_base_path_is_part_of_the_cache_key(tmp_path):
    _note(tmp_path, "Projects/x/a.md", "status: open")
    _note(tmp_path, "x/b.md", "status: open")
    vault = VaultCache(tmp_path)

    root = execute_query(vault, 'LIST FROM "x"')
    nested = execute_query(vault, 'LIST FROM "x"', base_path="Projects/")

    assert [row.path for row in root.rows] == ["x/b.md"]
    assert [row.path for row in nested.rows] == ["Projects/x/a.md"]


def test_run_query_renders_with_smart_threshold(tmp_path):
    for index in range(8):
        _note(tmp_path, f"n{index}.md", f"status: {'open' if index % 2 else 'done'}")
    vault = VaultCache(tmp_path)

    small = run_query(vault, QueryRequest(query="TABLE status", smart_threshold=50))
    large = run_query(vault, QueryRequest(query="TABLE status", smart_threshold=5))

    assert small.mode == "table"
    assert small.rendered.startswith("| File | status |")
    assert large.mode == "summary"
    assert large.rendered.startswith("**8 results** (summarized by status)")


def test_run_query_reports_errors_in_rendered_text(tmp_path):
    vault = VaultCache(tmp_path)

    response = run_query(vault, QueryRequest(query="TABLE a WHERE (", render_mode="table"))

    assert not response.result.ok
    assert response.rendered.startswith("**Query error:**")


def test_failed_forced_rescan_fails_the_query(tmp_path):
    root = tmp_path / "vault"
    _note(root, "a.md", "status: open")
    vault = VaultCache(root)
    assert len(execute_query(vault, "LIST").rows) == 1

    root.rename(tmp_path / "moved")
    result = execute_query(vault, "LIST", force_refresh=True)

    assert not result.ok
    assert result.error_type == "StructureScanError"
    assert result.rows == ()
    assert result.query == "LIST"
    assert len(vault.contexts) == 0


def test_frontmatter_keys_named_like_post_arguments(tmp_path):
    _note(tmp_path, "good.md", "status: open")
    _note(tmp_path, "odd.md", "status: odd\ncontent: v\nhandler: h\nself: s")
    vault = VaultCache(tmp_path)

    result = execute_query(vault, "TABLE status, handler SORT status")

    assert result.ok
    assert [row.path for row in result.rows] == ["odd.md", "good.md"]
    assert vault.get_content("odd.md").frontmatter["content"] == "v"


def test_malformed_limit_and_deep_nesting_come_back_as_parse_errors(tmp_path):
    _note(tmp_path, "a.md", "priority: 5")
    vault = VaultCache(tmp_path)

    limit = execute_query(vault, "TABLE priority LIMIT ²")
    nested = execute_query(vault, "TABLE priority WHERE " + "(" * 400 + "priority > 3" + ")" * 400)
    negated = execute_query(vault, "TABLE priority WHERE " + "!" * 2000 + "priority")

    assert [result.error_type for result in (limit, nested, negated)] == ["ParseError"] * 3
