from __future__ import annotations

import pytest

from vaultquery.document import TaskItem
from vaultquery.errors import VaultQueryError
from vaultquery.modes import (
    CompactMode,
    SummaryMode,
    available_modes,
    choose_mode,
    get_strategy,
    render_results,
    wiki_link,
)
from vaultquery.query import QueryKind
from vaultquery.results import QueryResult, QueryRow, failed_result


def _table(count: int, *, status=lambda index: "open" if index % 2 else "done") -> QueryResult:
    rows = tuple(
        QueryRow(path=f"notes/n{index:03d}.md", values={"status": status(index)})
        for index in range(count)
    )
    return QueryResult(kind=QueryKind.TABLE, headers=("status",), rows=rows)


def test_available_modes_lists_every_strategy():
    assert available_modes() == ["compact", "count", "list", "smart", "summary", "table"]


def test_unknown_mode_raises():
    with pytest.raises(VaultQueryError):
        get_strategy("fancy")
    with pytest.raises(VaultQueryError):
        render_results(_table(1), "fancy")


def test_table_mode_renders_markdown_table():
    result = QueryResult(
        kind=QueryKind.TABLE,
        headers=("status", "note"),
        rows=(
            QueryRow(path="a.md", values={"status": "open", "note": "x | y"}),
            QueryRow(path="b.md", values={"status": "done"}),
        ),
    )

    assert render_results(result, "table").splitlines() == [
        "| File | status | note |",
        "| --- | --- | --- |",
        "| [[a]] | open | x \\| y |",
        "| [[b]] | done | — |",
    ]


def test_list_mode_renders_links_values_and_tasks():
    plain = QueryResult(kind=QueryKind.LIST, rows=(QueryRow(path="dir/a.md"),))
    valued = QueryResult(
        kind=QueryKind.LIST,
        headers=("status",),
        rows=(QueryRow(path="a.md", values={"status": "open"}),),
    )
    tasks = QueryResult(
        kind=QueryKind.TASK,
        headers=("task", "completed"),
        rows=(
            QueryRow(path="t.md", task=TaskItem(text="ship", completed=True, line=3)),
            QueryRow(path="t.md", task=TaskItem(text="draft", completed=False, line=4)),
        ),
    )

    assert render_results(plain, "list") == "- [[dir/a]]"
    assert render_results(valued, "list") == "- [[a]]: open"
    assert render_results(tasks, "list") == "- [x] ship ([[t]])\n- [ ] draft ([[t]])"


def test_count_mode():
    assert render_results(_table(1), "count") == "1 result"
    assert render_results(_table(7), "count") == "7 results"
    assert render_results(_table(0), "count") == "0 results"


def test_placeholders_for_error_empty_and_no_rows():
    error = failed_result("boom", "ParseError")
    empty = QueryResult(kind=QueryKind.EMPTY)
    nothing = _table(0)

    for mode in ("table", "list", "compact", "summary", "smart"):
        assert render_results(error, mode) == "**Query error:** boom"
        assert render_results(empty, mode) == "*Empty query*"
        assert render_results(nothing, mode) == "*No results found*"


def test_compact_mode_truncates_cells_and_rows():
    long_value = QueryResult(
        kind=QueryKind.TABLE,
        headers=("summary",),
        rows=(QueryRow(path="a.md", values={"summary": "x" * 200}),),
    )
    rendered = render_results(long_value, "compact")
    assert "x" * 59 + "…" in rendered
    assert "x" * 61 not in rendered

    limited = CompactMode(max_chars=120).render(_table(20))
    assert len(limited.splitlines()) < 22
    assert "more rows omitted" in limited


def test_summary_mode_histograms_first_field():
    rendered = render_results(_table(10), "summary")

    assert rendered.startswith("**10 results** (summarized by status)")
    assert "| done | 5 |" in rendered
    assert "| open | 5 |" in rendered
    assert rendered.count("- [[notes/") == 5
    assert "… and 5 more" in rendered


def test_summary_without_headers_groups_by_folder():
    result = QueryResult(
        kind=QueryKind.LIST,
        rows=(QueryRow(path="a/x.md"), QueryRow(path="a/y.md"), QueryRow(path="z.md")),
    )

    label, buckets = SummaryMode.histogram(result)

    assert label == "Folder"
    assert buckets == [("a", 2), ("/", 1)]


def test_summary_of_tasks_groups_by_completion():
    result = QueryResult(
        kind=QueryKind.TASK,
        headers=("task", "completed"),
        rows=tuple(
            QueryRow(
                path="t.md",
                values={"task": f"t{index}", "completed": "true" if index < 3 else "false"},
                task=TaskItem(text=f"t{index}", completed=index < 3, line=index),
            )
            for index in range(5)
        ),
    )

    assert SummaryMode.histogram(result) == ("completed", [("true", 3), ("false", 2)])


def test_smart_mode_switches_to_summary_at_threshold():
    large = _table(200)
    small = _table(5)

    assert choose_mode(large, "smart") == "summary"
    assert choose_mode(small, "smart") == "table"
    assert render_results(large, "smart").startswith("**200 results**")
    assert render_results(small, "smart").startswith("| File | status |")
    assert choose_mode(_table(49), "smart") == "table"
    assert choose_mode(_table(50), "smart") == "summary"
    assert choose_mode(_table(10), "smart", threshold=5) == "summary"


def test_smart_mode_uses_list_for_list_queries():
    result = QueryResult(kind=QueryKind.LIST, rows=(QueryRow(path="a.md"),))

    assert choose_mode(result, "smart") == "list"
    assert render_results(result, "smart") == "- [[a]]"


def test_render_falls_back_to_result_mode_then_smart():
    tagged = QueryResult(
        kind=QueryKind.TABLE,
        headers=("status",),
        rows=(QueryRow(path="a.md", values={"status": "x"}),),
        render_mode="count",
    )

    assert render_results(tagged) == "1 result"
    assert choose_mode(_table(60)) == "summary"


def test_wiki_link_strips_markdown_extension():
    assert wiki_link("dir/Note.md") == "[[dir/Note]]"
    assert wiki_link("image.png") == "[[image.png]]"
