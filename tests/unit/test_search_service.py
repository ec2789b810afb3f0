from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from vaultquery.cache import VaultCache
from vaultquery.errors import VaultQueryError
from vaultquery.services.search_service import (
    compile_search_pattern,
    find_by_metadata,
    matches_criteria,
    search_content,
)


def _write(root: Path, rel: str, text: str, mtime: float | None = None) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))


def test_search_content_returns_matches_with_context(tmp_path):
    _write(tmp_path, "a.md", "line one\nneedle here\nline three\nline four\n")
    _write(tmp_path, "b.md", "no match\n")
    vault = VaultCache(tmp_path)

    response = search_content(vault, "NEEDLE", context_lines=1)

    assert response.total_matches == 1
    assert response.searched_files == 2
    match = response.matches[0]
    assert (match.path, match.line) == ("a.md", 2)
    assert match.context == "line one\nneedle here\nline three"
    assert (match.context_start, match.context_end) == (1, 3)


def test_search_content_case_regex_and_limits(tmp_path):
    _write(tmp_path, "a.md", "Alpha\nalpha\nALPHA\n")
    _write(tmp_path, "skip/b.md", "alpha\n")
    vault = VaultCache(tmp_path)

    sensitive = search_content(vault, "alpha", case_sensitive=True)
    regex = search_content(vault, r"^A\w+$", use_regex=True, case_sensitive=True)
    limited = search_content(vault, "alpha", max_results=2, exclude_paths=["skip/"])

    assert [m.path for m in sensitive.matches] == ["a.md", "skip/b.md"]
    assert [m.content for m in regex.matches] == ["Alpha", "ALPHA"]
    assert len(limited.matches) == 2
    assert limited.total_matches == 3
    assert limited.truncated
    assert limited.as_dict()["truncated"] is True


def test_search_searches_frontmatter_text_too(tmp_path):
    _write(tmp_path, "a.md", "---\nstatus: blocked\n---\nbody\n")

    response = search_content(VaultCache(tmp_path), "blocked")

    assert response.matches[0].line == 2


def test_compile_search_pattern_rejects_bad_input():
    with pytest.raises(VaultQueryError):
        compile_search_pattern("  ")
    with pytest.raises(VaultQueryError):
        compile_search_pattern("(", use_regex=True)
    assert compile_search_pattern("a.b").search("a.b")
    assert not compile_search_pattern("a.b").search("axb")


def test_matches_criteria_operators():
    metadata = {"status": "open", "priority": 3, "tags": ["a", "b"], "due": "2024-05-01"}

    assert matches_criteria(metadata, {"status": "open"})
    assert not matches_criteria(metadata, {"status": "done"})
    assert matches_criteria(metadata, {"owner": {"$exists": False}})
    assert matches_criteria(metadata, {"status": {"$in": ["open", "active"]}})
    assert matches_criteria(metadata, {"tags": {"$in": ["b"]}})
    assert matches_criteria(metadata, {"status": {"$regex": "^OP"}})
    assert matches_criteria(metadata, {"priority": {"$gte": 3, "$lt": 5}})
    assert not matches_criteria(metadata, {"priority": {"$gt": 3}})
    assert matches_criteria(metadata, {"due": {"$gt": "2024-01-01"}})
    assert not matches_criteria(metadata, {"status": {"$gt": 3}})
    assert not matches_criteria(metadata, {"missing": {"$in": ["x"]}})


def test_find_by_metadata_filters_by_criteria_words_and_dates(tmp_path):
    _write(tmp_path, "a.md", "---\nstatus: open\n---\none two three\n", mtime=1_600_000_000)
    _write(tmp_path, "b.md", "---\nstatus: open\n---\none\n", mtime=1_700_000_000)
    _write(tmp_path, "c.md", "---\nstatus: done\n---\none two three four\n", mtime=1_700_000_000)
    vault = VaultCache(tmp_path)

    open_notes = find_by_metadata(vault, {"status": "open"})
    wordy = find_by_metadata(vault, min_words=3)
    recent = find_by_metadata(
        vault, modified_after=datetime.fromtimestamp(1_650_000_000)
    )

    assert [match.path for match in open_notes] == ["a.md", "b.md"]
    assert [match.path for match in wordy] == ["a.md", "c.md"]
    assert [match.path for match in recent] == ["b.md", "c.md"]
    assert open_notes[0].as_dict()["frontmatter"] == {"status": "open"}


def test_find_by_metadata_rejects_bad_dates(tmp_path):
    with pytest.raises(VaultQueryError):
        find_by_metadata(VaultCache(tmp_path), modified_after="yesterday")
