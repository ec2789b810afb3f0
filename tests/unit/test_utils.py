from __future__ import annotations

import pytest

import vaultquery.utils as utils


def test_resolve_directory_validates(tmp_path):
    with pytest.raises(FileNotFoundError):
        utils.resolve_directory(tmp_path / "missing")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        utils.resolve_directory(file_path)

    assert utils.resolve_directory(tmp_path) == tmp_path.resolve()


def test_normalize_extensions():
    assert utils.normalize_extensions(None) == ()
    assert utils.normalize_extensions([]) == ()
    assert utils.normalize_extensions(["md", ".md", " .MARKDOWN ", ".", "", None]) == (
        ".markdown",
        ".md",
    )
    assert utils.normalize_extensions([".md,.txt"]) == (".md", ".txt")


def test_normalize_glob_patterns():
    assert utils.normalize_glob_patterns(None) == ()
    assert utils.normalize_glob_patterns(["Projects/**", " Projects/** "]) == ("Projects/**",)
    assert utils.normalize_glob_patterns(["*.md"]) == ("**/*.md",)
    assert utils.normalize_glob_patterns([".md"]) == ("**/*.md",)
    assert utils.normalize_glob_patterns(["a\\b.md"]) == ("a/b.md",)


def test_build_glob_spec_matches_nested_paths():
    assert utils.build_glob_spec(()) is None
    spec = utils.build_glob_spec(["**/*.md"])
    assert spec is not None
    assert spec.match_file("top.md")
    assert spec.match_file("deep/nested/note.md")
    assert not spec.match_file("image.png")


def test_join_vault_path():
    assert utils.join_vault_path("", "") == ""
    assert utils.join_vault_path("Projects", "alpha") == "Projects/alpha"
    assert utils.join_vault_path("Projects/", "../Areas") == "Areas"
    assert utils.join_vault_path("Projects", "/Inbox") == "Inbox"
    assert utils.join_vault_path("", "./x\\y") == "x/y"
    assert utils.join_vault_path("Projects", ".") == "Projects"


def test_collect_files_respects_hidden_extensions_and_ignores(tmp_path):
    (tmp_path / "a.md").write_text("a")
    (tmp_path / "b.txt").write_text("b")
    (tmp_path / ".hidden.md").write_text("h")
    archive = tmp_path / "Archive"
    archive.mkdir()
    (archive / "old.md").write_text("o")

    names = [
        path.name
        for path in utils.collect_files(tmp_path, extensions=(".md",), ignore_patterns=["Archive/"])
    ]
    assert names == ["a.md"]

    with_hidden = utils.collect_files(tmp_path, include_hidden=True, extensions=(".md",))
    assert sorted(path.name for path in with_hidden) == [".hidden.md", "a.md", "old.md"]


def test_collect_files_raises_for_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        utils.collect_files(tmp_path / "missing")
