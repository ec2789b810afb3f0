"""Utility helpers for filesystem access and path handling."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence, Tuple
import os
import posixpath

from pathspec import PathSpec
from pathspec.gitignore import GitIgnoreSpec


def resolve_directory(path: Path | str) -> Path:
    """Resolve and validate a user supplied directory path."""
    dir_path = Path(path).expanduser().resolve()
    if not dir_path.exists():
        raise FileNotFoundError(f"Directory does not exist: {dir_path}")
    if not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    return dir_path


def normalize_extensions(values: Iterable[str] | None) -> tuple[str, ...]:
    """Return a sorted, deduplicated tuple of normalized file extensions."""

    if not values:
        return ()

    normalized: list[str] = []
    seen: set[str] = set()
    for raw in values:
        if raw is None:
            continue
        for part in raw.replace(",", " ").split():
            token = part.strip().lower()
            if not token:
                continue
            if not token.startswith("."):
                token = f".{token}"
            if token == ".":
                continue
            if token not in seen:
                seen.add(token)
                normalized.append(token)
    if not normalized:
        return ()
    return tuple(sorted(normalized))


def normalize_glob_patterns(values: Iterable[str] | None) -> tuple[str, ...]:
    """Return deduplicated glob patterns; bare ``*.ext`` patterns match at any depth."""

    if not values:
        return ()
    normalized: list[str] = []
    for raw in values:
        if raw is None:
            continue
        token = raw.strip().replace("\\", "/")
        if not token:
            continue
        if token.startswith("*.") or token.startswith("."):
            suffix = token[1:] if token.startswith("*") else token
            token = f"**/*{suffix}"
        if token not in normalized:
            normalized.append(token)
    return tuple(normalized)


def build_glob_spec(patterns: Sequence[str]) -> PathSpec | None:
    """Compile wildmatch *patterns* into a spec, or None when empty."""
    if not patterns:
        return None
    return PathSpec.from_lines("gitwildmatch", patterns)


def build_ignore_spec(patterns: Sequence[str] | None) -> GitIgnoreSpec:
    """Compile gitignore-style ignore *patterns*; bare names match at any depth."""
    return GitIgnoreSpec.from_lines([p for p in (patterns or ()) if p and p.strip()])


def is_ignored(spec: GitIgnoreSpec, rel_path: str, *, is_dir: bool) -> bool:
    if not rel_path:
        return False
    candidate = f"{rel_path}/" if is_dir and not rel_path.endswith("/") else rel_path
    return spec.match_file(candidate)


def relative_posix(path: Path, root: Path) -> str:
    rel = path.relative_to(root)
    if rel == Path("."):
        return ""
    return rel.as_posix()


def join_vault_path(base: str, relative: str) -> str:
    """Join two vault-relative paths, normalizing separators and dots."""
    base = (base or "").strip().strip("/")
    relative = (relative or "").strip().replace("\\", "/")
    if relative.startswith("/"):
        base = ""
    joined = posixpath.join(base, relative.lstrip("/")) if base else relative.lstrip("/")
    if not joined:
        return ""
    normalized = posixpath.normpath(joined)
    return "" if normalized == "." else normalized


def collect_files(
    root: Path | str,
    include_hidden: bool = False,
    extensions: Sequence[str] | None = None,
    ignore_patterns: Sequence[str] | None = None,
) -> List[Path]:
    """Collect document files under *root*, skipping hidden and ignored entries."""

    directory = resolve_directory(root)
    files: List[Path] = []
    normalized_exts: Tuple[str, ...] = tuple(extensions or ())
    spec = build_ignore_spec(ignore_patterns)

    def _raise_for_root(error: OSError) -> None:
        if Path(error.filename or "") == directory:
            raise error

    for dirpath, dirnames, filenames in os.walk(
        directory, topdown=True, onerror=_raise_for_root
    ):
        current_dir = Path(dirpath)
        if not include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            filenames = [f for f in filenames if not f.startswith(".")]
        dirnames[:] = [d for d in dirnames if d != ".git"]

        kept: list[str] = []
        for dirname in dirnames:
            rel_child = relative_posix(current_dir / dirname, directory)
            if is_ignored(spec, rel_child, is_dir=True):
                continue
            kept.append(dirname)
        dirnames[:] = sorted(kept)

        for filename in filenames:
            candidate = current_dir / filename
            if normalized_exts and not _matches_extension(candidate, normalized_exts):
                continue
            if is_ignored(spec, relative_posix(candidate, directory), is_dir=False):
                continue
            files.append(candidate)

    files.sort()
    return files


def _matches_extension(path: Path, extensions: Sequence[str]) -> bool:
    """Return True if *path* ends with any of the provided *extensions*."""

    filename = path.name.lower()
    return any(filename.endswith(ext) for ext in extensions)
