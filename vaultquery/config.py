"""Global configuration management for vaultquery."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterable

from dotenv import load_dotenv

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".vaultquery"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "vaultquery_config_dir_override",
    default=None,
)
DEFAULT_STRUCTURE_TTL = 5 * 60.0
DEFAULT_CONTENT_TTL = 10 * 60.0
DEFAULT_CONTEXT_TTL = 5 * 60.0
DEFAULT_CONTENT_CACHE_SIZE = 100
DEFAULT_CONTEXT_CACHE_SIZE = 20
DEFAULT_SMART_THRESHOLD = 50
DEFAULT_COMPACT_MAX_CHARS = 4000
DEFAULT_RENDER_MODE = "smart"
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    ".git",
    ".obsidian",
    ".trash",
    "node_modules",
    ".DS_Store",
)
DEFAULT_EXTENSIONS: tuple[str, ...] = (".md",)
SUPPORTED_RENDER_MODES: tuple[str, ...] = (
    "smart",
    "table",
    "list",
    "count",
    "compact",
    "summary",
)
ENV_VAULT_PATH = "VAULTQUERY_VAULT_PATH"
LEGACY_VAULT_ENV = "OBSIDIAN_VAULT_PATH"


@dataclass
class Config:
    vault_path: str | None = None
    structure_ttl: float = DEFAULT_STRUCTURE_TTL
    content_ttl: float = DEFAULT_CONTENT_TTL
    context_ttl: float = DEFAULT_CONTEXT_TTL
    content_cache_size: int = DEFAULT_CONTENT_CACHE_SIZE
    context_cache_size: int = DEFAULT_CONTEXT_CACHE_SIZE
    smart_threshold: int = DEFAULT_SMART_THRESHOLD
    compact_max_chars: int = DEFAULT_COMPACT_MAX_CHARS
    render_mode: str = DEFAULT_RENDER_MODE
    ignore_patterns: tuple[str, ...] = field(default=DEFAULT_IGNORE_PATTERNS)
    extensions: tuple[str, ...] = field(default=DEFAULT_EXTENSIONS)
    include_hidden: bool = False


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        return Config()
    config = Config()
    # Stored files are trusted less strictly than API payloads: bad values
    # fall back to defaults instead of failing every command.
    for key in raw:
        try:
            _apply_config_payload(config, {key: raw[key]})
        except ValueError:
            continue
    return config


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {}
    if config.vault_path:
        data["vault_path"] = config.vault_path
    data["structure_ttl"] = config.structure_ttl
    data["content_ttl"] = config.content_ttl
    data["context_ttl"] = config.context_ttl
    data["content_cache_size"] = config.content_cache_size
    data["context_cache_size"] = config.context_cache_size
    data["smart_threshold"] = config.smart_threshold
    data["compact_max_chars"] = config.compact_max_chars
    data["render_mode"] = config.render_mode
    data["ignore_patterns"] = list(config.ignore_patterns)
    data["extensions"] = list(config.extensions)
    data["include_hidden"] = bool(config.include_hidden)
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {dir_path}")
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else replace(base)
    _apply_config_payload(config, data)
    return config


def update_config_from_json(
    payload: str | Mapping[str, object], *, replace_all: bool = False
) -> Config:
    """Update config from a JSON string or mapping and persist it."""
    base = None if replace_all else load_config()
    config = config_from_json(payload, base=base)
    save_config(config)
    return config


def set_vault_path(value: str | None) -> None:
    config = load_config()
    config.vault_path = _coerce_optional_str(value, "vault_path")
    save_config(config)


def set_structure_ttl(value: float) -> None:
    config = load_config()
    config.structure_ttl = _coerce_seconds(value, "structure_ttl", DEFAULT_STRUCTURE_TTL)
    save_config(config)


def set_content_ttl(value: float) -> None:
    config = load_config()
    config.content_ttl = _coerce_seconds(value, "content_ttl", DEFAULT_CONTENT_TTL)
    save_config(config)


def set_smart_threshold(value: int) -> None:
    config = load_config()
    config.smart_threshold = _coerce_positive_int(
        value, "smart_threshold", DEFAULT_SMART_THRESHOLD
    )
    save_config(config)


def set_render_mode(value: str) -> None:
    config = load_config()
    config.render_mode = _normalize_render_mode(value)
    save_config(config)


def add_ignore_patterns(values: Iterable[str]) -> None:
    config = load_config()
    patterns = list(config.ignore_patterns)
    for value in _coerce_patterns(list(values), "ignore_patterns"):
        if value not in patterns:
            patterns.append(value)
    config.ignore_patterns = tuple(patterns)
    save_config(config)


def reset_ignore_patterns() -> None:
    config = load_config()
    config.ignore_patterns = DEFAULT_IGNORE_PATTERNS
    save_config(config)


def resolve_vault_path(configured: str | None) -> str | None:
    """Return the first available vault path from config or environment."""

    if configured:
        return configured
    load_dotenv()
    for name in (ENV_VAULT_PATH, LEGACY_VAULT_ENV):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    if "vault_path" in payload:
        config.vault_path = _coerce_optional_str(payload["vault_path"], "vault_path")
    if "structure_ttl" in payload:
        config.structure_ttl = _coerce_seconds(
            payload["structure_ttl"], "structure_ttl", DEFAULT_STRUCTURE_TTL
        )
    if "content_ttl" in payload:
        config.content_ttl = _coerce_seconds(
            payload["content_ttl"], "content_ttl", DEFAULT_CONTENT_TTL
        )
    if "context_ttl" in payload:
        config.context_ttl = _coerce_seconds(
            payload["context_ttl"], "context_ttl", DEFAULT_CONTEXT_TTL
        )
    if "content_cache_size" in payload:
        config.content_cache_size = _coerce_positive_int(
            payload["content_cache_size"],
            "content_cache_size",
            DEFAULT_CONTENT_CACHE_SIZE,
        )
    if "context_cache_size" in payload:
        config.context_cache_size = _coerce_positive_int(
            payload["context_cache_size"],
            "context_cache_size",
            DEFAULT_CONTEXT_CACHE_SIZE,
        )
    if "smart_threshold" in payload:
        config.smart_threshold = _coerce_positive_int(
            payload["smart_threshold"], "smart_threshold", DEFAULT_SMART_THRESHOLD
        )
    if "compact_max_chars" in payload:
        config.compact_max_chars = _coerce_positive_int(
            payload["compact_max_chars"],
            "compact_max_chars",
            DEFAULT_COMPACT_MAX_CHARS,
        )
    if "render_mode" in payload:
        config.render_mode = _normalize_render_mode(payload["render_mode"])
    if "ignore_patterns" in payload:
        config.ignore_patterns = _coerce_patterns(
            payload["ignore_patterns"], "ignore_patterns"
        )
    if "extensions" in payload:
        config.extensions = _coerce_extensions(payload["extensions"])
    if "include_hidden" in payload:
        config.include_hidden = _coerce_bool(payload["include_hidden"], "include_hidden")


def _coerce_optional_str(value: object, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_seconds(value: object, field: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            seconds = float(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    else:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if seconds < 0:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return seconds


def _coerce_positive_int(value: object, field: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
        number = int(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            number = int(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    else:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if number <= 0:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return number


def _coerce_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes", "on"}:
            return True
        if cleaned in {"false", "0", "no", "off"}:
            return False
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_patterns(value: object, field: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    patterns: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
        cleaned = item.strip()
        if cleaned and cleaned not in patterns:
            patterns.append(cleaned)
    return tuple(patterns)


def _coerce_extensions(value: object) -> tuple[str, ...]:
    from .utils import normalize_extensions

    raw = _coerce_patterns(value, "extensions")
    normalized = normalize_extensions(raw)
    if not normalized:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="extensions"))
    return normalized


def _normalize_render_mode(value: object) -> str:
    if value is None:
        return DEFAULT_RENDER_MODE
    if isinstance(value, str):
        normalized = value.strip().lower() or DEFAULT_RENDER_MODE
        if normalized in SUPPORTED_RENDER_MODES:
            return normalized
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="render_mode"))
