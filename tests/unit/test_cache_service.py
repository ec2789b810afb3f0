from __future__ import annotations

import logging

from vaultquery.config import Config
from vaultquery.services.cache_service import (
    build_vault_cache,
    load_document_safe,
    settings_from_config,
)


def test_settings_follow_config_limits():
    config = Config(structure_ttl=1, content_cache_size=3, ignore_patterns=("x",))

    settings = settings_from_config(config)

    assert settings.structure_ttl == 1
    assert settings.content_cache_size == 3
    assert settings.ignore_patterns == ("x",)
    assert settings.extensions == (".md",)


def test_build_vault_cache_uses_injected_clock(tmp_path):
    (tmp_path / "a.md").write_text("a")
    ticks = iter([0.0, 0.0, 100.0, 100.0, 100.0])
    vault = build_vault_cache(Config(structure_ttl=10), tmp_path, clock=lambda: next(ticks))

    vault.get_structure()
    vault.get_structure()

    assert vault.structure.scan_count == 2


def test_load_document_safe_logs_and_returns_none(tmp_path, caplog):
    (tmp_path / "bad.md").write_text("---\nkey: [oops\n---\n")
    vault = build_vault_cache(Config(), tmp_path)

    with caplog.at_level(logging.WARNING):
        assert load_document_safe(vault, "bad.md") is None
        assert load_document_safe(vault, "missing.md") is None

    assert "bad.md" in caplog.text
    assert "missing.md" in caplog.text
