from __future__ import annotations

import pytest

from vaultquery import config as config_module
from vaultquery.services.config_service import apply_config_updates, get_config_snapshot


@pytest.fixture(autouse=True)
def temp_config_home(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_dir / "config.json")


def test_apply_config_updates_reports_changes():
    result = apply_config_updates(
        vault_path="/vault",
        structure_ttl=15,
        smart_threshold=20,
        render_mode="compact",
        add_ignore=["Archive/"],
    )

    assert result.changed
    assert result.vault_path_set and result.structure_ttl_set
    assert not result.content_ttl_set
    snapshot = get_config_snapshot()
    assert snapshot.vault_path == "/vault"
    assert snapshot.structure_ttl == 15
    assert snapshot.smart_threshold == 20
    assert snapshot.render_mode == "compact"
    assert "Archive/" in snapshot.ignore_patterns


def test_apply_config_updates_without_options_changes_nothing():
    assert not apply_config_updates().changed


def test_clear_ignore_runs_before_add():
    apply_config_updates(add_ignore=["old/"])

    apply_config_updates(clear_ignore=True, add_ignore=["new/"])

    patterns = get_config_snapshot().ignore_patterns
    assert "old/" not in patterns
    assert patterns[-1] == "new/"


def test_clear_vault_path():
    apply_config_updates(vault_path="/vault")

    result = apply_config_updates(clear_vault_path=True)

    assert result.vault_path_cleared
    assert get_config_snapshot().vault_path is None
