import json

import pytest

from vaultquery import config as config_module


def _prepare_config(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_file


def test_load_config_defaults(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    cfg = config_module.load_config()

    assert cfg.vault_path is None
    assert cfg.structure_ttl == config_module.DEFAULT_STRUCTURE_TTL
    assert cfg.content_ttl == config_module.DEFAULT_CONTENT_TTL
    assert cfg.content_cache_size == 100
    assert cfg.smart_threshold == 50
    assert cfg.render_mode == "smart"
    assert ".obsidian" in cfg.ignore_patterns
    assert cfg.extensions == (".md",)


def test_setters_persist_values(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)

    config_module.set_vault_path(" /notes ")
    config_module.set_structure_ttl(30)
    config_module.set_content_ttl("90")
    config_module.set_smart_threshold(10)
    config_module.set_render_mode("TABLE")

    stored = json.loads(config_file.read_text())
    assert stored["vault_path"] == "/notes"
    assert stored["structure_ttl"] == 30.0
    assert stored["content_ttl"] == 90.0
    assert stored["smart_threshold"] == 10
    assert stored["render_mode"] == "table"

    config_module.set_vault_path(None)
    assert config_module.load_config().vault_path is None


def test_invalid_values_are_rejected(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    with pytest.raises(ValueError):
        config_module.set_structure_ttl(-1)
    with pytest.raises(ValueError):
        config_module.set_smart_threshold(0)
    with pytest.raises(ValueError):
        config_module.set_render_mode("fancy")


def test_ignore_patterns_add_and_reset(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    config_module.add_ignore_patterns(["Archive/", "Archive/", "templates"])
    cfg = config_module.load_config()
    assert cfg.ignore_patterns[-2:] == ("Archive/", "templates")

    config_module.reset_ignore_patterns()
    assert config_module.load_config().ignore_patterns == config_module.DEFAULT_IGNORE_PATTERNS


def test_load_config_skips_bad_stored_values(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_file.parent.mkdir(parents=True)
    config_file.write_text(
        json.dumps({"structure_ttl": "soon", "smart_threshold": 7, "render_mode": "nope"})
    )

    cfg = config_module.load_config()

    assert cfg.structure_ttl == config_module.DEFAULT_STRUCTURE_TTL
    assert cfg.smart_threshold == 7
    assert cfg.render_mode == "smart"


def test_config_from_json_overrides_base_without_saving(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    base = config_module.Config(smart_threshold=5)

    cfg = config_module.config_from_json(
        '{"content_cache_size": 3, "extensions": "md, markdown", "include_hidden": "yes"}',
        base=base,
    )

    assert cfg.smart_threshold == 5
    assert cfg.content_cache_size == 3
    assert cfg.extensions == (".markdown", ".md")
    assert cfg.include_hidden is True
    assert not config_file.exists()
    with pytest.raises(ValueError):
        config_module.config_from_json("[1, 2]")


def test_config_dir_context_overrides_location(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    override = tmp_path / "override"

    with config_module.config_dir_context(override):
        config_module.set_smart_threshold(12)

    assert (override / "config.json").exists()
    assert config_module.load_config().smart_threshold == 50


def test_resolve_vault_path_prefers_config_then_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(config_module.ENV_VAULT_PATH, raising=False)
    monkeypatch.delenv(config_module.LEGACY_VAULT_ENV, raising=False)
    assert config_module.resolve_vault_path(None) is None

    monkeypatch.setenv(config_module.LEGACY_VAULT_ENV, "/legacy")
    assert config_module.resolve_vault_path(None) == "/legacy"

    monkeypatch.setenv(config_module.ENV_VAULT_PATH, "/primary")
    assert config_module.resolve_vault_path(None) == "/primary"
    assert config_module.resolve_vault_path("/configured") == "/configured"


def test_update_config_from_json_persists_and_can_replace(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_module.set_smart_threshold(9)

    merged = config_module.update_config_from_json({"render_mode": "list"})
    assert merged.smart_threshold == 9
    assert json.loads(config_file.read_text())["render_mode"] == "list"

    replaced = config_module.update_config_from_json('{"content_ttl": 5}', replace_all=True)
    assert replaced.smart_threshold == config_module.DEFAULT_SMART_THRESHOLD
    assert replaced.content_ttl == 5


def test_set_config_dir_moves_config_file(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    target = tmp_path / "elsewhere"

    config_module.set_config_dir(target)
    assert config_module.CONFIG_FILE == target.resolve() / "config.json"

    config_module.set_config_dir(None)
    assert config_module.CONFIG_DIR == config_module.DEFAULT_CONFIG_DIR
