"""Logic helpers for the `vaultquery config` command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..config import (
    Config,
    add_ignore_patterns,
    load_config,
    reset_ignore_patterns,
    set_content_ttl,
    set_render_mode,
    set_smart_threshold,
    set_structure_ttl,
    set_vault_path,
)


@dataclass(slots=True)
class ConfigUpdateResult:
    vault_path_set: bool = False
    vault_path_cleared: bool = False
    structure_ttl_set: bool = False
    content_ttl_set: bool = False
    smart_threshold_set: bool = False
    render_mode_set: bool = False
    ignore_patterns_added: bool = False
    ignore_patterns_reset: bool = False

    @property
    def changed(self) -> bool:
        return any(
            (
                self.vault_path_set,
                self.vault_path_cleared,
                self.structure_ttl_set,
                self.content_ttl_set,
                self.smart_threshold_set,
                self.render_mode_set,
                self.ignore_patterns_added,
                self.ignore_patterns_reset,
            )
        )


def apply_config_updates(
    *,
    vault_path: str | None = None,
    clear_vault_path: bool = False,
    structure_ttl: float | None = None,
    content_ttl: float | None = None,
    smart_threshold: int | None = None,
    render_mode: str | None = None,
    add_ignore: Sequence[str] | None = None,
    clear_ignore: bool = False,
) -> ConfigUpdateResult:
    """Apply config mutations and report which fields were updated."""

    result = ConfigUpdateResult()
    if vault_path is not None:
        set_vault_path(vault_path)
        result.vault_path_set = True
    if clear_vault_path:
        set_vault_path(None)
        result.vault_path_cleared = True
    if structure_ttl is not None:
        set_structure_ttl(structure_ttl)
        result.structure_ttl_set = True
    if content_ttl is not None:
        set_content_ttl(content_ttl)
        result.content_ttl_set = True
    if smart_threshold is not None:
        set_smart_threshold(smart_threshold)
        result.smart_threshold_set = True
    if render_mode is not None:
        set_render_mode(render_mode)
        result.render_mode_set = True
    if clear_ignore:
        reset_ignore_patterns()
        result.ignore_patterns_reset = True
    if add_ignore:
        add_ignore_patterns(add_ignore)
        result.ignore_patterns_added = True
    return result


def get_config_snapshot() -> Config:
    """Return the current configuration dataclass."""

    return load_config()
