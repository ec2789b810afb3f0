"""Helpers for formatting CLI output safely across terminals."""

from __future__ import annotations

import sys

from rich.console import Console
from rich.markup import escape

from .text import Styles


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "✓✗"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_icon(passed: bool, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return "[green]✓[/green]" if passed else "[red]✗[/red]"
    return "[green]OK[/green]" if passed else "[red]X[/red]"


def format_note_heading(path: str, passed: bool, console: Console | None = None) -> str:
    """Return the rich markup line printed above each note by `vaultquery read`."""
    style = Styles.TITLE if passed else Styles.ERROR
    return f"{format_status_icon(passed, console)} [{style}]{escape(path)}[/{style}]"
