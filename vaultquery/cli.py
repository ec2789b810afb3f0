"""Command line interface for vaultquery."""

from __future__ import annotations

import json
import logging
import sys
from difflib import get_close_matches
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from . import __version__
from .api import VaultClient, validate_mode
from .cache import CacheStats
from .errors import VaultQueryError
from .modes import available_modes
from .output import format_note_heading
from .results import QueryResult
from .services.config_service import apply_config_updates, get_config_snapshot
from .services.search_service import DEFAULT_CONTEXT_LINES, DEFAULT_MAX_RESULTS, SearchResponse
from .services.vault_service import SCAN_SORT_KEYS, ScanResponse, VaultStats
from .text import Messages, Styles
from .values import PLACEHOLDER

console = Console()


class DefaultQueryGroup(TyperGroup):
    """Treat unknown subcommands as query text."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        return super().parse_args(ctx, self._route_to_query(ctx, args))

    def _route_to_query(self, ctx: click.Context, args: list[str]) -> list[str]:
        index = next((i for i, arg in enumerate(args) if not arg.startswith("-")), None)
        if index is None:
            return args
        token = args[index]
        if self.get_command(ctx, token) is not None:
            return args
        if getattr(self, "suggest_commands", True) and self.commands:
            if get_close_matches(token, list(self.commands.keys()), cutoff=0.8):
                return args
        if self.get_command(ctx, "query") is None:
            return args
        return [*args[:index], "query", *args[index:]]


app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=DefaultQueryGroup,
)


class OutputFormat(str, Enum):
    rich = "rich"
    porcelain = "porcelain"
    json = "json"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"vaultquery v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def _validate_mode(mode: str | None) -> str | None:
    try:
        return validate_mode(mode)
    except VaultQueryError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _styled(text: str, style: str) -> str:
    return f"[{style}]{escape(text)}[/{style}]"


def _fail(message: str, output_format: OutputFormat = OutputFormat.rich) -> None:
    if output_format == OutputFormat.rich:
        console.print(_styled(message, Styles.ERROR))
    else:
        typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _open_client(vault: Path | None, output_format: OutputFormat = OutputFormat.rich) -> VaultClient:
    try:
        return VaultClient(vault)
    except VaultQueryError as exc:
        _fail(str(exc), output_format)
        raise  # pragma: no cover - _fail always exits


def _plural(count: int, suffix: str = "s") -> str:
    return "" if count == 1 else suffix


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _escape_porcelain_field(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Global Typer callback for shared options."""
    _configure_logging(verbose)


VAULT_OPTION = typer.Option(None, "--vault", "-V", help=Messages.HELP_VAULT_PATH)
FORMAT_OPTION = typer.Option(OutputFormat.rich, "--format", "-f", help=Messages.HELP_FORMAT)


@app.command()
def query(
    query_text: str = typer.Argument(..., metavar="QUERY", help=Messages.HELP_QUERY),
    vault: Path | None = VAULT_OPTION,
    base_path: str = typer.Option("", "--base", "-b", help=Messages.HELP_BASE_PATH),
    mode: str | None = typer.Option(
        None,
        "--mode",
        "-m",
        help=Messages.HELP_RENDER_MODE.format(modes=", ".join(available_modes())),
    ),
    output_format: OutputFormat = FORMAT_OPTION,
    refresh: bool = typer.Option(False, "--refresh", help=Messages.HELP_REFRESH),
) -> None:
    """Run a TABLE, LIST or TASK query and render the result."""
    mode_value = _validate_mode(mode)
    client = _open_client(vault, output_format)
    response = client.query(
        query_text,
        base_path,
        render_mode=mode_value,
        force_refresh=refresh,
    )
    result = response.result
    if output_format == OutputFormat.json:
        payload = result.as_dict()
        payload["rendered"] = response.rendered
        payload["resolved_mode"] = response.mode
        _echo_json(payload)
        if not result.ok:
            raise typer.Exit(code=1)
        return
    if not result.ok:
        _fail(
            Messages.ERROR_QUERY_FAILED.format(kind=result.error_type, message=result.error),
            output_format,
        )
    if output_format == OutputFormat.porcelain:
        _render_query_porcelain(result)
        return
    count = len(result.rows)
    console.print(
        _styled(
            Messages.INFO_QUERY_SUMMARY.format(
                count=count, plural=_plural(count), mode=response.mode
            ),
            Styles.INFO,
        )
    )
    console.print(response.rendered, markup=False, highlight=False, soft_wrap=True)
    if result.skipped:
        console.print(
            _styled(
                Messages.INFO_SKIPPED.format(count=result.skipped, plural=_plural(result.skipped)),
                Styles.WARNING,
            )
        )


def _render_query_porcelain(result: QueryResult) -> None:
    for row in result.rows:
        fields = [row.path] + [row.value(header, PLACEHOLDER) for header in result.headers]
        typer.echo("\t".join(_escape_porcelain_field(field) for field in fields))


@app.command()
def scan(
    vault: Path | None = VAULT_OPTION,
    patterns: list[str] | None = typer.Option(
        None, "--pattern", "-p", help=Messages.HELP_SCAN_PATTERN
    ),
    sort_by: str = typer.Option("modified", "--sort", "-s", help=Messages.HELP_SCAN_SORT),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help=Messages.HELP_SCAN_LIMIT),
    details: bool = typer.Option(False, "--details", help=Messages.HELP_SCAN_DETAILS),
    output_format: OutputFormat = FORMAT_OPTION,
    refresh: bool = typer.Option(False, "--refresh", help=Messages.HELP_REFRESH),
) -> None:
    """List notes in the vault."""
    if sort_by not in SCAN_SORT_KEYS:
        raise typer.BadParameter(
            Messages.ERROR_SORT_INVALID.format(value=sort_by, allowed=", ".join(SCAN_SORT_KEYS))
        )
    client = _open_client(vault, output_format)
    try:
        response = client.scan_vault(
            patterns or None,
            sort_by=sort_by,
            limit=limit,
            include_frontmatter=details,
            include_preview=details,
            include_stats=details,
            use_cache=not refresh,
        )
    except VaultQueryError as exc:
        _fail(str(exc), output_format)
    if output_format == OutputFormat.json:
        _echo_json(response.as_dict())
        return
    if output_format == OutputFormat.porcelain:
        for item in response.files:
            fields = (item.path, str(item.entry.size), item.entry.modified.isoformat())
            typer.echo("\t".join(_escape_porcelain_field(field) for field in fields))
        return
    if not response.files:
        console.print(_styled(Messages.INFO_SCAN_EMPTY, Styles.WARNING))
        return
    _render_scan_table(response)


def _render_scan_table(response: ScanResponse) -> None:
    console.print(_styled(Messages.TABLE_TITLE_SCAN, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_SIZE, justify="right")
    table.add_column(Messages.TABLE_HEADER_MODIFIED, no_wrap=True)
    for item in response.files:
        table.add_row(
            escape(item.path),
            str(item.entry.size),
            item.entry.modified.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def read(
    paths: list[str] = typer.Argument(..., help=Messages.HELP_READ_PATHS),
    vault: Path | None = VAULT_OPTION,
    dataview: bool = typer.Option(False, "--dataview", help=Messages.HELP_RENDER_DATAVIEW),
    mode: str = typer.Option(
        "smart",
        "--mode",
        "-m",
        help=Messages.HELP_RENDER_MODE.format(modes=", ".join(available_modes())),
    ),
    output_format: OutputFormat = FORMAT_OPTION,
) -> None:
    """Print notes, optionally with dataview blocks rendered."""
    mode_value = _validate_mode(mode) or "smart"
    client = _open_client(vault, output_format)
    notes = client.read_notes(paths, render_dataview=dataview, dataview_mode=mode_value)
    failed = [note for note in notes if not note.ok]
    if output_format == OutputFormat.json:
        _echo_json({"notes": [note.as_dict() for note in notes]})
    else:
        for note in notes:
            if output_format == OutputFormat.rich:
                console.print(format_note_heading(note.path, note.ok, console))
            if not note.ok:
                message = Messages.ERROR_NOTE_FAILED.format(path=note.path, message=note.error)
                if output_format == OutputFormat.rich:
                    console.print(_styled(message, Styles.ERROR))
                else:
                    typer.echo(message, err=True)
                continue
            if output_format == OutputFormat.porcelain:
                typer.echo(f"# {note.path}")
            typer.echo(note.content or "")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def search(
    text: str = typer.Argument(..., help=Messages.HELP_SEARCH_TEXT),
    vault: Path | None = VAULT_OPTION,
    regex: bool = typer.Option(False, "--regex", "-r", help=Messages.HELP_SEARCH_REGEX),
    case_sensitive: bool = typer.Option(
        False, "--case-sensitive", "-c", help=Messages.HELP_SEARCH_CASE
    ),
    context: int = typer.Option(
        DEFAULT_CONTEXT_LINES, "--context", "-C", min=0, help=Messages.HELP_SEARCH_CONTEXT
    ),
    max_results: int = typer.Option(
        DEFAULT_MAX_RESULTS, "--max", "-k", min=1, help=Messages.HELP_SEARCH_MAX
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help=Messages.HELP_EXCLUDE_PATH
    ),
    output_format: OutputFormat = FORMAT_OPTION,
) -> None:
    """Search note text line by line."""
    client = _open_client(vault, output_format)
    try:
        response = client.search_content(
            text,
            context_lines=context,
            max_results=max_results,
            case_sensitive=case_sensitive,
            use_regex=regex,
            exclude_paths=exclude,
        )
    except VaultQueryError as exc:
        _fail(str(exc), output_format)
    if output_format == OutputFormat.json:
        _echo_json(response.as_dict())
        return
    if output_format == OutputFormat.porcelain:
        for match in response.matches:
            fields = (match.path, str(match.line), match.content)
            typer.echo("\t".join(_escape_porcelain_field(field) for field in fields))
        return
    if not response.matches:
        console.print(_styled(Messages.INFO_NO_MATCHES, Styles.WARNING))
        return
    _render_search_table(response)


def _render_search_table(response: SearchResponse) -> None:
    console.print(_styled(Messages.TABLE_TITLE_SEARCH.format(query=response.query), Styles.TITLE))
    console.print(
        _styled(
            Messages.INFO_SEARCH_SUMMARY.format(
                shown=len(response.matches),
                total=response.total_matches,
                plural=_plural(response.total_matches, "es"),
                files=response.searched_files,
            ),
            Styles.INFO,
        )
    )
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_LINE, justify="right")
    table.add_column(Messages.TABLE_HEADER_MATCH, overflow="fold")
    for match in response.matches:
        table.add_row(escape(match.path), str(match.line), escape(match.content.strip()))
    console.print(table)


@app.command()
def stats(
    vault: Path | None = VAULT_OPTION,
    output_format: OutputFormat = FORMAT_OPTION,
) -> None:
    """Show vault totals and cache statistics."""
    client = _open_client(vault, output_format)
    try:
        summary = client.vault_stats()
    except VaultQueryError as exc:
        _fail(str(exc), output_format)
    cache_stats = client.cache_stats()
    if output_format == OutputFormat.json:
        _echo_json({"vault": summary.as_dict(), "cache": cache_stats.as_dict()})
        return
    if output_format == OutputFormat.porcelain:
        rows = _stats_rows(summary, cache_stats)
        for label, value in rows:
            typer.echo(f"{label}\t{value}")
        return
    console.print(_styled(Messages.TABLE_TITLE_STATS, Styles.TITLE))
    table = Table(show_header=False)
    table.add_column(no_wrap=True)
    table.add_column(overflow="fold")
    for label, value in _stats_rows(summary, cache_stats):
        table.add_row(label, escape(value))
    console.print(table)


def _stats_rows(summary: VaultStats, cache_stats: CacheStats) -> list[tuple[str, str]]:
    types = ", ".join(f"{ext}: {count}" for ext, count in sorted(summary.file_types.items()))
    largest = summary.largest_files[0].path if summary.largest_files else "-"
    newest = summary.newest_file.path if summary.newest_file else "-"
    age = cache_stats.last_full_scan_age
    return [
        ("total_files", str(summary.total_files)),
        ("total_size", str(summary.total_size)),
        ("file_types", types or "-"),
        ("largest_file", largest),
        ("newest_file", newest),
        ("structure_size", str(cache_stats.structure_size)),
        ("content_cache_size", str(cache_stats.content_cache_size)),
        ("context_cache_size", str(cache_stats.context_cache_size)),
        ("last_full_scan_age", "-" if age is None else f"{age:.1f}s"),
    ]


@app.command()
def config(
    set_vault_path_option: str | None = typer.Option(
        None, "--set-vault-path", help=Messages.HELP_SET_VAULT_PATH
    ),
    clear_vault_path: bool = typer.Option(
        False, "--clear-vault-path", help=Messages.HELP_CLEAR_VAULT_PATH
    ),
    set_structure_ttl_option: float | None = typer.Option(
        None, "--set-structure-ttl", help=Messages.HELP_SET_STRUCTURE_TTL
    ),
    set_content_ttl_option: float | None = typer.Option(
        None, "--set-content-ttl", help=Messages.HELP_SET_CONTENT_TTL
    ),
    set_threshold_option: int | None = typer.Option(
        None, "--set-smart-threshold", help=Messages.HELP_SET_THRESHOLD
    ),
    set_render_mode_option: str | None = typer.Option(
        None, "--set-render-mode", help=Messages.HELP_SET_RENDER_MODE
    ),
    add_ignore: list[str] | None = typer.Option(
        None, "--add-ignore", help=Messages.HELP_ADD_IGNORE
    ),
    clear_ignore: bool = typer.Option(False, "--clear-ignore", help=Messages.HELP_CLEAR_IGNORE),
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
) -> None:
    """Manage vaultquery configuration."""
    if set_render_mode_option is not None:
        _validate_mode(set_render_mode_option)
    try:
        updates = apply_config_updates(
            vault_path=set_vault_path_option,
            clear_vault_path=clear_vault_path,
            structure_ttl=set_structure_ttl_option,
            content_ttl=set_content_ttl_option,
            smart_threshold=set_threshold_option,
            render_mode=set_render_mode_option,
            add_ignore=add_ignore,
            clear_ignore=clear_ignore,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if updates.changed:
        console.print(_styled(Messages.INFO_CONFIG_SAVED, Styles.SUCCESS))
    if show or not updates.changed:
        cfg = get_config_snapshot()
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    vault=cfg.vault_path or "none",
                    structure_ttl=_format_seconds(cfg.structure_ttl),
                    content_ttl=_format_seconds(cfg.content_ttl),
                    context_ttl=_format_seconds(cfg.context_ttl),
                    content_size=cfg.content_cache_size,
                    threshold=cfg.smart_threshold,
                    mode=cfg.render_mode,
                    ignore=_format_patterns_display(cfg.ignore_patterns),
                ),
                Styles.INFO,
            )
        )


def _format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _format_patterns_display(values: Sequence[str] | None) -> str:
    if not values:
        return "none"
    return ", ".join(values)


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))


if __name__ == "__main__":  # pragma: no cover
    run(sys.argv[1:])
