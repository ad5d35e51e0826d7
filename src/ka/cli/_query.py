"""Read-only commands: status, log, cat."""

from __future__ import annotations

import sys

import click

from ..actions import ChangeKind
from ..exceptions import KaError
from ._helpers import (
    main,
    _emit_json,
    _exclude_options,
    _fail,
    _format_option,
    _format_time,
    _log_entry_dict,
    _open_repo,
    _repo_option,
)

_KIND_LETTER = {
    ChangeKind.ADD: "A",
    ChangeKind.MODIFY: "M",
    ChangeKind.DELETE: "D",
}


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@_exclude_options
@_format_option
@click.pass_context
def status(ctx, excludes, no_ignore_file, fmt):
    """Show what the next update would record.

    \b
    A  new file, or a deleted file that came back
    M  modified file
    D  deleted file
    """
    repo = _open_repo(ctx, excludes, no_ignore_file)
    try:
        pending = repo.status()
    except KaError as exc:
        _fail(exc)

    if fmt == "text":
        for change in pending:
            click.echo(f"{_KIND_LETTER[change.kind]}  {change.path}")
    else:
        _emit_json(fmt, [{"path": c.path, "kind": c.kind.value} for c in pending])


# ---------------------------------------------------------------------------
# log
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.option("--files", "show_files", is_flag=True, help="List the files of each change.")
@_format_option
@click.pass_context
def log(ctx, show_files, fmt):
    """List recorded changes, oldest first.

    The change the working tree currently shows is marked with '*'.
    """
    repo = _open_repo(ctx)
    try:
        entries = repo.log()
    except KaError as exc:
        _fail(exc)

    if fmt != "text":
        _emit_json(fmt, [_log_entry_dict(e) for e in entries])
        return
    for entry in entries:
        marker = "*" if entry.current else " "
        count = len(entry.files)
        click.echo(f"{marker} {entry.change_index}  {_format_time(entry.timestamp)}  {count} file(s)")
        if show_files:
            for path in entry.files:
                click.echo(f"      {path}")


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("path")
@click.option("--at", "cursor", type=click.IntRange(min=0), default=None,
              help="Cursor to read at (default: current cursor).")
@click.pass_context
def cat(ctx, path, cursor):
    """Write PATH's recorded content to stdout without touching the working tree."""
    repo = _open_repo(ctx)
    try:
        data = repo.read(path, cursor)
    except FileNotFoundError as exc:
        raise click.ClickException(f"File not found: {exc}")
    except KaError as exc:
        _fail(exc)
    sys.stdout.buffer.write(data)
