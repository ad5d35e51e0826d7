"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import click

from .._exclude import ExcludeFilter
from ..repo import Repository


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_repo(ctx, param, value):
    """Click callback: store --repo value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["repo_path"] = value
    return value


def _repo_option(f):
    """Shared --repo/-r option decorator for all commands."""
    return click.option(
        "--repo", "-r", type=click.Path(file_okay=False), envvar="KA_REPO",
        help="Repository root (or set KA_REPO; default: current directory).",
        expose_value=False, callback=_store_repo, is_eager=True,
    )(f)


def _exclude_options(f):
    """Shared --exclude / --no-ignore-file options for commands that walk the tree."""
    f = click.option("--no-ignore-file", "no_ignore_file", is_flag=True, default=False,
                     help="Do not read .kaignore files.")(f)
    f = click.option("--exclude", "excludes", multiple=True,
                     help="Exclude paths matching PATTERN (gitignore syntax, repeatable).")(f)
    return f


def _format_option(f):
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json", "jsonl"]), default="text",
        help="Output format.",
    )(f)


def _open_repo(ctx, excludes=(), no_ignore_file: bool = False) -> Repository:
    """Build the Repository handle for --repo with the requested exclusions."""
    exclude = ExcludeFilter(patterns=list(excludes), ignore_file=not no_ignore_file)
    return Repository(ctx.obj.get("repo_path") or ".", exclude=exclude)


def _fail(exc: Exception):
    """Turn a library error into a ClickException with its message."""
    raise click.ClickException(str(exc)) from exc


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _log_entry_dict(entry) -> dict:
    return {
        "change": entry.change_index,
        "time": _format_time(entry.timestamp),
        "timestamp": entry.timestamp,
        "files": list(entry.files),
        "current": entry.current,
    }


def _emit_json(fmt: str, items: list[dict]) -> None:
    if fmt == "json":
        click.echo(json.dumps(items, indent=2))
    else:
        for item in items:
            click.echo(json.dumps(item))


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-r", type=click.Path(file_okay=False), envvar="KA_REPO",
              help="Repository root (or set KA_REPO; default: current directory).",
              expose_value=False, callback=_store_repo, is_eager=True)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.version_option(package_name="ka")
@click.pass_context
def main(ctx, verbose):
    """ka: file-granular version history for a directory tree.

    Snapshots the working tree into per-file edit scripts stored under
    .ka/, and shifts the tree back and forth between recorded versions.

    \b
    Quick start:
      ka create            Start tracking the current directory
      ka update            Record what changed since the last update
      ka log               List recorded changes
      ka shift 1           Rewind the tree to change 1
      ka shift 3           ...and forward again

    \b
    Set KA_REPO to point at a repository from elsewhere.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
