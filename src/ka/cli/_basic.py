"""Basic commands: create, update, shift."""

from __future__ import annotations

import click

from ..exceptions import KaError
from ._helpers import (
    main,
    _exclude_options,
    _fail,
    _open_repo,
    _repo_option,
    _status,
)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@_exclude_options
@click.option("-f", "--force", is_flag=True,
              help="Discard an existing history and start over.")
@click.pass_context
def create(ctx, excludes, no_ignore_file, force):
    """Start tracking the repository root and record a first snapshot.

    Refuses to touch an existing .ka/ directory unless -f is given; with -f
    the old history is deleted.
    """
    repo = _open_repo(ctx, excludes, no_ignore_file)
    if repo.exists and not force:
        raise click.ClickException(
            f"Repository already exists: {repo.root} (use -f to start over)")
    try:
        change = repo.create()
    except KaError as exc:
        _fail(exc)
    _status(ctx, f"Initialized {repo.locations.meta_path}")
    if change is None:
        _status(ctx, "Working tree is empty, nothing recorded")
    else:
        _status(ctx, f"Recorded change 1 ({len(change.affected_files)} file(s))")


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@_exclude_options
@click.pass_context
def update(ctx, excludes, no_ignore_file):
    """Record every change made to the working tree since the last update."""
    repo = _open_repo(ctx, excludes, no_ignore_file)
    try:
        change = repo.update()
        if change is None:
            click.echo("Nothing to record")
            return
        cursor = repo.cursor
    except KaError as exc:
        _fail(exc)
    click.echo(f"Recorded change {cursor} ({len(change.affected_files)} file(s))")
    for path in sorted(change.affected_files):
        _status(ctx, f"  {path}")


# ---------------------------------------------------------------------------
# shift
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("cursor", type=click.IntRange(min=0))
@click.pass_context
def shift(ctx, cursor):
    """Rewind or fast-forward the working tree to CURSOR.

    Only files that changed between the current cursor and CURSOR are
    rewritten. Untracked files are left alone.

    \b
    Examples:
        ka shift 0      # Back to before the first snapshot
        ka shift 3      # To the state recorded by change 3
    """
    repo = _open_repo(ctx)
    try:
        report = repo.shift(cursor)
    except KaError as exc:
        _fail(exc)
    click.echo(f"Cursor: {report.old_cursor} -> {report.new_cursor}")
    for path in report.written:
        _status(ctx, f"  wrote {path}")
    for path in report.deleted:
        _status(ctx, f"  deleted {path}")
