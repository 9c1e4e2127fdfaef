"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json
import tempfile
from contextlib import contextmanager
from pathlib import Path

import click

from .._types import SyncState
from ..exceptions import GitSyncError
from ..git import clone_branch
from ..report import read_report


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_root(ctx, param, value):
    """Click callback: store --store value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["store_root"] = value
    return value


def _store_option(f):
    """Shared --store/-s option decorator for all commands."""
    return click.option(
        "--store", "-s", type=click.Path(file_okay=False), envvar="GITSYNC_STORE",
        help="Root directory of the target store (or set GITSYNC_STORE).",
        expose_value=False, callback=_store_root, is_eager=True,
    )(f)


def _require_store(ctx) -> str:
    """Get the store root from context, raising a clear error if missing."""
    root = ctx.obj.get("store_root")
    if not root:
        raise click.ClickException(
            "No store specified. Use --store or set GITSYNC_STORE."
        )
    return root


def _source_options(f):
    """Where the Git tree comes from: --path, or --url with --branch."""
    f = click.option("--git-directory", "git_directory", default=None,
                     help="Directory inside the repository to sync from.")(f)
    f = click.option("--branch", "-b", envvar="GITSYNC_BRANCH", default=None,
                     help="Branch to clone with --url (or set GITSYNC_BRANCH).")(f)
    f = click.option("--url", envvar="GITSYNC_URL", default=None,
                     help="Repository to clone (or set GITSYNC_URL).")(f)
    f = click.option("--path", "worktree", type=click.Path(exists=True, file_okay=False),
                     default=None, help="Existing checkout to sync from.")(f)
    return f


def _sync_options(f):
    """Options every sync command shares."""
    f = click.option("--json", "as_json", is_flag=True, default=False,
                     help="Print report records as JSON lines instead of +/-/~ lines.")(f)
    f = click.option("--report-dir", "report_dir", type=click.Path(file_okay=False),
                     default=None, help="Directory for the diff report (default: temp dir).")(f)
    f = click.option("--self", "self_key", default=None,
                     help="Entry that must never be deleted.")(f)
    f = click.option("--pattern", "patterns", multiple=True,
                     help="Only sync paths matching this glob (repeatable).")(f)
    f = click.option("--dry-run", "dry_run", is_flag=True, default=False,
                     help="Show what would change without changing anything.")(f)
    f = click.option("--delete/--no-delete", default=False,
                     help="Remove store entries that are absent from Git.")(f)
    f = click.option("--namespace", "-n", required=True,
                     help="Target namespace.")(f)
    return f


@contextmanager
def _checkout(ctx, worktree, url, branch):
    """Yield a working tree: the --path given, or a temporary clone of --url."""
    if worktree and url:
        raise click.ClickException("--path and --url are mutually exclusive")
    if worktree:
        yield Path(worktree)
        return
    if not url:
        raise click.ClickException("No source specified. Use --path or --url.")
    with tempfile.TemporaryDirectory(prefix="gitsync-") as tmp:
        _status(ctx, f"Cloning {url}" + (f" ({branch})" if branch else ""))
        try:
            path = clone_branch(url, branch, Path(tmp) / "worktree")
        except GitSyncError as exc:
            raise click.ClickException(str(exc))
        yield path


def _sink(as_json):
    """Sink for the +/-/~ lines; silent when records are printed instead."""
    if as_json:
        return lambda line: None
    return click.echo


def _print_result(ctx, result, as_json):
    """Print warnings, the JSON records if asked, and a status line."""
    for w in result.warnings:
        click.echo(f"WARNING: {w.path}: {w.message}", err=True)
    if as_json:
        for record in read_report(result.report_uri):
            click.echo(json.dumps(record))
    counts = result.counts
    summary = ", ".join(f"{counts[str(s)]} {str(s).lower()}" for s in SyncState if counts[str(s)])
    if result.dry_run:
        _status(ctx, f"Dry run: {summary or 'nothing to do'}")
    else:
        _status(ctx, f"Applied {result.applied} change(s): {summary or 'nothing'}")
    _status(ctx, f"Report: {result.report_uri}")


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--store", "-s", type=click.Path(file_okay=False), envvar="GITSYNC_STORE",
              help="Root directory of the target store (or set GITSYNC_STORE).",
              expose_value=False, callback=_store_root, is_eager=True)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, verbose):
    """gitsync: make a store match a Git branch.

    Reads a directory of a Git checkout and adds, overwrites and
    (with --delete) removes entries of a namespace in the store so that
    it matches.

    \b
    Quick start:
      gitsync -s ./store files --namespace company.team --path ./repo
      gitsync -s ./store flows --namespace prod --url https://host/r.git --dry-run

    \b
    Output lines:
      + path   created
      - path   deleted
      ~ path   updated or unchanged

    Set GITSYNC_STORE to avoid passing --store on every call.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
