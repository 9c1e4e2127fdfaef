"""The sync commands: files, flows, dashboards and flow."""

from __future__ import annotations

import json

import click

from .._types import ScopeSelector
from ..exceptions import ApplyError, GitSyncError
from ..store import DashboardStore, FlowStore, NamespaceFileStore
from ..sync import (
    DEFAULT_DASHBOARDS_DIRECTORY,
    DEFAULT_FILES_DIRECTORY,
    DEFAULT_FLOWS_DIRECTORY,
    sync_dashboards,
    sync_flow,
    sync_flows,
    sync_namespace_files,
)
from ._helpers import (
    main,
    _checkout,
    _print_result,
    _require_store,
    _sink,
    _source_options,
    _status,
    _store_option,
    _sync_options,
)


def _parse_flow_key(value: str | None):
    """Parse ``--self namespace:id`` for a flow sync."""
    if value is None:
        return None
    namespace, sep, flow_id = value.rpartition(":")
    if not sep or not namespace or not flow_id:
        raise click.ClickException(f"Invalid flow key: {value} (expected NAMESPACE:ID)")
    return (namespace, flow_id)


def _run(ctx, runner, store, selector, worktree, url, branch, git_directory,
         report_dir, as_json):
    try:
        with _checkout(ctx, worktree, url, branch) as tree:
            result = runner(
                tree, store, selector,
                git_directory=git_directory, branch=branch,
                sink=_sink(as_json), report_dir=report_dir,
            )
    except ApplyError as exc:
        raise click.ClickException(f"{exc} ({exc.applied} change(s) applied before the failure)")
    except (GitSyncError, OSError, ValueError) as exc:
        raise click.ClickException(str(exc))
    _print_result(ctx, result, as_json)


@main.command()
@_store_option
@_source_options
@_sync_options
@click.option("--no-recursive", "no_recursive", is_flag=True, default=False,
              help="Only sync the top level of the Git directory.")
@click.pass_context
def files(ctx, worktree, url, branch, git_directory, namespace, delete, dry_run,
          patterns, self_key, report_dir, as_json, no_recursive):
    """Sync a Git directory into a namespace's files.

    Requires --store or GITSYNC_STORE environment variable.

    \b
    Examples:
        gitsync -s ./store files -n company.team --path ./checkout
        gitsync -s ./store files -n company.team --url URL -b main --delete
        gitsync -s ./store files -n company.team --path . --pattern '*.sql'
    """
    store_root = _require_store(ctx)
    if git_directory is None:
        git_directory = DEFAULT_FILES_DIRECTORY
    try:
        store = NamespaceFileStore(store_root)
        selector = ScopeSelector(
            source_root=".", target_scope=namespace,
            include_sub_scopes=not no_recursive,
            delete_enabled=delete, dry_run=dry_run,
            self_key=self_key, name_patterns=patterns,
        )
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc))
    _run(ctx, sync_namespace_files, store, selector, worktree, url, branch,
         git_directory, report_dir, as_json)
    _status(ctx, f"Synced {git_directory} -> {namespace}")


@main.command()
@_store_option
@_source_options
@_sync_options
@click.option("--include-child-namespaces", "include_children", is_flag=True, default=False,
              help="Map subdirectories to child namespaces.")
@click.option("--ignore-invalid", "ignore_invalid", is_flag=True, default=False,
              help="Skip malformed flows instead of failing.")
@click.pass_context
def flows(ctx, worktree, url, branch, git_directory, namespace, delete, dry_run,
          patterns, self_key, report_dir, as_json, include_children, ignore_invalid):
    """Sync flow definitions from a Git directory into a namespace.

    Requires --store or GITSYNC_STORE environment variable.  The
    ``namespace:`` line of every flow is rewritten to the target namespace
    (or its child namespace with --include-child-namespaces).

    \b
    Examples:
        gitsync -s ./store flows -n prod --path ./checkout
        gitsync -s ./store flows -n prod --path . --include-child-namespaces --delete
        gitsync -s ./store flows -n prod --path . --delete --self system:git-sync
    """
    store_root = _require_store(ctx)
    if git_directory is None:
        git_directory = DEFAULT_FLOWS_DIRECTORY
    try:
        store = FlowStore(store_root)
        selector = ScopeSelector(
            source_root=".", target_scope=namespace,
            include_sub_scopes=include_children,
            delete_enabled=delete, dry_run=dry_run,
            self_key=_parse_flow_key(self_key), name_patterns=patterns,
            ignore_invalid=ignore_invalid,
        )
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc))
    _run(ctx, sync_flows, store, selector, worktree, url, branch,
         git_directory, report_dir, as_json)
    _status(ctx, f"Synced {git_directory} -> {namespace}")


@main.command()
@_store_option
@_source_options
@_sync_options
@click.option("--recursive", is_flag=True, default=False,
              help="Also read dashboards from subdirectories.")
@click.option("--ignore-invalid", "ignore_invalid", is_flag=True, default=False,
              help="Skip malformed dashboards instead of failing.")
@click.pass_context
def dashboards(ctx, worktree, url, branch, git_directory, namespace, delete, dry_run,
               patterns, self_key, report_dir, as_json, recursive, ignore_invalid):
    """Sync dashboard definitions from a Git directory into a tenant.

    Requires --store or GITSYNC_STORE environment variable.  -n names the
    tenant; dashboards are keyed by their ``id`` and --self takes an id.

    \b
    Examples:
        gitsync -s ./store dashboards -n main --path ./checkout
        gitsync -s ./store dashboards -n main --url URL --delete
    """
    store_root = _require_store(ctx)
    if git_directory is None:
        git_directory = DEFAULT_DASHBOARDS_DIRECTORY
    try:
        store = DashboardStore(store_root)
        selector = ScopeSelector(
            source_root=".", target_scope=namespace,
            include_sub_scopes=recursive,
            delete_enabled=delete, dry_run=dry_run,
            self_key=self_key, name_patterns=patterns,
            ignore_invalid=ignore_invalid,
        )
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc))
    _run(ctx, sync_dashboards, store, selector, worktree, url, branch,
         git_directory, report_dir, as_json)
    _status(ctx, f"Synced {git_directory} -> {namespace}")


@main.command()
@_store_option
@click.option("--path", "worktree", type=click.Path(exists=True, file_okay=False),
              default=None, help="Existing checkout to read the flow from.")
@click.option("--url", envvar="GITSYNC_URL", default=None,
              help="Repository to clone (or set GITSYNC_URL).")
@click.option("--branch", "-b", envvar="GITSYNC_BRANCH", default=None,
              help="Branch to clone with --url (or set GITSYNC_BRANCH).")
@click.option("--namespace", "-n", required=True, help="Namespace to import the flow into.")
@click.option("--flow-path", "flow_path", required=True,
              help="Path of the flow file inside the repository.")
@click.option("--dry-run", "dry_run", is_flag=True, default=False,
              help="Validate the flow without storing it.")
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Print the result as a JSON object.")
@click.pass_context
def flow(ctx, worktree, url, branch, namespace, flow_path, dry_run, as_json):
    """Import a single flow file into a namespace.

    Requires --store or GITSYNC_STORE environment variable.

    \b
    Examples:
        gitsync -s ./store flow -n dev.marketing --path . --flow-path flows/etl.yml
    """
    store_root = _require_store(ctx)
    try:
        store = FlowStore(store_root)
        with _checkout(ctx, worktree, url, branch) as tree:
            decision = sync_flow(tree, store, flow_path, namespace,
                                 dry_run=dry_run, sink=_sink(as_json))
    except (GitSyncError, OSError, ValueError) as exc:
        raise click.ClickException(str(exc))
    flow_namespace, flow_id = decision.key
    if as_json:
        click.echo(json.dumps({
            "flowId": flow_id, "namespace": flow_namespace,
            "revision": decision.revision, "syncState": str(decision.state),
        }))
    _status(ctx, f"{decision.state} {flow_namespace}.{flow_id} (revision {decision.revision})")
