"""CLI commands acting on the versions of one module."""

from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from releasegraph.exceptions import ReleaseGraphError
from releasegraph.model.module import Capability
from releasegraph.model.version import ModuleVersion, NodePath
from releasegraph.policy import VersionClassifier
from releasegraph.scm.base import Commit, CommitFlag, CommitPaging, MergeResult
from releasegraph.workspace.directory import (
    AccessMode,
    GetDirMode,
    UserModuleVersionDir,
)

from .utils.context import get_user_dir, parse_version, run_context
from .utils.logging import logger


def _get_scm(context, module: str):
    try:
        node_path = NodePath.parse(module)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return node_path, context.model.get_module(node_path).require_capability(Capability.SCM)


@click.command("checkout")
@click.argument("module")
@click.argument("version", required=False)
@click.pass_context
def checkout(ctx, module: str, version: Optional[str]):
    """Check out a version of a module into a user workspace directory."""
    with run_context(ctx) as context:
        node_path, scm = _get_scm(context, module)
        target = parse_version(version) if version else scm.get_default_version()
        workspace_dir = UserModuleVersionDir(ModuleVersion(node_path, target))
        workspace = context.workspace

        if workspace.is_workspace_dir_exist(workspace_dir):
            path = workspace.get_path_workspace_dir(workspace_dir)
            logger.info(f"{workspace_dir} already exists in {path}.")
            return

        path = workspace.get_workspace_dir(
            workspace_dir, GetDirMode.CREATE_NEW_NO_PATH, AccessMode.READ_WRITE
        )
        try:
            scm.check_out(target, path)
        except ReleaseGraphError:
            workspace.delete_workspace_dir(workspace_dir)
            raise
        workspace.release_workspace_dir(path)
        logger.info(f"Checked out {workspace_dir.module_version} in {path}.")


@click.command("create-version")
@click.argument("module")
@click.argument("version")
@click.option(
    "--no-switch",
    is_flag=True,
    default=False,
    help="Create the version without switching the workspace directory to it.",
)
@click.option(
    "--from",
    "version_from",
    default=None,
    help="Version of the user workspace directory to create the version from.",
)
@click.pass_context
def create_version(ctx, module: str, version: str, no_switch: bool, version_from: Optional[str]):
    """Create a new version of a module from its user workspace directory."""
    with run_context(ctx) as context:
        node_path, scm = _get_scm(context, module)
        target = parse_version(version)
        source = parse_version(version_from) if version_from else None
        path = get_user_dir(context, node_path, source)
        try:
            scm.create_version(path, target, switch=not no_switch)
        finally:
            context.workspace.release_workspace_dir(path)
        logger.info(f"Version {target} of {node_path} created.")


@click.command("base-version")
@click.argument("module")
@click.argument("version")
@click.pass_context
def base_version(ctx, module: str, version: str):
    """Show the version a version of a module was created from."""
    with run_context(ctx) as context:
        _, scm = _get_scm(context, module)
        base = scm.get_base_version(parse_version(version))
        if base is None:
            click.echo(f"No base version recorded for {version}.")
            return
        click.echo(f"{base.version} created from {base.version_base} at {base.commit_id}")


@click.command("versions")
@click.argument("module")
@click.pass_context
def versions(ctx, module: str):
    """List the static versions of a module, newest first."""
    with run_context(ctx) as context:
        _, scm = _get_scm(context, module)
        table = Table(title=f"{module} static versions")
        table.add_column("Version", style="green", no_wrap=True)
        for static_version in VersionClassifier().sort(scm.get_list_version_static()):
            table.add_row(str(static_version))
        Console().print(table)


@click.command("commits")
@click.argument("module")
@click.argument("version")
@click.option("--diverge-from", default=None, help="List only commits not in this version.")
@click.option("--max-count", type=int, default=-1, help="Maximum number of commits to list.")
@click.pass_context
def commits(ctx, module: str, version: str, diverge_from: Optional[str], max_count: int):
    """List the commits of a version of a module, latest first."""
    with run_context(ctx) as context:
        _, scm = _get_scm(context, module)
        flags = CommitFlag.INCLUDE_MESSAGE | CommitFlag.INCLUDE_VERSION_STATIC
        paging = CommitPaging(max_count=max_count)
        if diverge_from:
            listed = scm.get_list_commit_diverge(
                parse_version(version), parse_version(diverge_from), paging, flags
            )
        else:
            listed = scm.get_list_commit(parse_version(version), paging, flags)

        table = Table(title=f"{module}:{version}")
        table.add_column("Commit", style="cyan", no_wrap=True)
        table.add_column("Versions", style="green")
        table.add_column("Message")
        for commit in listed:
            summary = commit.message.splitlines()[0] if commit.message else ""
            table.add_row(
                commit.id[:12],
                ", ".join(str(v) for v in commit.static_versions or []),
                summary,
            )
        Console().print(table)


@click.command("merge")
@click.argument("module")
@click.argument("src")
@click.option(
    "--exclude",
    "-x",
    multiple=True,
    help="Id of a commit of the source version to exclude from the merge.",
)
@click.option(
    "--replace",
    is_flag=True,
    default=False,
    help="Replace the content of the destination with the source instead of merging.",
)
@click.option(
    "--into",
    default=None,
    help="Version of the user workspace directory to merge into.",
)
@click.option("--message", "-m", default=None, help="Merge commit message.")
@click.pass_context
def merge(
    ctx,
    module: str,
    src: str,
    exclude: Tuple[str, ...],
    replace: bool,
    into: Optional[str],
    message: Optional[str],
):
    """Merge a source version of a module into its user workspace directory."""
    if exclude and replace:
        raise click.UsageError("--exclude and --replace cannot be used together.")

    with run_context(ctx) as context:
        node_path, scm = _get_scm(context, module)
        version_src = parse_version(src)
        path = get_user_dir(context, node_path, parse_version(into) if into else None)
        try:
            if replace:
                result = scm.replace(path, version_src, message)
            elif exclude:
                result = scm.merge_exclude_commits(
                    path, version_src, [Commit(id=commit_id) for commit_id in exclude], message
                )
            else:
                result = scm.merge(path, version_src, message)
        finally:
            context.workspace.release_workspace_dir(path)

        if result == MergeResult.CONFLICTS:
            logger.warning(f"Conflicts to resolve in {path}.")
            ctx.exit(2)
        elif result == MergeResult.NOTHING_TO_MERGE:
            logger.info(f"Nothing to merge from {version_src}.")
        else:
            logger.info(f"{version_src} merged into {path}.")
