"""releasegraph CLI"""

from typing import Optional, Tuple

import click

from releasegraph import __version__
from releasegraph.cli.job import change_reference
from releasegraph.cli.module import (
    base_version,
    checkout,
    commits,
    create_version,
    merge,
    versions,
)

from .debug import add_debug_option
from .utils.context import parse_properties


@click.group()
@click.version_option(__version__, prog_name="releasegraph")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False),
    default=None,
    envvar="RELEASEGRAPH_WORKSPACE",
    help="Workspace root directory. Defaults to the current directory.",
)
@click.option(
    "--model",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    envvar="RELEASEGRAPH_MODEL",
    help="Model file. Defaults to model.yaml in the workspace root.",
)
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    default=None,
    envvar="RELEASEGRAPH_CONFIG",
    help="Configuration file holding runtime properties.",
)
@click.option(
    "--property",
    "-D",
    "properties",
    multiple=True,
    help="Runtime property override KEY=VALUE.",
)
@click.pass_context
def cli(
    ctx,
    workspace: Optional[str],
    model: Optional[str],
    config: Optional[str],
    properties: Tuple[str, ...],
):
    """
    releasegraph Command Line Interface (CLI).
    """
    ctx.ensure_object(dict)
    ctx.obj["WORKSPACE"] = workspace
    ctx.obj["MODEL"] = model
    ctx.obj["CONFIG"] = config
    ctx.obj["PROPERTIES"] = parse_properties(properties)


cli.add_command(add_debug_option(checkout))
cli.add_command(add_debug_option(create_version))
cli.add_command(add_debug_option(base_version))
cli.add_command(add_debug_option(versions))
cli.add_command(add_debug_option(commits))
cli.add_command(add_debug_option(merge))
cli.add_command(add_debug_option(change_reference))

add_debug_option(cli)

if __name__ == "__main__":
    cli(obj={})
