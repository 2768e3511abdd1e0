"""CLI commands running jobs on the reference graph."""

from typing import Tuple

import click

from releasegraph.exceptions import UserError
from releasegraph.jobs import (
    ChangeReferenceToModuleVersion,
    ExceptionalConditionPolicy,
    build_map_module_version,
)

from .utils.context import parse_module_version, run_context
from .utils.logging import logger


@click.command("change-reference")
@click.argument("roots", nargs=-1, required=True)
@click.option(
    "--map",
    "mappings",
    multiple=True,
    help="Mapping '<module path>:<version> -> <version>'. "
    "Defaults to the MAP_MODULE_VERSION.<n> runtime properties.",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    default=False,
    help="Record errors raised while visiting a module version and continue.",
)
@click.pass_context
def change_reference(ctx, roots: Tuple[str, ...], mappings: Tuple[str, ...], continue_on_error: bool):
    """Change references to module versions within the reference graph of ROOTS."""
    root_module_versions = [parse_module_version(root) for root in roots]

    with run_context(ctx) as context:
        map_module_version = build_map_module_version(mappings, context)
        if not map_module_version:
            raise UserError("No module version mapping given.")

        policy = (
            ExceptionalConditionPolicy.CONTINUE
            if continue_on_error
            else ExceptionalConditionPolicy.ABORT
        )
        job = ChangeReferenceToModuleVersion(
            context, root_module_versions, map_module_version, policy=policy
        )
        job.perform()

        if job.failures:
            logger.error(f"{len(job.failures)} module version(s) could not be processed.")
            ctx.exit(1)
