"""Run context construction for CLI commands."""

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Optional

import click
from pydantic import ValidationError

from releasegraph.config import ConfigAccessor
from releasegraph.context import RunContext
from releasegraph.exceptions import ReleaseGraphError, UserError, VersionFormatError
from releasegraph.model.module import Model
from releasegraph.model.version import ModuleVersion, NodePath, Version
from releasegraph.workspace.directory import (
    AccessMode,
    GetDirMode,
    UserModuleVersionDir,
)

from .logging import logger

MODEL_FILE = "model.yaml"


def parse_properties(values: Iterable[str]) -> Dict[str, str]:
    """Parse KEY=VALUE runtime property overrides."""
    properties = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got '{value}'.")
        properties[key.strip()] = item
    return properties


@contextmanager
def run_context(ctx: click.Context):
    """
    Open a RunContext for the workspace selected on the command line, with
    the model bound to it.

    A ReleaseGraphError raised inside the block is logged and exits with
    status 1.
    """
    obj = ctx.find_root().obj or {}
    workspace = Path(obj.get("WORKSPACE") or Path.cwd()).absolute()
    model_path = Path(obj.get("MODEL") or workspace / MODEL_FILE)
    config_path: Optional[Path] = obj.get("CONFIG")

    try:
        with RunContext(
            workspace,
            config=ConfigAccessor(config_path),
            runtime_overrides=obj.get("PROPERTIES"),
        ) as context:
            if not model_path.exists():
                raise UserError(f"Model file {model_path} not found.")
            Model.from_yaml(model_path).bind(context)
            yield context
    except ValidationError as e:
        logger.error(f"Error: invalid model file {model_path}:\n{e}")
        ctx.exit(1)
    except ReleaseGraphError as e:
        logger.error(f"Error: {e}")
        ctx.exit(1)


def parse_module_version(value: str) -> ModuleVersion:
    try:
        return ModuleVersion.parse(value)
    except (ValueError, VersionFormatError) as e:
        raise click.BadParameter(str(e))


def parse_version(value: str) -> Version:
    try:
        return Version.parse(value)
    except (ValueError, VersionFormatError) as e:
        raise click.BadParameter(str(e))


def get_user_dir(
    context: RunContext, node_path: NodePath, version: Optional[Version] = None
) -> Path:
    """
    Path of the user workspace directory of a module, held for writing.

    Raises:
        UserError: If no directory, or more than one, matches
    """
    workspace = context.workspace
    user_dirs = workspace.get_set_workspace_dir(
        UserModuleVersionDir(ModuleVersion(node_path, version))
    )
    if not user_dirs:
        raise UserError(
            f"No user workspace directory for {ModuleVersion(node_path, version)}. "
            "Check it out first."
        )
    if len(user_dirs) > 1:
        raise UserError(
            f"Module {node_path} has more than one user workspace directory. "
            "Specify the version."
        )
    return workspace.get_workspace_dir(  # type: ignore[return-value]
        user_dirs[0], GetDirMode.GET_EXISTING, AccessMode.READ_WRITE
    )
