"""Module graph model and version identity types."""

from releasegraph.model.version import (
    VersionType,
    Version,
    NodePath,
    ModuleVersion,
    BaseVersion,
    DEFAULT_VERSION,
)
from releasegraph.model.module import (
    Capability,
    ModuleConfig,
    ModelConfig,
    Module,
    Model,
)

__all__ = [
    # Version identity
    "VersionType",
    "Version",
    "NodePath",
    "ModuleVersion",
    "BaseVersion",
    "DEFAULT_VERSION",
    # Model
    "Capability",
    "ModuleConfig",
    "ModelConfig",
    "Module",
    "Model",
]
