"""Workspace directory kinds, access modes and lookup modes."""

from dataclasses import dataclass
from enum import Enum, Flag
from typing import Optional

from releasegraph.model.version import ModuleVersion, NodePath


class AccessMode(Enum):
    """How a workspace directory is accessed.

    READ is shared and counted, READ_WRITE is exclusive, PEEK is not tracked
    and the caller promises not to modify the directory.
    """

    READ = "read"
    READ_WRITE = "read_write"
    PEEK = "peek"


class GetDirMode(Flag):
    MUST_EXIST = 1
    MUST_NOT_EXIST = 2
    CREATE_IF_NOT_EXIST = 4
    RESET_IF_EXIST = 8
    DO_NOT_CREATE_PATH = 16

    GET_EXISTING = MUST_EXIST
    CREATE_NEW_NO_PATH = MUST_NOT_EXIST | CREATE_IF_NOT_EXIST | DO_NOT_CREATE_PATH


@dataclass(frozen=True)
class WorkspaceDir:
    """Base class of workspace directory descriptors."""


@dataclass(frozen=True)
class SystemModuleDir(WorkspaceDir):
    """Tool managed directory of a module; at most one per module.

    A None node path is only used for queries.
    """

    node_path: Optional[NodePath] = None

    def __str__(self) -> str:
        return f"system directory of {self.node_path}"


@dataclass(frozen=True)
class UserModuleVersionDir(WorkspaceDir):
    """User directory pinned to a module version.

    Incomplete module versions are only used for queries.
    """

    module_version: ModuleVersion

    @property
    def node_path(self) -> NodePath:
        return self.module_version.node_path

    def __str__(self) -> str:
        return f"user directory of {self.module_version}"
