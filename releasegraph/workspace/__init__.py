"""
Workspace directory management.

System directories are tool managed checkouts kept under the workspace
metadata directory; user directories are checkouts pinned to a module
version at the workspace root.
"""

from .directory import (
    AccessMode,
    GetDirMode,
    WorkspaceDir,
    SystemModuleDir,
    UserModuleVersionDir,
)
from .provider import WorkspaceDirectoryProvider, METADATA_DIR_NAME

__all__ = [
    "AccessMode",
    "GetDirMode",
    "WorkspaceDir",
    "SystemModuleDir",
    "UserModuleVersionDir",
    "WorkspaceDirectoryProvider",
    "METADATA_DIR_NAME",
]
