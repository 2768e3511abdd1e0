"""
Workspace directory provider.

The workspace is a root directory holding one user directory per module
(``<root>/<module name>``) and a metadata directory (``<root>/.releasegraph``)
holding the system directories, the persisted directory map and the run
lock. Directory access is tracked in process: READ access is counted and
shared, READ_WRITE access is exclusive, PEEK access is not tracked.
"""

import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Set, Type

import yaml
from filelock import FileLock, Timeout

from releasegraph.exceptions import (
    UserError,
    WorkspaceAccessError,
    WorkspaceLockedError,
)
from releasegraph.model.version import ModuleVersion, NodePath
from releasegraph.workspace.directory import (
    AccessMode,
    GetDirMode,
    SystemModuleDir,
    UserModuleVersionDir,
    WorkspaceDir,
)

logger = logging.getLogger(__name__)

METADATA_DIR_NAME = ".releasegraph"
WORKSPACE_METADATA_FILE = "workspace.yaml"
WORKSPACE_LOCK_FILE = ".lock"
WORKSPACE_FORMAT = "multiple"
WORKSPACE_FORMAT_VERSION = "1.0"

# Access counter value for exclusive access
_READ_WRITE = 0


class WorkspaceDirectoryProvider:
    """Allocates, tracks and persists the workspace directories of a run."""

    def __init__(self, workspace_root: Path):
        self.workspace_root = Path(workspace_root).absolute()
        self.metadata_dir = self.workspace_root / METADATA_DIR_NAME
        self.metadata_dir.mkdir(parents=True, exist_ok=True)

        self._dir_paths: Dict[WorkspaceDir, Path] = {}
        self._path_dirs: Dict[Path, WorkspaceDir] = {}
        self._access: Dict[WorkspaceDir, int] = {}
        self._lock: Optional[FileLock] = None

        self._load()

    # Persistence

    @property
    def metadata_file(self) -> Path:
        return self.metadata_dir / WORKSPACE_METADATA_FILE

    def _load(self) -> None:
        if not self.metadata_file.exists():
            return

        with open(self.metadata_file, "r") as f:
            data = yaml.safe_load(f) or {}

        if (
            data.get("format") != WORKSPACE_FORMAT
            or str(data.get("version")) != WORKSPACE_FORMAT_VERSION
        ):
            raise UserError(
                f"Unsupported workspace format {data.get('format')}:{data.get('version')} "
                f"in {self.metadata_file}. Only {WORKSPACE_FORMAT}:{WORKSPACE_FORMAT_VERSION} is supported."
            )

        for entry in data.get("dirs", []):
            path = (self.workspace_root / entry["path"]).absolute()
            workspace_dir: WorkspaceDir
            if entry["kind"] == "user":
                workspace_dir = UserModuleVersionDir(
                    ModuleVersion.parse(entry["module_version"])
                )
            else:
                workspace_dir = SystemModuleDir(NodePath.parse(entry["node_path"]))
            self._dir_paths[workspace_dir] = path
            self._path_dirs[path] = workspace_dir

    def _save(self) -> None:
        entries = []
        for workspace_dir, path in self._dir_paths.items():
            relative = path.relative_to(self.workspace_root).as_posix()
            if isinstance(workspace_dir, UserModuleVersionDir):
                entries.append(
                    {
                        "kind": "user",
                        "module_version": str(workspace_dir.module_version),
                        "path": relative,
                    }
                )
            else:
                entries.append(
                    {
                        "kind": "system",
                        "node_path": str(workspace_dir.node_path),
                        "path": relative,
                    }
                )

        data = {
            "format": WORKSPACE_FORMAT,
            "version": WORKSPACE_FORMAT_VERSION,
            "dirs": sorted(entries, key=lambda e: e["path"]),
        }
        with open(self.metadata_file, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    # Run lock

    def lock(self) -> None:
        """Acquire the workspace lock for the duration of a run."""
        lock_file = self.metadata_dir / WORKSPACE_LOCK_FILE
        lock = FileLock(lock_file)
        try:
            lock.acquire(timeout=0)
        except Timeout:
            raise WorkspaceLockedError(lock_file)
        self._lock = lock

    def unlock(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    # Directory allocation

    def _default_path(self, workspace_dir: WorkspaceDir) -> Path:
        if isinstance(workspace_dir, UserModuleVersionDir):
            return self.workspace_root / workspace_dir.node_path.module_name
        if isinstance(workspace_dir, SystemModuleDir):
            return self.metadata_dir / workspace_dir.node_path.module_name
        raise TypeError(f"Unknown workspace directory type {type(workspace_dir).__name__}")

    def _acquire(self, workspace_dir: WorkspaceDir, access: AccessMode) -> None:
        if access is AccessMode.PEEK:
            return

        count = self._access.get(workspace_dir)
        if count is None:
            self._access[workspace_dir] = 1 if access is AccessMode.READ else _READ_WRITE
        elif count == _READ_WRITE:
            raise WorkspaceAccessError(
                f"Workspace directory {workspace_dir} already accessed for writing "
                f"(new access is {access.name})."
            )
        elif access is AccessMode.READ_WRITE:
            raise WorkspaceAccessError(
                f"New access is for writing and workspace directory {workspace_dir} "
                f"is already accessed for reading (level {count})."
            )
        else:
            self._access[workspace_dir] = count + 1

    def get_workspace_dir(
        self,
        workspace_dir: WorkspaceDir,
        mode: GetDirMode,
        access: AccessMode,
    ) -> Optional[Path]:
        """
        Access a workspace directory.

        Args:
            workspace_dir: Directory descriptor
            mode: Existence expectations and creation behavior
            access: Access mode; anything but PEEK must later be released

        Returns:
            Path of the directory, or None if it does not exist and is not created

        Raises:
            WorkspaceAccessError: If the access conflicts with a current access
                or the existence expectation is not met
            UserError: If the directory to create conflicts with another one
        """
        path = self._dir_paths.get(workspace_dir)

        if path is None and GetDirMode.MUST_EXIST in mode:
            raise WorkspaceAccessError(
                f"Workspace directory {workspace_dir} does not exist and is assumed to exist."
            )
        if path is not None and GetDirMode.MUST_NOT_EXIST in mode:
            raise WorkspaceAccessError(
                f"Workspace directory {workspace_dir} exists and is mapped to {path} "
                "but is assumed to not exist."
            )

        self._acquire(workspace_dir, access)

        try:
            if path is None and GetDirMode.CREATE_IF_NOT_EXIST in mode:
                path = self._default_path(workspace_dir)
                other = self._path_dirs.get(path)
                if other is not None:
                    raise UserError(
                        f"Workspace directory {workspace_dir} conflicts with {other} "
                        f"which already uses {path}."
                    )
                if path.is_dir():
                    raise WorkspaceAccessError(
                        f"The path {path} for {workspace_dir} already exists but is "
                        "unknown to the workspace."
                    )
                logger.info(f"Path {path} is created for {workspace_dir}.")
                self._dir_paths[workspace_dir] = path
                self._path_dirs[path] = workspace_dir
                self._save()
            elif path is not None and GetDirMode.RESET_IF_EXIST in mode:
                logger.info(f"Existing path {path} is reset for {workspace_dir}.")
                shutil.rmtree(path, ignore_errors=True)

            if (
                path is not None
                and not path.is_dir()
                and GetDirMode.DO_NOT_CREATE_PATH not in mode
            ):
                path.mkdir(parents=True)
        except Exception:
            self._release(workspace_dir, access)
            raise

        if path is None:
            self._release(workspace_dir, access)
        return path

    def _release(self, workspace_dir: WorkspaceDir, access: AccessMode) -> None:
        if access is AccessMode.PEEK:
            return
        count = self._access.get(workspace_dir)
        if count is None or count <= 1:
            self._access.pop(workspace_dir, None)
        else:
            self._access[workspace_dir] = count - 1

    def release_workspace_dir(self, path: Path) -> None:
        workspace_dir = self.get_workspace_dir_from_path(path)
        count = self._access.get(workspace_dir)
        if count is None:
            raise WorkspaceAccessError(f"Workspace directory {workspace_dir} is not accessed.")
        if count in (_READ_WRITE, 1):
            del self._access[workspace_dir]
        else:
            self._access[workspace_dir] = count - 1

    def get_access_mode(self, path: Path) -> AccessMode:
        workspace_dir = self.get_workspace_dir_from_path(path)
        count = self._access.get(workspace_dir)
        if count is None:
            return AccessMode.PEEK
        if count >= 1:
            return AccessMode.READ
        return AccessMode.READ_WRITE

    def require_read_write(self, path: Path) -> None:
        if self.get_access_mode(path) is not AccessMode.READ_WRITE:
            raise WorkspaceAccessError(f"{path} must be accessed for writing.")

    # Queries and updates

    def is_workspace_dir_exist(self, workspace_dir: WorkspaceDir) -> bool:
        return workspace_dir in self._dir_paths

    def get_workspace_dir_conflict(
        self, workspace_dir: WorkspaceDir
    ) -> Optional[WorkspaceDir]:
        """Other directory occupying the path workspace_dir would be created at."""
        other = self._path_dirs.get(self._default_path(workspace_dir))
        if other is not None and other != workspace_dir:
            return other
        return None

    def update_workspace_dir(
        self, workspace_dir: WorkspaceDir, new_workspace_dir: WorkspaceDir
    ) -> None:
        """Re-pin a directory held for writing, typically to a new module version."""
        if self._access.get(workspace_dir) != _READ_WRITE:
            raise WorkspaceAccessError(
                f"Workspace directory {workspace_dir} must be accessed for writing to update it."
            )
        path = self._dir_paths.get(workspace_dir)
        if path is None:
            raise WorkspaceAccessError(f"No entry exists for workspace directory {workspace_dir}.")
        if type(workspace_dir) is not type(new_workspace_dir):
            raise WorkspaceAccessError(
                f"New workspace directory {new_workspace_dir} must be of the same type "
                f"as {workspace_dir}."
            )
        if workspace_dir.node_path != new_workspace_dir.node_path:  # type: ignore[attr-defined]
            raise WorkspaceAccessError(
                f"New workspace directory {new_workspace_dir} must refer to the same "
                f"module as {workspace_dir}."
            )
        if isinstance(workspace_dir, SystemModuleDir):
            return
        if new_workspace_dir in self._dir_paths:
            raise WorkspaceAccessError(f"New workspace directory {new_workspace_dir} must not exist.")

        del self._dir_paths[workspace_dir]
        self._dir_paths[new_workspace_dir] = path
        self._path_dirs[path] = new_workspace_dir
        del self._access[workspace_dir]
        self._access[new_workspace_dir] = _READ_WRITE
        self._save()

    def delete_workspace_dir(self, workspace_dir: WorkspaceDir) -> None:
        """Delete a directory held for writing, files included. Releases it."""
        if self._access.get(workspace_dir) != _READ_WRITE:
            raise WorkspaceAccessError(
                f"Workspace directory {workspace_dir} must be accessed for writing to delete it."
            )
        path = self._dir_paths.pop(workspace_dir, None)
        if path is not None:
            logger.info(f"Deleting {workspace_dir} at {path}.")
            shutil.rmtree(path, ignore_errors=True)
            self._path_dirs.pop(path, None)
            self._save()
        del self._access[workspace_dir]

    def get_set_workspace_dir(
        self,
        query: Optional[WorkspaceDir] = None,
        kind: Optional[Type[WorkspaceDir]] = None,
    ) -> List[WorkspaceDir]:
        """
        Known workspace directories matching a query.

        Args:
            query: Incomplete descriptor; None fields match anything
            kind: Restrict to one descriptor class

        Returns:
            Matching directories, ordered by path
        """
        result = []
        for workspace_dir, path in sorted(self._dir_paths.items(), key=lambda i: str(i[1])):
            if kind is not None and type(workspace_dir) is not kind:
                continue
            if query is not None and not _matches(query, workspace_dir):
                continue
            result.append(workspace_dir)
        return result

    def is_path_workspace_dir_exists(self, path: Path) -> bool:
        return Path(path).absolute() in self._path_dirs

    def get_workspace_dir_from_path(self, path: Path) -> WorkspaceDir:
        try:
            return self._path_dirs[Path(path).absolute()]
        except KeyError:
            raise WorkspaceAccessError(f"No workspace directory corresponds to the path {path}.")

    def get_path_workspace_dir(self, workspace_dir: WorkspaceDir) -> Optional[Path]:
        """Path of a known directory without accessing it."""
        return self._dir_paths.get(workspace_dir)

    @property
    def accessed_dirs(self) -> Set[WorkspaceDir]:
        return set(self._access)


def _matches(query: WorkspaceDir, workspace_dir: WorkspaceDir) -> bool:
    if type(query) is not type(workspace_dir):
        return False
    if isinstance(query, UserModuleVersionDir):
        assert isinstance(workspace_dir, UserModuleVersionDir)
        wanted = query.module_version
        actual = workspace_dir.module_version
        if wanted.node_path is not None and wanted.node_path != actual.node_path:
            return False
        if wanted.version is not None and wanted.version != actual.version:
            return False
        return True
    assert isinstance(query, SystemModuleDir) and isinstance(workspace_dir, SystemModuleDir)
    return query.node_path is None or query.node_path == workspace_dir.node_path
