"""
Run context.

A RunContext is created by the top level command or job and handed to every
adapter it builds. It owns the state shared by all modules during a run:

- the workspace directory provider and its lock
- persisted run properties (e.g. the main workspace directory of each module)
- transient state: paths already fetched, temporary dynamic versions, git handles
- runtime properties (configuration file plus explicit overrides)
- the event bus and the notification sink
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

import yaml

from releasegraph.config import ConfigAccessor, is_true
from releasegraph.events import EventBus
from releasegraph.model.version import NodePath, Version
from releasegraph.workspace.provider import WorkspaceDirectoryProvider

logger = logging.getLogger(__name__)

PROPERTIES_FILE = "properties.yaml"

RUNTIME_PROPERTY_IND_PUSH_ALL = "GIT_IND_PUSH_ALL"

GIT_PASSWORD_ENV = "RELEASEGRAPH_GIT_PASSWORD"


class NotificationKind(Enum):
    INFO = "info"
    ACCESS_REMOTE_REPOS = "access_remote_repos"
    PUSHING_UNPUSHED_COMMITS = "pushing_unpushed_commits"
    WARNING_UNPUSHED_COMMITS = "warning_unpushed_commits"
    NO_DIVERGING_COMMITS = "no_diverging_commits"
    VERSIONS_EQUAL = "versions_equal"
    WARNING_MERGE_CONFLICTS = "warning_merge_conflicts"
    REFERENCE_CHANGE = "reference_change"
    WARNING = "warning"


_WARNING_KINDS = {
    NotificationKind.WARNING,
    NotificationKind.WARNING_MERGE_CONFLICTS,
    NotificationKind.WARNING_UNPUSHED_COMMITS,
}


@dataclass(frozen=True)
class Credentials:
    user: str
    password: str


class EnvironmentCredentialProvider:
    """Credentials for HTTP repositories taken from the environment.

    The password is read from RELEASEGRAPH_GIT_PASSWORD; the user comes from
    the GIT_HTTP_USER runtime property or RELEASEGRAPH_GIT_USER.
    """

    def get_credentials(self, url: str, user: Optional[str]) -> Optional[Credentials]:
        user = user or os.environ.get("RELEASEGRAPH_GIT_USER")
        password = os.environ.get(GIT_PASSWORD_ENV)
        if not user or password is None:
            return None
        return Credentials(user, password)


class RunContext:
    """State shared by every adapter during one run."""

    def __init__(
        self,
        workspace_root: Path,
        config: Optional[ConfigAccessor] = None,
        runtime_overrides: Optional[Dict[str, str]] = None,
        push_all: Optional[bool] = None,
        credential_provider=None,
    ):
        """
        Args:
            workspace_root: Root directory of the workspace
            config: Configuration holding runtime properties; defaults to the user config
            runtime_overrides: Runtime properties taking precedence over the configuration
            push_all: Push unpushed commits when checking synchronization; when None,
                the GIT_IND_PUSH_ALL runtime property decides
            credential_provider: Object with get_credentials(url, user)
        """
        self.workspace = WorkspaceDirectoryProvider(workspace_root)
        self.config = config if config is not None else ConfigAccessor()
        self.runtime_overrides: Dict[str, str] = dict(runtime_overrides or {})
        self.push_all = push_all
        self.credential_provider = credential_provider or EnvironmentCredentialProvider()
        self.events = EventBus()
        self.model = None

        # Transient state, never persisted
        self.fetched_paths: Set[Path] = set()
        self.temp_dynamic_versions: Dict[Path, Version] = {}
        self.git_handles: Dict[NodePath, Any] = {}

        self._listeners: List[Callable[[NotificationKind, str], None]] = []
        self._properties: Dict[str, str] = {}
        self._load_properties()

    @property
    def workspace_root(self) -> Path:
        return self.workspace.workspace_root

    # Lifecycle

    def open(self) -> "RunContext":
        self.workspace.lock()
        return self

    def close(self) -> None:
        self.workspace.unlock()

    def __enter__(self) -> "RunContext":
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # Persisted properties

    @property
    def properties_file(self) -> Path:
        return self.workspace.metadata_dir / PROPERTIES_FILE

    def _load_properties(self) -> None:
        if self.properties_file.exists():
            with open(self.properties_file, "r") as f:
                self._properties = {
                    str(k): str(v) for k, v in (yaml.safe_load(f) or {}).items()
                }

    def get_property(self, key: str) -> Optional[str]:
        return self._properties.get(key)

    def set_property(self, key: str, value: Optional[str]) -> None:
        """Set a persisted property; None removes it."""
        if value is None:
            if key not in self._properties:
                return
            del self._properties[key]
        else:
            self._properties[key] = value
        with open(self.properties_file, "w") as f:
            yaml.safe_dump(self._properties, f, sort_keys=True)

    # Runtime properties

    def get_runtime_property(
        self, node_path: Optional[NodePath], key: str, default: Optional[str] = None
    ) -> Optional[str]:
        if key in self.runtime_overrides:
            return self.runtime_overrides[key]
        return self.config.get_runtime_property(node_path, key, default)

    def is_push_all(self, node_path: Optional[NodePath] = None) -> bool:
        if self.push_all is not None:
            return self.push_all
        return is_true(self.get_runtime_property(node_path, RUNTIME_PROPERTY_IND_PUSH_ALL))

    # Notifications

    def add_listener(self, listener: Callable[[NotificationKind, str], None]) -> None:
        self._listeners.append(listener)

    def notify(self, kind: NotificationKind, message: str) -> None:
        """Single sink for information and guidance meant for the operator."""
        if kind in _WARNING_KINDS:
            logger.warning(message)
        else:
            logger.info(message)
        for listener in self._listeners:
            listener(kind, message)
