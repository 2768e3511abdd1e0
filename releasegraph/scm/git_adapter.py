"""
Git source control adapter.

GitScmAdapter implements the version lifecycle of one module on top of git:
checkout into workspace directories, synchronization checks, version
creation with base version tracking, commit listing, merging (including the
merge excluding commits) and replacing.

Fetch and push
--------------
Every fetch and push goes through the adapter so that the runtime property
GIT_FETCH_PUSH_BEHAVIOR can disable them, and so that a workspace path is
fetched at most once per run.

When a module has a main user workspace directory, other directories of the
module never talk to the remote directly for fetching: the main directory
fetches and the others copy its remote tracking refs. Pushing from another
directory first brings the ref into the main directory, pushes both, then
refreshes the remote tracking refs from the main directory.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from releasegraph.config import is_true
from releasegraph.context import NotificationKind, RunContext
from releasegraph.events import DynamicVersionCreatedEvent, StaticVersionCreatedEvent
from releasegraph.exceptions import (
    ConfigurationError,
    MergeExcludeCommitsError,
    ReleaseGraphError,
    ScmError,
    UnsynchronizedWorkspaceError,
    UserError,
    VersionNotFoundError,
    VersionTypeMismatchError,
    WorkspaceAccessError,
)
from releasegraph.git.command import GitCli, is_http_url
from releasegraph.git.repository import (
    REMOTE,
    GitRepository,
    is_git_repository,
    read_origin_url,
    version_ref,
)
from releasegraph.model.version import (
    DEFAULT_VERSION,
    BaseVersion,
    ModuleVersion,
    Version,
)
from releasegraph.scm.attributes import (
    ATTR_BASE_VERSION,
    ATTR_BASE_VERSION_COMMIT_ID,
    format_message,
    get_attributes,
    parse_message,
)
from releasegraph.scm.base import (
    Commit,
    CommitFlag,
    CommitPaging,
    IsSyncFlag,
    MergeResult,
    ScmAdapter,
)
from releasegraph.workspace.directory import (
    AccessMode,
    GetDirMode,
    SystemModuleDir,
    UserModuleVersionDir,
)

logger = logging.getLogger(__name__)

SCM_TYPE = "git"

MODEL_PROPERTY_GIT_REPOS_COMPLETE_URL = "GIT_REPOS_COMPLETE_URL"
MODEL_PROPERTY_GIT_REPOS_BASE_URL = "GIT_REPOS_BASE_URL"
MODEL_PROPERTY_GIT_REPOS_DOMAIN_FOLDER = "GIT_REPOS_DOMAIN_FOLDER"
MODEL_PROPERTY_GIT_REPOS_NAME = "GIT_REPOS_NAME"
MODEL_PROPERTY_GIT_REPOS_SUFFIX = "GIT_REPOS_SUFFIX"

RUNTIME_PROPERTY_GIT_PATH_EXECUTABLE = "GIT_PATH_EXECUTABLE"
RUNTIME_PROPERTY_GIT_FETCH_PUSH_BEHAVIOR = "GIT_FETCH_PUSH_BEHAVIOR"
RUNTIME_PROPERTY_GIT_IND_PULL_REBASE = "GIT_IND_PULL_REBASE"
RUNTIME_PROPERTY_GIT_HTTP_CREDENTIAL_HANDLING = "GIT_HTTP_CREDENTIAL_HANDLING"
RUNTIME_PROPERTY_GIT_HTTP_USER = "GIT_HTTP_USER"
RUNTIME_PROPERTY_GIT_USER_NAME = "GIT_USER_NAME"
RUNTIME_PROPERTY_GIT_USER_EMAIL = "GIT_USER_EMAIL"

PROPERTY_PREFIX_MAIN_WORKSPACE_DIR = "MAIN_WORKSPACE_DIR."

PATCH_FILE_PREFIX = "releasegraph-patch-"

TRACKING_REFSPEC = f"refs/remotes/{REMOTE}/*:refs/remotes/{REMOTE}/*"


class FetchPushBehavior(Enum):
    NO_FETCH_NO_PUSH = "NO_FETCH_NO_PUSH"
    FETCH_NO_PUSH = "FETCH_NO_PUSH"
    FETCH_PUSH = "FETCH_PUSH"

    @property
    def is_fetch(self) -> bool:
        return self is not FetchPushBehavior.NO_FETCH_NO_PUSH

    @property
    def is_push(self) -> bool:
        return self is FetchPushBehavior.FETCH_PUSH


class HttpCredentialHandling(Enum):
    NONE = "NONE"
    ONLY_IF_HTTP = "ONLY_IF_HTTP"
    ALWAYS_HTTP = "ALWAYS_HTTP"


def _patch_file_name(index: int) -> str:
    return f"{PATCH_FILE_PREFIX}{index:02d}.patch"


class GitScmAdapter(ScmAdapter):
    """
    Source control adapter for a module stored in a git repository.

    Args:
        module: Module of the bound model
        context: Run context shared by all adapters of the run

    Raises:
        ConfigurationError: If the repository URL cannot be determined
    """

    def __init__(self, module, context: RunContext):
        self.module = module
        self.context = context
        self.repos_url = self._build_repos_url()

    def __repr__(self) -> str:
        return f"GitScmAdapter('{self.module.node_path}')"

    # Configuration

    @property
    def node_path(self):
        return self.module.node_path

    def _build_repos_url(self) -> str:
        url = self.module.get_property(MODEL_PROPERTY_GIT_REPOS_COMPLETE_URL)
        if url:
            return url

        base_url = self.module.get_property(MODEL_PROPERTY_GIT_REPOS_BASE_URL)
        if base_url is None:
            raise ConfigurationError(
                f"{self.node_path}:{MODEL_PROPERTY_GIT_REPOS_BASE_URL}",
                f"required when {MODEL_PROPERTY_GIT_REPOS_COMPLETE_URL} is not defined",
            )

        segments = [base_url.rstrip("/")]
        domain_folder = self.module.get_property(MODEL_PROPERTY_GIT_REPOS_DOMAIN_FOLDER)
        if domain_folder:
            segments.append(domain_folder.strip("/"))
        elif self.node_path.parent is not None:
            segments.append(str(self.node_path.parent))

        name = self.module.get_property(MODEL_PROPERTY_GIT_REPOS_NAME) or self.module.name
        suffix = self.module.get_property(MODEL_PROPERTY_GIT_REPOS_SUFFIX)
        if suffix is None:
            suffix = ".git"
        segments.append(name + suffix)
        return "/".join(segments)

    def _runtime_property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.context.get_runtime_property(self.node_path, key, default)

    def _fetch_push_behavior(self) -> FetchPushBehavior:
        value = self._runtime_property(RUNTIME_PROPERTY_GIT_FETCH_PUSH_BEHAVIOR)
        if value is None:
            return FetchPushBehavior.FETCH_PUSH
        try:
            return FetchPushBehavior(value)
        except ValueError:
            raise ConfigurationError(
                RUNTIME_PROPERTY_GIT_FETCH_PUSH_BEHAVIOR,
                f"'{value}' is not one of {', '.join(b.value for b in FetchPushBehavior)}",
            )

    @property
    def git(self) -> GitRepository:
        """Git handle of the module, created once per run."""
        handle = self.context.git_handles.get(self.node_path)
        if handle is None:
            handle = GitRepository(self._build_cli())
            self.context.git_handles[self.node_path] = handle
        return handle

    def _build_cli(self) -> GitCli:
        value = self._runtime_property(
            RUNTIME_PROPERTY_GIT_HTTP_CREDENTIAL_HANDLING,
            HttpCredentialHandling.ONLY_IF_HTTP.value,
        )
        try:
            credential_handling = HttpCredentialHandling(value)
        except ValueError:
            raise ConfigurationError(
                RUNTIME_PROPERTY_GIT_HTTP_CREDENTIAL_HANDLING,
                f"'{value}' is not one of {', '.join(h.value for h in HttpCredentialHandling)}",
            )

        cli = GitCli(
            executable=self._runtime_property(RUNTIME_PROPERTY_GIT_PATH_EXECUTABLE) or "git",
            repos_url=self.repos_url,
            user_name=self._runtime_property(RUNTIME_PROPERTY_GIT_USER_NAME),
            user_email=self._runtime_property(RUNTIME_PROPERTY_GIT_USER_EMAIL),
        )

        if credential_handling is HttpCredentialHandling.NONE:
            return cli

        is_http = is_http_url(self.repos_url)
        if credential_handling is HttpCredentialHandling.ALWAYS_HTTP and not is_http:
            raise ConfigurationError(
                RUNTIME_PROPERTY_GIT_HTTP_CREDENTIAL_HANDLING,
                f"repository URL {self.repos_url} does not use the HTTP[S] protocol "
                "but credential handling is ALWAYS_HTTP",
            )

        if is_http:
            credentials = self.context.credential_provider.get_credentials(
                self.repos_url, self._runtime_property(RUNTIME_PROPERTY_GIT_HTTP_USER)
            )
            if credentials is not None:
                self.context.notify(
                    NotificationKind.ACCESS_REMOTE_REPOS,
                    f"Accessing remote repository {self.repos_url} "
                    f"(ls-remote, validating credentials of {credentials.user}).",
                )
                if not GitRepository(cli).validate_credentials(credentials):
                    raise UserError(
                        f"Credentials of user {credentials.user} are rejected by {self.repos_url}."
                    )
                cli.credentials = credentials
        return cli

    # Main workspace directory

    @property
    def _main_dir_property(self) -> str:
        return PROPERTY_PREFIX_MAIN_WORKSPACE_DIR + self.node_path.property_name_segment

    def _get_main_dir(self) -> Optional[Path]:
        """
        Main user workspace directory of the module, re-elected if the
        recorded one is no longer a user directory of the module.
        """
        value = self.context.get_property(self._main_dir_property)
        if value is None:
            return None

        workspace = self.context.workspace
        path = (self.context.workspace_root / value).absolute()
        if workspace.is_path_workspace_dir_exists(path):
            workspace_dir = workspace.get_workspace_dir_from_path(path)
            if (
                isinstance(workspace_dir, UserModuleVersionDir)
                and workspace_dir.node_path == self.node_path
            ):
                return path

        user_dirs = workspace.get_set_workspace_dir(
            UserModuleVersionDir(ModuleVersion(self.node_path))
        )
        main_dir: Optional[Path] = None
        if user_dirs:
            main_dir = workspace.get_workspace_dir(
                user_dirs[0], GetDirMode.GET_EXISTING, AccessMode.READ
            )
            workspace.release_workspace_dir(main_dir)  # type: ignore[arg-type]
        logger.debug(f"Main workspace directory of {self.node_path} re-elected: {main_dir}")
        self._set_main_dir(main_dir)
        return main_dir

    def _set_main_dir(self, path: Optional[Path]) -> None:
        if path is None:
            self.context.set_property(self._main_dir_property, None)
        else:
            relative = Path(path).absolute().relative_to(self.context.workspace_root)
            self.context.set_property(self._main_dir_property, relative.as_posix())

    # Temporary dynamic versions

    def _get_temp_base(self, path: Path) -> Optional[Version]:
        return self.context.temp_dynamic_versions.get(Path(path).absolute())

    def create_temp_dynamic_version(self, path: Path) -> None:
        """
        Detach HEAD so that commits can be made without touching the current
        dynamic version. Such commits are never pushed.
        """
        path = Path(path).absolute()
        if self._get_temp_base(path) is not None:
            raise ScmError(f"A temporary dynamic version is already in effect in {path}.")
        self.context.workspace.require_read_write(path)
        current = self.get_version(path)
        self.git.detach_head(path)
        self.context.temp_dynamic_versions[path] = current
        logger.debug(f"Temporary dynamic version based on {current} created in {path}.")

    def release_temp_dynamic_version(self, path: Path) -> None:
        """Return to the base version, dropping the temporary commits."""
        path = Path(path).absolute()
        base = self._get_temp_base(path)
        if base is None:
            raise ScmError(f"No temporary dynamic version is in effect in {path}.")
        self.context.workspace.require_read_write(path)
        self.git.checkout(path, base)
        del self.context.temp_dynamic_versions[path]

    def is_temp_dynamic_version(self) -> bool:
        main_dir = self._get_main_dir()
        if main_dir is not None and self._get_temp_base(main_dir) is not None:
            return True
        system_dir = SystemModuleDir(self.node_path)
        path = self.context.workspace.get_path_workspace_dir(system_dir)
        return path is not None and self._get_temp_base(path) is not None

    # Fetch and push

    def _must_fetch(self, path: Path) -> bool:
        if not self._fetch_push_behavior().is_fetch:
            logger.debug(f"Fetching is disabled for module {self.module} within {path}.")
            return False
        return Path(path).absolute() not in self.context.fetched_paths

    def _has_fetched(self, path: Path) -> None:
        if self._fetch_push_behavior().is_fetch:
            self.context.fetched_paths.add(Path(path).absolute())

    def _git_fetch(
        self,
        path: Path,
        remote_path: Optional[Path] = None,
        refspec: Optional[str] = None,
        into_current_branch: bool = False,
        force: bool = False,
    ) -> None:
        """
        Fetch into path, from the remote repository or from another workspace
        directory of the module (remote_path, refspec required).

        Fetching into the current branch updates HEAD, after which the
        working tree is reset to it.
        """
        remote: Optional[str] = None
        if remote_path is not None:
            if refspec is None:
                raise ValueError("A refspec is required to fetch from a workspace directory.")
            remote = Path(remote_path).absolute().as_uri()
        else:
            if not self._must_fetch(path):
                return
            self.context.notify(
                NotificationKind.ACCESS_REMOTE_REPOS,
                f"Accessing remote repository {self.repos_url} from {path} "
                f"(fetch{' ' + refspec if refspec else ''}).",
            )

        self.git.fetch(
            path,
            remote=remote,
            refspec=refspec,
            update_head_ok=into_current_branch,
            force=force,
        )
        if into_current_branch:
            self.git.reset_hard(path)
        if remote_path is None:
            self._has_fetched(path)

    def _fetch(self, path: Path) -> None:
        path = Path(path).absolute()
        main_dir = self._get_main_dir()
        if main_dir is not None and main_dir != path:
            self._git_fetch(main_dir)
            self._git_fetch(path, main_dir, TRACKING_REFSPEC, force=True)
        else:
            self._git_fetch(path)

    def _git_push(self, path: Path, ref: str) -> None:
        if not self._fetch_push_behavior().is_push:
            logger.debug(f"Pushing is disabled for module {self.module} within {path}.")
            return
        self.context.notify(
            NotificationKind.ACCESS_REMOTE_REPOS,
            f"Accessing remote repository {self.repos_url} from {path} (push {ref}).",
        )
        self.git.push(path, ref)

    def _push(self, path: Path, ref: str) -> None:
        path = Path(path).absolute()
        main_dir = self._get_main_dir()
        if main_dir is None or main_dir == path:
            self._git_push(path, ref)
            return

        into_current_branch = ref == f"refs/heads/{self.git.get_branch(main_dir)}"
        if into_current_branch and self.git.has_local_changes(main_dir):
            raise UnsynchronizedWorkspaceError(main_dir, f"relaying the push of {ref}")
        self._git_fetch(
            main_dir, path, f"{ref}:{ref}", into_current_branch=into_current_branch
        )
        self._git_push(main_dir, ref)
        self._git_push(path, ref)
        self._git_fetch(path, main_dir, TRACKING_REFSPEC, force=True)

    def _push_all(self, path: Path) -> None:
        """
        Push every unpushed branch and tag of path. Outside the main directory
        each ref is relayed through it like any other push.
        """
        main_dir = self._get_main_dir()
        if main_dir is None or main_dir == path:
            self.git.push_all(path)
            return

        for branch in self.git.list_branches(path):
            if not self.git.is_branch_pushed(path, branch):
                self._push(path, f"refs/heads/{branch}")
        for tag in self.git.list_tags(path):
            ref = f"refs/tags/{tag}"
            if not self.git.is_ref_exists(main_dir, ref):
                self._push(path, ref)

    def _git_pull(self, path: Path) -> bool:
        if self.git.get_branch(path) is None:
            raise ScmError(f"Within {path} the HEAD is not a branch.")
        self._fetch(path)
        rebase = is_true(self._runtime_property(RUNTIME_PROPERTY_GIT_IND_PULL_REBASE))
        return self.git.pull(path, rebase=rebase)

    def _git_clone(
        self, version: Optional[Version], remote_path: Optional[Path], path: Path
    ) -> None:
        if remote_path is not None:
            self._git_fetch(remote_path)
            self.git.clone(path, version, source_url=Path(remote_path).absolute().as_uri())
        else:
            self.context.notify(
                NotificationKind.ACCESS_REMOTE_REPOS,
                f"Accessing remote repository {self.repos_url} from {path} (clone).",
            )
            self.git.clone(path, version)
            self._has_fetched(path)

    def _get_path_module_workspace(self) -> Path:
        """
        A fetched workspace directory of the module for read only queries,
        without holding access to it.
        """
        main_dir = self._get_main_dir()
        if main_dir is not None:
            if self._get_temp_base(main_dir) is None:
                self._fetch(main_dir)
            return main_dir

        workspace = self.context.workspace
        system_dir = SystemModuleDir(self.node_path)
        if workspace.is_workspace_dir_exist(system_dir):
            path = workspace.get_workspace_dir(
                system_dir, GetDirMode.GET_EXISTING, AccessMode.PEEK
            )
            if self._get_temp_base(path) is None:  # type: ignore[arg-type]
                self._fetch(path)  # type: ignore[arg-type]
            return path  # type: ignore[return-value]

        path = self.checkout_system(None)
        workspace.release_workspace_dir(path)
        self._fetch(path)
        return path

    # Identification

    def get_scm_type(self) -> str:
        return SCM_TYPE

    def get_scm_url(self, path: Optional[Path] = None) -> str:
        if path is not None and is_git_repository(path):
            url = read_origin_url(path)
            if url is not None:
                return url
        return self.repos_url

    def is_module_exists(self) -> bool:
        self.context.notify(
            NotificationKind.ACCESS_REMOTE_REPOS,
            f"Accessing remote repository {self.repos_url} (ls-remote).",
        )
        return self.git.is_repos_exists()

    def get_default_version(self) -> Version:
        return DEFAULT_VERSION

    # Checkout

    def check_out(self, version: Version, path: Path) -> None:
        """
        Clone version into a user workspace directory held for writing.

        The first user directory of a module becomes its main directory.
        """
        path = Path(path).absolute()
        workspace = self.context.workspace
        workspace.require_read_write(path)
        try:
            main_dir = self._get_main_dir()
            if main_dir is not None and main_dir != path:
                self._git_clone(version, main_dir, path)
                return

            system_dir = SystemModuleDir(self.node_path)
            remote_path: Optional[Path] = None
            if workspace.is_workspace_dir_exist(system_dir):
                remote_path = workspace.get_workspace_dir(
                    system_dir, GetDirMode.GET_EXISTING, AccessMode.READ
                )
            try:
                self._git_clone(version, remote_path, path)
            finally:
                if remote_path is not None:
                    workspace.release_workspace_dir(remote_path)

            self._set_main_dir(path)
        except UserError:
            raise
        except (ReleaseGraphError, OSError) as e:
            raise ScmError(
                f"Could not checkout version {version} of module {self.module}."
            ) from e

    def checkout_system(self, version: Optional[Version] = None) -> Path:
        """
        Workspace directory of the module, held for writing, with version
        checked out when specified.

        An existing user directory is preferred: for version when specified,
        any when not. Otherwise the system directory is refreshed, or
        created by cloning.
        """
        workspace = self.context.workspace
        try:
            if version is not None:
                user_dir = UserModuleVersionDir(ModuleVersion(self.node_path, version))
                if workspace.is_workspace_dir_exist(user_dir):
                    return workspace.get_workspace_dir(  # type: ignore[return-value]
                        user_dir, GetDirMode.GET_EXISTING, AccessMode.READ_WRITE
                    )
            else:
                user_dirs = workspace.get_set_workspace_dir(
                    UserModuleVersionDir(ModuleVersion(self.node_path))
                )
                if user_dirs:
                    return workspace.get_workspace_dir(  # type: ignore[return-value]
                        user_dirs[0], GetDirMode.GET_EXISTING, AccessMode.READ_WRITE
                    )

            system_dir = SystemModuleDir(self.node_path)
            if workspace.is_workspace_dir_exist(system_dir):
                path = workspace.get_workspace_dir(
                    system_dir, GetDirMode.GET_EXISTING, AccessMode.READ_WRITE
                )
                if is_git_repository(path):  # type: ignore[arg-type]
                    try:
                        self._refresh_system_dir(path, version)  # type: ignore[arg-type]
                    except Exception:
                        workspace.release_workspace_dir(path)  # type: ignore[arg-type]
                        raise
                    return path  # type: ignore[return-value]

                logger.warning(
                    f"System directory {path} of {self.module} is not a git repository "
                    "and is recreated."
                )
                workspace.delete_workspace_dir(system_dir)

            return self._clone_system_dir(system_dir, version)
        except UserError:
            raise
        except (ReleaseGraphError, OSError) as e:
            raise ScmError(
                f"Could not checkout (system directory) version {version} of module {self.module}."
            ) from e

    def _refresh_system_dir(self, path: Path, version: Optional[Version]) -> None:
        temp_base = self._get_temp_base(path)
        if temp_base is not None:
            if version is not None and temp_base != version:
                raise ScmError(
                    f"A temporary dynamic version based on {temp_base} is in effect in "
                    f"{path} but is not the requested version {version}."
                )
            return

        self._fetch(path)
        if version is None:
            return

        self.git.checkout(path, version)
        if version.is_dynamic:
            main_dir = self._get_main_dir()
            ref = version_ref(version)
            if (
                main_dir is not None
                and main_dir != Path(path).absolute()
                and self.git.is_ref_exists(main_dir, ref)
            ):
                self._git_fetch(path, main_dir, f"{ref}:{ref}", into_current_branch=True)
            if self._git_pull(path):
                raise ScmError(
                    f"Conflicts were encountered while pulling changes into {path}. "
                    "This is not expected here."
                )

    def _clone_system_dir(
        self, system_dir: SystemModuleDir, version: Optional[Version]
    ) -> Path:
        workspace = self.context.workspace
        path: Optional[Path] = None
        try:
            conflict = workspace.get_workspace_dir_conflict(system_dir)
            if conflict is not None:
                workspace.get_workspace_dir(
                    conflict, GetDirMode.GET_EXISTING, AccessMode.READ_WRITE
                )
                workspace.delete_workspace_dir(conflict)

            path = workspace.get_workspace_dir(
                system_dir, GetDirMode.CREATE_NEW_NO_PATH, AccessMode.READ_WRITE
            )
            self._git_clone(version, self._get_main_dir(), path)  # type: ignore[arg-type]
        except Exception:
            if path is not None:
                workspace.delete_workspace_dir(system_dir)
            raise
        return path  # type: ignore[return-value]

    # Synchronization

    def get_version(self, path: Path) -> Version:
        return self.git.get_version(path)

    def _is_sync(self, path: Path, flags: IsSyncFlag, external: bool) -> bool:
        branch = self.git.get_branch(path)
        if branch is None:
            return True

        self._fetch(path)
        ahead, behind = self.git.ahead_behind(path, branch)

        if IsSyncFlag.REMOTE_CHANGES in flags and behind:
            return False

        if IsSyncFlag.LOCAL_CHANGES in flags:
            push_all = self.context.is_push_all(self.node_path)
            if push_all and self._fetch_push_behavior().is_push:
                self.context.notify(
                    NotificationKind.PUSHING_UNPUSHED_COMMITS,
                    f"Pushing all unpushed commits and tags of {path}.",
                )
                self._push_all(path)
            if self.git.has_local_changes(path):
                return False
            if external and not push_all and ahead:
                self.context.notify(
                    NotificationKind.WARNING_UNPUSHED_COMMITS,
                    f"{path} holds {ahead} unpushed commit(s) on {branch}.",
                )

        return True

    def is_sync(self, path: Path, flags: IsSyncFlag = IsSyncFlag.ALL_CHANGES) -> bool:
        """
        Whether path is synchronized with the remote repository.

        A static version is always synchronized. REMOTE_CHANGES fails when
        the branch is behind its upstream, LOCAL_CHANGES when the working
        tree has uncommitted changes.
        """
        return self._is_sync(Path(path).absolute(), flags, external=True)

    def update(self, path: Path) -> bool:
        """Pull remote changes into path. Returns True on conflicts."""
        self.context.workspace.require_read_write(path)
        return self._git_pull(path)

    def switch_version(self, path: Path, version: Version) -> bool:
        path = Path(path).absolute()
        workspace = self.context.workspace
        if not self._is_sync(path, IsSyncFlag.ALL_CHANGES, external=False):
            raise UnsynchronizedWorkspaceError(path, f"switching to version {version}")

        workspace_dir = workspace.get_workspace_dir_from_path(path)
        if not isinstance(workspace_dir, UserModuleVersionDir):
            raise WorkspaceAccessError(f"{path} must be a user workspace directory.")
        workspace.require_read_write(path)

        if version == self.get_version(path):
            return False

        self._fetch(path)
        self.git.checkout(path, version)
        if version.is_dynamic and self._git_pull(path):
            raise ScmError(
                f"Conflicts were encountered while pulling changes into {path}. "
                "This is not expected here."
            )
        workspace.update_workspace_dir(
            workspace_dir, UserModuleVersionDir(ModuleVersion(self.node_path, version))
        )
        return True

    # Commits and versions

    def commit(
        self, path: Path, message: str, attributes: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Commit every change in path with the attributes recorded in the
        message, then push unless a temporary dynamic version is in effect.
        """
        path = Path(path).absolute()
        temp = self._get_temp_base(path) is not None
        if temp:
            if not self._is_sync(path, IsSyncFlag.REMOTE_CHANGES, external=False):
                raise UnsynchronizedWorkspaceError(path, "committing")
            branch = None
        else:
            branch = self.git.get_branch(path)
            if branch is None:
                raise VersionTypeMismatchError(
                    self.get_version(path), path, "commits require a dynamic version"
                )
        self.context.workspace.require_read_write(path)

        self.git.add_commit(path, format_message(message, attributes))
        if branch is not None:
            self._push(path, f"refs/heads/{branch}")

    def is_version_exists(self, version: Version) -> bool:
        return self.git.is_version_exists(self._get_path_module_workspace(), version)

    def get_list_version_static(self) -> List[Version]:
        path = self._get_path_module_workspace()
        return [Version.static(tag) for tag in self.git.list_tags(path)]

    def create_version(
        self,
        path: Path,
        version_target: Version,
        attributes: Optional[Dict[str, str]] = None,
        switch: bool = True,
    ) -> None:
        """
        Create a branch or a tag from the current state of path.

        The version current at creation time is recorded as base version: in
        an empty commit on the new branch, or in the tag message.
        """
        path = Path(path).absolute()
        workspace = self.context.workspace
        temp_base = self._get_temp_base(path)
        if temp_base is None and not self._is_sync(path, IsSyncFlag.ALL_CHANGES, external=False):
            raise UnsynchronizedWorkspaceError(path, f"creating version {version_target}")
        workspace.require_read_write(path)

        workspace_dir = workspace.get_workspace_dir_from_path(path)
        is_user_dir = isinstance(workspace_dir, UserModuleVersionDir)

        version_attributes = dict(attributes or {})
        base = temp_base if temp_base is not None else self.get_version(path)
        version_attributes[ATTR_BASE_VERSION] = str(base)

        if version_target.is_dynamic:
            message = format_message(
                "Dummy commit introduced to record the version attributes including "
                f"the base version of the newly created version {version_target}.",
                version_attributes,
            )
            self.git.create_branch(path, version_target.name, switch)
            if temp_base is not None:
                del self.context.temp_dynamic_versions[path]

            if switch:
                self.git.add_commit(path, message, allow_empty=True, stage_all=False)
            else:
                self.git.commit_on_branch(path, version_target.name, message)
                if temp_base is not None:
                    self.git.checkout(path, temp_base)

            if switch and is_user_dir:
                workspace.update_workspace_dir(
                    workspace_dir,
                    UserModuleVersionDir(ModuleVersion(self.node_path, version_target)),
                )
            self._push(path, version_ref(version_target))
            self.context.events.publish(
                DynamicVersionCreatedEvent(self.node_path, version_target)
            )
        else:
            message = format_message(
                f"Created version {version_target} from version {base}.",
                version_attributes,
            )
            self.git.create_tag(path, version_target.name, message)
            if temp_base is not None:
                del self.context.temp_dynamic_versions[path]

            if switch:
                self.git.checkout(path, version_target)
                if is_user_dir:
                    workspace.update_workspace_dir(
                        workspace_dir,
                        UserModuleVersionDir(ModuleVersion(self.node_path, version_target)),
                    )
            elif temp_base is not None:
                self.git.checkout(path, temp_base)

            self._push(path, version_ref(version_target))
            self.context.events.publish(
                StaticVersionCreatedEvent(self.node_path, version_target)
            )

        logger.info(f"Version {version_target} of {self.module} created from {base}.")

    def get_map_version_attr(self, version: Version) -> Dict[str, str]:
        """
        Attributes recorded when version was created, with the id of the
        commit it was created from under releasegraph-base-version-commit-id.

        Raises:
            VersionNotFoundError: If version is static and does not exist
        """
        path = self._get_path_module_workspace()

        if version.is_dynamic:
            ref = self.git.convert_to_ref(path, version)
            for entry in self.git.log(path, [ref], first_parent=True):
                attributes = get_attributes(entry.message)
                if ATTR_BASE_VERSION in attributes:
                    attributes[ATTR_BASE_VERSION_COMMIT_ID] = self.git.resolve(
                        path, f"{entry.id}^"
                    )
                    return attributes
            return {}

        message = self.git.get_tag_message(path, version.name)
        if message is None:
            raise VersionNotFoundError(version)
        attributes = get_attributes(message)
        attributes[ATTR_BASE_VERSION_COMMIT_ID] = self.git.resolve(path, version_ref(version))
        return attributes

    def get_base_version(self, version: Version) -> Optional[BaseVersion]:
        attributes = self.get_map_version_attr(version)
        base = attributes.get(ATTR_BASE_VERSION)
        if base is None:
            return None
        return BaseVersion(
            version=version,
            version_base=Version.parse(base),
            commit_id=attributes.get(ATTR_BASE_VERSION_COMMIT_ID),
        )

    # Commit listing

    def get_list_commit(
        self,
        version: Version,
        paging: Optional[CommitPaging] = None,
        flags: CommitFlag = CommitFlag.NONE,
    ) -> List[Commit]:
        """Commits of version, newest first, back to its creation."""
        return self.get_list_commit_diverge(version, None, paging, flags)

    def get_list_commit_diverge(
        self,
        version_src: Version,
        version_dest: Optional[Version],
        paging: Optional[CommitPaging] = None,
        flags: CommitFlag = CommitFlag.NONE,
    ) -> List[Commit]:
        """
        Commits of version_src not in version_dest, newest first.

        The enumeration stops at the commit recording the creation of a
        version, which is not returned.

        Raises:
            ScmError: If paging is already done, or UPDATE_START_INDEX is
                requested without paging
        """
        if paging is not None and paging.done:
            raise ScmError("Commits requested after the enumeration completed.")
        if CommitFlag.UPDATE_START_INDEX in flags and paging is None:
            raise ScmError("Updating the start index requires paging.")

        path = self._get_path_module_workspace()
        revision = self.git.convert_to_ref(path, version_src)
        if version_dest is not None:
            revision = f"{self.git.convert_to_ref(path, version_dest)}..{revision}"
        return self._list_commit(path, revision, paging, flags)

    def _list_commit(
        self,
        path: Path,
        revision: str,
        paging: Optional[CommitPaging] = None,
        flags: CommitFlag = CommitFlag.NONE,
    ) -> List[Commit]:
        entries = self.git.log(
            path,
            [revision],
            skip=paging.start_index if paging is not None else 0,
            max_count=paging.max_count if paging is not None else -1,
        )

        map_commit_tags: Dict[str, List[str]] = {}
        if CommitFlag.INCLUDE_VERSION_STATIC in flags:
            map_commit_tags = self.git.get_map_commit_tags(path)

        commits = []
        for entry in entries:
            attributes, text = parse_message(entry.message)
            if ATTR_BASE_VERSION in attributes:
                if paging is not None:
                    paging.done = True
                break

            commit = Commit(entry.id)
            if CommitFlag.INCLUDE_MESSAGE in flags:
                commit.message = text
            if CommitFlag.INCLUDE_MAP_ATTR in flags:
                commit.attributes = attributes
            if CommitFlag.INCLUDE_VERSION_STATIC in flags:
                commit.static_versions = [
                    Version.static(tag) for tag in map_commit_tags.get(entry.id, [])
                ]
            commits.append(commit)

        if paging is not None:
            paging.returned = len(commits)
            if not commits:
                paging.done = True
            if CommitFlag.UPDATE_START_INDEX in flags:
                paging.start_index += paging.returned

        return commits

    # Merging

    def _require_merge_destination(self, path: Path, operation: str) -> Version:
        version_dest = self.get_version(path)
        if version_dest.is_static:
            raise VersionTypeMismatchError(
                version_dest, path, f"{operation} requires a dynamic destination version"
            )
        if not self._is_sync(path, IsSyncFlag.ALL_CHANGES, external=False):
            raise UnsynchronizedWorkspaceError(path, operation)
        self.context.workspace.require_read_write(path)
        return version_dest

    def _notify_conflicts(self, path: Path, version_src: Version, version_dest: Version) -> None:
        self.context.notify(
            NotificationKind.WARNING_MERGE_CONFLICTS,
            f"Conflicts were encountered while merging version {version_src} into "
            f"version {version_dest} in {path}. Resolve them and commit the merge.",
        )

    def merge(
        self, path: Path, version_src: Version, message: Optional[str] = None
    ) -> MergeResult:
        """
        Merge version_src into the dynamic version checked out in path.

        Returns:
            NOTHING_TO_MERGE if no commit diverges, CONFLICTS if the merge
            stopped on conflicts (left in progress), MERGED otherwise
        """
        path = Path(path).absolute()
        version_dest = self._require_merge_destination(path, "merging")

        ref_src = self.git.convert_to_ref(path, version_src)
        ref_dest = self.git.convert_to_ref(path, version_dest)
        if not self._list_commit(path, f"{ref_dest}..{ref_src}"):
            self.context.notify(
                NotificationKind.NO_DIVERGING_COMMITS,
                f"No commit of version {version_src} diverges from version "
                f"{version_dest} in {path}. Nothing to merge.",
            )
            return MergeResult.NOTHING_TO_MERGE

        merge_message = f"Merged {version_src} into {version_dest}."
        if message is not None:
            merge_message = f"{message}\n{merge_message}"

        if self.git.merge(path, ref_src, message=merge_message):
            self._notify_conflicts(path, version_src, version_dest)
            return MergeResult.CONFLICTS

        self._push(path, version_ref(version_dest))
        return MergeResult.MERGED

    def merge_exclude_commits(
        self,
        path: Path,
        version_src: Version,
        exclude: List[Commit],
        message: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge version_src into the dynamic version checked out in path,
        leaving out the changes of the excluded commits.

        The divergent commits are split into ranges at the excluded commits.
        Each range becomes a releasegraph-patch-NN.patch file applied with a
        3-way fallback on top of a merge prepared with the "ours" strategy,
        so git records the merge while only the wanted changes are applied.

        On conflicts the merge is left in progress with the remaining patch
        files in place and CONFLICTS is returned.

        Excluded commits may be given by abbreviated id.

        Raises:
            UserError: If an excluded id is not a commit of version_src
                diverging from the destination
            MergeExcludeCommitsError: On any unexpected failure once the merge
                started; the merge is never aborted automatically
        """
        if not exclude:
            return self.merge(path, version_src, message)

        path = Path(path).absolute()
        version_dest = self._require_merge_destination(path, "merging")

        ref_src = self.git.convert_to_ref(path, version_src)
        ref_dest = self.git.convert_to_ref(path, version_dest)
        commits = self._list_commit(
            path, f"{ref_dest}..{ref_src}", flags=CommitFlag.INCLUDE_MESSAGE
        )
        if not commits:
            self.context.notify(
                NotificationKind.NO_DIVERGING_COMMITS,
                f"No commit of version {version_src} diverges from version "
                f"{version_dest} in {path}. Nothing to merge.",
            )
            return MergeResult.NOTHING_TO_MERGE

        map_commit = {commit.id: commit for commit in commits}
        excluded = []
        for commit in exclude:
            commit_id = self.git.find_commit(path, commit.id)
            if commit_id is None:
                raise UserError(f"Commit {commit.id} to exclude does not exist in {path}.")
            if commit_id not in map_commit:
                raise UserError(
                    f"Commit {commit.id} to exclude is not a commit of version {version_src} "
                    f"diverging from version {version_dest}."
                )
            excluded.append(map_commit[commit_id])
        excluded_ids = {commit.id for commit in excluded}

        try:
            # Oldest first
            commits.reverse()

            ranges = []
            range_start = self.git.merge_base(path, ref_dest, ref_src)
            range_end: Optional[str] = None
            for commit in commits:
                if commit.id in excluded_ids:
                    if range_end is not None:
                        ranges.append((range_start, range_end))
                    range_start = commit.id
                    range_end = None
                else:
                    range_end = commit.id
            if range_end is not None:
                ranges.append((range_start, range_end))

            if not ranges:
                return MergeResult.NOTHING_TO_MERGE

            patch_files = []
            for index, (start, end) in enumerate(ranges, start=1):
                patch_file = path / _patch_file_name(index)
                patch_file.write_bytes(self.git.diff_binary(path, start, end))
                patch_files.append(patch_file)
            logger.debug(f"{len(patch_files)} patch(es) generated in {path}.")

            lines = [
                f"Merged {version_src} into {version_dest} excluding the following commits:"
            ]
            for commit in excluded:
                summary = commit.message.splitlines()[0] if commit.message else ""
                lines.append(f"{commit.id} {summary}".rstrip())
            merge_message = "\n".join(lines)
            if message is not None:
                merge_message = f"{message}\n{merge_message}"

            self.git.merge(path, ref_src, message=merge_message, strategy="ours", commit=False)

            for patch_file in patch_files:
                current = patch_file.with_name(patch_file.name + ".current")
                patch_file.rename(current)
                if self.git.apply_3way(path, current):
                    self._notify_conflicts(path, version_src, version_dest)
                    self.context.notify(
                        NotificationKind.WARNING,
                        f"The remaining {PATCH_FILE_PREFIX}NN.patch files in {path} must be "
                        "applied with \"git apply --3way\" before committing the merge.",
                    )
                    return MergeResult.CONFLICTS
                current.rename(patch_file.with_name(patch_file.name + ".done"))

            for patch_file in patch_files:
                patch_file.with_name(patch_file.name + ".done").unlink()

            self.git.commit_merge(path)
            self._push(path, version_ref(version_dest))
            return MergeResult.MERGED
        except (ReleaseGraphError, OSError) as e:
            raise MergeExcludeCommitsError(version_src, version_dest, path) from e

    def replace(
        self, path: Path, version_src: Version, message: Optional[str] = None
    ) -> MergeResult:
        """
        Make the dynamic version checked out in path identical to
        version_src, recorded as a merge of version_src.
        """
        path = Path(path).absolute()
        version_dest = self._require_merge_destination(path, "replacing")

        ref_src = self.git.convert_to_ref(path, version_src)
        if self.git.is_equal(path, "HEAD", ref_src):
            self.context.notify(
                NotificationKind.VERSIONS_EQUAL,
                f"Versions {version_src} and {version_dest} are equal in {path}. "
                "Nothing to replace.",
            )
            return MergeResult.NOTHING_TO_MERGE

        merge_message = f"Replaced version {version_dest} with version {version_src}."
        if message is not None:
            merge_message = f"{message}\n{merge_message}"

        self.git.merge(path, ref_src, message=merge_message, strategy="ours", commit=False)
        self.git.replace_tree(path, ref_src)
        if self.git.is_merge_in_progress(path):
            self.git.commit_merge(path)
        else:
            # version_src is already an ancestor: record the replacement as a plain commit
            self.git.add_commit(path, merge_message)

        self._push(path, version_ref(version_dest))
        return MergeResult.MERGED
