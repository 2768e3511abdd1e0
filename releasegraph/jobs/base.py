"""
Traversal of the reference graph from root module versions.

A job visits each root ModuleVersion, then the module versions it references,
recursively. Subclasses implement visit_matched_module_version to act on each
visited module version; its return value tells whether to descend into the
references of that module version when traversing parent first.
"""

import logging
from enum import Enum
from typing import List, Optional, Set

from releasegraph.context import NotificationKind, RunContext
from releasegraph.exceptions import ReleaseGraphError, UserError, VersionNotFoundError
from releasegraph.model.module import Capability, Module
from releasegraph.model.version import ModuleVersion, Version
from releasegraph.reference.base import Reference
from releasegraph.workspace.directory import UserModuleVersionDir

logger = logging.getLogger(__name__)


class ExceptionalConditionPolicy(Enum):
    """What to do when visiting a module version raises."""

    CONTINUE = "continue"
    ABORT = "abort"


class RootModuleVersionJob:
    """
    Base class of jobs traversing the reference graph.

    Args:
        context: Run context the model is bound to
        roots: Root module versions; a root without a version resolves to the
            version of its user workspace directory, or the default version
        depth_first: Visit references before the module version referencing them
        handle_static_version: Visit static versions at all
        handle_dynamic_version: Act on dynamic versions (they are still traversed)
        avoid_reentry: Act on each module version at most once
        policy: Exceptional condition policy for errors raised while visiting
    """

    def __init__(
        self,
        context: RunContext,
        roots: List[ModuleVersion],
        depth_first: bool = False,
        handle_static_version: bool = True,
        handle_dynamic_version: bool = True,
        avoid_reentry: bool = True,
        policy: ExceptionalConditionPolicy = ExceptionalConditionPolicy.ABORT,
    ):
        if context.model is None:
            raise ReleaseGraphError("The model must be bound to the run context.")
        self.context = context
        self.model = context.model
        self.roots = list(roots)
        self.depth_first = depth_first
        self.handle_static_version = handle_static_version
        self.handle_dynamic_version = handle_dynamic_version
        self.avoid_reentry = avoid_reentry
        self.policy = policy

        self.actions_performed: List[str] = []
        self.failures: List[str] = []
        self.roots_changed = False
        self._processed: Set[ModuleVersion] = set()
        self._reference_path: List[ModuleVersion] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({[str(root) for root in self.roots]})"

    # Roots

    def resolve_roots(self) -> None:
        """
        Give a version to every root without one and check that each exists.

        Raises:
            UserError: If the module of a root has more than one user directory
            VersionNotFoundError: If the version of a root does not exist
        """
        workspace = self.context.workspace
        for index, root in enumerate(self.roots):
            module = self.model.get_module(root.node_path)
            scm = module.require_capability(Capability.SCM)

            if root.version is None:
                user_dirs = workspace.get_set_workspace_dir(UserModuleVersionDir(root))
                if len(user_dirs) > 1:
                    raise UserError(
                        f"Module {root.node_path} has more than one user workspace "
                        "directory. Specify the version of the root module."
                    )
                if user_dirs:
                    version = user_dirs[0].module_version.version  # type: ignore[attr-defined]
                    self.context.notify(
                        NotificationKind.INFO,
                        f"Root {root} resolved to {version}, the version of its workspace directory.",
                    )
                else:
                    version = scm.get_default_version()
                    self.context.notify(
                        NotificationKind.INFO,
                        f"Root {root} resolved to {version}, the default version.",
                    )
                root = ModuleVersion(root.node_path, version)
                self.roots[index] = root
                self.roots_changed = True

            if not scm.is_version_exists(root.version):
                raise VersionNotFoundError(root)

    # Traversal

    def perform(self) -> "RootModuleVersionJob":
        """Run the job on every root, in order."""
        logger.info(f"Starting {type(self).__name__} on {', '.join(map(str, self.roots))}.")
        self.resolve_roots()
        self.before_iterate()

        for root in self.roots:
            if self.avoid_reentry and root in self._processed:
                logger.info(f"{root} already processed. Skipping root.")
                continue
            if root.version.is_static and not self.handle_static_version:  # type: ignore[union-attr]
                logger.info(f"Root {root} is static and is not handled.")
                continue

            logger.info(f"Traversing the reference graph of {root}.")
            try:
                self.visit_module_version(root)
            except ReleaseGraphError as e:
                self._handle_failure(root, e)

        self.after_iterate()

        if self.actions_performed:
            logger.info("Actions performed:\n" + "\n".join(self.actions_performed))
        else:
            logger.info("No actions performed.")
        if self.failures:
            logger.warning(
                f"{len(self.failures)} module version(s) failed:\n" + "\n".join(self.failures)
            )
        logger.info(f"{type(self).__name__} completed.")
        return self

    def before_iterate(self) -> None:
        pass

    def after_iterate(self) -> None:
        pass

    def _is_handled(self, version: Version) -> bool:
        return version.is_static or self.handle_dynamic_version

    def _match(self, module_version: ModuleVersion) -> bool:
        if self.avoid_reentry:
            self._processed.add(module_version)
        logger.info(f"Visiting {' -> '.join(map(str, self._reference_path))}.")
        return self.visit_matched_module_version(module_version)

    def visit_module_version(self, module_version: ModuleVersion) -> None:
        """Visit module_version and, unless told otherwise, the module versions it references."""
        if self.avoid_reentry and module_version in self._processed:
            logger.debug(f"{module_version} already processed. Reentry avoided.")
            return

        version = module_version.version
        assert version is not None
        if version.is_static and not self.handle_static_version:
            logger.debug(f"{module_version} is static and is not handled.")
            return

        module = self.model.get_module(module_version.node_path)
        self._reference_path.append(module_version)
        try:
            visit_children = True
            if not self.depth_first and self._is_handled(version):
                visit_children = self._match(module_version)

            if visit_children:
                for reference in self.get_list_reference(module, version):
                    if reference.module_version is None:
                        continue
                    logger.debug(f"Processing reference {reference} of {module_version}.")
                    try:
                        self.visit_module_version(reference.module_version)
                    except ReleaseGraphError as e:
                        self._handle_failure(reference.module_version, e)

            if self.depth_first and self._is_handled(version):
                self._match(module_version)
        finally:
            self._reference_path.pop()

    def get_list_reference(self, module: Module, version: Version) -> List[Reference]:
        """References of a module version, read from its system checkout."""
        reference_manager = module.get_capability(Capability.REFERENCE_MANAGER)
        if reference_manager is None:
            return []
        scm = module.require_capability(Capability.SCM)
        path = scm.checkout_system(version)
        try:
            return reference_manager.get_list_reference(path)
        finally:
            self.context.workspace.release_workspace_dir(path)

    def _handle_failure(self, module_version: ModuleVersion, error: ReleaseGraphError) -> None:
        if self.policy == ExceptionalConditionPolicy.ABORT:
            raise error
        summary = str(error).splitlines()[0] if str(error) else type(error).__name__
        self.failures.append(f"{module_version} - {summary}")
        logger.error(f"Error while visiting {module_version}: {error}")

    def visit_matched_module_version(self, module_version: ModuleVersion) -> bool:
        """
        Act on a visited module version.

        Returns:
            True to descend into its references (parent first traversal only)
        """
        raise NotImplementedError


def parse_policy(value: Optional[str]) -> ExceptionalConditionPolicy:
    if not value:
        return ExceptionalConditionPolicy.ABORT
    try:
        return ExceptionalConditionPolicy(value.strip().lower())
    except ValueError:
        raise UserError(
            f"Invalid exceptional condition policy '{value}'. Expected 'continue' or 'abort'."
        )
