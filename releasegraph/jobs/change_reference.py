"""Job changing references to module versions according to a mapping."""

import logging
from typing import Dict, Iterable, List, Optional

from releasegraph.context import NotificationKind, RunContext
from releasegraph.exceptions import (
    UnsynchronizedWorkspaceError,
    UserError,
    VersionFormatError,
)
from releasegraph.jobs.base import ExceptionalConditionPolicy, RootModuleVersionJob
from releasegraph.model.module import Capability
from releasegraph.model.version import ModuleVersion, Version
from releasegraph.scm.attributes import ATTR_REFERENCE_VERSION_CHANGE
from releasegraph.scm.base import IsSyncFlag

logger = logging.getLogger(__name__)

RUNTIME_PROPERTY_MAP_MODULE_VERSION = "MAP_MODULE_VERSION"

MAPPING_SEPARATOR = "->"


def parse_mapping(mapping: str):
    """
    Parse one "<module path>:<version> -> <version>" mapping.

    Returns:
        Tuple of the ModuleVersion and the new Version

    Raises:
        UserError: If the mapping is malformed
    """
    source, sep, target = mapping.partition(MAPPING_SEPARATOR)
    if not sep or not source.strip() or not target.strip():
        raise UserError(
            f"Invalid module version mapping '{mapping}'. "
            f"Expected '<module path>:<version> {MAPPING_SEPARATOR} <version>'."
        )
    try:
        module_version = ModuleVersion.parse(source)
        if module_version.version is None:
            raise ValueError(f"no version in '{source.strip()}'")
        return module_version, Version.parse(target.strip())
    except (ValueError, VersionFormatError) as e:
        raise UserError(f"Invalid module version mapping '{mapping}': {e}") from e


def build_map_module_version(
    mappings: Iterable[str] = (), context: Optional[RunContext] = None
) -> Dict[ModuleVersion, Version]:
    """
    Build the ModuleVersion to new Version map from mapping strings, or from
    the runtime properties MAP_MODULE_VERSION.1, MAP_MODULE_VERSION.2, ... when
    no mapping string is given.
    """
    mappings = list(mappings)
    if not mappings and context is not None:
        index = 1
        while True:
            value = context.get_runtime_property(
                None, f"{RUNTIME_PROPERTY_MAP_MODULE_VERSION}.{index}"
            )
            if value is None:
                break
            mappings.append(value)
            index += 1

    map_module_version: Dict[ModuleVersion, Version] = {}
    for mapping in mappings:
        module_version, version = parse_mapping(mapping)
        map_module_version[module_version] = version
    return map_module_version


class ChangeReferenceToModuleVersion(RootModuleVersionJob):
    """
    Change the references to the module versions of a map so they point to
    their new version.

    Every matching reference is rewritten in the module version referencing
    it, and the change is committed (and pushed) with the reference version
    change attribute. Static versions are never modified.
    """

    def __init__(
        self,
        context: RunContext,
        roots: List[ModuleVersion],
        map_module_version: Dict[ModuleVersion, Version],
        policy: ExceptionalConditionPolicy = ExceptionalConditionPolicy.ABORT,
    ):
        super().__init__(context, roots, handle_static_version=False, policy=policy)
        self.map_module_version = dict(map_module_version)

    def _is_pinned(self, module_version: ModuleVersion) -> bool:
        # Targets of a mapping were just pinned.
        for source, version in self.map_module_version.items():
            if source.node_path == module_version.node_path and version == module_version.version:
                return True
        return False

    def visit_matched_module_version(self, module_version: ModuleVersion) -> bool:
        version = module_version.version
        assert version is not None
        if version.is_static:
            return False
        if self._is_pinned(module_version):
            logger.info(f"{module_version} is the target of a mapping. Not processed.")
            return False

        module = self.model.get_module(module_version.node_path)
        scm = module.require_capability(Capability.SCM)
        reference_manager = module.get_capability(Capability.REFERENCE_MANAGER)
        if reference_manager is None:
            return True

        workspace = self.context.workspace
        path = scm.checkout_system(version)
        try:
            if not scm.is_sync(path, IsSyncFlag.ALL_CHANGES):
                raise UnsynchronizedWorkspaceError(path, "changing references")

            for reference in reference_manager.get_list_reference(path):
                if reference.module_version is None:
                    logger.info(
                        f"Reference {reference} of {module_version} is not to a known "
                        "module. Skipped."
                    )
                    continue

                new_version = self.map_module_version.get(reference.module_version)
                if new_version is None:
                    continue

                self.context.notify(
                    NotificationKind.REFERENCE_CHANGE,
                    f"Changing reference {reference} in {module_version} to {new_version}.",
                )
                if reference_manager.update_reference_version(path, reference, new_version):
                    message = (
                        f"Reference {reference} changed to {new_version} in {module_version}."
                    )
                    scm.commit(
                        path,
                        f"Changed reference {reference} to {new_version}.",
                        {ATTR_REFERENCE_VERSION_CHANGE: "true"},
                    )
                    self.actions_performed.append(message)
                else:
                    logger.info(f"Reference {reference} already points to {new_version}.")
        finally:
            workspace.release_workspace_dir(path)

        return True
