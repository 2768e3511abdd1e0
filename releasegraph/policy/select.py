"""
Selection of the static version to create from a dynamic version.

The selection is driven by runtime properties of the module:

- SPECIFIC_STATIC_VERSION: use exactly this static version
- CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION (ALWAYS, NEVER, ASK): reuse a
  static version already equivalent to the dynamic version
- SPECIFIC_STATIC_VERSION_PREFIX: create <prefix>.<revision>, the revision
  following that of the latest static version with that prefix
- INITIAL_REVISION, REVISION_DECIMAL_POSITION_COUNT: revision numbering
"""

import logging
import re
from enum import Enum
from typing import Callable, List, Optional

from releasegraph.context import NotificationKind, RunContext
from releasegraph.exceptions import (
    ConfigurationError,
    RevisionOverflowError,
    VersionAlreadyExistsError,
    VersionFormatError,
)
from releasegraph.model.module import Capability
from releasegraph.model.version import ModuleVersion, Version
from releasegraph.policy.classifier import VersionClassifier
from releasegraph.scm.attributes import (
    ATTR_EQUIVALENT_STATIC_VERSION,
    is_version_changing,
)
from releasegraph.scm.base import CommitFlag, CommitPaging

logger = logging.getLogger(__name__)

RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION = "SPECIFIC_STATIC_VERSION"
RUNTIME_PROPERTY_SPECIFIC_DYNAMIC_VERSION = "SPECIFIC_DYNAMIC_VERSION"
RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION_PREFIX = "SPECIFIC_STATIC_VERSION_PREFIX"
RUNTIME_PROPERTY_CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION = (
    "CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION"
)
RUNTIME_PROPERTY_INITIAL_REVISION = "INITIAL_REVISION"
RUNTIME_PROPERTY_REVISION_DECIMAL_POSITION_COUNT = "REVISION_DECIMAL_POSITION_COUNT"

DEFAULT_INITIAL_REVISION = 1
DEFAULT_REVISION_DECIMAL_POSITION_COUNT = 2

# Commits examined when looking past version changing commits
MAX_EQUIVALENT_STATIC_VERSION_COMMITS = 16

_REVISION_SUFFIX_PATTERN = re.compile(r"^\.(\d+)$")


class CanReuse(Enum):
    ALWAYS = "ALWAYS"
    NEVER = "NEVER"
    ASK = "ASK"


class VersionSelector:
    """
    Version selection policies of one module.

    Args:
        module: Module of the bound model
        context: Run context
        ask: Callback answering yes/no questions; when None, the answer is yes
        classifier: Ordering of static versions
    """

    def __init__(
        self,
        module,
        context: RunContext,
        ask: Optional[Callable[[str], bool]] = None,
        classifier: Optional[VersionClassifier] = None,
    ):
        self.module = module
        self.context = context
        self.ask = ask
        self.classifier = classifier or VersionClassifier()

    @property
    def scm(self):
        return self.module.require_capability(Capability.SCM)

    def _property(self, key: str) -> Optional[str]:
        return self.context.get_runtime_property(self.module.node_path, key)

    def _int_property(self, key: str, default: int) -> int:
        value = self._property(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(key, f"'{value}' is not an integer")

    def _parse_typed_version(self, key: str, value: str, static: bool) -> Version:
        version = Version.parse(value)
        if version.is_static != static:
            kind = "static" if static else "dynamic"
            raise ConfigurationError(key, f"version {version} must be {kind}")
        return version

    def _module_version(self, version: Version) -> ModuleVersion:
        return ModuleVersion(self.module.node_path, version)

    # Policies

    def handle_specific_static_version(self, version_dynamic: Version) -> Optional[Version]:
        value = self._property(RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION)
        if value is None:
            return None
        version = self._parse_typed_version(
            RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION, value, static=True
        )
        self.context.notify(
            NotificationKind.INFO,
            f"Static version {version} specified for {self._module_version(version_dynamic)}.",
        )
        return version

    def handle_specific_dynamic_version(self, version: Version) -> Optional[Version]:
        value = self._property(RUNTIME_PROPERTY_SPECIFIC_DYNAMIC_VERSION)
        if value is None:
            return None
        version_dynamic = self._parse_typed_version(
            RUNTIME_PROPERTY_SPECIFIC_DYNAMIC_VERSION, value, static=False
        )
        self.context.notify(
            NotificationKind.INFO,
            f"Dynamic version {version_dynamic} specified for {self._module_version(version)}.",
        )
        return version_dynamic

    def handle_specific_static_version_prefix(self, version_dynamic: Version) -> Optional[Version]:
        """Prefix of the new static version, as a static version."""
        value = self._property(RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION_PREFIX)
        if value is None:
            return None
        prefix = self._parse_typed_version(
            RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION_PREFIX, value, static=True
        )
        self.context.notify(
            NotificationKind.INFO,
            f"Static version prefix {prefix} specified for "
            f"{self._module_version(version_dynamic)}.",
        )
        return prefix

    def handle_existing_equivalent_static_version(
        self, version_dynamic: Version
    ) -> Optional[Version]:
        value = self._property(RUNTIME_PROPERTY_CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION)
        try:
            can_reuse = CanReuse(value) if value is not None else CanReuse.ASK
        except ValueError:
            raise ConfigurationError(
                RUNTIME_PROPERTY_CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION,
                f"'{value}' is not one of {', '.join(c.value for c in CanReuse)}",
            )
        if can_reuse is CanReuse.NEVER:
            return None

        version_static = self.get_version_existing_equivalent_static(version_dynamic)
        if version_static is None:
            return None

        if can_reuse is CanReuse.ALWAYS:
            self.context.notify(
                NotificationKind.INFO,
                f"Existing static version {version_static} equivalent to "
                f"{self._module_version(version_dynamic)} is reused.",
            )
            return version_static

        question = (
            f"Static version {version_static} is equivalent to "
            f"{self._module_version(version_dynamic)}. Reuse it?"
        )
        if self.ask is None or self.ask(question):
            return version_static
        return None

    def get_version_existing_equivalent_static(
        self, version_dynamic: Version
    ) -> Optional[Version]:
        """
        Static version equivalent to the current state of version_dynamic.

        The latest commit may carry the equivalent static version attribute.
        Failing that, commits that only change versions are skipped until one
        carries it, in which case the static version is equivalent if its
        references are identical. As a last resort, a static version tagged
        on the latest commit is equivalent.
        """
        scm = self.scm
        if scm.is_temp_dynamic_version():
            return None

        flags = CommitFlag.INCLUDE_MAP_ATTR | CommitFlag.INCLUDE_VERSION_STATIC
        commits = scm.get_list_commit(version_dynamic, CommitPaging(max_count=1), flags)
        if not commits:
            return None
        commit_current = commits[0]

        value = commit_current.attributes.get(ATTR_EQUIVALENT_STATIC_VERSION)
        if value is not None:
            return self._parse_typed_version(ATTR_EQUIVALENT_STATIC_VERSION, value, static=True)

        commits = scm.get_list_commit(
            version_dynamic,
            CommitPaging(max_count=MAX_EQUIVALENT_STATIC_VERSION_COMMITS),
            flags,
        )
        for commit in commits:
            value = commit.attributes.get(ATTR_EQUIVALENT_STATIC_VERSION)
            if value is not None:
                break
            if not is_version_changing(commit.attributes):
                break

        reference_manager = self.module.get_capability(Capability.REFERENCE_MANAGER)
        if value is not None and reference_manager is not None:
            version_static = self._parse_typed_version(
                ATTR_EQUIVALENT_STATIC_VERSION, value, static=True
            )
            if self._get_list_reference(version_static) == self._get_list_reference(
                version_dynamic
            ):
                self.context.notify(
                    NotificationKind.INFO,
                    f"Static version {version_static} is equivalent to "
                    f"{self._module_version(version_dynamic)} since only version "
                    "changing commits were made since, without changing references.",
                )
                return version_static

        if commit_current.static_versions:
            return commit_current.static_versions[0]
        return None

    def _get_list_reference(self, version: Version):
        reference_manager = self.module.require_capability(Capability.REFERENCE_MANAGER)
        path = self.scm.checkout_system(version)
        try:
            return reference_manager.get_list_reference(path)
        finally:
            self.context.workspace.release_workspace_dir(path)

    def get_new_static_version_from_prefix(
        self, version_latest: Optional[Version], prefix: Version
    ) -> Version:
        """
        Next static version <prefix>.<revision>.

        Raises:
            VersionFormatError: If version_latest is not <prefix>.<digits>
            RevisionOverflowError: If the revision is already the largest
                that fits REVISION_DECIMAL_POSITION_COUNT digits
            VersionAlreadyExistsError: If the new version exists
        """
        if not prefix.is_static:
            raise VersionFormatError(str(prefix), "S/<prefix>")

        width = self._int_property(
            RUNTIME_PROPERTY_REVISION_DECIMAL_POSITION_COUNT,
            DEFAULT_REVISION_DECIMAL_POSITION_COUNT,
        )
        initial_revision = self._int_property(
            RUNTIME_PROPERTY_INITIAL_REVISION, DEFAULT_INITIAL_REVISION
        )

        if version_latest is None:
            revision = initial_revision
        else:
            expected = f"S/{prefix.name}.<revision>"
            if not version_latest.is_static or not version_latest.name.startswith(prefix.name):
                raise VersionFormatError(str(version_latest), expected)
            match = _REVISION_SUFFIX_PATTERN.match(version_latest.name[len(prefix.name) :])
            if match is None:
                raise VersionFormatError(str(version_latest), expected)
            revision = max(int(match.group(1)), initial_revision)
            if width and revision >= 10**width - 1:
                raise RevisionOverflowError(version_latest, width)
            revision += 1

        revision_text = str(revision).zfill(width)
        version_new = Version.static(f"{prefix.name}.{revision_text}")
        if self.scm.is_version_exists(version_new):
            raise VersionAlreadyExistsError(version_new)
        return version_new

    # Helpers

    def get_version_latest_matching_prefix(
        self, versions: List[Version], prefix: Version
    ) -> Optional[Version]:
        """First version of versions (newest first) named <prefix>.<something>."""
        for version in versions:
            if version.name.startswith(prefix.name + "."):
                return version
        return None

    def get_list_version_static_for_dynamic(self, version_dynamic: Version) -> List[Version]:
        """Static versions created from version_dynamic, newest first."""
        versions = []
        for version in self.get_list_version_static_global():
            base_version = self.scm.get_base_version(version)
            if base_version is not None and base_version.version_base == version_dynamic:
                versions.append(version)
        return versions

    def get_list_version_static_global(self) -> List[Version]:
        """Every static version of the module, newest first."""
        return self.classifier.sort(self.scm.get_list_version_static())

    # Selection

    def select_static_version(self, version_dynamic: Version) -> Version:
        """
        Static version to create, or reuse, for version_dynamic.

        Raises:
            ConfigurationError: If no policy applies
        """
        version = self.handle_specific_static_version(version_dynamic)
        if version is not None:
            return version

        version = self.handle_existing_equivalent_static_version(version_dynamic)
        if version is not None:
            return version

        prefix = self.handle_specific_static_version_prefix(version_dynamic)
        if prefix is None:
            raise ConfigurationError(
                RUNTIME_PROPERTY_SPECIFIC_STATIC_VERSION_PREFIX,
                f"no static version can be selected for {self._module_version(version_dynamic)}",
            )

        version_latest = self.get_version_latest_matching_prefix(
            self.get_list_version_static_global(), prefix
        )
        version = self.get_new_static_version_from_prefix(version_latest, prefix)
        logger.info(f"New static version {version} selected for {self._module_version(version_dynamic)}.")
        return version
