"""
Version identity value types.

A module version is identified by a hierarchical node path and a Version.
Versions are either dynamic (mutable, backed by a branch) or static
(immutable, backed by a tag). The string form is "D/<name>" or "S/<name>".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from releasegraph.exceptions import VersionFormatError

ARTIFACT_SNAPSHOT_SUFFIX = "-SNAPSHOT"


class VersionType(str, Enum):
    """Version types, valued by their string prefix."""

    DYNAMIC = "D"
    STATIC = "S"


@dataclass(frozen=True)
class Version:
    """A dynamic or static version of a module."""

    type: VersionType
    name: str

    def __post_init__(self):
        if not isinstance(self.type, VersionType):
            raise VersionFormatError(f"{self.type}/{self.name}")
        if not self.name or self.name != self.name.strip():
            raise VersionFormatError(f"{self.type.value}/{self.name}")

    @classmethod
    def parse(cls, version_string: str) -> "Version":
        """
        Parse a version from its string form.

        Args:
            version_string: "D/<name>" or "S/<name>"

        Returns:
            The corresponding Version

        Raises:
            VersionFormatError: If the prefix or the name is invalid
        """
        text = str(version_string).strip()
        prefix, sep, name = text.partition("/")
        if not sep or not name:
            raise VersionFormatError(text)
        try:
            version_type = VersionType(prefix)
        except ValueError as e:
            raise VersionFormatError(text) from e
        return cls(version_type, name)

    @classmethod
    def dynamic(cls, name: str) -> "Version":
        return cls(VersionType.DYNAMIC, name)

    @classmethod
    def static(cls, name: str) -> "Version":
        return cls(VersionType.STATIC, name)

    @property
    def is_dynamic(self) -> bool:
        return self.type is VersionType.DYNAMIC

    @property
    def is_static(self) -> bool:
        return self.type is VersionType.STATIC

    def get_corresponding_artifact_version(self) -> str:
        """Artifact version following the snapshot convention (D/x -> x-SNAPSHOT)."""
        if self.is_dynamic:
            return self.name + ARTIFACT_SNAPSHOT_SUFFIX
        return self.name

    @classmethod
    def from_artifact_version(cls, artifact_version: str) -> "Version":
        """Inverse of get_corresponding_artifact_version."""
        if artifact_version.endswith(ARTIFACT_SNAPSHOT_SUFFIX):
            return cls.dynamic(artifact_version[: -len(ARTIFACT_SNAPSHOT_SUFFIX)])
        return cls.static(artifact_version)

    def __str__(self) -> str:
        return f"{self.type.value}/{self.name}"

    def __repr__(self) -> str:
        return f"Version('{self}')"


DEFAULT_VERSION = Version(VersionType.DYNAMIC, "master")


@dataclass(frozen=True)
class NodePath:
    """
    Hierarchical identity of a node in the module model.

    "Domain/Sub/app" has parent "Domain/Sub" and module name "app".
    """

    parts: Tuple[str, ...]

    @classmethod
    def parse(cls, node_path: str) -> "NodePath":
        parts = tuple(part for part in str(node_path).strip().split("/") if part)
        if not parts:
            raise ValueError(f"Invalid node path: '{node_path}'")
        return cls(parts)

    @property
    def module_name(self) -> str:
        return self.parts[-1]

    @property
    def parent(self) -> Optional["NodePath"]:
        if len(self.parts) == 1:
            return None
        return NodePath(self.parts[:-1])

    @property
    def property_name_segment(self) -> str:
        """Segment used to build persisted property keys."""
        return ".".join(self.parts)

    def ancestors(self):
        """Yield this node path then each ancestor, nearest first."""
        node: Optional[NodePath] = self
        while node is not None:
            yield node
            node = node.parent

    def __str__(self) -> str:
        return "/".join(self.parts)

    def __repr__(self) -> str:
        return f"NodePath('{self}')"


@dataclass(frozen=True)
class ModuleVersion:
    """A module identified by its node path, paired with a Version.

    The version is None only for incomplete objects used as queries.
    """

    node_path: NodePath
    version: Optional[Version] = None

    @classmethod
    def parse(cls, module_version: str) -> "ModuleVersion":
        """Parse "<node path>:<version>" or a bare "<node path>"."""
        text = str(module_version).strip()
        node_path, sep, version = text.partition(":")
        if not sep:
            return cls(NodePath.parse(node_path))
        return cls(NodePath.parse(node_path), Version.parse(version))

    def __str__(self) -> str:
        if self.version is None:
            return str(self.node_path)
        return f"{self.node_path}:{self.version}"


@dataclass(frozen=True)
class BaseVersion:
    """Which version a version was created from, and at which commit."""

    version: Version
    version_base: Version
    commit_id: Optional[str] = None
