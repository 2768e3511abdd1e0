"""
Maven POM reading and in-place rewriting.

A Pom is loaded with ElementTree, keeping comments, and saved back with the
text found before the root element (XML declaration, DOCTYPE, leading
comments) and after it (trailing whitespace) untouched, so that rewriting a
version produces a minimal diff.
"""

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from releasegraph.exceptions import ReferenceGraphError, ReferenceResolutionError
from releasegraph.reference.base import ArtifactGroupId

logger = logging.getLogger(__name__)

POM_FILE = "pom.xml"

PROPERTY_PATTERN = re.compile(r"\$\{([^}]+)\}")
MAX_RESOLUTION_DEPTH = 10

_PROLOG_PATTERN = re.compile(
    r"\A(?:\s+|<\?.*?\?>|<!--.*?-->|<!DOCTYPE[^>]*>)*", re.DOTALL
)
_NAMESPACE_PATTERN = re.compile(r"^\{([^}]*)\}")


class ReferencedArtifactType(str, Enum):
    PARENT = "PARENT"
    DEPENDENCY = "DEPENDENCY"
    DEPENDENCY_MANAGEMENT = "DEPENDENCY_MANAGEMENT"


_DECLARATION_PATHS = {
    ReferencedArtifactType.PARENT: ("parent",),
    ReferencedArtifactType.DEPENDENCY: ("dependencies", "dependency"),
    ReferencedArtifactType.DEPENDENCY_MANAGEMENT: (
        "dependencyManagement",
        "dependencies",
        "dependency",
    ),
}


@dataclass(frozen=True)
class ReferencedArtifact:
    """An artifact declared in a POM, with its version as written."""

    referenced_artifact_type: ReferencedArtifactType
    group_id: str
    artifact_id: str
    version: str

    def __str__(self) -> str:
        return (
            f"{self.referenced_artifact_type.value}/"
            f"{self.group_id}:{self.artifact_id}:{self.version}"
        )


def _local_name(element: ET.Element) -> Optional[str]:
    # Comments and processing instructions have a callable tag
    if not isinstance(element.tag, str):
        return None
    return _NAMESPACE_PATTERN.sub("", element.tag)


class Pom:
    """
    A POM file.

    Args:
        path: Path of the pom.xml file
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.root: Optional[ET.Element] = None
        self.namespace = ""
        self.prolog = ""
        self.epilog = ""

    def __repr__(self) -> str:
        return f"Pom('{self.path}')"

    def load(self) -> "Pom":
        """
        Parse the file.

        Raises:
            ReferenceGraphError: If the file is not well-formed XML
        """
        text = self.path.read_text(encoding="utf-8")
        self.prolog = _PROLOG_PATTERN.match(text).group(0)  # type: ignore[union-attr]
        body = text[len(self.prolog) :]
        stripped = body.rstrip()
        self.epilog = body[len(stripped) :]

        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            self.root = ET.fromstring(stripped, parser=parser)
        except ET.ParseError as e:
            raise ReferenceGraphError(f"The POM {self.path} is not well-formed: {e}") from e

        match = _NAMESPACE_PATTERN.match(self.root.tag)
        self.namespace = match.group(1) if match else ""
        if self.namespace:
            # Serialize the POM namespace as the default namespace, as written
            ET.register_namespace("", self.namespace)
        return self

    def save(self) -> None:
        if self.root is None:
            raise ReferenceGraphError(f"The POM {self.path} is not loaded.")
        body = ET.tostring(self.root, encoding="unicode")
        self.path.write_text(self.prolog + body + self.epilog, encoding="utf-8")
        logger.debug(f"POM {self.path} saved.")

    # Element access

    def _tag(self, name: str) -> str:
        if self.namespace:
            return f"{{{self.namespace}}}{name}"
        return name

    def _findall(self, element: ET.Element, names: Iterable[str]) -> List[ET.Element]:
        return element.findall("/".join(self._tag(name) for name in names))

    def _text(self, element: Optional[ET.Element], name: str) -> Optional[str]:
        if element is None:
            return None
        child = element.find(self._tag(name))
        if child is None or child.text is None:
            return None
        return child.text.strip() or None

    def _properties_element(self) -> Optional[ET.Element]:
        return self.root.find(self._tag("properties"))  # type: ignore[union-attr]

    # Project coordinates

    @property
    def group_id(self) -> Optional[str]:
        return self._text(self.root, "groupId")

    @property
    def artifact_id(self) -> Optional[str]:
        return self._text(self.root, "artifactId")

    @property
    def version(self) -> Optional[str]:
        return self._text(self.root, "version")

    def get_parent_referenced_artifact(self) -> Optional[ReferencedArtifact]:
        artifacts = self.get_list_referenced_artifact([ReferencedArtifactType.PARENT])
        return artifacts[0] if artifacts else None

    @property
    def resolved_group_id(self) -> Optional[str]:
        group_id = self.group_id
        if group_id is None:
            parent = self.get_parent_referenced_artifact()
            group_id = parent.group_id if parent is not None else None
        return self.resolve(group_id) if group_id is not None else None

    @property
    def resolved_version(self) -> Optional[str]:
        """Version of the project, inherited from the parent when not declared."""
        version = self.version
        if version is None:
            parent = self.get_parent_referenced_artifact()
            version = parent.version if parent is not None else None
        return self.resolve(version) if version is not None else None

    # Properties

    def get_properties(self) -> Dict[str, str]:
        properties: Dict[str, str] = {}
        element = self._properties_element()
        if element is None:
            return properties
        for child in element:
            name = _local_name(child)
            if name is not None:
                properties[name] = (child.text or "").strip()
        return properties

    def _resolution_properties(self) -> Dict[str, str]:
        properties = self.get_properties()
        parent = self.get_parent_referenced_artifact()
        builtins = {
            "project.groupId": self.group_id or (parent.group_id if parent else None),
            "project.artifactId": self.artifact_id,
            "project.version": self.version or (parent.version if parent else None),
            "project.parent.groupId": parent.group_id if parent else None,
            "project.parent.artifactId": parent.artifact_id if parent else None,
            "project.parent.version": parent.version if parent else None,
        }
        for name, value in builtins.items():
            if value is not None:
                properties.setdefault(name, value)
        return properties

    def resolve(self, value: str) -> str:
        """
        Replace ${name} placeholders with the POM properties and project
        coordinates.

        Raises:
            ReferenceResolutionError: If a placeholder cannot be resolved
        """
        if "${" not in value:
            return value

        properties = self._resolution_properties()
        resolved = value
        for _ in range(MAX_RESOLUTION_DEPTH):
            expanded = PROPERTY_PATTERN.sub(
                lambda m: properties.get(m.group(1), m.group(0)), resolved
            )
            if expanded == resolved:
                break
            resolved = expanded

        unresolved = PROPERTY_PATTERN.findall(resolved)
        if unresolved:
            raise ReferenceResolutionError(
                value, f"property {unresolved[0]} is not defined in the POM {self.path}"
            )
        return resolved

    # Referenced artifacts

    def get_list_referenced_artifact(
        self, types: Optional[Iterable[ReferencedArtifactType]] = None
    ) -> List[ReferencedArtifact]:
        """
        Artifacts declared with an explicit version, in PARENT, DEPENDENCY,
        DEPENDENCY_MANAGEMENT order. Versions are as written.
        """
        wanted = set(types) if types is not None else set(ReferencedArtifactType)
        artifacts = []
        for artifact_type in ReferencedArtifactType:
            if artifact_type not in wanted:
                continue
            for element in self._findall(self.root, _DECLARATION_PATHS[artifact_type]):  # type: ignore[arg-type]
                version = self._text(element, "version")
                if version is None:
                    continue
                artifacts.append(
                    ReferencedArtifact(
                        artifact_type,
                        self._text(element, "groupId") or "",
                        self._text(element, "artifactId") or "",
                        version,
                    )
                )
        return artifacts

    def _find_declaration(
        self, artifact_type: ReferencedArtifactType, group_id: str, artifact_id: str
    ) -> ET.Element:
        for element in self._findall(self.root, _DECLARATION_PATHS[artifact_type]):  # type: ignore[arg-type]
            if self._text(element, "version") is None:
                continue
            declared_group_id = self.resolve(self._text(element, "groupId") or "")
            declared_artifact_id = self.resolve(self._text(element, "artifactId") or "")
            if (declared_group_id, declared_artifact_id) == (group_id, artifact_id):
                return element
        raise ReferenceGraphError(
            f"The POM {self.path} does not declare {artifact_type.value} "
            f"{group_id}:{artifact_id} with a version."
        )

    def get_referenced_artifact_version(
        self, artifact_type: ReferencedArtifactType, group_id: str, artifact_id: str
    ) -> str:
        """Resolved version currently declared for an artifact."""
        element = self._find_declaration(artifact_type, group_id, artifact_id)
        return self.resolve(self._text(element, "version"))  # type: ignore[arg-type]

    def set_referenced_artifact_version(
        self,
        artifact_type: ReferencedArtifactType,
        group_id: str,
        artifact_id: str,
        version: str,
    ) -> None:
        """
        Change the version declared for an artifact.

        A version written as a single ${name} placeholder is changed where
        the property is defined.

        Raises:
            ReferenceResolutionError: If the version is an expression that
                cannot be rewritten, or refers to an undefined property
        """
        element = self._find_declaration(artifact_type, group_id, artifact_id)
        version_element = element.find(self._tag("version"))
        declared = version_element.text.strip()  # type: ignore[union-attr]

        match = PROPERTY_PATTERN.fullmatch(declared)
        if match is None:
            if "${" in declared:
                raise ReferenceResolutionError(
                    f"{group_id}:{artifact_id}:{declared}",
                    "the version expression cannot be rewritten",
                )
            version_element.text = version  # type: ignore[union-attr]
            return

        name = match.group(1)
        properties = self._properties_element()
        if properties is not None:
            for child in properties:
                if _local_name(child) == name:
                    logger.debug(f"Property {name} of {self.path} set to {version}.")
                    child.text = version
                    return
        raise ReferenceResolutionError(
            f"{group_id}:{artifact_id}:{declared}",
            f"property {name} is not defined in the POM {self.path}",
        )

    def get_list_submodule(self) -> List[str]:
        modules = []
        for element in self._findall(self.root, ("modules", "module")):  # type: ignore[arg-type]
            if element.text and element.text.strip():
                modules.append(element.text.strip())
        return modules


class PomAggregation:
    """
    A main POM and its submodules, recursively. The main POM comes first.

    Args:
        path_main_pom: Path of the main pom.xml

    Raises:
        ReferenceGraphError: If a POM lacks its groupId or artifactId
    """

    def __init__(self, path_main_pom: Path):
        self.path_main_pom = Path(path_main_pom)
        self.base_dir = self.path_main_pom.parent
        self._poms: Dict[ArtifactGroupId, Pom] = {}
        self.main = self._load(self.path_main_pom)

    def _load(self, path: Path) -> Pom:
        pom = Pom(path).load()
        group_id = pom.resolved_group_id
        artifact_id = pom.artifact_id
        if not group_id or not artifact_id:
            raise ReferenceGraphError(f"The POM {path} does not specify a groupId or an artifactId.")
        self._poms[ArtifactGroupId(group_id, artifact_id)] = pom

        for submodule in pom.get_list_submodule():
            self._load(path.parent / submodule / POM_FILE)
        return pom

    @property
    def artifact_group_ids(self) -> Set[ArtifactGroupId]:
        return set(self._poms)

    @property
    def poms(self) -> List[Pom]:
        return list(self._poms.values())

    def get_pom(self, artifact_group_id: ArtifactGroupId) -> Optional[Pom]:
        return self._poms.get(artifact_group_id)

    def relative_path(self, pom: Pom) -> str:
        return Path(os.path.relpath(pom.path, self.base_dir)).as_posix()
