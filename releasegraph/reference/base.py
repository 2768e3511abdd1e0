"""References between modules and the reference manager interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from releasegraph.model.version import ModuleVersion, Version


@dataclass(frozen=True)
class ArtifactGroupId:
    group_id: str
    artifact_id: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


@dataclass(frozen=True)
class ReferenceImplData:
    """
    Locator of a reference within the build descriptors of a module.

    adapter_id identifies the reference manager that produced the locator;
    only that manager may use it to update the reference.
    """

    adapter_id: str
    pom_path_relative: str
    referenced_artifact_type: str
    group_id: str
    artifact_id: str

    def __str__(self) -> str:
        return f"ref {self.pom_path_relative} {self.referenced_artifact_type}"


@dataclass(frozen=True)
class Reference:
    """
    A reference from a module to an artifact.

    module_version is None when the artifact is not produced by a module of
    the model.
    """

    module_version: Optional[ModuleVersion]
    artifact_group_id: ArtifactGroupId
    artifact_version: str
    impl_data: ReferenceImplData

    def __str__(self) -> str:
        text = f"{self.artifact_group_id}:{self.artifact_version}"
        if self.module_version is not None:
            text = f"{text} ({self.module_version})"
        return text


class ReferenceManager(ABC):
    """Extracts and rewrites the references declared by a module."""

    @abstractmethod
    def get_list_reference(self, path: Path) -> List[Reference]:
        pass

    @abstractmethod
    def update_reference_version(
        self, path: Path, reference: Reference, version: Version
    ) -> bool:
        """
        Point reference at version.

        Returns:
            True if a descriptor was modified, False if it already declared
            the corresponding artifact version
        """
        pass
