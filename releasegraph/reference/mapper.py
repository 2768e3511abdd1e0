"""Mapping between module versions and artifact versions."""

from abc import ABC, abstractmethod

from releasegraph.model.version import Version


class ArtifactVersionMapper(ABC):
    @abstractmethod
    def map_artifact_version_to_version(self, artifact_version: str) -> Version:
        pass

    @abstractmethod
    def map_version_to_artifact_version(self, version: Version) -> str:
        pass


class SimpleArtifactVersionMapper(ArtifactVersionMapper):
    """
    Snapshot convention: D/x corresponds to x-SNAPSHOT and S/x to x.
    """

    def __init__(self, module=None):
        self.module = module

    def map_artifact_version_to_version(self, artifact_version: str) -> Version:
        return Version.from_artifact_version(artifact_version)

    def map_version_to_artifact_version(self, version: Version) -> str:
        return version.get_corresponding_artifact_version()
