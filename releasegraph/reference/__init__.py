"""
References between modules.

A ReferenceManager extracts the references a module declares in its build
descriptors and rewrites them; an ArtifactVersionMapper converts between
module versions and the artifact versions found in those descriptors.
"""

from .base import ArtifactGroupId, Reference, ReferenceImplData, ReferenceManager
from .mapper import ArtifactVersionMapper, SimpleArtifactVersionMapper
from .maven import MavenReferenceManager
from .pom import Pom, PomAggregation, ReferencedArtifact, ReferencedArtifactType

__all__ = [
    "ArtifactGroupId",
    "Reference",
    "ReferenceImplData",
    "ReferenceManager",
    "ArtifactVersionMapper",
    "SimpleArtifactVersionMapper",
    "MavenReferenceManager",
    "Pom",
    "PomAggregation",
    "ReferencedArtifact",
    "ReferencedArtifactType",
]
