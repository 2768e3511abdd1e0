"""
Maven reference manager.

References of a module are the parent, dependency and dependencyManagement
declarations of its POM aggregation (main pom.xml and its submodules), minus
those pointing inside the aggregation itself.
"""

import logging
from pathlib import Path
from typing import List

from releasegraph.exceptions import (
    AggregateVersionMismatchError,
    ReferenceProvenanceError,
    ReferenceResolutionError,
)
from releasegraph.model.module import Capability
from releasegraph.model.version import ModuleVersion, Version
from releasegraph.reference.base import (
    ArtifactGroupId,
    Reference,
    ReferenceImplData,
    ReferenceManager,
)
from releasegraph.reference.pom import POM_FILE, Pom, PomAggregation, ReferencedArtifactType

logger = logging.getLogger(__name__)


class MavenReferenceManager(ReferenceManager):
    def __init__(self, module, context=None):
        self.module = module
        self.context = context
        self.adapter_id = f"maven:{module.node_path}"

    def __repr__(self) -> str:
        return f"MavenReferenceManager('{self.module.node_path}')"

    def get_list_reference(self, path: Path) -> List[Reference]:
        """
        References declared by the module checked out in path.

        Raises:
            ReferenceResolutionError: If the aggregation has no resolvable
                version, or a declaration uses an undefined property
            AggregateVersionMismatchError: If a submodule does not share the
                version of the main POM
        """
        aggregation = PomAggregation(Path(path) / POM_FILE)
        internal = aggregation.artifact_group_ids
        model = self.module.model

        version = aggregation.main.resolved_version
        if version is None:
            raise ReferenceResolutionError(
                str(aggregation.path_main_pom),
                f"module {self.module} does not define its artifact version",
            )

        references = []
        for pom in aggregation.poms:
            pom_version = pom.resolved_version
            if pom_version != version:
                raise AggregateVersionMismatchError(pom.path, str(pom_version), version)

            pom_path_relative = aggregation.relative_path(pom)
            for artifact in pom.get_list_referenced_artifact():
                artifact_group_id = ArtifactGroupId(
                    pom.resolve(artifact.group_id), pom.resolve(artifact.artifact_id)
                )
                if artifact_group_id in internal:
                    continue

                artifact_version = pom.resolve(artifact.version)

                module_version = None
                module = model.find_module_by_artifact(
                    artifact_group_id.group_id, artifact_group_id.artifact_id
                )
                if module is not None:
                    mapper = module.require_capability(Capability.ARTIFACT_VERSION_MAPPER)
                    module_version = ModuleVersion(
                        module.node_path,
                        mapper.map_artifact_version_to_version(artifact_version),
                    )

                references.append(
                    Reference(
                        module_version=module_version,
                        artifact_group_id=artifact_group_id,
                        artifact_version=artifact_version,
                        impl_data=ReferenceImplData(
                            adapter_id=self.adapter_id,
                            pom_path_relative=pom_path_relative,
                            referenced_artifact_type=artifact.referenced_artifact_type.value,
                            group_id=artifact_group_id.group_id,
                            artifact_id=artifact_group_id.artifact_id,
                        ),
                    )
                )

        logger.debug(f"{len(references)} reference(s) found for {self.module} in {path}.")
        return references

    def update_reference_version(
        self, path: Path, reference: Reference, version: Version
    ) -> bool:
        """
        Point reference at version, mapped to an artifact version by the
        mapper of the referenced module.

        Returns:
            True if the POM was modified, False if it already declared that
            artifact version

        Raises:
            ReferenceProvenanceError: If reference was produced by another
                reference manager
            ReferenceResolutionError: If reference is not to a module of the model
        """
        impl_data = reference.impl_data
        actual = getattr(impl_data, "adapter_id", type(impl_data).__name__)
        if not isinstance(impl_data, ReferenceImplData) or impl_data.adapter_id != self.adapter_id:
            raise ReferenceProvenanceError(self.adapter_id, actual)
        if reference.module_version is None:
            raise ReferenceResolutionError(
                str(reference), "the artifact is not produced by a module of the model"
            )

        target = self.module.model.get_module(reference.module_version.node_path)
        mapper = target.require_capability(Capability.ARTIFACT_VERSION_MAPPER)
        artifact_version = mapper.map_version_to_artifact_version(version)

        pom = Pom(Path(path) / impl_data.pom_path_relative).load()
        artifact_type = ReferencedArtifactType(impl_data.referenced_artifact_type)
        current = pom.get_referenced_artifact_version(
            artifact_type, impl_data.group_id, impl_data.artifact_id
        )
        if current == artifact_version:
            logger.debug(f"{reference} already declares {artifact_version} in {pom.path}.")
            return False

        pom.set_referenced_artifact_version(
            artifact_type, impl_data.group_id, impl_data.artifact_id, artifact_version
        )
        pom.save()
        logger.info(
            f"Reference to {reference.artifact_group_id} changed from {current} "
            f"to {artifact_version} in {pom.path}."
        )
        return True
