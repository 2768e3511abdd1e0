"""Pydantic models for the module graph configuration and the bound runtime model."""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from releasegraph.exceptions import ConfigurationError
from releasegraph.model.version import NodePath


class Capability(str, Enum):
    """Strategies a module can provide."""

    SCM = "scm"
    REFERENCE_MANAGER = "reference_manager"
    ARTIFACT_VERSION_MAPPER = "artifact_version_mapper"


DEFAULT_CAPABILITIES = {
    Capability.SCM: "git",
    Capability.REFERENCE_MANAGER: "maven",
    Capability.ARTIFACT_VERSION_MAPPER: "simple",
}


class ModuleConfig(BaseModel):
    """Configuration of one module of the graph."""

    path: str = Field(..., description="Node path of the module, e.g. Domain/app")
    properties: Dict[str, str] = Field(
        default_factory=dict, description="Module properties"
    )
    artifacts: List[str] = Field(
        default_factory=list,
        description="Artifacts produced by the module, as groupId:artifactId (artifactId may be *)",
    )
    capabilities: Dict[Capability, Optional[str]] = Field(
        default_factory=lambda: dict(DEFAULT_CAPABILITIES),
        description="Strategy implementation name per capability (null disables it)",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v or not v.strip("/ "):
            raise ValueError("must be a non-empty node path")
        return v.strip("/ ")

    @field_validator("artifacts")
    @classmethod
    def validate_artifacts(cls, v: List[str]) -> List[str]:
        for artifact in v:
            group_id, sep, artifact_id = artifact.partition(":")
            if not sep or not group_id or not artifact_id:
                raise ValueError(f"artifact '{artifact}' must be groupId:artifactId")
        return v

    @field_validator("capabilities", mode="before")
    @classmethod
    def merge_default_capabilities(cls, v):
        merged: Dict[Any, Any] = dict(DEFAULT_CAPABILITIES)
        merged.update({Capability(key): value for key, value in (v or {}).items()})
        return merged


class ModelConfig(BaseModel):
    """Root of the model configuration file."""

    properties: Dict[str, Dict[str, str]] = Field(
        default_factory=dict,
        description="Properties per node path; the empty path holds global properties",
    )
    modules: List[ModuleConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_modules(self) -> "ModelConfig":
        seen = set()
        for module in self.modules:
            if module.path in seen:
                raise ValueError(f"module {module.path} is defined more than once")
            seen.add(module.path)
        return self

    @classmethod
    def from_yaml(cls, path_or_content: Union[str, Path]) -> "ModelConfig":
        """Load the model from a YAML file or string content."""
        if isinstance(path_or_content, Path) or "\n" not in str(path_or_content):
            with open(path_or_content, "r") as f:
                data = yaml.safe_load(f)
        else:
            data = yaml.safe_load(str(path_or_content))
        return cls(**(data or {}))


class Module:
    """A module of the bound model, with its resolved capabilities."""

    def __init__(self, model: "Model", config: ModuleConfig):
        self.model = model
        self.config = config
        self.node_path = NodePath.parse(config.path)
        self.capabilities: Dict[Capability, Any] = {}

    @property
    def name(self) -> str:
        return self.node_path.module_name

    def get_property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Module property, inherited from the enclosing nodes when not set on the module."""
        if key in self.config.properties:
            return self.config.properties[key]
        parent = self.node_path.parent
        return self.model.get_node_property(parent, key, default)

    def get_capability(self, capability: Capability) -> Any:
        return self.capabilities.get(capability)

    def require_capability(self, capability: Capability) -> Any:
        strategy = self.capabilities.get(capability)
        if strategy is None:
            raise ConfigurationError(
                f"{self.node_path}:{capability.value}",
                "capability is not provided by the module",
            )
        return strategy

    def produces_artifact(self, group_id: str, artifact_id: str) -> bool:
        for artifact in self.config.artifacts:
            artifact_group_id, _, artifact_artifact_id = artifact.partition(":")
            if artifact_group_id != group_id:
                continue
            if artifact_artifact_id in ("*", artifact_id):
                return True
        return False

    def __str__(self) -> str:
        return str(self.node_path)

    def __repr__(self) -> str:
        return f"Module('{self.node_path}')"


class Model:
    """
    The module graph, bound to a run context.

    Capabilities are resolved into strategy instances once, when the model
    is bound, so call sites look them up by tag instead of constructing them.
    """

    def __init__(self, config: ModelConfig):
        self.config = config
        self._modules: Dict[NodePath, Module] = {}
        for module_config in config.modules:
            module = Module(self, module_config)
            self._modules[module.node_path] = module

    @classmethod
    def from_yaml(cls, path_or_content: Union[str, Path]) -> "Model":
        return cls(ModelConfig.from_yaml(path_or_content))

    @property
    def modules(self) -> List[Module]:
        return list(self._modules.values())

    def bind(self, context) -> "Model":
        """Instantiate the capability strategies of every module for a run context."""
        # Import here to avoid circular dependency
        from releasegraph.reference.mapper import SimpleArtifactVersionMapper
        from releasegraph.reference.maven import MavenReferenceManager
        from releasegraph.scm.git_adapter import GitScmAdapter

        factories = {
            Capability.SCM: {"git": lambda m: GitScmAdapter(m, context)},
            Capability.REFERENCE_MANAGER: {
                "maven": lambda m: MavenReferenceManager(m, context)
            },
            Capability.ARTIFACT_VERSION_MAPPER: {
                "simple": lambda m: SimpleArtifactVersionMapper(m)
            },
        }

        for module in self._modules.values():
            module.capabilities = {}
            for capability, implementation in module.config.capabilities.items():
                if implementation is None:
                    continue
                try:
                    factory = factories[capability][implementation]
                except KeyError:
                    raise ConfigurationError(
                        f"{module.node_path}:{capability.value}",
                        f"unknown implementation '{implementation}'",
                    )
                module.capabilities[capability] = factory(module)

        context.model = self
        return self

    def get_module(self, node_path: Union[str, NodePath]) -> Module:
        if not isinstance(node_path, NodePath):
            node_path = NodePath.parse(node_path)
        try:
            return self._modules[node_path]
        except KeyError:
            raise ConfigurationError(str(node_path), "module is not defined in the model")

    def find_module_by_artifact(self, group_id: str, artifact_id: str) -> Optional[Module]:
        for module in self._modules.values():
            if module.produces_artifact(group_id, artifact_id):
                return module
        return None

    def get_node_property(
        self, node_path: Optional[NodePath], key: str, default: Optional[str] = None
    ) -> Optional[str]:
        """Property lookup walking from node_path up to the global properties."""
        if node_path is not None:
            for node in node_path.ancestors():
                properties = self.config.properties.get(str(node))
                if properties and key in properties:
                    return properties[key]
        return self.config.properties.get("", {}).get(key, default)
