"""Jobs traversing the reference graph from root module versions."""

from .base import ExceptionalConditionPolicy, RootModuleVersionJob, parse_policy
from .change_reference import (
    ChangeReferenceToModuleVersion,
    build_map_module_version,
    parse_mapping,
)

__all__ = [
    "ExceptionalConditionPolicy",
    "RootModuleVersionJob",
    "parse_policy",
    "ChangeReferenceToModuleVersion",
    "build_map_module_version",
    "parse_mapping",
]
