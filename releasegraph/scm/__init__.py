"""
Source control adapters.

ScmAdapter is the interface jobs and policies use; GitScmAdapter is the git
implementation. Version attributes travel in commit and tag messages (see
releasegraph.scm.attributes).
"""

from .attributes import (
    ATTR_BASE_VERSION,
    ATTR_BASE_VERSION_COMMIT_ID,
    ATTR_EQUIVALENT_STATIC_VERSION,
    ATTR_REFERENCE_VERSION_CHANGE,
    ATTR_VERSION_CHANGE,
    format_message,
    get_attributes,
    parse_message,
)
from .base import (
    Commit,
    CommitFlag,
    CommitPaging,
    IsSyncFlag,
    MergeResult,
    ScmAdapter,
)
from .git_adapter import FetchPushBehavior, GitScmAdapter, HttpCredentialHandling

__all__ = [
    "ScmAdapter",
    "GitScmAdapter",
    "Commit",
    "CommitFlag",
    "CommitPaging",
    "IsSyncFlag",
    "MergeResult",
    "FetchPushBehavior",
    "HttpCredentialHandling",
    "ATTR_BASE_VERSION",
    "ATTR_BASE_VERSION_COMMIT_ID",
    "ATTR_EQUIVALENT_STATIC_VERSION",
    "ATTR_REFERENCE_VERSION_CHANGE",
    "ATTR_VERSION_CHANGE",
    "format_message",
    "get_attributes",
    "parse_message",
]
