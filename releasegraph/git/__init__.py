"""
Git backend.

Architecture:
    - Command layer: GitCli runs one git command through GitPython's process
      runner and checks its exit code
    - Repository layer: GitRepository groups the commands the source control
      adapter needs (clone, fetch, push, log, merge, tag, ...)
    - Inspection helpers use dulwich to read a repository without spawning git
"""

from .command import AllowExitCode, GitCli, GitResult
from .repository import (
    GitRepository,
    LogEntry,
    REMOTE,
    is_git_repository,
    read_origin_url,
    version_ref,
)

__all__ = [
    # Command layer
    "AllowExitCode",
    "GitCli",
    "GitResult",
    # Repository layer
    "GitRepository",
    "LogEntry",
    "REMOTE",
    "version_ref",
    # dulwich based inspection
    "is_git_repository",
    "read_origin_url",
]
