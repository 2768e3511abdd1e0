"""
Exception classes for releasegraph.

Errors deriving from UserError describe a situation the operator can fix
(unsynchronized workspace, wrong version type, bad configuration). Jobs may
record them and continue with the next module. Everything else is fatal to
the current operation.
"""

from pathlib import Path
from typing import List, Optional


class ReleaseGraphError(Exception):
    """Base exception for all releasegraph errors."""

    pass


class UserError(ReleaseGraphError):
    """Raised for conditions the operator is expected to resolve."""

    pass


class ConfigurationError(UserError):
    """Raised when a required property or model entry is missing or invalid."""

    def __init__(self, key: str, message: str = ""):
        self.key = key
        if message:
            super().__init__(f"Invalid configuration for {key}: {message}")
        else:
            super().__init__(f"Missing configuration for {key}")


class UnsynchronizedWorkspaceError(UserError):
    """Raised when a mutating operation requires a synchronized workspace directory."""

    def __init__(self, path: Path, operation: str):
        self.path = path
        self.operation = operation
        super().__init__(
            f"Workspace directory {path} must be synchronized before {operation}."
        )


class VersionTypeMismatchError(UserError):
    """Raised when a checked out ref kind does not match the requested version type."""

    def __init__(self, version, path: Path, detail: str = ""):
        self.version = version
        self.path = path
        message = f"Version {version} does not match the ref checked out in {path}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class AggregateVersionMismatchError(UserError):
    """Raised when a submodule of an aggregate does not share the aggregate version."""

    def __init__(self, pom_path: Path, version: str, expected: str):
        self.pom_path = pom_path
        self.version = version
        self.expected = expected
        super().__init__(
            f"Version {version} of submodule {pom_path} differs from "
            f"aggregate version {expected}"
        )


class WorkspaceLockedError(UserError):
    """Raised when another run holds the workspace lock."""

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        super().__init__(
            f"Workspace is locked by another run (lock file {lock_file}). "
            "If no other run is active, remove the lock file."
        )


class VersionFormatError(ReleaseGraphError):
    """Raised when a version string has an invalid format."""

    def __init__(self, version_string: str, expected_format: str = "D/<name> or S/<name>"):
        self.version_string = version_string
        self.expected_format = expected_format
        super().__init__(
            f"Invalid version format: '{version_string}'. "
            f"Expected format: {expected_format}"
        )


class VersionNotFoundError(ReleaseGraphError):
    """Raised when a requested version cannot be found."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Version {version} does not exist")


class VersionAlreadyExistsError(ReleaseGraphError):
    """Raised when attempting to create a version that already exists."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Version {version} already exists")


class RevisionOverflowError(ReleaseGraphError):
    """Raised when the next revision number does not fit the configured width."""

    def __init__(self, version, width: int):
        self.version = version
        self.width = width
        super().__init__(
            f"Revision of version {version} cannot be incremented within "
            f"{width} decimal positions"
        )


class WorkspaceAccessError(ReleaseGraphError):
    """Raised on incompatible or unbalanced workspace directory access."""

    pass


class ScmError(ReleaseGraphError):
    """Base exception for source control failures."""

    pass


class GitCommandError(ScmError):
    """Raised when a git command exits with a code outside the allowed set."""

    def __init__(
        self,
        command: List[str],
        exit_code: int,
        path: Optional[Path] = None,
        repos_url: Optional[str] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = command
        self.exit_code = exit_code
        self.path = path
        self.repos_url = repos_url
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Git command {' '.join(command)} failed with exit code {exit_code} "
            f"(working directory: {path}, repository: {repos_url}).\n"
            f"stdout:\n{stdout}\nstderr:\n{stderr}"
        )


class MergeExcludeCommitsError(ScmError):
    """Raised when a merge excluding commits fails part way.

    The merge is left in progress on purpose; the message tells the operator
    how to complete or abort it.
    """

    def __init__(self, src, dest, path: Path):
        self.src = src
        self.dest = dest
        self.path = path
        super().__init__(
            f"An unexpected error occurred during the merge of version {src} into "
            f"version {dest} within {path}.\n"
            "The merge has not been aborted and releasegraph-patch-##.patch files may "
            "still be present in the root of the workspace directory for the module.\n"
            'IT IS VERY IMPORTANT that the merge operation not be completed with "git commit" as is.\n'
            "If it is, the merge commit will tell git that the merge is complete, whereas "
            "unmerged changes probably exist.\n"
            "It MAY be possible to complete the merge by manually applying the remaining "
            'patch files with "git apply --3way <patch file>" and "git commit".\n'
            'But after investigating the problem it is preferable to abort with "git merge --abort", '
            'reset the workspace directory with "git reset --hard HEAD" and perform the merge again.'
        )


class ReferenceGraphError(ReleaseGraphError):
    """Base exception for reference extraction and rewriting."""

    pass


class ReferenceResolutionError(ReferenceGraphError):
    """Raised when a declared reference cannot be resolved."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Cannot resolve reference {reference}: {reason}")


class ReferenceProvenanceError(ReferenceGraphError):
    """Raised when a reference locator was produced by another adapter."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Reference was produced by adapter {actual} and cannot be "
            f"updated by adapter {expected}"
        )
