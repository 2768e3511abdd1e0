"""
Git command line wrapper.

Every git invocation goes through GitCli.execute, which runs the command with
GitPython's process runner, captures stdout and stderr completely (so the
child can never block on a full pipe), and checks the exit code against an
allow-list.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote, urlparse

from git import Git

from releasegraph.exceptions import GitCommandError

logger = logging.getLogger(__name__)

HTTP_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


class AllowExitCode(Enum):
    """Exit codes accepted from a git command."""

    NONE = "none"  # only 0
    ONE = "one"  # 0 or 1
    ALL = "all"  # any

    def allows(self, exit_code: int) -> bool:
        if self is AllowExitCode.ALL:
            return True
        if self is AllowExitCode.ONE:
            return exit_code in (0, 1)
        return exit_code == 0


@dataclass(frozen=True)
class GitResult:
    exit_code: int
    stdout: Union[str, bytes]
    stderr: str


def is_http_url(url: Optional[str]) -> bool:
    return bool(url) and bool(HTTP_URL_PATTERN.match(url))  # type: ignore[arg-type]


class GitCli:
    """
    Runs git commands for one repository.

    Args:
        executable: git executable, "git" to use the one on PATH
        repos_url: URL of the remote repository, used in messages and for credentials
        credentials: Credentials used for HTTP(S) remote access, if any
        user_name: Committer name passed with -c user.name
        user_email: Committer email passed with -c user.email
    """

    def __init__(
        self,
        executable: str = "git",
        repos_url: Optional[str] = None,
        credentials=None,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
    ):
        self.executable = executable
        self.repos_url = repos_url
        self.credentials = credentials
        self.user_name = user_name
        self.user_email = user_email

    def _write_credential_file(self) -> Optional[str]:
        if self.credentials is None or not is_http_url(self.repos_url):
            return None
        parsed = urlparse(self.repos_url)
        line = (
            f"{parsed.scheme}://{quote(self.credentials.user, safe='')}:"
            f"{quote(self.credentials.password, safe='')}@{parsed.netloc}\n"
        )
        fd, name = tempfile.mkstemp(prefix="releasegraph-", suffix=".credentials")
        with os.fdopen(fd, "w") as f:
            f.write(line)
        return name

    def execute(
        self,
        args: List[str],
        path: Optional[Path] = None,
        allow: AllowExitCode = AllowExitCode.NONE,
        remote_access: bool = False,
        as_bytes: bool = False,
        strip: bool = True,
    ) -> GitResult:
        """
        Run a git command.

        Args:
            args: git arguments, without the executable
            path: Working directory; the current directory if None
            allow: Accepted exit codes
            remote_access: The command talks to the remote; credentials are injected
            as_bytes: Return stdout as raw bytes (for binary patches)
            strip: Strip trailing whitespace from text stdout

        Returns:
            GitResult with the exit code and captured output

        Raises:
            GitCommandError: If the exit code is not allowed
        """
        command = [self.executable]
        if self.user_name:
            command += ["-c", f"user.name={self.user_name}"]
        if self.user_email:
            command += ["-c", f"user.email={self.user_email}"]

        credential_file = self._write_credential_file() if remote_access else None
        if credential_file is not None:
            command += [
                "-c",
                "credential.helper=",
                "-c",
                f"credential.helper=store --file={credential_file}",
            ]
        command += list(args)

        logger.debug(f"Executing git {' '.join(args)} in {path}")
        try:
            exit_code, stdout, stderr = Git(str(path) if path else None).execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                stdout_as_string=not as_bytes,
                strip_newline_in_stdout=False,
            )
        finally:
            if credential_file is not None:
                os.unlink(credential_file)

        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        if not as_bytes and strip:
            stdout = stdout.rstrip()

        if not allow.allows(exit_code):
            logger.error(
                f"git {' '.join(args)} failed with exit code {exit_code} in {path}:\n"
                f"stdout:\n{stdout if not as_bytes else '<binary>'}\nstderr:\n{stderr}"
            )
            raise GitCommandError(
                command=["git"] + list(args),
                exit_code=exit_code,
                path=path,
                repos_url=self.repos_url,
                stdout=stdout if not as_bytes else "",
                stderr=stderr,
            )

        if stderr:
            logger.debug(f"git {' '.join(args)} wrote to stderr:\n{stderr}")

        return GitResult(exit_code, stdout, stderr)
