"""
Low level git operations on a workspace directory.

GitRepository wraps GitCli with the commands the source control adapter
needs. It knows nothing about workspace directories, fetch/push gating or
the main directory; those belong to the adapter.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dulwich import porcelain
from dulwich.errors import NotGitRepository

from releasegraph.exceptions import ScmError, VersionTypeMismatchError
from releasegraph.git.command import AllowExitCode, GitCli
from releasegraph.model.version import Version

logger = logging.getLogger(__name__)

REMOTE = "origin"
TRACK_PATTERN = re.compile(r"(ahead|behind) (\d+)")


class LogEntry:
    """A commit as listed by git log: id and full message."""

    __slots__ = ("id", "message")

    def __init__(self, id: str, message: str):
        self.id = id
        self.message = message

    def __repr__(self) -> str:
        return f"LogEntry('{self.id}')"


def version_ref(version: Version) -> str:
    """Ref a version is created as: the local branch or the tag."""
    if version.is_static:
        return f"refs/tags/{version.name}"
    return f"refs/heads/{version.name}"


def is_git_repository(path: Path) -> bool:
    """Whether path holds a git repository, checked without spawning git."""
    if not Path(path).is_dir():
        return False
    try:
        with porcelain.open_repo_closing(str(path)):
            return True
    except NotGitRepository:
        return False


def read_origin_url(path: Path) -> Optional[str]:
    """URL of the origin remote of the repository at path, or None."""
    with porcelain.open_repo_closing(str(path)) as repo:
        config = repo.get_config()
        try:
            url = config.get((b"remote", REMOTE.encode()), b"url")
        except KeyError:
            return None
    if url is None:
        return None
    return url.decode("utf-8") if isinstance(url, bytes) else url


class GitRepository:
    """Git commands used by the source control adapter."""

    def __init__(self, cli: GitCli):
        self.cli = cli

    @property
    def repos_url(self) -> Optional[str]:
        return self.cli.repos_url

    def _git(self, args: List[str], path: Optional[Path] = None, **kwargs):
        return self.cli.execute(args, path=path, **kwargs)

    # Remote

    def is_repos_exists(self) -> bool:
        result = self._git(
            ["ls-remote", self.repos_url, "HEAD"],  # type: ignore[list-item]
            allow=AllowExitCode.ALL,
            remote_access=True,
        )
        return result.exit_code == 0

    def validate_credentials(self, credentials) -> bool:
        """Whether the remote accepts the given credentials."""
        cli = GitCli(
            self.cli.executable,
            self.cli.repos_url,
            credentials,
            self.cli.user_name,
            self.cli.user_email,
        )
        result = cli.execute(
            ["ls-remote", self.repos_url, "HEAD"],  # type: ignore[list-item]
            allow=AllowExitCode.ALL,
            remote_access=True,
        )
        return result.exit_code == 0

    # Clone, fetch, pull, push

    def clone(
        self,
        path: Path,
        version: Optional[Version] = None,
        source_url: Optional[str] = None,
    ) -> None:
        """
        Clone into path, optionally checking out version.

        When source_url is another workspace directory, the clone is made
        from it and its origin is then pointed at the real repository, with
        the remote tracking refs copied from the source.

        Raises:
            VersionTypeMismatchError: If version names a branch where a tag
                was expected or the reverse; path is removed
        """
        source = source_url or self.repos_url
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        args = ["clone"]
        if source_url is not None:
            args.append("--no-local")
        elif version is not None:
            args += ["-b", version.name]
        args += [source, str(path)]  # type: ignore[list-item]

        logger.info(f"Cloning {source} into {path}.")
        self._git(args, path=path.parent, remote_access=source_url is None)

        if source_url is not None and source_url != self.repos_url:
            self.set_config(path, f"remote.{REMOTE}.url", self.repos_url)  # type: ignore[arg-type]
            self.fetch(
                path,
                remote=source_url,
                refspec=f"refs/remotes/{REMOTE}/*:refs/remotes/{REMOTE}/*",
                force=True,
            )

        if version is not None:
            try:
                if source_url is not None:
                    self.checkout(path, version)
                else:
                    self._verify_kind(path, version)
            except VersionTypeMismatchError:
                shutil.rmtree(path, ignore_errors=True)
                raise

    def fetch(
        self,
        path: Path,
        remote: Optional[str] = None,
        refspec: Optional[str] = None,
        update_head_ok: bool = False,
        force: bool = False,
    ) -> None:
        """
        Fetch from the origin remote, or from another repository.

        Without refspec, all branches and tags of origin are fetched.
        """
        args = ["fetch"]
        if update_head_ok:
            args.append("--update-head-ok")
        if refspec is None:
            args.append("--tags")
        args.append(remote or REMOTE)
        if refspec is not None:
            args.append(f"+{refspec}" if force else refspec)
        self._git(args, path=path, remote_access=remote is None)

    def get_upstream(self, path: Path) -> Optional[str]:
        result = self._git(
            ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"],
            path=path,
            allow=AllowExitCode.ALL,
        )
        if result.exit_code != 0:
            return None
        return result.stdout  # type: ignore[return-value]

    def pull(self, path: Path, rebase: bool = False) -> bool:
        """
        Integrate the upstream of the current branch, already fetched.

        Returns:
            True if conflicts were encountered and must be resolved
        """
        upstream = self.get_upstream(path)
        if upstream is None:
            logger.debug(f"No upstream for the current branch in {path}; nothing to pull.")
            return False

        if rebase:
            result = self._git(["rebase", upstream], path=path, allow=AllowExitCode.ONE)
        else:
            result = self._git(
                ["merge", "--no-edit", upstream], path=path, allow=AllowExitCode.ONE
            )
        return result.exit_code == 1

    def push(self, path: Path, ref: str) -> None:
        """Push one full ref to origin, setting the upstream of branches."""
        args = ["push"]
        if ref.startswith("refs/heads/"):
            args.append("--set-upstream")
        args += [REMOTE, f"{ref}:{ref}"]
        self._git(args, path=path, remote_access=True)

    def push_all(self, path: Path) -> None:
        self._git(["push", "--all", REMOTE], path=path, remote_access=True)
        self._git(["push", "--tags", REMOTE], path=path, remote_access=True)

    # Working tree and refs

    def get_branch(self, path: Path) -> Optional[str]:
        """Current branch, or None if HEAD is detached."""
        result = self._git(
            ["symbolic-ref", "-q", "HEAD"], path=path, allow=AllowExitCode.ONE
        )
        if result.exit_code == 1:
            return None
        return result.stdout[len("refs/heads/") :]  # type: ignore[index]

    def get_version(self, path: Path) -> Version:
        """Version checked out in path: the branch, or the tag of a detached HEAD."""
        branch = self.get_branch(path)
        if branch is not None:
            return Version.dynamic(branch)
        result = self._git(
            ["describe", "--exact-match", "--tags", "HEAD"],
            path=path,
            allow=AllowExitCode.ALL,
        )
        if result.exit_code != 0:
            raise ScmError(f"HEAD is detached in {path} but does not correspond to a tag.")
        return Version.static(result.stdout)  # type: ignore[arg-type]

    def _verify_kind(self, path: Path, version: Version) -> None:
        branch = self.get_branch(path)
        if version.is_dynamic and branch is None:
            raise VersionTypeMismatchError(version, path, "a tag was checked out")
        if version.is_static and branch is not None:
            raise VersionTypeMismatchError(version, path, f"branch {branch} was checked out")

    def checkout(self, path: Path, version: Version) -> None:
        if version.is_static:
            self._git(["checkout", "-q", version_ref(version)], path=path)
        else:
            self._git(["checkout", "-q", version.name], path=path)
        self._verify_kind(path, version)

    def is_ref_exists(self, path: Path, ref: str) -> bool:
        result = self._git(
            ["show-ref", "--verify", "--quiet", ref],
            path=path,
            allow=AllowExitCode.ALL,
        )
        return result.exit_code == 0

    def convert_to_ref(self, path: Path, version: Version) -> str:
        """
        Ref designating a version in path.

        Dynamic versions use the local branch when it exists and the remote
        tracking branch otherwise.
        """
        ref = version_ref(version)
        if version.is_static or self.is_ref_exists(path, ref):
            return ref
        return f"refs/remotes/{REMOTE}/{version.name}"

    def is_version_exists(self, path: Path, version: Version) -> bool:
        """Whether the version is known in path, locally or as a remote tracking ref."""
        return self.is_ref_exists(path, self.convert_to_ref(path, version))

    def ahead_behind(self, path: Path, branch: str) -> Tuple[int, int]:
        """Commits the branch is ahead and behind its upstream."""
        result = self._git(
            ["for-each-ref", "--format=%(upstream:track)", f"refs/heads/{branch}"],
            path=path,
        )
        counts = {"ahead": 0, "behind": 0}
        for kind, count in TRACK_PATTERN.findall(result.stdout):  # type: ignore[arg-type]
            counts[kind] = int(count)
        return counts["ahead"], counts["behind"]

    def has_local_changes(self, path: Path) -> bool:
        result = self._git(["status", "--porcelain"], path=path)
        return bool(result.stdout)

    def reset_hard(self, path: Path, ref: str = "HEAD") -> None:
        self._git(["reset", "-q", "--hard", ref], path=path)

    def resolve(self, path: Path, rev: str) -> str:
        """Commit id of a revision."""
        result = self._git(["rev-parse", "--verify", f"{rev}^{{commit}}"], path=path)
        return result.stdout  # type: ignore[return-value]

    def find_commit(self, path: Path, rev: str) -> Optional[str]:
        """Full commit id of a revision or abbreviated id, None if it names no commit."""
        result = self._git(
            ["rev-parse", "-q", "--verify", f"{rev}^{{commit}}"],
            path=path,
            allow=AllowExitCode.ALL,
        )
        if result.exit_code != 0:
            return None
        return result.stdout  # type: ignore[return-value]

    def list_branches(self, path: Path) -> List[str]:
        result = self._git(
            ["for-each-ref", "--format=%(refname:short)", "refs/heads"], path=path
        )
        return [line for line in result.stdout.splitlines() if line]  # type: ignore[union-attr]

    def is_branch_pushed(self, path: Path, branch: str) -> bool:
        """Whether the remote tracking ref of branch exists and contains it."""
        remote_ref = f"refs/remotes/{REMOTE}/{branch}"
        if not self.is_ref_exists(path, remote_ref):
            return False
        result = self._git(
            ["rev-list", "--count", f"{remote_ref}..refs/heads/{branch}"], path=path
        )
        return int(result.stdout) == 0  # type: ignore[arg-type]

    def list_tags(self, path: Path) -> List[str]:
        result = self._git(["tag", "-l"], path=path)
        return [line for line in result.stdout.splitlines() if line]  # type: ignore[union-attr]

    def get_map_commit_tags(self, path: Path) -> Dict[str, List[str]]:
        """Tag names per tagged commit id (annotated tags are peeled)."""
        result = self._git(
            [
                "for-each-ref",
                "--format=%(objectname) %(*objectname) %(refname:short)",
                "refs/tags",
            ],
            path=path,
        )
        map_commit_tags: Dict[str, List[str]] = {}
        for line in result.stdout.splitlines():  # type: ignore[union-attr]
            fields = line.split(" ")
            if len(fields) != 3:
                continue
            object_id, peeled_id, tag = fields
            map_commit_tags.setdefault(peeled_id or object_id, []).append(tag)
        return map_commit_tags

    def get_tag_message(self, path: Path, tag: str) -> Optional[str]:
        """Message of an annotated tag, None if the tag does not exist."""
        if not self.is_version_exists(path, Version.static(tag)):
            return None
        result = self._git(["tag", "-l", "--format=%(contents)", tag], path=path)
        return result.stdout  # type: ignore[return-value]

    def log(
        self,
        path: Path,
        revisions: List[str],
        skip: int = 0,
        max_count: int = -1,
        reverse: bool = False,
        first_parent: bool = False,
    ) -> List[LogEntry]:
        """
        Commits reachable from revisions, newest first unless reverse.

        Args:
            path: Repository directory
            revisions: Revision arguments, e.g. ["dest..src"]
            skip: Number of commits to skip
            max_count: Maximum number of commits, -1 for all
            reverse: Oldest first
            first_parent: Follow only the first parent of merge commits
        """
        args = ["log", "-z", "--format=%H%n%B"]
        if skip:
            args.append(f"--skip={skip}")
        if max_count >= 0:
            args.append(f"--max-count={max_count}")
        if reverse:
            args.append("--reverse")
        if first_parent:
            args.append("--first-parent")
        args += revisions
        args.append("--")

        result = self._git(args, path=path)
        entries = []
        for chunk in result.stdout.split("\0"):  # type: ignore[union-attr]
            chunk = chunk.strip("\n")
            if not chunk:
                continue
            commit_id, _, message = chunk.partition("\n")
            entries.append(LogEntry(commit_id, message.rstrip("\n")))
        return entries

    def merge_base(self, path: Path, ref1: str, ref2: str) -> str:
        result = self._git(["merge-base", ref1, ref2], path=path)
        return result.stdout  # type: ignore[return-value]

    def is_equal(self, path: Path, ref1: str, ref2: str) -> bool:
        """Whether the trees of two revisions are identical."""
        result = self._git(
            ["diff", "--quiet", ref1, ref2], path=path, allow=AllowExitCode.ONE
        )
        return result.exit_code == 0

    def diff_binary(self, path: Path, start: str, end: str) -> bytes:
        result = self._git(
            ["diff", "--binary", start, end], path=path, as_bytes=True
        )
        return result.stdout  # type: ignore[return-value]

    def apply_3way(self, path: Path, patch_file: Path) -> bool:
        """Apply a patch with 3-way fallback. Returns True on conflicts."""
        result = self._git(
            ["apply", "--3way", "--whitespace=nowarn", str(patch_file)],
            path=path,
            allow=AllowExitCode.ONE,
        )
        return result.exit_code == 1

    # Mutations

    def create_branch(self, path: Path, name: str, switch: bool = True) -> None:
        if switch:
            self._git(["checkout", "-q", "-b", name], path=path)
        else:
            self._git(["branch", name], path=path)

    def create_tag(self, path: Path, name: str, message: str) -> None:
        self._git(["tag", "-a", name, "-m", message], path=path)

    def add_commit(
        self,
        path: Path,
        message: str,
        allow_empty: bool = False,
        stage_all: bool = True,
    ) -> None:
        """Commit, staging every change first unless stage_all is False."""
        if stage_all:
            self._git(["add", "-A"], path=path)
        args = ["commit", "-q", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        self._git(args, path=path)

    def merge(
        self,
        path: Path,
        ref: str,
        message: Optional[str] = None,
        strategy: Optional[str] = None,
        commit: bool = True,
    ) -> bool:
        """
        Merge ref into the current branch with a merge commit.

        Returns:
            True if conflicts were encountered
        """
        args = ["merge", "--no-ff"]
        if strategy is not None:
            args += ["--strategy", strategy]
        if commit:
            args.append("--no-edit")
        else:
            args.append("--no-commit")
        if message is not None:
            args += ["-m", message]
        args.append(ref)
        result = self._git(args, path=path, allow=AllowExitCode.ONE)
        return result.exit_code == 1

    def commit_merge(self, path: Path) -> None:
        """Conclude a merge in progress with its prepared message."""
        self._git(["commit", "-q", "--no-edit"], path=path)

    def replace_tree(self, path: Path, ref: str) -> None:
        """Make the working tree and index identical to the tree of ref."""
        self._git(["rm", "-q", "-r", "--ignore-unmatch", "."], path=path)
        self._git(["checkout", ref, "--", "."], path=path)

    def set_config(self, path: Path, key: str, value: str) -> None:
        self._git(["config", key, value], path=path)

    def commit_on_branch(self, path: Path, branch: str, message: str) -> str:
        """
        Add an empty commit on top of a branch that is not checked out.

        Returns:
            Id of the new commit
        """
        ref = f"refs/heads/{branch}"
        tree = self._git(["rev-parse", f"{ref}^{{tree}}"], path=path).stdout
        commit_id = self._git(
            ["commit-tree", tree, "-p", ref, "-m", message], path=path  # type: ignore[list-item]
        ).stdout
        self._git(["update-ref", ref, commit_id], path=path)  # type: ignore[list-item]
        return commit_id  # type: ignore[return-value]

    def detach_head(self, path: Path) -> None:
        self._git(["checkout", "-q", "--detach"], path=path)

    def is_merge_in_progress(self, path: Path) -> bool:
        result = self._git(
            ["rev-parse", "-q", "--verify", "MERGE_HEAD"],
            path=path,
            allow=AllowExitCode.ALL,
        )
        return result.exit_code == 0
