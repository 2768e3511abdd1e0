import io
import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, Optional

import pytest
from git import Repo

from releasegraph.config import ConfigAccessor
from releasegraph.context import RunContext
from releasegraph.model.module import Model


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("releasegraph")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream  # Yield the stream to the test function

    # Cleanup after the test
    logger.removeHandler(handler)
    log_stream.close()


# git fixtures


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Commit identity for every git process spawned by the tests."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")


def create_remote(base: Path, name: str, files: Dict[str, str]) -> Path:
    """
    Create a bare repository holding one commit on master with the given
    files, and return its path.
    """
    remote_path = base / "remotes" / f"{name}.git"
    Repo.init(remote_path, mkdir=True, bare=True, initial_branch="master")

    seed_path = base / "seeds" / name
    seed = Repo.init(seed_path, mkdir=True, initial_branch="master")
    for relative, content in files.items():
        file_path = seed_path / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
    seed.git.add(A=True)
    seed.git.commit(m="Initial commit")
    seed.create_remote("origin", str(remote_path))
    seed.git.push("origin", "master:master")
    return remote_path


def clone_remote(remote_path: Path, path: Path, branch: Optional[str] = None) -> Repo:
    """Independent clone of a remote, to inspect or change it from outside the workspace."""
    kwargs = {"branch": branch} if branch else {}
    return Repo.clone_from(str(remote_path), str(path), **kwargs)


def push_commit(remote_path: Path, base: Path, relative: str, content: str, message: str) -> str:
    """Commit a file change on master directly to the remote. Returns the commit id."""
    clone_path = base / f"pusher-{len(list(base.glob('pusher-*')))}"
    repo = clone_remote(remote_path, clone_path)
    (clone_path / relative).write_text(content)
    repo.git.add(A=True)
    repo.git.commit(m=message)
    repo.git.push("origin", "master:master")
    return repo.head.commit.hexsha


POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.example</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
{body}</project>
"""


def make_pom(artifact_id: str, version: str = "master-SNAPSHOT", body: str = "") -> str:
    return POM_TEMPLATE.format(artifact_id=artifact_id, version=version, body=body)


def dependency(artifact_id: str, version: str, group_id: str = "com.example") -> str:
    return (
        "  <dependencies>\n"
        "    <dependency>\n"
        f"      <groupId>{group_id}</groupId>\n"
        f"      <artifactId>{artifact_id}</artifactId>\n"
        f"      <version>{version}</version>\n"
        "    </dependency>\n"
        "  </dependencies>\n"
    )


@pytest.fixture
def git_helpers():
    """Repository and POM helpers for tests creating their own remotes."""
    return SimpleNamespace(
        create_remote=create_remote,
        clone_remote=clone_remote,
        push_commit=push_commit,
        make_pom=make_pom,
        dependency=dependency,
        model_yaml=model_yaml,
    )


@pytest.fixture
def app_remote(tmp_path) -> Path:
    """Remote of Domain/app, whose POM depends on Domain/lib."""
    return create_remote(
        tmp_path,
        "app",
        {
            "pom.xml": make_pom("app", body=dependency("lib", "master-SNAPSHOT")),
            "README.md": "app\n",
        },
    )


@pytest.fixture
def lib_remote(tmp_path) -> Path:
    """Remote of Domain/lib."""
    return create_remote(
        tmp_path,
        "lib",
        {"pom.xml": make_pom("lib"), "src/Lib.java": "class Lib {}\n"},
    )


def model_yaml(remotes: Dict[str, Path]) -> str:
    lines = ["modules:"]
    for name, remote_path in remotes.items():
        lines += [
            f"  - path: Domain/{name}",
            "    properties:",
            f"      GIT_REPOS_COMPLETE_URL: {remote_path}",
            "    artifacts:",
            f"      - com.example:{name}",
        ]
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_context(tmp_path):
    """Factory building an opened RunContext on a workspace under tmp_path, with a bound model."""
    contexts = []

    def _make(
        remotes: Dict[str, Path],
        runtime_overrides: Optional[Dict[str, str]] = None,
        workspace: Optional[Path] = None,
    ) -> RunContext:
        context = RunContext(
            workspace or tmp_path / "workspace",
            config=ConfigAccessor(tmp_path / "releasegraph.cfg"),
            runtime_overrides=runtime_overrides,
        ).open()
        contexts.append(context)
        Model.from_yaml(model_yaml(remotes)).bind(context)
        return context

    yield _make

    for context in contexts:
        context.close()
