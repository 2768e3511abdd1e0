import pytest

from releasegraph.exceptions import ScmError, VersionTypeMismatchError
from releasegraph.git.command import GitCli
from releasegraph.git.repository import (
    GitRepository,
    is_git_repository,
    read_origin_url,
    version_ref,
)
from releasegraph.model.version import Version


@pytest.mark.short
def test_version_ref():
    assert version_ref(Version.dynamic("master")) == "refs/heads/master"
    assert version_ref(Version.static("1.0")) == "refs/tags/1.0"


@pytest.fixture
def remote(tmp_path, git_helpers):
    remote_path = git_helpers.create_remote(tmp_path, "app", {"README.md": "app\n"})
    helper = git_helpers.clone_remote(remote_path, tmp_path / "helper")
    helper.git.tag("-a", "1.0", "-m", "Release 1.0")
    helper.git.push("origin", "1.0")
    helper.git.checkout("-b", "develop")
    (tmp_path / "helper" / "DEVELOP.md").write_text("develop\n")
    helper.git.add(A=True)
    helper.git.commit(m="Develop work")
    helper.git.push("origin", "develop")
    return remote_path


@pytest.fixture
def repository(remote):
    return GitRepository(GitCli(repos_url=str(remote)))


@pytest.mark.integration
class TestClone:
    def test_clone_dynamic_version(self, repository, tmp_path):
        path = tmp_path / "ws" / "app"
        repository.clone(path, Version.dynamic("develop"))

        assert is_git_repository(path)
        assert read_origin_url(path) == repository.repos_url
        assert repository.get_branch(path) == "develop"
        assert repository.get_version(path) == Version.dynamic("develop")
        assert (path / "DEVELOP.md").exists()

    def test_clone_static_version_detaches_head(self, repository, tmp_path):
        path = tmp_path / "ws" / "app"
        repository.clone(path, Version.static("1.0"))

        assert repository.get_branch(path) is None
        assert repository.get_version(path) == Version.static("1.0")

    def test_clone_with_wrong_version_type_is_removed(self, repository, tmp_path):
        path = tmp_path / "ws" / "app"
        with pytest.raises(VersionTypeMismatchError):
            repository.clone(path, Version.dynamic("1.0"))
        assert not path.exists()

    def test_clone_from_other_workspace_directory(self, repository, tmp_path):
        source = tmp_path / "ws" / "source"
        repository.clone(source)

        path = tmp_path / "ws" / "copy"
        repository.clone(path, Version.dynamic("develop"), source_url=str(source))

        assert read_origin_url(path) == repository.repos_url
        assert repository.is_ref_exists(path, "refs/remotes/origin/develop")
        assert repository.get_branch(path) == "develop"

    def test_not_a_repository(self, tmp_path):
        assert not is_git_repository(tmp_path)
        assert not is_git_repository(tmp_path / "missing")


@pytest.mark.integration
class TestRefs:
    @pytest.fixture
    def path(self, repository, tmp_path):
        path = tmp_path / "ws" / "app"
        repository.clone(path, Version.dynamic("master"))
        return path

    def test_version_lookup(self, repository, path):
        assert repository.is_version_exists(path, Version.dynamic("master"))
        assert repository.is_version_exists(path, Version.dynamic("develop"))
        assert repository.is_version_exists(path, Version.static("1.0"))
        assert not repository.is_version_exists(path, Version.dynamic("missing"))

        assert repository.convert_to_ref(path, Version.dynamic("master")) == "refs/heads/master"
        assert (
            repository.convert_to_ref(path, Version.dynamic("develop"))
            == "refs/remotes/origin/develop"
        )

    def test_tags(self, repository, path):
        assert repository.list_tags(path) == ["1.0"]
        master = repository.resolve(path, "HEAD")
        assert repository.get_map_commit_tags(path) == {master: ["1.0"]}
        assert repository.get_tag_message(path, "1.0") == "Release 1.0"
        assert repository.get_tag_message(path, "2.0") is None

    def test_detached_head_without_tag(self, repository, path):
        repository.add_commit(path, "Untagged", allow_empty=True)
        repository.detach_head(path)
        with pytest.raises(ScmError):
            repository.get_version(path)

    def test_log_and_tracking(self, repository, path):
        (path / "NEW.md").write_text("new\n")
        repository.add_commit(path, "Add new file\n\nWith a body.")

        assert repository.has_local_changes(path) is False
        assert repository.ahead_behind(path, "master") == (1, 0)

        entries = repository.log(path, ["refs/remotes/origin/master..HEAD"])
        assert len(entries) == 1
        assert entries[0].message == "Add new file\n\nWith a body."
        assert entries[0].id == repository.resolve(path, "HEAD")

        repository.push(path, "refs/heads/master")
        assert repository.ahead_behind(path, "master") == (0, 0)

    def test_merge_and_equality(self, repository, path):
        develop = "refs/remotes/origin/develop"
        assert repository.merge_base(path, "HEAD", develop) == repository.resolve(path, "HEAD")
        assert not repository.is_equal(path, "HEAD", develop)

        conflicts = repository.merge(path, develop, message="Merge develop")
        assert conflicts is False
        assert repository.is_equal(path, "HEAD", develop)
        assert not repository.is_merge_in_progress(path)

    def test_commit_on_branch_not_checked_out(self, repository, path):
        repository.create_branch(path, "feature", switch=False)
        before = repository.resolve(path, "refs/heads/feature")

        commit_id = repository.commit_on_branch(path, "feature", "Marker")

        assert repository.resolve(path, "refs/heads/feature") == commit_id
        assert repository.log(path, [f"{before}..{commit_id}"])[0].message == "Marker"
        assert repository.get_branch(path) == "master"
