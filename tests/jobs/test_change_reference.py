from unittest.mock import MagicMock

import pytest

from releasegraph.config import ConfigAccessor
from releasegraph.context import NotificationKind, RunContext
from releasegraph.exceptions import UnsynchronizedWorkspaceError, UserError
from releasegraph.jobs import (
    ChangeReferenceToModuleVersion,
    ExceptionalConditionPolicy,
    build_map_module_version,
    parse_mapping,
)
from releasegraph.model.module import Capability
from releasegraph.model.version import ModuleVersion, NodePath, Version
from releasegraph.scm.attributes import ATTR_REFERENCE_VERSION_CHANGE, get_attributes
from releasegraph.workspace.directory import AccessMode, GetDirMode, UserModuleVersionDir

APP = ModuleVersion.parse("Domain/app:D/master")
LIB = ModuleVersion.parse("Domain/lib:D/master")
RELEASE = Version.dynamic("release")


@pytest.mark.short
class TestMappings:
    def test_parse_mapping(self):
        assert parse_mapping(" Domain/lib:D/master -> D/release ") == (LIB, RELEASE)
        assert parse_mapping("Domain/lib:S/1.0->S/1.1") == (
            ModuleVersion.parse("Domain/lib:S/1.0"),
            Version.static("1.1"),
        )

    @pytest.mark.parametrize(
        "mapping",
        [
            "Domain/lib:D/master",
            "Domain/lib:D/master -> ",
            "Domain/lib -> D/release",
            "Domain/lib:X/master -> D/release",
            "Domain/lib:D/master -> release",
        ],
    )
    def test_invalid_mapping(self, mapping):
        with pytest.raises(UserError):
            parse_mapping(mapping)

    def test_map_from_strings(self):
        assert build_map_module_version(
            ["Domain/lib:D/master -> D/release", "Domain/util:D/master -> D/release"]
        ) == {LIB: RELEASE, ModuleVersion.parse("Domain/util:D/master"): RELEASE}

    def test_map_from_runtime_properties(self, tmp_path):
        context = RunContext(
            tmp_path / "ws",
            config=ConfigAccessor(tmp_path / "cfg"),
            runtime_overrides={
                "MAP_MODULE_VERSION.1": "Domain/lib:D/master -> D/release",
                "MAP_MODULE_VERSION.2": "Domain/util:S/1.0 -> S/1.1",
                "MAP_MODULE_VERSION.4": "Domain/ignored:D/master -> D/release",
            },
        )
        assert build_map_module_version(context=context) == {
            LIB: RELEASE,
            ModuleVersion.parse("Domain/util:S/1.0"): Version.static("1.1"),
        }

    def test_explicit_mappings_take_precedence(self, tmp_path):
        context = RunContext(
            tmp_path / "ws",
            config=ConfigAccessor(tmp_path / "cfg"),
            runtime_overrides={"MAP_MODULE_VERSION.1": "Domain/util:D/master -> D/release"},
        )
        assert build_map_module_version(["Domain/lib:D/master -> D/release"], context) == {
            LIB: RELEASE
        }


@pytest.mark.short
class TestVisit:
    @pytest.fixture
    def module(self):
        module = MagicMock()
        module.get_capability.return_value = None
        return module

    @pytest.fixture
    def job(self, module):
        context = MagicMock()
        context.model.get_module.return_value = module
        return ChangeReferenceToModuleVersion(context, [APP], {LIB: RELEASE})

    def test_static_versions_are_never_modified(self, job, module):
        assert job.visit_matched_module_version(ModuleVersion.parse("Domain/app:S/1.0")) is False
        module.require_capability.assert_not_called()

    def test_mapping_targets_are_not_processed(self, job, module):
        assert job.visit_matched_module_version(ModuleVersion(LIB.node_path, RELEASE)) is False
        module.require_capability.assert_not_called()

    def test_module_without_reference_manager(self, job, module):
        assert job.visit_matched_module_version(APP) is True
        module.require_capability.return_value.checkout_system.assert_not_called()


@pytest.fixture
def context(make_context, app_remote, lib_remote):
    return make_context({"app": app_remote, "lib": lib_remote})


@pytest.mark.integration
class TestChangeReference:
    def test_reference_is_changed_and_committed(self, context, app_remote, tmp_path, git_helpers):
        changes = []
        context.add_listener(
            lambda kind, message: changes.append(message)
            if kind is NotificationKind.REFERENCE_CHANGE
            else None
        )

        job = ChangeReferenceToModuleVersion(context, [APP], {LIB: RELEASE}).perform()

        assert len(job.actions_performed) == 1
        assert job.failures == []
        assert len(changes) == 1

        remote = git_helpers.clone_remote(app_remote, tmp_path / "inspect")
        assert "<version>release-SNAPSHOT</version>" in (tmp_path / "inspect" / "pom.xml").read_text()
        message = remote.head.commit.message
        assert get_attributes(message) == {ATTR_REFERENCE_VERSION_CHANGE: "true"}
        assert "Changed reference com.example:lib:master-SNAPSHOT" in message

    def test_second_run_changes_nothing(self, context):
        ChangeReferenceToModuleVersion(context, [APP], {LIB: RELEASE}).perform()
        job = ChangeReferenceToModuleVersion(context, [APP], {LIB: RELEASE}).perform()
        assert job.actions_performed == []

    def test_unmapped_references_are_kept(self, context, app_remote, tmp_path, git_helpers):
        other = {ModuleVersion.parse("Domain/lib:D/develop"): RELEASE}
        job = ChangeReferenceToModuleVersion(context, [APP], other).perform()

        assert job.actions_performed == []
        remote = git_helpers.clone_remote(app_remote, tmp_path / "inspect")
        assert remote.head.commit.message.strip() == "Initial commit"

    def test_root_version_defaults(self, context):
        job = ChangeReferenceToModuleVersion(
            context, [ModuleVersion.parse("Domain/app")], {LIB: RELEASE}
        ).perform()
        assert job.roots == [APP]
        assert job.roots_changed

    def test_unsynchronized_user_dir(self, context):
        scm = context.model.get_module(NodePath.parse("Domain/app")).require_capability(
            Capability.SCM
        )
        workspace_dir = UserModuleVersionDir(APP)
        path = context.workspace.get_workspace_dir(
            workspace_dir, GetDirMode.CREATE_NEW_NO_PATH, AccessMode.READ_WRITE
        )
        scm.check_out(APP.version, path)
        context.workspace.release_workspace_dir(path)
        (path / "README.md").write_text("local change\n")

        with pytest.raises(UnsynchronizedWorkspaceError):
            ChangeReferenceToModuleVersion(context, [APP], {LIB: RELEASE}).perform()

        job = ChangeReferenceToModuleVersion(
            context, [APP], {LIB: RELEASE}, policy=ExceptionalConditionPolicy.CONTINUE
        ).perform()
        assert len(job.failures) == 1
        assert job.failures[0].startswith("Domain/app:D/master - ")
        assert context.workspace.accessed_dirs == set()
