from pathlib import Path
from unittest.mock import MagicMock

import pytest

from releasegraph.exceptions import (
    ConfigurationError,
    RevisionOverflowError,
    VersionAlreadyExistsError,
    VersionFormatError,
)
from releasegraph.model.module import Capability
from releasegraph.model.version import BaseVersion, NodePath, Version
from releasegraph.policy import VersionSelector
from releasegraph.scm.attributes import ATTR_EQUIVALENT_STATIC_VERSION, ATTR_VERSION_CHANGE
from releasegraph.scm.base import Commit

MASTER = Version.dynamic("master")


def static(*names):
    return [Version.static(name) for name in names]


@pytest.fixture
def properties():
    return {}


@pytest.fixture
def context(properties):
    context = MagicMock()
    context.get_runtime_property.side_effect = lambda node_path, key, default=None: properties.get(
        key, default
    )
    return context


@pytest.fixture
def scm():
    scm = MagicMock()
    scm.is_temp_dynamic_version.return_value = False
    scm.is_version_exists.return_value = False
    scm.get_list_version_static.return_value = []
    scm.get_list_commit.return_value = []
    scm.checkout_system.return_value = Path("/workspace/.releasegraph/app")
    return scm


@pytest.fixture
def reference_manager():
    return MagicMock()


@pytest.fixture
def module(scm, reference_manager):
    module = MagicMock()
    module.node_path = NodePath.parse("Domain/app")
    capabilities = {Capability.SCM: scm, Capability.REFERENCE_MANAGER: reference_manager}
    module.require_capability.side_effect = capabilities.__getitem__
    module.get_capability.side_effect = capabilities.get
    return module


@pytest.fixture
def selector(module, context):
    return VersionSelector(module, context)


@pytest.mark.short
class TestSpecificVersions:
    def test_specific_static_version(self, selector, properties):
        properties["SPECIFIC_STATIC_VERSION"] = "S/2.0"
        assert selector.select_static_version(MASTER) == Version.static("2.0")

    def test_specific_static_version_must_be_static(self, selector, properties):
        properties["SPECIFIC_STATIC_VERSION"] = "D/2.0"
        with pytest.raises(ConfigurationError):
            selector.select_static_version(MASTER)

    def test_specific_dynamic_version(self, selector, properties):
        assert selector.handle_specific_dynamic_version(Version.static("1.0")) is None
        properties["SPECIFIC_DYNAMIC_VERSION"] = "D/release"
        assert selector.handle_specific_dynamic_version(Version.static("1.0")) == Version.dynamic(
            "release"
        )

    def test_no_policy_applies(self, selector):
        with pytest.raises(ConfigurationError, match="no static version can be selected"):
            selector.select_static_version(MASTER)


@pytest.mark.short
class TestRevisionNumbering:
    def test_next_revision(self, selector, scm, properties):
        properties["SPECIFIC_STATIC_VERSION_PREFIX"] = "S/1.0"
        scm.get_list_version_static.return_value = static("1.0.01", "1.1.05", "1.0.02", "10.0.07")

        assert selector.select_static_version(MASTER) == Version.static("1.0.03")

    def test_initial_revision(self, selector, properties):
        prefix = Version.static("1.0")
        assert selector.get_new_static_version_from_prefix(None, prefix) == Version.static("1.0.01")

        properties["INITIAL_REVISION"] = "5"
        properties["REVISION_DECIMAL_POSITION_COUNT"] = "3"
        assert selector.get_new_static_version_from_prefix(None, prefix) == Version.static("1.0.005")

    def test_initial_revision_is_a_floor(self, selector, properties):
        properties["INITIAL_REVISION"] = "10"
        assert selector.get_new_static_version_from_prefix(
            Version.static("1.0.02"), Version.static("1.0")
        ) == Version.static("1.0.11")

    def test_overflow(self, selector):
        with pytest.raises(RevisionOverflowError):
            selector.get_new_static_version_from_prefix(
                Version.static("1.0.99"), Version.static("1.0")
            )

    def test_new_version_already_exists(self, selector, scm):
        scm.is_version_exists.return_value = True
        with pytest.raises(VersionAlreadyExistsError):
            selector.get_new_static_version_from_prefix(None, Version.static("1.0"))

    def test_latest_version_with_unexpected_format(self, selector):
        with pytest.raises(VersionFormatError):
            selector.get_new_static_version_from_prefix(
                Version.static("1.0.x"), Version.static("1.0")
            )

    def test_invalid_integer_property(self, selector, properties):
        properties["REVISION_DECIMAL_POSITION_COUNT"] = "two"
        with pytest.raises(ConfigurationError):
            selector.get_new_static_version_from_prefix(None, Version.static("1.0"))


@pytest.mark.short
class TestEquivalentStaticVersion:
    def test_attribute_on_latest_commit(self, selector, scm, properties):
        properties["CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION"] = "ALWAYS"
        scm.get_list_commit.return_value = [
            Commit("c1", attributes={ATTR_EQUIVALENT_STATIC_VERSION: "S/1.0"}, static_versions=[])
        ]
        assert selector.select_static_version(MASTER) == Version.static("1.0")

    def test_only_version_changing_commits_since(self, selector, scm, reference_manager):
        version_change = Commit("c2", attributes={ATTR_VERSION_CHANGE: "true"}, static_versions=[])
        equivalent = Commit(
            "c1", attributes={ATTR_EQUIVALENT_STATIC_VERSION: "S/1.0"}, static_versions=[]
        )

        def get_list_commit(version, paging, flags):
            return [version_change] if paging.max_count == 1 else [version_change, equivalent]

        scm.get_list_commit.side_effect = get_list_commit
        reference_manager.get_list_reference.return_value = ["lib:1.0"]

        assert selector.get_version_existing_equivalent_static(MASTER) == Version.static("1.0")
        assert scm.checkout_system.call_count == 2

    def test_changed_references_are_not_equivalent(self, selector, scm, reference_manager):
        version_change = Commit("c2", attributes={ATTR_VERSION_CHANGE: "true"}, static_versions=[])
        equivalent = Commit(
            "c1", attributes={ATTR_EQUIVALENT_STATIC_VERSION: "S/1.0"}, static_versions=[]
        )
        scm.get_list_commit.side_effect = lambda version, paging, flags: (
            [version_change] if paging.max_count == 1 else [version_change, equivalent]
        )
        reference_manager.get_list_reference.side_effect = [["lib:1.0"], ["lib:1.1"]]

        assert selector.get_version_existing_equivalent_static(MASTER) is None

    def test_tag_on_latest_commit(self, selector, scm):
        scm.get_list_commit.return_value = [
            Commit("c1", attributes={}, static_versions=static("1.1"))
        ]
        assert selector.get_version_existing_equivalent_static(MASTER) == Version.static("1.1")

    def test_temporary_dynamic_version(self, selector, scm):
        scm.is_temp_dynamic_version.return_value = True
        assert selector.get_version_existing_equivalent_static(MASTER) is None
        scm.get_list_commit.assert_not_called()

    def test_never_reuse(self, selector, scm, properties):
        properties["CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION"] = "NEVER"
        assert selector.handle_existing_equivalent_static_version(MASTER) is None
        scm.get_list_commit.assert_not_called()

    def test_ask(self, module, context, scm):
        scm.get_list_commit.return_value = [
            Commit("c1", attributes={}, static_versions=static("1.1"))
        ]
        questions = []

        def refuse(question):
            questions.append(question)
            return False

        assert VersionSelector(module, context, ask=refuse).handle_existing_equivalent_static_version(
            MASTER
        ) is None
        assert "S/1.1" in questions[0]
        # Without a callback the answer is yes
        assert VersionSelector(module, context).handle_existing_equivalent_static_version(
            MASTER
        ) == Version.static("1.1")

    def test_invalid_reuse_value(self, selector, properties):
        properties["CAN_REUSE_EXISTING_EQUIVALENT_STATIC_VERSION"] = "SOMETIMES"
        with pytest.raises(ConfigurationError):
            selector.handle_existing_equivalent_static_version(MASTER)


@pytest.mark.short
def test_static_versions_created_from_dynamic_version(selector, scm):
    scm.get_list_version_static.return_value = static("1.0", "2.0", "1.5")
    bases = {
        Version.static("1.0"): BaseVersion(Version.static("1.0"), MASTER, "a"),
        Version.static("1.5"): BaseVersion(Version.static("1.5"), Version.dynamic("release"), "b"),
        Version.static("2.0"): BaseVersion(Version.static("2.0"), MASTER, "c"),
    }
    scm.get_base_version.side_effect = bases.get

    assert selector.get_list_version_static_for_dynamic(MASTER) == static("2.0", "1.0")
    assert selector.get_list_version_static_global() == static("2.0", "1.5", "1.0")
