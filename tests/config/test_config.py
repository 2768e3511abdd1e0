"""
Unit tests for the ConfigAccessor class in releasegraph.config module.
"""

import pytest
from pathlib import Path

from releasegraph.config import ConfigAccessor, get_config_file, is_true
from releasegraph.model.version import NodePath


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file for testing."""
    config_file = tmp_path / "releasegraph.cfg"
    config_file.write_text(
        """
[test]
key1 = value1

[runtime]
GIT_FETCH_PUSH_BEHAVIOR = FETCH_PUSH
SPECIFIC_STATIC_VERSION_PREFIX = 1.0

[runtime:Domain]
GIT_FETCH_PUSH_BEHAVIOR = FETCH_NO_PUSH

[runtime:Domain/Sub/app]
SPECIFIC_STATIC_VERSION_PREFIX = 2.0
"""
    )
    return config_file


@pytest.mark.short
def test_config_accessor_get_existing(temp_config_file):
    """Test getting existing values from the config."""
    config = ConfigAccessor(temp_config_file)

    assert config.get("test", "key1") == "value1"
    assert config.get("test", "missing", "default") == "default"
    assert config.get("missing", "key1") is None


@pytest.mark.short
def test_config_accessor_keeps_key_case(temp_config_file):
    config = ConfigAccessor(temp_config_file)
    assert "GIT_FETCH_PUSH_BEHAVIOR" in config.options("runtime")
    assert config.options("missing") == []


@pytest.mark.short
def test_runtime_property_inheritance(temp_config_file):
    """The most specific section defining a property wins."""
    config = ConfigAccessor(temp_config_file)
    app = NodePath.parse("Domain/Sub/app")
    other = NodePath.parse("Other/x")

    assert config.get_runtime_property(app, "SPECIFIC_STATIC_VERSION_PREFIX") == "2.0"
    assert config.get_runtime_property(app, "GIT_FETCH_PUSH_BEHAVIOR") == "FETCH_NO_PUSH"
    assert config.get_runtime_property(other, "GIT_FETCH_PUSH_BEHAVIOR") == "FETCH_PUSH"
    assert config.get_runtime_property(None, "SPECIFIC_STATIC_VERSION_PREFIX") == "1.0"
    assert config.get_runtime_property(app, "UNDEFINED", "x") == "x"


@pytest.mark.short
def test_config_accessor_set_and_save(tmp_path):
    config_file = tmp_path / "nested" / "releasegraph.cfg"
    config = ConfigAccessor(config_file)
    config.set("runtime", "GIT_IND_PUSH_ALL", "true")
    config.save()

    reloaded = ConfigAccessor(config_file)
    assert reloaded.get("runtime", "GIT_IND_PUSH_ALL") == "true"
    assert reloaded.sections() == ["runtime"]


@pytest.mark.short
def test_default_config_file_name():
    assert get_config_file().name == "releasegraph.cfg"
    assert isinstance(get_config_file(), Path)


@pytest.mark.short
def test_is_true():
    for value in ["true", "TRUE", " yes ", "1", "on"]:
        assert is_true(value)
    for value in [None, "", "false", "no", "0", "maybe"]:
        assert not is_true(value)
