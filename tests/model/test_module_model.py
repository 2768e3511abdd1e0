import pytest

from pydantic import ValidationError

from releasegraph.config import ConfigAccessor
from releasegraph.context import RunContext
from releasegraph.exceptions import ConfigurationError
from releasegraph.model.module import Capability, Model, ModelConfig
from releasegraph.model.version import NodePath
from releasegraph.reference.mapper import SimpleArtifactVersionMapper
from releasegraph.reference.maven import MavenReferenceManager
from releasegraph.scm.git_adapter import GitScmAdapter

VALID_YAML = """
properties:
  "":
    GIT_REPOS_BASE_URL: https://git.example.com
  Domain:
    GIT_REPOS_SUFFIX: ""
modules:
  - path: Domain/app
    artifacts:
      - com.example:app
      - com.example.app:*
  - path: Domain/Sub/lib
    properties:
      GIT_REPOS_NAME: library
    artifacts:
      - com.example:lib
    capabilities:
      reference_manager: null
"""


@pytest.fixture
def context(tmp_path):
    return RunContext(tmp_path / "workspace", config=ConfigAccessor(tmp_path / "cfg"))


@pytest.mark.short
def test_valid_model_from_yaml():
    """Test creating a Model from valid YAML"""
    model = Model.from_yaml(VALID_YAML)
    assert [str(m.node_path) for m in model.modules] == ["Domain/app", "Domain/Sub/lib"]
    lib = model.get_module("Domain/Sub/lib")
    assert lib.name == "lib"
    assert lib.config.capabilities[Capability.SCM] == "git"
    assert lib.config.capabilities[Capability.REFERENCE_MANAGER] is None


@pytest.mark.short
def test_properties_are_inherited_by_node_path():
    model = Model.from_yaml(VALID_YAML)
    lib = model.get_module("Domain/Sub/lib")
    assert lib.get_property("GIT_REPOS_NAME") == "library"
    assert lib.get_property("GIT_REPOS_SUFFIX") == ""
    assert lib.get_property("GIT_REPOS_BASE_URL") == "https://git.example.com"
    assert lib.get_property("UNDEFINED", "default") == "default"


@pytest.mark.short
def test_find_module_by_artifact():
    model = Model.from_yaml(VALID_YAML)
    assert model.find_module_by_artifact("com.example", "app").name == "app"
    assert model.find_module_by_artifact("com.example.app", "anything").name == "app"
    assert model.find_module_by_artifact("com.example", "lib").name == "lib"
    assert model.find_module_by_artifact("org.other", "app") is None


@pytest.mark.short
def test_unknown_module():
    model = Model.from_yaml(VALID_YAML)
    with pytest.raises(ConfigurationError, match="not defined in the model"):
        model.get_module("Domain/missing")


@pytest.mark.short
def test_duplicate_modules_rejected():
    with pytest.raises(ValidationError, match="more than once"):
        ModelConfig(modules=[{"path": "A/b"}, {"path": "A/b/"}])


@pytest.mark.short
def test_invalid_artifact_rejected():
    with pytest.raises(ValidationError, match="groupId:artifactId"):
        ModelConfig(modules=[{"path": "A/b", "artifacts": ["no-colon"]}])


@pytest.mark.short
def test_bind_resolves_capabilities(context):
    model = Model.from_yaml(VALID_YAML).bind(context)
    assert context.model is model

    app = model.get_module("Domain/app")
    scm = app.get_capability(Capability.SCM)
    assert isinstance(scm, GitScmAdapter)
    assert scm.repos_url == "https://git.example.com/Domain/app"
    assert isinstance(app.get_capability(Capability.REFERENCE_MANAGER), MavenReferenceManager)
    assert isinstance(
        app.get_capability(Capability.ARTIFACT_VERSION_MAPPER), SimpleArtifactVersionMapper
    )

    lib = model.get_module(NodePath.parse("Domain/Sub/lib"))
    assert lib.get_capability(Capability.SCM).repos_url == "https://git.example.com/Domain/Sub/library"
    assert lib.get_capability(Capability.REFERENCE_MANAGER) is None
    with pytest.raises(ConfigurationError):
        lib.require_capability(Capability.REFERENCE_MANAGER)


@pytest.mark.short
def test_bind_unknown_implementation(context):
    model = Model.from_yaml(
        """
modules:
  - path: A/b
    properties:
      GIT_REPOS_COMPLETE_URL: /tmp/b.git
    capabilities:
      scm: svn
"""
    )
    with pytest.raises(ConfigurationError, match="unknown implementation 'svn'"):
        model.bind(context)
