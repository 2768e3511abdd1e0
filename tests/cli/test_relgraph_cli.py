import pytest
from click.testing import CliRunner

from releasegraph import __version__
from releasegraph.cli.main import cli
from releasegraph.cli.utils.context import parse_properties


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path, git_helpers):
    """Invoke the CLI on a workspace under tmp_path with a model of the given remotes."""

    def _invoke(remotes, *args):
        model_file = tmp_path / "model.yaml"
        model_file.write_text(git_helpers.model_yaml(remotes))
        return runner.invoke(
            cli,
            [
                "--workspace",
                str(tmp_path / "workspace"),
                "--model",
                str(model_file),
                "--config",
                str(tmp_path / "releasegraph.cfg"),
                *args,
            ],
        )

    return _invoke


@pytest.mark.short
class TestCliBasics:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in (
            "checkout",
            "create-version",
            "base-version",
            "versions",
            "commits",
            "merge",
            "change-reference",
        ):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_debug_option_on_commands(self, runner):
        result = runner.invoke(cli, ["checkout", "--help"])
        assert result.exit_code == 0
        assert "--debug / --no-debug" in result.output

    def test_missing_model(self, runner, tmp_path, capture_logs):
        result = runner.invoke(
            cli,
            [
                "--workspace",
                str(tmp_path / "workspace"),
                "--config",
                str(tmp_path / "releasegraph.cfg"),
                "versions",
                "Domain/app",
            ],
        )
        assert result.exit_code == 1
        assert "not found" in capture_logs.getvalue()

    def test_invalid_property_override(self, runner):
        result = runner.invoke(cli, ["-D", "NO_VALUE", "versions", "Domain/app"])
        assert result.exit_code == 2

    def test_parse_properties(self):
        assert parse_properties(["A=1", " B =x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}

    def test_exclude_and_replace_are_exclusive(self, runner):
        result = runner.invoke(
            cli, ["merge", "Domain/app", "D/feature", "--exclude", "abc", "--replace"]
        )
        assert result.exit_code == 2
        assert "cannot be used together" in result.output


@pytest.mark.integration
class TestModuleCommands:
    def test_checkout_and_versions(self, invoke, app_remote, tmp_path):
        remotes = {"app": app_remote}

        result = invoke(remotes, "checkout", "Domain/app")
        assert result.exit_code == 0, result.output
        assert (tmp_path / "workspace" / "app" / "README.md").exists()

        result = invoke(remotes, "create-version", "Domain/app", "S/1.0", "--no-switch")
        assert result.exit_code == 0, result.output

        result = invoke(remotes, "versions", "Domain/app")
        assert result.exit_code == 0, result.output
        assert "Domain/app static versions" in result.output
        assert "S/1.0" in result.output

        result = invoke(remotes, "base-version", "Domain/app", "S/1.0")
        assert result.exit_code == 0, result.output
        assert "S/1.0 created from D/master at " in result.output

        result = invoke(remotes, "base-version", "Domain/app", "D/master")
        assert "No base version recorded for D/master." in result.output

    def test_commits_table(self, invoke, app_remote):
        result = invoke({"app": app_remote}, "commits", "Domain/app", "D/master")
        assert result.exit_code == 0, result.output
        assert "Initial commit" in result.output

    def test_invalid_version_argument(self, invoke, app_remote):
        result = invoke({"app": app_remote}, "checkout", "Domain/app", "X/1")
        assert result.exit_code == 2

    def test_unknown_module(self, invoke, app_remote, capture_logs):
        result = invoke({"app": app_remote}, "versions", "Domain/other")
        assert result.exit_code == 1
        assert "module is not defined in the model" in capture_logs.getvalue()

    def test_merge_without_user_dir(self, invoke, app_remote, capture_logs):
        result = invoke({"app": app_remote}, "merge", "Domain/app", "D/master")
        assert result.exit_code == 1
        assert "Check it out first" in capture_logs.getvalue()


@pytest.mark.integration
class TestChangeReferenceCommand:
    def test_change_reference(self, invoke, app_remote, lib_remote, tmp_path, git_helpers):
        result = invoke(
            {"app": app_remote, "lib": lib_remote},
            "change-reference",
            "Domain/app:D/master",
            "--map",
            "Domain/lib:D/master -> D/release",
        )
        assert result.exit_code == 0, result.output

        git_helpers.clone_remote(app_remote, tmp_path / "inspect")
        assert "release-SNAPSHOT" in (tmp_path / "inspect" / "pom.xml").read_text()

    def test_mapping_from_property_overrides(self, runner, app_remote, lib_remote, tmp_path, git_helpers):
        model_file = tmp_path / "model.yaml"
        model_file.write_text(git_helpers.model_yaml({"app": app_remote, "lib": lib_remote}))
        result = runner.invoke(
            cli,
            [
                "--workspace",
                str(tmp_path / "workspace"),
                "--model",
                str(model_file),
                "--config",
                str(tmp_path / "releasegraph.cfg"),
                "-D",
                "MAP_MODULE_VERSION.1=Domain/lib:D/master -> D/release",
                "change-reference",
                "Domain/app:D/master",
            ],
        )
        assert result.exit_code == 0, result.output

    def test_no_mapping(self, invoke, app_remote, lib_remote, capture_logs):
        result = invoke(
            {"app": app_remote, "lib": lib_remote}, "change-reference", "Domain/app:D/master"
        )
        assert result.exit_code == 1
        assert "No module version mapping given." in capture_logs.getvalue()
