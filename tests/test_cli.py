"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from conftest import make_project
from raspdebug import __version__
from raspdebug.cli import app
from raspdebug.core.types import LaunchOutcome, LaunchPhase
from raspdebug.settings.connections import ConnectionRegistry
from raspdebug.settings.projects import ProjectSettingsStore


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def settings_dir(tmp_path: Path) -> Path:
    return tmp_path / "settings"


def invoke(runner: CliRunner, settings_dir: Path, *args: str):
    return runner.invoke(app, [*args, "--settings-dir", str(settings_dir)])


class TestVersion:
    """Test the version command."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestConnectionsCommands:
    """Test connection management commands."""

    def test_add_and_list(self, runner: CliRunner, settings_dir: Path) -> None:
        result = invoke(runner, settings_dir, "connections", "add", "pi4", "10.0.0.4", "--key", "pi4_rsa")
        assert result.exit_code == 0

        saved = json.loads((settings_dir / "connections.json").read_text())
        assert saved[0]["name"] == "pi4"
        assert saved[0]["keyPath"] == "pi4_rsa"
        assert saved[0]["isDefault"] is True

        result = invoke(runner, settings_dir, "connections", "list")
        assert result.exit_code == 0
        assert "pi4" in result.output

    def test_add_duplicate_fails(self, runner: CliRunner, settings_dir: Path) -> None:
        invoke(runner, settings_dir, "connections", "add", "pi4", "10.0.0.4")
        result = invoke(runner, settings_dir, "connections", "add", "PI4", "10.0.0.9")
        assert result.exit_code == 1

    def test_default_and_remove(self, runner: CliRunner, settings_dir: Path) -> None:
        invoke(runner, settings_dir, "connections", "add", "alpha", "10.0.0.1")
        invoke(runner, settings_dir, "connections", "add", "beta", "10.0.0.2")

        assert invoke(runner, settings_dir, "connections", "default", "beta").exit_code == 0
        registry = ConnectionRegistry(settings_dir / "connections.json")
        assert registry.get_default().name == "beta"

        assert invoke(runner, settings_dir, "connections", "remove", "beta").exit_code == 0
        assert registry.get_default().name == "alpha"

    def test_unknown_connection(self, runner: CliRunner, settings_dir: Path) -> None:
        assert invoke(runner, settings_dir, "connections", "remove", "ghost").exit_code == 1
        assert invoke(runner, settings_dir, "connections", "default", "ghost").exit_code == 1


class TestTargetCommand:
    """Test per-project target selection."""

    def test_set_target(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path / "work")
        invoke(runner, settings_dir, "connections", "add", "bench", "10.0.0.5")

        result = invoke(runner, settings_dir, "target", str(project), "bench")

        assert result.exit_code == 0
        settings = ProjectSettingsStore(tmp_path / "work").get("Blinky/Blinky.csproj")
        assert settings.remote_target == "bench"
        assert settings.remote_debug_enabled is True

    def test_disable(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path / "work")

        result = invoke(runner, settings_dir, "target", str(project), "--disable")

        assert result.exit_code == 0
        settings = ProjectSettingsStore(tmp_path / "work").get("Blinky/Blinky.csproj")
        assert settings.remote_debug_enabled is False

    def test_unknown_connection(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path / "work")
        assert invoke(runner, settings_dir, "target", str(project), "ghost").exit_code == 1


class TestDebugCommand:
    """Test the debug command's exit codes."""

    def run_debug(self, runner: CliRunner, settings_dir: Path, project: Path, outcome: LaunchOutcome):
        with patch("raspdebug.cli._configure_logging"), \
             patch("raspdebug.cli.DebugLauncher") as launcher_cls:
            launcher_cls.return_value.launch = AsyncMock(return_value=outcome)
            result = invoke(runner, settings_dir, "debug", str(project), "--yes")
        return result, launcher_cls

    def test_success(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path)
        outcome = LaunchOutcome(ok=True, phase=LaunchPhase.DONE, message="Debugger launched")

        result, launcher_cls = self.run_debug(runner, settings_dir, project, outcome)

        assert result.exit_code == 0
        assert "Debugger launched" in result.output
        request = launcher_cls.return_value.launch.call_args.args[0]
        assert request.project_path == project
        assert launcher_cls.call_args.kwargs["confirm"] is None

    def test_failure(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path)
        outcome = LaunchOutcome(ok=False, phase=LaunchPhase.BUILD, message="publish failed")

        result, _ = self.run_debug(runner, settings_dir, project, outcome)

        assert result.exit_code == 1
        assert "build" in result.output

    def test_cancelled(self, runner: CliRunner, settings_dir: Path, tmp_path: Path) -> None:
        project = make_project(tmp_path)
        outcome = LaunchOutcome(ok=False, phase=LaunchPhase.CANCELLED, message="Cancelled")

        result, _ = self.run_debug(runner, settings_dir, project, outcome)

        assert result.exit_code == 1
        assert "Cancelled" in result.output
