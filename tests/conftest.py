"""Pytest fixtures for raspdebug tests."""

import json
import shlex
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple
from unittest.mock import patch

import pytest

from raspdebug.catalog.catalog import VersionCatalog
from raspdebug.settings.connections import ConnectionProfile
from raspdebug.tools.ssh import CommandResult


class FakeRemote:
    """In-memory stand-in for SshConnection.

    Understands the small set of shell commands RemoteSession issues
    (``test``, ``touch``, ``rm``, ``mv``, ``tar``, ``bash`` installer) and
    tracks which files exist. Every command is recorded.
    """

    def __init__(
        self,
        machine: str = "armv7l",
        model: Optional[str] = "Raspberry Pi 4 Model B Rev 1.4",
        files: Iterable[str] = (),
        fail_on: Iterable[str] = (),
    ) -> None:
        self.machine = machine
        self.model = model
        self.files: Set[str] = set(files)
        self.executables: Set[str] = set()
        self.fail_on = list(fail_on)
        self.commands: List[str] = []
        self.uploads: List[Tuple[Path, str]] = []
        self.connected = False
        self.closed = False

    # SshConnection interface

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def upload_tree(self, local_dir: Path, remote_dir: str) -> int:
        self.uploads.append((Path(local_dir), remote_dir))
        return sum(1 for p in Path(local_dir).rglob("*") if p.is_file())

    async def run(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        self.commands.append(command)

        if command == "uname -m":
            return CommandResult(0, self.machine + "\n", "")
        if command.startswith("cat /proc/device-tree/model"):
            return CommandResult(0, self.model or "", "")
        if command.startswith("ls -1 "):
            found = sorted(
                f for f in self.files
                if f.startswith("/lib/dotnet/") and f.endswith("/.installed") and f.count("/") == 4
            )
            return CommandResult(0 if found else 2, "\n".join(found), "")

        for part in command.split(" && "):
            code = self._apply(part)
            if code != 0:
                return CommandResult(code, "", f"failed: {part}")
        return CommandResult(0, "", "")

    # helpers

    def count(self, fragment: str) -> int:
        """Number of recorded commands containing a fragment."""
        return sum(1 for c in self.commands if fragment in c)

    def _apply(self, part: str) -> int:
        if any(fragment in part for fragment in self.fail_on):
            return 1

        tokens = shlex.split(part)
        if tokens and tokens[0] == "sudo":
            tokens = tokens[1:]
        if not tokens:
            return 0

        verb = tokens[0]
        if verb == "test":
            flag, path = tokens[1], tokens[2]
            pool = self.executables if flag == "-x" else self.files
            return 0 if path in pool else 1
        if verb == "touch":
            self.files.add(tokens[1])
        elif verb == "rm":
            self._remove(tokens[-1])
        elif verb == "mv":
            self._rename(tokens[1], tokens[2])
        elif verb == "tar" and "-C" in tokens:
            staging = tokens[tokens.index("-C") + 1]
            self.files.add(f"{staging}/dotnet")
            self.executables.add(f"{staging}/dotnet")
        elif verb == "bash":
            staging = tokens[tokens.index("-l") + 1]
            self.files.add(f"{staging}/vsdbg")
            self.executables.add(f"{staging}/vsdbg")
        return 0

    def _remove(self, path: str) -> None:
        for pool in (self.files, self.executables):
            for item in [f for f in pool if f == path or f.startswith(path + "/")]:
                pool.discard(item)

    def _rename(self, src: str, dst: str) -> None:
        for pool in (self.files, self.executables):
            moved = [f for f in pool if f == src or f.startswith(src + "/")]
            for item in moved:
                pool.discard(item)
                pool.add(dst + item[len(src):])


@pytest.fixture
def catalog() -> VersionCatalog:
    """The bundled catalogs."""
    return VersionCatalog()


@pytest.fixture
def profile() -> ConnectionProfile:
    """A default connection with a relative key path."""
    return ConnectionProfile(
        name="pi4", host="192.168.1.20", user="pi", key_path="pi4", is_default=True
    )


@pytest.fixture
def fake_remote() -> FakeRemote:
    """A 32-bit Raspberry Pi OS target with nothing installed."""
    return FakeRemote()


@pytest.fixture
def patched_ssh(fake_remote: FakeRemote):
    """Route RemoteSession's SshConnection to the fake remote."""
    with patch("raspdebug.core.session.SshConnection", return_value=fake_remote) as cls:
        yield cls


PROJECT_XML = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <OutputType>Exe</OutputType>
    <TargetFramework>{framework}</TargetFramework>{extra}
  </PropertyGroup>
</Project>
"""

SOLUTION_TEXT = """Microsoft Visual Studio Solution File, Format Version 12.00
Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "{name}", "{name}\\{name}.csproj", "{{11111111-2222-3333-4444-555555555555}}"
EndProject
"""


def make_project(
    root: Path,
    name: str = "Blinky",
    framework: str = "netcoreapp3.1",
    extra: str = "",
    launch_settings: Optional[dict] = None,
    with_solution: bool = True,
) -> Path:
    """Create a project (and optionally a solution) under root."""
    project_dir = root / name
    project_dir.mkdir(parents=True, exist_ok=True)
    project_path = project_dir / f"{name}.csproj"
    project_path.write_text(PROJECT_XML.format(framework=framework, extra=extra))

    if with_solution:
        (root / f"{name}.sln").write_text(SOLUTION_TEXT.format(name=name))

    if launch_settings is not None:
        props = project_dir / "Properties"
        props.mkdir()
        (props / "launchSettings.json").write_text(json.dumps(launch_settings))

    return project_path


@pytest.fixture
def dotnet_project(tmp_path: Path) -> Path:
    """A netcoreapp3.1 project inside a solution."""
    return make_project(tmp_path)
