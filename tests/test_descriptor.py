"""Tests for the launch descriptor."""

import json
import shlex
from pathlib import Path

import pytest

from raspdebug.launch.descriptor import (
    LaunchDescriptor,
    build_adapter_args,
    build_launch_descriptor,
    transient_descriptor,
    write_descriptor,
)
from raspdebug.settings.connections import ConnectionProfile


@pytest.fixture
def descriptor(profile: ConnectionProfile, tmp_path: Path) -> LaunchDescriptor:
    return build_launch_descriptor(
        profile,
        program_name="Blinky",
        assembly_name="Blinky",
        runtime_version="3.1.23",
        keys_dir=tmp_path / "keys",
        args=["--pin", "17"],
        env={"LOG_LEVEL": "debug"},
    )


class TestBuild:
    """Test building descriptors."""

    def test_program_and_environment(self, descriptor: LaunchDescriptor) -> None:
        config = descriptor.configurations[0]

        assert config.type == "coreclr"
        assert config.request == "launch"
        assert config.program == "/home/pi/vsdbg/Blinky/Blinky"
        assert config.cwd == "/home/pi/vsdbg/Blinky"
        assert config.args == ["--pin", "17"]
        assert config.env == {"DOTNET_ROOT": "/lib/dotnet/3.1.23", "LOG_LEVEL": "debug"}
        assert config.stop_at_entry is False

    def test_adapter(self, descriptor: LaunchDescriptor, tmp_path: Path) -> None:
        assert descriptor.adapter == "ssh"
        assert shlex.split(descriptor.adapter_args) == [
            "-i", str(tmp_path / "keys" / "pi4"),
            "-o", "StrictHostKeyChecking=no",
            "-p", "22",
            "pi@192.168.1.20",
            "/lib/dotnet/vsdbg/vsdbg",
            "--interpreter=vscode",
        ]

    def test_adapter_without_key(self, tmp_path: Path) -> None:
        profile = ConnectionProfile(name="bench", host="bench.local", user="dev", port=2222)
        args = shlex.split(build_adapter_args(profile, tmp_path))
        assert "-i" not in args
        assert args[:4] == ["-o", "StrictHostKeyChecking=no", "-p", "2222"]
        assert "dev@bench.local" in args

    def test_custom_cwd(self, profile: ConnectionProfile, tmp_path: Path) -> None:
        descriptor = build_launch_descriptor(
            profile, "Blinky", "Blinky", "3.1.23", tmp_path, cwd="/srv/blinky", stop_at_entry=True
        )
        assert descriptor.configurations[0].cwd == "/srv/blinky"
        assert descriptor.configurations[0].stop_at_entry is True


class TestSerialization:
    """Test the JSON form."""

    def test_camel_case_keys(self, descriptor: LaunchDescriptor) -> None:
        data = json.loads(descriptor.to_json())

        assert data["version"] == "0.2.0"
        assert "adapterArgs" in data
        assert data["configurations"][0]["stopAtEntry"] is False
        assert data["configurations"][0]["env"]["DOTNET_ROOT"] == "/lib/dotnet/3.1.23"

    def test_parse_back(self, descriptor: LaunchDescriptor) -> None:
        assert LaunchDescriptor.from_json(descriptor.to_json()) == descriptor

    def test_write_descriptor(self, descriptor: LaunchDescriptor, tmp_path: Path) -> None:
        path = write_descriptor(descriptor, tmp_path / "out" / "launch.json")
        assert LaunchDescriptor.from_json(path.read_text()) == descriptor


class TestTransientDescriptor:
    """Test the temporary descriptor file."""

    def test_deleted_after_use(self, descriptor: LaunchDescriptor) -> None:
        with transient_descriptor(descriptor) as path:
            assert path.exists()
            assert path.name.startswith("raspdebug-")
            assert LaunchDescriptor.from_json(path.read_text()) == descriptor
        assert not path.exists()

    def test_deleted_on_error(self, descriptor: LaunchDescriptor) -> None:
        seen = []
        with pytest.raises(RuntimeError):
            with transient_descriptor(descriptor) as path:
                seen.append(path)
                raise RuntimeError("front-end crashed")
        assert not seen[0].exists()

    def test_already_deleted(self, descriptor: LaunchDescriptor) -> None:
        with transient_descriptor(descriptor) as path:
            path.unlink()
        assert not path.exists()
