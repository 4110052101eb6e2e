"""Launch descriptor consumed by the external debug front-end."""

import logging
import os
import shlex
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from raspdebug.layout import REMOTE_DEBUGGER_PATH, REMOTE_DOTNET_FOLDER, remote_program_folder
from raspdebug.settings.connections import ConnectionProfile

logger = logging.getLogger(__name__)

DESCRIPTOR_VERSION = "0.2.0"


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LaunchConfiguration(_Model):
    """One launch target in the descriptor."""
    name: str = "Raspberry Debug"
    type: str = "coreclr"
    request: str = "launch"
    program: str
    args: List[str] = Field(default_factory=list)
    cwd: str
    stop_at_entry: bool = False
    console: str = "internalConsole"
    env: Dict[str, str] = Field(default_factory=dict)


class LaunchDescriptor(_Model):
    """Serialized launch settings.

    Attributes:
        version: Descriptor format version
        adapter: Local program that starts the remote debug adapter (ssh)
        adapter_args: Arguments for ``adapter``, as one shell-quoted string
        configurations: Launch configurations
    """
    version: str = DESCRIPTOR_VERSION
    adapter: str
    adapter_args: str
    configurations: List[LaunchConfiguration]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "LaunchDescriptor":
        return cls.model_validate_json(text)


def build_adapter_args(profile: ConnectionProfile, keys_dir: Path) -> str:
    """ssh arguments that start vsdbg on the target."""
    args: List[str] = []
    key = profile.resolve_key_path(keys_dir)
    if key is not None:
        args += ["-i", str(key)]
    args += [
        "-o", "StrictHostKeyChecking=no",
        "-p", str(profile.port),
        f"{profile.user}@{profile.host}",
        REMOTE_DEBUGGER_PATH,
        "--interpreter=vscode",
    ]
    return shlex.join(args)


def build_launch_descriptor(
    profile: ConnectionProfile,
    program_name: str,
    assembly_name: str,
    runtime_version: str,
    keys_dir: Path,
    args: Sequence[str] = (),
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    ssh_path: str = "ssh",
    stop_at_entry: bool = False,
) -> LaunchDescriptor:
    """Build the descriptor for a program uploaded to the target.

    Args:
        profile: Target connection
        program_name: Name of the uploaded program folder
        assembly_name: Program file inside that folder
        runtime_version: Installed runtime version, exported as DOTNET_ROOT
        keys_dir: Folder for resolving relative key paths
        args: Program arguments
        env: Extra environment variables
        cwd: Remote working directory; defaults to the program folder
        ssh_path: Local ssh client
        stop_at_entry: Break at the program entry point

    Returns:
        LaunchDescriptor with a single configuration
    """
    folder = remote_program_folder(profile.user, program_name)
    environment = {"DOTNET_ROOT": f"{REMOTE_DOTNET_FOLDER}/{runtime_version}"}
    environment.update(env or {})

    configuration = LaunchConfiguration(
        program=f"{folder}/{assembly_name}",
        args=list(args),
        cwd=cwd or folder,
        stop_at_entry=stop_at_entry,
        env=environment,
    )
    return LaunchDescriptor(
        adapter=ssh_path,
        adapter_args=build_adapter_args(profile, keys_dir),
        configurations=[configuration],
    )


def write_descriptor(descriptor: LaunchDescriptor, path: Path) -> Path:
    """Write a descriptor to a file the caller keeps."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(descriptor.to_json(), encoding="utf-8")
    return path


@contextmanager
def transient_descriptor(descriptor: LaunchDescriptor) -> Iterator[Path]:
    """Write a descriptor to a temp file that is deleted when the block exits.

    Example:
        with transient_descriptor(descriptor) as path:
            await frontend.launch(path)
    """
    fd, name = tempfile.mkstemp(prefix="raspdebug-", suffix=".json")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(descriptor.to_json())
        logger.debug(f"Wrote launch descriptor {path}")
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Cannot delete launch descriptor {path}: {e}")
