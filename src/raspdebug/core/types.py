"""Shared data types and workstation settings for the Raspberry debugger."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

# Workstation publish target
PUBLISH_RUNTIME = "linux-arm"

DEFAULT_SETTINGS_DIR = "~/.raspberry"
CONNECTIONS_FILE = "connections.json"
KEYS_FOLDER = "keys"


@dataclass
class DebuggerSettings:
    """Workstation-side configuration.

    Attributes:
        settings_dir: Folder with connections.json and keys/
        dotnet_path: Local dotnet executable
        ssh_path: Local ssh client, used as the debug adapter transport
        frontend: Debug front-end command; None writes the descriptor only
        connect_timeout: SSH connect timeout in seconds
    """
    settings_dir: Path
    dotnet_path: str = "dotnet"
    ssh_path: str = "ssh"
    frontend: Optional[str] = None
    connect_timeout: float = 10.0

    @property
    def keys_dir(self) -> Path:
        return self.settings_dir / KEYS_FOLDER

    @property
    def connections_path(self) -> Path:
        return self.settings_dir / CONNECTIONS_FILE

    @classmethod
    def from_env(cls) -> "DebuggerSettings":
        """Build settings from RASPDEBUG_* environment variables."""
        return cls(
            settings_dir=Path(os.environ.get("RASPDEBUG_SETTINGS_DIR", DEFAULT_SETTINGS_DIR)).expanduser(),
            dotnet_path=os.environ.get("RASPDEBUG_DOTNET_PATH", "dotnet"),
            ssh_path=os.environ.get("RASPDEBUG_SSH_PATH", "ssh"),
            frontend=os.environ.get("RASPDEBUG_FRONTEND") or None,
        )


class LaunchPhase(str, Enum):
    """Phase in which a launch attempt ended."""
    PRECONDITION = "precondition"
    BUILD = "build"
    RESOLVE = "resolve"
    CONNECT = "connect"
    PROVISION = "provision"
    UPLOAD = "upload"
    LAUNCH = "launch"
    CANCELLED = "cancelled"
    DONE = "done"


@dataclass
class LaunchOutcome:
    """Single user-facing result of a launch attempt."""
    ok: bool
    phase: LaunchPhase
    message: str
    descriptor: Optional[str] = None
