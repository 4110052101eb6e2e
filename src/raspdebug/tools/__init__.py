"""Local dotnet toolchain and remote SSH channel."""

from raspdebug.tools.dotnet import (
    DotnetToolchain,
    ProcessResult,
)
from raspdebug.tools.ssh import (
    SshConnection,
    CommandResult,
)

__all__ = [
    # Local toolchain
    "DotnetToolchain",
    "ProcessResult",
    # Remote channel
    "SshConnection",
    "CommandResult",
]
