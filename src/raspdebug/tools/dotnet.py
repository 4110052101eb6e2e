"""Local dotnet toolchain invocation."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from raspdebug.errors import ToolchainError

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Captured output of a finished local process."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def all_text(self) -> str:
        """stdout followed by stderr, for diagnostics."""
        return "\n".join(part for part in (self.stdout.rstrip(), self.stderr.rstrip()) if part)


class DotnetToolchain:
    """Runs the workstation's ``dotnet`` CLI.

    Example:
        dotnet = DotnetToolchain()
        listing = await dotnet.list_sdks()
        result = await dotnet.publish(project, "Debug", "linux-arm", out_dir)
    """

    def __init__(self, dotnet_path: str = "dotnet") -> None:
        """Initialize toolchain wrapper.

        Args:
            dotnet_path: Path to the dotnet executable
        """
        self.dotnet_path = dotnet_path

    async def run(self, args: List[str], cwd: Optional[Path] = None) -> ProcessResult:
        """Run dotnet with arguments and capture its output.

        Raises:
            ToolchainError: If the executable cannot be started
        """
        cmd = [self.dotnet_path, *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError:
            raise ToolchainError(
                f"dotnet not found at '{self.dotnet_path}'\n"
                f"Try: --dotnet-path /path/to/dotnet\n"
                f"Or install the .NET SDK: https://dot.net"
            )
        except PermissionError:
            raise ToolchainError(
                f"Permission denied running dotnet at '{self.dotnet_path}'"
            )

        stdout, stderr = await process.communicate()
        return ProcessResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    async def list_sdks(self) -> str:
        """Return the raw ``dotnet --list-sdks`` output.

        The output looks like::

            3.1.402 [C:\\Program Files\\dotnet\\sdk]
            5.0.100 [C:\\Program Files\\dotnet\\sdk]

        Raises:
            ToolchainError: On a non-zero exit code
        """
        result = await self.run(["--list-sdks"])
        if not result.ok:
            raise ToolchainError(
                f"[dotnet --list-sdks] failed with exitcode={result.exit_code}: {result.all_text}"
            )
        return result.stdout

    async def publish(
        self,
        project_path: Path,
        configuration: str,
        runtime: str,
        output_folder: Path,
    ) -> ProcessResult:
        """Publish a project as a framework-dependent app.

        Args:
            project_path: Project file
            configuration: Build configuration (Debug, Release)
            runtime: Runtime identifier (e.g. linux-arm)
            output_folder: Explicit output directory

        Returns:
            ProcessResult; callers check ``ok``
        """
        logger.info(f"Publishing: {project_path}")
        return await self.run([
            "publish",
            "--configuration", configuration,
            "--runtime", runtime,
            "--no-self-contained",
            "--output", str(output_folder),
            str(project_path),
        ])
