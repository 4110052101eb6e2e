"""External debug front-end invocation."""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import List

from raspdebug.errors import LaunchError

logger = logging.getLogger(__name__)

DESCRIPTOR_PLACEHOLDER = "{descriptor}"


class DebugFrontend:
    """Runs the configured front-end command with a descriptor path.

    Example:
        frontend = DebugFrontend("code --launch {descriptor}")
        await frontend.launch(Path("/tmp/raspdebug-x.json"))
    """

    def __init__(self, command: str) -> None:
        """Initialize the front-end.

        Args:
            command: Command line; ``{descriptor}`` is replaced by the
                descriptor path, otherwise the path is appended
        """
        if not command.strip():
            raise ValueError("Front-end command is empty")
        self.command = command

    def argv(self, descriptor_path: Path) -> List[str]:
        tokens = shlex.split(self.command)
        path = str(descriptor_path)
        if any(DESCRIPTOR_PLACEHOLDER in token for token in tokens):
            return [token.replace(DESCRIPTOR_PLACEHOLDER, path) for token in tokens]
        return [*tokens, path]

    async def launch(self, descriptor_path: Path) -> int:
        """Run the front-end and wait for it to exit.

        Returns:
            The exit code (always 0)

        Raises:
            LaunchError: If the command cannot start or exits non-zero
        """
        argv = self.argv(descriptor_path)
        logger.info(f"Launching debug front-end: {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(*argv)
        except FileNotFoundError:
            raise LaunchError(f"Debug front-end not found: '{argv[0]}'")
        except PermissionError:
            raise LaunchError(f"Permission denied running debug front-end '{argv[0]}'")

        code = await process.wait()
        if code != 0:
            raise LaunchError(f"Debug front-end exited with code {code}")
        return code
