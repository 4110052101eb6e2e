"""SSH/SFTP channel to a remote target via paramiko."""

import asyncio
import logging
import os
import posixpath
import socket
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import paramiko

from raspdebug.errors import RemoteConnectionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of one remote shell command."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def all_text(self) -> str:
        return "\n".join(part for part in (self.stdout.rstrip(), self.stderr.rstrip()) if part)


class SshConnection:
    """Authenticated command and file-transfer channel to one host.

    paramiko is blocking, so every call runs in a worker thread via
    ``asyncio.to_thread``. Callers are expected to serialize commands.

    Example:
        conn = SshConnection("192.168.1.20", "pi", key_path=Path("~/.raspberry/keys/pi4"))
        await conn.connect()
        result = await conn.run("uname -m")
        await conn.close()
    """

    def __init__(
        self,
        host: str,
        user: str,
        key_path: Optional[Path] = None,
        port: int = 22,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the connection (does not connect).

        Args:
            host: Hostname or IP address
            user: Login user
            key_path: Private key file; None uses the SSH agent / default keys
            port: SSH port
            timeout: Connect timeout in seconds
        """
        self.host = host
        self.user = user
        self.key_path = key_path
        self.port = port
        self.timeout = timeout
        self._client: Optional[paramiko.SSHClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    # === Lifecycle ===

    async def connect(self) -> None:
        """Open the SSH connection.

        Raises:
            RemoteConnectionError: On authentication failure, unreachable host or timeout
        """
        logger.info(f"Connecting to {self.user}@{self.host}:{self.port}")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            await asyncio.to_thread(
                client.connect,
                self.host,
                port=self.port,
                username=self.user,
                key_filename=str(self.key_path) if self.key_path else None,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise RemoteConnectionError(
                f"Authentication failed for {self.user}@{self.host}: {e}"
            ) from e
        except paramiko.ssh_exception.NoValidConnectionsError as e:
            client.close()
            raise RemoteConnectionError(f"Cannot reach {self.host}:{self.port}: {e}") from e
        except socket.timeout as e:
            client.close()
            raise RemoteConnectionError(f"Timed out connecting to {self.host}:{self.port}") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise RemoteConnectionError(f"Connection to {self.host} failed: {e}") from e

        self._client = client

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await asyncio.to_thread(client.close)
        except Exception as e:
            logger.warning(f"Error closing connection to {self.host}: {e}")

    # === Commands ===

    async def run(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Execute a shell command and wait for it to finish.

        Args:
            command: Command line, run by the remote login shell
            timeout: Channel timeout in seconds; None waits indefinitely

        Returns:
            CommandResult with exit code and decoded output

        Raises:
            RemoteConnectionError: If the channel is closed or drops mid-command
        """
        client = self._require_client()
        logger.debug(f"[{self.host}] $ {command}")

        def _exec() -> CommandResult:
            _, stdout, stderr = client.exec_command(command, timeout=timeout)
            out = stdout.read().decode(errors="replace")
            err = stderr.read().decode(errors="replace")
            code = stdout.channel.recv_exit_status()
            return CommandResult(exit_code=code, stdout=out, stderr=err)

        try:
            result = await asyncio.to_thread(_exec)
        except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
            raise RemoteConnectionError(f"Command failed on {self.host}: {e}") from e

        if not result.ok:
            logger.debug(f"[{self.host}] exit={result.exit_code}: {result.all_text}")
        return result

    # === File Transfer ===

    async def upload_tree(self, local_dir: Path, remote_dir: str) -> int:
        """Copy a local directory tree into an existing remote directory.

        File permission bits are preserved.

        Args:
            local_dir: Source directory
            remote_dir: Destination directory (POSIX path)

        Returns:
            Number of files copied

        Raises:
            RemoteConnectionError: If the channel is closed or a transfer fails
        """
        client = self._require_client()
        logger.info(f"Uploading {local_dir} -> {self.host}:{remote_dir}")

        def _upload() -> int:
            count = 0
            sftp = client.open_sftp()
            try:
                for root, dirs, files in os.walk(local_dir):
                    rel = Path(root).relative_to(local_dir)
                    target = remote_dir if rel == Path(".") else posixpath.join(remote_dir, rel.as_posix())
                    for name in sorted(dirs):
                        _mkdir(sftp, posixpath.join(target, name))
                    for name in sorted(files):
                        source = Path(root) / name
                        dest = posixpath.join(target, name)
                        sftp.put(str(source), dest)
                        sftp.chmod(dest, stat.S_IMODE(source.stat().st_mode))
                        count += 1
            finally:
                sftp.close()
            return count

        try:
            count = await asyncio.to_thread(_upload)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise RemoteConnectionError(f"Upload to {self.host}:{remote_dir} failed: {e}") from e

        logger.info(f"Uploaded {count} files to {self.host}:{remote_dir}")
        return count

    # === Internal ===

    def _require_client(self) -> paramiko.SSHClient:
        if self._client is None:
            raise RemoteConnectionError(f"Not connected to {self.host}")
        return self._client

    # === Context Manager ===

    async def __aenter__(self) -> "SshConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _mkdir(sftp: paramiko.SFTPClient, path: str) -> None:
    try:
        sftp.mkdir(path)
    except IOError:
        # already exists
        sftp.stat(path)
