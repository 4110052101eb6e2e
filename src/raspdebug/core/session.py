"""Remote session: one authenticated connection and idempotent provisioning."""

import asyncio
import logging
import shlex
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

from raspdebug.catalog.catalog import VersionCatalog
from raspdebug.catalog.models import Architecture, DeviceModel
from raspdebug.catalog.semver import SemanticVersion
from raspdebug.core.types import DEFAULT_SETTINGS_DIR, KEYS_FOLDER
from raspdebug.errors import ProvisioningError, RemoteConnectionError
from raspdebug.layout import (
    DEBUGGER_INSTALLER_URL,
    INSTALLED_MARKER,
    REMOTE_DEBUGGER_FOLDER,
    REMOTE_DEBUGGER_PATH,
    REMOTE_DOTNET_FOLDER,
    remote_program_folder,
)
from raspdebug.settings.connections import ConnectionProfile
from raspdebug.tools.ssh import CommandResult, SshConnection

logger = logging.getLogger(__name__)

_MACHINE_ARCHITECTURES = {
    "armv6l": Architecture.ARMV6,
    "armv7l": Architecture.ARM32,
    "armv8l": Architecture.ARM32,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
    "x86_64": Architecture.AMD64,
}


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PROVISIONING = "provisioning"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class RemoteState:
    """Target facts queried live at connect time.

    Attributes:
        machine: ``uname -m`` output
        architecture: OS architecture, None if unrecognized
        model: Board model from the device tree, if available
        device: Matching device catalog entry, if any
    """
    machine: str
    architecture: Optional[Architecture]
    model: Optional[str] = None
    device: Optional[DeviceModel] = None

    @property
    def supported(self) -> bool:
        if self.device is not None and self.device.architecture == Architecture.ARMV6:
            return False
        return self.architecture in (Architecture.ARM32, Architecture.ARM64)


def _q(value: str) -> str:
    return shlex.quote(value)


@dataclass
class RemoteSession:
    """Connection to one Raspberry for the lifetime of a debug launch.

    Provisioning verbs are idempotent: each first checks the target and
    returns immediately when its condition already holds. Installs are
    staged in a scratch folder and moved into place only after every
    sub-step succeeded, with an ``.installed`` marker written last.

    Verbs return True or raise ``ProvisioningError`` naming the failed
    sub-step. Nothing is retried automatically.

    Example:
        async with RemoteSession(profile, catalog) as session:
            await session.ensure_runtime_installed("3.1.23")
            await session.ensure_debugger_installed()
            await session.upload_artifact_tree(publish_dir, session.program_folder("Blinky"))
    """

    profile: ConnectionProfile
    catalog: VersionCatalog
    keys_dir: Path = field(default_factory=lambda: Path(DEFAULT_SETTINGS_DIR).expanduser() / KEYS_FOLDER)
    connect_timeout: float = 10.0
    use_sudo: bool = True

    # Internal state (not init params)
    state: SessionState = field(default=SessionState.DISCONNECTED, init=False)
    remote: Optional[RemoteState] = field(default=None, init=False)
    _conn: Optional[SshConnection] = field(default=None, init=False, repr=False)
    _lock: Optional[asyncio.Lock] = field(default=None, init=False, repr=False)

    # === Lifecycle ===

    async def connect(self) -> bool:
        """Connect and query the target's architecture and model.

        Returns:
            True once connected

        Raises:
            RemoteConnectionError: On authentication failure, unreachable host
                or timeout. The session then stays in CONNECTING and cannot
                be reused.
        """
        if self.state in (SessionState.CONNECTED, SessionState.PROVISIONING, SessionState.READY):
            return True
        if self.state is not SessionState.DISCONNECTED:
            raise RemoteConnectionError(
                f"Session to {self.profile.host} is {self.state.value}; create a new session"
            )

        self.state = SessionState.CONNECTING
        conn = SshConnection(
            host=self.profile.host,
            user=self.profile.user,
            key_path=self.profile.resolve_key_path(self.keys_dir),
            port=self.profile.port,
            timeout=self.connect_timeout,
        )
        await conn.connect()
        self._conn = conn

        try:
            self.remote = await self._query_remote_state(conn)
        except Exception:
            self._conn = None
            await conn.close()
            raise

        self.state = SessionState.CONNECTED
        logger.info(
            f"Connected to {self.profile.host}: {self.remote.machine}"
            + (f" ({self.remote.model})" if self.remote.model else "")
        )
        return True

    async def close(self) -> None:
        """Close the channel. Later verbs fail with RemoteConnectionError."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
        if self.state is not SessionState.CONNECTING:
            self.state = SessionState.CLOSED

    @property
    def connected(self) -> bool:
        return self.state in (SessionState.CONNECTED, SessionState.PROVISIONING, SessionState.READY)

    # === Queries ===

    async def is_runtime_installed(self, version: str) -> bool:
        """True if a committed install of the runtime version exists."""
        folder = f"{REMOTE_DOTNET_FOLDER}/{version}"
        result = await self._run(
            f"test -f {_q(f'{folder}/{INSTALLED_MARKER}')}"
            f" && test -x {_q(f'{folder}/dotnet')}"
        )
        return result.ok

    async def is_debugger_installed(self) -> bool:
        """True if a committed debugger install exists."""
        result = await self._run(
            f"test -f {_q(f'{REMOTE_DEBUGGER_FOLDER}/{INSTALLED_MARKER}')}"
            f" && test -x {_q(REMOTE_DEBUGGER_PATH)}"
        )
        return result.ok

    async def installed_runtime_versions(self) -> List[str]:
        """Runtime versions with a committed install, highest first."""
        result = await self._run(f"ls -1 {REMOTE_DOTNET_FOLDER}/*/{INSTALLED_MARKER} 2>/dev/null")
        versions = []
        for line in result.stdout.splitlines():
            parts = line.strip().split("/")
            if len(parts) >= 2 and parts[-1] == INSTALLED_MARKER:
                name = parts[-2]
                if SemanticVersion.try_parse(name) is not None:
                    versions.append(name)
        return sorted(versions, key=SemanticVersion.parse, reverse=True)

    def program_folder(self, program_name: str) -> str:
        """Remote upload folder for a program, unique per user and program."""
        return remote_program_folder(self.profile.user, program_name)

    # === Provisioning ===

    async def ensure_runtime_installed(self, version: str) -> bool:
        """Install a .NET runtime version unless it is already present.

        Args:
            version: Runtime version, e.g. "3.1.23"

        Returns:
            True when the runtime is installed

        Raises:
            ProvisioningError: With step package, device, download, verify,
                extract, commit or check
            RemoteConnectionError: If the channel is closed or drops
        """
        if await self.is_runtime_installed(version):
            logger.info(f".NET {version} is already installed on {self.profile.host}")
            return True

        architecture = self._require_supported()
        entry = self.catalog.find_by_version(version, architecture)
        if entry is None or not entry.link:
            raise ProvisioningError(
                "package",
                f"No .NET {version} package is known for {architecture.value}",
            )

        rid = architecture.runtime_identifier
        staging = f"{REMOTE_DOTNET_FOLDER}/.staging-{version}"
        target = f"{REMOTE_DOTNET_FOLDER}/{version}"
        download = f"/tmp/dotnet-{version}-{rid}.tar.gz"

        logger.info(f"Installing .NET {version} ({entry.name}) on {self.profile.host}")
        async with self._provisioning(staging, download):
            await self._step("download", f"curl -fsSL -o {_q(download)} {_q(entry.link)}",
                             f"Cannot download {entry.link}")
            if entry.sha512:
                await self._step("verify", f"echo {_q(f'{entry.sha512}  {download}')} | sha512sum -c --status",
                                 f"Checksum mismatch for {entry.link}")
            else:
                await self._step("verify", f"tar -tzf {_q(download)} > /dev/null",
                                 f"Corrupt download from {entry.link}")
            await self._step("extract", " && ".join([
                self._sudo(f"rm -rf {_q(staging)}"),
                self._sudo(f"mkdir -p {_q(staging)}"),
                self._sudo(f"tar -xzf {_q(download)} -C {_q(staging)}"),
            ]), f"Cannot extract .NET {version}")
            await self._step("extract", f"test -x {_q(f'{staging}/dotnet')}",
                             f"The .NET {version} package has no dotnet host")
            await self._commit(staging, target)
            await self._step("check", " && ".join([
                f"test -f {_q(f'{target}/{INSTALLED_MARKER}')}",
                f"test -x {_q(f'{target}/dotnet')}",
            ]), f".NET {version} is missing after install")

        logger.info(f".NET {version} installed on {self.profile.host}")
        return True

    async def ensure_debugger_installed(self) -> bool:
        """Install the remote debugger (vsdbg) unless it is already present.

        Raises:
            ProvisioningError: With step device, download, install, commit or check
            RemoteConnectionError: If the channel is closed or drops
        """
        if await self.is_debugger_installed():
            logger.info(f"Debugger is already installed on {self.profile.host}")
            return True

        architecture = self._require_supported()
        rid = architecture.runtime_identifier
        assert rid is not None
        staging = f"{REMOTE_DOTNET_FOLDER}/.staging-vsdbg"
        script = "/tmp/getvsdbg.sh"

        logger.info(f"Installing debugger on {self.profile.host}")
        async with self._provisioning(staging, script):
            await self._step("download", f"curl -fsSL -o {script} {_q(DEBUGGER_INSTALLER_URL)}",
                             f"Cannot download {DEBUGGER_INSTALLER_URL}")
            await self._step("install", " && ".join([
                self._sudo(f"rm -rf {_q(staging)}"),
                self._sudo(f"mkdir -p {_q(staging)}"),
                self._sudo(f"bash {script} -v latest -r {rid} -l {_q(staging)}"),
            ]), "Debugger installer failed")
            await self._step("install", f"test -x {_q(f'{staging}/vsdbg')}",
                             "Debugger installer produced no vsdbg")
            await self._commit(staging, REMOTE_DEBUGGER_FOLDER)
            await self._step("check", " && ".join([
                f"test -f {_q(f'{REMOTE_DEBUGGER_FOLDER}/{INSTALLED_MARKER}')}",
                f"test -x {_q(REMOTE_DEBUGGER_PATH)}",
            ]), "Debugger is missing after install")

        logger.info(f"Debugger installed on {self.profile.host}")
        return True

    async def upload_artifact_tree(self, local_folder: Path, remote_folder: str) -> bool:
        """Replace a remote folder with the contents of a local one.

        This is a full overwrite: the remote folder is deleted and recreated.

        Raises:
            ProvisioningError: With step upload
            RemoteConnectionError: If the channel is closed or a transfer fails
        """
        local_folder = Path(local_folder)
        if not local_folder.is_dir():
            raise ProvisioningError("upload", f"Local folder not found: {local_folder}")

        result = await self._run(f"rm -rf {_q(remote_folder)} && mkdir -p {_q(remote_folder)}")
        if not result.ok:
            raise ProvisioningError("upload", f"Cannot prepare {remote_folder}", output=result.all_text)

        conn = self._require_conn()
        async with self._command_lock():
            await conn.upload_tree(local_folder, remote_folder)

        self.state = SessionState.READY
        return True

    # === Internal ===

    def _sudo(self, command: str) -> str:
        return f"sudo {command}" if self.use_sudo else command

    def _require_conn(self) -> SshConnection:
        if not self.connected or self._conn is None:
            raise RemoteConnectionError(
                f"Session to {self.profile.host} is {self.state.value}, not connected"
            )
        return self._conn

    def _command_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _require_supported(self) -> Architecture:
        remote = self.remote
        assert remote is not None
        if not remote.supported or remote.architecture is None:
            what = remote.model or remote.machine
            raise ProvisioningError(
                "device",
                f"{what} is not supported; a Raspberry Pi 2 or later with an ARMv7/ARM64 OS is required",
            )
        return remote.architecture

    async def _run(self, command: str) -> CommandResult:
        return await self._exec(self._require_conn(), command)

    async def _exec(self, conn: SshConnection, command: str) -> CommandResult:
        # one command at a time per session
        async with self._command_lock():
            return await conn.run(command)

    async def _step(self, step: str, command: str, message: str) -> CommandResult:
        result = await self._run(command)
        if not result.ok:
            logger.error(f"[{self.profile.host}] {step} failed (exit {result.exit_code}): {result.all_text}")
            raise ProvisioningError(step, message, output=result.all_text)
        return result

    async def _commit(self, staging: str, target: str) -> None:
        await self._step("commit", " && ".join([
            self._sudo(f"touch {_q(f'{staging}/{INSTALLED_MARKER}')}"),
            self._sudo(f"rm -rf {_q(target)}"),
            self._sudo(f"mv {_q(staging)} {_q(target)}"),
        ]), f"Cannot move {staging} into place")

    @asynccontextmanager
    async def _provisioning(self, staging: str, download: str) -> AsyncIterator[None]:
        """Mark the session PROVISIONING; remove staging and download afterwards."""
        previous = self.state
        self.state = SessionState.PROVISIONING
        try:
            yield
        except BaseException:
            await self._cleanup([self._sudo(f"rm -rf {_q(staging)}"), f"rm -f {_q(download)}"])
            raise
        else:
            await self._cleanup([f"rm -f {_q(download)}"])
        finally:
            if self.state is SessionState.PROVISIONING:
                self.state = previous

    async def _cleanup(self, commands: List[str]) -> None:
        for command in commands:
            try:
                await self._run(command)
            except Exception as e:
                logger.warning(f"Cleanup '{command}' failed on {self.profile.host}: {e}")

    async def _query_remote_state(self, conn: SshConnection) -> RemoteState:
        uname = await self._exec(conn, "uname -m")
        if not uname.ok:
            raise RemoteConnectionError(f"Cannot query {self.profile.host}: {uname.all_text}")
        machine = uname.stdout.strip()

        model_result = await self._exec(conn, "cat /proc/device-tree/model 2>/dev/null | tr -d '\\0'")
        model = model_result.stdout.strip() or None

        return RemoteState(
            machine=machine,
            architecture=_MACHINE_ARCHITECTURES.get(machine),
            model=model,
            device=self.catalog.find_device(model) if model else None,
        )

    # === Context Manager ===

    async def __aenter__(self) -> "RemoteSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
