"""Debug launch orchestration.

Runs the full chain for one attempt:

    publish -> resolve runtime -> connect -> check target -> confirm
      -> install runtime -> install debugger -> upload -> descriptor -> front-end

Every step reports through the shared ProgressController. Any failure ends
the attempt; the result is a single LaunchOutcome whose message is short,
while the detail goes to the log.

Example:
    launcher = DebugLauncher(settings, catalog, inventory, progress)
    outcome = await launcher.launch(LaunchRequest(project_path=Path("Blinky/Blinky.csproj")))
    if not outcome.ok:
        print(f"{outcome.phase.value}: {outcome.message}")
"""

import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from raspdebug.catalog.catalog import VersionCatalog
from raspdebug.catalog.inventory import LocalRuntimeInventory, resolve_target_version
from raspdebug.core.progress import ProgressController
from raspdebug.core.project import ProjectProperties, find_solution_dir
from raspdebug.core.session import RemoteSession
from raspdebug.core.types import DebuggerSettings, LaunchOutcome, LaunchPhase
from raspdebug.errors import (
    BuildError,
    PreconditionError,
    RaspDebugError,
    ResolutionError,
)
from raspdebug.launch.descriptor import (
    LaunchDescriptor,
    build_launch_descriptor,
    transient_descriptor,
    write_descriptor,
)
from raspdebug.launch.frontend import DebugFrontend
from raspdebug.settings.connections import ConnectionProfile, ConnectionRegistry
from raspdebug.settings.projects import ProjectSettingsStore
from raspdebug.tools.dotnet import DotnetToolchain

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


@dataclass
class LaunchRequest:
    """What to debug and where.

    Attributes:
        project_path: Project file to publish and debug
        configuration: Build configuration
        target: Connection name or host; overrides project settings
        args: Program arguments; None uses launchSettings.json
        stop_at_entry: Break at the program entry point
        descriptor_out: Keep the descriptor here and skip the front-end
    """
    project_path: Path
    configuration: str = "Debug"
    target: Optional[str] = None
    args: Optional[List[str]] = None
    stop_at_entry: bool = False
    descriptor_out: Optional[Path] = None


@dataclass
class _Attempt:
    phase: LaunchPhase = LaunchPhase.PRECONDITION
    session: Optional[RemoteSession] = None


class DebugLauncher:
    """Orchestrates a remote debug launch.

    Services are passed in so one process can share a catalog, an
    inventory and a progress controller between launches.
    """

    def __init__(
        self,
        settings: DebuggerSettings,
        catalog: VersionCatalog,
        inventory: LocalRuntimeInventory,
        progress: ProgressController,
        registry: Optional[ConnectionRegistry] = None,
        toolchain: Optional[DotnetToolchain] = None,
        frontend: Optional[DebugFrontend] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        """Initialize the launcher.

        Args:
            settings: Workstation configuration
            catalog: SDK and device catalogs
            inventory: Workstation SDK inventory
            progress: Shared progress controller
            registry: Connection registry; defaults to the settings folder
            toolchain: Local dotnet; defaults to ``settings.dotnet_path``
            frontend: Debug front-end; None returns or writes the descriptor
            confirm: Asked before installing anything; None installs without asking
        """
        self.settings = settings
        self.catalog = catalog
        self.inventory = inventory
        self.progress = progress
        self.registry = registry or ConnectionRegistry(settings.connections_path)
        self.toolchain = toolchain or DotnetToolchain(settings.dotnet_path)
        self.frontend = frontend
        self.confirm = confirm

    # === Public API ===

    async def launch(self, request: LaunchRequest) -> LaunchOutcome:
        """Run one launch attempt.

        Returns:
            LaunchOutcome; ``phase`` is DONE on success, CANCELLED when the
            user declined an install, otherwise the phase that failed
        """
        attempt = _Attempt()
        try:
            return await self._launch(request, attempt)
        except (RaspDebugError, ValueError) as e:
            logger.error(f"Launch failed during {attempt.phase.value}: {e}", exc_info=True)
            output = getattr(e, "output", None)
            if output:
                logger.error(f"Captured output:\n{output}")
            return LaunchOutcome(ok=False, phase=attempt.phase, message=str(e))
        finally:
            if attempt.session is not None:
                try:
                    await attempt.session.close()
                except Exception as e:
                    logger.warning(f"Error closing session: {e}")

    def select_connection(
        self,
        target: Optional[str] = None,
        debug_host: Optional[str] = None,
        project_target: Optional[str] = None,
    ) -> ConnectionProfile:
        """Pick the connection for a launch.

        The explicit target wins, then the project's @RASPBERRY host, then
        the project map's target, then the registry default.

        Raises:
            PreconditionError: If a named connection is unknown or none exist
        """
        name = target or debug_host or project_target
        if name:
            profile = self.registry.find(name)
            if profile is None:
                raise PreconditionError(
                    f"Connection '{name}' does not exist. Add it with: raspdebug connections add"
                )
            return profile

        profile = self.registry.get_default()
        if profile is None:
            raise PreconditionError(
                "No Raspberry connections are configured. Add one with: raspdebug connections add"
            )
        return profile

    # === Chain ===

    async def _launch(self, request: LaunchRequest, attempt: _Attempt) -> LaunchOutcome:
        # Preconditions: nothing leaves the workstation yet
        attempt.phase = LaunchPhase.PRECONDITION
        project = ProjectProperties.from_project_file(request.project_path, request.configuration)
        project.check()
        required = project.runtime_requirement
        assert required is not None

        store = ProjectSettingsStore(find_solution_dir(project.project_path))
        project_settings = store.get(store.project_id(project.project_path))
        if not project_settings.remote_debug_enabled:
            raise PreconditionError(f"Remote debugging is disabled for {project.name}")

        profile = self.select_connection(
            request.target, project.debug_host, project_settings.remote_target
        )
        logger.info(f"Debugging {project.name} on {profile.name} ({profile.host})")

        attempt.phase = LaunchPhase.BUILD
        await self.progress.run(f"Publishing {project.name}", lambda: self._publish(project))

        attempt.phase = LaunchPhase.RESOLVE
        version = await self.progress.run(
            f"Resolving .NET {required} runtime", lambda: self._resolve(required)
        )
        logger.info(f"Using .NET runtime {version}")

        attempt.phase = LaunchPhase.CONNECT
        session = RemoteSession(
            profile=profile,
            catalog=self.catalog,
            keys_dir=self.settings.keys_dir,
            connect_timeout=self.settings.connect_timeout,
        )
        attempt.session = session
        await self.progress.run(f"Connecting to {profile.host}", session.connect)

        needs_runtime, needs_debugger = await self.progress.run(
            "Checking target", lambda: self._check_target(session, version)
        )
        if (needs_runtime or needs_debugger) and not await self._confirm(
            profile, version, needs_runtime, needs_debugger
        ):
            logger.info("Install declined; launch cancelled")
            return LaunchOutcome(ok=False, phase=LaunchPhase.CANCELLED, message="Cancelled")

        attempt.phase = LaunchPhase.PROVISION
        await self.progress.run(
            f"Preparing {profile.host}", lambda: self._provision(session, version)
        )

        attempt.phase = LaunchPhase.UPLOAD
        remote_folder = session.program_folder(project.name)
        await self.progress.run(
            f"Uploading {project.name}",
            lambda: session.upload_artifact_tree(project.publish_folder, remote_folder),
        )

        attempt.phase = LaunchPhase.LAUNCH
        descriptor = build_launch_descriptor(
            profile,
            program_name=project.name,
            assembly_name=project.assembly_name,
            runtime_version=version,
            keys_dir=self.settings.keys_dir,
            args=request.args if request.args is not None else project.command_line_args,
            env=project.environment,
            ssh_path=self.settings.ssh_path,
            stop_at_entry=request.stop_at_entry,
        )
        return await self._deliver(descriptor, request)

    async def _publish(self, project: ProjectProperties) -> None:
        result = await self.toolchain.publish(
            project.project_path,
            project.configuration,
            project.runtime,
            project.publish_folder,
        )
        if not result.ok:
            raise BuildError(
                f"[dotnet publish] failed with exitcode={result.exit_code}",
                output=result.all_text,
            )

    async def _resolve(self, required: str) -> str:
        installed = await self.inventory.list_installed()
        version = resolve_target_version(required, installed)
        if version is None:
            raise ResolutionError(
                f"No .NET {required} SDK is installed on this workstation. "
                f"Install a {required}.x SDK and restart."
            )
        return version

    async def _check_target(self, session: RemoteSession, version: str) -> Tuple[bool, bool]:
        needs_runtime = not await session.is_runtime_installed(version)
        needs_debugger = not await session.is_debugger_installed()
        return needs_runtime, needs_debugger

    async def _confirm(
        self,
        profile: ConnectionProfile,
        version: str,
        needs_runtime: bool,
        needs_debugger: bool,
    ) -> bool:
        if self.confirm is None:
            return True

        missing = []
        if needs_runtime:
            missing.append(f".NET {version} runtime")
        if needs_debugger:
            missing.append("vsdbg debugger")
        answer = self.confirm(f"{profile.host} is missing the {' and the '.join(missing)}. Install now?")
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def _provision(self, session: RemoteSession, version: str) -> None:
        await self.progress.run(
            f"Installing .NET {version}", lambda: session.ensure_runtime_installed(version)
        )
        await self.progress.run("Installing debugger", session.ensure_debugger_installed)

    async def _deliver(self, descriptor: LaunchDescriptor, request: LaunchRequest) -> LaunchOutcome:
        if request.descriptor_out is not None:
            path = write_descriptor(descriptor, request.descriptor_out)
            return LaunchOutcome(
                ok=True,
                phase=LaunchPhase.DONE,
                message=f"Launch descriptor written to {path}",
                descriptor=descriptor.to_json(),
            )

        if self.frontend is None:
            return LaunchOutcome(
                ok=True,
                phase=LaunchPhase.DONE,
                message="Program is ready; no debug front-end configured",
                descriptor=descriptor.to_json(),
            )

        frontend = self.frontend
        with transient_descriptor(descriptor) as path:
            await self.progress.run("Launching debugger", lambda: frontend.launch(path))
        return LaunchOutcome(ok=True, phase=LaunchPhase.DONE, message="Debugger launched")
