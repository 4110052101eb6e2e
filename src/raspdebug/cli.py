"""Command-line interface for raspdebug."""

import asyncio
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from raspdebug.catalog import LocalRuntimeInventory, VersionCatalog
from raspdebug.core.launcher import DebugLauncher, LaunchRequest
from raspdebug.core.progress import ProgressController
from raspdebug.core.project import find_solution_dir, list_solution_projects
from raspdebug.core.session import RemoteSession
from raspdebug.core.types import DebuggerSettings, LaunchPhase
from raspdebug.errors import RaspDebugError
from raspdebug.launch.frontend import DebugFrontend
from raspdebug.settings.connections import ConnectionProfile, ConnectionRegistry
from raspdebug.settings.projects import ProjectSettings, ProjectSettingsStore
from raspdebug.tools.dotnet import DotnetToolchain

app = typer.Typer(
    name="raspdebug",
    help="Publish, provision and debug .NET programs on a Raspberry Pi",
)
connections_app = typer.Typer(help="Manage Raspberry connections")
app.add_typer(connections_app, name="connections")

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(verbose: bool = False) -> None:
    """Configure the root logger from --verbose and RASPDEBUG_LOG_* variables."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    log_level_str = os.environ.get("RASPDEBUG_LOG_LEVEL", "").upper()
    if log_level_str in ("DEBUG", "INFO", "WARNING", "ERROR"):
        log_level = getattr(logging, log_level_str)

    log_file = os.environ.get("RASPDEBUG_LOG_FILE")
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(log_level)


def _settings(
    settings_dir: Optional[Path] = None,
    dotnet_path: Optional[str] = None,
    ssh_path: Optional[str] = None,
    frontend: Optional[str] = None,
) -> DebuggerSettings:
    settings = DebuggerSettings.from_env()
    if settings_dir is not None:
        settings.settings_dir = settings_dir.expanduser()
    if dotnet_path:
        settings.dotnet_path = dotnet_path
    if ssh_path:
        settings.ssh_path = ssh_path
    if frontend:
        settings.frontend = frontend
    return settings


def _registry(settings_dir: Optional[Path]) -> ConnectionRegistry:
    return ConnectionRegistry(_settings(settings_dir).connections_path)


SettingsDirOption = typer.Option(
    None,
    "--settings-dir",
    help="Folder holding connections.json and keys/",
    envvar="RASPDEBUG_SETTINGS_DIR",
)


# ============================================================================
# Debug
# ============================================================================


@app.command()
def debug(
    project: Path = typer.Argument(..., help="Project file (.csproj)"),
    args: Optional[List[str]] = typer.Argument(None, help="Program arguments (after --)"),
    configuration: str = typer.Option("Debug", "--configuration", "-c", help="Build configuration"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Connection name or host"),
    frontend: Optional[str] = typer.Option(
        None,
        "--frontend",
        help="Debug front-end command; {descriptor} is replaced by the descriptor path",
        envvar="RASPDEBUG_FRONTEND",
    ),
    descriptor_out: Optional[Path] = typer.Option(
        None, "--descriptor-out", help="Write the launch descriptor here instead of launching"
    ),
    stop_at_entry: bool = typer.Option(False, "--stop-at-entry", help="Break at the entry point"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Install missing prerequisites without asking"),
    settings_dir: Optional[Path] = SettingsDirOption,
    dotnet_path: Optional[str] = typer.Option(
        None, "--dotnet-path", help="Path to dotnet", envvar="RASPDEBUG_DOTNET_PATH"
    ),
    ssh_path: Optional[str] = typer.Option(
        None, "--ssh-path", help="Path to the ssh client", envvar="RASPDEBUG_SSH_PATH"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Publish a project, prepare the Raspberry and start debugging."""
    _configure_logging(verbose)
    settings = _settings(settings_dir, dotnet_path, ssh_path, frontend)

    request = LaunchRequest(
        project_path=project,
        configuration=configuration,
        target=target,
        args=list(args) if args else None,
        stop_at_entry=stop_at_entry,
        descriptor_out=descriptor_out,
    )

    async def _run():
        catalog = VersionCatalog()
        toolchain = DotnetToolchain(settings.dotnet_path)
        launcher = DebugLauncher(
            settings=settings,
            catalog=catalog,
            inventory=LocalRuntimeInventory(catalog, toolchain),
            progress=ProgressController(),
            toolchain=toolchain,
            frontend=DebugFrontend(settings.frontend) if settings.frontend else None,
            confirm=None if yes else (lambda message: typer.confirm(message, default=True)),
        )
        return await launcher.launch(request)

    outcome = asyncio.run(_run())

    if outcome.ok:
        console.print(f"[green]✓[/green] {outcome.message}")
        if outcome.descriptor and not settings.frontend and descriptor_out is None:
            console.print_json(outcome.descriptor)
    elif outcome.phase == LaunchPhase.CANCELLED:
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(1)
    else:
        console.print(f"[red]✗ {outcome.phase.value}:[/red] {outcome.message}")
        console.print("    [dim]Run with --verbose for details[/dim]")
        raise typer.Exit(1)


# ============================================================================
# Inspection
# ============================================================================


@app.command()
def sdks(
    dotnet_path: Optional[str] = typer.Option(
        None, "--dotnet-path", help="Path to dotnet", envvar="RASPDEBUG_DOTNET_PATH"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List workstation SDKs and the runtime each one targets."""
    _configure_logging(verbose)
    settings = _settings(dotnet_path=dotnet_path)
    catalog = VersionCatalog()
    inventory = LocalRuntimeInventory(catalog, DotnetToolchain(settings.dotnet_path))

    try:
        installed = asyncio.run(inventory.list_installed())
    except RaspDebugError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Workstation SDKs")
    table.add_column("SDK")
    table.add_column("Runtime")
    for runtime in installed:
        table.add_row(runtime.name, runtime.resolved_version or "[dim]unknown[/dim]")
    console.print(table)


@app.command()
def status(
    target: Optional[str] = typer.Argument(None, help="Connection name or host (default connection if omitted)"),
    settings_dir: Optional[Path] = SettingsDirOption,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Connect to a Raspberry and show what is installed."""
    _configure_logging(verbose)
    settings = _settings(settings_dir)
    registry = ConnectionRegistry(settings.connections_path)
    profile = registry.find(target) if target else registry.get_default()
    if profile is None:
        console.print(f"[red]Unknown connection: {target or '(no default)'}[/red]")
        raise typer.Exit(1)

    async def _query():
        async with RemoteSession(
            profile, VersionCatalog(), keys_dir=settings.keys_dir,
            connect_timeout=settings.connect_timeout,
        ) as session:
            runtimes = await session.installed_runtime_versions()
            debugger = await session.is_debugger_installed()
            return session.remote, runtimes, debugger

    try:
        remote, runtimes, debugger = asyncio.run(_query())
    except RaspDebugError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    lines = [
        f"[bold]Host:[/bold] {profile.user}@{profile.host}:{profile.port}",
        f"[bold]Machine:[/bold] {remote.machine}"
        + (f" ({remote.architecture.value})" if remote.architecture else ""),
        f"[bold]Model:[/bold] {remote.model or 'unknown'}",
        f"[bold]Supported:[/bold] {'yes' if remote.supported else '[red]no[/red]'}",
        f"[bold]Runtimes:[/bold] {', '.join(runtimes) if runtimes else 'none'}",
        f"[bold]Debugger:[/bold] {'installed' if debugger else 'not installed'}",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold blue]{profile.name}[/bold blue]"))


# ============================================================================
# Connections
# ============================================================================


@connections_app.command("list")
def connections_list(settings_dir: Optional[Path] = SettingsDirOption) -> None:
    """List connections."""
    profiles = _registry(settings_dir).read()
    if not profiles:
        console.print("[dim]No connections. Add one with: raspdebug connections add[/dim]")
        return

    table = Table(title="Raspberry Connections")
    table.add_column("Name")
    table.add_column("Host")
    table.add_column("User")
    table.add_column("Key")
    table.add_column("Default")
    for p in profiles:
        table.add_row(
            p.name, f"{p.host}:{p.port}", p.user, p.key_path or "", "✓" if p.is_default else ""
        )
    console.print(table)


@connections_app.command("add")
def connections_add(
    name: str = typer.Argument(..., help="Connection name"),
    host: str = typer.Argument(..., help="Hostname or IP address"),
    user: str = typer.Option("pi", "--user", "-u", help="Login user"),
    port: int = typer.Option(22, "--port", "-p", help="SSH port"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Private key (relative to keys/)"),
    default: bool = typer.Option(False, "--default", help="Make this the default connection"),
    settings_dir: Optional[Path] = SettingsDirOption,
) -> None:
    """Add a connection."""
    profile = ConnectionProfile(
        name=name, host=host, user=user, port=port, key_path=key, is_default=default
    )
    try:
        _registry(settings_dir).add(profile)
    except RaspDebugError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Added {name} ({user}@{host}:{port})")


@connections_app.command("remove")
def connections_remove(
    name: str = typer.Argument(..., help="Connection name"),
    settings_dir: Optional[Path] = SettingsDirOption,
) -> None:
    """Remove a connection."""
    if not _registry(settings_dir).remove(name):
        console.print(f"[red]Unknown connection: {name}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Removed {name}")


@connections_app.command("default")
def connections_default(
    name: str = typer.Argument(..., help="Connection name"),
    settings_dir: Optional[Path] = SettingsDirOption,
) -> None:
    """Make a connection the default."""
    if not _registry(settings_dir).set_default(name):
        console.print(f"[red]Unknown connection: {name}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {name} is now the default connection")


# ============================================================================
# Project settings
# ============================================================================


@app.command()
def target(
    project: Path = typer.Argument(..., help="Project file (.csproj)"),
    name: Optional[str] = typer.Argument(None, help="Connection name; omit to use the default"),
    enable: bool = typer.Option(True, "--enable/--disable", help="Allow remote debugging"),
    settings_dir: Optional[Path] = SettingsDirOption,
) -> None:
    """Set the Raspberry a project is debugged on."""
    if not project.is_file():
        console.print(f"[red]Project file not found: {project}[/red]")
        raise typer.Exit(1)
    if name and _registry(settings_dir).find(name) is None:
        console.print(f"[red]Unknown connection: {name}[/red]")
        raise typer.Exit(1)

    solution_dir = find_solution_dir(project)
    store = ProjectSettingsStore(solution_dir)
    project_id = store.project_id(project)
    known = [store.project_id(p) for p in list_solution_projects(solution_dir)] or [project_id]
    if project_id not in known:
        known.append(project_id)

    store.set(project_id, ProjectSettings(remote_debug_enabled=enable, remote_target=name), known)
    console.print(
        f"[green]✓[/green] {project_id}: "
        + (f"debug on {name or 'the default connection'}" if enable else "remote debugging disabled")
    )


# ============================================================================
# Diagnostics
# ============================================================================


@app.command()
def doctor() -> None:
    """Check system dependencies and installation health."""
    console.print(Panel(
        "[bold]Checking dependencies...[/bold]",
        title="[bold blue]Raspberry Debugger Doctor[/bold blue]",
    ))

    all_ok = True
    settings = DebuggerSettings.from_env()

    # Python version
    py_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    if sys.version_info >= (3, 10):
        console.print(f"[green]✓[/green] Python {py_version}")
    else:
        console.print(f"[red]✗[/red] Python {py_version} (requires >= 3.10)")
        all_ok = False

    # dotnet
    dotnet = shutil.which(settings.dotnet_path)
    if dotnet:
        try:
            result = subprocess.run(
                [dotnet, "--version"],
                capture_output=True, text=True, timeout=15
            )
            version_line = result.stdout.split("\n")[0] if result.stdout else "unknown"
            console.print(f"[green]✓[/green] dotnet ({version_line})")
        except Exception:
            console.print(f"[green]✓[/green] dotnet (at {dotnet})")
    else:
        console.print("[red]✗[/red] dotnet not found")
        console.print("    [dim]Install the .NET SDK: https://dot.net[/dim]")
        all_ok = False

    # ssh client (debug adapter transport)
    ssh = shutil.which(settings.ssh_path)
    if ssh:
        console.print(f"[green]✓[/green] ssh client (at {ssh})")
    else:
        console.print("[red]✗[/red] ssh client not found")
        console.print("    [dim]Install OpenSSH or set RASPDEBUG_SSH_PATH[/dim]")
        all_ok = False

    # Bundled catalogs
    try:
        catalog = VersionCatalog()
        console.print(
            f"[green]✓[/green] Catalogs ({len(catalog.entries)} SDKs, {len(catalog.devices)} devices)"
        )
    except RaspDebugError as e:
        console.print(f"[red]✗[/red] {e}")
        all_ok = False

    # Connections
    try:
        profiles = ConnectionRegistry(settings.connections_path).read()
        if profiles:
            console.print(f"[green]✓[/green] {len(profiles)} connection(s) configured")
        else:
            console.print("[yellow]![/yellow] No connections configured")
            console.print("    [dim]Run: raspdebug connections add NAME HOST[/dim]")
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        all_ok = False

    # Required Python packages
    required_packages = [
        ("paramiko", "paramiko"),
        ("typer", "typer"),
        ("rich", "rich"),
        ("pydantic", "pydantic"),
    ]
    missing_packages = []
    for import_name, package_name in required_packages:
        try:
            __import__(import_name)
        except ImportError:
            missing_packages.append(package_name)

    if not missing_packages:
        console.print("[green]✓[/green] Python dependencies installed")
    else:
        console.print(f"[red]✗[/red] Missing packages: {', '.join(missing_packages)}")
        console.print(f"    [dim]Install: pip install {' '.join(missing_packages)}[/dim]")
        all_ok = False

    # Summary
    console.print()
    if all_ok:
        console.print("[bold green]All required checks passed![/bold green]")
    else:
        console.print("[bold yellow]Some checks failed. See above for details.[/bold yellow]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from raspdebug import __version__
    console.print(f"[bold blue]raspdebug[/bold blue] v{__version__}")


if __name__ == "__main__":
    app()
