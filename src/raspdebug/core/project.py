"""Project metadata needed to publish and debug a .NET program."""

import json
import logging
import re
import shlex
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from raspdebug.core.types import PUBLISH_RUNTIME
from raspdebug.errors import PreconditionError

logger = logging.getLogger(__name__)

RASPBERRY_HOST_VARIABLE = "@RASPBERRY"
MINIMUM_RUNTIME = (3, 1)

_NETCOREAPP = re.compile(r"^netcoreapp(\d+)\.(\d+)$", re.IGNORECASE)
_NET5_PLUS = re.compile(r"^net(\d+)\.(\d+)(-[a-z0-9.]+)?$", re.IGNORECASE)
_SLN_PROJECT = re.compile(r'^Project\("\{[^}]+\}"\)\s*=\s*"[^"]*",\s*"([^"]+)"', re.MULTILINE)


def parse_framework(moniker: str) -> Optional[Tuple[int, int]]:
    """Return (major, minor) for a .NET Core / .NET 5+ moniker, else None.

    Example:
        >>> parse_framework("netcoreapp3.1")
        (3, 1)
        >>> parse_framework("net6.0-windows")
        (6, 0)
        >>> parse_framework("net48") is None
        True
    """
    match = _NETCOREAPP.match(moniker)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _NET5_PLUS.match(moniker)
    if match and int(match.group(1)) >= 5:
        return int(match.group(1)), int(match.group(2))
    return None


def find_solution_dir(project_path: Path) -> Path:
    """Nearest ancestor folder containing a .sln file, else the project folder."""
    project_dir = project_path.resolve().parent
    for folder in (project_dir, *project_dir.parents):
        if any(folder.glob("*.sln")):
            return folder
    return project_dir


def list_solution_projects(solution_dir: Path) -> List[Path]:
    """Project files referenced by the solution(s) in a folder."""
    projects: List[Path] = []
    for sln in sorted(solution_dir.glob("*.sln")):
        text = sln.read_text(encoding="utf-8-sig", errors="replace")
        for relative in _SLN_PROJECT.findall(text):
            relative = relative.replace("\\", "/")
            if relative.endswith("proj"):
                projects.append((solution_dir / relative).resolve())
    return projects


def _element_text(root: ET.Element, name: str) -> Optional[str]:
    for element in root.iter():
        # tolerate the MSBuild namespace on legacy project files
        if element.tag.rsplit("}", 1)[-1] == name and element.text and element.text.strip():
            return element.text.strip()
    return None


@dataclass
class ProjectProperties:
    """Properties of the project being debugged.

    Attributes:
        project_path: Project file
        name: Project name (file stem)
        assembly_name: Output assembly name, used as the remote program file
        configuration: Build configuration
        target_framework: First target framework moniker, if any
        is_sdk_project: True for SDK-style project files
        command_line_args: Program arguments from launchSettings.json
        environment: Program environment from launchSettings.json
        debug_host: Value of the @RASPBERRY launch setting, if present
    """
    project_path: Path
    name: str
    assembly_name: str
    configuration: str = "Debug"
    target_framework: Optional[str] = None
    is_sdk_project: bool = True
    command_line_args: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    debug_host: Optional[str] = None

    @classmethod
    def from_project_file(cls, path: Path, configuration: str = "Debug") -> "ProjectProperties":
        """Read a project file and its launch settings.

        Raises:
            PreconditionError: If the project file is missing or unreadable
        """
        path = Path(path)
        if not path.is_file():
            raise PreconditionError(f"Project file not found: {path}")

        text = path.read_text(encoding="utf-8-sig", errors="replace")
        is_sdk = text.lstrip().startswith("<Project ")

        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise PreconditionError(f"Cannot parse project file {path}: {e}") from e

        framework = _element_text(root, "TargetFramework")
        if framework is None:
            frameworks = _element_text(root, "TargetFrameworks")
            if frameworks:
                framework = frameworks.split(";")[0].strip() or None

        props = cls(
            project_path=path,
            name=path.stem,
            assembly_name=_element_text(root, "AssemblyName") or path.stem,
            configuration=configuration,
            target_framework=framework,
            is_sdk_project=is_sdk,
        )
        props._load_launch_settings()
        return props

    def _load_launch_settings(self) -> None:
        settings_path = self.project_dir / "Properties" / "launchSettings.json"
        if not settings_path.exists():
            return

        try:
            with open(settings_path, encoding="utf-8-sig") as f:
                settings = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed {settings_path}: {e}")
            return

        profiles = settings.get("profiles") if isinstance(settings, dict) else None
        if not isinstance(profiles, dict):
            if profiles is not None or not isinstance(settings, dict):
                logger.warning(f"Ignoring {settings_path}: profiles must be an object")
            return

        profile = profiles.get(self.name)
        if not isinstance(profile, dict):
            return

        args = profile.get("commandLineArgs")
        if isinstance(args, str):
            if args:
                self.command_line_args = shlex.split(args)
        elif args is not None:
            logger.warning(f"Ignoring commandLineArgs in {settings_path}: expected a string")

        variables = profile.get("environmentVariables") or {}
        if not isinstance(variables, dict):
            logger.warning(f"Ignoring environmentVariables in {settings_path}: expected an object")
            variables = {}

        for key, value in variables.items():
            if key.upper() == RASPBERRY_HOST_VARIABLE:
                self.debug_host = str(value).strip() or None
            else:
                self.environment[key] = str(value)

    # === Derived ===

    @property
    def project_dir(self) -> Path:
        return self.project_path.parent

    @property
    def runtime(self) -> str:
        return PUBLISH_RUNTIME

    @property
    def output_folder(self) -> Path:
        return self.project_dir / "bin" / self.configuration / (self.target_framework or "")

    @property
    def publish_folder(self) -> Path:
        return self.output_folder / self.runtime

    @property
    def runtime_requirement(self) -> Optional[str]:
        """Required runtime as "major.minor", or None for unsupported frameworks."""
        if not self.target_framework:
            return None
        version = parse_framework(self.target_framework)
        return f"{version[0]}.{version[1]}" if version else None

    # === Validation ===

    def check(self) -> None:
        """Verify the project can be debugged remotely.

        Raises:
            PreconditionError: Describing the first problem found
        """
        if not self.is_sdk_project:
            raise PreconditionError(
                f"{self.project_path.name} is not an SDK-style project. "
                f"Only .NET Core 3.1+ SDK projects can be debugged on a Raspberry."
            )
        if not self.target_framework:
            raise PreconditionError(f"{self.project_path.name} does not declare a target framework")

        version = parse_framework(self.target_framework)
        if version is None or version < MINIMUM_RUNTIME:
            raise PreconditionError(
                f"Target framework '{self.target_framework}' is not supported; "
                f".NET Core 3.1 or later is required"
            )
        if any(ch.isspace() for ch in self.assembly_name):
            raise PreconditionError(
                f"Assembly name '{self.assembly_name}' contains whitespace, "
                f"which the remote debugger cannot launch"
            )
