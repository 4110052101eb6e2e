"""Workstation SDK inventory and target runtime resolution."""

import asyncio
import logging
from typing import List, Optional, Sequence

from raspdebug.catalog.catalog import VersionCatalog
from raspdebug.catalog.models import Architecture, InstalledRuntime
from raspdebug.catalog.semver import SemanticVersion
from raspdebug.tools.dotnet import DotnetToolchain

logger = logging.getLogger(__name__)


def parse_sdk_listing(
    output: str,
    catalog: VersionCatalog,
    architecture: Architecture = Architecture.ARM32,
) -> List[InstalledRuntime]:
    """Parse ``dotnet --list-sdks`` output into installed runtimes.

    The SDK name is the text before the first whitespace on each line.
    SDKs missing from the catalog are kept with no resolved version.
    """
    runtimes = []
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        name = parts[0]
        version = catalog.resolve_version(name, architecture)
        if version is None:
            logger.debug(f"SDK {name} is not in the catalog")
        runtimes.append(InstalledRuntime(name=name, resolved_version=version))
    return runtimes


def resolve_target_version(
    required: str,
    installed: Sequence[InstalledRuntime],
) -> Optional[str]:
    """Pick the highest installed runtime matching a major.minor requirement.

    Args:
        required: Required runtime as "major.minor" (e.g. "3.1")
        installed: Workstation runtimes with resolved versions

    Returns:
        The highest matching version string, or None when nothing matches

    Example:
        >>> resolve_target_version("3.1", [InstalledRuntime(name="a", resolved_version="3.1.8"),
        ...                                InstalledRuntime(name="b", resolved_version="3.1.10")])
        '3.1.10'
    """
    prefix = required + "."
    best: Optional[SemanticVersion] = None
    best_text: Optional[str] = None

    for runtime in installed:
        text = runtime.resolved_version
        if not text or not text.startswith(prefix):
            continue
        version = SemanticVersion.try_parse(text)
        if version is None:
            logger.warning(f"Ignoring unparsable runtime version '{text}' for SDK {runtime.name}")
            continue
        if best is None or version > best:
            best = version
            best_text = text

    return best_text


class LocalRuntimeInventory:
    """SDKs installed on the workstation, resolved against the catalog.

    The listing is taken once and cached for the lifetime of the
    instance. SDKs installed afterwards are not seen until a new
    inventory is created (in practice, until the process restarts).
    """

    def __init__(
        self,
        catalog: VersionCatalog,
        toolchain: Optional[DotnetToolchain] = None,
        architecture: Architecture = Architecture.ARM32,
    ) -> None:
        self.catalog = catalog
        self.toolchain = toolchain or DotnetToolchain()
        self.architecture = architecture
        self._cached: Optional[List[InstalledRuntime]] = None
        self._lock: Optional[asyncio.Lock] = None

    async def list_installed(self) -> List[InstalledRuntime]:
        """Return the installed SDKs in listing order.

        Raises:
            ToolchainError: If ``dotnet --list-sdks`` fails
        """
        if self._cached is not None:
            return list(self._cached)

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if self._cached is None:
                output = await self.toolchain.list_sdks()
                self._cached = parse_sdk_listing(output, self.catalog, self.architecture)
                logger.info(f"Found {len(self._cached)} workstation SDKs")

        return list(self._cached)
