"""Catalog data models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Architecture(str, Enum):
    """CPU architectures known to the catalogs."""
    ARMV6 = "ARMV6"
    ARM32 = "ARM32"
    ARM64 = "ARM64"
    AMD64 = "AMD64"

    @property
    def runtime_identifier(self) -> Optional[str]:
        """.NET runtime identifier for Linux on this architecture (None when unsupported)."""
        return {
            Architecture.ARM32: "linux-arm",
            Architecture.ARM64: "linux-arm64",
            Architecture.AMD64: "linux-x64",
        }.get(self)


class CatalogEntry(BaseModel):
    """A known SDK build.

    Attributes:
        name: SDK name as reported by ``dotnet --list-sdks`` (e.g. 3.1.402)
        version: Runtime version the SDK ships (e.g. 3.1.8)
        architecture: Architecture of the downloadable package
        link: Trusted download URL of the package tarball
        sha512: Optional SHA-512 of the tarball
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    architecture: Architecture
    link: Optional[str] = None
    sha512: Optional[str] = None


class DeviceModel(BaseModel):
    """Maps a board model string to its architecture."""

    model_config = ConfigDict(frozen=True)

    model: str
    architecture: Architecture


class SdkCatalogDocument(BaseModel):
    items: List[CatalogEntry]


class DeviceCatalogDocument(BaseModel):
    items: List[DeviceModel]


class InstalledRuntime(BaseModel):
    """An SDK installed on the workstation.

    ``resolved_version`` is None when the SDK is not in the catalog.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    resolved_version: Optional[str] = None
