"""SDK/device catalogs, semantic versions and workstation runtime inventory."""

from raspdebug.catalog.models import (
    Architecture,
    CatalogEntry,
    DeviceModel,
    InstalledRuntime,
)
from raspdebug.catalog.semver import SemanticVersion
from raspdebug.catalog.catalog import VersionCatalog
from raspdebug.catalog.inventory import (
    LocalRuntimeInventory,
    parse_sdk_listing,
    resolve_target_version,
)

__all__ = [
    # Models
    "Architecture",
    "CatalogEntry",
    "DeviceModel",
    "InstalledRuntime",
    # Versions
    "SemanticVersion",
    "VersionCatalog",
    # Inventory
    "LocalRuntimeInventory",
    "parse_sdk_listing",
    "resolve_target_version",
]
