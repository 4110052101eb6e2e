"""Bundled SDK and device catalogs.

Both catalogs are JSON documents shipped as package data and loaded once,
on first access. After the load they are read-only and safe to share
between threads.

Example:
    catalog = VersionCatalog()
    catalog.resolve_version("3.1.402", Architecture.ARM32)   # "3.1.8"
    catalog.find_device("Raspberry Pi 4 Model B Rev 1.4").architecture
"""

import json
import logging
import threading
from importlib import resources
from typing import List, Optional

from pydantic import ValidationError

from raspdebug.catalog.models import (
    Architecture,
    CatalogEntry,
    DeviceCatalogDocument,
    DeviceModel,
    SdkCatalogDocument,
)
from raspdebug.errors import CatalogError

logger = logging.getLogger(__name__)

SDK_CATALOG_RESOURCE = "sdk-catalog.json"
DEVICE_CATALOG_RESOURCE = "device-catalog.json"


def _read_resource(package: str, name: str) -> str:
    try:
        return (resources.files(package) / "data" / name).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise CatalogError(f"Catalog resource '{name}' is missing: {e}") from e


class VersionCatalog:
    """Lookup tables for SDK versions and device architectures.

    Construct once per process and pass it to the services that need it.
    The JSON is parsed lazily under a lock using double-checked locking,
    so concurrent first readers trigger exactly one load.
    """

    def __init__(self, resource_package: str = "raspdebug.catalog") -> None:
        """Initialize the catalog.

        Args:
            resource_package: Package holding the ``data/`` resources
        """
        self.resource_package = resource_package
        self._lock = threading.Lock()
        self._sdks: Optional[List[CatalogEntry]] = None
        self._devices: Optional[List[DeviceModel]] = None

    # === Loading ===

    def _ensure_loaded(self) -> None:
        if self._sdks is not None:
            return

        with self._lock:
            if self._sdks is not None:
                return

            try:
                sdk_doc = SdkCatalogDocument.model_validate(
                    json.loads(_read_resource(self.resource_package, SDK_CATALOG_RESOURCE))
                )
                device_doc = DeviceCatalogDocument.model_validate(
                    json.loads(_read_resource(self.resource_package, DEVICE_CATALOG_RESOURCE))
                )
            except (json.JSONDecodeError, ValidationError) as e:
                raise CatalogError(f"Catalog resource is malformed: {e}") from e

            seen = set()
            for entry in sdk_doc.items:
                key = (entry.name, entry.architecture)
                if key in seen:
                    raise CatalogError(
                        f"Duplicate SDK catalog entry: {entry.name} ({entry.architecture.value})"
                    )
                seen.add(key)

            logger.debug(
                f"Loaded {len(sdk_doc.items)} SDK entries and "
                f"{len(device_doc.items)} device models"
            )
            # devices first: readers key off _sdks being set
            self._devices = list(device_doc.items)
            self._sdks = list(sdk_doc.items)

    @property
    def entries(self) -> List[CatalogEntry]:
        """All SDK catalog entries."""
        self._ensure_loaded()
        assert self._sdks is not None
        return list(self._sdks)

    @property
    def devices(self) -> List[DeviceModel]:
        """All device models."""
        self._ensure_loaded()
        assert self._devices is not None
        return list(self._devices)

    # === Lookups ===

    def find(self, name: str, architecture: Architecture) -> Optional[CatalogEntry]:
        """Find the entry for an SDK name on an architecture."""
        for entry in self.entries:
            if entry.name == name and entry.architecture == architecture:
                return entry
        return None

    def resolve_version(self, name: str, architecture: Architecture) -> Optional[str]:
        """Return the runtime version for an SDK name, or None if unknown."""
        entry = self.find(name, architecture)
        return entry.version if entry else None

    def find_by_version(self, version: str, architecture: Architecture) -> Optional[CatalogEntry]:
        """Find a downloadable package for a runtime version.

        Several SDKs can ship the same runtime; the last one listed wins,
        since catalogs list SDK feature bands in ascending order.
        """
        match = None
        for entry in self.entries:
            if entry.version == version and entry.architecture == architecture:
                match = entry
        return match

    def find_device(self, model: str) -> Optional[DeviceModel]:
        """Match a reported board model by longest catalog prefix.

        Args:
            model: Model string from /proc/device-tree/model

        Returns:
            The matching DeviceModel, or None for unknown hardware
        """
        model = model.strip()
        best: Optional[DeviceModel] = None
        for device in self.devices:
            if model.startswith(device.model):
                if best is None or len(device.model) > len(best.model):
                    best = device
        return best
