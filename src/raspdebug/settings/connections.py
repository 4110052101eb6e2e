"""Persisted Raspberry connection profiles."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from raspdebug.errors import PreconditionError

logger = logging.getLogger(__name__)


class ConnectionProfile(BaseModel):
    """A named remote target.

    Attributes:
        name: Unique profile name (case-insensitive)
        host: Hostname or IP address
        port: SSH port
        user: Login user
        key_path: Private key; relative paths resolve against the keys folder
        is_default: Used when no target is specified
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = 22
    user: str = "pi"
    key_path: Optional[str] = None
    is_default: bool = False

    def resolve_key_path(self, keys_folder: Path) -> Optional[Path]:
        """Return the absolute private key path, if the profile has one."""
        if not self.key_path:
            return None
        path = Path(self.key_path).expanduser()
        return path if path.is_absolute() else keys_folder / path


def repair_default(profiles: List[ConnectionProfile]) -> List[ConnectionProfile]:
    """Ensure a non-empty profile list has exactly one default.

    With no default, the profile with the lowest case-folded name is
    promoted. With several, only the lowest-named default keeps the flag.
    The list is modified in place and returned.
    """
    if not profiles:
        return profiles

    defaults = [p for p in profiles if p.is_default]
    candidates = defaults or profiles
    keep = min(candidates, key=lambda p: p.name.casefold())

    for profile in profiles:
        profile.is_default = profile is keep
    return profiles


class ConnectionRegistry:
    """Reads and writes ``connections.json``.

    The default-profile invariant is repaired on every read and write.
    There is no cross-process locking; the last writer wins.

    Example:
        registry = ConnectionRegistry(Path("~/.raspberry/connections.json").expanduser())
        registry.add(ConnectionProfile(name="pi4", host="192.168.1.20", key_path="pi4"))
        default = registry.get_default()
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # === Persistence ===

    def read(self) -> List[ConnectionProfile]:
        """Load all profiles. A missing file is an empty registry.

        Raises:
            ValueError: If the file exists but is not a valid registry
        """
        logger.debug(f"Reading connections from {self.path}")
        if not self.path.exists():
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if data is None:
                return []
            profiles = [ConnectionProfile.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.exception(f"Invalid connections file: {self.path}")
            raise ValueError(f"Invalid connections file {self.path}: {e}") from e

        return repair_default(profiles)

    def write(self, profiles: List[ConnectionProfile]) -> None:
        """Persist profiles with pretty formatting."""
        logger.debug(f"Writing {len(profiles)} connections to {self.path}")
        repair_default(profiles)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                [p.model_dump(by_alias=True) for p in profiles],
                f,
                indent=2,
            )

    # === Queries ===

    def get(self, name: str) -> Optional[ConnectionProfile]:
        """Find a profile by name (case-insensitive)."""
        wanted = name.casefold()
        for profile in self.read():
            if profile.name.casefold() == wanted:
                return profile
        return None

    def find(self, name_or_host: str) -> Optional[ConnectionProfile]:
        """Find a profile by name, then by host (both case-insensitive)."""
        profiles = self.read()
        wanted = name_or_host.casefold()
        for profile in profiles:
            if profile.name.casefold() == wanted:
                return profile
        for profile in profiles:
            if profile.host.casefold() == wanted:
                return profile
        return None

    def get_default(self) -> Optional[ConnectionProfile]:
        for profile in self.read():
            if profile.is_default:
                return profile
        return None

    # === Edits ===

    def add(self, profile: ConnectionProfile) -> None:
        """Add a profile.

        Raises:
            PreconditionError: If a profile with the same name exists
        """
        profiles = self.read()
        if any(p.name.casefold() == profile.name.casefold() for p in profiles):
            raise PreconditionError(f"Connection '{profile.name}' already exists")
        if profile.is_default:
            for p in profiles:
                p.is_default = False
        profiles.append(profile)
        self.write(profiles)

    def remove(self, name: str) -> bool:
        """Remove a profile by name. Returns False if it did not exist."""
        profiles = self.read()
        remaining = [p for p in profiles if p.name.casefold() != name.casefold()]
        if len(remaining) == len(profiles):
            return False
        self.write(remaining)
        return True

    def set_default(self, name: str) -> bool:
        """Make the named profile the default. Returns False if not found."""
        profiles = self.read()
        target = next((p for p in profiles if p.name.casefold() == name.casefold()), None)
        if target is None:
            return False
        for p in profiles:
            p.is_default = p is target
        self.write(profiles)
        return True
