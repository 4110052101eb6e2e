"""Tests for the connection registry."""

import json
from pathlib import Path
from typing import List

import pytest

from raspdebug.errors import PreconditionError
from raspdebug.settings.connections import (
    ConnectionProfile,
    ConnectionRegistry,
    repair_default,
)


def profiles(*names: str, default: str = "") -> List[ConnectionProfile]:
    return [
        ConnectionProfile(name=n, host=f"{n.lower()}.local", is_default=(n == default))
        for n in names
    ]


@pytest.fixture
def registry(tmp_path: Path) -> ConnectionRegistry:
    return ConnectionRegistry(tmp_path / "connections.json")


class TestRepairDefault:
    """Test the exactly-one-default invariant."""

    def test_promotes_lowest_casefolded_name(self) -> None:
        items = repair_default(profiles("pi4", "Bench", "attic"))
        assert [p.name for p in items if p.is_default] == ["attic"]

    def test_keeps_existing_default(self) -> None:
        items = repair_default(profiles("pi4", "bench", default="pi4"))
        assert [p.name for p in items if p.is_default] == ["pi4"]

    def test_multiple_defaults_reduced_to_one(self) -> None:
        items = profiles("zeta", "Alpha", "mid")
        items[0].is_default = True
        items[1].is_default = True
        repair_default(items)
        assert [p.name for p in items if p.is_default] == ["Alpha"]

    def test_empty_list(self) -> None:
        assert repair_default([]) == []


class TestRegistryPersistence:
    """Test reading and writing connections.json."""

    def test_missing_file_is_empty(self, registry: ConnectionRegistry) -> None:
        assert registry.read() == []

    def test_write_uses_camel_case_and_indent(self, registry: ConnectionRegistry) -> None:
        registry.write(profiles("pi4"))
        text = registry.path.read_text()
        data = json.loads(text)
        assert data[0]["isDefault"] is True
        assert data[0]["keyPath"] is None
        assert "\n  " in text

    def test_read_repairs_default(self, registry: ConnectionRegistry) -> None:
        registry.path.write_text(json.dumps([
            {"name": "pi4", "host": "10.0.0.4"},
            {"name": "Bench", "host": "10.0.0.5"},
        ]))
        loaded = registry.read()
        assert [p.name for p in loaded if p.is_default] == ["Bench"]

    def test_invalid_file(self, registry: ConnectionRegistry) -> None:
        registry.path.write_text("{broken")
        with pytest.raises(ValueError):
            registry.read()


class TestRegistryEdits:
    """Test add/remove/default operations."""

    def test_add_first_becomes_default(self, registry: ConnectionRegistry) -> None:
        registry.add(ConnectionProfile(name="pi4", host="10.0.0.4"))
        assert registry.get_default().name == "pi4"

    def test_add_duplicate_name_case_insensitive(self, registry: ConnectionRegistry) -> None:
        registry.add(ConnectionProfile(name="pi4", host="10.0.0.4"))
        with pytest.raises(PreconditionError):
            registry.add(ConnectionProfile(name="PI4", host="10.0.0.9"))

    def test_add_default_replaces_previous(self, registry: ConnectionRegistry) -> None:
        registry.add(ConnectionProfile(name="alpha", host="10.0.0.1"))
        registry.add(ConnectionProfile(name="beta", host="10.0.0.2", is_default=True))
        assert registry.get_default().name == "beta"
        assert sum(p.is_default for p in registry.read()) == 1

    def test_remove_default_promotes_next(self, registry: ConnectionRegistry) -> None:
        registry.write(profiles("alpha", "beta", "gamma", default="alpha"))
        assert registry.remove("ALPHA") is True
        assert registry.get_default().name == "beta"

    def test_remove_unknown(self, registry: ConnectionRegistry) -> None:
        assert registry.remove("nope") is False

    def test_set_default(self, registry: ConnectionRegistry) -> None:
        registry.write(profiles("alpha", "beta"))
        assert registry.set_default("beta") is True
        assert registry.get_default().name == "beta"
        assert registry.set_default("missing") is False

    def test_find_by_name_then_host(self, registry: ConnectionRegistry) -> None:
        registry.write([
            ConnectionProfile(name="bench", host="10.0.0.5"),
            ConnectionProfile(name="10.0.0.5", host="10.0.0.6"),
        ])
        assert registry.find("BENCH").host == "10.0.0.5"
        # a name match wins over a host match
        assert registry.find("10.0.0.5").name == "10.0.0.5"
        assert registry.find("10.0.0.6").name == "10.0.0.5"
        assert registry.find("unknown") is None


class TestKeyPath:
    """Test private key resolution."""

    def test_relative_key_uses_keys_folder(self, tmp_path: Path) -> None:
        profile = ConnectionProfile(name="pi", host="h", key_path="pi_rsa")
        assert profile.resolve_key_path(tmp_path / "keys") == tmp_path / "keys" / "pi_rsa"

    def test_absolute_key_unchanged(self, tmp_path: Path) -> None:
        key = tmp_path / "elsewhere" / "id"
        profile = ConnectionProfile(name="pi", host="h", key_path=str(key))
        assert profile.resolve_key_path(tmp_path / "keys") == key

    def test_no_key(self, tmp_path: Path) -> None:
        assert ConnectionProfile(name="pi", host="h").resolve_key_path(tmp_path) is None
