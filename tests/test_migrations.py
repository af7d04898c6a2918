from __future__ import annotations

import logging

import pytest

from pyhaassohn.migrations import CAPABILITY_MIGRATIONS, CapabilityMigration, migrate_capabilities
from pyhaassohn.platform import InMemoryHost


class RefusingHost(InMemoryHost):
    async def add_capability(self, capability_id: str) -> None:
        raise RuntimeError("capability schema is locked")


@pytest.mark.asyncio
async def test_rename_copies_value_and_removes_legacy() -> None:
    host = InMemoryHost(capabilities={"stove_weekprogram": True, "meta_raw": "{}", "onoff": False})

    applied = await migrate_capabilities(host)

    assert host.capabilities == {"stove_weekprogram_active": True, "stove_error_state": None, "onoff": False}
    assert CapabilityMigration(legacy="meta_raw", current=None) in applied


@pytest.mark.asyncio
async def test_migrations_are_idempotent() -> None:
    host = InMemoryHost(capabilities={"stove_weekprogram": False})
    await migrate_capabilities(host)
    snapshot = dict(host.capabilities)

    assert await migrate_capabilities(host) == []
    assert host.capabilities == snapshot


@pytest.mark.asyncio
async def test_rename_keeps_existing_current_value() -> None:
    host = InMemoryHost(capabilities={"stove_weekprogram": False, "stove_weekprogram_active": True})

    await migrate_capabilities(host, CAPABILITY_MIGRATIONS[:1])

    assert host.capabilities == {"stove_weekprogram_active": True}


@pytest.mark.asyncio
async def test_failures_are_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    host = RefusingHost(capabilities={"onoff": True})

    with caplog.at_level(logging.ERROR, logger="pyhaassohn.migrations"):
        applied = await migrate_capabilities(host)

    assert applied == []
    assert "stove_error_state" not in host.capabilities
    assert "Failed to add capability stove_error_state" in caplog.text
