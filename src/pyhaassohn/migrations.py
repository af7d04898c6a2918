"""One-time capability schema migration run at device start.

Each entry is idempotent: running the table twice leaves the capability set
exactly as running it once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pyhaassohn.platform import CapabilityStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CapabilityMigration:
    """``legacy -> current`` rename, or a pure add (no legacy) / remove (no current)."""

    legacy: str | None
    current: str | None


CAPABILITY_MIGRATIONS: tuple[CapabilityMigration, ...] = (
    CapabilityMigration(legacy="stove_weekprogram", current="stove_weekprogram_active"),
    CapabilityMigration(legacy=None, current="stove_error_state"),
    CapabilityMigration(legacy="meta_raw", current=None),
    CapabilityMigration(legacy="meta_hw_version", current=None),
    CapabilityMigration(legacy="meta_sw_version", current=None),
    CapabilityMigration(legacy="meta_typ", current=None),
)


async def _ensure_present(store: CapabilityStore, capability_id: str) -> bool:
    if store.has_capability(capability_id):
        return False
    try:
        await store.add_capability(capability_id)
    except Exception:
        _logger.error("Failed to add capability %s", capability_id, exc_info=True)
        return False
    return True


async def _ensure_absent(store: CapabilityStore, capability_id: str) -> bool:
    if not store.has_capability(capability_id):
        return False
    try:
        await store.remove_capability(capability_id)
    except Exception:
        _logger.error("Failed to remove capability %s", capability_id, exc_info=True)
        return False
    return True


async def _rename(store: CapabilityStore, legacy: str, current: str) -> bool:
    if not store.has_capability(legacy):
        return False
    value = store.get_capability_value(legacy)
    await _ensure_present(store, current)
    if value is not None and store.has_capability(current) and store.get_capability_value(current) is None:
        try:
            await store.set_capability_value(current, value)
        except Exception:
            _logger.error("Failed to copy %s into %s", legacy, current, exc_info=True)
            return False
    return await _ensure_absent(store, legacy)


async def migrate_capabilities(
    store: CapabilityStore,
    migrations: tuple[CapabilityMigration, ...] = CAPABILITY_MIGRATIONS,
) -> list[CapabilityMigration]:
    """Apply *migrations* and return the entries that changed something."""
    applied: list[CapabilityMigration] = []
    for migration in migrations:
        if migration.legacy and migration.current:
            changed = await _rename(store, migration.legacy, migration.current)
        elif migration.current:
            changed = await _ensure_present(store, migration.current)
        elif migration.legacy:
            changed = await _ensure_absent(store, migration.legacy)
        else:
            changed = False
        if changed:
            _logger.info("Capability migration applied: %s -> %s", migration.legacy, migration.current)
            applied.append(migration)
    return applied
