#!/usr/bin/env python3
"""Run the reconciliation loop against a real stove.

Uses the in-memory host, so nothing is persisted between runs. Every
capability write, warning and flow trigger is logged as it happens.

Usage
-----
::

    export HAASSOHN_ADDRESS="192.168.1.40"
    export HAASSOHN_PIN="1234"
    python scripts/run_device.py --poll-interval 10 --duration 120

Optionally send one command after the first pass::

    python scripts/run_device.py --set-temperature 21.5
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyhaassohn import InMemoryHost, StoveConfig, StoveDevice, StoveError  # noqa: E402
from pyhaassohn.ingestion.normalize import CAPABILITY_TYPES  # noqa: E402
from pyhaassohn.state.events import FlowTrigger  # noqa: E402

_logger = logging.getLogger("run_device")


class LoggingHost(InMemoryHost):
    """In-memory host that logs every side effect."""

    async def set_capability_value(self, capability_id: str, value: Any) -> None:
        await super().set_capability_value(capability_id, value)
        _logger.info("capability %-28s = %r", capability_id, value)

    async def set_warning(self, message: str) -> None:
        await super().set_warning(message)
        _logger.warning("warning: %s", message)

    async def unset_warning(self) -> None:
        await super().unset_warning()
        _logger.info("warning cleared")

    async def set_unavailable(self, reason: str) -> None:
        await super().set_unavailable(reason)
        _logger.warning("unavailable: %s", reason)

    async def trigger(self, trigger: FlowTrigger, tokens: Any) -> None:
        await super().trigger(trigger, tokens)
        _logger.info("flow trigger %s %s", trigger.value, dict(tokens))


async def main() -> int:
    parser = argparse.ArgumentParser(description="Run the pellet stove reconciliation loop.")
    parser.add_argument("--poll-interval", type=float, help="Seconds between polls (default: HAASSOHN_POLL_INTERVAL)")
    parser.add_argument("--duration", type=float, default=60.0, help="Seconds to run (default: 60)")
    parser.add_argument("--set-temperature", type=float, help="Send a target temperature after the first pass")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = StoveConfig.from_env()
    if not config.resolved_address:
        print("HAASSOHN_ADDRESS is not set", file=sys.stderr)
        return 2

    settings: dict[str, Any] = {
        "address": config.address,
        "pin": config.pin,
        "port": config.port,
        "pollInterval": args.poll_interval or config.poll_interval,
        "pellets_max_kg": config.pellets_max_kg,
        "pellets_auto_reset": config.pellets_auto_reset.value,
    }
    if config.pellets_kg is not None:
        settings["pellets_kg"] = config.pellets_kg

    host = LoggingHost(
        name="Haas+Sohn",
        capabilities={capability: None for capability in CAPABILITY_TYPES},
        settings=settings,
    )

    async with StoveDevice(host) as device:
        host.settings_listener = device.on_settings
        if args.set_temperature is not None:
            await device.poll_status()
            try:
                await device.set_target_temperature(args.set_temperature)
            except StoveError as exc:
                _logger.error("Command failed: %s", exc)
            else:
                _logger.info("Command read-back: %s", device.last_command_check)
        await asyncio.sleep(args.duration)

    _logger.info("Remaining pellets: %s kg, failed polls: %d", device.pellets.remaining_kg, device.error_count)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
