#!/usr/bin/env python3
"""Dump the stove's status document.

Prints the raw JSON returned by ``/status.cgi`` together with the
flattened key space the reconciliation loop works on, so new firmware
fields are easy to spot.

Usage
-----
Set environment variables and run::

    export HAASSOHN_ADDRESS="192.168.1.40"
    export HAASSOHN_PIN="1234"
    python scripts/dump_status.py

Options::

    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --verbose            Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyhaassohn import StoveClient, StoveConfig, StoveError  # noqa: E402
from pyhaassohn._redact import redact_for_log  # noqa: E402
from pyhaassohn.ingestion.normalize import flatten  # noqa: E402
from pyhaassohn.state.faults import ErrorStateMachine  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


async def main() -> int:
    parser = argparse.ArgumentParser(description="Dump the Haas+Sohn stove status document.")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = StoveConfig.from_env()
    if not config.resolved_address:
        print("HAASSOHN_ADDRESS is not set", file=sys.stderr)
        return 2

    try:
        async with StoveClient.from_config(config) as client:
            status = await client.fetch_status()
    except StoveError as exc:
        print(f"Status request failed: {exc}", file=sys.stderr)
        return 1

    flat = flatten(status)
    fault = ErrorStateMachine().reconcile(flat)
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "address": config.resolved_address,
        "raw": redact_for_log(status),
        "flat": redact_for_log(flat),
        "fault": {"code": fault.code, "message": fault.message},
    }

    if args.json_mode or args.output:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
        return 0

    out: list[str] = [_section("pyhaassohn dump_status")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  address   : {result['address']}")
    out.append(f"  fault     : {fault.message or 'No error'}")
    out.append(_section("RAW"))
    out.append(json.dumps(result["raw"], indent=2, ensure_ascii=False))
    out.append(_section("FLATTENED"))
    width = max((len(key) for key in flat), default=0)
    for key in sorted(flat):
        out.append(f"  {key.ljust(width)} : {result['flat'][key]!r}")
    print("\n".join(out))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
