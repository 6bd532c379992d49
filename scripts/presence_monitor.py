#!/usr/bin/env python3
"""Live presence monitor for ESPresense room reports.

Connects to an MQTT broker, subscribes to the configured devices and logs
every presence change produced by the fusion core:

    python scripts/presence_monitor.py --host broker.lan --device irk:abc --device iBeacon:f00d

Options fall back to ``ESPRESENSE_*`` environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyespresense import (  # noqa: E402
    EspresenseMqttRuntime,
    InMemoryPresenceSink,
    PresenceChange,
    PresenceConfig,
    PresenceController,
    TransportUnavailableError,
)

_LOG = logging.getLogger("presence_monitor")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--host", help="MQTT broker host")
    parser.add_argument("--port", type=int, help="MQTT broker port")
    parser.add_argument("--username", help="MQTT username")
    parser.add_argument("--password", help="MQTT password")
    parser.add_argument("--device", action="append", dest="devices", help="Device id to track (repeatable)")
    parser.add_argument("--rssi-for-home", type=float, help="Minimum RSSI to count as home")
    parser.add_argument("--timeout", type=int, help="Staleness timeout in milliseconds")
    parser.add_argument("--interval", type=int, help="Sweep interval in milliseconds")
    parser.add_argument("--json", action="store_true", help="Print changes as JSON lines")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> PresenceConfig:
    overrides = {
        "mqtt_host": args.host,
        "mqtt_port": args.port,
        "mqtt_username": args.username,
        "mqtt_password": args.password,
        "devices": tuple(args.devices) if args.devices else None,
        "rssi_for_home": args.rssi_for_home,
        "timeout": args.timeout,
        "interval": args.interval,
    }
    return PresenceConfig.from_env(**{k: v for k, v in overrides.items() if v is not None})


async def _run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    if not config.devices:
        _LOG.error("No devices configured (use --device or ESPRESENSE_DEVICES)")
        return 2

    loop = asyncio.get_running_loop()
    runtime = EspresenseMqttRuntime.from_config(config, loop=loop)
    try:
        await loop.run_in_executor(None, runtime.start)
    except TransportUnavailableError as exc:
        _LOG.error("%s", exc)
        return 1

    def on_change(change: PresenceChange) -> None:
        if args.json:
            print(json.dumps(change.model_dump()), flush=True)
            return
        changes = {k: v for k, v in change.changes.items() if not k.endswith(".rawdata")}
        _LOG.info("%s (%s): %s", change.device_id, change.reason, changes)

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    sink = InMemoryPresenceSink()
    try:
        async with PresenceController(config, sink, transports={config.transport: runtime}, on_change=on_change):
            _LOG.info("Monitoring %d device(s) on %s:%s", len(config.devices), config.mqtt_host, config.mqtt_port)
            await stop.wait()
    finally:
        await loop.run_in_executor(None, runtime.stop)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
