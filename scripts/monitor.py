#!/usr/bin/env python3
"""Poll the motor controller, record every sample and keep the charts up to date."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from motor_monitor.io import ConfigError, build_loop, load_config
from motor_monitor.orchestration import MonitoringLoop, RunSummary

logger = logging.getLogger("motor_monitor.monitor")


def _cycle_count(value: str) -> int:
    count = int(value)
    if count < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return count


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--settings", help="Optional path to a monitor settings YAML file.")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a simulated controller instead of the serial Modbus RTU link.",
    )
    parser.add_argument("--cycles", type=_cycle_count, help="Stop after this many cycles (default: run until interrupted).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args()


async def _run(loop: MonitoringLoop, cycles: int | None) -> RunSummary:
    event_loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            event_loop.add_signal_handler(sig, loop.stop)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            pass
    return await loop.run(max_cycles=cycles)


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.settings)
    except ConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    loop = build_loop(config, simulate=args.simulate)
    logger.info(
        "Monitoring %s (%s), storing to %s, charts in %s",
        "simulated controller" if args.simulate else config.transport.port,
        ", ".join(config.channels),
        config.database,
        config.chart.output_dir,
    )
    summary = asyncio.run(_run(loop, args.cycles))
    return 0 if summary.clean else 1


if __name__ == "__main__":
    sys.exit(main())
