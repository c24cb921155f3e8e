"""Run the heartbeat monitor as a long-lived process.

Usage:
    python -m herald.heartbeat          # check every interval
    python -m herald.heartbeat --once   # single check, for cron
"""

from __future__ import annotations

import argparse
import asyncio
import signal

from herald.config import Settings
from herald.logging import configure_logging, get_logger
from herald.service import HeraldService

logger = get_logger(__name__)


async def _run(once: bool) -> int:
    settings = Settings()
    configure_logging(level=settings.log_level, format=settings.log_format)

    async with HeraldService.create(settings) as service:
        if once:
            result = await service.monitor.check_health()
            logger.info("Heartbeat check complete", **result.model_dump(mode="json"))
            return 0 if result.state.value != "failed" else 1

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, service.monitor.stop)
        await service.monitor.run()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the herald-heartbeat console script."""
    parser = argparse.ArgumentParser(description="Inbound webhook heartbeat monitor")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single health check and exit (non-zero if reconnection failed)",
    )
    args = parser.parse_args(argv)
    return asyncio.run(_run(args.once))


if __name__ == "__main__":
    raise SystemExit(main())
