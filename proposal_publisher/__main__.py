"""
Command line entry point.

    python -m proposal_publisher check   # run one check and print the summary
    python -m proposal_publisher watch   # check every POLL_INTERVAL_SECONDS
"""
import argparse
import asyncio
import sys
from typing import Optional

import httpx

from proposal_publisher.config.settings import Settings
from proposal_publisher.exceptions import ConfigurationError, SeenStoreError, SourceUnavailableError
from proposal_publisher.services.run_controller import create_controller, run_forever
from proposal_publisher.utils.logger import logger


async def _check(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    async with create_controller(settings, transport=transport) as controller:
        try:
            summary = await controller.check()
        except (SourceUnavailableError, SeenStoreError) as e:
            logger.error(f"Run aborted: {e.message}")
            return 1
    print(summary.model_dump_json(indent=2))
    return 1 if summary.failed else 0


async def _watch(settings: Settings, interval: int, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    async with create_controller(settings, transport=transport) as controller:
        await run_forever(controller, interval)
    return 0


def main(argv=None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    parser = argparse.ArgumentParser(prog="proposal_publisher", description="Publish new DAO proposals to the docs")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("check", help="Run a single check")
    watch = subparsers.add_parser("watch", help="Check on a fixed interval")
    watch.add_argument("--interval", type=int, default=None, help="Seconds between checks")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
        if args.command == "check":
            return asyncio.run(_check(settings, transport))
        return asyncio.run(_watch(settings, args.interval or settings.poll_interval_seconds, transport))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
