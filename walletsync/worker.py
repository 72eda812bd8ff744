"""
Command-line entry point that runs one dispatcher batch and exits.

Meant to be triggered by cron or a scheduler:

    walletsync-worker
"""
import asyncio
import logging
import sys

from walletsync.core.components import build_components
from walletsync.core.config import get_settings

logger = logging.getLogger(__name__)


async def run_once() -> int:
    settings = get_settings()
    components = build_components(settings)
    try:
        summary = await components.dispatcher.run_batch()
    finally:
        await components.aclose()
    logger.info(f"Processed {summary.processed}, failed {summary.failed}, "
                f"dropped {summary.dropped}, total {summary.total}")
    return 0


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        exit_code = asyncio.run(run_once())
    except Exception:
        logger.exception("Wallet job worker failed")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
