"""
Main entry point for PageWatch.
Runs a single check cycle over every monitored URL.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from crawler.page_fetcher import PageFetcher
from utilities.config import config
from utilities.logger import get_logger, setup_logging
from watcher.bootstrap import build_service
from watcher.exceptions import WatcherError


async def main():
    """Run one check cycle."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info("Starting PageWatch check")

    service = None
    try:
        async with PageFetcher(config) as fetcher:
            service = build_service(config, fetcher)
            await service.start()

            if not service.monitored_urls:
                logger.warning("No monitored URLs configured")
                return

            result = await service.check_all()

            if result.success:
                logger.info(
                    "Check completed successfully",
                    urls_checked=result.urls_checked,
                    changed=result.changed,
                    duration_seconds=result.duration_seconds
                )
            else:
                logger.error(
                    "Check completed with errors",
                    urls_checked=result.urls_checked,
                    failed=result.failed,
                    duration_seconds=result.duration_seconds
                )
                for error in result.errors:
                    logger.error("Check error", error=error)

            stats = service.get_statistics()
            logger.info("State statistics", **stats.model_dump(mode="json"))

    except WatcherError as e:
        logger.error("Fatal error occurred", error=str(e))
        sys.exit(1)

    finally:
        if service is not None:
            await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
