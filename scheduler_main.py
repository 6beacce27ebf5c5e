"""
Main entry point for the PageWatch scheduler.

This script starts the scheduler service that checks monitored pages periodically.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog

from crawler.page_fetcher import PageFetcher
from utilities.config import config
from utilities.logger import setup_logging
from watcher.bootstrap import build_scheduler_config, build_service
from watcher.scheduler_service import TEST_INTERVAL_MINUTES, WatchScheduler


async def main():
    """Main function to start the scheduler service."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    logger = structlog.get_logger(__name__)
    logger.info("Starting PageWatch scheduler")

    test_mode = False
    run_once = False

    if len(sys.argv) > 1:
        if sys.argv[1] == "--test":
            test_mode = True
            print("\n" + "=" * 60)
            print("🧪 TEST MODE ENABLED")
            print("=" * 60)
            print(f"✅ Check Cycle: Every {TEST_INTERVAL_MINUTES} minutes")
            print("=" * 60)
        elif sys.argv[1] == "--once":
            run_once = True
            print("\n" + "=" * 60)
            print("🔄 RUN ONCE MODE ENABLED")
            print("=" * 60)
            print("✅ Check Cycle: Single run")
            print("✅ Exit after completion")
            print("=" * 60)
        else:
            print(f"Unknown argument: {sys.argv[1]}")
            print("Usage: python scheduler_main.py [--test|--once]")
            sys.exit(1)

    scheduler_config = build_scheduler_config(config)

    if not test_mode and not run_once:
        print("\n" + "=" * 60)
        print("🏭 DAEMON MODE ENABLED")
        print("=" * 60)
        print(f"✅ Check Cycle: Every {scheduler_config.check_interval_minutes} minutes")
        print(f"✅ Stagger: {scheduler_config.check_stagger_seconds}s between URLs")
        print("=" * 60)

    service = None
    try:
        async with PageFetcher(config) as fetcher:
            service = build_service(config, fetcher)
            scheduler = WatchScheduler(scheduler_config, service)

            logger.info(
                "Scheduler service configured",
                interval_minutes=scheduler_config.check_interval_minutes,
                timezone=scheduler_config.timezone,
                state_backend=config.state_backend
            )

            await scheduler.start(test_mode=test_mode, run_once=run_once)

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error("Failed to run scheduler service", error=str(e))
        sys.exit(1)
    finally:
        if service is not None:
            await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
