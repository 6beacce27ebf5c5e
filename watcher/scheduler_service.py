"""
Scheduler service for periodic page checks.

This module provides:
- Interval scheduling of check cycles with APScheduler
- Test mode (2-minute interval) and run-once mode
- Optional statistics export after each cycle
- Graceful shutdown on signals
"""

import asyncio
import signal
import sys
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from watcher.models import CheckCycleResult, SchedulerConfig
from watcher.service import WatchService

logger = structlog.get_logger(__name__)

TEST_INTERVAL_MINUTES = 2


class WatchScheduler:
    """Runs check cycles of a WatchService on a timer."""

    def __init__(
        self,
        config: SchedulerConfig,
        service: WatchService,
        install_signal_handlers: bool = True
    ):
        """
        Initialize scheduler service.

        Args:
            config: Scheduler configuration
            service: Watch service whose monitored URLs are checked
            install_signal_handlers: Stop gracefully on SIGINT/SIGTERM
        """
        self.config = config
        self.service = service
        self.scheduler = AsyncIOScheduler(timezone=config.timezone)
        self.logger = logger.bind(component="watch_scheduler")
        self.last_result: Optional[CheckCycleResult] = None

        if install_signal_handlers:
            self._setup_signal_handlers()

        self._setup_scheduler_listeners()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info("Received signal, shutting down gracefully", signal=signum)
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.info(
                "Job executed successfully",
                job_id=event.job_id,
                duration=event.retval.get("duration", 0) if event.retval else 0
            )

        def job_error_listener(event):
            self.logger.error(
                "Job execution failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def add_jobs(self, test_mode: bool = False) -> None:
        """Register the check cycle job."""
        minutes = TEST_INTERVAL_MINUTES if test_mode else self.config.check_interval_minutes
        job_id = "test_check_cycle" if test_mode else "check_cycle"

        self.scheduler.add_job(
            func=self._check_cycle_job,
            trigger="interval",
            minutes=minutes,
            next_run_time=datetime.now(timezone.utc),
            id=job_id,
            name=f"Check Cycle ({minutes}min)",
            max_instances=1,
            replace_existing=True
        )
        self.logger.info("Added check cycle job", job_id=job_id, interval_minutes=minutes)

    async def start(self, test_mode: bool = False, run_once: bool = False) -> None:
        """Start the scheduler service and run until stopped."""
        if run_once:
            self.logger.info("Starting scheduler service in RUN ONCE MODE")
        elif test_mode:
            self.logger.info("Starting scheduler service in TEST MODE")
        else:
            self.logger.info("Starting scheduler service")

        try:
            await self.service.start()

            if run_once:
                await self.run_once()
                return

            self.add_jobs(test_mode=test_mode)
            self.scheduler.start()

            self.logger.info(
                "Scheduler service started",
                timezone=self.config.timezone,
                interval_minutes=TEST_INTERVAL_MINUTES if test_mode else self.config.check_interval_minutes,
                monitored_urls=len(self.service.monitored_urls)
            )

            while self.scheduler.running:
                await asyncio.sleep(1)

        except Exception as e:
            self.logger.error(
                "Failed to run scheduler service",
                error=str(e)
            )
            raise

    async def run_once(self) -> Dict:
        """Run a single check cycle."""
        self.logger.info(
            "Running check cycle once",
            monitored_urls=len(self.service.monitored_urls)
        )
        result = await self._check_cycle_job()
        self.logger.info("Run once mode completed")
        return result

    def stop(self) -> None:
        """Stop the scheduler service."""
        self.logger.info("Stopping scheduler service")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.logger.info("Scheduler service stopped")

    async def _check_cycle_job(self) -> Dict:
        """Check every monitored URL."""
        start_time = datetime.now(timezone.utc)

        try:
            result = await self.service.check_all(stagger_seconds=self.config.check_stagger_seconds)
            self.last_result = result

            if self.config.generate_reports:
                self.service.report_builder.export_state_json(self.service.get_all_state())

            return {
                "cycle_id": result.cycle_id,
                "success": result.success,
                "urls_checked": result.urls_checked,
                "changed": result.changed,
                "failed": result.failed,
                "duration": result.duration_seconds
            }

        except Exception as e:
            self.logger.error(
                "Check cycle job failed",
                error=str(e)
            )
            return {
                "success": False,
                "error": str(e),
                "duration": (datetime.now(timezone.utc) - start_time).total_seconds()
            }

    def get_scheduler_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger)
            })

        return {
            "running": self.scheduler.running,
            "timezone": self.config.timezone,
            "jobs": jobs,
            "job_count": len(jobs),
            "last_cycle": self.last_result.model_dump(mode="json") if self.last_result else None
        }
