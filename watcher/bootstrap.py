"""
Construction of watch services and scheduler configuration from settings.
"""

from typing import Optional

from crawler.storage import create_state_store
from utilities.config import WatcherConfig, config as default_config
from watcher.alerting import AlertManager
from watcher.models import AlertConfig, SchedulerConfig
from watcher.report_generator import ReportBuilder
from watcher.service import WatchService


def build_alert_config(settings: Optional[WatcherConfig] = None) -> AlertConfig:
    settings = settings or default_config
    return AlertConfig(
        enabled=settings.alerts_enabled,
        max_alerts_per_hour=settings.max_alerts_per_hour
    )


def build_scheduler_config(settings: Optional[WatcherConfig] = None) -> SchedulerConfig:
    settings = settings or default_config
    return SchedulerConfig(
        check_interval_minutes=settings.check_interval_minutes,
        check_stagger_seconds=settings.check_stagger_seconds,
        timezone=settings.timezone,
        generate_reports=settings.generate_reports,
        alert_config=build_alert_config(settings)
    )


def build_service(settings: Optional[WatcherConfig] = None, fetcher=None) -> WatchService:
    """
    Build a watch service wired to the configured state backend.

    Args:
        settings: Watcher configuration (defaults to the global config)
        fetcher: Page fetcher used by check operations

    Returns:
        Unstarted WatchService
    """
    settings = settings or default_config
    return WatchService(
        create_state_store(settings),
        fetcher=fetcher,
        retention_limit=settings.retention_limit,
        fingerprint_algorithm=settings.fingerprint_algorithm,
        alert_manager=AlertManager(build_alert_config(settings)),
        report_builder=ReportBuilder(settings.reports_dir),
        seed_urls=settings.get_monitored_url_seed(),
        check_stagger_seconds=settings.check_stagger_seconds
    )
