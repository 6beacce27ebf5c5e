"""
Alerting system for change notifications.

This module provides:
- Log-based alerts for detected page changes
- Hourly rate limiting and per-URL cooldown
- Check cycle summaries
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog

from watcher.models import AlertConfig, ChangeEvent, CheckCycleResult

logger = structlog.get_logger(__name__)


class AlertManager:
    """Change event listener that raises log alerts."""

    def __init__(
        self,
        alert_config: Optional[AlertConfig] = None,
        now_fn: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize alert manager.

        Args:
            alert_config: Alert configuration
            now_fn: Clock used for rate limiting
        """
        self.config = alert_config or AlertConfig()
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(component="alert_manager")
        self.alert_history: List[datetime] = []
        self.last_alert_times: Dict[str, datetime] = {}
        self.alerts_sent = 0
        self.alerts_suppressed = 0

    def __call__(self, event: ChangeEvent) -> None:
        self.handle_change_event(event)

    def handle_change_event(self, event: ChangeEvent) -> bool:
        """
        Raise an alert for a change event.

        Args:
            event: Detected change

        Returns:
            True if an alert was logged
        """
        if not self.config.enabled or not self.config.log_enabled:
            self.logger.debug("Alerting is disabled", url=event.url)
            return False

        if not self._check_rate_limit():
            self.alerts_suppressed += 1
            self.logger.warning("Alert rate limited", url=event.url)
            return False

        if not self._check_cooldown(event.url):
            self.alerts_suppressed += 1
            self.logger.debug("Alert in cooldown", url=event.url)
            return False

        self.logger.warning(
            "Change detection alert",
            message=f"Page Changed! Content changed on: {event.url}",
            url=event.url,
            detected_at=event.timestamp.isoformat()
        )

        self._update_alert_history(event.url)
        self.alerts_sent += 1
        return True

    def _check_rate_limit(self) -> bool:
        """Check if another alert fits in the hourly limit."""
        hour_ago = self.now_fn() - timedelta(hours=1)
        recent_alerts = [time for time in self.alert_history if time > hour_ago]
        return len(recent_alerts) < self.config.max_alerts_per_hour

    def _check_cooldown(self, url: str) -> bool:
        """Check if the URL is outside its cooldown period."""
        last_alert_time = self.last_alert_times.get(url)
        if last_alert_time is None:
            return True

        cooldown_period = timedelta(minutes=self.config.alert_cooldown_minutes)
        return self.now_fn() - last_alert_time >= cooldown_period

    def _update_alert_history(self, url: str) -> None:
        current_time = self.now_fn()
        self.last_alert_times[url] = current_time

        hour_ago = current_time - timedelta(hours=1)
        self.alert_history = [time for time in self.alert_history if time > hour_ago]
        self.alert_history.append(current_time)

    def send_cycle_summary(self, result: CheckCycleResult) -> None:
        """Log a summary of a finished check cycle."""
        if not self.config.enabled:
            return

        summary_message = (
            f"Check cycle {result.cycle_id[:8]}: "
            f"{result.urls_checked} URLs checked, "
            f"{result.changed} changed, "
            f"{result.first_seen} first seen, "
            f"{result.failed} failed"
        )

        log = self.logger.warning if result.failed else self.logger.info
        log(
            "Check cycle summary",
            message=summary_message,
            cycle_id=result.cycle_id,
            errors=result.errors
        )
