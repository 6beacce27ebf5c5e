"""
Test cases for configuration and service construction.
"""

import pytest
from pydantic import ValidationError

from crawler.storage import JsonStateStore, MemoryStateStore
from utilities.config import WatcherConfig
from watcher.bootstrap import build_scheduler_config, build_service
from watcher.fingerprinting import SHA256


def make_config(**overrides):
    return WatcherConfig(_env_file=None, **overrides)


class TestWatcherConfig:
    """Test cases for WatcherConfig."""

    def test_defaults(self):
        config = make_config()
        assert config.state_backend == "json"
        assert config.retention_limit == 10
        assert config.fingerprint_algorithm == "rolling32"
        assert config.check_interval_minutes == 15

    def test_values_are_normalized(self):
        config = make_config(state_backend="MEMORY", log_level="debug", log_format="CONSOLE")
        assert config.state_backend == "memory"
        assert config.log_level == "DEBUG"
        assert config.log_format == "console"

    @pytest.mark.parametrize("field,value", [
        ("state_backend", "sqlite"),
        ("retention_limit", 0),
        ("fingerprint_algorithm", "md5"),
        ("check_interval_minutes", 0),
        ("check_stagger_seconds", -1),
        ("request_timeout", 1),
        ("retry_attempts", 11),
        ("rate_limit_per_second", 0),
        ("max_alerts_per_hour", 0),
        ("log_level", "VERBOSE"),
        ("log_format", "xml"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            make_config(**{field: value})

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("RETENTION_LIMIT", "5")
        monkeypatch.setenv("STATE_BACKEND", "memory")
        config = make_config()
        assert config.retention_limit == 5
        assert config.state_backend == "memory"

    def test_monitored_url_seed(self):
        config = make_config(monitored_urls=" https://a.test, ,https://b.test ")
        assert config.get_monitored_url_seed() == ["https://a.test", "https://b.test"]

    def test_paths(self):
        config = make_config(log_file=None, state_file="data/x.json")
        assert config.get_log_file_path() is None
        assert config.get_state_file_path().name == "x.json"


class TestBootstrap:
    """Test cases for building services from configuration."""

    @pytest.mark.asyncio
    async def test_build_service(self, tmp_path):
        config = make_config(
            state_backend="memory",
            retention_limit=3,
            fingerprint_algorithm="sha256",
            monitored_urls="https://a.test",
            reports_dir=str(tmp_path / "reports")
        )
        service = build_service(config)

        assert isinstance(service.state_store, MemoryStateStore)
        assert service.retention_limit == 3
        assert service.fingerprinter.algorithm == SHA256
        assert service.report_builder.reports_dir == tmp_path / "reports"

        await service.start()
        assert service.get_monitored_urls() == ["https://a.test"]

    def test_json_backend(self, tmp_path):
        service = build_service(make_config(state_file=str(tmp_path / "state.json")))
        assert isinstance(service.state_store, JsonStateStore)

    def test_scheduler_config(self):
        config = build_scheduler_config(make_config(
            check_interval_minutes=60,
            check_stagger_seconds=0.5,
            alerts_enabled=False,
            generate_reports=True
        ))

        assert config.check_interval_minutes == 60
        assert config.check_stagger_seconds == 0.5
        assert config.generate_reports is True
        assert config.alert_config.enabled is False
