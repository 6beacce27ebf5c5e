"""
Configuration management using environment variables.
Handles all watcher settings with proper validation and defaults.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WatcherConfig(BaseSettings):
    """
    Configuration class for page watcher settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # State Storage
    state_backend: str = Field(default="json")
    state_file: str = Field(default="data/pagewatch_state.json")
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="pagewatch")
    mongodb_collection: str = Field(default="state")

    # Change Detection
    retention_limit: int = Field(default=10)
    fingerprint_algorithm: str = Field(default="rolling32")
    monitored_urls: str = Field(default="", description="Comma-separated seed URLs")

    # Checking
    check_interval_minutes: int = Field(default=15)
    check_stagger_seconds: float = Field(default=2.0)
    timezone: str = Field(default="UTC")
    request_timeout: int = Field(default=30)
    retry_attempts: int = Field(default=3)
    retry_delay: float = Field(default=1.0)
    rate_limit_per_second: float = Field(default=2.0)

    # Alerting and Reports
    alerts_enabled: bool = Field(default=True)
    max_alerts_per_hour: int = Field(default=30)
    reports_dir: str = Field(default="reports")
    generate_reports: bool = Field(default=False)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default="logs/pagewatch.log")

    # Development/Testing
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("state_backend")
    @classmethod
    def validate_state_backend(cls, v):
        """Ensure the state backend is known."""
        valid_backends = ["memory", "json", "mongodb"]
        if v.lower() not in valid_backends:
            raise ValueError(f"state_backend must be one of: {valid_backends}")
        return v.lower()

    @field_validator("retention_limit")
    @classmethod
    def validate_retention_limit(cls, v):
        """Ensure retention limit is reasonable."""
        if v < 1 or v > 100:
            raise ValueError("retention_limit must be between 1 and 100")
        return v

    @field_validator("fingerprint_algorithm")
    @classmethod
    def validate_fingerprint_algorithm(cls, v):
        valid_algorithms = ["rolling32", "sha256"]
        if v.lower() not in valid_algorithms:
            raise ValueError(f"fingerprint_algorithm must be one of: {valid_algorithms}")
        return v.lower()

    @field_validator("check_interval_minutes")
    @classmethod
    def validate_check_interval(cls, v):
        """Ensure check interval is reasonable."""
        if v < 1 or v > 1440:
            raise ValueError("check_interval_minutes must be between 1 and 1440")
        return v

    @field_validator("check_stagger_seconds")
    @classmethod
    def validate_stagger(cls, v):
        if v < 0 or v > 60:
            raise ValueError("check_stagger_seconds must be between 0 and 60")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError("request_timeout must be between 5 and 300 seconds")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v):
        """Ensure retry attempts is reasonable."""
        if v < 0 or v > 10:
            raise ValueError("retry_attempts must be between 0 and 10")
        return v

    @field_validator("rate_limit_per_second")
    @classmethod
    def validate_rate_limit(cls, v):
        """Ensure rate limit is reasonable."""
        if v < 0.1 or v > 10:
            raise ValueError("rate_limit_per_second must be between 0.1 and 10")
        return v

    @field_validator("max_alerts_per_hour")
    @classmethod
    def validate_max_alerts(cls, v):
        if v < 1:
            raise ValueError("max_alerts_per_hour must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_state_file_path(self) -> Path:
        """Get state file path as Path object."""
        return Path(self.state_file)

    def get_monitored_url_seed(self) -> List[str]:
        """Get the seed URL list from the comma-separated setting."""
        return [url.strip() for url in self.monitored_urls.split(",") if url.strip()]

    def get_user_agent(self) -> str:
        """Get user agent string for requests."""
        return "PageWatch/1.0.4 (Page Change Monitor)"

    def get_headers(self) -> dict:
        """Get default headers for HTTP requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        }


# Global configuration instance
config = WatcherConfig()
