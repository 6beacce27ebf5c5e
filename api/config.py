"""
API configuration settings.
"""

from typing import List

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "PageWatch API"
    api_version: str = "1.0.4"
    api_description: str = "REST API for monitoring web pages, searching their history and exporting reports"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # API Key Settings
    api_keys: str = ""  # Comma-separated list of valid API keys

    # Rate Limiting
    default_rate_limit: int = 100  # requests per hour
    rate_limit_window: int = 3600  # 1 hour in seconds

    # CORS Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    def get_api_keys(self) -> List[str]:
        """Parse the comma-separated API key list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]


# Global config instance
config = APIConfig()
