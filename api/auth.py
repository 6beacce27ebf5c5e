"""
Authentication and rate limiting for the FastAPI API.
"""

import time
from typing import Dict, List

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.config import config as api_config

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer()


class RateLimiter:
    """In-memory sliding-window rate limiter keyed by API key."""

    def __init__(self, rate_limit: int, window_seconds: int = 3600):
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.requests: Dict[str, List[float]] = {}

    def _recent(self, api_key: str, current_time: float) -> List[float]:
        recent = [
            req_time for req_time in self.requests.get(api_key, [])
            if current_time - req_time < self.window_seconds
        ]
        self.requests[api_key] = recent
        return recent

    def check_rate_limit(self, api_key: str) -> bool:
        """
        Record a request and check it against the limit.

        Args:
            api_key: API key making the request

        Returns:
            True if within limit, False if exceeded
        """
        current_time = time.time()
        recent = self._recent(api_key, current_time)
        if len(recent) >= self.rate_limit:
            return False
        recent.append(current_time)
        return True

    def get_rate_limit_info(self, api_key: str) -> Dict:
        """Get rate limit information for an API key."""
        current_time = time.time()
        recent = self._recent(api_key, current_time)
        reset_time = (recent[0] if recent else current_time) + self.window_seconds
        return {
            "requests_used": len(recent),
            "requests_remaining": max(0, self.rate_limit - len(recent)),
            "rate_limit": self.rate_limit,
            "reset_time": reset_time
        }

    def reset(self) -> None:
        self.requests.clear()


rate_limiter = RateLimiter(api_config.default_rate_limit, api_config.rate_limit_window)


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """
    Verify API key from request against the configured keys.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        API key if valid

    Raises:
        HTTPException: If API key is invalid or rate limit exceeded
    """
    api_key = credentials.credentials

    if api_key not in api_config.get_api_keys():
        logger.warning("Invalid API key attempted", api_key=api_key[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not rate_limiter.check_rate_limit(api_key):
        logger.warning("Rate limit exceeded", api_key=api_key[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers=get_rate_limit_headers(api_key),
        )

    return api_key


def get_rate_limit_headers(api_key: str) -> Dict[str, str]:
    """
    Get rate limit headers for response.

    Args:
        api_key: API key

    Returns:
        Dictionary with rate limit headers
    """
    rate_info = rate_limiter.get_rate_limit_info(api_key)
    return {
        "X-RateLimit-Limit": str(rate_info["rate_limit"]),
        "X-RateLimit-Remaining": str(rate_info["requests_remaining"]),
        "X-RateLimit-Reset": str(int(rate_info["reset_time"]))
    }
