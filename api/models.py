"""
API request models and shared response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from watcher.models import DiffMode, SearchOptions


class ObserveRequest(BaseModel):
    """Page content delivered for a monitored URL."""
    url: str = Field(..., description="Monitored URL")
    content: Optional[str] = Field(None, description="Raw page content")


class MonitoredUrlsRequest(BaseModel):
    """Replacement list of monitored URLs."""
    urls: List[str] = Field(default_factory=list, description="Absolute http(s) URLs")


class SearchRequest(BaseModel):
    """Search query with options."""
    query: str = Field(..., description="Search text or regular expression")
    options: SearchOptions = Field(default_factory=SearchOptions)


class DiffRequest(BaseModel):
    """Two content strings to compare."""
    old_content: str
    new_content: str
    mode: DiffMode = DiffMode.FORMATTED


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    storage_status: str = Field(..., description="State storage status")
    monitored_urls: int = Field(0, description="Number of monitored URLs")
