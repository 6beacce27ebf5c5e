"""
FastAPI main application for the PageWatch API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from api.auth import get_rate_limit_headers, verify_api_key
from api.config import config as api_config
from api.models import (
    DiffRequest, ErrorResponse, HealthResponse, MonitoredUrlsRequest,
    ObserveRequest, SearchRequest
)
from crawler.page_fetcher import PageFetcher
from utilities.config import config
from watcher.bootstrap import build_service
from watcher.commands import (
    AckResponse, CheckResponse, DiffResponse, ExportResponse, HistoryResponse,
    MonitoredUrlsResponse, ObserveResponse, SearchResponse, StateResponse
)
from watcher.exceptions import (
    EmptyContentError, InvalidPatternError, InvalidUrlError, NotFoundError,
    StateStoreError, WatcherError
)
from watcher.models import DiffMode, StateStatistics
from watcher.service import WatchService

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    EmptyContentError: status.HTTP_400_BAD_REQUEST,
    InvalidPatternError: status.HTTP_400_BAD_REQUEST,
    InvalidUrlError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateStoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting PageWatch API")

    async with PageFetcher(config) as fetcher:
        service = build_service(config, fetcher)
        try:
            await service.start()
        except StateStoreError as e:
            logger.error("Failed to load state", error=str(e))
            raise

        app.state.service = service

        yield

        logger.info("Shutting down PageWatch API")
        await service.stop()


app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for monitoring web pages for content changes.

    ## Features

    * **Monitoring**: Manage monitored URLs and trigger check cycles
    * **History**: Browse change history and render diffs
    * **Search**: Search snapshots and history with text or regular expressions
    * **Reports**: Text reports and JSON exports of search results
    * **Authentication**: API key-based authentication with hourly rate limiting

    ## Authentication

    All endpoints except `/health` require an API key:

    ```
    Authorization: Bearer your_api_key_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def get_service(request: Request) -> WatchService:
    """Get the watch service installed on the application."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Watch service not available"
        )
    return service


def respond(model: BaseModel, api_key: str) -> JSONResponse:
    """Serialize a response model with rate limit headers."""
    return JSONResponse(
        content=model.model_dump(mode="json"),
        headers=get_rate_limit_headers(api_key)
    )


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(WatcherError)
async def watcher_exception_handler(request, exc: WatcherError):
    """Map watcher errors to HTTP responses."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_class):
            status_code = code
            break

    log = logger.error if status_code >= 500 else logger.warning
    log("Request failed", error=str(exc), path=request.url.path, status_code=status_code)

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=str(exc), status_code=status_code).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    service = getattr(request.app.state, "service", None)
    return HealthResponse(
        status="healthy" if service else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        storage_status=config.state_backend if service else "unavailable",
        monitored_urls=len(service.monitored_urls) if service else 0
    )


# Monitored URLs
@app.get("/urls", response_model=MonitoredUrlsResponse, tags=["Monitoring"])
async def get_urls(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Get the monitored URL list."""
    return respond(MonitoredUrlsResponse(urls=service.get_monitored_urls()), api_key)


@app.put("/urls", response_model=MonitoredUrlsResponse, tags=["Monitoring"])
async def set_urls(
    body: MonitoredUrlsRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Replace the monitored URL list. Invalid URLs reject the whole update."""
    urls = await service.set_monitored_urls(body.urls)
    return respond(MonitoredUrlsResponse(urls=urls), api_key)


@app.post("/observe", response_model=ObserveResponse, tags=["Monitoring"])
async def observe(
    body: ObserveRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Observe page content delivered by the caller."""
    outcome = await service.observe(body.url, body.content)
    return respond(ObserveResponse(url=body.url, outcome=outcome), api_key)


@app.post("/check", response_model=CheckResponse, tags=["Monitoring"])
async def check_now(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Check every monitored URL now."""
    result = await service.check_all()
    return respond(CheckResponse(result=result), api_key)


# History
@app.get("/history", response_model=HistoryResponse, tags=["History"])
async def get_history(
    url: Optional[str] = None,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """
    Get change history.

    - **url**: Restrict to one URL
    """
    return respond(HistoryResponse(history=service.get_history(url)), api_key)


@app.get("/history/diff", response_model=DiffResponse, tags=["History"])
async def get_change_diff(
    url: str,
    timestamp: str,
    mode: DiffMode = DiffMode.FORMATTED,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """
    Render the diff of a stored change.

    - **url**: Monitored URL
    - **timestamp**: Change timestamp (ISO format)
    - **mode**: formatted or raw
    """
    try:
        diff = service.render_change_diff(url, timestamp, mode)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format for 'timestamp' parameter. Use ISO format."
        )
    return respond(DiffResponse(diff=diff), api_key)


@app.delete("/history", response_model=AckResponse, tags=["History"])
async def clear_history(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Remove every change record."""
    await service.clear_history()
    return respond(AckResponse(message="History cleared"), api_key)


# State
@app.get("/state", response_model=StateResponse, tags=["State"])
async def get_state(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Get monitored URLs, snapshots and history."""
    return respond(StateResponse(state=service.get_all_state()), api_key)


@app.delete("/state", response_model=AckResponse, tags=["State"])
async def clear_state(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Remove all stored data."""
    await service.clear_all_state()
    return respond(AckResponse(message="All data cleared"), api_key)


@app.get("/stats", response_model=StateStatistics, tags=["State"])
async def get_stats(
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Get state statistics."""
    return respond(service.get_statistics(), api_key)


# Search
@app.post("/search", response_model=SearchResponse, tags=["Search"])
async def search(
    body: SearchRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Search snapshots and change history."""
    results = service.search(body.query, body.options)
    return respond(SearchResponse(
        query=body.query,
        options=body.options,
        total_results=len(results),
        total_matches=sum(result.match_count for result in results),
        results=results
    ), api_key)


@app.post("/search/report", response_class=PlainTextResponse, tags=["Search"])
async def search_report(
    body: SearchRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Build a text report of a search."""
    report = service.build_report(body.query, body.options)
    return PlainTextResponse(report, headers=get_rate_limit_headers(api_key))


@app.post("/search/export", response_model=ExportResponse, tags=["Search"])
async def search_export(
    body: SearchRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Build a JSON export of a search."""
    return respond(ExportResponse(export=service.build_export(body.query, body.options)), api_key)


@app.post("/diff", response_model=DiffResponse, tags=["History"])
async def render_diff(
    body: DiffRequest,
    service: WatchService = Depends(get_service),
    api_key: str = Depends(verify_api_key)
):
    """Render a diff between two content strings."""
    return respond(DiffResponse(diff=service.render_diff(body.old_content, body.new_content, body.mode)), api_key)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
