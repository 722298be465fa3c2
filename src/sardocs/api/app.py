"""FastAPI app factory for the SAR document service."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sardocs.api.reports import get_record_store
from sardocs.api.reports import router as reports_router
from sardocs.observability import configure_logging
from sardocs.settings import Settings, get_settings
from sardocs.store import ElasticsearchRecordStore, RecordStoreError

LOGGER = logging.getLogger(__name__)

HEALTH_PATH = "/api/health"

# ----------------------------------------
# Rate limiting
# ----------------------------------------


class RateLimiter:
    """Per-client rolling-window request counter.

    State lives in process memory, so each worker enforces its own window.
    Clients idle for a whole window are evicted at most once per window.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self.requests: Dict[str, List[float]] = {}
        self._next_sweep = 0.0

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def allow(self, client_key: str) -> bool:
        """Record a request for ``client_key``; False once the window is full."""

        now = self._clock()
        window_start = now - self.window_seconds
        with self._lock:
            if now >= self._next_sweep:
                self._evict_idle(window_start)
                self._next_sweep = now + self.window_seconds
            timestamps = self.requests.setdefault(client_key, [])
            timestamps[:] = [t for t in timestamps if t > window_start]
            if len(timestamps) >= self.limit:
                return False
            timestamps.append(now)
            return True

    def _evict_idle(self, window_start: float) -> None:
        idle = [key for key, timestamps in self.requests.items() if not timestamps or timestamps[-1] <= window_start]
        for key in idle:
            del self.requests[key]


def client_key(request: Request, trust_forwarded_for: bool = False) -> str:
    """Peer address, or the first ``X-Forwarded-For`` hop behind a trusted proxy."""

    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded_for else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _is_rate_limited_path(path: str) -> bool:
    return path.startswith("/api/") and path != HEALTH_PATH


# ----------------------------------------
# Health
# ----------------------------------------


def health(store: ElasticsearchRecordStore = Depends(get_record_store)):
    """Report whether the search cluster is reachable."""

    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        cluster = store.health()
    except RecordStoreError as exc:
        LOGGER.error("Elasticsearch health check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "error": "Cannot connect to Elasticsearch",
                "details": str(exc),
                "timestamp": timestamp,
            },
        )
    return {
        "status": "healthy",
        "elasticsearch": {
            "cluster_status": cluster.get("status"),
            "number_of_nodes": cluster.get("number_of_nodes"),
        },
        "timestamp": timestamp,
    }


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; when given they replace ``get_settings``
            for every dependency in the app.

    Returns:
        Configured FastAPI instance.
    """

    resolved = settings or get_settings()
    app = FastAPI(title=resolved.api.title, version="0.1")
    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: resolved

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved.api.cors_origins),
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    limiter = RateLimiter(resolved.api.rate_limit_requests, resolved.api.rate_limit_window_seconds)
    app.state.rate_limiter = limiter

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if limiter.enabled and _is_rate_limited_path(request.url.path):
            key = client_key(request, resolved.api.trust_forwarded_for)
            if not limiter.allow(key):
                LOGGER.warning("Rate limit exceeded for %s on %s", key, request.url.path)
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content={
                        "error": "Too many requests",
                        "message": "Rate limit exceeded. Please try again later.",
                        "retryAfter": int(limiter.window_seconds),
                    },
                    headers={"Retry-After": str(int(limiter.window_seconds))},
                )
        return await call_next(request)

    app.add_api_route(HEALTH_PATH, health, methods=["GET"], tags=["health"])
    app.include_router(reports_router)
    return app


def main() -> None:
    """Run the API with uvicorn (``sardocs-api`` console script)."""

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=int(settings.api.port))


__all__ = ["RateLimiter", "create_app", "client_key", "main"]
