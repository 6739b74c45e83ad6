"""
Sheetbase - REST backend over a Google Sheets spreadsheet
FastAPI with two storage backends: Google Sheets and in-memory (local dev / tests)

Install:
pip install -e .

Run server (from services/api):
uvicorn main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.base import SheetBackend
from core.auth import ApiKeyVerifier, JWTVerifier
from core.errors import SheetStoreError
from core.field_map import FieldMappingTable
from core.notifier import UpdateNotifier
from core.store import SheetStore
from routers import notifications as notifications_router
from routers import sheets as sheets_router
from settings import Settings, get_settings

logger = logging.getLogger("sheetbase")

UNLIMITED_PATHS = {"/health", "/healthz", "/readyz", "/metrics", "/docs", "/redoc", "/openapi.json"}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# ============================================================================
# BACKEND CONFIGURATION
# ============================================================================

def build_backend(settings: Settings) -> SheetBackend:
    backend_name = settings.storage_backend.lower()
    logger.info(f"🔧 Storage Backend: {backend_name.upper()}")

    if backend_name == "sheets":
        from adapters.sheets import SheetsBackend

        sa_json = settings.resolved_google_sa_json()
        if not sa_json or not settings.sheets_spreadsheet_id:
            raise ValueError("Google Sheets requires GOOGLE_SA_JSON and SHEETS_SPREADSHEET_ID")
        logger.info("Initializing Google Sheets backend...")
        return SheetsBackend(google_sa_json=sa_json, spreadsheet_id=settings.sheets_spreadsheet_id)

    if backend_name == "memory":
        from adapters.memory import MemoryBackend

        if settings.memory_seed_file:
            return MemoryBackend.from_file(settings.memory_seed_file)
        return MemoryBackend()

    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.storage_backend}")


def build_store(settings: Settings, backend: Optional[SheetBackend] = None) -> SheetStore:
    field_map = (
        FieldMappingTable.from_file(settings.field_map_file)
        if settings.field_map_file
        else FieldMappingTable()
    )
    return SheetStore(
        backend or build_backend(settings),
        field_map=field_map,
        notifier=UpdateNotifier(settings.notify_url, timeout=settings.notify_timeout_seconds),
        cache_ttl=settings.cache_ttl_seconds,
        cache_maxsize=settings.cache_maxsize,
        timeout=settings.sheets_timeout_seconds,
        verify_row_before_write=settings.verify_row_before_write,
    )


# ========== Rate Limiting ==========

class RateLimiter:
    """
    Sliding one-minute window per client IP and method class (read / write / default).
    Storage: {ip: {"write": [timestamps]}}; idle clients are swept once a minute.
    """

    def __init__(self, read_limit: int = 100, write_limit: int = 30, default_limit: int = 60) -> None:
        self.limits = {"read": read_limit, "write": write_limit, "default": default_limit}
        self._hits = defaultdict(lambda: defaultdict(list))
        self._last_sweep: Optional[datetime] = None

    @staticmethod
    def method_class(method: str) -> str:
        if method == "GET":
            return "read"
        if method in ("POST", "PUT", "DELETE", "PATCH"):
            return "write"
        return "default"

    def limit_for(self, method: str) -> int:
        return self.limits[self.method_class(method)]

    def _sweep(self, one_minute_ago: datetime) -> None:
        for ip in list(self._hits):
            buckets = self._hits[ip]
            for name in list(buckets):
                if not buckets[name] or buckets[name][-1] <= one_minute_ago:
                    del buckets[name]
            if not buckets:
                del self._hits[ip]

    def check(self, ip: str, method: str, now: Optional[datetime] = None) -> tuple[bool, int]:
        """
        Check if request exceeds rate limit.
        Returns: (is_allowed, retry_after_seconds)
        """
        name = self.method_class(method)
        limit = self.limits[name]
        now = now or datetime.now()
        one_minute_ago = now - timedelta(minutes=1)

        if self._last_sweep is None or now - self._last_sweep >= timedelta(minutes=1):
            self._sweep(one_minute_ago)
            self._last_sweep = now

        hits = [ts for ts in self._hits[ip][name] if ts > one_minute_ago]
        self._hits[ip][name] = hits

        if len(hits) >= limit:
            # seconds until the oldest request leaves the window
            retry_after = int((min(hits) - one_minute_ago).total_seconds()) + 1
            return False, retry_after

        hits.append(now)
        return True, 0

    def tracked_clients(self) -> int:
        return len(self._hits)


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(settings: Optional[Settings] = None, store: Optional[SheetStore] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.startup_time = time.time()
        if getattr(app.state, "store", None) is None:
            _attach_store(app, build_store(settings))
        logger.info("Sheetbase API starting up...")
        logger.info(f"Storage Backend: {settings.storage_backend.upper()}")
        if settings.storage_backend.lower() == "sheets":
            logger.info(f"Spreadsheet ID: {settings.sheets_spreadsheet_id}")
        logger.info(f"Allowed origins: {settings.get_origins_list()}")
        if not settings.jwt_secret:
            logger.warning("JWT_SECRET is not set; /api/v1/notifications routes will reject every token")
        yield
        logger.info("Sheetbase API shutting down...")
        await app.state.store.aclose()

    app = FastAPI(
        title="Sheetbase API",
        description="REST API over a Google Sheets spreadsheet used as a row store",
        version="1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    def _attach_store(app: FastAPI, s: SheetStore) -> None:
        app.state.store = s
        app.state.api_keys = ApiKeyVerifier(
            s, sheet=settings.api_keys_sheet, ttl=settings.api_key_cache_seconds
        )
        app.state.jwt = JWTVerifier(settings.jwt_secret, settings.jwt_algorithm)

    app.state.settings = settings
    app.state.store = None
    app.state.startup_time = time.time()
    app.state.rate_limiter = RateLimiter(settings.rate_limit_read, settings.rate_limit_write)
    app.state.metrics = {
        "total_requests": defaultdict(int),  # by endpoint
        "total_latency": defaultdict(float),  # by endpoint
        "status_codes": defaultdict(int),  # by status code
    }
    if store is not None:
        _attach_store(app, store)

    # ========== Request Tracing Middleware ==========
    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Add request_id and timing to all requests."""
        request_id = str(uuid.uuid4())[:8]
        start = time.time()

        response = await call_next(request)

        latency = time.time() - start
        logger.info(
            f"Request completed {request.method} {request.url.path} -> {response.status_code}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(latency * 1000, 2),
            }
        )

        metrics = app.state.metrics
        endpoint = f"{request.method} {request.url.path}"
        metrics["total_requests"][endpoint] += 1
        metrics["total_latency"][endpoint] += latency
        metrics["status_codes"][response.status_code] += 1

        response.headers["X-Request-ID"] = request_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def rate_limiting_middleware(request: Request, call_next):
        """Rate limiting middleware - prevents abuse."""
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        limiter: RateLimiter = app.state.rate_limiter
        allowed, retry_after = limiter.check(client_ip, request.method)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "TooManyRequests",
                    "message": "Too many requests from this IP, please try again later",
                    "retry_after_seconds": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limiter.limit_for(request.method)),
                    "X-RateLimit-Remaining": "0",
                }
            )

        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========== Error handlers ==========

    @app.exception_handler(SheetStoreError)
    async def sheet_store_error_handler(request: Request, exc: SheetStoreError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "ValidationError",
                "message": "Invalid request data",
                "details": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "InternalServerError", "message": "An unexpected error occurred"}
        )

    # ========== Health Endpoints ==========

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "backend": settings.storage_backend,
            "version": "1.0",
        }

    @app.get("/healthz")
    async def healthz():
        """
        Kubernetes-style liveness probe.
        Returns 200 if the application is running.
        """
        return {"status": "ok", "timestamp": time.time(), "version": "1.0"}

    @app.get("/readyz")
    async def readyz(request: Request):
        """
        Kubernetes-style readiness probe.
        Returns 200 if the backing spreadsheet answers, 503 if not.
        """
        store: SheetStore = request.app.state.store
        try:
            ping = getattr(store.backend, "ping", None)
            if ping is not None:
                await asyncio.to_thread(ping)
            return {
                "status": "ready",
                "backend": settings.storage_backend,
                "cache_size": len(store.cache),
                "timestamp": time.time(),
            }
        except Exception as e:
            logger.error(f"Readiness check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "not_ready",
                    "backend": settings.storage_backend,
                    "error": str(e),
                    "timestamp": time.time(),
                }
            )

    @app.get("/metrics")
    async def get_metrics(request: Request):
        """Request counts, latencies and store stats."""
        metrics = request.app.state.metrics
        avg_latencies = {}
        for endpoint, total_latency in metrics["total_latency"].items():
            count = metrics["total_requests"][endpoint]
            avg_latencies[endpoint] = round((total_latency / count) * 1000, 2) if count > 0 else 0

        return {
            "timestamp": time.time(),
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 2),
            "backend": settings.storage_backend,
            "requests": {
                "by_endpoint": dict(metrics["total_requests"]),
                "avg_latency_ms": avg_latencies,
                "status_codes": dict(metrics["status_codes"]),
            },
            "store": request.app.state.store.stats() if request.app.state.store else {},
        }

    app.include_router(sheets_router.router)
    app.include_router(notifications_router.router)
    return app


configure_logging(get_settings().log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
