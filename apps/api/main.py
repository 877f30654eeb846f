"""
LiftIQ analytics API.

Wires logging, CORS, request timing, the error mapping for engine
exceptions, health checks and the /v1/analytics router.
"""
from typing import Callable, List
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import training_analytics
from core.cache import get_redis_client
from core.config import settings
from core.database import check_db_connection
from core.logging import setup_logging
from core.exceptions import AnalyticsError, InvalidParameterError, SourceDataError
import logging
import time

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="LiftIQ Training Analytics API",
    description="Weekly load, periodization, body-part balance, injury risk, symmetry, goals and trends",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

LOCAL_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def cors_origins() -> List[str]:
    """DEBUG allows any origin; otherwise CORS_ORIGINS (comma-separated) or the local dev UI."""
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    return LOCAL_ORIGINS


# Read-only API: no cookies, GET for analyses and POST for ad hoc goal evaluation
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def request_fields(request: Request, **fields) -> dict:
    return {"extra_fields": {"method": request.method, "path": request.url.path, **fields}}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"{request.method} {request.url.path} raised {type(e).__name__}",
            exc_info=True,
            extra=request_fields(request, error=str(e)),
        )
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)",
        extra=request_fields(request, status_code=response.status_code, process_time_ms=elapsed_ms),
    )
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    return response


def error_response(status_code: int, exc: AnalyticsError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error_code": exc.error_code})


@app.exception_handler(InvalidParameterError)
async def invalid_parameter_handler(request: Request, exc: InvalidParameterError):
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(SourceDataError)
async def source_data_handler(request: Request, exc: SourceDataError):
    # Already logged with the driver error by the repository
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled {type(exc).__name__} in analytics request", exc_info=True, extra=request_fields(request))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


def timed_check(check: Callable[[], bool], down: str) -> dict:
    started = time.perf_counter()
    ok = bool(check())
    return {
        "status": "healthy" if ok else down,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


@app.get("/health")
async def health():
    """
    Liveness check for the load balancer.

    503 when the workout log store cannot be reached; every analysis
    depends on it.
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/health/detailed")
async def health_detailed():
    """Per-dependency status. Redis is optional: without it every analysis is recomputed."""
    checks = {
        "database": timed_check(check_db_connection, down="unhealthy"),
        "redis": timed_check(lambda: get_redis_client() is not None, down="unavailable"),
    }
    return {
        "status": checks["database"]["status"],
        "version": app.version,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "checks": checks,
    }


@app.get("/ping")
async def ping():
    """No dependencies checked."""
    return {"pong": True}


app.include_router(training_analytics.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
