"""Main application entry point."""
import logging
from contextlib import asynccontextmanager

import httpx
import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

from config import (
    API_VERSION, CORS_ALLOWED_HEADERS, IDENTITY_TIMEOUT_SECONDS, OTEL_ENABLED, PYROSCOPE_ENABLED,
    RATE_LIMIT_ENABLED, REDIS_URL,
)
from database import engine, init_db
from errors import AuthenticationError, ErrorKind, ServiceUnavailableError
from logging_config import setup_logging
from monitoring import init_profiling, init_telemetry
from redis_rate_limiter import RedisRateLimiter
from routers import marketplace

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application...")

    init_db()

    http_client = httpx.AsyncClient(timeout=IDENTITY_TIMEOUT_SECONDS)
    if OTEL_ENABLED:
        HTTPXClientInstrumentor().instrument_client(http_client)
    app.state.http_client = http_client
    logger.info("HTTP client initialized")

    if PYROSCOPE_ENABLED:
        init_profiling()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await http_client.aclose()
    app.state.redis_client.close()
    logger.info("Application shutdown complete")


async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": "Unauthorized", "message": exc.message, "code": exc.kind.value}
    )


async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": "Service Unavailable", "message": exc.message, "code": exc.kind.value}
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Error processing request", exc_info=exc, extra={
        "path": request.url.path,
        "method": request.method
    })
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
            "code": ErrorKind.SERVER_ERROR.value
        }
    )


def create_app(rate_limit_enabled: bool = RATE_LIMIT_ENABLED) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        rate_limit_enabled: Install the Redis rate limiter middleware

    Returns:
        Configured application
    """
    if OTEL_ENABLED:
        init_telemetry()

    app = FastAPI(
        title="Marketplace Management Service",
        version=API_VERSION,
        lifespan=lifespan
    )

    # Connections are opened lazily on first command
    redis_client = redis.from_url(REDIS_URL, decode_responses=True)
    app.state.redis_client = redis_client

    if rate_limit_enabled:
        app.add_middleware(RedisRateLimiter, redis_client=redis_client)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOWED_HEADERS,
    )

    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(ServiceUnavailableError, service_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    if OTEL_ENABLED:
        FastAPIInstrumentor.instrument_app(app)
        SQLAlchemyInstrumentor().instrument(engine=engine)
        RedisInstrumentor().instrument(redis_client=redis_client)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(marketplace.router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
