"""
Akshara FastAPI Application.

Main API application for accounts, conversations and assistant turns.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from akshara import __version__
from akshara.api.routes import ai, conversations, users
from akshara.api.schemas import HealthResponse
from akshara.config import settings
from akshara.db.connection import check_connection, init_db
from akshara.exceptions import AksharaError
from akshara.logging_config import setup_logging
from akshara.startup import run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Runs startup checks and creates missing tables before serving requests.
    """
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    init_db()
    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="Akshara API",
    description="Personal assistant API: accounts, conversations and replies",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


@app.exception_handler(AksharaError)
async def akshara_error_handler(request: Request, exc: AksharaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies, query strings and path ids are client errors (400)."""
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    field = ".".join(
        str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
    )
    message = first.get("msg", "Invalid request")
    return _error(400, f"{field}: {message}" if field else message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Internal server error")


@app.get("/")
async def root() -> dict:
    """Root endpoint - API banner."""
    return {
        "success": True,
        "message": "Akshara API is running",
        "version": __version__,
    }


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check with database connectivity."""
    connected = check_connection()
    return HealthResponse(
        status="OK",
        message="Akshara backend is running",
        timestamp=datetime.now(UTC),
        database="Connected" if connected else "Disconnected",
    )


app.include_router(users.router, prefix="/user", tags=["user"])
app.include_router(conversations.router, prefix="/conversation", tags=["conversation"])
app.include_router(ai.router, prefix="/ai", tags=["ai"])
