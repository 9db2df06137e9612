"""
FastAPI Application

Main FastAPI application for Observio with:
- Lifespan management for the shared ClickHouse connector
- CORS middleware for the front-end
- Per-request timeout middleware
- Global exception handlers mapping errors to {"error": message}
- Explore, logs and health endpoints

Usage:
    uvicorn observio.api.main:app --reload --port 8080
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from observio import __version__
from observio.api.middleware import RequestTimeoutMiddleware
from observio.api.routes import explore, health, logs
from observio.config import get_settings
from observio.connectors.base import ConnectionError as ConnectorConnectionError
from observio.connectors.base import ConnectorError, QueryError
from observio.connectors.clickhouse import ClickHouseConnector
from observio.explore.errors import ExecutionError, ValidationError
from observio.explore.service import ExploreService
from observio.logs.store import LogStore

logger = logging.getLogger(__name__)

# Global state for the connector and the services built on it
app_state = {
    "connector": None,
    "explore_service": None,
    "log_store": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - ClickHouse connector (shared HTTP client)
    - Explore service
    - Log store
    """
    config = get_settings()
    logger.info("Starting Observio API server...")

    try:
        logger.info("Initializing ClickHouse connector...")
        if config.clickhouse.enabled:
            connector = ClickHouseConnector(
                host=config.clickhouse.host,
                port=config.clickhouse.port,
                database=config.clickhouse.database,
                user=config.clickhouse.user,
                password=config.clickhouse.password.get_secret_value(),
                pool_size=config.clickhouse.pool_size,
                timeout=config.clickhouse.timeout,
                secure=config.clickhouse.secure,
            )
            try:
                await connector.connect()
                app_state["connector"] = connector
            except ConnectorError as e:
                logger.warning(f"ClickHouse unavailable; explore and logs disabled: {e}")
                app_state["connector"] = None
        else:
            logger.warning("CLICKHOUSE_ENABLED is false; ClickHouse connector not initialized.")
            app_state["connector"] = None

        if app_state["connector"] is not None:
            logger.info("Initializing explore service and log store...")
            app_state["explore_service"] = ExploreService(
                app_state["connector"],
                default_limit=config.explore.default_limit,
                max_limit=config.explore.max_limit,
                decode_mode=config.explore.decode_mode,
                validate_identifiers=config.explore.validate_identifiers,
            )
            app_state["log_store"] = LogStore(app_state["connector"], table=config.logs.table)
        else:
            app_state["explore_service"] = None
            app_state["log_store"] = None

        logger.info("Observio API server started successfully")

        yield  # Application runs here

    finally:
        logger.info("Shutting down Observio API server...")

        if app_state["connector"]:
            try:
                await app_state["connector"].close()
                logger.info("ClickHouse connector closed")
            except ConnectorError as e:
                logger.error(f"Error closing connector: {e}")

        app_state["connector"] = None
        app_state["explore_service"] = None
        app_state["log_store"] = None

        logger.info("Observio API server shut down complete")


# Create FastAPI app
app = FastAPI(
    title="Observio API",
    description="Query-builder and log browsing API over ClickHouse",
    version=__version__,
    lifespan=lifespan,
)

config = get_settings()

# Timeout sits inside CORS so 504 responses still carry CORS headers
app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=config.read_timeout_seconds)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle caller input errors."""
    logger.info(f"Rejected request on {request.url.path}: {exc}", extra={"context": exc.context})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.message},
    )


@app.exception_handler(ExecutionError)
async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    """Handle engine failures; the cause stays in the server log."""
    logger.error(
        f"Execution error on {request.url.path}: {exc} (cause: {exc.__cause__})",
        extra={"context": exc.context},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": exc.message},
    )


@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """Handle database connection errors."""
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Database connection failed. Please try again later."},
    )


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    """Handle query execution errors."""
    logger.error(f"Query execution error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Failed to execute query"},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle malformed request bodies."""
    logger.info(f"Invalid request body on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape HTTP errors to the common error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# Include routers
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(explore.router, prefix="/api/v1", tags=["explore"])
app.include_router(logs.router, prefix="/api/v1", tags=["logs"])


@app.get("/health", response_class=PlainTextResponse, include_in_schema=False)
async def root_health() -> str:
    """Load-balancer probe."""
    return "OK"


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "Observio API",
        "version": __version__,
        "description": "Query-builder and log browsing API over ClickHouse",
        "docs": "/docs",
    }
