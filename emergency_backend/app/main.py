"""
FastAPI Application Entry Point.

This is the main application file for the Emergency Dispatch Backend.
`asgi_app` serves both the REST API and the Socket.IO channel; run it with
    uvicorn emergency_backend.app.main:asgi_app
"""

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from emergency_backend.app.core.config import settings
from emergency_backend.app.api.v1.router import router as api_v1_router
from emergency_backend.app.db.session import engine, create_tables
from emergency_backend.app.core.redis_client import ping_redis, close_redis
from emergency_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from emergency_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from emergency_backend.app.realtime.server import sio, connection_registry, notifier

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Binds the connection registry to the Socket.IO server.
    3. On shutdown, drops live connections and closes Redis.
    """
    await create_tables()
    connection_registry.init(sio)
    logger.info("%s started", settings.app_name)
    yield

    connection_registry.teardown()
    await close_redis()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ambulance request, dispatch and live tracking backend",
    lifespan=lifespan,
)

app.state.connection_registry = connection_registry
app.state.notifier = notifier

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and dependency checks
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
        "realtime": "up" if connection_registry.is_ready else "down",
        "connections": len(connection_registry),
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Emergency Dispatch Backend API",
        "docs": "/docs",
        "health": "/health",
        "socket": f"/{settings.socketio_path}",
    }


asgi_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=settings.socketio_path)
