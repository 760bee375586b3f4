"""
Main application entry point for the Contact Manager API.

This module builds the FastAPI application: it configures logging,
CORS, request logging and error handlers, attaches the storage handle,
initializes the rate limiter with a Redis backend, and includes routers
for authentication and contacts.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis: In-process Redis used when no server is reachable
- contact_manager.database: Storage handle
- contact_manager.contacts: Contacts router
- contact_manager.auth: Authentication router
- contact_manager.core: Application settings
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_limiter import FastAPILimiter
import redis.asyncio as redis
from redis.exceptions import RedisError
from fakeredis.aioredis import FakeRedis

from contact_manager import contacts
from contact_manager.auth import router as auth_router
from contact_manager.core import get_settings
from contact_manager.database import Database
from contact_manager.errors import register_exception_handlers
from contact_manager.logging_config import configure_logging, log_requests

logger = logging.getLogger("contact_manager")

API_VERSION = "1.0.0"


async def init_rate_limiter(redis_url: str):
    """
    Initialize the rate limiter.

    Uses the Redis server at ``redis_url`` and falls back to an
    in-process FakeRedis when the URL is empty or the server is
    unreachable (e.g., during tests or offline).
    """
    if redis_url:
        redis_client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        try:
            await FastAPILimiter.init(redis_client)
            return
        except (RedisError, OSError) as exc:
            logger.warning("Redis unavailable at %s (%s); using FakeRedis", redis_url, exc)
    await FastAPILimiter.init(FakeRedis(decode_responses=True))


def create_app(database: Database | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        database (Database | None): Storage handle to serve from; built
            from settings when omitted.

    Returns:
        FastAPI: Configured application.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    database = database or Database.from_settings(settings)

    app = FastAPI(title="Contact Manager API", version=API_VERSION)
    app.state.database = database

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)
    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """
        FastAPI startup event handler.

        Creates missing tables and initializes the rate limiter.
        """
        database.create_all()
        await init_rate_limiter(settings.REDIS_URL)
        logger.info("Contact Manager API %s started", API_VERSION)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the rate limiter backend and the connection pool."""
        await FastAPILimiter.close()
        database.dispose()

    # Include routers for application areas
    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(contacts.router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root():
        """
        Health endpoint for the API.

        Returns:
            dict: Service status and version
        """
        return {
            "success": True,
            "message": "Contact Management API is running",
            "version": API_VERSION,
        }

    return app


app = create_app()
