"""
Profile Gallery Backend - Main FastAPI Application

Builds the application: singletons are created in the lifespan and stored
on ``app.state``; middleware runs correlation id, security headers, CORS,
request timeout, authentication and rate limiting, in that order.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.endpoints import admin, auth, experiences, health, profiles
from .api.errors import register_exception_handlers
from .core.config import Settings, get_settings
from .core.correlation import CorrelationIdMiddleware
from .core.database import DatabaseManager
from .core.logging import configure_logging
from .infrastructure.identity import IdentityProviderClient
from .infrastructure.redis import RedisCacheStore, RedisConnectionFactory
from .middleware import (
    AuthenticationMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
)
from .services import ExperienceService, ProfileService
from .services.cache import CacheService
from .services.rate_limiting import RateLimiter, RateLimitingMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the process-wide singletons and release them on shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    logger.info(
        "Starting Profile Gallery API",
        environment=settings.ENVIRONMENT,
        version=settings.SERVICE_VERSION,
    )

    database = DatabaseManager(settings)
    await database.initialize()
    if database.is_sqlite:
        # Local sqlite databases are not managed by migrations
        await database.create_all()

    redis_factory = RedisConnectionFactory(settings)
    await redis_factory.initialize()

    cache_store = RedisCacheStore(redis_factory.client, settings.CACHE_KEY_PREFIX)
    cache_service = CacheService(
        cache_store,
        default_ttl=settings.CACHE_DEFAULT_TTL,
        compression_threshold=settings.CACHE_COMPRESSION_THRESHOLD,
    )
    identity_client = IdentityProviderClient(settings)

    app.state.database = database
    app.state.redis_factory = redis_factory
    app.state.cache_service = cache_service
    app.state.identity_client = identity_client
    app.state.rate_limiter = RateLimiter(
        RedisCacheStore(redis_factory.client, settings.RATE_LIMIT_KEY_PREFIX),
        settings,
    )
    app.state.profile_service = ProfileService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )
    app.state.experience_service = ExperienceService(
        database,
        cache_service,
        entity_ttl=settings.CACHE_ENTITY_TTL,
        list_ttl=settings.CACHE_LIST_TTL,
    )

    logger.info("Profile Gallery API started")

    try:
        yield
    finally:
        logger.info("Shutting down Profile Gallery API")
        await identity_client.close()
        await redis_factory.close()
        await database.close()
        logger.info("Profile Gallery API shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Profile Gallery API",
        description="Profile gallery backend with cache-aside Redis caching",
        version=settings.SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    # Added innermost first: the last middleware added runs first
    app.add_middleware(
        RateLimitingMiddleware,
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(
        RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "If-None-Match", "X-Correlation-ID"],
        expose_headers=[
            "ETag",
            "X-Correlation-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health.router)
    for module in (profiles, experiences, auth, admin):
        app.include_router(module.router, prefix=settings.API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gallery.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
    )
