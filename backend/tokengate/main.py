"""Tokengate Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tokengate.api import api_router
from tokengate.api.health import router as health_router
from tokengate.core import settings, setup_logging
from tokengate.core.logging import get_logger
from tokengate.core.redis import check_redis_connection, create_redis_client
from tokengate.middleware import BearerAuthMiddleware

# Import all models to ensure they're registered with Base
from tokengate.models import Account, AccountPasswordHash  # noqa: F401
from tokengate.services import (
    InMemoryRevocationStore,
    PasswordHasher,
    RedisRevocationStore,
    RequestAuthenticator,
    RevocationStore,
    SigningKeyPair,
    TokenCodec,
)

logger = get_logger("main")

REVOCATION_CLEANUP_INTERVAL_SECONDS = 300


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _revocation_cleanup_loop(store: InMemoryRevocationStore) -> None:
    """Periodically drop expired entries from the in-process revocation store."""
    while True:
        await asyncio.sleep(REVOCATION_CLEANUP_INTERVAL_SECONDS)
        try:
            removed = store.cleanup_expired()
            if removed > 0:
                logger.info(f"Cleaned up {removed} expired revocation entries")
        except Exception:
            logger.exception("Error cleaning up revocation entries")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(level=settings.log_level, format_type=settings.log_format)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    tasks: list[asyncio.Task] = []
    redis_client = app.state.redis
    if redis_client is not None:
        if await check_redis_connection(redis_client):
            logger.info("Revocation cache connected")
        else:
            logger.error("Revocation cache unreachable; authenticated requests will fail")

    revocations = app.state.revocations
    if isinstance(revocations, InMemoryRevocationStore):
        cleanup_task = asyncio.create_task(_revocation_cleanup_loop(revocations))
        cleanup_task.add_done_callback(task_done_callback)
        tasks.append(cleanup_task)

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    if redis_client is not None:
        await redis_client.aclose()


def _build_revocation_store(app: FastAPI) -> RevocationStore:
    if settings.redis_url:
        client = create_redis_client(settings)
        app.state.redis = client
        return RedisRevocationStore(client, key_prefix=settings.revocation_key_prefix)

    logger.warning(
        "REDIS_URL is not set: using the in-process revocation store. "
        "Revocations are lost on restart and not shared between workers."
    )
    return InMemoryRevocationStore()


def create_app(
    *,
    signing_keys: SigningKeyPair | None = None,
    revocation_store: RevocationStore | None = None,
    hasher: PasswordHasher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The keypair, revocation store and hasher default to ones built from
    settings; tests pass their own.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Account authentication with signed, revocable bearer tokens",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    keys = signing_keys or SigningKeyPair.from_settings(settings)
    codec = TokenCodec(keys)

    app.state.redis = None
    if revocation_store is None:
        revocation_store = _build_revocation_store(app)

    app.state.keys = keys
    app.state.codec = codec
    app.state.hasher = hasher or PasswordHasher.from_settings(settings)
    app.state.revocations = revocation_store
    app.state.authenticator = RequestAuthenticator(codec, revocation_store)

    # Bearer authentication for /account/* and logout
    app.add_middleware(BearerAuthMiddleware)

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 401 from BearerAuth.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
        ],
    )

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # /auth/account and /account

    return app


# Application instance
app = create_app()
