"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional

from chatsync.api import conversations, health, messages, providers
from chatsync.config import Settings, get_settings
from chatsync.database import engine, Base, SessionLocal
from chatsync.errors import register_error_handlers
from chatsync.middleware.auth import create_user_with_api_key
from chatsync.middleware.logging import LoggingMiddleware, configure_logging, get_logger
from chatsync.models import User
from chatsync.services.dispatch_guard import DispatchGuard, build_dispatch_guard
from chatsync.services.provider_registry import ProviderRegistry, build_registry

logger = get_logger()


def seed_database(settings: Settings) -> None:
    """Create tables and a first user when the database is empty."""
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_verified")

    db = SessionLocal()
    try:
        if db.query(User).first() is None:
            user = create_user_with_api_key(db, settings.seed_api_key)
            logger.info("database_seeded", user_id=user.id)
    except Exception as e:
        logger.error("database_seed_failed", error=str(e))
        db.rollback()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    seed_database(app.state.settings)

    yield

    await app.state.registry.close()
    logger.info("shutting_down", service=app.state.settings.app_name)


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    dispatch_guard: Optional[DispatchGuard] = None,
) -> FastAPI:
    """Build the application. Tests pass their own registry and guard."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Conversation and message synchronization for AI chat clients",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.registry = registry or build_registry(settings)
    if dispatch_guard is None and settings.dispatch_guard_enabled:
        dispatch_guard = build_dispatch_guard(settings.redis_url, settings.dispatch_guard_ttl_seconds)
    app.state.dispatch_guard = dispatch_guard

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            settings.frontend_url,
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-ID"]
    )
    app.add_middleware(LoggingMiddleware)

    register_error_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(conversations.router, tags=["conversations"])
    app.include_router(messages.router, tags=["messages"])
    app.include_router(providers.router, tags=["providers"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": settings.app_name,
            "version": "0.1.0",
            "docs": "/docs" if settings.debug else "disabled",
            "endpoints": {
                "health": "/health",
                "conversations": "/conversations",
                "providers": "/providers"
            }
        }

    return app


app = create_app()

# uvicorn chatsync.main:app --reload
