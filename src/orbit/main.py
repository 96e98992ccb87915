"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from orbit.billing.ai_router import router as ai_router
from orbit.billing.router import router as billing_router
from orbit.config import get_settings
from orbit.database import close_db, get_session, init_db
from orbit.economy.router import router as wallet_router
from orbit.health.router import router as health_router
from orbit.leaderboard.router import router as leaderboard_router
from orbit.middleware import setup_middleware
from orbit.missions.catalog import seed_mission_templates
from orbit.missions.router import router as missions_router
from orbit.posts.router import router as posts_router
from orbit.redis_client import close_redis, init_redis
from orbit.referrals.router import router as referrals_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed the mission catalog (idempotent)
    try:
        async for db in get_session():
            await seed_mission_templates(db)
            break
    except SQLAlchemyError:
        logger.warning("Mission catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Orbit Economy API",
        description="Stars wallet, missions, referrals and billing for the Orbit social platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(wallet_router)
    app.include_router(posts_router)
    app.include_router(missions_router)
    app.include_router(leaderboard_router)
    app.include_router(referrals_router)
    app.include_router(billing_router)
    app.include_router(ai_router)

    return app


app = create_app()
