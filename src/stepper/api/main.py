import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stepper import __version__
from stepper.api.activity.routes import router as activity_router
from stepper.api.auth.routes import router as auth_router
from stepper.api.discovery.routes import router as discovery_router
from stepper.api.errors import setup_exception_handlers
from stepper.api.friends.routes import router as friends_router
from stepper.api.groups.routes import router as groups_router
from stepper.api.middleware import (
    LoggingMiddleware,
    SecurityHeadersMiddleware,
    FixedWindowRateLimitMiddleware,
    RateLimitPolicy
)
from stepper.api.milestones.routes import router as milestones_router
from stepper.api.notifications.routes import router as notifications_router
from stepper.api.steps.routes import router as steps_router
from stepper.api.users.routes import router as users_router
from stepper.clients.supabase import close_supabase_client
from stepper.config import config
from stepper.db import Database, close_database, get_database, init_database

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
AUTH_PREFIX = f"{API_PREFIX}/auth"


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release pools on shutdown."""
    try:
        await init_database()
        logger.info("Database initialized on startup")
    except Exception as e:
        logger.error(f"Startup validation failed: {e}")
        raise

    yield

    await close_supabase_client()
    await close_database()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Stepper API",
        description="Step tracking with friends, groups and leaderboards",
        version=__version__,
        docs_url="/api/docs" if not config.is_production else None,
        redoc_url="/api/redoc" if not config.is_production else None,
        openapi_url="/openapi.json" if not config.is_production else None,
        lifespan=lifespan,
    )

    setup_exception_handlers(app)

    # Last added runs first: logging wraps rate limiting wraps CORS wraps headers
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins or ["*"],
        allow_credentials=bool(config.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )
    app.add_middleware(
        FixedWindowRateLimitMiddleware,
        policies=[
            RateLimitPolicy("auth", config.auth_rate_limit_calls, config.rate_limit_period, AUTH_PREFIX),
            RateLimitPolicy("global", config.rate_limit_calls, config.rate_limit_period),
        ],
        trusted_proxies=config.trusted_proxies,
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(auth_router, prefix=AUTH_PREFIX, tags=["Authentication"])
    app.include_router(steps_router, prefix=f"{API_PREFIX}/steps", tags=["Steps"])
    # Discovery lives under /friends and must be registered before /friends/{friend_id}
    app.include_router(discovery_router, prefix=f"{API_PREFIX}/friends/discovery", tags=["Discovery"])
    app.include_router(friends_router, prefix=f"{API_PREFIX}/friends", tags=["Friends"])
    app.include_router(groups_router, prefix=f"{API_PREFIX}/groups", tags=["Groups"])
    app.include_router(notifications_router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
    app.include_router(activity_router, prefix=f"{API_PREFIX}/activity", tags=["Activity"])
    app.include_router(users_router, prefix=f"{API_PREFIX}/users", tags=["Users"])
    app.include_router(milestones_router, prefix=f"{API_PREFIX}/milestones", tags=["Milestones"])

    @app.get("/")
    async def root():
        return {"message": "Stepper API", "version": __version__}

    @app.get("/health")
    async def health_check(database: Database = Depends(get_database)):
        report = await database.health_check()
        healthy = report["status"] == "healthy"
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "service": "stepper-api",
                "database": report,
            },
        )

    return app


configure_logging()
app = create_app()


def main():
    import uvicorn
    uvicorn.run("stepper.api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
