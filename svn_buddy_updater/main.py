import sys
import logging.config
from contextlib import asynccontextmanager
from typing import Any, Callable, AsyncGenerator

import uvicorn
from fastapi import FastAPI

from svn_buddy_updater.db.redis import close_redis, initialize_redis
from svn_buddy_updater.exceptions import AppSettingsError, StartupError
from svn_buddy_updater.settings import get_app_settings, AppSettings
from svn_buddy_updater.modules.api import system_router
from svn_buddy_updater.modules.api.public import public_router, download_router
from svn_buddy_updater.db.session import initialize_database, close_database

logger = logging.getLogger("svn_buddy_updater.main")


class SvnBuddyUpdaterAPP(FastAPI):
    """Some extra fields above FastAPI Application"""

    _settings: AppSettings
    dependency_overrides: dict[Any, Callable[[], Any]]

    def set_settings(self, settings: AppSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> AppSettings:
        return self._settings


@asynccontextmanager
async def lifespan(app: SvnBuddyUpdaterAPP) -> AsyncGenerator[None, None]:
    """Application lifespan context manager for startup and shutdown events."""
    logger.info("Starting up application...")
    try:
        await initialize_database()
    except Exception as exc:
        raise StartupError("Failed to initialize DB connection") from exc
    else:
        logger.info("DB connection startup completed")

    if app.settings.flags.use_redis:
        try:
            await initialize_redis()
        except Exception as exc:
            raise StartupError("Failed to initialize Redis connection") from exc
        else:
            logger.info("Redis connection startup completed")
    else:
        logger.info("Redis is not enabled, skipping initialization")

    yield

    logger.info("===== shutdown ====")
    logger.info("Shutting down this application...")
    try:
        await close_database()
    except Exception as exc:
        logger.error("Error during application shutdown: %r", exc)
    else:
        logger.info("Application shutdown completed successfully")

    if app.settings.flags.use_redis:
        try:
            await close_redis()
        except Exception as exc:
            logger.error("Error during application shutdown: %r", exc)
        else:
            logger.info("Redis connection shutdown completed successfully")

    logger.info("=====")


def make_app(settings: AppSettings | None = None) -> SvnBuddyUpdaterAPP:
    """Forming Application instance with required settings and dependencies"""

    if settings is None:
        try:
            settings = get_app_settings()
        except AppSettingsError as exc:
            logger.error("Unable to get settings from environment: %r", exc)
            sys.exit(1)

    logging.config.dictConfig(settings.log.dict_config_any)
    logging.captureWarnings(capture=True)

    if settings.flags.api_cache_enabled and not settings.flags.use_redis:
        logger.warning("Latest versions cache requires redis: responses won't be cached")

    logger.info("Setting up application...")
    app = SvnBuddyUpdaterAPP(
        title="SVN-Buddy Updater API",
        description="Latest versions and downloads of SVN-Buddy releases",
        docs_url="/api/docs/" if settings.flags.api_docs_enabled else None,
        redoc_url="/api/redoc/" if settings.flags.api_docs_enabled else None,
        lifespan=lifespan,
    )
    app.set_settings(settings)

    logger.info("Setting up routes...")
    app.include_router(public_router, prefix="/public")
    app.include_router(download_router)
    app.include_router(system_router, prefix="/api")

    logger.info("Application configured!")
    return app


def run() -> None:
    """Prepares App and run uvicorn instance"""
    app: SvnBuddyUpdaterAPP = make_app()
    uvicorn.run(
        app,
        host=app.settings.app_host,
        port=app.settings.app_port,
        log_config=app.settings.log.dict_config_any,
        proxy_headers=True,
    )


if __name__ == "__main__":
    run()
