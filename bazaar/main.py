from contextlib import asynccontextmanager
from fastapi import FastAPI
from bazaar.api import version_prefix, cur_version
from bazaar.api.routers import public_routers, admin_routers
from bazaar.common.custom_exceptions import register_all_exceptions
from bazaar.common.logging_setup import get_logger, setup_logging, stop_logging
from bazaar.config.admin_config import admin_config
from bazaar.config.settings import config_settings
from bazaar.db.connection import async_engine, async_session
from bazaar.middlewares.auth_middleware import AuthenticationMiddleware
from bazaar.middlewares.request_id_middleware import RequestIdMiddleware

logger = get_logger("bazaar.app")


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    if not config_settings.PLATFORM_ACCOUNT_ID:
        logger.warning("app.startup.platform_account_missing")
    logger.info("app.startup", extra={"env": admin_config.ENV, "version": cur_version})

    try:
        yield
    finally:
        # new requests are no longer accepted at this point
        await async_engine.dispose()
        logger.info("app.shutdown")
        stop_logging()


def create_app():
    app=FastAPI(
        title="Bazaar",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(AuthenticationMiddleware, session_maker=async_session,
                       paths=[f"{version_prefix}/health", "/docs", "/openapi.json"])
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app

app=create_app()
