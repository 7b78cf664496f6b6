from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from vexa.api.routers import admin_routers, public_routers
from vexa.common.constants import API_VERSION
from vexa.common.custom_exceptions import register_all_exceptions
from vexa.common.logging_setup import setup_logging, shutdown_logging
from vexa.config.settings import Settings, config_settings
from vexa.db.connection import Database
from vexa.middlewares.principal_middleware import PrincipalMiddleware, PrincipalResolver
from vexa.middlewares.request_id_middleware import RequestIdMiddleware


def create_app(settings: Optional[Settings] = None, principal_resolver: Optional[PrincipalResolver] = None):
    settings = settings or config_settings

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        logger = setup_logging(settings)
        db = Database(settings.DATABASE_URL, echo=settings.DB_ECHO)
        await db.connect()
        if settings.DB_CREATE_ALL:
            await db.create_all()
        app.state.db = db
        logger.info("app.startup", extra={"env": settings.ENV, "service": settings.SERVICE_NAME})

        try:
            yield
        finally:
            # no new requests are accepted at this point
            await db.disconnect()
            logger.info("app.shutdown")
            shutdown_logging()

    app = FastAPI(
        title="Vexa",
        version=API_VERSION,
        lifespan=app_lifespan)

    app.include_router(public_routers)
    app.include_router(admin_routers)      # mounts /api/v1/admin, guarded per router by require_admin

    if principal_resolver is not None:
        app.add_middleware(PrincipalMiddleware, resolver=principal_resolver)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
