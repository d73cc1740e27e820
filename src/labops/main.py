# src/labops/main.py
"""
Application factory.

    uvicorn labops.main:create_app --factory

`create_app(settings)` wires, in this order:
  1. logging (dictConfig from settings, queue listener stopped on shutdown)
  2. app.state: settings, correlation header name, error classifier
  3. exception handlers for every error channel, and the app-wide dependency binding
     the classifier for route code (`async_handler`)
  4. RequestIDMiddleware
  5. routers
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from labops.api.v1.boundary import bind_app_classifier
from labops.api.v1.error_handlers import register_exception_handlers
from labops.api.v1.system import router as system_router
from labops.config.settings import Settings, get_settings
from labops.core.logging import RequestIDMiddleware, setup_logging, stop_queue_logging
from labops.exceptions.classifier import ErrorClassifier
from labops.exceptions.integrity_classifier import get_backend
from labops.utils.logging import get_project_name, get_project_version

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "app.startup",
        extra={"env": settings.ENV, "api_version": settings.API_VERSION, "db_backend": settings.DB_BACKEND},
    )
    try:
        yield
    finally:
        logger.info("app.shutdown")
        stop_queue_logging()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=get_project_name(),
        version=get_project_version(),
        lifespan=lifespan,
        dependencies=[Depends(bind_app_classifier)],
    )

    app.state.settings = settings
    app.state.request_id_header = settings.REQUEST_ID_HEADER
    app.state.classifier = ErrorClassifier(
        get_backend(settings.DB_BACKEND),
        expose_internal=settings.EXPOSE_INTERNAL_ERRORS,
    )

    register_exception_handlers(app)
    app.add_middleware(RequestIDMiddleware, header_name=settings.REQUEST_ID_HEADER)

    app.include_router(system_router)
    return app
