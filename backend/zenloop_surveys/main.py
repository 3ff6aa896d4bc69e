"""
FastAPI application factory.

Run with:
    uvicorn zenloop_surveys.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from zenloop_surveys import __version__
from zenloop_surveys.api.routes import (
    billing,
    feedback,
    health,
    settings,
    settings_proxy,
    shopify_entry,
    survey_prompt,
    webhooks_shopify,
)
from zenloop_surveys.config.settings import get_log_level
from zenloop_surveys.database.session import init_db
from zenloop_surveys.platform.errors import AppError, ErrorHandlerMiddleware, app_error_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Zenloop Surveys started", extra={"version": __version__})
    yield


def create_app() -> FastAPI:
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(title="Zenloop Surveys", version=__version__, lifespan=lifespan)

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(health.router)
    app.include_router(shopify_entry.router)
    app.include_router(settings.router)
    app.include_router(feedback.router)
    app.include_router(billing.router)
    app.include_router(settings_proxy.router)
    app.include_router(survey_prompt.router)
    app.include_router(webhooks_shopify.router)

    return app


app = create_app()
