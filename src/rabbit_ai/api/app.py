"""FastAPI application factory.

Creates the application with:
- Auth, user, device, conversation, AI chat and cache routers under /api/v1
- Health probes and Prometheus metrics at the root
- Correlation IDs, CORS and request metrics middleware
- Enveloped error responses
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ExceptionHandler

from rabbit_ai.api.errors import (
    generic_exception_handler,
    rabbit_exception_handler,
    validation_exception_handler,
)
from rabbit_ai.api.middleware import CorrelationMiddleware
from rabbit_ai.api.routers import ai, auth, cache, conversations, device, health, users
from rabbit_ai.api.routers import metrics as metrics_router
from rabbit_ai.config import Settings, get_settings
from rabbit_ai.container import AppContainer, build_container
from rabbit_ai.core.errors import RabbitError
from rabbit_ai.observability import configure_logging
from rabbit_ai.observability.metrics import MetricsMiddleware, metrics_registry

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def create_app(settings: Settings | None = None, container: AppContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        container: Prebuilt component graph. When given, the caller owns it
            and it is not closed on shutdown.
    """
    settings = settings or (container.settings if container else get_settings())
    metrics_registry.initialize(enabled=settings.enable_metrics)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(json_format=settings.use_json_logs, level=settings.log_level)
        logger.info(f"Starting {settings.app_name} ({settings.env})")

        owned = container is None
        app.state.container = container or build_container(settings)
        logger.info(f"{settings.app_name} startup complete")

        yield

        logger.info(f"Shutting down {settings.app_name}")
        if owned:
            await app.state.container.close()
        logger.info(f"{settings.app_name} shutdown complete")

    app = FastAPI(
        title="Rabbit AI",
        description="AI chat backend with user accounts and cached conversations",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    # CorrelationMiddleware is innermost so every other layer sees the request ID
    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["x-request-id"],
    )

    app.add_exception_handler(RabbitError, cast(ExceptionHandler, rabbit_exception_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, validation_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)

    for module in (auth, users, device, conversations, ai, cache):
        app.include_router(module.router, prefix=API_PREFIX)

    return app
