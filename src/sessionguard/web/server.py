from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessionguard.app import App
from sessionguard.config import Config
from sessionguard.errors import UserError
from sessionguard.web.error_handlers import (
    general_exception_handler,
    http_exception_handler,
    request_validation_error_handler,
    user_error_handler,
)
from sessionguard.web.openapi import set_custom_openapi
from sessionguard.web.routers import auth_router, sessions_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="SessionGuard API",
        lifespan=lifespan,
    )
    # Store app instance and config in app state, available before startup for handlers and tests
    app.state.app = app_instance
    app.state.config = config

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Health check endpoint (at root level, outside the API prefix)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(auth_router, prefix=config.api_prefix)
    app.include_router(sessions_router, prefix=config.api_prefix)

    # Register error handlers
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
