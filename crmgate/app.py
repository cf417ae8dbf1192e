"""FastAPI application factory for the CRM API."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from aiosqlite import Row
from aiosqlite import connect as aiosqlite_connect
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crmgate.auth import UserQueries, Validate, configure_auth_router
from crmgate.config import AppConfig, configure_logging, load_config_from_env
from crmgate.errors import CRMError
from crmgate.records import (
    RecordQueries,
    configure_admin_router,
    configure_delivery_router,
    configure_record_router,
)

LOGGER = logging.getLogger(__name__)


async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    """Render a CRMError as its JSON error body."""
    if exc.status_code >= 500:  # noqa: PLR2004
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render request validation failures as a 400 error body."""
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location}: {errors[0].get('msg', 'invalid')}"
    LOGGER.info("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers rendering errors as ``{"error": ...}`` bodies."""
    app.add_exception_handler(CRMError, crm_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


def configure_fastapi_app(config: AppConfig) -> FastAPI:
    """Configure and return the FastAPI application.

    :param config: Application configuration
    :return: Configured FastAPI application
    """
    if not Path(config.db_path).parent.exists():
        Path(config.db_path).parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info(
            "Created directory for database at %s",
            Path(config.db_path).parent,
        )

    if not Path(config.db_path).exists():
        LOGGER.info("Database file does not exist at %s", config.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:
        """Application lifespan manager.

        Opens the database connection and wires the routers to it.
        """
        LOGGER.info("CRM API is starting")

        async with aiosqlite_connect(config.db_path) as db_connection:
            db_connection.row_factory = Row
            await db_connection.execute("PRAGMA foreign_keys = ON")

            user_queries = UserQueries(db_connection)
            record_queries = RecordQueries(db_connection)
            await user_queries.initialize_tables()
            await record_queries.initialize_tables()

            validate = Validate(user_queries)

            auth_router = configure_auth_router(APIRouter(), user_queries)
            admin_router = configure_admin_router(
                APIRouter(),
                user_queries,
                record_queries,
                validate,
            )
            delivery_router = configure_delivery_router(
                APIRouter(),
                record_queries,
                validate,
            )
            record_router = configure_record_router(
                APIRouter(),
                user_queries,
                record_queries,
                validate,
            )

            app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
            app.include_router(admin_router, prefix="/api/admin", tags=["admin"])
            app.include_router(delivery_router, prefix="/api", tags=["delivery"])
            app.include_router(record_router, prefix="/api", tags=["records"])

            yield

            LOGGER.info("CRM API is shutting down")

    app = FastAPI(
        title="CRM API",
        version="0.0.1",
        lifespan=lifespan,
        root_path=config.root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def read_root() -> str:
        return "CRM API"

    return app


def create_app(env_file: str | None = os.environ.get("ENV_FILE", ".env")) -> FastAPI:
    """Create and configure the FastAPI application.

    The default here is for uvicorn command line usage, in which case the user
    should set ENV_FILE environment variable if they want a different file.

    :param env_file: Optional path to the environment configuration file
    :return: Configured FastAPI application
    """
    config = load_config_from_env(env_file)
    configure_logging(config.logging_level)
    return configure_fastapi_app(config)
