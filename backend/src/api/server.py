"""FastAPI application factory for the viewer hub API."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from logging_config import configure_logging

from connectors.config import get_settings as get_connector_settings
from connectors.registry import connector_registry
from db.session import engine
from launches.models import Base
from versions.config import get_settings as get_version_settings
from versions.resolver import version_resolver

configure_logging()
logger = logging.getLogger(__name__)


def _ensure_application_schema() -> None:
    Base.metadata.create_all(engine)


def _load_configuration() -> None:
    """Load connector and version tables named by the environment, if any."""
    connector_path = get_connector_settings().config_path
    if connector_path is not None:
        connector_registry.refresh_from_file(connector_path)
    else:
        logger.warning("CONNECTOR_CONFIG_PATH not set; no archive connectors configured")

    mapping_path = get_version_settings().mapping_path
    if mapping_path is not None:
        version_resolver.refresh_from_file(mapping_path)
    else:
        logger.warning("VERSION_MAPPING_PATH not set; version table is empty")


def parse_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Viewer Hub API",
        description="Archive search, launch preference and version compatibility services",
        version="0.1.0",
    )

    try:
        _ensure_application_schema()
    except Exception:
        logger.exception("Application database bootstrap failed")
        raise

    # Configuration errors are fatal at startup
    _load_configuration()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    from api.routes import (
        connectors_router,
        launches_router,
        search_router,
        system_router,
        versions_router,
    )

    app.include_router(system_router)
    app.include_router(connectors_router)
    app.include_router(search_router)
    app.include_router(launches_router)
    app.include_router(versions_router)

    return app


def main():
    """Run the API server."""
    import uvicorn
    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
