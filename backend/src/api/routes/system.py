"""System routes for health checks."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from connectors.registry import connector_registry
from db.session import SessionLocal
from versions.resolver import version_resolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["system"])


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    database: str
    connectors: int
    versions: int


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready", response_model=ReadinessResponse)
def readiness_check():
    """Readiness check that verifies database connectivity and loaded configuration."""
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        logger.warning("Readiness check could not reach the database", exc_info=True)
        database = "disconnected"
    return {
        "status": "ready" if database == "connected" else "not_ready",
        "database": database,
        "connectors": len(connector_registry.snapshot()),
        "versions": len(version_resolver.entries),
    }
