"""Configured archive connector listing."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from connectors.models import ConnectorType, QueryLevelType
from connectors.registry import connector_registry

router = APIRouter(prefix="/api/connectors", tags=["connectors"])


class ConnectorSummary(BaseModel):
    id: str
    type: ConnectorType
    endpoint: Optional[str] = None
    deactivated: list[QueryLevelType] = []


@router.get("", response_model=list[ConnectorSummary])
def list_connectors():
    summaries = []
    for connector_id, connector in connector_registry.snapshot().items():
        if connector.type is ConnectorType.DICOM:
            dicom = connector.dicom_connector
            endpoint = f"{dicom.aet}@{dicom.host}:{dicom.port}"
        elif connector.type is ConnectorType.DB:
            endpoint = connector.db_connector.driver
        else:
            endpoint = connector.wado.basic.server.base_url()
        summaries.append(
            ConnectorSummary(
                id=connector_id,
                type=connector.type,
                endpoint=endpoint,
                deactivated=sorted(connector.search_criteria.deactivated, key=lambda level: level.value),
            )
        )
    return summaries
