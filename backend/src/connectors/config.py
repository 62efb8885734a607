"""Settings for archive connectors and the search fan-out."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


class ConnectorSettings(BaseModel):
    config_path: Optional[Path] = None
    search_timeout_seconds: float = 30.0
    search_max_workers: int = 8
    dicom_network_timeout: float = 10.0
    dicom_acse_timeout: float = 10.0
    dicom_dimse_timeout: float = 30.0
    dicomweb_timeout: float = 20.0


@lru_cache
def get_settings() -> ConnectorSettings:
    config_path = os.getenv("CONNECTOR_CONFIG_PATH")
    return ConnectorSettings(
        config_path=Path(config_path) if config_path else None,
        search_timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30")),
        search_max_workers=int(os.getenv("SEARCH_MAX_WORKERS", "8")),
        dicom_network_timeout=float(os.getenv("DICOM_NETWORK_TIMEOUT", "10")),
        dicom_acse_timeout=float(os.getenv("DICOM_ACSE_TIMEOUT", "10")),
        dicom_dimse_timeout=float(os.getenv("DICOM_DIMSE_TIMEOUT", "30")),
        dicomweb_timeout=float(os.getenv("DICOMWEB_TIMEOUT", "20")),
    )
