"""Connector type dispatch and per-process connector instances."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .base import ArchiveConnector
from .config import ConnectorSettings
from .db import DbArchiveConnector
from .dicom import DicomArchiveConnector
from .dicomweb import DicomWebArchiveConnector
from .models import ConnectorProperty, ConnectorType

logger = logging.getLogger(__name__)


CONNECTOR_CLASSES: dict[ConnectorType, type[ArchiveConnector]] = {
    ConnectorType.DB: DbArchiveConnector,
    ConnectorType.DICOM: DicomArchiveConnector,
    ConnectorType.DICOM_WEB: DicomWebArchiveConnector,
}


def build_connector(connector: ConnectorProperty, settings: Optional[ConnectorSettings] = None) -> ArchiveConnector:
    return CONNECTOR_CLASSES[connector.type](connector, settings)


class ConnectorPool:
    """Keeps one connector instance per archive id.

    An instance is rebuilt when the registry hands out a different
    :class:`ConnectorProperty` object for the same id, i.e. after a refresh.
    """

    def __init__(self, settings: Optional[ConnectorSettings] = None) -> None:
        self.settings = settings
        self._instances: dict[str, tuple[ConnectorProperty, ArchiveConnector]] = {}
        self._lock = threading.Lock()

    def get(self, connector: ConnectorProperty) -> ArchiveConnector:
        with self._lock:
            cached = self._instances.get(connector.id)
            if cached is not None and cached[0] is connector:
                return cached[1]
            instance = build_connector(connector, self.settings)
            self._instances[connector.id] = (connector, instance)
        if cached is not None:
            logger.info("Connector %s configuration changed, rebuilding client", connector.id)
            cached[1].close()
        return instance

    def close(self) -> None:
        with self._lock:
            instances = [instance for _, instance in self._instances.values()]
            self._instances.clear()
        for instance in instances:
            instance.close()
