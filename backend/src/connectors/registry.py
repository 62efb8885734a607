"""Process-wide connector configuration, replaced whole on refresh."""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from errors import ConfigurationError

from .models import ConnectorProperty

logger = logging.getLogger(__name__)


def parse_connectors(raw: Mapping[str, Any]) -> Mapping[str, ConnectorProperty]:
    """Validate a ``{connector id: properties}`` mapping.

    Ids are taken from the mapping keys; an ``id`` inside the properties is
    ignored. Any invalid entry makes the whole mapping invalid.
    """

    if not isinstance(raw, Mapping):
        raise ConfigurationError("Connector configuration must be a mapping of connector id to properties")

    connectors: dict[str, ConnectorProperty] = {}
    for key, properties in raw.items():
        connector_id = str(key).strip()
        if not connector_id:
            raise ConfigurationError("Connector id must not be blank")
        if not isinstance(properties, Mapping):
            raise ConfigurationError(f"Connector '{connector_id}' must be a mapping")
        data = {k: v for k, v in properties.items() if k != "id"}
        data["id"] = connector_id
        try:
            connectors[connector_id] = ConnectorProperty.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid connector '{connector_id}': {exc}") from exc
    return MappingProxyType(connectors)


def load_connectors_file(path: Path) -> Mapping[str, ConnectorProperty]:
    """Read a YAML file shaped like ``connector: {config: {...}}`` or a bare mapping."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read connector configuration {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if isinstance(data, Mapping) and "connector" in data:
        data = data["connector"] or {}
    if isinstance(data, Mapping) and "config" in data and isinstance(data["config"], Mapping):
        data = data["config"]
    return parse_connectors(data)


class ConnectorRegistry:
    """Holds an immutable snapshot of the configured connectors.

    Readers take :meth:`snapshot` once per request; :meth:`replace` swaps the
    whole mapping in a single assignment so a reader never sees a partial
    update.
    """

    def __init__(self, connectors: Optional[Mapping[str, ConnectorProperty]] = None) -> None:
        self._connectors: Mapping[str, ConnectorProperty] = MappingProxyType(dict(connectors or {}))

    def snapshot(self) -> Mapping[str, ConnectorProperty]:
        return self._connectors

    def replace(self, connectors: Mapping[str, ConnectorProperty]) -> None:
        self._connectors = MappingProxyType(dict(connectors))
        logger.info("Connector configuration replaced (%d connectors)", len(connectors))

    def refresh_from_file(self, path: Path) -> None:
        self.replace(load_connectors_file(path))

    def contains(self, connector_id: str) -> bool:
        return connector_id in self._connectors

    def get(self, connector_id: str) -> Optional[ConnectorProperty]:
        return self._connectors.get(connector_id)

    def ids(self) -> list[str]:
        return list(self._connectors)


connector_registry = ConnectorRegistry()
