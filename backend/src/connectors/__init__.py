"""Archive connectors: configuration, backends and the search fan-out."""

from .criteria import IHERequestType, IHESearchCriteria, SearchCriteria, validate_criteria
from .factory import CONNECTOR_CLASSES, ConnectorPool, build_connector
from .models import ArchiveQueryResult, ConnectorProperty, ConnectorType, QueryLevel, SearchResult
from .registry import ConnectorRegistry, connector_registry, load_connectors_file, parse_connectors
from .resolver import ArchiveOutcome, SearchCriteriaResolver, merged_results

__all__ = [
    "ArchiveOutcome",
    "ArchiveQueryResult",
    "CONNECTOR_CLASSES",
    "ConnectorPool",
    "ConnectorProperty",
    "ConnectorRegistry",
    "ConnectorType",
    "IHERequestType",
    "IHESearchCriteria",
    "QueryLevel",
    "SearchCriteria",
    "SearchCriteriaResolver",
    "SearchResult",
    "build_connector",
    "connector_registry",
    "load_connectors_file",
    "merged_results",
    "parse_connectors",
    "validate_criteria",
]
