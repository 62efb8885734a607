"""Validate a search request and fan it out across the archives it names."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from errors import ArchiveError, ArchiveServerError, ConfigurationError, SearchTimeout, ValidationError

from .config import ConnectorSettings, get_settings
from .criteria import SearchCriteria, validate_criteria
from .factory import ConnectorPool
from .models import ArchiveQueryResult, ConnectorProperty
from .registry import ConnectorRegistry, connector_registry

logger = logging.getLogger(__name__)


class ArchiveErrorInfo(BaseModel):
    code: str
    message: str
    retryable: bool


class ArchiveOutcome(BaseModel):
    """Per-archive result: either rows or the failure that prevented them."""

    archive: str
    status: Literal["ok", "error"] = "ok"
    results: list[ArchiveQueryResult] = Field(default_factory=list)
    continuation: Optional[int] = None
    error: Optional[ArchiveErrorInfo] = None

    @classmethod
    def from_error(cls, archive: str, exc: ArchiveError) -> "ArchiveOutcome":
        return cls(
            archive=archive,
            status="error",
            error=ArchiveErrorInfo(code=exc.code, message=exc.message, retryable=exc.retryable),
        )


def merged_results(outcomes: Iterable[ArchiveOutcome]) -> list[ArchiveQueryResult]:
    """Rows of all successful archives, deduplicated by UIDs; the first archive wins."""

    seen: set[tuple[str, str, str, str]] = set()
    merged: list[ArchiveQueryResult] = []
    for outcome in outcomes:
        if outcome.status != "ok":
            continue
        for row in outcome.results:
            if row.identity in seen:
                continue
            seen.add(row.identity)
            merged.append(row)
    return merged


class SearchCriteriaResolver:
    def __init__(
        self,
        registry: Optional[ConnectorRegistry] = None,
        pool: Optional[ConnectorPool] = None,
        settings: Optional[ConnectorSettings] = None,
    ) -> None:
        self.registry = registry or connector_registry
        self.settings = settings or get_settings()
        self.pool = pool or ConnectorPool(self.settings)

    def validate(self, criteria: SearchCriteria, connectors: Optional[Mapping[str, ConnectorProperty]] = None) -> None:
        connectors = self.registry.snapshot() if connectors is None else connectors
        validate_criteria(criteria, connectors.keys())

    def target_archives(self, criteria: SearchCriteria, connectors: Mapping[str, ConnectorProperty]) -> list[str]:
        archives = criteria.archive or list(connectors)
        return list(dict.fromkeys(archives))

    def _search_one(
        self, connector: ConnectorProperty, criteria: SearchCriteria, access_token: Optional[str]
    ) -> ArchiveOutcome:
        try:
            client = self.pool.get(connector)
            result = client.search(criteria.for_connector(connector), access_token=access_token)
        except ArchiveError as exc:
            logger.warning("Archive %s failed: %s (%s)", connector.id, exc.message, exc.code)
            return ArchiveOutcome.from_error(connector.id, exc)
        except (ValidationError, ConfigurationError):
            raise
        except Exception as exc:
            logger.exception("Unexpected failure querying archive %s", connector.id)
            return ArchiveOutcome.from_error(
                connector.id, ArchiveServerError(f"Unexpected failure: {exc}", connector.id)
            )
        return ArchiveOutcome(archive=connector.id, results=result.results, continuation=result.continuation)

    def resolve(
        self,
        criteria: SearchCriteria,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, ArchiveOutcome]:
        """Query every archive in scope in parallel.

        Malformed criteria raise before any archive is contacted. Backend
        failures are reported per archive. If the deadline passes, pending
        queries are cancelled and :class:`SearchTimeout` is raised.

        Each call runs on its own executor so a timed out request never
        holds workers needed by the next one.
        """

        connectors = self.registry.snapshot()
        self.validate(criteria, connectors)
        archives = self.target_archives(criteria, connectors)
        if not archives:
            return {}
        timeout = self.settings.search_timeout_seconds if timeout is None else timeout

        executor = ThreadPoolExecutor(
            max_workers=min(len(archives), max(self.settings.search_max_workers, 1)),
            thread_name_prefix="archive-search",
        )
        try:
            futures: dict[str, Future] = {
                archive: executor.submit(self._search_one, connectors[archive], criteria, access_token)
                for archive in archives
            }
            _, not_done = wait(futures.values(), timeout=timeout)
            if not_done:
                for future in not_done:
                    future.cancel()
                pending = [archive for archive, future in futures.items() if future in not_done]
                logger.error("Search timed out after %ss, pending archives: %s", timeout, ", ".join(pending))
                raise SearchTimeout(timeout, pending)

            outcomes = {archive: futures[archive].result() for archive in archives}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        failed = sum(1 for outcome in outcomes.values() if outcome.status == "error")
        logger.info("Search across %d archives completed (%d failed)", len(outcomes), failed)
        return outcomes

    def close(self) -> None:
        self.pool.close()
