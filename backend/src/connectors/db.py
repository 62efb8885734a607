"""Archive connector backed by a relational database view."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import (
    ArgumentError,
    DBAPIError,
    InterfaceError,
    NoSuchModuleError,
    OperationalError,
    ProgrammingError,
)

from errors import (
    ArchiveClientError,
    ArchiveServerError,
    ArchiveUnavailable,
    ConfigurationError,
)

from .base import ArchiveConnector, build_result
from .config import ConnectorSettings
from .criteria import SearchCriteria
from .models import ConnectorProperty, SearchResult

logger = logging.getLogger(__name__)


# (criteria attribute, column mapping attribute, bind parameter)
_FILTERS = (
    ("patient_id", "patient_id_column", "patient_ids"),
    ("accession_number", "accession_number_column", "accession_numbers"),
    ("study_instance_uid", "study_instance_uid_column", "study_instance_uids"),
    ("series_instance_uid", "series_instance_uid_column", "series_instance_uids"),
    ("sop_instance_uid", "sop_instance_uid_column", "sop_instance_uids"),
)

# Compact column name -> normalized field, so that ``PATIENT_NAME``,
# ``patientName`` and ``patient_name`` all map to the same field.
_ROW_FIELDS = {
    "patientname": "patient_name",
    "patientid": "patient_id",
    "issuerofpatientid": "issuer_of_patient_id",
    "patientbirthdate": "patient_birth_date",
    "patientsex": "patient_sex",
    "studyinstanceuid": "study_instance_uid",
    "studyid": "study_id",
    "studydate": "study_date",
    "studytime": "study_time",
    "accessionnumber": "accession_number",
    "studydescription": "study_description",
    "referringphysicianname": "referring_physician_name",
    "seriesinstanceuid": "series_instance_uid",
    "serieinstanceuid": "series_instance_uid",
    "modality": "modality",
    "seriesdescription": "series_description",
    "seriesnumber": "series_number",
    "sopinstanceuid": "sop_instance_uid",
    "instancenumber": "instance_number",
}


def _compact(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


def map_row(row: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in row.items():
        field = _ROW_FIELDS.get(_compact(str(key)))
        if field is not None:
            values[field] = value
    return values


class DbArchiveConnector(ArchiveConnector):
    """Runs the configured SELECT template with the criteria as IN filters."""

    def __init__(
        self,
        connector: ConnectorProperty,
        settings: Optional[ConnectorSettings] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        super().__init__(connector, settings)
        db = connector.db_connector
        blanks = db.blank_fields() if db is not None else ["dbConnector"]
        if blanks:
            raise ConfigurationError(
                f"DB connector '{connector.id}' has blank configuration: {', '.join(blanks)}"
            )
        self._db = db
        self._engine = engine
        self._engine_lock = threading.Lock()

    def _get_engine(self) -> Engine:
        if self._engine is not None:
            return self._engine
        with self._engine_lock:
            if self._engine is None:
                try:
                    url = make_url(self._db.uri)
                except ArgumentError as exc:
                    raise ConfigurationError(f"Invalid database uri for connector '{self.archive_id}'") from exc
                if "+" not in url.drivername and "+" in self._db.driver:
                    url = url.set(drivername=self._db.driver)
                if url.get_backend_name() != "sqlite":
                    url = url.set(username=self._db.user, password=self._db.password)
                try:
                    self._engine = create_engine(url, future=True, pool_pre_ping=True)
                except (ImportError, NoSuchModuleError) as exc:
                    raise ArchiveServerError(
                        f"Database driver unavailable for {url.drivername}: {exc}", self.archive_id
                    ) from exc
                logger.info("Created engine for DB connector %s (%s)", self.archive_id, url.get_backend_name())
        return self._engine

    def build_statement(self, criteria: SearchCriteria):
        query = self._db.query
        sql = query.select.strip().rstrip(";")
        params: dict[str, Any] = {}
        expanding = []
        for attribute, column_attribute, param in _FILTERS:
            value = getattr(criteria, attribute)
            if value is None or not value.strip():
                continue
            column = getattr(query, column_attribute)
            sql += f" AND {column} IN :{param}"
            params[param] = [value.strip()]
            expanding.append(bindparam(param, expanding=True))
        # One extra row tells whether another page exists
        sql += " LIMIT :row_limit OFFSET :row_offset"
        params["row_limit"] = criteria.limit + 1
        params["row_offset"] = criteria.offset
        return text(sql).bindparams(*expanding), params

    def search(self, criteria: SearchCriteria, access_token: Optional[str] = None) -> SearchResult:
        statement, params = self.build_statement(criteria)
        try:
            with self._get_engine().connect() as connection:
                rows = [dict(row._mapping) for row in connection.execute(statement, params)]
        except (OperationalError, InterfaceError) as exc:
            raise ArchiveUnavailable(f"Database unreachable: {exc.orig or exc}", self.archive_id) from exc
        except ProgrammingError as exc:
            raise ArchiveClientError(f"Query rejected by database: {exc.orig or exc}", self.archive_id) from exc
        except DBAPIError as exc:
            raise ArchiveServerError(f"Database error: {exc.orig or exc}", self.archive_id) from exc

        continuation = None
        if len(rows) > criteria.limit:
            rows = rows[: criteria.limit]
            continuation = criteria.offset + criteria.limit
        results = [build_result(map_row(row), self.archive_id) for row in rows]
        logger.debug("DB connector %s returned %d rows", self.archive_id, len(results))
        return SearchResult(results=results, continuation=continuation)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
