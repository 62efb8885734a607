"""Search criteria DTOs and the validation rules applied before any archive is queried."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional
from urllib.parse import unquote

from pydantic import BaseModel, Field

from errors import UnknownConnector, ValidationError

from .models import ConnectorProperty, QueryLevel, QueryLevelType


CIRCUMFLEX = "^^^"
ENCODED_CIRCUMFLEX = "%5E%5E%5E"

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


class IHERequestType(str, Enum):
    STUDY = "STUDY"
    PATIENT = "PATIENT"


class SearchCriteria(BaseModel):
    archive: list[str] = Field(default_factory=list)
    patient_id: Optional[str] = None
    study_instance_uid: Optional[str] = None
    accession_number: Optional[str] = None
    series_instance_uid: Optional[str] = None
    sop_instance_uid: Optional[str] = None
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    offset: int = Field(default=0, ge=0)

    def query_level(self) -> QueryLevel:
        """Infer the query level from the identifiers present, most specific wins."""

        if _present(self.sop_instance_uid):
            return QueryLevel.IMAGE
        if _present(self.series_instance_uid):
            return QueryLevel.SERIES
        if _present(self.study_instance_uid) or _present(self.accession_number):
            return QueryLevel.STUDY
        return QueryLevel.PATIENT

    def has_identifier(self) -> bool:
        return any(
            _present(value)
            for value in (
                self.patient_id,
                self.study_instance_uid,
                self.accession_number,
                self.series_instance_uid,
                self.sop_instance_uid,
            )
        )

    def for_connector(self, connector: ConnectorProperty) -> "SearchCriteria":
        """Drop identifiers whose level is deactivated for ``connector``."""

        deactivated = connector.search_criteria.deactivated
        if not deactivated:
            return self
        updates = {
            field: None
            for level, field in _LEVEL_FIELDS.items()
            if level in deactivated and getattr(self, field) is not None
        }
        return self.model_copy(update=updates) if updates else self


class IHESearchCriteria(SearchCriteria):
    """IHE Invoke Image Display request: PATIENT or STUDY lookup."""

    request_type: IHERequestType
    lower_date_time: Optional[str] = None
    upper_date_time: Optional[str] = None
    modalities_in_study: list[str] = Field(default_factory=list)
    most_recent_results: Optional[int] = Field(default=None, ge=1)


_LEVEL_FIELDS = {
    QueryLevelType.PATIENT_ID: "patient_id",
    QueryLevelType.STUDY_INSTANCE_UID: "study_instance_uid",
    QueryLevelType.STUDY_ACCESSION_NUMBER: "accession_number",
    QueryLevelType.SERIES_INSTANCE_UID: "series_instance_uid",
    QueryLevelType.SOP_INSTANCE_UID: "sop_instance_uid",
}


def _present(value: Optional[str]) -> bool:
    return value is not None and bool(value.strip())


def _empty(value: Optional[str]) -> bool:
    return value is None or value == ""


def is_ihe_request_valid(criteria: IHESearchCriteria) -> bool:
    if criteria.request_type is IHERequestType.PATIENT:
        return _present(criteria.patient_id)
    # STUDY: exactly one of study UID / accession number
    return _empty(criteria.study_instance_uid) != _empty(criteria.accession_number)


def unknown_archive_ids(archive_ids: Iterable[str], known_ids: Iterable[str]) -> list[str]:
    known = set(known_ids)
    return [archive_id for archive_id in archive_ids if archive_id not in known]


def validate_criteria(criteria: SearchCriteria, known_ids: Iterable[str]) -> None:
    """Validate the whole request before any archive is contacted."""

    unknown = unknown_archive_ids(criteria.archive, known_ids)
    if unknown:
        raise UnknownConnector(unknown)
    if isinstance(criteria, IHESearchCriteria):
        if not is_ihe_request_valid(criteria):
            if criteria.request_type is IHERequestType.PATIENT:
                raise ValidationError("PATIENT request requires a non blank patient id")
            raise ValidationError("STUDY request requires exactly one of study UID or accession number")
    elif not criteria.has_identifier():
        raise ValidationError("At least one patient, study, series or instance identifier is required")


def split_hl7_patient_id(patient_id: str) -> tuple[str, Optional[str]]:
    """Split ``ID^^^ISSUER`` (also URL encoded) into patient id and issuer."""

    for separator in (CIRCUMFLEX, ENCODED_CIRCUMFLEX):
        if separator in patient_id:
            value, issuer = patient_id.split(separator, 1)
            return value, unquote(issuer) or None
    return patient_id, None
