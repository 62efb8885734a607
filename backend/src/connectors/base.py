"""Common contract and helpers for archive connectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Optional, Sequence

from dateutil import parser as date_parser
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue

from .config import ConnectorSettings, get_settings
from .criteria import SearchCriteria
from .models import ArchiveQueryResult, ConnectorProperty, SearchResult, classify_level


# DICOM keyword -> normalized field
DICOM_FIELDS: dict[str, str] = {
    "PatientName": "patient_name",
    "PatientID": "patient_id",
    "IssuerOfPatientID": "issuer_of_patient_id",
    "PatientBirthDate": "patient_birth_date",
    "PatientSex": "patient_sex",
    "StudyInstanceUID": "study_instance_uid",
    "StudyID": "study_id",
    "StudyDate": "study_date",
    "StudyTime": "study_time",
    "AccessionNumber": "accession_number",
    "StudyDescription": "study_description",
    "ReferringPhysicianName": "referring_physician_name",
    "SeriesInstanceUID": "series_instance_uid",
    "Modality": "modality",
    "SeriesDescription": "series_description",
    "SeriesNumber": "series_number",
    "SOPInstanceUID": "sop_instance_uid",
    "InstanceNumber": "instance_number",
}

INTEGER_FIELDS = frozenset({"series_number", "instance_number"})
DATE_FIELDS = frozenset({"patient_birth_date", "study_date"})


class ArchiveConnector(ABC):
    """Executes a search against one configured archive."""

    def __init__(self, connector: ConnectorProperty, settings: Optional[ConnectorSettings] = None) -> None:
        self.connector = connector
        self.settings = settings or get_settings()

    @property
    def archive_id(self) -> str:
        return self.connector.id

    @abstractmethod
    def search(self, criteria: SearchCriteria, access_token: Optional[str] = None) -> SearchResult:
        """Return the normalized rows matching ``criteria``."""

    def close(self) -> None:
        """Release pooled resources held by the connector."""


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, MultiValue)):
        return "\\".join(to_text(v) for v in value)
    return str(value).strip()


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def to_dicom_date(value: Any) -> str:
    """Render a date-like value as DICOM ``YYYYMMDD``; unparseable text is kept as is."""

    if value is None or value == "":
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y%m%d")
    text = str(value).strip()
    if len(text) == 8 and text.isdigit():
        return text
    try:
        return date_parser.parse(text).strftime("%Y%m%d")
    except (ValueError, OverflowError):
        return text


def build_result(values: dict[str, Any], archive: str) -> ArchiveQueryResult:
    """Normalize raw values into an :class:`ArchiveQueryResult`.

    Missing values become empty strings and the level is the most granular
    one the populated UIDs support.
    """

    normalized: dict[str, Any] = {}
    for field in ArchiveQueryResult.model_fields:
        if field in ("archive", "level"):
            continue
        raw = values.get(field)
        if field in INTEGER_FIELDS:
            normalized[field] = to_int(raw)
        elif field in DATE_FIELDS:
            normalized[field] = to_dicom_date(raw)
        else:
            normalized[field] = to_text(raw)
    return ArchiveQueryResult(archive=archive, level=classify_level(normalized), **normalized)


def result_from_dataset(dataset: Dataset, archive: str) -> ArchiveQueryResult:
    values = {field: dataset.get(keyword) for keyword, field in DICOM_FIELDS.items()}
    return build_result(values, archive)


def paginate(rows: Sequence[ArchiveQueryResult], limit: int, offset: int) -> SearchResult:
    """Apply limit/offset locally for backends without server side paging."""

    page = list(rows[offset : offset + limit])
    continuation = offset + limit if len(rows) > offset + limit else None
    return SearchResult(results=page, continuation=continuation)
