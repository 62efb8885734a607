"""Pydantic models describing archive connectors and their normalized results."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


_OVERRIDE_TAG_PATTERN = re.compile(r"^0x[0-9A-F]{8}$")


class _PropertyModel(BaseModel):
    """Configuration files may use snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class ConnectorType(str, Enum):
    DB = "DB"
    DICOM = "DICOM"
    DICOM_WEB = "DICOM_WEB"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class QueryLevelType(str, Enum):
    """Search criteria levels that can be deactivated per connector."""

    SOP_INSTANCE_UID = "SOP_INSTANCE_UID"
    SERIES_INSTANCE_UID = "SERIES_INSTANCE_UID"
    STUDY_INSTANCE_UID = "STUDY_INSTANCE_UID"
    STUDY_ACCESSION_NUMBER = "STUDY_ACCESSION_NUMBER"
    PATIENT_ID = "PATIENT_ID"


class QueryLevel(str, Enum):
    """DICOM query/retrieve levels, broadest first."""

    PATIENT = "PATIENT"
    STUDY = "STUDY"
    SERIES = "SERIES"
    IMAGE = "IMAGE"

    @property
    def depth(self) -> int:
        return list(QueryLevel).index(self)


class ConnectorServerProperty(_PropertyModel):
    url: str
    port: Optional[str] = None
    context: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("server url must not be blank")
        return value.strip()

    @field_validator("port", mode="before")
    @classmethod
    def _port_as_text(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    def base_url(self) -> str:
        url = self.url.rstrip("/")
        if self.port:
            url = f"{url}:{self.port}"
        if self.context:
            url = f"{url}/{self.context.strip('/')}"
        return url


class ConnectorBasicAuthProperty(_PropertyModel):
    login: Optional[str] = None
    password: Optional[str] = None
    server: ConnectorServerProperty


class ConnectorOauth2AuthProperty(_PropertyModel):
    server: ConnectorServerProperty
    token_url: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scope: Optional[str] = None

    @property
    def has_client_credentials(self) -> bool:
        return not any(_is_blank(v) for v in (self.token_url, self.client_id, self.client_secret))


class WadoProperty(_PropertyModel):
    """How images are retrieved and authenticated for a connector."""

    basic: ConnectorBasicAuthProperty
    oauth2: ConnectorOauth2AuthProperty
    transfer_syntax_uid: Optional[str] = None
    compression_rate: Optional[int] = None
    require_only_sop_instance_uid: bool = False
    additional_parameters: Optional[str] = None
    override_dicom_tags: frozenset[str] = frozenset()
    http_tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("override_dicom_tags")
    @classmethod
    def _valid_tags(cls, value: frozenset[str]) -> frozenset[str]:
        invalid = sorted(tag for tag in value if not _OVERRIDE_TAG_PATTERN.match(tag))
        if invalid:
            raise ValueError(f"invalid override dicom tags: {', '.join(invalid)}")
        return value


class DbConnectorQueryProperty(_PropertyModel):
    select: Optional[str] = None
    patient_id_column: Optional[str] = None
    accession_number_column: Optional[str] = None
    study_instance_uid_column: Optional[str] = None
    series_instance_uid_column: Optional[str] = None
    sop_instance_uid_column: Optional[str] = None

    def blank_fields(self) -> list[str]:
        return [name for name in type(self).model_fields if _is_blank(getattr(self, name))]


class DbConnectorProperty(_PropertyModel):
    driver: Optional[str] = None
    uri: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    query: Optional[DbConnectorQueryProperty] = None

    def blank_fields(self) -> list[str]:
        blanks = [name for name in ("driver", "uri", "user", "password") if _is_blank(getattr(self, name))]
        if self.query is None:
            blanks.append("query")
        else:
            blanks.extend(f"query.{name}" for name in self.query.blank_fields())
        return blanks


class DicomConnectorProperty(_PropertyModel):
    aet: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    calling_aet: Optional[str] = None

    def blank_fields(self) -> list[str]:
        blanks = [name for name in ("aet", "host", "calling_aet") if _is_blank(getattr(self, name))]
        if not self.port or self.port <= 0:
            blanks.append("port")
        return blanks


class SearchCriteriaProperty(_PropertyModel):
    deactivated: frozenset[QueryLevelType] = frozenset()


class ConnectorProperty(_PropertyModel):
    """One archive connector as loaded from configuration.

    The ``id`` is assigned from the key of the configuration mapping; the
    ``type`` decides which sub-connector must be fully populated.
    """

    id: str = ""
    type: ConnectorType
    wado: WadoProperty
    db_connector: Optional[DbConnectorProperty] = None
    dicom_connector: Optional[DicomConnectorProperty] = None
    search_criteria: SearchCriteriaProperty = Field(default_factory=SearchCriteriaProperty)

    @model_validator(mode="after")
    def _check_sub_connector(self):
        if self.type is ConnectorType.DB:
            if self.db_connector is None:
                raise ValueError("DB connector requires a dbConnector section")
            blanks = self.db_connector.blank_fields()
            if blanks:
                raise ValueError(f"DB connector has blank fields: {', '.join(blanks)}")
        elif self.type is ConnectorType.DICOM:
            if self.dicom_connector is None:
                raise ValueError("DICOM connector requires a dicomConnector section")
            blanks = self.dicom_connector.blank_fields()
            if blanks:
                raise ValueError(f"DICOM connector has blank fields: {', '.join(blanks)}")
        return self

    def is_deactivated(self, level: QueryLevelType) -> bool:
        return level in self.search_criteria.deactivated


class ArchiveQueryResult(BaseModel):
    """Normalized row returned by every connector type."""

    model_config = ConfigDict(frozen=True)

    archive: str = ""
    level: QueryLevel = QueryLevel.STUDY
    # Patient
    patient_name: str = ""
    patient_id: str = ""
    issuer_of_patient_id: str = ""
    patient_birth_date: str = ""
    patient_sex: str = ""
    # Study
    study_instance_uid: str = ""
    study_id: str = ""
    study_date: str = ""
    study_time: str = ""
    accession_number: str = ""
    study_description: str = ""
    referring_physician_name: str = ""
    # Series
    series_instance_uid: str = ""
    modality: str = ""
    series_description: str = ""
    series_number: Optional[int] = None
    # Instance
    sop_instance_uid: str = ""
    instance_number: Optional[int] = None

    @property
    def identity(self) -> tuple[str, str, str, str]:
        return (self.patient_id, self.study_instance_uid, self.series_instance_uid, self.sop_instance_uid)


def classify_level(values: dict) -> QueryLevel:
    """Return the most granular level the populated UIDs support."""

    if values.get("sop_instance_uid"):
        return QueryLevel.IMAGE
    if values.get("series_instance_uid"):
        return QueryLevel.SERIES
    if values.get("study_instance_uid"):
        return QueryLevel.STUDY
    return QueryLevel.PATIENT


class SearchResult(BaseModel):
    results: list[ArchiveQueryResult] = Field(default_factory=list)
    continuation: Optional[int] = None
