import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.pool import StaticPool

from connectors.config import ConnectorSettings
from connectors.criteria import SearchCriteria
from connectors.db import DbArchiveConnector, map_row
from connectors.models import (
    ConnectorProperty,
    DbConnectorProperty,
    DbConnectorQueryProperty,
    QueryLevel,
)
from errors import ArchiveClientError, ArchiveServerError, ArchiveUnavailable, ConfigurationError


WADO = {
    "basic": {"server": {"url": "http://pacs.local"}},
    "oauth2": {"server": {"url": "https://pacs.local"}},
}

SELECT = (
    "SELECT patient_name, patient_id AS patientId, birth_date AS PATIENT_BIRTH_DATE, study_uid AS study_instance_uid, "
    "study_date, accession AS accession_number, series_uid AS series_instance_uid, series_number, modality "
    "FROM exams WHERE 1=1"
)


def _connector(uri: str = "sqlite://", select: str = SELECT) -> ConnectorProperty:
    return ConnectorProperty.model_validate(
        {
            "id": "ris",
            "type": "DB",
            "wado": WADO,
            "dbConnector": {
                "driver": "sqlite",
                "uri": uri,
                "user": "ris",
                "password": "ris",
                "query": {
                    "select": select,
                    "patientIdColumn": "patient_id",
                    "accessionNumberColumn": "accession",
                    "studyInstanceUidColumn": "study_uid",
                    "seriesInstanceUidColumn": "series_uid",
                    "sopInstanceUidColumn": "sop_uid",
                },
            },
        }
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE exams (patient_name TEXT, patient_id TEXT, birth_date TEXT, study_uid TEXT, "
                "study_date TEXT, accession TEXT, series_uid TEXT, series_number INTEGER, modality TEXT, sop_uid TEXT)"
            )
        )
        connection.execute(
            text(
                "INSERT INTO exams VALUES "
                "('DOE^JOHN', 'P1', '1970-01-02', '1.2.1', '2024-03-01', 'ACC1', '1.2.1.1', 1, 'CT', NULL), "
                "('DOE^JOHN', 'P1', '1970-01-02', '1.2.1', '2024-03-01', 'ACC1', '1.2.1.2', 2, 'CT', NULL), "
                "('ROE^JANE', 'P2', '1980-05-06', '1.2.2', '20240302', 'ACC2', '1.2.2.1', 1, 'MR', NULL)"
            )
        )
    return engine


def _search(connector: DbArchiveConnector, **kwargs):
    return connector.search(SearchCriteria(**kwargs))


def test_rows_are_normalized(engine):
    connector = DbArchiveConnector(_connector(), ConnectorSettings(), engine=engine)

    result = _search(connector, patient_id="P1")

    assert [row.series_instance_uid for row in result.results] == ["1.2.1.1", "1.2.1.2"]
    first = result.results[0]
    assert first.archive == "ris"
    assert first.patient_birth_date == "19700102"
    assert first.study_date == "20240301"
    assert first.series_number == 1
    assert first.sop_instance_uid == ""
    assert first.study_description == ""
    assert first.level is QueryLevel.SERIES
    assert result.continuation is None


def test_filters_are_bound_parameters(engine):
    connector = DbArchiveConnector(_connector(), ConnectorSettings(), engine=engine)

    statement, params = connector.build_statement(SearchCriteria(accession_number="ACC2' OR '1'='1"))

    assert "ACC2" not in str(statement)
    assert params["accession_numbers"] == ["ACC2' OR '1'='1"]
    assert _search(connector, accession_number="ACC2' OR '1'='1").results == []


def test_limit_offset_and_continuation(engine):
    connector = DbArchiveConnector(_connector(), ConnectorSettings(), engine=engine)

    first_page = _search(connector, patient_id="P1", limit=1)
    second_page = _search(connector, patient_id="P1", limit=1, offset=1)

    assert len(first_page.results) == 1
    assert first_page.continuation == 1
    assert second_page.results[0].series_instance_uid == "1.2.1.2"
    assert second_page.continuation is None


def test_blank_column_mapping_fails_before_any_query():
    query = DbConnectorQueryProperty.model_construct(
        select="SELECT * FROM exams WHERE 1=1",
        patient_id_column="patient_id",
        accession_number_column="",
        study_instance_uid_column="study_uid",
        series_instance_uid_column="series_uid",
        sop_instance_uid_column="sop_uid",
    )
    db = DbConnectorProperty.model_construct(driver="sqlite", uri="sqlite://", user="u", password="p", query=query)
    connector = _connector().model_copy(update={"db_connector": db})

    with pytest.raises(ConfigurationError):
        DbArchiveConnector(connector, ConnectorSettings())


def test_unreachable_database_is_unavailable(tmp_path):
    uri = f"sqlite:///{tmp_path / 'missing' / 'ris.db'}"
    connector = DbArchiveConnector(_connector(uri=uri), ConnectorSettings())

    with pytest.raises(ArchiveUnavailable) as excinfo:
        _search(connector, patient_id="P1")
    assert excinfo.value.archive == "ris"
    assert excinfo.value.retryable is True


def test_rejected_query_is_a_client_error():
    class _RejectingEngine:
        def connect(self):
            raise ProgrammingError("SELECT", {}, Exception("permission denied for table exams"))

    connector = DbArchiveConnector(_connector(), ConnectorSettings(), engine=_RejectingEngine())

    with pytest.raises(ArchiveClientError) as excinfo:
        _search(connector, patient_id="P1")
    assert excinfo.value.retryable is False


def test_missing_driver_is_a_server_error():
    connector = DbArchiveConnector(_connector(uri="postgresql+nosuchdriver://pacs.local/ris"), ConnectorSettings())

    with pytest.raises(ArchiveServerError) as excinfo:
        _search(connector, patient_id="P1")
    assert excinfo.value.archive == "ris"


def test_map_row_accepts_name_variants():
    values = map_row({"PATIENT_NAME": "A", "patientId": "P", "sopInstanceUID": "1", "unrelated": "x"})

    assert values == {"patient_name": "A", "patient_id": "P", "sop_instance_uid": "1"}
