from pathlib import Path

import pytest

from connectors.models import ConnectorType, QueryLevelType
from connectors.registry import ConnectorRegistry, load_connectors_file, parse_connectors
from errors import ConfigurationError


WADO = {
    "basic": {"login": "viewer", "password": "secret", "server": {"url": "http://pacs.local", "port": 8080}},
    "oauth2": {"server": {"url": "https://pacs.local", "context": "/dicom-web"}},
}

DB_CONNECTOR = {
    "driver": "postgresql+psycopg",
    "uri": "postgresql://db.local:5432/ris",
    "user": "ris",
    "password": "ris",
    "query": {
        "select": "SELECT * FROM exams WHERE 1=1",
        "patientIdColumn": "patient_id",
        "accessionNumberColumn": "accession_number",
        "studyInstanceUidColumn": "study_uid",
        "seriesInstanceUidColumn": "series_uid",
        "sopInstanceUidColumn": "sop_uid",
    },
}

YAML_CONFIG = """
connector:
  config:
    ris:
      type: DB
      wado:
        basic:
          login: viewer
          password: secret
          server: {url: "http://pacs.local", port: 8080}
        oauth2:
          server: {url: "https://pacs.local"}
      dbConnector:
        driver: postgresql+psycopg
        uri: postgresql://db.local:5432/ris
        user: ris
        password: ris
        query:
          select: SELECT * FROM exams WHERE 1=1
          patientIdColumn: patient_id
          accessionNumberColumn: accession_number
          studyInstanceUidColumn: study_uid
          seriesInstanceUidColumn: series_uid
          sopInstanceUidColumn: sop_uid
    pacs:
      type: dicom
      wado:
        basic: {server: {url: "http://pacs.local"}}
        oauth2: {server: {url: "https://pacs.local"}}
      dicomConnector: {aet: PACS, host: pacs.local, port: 104, callingAet: HUB}
      searchCriteria:
        deactivated: [SOP_INSTANCE_UID]
"""


def test_ids_come_from_mapping_keys():
    connectors = parse_connectors(
        {
            "web": {"id": "ignored", "type": "dicom-web", "wado": WADO},
            "ris": {"type": "DB", "wado": WADO, "dbConnector": DB_CONNECTOR},
        }
    )

    assert set(connectors) == {"web", "ris"}
    assert connectors["web"].id == "web"
    assert connectors["web"].type is ConnectorType.DICOM_WEB
    assert connectors["ris"].db_connector.query.study_instance_uid_column == "study_uid"


def test_wado_is_required_for_every_type():
    with pytest.raises(ConfigurationError):
        parse_connectors({"web": {"type": "DICOM_WEB"}})
    with pytest.raises(ConfigurationError):
        parse_connectors({"web": {"type": "DICOM_WEB", "wado": {"basic": WADO["basic"]}}})


def test_db_connector_with_blank_column_mapping_is_rejected():
    query = dict(DB_CONNECTOR["query"], seriesInstanceUidColumn="  ")

    with pytest.raises(ConfigurationError) as excinfo:
        parse_connectors({"ris": {"type": "DB", "wado": WADO, "dbConnector": dict(DB_CONNECTOR, query=query)}})
    assert "series_instance_uid_column" in str(excinfo.value)


def test_dicom_connector_requires_positive_port():
    dicom = {"aet": "PACS", "host": "pacs.local", "port": 0, "callingAet": "HUB"}

    with pytest.raises(ConfigurationError):
        parse_connectors({"pacs": {"type": "DICOM", "wado": WADO, "dicomConnector": dicom}})


def test_invalid_override_tag_is_rejected():
    wado = dict(WADO, overrideDicomTags=["0x0010ABCD", "0x10"])

    with pytest.raises(ConfigurationError):
        parse_connectors({"web": {"type": "DICOM_WEB", "wado": wado}})


def test_server_base_url():
    connectors = parse_connectors({"web": {"type": "DICOM_WEB", "wado": WADO}})

    wado = connectors["web"].wado
    assert wado.basic.server.base_url() == "http://pacs.local:8080"
    assert wado.oauth2.server.base_url() == "https://pacs.local/dicom-web"


def test_load_yaml_file(tmp_path: Path):
    config = tmp_path / "connectors.yaml"
    config.write_text(YAML_CONFIG, encoding="utf-8")

    connectors = load_connectors_file(config)

    assert list(connectors) == ["ris", "pacs"]
    assert connectors["pacs"].type is ConnectorType.DICOM
    assert connectors["pacs"].dicom_connector.calling_aet == "HUB"
    assert connectors["pacs"].is_deactivated(QueryLevelType.SOP_INSTANCE_UID)


def test_registry_replace_swaps_whole_mapping():
    registry = ConnectorRegistry(parse_connectors({"web": {"type": "DICOM_WEB", "wado": WADO}}))
    before = registry.snapshot()

    registry.replace(parse_connectors({"other": {"type": "DICOM_WEB", "wado": WADO}}))

    assert list(before) == ["web"]
    assert registry.ids() == ["other"]
    assert registry.contains("other") and not registry.contains("web")
    with pytest.raises(TypeError):
        registry.snapshot()["x"] = None


def test_invalid_file_keeps_previous_configuration(tmp_path: Path):
    registry = ConnectorRegistry(parse_connectors({"web": {"type": "DICOM_WEB", "wado": WADO}}))
    config = tmp_path / "connectors.yaml"
    config.write_text("web:\n  type: UNKNOWN\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        registry.refresh_from_file(config)
    assert registry.ids() == ["web"]
