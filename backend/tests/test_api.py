import pytest
from fastapi.testclient import TestClient

from api import server
from api.routes import connectors as connectors_route
from api.routes import launches as launches_route
from api.routes import search as search_route
from api.routes import versions as versions_route
from connectors.config import ConnectorSettings
from connectors.models import ArchiveQueryResult, SearchResult
from connectors.registry import ConnectorRegistry, parse_connectors
from connectors.resolver import SearchCriteriaResolver
from errors import ArchiveNoAccess, LaunchConfigNotFound
from launches.models import LaunchDTO
from launches.ordering import DuplicatePreference
from launches.service import EffectiveLaunches
from versions.models import MinimalReleaseVersion
from versions.resolver import VersionCompatibilityResolver


WADO = {
    "basic": {"server": {"url": "http://pacs.local"}},
    "oauth2": {"server": {"url": "https://pacs.local"}},
}


class _Connector:
    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.tokens = []

    def search(self, criteria, access_token=None):
        self.tokens.append(access_token)
        return self.behaviour(criteria)

    def close(self):
        pass


class _Pool:
    def __init__(self, connectors):
        self.connectors = connectors

    def get(self, connector):
        return self.connectors[connector.id]

    def close(self):
        pass


def _denied(criteria):
    raise ArchiveNoAccess("forbidden", "B")


@pytest.fixture()
def registry():
    return ConnectorRegistry(
        parse_connectors(
            {
                "A": {"type": "DICOM_WEB", "wado": WADO},
                "B": {"type": "DICOM_WEB", "wado": WADO, "searchCriteria": {"deactivated": ["PATIENT_ID"]}},
            }
        )
    )


@pytest.fixture()
def client(monkeypatch, registry):
    monkeypatch.setattr(server, "_ensure_application_schema", lambda: None)
    pool = _Pool(
        {
            "A": _Connector(
                lambda c: SearchResult(results=[ArchiveQueryResult(archive="A", patient_id="P1", study_instance_uid="1.2")])
            ),
            "B": _Connector(_denied),
        }
    )
    resolver = SearchCriteriaResolver(registry=registry, pool=pool, settings=ConnectorSettings(search_timeout_seconds=5))
    monkeypatch.setattr(search_route, "search_resolver", resolver)
    monkeypatch.setattr(connectors_route, "connector_registry", registry)
    monkeypatch.setattr(
        versions_route,
        "version_resolver",
        VersionCompatibilityResolver(
            [MinimalReleaseVersion(release_version="4.2.0", minimal_version="4.1.0", i18n_version="4.2.0")]
        ),
    )
    with TestClient(server.create_app()) as test_client:
        test_client.pool = pool
        yield test_client
    resolver.close()


def test_search_returns_per_archive_outcomes(client):
    response = client.post(
        "/api/search",
        json={"archive": ["A", "B"], "patient_id": "P1"},
        headers={"Authorization": "Bearer abc"},
    )

    assert response.status_code == 200
    body = response.json()
    assert [(a["archive"], a["status"]) for a in body["archives"]] == [("A", "ok"), ("B", "error")]
    assert body["archives"][1]["error"] == {"code": "archive_no_access", "message": "forbidden", "retryable": False}
    assert body["results"][0]["study_instance_uid"] == "1.2"
    assert client.pool.connectors["A"].tokens == ["abc"]


def test_search_with_unknown_archive_is_bad_request(client):
    response = client.post("/api/search", json={"archive": ["Z"], "patient_id": "P1"})

    assert response.status_code == 400
    assert "Z" in response.json()["detail"]


def test_ihe_search_enforces_study_rule(client):
    response = client.post(
        "/api/search/ihe",
        json={"archive": ["A"], "request_type": "STUDY", "study_instance_uid": "1.2", "accession_number": "ACC"},
    )

    assert response.status_code == 400


def test_search_rejects_limit_out_of_range(client):
    response = client.post("/api/search", json={"patient_id": "P1", "limit": 5000})

    assert response.status_code == 422


def test_minimal_version(client):
    ok = client.get("/api/versions/minimal", params={"version": "4.3.0-MGR"})
    too_old = client.get("/api/versions/minimal", params={"version": "4.0.0"})
    invalid = client.get("/api/versions/minimal", params={"version": "4.3"})

    assert ok.status_code == 200
    assert ok.json()["entry"]["releaseVersion"] == "4.2.0"
    assert ok.json()["qualifier"] == "-MGR"
    assert too_old.status_code == 426
    assert invalid.status_code == 400


def test_connectors_listing(client):
    response = client.get("/api/connectors")

    assert response.status_code == 200
    assert response.json() == [
        {"id": "A", "type": "DICOM_WEB", "endpoint": "http://pacs.local", "deactivated": []},
        {"id": "B", "type": "DICOM_WEB", "endpoint": "http://pacs.local", "deactivated": ["PATIENT_ID"]},
    ]


def test_launches_route(client, monkeypatch):
    launch = LaunchDTO(
        target_name="alice",
        target_type="USER",
        config_name="default",
        preferred_name="memory",
        selection="4g",
    )

    class _Service:
        def resolve(self, host, user, config_name, preferred_type=None):
            if config_name != "default":
                raise LaunchConfigNotFound(config_name)
            return EffectiveLaunches(
                launches=[launch],
                effective={("default", "memory"): launch},
                duplicates=[DuplicatePreference("default", "memory", ("ws-01", "alice"), False)],
            )

    monkeypatch.setattr(launches_route, "launch_preference_service", _Service())

    ok = client.get("/api/launches", params={"host": "ws-01", "user": "alice", "config": "default"})
    missing = client.get("/api/launches", params={"host": "ws-01", "config": "nope"})
    no_target = client.get("/api/launches", params={"config": "default"})

    assert ok.status_code == 200
    assert ok.json()["effective"][0]["selection"] == "4g"
    assert ok.json()["duplicates"][0]["targets"] == ["ws-01", "alice"]
    assert missing.status_code == 404
    assert no_target.status_code == 400


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}
