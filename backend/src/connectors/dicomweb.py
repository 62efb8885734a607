"""Archive connector issuing QIDO-RS queries to a DICOMweb endpoint."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

import requests
from requests.auth import HTTPBasicAuth
from pydicom.dataset import Dataset

from errors import (
    ArchiveClientError,
    ArchiveNoAccess,
    ArchiveServerError,
    ArchiveUnavailable,
)

from .base import ArchiveConnector, result_from_dataset
from .config import ConnectorSettings
from .criteria import SearchCriteria, split_hl7_patient_id
from .models import ConnectorProperty, QueryLevel, SearchResult

logger = logging.getLogger(__name__)


INSTANCE_INCLUDE_FIELDS = "StudyInstanceUID,SeriesInstanceUID,SOPInstanceUID,InstanceNumber"
SERIES_INCLUDE_FIELDS = "StudyInstanceUID,SeriesInstanceUID,SeriesDescription,SeriesNumber,Modality"
STUDY_INCLUDE_FIELDS = (
    "StudyInstanceUID,StudyDescription,StudyDate,StudyTime,AccessionNumber,StudyID,"
    "ReferringPhysicianName,PatientID,PatientName,IssuerOfPatientID,PatientBirthDate,"
    "PatientBirthTime,PatientSex"
)

# Query level -> (resource path, includefield value)
LEVEL_RESOURCES: dict[QueryLevel, tuple[str, str]] = {
    QueryLevel.PATIENT: ("studies", STUDY_INCLUDE_FIELDS),
    QueryLevel.STUDY: ("studies", STUDY_INCLUDE_FIELDS),
    QueryLevel.SERIES: ("series", SERIES_INCLUDE_FIELDS),
    QueryLevel.IMAGE: ("instances", INSTANCE_INCLUDE_FIELDS),
}

DICOM_JSON = "application/dicom+json"
# Refresh client-credentials tokens slightly before they expire
TOKEN_EXPIRY_MARGIN = 30.0


def build_query_params(criteria: SearchCriteria, level: QueryLevel) -> dict[str, Any]:
    params: dict[str, Any] = {"includefield": LEVEL_RESOURCES[level][1]}
    if criteria.patient_id and criteria.patient_id.strip():
        patient_id, issuer = split_hl7_patient_id(criteria.patient_id.strip())
        params["PatientID"] = patient_id
        if issuer:
            params["IssuerOfPatientID"] = issuer
    for key, value in (
        ("StudyInstanceUID", criteria.study_instance_uid),
        ("AccessionNumber", criteria.accession_number),
        ("SeriesInstanceUID", criteria.series_instance_uid),
        ("SOPInstanceUID", criteria.sop_instance_uid),
    ):
        if value and value.strip():
            params[key] = value.strip()
    params["limit"] = criteria.limit
    params["offset"] = criteria.offset
    return params


class DicomWebArchiveConnector(ArchiveConnector):
    """QIDO-RS client authenticating with OAuth2 when possible, Basic otherwise."""

    def __init__(
        self,
        connector: ConnectorProperty,
        settings: Optional[ConnectorSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(connector, settings)
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def _client_credentials_token(self) -> str:
        oauth2 = self.connector.wado.oauth2
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token
            data = {
                "grant_type": "client_credentials",
                "client_id": oauth2.client_id,
                "client_secret": oauth2.client_secret,
            }
            if oauth2.scope:
                data["scope"] = oauth2.scope
            try:
                response = self.session.post(oauth2.token_url, data=data, timeout=self.settings.dicomweb_timeout)
            except requests.exceptions.RequestException as exc:
                raise ArchiveUnavailable(f"Token endpoint unreachable: {exc}", self.archive_id) from exc
            if response.status_code >= 400:
                raise ArchiveNoAccess(
                    f"Token request refused with status {response.status_code}", self.archive_id
                )
            try:
                payload = response.json()
                token = payload["access_token"]
                expires_in = float(payload.get("expires_in", 300))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                raise ArchiveServerError("Malformed token response", self.archive_id) from exc
            self._token = token
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0.0)
            logger.debug("Fetched client credentials token for %s", self.archive_id)
            return self._token

    def authorization(self, access_token: Optional[str] = None) -> tuple[str, dict[str, str], Any]:
        """Return ``(base url, headers, requests auth)`` for the preferred method."""

        wado = self.connector.wado
        if access_token:
            return wado.oauth2.server.base_url(), {"Authorization": f"Bearer {access_token}"}, None
        if wado.oauth2.has_client_credentials:
            token = self._client_credentials_token()
            return wado.oauth2.server.base_url(), {"Authorization": f"Bearer {token}"}, None
        auth = None
        if wado.basic.login:
            auth = HTTPBasicAuth(wado.basic.login, wado.basic.password or "")
        return wado.basic.server.base_url(), {}, auth

    def search(self, criteria: SearchCriteria, access_token: Optional[str] = None) -> SearchResult:
        level = criteria.query_level()
        base_url, headers, auth = self.authorization(access_token)
        url = f"{base_url}/{LEVEL_RESOURCES[level][0]}"
        headers = {"Accept": DICOM_JSON, **headers}
        params = build_query_params(criteria, level)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                auth=auth,
                timeout=self.settings.dicomweb_timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise ArchiveUnavailable(f"QIDO-RS request timed out: {url}", self.archive_id) from exc
        except requests.exceptions.RequestException as exc:
            raise ArchiveUnavailable(f"QIDO-RS endpoint unreachable: {exc}", self.archive_id) from exc

        self._raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return SearchResult()

        results = self._parse_results(response)
        continuation = criteria.offset + criteria.limit if len(results) == criteria.limit else None
        logger.debug("QIDO-RS %s returned %d matches", url, len(results))
        return SearchResult(results=results, continuation=continuation)

    def _parse_results(self, response: requests.Response) -> list:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ArchiveServerError("QIDO-RS response is not DICOM JSON", self.archive_id) from exc
        if not isinstance(payload, list):
            raise ArchiveServerError("QIDO-RS response is not a list of datasets", self.archive_id)
        try:
            return [result_from_dataset(Dataset.from_json(item), self.archive_id) for item in payload]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ArchiveServerError(f"Malformed QIDO-RS dataset: {exc}", self.archive_id) from exc

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        message = f"QIDO-RS responded {status}"
        if status in (401, 403):
            raise ArchiveNoAccess(message, self.archive_id)
        if status < 500:
            raise ArchiveClientError(message, self.archive_id)
        raise ArchiveServerError(message, self.archive_id)

    def close(self) -> None:
        self.session.close()
