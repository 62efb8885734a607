"""Archive connector issuing C-FIND requests to a DICOM node."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydicom.dataset import Dataset
from pynetdicom import AE
from pynetdicom.sop_class import (
    PatientRootQueryRetrieveInformationModelFind,
    StudyRootQueryRetrieveInformationModelFind,
)

from errors import (
    ArchiveClientError,
    ArchiveNoAccess,
    ArchiveServerError,
    ArchiveUnavailable,
)

from .base import ArchiveConnector, paginate, result_from_dataset
from .config import ConnectorSettings
from .criteria import SearchCriteria, split_hl7_patient_id
from .models import ArchiveQueryResult, ConnectorProperty, QueryLevel, SearchResult

logger = logging.getLogger(__name__)


STATUS_SUCCESS = 0x0000
STATUS_PENDING = (0xFF00, 0xFF01)
STATUS_IDENTIFIER_MISMATCH = 0xA900
STATUS_NOT_AUTHORIZED = 0x0124

# Return keys requested at each level, on top of the matching keys.
RETURN_KEYS: dict[QueryLevel, tuple[str, ...]] = {
    QueryLevel.PATIENT: (
        "PatientName",
        "PatientID",
        "IssuerOfPatientID",
        "PatientBirthDate",
        "PatientSex",
    ),
    QueryLevel.STUDY: (
        "PatientName",
        "PatientID",
        "IssuerOfPatientID",
        "PatientBirthDate",
        "PatientSex",
        "StudyInstanceUID",
        "StudyID",
        "StudyDate",
        "StudyTime",
        "AccessionNumber",
        "StudyDescription",
        "ReferringPhysicianName",
    ),
    QueryLevel.SERIES: (
        "StudyInstanceUID",
        "SeriesInstanceUID",
        "Modality",
        "SeriesDescription",
        "SeriesNumber",
    ),
    QueryLevel.IMAGE: (
        "StudyInstanceUID",
        "SeriesInstanceUID",
        "SOPInstanceUID",
        "InstanceNumber",
    ),
}


def build_identifier(criteria: SearchCriteria, level: QueryLevel) -> Dataset:
    identifier = Dataset()
    identifier.QueryRetrieveLevel = level.value
    for keyword in RETURN_KEYS[level]:
        setattr(identifier, keyword, "")

    if criteria.patient_id:
        patient_id, issuer = split_hl7_patient_id(criteria.patient_id.strip())
        identifier.PatientID = patient_id
        if issuer:
            identifier.IssuerOfPatientID = issuer
    if criteria.study_instance_uid:
        identifier.StudyInstanceUID = criteria.study_instance_uid.strip()
    if criteria.accession_number:
        identifier.AccessionNumber = criteria.accession_number.strip()
    if criteria.series_instance_uid:
        identifier.SeriesInstanceUID = criteria.series_instance_uid.strip()
    if criteria.sop_instance_uid:
        identifier.SOPInstanceUID = criteria.sop_instance_uid.strip()
    return identifier


class DicomArchiveConnector(ArchiveConnector):
    """Queries a C-FIND SCP and pages the collected matches locally."""

    def __init__(
        self,
        connector: ConnectorProperty,
        settings: Optional[ConnectorSettings] = None,
        ae_factory: Optional[Callable[[str], AE]] = None,
    ) -> None:
        super().__init__(connector, settings)
        self._dicom = connector.dicom_connector
        self._ae_factory = ae_factory or (lambda title: AE(ae_title=title))

    def _build_ae(self, model) -> AE:
        ae = self._ae_factory(self._dicom.calling_aet)
        ae.add_requested_context(model)
        ae.acse_timeout = self.settings.dicom_acse_timeout
        ae.dimse_timeout = self.settings.dicom_dimse_timeout
        ae.network_timeout = self.settings.dicom_network_timeout
        return ae

    def search(self, criteria: SearchCriteria, access_token: Optional[str] = None) -> SearchResult:
        level = criteria.query_level()
        model = (
            PatientRootQueryRetrieveInformationModelFind
            if level is QueryLevel.PATIENT
            else StudyRootQueryRetrieveInformationModelFind
        )
        identifier = build_identifier(criteria, level)
        rows = self._find(identifier, model)
        logger.debug("C-FIND on %s at %s level returned %d matches", self.archive_id, level.value, len(rows))
        return paginate(rows, criteria.limit, criteria.offset)

    def _find(self, identifier: Dataset, model) -> list[ArchiveQueryResult]:
        ae = self._build_ae(model)
        dicom = self._dicom
        assoc = ae.associate(dicom.host, dicom.port, ae_title=dicom.aet)
        if not assoc.is_established:
            raise ArchiveUnavailable(
                f"Association with {dicom.aet}@{dicom.host}:{dicom.port} rejected or aborted",
                self.archive_id,
            )

        rows: list[ArchiveQueryResult] = []
        try:
            for status, result in assoc.send_c_find(identifier, model):
                if status is None or "Status" not in status:
                    raise ArchiveUnavailable("Connection timed out or aborted during C-FIND", self.archive_id)
                code = int(status.Status)
                if code in STATUS_PENDING:
                    if result is not None:
                        rows.append(result_from_dataset(result, self.archive_id))
                elif code == STATUS_SUCCESS:
                    break
                else:
                    comment = status.get("ErrorComment", "")
                    self._raise_for_status(code, comment)
        finally:
            if assoc.is_established:
                assoc.release()
        return rows

    def _raise_for_status(self, code: int, comment: str) -> None:
        message = f"C-FIND failed with status 0x{code:04X}"
        if comment:
            message = f"{message}: {comment}"
        logger.warning("%s (%s)", message, self.archive_id)
        if code == STATUS_IDENTIFIER_MISMATCH:
            raise ArchiveClientError(message, self.archive_id)
        if code == STATUS_NOT_AUTHORIZED:
            raise ArchiveNoAccess(message, self.archive_id)
        raise ArchiveServerError(message, self.archive_id)
