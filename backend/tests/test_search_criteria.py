import pytest
from pydantic import ValidationError as PydanticValidationError

from connectors.criteria import (
    IHERequestType,
    IHESearchCriteria,
    SearchCriteria,
    is_ihe_request_valid,
    split_hl7_patient_id,
    validate_criteria,
)
from connectors.models import ConnectorProperty, QueryLevel, QueryLevelType
from errors import UnknownConnector, ValidationError


WADO = {
    "basic": {"server": {"url": "http://pacs.local"}},
    "oauth2": {"server": {"url": "https://pacs.local"}},
}


def test_unknown_archive_fails_regardless_of_other_fields():
    criteria = SearchCriteria(archive=["pacs", "ghost", "other"], study_instance_uid="1.2.3")

    with pytest.raises(UnknownConnector) as excinfo:
        validate_criteria(criteria, ["pacs"])
    assert excinfo.value.archive_ids == ["ghost", "other"]


def test_unknown_archive_is_reported_before_ihe_rule():
    criteria = IHESearchCriteria(archive=["ghost"], request_type=IHERequestType.STUDY)

    with pytest.raises(UnknownConnector):
        validate_criteria(criteria, ["pacs"])


@pytest.mark.parametrize(
    "study_uid,accession,valid",
    [
        (None, None, False),
        ("", "", False),
        ("1.2.3", "ACC1", False),
        ("1.2.3", None, True),
        (None, "ACC1", True),
        ("", "ACC1", True),
    ],
)
def test_ihe_study_requires_exactly_one_identifier(study_uid, accession, valid):
    criteria = IHESearchCriteria(
        request_type=IHERequestType.STUDY,
        study_instance_uid=study_uid,
        accession_number=accession,
    )

    assert is_ihe_request_valid(criteria) is valid
    if valid:
        validate_criteria(criteria, [])
    else:
        with pytest.raises(ValidationError):
            validate_criteria(criteria, [])


def test_ihe_patient_requires_non_blank_patient_id():
    assert not is_ihe_request_valid(IHESearchCriteria(request_type=IHERequestType.PATIENT, patient_id="  "))
    assert is_ihe_request_valid(IHESearchCriteria(request_type=IHERequestType.PATIENT, patient_id="P1"))


def test_search_requires_an_identifier():
    with pytest.raises(ValidationError):
        validate_criteria(SearchCriteria(), [])


def test_limit_bounds():
    assert SearchCriteria().limit == 100
    with pytest.raises(PydanticValidationError):
        SearchCriteria(limit=0)
    with pytest.raises(PydanticValidationError):
        SearchCriteria(limit=1001)
    with pytest.raises(PydanticValidationError):
        SearchCriteria(offset=-1)


def test_query_level_most_specific_wins():
    assert SearchCriteria(patient_id="P1").query_level() is QueryLevel.PATIENT
    assert SearchCriteria(patient_id="P1", accession_number="A").query_level() is QueryLevel.STUDY
    assert SearchCriteria(study_instance_uid="1", series_instance_uid="2").query_level() is QueryLevel.SERIES
    assert SearchCriteria(series_instance_uid="2", sop_instance_uid="3").query_level() is QueryLevel.IMAGE


def test_deactivated_levels_are_not_sent_to_connector():
    connector = ConnectorProperty.model_validate(
        {
            "id": "web",
            "type": "DICOM_WEB",
            "wado": WADO,
            "searchCriteria": {"deactivated": ["SOP_INSTANCE_UID"]},
        }
    )
    criteria = SearchCriteria(series_instance_uid="1.2", sop_instance_uid="1.2.3")

    scoped = criteria.for_connector(connector)

    assert connector.is_deactivated(QueryLevelType.SOP_INSTANCE_UID)
    assert scoped.sop_instance_uid is None
    assert scoped.series_instance_uid == "1.2"
    assert criteria.sop_instance_uid == "1.2.3"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("P123", ("P123", None)),
        ("P123^^^HOSP", ("P123", "HOSP")),
        ("P123%5E%5E%5EHOSP", ("P123", "HOSP")),
        ("P123^^^", ("P123", None)),
    ],
)
def test_split_hl7_patient_id(raw, expected):
    assert split_hl7_patient_id(raw) == expected
