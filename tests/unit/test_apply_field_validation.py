from __future__ import annotations

from datetime import date

import pytest

from applyportal.apply import catalog as c
from applyportal.apply.field_validation import is_valid_sin, validate_group_payload
from applyportal.core.errors import ValidationError
from applyportal.services.lookup import LookupService


@pytest.fixture
def lookups() -> LookupService:
    return LookupService()


def _validate(group: str, payload, lookups: LookupService, today: date | None = None) -> dict:
    return validate_group_payload(
        group=group,
        specs=c.fields_for(group),
        payload=payload,
        lookups=lookups,
        today=today,
    )


def _reasons(exc: ValidationError) -> dict[str, str]:
    return {d["path"]: d["reason"] for d in exc.details}


@pytest.mark.parametrize(
    "value,expected",
    [
        ("046 454 286", True),
        ("046-454-286", True),
        ("130692544", True),
        ("046454287", False),
        ("000000000", False),
        ("12345678", False),
        ("abcdefghi", False),
    ],
)
def test_sin_checksum(value: str, expected: bool) -> None:
    assert is_valid_sin(value) is expected


def test_applicant_information_is_normalized(lookups: LookupService) -> None:
    out = _validate(
        c.APPLICANT_INFORMATION,
        {
            "first_name": "  Jane ",
            "last_name": "Doe",
            "marital_status": "married",
            "social_insurance_number": "046 454 286",
        },
        lookups,
    )

    assert out == {
        "first_name": "Jane",
        "last_name": "Doe",
        "marital_status": "married",
        "social_insurance_number": "046454286",
    }


def test_all_field_errors_are_collected(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(
            c.APPLICANT_INFORMATION,
            {
                "first_name": "",
                "last_name": "Doe",
                "marital_status": "engaged",
                "social_insurance_number": "123456789",
                "nickname": "JD",
            },
            lookups,
        )

    assert _reasons(ei.value) == {
        "$.first_name": "missing_required",
        "$.marital_status": "invalid_option",
        "$.social_insurance_number": "invalid_sin",
        "$.nickname": "unknown_field",
    }


def test_non_object_payload_rejected(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(c.DATE_OF_BIRTH, ["1980-01-01"], lookups)
    assert _reasons(ei.value) == {"$": "invalid_type"}


def test_terms_must_be_accepted(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(
            c.TERMS_AND_CONDITIONS,
            {"acknowledge_terms": "true", "acknowledge_privacy": "false", "share_data": True},
            lookups,
        )
    assert _reasons(ei.value) == {"$.acknowledge_privacy": "must_be_true"}


def test_date_rules(lookups: LookupService) -> None:
    today = date(2024, 6, 1)

    assert _validate(c.DATE_OF_BIRTH, {"date_of_birth": "2024-06-01"}, lookups, today) == {
        "date_of_birth": "2024-06-01"
    }
    with pytest.raises(ValidationError) as ei:
        _validate(c.DATE_OF_BIRTH, {"date_of_birth": "2024-06-02"}, lookups, today)
    assert _reasons(ei.value) == {"$.date_of_birth": "future_date"}

    with pytest.raises(ValidationError) as ei:
        _validate(c.DATE_OF_BIRTH, {"date_of_birth": "01/02/1980"}, lookups, today)
    assert _reasons(ei.value) == {"$.date_of_birth": "invalid_format"}


def test_bool_fields_accept_form_strings(lookups: LookupService) -> None:
    assert _validate(c.TAX_FILING_2023, {"tax_filing_2023": "no"}, lookups) == {
        "tax_filing_2023": False
    }
    with pytest.raises(ValidationError):
        _validate(c.TAX_FILING_2023, {"tax_filing_2023": "perhaps"}, lookups)


def _contact(**overrides) -> dict:
    payload = {
        "mailing_address": "123 Main St",
        "mailing_country": "CAN",
        "mailing_province": "ON",
        "mailing_city": "Ottawa",
        "mailing_postal_code": "k1a 0b1",
        "copy_mailing_address": True,
    }
    payload.update(overrides)
    return payload


def test_contact_copies_mailing_to_home(lookups: LookupService) -> None:
    out = _validate(c.CONTACT_INFORMATION, _contact(), lookups)

    assert out["mailing_postal_code"] == "K1A 0B1"
    assert out["home_address"] == "123 Main St"
    assert out["home_province"] == "ON"
    assert out["home_postal_code"] == "K1A 0B1"


def test_contact_postal_code_must_match_province(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(c.CONTACT_INFORMATION, _contact(mailing_province="QC"), lookups)

    assert _reasons(ei.value) == {"$.mailing_postal_code": "postal_code_province_mismatch"}


def test_contact_province_required_for_canada(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(
            c.CONTACT_INFORMATION,
            _contact(mailing_province="", mailing_postal_code=""),
            lookups,
        )

    assert _reasons(ei.value) == {
        "$.mailing_province": "missing_required",
        "$.mailing_postal_code": "missing_required",
    }


def test_contact_canadian_postal_code_outside_canada(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(
            c.CONTACT_INFORMATION,
            _contact(mailing_country="FRA", mailing_province=""),
            lookups,
        )

    assert _reasons(ei.value) == {"$.mailing_country": "postal_code_country_mismatch"}


def test_contact_separate_home_address_is_validated(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(
            c.CONTACT_INFORMATION,
            _contact(
                copy_mailing_address=False,
                home_country="USA",
                home_province="NY",
                home_postal_code="ABCDE",
            ),
            lookups,
        )

    assert _reasons(ei.value) == {
        "$.home_address": "missing_required",
        "$.home_city": "missing_required",
        "$.home_postal_code": "invalid_format",
    }


def test_communication_email_rules(lookups: LookupService) -> None:
    base = {"preferred_language": "fr", "preferred_method": "email"}

    with pytest.raises(ValidationError) as ei:
        _validate(c.COMMUNICATION_PREFERENCES, base, lookups)
    assert _reasons(ei.value) == {"$.email": "missing_required"}

    with pytest.raises(ValidationError) as ei:
        _validate(
            c.COMMUNICATION_PREFERENCES,
            {**base, "email": "a@example.com", "confirm_email": "b@example.com"},
            lookups,
        )
    assert _reasons(ei.value) == {"$.confirm_email": "email_mismatch"}

    out = _validate(
        c.COMMUNICATION_PREFERENCES,
        {**base, "email": "A@Example.com", "confirm_email": "a@example.COM"},
        lookups,
    )
    assert out["email"] == "a@example.com"


def test_benefits_program_must_belong_to_province(lookups: LookupService) -> None:
    payload = {
        "has_federal_benefits": True,
        "federal_social_program": "nihb",
        "has_provincial_territorial_benefits": True,
        "province": "QC",
        "provincial_territorial_social_program": "on-odsp",
    }
    with pytest.raises(ValidationError) as ei:
        _validate(c.DENTAL_BENEFITS, payload, lookups)
    assert _reasons(ei.value) == {"$.provincial_territorial_social_program": "invalid_option"}


def test_benefits_unused_programs_are_dropped(lookups: LookupService) -> None:
    out = _validate(
        c.DENTAL_BENEFITS,
        {
            "has_federal_benefits": False,
            "federal_social_program": "nihb",
            "has_provincial_territorial_benefits": False,
            "province": "ON",
        },
        lookups,
    )

    assert out["federal_social_program"] is None
    assert out["province"] is None
    assert out["provincial_territorial_social_program"] is None


def _child(**overrides) -> dict:
    child = {
        "first_name": "Sam",
        "last_name": "Doe",
        "date_of_birth": "2015-03-04",
        "is_parent": True,
        "has_social_insurance_number": False,
        "dental_insurance": False,
    }
    child.update(overrides)
    return child


def test_children_list_rules(lookups: LookupService) -> None:
    with pytest.raises(ValidationError) as ei:
        _validate(c.CHILDREN, {"children": []}, lookups)
    assert _reasons(ei.value) == {"$.children": "too_few_items"}

    with pytest.raises(ValidationError) as ei:
        _validate(c.CHILDREN, {"children": [_child(), _child(is_parent=False)]}, lookups)
    assert _reasons(ei.value) == {"$.children[1].is_parent": "must_be_true"}

    with pytest.raises(ValidationError) as ei:
        _validate(c.CHILDREN, {"children": [_child(has_social_insurance_number=True)]}, lookups)
    assert _reasons(ei.value) == {"$.children[0].social_insurance_number": "missing_required"}

    out = _validate(c.CHILDREN, {"children": [_child(social_insurance_number="046454286")]}, lookups)
    assert out["children"][0]["social_insurance_number"] is None
