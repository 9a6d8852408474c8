"""Field schemas for every apply field group.

ASCII-only.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from applyportal.apply.errors import detail
from applyportal.apply.types import APPLICATION_TYPES, TYPE_OF_APPLICATION_GROUP, FieldSpec
from applyportal.services.lookup import CANADA_COUNTRY_ID, USA_COUNTRY_ID, LookupService

TERMS_AND_CONDITIONS = "terms_and_conditions"
TAX_FILING_2023 = "tax_filing_2023"
DATE_OF_BIRTH = "date_of_birth"
APPLICANT_INFORMATION = "applicant_information"
PARTNER_INFORMATION = "partner_information"
CHILDREN = "children"
CONTACT_INFORMATION = "contact_information"
COMMUNICATION_PREFERENCES = "communication_preferences"
DENTAL_INSURANCE = "dental_insurance"
DENTAL_BENEFITS = "dental_benefits"

_NAME_MAX = 100
_ADDRESS_MAX = 30
_EMAIL_MAX = 64

_CHILD_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("first_name", "text", max_length=_NAME_MAX),
    FieldSpec("last_name", "text", max_length=_NAME_MAX),
    FieldSpec("date_of_birth", "date"),
    FieldSpec("is_parent", "confirm", label="I am the parent or legal guardian"),
    FieldSpec("has_social_insurance_number", "bool"),
    FieldSpec("social_insurance_number", "sin", required=False),
    FieldSpec("dental_insurance", "bool"),
)

GROUP_FIELDS: dict[str, tuple[FieldSpec, ...]] = {
    TERMS_AND_CONDITIONS: (
        FieldSpec("acknowledge_terms", "confirm"),
        FieldSpec("acknowledge_privacy", "confirm"),
        FieldSpec("share_data", "confirm"),
    ),
    TYPE_OF_APPLICATION_GROUP: (
        FieldSpec("type_of_application", "select", options=APPLICATION_TYPES),
    ),
    TAX_FILING_2023: (FieldSpec("tax_filing_2023", "bool"),),
    DATE_OF_BIRTH: (FieldSpec("date_of_birth", "date"),),
    APPLICANT_INFORMATION: (
        FieldSpec("first_name", "text", max_length=_NAME_MAX),
        FieldSpec("last_name", "text", max_length=_NAME_MAX),
        FieldSpec("marital_status", "select", lookup="marital_statuses"),
        FieldSpec("social_insurance_number", "sin"),
    ),
    PARTNER_INFORMATION: (
        FieldSpec("first_name", "text", max_length=_NAME_MAX),
        FieldSpec("last_name", "text", max_length=_NAME_MAX),
        FieldSpec("date_of_birth", "date"),
        FieldSpec("social_insurance_number", "sin"),
        FieldSpec("confirm", "confirm", label="Partner consents to sharing information"),
    ),
    CHILDREN: (
        FieldSpec("children", "list", item_fields=_CHILD_FIELDS, min_items=1, max_items=10),
    ),
    CONTACT_INFORMATION: (
        FieldSpec("phone_number", "phone", required=False),
        FieldSpec("phone_number_alt", "phone", required=False),
        FieldSpec("mailing_address", "text", max_length=_ADDRESS_MAX),
        FieldSpec("mailing_apartment", "text", required=False, max_length=_ADDRESS_MAX),
        FieldSpec("mailing_country", "select", lookup="countries"),
        FieldSpec("mailing_province", "select", required=False, lookup="regions"),
        FieldSpec("mailing_city", "text", max_length=_NAME_MAX),
        FieldSpec("mailing_postal_code", "postal_code", required=False),
        FieldSpec("copy_mailing_address", "bool"),
        FieldSpec("home_address", "text", required=False, max_length=_ADDRESS_MAX),
        FieldSpec("home_apartment", "text", required=False, max_length=_ADDRESS_MAX),
        FieldSpec("home_country", "select", required=False, lookup="countries"),
        FieldSpec("home_province", "select", required=False, lookup="regions"),
        FieldSpec("home_city", "text", required=False, max_length=_NAME_MAX),
        FieldSpec("home_postal_code", "postal_code", required=False),
    ),
    COMMUNICATION_PREFERENCES: (
        FieldSpec("preferred_language", "select", lookup="preferred_languages"),
        FieldSpec("preferred_method", "select", lookup="preferred_communication_methods"),
        FieldSpec("email", "email", required=False, max_length=_EMAIL_MAX),
        FieldSpec("confirm_email", "email", required=False, max_length=_EMAIL_MAX),
    ),
    DENTAL_INSURANCE: (FieldSpec("dental_insurance", "bool"),),
    DENTAL_BENEFITS: (
        FieldSpec("has_federal_benefits", "bool"),
        FieldSpec("federal_social_program", "select", required=False, lookup="federal_social_programs"),
        FieldSpec("has_provincial_territorial_benefits", "bool"),
        FieldSpec("province", "select", required=False, lookup="regions"),
        FieldSpec(
            "provincial_territorial_social_program",
            "select",
            required=False,
            lookup="provincial_territorial_social_programs",
        ),
    ),
}


CrossRule = Callable[[dict[str, Any], LookupService], list[dict[str, Any]]]


def _address_rule(values: dict[str, Any], lookups: LookupService, prefix: str) -> list[dict[str, Any]]:
    errs: list[dict[str, Any]] = []
    country = values.get(f"{prefix}_country")
    province = values.get(f"{prefix}_province")
    postal = values.get(f"{prefix}_postal_code")

    if prefix == "home":
        for name in ("home_address", "home_country", "home_city"):
            if not values.get(name):
                errs.append(detail(f"$.{name}", "missing_required"))

    if country in (CANADA_COUNTRY_ID, USA_COUNTRY_ID):
        region = lookups.find("regions", province) if province else None
        if not province:
            errs.append(detail(f"$.{prefix}_province", "missing_required"))
        elif region is None or region.get("country_id") != country:
            errs.append(detail(f"$.{prefix}_province", "invalid_option", {"country": country}))
            region = None

        if not postal:
            errs.append(detail(f"$.{prefix}_postal_code", "missing_required"))
        elif country == CANADA_COUNTRY_ID and not _is_canadian_postal(postal):
            errs.append(detail(f"$.{prefix}_postal_code", "invalid_format"))
        elif country == USA_COUNTRY_ID and not _is_zip(postal):
            errs.append(detail(f"$.{prefix}_postal_code", "invalid_format"))
        elif country == CANADA_COUNTRY_ID and region is not None:
            # Canadian postal codes start with a province-specific letter.
            prefixes = str(region.get("postal_prefixes") or "")
            if prefixes and postal[0].upper() not in prefixes:
                errs.append(
                    detail(
                        f"$.{prefix}_postal_code",
                        "postal_code_province_mismatch",
                        {"province": province},
                    )
                )
    elif country and postal and _is_canadian_postal(postal):
        errs.append(detail(f"$.{prefix}_country", "postal_code_country_mismatch"))
    return errs


def _is_canadian_postal(value: str) -> bool:
    v = value.replace(" ", "").upper()
    return (
        len(v) == 6
        and v[0::2].isalpha()
        and v[1::2].isdigit()
    )


def _is_zip(value: str) -> bool:
    v = value.replace("-", "")
    return v.isdigit() and len(v) in (5, 9)


def _contact_rule(values: dict[str, Any], lookups: LookupService) -> list[dict[str, Any]]:
    errs = _address_rule(values, lookups, "mailing")
    if values.get("copy_mailing_address"):
        for part in ("address", "apartment", "country", "province", "city", "postal_code"):
            values[f"home_{part}"] = values.get(f"mailing_{part}")
    else:
        errs.extend(_address_rule(values, lookups, "home"))
    return errs


def _communication_rule(values: dict[str, Any], lookups: LookupService) -> list[dict[str, Any]]:
    errs: list[dict[str, Any]] = []
    email = values.get("email")
    confirm = values.get("confirm_email")
    if values.get("preferred_method") == "email" and not email:
        errs.append(detail("$.email", "missing_required", {"preferred_method": "email"}))
    if email or confirm:
        if not confirm:
            errs.append(detail("$.confirm_email", "missing_required"))
        elif email != confirm:
            errs.append(detail("$.confirm_email", "email_mismatch"))
    return errs


def _benefits_rule(values: dict[str, Any], lookups: LookupService) -> list[dict[str, Any]]:
    errs: list[dict[str, Any]] = []
    if values.get("has_federal_benefits"):
        if not values.get("federal_social_program"):
            errs.append(detail("$.federal_social_program", "missing_required"))
    else:
        values["federal_social_program"] = None

    if values.get("has_provincial_territorial_benefits"):
        province = values.get("province")
        program = values.get("provincial_territorial_social_program")
        if not province:
            errs.append(detail("$.province", "missing_required"))
        if not program:
            errs.append(detail("$.provincial_territorial_social_program", "missing_required"))
        elif province:
            found = lookups.find("provincial_territorial_social_programs", program) or {}
            if found.get("region_id") != province:
                errs.append(
                    detail(
                        "$.provincial_territorial_social_program",
                        "invalid_option",
                        {"province": province},
                    )
                )
    else:
        values["province"] = None
        values["provincial_territorial_social_program"] = None
    return errs


def _children_rule(values: dict[str, Any], lookups: LookupService) -> list[dict[str, Any]]:
    errs: list[dict[str, Any]] = []
    for idx, child in enumerate(values.get("children") or []):
        if not isinstance(child, dict):
            continue
        if child.get("has_social_insurance_number") and not child.get("social_insurance_number"):
            errs.append(detail(f"$.children[{idx}].social_insurance_number", "missing_required"))
        if not child.get("has_social_insurance_number"):
            child["social_insurance_number"] = None
    return errs


CROSS_RULES: dict[str, CrossRule] = {
    CONTACT_INFORMATION: _contact_rule,
    COMMUNICATION_PREFERENCES: _communication_rule,
    DENTAL_BENEFITS: _benefits_rule,
    CHILDREN: _children_rule,
}


def fields_for(group: str) -> tuple[FieldSpec, ...]:
    return GROUP_FIELDS.get(group, ())
