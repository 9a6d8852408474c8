"""Map a completed WizardState to the benefit application request payload.

Pure functions; only groups on the resolved path are read.

ASCII-only.
"""

from __future__ import annotations

from typing import Any

from applyportal.apply import catalog as c
from applyportal.apply.registry import StepRegistry
from applyportal.apply.types import WizardState

_ADDRESS_PARTS = ("address", "apartment", "country", "province", "city", "postal_code")


def _address(contact: dict[str, Any], prefix: str) -> dict[str, Any]:
    return {part: contact.get(f"{prefix}_{part}") for part in _ADDRESS_PARTS}


def _person(info: dict[str, Any]) -> dict[str, Any]:
    return {
        "first_name": info.get("first_name"),
        "last_name": info.get("last_name"),
        "social_insurance_number": info.get("social_insurance_number"),
    }


def _children(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for child in items:
        entry = _person(child)
        entry["date_of_birth"] = child.get("date_of_birth")
        entry["is_parent"] = bool(child.get("is_parent"))
        entry["dental_insurance"] = bool(child.get("dental_insurance"))
        out.append(entry)
    return out


def _benefits(group: dict[str, Any] | None) -> dict[str, Any] | None:
    if group is None:
        return None
    return {
        "federal_social_program": group.get("federal_social_program")
        if group.get("has_federal_benefits")
        else None,
        "provincial_territorial_social_program": group.get(
            "provincial_territorial_social_program"
        )
        if group.get("has_provincial_territorial_benefits")
        else None,
        "province": group.get("province")
        if group.get("has_provincial_territorial_benefits")
        else None,
    }


def to_benefit_application_request(state: WizardState, registry: StepRegistry) -> dict[str, Any]:
    """Build the external request for state.

    Conditional groups that are off the path (e.g. partner data after the
    marital status changed to single) are never sent.
    """
    groups = set(registry.path_groups(state))

    def g(name: str) -> dict[str, Any]:
        if name not in groups:
            return {}
        value = state.fields.get(name)
        return value if isinstance(value, dict) else {}

    applicant = dict(_person(g(c.APPLICANT_INFORMATION)))
    applicant["date_of_birth"] = g(c.DATE_OF_BIRTH).get("date_of_birth")
    applicant["marital_status"] = g(c.APPLICANT_INFORMATION).get("marital_status")
    applicant["tax_filing_2023"] = g(c.TAX_FILING_2023).get("tax_filing_2023")
    if c.DENTAL_INSURANCE in groups:
        applicant["dental_insurance"] = g(c.DENTAL_INSURANCE).get("dental_insurance")

    partner = None
    if c.PARTNER_INFORMATION in groups and state.fields.get(c.PARTNER_INFORMATION):
        p = g(c.PARTNER_INFORMATION)
        partner = dict(_person(p))
        partner["date_of_birth"] = p.get("date_of_birth")
        partner["consent"] = bool(p.get("confirm"))

    contact = g(c.CONTACT_INFORMATION)
    comm = g(c.COMMUNICATION_PREFERENCES)

    return {
        "application_id": state.id,
        "type_of_application": state.type_of_application,
        "terms_and_conditions": dict(g(c.TERMS_AND_CONDITIONS)),
        "applicant": applicant,
        "partner": partner,
        "children": _children(g(c.CHILDREN).get("children") or []),
        "contact": {
            "phone_number": contact.get("phone_number"),
            "phone_number_alt": contact.get("phone_number_alt"),
            "mailing_address": _address(contact, "mailing"),
            "home_address": _address(contact, "home"),
        },
        "communication": {
            "preferred_language": comm.get("preferred_language"),
            "preferred_method": comm.get("preferred_method"),
            "email": comm.get("email"),
        },
        "dental_benefits": _benefits(g(c.DENTAL_BENEFITS) if c.DENTAL_BENEFITS in groups else None),
    }
