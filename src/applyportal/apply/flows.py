"""Declarative step tables for every application variant.

Common steps use bare ids; variant steps are prefixed with the variant
("adult/applicant-information"). Branching lives in the small named
functions below and nowhere else.

ASCII-only.
"""

from __future__ import annotations

from collections.abc import Iterable

from applyportal.apply import catalog as c
from applyportal.apply.types import (
    TYPE_ADULT,
    TYPE_ADULT_CHILD,
    TYPE_CHILD,
    TYPE_DELEGATE,
    TYPE_OF_APPLICATION_GROUP,
    Branch,
    StepDefinition,
    WizardState,
)

FIRST_STEP = "terms-and-conditions"
TYPE_STEP = "type-application"
FILE_TAXES_STEP = "file-taxes"
DELEGATE_STEP = "application-delegate"

DEFAULT_PARTNER_STATUSES: tuple[str, ...] = ("married", "common-law")

# name -> (title, kind, field group, conditional)
_STEP_INFO: dict[str, tuple[str, str, str | None, bool]] = {
    "tax-filing": ("Tax filing", "form", c.TAX_FILING_2023, False),
    "date-of-birth": ("Date of birth", "form", c.DATE_OF_BIRTH, False),
    "applicant-information": ("Applicant information", "form", c.APPLICANT_INFORMATION, False),
    "partner-information": ("Spouse or common-law partner", "form", c.PARTNER_INFORMATION, True),
    "children": ("Child information", "form", c.CHILDREN, False),
    "contact-information": ("Contact information", "form", c.CONTACT_INFORMATION, False),
    "communication-preference": (
        "Communication preference",
        "form",
        c.COMMUNICATION_PREFERENCES,
        False,
    ),
    "dental-insurance": ("Access to dental insurance", "form", c.DENTAL_INSURANCE, False),
    "federal-provincial-territorial-benefits": (
        "Federal, provincial or territorial dental benefits",
        "form",
        c.DENTAL_BENEFITS,
        False,
    ),
    "review-information": ("Review your information", "review", None, False),
    "confirmation": ("Application successfully submitted", "confirmation", None, False),
}

VARIANT_SEQUENCES: dict[str, tuple[str, ...]] = {
    TYPE_ADULT: (
        "tax-filing",
        "date-of-birth",
        "applicant-information",
        "partner-information",
        "contact-information",
        "communication-preference",
        "dental-insurance",
        "federal-provincial-territorial-benefits",
        "review-information",
        "confirmation",
    ),
    TYPE_ADULT_CHILD: (
        "tax-filing",
        "date-of-birth",
        "applicant-information",
        "partner-information",
        "children",
        "contact-information",
        "communication-preference",
        "dental-insurance",
        "federal-provincial-territorial-benefits",
        "review-information",
        "confirmation",
    ),
    TYPE_CHILD: (
        "tax-filing",
        "children",
        "applicant-information",
        "partner-information",
        "contact-information",
        "communication-preference",
        "review-information",
        "confirmation",
    ),
}

VARIANT_ENTRY: dict[str, str] = {
    TYPE_ADULT: f"{TYPE_ADULT}/tax-filing",
    TYPE_ADULT_CHILD: f"{TYPE_ADULT_CHILD}/tax-filing",
    TYPE_CHILD: f"{TYPE_CHILD}/tax-filing",
    TYPE_DELEGATE: DELEGATE_STEP,
}


def variant_step(variant: str, name: str) -> str:
    return f"{variant}/{name}"


def review_step(variant: str) -> str:
    return variant_step(variant, "review-information")


def confirmation_step(variant: str) -> str:
    return variant_step(variant, "confirmation")


def _after_type_of_application(state: WizardState) -> str | None:
    if state.type_of_application is None:
        return None
    return VARIANT_ENTRY.get(state.type_of_application)


def _after_tax_filing(next_step: str) -> Branch:
    def branch(state: WizardState) -> str | None:
        filed = (state.fields.get(c.TAX_FILING_2023) or {}).get("tax_filing_2023")
        if filed is False:
            return FILE_TAXES_STEP
        return next_step

    return branch


def _after_applicant_information(
    partner_step: str, skip_partner_step: str, partner_statuses: tuple[str, ...]
) -> Branch:
    def branch(state: WizardState) -> str | None:
        status = (state.fields.get(c.APPLICANT_INFORMATION) or {}).get("marital_status")
        if status in partner_statuses:
            return partner_step
        return skip_partner_step

    return branch


def _common_steps() -> list[StepDefinition]:
    return [
        StepDefinition(
            step_id=FIRST_STEP,
            title="Terms and conditions",
            field_group=c.TERMS_AND_CONDITIONS,
            fields=c.fields_for(c.TERMS_AND_CONDITIONS),
            successor=TYPE_STEP,
        ),
        StepDefinition(
            step_id=TYPE_STEP,
            title="Type of application",
            field_group=TYPE_OF_APPLICATION_GROUP,
            fields=c.fields_for(TYPE_OF_APPLICATION_GROUP),
            successor=None,
            branch=_after_type_of_application,
        ),
        StepDefinition(step_id=FILE_TAXES_STEP, title="File your taxes", kind="exit"),
        StepDefinition(
            step_id=DELEGATE_STEP,
            title="Applying on behalf of someone else",
            kind="exit",
        ),
    ]


def _variant_steps(variant: str, names: Iterable[str], partner_statuses: tuple[str, ...]) -> list[StepDefinition]:
    seq = list(names)
    ids = [variant_step(variant, n) for n in seq]
    out: list[StepDefinition] = []
    for idx, name in enumerate(seq):
        title, kind, group, conditional = _STEP_INFO[name]
        successor = ids[idx + 1] if idx + 1 < len(ids) else None
        branch: Branch | None = None

        if name == "tax-filing":
            branch = _after_tax_filing(successor or "")
        elif name == "applicant-information" and "partner-information" in seq:
            partner_idx = seq.index("partner-information")
            skip_to = ids[partner_idx + 1]
            branch = _after_applicant_information(ids[partner_idx], skip_to, partner_statuses)
            # Until marital status is known the partner step is not on the path.
            successor = skip_to

        out.append(
            StepDefinition(
                step_id=ids[idx],
                title=title,
                kind=kind,  # type: ignore[arg-type]
                variant=variant,
                field_group=group,
                fields=c.fields_for(group) if group else (),
                successor=successor,
                branch=branch,
                conditional=conditional,
                blocked_after_submission=kind != "confirmation",
            )
        )
    return out


def build_steps(
    *, partner_statuses: Iterable[str] = DEFAULT_PARTNER_STATUSES
) -> list[StepDefinition]:
    """Return every step definition, common steps first."""
    statuses = tuple(partner_statuses)
    steps = _common_steps()
    for variant, names in VARIANT_SEQUENCES.items():
        steps.extend(_variant_steps(variant, names, statuses))
    return steps
