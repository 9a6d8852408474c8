from __future__ import annotations

import pytest

from applyportal.apply.registry import StepRegistry
from applyportal.apply.types import StepDefinition, SubmissionInfo, WizardState
from applyportal.core.config import ConfigResolver
from applyportal.core.errors import UnknownStepError

TERMS = {"terms_and_conditions": {"acknowledge_terms": True}}


def _state(toa: str | None = None, **fields) -> WizardState:
    return WizardState(id="app-1", type_of_application=toa, fields={**TERMS, **fields})


@pytest.fixture
def registry() -> StepRegistry:
    return StepRegistry()


def test_path_stops_at_unresolved_type(registry: StepRegistry) -> None:
    assert registry.resolve_path(WizardState(id="x")) == [
        "terms-and-conditions",
        "type-application",
    ]


def test_adult_default_path_skips_partner(registry: StepRegistry) -> None:
    path = registry.resolve_path(_state("adult"))

    assert path == [
        "terms-and-conditions",
        "type-application",
        "adult/tax-filing",
        "adult/date-of-birth",
        "adult/applicant-information",
        "adult/contact-information",
        "adult/communication-preference",
        "adult/dental-insurance",
        "adult/federal-provincial-territorial-benefits",
        "adult/review-information",
        "adult/confirmation",
    ]


def test_partner_branch_follows_marital_status(registry: StepRegistry) -> None:
    married = _state("adult", applicant_information={"marital_status": "married"})
    single = _state("adult", applicant_information={"marital_status": "single"})

    assert registry.resolve_successor("adult/applicant-information", married) == (
        "adult/partner-information"
    )
    assert registry.resolve_successor("adult/applicant-information", single) == (
        "adult/contact-information"
    )
    assert "adult/partner-information" in registry.resolve_path(married)
    assert "adult/partner-information" not in registry.resolve_path(single)


def test_partner_statuses_are_configurable(tmp_path) -> None:
    resolver = ConfigResolver(
        cli_args={"apply": {"marital_status_codes_with_partner": "married"}},
        user_config_path=tmp_path / "u.yaml",
        system_config_path=tmp_path / "s.yaml",
    )
    registry = StepRegistry.from_resolver(resolver)
    common_law = _state("adult", applicant_information={"marital_status": "common-law"})

    assert "adult/partner-information" not in registry.resolve_path(common_law)


def test_not_filing_taxes_ends_at_exit_page(registry: StepRegistry) -> None:
    state = _state("adult", tax_filing_2023={"tax_filing_2023": False})

    assert registry.resolve_path(state)[-2:] == ["adult/tax-filing", "file-taxes"]
    assert registry.resume_step(state) == "file-taxes"
    assert registry.review_step_for(state) not in registry.resolve_path(state)


def test_delegate_ends_at_exit_page(registry: StepRegistry) -> None:
    assert registry.resolve_path(_state("delegate"))[-1] == "application-delegate"


def test_child_variant_order(registry: StepRegistry) -> None:
    path = registry.resolve_path(_state("child"))

    assert path[2:5] == ["child/tax-filing", "child/children", "child/applicant-information"]
    assert "child/dental-insurance" not in path
    assert path[-2:] == ["child/review-information", "child/confirmation"]


def test_adult_child_has_children_step(registry: StepRegistry) -> None:
    path = registry.resolve_path(_state("adult-child"))

    assert path.index("adult-child/children") == (
        path.index("adult-child/applicant-information") + 1
    )


def test_predecessor(registry: StepRegistry) -> None:
    state = _state("adult")

    assert registry.resolve_predecessor("terms-and-conditions", state) is None
    assert registry.resolve_predecessor("adult/tax-filing", state) == "type-application"
    assert registry.resolve_predecessor("adult/contact-information", state) == (
        "adult/applicant-information"
    )
    assert registry.resolve_predecessor("adult/partner-information", state) is None


def test_resume_step(registry: StepRegistry) -> None:
    assert registry.resume_step(WizardState(id="x")) == "terms-and-conditions"
    assert registry.resume_step(_state("adult")) == "adult/tax-filing"

    submitted = WizardState(
        id="x",
        type_of_application="adult",
        submission_info=SubmissionInfo(confirmation_code="ABC123", submitted_on="2024-01-01"),
    )
    assert registry.resume_step(submitted) == "adult/confirmation"


def test_earliest_missing_and_required_groups(registry: StepRegistry) -> None:
    state = _state("adult", tax_filing_2023={"tax_filing_2023": True})

    assert registry.earliest_missing("adult/contact-information", state) == "adult/date-of-birth"
    assert registry.required_groups("adult/date-of-birth", state) == [
        "terms_and_conditions",
        "type_of_application",
        "tax_filing_2023",
    ]


def test_stale_groups_only_lists_conditional_groups_off_path(registry: StepRegistry) -> None:
    state = _state(
        "adult",
        applicant_information={"marital_status": "single"},
        partner_information={"first_name": "John"},
    )
    assert registry.stale_groups(state) == ["partner_information"]

    married = _state(
        "adult",
        applicant_information={"marital_status": "married"},
        partner_information={"first_name": "John"},
    )
    assert registry.stale_groups(married) == []


def test_unknown_step_raises(registry: StepRegistry) -> None:
    with pytest.raises(UnknownStepError):
        registry.get("adult/nope")
    with pytest.raises(UnknownStepError):
        registry.resolve_successor("nope", WizardState(id="x"))


def test_duplicate_step_ids_rejected() -> None:
    step = StepDefinition(step_id="a", title="A")
    with pytest.raises(ValueError):
        StepRegistry([step, step])
