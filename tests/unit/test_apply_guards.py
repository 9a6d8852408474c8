from __future__ import annotations

import pytest

from applyportal.apply.guards import NavigationGuard
from applyportal.apply.registry import StepRegistry
from applyportal.apply.types import Allow, Redirect, SubmissionInfo, WizardState
from applyportal.core.errors import UnknownStepError


@pytest.fixture
def guard() -> NavigationGuard:
    return NavigationGuard(StepRegistry())


def _adult(**fields) -> WizardState:
    base = {
        "terms_and_conditions": {"acknowledge_terms": True},
        "tax_filing_2023": {"tax_filing_2023": True},
        "date_of_birth": {"date_of_birth": "1980-05-17"},
    }
    base.update(fields)
    return WizardState(id="app-1", type_of_application="adult", fields=base)


def test_allows_next_step(guard: NavigationGuard) -> None:
    assert guard.authorize("adult/applicant-information", _adult()) == Allow(
        "adult/applicant-information"
    )


def test_skipping_ahead_redirects_to_earliest_missing(guard: NavigationGuard) -> None:
    decision = guard.authorize("adult/contact-information", _adult())

    assert decision == Redirect("adult/applicant-information", "missing_prerequisite")


def test_confirmation_before_submission_redirects_to_start(guard: NavigationGuard) -> None:
    decision = guard.authorize("adult/confirmation", _adult())

    assert decision == Redirect("terms-and-conditions", "not_submitted")


def test_submitted_application_only_shows_confirmation(guard: NavigationGuard) -> None:
    state = WizardState(
        id="app-1",
        type_of_application="adult",
        submission_info=SubmissionInfo(confirmation_code="ABC123", submitted_on="2024-01-01"),
    )

    assert guard.authorize("adult/confirmation", state) == Allow("adult/confirmation")
    assert guard.authorize("adult/review-information", state) == Redirect(
        "adult/confirmation", "submitted"
    )
    assert guard.authorize("terms-and-conditions", state) == Redirect(
        "adult/confirmation", "submitted"
    )


def test_variant_mismatch_redirects_to_type_step(guard: NavigationGuard) -> None:
    assert guard.authorize("child/children", _adult()) == Redirect(
        "type-application", "variant_mismatch"
    )


def test_variant_step_without_type_chains_to_first_missing(guard: NavigationGuard) -> None:
    # type-application itself needs the terms group first.
    decision = guard.authorize("adult/tax-filing", WizardState(id="fresh"))

    assert decision == Redirect("terms-and-conditions", "variant_mismatch")


def test_off_path_step_redirects_to_resume_step(guard: NavigationGuard) -> None:
    not_filed = _adult(tax_filing_2023={"tax_filing_2023": False})

    assert guard.authorize("adult/date-of-birth", not_filed) == Redirect("file-taxes", "off_path")


def test_partner_step_requires_partner_status(guard: NavigationGuard) -> None:
    single = _adult(applicant_information={"marital_status": "single"})
    married = _adult(applicant_information={"marital_status": "married"})

    assert guard.authorize("adult/partner-information", married) == Allow(
        "adult/partner-information"
    )
    decision = guard.authorize("adult/partner-information", single)
    assert decision == Redirect("adult/contact-information", "off_path")


def test_redirect_targets_always_authorize(guard: NavigationGuard) -> None:
    states = [
        WizardState(id="fresh"),
        _adult(),
        _adult(tax_filing_2023={"tax_filing_2023": False}),
        _adult(applicant_information={"marital_status": "married"}),
    ]
    for state in states:
        for step_id in guard._registry.step_ids():  # type: ignore[attr-defined]
            decision = guard.authorize(step_id, state)
            if isinstance(decision, Redirect):
                assert guard.authorize(decision.step_id, state) == Allow(decision.step_id)


def test_unknown_step_raises(guard: NavigationGuard) -> None:
    with pytest.raises(UnknownStepError):
        guard.authorize("adult/unknown", _adult())
