"""Pytest configuration and fixtures."""

import sys
from copy import deepcopy
from pathlib import Path

import pytest

# Add src to path (for 'applyportal.*' imports without an install)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))

# Valid (Luhn) test SINs.
APPLICANT_SIN = "046 454 286"
PARTNER_SIN = "130692544"

# Answers for every form step of a complete adult application, in order.
ADULT_STEPS = [
    (
        "terms-and-conditions",
        {"acknowledge_terms": True, "acknowledge_privacy": True, "share_data": True},
    ),
    ("type-application", {"type_of_application": "adult"}),
    ("adult/tax-filing", {"tax_filing_2023": True}),
    ("adult/date-of-birth", {"date_of_birth": "1980-05-17"}),
    (
        "adult/applicant-information",
        {
            "first_name": "Jane",
            "last_name": "Doe",
            "marital_status": "single",
            "social_insurance_number": APPLICANT_SIN,
        },
    ),
    (
        "adult/contact-information",
        {
            "phone_number": "613-555-0100",
            "mailing_address": "123 Main St",
            "mailing_country": "CAN",
            "mailing_province": "ON",
            "mailing_city": "Ottawa",
            "mailing_postal_code": "K1A 0B1",
            "copy_mailing_address": True,
        },
    ),
    (
        "adult/communication-preference",
        {
            "preferred_language": "en",
            "preferred_method": "email",
            "email": "jane@example.com",
            "confirm_email": "jane@example.com",
        },
    ),
    ("adult/dental-insurance", {"dental_insurance": False}),
    (
        "adult/federal-provincial-territorial-benefits",
        {
            "has_federal_benefits": False,
            "has_provincial_territorial_benefits": True,
            "province": "ON",
            "provincial_territorial_social_program": "on-odsp",
        },
    ),
]

PARTNER_PAYLOAD = {
    "first_name": "John",
    "last_name": "Doe",
    "date_of_birth": "1979-01-02",
    "social_insurance_number": PARTNER_SIN,
    "confirm": True,
}


@pytest.fixture(autouse=True)
def _isolate_buses():
    """Event bus and log bus subscribers must not leak between tests."""
    from applyportal.core.events import get_event_bus
    from applyportal.core.log_bus import get_log_bus

    get_event_bus().clear()
    get_log_bus().clear()
    yield
    get_event_bus().clear()
    get_log_bus().clear()


@pytest.fixture
def memory_store():
    from applyportal.session_store import MemorySessionStore

    return MemorySessionStore()


@pytest.fixture
def state_store(memory_store):
    from applyportal.apply.state_store import ApplyStateStore

    return ApplyStateStore(memory_store)


@pytest.fixture
def submission_service():
    from applyportal.services.benefit_application import MockBenefitApplicationService

    return MockBenefitApplicationService(codes=["ABC123"])


@pytest.fixture
def engine(state_store, submission_service):
    from applyportal.apply.engine import ApplyWizardEngine

    return ApplyWizardEngine(store=state_store, submission_service=submission_service)


@pytest.fixture
def adult_steps():
    return deepcopy(ADULT_STEPS)


@pytest.fixture
def partner_payload():
    return deepcopy(PARTNER_PAYLOAD)


@pytest.fixture
def fill_adult(engine, adult_steps):
    """Start an application and answer adult steps until `upto` (exclusive).

    Returns the last Transition.
    """

    def _fill(session_id: str, upto: str | None = None, overrides: dict | None = None):
        tr = engine.start(session_id)
        for step_id, payload in adult_steps:
            if step_id == upto:
                break
            if overrides and step_id in overrides:
                payload = {**payload, **overrides[step_id]}
            tr = engine.submit_step(session_id, tr.state.id, step_id, payload)
        return tr

    return _fill


@pytest.fixture
def config_resolver(tmp_path):
    """ConfigResolver isolated from the user and system config files."""
    from applyportal.core.config import ConfigResolver

    return ConfigResolver(
        cli_args={},
        user_config_path=tmp_path / "no_user.yaml",
        system_config_path=tmp_path / "no_system.yaml",
    )
