from __future__ import annotations

import json

import pytest

from applyportal.apply.state_store import ApplyStateStore
from applyportal.apply.types import SubmissionInfo
from applyportal.core.errors import (
    ApplicationLockedError,
    NotFoundError,
    SubmissionInProgressError,
    ValidationError,
)
from applyportal.session_store import MemorySessionStore


def _ids():
    n = 0

    def factory() -> str:
        nonlocal n
        n += 1
        return f"app-{n}"

    return factory


@pytest.fixture
def store(memory_store: MemorySessionStore) -> ApplyStateStore:
    return ApplyStateStore(memory_store, id_factory=_ids())


def test_load_without_state_raises(store: ApplyStateStore) -> None:
    with pytest.raises(NotFoundError):
        store.load("sess")


def test_load_create_is_stable(store: ApplyStateStore) -> None:
    first = store.load("sess", create=True)
    again = store.load("sess", create=True)

    assert first.id == again.id == "app-1"
    assert first.fields == {}
    assert first.created_at.endswith("Z")


def test_save_merges_whole_groups(store: ApplyStateStore) -> None:
    store.load("sess", create=True)
    store.save("sess", {"date_of_birth": {"date_of_birth": "1980-01-01"}})
    store.save("sess", {"tax_filing_2023": {"tax_filing_2023": True}})
    state = store.save("sess", {"date_of_birth": {"date_of_birth": "1981-02-02"}})

    assert state.fields == {
        "date_of_birth": {"date_of_birth": "1981-02-02"},
        "tax_filing_2023": {"tax_filing_2023": True},
    }
    assert store.load("sess") == state


def test_save_clear_groups(store: ApplyStateStore) -> None:
    store.load("sess", create=True)
    store.save("sess", {"a": {"x": 1}, "b": {"y": 2}})

    state = store.save("sess", clear_groups=["a", "missing"])

    assert state.fields == {"b": {"y": 2}}


def test_type_of_application_is_immutable(store: ApplyStateStore) -> None:
    store.load("sess", create=True)
    store.save("sess", type_of_application="adult")
    store.save("sess", type_of_application="adult")

    with pytest.raises(ValidationError):
        store.save("sess", type_of_application="child")
    with pytest.raises(ValidationError):
        store.save("sess", type_of_application="martian")


def test_load_for_checks_application_id(store: ApplyStateStore) -> None:
    store.load("sess", create=True)

    assert store.load_for("sess", "app-1").id == "app-1"
    with pytest.raises(NotFoundError):
        store.load_for("sess", "app-999")


def test_clear_then_create_yields_new_id(store: ApplyStateStore) -> None:
    store.load("sess", create=True)
    store.save("sess", {"a": {"x": 1}})
    store.clear("sess")

    with pytest.raises(NotFoundError):
        store.load("sess")
    fresh = store.load("sess", create=True)
    assert fresh.id == "app-2"
    assert fresh.fields == {}


def test_sessions_are_isolated(store: ApplyStateStore) -> None:
    store.load("one", create=True)
    store.load("two", create=True)
    store.save("one", {"a": {"x": 1}})

    assert store.load("two").fields == {}


def test_submitted_state_is_locked(store: ApplyStateStore) -> None:
    store.load("sess", create=True)
    info = SubmissionInfo(confirmation_code="ABC123", submitted_on="2024-01-01T00:00:00Z")
    store.save("sess", submission_info=info)

    with pytest.raises(ApplicationLockedError):
        store.save("sess", {"a": {"x": 1}})
    assert store.load("sess").submission_info == info


def test_submission_claim(store: ApplyStateStore, memory_store: MemorySessionStore) -> None:
    assert store.claim_submission("sess", "app-1") is True
    assert store.claim_submission("sess", "app-1") is False

    store.release_submission("sess", "app-1")
    assert store.claim_submission("sess", "app-1") is True

    store.mark_submitted("sess", "app-1")
    assert memory_store.get("apply-submission:sess:app-1") == b"submitted"


def test_clear_also_drops_claim(store: ApplyStateStore, memory_store: MemorySessionStore) -> None:
    store.load("sess", create=True)
    store.claim_submission("sess", "app-1")
    store.mark_submitted("sess", "app-1")
    store.clear("sess")

    assert memory_store.keys() == []


def test_pending_claim_blocks_replacing_the_application(store: ApplyStateStore) -> None:
    held = store.load("sess", create=True)
    store.claim_submission("sess", held.id)

    with pytest.raises(SubmissionInProgressError):
        store.start("sess")
    with pytest.raises(SubmissionInProgressError):
        store.clear("sess")
    with pytest.raises(SubmissionInProgressError):
        store.replace_state("sess", store.new_state())
    assert store.load("sess").id == held.id

    store.release_submission("sess", held.id)
    assert store.start("sess").id != held.id


def test_save_with_expected_id_is_compare_and_swap(store: ApplyStateStore) -> None:
    held = store.load("sess", create=True)

    store.save("sess", {"a": {"x": 1}}, expected_id=held.id)
    with pytest.raises(NotFoundError):
        store.save("sess", {"a": {"x": 2}}, expected_id="app-other")

    assert store.load("sess").fields == {"a": {"x": 1}}


def test_stored_state_is_canonical_json(
    store: ApplyStateStore, memory_store: MemorySessionStore
) -> None:
    store.load("sess", create=True)
    store.save("sess", {"b": {"y": 2}, "a": {"x": 1}}, type_of_application="adult")

    raw = memory_store.get("apply-state:sess")
    assert raw is not None
    obj = json.loads(raw)
    assert obj["type_of_application"] == "adult"
    assert raw.decode("ascii") == json.dumps(obj, sort_keys=True, separators=(",", ":"))
