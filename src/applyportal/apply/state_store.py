"""Apply wizard state persistence on top of a SessionStore.

One WizardState per session, stored under "apply-state:<session_id>".
The submission claim for an application lives under
"apply-submission:<session_id>:<application_id>".

ASCII-only.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from applyportal.apply.types import APPLICATION_TYPES, SubmissionInfo, WizardState
from applyportal.core.diagnostics import emit, iso_utc_now
from applyportal.core.errors import (
    ApplicationLockedError,
    NotFoundError,
    SubmissionInProgressError,
    ValidationError,
)
from applyportal.session_store.types import SessionStore

_STATE_PREFIX = "apply-state"
_CLAIM_PREFIX = "apply-submission"

CLAIM_PENDING = b"pending"
CLAIM_SUBMITTED = b"submitted"


def _emit_diag(event: str, *, operation: str, data: dict[str, Any]) -> None:
    emit(event, component="apply.state_store", operation=operation, data=data)


class ApplyStateStore:
    """Load, merge and clear WizardState keyed by session id."""

    def __init__(
        self,
        store: SessionStore,
        *,
        ttl: int | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        # Serializes load-merge-write cycles within this process.
        self._lock = threading.RLock()

    @property
    def session_store(self) -> SessionStore:
        return self._store

    def load(self, session_id: str, *, create: bool = False) -> WizardState:
        raw = self._store.get(self._state_key(session_id))
        if raw is not None:
            return _decode_state(json.loads(raw.decode("utf-8")))
        if not create:
            raise NotFoundError(
                "No application in progress for this session",
                "Start a new application",
            )
        return self._create(session_id)

    def load_for(self, session_id: str, application_id: str) -> WizardState:
        state = self.load(session_id)
        if state.id != application_id:
            raise NotFoundError(
                f"Application '{application_id}' not found for this session",
                "Start a new application",
            )
        return state

    def save(
        self,
        session_id: str,
        partial_fields: dict[str, Any] | None = None,
        *,
        clear_groups: Iterable[str] = (),
        edit_mode: bool | None = None,
        type_of_application: str | None = None,
        submission_info: SubmissionInfo | None = None,
        expected_id: str | None = None,
    ) -> WizardState:
        """Merge whole field groups into the stored state.

        Groups not named in partial_fields or clear_groups are preserved.
        With expected_id the write only applies while the session still
        holds that application.

        Raises:
            NotFoundError: If no state exists for the session, or it holds a
                different application than expected_id.
            ApplicationLockedError: If the state was already submitted.
            ValidationError: On an attempt to change type_of_application.
        """
        clear_groups = tuple(clear_groups)
        with self._lock:
            state = self.load(session_id)
            if expected_id is not None and state.id != expected_id:
                raise NotFoundError(
                    f"Application '{expected_id}' is no longer held by this session",
                    "Start a new application",
                )
            if state.submitted:
                raise ApplicationLockedError(state.id)

            fields = dict(state.fields)
            for group in clear_groups:
                fields.pop(group, None)
            for group, value in (partial_fields or {}).items():
                fields[group] = value

            toa = state.type_of_application
            if type_of_application is not None:
                if type_of_application not in APPLICATION_TYPES:
                    raise ValidationError(f"Unknown application type '{type_of_application}'")
                if toa is not None and toa != type_of_application:
                    raise ValidationError(
                        "type_of_application cannot change for an application",
                        suggestion="Start a new application to change its type",
                    )
                toa = type_of_application

            new_state = replace(
                state,
                fields=fields,
                type_of_application=toa,
                edit_mode=state.edit_mode if edit_mode is None else edit_mode,
                submission_info=submission_info,
                updated_at=iso_utc_now(),
            )
            self._put(session_id, new_state)

        _emit_diag(
            "state.save",
            operation="save",
            data={
                "application_id": new_state.id,
                "groups": sorted((partial_fields or {}).keys()),
                "cleared": sorted(clear_groups),
                "submitted": new_state.submitted,
            },
        )
        return new_state

    def replace_state(self, session_id: str, state: WizardState) -> WizardState:
        """Store state as-is, replacing whatever the session holds.

        Raises:
            SubmissionInProgressError: The held application is being submitted.
        """
        with self._lock:
            self._refuse_while_pending(session_id)
            self._put(session_id, state)
        return state

    def new_state(self, **attrs: Any) -> WizardState:
        now = iso_utc_now()
        return WizardState(id=self._id_factory(), created_at=now, updated_at=now, **attrs)

    def clear(self, session_id: str) -> None:
        with self._lock:
            old = self._refuse_while_pending(session_id)
            self._store.delete(self._state_key(session_id))
            if old is not None:
                self._store.delete(self._claim_key(session_id, old.id))
        _emit_diag("state.clear", operation="clear", data={"session": _short(session_id)})

    def start(self, session_id: str) -> WizardState:
        with self._lock:
            self.clear(session_id)
            return self.load(session_id, create=True)

    # Submission claim (set-if-absent)

    def claim_submission(self, session_id: str, application_id: str) -> bool:
        return self._store.add(self._claim_key(session_id, application_id), CLAIM_PENDING, self._ttl)

    def release_submission(self, session_id: str, application_id: str) -> None:
        self._store.delete(self._claim_key(session_id, application_id))

    def mark_submitted(self, session_id: str, application_id: str) -> None:
        self._store.set(self._claim_key(session_id, application_id), CLAIM_SUBMITTED, self._ttl)

    def _create(self, session_id: str) -> WizardState:
        with self._lock:
            raw = self._store.get(self._state_key(session_id))
            if raw is not None:
                return _decode_state(json.loads(raw.decode("utf-8")))
            state = self.new_state()
            self._put(session_id, state)
        _emit_diag("state.create", operation="create", data={"application_id": state.id})
        return state

    def _refuse_while_pending(self, session_id: str) -> WizardState | None:
        raw = self._store.get(self._state_key(session_id))
        if raw is None:
            return None
        held = _decode_state(json.loads(raw.decode("utf-8")))
        if self._store.get(self._claim_key(session_id, held.id)) == CLAIM_PENDING:
            _emit_diag(
                "state.replace_refused",
                operation="replace",
                data={"application_id": held.id},
            )
            raise SubmissionInProgressError(session_id)
        return held

    def _put(self, session_id: str, state: WizardState) -> None:
        self._store.set(self._state_key(session_id), _encode_state(state), self._ttl)

    @staticmethod
    def _state_key(session_id: str) -> str:
        return f"{_STATE_PREFIX}:{session_id}"

    @staticmethod
    def _claim_key(session_id: str, application_id: str) -> str:
        return f"{_CLAIM_PREFIX}:{session_id}:{application_id}"


def _short(session_id: str) -> str:
    return session_id[:8]


def _encode_state(state: WizardState) -> bytes:
    obj = state.to_dict()
    txt = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return txt.encode("utf-8")


def _decode_state(obj: dict[str, Any]) -> WizardState:
    # Accepts future extension fields by ignoring unknown keys at this layer.
    if not isinstance(obj, dict):
        raise NotFoundError("Stored application state is unreadable", "Start a new application")
    return WizardState.from_dict(obj)
