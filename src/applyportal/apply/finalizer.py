"""Terminal submission of a completed application.

At most one external submission is made per application: the caller must
win a set-if-absent claim in the session store before the collaborator is
called.

ASCII-only.
"""

from __future__ import annotations

from typing import Any

from applyportal.apply.errors import detail
from applyportal.apply.field_validation import validate_group_payload
from applyportal.apply.mappers import to_benefit_application_request
from applyportal.apply.registry import StepRegistry
from applyportal.apply.state_store import ApplyStateStore
from applyportal.apply.types import TYPE_OF_APPLICATION_GROUP, SubmissionInfo, WizardState
from applyportal.core.diagnostics import emit, iso_utc_now
from applyportal.core.errors import (
    IncompleteApplicationError,
    NotFoundError,
    SubmissionCollaboratorError,
    SubmissionInProgressError,
    ValidationError,
)
from applyportal.core.logging import get_logger
from applyportal.services.benefit_application import SubmissionService
from applyportal.services.lookup import LookupService

logger = get_logger(__name__)


def _emit_diag(event: str, *, operation: str, data: dict[str, Any]) -> None:
    emit(event, component="apply.finalizer", operation=operation, data=data)


class SubmissionFinalizer:
    def __init__(
        self,
        *,
        store: ApplyStateStore,
        registry: StepRegistry,
        submission_service: SubmissionService,
        lookups: LookupService | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._service = submission_service
        self._lookups = lookups or LookupService()

    def finalize(self, session_id: str, application_id: str) -> WizardState:
        """Submit the application and persist submission_info.

        Returns the submitted state. Calling again after success returns the
        stored state without another external call.

        Raises:
            IncompleteApplicationError: Required groups missing or invalid.
            SubmissionInProgressError: Another finalization holds the claim.
            SubmissionCollaboratorError: External call failed (retryable).
            NotFoundError: The session no longer holds this application.
        """
        state = self._store.load_for(session_id, application_id)
        if state.submitted:
            return state

        _emit_diag("finalize.request", operation="finalize", data={"application_id": state.id})

        self.validate_complete(state)
        payload = to_benefit_application_request(state, self._registry)

        if not self._store.claim_submission(session_id, state.id):
            current = self._store.load_for(session_id, application_id)
            if current.submitted:
                return current
            _emit_diag(
                "finalize.in_progress", operation="finalize", data={"application_id": state.id}
            )
            raise SubmissionInProgressError(session_id)

        try:
            result = self._service.submit(payload)
        except SubmissionCollaboratorError as e:
            self._store.release_submission(session_id, state.id)
            _emit_diag(
                "finalize.failed",
                operation="finalize",
                data={"application_id": state.id, "error": e.message},
            )
            raise
        except Exception as e:
            self._store.release_submission(session_id, state.id)
            logger.error(f"Submission failed for application {state.id}: {type(e).__name__}: {e}")
            _emit_diag(
                "finalize.failed",
                operation="finalize",
                data={"application_id": state.id, "error": type(e).__name__},
            )
            raise SubmissionCollaboratorError(
                "Benefit application could not be submitted",
                "Try submitting again in a few minutes",
            ) from e

        info = SubmissionInfo(confirmation_code=result.confirmation_code, submitted_on=iso_utc_now())
        self._store.mark_submitted(session_id, state.id)
        try:
            state = self._store.save(
                session_id, submission_info=info, edit_mode=False, expected_id=state.id
            )
        except NotFoundError:
            logger.error(
                f"Application {state.id} was submitted ({info.confirmation_code}) "
                "but is no longer held by its session"
            )
            _emit_diag(
                "finalize.orphaned",
                operation="finalize",
                data={"application_id": state.id, "confirmation_code": info.confirmation_code},
            )
            raise

        logger.info(f"Application {state.id} submitted ({info.confirmation_code})")
        _emit_diag(
            "finalize.succeeded",
            operation="finalize",
            data={"application_id": state.id, "confirmation_code": info.confirmation_code},
        )
        return state

    def validate_complete(self, state: WizardState) -> None:
        errs: list[dict[str, Any]] = []
        path = self._registry.resolve_path(state)
        if self._registry.review_step_for(state) not in path:
            errs.append(detail("$.type_of_application", "no_review_step", {"path_end": path[-1]}))

        for sid in path:
            step = self._registry.get(sid)
            group = step.field_group
            if group is None:
                continue
            if not state.has_group(group):
                errs.append(detail(f"$.{group}", "missing_required", {"step_id": sid}))
                continue
            if group == TYPE_OF_APPLICATION_GROUP:
                continue
            try:
                validate_group_payload(
                    group=group,
                    specs=step.fields,
                    payload=state.fields.get(group),
                    lookups=self._lookups,
                )
            except ValidationError as e:
                for d in e.details:
                    errs.append(
                        detail(
                            f"$.{group}{str(d.get('path', '$'))[1:]}",
                            str(d.get("reason")),
                            {"step_id": sid, **dict(d.get("meta") or {})},
                        )
                    )

        if errs:
            raise IncompleteApplicationError(
                "Application is incomplete",
                details=errs,
                suggestion="Complete the highlighted steps before submitting",
            )
