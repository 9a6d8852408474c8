"""Apply Wizard Engine.

Ties the step registry, navigation guard, state store, payload validation
and submission finalizer together. Navigation outcomes are returned as
Transition values; only domain errors are raised.

No UI is implemented here.

ASCII-only.
"""

from __future__ import annotations

from typing import Any

from applyportal.apply.field_validation import validate_group_payload
from applyportal.apply.finalizer import SubmissionFinalizer
from applyportal.apply.flows import TYPE_STEP
from applyportal.apply.guards import NavigationGuard
from applyportal.apply.registry import StepRegistry
from applyportal.apply.state_store import ApplyStateStore
from applyportal.apply.types import (
    TYPE_OF_APPLICATION_GROUP,
    Redirect,
    StepDefinition,
    StepView,
    Transition,
    WizardState,
)
from applyportal.core.config import ConfigResolver
from applyportal.core.diagnostics import emit
from applyportal.core.errors import CaptchaVerificationError, ValidationError
from applyportal.core.logging import get_logger
from applyportal.services.benefit_application import (
    MockBenefitApplicationService,
    SubmissionService,
    create_submission_service,
)
from applyportal.services.captcha import CaptchaVerifier, create_captcha_verifier
from applyportal.services.lookup import LookupService
from applyportal.session_store.types import SessionStore

logger = get_logger(__name__)

CAPTCHA_ON_FAILURE = ("clear", "retry")


def _emit(event: str, operation: str, data: dict[str, Any]) -> None:
    emit(event, component="apply", operation=operation, data=data)


class ApplyWizardEngine:
    def __init__(
        self,
        *,
        store: ApplyStateStore,
        registry: StepRegistry | None = None,
        submission_service: SubmissionService | None = None,
        lookups: LookupService | None = None,
        captcha_verifier: CaptchaVerifier | None = None,
        captcha_on_failure: str = "clear",
    ) -> None:
        if captcha_on_failure not in CAPTCHA_ON_FAILURE:
            raise ValueError(f"captcha_on_failure must be one of {CAPTCHA_ON_FAILURE}")
        self.store = store
        self.registry = registry or StepRegistry()
        self.guard = NavigationGuard(self.registry)
        self.lookups = lookups or LookupService()
        self.submission_service = submission_service or MockBenefitApplicationService()
        self.finalizer = SubmissionFinalizer(
            store=self.store,
            registry=self.registry,
            submission_service=self.submission_service,
            lookups=self.lookups,
        )
        self.captcha_verifier = captcha_verifier
        self.captcha_on_failure = captcha_on_failure

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver, session_store: SessionStore) -> ApplyWizardEngine:
        ttl = resolver.resolve_int("session.ttl_seconds", 1200)
        return cls(
            store=ApplyStateStore(session_store, ttl=ttl),
            registry=StepRegistry.from_resolver(resolver),
            submission_service=create_submission_service(resolver),
            lookups=LookupService.from_resolver(resolver),
            captcha_verifier=create_captcha_verifier(resolver),
            captcha_on_failure=resolver.resolve_enum("apply.captcha.on_failure"),
        )

    # Lifecycle

    def start(self, session_id: str) -> Transition:
        state = self.store.start(session_id)
        _emit("application.start", "start", {"application_id": state.id})
        return Transition(state=state, step_id=self.registry.first_step_id)

    def resume(self, session_id: str) -> Transition:
        """Continue an existing application, or start one."""
        state = self.store.load(session_id, create=True)
        return Transition(state=state, step_id=self.registry.resume_step(state))

    def exit(self, session_id: str) -> None:
        self.store.clear(session_id)
        _emit("application.exit", "exit", {})

    # Steps

    def view_step(self, session_id: str, application_id: str, step_id: str) -> StepView | Transition:
        state = self.store.load_for(session_id, application_id)
        decision = self.guard.authorize(step_id, state)
        _emit(
            "step.view",
            "step.view",
            {
                "application_id": state.id,
                "step_id": step_id,
                "decision": "allow" if not isinstance(decision, Redirect) else "redirect",
                "target": decision.step_id,
            },
        )
        if isinstance(decision, Redirect):
            logger.verbose(f"Redirecting {step_id} -> {decision.step_id} ({decision.reason})")
            return Transition(state=state, step_id=decision.step_id, reason=decision.reason)

        step = self.registry.get(step_id)
        if step.kind == "review" and not state.edit_mode:
            state = self.store.save(session_id, edit_mode=True)

        return StepView(
            state=state,
            step=step,
            values=self._values_for(step, state),
            back_step_id=self._back_target(step, state),
        )

    def submit_step(
        self, session_id: str, application_id: str, step_id: str, payload: dict[str, Any]
    ) -> Transition:
        state = self.store.load_for(session_id, application_id)
        decision = self.guard.authorize(step_id, state)
        if isinstance(decision, Redirect):
            return Transition(state=state, step_id=decision.step_id, reason=decision.reason)

        step = self.registry.get(step_id)
        if step.kind != "form" or step.field_group is None:
            raise ValidationError(
                f"Step '{step_id}' does not accept submissions",
                details=[{"path": "$", "reason": "not_a_form_step", "meta": {"step_id": step_id}}],
            )

        _emit("step.submit", "step.submit", {"application_id": state.id, "step_id": step_id})

        normalized = validate_group_payload(
            group=step.field_group,
            specs=step.fields,
            payload=payload,
            lookups=self.lookups,
        )

        if step.field_group == TYPE_OF_APPLICATION_GROUP:
            state = self._apply_type(session_id, state, normalized[TYPE_OF_APPLICATION_GROUP])
        else:
            state = self.store.save(session_id, {step.field_group: normalized})

        stale = self.registry.stale_groups(state)
        if stale:
            state = self.store.save(session_id, clear_groups=stale)

        next_step = self._next_after_submit(step, state)
        _emit(
            "step.accepted",
            "step.submit",
            {"application_id": state.id, "step_id": step_id, "next_step_id": next_step},
        )
        return Transition(state=state, step_id=next_step)

    def go_back(self, session_id: str, application_id: str, step_id: str) -> Transition:
        state = self.store.load_for(session_id, application_id)
        decision = self.guard.authorize(step_id, state)
        if isinstance(decision, Redirect):
            return Transition(state=state, step_id=decision.step_id, reason=decision.reason)

        step = self.registry.get(step_id)
        if step.kind == "review":
            state = self.store.save(session_id, edit_mode=False)
            target = self.registry.resolve_predecessor(step_id, state) or step_id
        else:
            target = self._back_target(step, state) or step_id

        _emit("step.back", "step.back", {"application_id": state.id, "from": step_id, "to": target})
        return Transition(state=state, step_id=target)

    def submit_application(
        self,
        session_id: str,
        application_id: str,
        step_id: str,
        *,
        captcha_token: str | None = None,
        remote_ip: str | None = None,
    ) -> Transition:
        """Finalize from the review step.

        Raises:
            CaptchaVerificationError: When CAPTCHA is enabled and rejected.
            IncompleteApplicationError / SubmissionInProgressError /
            SubmissionCollaboratorError: From the finalizer.
        """
        state = self.store.load_for(session_id, application_id)
        decision = self.guard.authorize(step_id, state)
        if isinstance(decision, Redirect):
            return Transition(state=state, step_id=decision.step_id, reason=decision.reason)

        step = self.registry.get(step_id)
        if step.kind != "review":
            raise ValidationError(
                f"Step '{step_id}' cannot submit the application",
                details=[{"path": "$._action", "reason": "invalid_action", "meta": {"step_id": step_id}}],
            )

        if self.captcha_verifier is not None:
            if not self.captcha_verifier.verify(captcha_token or "", remote_ip):
                cleared = self.captcha_on_failure == "clear"
                if cleared:
                    self.store.clear(session_id)
                logger.warning(f"CAPTCHA verification failed for application {state.id}")
                _emit(
                    "captcha.failed",
                    "submit_application",
                    {"application_id": state.id, "policy": self.captcha_on_failure},
                )
                raise CaptchaVerificationError("CAPTCHA verification failed", cleared=cleared)

        state = self.finalizer.finalize(session_id, application_id)
        target = self.registry.confirmation_step_for(state) or step_id
        return Transition(state=state, step_id=target)

    # Helpers

    def _apply_type(self, session_id: str, state: WizardState, new_type: str) -> WizardState:
        if state.type_of_application is None:
            return self.store.save(session_id, type_of_application=new_type, edit_mode=False)
        if state.type_of_application == new_type:
            return state

        # A different type starts a new application; only answers given
        # before the type step carry over.
        keep: dict[str, Any] = {}
        for group in self.registry.required_groups(TYPE_STEP, state):
            if group in state.fields:
                keep[group] = state.fields[group]
        new_state = self.store.new_state(type_of_application=new_type, fields=keep)
        self.store.replace_state(session_id, new_state)
        logger.verbose(
            f"Application type changed {state.type_of_application} -> {new_type}; "
            f"new application {new_state.id}"
        )
        _emit(
            "application.type_changed",
            "step.submit",
            {"old_application_id": state.id, "application_id": new_state.id, "type": new_type},
        )
        return new_state

    def _next_after_submit(self, step: StepDefinition, state: WizardState) -> str:
        if state.edit_mode:
            resume = self.registry.resume_step(state)
            resume_step = self.registry.get(resume)
            if resume_step.kind in ("form", "exit"):
                return resume
            return self.registry.review_step_for(state) or resume
        nxt = self.registry.resolve_successor(step.step_id, state)
        return nxt or self.registry.resume_step(state)

    def _back_target(self, step: StepDefinition, state: WizardState) -> str | None:
        if state.edit_mode and step.kind == "form":
            review = self.registry.review_step_for(state)
            if review is not None:
                return review
        return self.registry.resolve_predecessor(step.step_id, state)

    def _values_for(self, step: StepDefinition, state: WizardState) -> Any:
        if step.kind == "review":
            summary: dict[str, Any] = {TYPE_OF_APPLICATION_GROUP: state.type_of_application}
            for group in self.registry.path_groups(state):
                if group != TYPE_OF_APPLICATION_GROUP:
                    summary[group] = state.fields.get(group)
            return summary
        if step.kind == "confirmation" and state.submission_info is not None:
            return {
                "confirmation_code": state.submission_info.confirmation_code,
                "submitted_on": state.submission_info.submitted_on,
            }
        if step.field_group is None:
            return None
        return state.group(step.field_group)
