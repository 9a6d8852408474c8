"""Navigation guard for apply wizard steps.

authorize() is pure: it reads the state and the registry and returns a
tagged decision. It never raises for navigation problems; only unknown
step ids raise (UnknownStepError).

ASCII-only.
"""

from __future__ import annotations

from applyportal.apply.flows import FIRST_STEP, TYPE_STEP
from applyportal.apply.registry import StepRegistry
from applyportal.apply.types import Allow, NavigationDecision, Redirect, WizardState

# Upper bound on redirect chaining; the flow tables are acyclic.
_MAX_HOPS = 8


class NavigationGuard:
    def __init__(self, registry: StepRegistry) -> None:
        self._registry = registry

    def authorize(self, step_id: str, state: WizardState) -> NavigationDecision:
        """Decide whether step_id may be shown for state.

        A Redirect always points at a step that itself authorizes.
        """
        decision = self._check(step_id, state)
        if isinstance(decision, Allow):
            return decision

        reason = decision.reason
        target = decision.step_id
        for _ in range(_MAX_HOPS):
            nxt = self._check(target, state)
            if isinstance(nxt, Allow):
                break
            target = nxt.step_id
        return Redirect(step_id=target, reason=reason)

    def _check(self, step_id: str, state: WizardState) -> NavigationDecision:
        reg = self._registry
        step = reg.get(step_id)

        if state.submitted:
            target = reg.confirmation_step_for(state)
            if target is not None and step_id != target:
                return Redirect(target, "submitted")
            if target is not None:
                return Allow(step_id)

        if step.kind == "confirmation" and not state.submitted:
            return Redirect(FIRST_STEP, "not_submitted")

        if step.variant is not None and step.variant != state.type_of_application:
            return Redirect(TYPE_STEP, "variant_mismatch")

        if step_id not in reg.resolve_path(state):
            return Redirect(reg.resume_step(state), "off_path")

        missing = reg.earliest_missing(step_id, state)
        if missing is not None:
            return Redirect(missing, "missing_prerequisite")

        return Allow(step_id)
