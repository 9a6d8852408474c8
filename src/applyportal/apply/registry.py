"""Step registry: lookup and path resolution over the flow tables.

All operations are pure functions of (step_id, state).

ASCII-only.
"""

from __future__ import annotations

from collections.abc import Iterable

from applyportal.apply.flows import (
    DEFAULT_PARTNER_STATUSES,
    FIRST_STEP,
    build_steps,
    confirmation_step,
    review_step,
)
from applyportal.apply.types import StepDefinition, WizardState
from applyportal.core.config import ConfigResolver
from applyportal.core.errors import UnknownStepError


class StepRegistry:
    def __init__(
        self,
        steps: Iterable[StepDefinition] | None = None,
        *,
        partner_statuses: Iterable[str] = DEFAULT_PARTNER_STATUSES,
    ) -> None:
        items = list(steps) if steps is not None else build_steps(partner_statuses=partner_statuses)
        self._steps: dict[str, StepDefinition] = {}
        for step in items:
            if step.step_id in self._steps:
                raise ValueError(f"duplicate step id: {step.step_id}")
            self._steps[step.step_id] = step

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver) -> StepRegistry:
        statuses = resolver.resolve_value(
            "apply.marital_status_codes_with_partner", list(DEFAULT_PARTNER_STATUSES)
        )
        if isinstance(statuses, str):
            statuses = [s.strip() for s in statuses.split(",") if s.strip()]
        return cls(partner_statuses=tuple(statuses))

    @property
    def first_step_id(self) -> str:
        return FIRST_STEP

    def step_ids(self) -> list[str]:
        return list(self._steps)

    def has(self, step_id: str) -> bool:
        return step_id in self._steps

    def get(self, step_id: str) -> StepDefinition:
        try:
            return self._steps[step_id]
        except KeyError:
            raise UnknownStepError(step_id) from None

    def resolve_successor(self, step_id: str, state: WizardState) -> str | None:
        step = self.get(step_id)
        if step.kind in ("exit", "confirmation"):
            return None
        if (
            step.branch is not None
            and step.field_group is not None
            and state.has_group(step.field_group)
        ):
            return step.branch(state)
        return step.successor

    def resolve_path(self, state: WizardState) -> list[str]:
        """Walk successors from the first step.

        Stops after an exit or confirmation step, or where a branch cannot
        be resolved yet (type of application unset).
        """
        path: list[str] = []
        seen: set[str] = set()
        cur: str | None = FIRST_STEP
        while cur is not None and cur not in seen:
            path.append(cur)
            seen.add(cur)
            cur = self.resolve_successor(cur, state)
        return path

    def resolve_predecessor(self, step_id: str, state: WizardState) -> str | None:
        self.get(step_id)
        path = self.resolve_path(state)
        if step_id not in path:
            return None
        idx = path.index(step_id)
        return path[idx - 1] if idx > 0 else None

    def required_groups(self, step_id: str, state: WizardState) -> list[str]:
        out: list[str] = []
        for sid in self._path_before(step_id, state):
            group = self._steps[sid].field_group
            if group is not None:
                out.append(group)
        return out

    def earliest_missing(self, step_id: str, state: WizardState) -> str | None:
        for sid in self._path_before(step_id, state):
            group = self._steps[sid].field_group
            if group is not None and not state.has_group(group):
                return sid
        return None

    def resume_step(self, state: WizardState) -> str:
        """Return where a user should continue.

        First step on the path whose group is missing; otherwise the review
        step (or the exit page the path ends on).
        """
        if state.submitted and state.type_of_application is not None:
            return confirmation_step(state.type_of_application)
        path = self.resolve_path(state)
        for sid in path:
            step = self._steps[sid]
            if step.field_group is not None and not state.has_group(step.field_group):
                return sid
            if step.kind in ("review", "exit"):
                return sid
        return path[-1]

    def review_step_for(self, state: WizardState) -> str | None:
        if state.type_of_application is None:
            return None
        sid = review_step(state.type_of_application)
        return sid if sid in self._steps else None

    def confirmation_step_for(self, state: WizardState) -> str | None:
        if state.type_of_application is None:
            return None
        sid = confirmation_step(state.type_of_application)
        return sid if sid in self._steps else None

    def path_groups(self, state: WizardState) -> list[str]:
        """Field groups of every form step on the resolved path."""
        out: list[str] = []
        for sid in self.resolve_path(state):
            group = self._steps[sid].field_group
            if group is not None:
                out.append(group)
        return out

    def stale_groups(self, state: WizardState) -> list[str]:
        """Groups of conditional steps that fell off the path but still hold data."""
        on_path = set(self.resolve_path(state))
        out: list[str] = []
        for step in self._steps.values():
            if (
                step.conditional
                and step.variant == state.type_of_application
                and step.step_id not in on_path
                and step.field_group is not None
                and step.field_group in state.fields
            ):
                out.append(step.field_group)
        return out

    def _path_before(self, step_id: str, state: WizardState) -> list[str]:
        self.get(step_id)
        path = self.resolve_path(state)
        if step_id not in path:
            return []
        return path[: path.index(step_id)]
