"""Apply wizard state and step models.

ASCII-only.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

TYPE_ADULT = "adult"
TYPE_ADULT_CHILD = "adult-child"
TYPE_CHILD = "child"
TYPE_DELEGATE = "delegate"

APPLICATION_TYPES: tuple[str, ...] = (TYPE_ADULT, TYPE_ADULT_CHILD, TYPE_CHILD, TYPE_DELEGATE)

# Field group stored on WizardState.type_of_application instead of WizardState.fields.
TYPE_OF_APPLICATION_GROUP = "type_of_application"

StepKind = Literal["form", "review", "confirmation", "exit"]


@dataclass(frozen=True)
class SubmissionInfo:
    confirmation_code: str
    submitted_on: str


@dataclass(frozen=True)
class WizardState:
    """One in-progress application, persisted per session."""

    id: str
    type_of_application: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    edit_mode: bool = False
    submission_info: SubmissionInfo | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def submitted(self) -> bool:
        return self.submission_info is not None

    def has_group(self, group: str) -> bool:
        if group == TYPE_OF_APPLICATION_GROUP:
            return self.type_of_application is not None
        return group in self.fields

    def group(self, group: str) -> Any:
        if group == TYPE_OF_APPLICATION_GROUP:
            if self.type_of_application is None:
                return None
            return {TYPE_OF_APPLICATION_GROUP: self.type_of_application}
        return self.fields.get(group)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type_of_application": self.type_of_application,
            "fields": dict(self.fields),
            "edit_mode": self.edit_mode,
            "submission_info": None
            if self.submission_info is None
            else {
                "confirmation_code": self.submission_info.confirmation_code,
                "submitted_on": self.submission_info.submitted_on,
            },
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> WizardState:
        # Unknown keys are ignored at this layer.
        si_obj = obj.get("submission_info")
        si = None
        if isinstance(si_obj, dict) and si_obj.get("confirmation_code"):
            si = SubmissionInfo(
                confirmation_code=str(si_obj.get("confirmation_code")),
                submitted_on=str(si_obj.get("submitted_on") or ""),
            )
        fields_obj = obj.get("fields")
        toa = obj.get("type_of_application")
        return cls(
            id=str(obj.get("id") or ""),
            type_of_application=str(toa) if toa else None,
            fields=dict(fields_obj) if isinstance(fields_obj, dict) else {},
            edit_mode=bool(obj.get("edit_mode")),
            submission_info=si,
            created_at=str(obj.get("created_at") or ""),
            updated_at=str(obj.get("updated_at") or ""),
        )


@dataclass(frozen=True)
class FieldSpec:
    """Declarative schema of one form field.

    type is one of: text, bool, confirm, select, date, sin, email, phone,
    postal_code, list.
    """

    name: str
    type: str
    required: bool = True
    label: str = ""
    options: tuple[str, ...] | None = None
    lookup: str | None = None
    max_length: int | None = None
    pattern: str | None = None
    item_fields: tuple[FieldSpec, ...] = ()
    min_items: int | None = None
    max_items: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "label": self.label or self.name,
        }
        if self.options is not None:
            out["options"] = list(self.options)
        if self.lookup is not None:
            out["lookup"] = self.lookup
        if self.max_length is not None:
            out["max_length"] = self.max_length
        if self.item_fields:
            out["item_fields"] = [f.to_dict() for f in self.item_fields]
            out["min_items"] = self.min_items
            out["max_items"] = self.max_items
        return out


Branch = Callable[[WizardState], "str | None"]


@dataclass(frozen=True)
class StepDefinition:
    """One wizard step.

    successor is the forward target used while the step's own group is
    unset; branch, when present, replaces it once the group is populated.
    """

    step_id: str
    title: str
    kind: StepKind = "form"
    variant: str | None = None
    field_group: str | None = None
    fields: tuple[FieldSpec, ...] = ()
    successor: str | None = None
    branch: Branch | None = None
    conditional: bool = False
    blocked_after_submission: bool = True


@dataclass(frozen=True)
class Allow:
    step_id: str


@dataclass(frozen=True)
class Redirect:
    step_id: str
    reason: str = ""


NavigationDecision = Allow | Redirect


@dataclass(frozen=True)
class Transition:
    """Engine result: the state after the operation and the step to show next."""

    state: WizardState
    step_id: str
    reason: str = ""


@dataclass(frozen=True)
class StepView:
    state: WizardState
    step: StepDefinition
    values: Any
    back_step_id: str | None
    extra: dict[str, Any] = field(default_factory=dict)
