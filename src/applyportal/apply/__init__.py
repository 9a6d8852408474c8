"""Benefits application wizard: state, flows, navigation and submission."""

from applyportal.apply.engine import ApplyWizardEngine
from applyportal.apply.finalizer import SubmissionFinalizer
from applyportal.apply.guards import NavigationGuard
from applyportal.apply.mappers import to_benefit_application_request
from applyportal.apply.registry import StepRegistry
from applyportal.apply.state_store import ApplyStateStore
from applyportal.apply.types import (
    Allow,
    Redirect,
    StepDefinition,
    StepView,
    SubmissionInfo,
    Transition,
    WizardState,
)

__all__ = [
    "Allow",
    "ApplyStateStore",
    "ApplyWizardEngine",
    "NavigationGuard",
    "Redirect",
    "StepDefinition",
    "StepRegistry",
    "StepView",
    "SubmissionFinalizer",
    "SubmissionInfo",
    "Transition",
    "WizardState",
    "to_benefit_application_request",
]
