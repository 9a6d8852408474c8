"""Apply Portal core: configuration, errors, logging and diagnostics."""

from applyportal.core.config import ConfigResolver
from applyportal.core.errors import (
    ApplicationLockedError,
    ApplyPortalError,
    CaptchaVerificationError,
    ConfigError,
    IncompleteApplicationError,
    NotFoundError,
    ResourceConflictError,
    SecurityTokenMismatch,
    SubmissionCollaboratorError,
    SubmissionInProgressError,
    UnknownStepError,
    ValidationError,
)
from applyportal.core.events import EventBus, get_event_bus
from applyportal.core.logging import (
    VerbosityLevel,
    apply_logging_policy,
    get_logger,
    get_verbosity,
    set_colors,
    set_verbosity,
)

__all__ = [
    # Config
    "ConfigResolver",
    # Errors
    "ApplicationLockedError",
    "ApplyPortalError",
    "CaptchaVerificationError",
    "ConfigError",
    "IncompleteApplicationError",
    "NotFoundError",
    "ResourceConflictError",
    "SecurityTokenMismatch",
    "SubmissionCollaboratorError",
    "SubmissionInProgressError",
    "UnknownStepError",
    "ValidationError",
    # Events
    "EventBus",
    "get_event_bus",
    # Logging
    "VerbosityLevel",
    "apply_logging_policy",
    "get_logger",
    "get_verbosity",
    "set_colors",
    "set_verbosity",
]
