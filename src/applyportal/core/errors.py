"""Error handling with friendly messages."""

from __future__ import annotations

from typing import Any


class ApplyPortalError(Exception):
    """Base exception for all Apply Portal errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(ApplyPortalError):
    """Configuration error."""

    pass


class ValidationError(ApplyPortalError):
    """Submitted data failed validation.

    details is a list of {"path", "reason", "meta"} dicts, one per field.
    """

    def __init__(
        self,
        message: str,
        details: list[dict[str, Any]] | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message, suggestion)
        self.details = list(details or [])


class IncompleteApplicationError(ValidationError):
    """Application state is missing data required for submission."""

    pass


class NotFoundError(ApplyPortalError):
    """Requested session, application or record does not exist."""

    pass


class UnknownStepError(NotFoundError):
    """Step id is not declared in any flow."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Unknown step '{step_id}'")
        self.step_id = step_id


class SecurityTokenMismatch(ApplyPortalError):
    """Anti-forgery token did not match the session token."""

    def __init__(self) -> None:
        super().__init__("Invalid CSRF token")


class SubmissionCollaboratorError(ApplyPortalError):
    """External submission call failed; the user may retry."""

    retryable = True


class SubmissionInProgressError(ApplyPortalError):
    """Another submission for the same session is in flight."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            "Application submission already in progress",
            "Wait for the first submission to complete",
        )
        self.session_id = session_id


class ApplicationLockedError(ApplyPortalError):
    """Application was already submitted and cannot change."""

    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application '{application_id}' was already submitted")
        self.application_id = application_id


class ResourceConflictError(ApplyPortalError):
    """Record already exists."""

    pass


class CaptchaVerificationError(ApplyPortalError):
    """CAPTCHA response was rejected.

    cleared is True when the application state was discarded.
    """

    def __init__(self, message: str, *, cleared: bool = False) -> None:
        super().__init__(message)
        self.cleared = cleared
