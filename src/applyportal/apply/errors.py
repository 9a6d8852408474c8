"""Apply wizard error envelopes.

ASCII-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from applyportal.core.errors import (
    ApplicationLockedError,
    ApplyPortalError,
    CaptchaVerificationError,
    IncompleteApplicationError,
    NotFoundError,
    ResourceConflictError,
    SecurityTokenMismatch,
    SubmissionCollaboratorError,
    SubmissionInProgressError,
    UnknownStepError,
    ValidationError,
)


def _ascii_message(message: str) -> str:
    try:
        return message.encode("ascii").decode("ascii")
    except UnicodeEncodeError:
        return message.encode("ascii", "replace").decode("ascii")


def detail(
    path: str,
    reason: str,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if meta is None:
        meta = {}
    return {"path": path, "reason": reason, "meta": dict(meta)}


@dataclass(frozen=True)
class ErrorEnvelope:
    code: str
    message: str
    details: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": list(self.details),
            }
        }


def error_envelope(
    code: str,
    message: str,
    *,
    details: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Return a canonical error envelope dict.

    Shape:
      {"error": {"code": ..., "message": ..., "details": [{"path","reason","meta"}, ...]}}
    """

    safe_details: list[dict[str, Any]] = []
    for d in details or []:
        if not isinstance(d, dict):
            continue
        path = d.get("path")
        reason = d.get("reason")
        meta = d.get("meta")
        if not isinstance(path, str) or not path:
            path = "$"
        if not isinstance(reason, str) or not reason:
            reason = "invalid_detail"
        if not isinstance(meta, dict):
            meta = {}
        safe_details.append(detail(path, reason, meta))

    return ErrorEnvelope(
        code=code, message=_ascii_message(str(message)), details=safe_details
    ).to_dict()


# (exception type, HTTP status, error code); first match wins.
_ERROR_TABLE: tuple[tuple[type[ApplyPortalError], int, str], ...] = (
    (IncompleteApplicationError, 422, "INCOMPLETE_APPLICATION"),
    (ValidationError, 422, "VALIDATION_ERROR"),
    (UnknownStepError, 404, "UNKNOWN_STEP"),
    (NotFoundError, 404, "NOT_FOUND"),
    (SecurityTokenMismatch, 400, "CSRF_MISMATCH"),
    (SubmissionInProgressError, 409, "SUBMISSION_IN_PROGRESS"),
    (ApplicationLockedError, 409, "APPLICATION_SUBMITTED"),
    (ResourceConflictError, 409, "CONFLICT"),
    (CaptchaVerificationError, 400, "CAPTCHA_FAILED"),
    (SubmissionCollaboratorError, 503, "SUBMISSION_UNAVAILABLE"),
)


def envelope_for(exc: ApplyPortalError) -> tuple[int, dict[str, Any]]:
    """Map a domain exception to (status_code, error envelope)."""
    for exc_type, status, code in _ERROR_TABLE:
        if isinstance(exc, exc_type):
            details = exc.details if isinstance(exc, ValidationError) else None
            return status, error_envelope(code, exc.message, details=details)
    return 500, error_envelope("INTERNAL_ERROR", exc.message)
