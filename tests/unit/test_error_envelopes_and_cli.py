from __future__ import annotations

import pytest

from applyportal.__main__ import _cli_args, _parse_args
from applyportal.apply.errors import envelope_for, error_envelope
from applyportal.core.errors import (
    ApplicationLockedError,
    ApplyPortalError,
    CaptchaVerificationError,
    IncompleteApplicationError,
    NotFoundError,
    SecurityTokenMismatch,
    SubmissionCollaboratorError,
    SubmissionInProgressError,
    UnknownStepError,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc,status,code",
    [
        (IncompleteApplicationError("x"), 422, "INCOMPLETE_APPLICATION"),
        (ValidationError("x"), 422, "VALIDATION_ERROR"),
        (UnknownStepError("a/b"), 404, "UNKNOWN_STEP"),
        (NotFoundError("x"), 404, "NOT_FOUND"),
        (SecurityTokenMismatch(), 400, "CSRF_MISMATCH"),
        (SubmissionInProgressError("sess"), 409, "SUBMISSION_IN_PROGRESS"),
        (ApplicationLockedError("app-1"), 409, "APPLICATION_SUBMITTED"),
        (CaptchaVerificationError("x"), 400, "CAPTCHA_FAILED"),
        (SubmissionCollaboratorError("x"), 503, "SUBMISSION_UNAVAILABLE"),
        (ApplyPortalError("x"), 500, "INTERNAL_ERROR"),
    ],
)
def test_envelope_mapping(exc: ApplyPortalError, status: int, code: str) -> None:
    got_status, env = envelope_for(exc)

    assert got_status == status
    assert env["error"]["code"] == code


def test_envelope_sanitizes_details_and_message() -> None:
    env = error_envelope(
        "VALIDATION_ERROR",
        "caf\u00e9",
        details=[{"path": "", "reason": None, "meta": "x"}, "junk", {"path": "$.a", "reason": "r"}],
    )

    assert env["error"]["message"] == "caf?"
    assert env["error"]["details"] == [
        {"path": "$", "reason": "invalid_detail", "meta": {}},
        {"path": "$.a", "reason": "r", "meta": {}},
    ]


def test_cli_args_nest_into_config_keys() -> None:
    args = _parse_args(["--port", "9000", "--log-level", "debug", "--session-storage", "file"])

    assert _cli_args(args) == {
        "web": {"port": 9000},
        "logging": {"level": "debug"},
        "session": {"storage_type": "file"},
    }
    assert _cli_args(_parse_args([])) == {}
