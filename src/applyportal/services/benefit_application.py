"""Benefit application submission collaborators.

ASCII-only.
"""

from __future__ import annotations

import secrets
import string
import threading
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from applyportal.core.config import ConfigResolver
from applyportal.core.errors import SubmissionCollaboratorError
from applyportal.core.logging import get_logger

logger = get_logger(__name__)

_SUBMIT_PATH = "/api/v1/benefit-application"


@dataclass(frozen=True)
class SubmissionResult:
    confirmation_code: str
    raw: dict[str, Any]


class SubmissionService(Protocol):
    def submit(self, payload: dict[str, Any]) -> SubmissionResult: ...


class HttpBenefitApplicationService:
    """POSTs the mapped application to the benefit application API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self._base_url, timeout=timeout_s)

    def submit(self, payload: dict[str, Any]) -> SubmissionResult:
        try:
            response = self._client.post(_SUBMIT_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Benefit application request failed: {e}")
            raise SubmissionCollaboratorError(
                "Benefit application service is unavailable",
                "Try submitting again in a few minutes",
            ) from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                f"Benefit application rejected: status={response.status_code} "
                f"body={response.text[:200]!r}"
            )
            raise SubmissionCollaboratorError(
                f"Benefit application service returned {response.status_code}",
                "Try submitting again in a few minutes",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SubmissionCollaboratorError("Benefit application service returned invalid JSON") from e

        code = _extract_confirmation_code(data)
        if not code:
            raise SubmissionCollaboratorError("Benefit application response has no confirmation code")
        return SubmissionResult(confirmation_code=code, raw=data)

    def close(self) -> None:
        self._client.close()


class MockBenefitApplicationService:
    """In-process stand-in returning generated confirmation codes.

    calls records every payload submitted; failures can be queued with
    fail_next().
    """

    def __init__(self, *, codes: list[str] | None = None) -> None:
        self._codes = list(codes or [])
        self._lock = threading.Lock()
        self._failures: list[Exception] = []
        self.calls: list[dict[str, Any]] = []

    def fail_next(self, exc: Exception | None = None) -> None:
        with self._lock:
            self._failures.append(
                exc or SubmissionCollaboratorError("Benefit application service is unavailable")
            )

    def submit(self, payload: dict[str, Any]) -> SubmissionResult:
        with self._lock:
            self.calls.append(payload)
            if self._failures:
                raise self._failures.pop(0)
            code = self._codes.pop(0) if self._codes else _random_code()
        logger.verbose(f"Mock benefit application accepted: {code}")
        return SubmissionResult(confirmation_code=code, raw={"confirmation_code": code})


def _random_code() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(12))


def _extract_confirmation_code(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    code = data.get("confirmation_code")
    if code is None:
        code = (data.get("BenefitApplication") or {}).get("ConfirmationCode")
    return str(code) if code else None


def create_submission_service(resolver: ConfigResolver) -> SubmissionService:
    if resolver.resolve_bool("apply.submission.mock", True):
        logger.info("Using mock benefit application service.")
        return MockBenefitApplicationService()
    base_url = resolver.resolve_str("apply.submission.base_url") or ""
    timeout_s = resolver.resolve_float("apply.submission.timeout_seconds", 30.0)
    logger.info(f"Using benefit application service at {base_url}.")
    return HttpBenefitApplicationService(base_url=base_url, timeout_s=timeout_s)
