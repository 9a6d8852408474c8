"""Outbound notifications."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from applyportal.core.logging import get_logger

logger = get_logger(__name__)


class EmailNotifier(Protocol):
    def send_confirmation_code(self, email: str, code: str, expires_at: str) -> None: ...


@dataclass(frozen=True)
class SentMessage:
    email: str
    code: str
    expires_at: str


class LogEmailNotifier:
    """Writes confirmation codes to the log instead of sending email."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []

    def send_confirmation_code(self, email: str, code: str, expires_at: str) -> None:
        self.sent.append(SentMessage(email=email, code=code, expires_at=expires_at))
        logger.info(f"Confirmation code for {email}: {code} (expires {expires_at})")
