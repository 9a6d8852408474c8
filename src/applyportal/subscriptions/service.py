"""Alert subscriptions and email confirmation codes.

ASCII-only.
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from applyportal.core.config import ConfigResolver
from applyportal.core.diagnostics import emit, iso_utc_now
from applyportal.core.errors import (
    ConfigError,
    NotFoundError,
    ResourceConflictError,
    ValidationError,
)
from applyportal.core.logging import get_logger
from applyportal.services.notifications import EmailNotifier, LogEmailNotifier
from applyportal.subscriptions.models import CodeStatus, ConfirmationCode, Subscription, User
from applyportal.subscriptions.repository import InMemorySubscriptionRepository

logger = get_logger(__name__)

_LANGUAGES = ("en", "fr")


def _emit_diag(event: str, *, operation: str, data: dict[str, Any]) -> None:
    emit(event, component="subscriptions", operation=operation, data=data)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SubscriptionService:
    def __init__(
        self,
        *,
        repository: InMemorySubscriptionRepository | None = None,
        notifier: EmailNotifier | None = None,
        alert_type_code: str = "cdcp",
        code_length: int = 6,
        code_expiry_hours: int = 48,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if code_length < 4:
            raise ValueError("code_length must be at least 4")
        self.repository = repository or InMemorySubscriptionRepository()
        self.notifier = notifier or LogEmailNotifier()
        self.alert_type_code = alert_type_code
        self.code_length = code_length
        self.code_expiry = timedelta(hours=code_expiry_hours)
        self._clock = clock

    @classmethod
    def from_resolver(
        cls, resolver: ConfigResolver, *, notifier: EmailNotifier | None = None
    ) -> SubscriptionService:
        service = cls(
            notifier=notifier,
            alert_type_code=resolver.resolve_str("subscriptions.alert_type_code", "cdcp") or "cdcp",
            code_length=resolver.resolve_int("subscriptions.code_length", 6),
            code_expiry_hours=resolver.resolve_int("subscriptions.code_expiry_hours", 48),
        )
        service.seed_users(parse_seed_users(resolver.resolve_value("subscriptions.users", [])))
        return service

    # Users

    def seed_users(self, users: Iterable[User]) -> int:
        """Add users that do not exist yet. Returns how many were added."""
        added = 0
        for user in users:
            if self.repository.get_user(user.id) is None:
                self.repository.add_user(user)
                added += 1
        if added:
            logger.verbose(f"Seeded {added} subscription user(s)")
        return added

    def get_user(self, user_id: str) -> User:
        user = self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError(f"No user with id=[{user_id}] was found")
        return user

    # Subscriptions

    def list_subscriptions(self, user_id: str, alert_type: str | None = None) -> list[Subscription]:
        self.get_user(user_id)
        subs = self.repository.list_subscriptions(user_id)
        if alert_type is not None:
            subs = [s for s in subs if s.alert_type_code == alert_type]
        return subs

    def get_subscription(self, user_id: str, subscription_id: str) -> Subscription:
        self.get_user(user_id)
        sub = self.repository.get_subscription(subscription_id)
        if sub is None or sub.user_id != user_id:
            raise NotFoundError(f"No subscription with id=[{subscription_id}] was found")
        return sub

    def create_subscription(
        self, user_id: str, alert_type_code: str | None, preferred_language: str
    ) -> Subscription:
        self.get_user(user_id)
        _check_language(preferred_language)
        now = iso_utc_now()
        sub = Subscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            alert_type_code=alert_type_code or self.alert_type_code,
            preferred_language=preferred_language,
            created_at=now,
            updated_at=now,
        )
        if not self.repository.add_subscription_if_absent(sub):
            raise ResourceConflictError(
                f"A subscription with code [{sub.alert_type_code}] already exists for user [{user_id}]"
            )
        _emit_diag(
            "subscription.created",
            operation="create_subscription",
            data={"user_id": user_id, "alert_type_code": sub.alert_type_code},
        )
        return sub

    def update_subscription(
        self, user_id: str, subscription_id: str, preferred_language: str
    ) -> Subscription:
        _check_language(preferred_language)
        sub = self.get_subscription(user_id, subscription_id)
        sub.preferred_language = preferred_language
        sub.updated_at = iso_utc_now()
        return self.repository.update_subscription(sub)

    # Confirmation codes

    def request_confirmation_code(self, email: str, user_id: str | None = None) -> ConfirmationCode:
        email = _check_email(email)
        now = self._clock()
        code = ConfirmationCode(
            email=email,
            code=self._generate_code(),
            created_at=now,
            expires_at=now + self.code_expiry,
            user_id=user_id,
        )
        self.repository.replace_codes(email, code)
        self.notifier.send_confirmation_code(email, code.code, _iso(code.expires_at))
        _emit_diag(
            "code.requested",
            operation="request_confirmation_code",
            data={"expires_at": _iso(code.expires_at)},
        )
        return code

    def verify_confirmation_code(
        self, email: str, code: str, now: datetime | None = None
    ) -> CodeStatus:
        email = _check_email(email)
        codes = self.repository.list_codes(email)
        if not codes:
            return CodeStatus.NO_CODE
        latest = max(codes, key=lambda c: c.created_at)
        when = now or self._clock()

        if not secrets.compare_digest(latest.code, str(code).strip()):
            status = CodeStatus.MISMATCH
        elif when >= latest.expires_at:
            status = CodeStatus.EXPIRED
        else:
            status = CodeStatus.VALID
            self._mark_email_verified(email, latest.user_id)

        _emit_diag("code.verified", operation="verify_confirmation_code", data={"status": status.value})
        return status

    def _mark_email_verified(self, email: str, user_id: str | None) -> None:
        user = self.repository.get_user(user_id) if user_id else None
        if user is None:
            user = self.repository.find_user_by_email(email)
        if user is None:
            return
        user.email = email
        user.email_verified = True
        self.repository.update_user(user)
        logger.verbose(f"Email verified for user {user.id}")

    def _generate_code(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))


def _check_language(value: str) -> None:
    if value not in _LANGUAGES:
        raise ValidationError(
            "Unsupported preferred language",
            details=[{"path": "$.preferred_language", "reason": "invalid_option", "meta": {"allowed": list(_LANGUAGES)}}],
        )


def _check_email(email: str) -> str:
    e = (email or "").strip().lower()
    if "@" not in e or e.startswith("@") or e.endswith("@"):
        raise ValidationError(
            "Invalid email address",
            details=[{"path": "$.email", "reason": "invalid_format", "meta": {}}],
        )
    return e


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_seed_users(raw: Any) -> list[User]:
    """Build users from the subscriptions.users config list.

    Each entry is a mapping with a string "id" and optional "email" and
    "preferred_language".
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("subscriptions.users must be a list")
    users: list[User] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not isinstance(item.get("id"), str) or not item["id"]:
            raise ConfigError(f"subscriptions.users[{i}] needs a non-empty string 'id'")
        email = item.get("email")
        if email is not None and not isinstance(email, str):
            raise ConfigError(f"subscriptions.users[{i}].email must be a string")
        lang = item.get("preferred_language", "en")
        if lang not in _LANGUAGES:
            raise ConfigError(
                f"subscriptions.users[{i}].preferred_language must be one of {', '.join(_LANGUAGES)}"
            )
        users.append(
            User(
                id=item["id"],
                email=email.strip().lower() if email else None,
                preferred_language=lang,
            )
        )
    return users
