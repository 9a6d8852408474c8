"""In-memory subscription repository (thread-safe).

ASCII-only.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from applyportal.subscriptions.models import ConfirmationCode, Subscription, User


class InMemorySubscriptionRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._codes: dict[str, list[ConfirmationCode]] = {}

    # Users

    def add_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = replace(user)
            return replace(user)

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user is not None else None

    def find_user_by_email(self, email: str) -> User | None:
        key = email.strip().lower()
        with self._lock:
            for user in self._users.values():
                if user.email and user.email.lower() == key:
                    return replace(user)
        return None

    def update_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = replace(user)
            return replace(user)

    # Subscriptions

    def list_subscriptions(self, user_id: str) -> list[Subscription]:
        with self._lock:
            out = [replace(s) for s in self._subscriptions.values() if s.user_id == user_id]
        return sorted(out, key=lambda s: (s.created_at, s.id))

    def get_subscription(self, subscription_id: str) -> Subscription | None:
        with self._lock:
            sub = self._subscriptions.get(subscription_id)
            return replace(sub) if sub is not None else None

    def add_subscription_if_absent(self, subscription: Subscription) -> bool:
        """Insert unless the user already has that alert type. Returns True when inserted."""
        with self._lock:
            for existing in self._subscriptions.values():
                if (
                    existing.user_id == subscription.user_id
                    and existing.alert_type_code == subscription.alert_type_code
                ):
                    return False
            self._subscriptions[subscription.id] = replace(subscription)
            return True

    def update_subscription(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions[subscription.id] = replace(subscription)
            return replace(subscription)

    # Confirmation codes

    def replace_codes(self, email: str, code: ConfirmationCode) -> None:
        with self._lock:
            self._codes[email.strip().lower()] = [code]

    def list_codes(self, email: str) -> list[ConfirmationCode]:
        with self._lock:
            return list(self._codes.get(email.strip().lower(), []))
