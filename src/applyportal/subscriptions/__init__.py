"""Alert subscriptions and email confirmation codes."""

from applyportal.subscriptions.models import CodeStatus, ConfirmationCode, Subscription, User
from applyportal.subscriptions.repository import InMemorySubscriptionRepository
from applyportal.subscriptions.service import SubscriptionService

__all__ = [
    "CodeStatus",
    "ConfirmationCode",
    "InMemorySubscriptionRepository",
    "Subscription",
    "SubscriptionService",
    "User",
]
