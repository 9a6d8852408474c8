"""Subscription domain models.

ASCII-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class CodeStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    NO_CODE = "no_code"


@dataclass
class User:
    id: str
    email: str | None = None
    email_verified: bool = False
    preferred_language: str = "en"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "email_verified": self.email_verified,
            "preferred_language": self.preferred_language,
        }


@dataclass
class Subscription:
    id: str
    user_id: str
    alert_type_code: str
    preferred_language: str
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alert_type_code": self.alert_type_code,
            "preferred_language": self.preferred_language,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class ConfirmationCode:
    email: str
    code: str
    created_at: datetime
    expires_at: datetime
    user_id: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
