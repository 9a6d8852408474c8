"""CAPTCHA verification (hCaptcha siteverify)."""

from __future__ import annotations

from typing import Protocol

import httpx

from applyportal.core.config import ConfigResolver
from applyportal.core.logging import get_logger

logger = get_logger(__name__)


class CaptchaVerifier(Protocol):
    def verify(self, token: str, remote_ip: str | None = None) -> bool: ...


class HCaptchaVerifier:
    def __init__(
        self,
        *,
        secret: str,
        verify_url: str = "https://api.hcaptcha.com/siteverify",
        timeout_s: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._secret = secret
        self._verify_url = verify_url
        self._client = client or httpx.Client(timeout=timeout_s)

    def verify(self, token: str, remote_ip: str | None = None) -> bool:
        if not token:
            return False
        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            response = self._client.post(self._verify_url, data=data)
        except httpx.HTTPError as e:
            logger.warning(f"hCaptcha verification request failed: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"hCaptcha verification returned status {response.status_code}")
            return False
        try:
            body = response.json()
        except ValueError:
            logger.warning("hCaptcha verification returned invalid JSON")
            return False
        if not isinstance(body, dict):
            logger.warning("hCaptcha verification returned a non-object body")
            return False
        ok = bool(body.get("success"))
        if not ok:
            logger.verbose(f"hCaptcha rejected token: {body.get('error-codes')}")
        return ok

    def close(self) -> None:
        self._client.close()


class StaticCaptchaVerifier:
    """Always answers with the configured result (tests, local runs)."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.tokens: list[str] = []

    def verify(self, token: str, remote_ip: str | None = None) -> bool:
        self.tokens.append(token)
        return self.result


def create_captcha_verifier(resolver: ConfigResolver) -> CaptchaVerifier | None:
    """Return a verifier when apply.captcha.enabled is set, else None."""
    if not resolver.resolve_bool("apply.captcha.enabled", False):
        return None
    return HCaptchaVerifier(
        secret=resolver.resolve_str("apply.captcha.secret", "") or "",
        verify_url=resolver.resolve_str("apply.captcha.verify_url")
        or "https://api.hcaptcha.com/siteverify",
        timeout_s=resolver.resolve_float("apply.captcha.timeout_seconds", 10.0),
    )
