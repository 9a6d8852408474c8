from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from applyportal.core.config import ConfigResolver
from applyportal.core.errors import ConfigError, NotFoundError
from applyportal.services import (
    HCaptchaVerifier,
    HttpBenefitApplicationService,
    LookupService,
    MockBenefitApplicationService,
    create_captcha_verifier,
    create_submission_service,
)


def _resolver(tmp_path: Path, cli_args: dict) -> ConfigResolver:
    return ConfigResolver(
        cli_args=cli_args,
        user_config_path=tmp_path / "u.yaml",
        system_config_path=tmp_path / "s.yaml",
    )


def _captcha(handler) -> HCaptchaVerifier:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HCaptchaVerifier(secret="s3cret", verify_url="https://captcha.test/verify", client=client)


def test_hcaptcha_posts_secret_and_token() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(parse_qs(request.content.decode()))
        return httpx.Response(200, json={"success": True})

    assert _captcha(handler).verify("tok", "10.0.0.1") is True
    assert seen == [{"secret": ["s3cret"], "response": ["tok"], "remoteip": ["10.0.0.1"]}]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]}),
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["x"]),
        httpx.Response(200, json=True),
    ],
)
def test_hcaptcha_rejections(response: httpx.Response) -> None:
    assert _captcha(lambda request: response).verify("tok") is False


def test_hcaptcha_transport_error_is_rejection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _captcha(handler).verify("tok") is False


def test_hcaptcha_empty_token_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("must not be called")

    assert _captcha(handler).verify("") is False


def test_captcha_factory(tmp_path: Path) -> None:
    assert create_captcha_verifier(_resolver(tmp_path, {})) is None
    enabled = create_captcha_verifier(
        _resolver(tmp_path, {"apply": {"captcha": {"enabled": True, "secret": "x"}}})
    )
    assert isinstance(enabled, HCaptchaVerifier)


def test_submission_factory(tmp_path: Path) -> None:
    assert isinstance(create_submission_service(_resolver(tmp_path, {})), MockBenefitApplicationService)
    http = create_submission_service(
        _resolver(tmp_path, {"apply": {"submission": {"mock": False, "base_url": "http://x.test"}}})
    )
    assert isinstance(http, HttpBenefitApplicationService)
    http.close()


def test_mock_submission_records_calls() -> None:
    service = MockBenefitApplicationService(codes=["ONE"])

    first = service.submit({"a": 1})
    second = service.submit({"a": 2})

    assert first.confirmation_code == "ONE"
    assert len(second.confirmation_code) == 12
    assert service.calls == [{"a": 1}, {"a": 2}]


def test_lookup_catalogs() -> None:
    lookups = LookupService()

    assert "regions" in lookups.names()
    assert {r["id"] for r in lookups.regions_for("USA")} == {"NY", "WA"}
    assert {p["id"] for p in lookups.programs_for_region("ON")} == {"on-odsp", "on-ow"}
    assert lookups.find("countries", "CAN")["name_en"] == "Canada"
    assert lookups.find("countries", "XXX") is None
    with pytest.raises(NotFoundError):
        lookups.get_all("planets")


def test_lookup_get_all_returns_copies() -> None:
    lookups = LookupService()
    lookups.get_all("countries")[0]["id"] = "ZZZ"

    assert lookups.find("countries", "CAN") is not None


def test_lookup_overrides_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "lookups.yaml"
    path.write_text("marital_statuses:\n  - id: single\n  - id: married\n")

    lookups = LookupService.from_resolver(_resolver(tmp_path, {"lookups": {"path": str(path)}}))

    assert lookups.ids("marital_statuses") == {"single", "married"}
    assert "CAN" in lookups.ids("countries")


def test_lookup_bad_yaml_shape(tmp_path: Path) -> None:
    path = tmp_path / "lookups.yaml"
    path.write_text("countries:\n  - name: Nowhere\n")

    with pytest.raises(ConfigError):
        LookupService.from_resolver(_resolver(tmp_path, {"lookups": {"path": str(path)}}))
