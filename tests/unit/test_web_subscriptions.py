from __future__ import annotations

from typing import Any

import pytest

from applyportal.core.config import ConfigResolver
from applyportal.services.notifications import LogEmailNotifier
from applyportal.subscriptions import InMemorySubscriptionRepository, SubscriptionService, User
from applyportal.web_interface import create_app


def _make_client(app: Any) -> Any:
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def notifier() -> LogEmailNotifier:
    return LogEmailNotifier()


@pytest.fixture
def client(config_resolver, memory_store, notifier) -> Any:
    repo = InMemorySubscriptionRepository()
    repo.add_user(User(id="u1"))
    service = SubscriptionService(repository=repo, notifier=notifier)
    app = create_app(
        config_resolver=config_resolver,
        session_store=memory_store,
        subscription_service=service,
    )
    return _make_client(app)


def test_get_user_has_links(client: Any) -> None:
    body = client.get("/api/v1/users/u1").json()

    assert body["id"] == "u1"
    assert body["_links"]["subscriptions"]["href"] == "/api/v1/users/u1/subscriptions"

    missing = client.get("/api/v1/users/nobody")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_subscription_lifecycle(client: Any) -> None:
    base = "/api/v1/users/u1/subscriptions"

    created = client.post(base, json={"preferred_language": "en"})
    assert created.status_code == 204

    subs = client.get(base).json()["subscriptions"]
    assert len(subs) == 1
    sub_id = subs[0]["id"]
    assert subs[0]["alert_type_code"] == "cdcp"

    dup = client.post(base, json={"preferred_language": "fr", "alert_type_code": "cdcp"})
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "CONFLICT"

    updated = client.put(f"{base}/{sub_id}", json={"preferred_language": "fr"})
    assert updated.status_code == 204
    assert client.get(f"{base}/{sub_id}").json()["preferred_language"] == "fr"

    bad = client.put(f"{base}/{sub_id}", json={"preferred_language": "xx"})
    assert bad.status_code == 422

    assert client.get(base, params={"alert_type": "other"}).json() == {"subscriptions": []}


def test_request_body_validation(client: Any) -> None:
    r = client.post("/api/v1/users/u1/subscriptions", json={})

    assert r.status_code == 422


def test_confirmation_code_flow(client: Any, notifier: LogEmailNotifier) -> None:
    r = client.post("/api/v1/codes/request", json={"email": "jane@example.com", "user_id": "u1"})
    assert r.status_code == 204
    code = notifier.sent[-1].code

    wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)
    r = client.post(
        "/api/v1/codes/verify", json={"email": "jane@example.com", "confirmation_code": wrong}
    )
    assert r.json() == {"confirm_code_status": "mismatch"}

    r = client.post(
        "/api/v1/codes/verify", json={"email": "jane@example.com", "confirmation_code": code}
    )
    assert r.json() == {"confirm_code_status": "valid"}
    assert client.get("/api/v1/users/u1").json()["email_verified"] is True


def test_verify_without_code(client: Any) -> None:
    r = client.post(
        "/api/v1/codes/verify", json={"email": "none@example.com", "confirmation_code": "123456"}
    )

    assert r.json() == {"confirm_code_status": "no_code"}


def test_seeded_users_from_config(tmp_path) -> None:
    resolver = ConfigResolver(
        cli_args={
            "subscriptions": {
                "users": [{"id": "u9", "email": "Jane@Example.com", "preferred_language": "fr"}]
            }
        },
        user_config_path=tmp_path / "u.yaml",
        system_config_path=tmp_path / "s.yaml",
    )
    client = _make_client(create_app(config_resolver=resolver))

    body = client.get("/api/v1/users/u9").json()
    assert body["email"] == "jane@example.com"
    assert body["preferred_language"] == "fr"

    created = client.post("/api/v1/users/u9/subscriptions", json={"preferred_language": "fr"})
    assert created.status_code == 204
    assert client.get("/api/v1/users/nobody").status_code == 404
