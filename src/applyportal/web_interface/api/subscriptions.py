from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, Response
from pydantic import BaseModel

from applyportal.subscriptions.service import SubscriptionService

from ..util.web_observability import web_operation


class SubscriptionCreate(BaseModel):
    preferred_language: str
    alert_type_code: str | None = None


class SubscriptionUpdate(BaseModel):
    preferred_language: str


class CodeRequest(BaseModel):
    email: str
    user_id: str | None = None


class CodeVerify(BaseModel):
    email: str
    confirmation_code: str


def _svc(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


def mount_subscriptions(app: FastAPI) -> None:
    @app.get("/api/v1/users/{user_id}")
    def get_user(request: Request, user_id: str) -> dict[str, Any]:
        user = _svc(request).get_user(user_id)
        out = user.to_dict()
        out["_links"] = {
            "self": {"href": f"/api/v1/users/{user_id}"},
            "subscriptions": {"href": f"/api/v1/users/{user_id}/subscriptions"},
        }
        return out

    @app.get("/api/v1/users/{user_id}/subscriptions")
    def list_subscriptions(
        request: Request, user_id: str, alert_type: str | None = None
    ) -> dict[str, Any]:
        subs = _svc(request).list_subscriptions(user_id, alert_type=alert_type)
        return {"subscriptions": [s.to_dict() for s in subs]}

    @app.post("/api/v1/users/{user_id}/subscriptions", status_code=204)
    def create_subscription(request: Request, user_id: str, body: SubscriptionCreate) -> Response:
        with web_operation(request, name="subscriptions.create", ctx={"user_id": user_id}):
            _svc(request).create_subscription(
                user_id, body.alert_type_code, body.preferred_language
            )
        return Response(status_code=204)

    @app.get("/api/v1/users/{user_id}/subscriptions/{subscription_id}")
    def get_subscription(request: Request, user_id: str, subscription_id: str) -> dict[str, Any]:
        return _svc(request).get_subscription(user_id, subscription_id).to_dict()

    @app.put("/api/v1/users/{user_id}/subscriptions/{subscription_id}", status_code=204)
    def update_subscription(
        request: Request, user_id: str, subscription_id: str, body: SubscriptionUpdate
    ) -> Response:
        with web_operation(
            request,
            name="subscriptions.update",
            ctx={"user_id": user_id, "subscription_id": subscription_id},
        ):
            _svc(request).update_subscription(user_id, subscription_id, body.preferred_language)
        return Response(status_code=204)

    @app.post("/api/v1/codes/request", status_code=204)
    def request_code(request: Request, body: CodeRequest) -> Response:
        with web_operation(request, name="codes.request"):
            _svc(request).request_confirmation_code(body.email, user_id=body.user_id)
        return Response(status_code=204)

    @app.post("/api/v1/codes/verify")
    def verify_code(request: Request, body: CodeVerify) -> dict[str, Any]:
        status = _svc(request).verify_confirmation_code(body.email, body.confirmation_code)
        return {"confirm_code_status": status.value}
