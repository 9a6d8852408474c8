from __future__ import annotations

from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from applyportal.apply.engine import ApplyWizardEngine
from applyportal.apply.errors import envelope_for, error_envelope
from applyportal.apply.types import StepView, Transition
from applyportal.core.errors import (
    CaptchaVerificationError,
    NotFoundError,
    SubmissionCollaboratorError,
    UnknownStepError,
)

from ..util.session import (
    csrf_token,
    new_session_id,
    read_session_id,
    set_session_cookie,
    verify_csrf,
)
from ..util.web_observability import web_operation

APPLY_ROOT = "/apply"
UNABLE_TO_PROCESS = "/unable-to-process-request"
EXIT_STEP = "exit-application"

_ACTIONS = {"continue", "back", "submit"}


def _engine(request: Request) -> ApplyWizardEngine:
    return request.app.state.apply_engine


def step_url(application_id: str, step_id: str) -> str:
    return f"{APPLY_ROOT}/{application_id}/{step_id}"


def _see_other(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _to_redirect(tr: Transition) -> RedirectResponse:
    return _see_other(step_url(tr.state.id, tr.step_id))


def _render_view(request: Request, session_id: str, view: StepView) -> dict[str, Any]:
    step = view.step
    out: dict[str, Any] = {
        "application_id": view.state.id,
        "step_id": step.step_id,
        "title": step.title,
        "kind": step.kind,
        "variant": step.variant,
        "type_of_application": view.state.type_of_application,
        "fields": [f.to_dict() for f in step.fields],
        "values": view.values,
        "edit_mode": view.state.edit_mode,
        "back_step_id": view.back_step_id,
        "back_url": step_url(view.state.id, view.back_step_id) if view.back_step_id else None,
        "csrf_token": csrf_token(request, session_id),
    }
    if step.kind == "review":
        engine = _engine(request)
        out["captcha"] = {
            "enabled": engine.captcha_verifier is not None,
            "site_key": getattr(request.app.state, "captcha_site_key", ""),
        }
    return out


def mount_apply(app: FastAPI) -> None:
    @app.get(APPLY_ROOT)
    def apply_start(request: Request) -> RedirectResponse:
        session_id = read_session_id(request) or new_session_id()
        with web_operation(request, name="apply.start"):
            tr = _engine(request).start(session_id)
        resp = _to_redirect(tr)
        set_session_cookie(resp, request, session_id)
        return resp

    @app.get(f"{APPLY_ROOT}/{{application_id}}/{EXIT_STEP}", response_model=None)
    def apply_exit_page(request: Request, application_id: str) -> dict[str, Any] | RedirectResponse:
        session_id = read_session_id(request)
        if session_id is None:
            return _see_other(APPLY_ROOT)
        return {
            "application_id": application_id,
            "step_id": EXIT_STEP,
            "title": "Exit the application",
            "csrf_token": csrf_token(request, session_id),
        }

    @app.post(f"{APPLY_ROOT}/{{application_id}}/{EXIT_STEP}")
    def apply_exit(
        request: Request,
        application_id: str,
        body: dict[str, Any] = Body(default={}),  # noqa: B008
    ) -> RedirectResponse:
        session_id = read_session_id(request)
        if session_id is None:
            return _see_other(APPLY_ROOT)
        verify_csrf(request, session_id, body.get("_csrf"))
        with web_operation(request, name="apply.exit", ctx={"application_id": application_id}):
            _engine(request).exit(session_id)
        return _see_other(APPLY_ROOT)

    @app.get(f"{APPLY_ROOT}/{{application_id}}/{{step_id:path}}", response_model=None)
    def apply_view_step(
        request: Request, application_id: str, step_id: str
    ) -> dict[str, Any] | RedirectResponse | JSONResponse:
        session_id = read_session_id(request)
        if session_id is None:
            return _see_other(APPLY_ROOT)
        try:
            with web_operation(
                request,
                name="apply.view_step",
                ctx={"application_id": application_id, "step_id": step_id},
            ):
                result = _engine(request).view_step(session_id, application_id, step_id)
        except UnknownStepError as e:
            status, env = envelope_for(e)
            return JSONResponse(status_code=status, content=env)
        except NotFoundError:
            return _see_other(APPLY_ROOT)

        if isinstance(result, Transition):
            return _to_redirect(result)
        return _render_view(request, session_id, result)

    @app.post(f"{APPLY_ROOT}/{{application_id}}/{{step_id:path}}", response_model=None)
    def apply_submit_step(
        request: Request,
        application_id: str,
        step_id: str,
        body: dict[str, Any] = Body(default={}),  # noqa: B008
    ) -> RedirectResponse | JSONResponse:
        session_id = read_session_id(request)
        if session_id is None:
            return _see_other(APPLY_ROOT)

        payload = dict(body)
        verify_csrf(request, session_id, payload.pop("_csrf", None))
        action = str(payload.pop("_action", "continue") or "continue")
        captcha_response = payload.pop("h-captcha-response", None)
        if action not in _ACTIONS:
            return JSONResponse(
                status_code=422,
                content=error_envelope(
                    "VALIDATION_ERROR",
                    "invalid action",
                    details=[{"path": "$._action", "reason": "invalid_option", "meta": {"allowed": sorted(_ACTIONS)}}],
                ),
            )

        engine = _engine(request)
        ctx = {"application_id": application_id, "step_id": step_id, "action": action}
        try:
            with web_operation(request, name="apply.submit_step", ctx=ctx):
                if action == "back":
                    tr = engine.go_back(session_id, application_id, step_id)
                elif action == "submit":
                    tr = engine.submit_application(
                        session_id,
                        application_id,
                        step_id,
                        captcha_token=str(captcha_response or ""),
                        remote_ip=request.client.host if request.client else None,
                    )
                else:
                    tr = engine.submit_step(session_id, application_id, step_id, payload)
        except UnknownStepError as e:
            status, env = envelope_for(e)
            return JSONResponse(status_code=status, content=env)
        except NotFoundError:
            return _see_other(APPLY_ROOT)
        except SubmissionCollaboratorError:
            return _see_other(UNABLE_TO_PROCESS)
        except CaptchaVerificationError as e:
            if e.cleared:
                return _see_other(UNABLE_TO_PROCESS)
            return _see_other(step_url(application_id, step_id))

        return _to_redirect(tr)

    @app.get(UNABLE_TO_PROCESS)
    def unable_to_process(request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={
                "message": "We are unable to process your request at this time.",
                "start_over_url": APPLY_ROOT,
            },
        )
