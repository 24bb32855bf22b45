"""Auth and account routes.

State-changing auth commands are accepted with 202 and run as background
tasks; clients poll ``GET /auth/state`` or follow ``GET /auth/events``.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, Response
from fastapi.responses import RedirectResponse, StreamingResponse
from loguru import logger

from gemini_chat.application.exceptions import NotInitializedError
from gemini_chat.application.session import SessionController
from gemini_chat.domain.models import AuthError
from gemini_chat.presentation.errors import CallbackOutcome, to_http_exception
from gemini_chat.presentation.schemas import (
    AuthStateResponse,
    CredentialsRequest,
    DisplayNameRequest,
    PasswordResetRequest,
    render_auth_state,
)

router = APIRouter(tags=["auth"])


def _session(raw_request: Request) -> SessionController:
    return raw_request.app.state.session


def _snapshot(session: SessionController) -> AuthStateResponse:
    return render_auth_state(session.state.value, session.current_identity)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@router.get("/auth/state", response_model=AuthStateResponse)
async def auth_state(raw_request: Request):
    """Current session state and signed-in user, if any."""
    return _snapshot(_session(raw_request))


@router.get("/auth/events")
async def auth_events(raw_request: Request):
    """Server-sent events: one ``data:`` line per session state change."""
    session = _session(raw_request)

    async def event_generator():
        async for state in session.state.updates():
            payload = render_auth_state(state, session.current_identity)
            yield f"data: {payload.model_dump_json()}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


@router.post("/auth/sign-in", response_model=AuthStateResponse, status_code=202)
async def sign_in(request: CredentialsRequest, raw_request: Request, background: BackgroundTasks):
    session = _session(raw_request)
    logger.info("POST /auth/sign-in | email={}", request.email)
    background.add_task(session.sign_in, request.email, request.password)
    return _snapshot(session)


@router.post("/auth/sign-up", response_model=AuthStateResponse, status_code=202)
async def sign_up(request: CredentialsRequest, raw_request: Request, background: BackgroundTasks):
    session = _session(raw_request)
    logger.info("POST /auth/sign-up | email={}", request.email)
    background.add_task(session.sign_up, request.email, request.password)
    return _snapshot(session)


@router.post("/auth/reset-password", response_model=AuthStateResponse, status_code=202)
async def reset_password(
    request: PasswordResetRequest, raw_request: Request, background: BackgroundTasks
):
    session = _session(raw_request)
    background.add_task(session.reset_password, request.email)
    return _snapshot(session)


@router.post("/auth/sign-out", response_model=AuthStateResponse, status_code=202)
async def sign_out(raw_request: Request, background: BackgroundTasks):
    session = _session(raw_request)
    background.add_task(session.sign_out)
    return _snapshot(session)


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------


@router.get("/auth/google")
async def google_sign_in(raw_request: Request):
    """Redirect the browser to Google's consent screen."""
    try:
        sign_in_request = _session(raw_request).get_federated_sign_in_request()
    except NotInitializedError as exc:
        raise to_http_exception(exc) from exc
    return RedirectResponse(sign_in_request.url, status_code=302)


@router.post("/auth/google/callback", response_model=AuthStateResponse, status_code=202)
async def google_callback(raw_request: Request, background: BackgroundTasks):
    """Receive Google's form-post response and complete the sign-in."""
    session = _session(raw_request)
    raw = (await raw_request.body()).decode("utf-8")
    background.add_task(session.handle_federated_sign_in_result, raw)
    return _snapshot(session)


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@router.patch("/account/display-name", response_model=AuthStateResponse)
async def update_display_name(request: DisplayNameRequest, raw_request: Request):
    session = _session(raw_request)
    outcome = CallbackOutcome()
    await session.update_display_name(request.name, outcome.on_success, outcome.on_error)
    if outcome.error is not None:
        raise to_http_exception(outcome.error)
    return _snapshot(session)


@router.delete("/account", status_code=204)
async def delete_account(raw_request: Request):
    """Delete profile, chats and the account itself."""
    session = _session(raw_request)
    outcome = CallbackOutcome()
    await session.delete_account(outcome.on_success, outcome.on_error)
    if outcome.error is not None:
        raise to_http_exception(outcome.error)
    if not outcome.called:
        state = session.state.value
        detail = state.message if isinstance(state, AuthError) else "Account deletion failed"
        raise HTTPException(status_code=502, detail=detail)
    return Response(status_code=204)
