from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from leadms.auth.provider import AuthError
from leadms.auth.session import Session
from leadms.dependencies import Workspace, get_workspace, require_session
from leadms.models.auth import Credentials, PasswordResetRequest, SessionOut
from leadms.utils.logger import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


def _session_out(session: Session) -> SessionOut:
    return SessionOut(
        user_id=session.user_id,
        email=session.email,
        access_token=session.access_token,
        expires_at=session.expires_at,
    )


def _auth_http_error(exc: AuthError, fallback: str) -> HTTPException:
    # 4xx from the provider means bad credentials or input; anything else is the provider failing
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        return HTTPException(status_code=401 if exc.status_code in (400, 401) else exc.status_code, detail=exc.detail)
    return HTTPException(status_code=502, detail=fallback)


@router.post("/sign-in", response_model=SessionOut)
def sign_in(payload: Credentials, workspace: Workspace = Depends(get_workspace)) -> SessionOut:
    try:
        session = workspace.sessions.sign_in(str(payload.email), payload.password)
    except AuthError as exc:
        raise _auth_http_error(exc, "Sign-in is unavailable right now. Please try again.")
    workspace.leads.load()
    return _session_out(session)


@router.post("/sign-up", response_model=Optional[SessionOut], status_code=201)
def sign_up(payload: Credentials, workspace: Workspace = Depends(get_workspace)) -> Optional[SessionOut]:
    """Returns null when the address still has to be confirmed."""
    try:
        session = workspace.sessions.sign_up(str(payload.email), payload.password)
    except AuthError as exc:
        raise _auth_http_error(exc, "Sign-up is unavailable right now. Please try again.")
    if session is None:
        return None
    workspace.leads.load()
    return _session_out(session)


@router.post("/reset-password", status_code=202)
def reset_password(payload: PasswordResetRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        workspace.sessions.reset_password(str(payload.email))
    except AuthError as exc:
        raise _auth_http_error(exc, "Password reset is unavailable right now. Please try again.")
    return {"status": "sent"}


@router.post("/sign-out", status_code=204)
def sign_out(
    session: Session = Depends(require_session),
    workspace: Workspace = Depends(get_workspace),
) -> None:
    workspace.sessions.sign_out(session)


@router.get("/session", response_model=SessionOut)
def current_session(session: Session = Depends(require_session)) -> SessionOut:
    return _session_out(session)
