from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from leadms.auth.provider import AuthError
from leadms.auth.session import NotAuthenticatedError, Session, SessionContext
from leadms.db.record_store import RecordStore
from leadms.services.conversations import ConversationLog
from leadms.services.lead_collection import LeadCollection
from leadms.utils.logger import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Workspace:
    """Everything one running dashboard needs, wired once at startup."""

    store: RecordStore
    sessions: SessionContext
    leads: LeadCollection = field(init=False)
    conversations: ConversationLog = field(init=False)

    def __post_init__(self):
        self.leads = LeadCollection(self.store)
        self.conversations = ConversationLog(self.store)

    def start(self) -> None:
        self.sessions.start()
        self.leads.load()

    def close(self) -> None:
        self.sessions.close()


_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    global _workspace
    if _workspace is None:
        _workspace = Workspace(store=RecordStore(), sessions=SessionContext())
    return _workspace


def require_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    workspace: Workspace = Depends(get_workspace),
) -> Session:
    """The caller's session, taken from its ``Authorization: Bearer`` header."""
    token = credentials.credentials if credentials else None
    try:
        return workspace.sessions.authenticate(token)
    except NotAuthenticatedError as exc:
        raise HTTPException(status_code=401, detail=str(exc), headers={"WWW-Authenticate": "Bearer"})
    except AuthError as exc:
        logger.error("Token check failed at %s: %s", exc.endpoint, exc.detail)
        raise HTTPException(status_code=502, detail="Sign-in is unavailable right now. Please try again.")
