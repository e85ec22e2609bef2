import hmac
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Set

from leadms.auth.provider import AuthError, SupabaseAuthClient
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


class NotAuthenticatedError(RuntimeError):
    """Raised when an operation needs a signed-in user and there is none."""


@dataclass(frozen=True)
class Session:
    user_id: str
    email: Optional[str]
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> "Session":
        user = data.get("user") or {}
        if not data.get("access_token") or not user.get("id"):
            raise AuthError("/token", detail="Auth response did not contain a session.")
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = int(time.time()) + int(data["expires_in"])
        return cls(
            user_id=str(user["id"]),
            email=user.get("email"),
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
        )


class SessionContext:
    """Holds the signed-in session for one running dashboard.

    Created with a provider, opened with ``start()`` and torn down with
    ``close()``; components that stamp records receive this object instead
    of reading process-wide state. Only the issued session is kept, never the
    password.
    """

    def __init__(self, provider: Optional[SupabaseAuthClient] = None):
        self.provider = provider or SupabaseAuthClient()
        self._session: Optional[Session] = None
        self._lock = threading.Lock()
        self._open = False
        # access tokens signed out here; the provider keeps honouring them until they expire
        self._revoked: Set[str] = set()

    def start(self) -> "SessionContext":
        self._open = True
        logger.debug("Session context started")
        return self

    def close(self) -> None:
        try:
            self.sign_out()
        finally:
            self._open = False
            logger.debug("Session context closed")

    def __enter__(self) -> "SessionContext":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("Session context is not started.")

    def sign_in(self, email: str, password: str) -> Session:
        self._ensure_open()
        session = Session.from_token_response(self.provider.sign_in(email, password))
        with self._lock:
            self._session = session
            self._revoked.discard(session.access_token)
        logger.info("Signed in user_id=%s", session.user_id)
        return session

    def sign_up(self, email: str, password: str) -> Optional[Session]:
        """Register a user. Returns None while the address awaits confirmation."""
        self._ensure_open()
        data = self.provider.sign_up(email, password)
        if not data.get("access_token"):
            logger.info("Sign-up for %s pending email confirmation", email)
            return None
        session = Session.from_token_response(data)
        with self._lock:
            self._session = session
            self._revoked.discard(session.access_token)
        logger.info("Signed up and signed in user_id=%s", session.user_id)
        return session

    def reset_password(self, email: str) -> None:
        self._ensure_open()
        self.provider.reset_password(email)
        logger.info("Password reset requested for %s", email)

    def sign_out(self, session: Optional[Session] = None) -> None:
        """Sign out ``session``, or the held session when none is given."""
        with self._lock:
            held = self._session
            if session is None or (held is not None and held.access_token == session.access_token):
                self._session = None
                session = session or held
            if session is None:
                return
            self._revoked.add(session.access_token)
        try:
            self.provider.sign_out(session.access_token)
        except AuthError as exc:
            # already revoked locally; the token lapses remotely at expiry
            logger.warning("Remote sign-out failed for user_id=%s: %s", session.user_id, exc.detail)
        logger.info("Signed out user_id=%s", session.user_id)

    def current_session(self) -> Optional[Session]:
        with self._lock:
            session = self._session
            if session is not None and session.is_expired():
                logger.info("Session for user_id=%s expired", session.user_id)
                self._session = session = None
        return session

    def require_session(self) -> Session:
        session = self.current_session()
        if session is None:
            raise NotAuthenticatedError("Sign in to continue.")
        return session

    def authenticate(self, access_token: Optional[str]) -> Session:
        """Resolve a bearer token presented by a caller to a session.

        The held session answers without a round trip; any other token is
        checked with the provider. Raises NotAuthenticatedError when the token
        is missing, revoked or rejected, and lets AuthError through when the
        provider itself is unreachable.
        """
        self._ensure_open()
        if not access_token:
            raise NotAuthenticatedError("Sign in to continue.")
        with self._lock:
            revoked = access_token in self._revoked
        if revoked:
            raise NotAuthenticatedError("Session has been signed out.")

        held = self.current_session()
        if held is not None and hmac.compare_digest(held.access_token.encode(), access_token.encode()):
            return held

        try:
            user = self.provider.get_user(access_token)
        except AuthError as exc:
            if exc.status_code is None or exc.status_code >= 500:
                raise
            logger.info("Rejected access token: %s", exc.detail)
            raise NotAuthenticatedError("Sign in to continue.") from exc
        if not user.get("id"):
            raise NotAuthenticatedError("Sign in to continue.")
        return Session(user_id=str(user["id"]), email=user.get("email"), access_token=access_token)
