"""Session Manager

Binds verified identities to server-side sessions carried by an
http-only cookie, tears sessions down on logout, and issues/verifies the
per-request OAuth ``state`` values used on provider callbacks.

A ``SessionHandle`` is built per request from its cookies. The manager
mutates the handle; the HTTP layer copies the recorded cookie changes onto
whatever response the flow produces.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from starlette.responses import Response

from session_auth.core.exceptions import SessionError
from session_auth.domain.models import AuthProviderName, Session, VerifiedIdentity
from session_auth.infrastructure.session.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class CookieChange:
    """A pending Set-Cookie; ``value=None`` deletes the cookie"""
    name: str
    value: Optional[str]
    max_age: Optional[int] = None


class SessionHandle:
    """Transport-level session state for one request"""

    def __init__(self, session_id: Optional[str] = None, oauth_state: Optional[str] = None):
        self.session_id = session_id or None
        self.oauth_state = oauth_state or None
        self.cookie_changes: list[CookieChange] = []

    def set_cookie(self, name: str, value: str, max_age: int) -> None:
        self.cookie_changes.append(CookieChange(name=name, value=value, max_age=max_age))

    def clear_cookie(self, name: str) -> None:
        self.cookie_changes.append(CookieChange(name=name, value=None))


class SessionManager:
    """Creates, reads and destroys sessions in a SessionStore"""

    def __init__(
        self,
        store: SessionStore,
        cookie_name: str = "sid",
        ttl_seconds: int = 86400,
        state_cookie_name: str = "oauth_state",
        state_ttl_seconds: int = 300,
        cookie_secure: bool = False,
        cookie_samesite: str = "lax",
    ):
        """Initialize session manager

        Args:
            store: Backend holding session and OAuth state entries
            cookie_name: Name of the session cookie
            ttl_seconds: Session lifetime
            state_cookie_name: Name of the OAuth state cookie
            state_ttl_seconds: Lifetime of a pending OAuth state
            cookie_secure: Send cookies over HTTPS only
            cookie_samesite: SameSite policy for both cookies
        """
        self.store = store
        self.cookie_name = cookie_name
        self.ttl_seconds = ttl_seconds
        self.state_cookie_name = state_cookie_name
        self.state_ttl_seconds = state_ttl_seconds
        self.cookie_secure = cookie_secure
        self.cookie_samesite = cookie_samesite

    def handle_from_cookies(self, cookies: Mapping[str, str]) -> SessionHandle:
        """Build the request's session handle from its cookies"""
        return SessionHandle(
            session_id=cookies.get(self.cookie_name),
            oauth_state=cookies.get(self.state_cookie_name),
        )

    def apply_cookies(self, handle: SessionHandle, response: Response) -> Response:
        """Write the handle's pending cookie changes onto a response"""
        for change in handle.cookie_changes:
            if change.value is None:
                response.delete_cookie(
                    change.name,
                    path="/",
                    secure=self.cookie_secure,
                    httponly=True,
                    samesite=self.cookie_samesite,
                )
            else:
                response.set_cookie(
                    change.name,
                    change.value,
                    max_age=change.max_age,
                    path="/",
                    secure=self.cookie_secure,
                    httponly=True,
                    samesite=self.cookie_samesite,
                )
        return response

    async def login(self, handle: SessionHandle, identity: VerifiedIdentity) -> Session:
        """Bind a new session to a verified identity

        The session id is rotated: any session the request already carried
        is removed. The cookie is only set once the store write succeeded.

        Args:
            handle: Current request's session handle
            identity: Identity to bind

        Returns:
            The created Session

        Raises:
            SessionError: If the session could not be stored
        """
        previous_id = handle.session_id
        session = Session(
            session_id=secrets.token_urlsafe(32),
            user_id=identity.user_id,
            email=identity.email,
            name=identity.name,
            provider=identity.provider,
            created_at=datetime.now(timezone.utc),
        )

        await asyncio.shield(
            self.store.put(self._session_key(session.session_id), session.to_dict(), self.ttl_seconds)
        )

        if previous_id:
            try:
                await asyncio.shield(self.store.delete(self._session_key(previous_id)))
            except SessionError as e:
                logger.warning(f"Failed to remove previous session {previous_id[:8]}...: {e}")

        handle.session_id = session.session_id
        handle.set_cookie(self.cookie_name, session.session_id, self.ttl_seconds)

        logger.info(
            f"Created session for user {identity.user_id} "
            f"(provider: {identity.provider.value}, ID: {session.session_id[:8]}...)"
        )
        return session

    async def logout(self, handle: SessionHandle) -> None:
        """Destroy the request's session and clear its cookie

        The cookie is cleared even when the store delete fails; the failure
        is still reported.

        Raises:
            SessionError: If the store entry could not be deleted
        """
        session_id = handle.session_id
        handle.session_id = None

        failure: Optional[SessionError] = None
        if session_id:
            try:
                await asyncio.shield(self.store.delete(self._session_key(session_id)))
                logger.info(f"Deleted session: {session_id[:8]}...")
            except SessionError as e:
                failure = e

        handle.clear_cookie(self.cookie_name)

        if failure:
            logger.error(f"Session {session_id[:8]}... not removed from store: {failure}")
            raise failure

    async def current_session(self, handle: SessionHandle) -> Optional[Session]:
        """Look up the session the request carries

        Returns:
            Session, or None when the request is unauthenticated

        Raises:
            SessionError: If the store cannot be read
        """
        if not handle.session_id:
            return None

        data = await self.store.get(self._session_key(handle.session_id))
        if not data:
            logger.debug(f"Unknown or expired session: {handle.session_id[:8]}...")
            handle.session_id = None
            handle.clear_cookie(self.cookie_name)
            return None

        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupt session record {handle.session_id[:8]}...: {e!r}")
            raise SessionError(f"Session record is corrupt: {e!r}") from e

    async def current_identity(self, handle: SessionHandle) -> Optional[VerifiedIdentity]:
        """Identity bound to the request's session, or None"""
        session = await self.current_session(handle)
        return session.identity if session else None

    async def issue_oauth_state(self, handle: SessionHandle, provider: AuthProviderName) -> str:
        """Generate a single-use OAuth state bound to this browser

        Raises:
            SessionError: If the state could not be stored
        """
        state = secrets.token_urlsafe(32)
        await self.store.put(
            self._state_key(state), {"provider": provider.value}, self.state_ttl_seconds
        )
        handle.oauth_state = state
        handle.set_cookie(self.state_cookie_name, state, self.state_ttl_seconds)
        return state

    async def consume_oauth_state(
        self, handle: SessionHandle, provider: AuthProviderName, state: Optional[str]
    ) -> bool:
        """Verify and burn the state returned by a provider callback

        Valid only if the callback's state equals the browser's state cookie
        and a pending entry for the same provider exists.

        Raises:
            SessionError: If the store cannot be read
        """
        expected = handle.oauth_state
        handle.oauth_state = None
        handle.clear_cookie(self.state_cookie_name)

        if not state:
            return False

        entry = await asyncio.shield(self.store.pop(self._state_key(state)))

        if not expected or not secrets.compare_digest(state, expected):
            logger.warning(f"OAuth state mismatch for {provider.value}")
            return False
        if not entry or entry.get("provider") != provider.value:
            logger.warning(f"OAuth state unknown or expired for {provider.value}")
            return False
        return True

    @staticmethod
    def _session_key(session_id: str) -> str:
        return f"session:{session_id}"

    @staticmethod
    def _state_key(state: str) -> str:
        return f"oauth_state:{state}"
