"""Authentication flow controller.

Drives each endpoint through

    START -> VALIDATING -> VERIFYING -> SESSION_BINDING -> RESPONDED

and turns every outcome into exactly one response. JSON endpoints
(register, login, logout, me, authorization URL) always answer with a
status code and the ``{success, message, data}`` envelope. Provider
callbacks always answer with a 302 redirect to the client application,
carrying ``?error=...`` on failure, because the caller is a browser in the
middle of a navigation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union
from urllib.parse import quote

from session_auth.core.auth.local import LocalCredentialsVerifier, LocalRegistrationVerifier
from session_auth.core.auth.oauth import OAuthProvider
from session_auth.core.auth.outcome import InfrastructureError, Invalid, Rejected
from session_auth.core.auth.validation import ValidationMode, validate
from session_auth.core.exceptions import DirectoryError, SessionError
from session_auth.domain.models import (
    AuthorizationUrlResponse,
    AuthProviderName,
    AuthResponse,
    Credentials,
    ProviderCallbackPayload,
    UserData,
    UserPayload,
    VerifiedIdentity,
)
from session_auth.infrastructure.auth.user_store import UserDirectory
from session_auth.infrastructure.session.manager import SessionHandle, SessionManager

logger = logging.getLogger(__name__)

# Client-facing messages
REGISTERED = "Registration completed."
REGISTER_FAILED = "An error occurred during registration."
REGISTER_LOGIN_FAILED = "An error occurred while logging in after registration."
LOGGED_IN = "Logged in."
LOGIN_ERROR = "An error occurred while logging in."
LOGGED_OUT = "Logged out."
SESSION_DELETE_FAILED = "An error occurred while deleting the session."
LOGIN_REQUIRED = "Login required."
USER_LOOKUP_FAILED = "An error occurred while loading the user."
AUTH_URL_FAILED = "An error occurred while starting the login."
UNKNOWN_PROVIDER = "Unknown login provider."
INVALID_REQUEST = "Invalid request body."

# Redirect error codes
SERVER_ERROR = "server_error"
LOGIN_ERROR_CODE = "login_error"
INVALID_STATE = "invalid_state"


class FlowState(str, Enum):
    START = "start"
    VALIDATING = "validating"
    VERIFYING = "verifying"
    SESSION_BINDING = "session_binding"
    RESPONDED = "responded"


_STATE_ORDER = {state: index for index, state in enumerate(FlowState)}


@dataclass(frozen=True)
class JsonResult:
    status_code: int
    body: dict


@dataclass(frozen=True)
class RedirectResult:
    location: str
    status_code: int = 302


FlowResult = Union[JsonResult, RedirectResult]


@dataclass
class Flow:
    """Tracks one request through the state machine.

    States only move forward, and ``respond`` may be called once.
    """
    endpoint: str
    state: FlowState = FlowState.START
    history: list = field(default_factory=list)

    def advance(self, state: FlowState) -> None:
        if state is FlowState.RESPONDED:
            raise ValueError("Use respond() to finish a flow")
        if _STATE_ORDER[state] <= _STATE_ORDER[self.state]:
            raise RuntimeError(
                f"{self.endpoint}: illegal transition {self.state.value} -> {state.value}"
            )
        self.history.append(self.state)
        self.state = state

    def respond(self, result: FlowResult) -> FlowResult:
        if self.state is FlowState.RESPONDED:
            raise RuntimeError(f"{self.endpoint}: response already emitted")
        self.history.append(self.state)
        self.state = FlowState.RESPONDED
        logger.debug(f"{self.endpoint} responded from {self.history[-1].value}: {result}")
        return result


class AuthFlowController:
    """Orchestrates validation, verification and session binding per endpoint"""

    def __init__(
        self,
        sessions: SessionManager,
        directory: UserDirectory,
        login_verifier: LocalCredentialsVerifier,
        registration_verifier: LocalRegistrationVerifier,
        providers: Mapping[AuthProviderName, OAuthProvider],
        client_url: str,
    ):
        """Initialize controller

        Args:
            sessions: Session manager
            directory: User directory (fresh profile for /me)
            login_verifier: Local credentials verifier
            registration_verifier: Local account-creation verifier
            providers: Configured OAuth providers
            client_url: Client application base URL for callback redirects
        """
        self.sessions = sessions
        self.directory = directory
        self.login_verifier = login_verifier
        self.registration_verifier = registration_verifier
        self.providers = dict(providers)
        self.client_url = client_url.rstrip("/")

        for name, provider in self.providers.items():
            if provider.name is not name:
                raise ValueError(f"Provider {provider.name.value} registered as {name.value}")

    # ------------------------------------------------------------------
    # JSON endpoints
    # ------------------------------------------------------------------

    async def register(self, handle: SessionHandle, credentials: Credentials) -> JsonResult:
        """Create a local account and log it in"""
        flow = Flow("register")

        flow.advance(FlowState.VALIDATING)
        validation = validate(credentials, ValidationMode.REGISTER)
        if isinstance(validation, Invalid):
            return flow.respond(self._error(400, validation.reason))

        flow.advance(FlowState.VERIFYING)
        outcome = await self.registration_verifier.verify(credentials)
        if isinstance(outcome, Rejected):
            return flow.respond(self._error(400, outcome.reason))
        if isinstance(outcome, InfrastructureError):
            return flow.respond(self._error(500, REGISTER_FAILED))

        flow.advance(FlowState.SESSION_BINDING)
        try:
            await self.sessions.login(handle, outcome.identity)
        except SessionError as e:
            logger.error(f"Login after registration failed for {outcome.identity.user_id}: {e}")
            return flow.respond(self._error(500, REGISTER_LOGIN_FAILED))

        return flow.respond(self._user(201, outcome.identity, REGISTERED))

    async def login(self, handle: SessionHandle, credentials: Credentials) -> JsonResult:
        """Log in with email and password"""
        flow = Flow("login")

        flow.advance(FlowState.VALIDATING)
        validation = validate(credentials, ValidationMode.LOGIN)
        if isinstance(validation, Invalid):
            return flow.respond(self._error(400, validation.reason))

        flow.advance(FlowState.VERIFYING)
        outcome = await self.login_verifier.verify(credentials)
        if isinstance(outcome, Rejected):
            return flow.respond(self._error(401, outcome.reason))
        if isinstance(outcome, InfrastructureError):
            return flow.respond(self._error(500, LOGIN_ERROR))

        flow.advance(FlowState.SESSION_BINDING)
        try:
            await self.sessions.login(handle, outcome.identity)
        except SessionError as e:
            logger.error(f"Session binding failed for {outcome.identity.user_id}: {e}")
            return flow.respond(self._error(500, LOGIN_ERROR))

        return flow.respond(self._user(200, outcome.identity, LOGGED_IN))

    async def logout(self, handle: SessionHandle) -> JsonResult:
        """Destroy the current session"""
        flow = Flow("logout")

        flow.advance(FlowState.SESSION_BINDING)
        try:
            await self.sessions.logout(handle)
        except SessionError:
            return flow.respond(self._error(500, SESSION_DELETE_FAILED))

        return flow.respond(
            JsonResult(200, AuthResponse(success=True, message=LOGGED_OUT).model_dump(exclude_none=True))
        )

    async def me(self, handle: SessionHandle) -> JsonResult:
        """Return the user bound to the current session"""
        flow = Flow("me")

        flow.advance(FlowState.VERIFYING)
        try:
            identity = await self.sessions.current_identity(handle)
        except SessionError as e:
            logger.error(f"Session lookup failed: {e}")
            return flow.respond(self._error(500, USER_LOOKUP_FAILED))

        if identity is None:
            return flow.respond(self._error(401, LOGIN_REQUIRED))

        try:
            user = await self.directory.get_user(identity.user_id)
        except DirectoryError as e:
            logger.error(f"User lookup failed for {identity.user_id}: {e}")
            return flow.respond(self._error(500, USER_LOOKUP_FAILED))

        if user is None or not user.is_active:
            logger.warning(f"Session refers to missing or inactive user {identity.user_id}")
            return flow.respond(self._error(401, LOGIN_REQUIRED))

        return flow.respond(self._user(200, user.to_identity()))

    async def authorization_url(
        self, handle: SessionHandle, provider_name: AuthProviderName
    ) -> JsonResult:
        """Issue a fresh state and build the provider's authorization URL"""
        flow = Flow(f"{provider_name.value}_url")

        provider = self.providers.get(provider_name)
        if provider is None:
            return flow.respond(self._error(404, UNKNOWN_PROVIDER))

        flow.advance(FlowState.SESSION_BINDING)
        try:
            state = await self.sessions.issue_oauth_state(handle, provider_name)
        except SessionError as e:
            logger.error(f"Failed to store {provider_name.value} OAuth state: {e}")
            return flow.respond(self._error(500, AUTH_URL_FAILED))

        url = provider.url_builder.build(state)
        logger.info(f"{provider_name.value} authorization URL issued")
        return flow.respond(JsonResult(200, AuthorizationUrlResponse(url=url).model_dump()))

    # ------------------------------------------------------------------
    # Redirect endpoints
    # ------------------------------------------------------------------

    async def callback(
        self,
        handle: SessionHandle,
        provider_name: AuthProviderName,
        payload: ProviderCallbackPayload,
    ) -> RedirectResult:
        """Complete a provider sign-in and redirect the browser"""
        flow = Flow(f"{provider_name.value}_callback")

        provider = self.providers.get(provider_name)
        if provider is None:
            logger.error(f"Callback for unconfigured provider {provider_name.value}")
            return flow.respond(self._login_redirect(SERVER_ERROR))

        flow.advance(FlowState.VALIDATING)
        try:
            state_ok = await self.sessions.consume_oauth_state(handle, provider_name, payload.state)
        except Exception as e:
            logger.error(
                f"[{provider_name.value} callback] state verification failed: {e}", exc_info=True
            )
            return flow.respond(self._login_redirect(SERVER_ERROR))

        if not state_ok:
            return flow.respond(self._login_redirect(INVALID_STATE))

        flow.advance(FlowState.VERIFYING)
        outcome = await provider.verifier.verify(payload)
        if isinstance(outcome, InfrastructureError):
            logger.error(
                f"[{provider_name.value} callback] authentication error at {outcome.stage}: "
                f"{outcome.cause}"
            )
            return flow.respond(self._login_redirect(SERVER_ERROR))
        if isinstance(outcome, Rejected):
            logger.warning(f"[{provider_name.value} callback] no user: {outcome.reason}")
            return flow.respond(self._login_redirect(outcome.reason))

        flow.advance(FlowState.SESSION_BINDING)
        try:
            await self.sessions.login(handle, outcome.identity)
        except Exception as e:
            logger.error(f"[{provider_name.value} callback] login error: {e}", exc_info=True)
            return flow.respond(self._login_redirect(LOGIN_ERROR_CODE))

        logger.info(
            f"[{provider_name.value} callback] logged in user {outcome.identity.user_id}"
        )
        return flow.respond(RedirectResult(f"{self.client_url}/dashboard"))

    # ------------------------------------------------------------------
    # Response shaping
    # ------------------------------------------------------------------

    def _login_redirect(self, reason: str) -> RedirectResult:
        return RedirectResult(f"{self.client_url}/login?error={quote(reason, safe='')}")

    @staticmethod
    def _error(status_code: int, message: str) -> JsonResult:
        return JsonResult(status_code, AuthResponse(success=False, message=message).model_dump(exclude_none=True))

    @staticmethod
    def _user(
        status_code: int, identity: VerifiedIdentity, message: Optional[str] = None
    ) -> JsonResult:
        body = AuthResponse(
            success=True,
            message=message,
            data=UserData(user=UserPayload(**identity.to_public_dict())),
        )
        return JsonResult(status_code, body.model_dump(exclude_none=True))
