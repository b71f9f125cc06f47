"""OAuth 2.0 authorization-code providers.

Each provider is an ``OAuthProvider`` bundle of:
- an authorization URL builder (one class per provider, fixed endpoint and
  parameter set)
- an ``OAuthIdentityVerifier`` driving that provider's client

Bundles are built once at startup from immutable ``ProviderConfig``
values. A builder, client or verifier configured for a different provider
is rejected at construction.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from session_auth.core.auth.outcome import AuthOutcome, InfrastructureError, Rejected, Success
from session_auth.core.auth.provider import IdentityVerifier
from session_auth.core.exceptions import AuthenticationError, ConfigurationError, ProviderError
from session_auth.domain.models import AuthProviderName, ProviderCallbackPayload, ProviderConfig
from session_auth.infrastructure.auth.user_store import UserDirectory
from session_auth.infrastructure.oauth.clients import OAuthClient

logger = logging.getLogger(__name__)

DEFAULT_REJECTION = "Login failed."


class AuthorizationUrlBuilder(ABC):
    """Builds the URL that starts a provider's consent/login flow"""

    provider: AuthProviderName
    authorization_endpoint: str

    def __init__(self, config: ProviderConfig):
        """Initialize builder

        Args:
            config: Client registration for this provider

        Raises:
            ConfigurationError: If the configuration is incomplete or for another provider
        """
        if config.provider is not self.provider:
            raise ConfigurationError(
                f"{self.__class__.__name__} cannot use {config.provider.value} configuration"
            )
        if not config.client_id or not config.callback_url:
            raise ConfigurationError(
                f"{self.provider.value} provider requires a client id and callback URL"
            )
        self.config = config

    @abstractmethod
    def parameters(self, state: str) -> dict:
        """Query parameters for the authorization request"""
        pass

    def build(self, state: str) -> str:
        """Generate the authorization URL

        Args:
            state: Per-request anti-CSRF value, verified on callback

        Returns:
            Authorization URL to send the browser to
        """
        if not state:
            raise ValueError("An authorization URL requires a state value")
        return f"{self.authorization_endpoint}?{urlencode(self.parameters(state))}"


class GoogleAuthorizationUrlBuilder(AuthorizationUrlBuilder):
    provider = AuthProviderName.GOOGLE
    authorization_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"

    def parameters(self, state: str) -> dict:
        return {
            "redirect_uri": self.config.callback_url,
            "client_id": self.config.client_id,
            "access_type": "offline",
            "response_type": "code",
            "prompt": "consent",
            "scope": " ".join(self.config.scopes),
            "state": state,
        }


class NaverAuthorizationUrlBuilder(AuthorizationUrlBuilder):
    provider = AuthProviderName.NAVER
    authorization_endpoint = "https://nid.naver.com/oauth2.0/authorize"

    def parameters(self, state: str) -> dict:
        return {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "state": state,
        }


class OAuthIdentityVerifier(IdentityVerifier):
    """Verifies a provider callback and resolves the local account"""

    def __init__(self, client: OAuthClient, directory: UserDirectory):
        """Initialize verifier

        Args:
            client: Token-exchange/profile client for one provider
            directory: User directory linking provider subjects to accounts
        """
        self.client = client
        self.directory = directory
        self.strategy = client.provider

    async def verify(self, data: ProviderCallbackPayload) -> AuthOutcome:
        if data.error:
            logger.warning(
                f"{self.strategy.value} callback carried error: {data.error} "
                f"({data.error_description})"
            )
            return Rejected(data.error)

        if not data.code:
            return Rejected("missing_code")

        try:
            profile = await self.client.fetch_profile(data.code, data.state)
        except ProviderError as e:
            logger.error(f"{self.strategy.value} code exchange failed: {e}")
            return InfrastructureError(cause=str(e), stage="token_exchange")
        except Exception as e:
            return self._infrastructure_error("token_exchange", e)

        try:
            user = await self.directory.find_or_create_oauth_user(profile)
        except AuthenticationError as e:
            logger.warning(f"{self.strategy.value} sign-in rejected: {e}")
            return Rejected(str(e) or DEFAULT_REJECTION)
        except Exception as e:
            return self._infrastructure_error("resolve_user", e)

        logger.info(f"{self.strategy.value} user authenticated: {user.email} ({user.user_id})")
        return Success(user.to_identity())


@dataclass(frozen=True)
class OAuthProvider:
    """URL builder and verifier for one provider"""

    name: AuthProviderName
    url_builder: AuthorizationUrlBuilder
    verifier: OAuthIdentityVerifier

    def __post_init__(self):
        if self.url_builder.provider is not self.name or self.verifier.strategy is not self.name:
            raise ConfigurationError(
                f"Provider components disagree: builder={self.url_builder.provider.value}, "
                f"verifier={self.verifier.strategy.value}, expected={self.name.value}"
            )
