"""OAuth provider clients.

Exchange an authorization code for an access token and fetch the user's
profile from the provider. Every failure (transport, timeout, non-2xx,
provider error payload, malformed profile) surfaces as ProviderError.

Supported providers:
- Google (OAuth 2.0 + userinfo endpoint)
- Naver (OAuth 2.0 + nid/me profile API)
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from session_auth.core.exceptions import ProviderError
from session_auth.domain.models import AuthProviderName, ProviderConfig, ProviderProfile

logger = logging.getLogger(__name__)


class OAuthClient(ABC):
    """Authorization-code exchange for one provider"""

    provider: AuthProviderName
    token_endpoint: str
    profile_endpoint: str

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize provider client

        Args:
            config: Client registration for this provider
            timeout: Timeout in seconds for each provider call
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if config.provider is not self.provider:
            raise ValueError(
                f"{self.__class__.__name__} cannot use {config.provider.value} configuration"
            )
        self.config = config
        self.timeout = timeout
        self._transport = transport

    async def fetch_profile(self, code: str, state: Optional[str] = None) -> ProviderProfile:
        """Exchange the authorization code and return the user's profile

        Args:
            code: Authorization code from the provider callback
            state: State echoed by the provider (Naver requires it on exchange)

        Returns:
            ProviderProfile for the signed-in user

        Raises:
            ProviderError: If any provider call fails
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                access_token = await self._exchange_code(client, code, state)
                profile = await self._get_profile(client, access_token)
        except httpx.HTTPError as e:
            logger.error(f"{self.provider.value} request failed: {e.__class__.__name__}: {e}")
            raise ProviderError(self.provider.value, f"Provider request failed: {e}") from e

        logger.info(f"{self.provider.value} profile resolved: subject={profile.provider_user_id}")
        return profile

    @abstractmethod
    async def _exchange_code(
        self, client: httpx.AsyncClient, code: str, state: Optional[str]
    ) -> str:
        """Return an access token for the code"""

    @abstractmethod
    async def _get_profile(self, client: httpx.AsyncClient, access_token: str) -> ProviderProfile:
        """Return the profile for the access token"""

    def _json(self, response: httpx.Response, stage: str) -> dict:
        if response.status_code != 200:
            logger.error(
                f"{self.provider.value} {stage} failed: {response.status_code} {response.text}"
            )
            raise ProviderError(
                self.provider.value, f"{stage} failed: {response.status_code}"
            )
        try:
            body = response.json()
        except ValueError:
            raise ProviderError(self.provider.value, f"{stage} returned non-JSON body")
        if not isinstance(body, dict):
            raise ProviderError(self.provider.value, f"{stage} returned unexpected body")
        return body


class GoogleOAuthClient(OAuthClient):
    """Google OAuth 2.0 client"""

    provider = AuthProviderName.GOOGLE
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://www.googleapis.com/oauth2/v3/userinfo"

    async def _exchange_code(
        self, client: httpx.AsyncClient, code: str, state: Optional[str]
    ) -> str:
        response = await client.post(
            self.token_endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.callback_url,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        tokens = self._json(response, "token exchange")
        access_token = tokens.get("access_token")
        if not access_token:
            raise ProviderError(self.provider.value, "token exchange returned no access_token")
        return access_token

    async def _get_profile(self, client: httpx.AsyncClient, access_token: str) -> ProviderProfile:
        response = await client.get(
            self.profile_endpoint,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        info = self._json(response, "userinfo")

        subject = info.get("sub")
        if not subject:
            raise ProviderError(self.provider.value, "userinfo has no subject")

        email = info.get("email", "")
        return ProviderProfile(
            provider=self.provider,
            provider_user_id=str(subject),
            email=email,
            name=info.get("name") or email,
        )


class NaverOAuthClient(OAuthClient):
    """Naver Login (OAuth 2.0) client"""

    provider = AuthProviderName.NAVER
    token_endpoint = "https://nid.naver.com/oauth2.0/token"
    profile_endpoint = "https://openapi.naver.com/v1/nid/me"

    async def _exchange_code(
        self, client: httpx.AsyncClient, code: str, state: Optional[str]
    ) -> str:
        params = {
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
        }
        if state:
            params["state"] = state

        response = await client.post(self.token_endpoint, params=params)
        tokens = self._json(response, "token exchange")

        # Naver reports exchange errors in a 200 body
        if tokens.get("error"):
            logger.error(
                f"naver token exchange rejected: {tokens.get('error')} "
                f"({tokens.get('error_description')})"
            )
            raise ProviderError(self.provider.value, f"token exchange error: {tokens['error']}")

        access_token = tokens.get("access_token")
        if not access_token:
            raise ProviderError(self.provider.value, "token exchange returned no access_token")
        return access_token

    async def _get_profile(self, client: httpx.AsyncClient, access_token: str) -> ProviderProfile:
        response = await client.get(
            self.profile_endpoint,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        body = self._json(response, "profile")

        if body.get("resultcode") != "00":
            raise ProviderError(
                self.provider.value, f"profile error: {body.get('message', 'unknown')}"
            )

        info = body.get("response") or {}
        subject = info.get("id")
        if not subject:
            raise ProviderError(self.provider.value, "profile has no id")

        email = info.get("email", "")
        return ProviderProfile(
            provider=self.provider,
            provider_user_id=str(subject),
            email=email,
            name=info.get("name") or info.get("nickname") or email,
        )
