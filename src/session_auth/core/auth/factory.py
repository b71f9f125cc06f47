"""Authentication flow factory.

Builds the flow controller and its collaborators from settings. All
configuration is read here, once; a missing or inconsistent value raises
ConfigurationError at startup rather than on a request.
"""

import asyncio
import logging
from typing import Mapping, Optional

from session_auth.config.settings import Settings, get_settings
from session_auth.core.auth.flow import AuthFlowController
from session_auth.core.auth.local import LocalCredentialsVerifier, LocalRegistrationVerifier
from session_auth.core.auth.oauth import (
    AuthorizationUrlBuilder,
    GoogleAuthorizationUrlBuilder,
    NaverAuthorizationUrlBuilder,
    OAuthIdentityVerifier,
    OAuthProvider,
)
from session_auth.core.exceptions import ConfigurationError
from session_auth.domain.models import AuthProviderName
from session_auth.infrastructure.auth.user_store import (
    InMemoryUserDirectory,
    RedisUserDirectory,
    UserDirectory,
)
from session_auth.infrastructure.oauth.clients import (
    GoogleOAuthClient,
    NaverOAuthClient,
    OAuthClient,
)
from session_auth.infrastructure.redis.client import get_redis
from session_auth.infrastructure.session.manager import SessionManager
from session_auth.infrastructure.session.store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
)

logger = logging.getLogger(__name__)

# Global controller instance (initialized on first call)
_flow_instance: Optional[AuthFlowController] = None
_flow_lock = asyncio.Lock()


def build_oauth_provider(
    name: AuthProviderName,
    settings: Settings,
    directory: UserDirectory,
    client: Optional[OAuthClient] = None,
) -> OAuthProvider:
    """Build the URL builder + verifier bundle for one provider

    Args:
        name: Provider to build
        settings: Application settings
        directory: User directory for account resolution
        client: Pre-built provider client (defaults to the real HTTP client)

    Raises:
        ConfigurationError: If the provider is not configured
    """
    config = settings.provider_config(name)

    builder: AuthorizationUrlBuilder
    if name is AuthProviderName.GOOGLE:
        builder = GoogleAuthorizationUrlBuilder(config)
        client = client or GoogleOAuthClient(config, timeout=settings.oauth_http_timeout_seconds)
    elif name is AuthProviderName.NAVER:
        builder = NaverAuthorizationUrlBuilder(config)
        client = client or NaverOAuthClient(config, timeout=settings.oauth_http_timeout_seconds)
    else:
        raise ConfigurationError(f"Unsupported OAuth provider: {name.value}")

    return OAuthProvider(
        name=name,
        url_builder=builder,
        verifier=OAuthIdentityVerifier(client, directory),
    )


def build_auth_flow(
    settings: Settings,
    directory: UserDirectory,
    session_store: SessionStore,
    clients: Optional[Mapping[AuthProviderName, OAuthClient]] = None,
) -> AuthFlowController:
    """Assemble the flow controller from explicit collaborators

    Args:
        settings: Application settings
        directory: User directory
        session_store: Session store backend
        clients: Optional provider clients overriding the HTTP clients

    Returns:
        Configured AuthFlowController

    Raises:
        ConfigurationError: If any enabled provider is misconfigured
    """
    clients = clients or {}

    sessions = SessionManager(
        session_store,
        cookie_name=settings.session_cookie_name,
        ttl_seconds=settings.session_ttl_seconds,
        state_cookie_name=settings.oauth_state_cookie_name,
        state_ttl_seconds=settings.oauth_state_ttl_seconds,
        cookie_secure=settings.session_cookie_secure,
        cookie_samesite=settings.session_cookie_samesite,
    )

    providers = {
        name: build_oauth_provider(name, settings, directory, clients.get(name))
        for name in settings.enabled_providers()
    }

    return AuthFlowController(
        sessions=sessions,
        directory=directory,
        login_verifier=LocalCredentialsVerifier(directory),
        registration_verifier=LocalRegistrationVerifier(directory),
        providers=providers,
        client_url=settings.client_url,
    )


async def get_auth_flow() -> AuthFlowController:
    """Get the configured flow controller instance.

    Storage is selected via STORAGE_BACKEND:
    - redis: Redis user directory and session store (default)
    - memory: in-process stores (single instance / development only)

    Concurrent first calls share one build.

    Returns:
        Configured AuthFlowController

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _flow_instance

    # Return cached instance
    if _flow_instance is not None:
        return _flow_instance

    async with _flow_lock:
        if _flow_instance is None:
            _flow_instance = await _create_auth_flow()
    return _flow_instance


async def _create_auth_flow() -> AuthFlowController:
    settings = get_settings()
    backend = settings.storage_backend.lower()
    logger.info(f"Initializing authentication flow: storage={backend}")

    if backend == "redis":
        redis_client = await get_redis()
        directory = RedisUserDirectory(redis_client, bcrypt_rounds=settings.bcrypt_rounds)
        session_store = RedisSessionStore(redis_client)
    elif backend == "memory":
        logger.warning(
            "Using in-memory user and session storage. "
            "WARNING: This only works for single-instance deployments!"
        )
        directory = InMemoryUserDirectory(bcrypt_rounds=settings.bcrypt_rounds)
        session_store = InMemorySessionStore()
    else:
        raise ConfigurationError(
            f"Unknown STORAGE_BACKEND: {backend}. Valid options: redis, memory"
        )

    flow = build_auth_flow(settings, directory, session_store)

    logger.info(
        f"Auth flow initialized with providers: "
        f"{', '.join(p.value for p in flow.providers) or 'none'}"
    )
    return flow


def reset_auth_flow() -> None:
    """Reset the global controller instance (for testing)."""
    global _flow_instance, _flow_lock
    _flow_instance = None
    _flow_lock = asyncio.Lock()
