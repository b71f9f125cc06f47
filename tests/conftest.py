"""
Pytest configuration and fixtures for session auth tests.

Provides fixtures for:
- Settings with both OAuth providers configured
- In-memory user directory and session store
- Stub OAuth clients (no network)
- Flow controller and ASGI test client
"""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from session_auth.config.settings import Settings
from session_auth.core.auth import build_auth_flow, get_auth_flow
from session_auth.core.auth.flow import AuthFlowController
from session_auth.domain.models import AuthProviderName, ProviderProfile
from session_auth.infrastructure.auth.user_store import InMemoryUserDirectory
from session_auth.infrastructure.session.store import InMemorySessionStore
from session_auth.main import app

CLIENT_URL = "http://client.test"


class StubOAuthClient:
    """Provider client returning a canned profile or failing on demand."""

    def __init__(self, provider: AuthProviderName, profile: Optional[ProviderProfile] = None):
        self.provider = provider
        self.profile = profile or ProviderProfile(
            provider=provider,
            provider_user_id=f"{provider.value}-subject-1",
            email=f"oauth.user@{provider.value}.example.com",
            name="OAuth User",
        )
        self.error: Optional[Exception] = None
        self.calls: list[tuple[str, Optional[str]]] = []

    def fail_with(self, error: Exception) -> None:
        self.error = error

    async def fetch_profile(self, code: str, state: Optional[str] = None) -> ProviderProfile:
        self.calls.append((code, state))
        if self.error:
            raise self.error
        return self.profile


@pytest.fixture
def settings() -> Settings:
    """Settings with both providers configured and cheap bcrypt."""
    return Settings(
        _env_file=None,
        storage_backend="memory",
        client_url=CLIENT_URL,
        bcrypt_rounds=4,
        oauth_providers=["google", "naver"],
        google_client_id="google-client-id",
        google_client_secret="google-client-secret",
        google_callback_url="http://api.test/api/auth/google/callback",
        naver_client_id="naver-client-id",
        naver_client_secret="naver-client-secret",
        naver_callback_url="http://api.test/api/auth/naver/callback",
    )


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(bcrypt_rounds=4)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def google_client() -> StubOAuthClient:
    return StubOAuthClient(AuthProviderName.GOOGLE)


@pytest.fixture
def naver_client() -> StubOAuthClient:
    return StubOAuthClient(AuthProviderName.NAVER)


@pytest.fixture
def flow(settings, directory, session_store, google_client, naver_client) -> AuthFlowController:
    """Flow controller wired to in-memory stores and stub provider clients."""
    return build_auth_flow(
        settings,
        directory,
        session_store,
        clients={
            AuthProviderName.GOOGLE: google_client,
            AuthProviderName.NAVER: naver_client,
        },
    )


@pytest_asyncio.fixture
async def registered_user(directory):
    """Local account: jane@example.com / secret123"""
    return await directory.create_user("jane@example.com", "secret123", "Jane Doe")


@pytest_asyncio.fixture
async def client(flow: AuthFlowController) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the flow controller overridden."""

    async def override_get_auth_flow():
        return flow

    app.dependency_overrides[get_auth_flow] = override_get_auth_flow

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_client(flow: AuthFlowController):
    """Factory for extra clients with their own cookie jars (one per browser)."""

    async def override_get_auth_flow():
        return flow

    app.dependency_overrides[get_auth_flow] = override_get_auth_flow

    def _make() -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield _make

    app.dependency_overrides.clear()


@pytest.fixture
def deactivate_user(directory: InMemoryUserDirectory):
    """Mark an account inactive, as an administrator would."""

    async def _deactivate(user_id: str) -> None:
        user = await directory.get_user(user_id)
        user.is_active = False

    return _deactivate


@pytest.fixture
def delete_user(directory: InMemoryUserDirectory):
    """Remove an account and its email/provider mappings."""

    async def _delete(user_id: str) -> None:
        user = directory._users.pop(user_id)
        directory._emails.pop(user.email, None)
        if user.provider_user_id:
            directory._provider_subjects.pop((user.provider.value, user.provider_user_id), None)

    return _delete
