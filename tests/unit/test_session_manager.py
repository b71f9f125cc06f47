"""Unit tests for SessionManager

Uses the in-memory store; store failures are simulated with AsyncMock.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from session_auth.core.exceptions import SessionError
from session_auth.domain.models import AuthProviderName, VerifiedIdentity
from session_auth.infrastructure.session.manager import SessionHandle, SessionManager
from session_auth.infrastructure.session.store import InMemorySessionStore


@pytest.fixture
def identity():
    return VerifiedIdentity(
        user_id="user-1", email="a@example.com", name="A", provider=AuthProviderName.LOCAL
    )


@pytest.fixture
def manager(session_store):
    return SessionManager(session_store, cookie_name="sid", ttl_seconds=60)


def failing_store(**failures):
    store = AsyncMock()
    for method, error in failures.items():
        getattr(store, method).side_effect = error
    return store


@pytest.mark.unit
class TestLogin:

    @pytest.mark.asyncio
    async def test_login_stores_session_and_sets_cookie(self, manager, session_store, identity):
        handle = SessionHandle()

        session = await manager.login(handle, identity)

        assert session.user_id == "user-1"
        assert handle.session_id == session.session_id
        assert handle.cookie_changes[-1].name == "sid"
        assert handle.cookie_changes[-1].value == session.session_id
        assert await session_store.get(f"session:{session.session_id}") is not None

    @pytest.mark.asyncio
    async def test_login_rotates_existing_session(self, manager, session_store, identity):
        """Edge case: a pre-existing session id is replaced, not reused"""
        handle = SessionHandle()
        first = await manager.login(handle, identity)

        second = await manager.login(handle, identity)

        assert second.session_id != first.session_id
        assert await session_store.get(f"session:{first.session_id}") is None

    @pytest.mark.asyncio
    async def test_store_failure_raises_and_sets_no_cookie(self, identity):
        manager = SessionManager(failing_store(put=SessionError("write failed")))
        handle = SessionHandle()

        with pytest.raises(SessionError):
            await manager.login(handle, identity)

        assert handle.session_id is None
        assert handle.cookie_changes == []


@pytest.mark.unit
class TestLogout:

    @pytest.mark.asyncio
    async def test_logout_deletes_entry_and_clears_cookie(self, manager, session_store, identity):
        handle = SessionHandle()
        session = await manager.login(handle, identity)

        await manager.logout(handle)

        assert await session_store.get(f"session:{session.session_id}") is None
        assert handle.cookie_changes[-1].name == "sid"
        assert handle.cookie_changes[-1].value is None
        assert await manager.current_identity(handle) is None

    @pytest.mark.asyncio
    async def test_logout_without_session_is_acknowledged(self, manager):
        handle = SessionHandle()
        await manager.logout(handle)
        assert handle.cookie_changes[-1].value is None

    @pytest.mark.asyncio
    async def test_store_failure_still_clears_cookie_and_reports(self):
        """Half-destroyed session is a failure, but cleanup is still attempted"""
        manager = SessionManager(failing_store(delete=SessionError("delete failed")))
        handle = SessionHandle(session_id="abc123456789")

        with pytest.raises(SessionError):
            await manager.logout(handle)

        assert handle.cookie_changes[-1].value is None
        assert handle.session_id is None


@pytest.mark.unit
class TestCurrentIdentity:

    @pytest.mark.asyncio
    async def test_no_cookie_is_unauthenticated(self, manager):
        assert await manager.current_identity(SessionHandle()) is None

    @pytest.mark.asyncio
    async def test_unknown_session_is_unauthenticated(self, manager):
        handle = SessionHandle(session_id="does-not-exist")

        assert await manager.current_identity(handle) is None
        assert handle.cookie_changes[-1].value is None

    @pytest.mark.asyncio
    async def test_returns_bound_identity(self, manager, identity):
        handle = SessionHandle()
        await manager.login(handle, identity)

        fresh_handle = SessionHandle(session_id=handle.session_id)
        assert await manager.current_identity(fresh_handle) == identity

    @pytest.mark.asyncio
    async def test_expired_session_is_unauthenticated(self, identity):
        store = InMemorySessionStore()
        manager = SessionManager(store, ttl_seconds=0)
        handle = SessionHandle()
        await manager.login(handle, identity)

        assert await manager.current_identity(SessionHandle(session_id=handle.session_id)) is None

    @pytest.mark.asyncio
    async def test_store_failure_raises(self):
        manager = SessionManager(failing_store(get=SessionError("read failed")))
        with pytest.raises(SessionError):
            await manager.current_identity(SessionHandle(session_id="abc123456789"))

    @pytest.mark.asyncio
    async def test_corrupt_session_record_raises(self, manager, session_store):
        """Error: a record missing its fields is a store fault, not a crash"""
        await session_store.put("session:abc123456789", {"foo": 1}, 60)

        with pytest.raises(SessionError, match="corrupt"):
            await manager.current_identity(SessionHandle(session_id="abc123456789"))


@pytest.mark.unit
class TestOAuthState:

    @pytest.mark.asyncio
    async def test_states_are_unique(self, manager):
        first = await manager.issue_oauth_state(SessionHandle(), AuthProviderName.NAVER)
        second = await manager.issue_oauth_state(SessionHandle(), AuthProviderName.NAVER)
        assert first != second
        assert len(first) >= 32

    @pytest.mark.asyncio
    async def test_valid_state_is_consumed_once(self, manager):
        issuing = SessionHandle()
        state = await manager.issue_oauth_state(issuing, AuthProviderName.GOOGLE)

        assert await manager.consume_oauth_state(
            SessionHandle(oauth_state=state), AuthProviderName.GOOGLE, state
        )
        assert not await manager.consume_oauth_state(
            SessionHandle(oauth_state=state), AuthProviderName.GOOGLE, state
        )

    @pytest.mark.asyncio
    async def test_state_without_matching_cookie_fails(self, manager):
        """Forged callback from another browser"""
        state = await manager.issue_oauth_state(SessionHandle(), AuthProviderName.GOOGLE)

        assert not await manager.consume_oauth_state(
            SessionHandle(oauth_state=None), AuthProviderName.GOOGLE, state
        )

    @pytest.mark.asyncio
    async def test_state_for_other_provider_fails(self, manager):
        state = await manager.issue_oauth_state(SessionHandle(), AuthProviderName.GOOGLE)

        assert not await manager.consume_oauth_state(
            SessionHandle(oauth_state=state), AuthProviderName.NAVER, state
        )

    @pytest.mark.asyncio
    async def test_missing_state_fails(self, manager):
        handle = SessionHandle(oauth_state="something")
        assert not await manager.consume_oauth_state(handle, AuthProviderName.GOOGLE, None)
        assert handle.cookie_changes[-1].name == "oauth_state"
        assert handle.cookie_changes[-1].value is None


@pytest.mark.unit
class TestCancellation:

    @pytest.mark.asyncio
    async def test_session_write_completes_when_request_is_cancelled(self, identity):
        """A cancelled request does not leave a partial session write behind"""
        store = InMemorySessionStore()
        started = asyncio.Event()
        release = asyncio.Event()
        original_put = store.put

        async def slow_put(key, value, ttl_seconds):
            started.set()
            await release.wait()
            await original_put(key, value, ttl_seconds)

        store.put = slow_put
        manager = SessionManager(store)

        task = asyncio.create_task(manager.login(SessionHandle(), identity))
        await started.wait()
        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)

        assert len(store) == 1
