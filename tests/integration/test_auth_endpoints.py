"""
Integration tests for the local authentication endpoints.
"""

import asyncio

import pytest
from httpx import AsyncClient

JANE = {"email": "jane@example.com", "password": "secret123", "name": "Jane Doe"}


@pytest.mark.integration
class TestRegisterEndpoint:
    """Test POST /api/auth/register endpoint."""

    @pytest.mark.asyncio
    async def test_register_success(self, client: AsyncClient):
        """Test registration creates the account and logs it in."""
        response = await client.post("/api/auth/register", json=JANE)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Registration completed."
        assert data["data"]["user"]["email"] == "jane@example.com"
        assert data["data"]["user"]["name"] == "Jane Doe"
        assert data["data"]["user"]["provider"] == "local"
        assert "password" not in data["data"]["user"]

        assert "sid" in client.cookies
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie

        me = await client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["data"]["user"]["id"] == data["data"]["user"]["id"]

    @pytest.mark.asyncio
    async def test_register_missing_fields(self, client: AsyncClient):
        """Test registration without a name is rejected and starts no session."""
        response = await client.post(
            "/api/auth/register", json={"email": "a@example.com", "password": "secret123"}
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Email, password, and name are required.",
        }
        assert "sid" not in client.cookies

    @pytest.mark.asyncio
    async def test_register_without_body(self, client: AsyncClient):
        response = await client.post("/api/auth/register")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_wrongly_typed_field(self, client: AsyncClient):
        """Test a non-string email gets the error envelope, not a validation dump."""
        response = await client.post(
            "/api/auth/register", json={"email": 123, "password": "secret123", "name": "X"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid request body."}
        assert "sid" not in client.cookies

    @pytest.mark.asyncio
    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register", json={**JANE, "password": "12345"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at least 6 characters."

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, registered_user):
        """Test registering an email twice."""
        response = await client.post(
            "/api/auth/register", json={**JANE, "email": "JANE@example.com"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Email is already registered."
        assert "sid" not in client.cookies


@pytest.mark.integration
class TestLoginEndpoint:
    """Test POST /api/auth/login endpoint."""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, registered_user):
        """Test successful login with correct credentials."""
        response = await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Logged in."
        assert data["data"]["user"]["id"] == registered_user.user_id
        assert "sid" in client.cookies

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, registered_user):
        """Test login with incorrect password."""
        response = await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "wrongpassword"}
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid email or password."}
        assert "sid" not in client.cookies

    @pytest.mark.asyncio
    async def test_login_nonexistent_user(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_missing_password(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"email": "jane@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Email and password are required."

    @pytest.mark.asyncio
    async def test_login_unparseable_body(self, client: AsyncClient, registered_user):
        response = await client.post(
            "/api/auth/login",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid request body."}
        assert "secret" not in response.text

    @pytest.mark.asyncio
    async def test_login_inactive_user(self, client: AsyncClient, deactivate_user, registered_user):
        await deactivate_user(registered_user.user_id)

        response = await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "User account is inactive."

    @pytest.mark.asyncio
    async def test_login_replaces_previous_session(self, client: AsyncClient, registered_user):
        """Test a second login rotates the session id."""
        await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        )
        first_sid = client.cookies["sid"]

        await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        )

        assert client.cookies["sid"] != first_sid


@pytest.mark.integration
class TestMeAndLogout:
    """Test GET /api/auth/me and POST /api/auth/logout endpoints."""

    @pytest.mark.asyncio
    async def test_me_without_session(self, client: AsyncClient):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Login required."}

    @pytest.mark.asyncio
    async def test_me_with_unknown_session(self, client: AsyncClient):
        client.cookies.set("sid", "not-a-real-session")

        response = await client.get("/api/auth/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_ends_session(self, client: AsyncClient, registered_user):
        await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "secret123"}
        )
        old_sid = client.cookies["sid"]

        response = await client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out."}
        assert "sid" not in client.cookies

        # The old session id no longer authenticates
        client.cookies.set("sid", old_sid)
        me = await client.get("/api/auth/me")
        assert me.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_session(self, client: AsyncClient):
        response = await client.post("/api/auth/logout")
        assert response.status_code == 200


@pytest.mark.integration
class TestConcurrentSessions:
    """Sessions of concurrent requests never cross."""

    @pytest.mark.asyncio
    async def test_concurrent_logins_stay_isolated(self, make_client, directory):
        users = [
            await directory.create_user(f"user{i}@example.com", "secret123", f"User {i}")
            for i in range(5)
        ]
        clients = [make_client() for _ in users]

        try:
            await asyncio.gather(
                *(
                    c.post(
                        "/api/auth/login",
                        json={"email": u.email, "password": "secret123"},
                    )
                    for c, u in zip(clients, users)
                )
            )
            responses = await asyncio.gather(*(c.get("/api/auth/me") for c in clients))
        finally:
            for c in clients:
                await c.aclose()

        for response, user in zip(responses, users):
            assert response.status_code == 200
            assert response.json()["data"]["user"]["id"] == user.user_id


@pytest.mark.integration
class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["providers"] == ["google", "naver"]

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"
