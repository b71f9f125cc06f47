"""User Directory

Purpose: Store user accounts and check credentials

Provides the user directory consumed by the identity verifiers. It owns
password hashing, email uniqueness and the mapping from OAuth provider
subjects to local accounts.

Key Features:
- Atomic email uniqueness on creation
- bcrypt password hashing (off the event loop)
- Provider subject -> user lookup for OAuth sign-in
- Redis backend for deployments, in-memory backend for development/tests

Storage Schema (Redis):
- auth:user:{user_id} -> {user_json}
- auth:email:{email} -> {user_id}
- auth:provider:{provider}:{provider_user_id} -> {user_id}
"""

import asyncio
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

import bcrypt
from redis.asyncio import Redis
from redis.exceptions import RedisError

from session_auth.core.exceptions import (
    AuthenticationError,
    DirectoryError,
    DuplicateEmailError,
)
from session_auth.domain.models import AuthProviderName, ProviderProfile, UserRecord

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
INACTIVE_ACCOUNT_MESSAGE = "User account is inactive."


class UserDirectory(ABC):
    """User directory contract

    Backends implement the storage primitives; credential checks and
    OAuth account resolution are shared.
    """

    def __init__(self, bcrypt_rounds: int = 12):
        """Initialize user directory

        Args:
            bcrypt_rounds: bcrypt cost factor for new password hashes
        """
        self.bcrypt_rounds = bcrypt_rounds
        self.email_pattern = re.compile(r"^[^@]+@[^@]+\.[^@]+$")

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Get user by ID

        Raises:
            DirectoryError: If the backend fails
        """

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Get user by email address

        Raises:
            DirectoryError: If the backend fails
        """

    @abstractmethod
    async def get_user_by_provider(
        self, provider: AuthProviderName, provider_user_id: str
    ) -> Optional[UserRecord]:
        """Get user linked to an OAuth provider subject

        Raises:
            DirectoryError: If the backend fails
        """

    @abstractmethod
    async def _insert(self, user: UserRecord) -> None:
        """Persist a new user, claiming its email atomically

        Raises:
            DuplicateEmailError: If the email is already claimed
            DirectoryError: If the backend fails
        """

    async def create_user(self, email: str, password: str, name: str) -> UserRecord:
        """Create a local user account

        Args:
            email: User email address
            password: Plain text password
            name: Display name

        Returns:
            Created UserRecord

        Raises:
            DuplicateEmailError: If the email is already registered
            DirectoryError: If the backend fails
        """
        email = email.strip().lower()
        password_hash = await asyncio.to_thread(self._hash_password, password)

        user = UserRecord(
            user_id=str(uuid.uuid4()),
            email=email,
            name=name.strip(),
            created_at=datetime.now(timezone.utc),
            provider=AuthProviderName.LOCAL,
            password_hash=password_hash,
        )
        await self._insert(user)

        logger.info(f"Created user {user.user_id} with email '{email}'")
        return user

    async def authenticate(self, email: str, password: str) -> UserRecord:
        """Check email/password credentials

        Args:
            email: User email address
            password: Plain text password

        Returns:
            The matching UserRecord

        Raises:
            AuthenticationError: If the credentials are rejected
            DirectoryError: If the backend fails
        """
        user = await self.get_user_by_email(email.strip().lower())
        if not user or not user.password_hash:
            logger.warning(f"Login failed: User not found (email: {email})")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        matches = await asyncio.to_thread(self._check_password, password, user.password_hash)
        if not matches:
            logger.warning(f"Login failed: Invalid password (email: {email})")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            logger.warning(f"Login failed: User inactive (email: {email})")
            raise AuthenticationError(INACTIVE_ACCOUNT_MESSAGE)

        return user

    async def find_or_create_oauth_user(self, profile: ProviderProfile) -> UserRecord:
        """Resolve the local account for a provider profile, creating it on first sign-in

        Args:
            profile: Profile returned by the provider after code exchange

        Returns:
            Linked or newly created UserRecord

        Raises:
            AuthenticationError: If no account can be linked or created
            DirectoryError: If the backend fails
        """
        user = await self.get_user_by_provider(profile.provider, profile.provider_user_id)
        if user:
            if not user.is_active:
                raise AuthenticationError("account_inactive")
            return user

        email = (profile.email or "").strip().lower()
        if email and not self._validate_email(email):
            raise AuthenticationError("invalid_email")

        user = UserRecord(
            user_id=str(uuid.uuid4()),
            email=email,
            name=profile.name or email.split("@")[0],
            created_at=datetime.now(timezone.utc),
            provider=profile.provider,
            provider_user_id=profile.provider_user_id,
        )
        try:
            await self._insert(user)
        except DuplicateEmailError:
            logger.warning(
                f"{profile.provider.value} sign-in rejected: "
                f"email '{email}' belongs to another account"
            )
            raise AuthenticationError("account_exists")

        logger.info(f"Created {profile.provider.value} user {user.user_id} ('{email}')")
        return user

    def _validate_email(self, email: str) -> bool:
        """Validate email format"""
        return bool(email and self.email_pattern.match(email))

    def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is malformed")
            return False


class RedisUserDirectory(UserDirectory):
    """Redis-backed user directory"""

    def __init__(self, redis_client: Redis, bcrypt_rounds: int = 12):
        """Initialize user directory

        Args:
            redis_client: Redis connection for user storage
            bcrypt_rounds: bcrypt cost factor
        """
        super().__init__(bcrypt_rounds=bcrypt_rounds)
        self.redis = redis_client

        # Redis key patterns
        self.user_key_pattern = "auth:user:{}"
        self.email_key_pattern = "auth:email:{}"
        self.provider_key_pattern = "auth:provider:{}:{}"

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        if not user_id:
            return None

        user_data = await self._redis_get(self.user_key_pattern.format(user_id))
        if not user_data:
            return None

        return self._decode_user(user_id, user_data)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        if not email:
            return None

        user_id = await self._redis_get(self.email_key_pattern.format(email.lower()))
        if not user_id:
            return None

        return await self.get_user(user_id)

    async def get_user_by_provider(
        self, provider: AuthProviderName, provider_user_id: str
    ) -> Optional[UserRecord]:
        if not provider_user_id:
            return None

        user_id = await self._redis_get(
            self.provider_key_pattern.format(provider.value, provider_user_id)
        )
        if not user_id:
            return None

        return await self.get_user(user_id)

    async def _insert(self, user: UserRecord) -> None:
        email_key = self.email_key_pattern.format(user.email) if user.email else None
        user_key = self.user_key_pattern.format(user.user_id)
        written: list[str] = []

        try:
            if email_key:
                # SET NX claims the email; a concurrent registration loses here
                claimed = await self.redis.set(email_key, user.user_id, nx=True)
                if not claimed:
                    raise DuplicateEmailError(user.email)
                written.append(email_key)

            await self.redis.set(user_key, json.dumps(user.to_dict()))
            written.append(user_key)

            if user.provider_user_id:
                await self.redis.set(
                    self.provider_key_pattern.format(user.provider.value, user.provider_user_id),
                    user.user_id,
                )
        except RedisError as e:
            logger.error(f"Failed to store user {user.user_id}: {e}")
            await self._release(user.user_id, written)
            raise DirectoryError(f"User creation failed: {e}") from e

    async def _release(self, user_id: str, keys: list[str]) -> None:
        """Remove the keys of a partially stored user so its email can be claimed again"""
        if not keys:
            return
        try:
            await self.redis.delete(*keys)
        except RedisError as e:
            logger.error(f"Failed to release keys of partially stored user {user_id}: {e}")

    def _decode_user(self, user_id: str, user_data: str) -> UserRecord:
        try:
            return UserRecord.from_dict(json.loads(user_data))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupt user record {user_id}: {e!r}")
            raise DirectoryError(f"User record is corrupt: {e!r}") from e

    async def _redis_get(self, key: str) -> Optional[str]:
        """Get Redis key value"""
        try:
            result = await self.redis.get(key)
            return result if result else None
        except RedisError as e:
            logger.error(f"Redis GET failed for key {key}: {e}")
            raise DirectoryError(f"User lookup failed: {e}") from e


class InMemoryUserDirectory(UserDirectory):
    """In-process user directory

    Only valid for single-instance deployments and tests.
    """

    def __init__(self, bcrypt_rounds: int = 12):
        super().__init__(bcrypt_rounds=bcrypt_rounds)
        self._users: Dict[str, UserRecord] = {}
        self._emails: Dict[str, str] = {}
        self._provider_subjects: Dict[tuple[str, str], str] = {}
        self._lock = asyncio.Lock()

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        async with self._lock:
            return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        if not email:
            return None
        async with self._lock:
            user_id = self._emails.get(email.lower())
            return self._users.get(user_id) if user_id else None

    async def get_user_by_provider(
        self, provider: AuthProviderName, provider_user_id: str
    ) -> Optional[UserRecord]:
        async with self._lock:
            user_id = self._provider_subjects.get((provider.value, provider_user_id))
            return self._users.get(user_id) if user_id else None

    async def _insert(self, user: UserRecord) -> None:
        async with self._lock:
            if user.email and user.email in self._emails:
                raise DuplicateEmailError(user.email)

            self._users[user.user_id] = user
            if user.email:
                self._emails[user.email] = user.user_id
            if user.provider_user_id:
                self._provider_subjects[(user.provider.value, user.provider_user_id)] = user.user_id
