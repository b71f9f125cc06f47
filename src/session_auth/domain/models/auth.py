"""Authentication Data Models

Purpose: Define data structures for users, identities and sessions

Key Components:
- AuthProviderName: Closed set of identity sources (local + OAuth providers)
- UserRecord: A stored user account owned by the user directory
- VerifiedIdentity: Immutable result of a successful verification
- Session: Server-side record bound to the session cookie
- ProviderConfig: Immutable per-provider OAuth configuration
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


def parse_utc_timestamp(timestamp_str: str) -> datetime:
    """Parse UTC timestamp string to datetime object"""
    if isinstance(timestamp_str, datetime):
        return timestamp_str
    return datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))


def to_json_compatible(value):
    """Convert datetime to JSON-compatible ISO format string"""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class AuthProviderName(str, Enum):
    """Where an identity was verified"""
    LOCAL = "local"
    GOOGLE = "google"
    NAVER = "naver"


@dataclass(frozen=True)
class Credentials:
    """Local credentials submitted with register/login requests"""
    email: Optional[str]
    password: Optional[str]
    name: Optional[str] = None


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity produced by an identity verifier

    Attributes:
        user_id: Directory user identifier
        email: User email address
        name: Display name
        provider: Where the identity was verified
    """
    user_id: str
    email: str
    name: str
    provider: AuthProviderName

    def to_public_dict(self) -> dict:
        """User payload returned to API clients"""
        return {
            "id": self.user_id,
            "email": self.email,
            "name": self.name,
            "provider": self.provider.value,
        }


@dataclass
class UserRecord:
    """User account

    Attributes:
        user_id: Unique identifier (UUID format)
        email: User email address (unique)
        name: Display name
        created_at: Account creation timestamp
        provider: Account origin (local, google, naver)
        provider_user_id: Subject identifier at the OAuth provider
        password_hash: bcrypt hash (local accounts only)
        is_active: Account active status
    """
    user_id: str
    email: str
    name: str
    created_at: datetime
    provider: AuthProviderName = AuthProviderName.LOCAL
    provider_user_id: Optional[str] = None
    password_hash: Optional[str] = None
    is_active: bool = True

    def to_identity(self) -> VerifiedIdentity:
        return VerifiedIdentity(
            user_id=self.user_id,
            email=self.email,
            name=self.name,
            provider=self.provider,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "created_at": to_json_compatible(self.created_at),
            "provider": self.provider.value,
            "provider_user_id": self.provider_user_id,
            "password_hash": self.password_hash,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'UserRecord':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            user_id=data["user_id"],
            email=data["email"],
            name=data["name"],
            created_at=parse_utc_timestamp(data["created_at"]),
            provider=AuthProviderName(data.get("provider", "local")),
            provider_user_id=data.get("provider_user_id"),
            password_hash=data.get("password_hash"),
            is_active=data.get("is_active", True),
        )


@dataclass(frozen=True)
class Session:
    """Server-side session bound to one user

    Attributes:
        session_id: Opaque identifier carried in the session cookie
        user_id: The single user this session belongs to
        email: Email at login time
        name: Display name at login time
        provider: How the user signed in
        created_at: Session creation timestamp
    """
    session_id: str
    user_id: str
    email: str
    name: str
    provider: AuthProviderName
    created_at: datetime

    @property
    def identity(self) -> VerifiedIdentity:
        return VerifiedIdentity(
            user_id=self.user_id,
            email=self.email,
            name=self.name,
            provider=self.provider,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "provider": self.provider.value,
            "created_at": to_json_compatible(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Session':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            email=data["email"],
            name=data["name"],
            provider=AuthProviderName(data["provider"]),
            created_at=parse_utc_timestamp(data["created_at"]),
        )


@dataclass(frozen=True)
class ProviderConfig:
    """OAuth client registration for one provider

    Loaded once at startup; a builder or client never reads the
    environment itself.
    """
    provider: AuthProviderName
    client_id: str
    client_secret: str
    callback_url: str
    scopes: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ProviderCallbackPayload:
    """Query parameters delivered to a provider callback"""
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


@dataclass(frozen=True)
class ProviderProfile:
    """User profile resolved by a provider client after code exchange"""
    provider: AuthProviderName
    provider_user_id: str
    email: str
    name: str
