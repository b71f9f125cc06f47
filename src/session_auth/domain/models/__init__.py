"""Domain models for Session Auth Service"""

from session_auth.domain.models.api_auth import (
    AuthorizationUrlResponse,
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserData,
    UserPayload,
)
from session_auth.domain.models.auth import (
    AuthProviderName,
    Credentials,
    ProviderCallbackPayload,
    ProviderConfig,
    ProviderProfile,
    Session,
    UserRecord,
    VerifiedIdentity,
    parse_utc_timestamp,
    to_json_compatible,
)

__all__ = [
    # Auth models
    "AuthProviderName",
    "Credentials",
    "ProviderCallbackPayload",
    "ProviderConfig",
    "ProviderProfile",
    "Session",
    "UserRecord",
    "VerifiedIdentity",
    "parse_utc_timestamp",
    "to_json_compatible",
    # API models
    "RegisterRequest",
    "LoginRequest",
    "UserPayload",
    "UserData",
    "AuthResponse",
    "AuthorizationUrlResponse",
]
