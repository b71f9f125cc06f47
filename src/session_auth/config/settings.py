"""Configuration Settings for Session Auth Service

Manages environment variables and application configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import Optional

from session_auth.core.exceptions import ConfigurationError
from session_auth.domain.models.auth import AuthProviderName, ProviderConfig


GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "session-auth-service"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Client application (redirect target after provider callbacks)
    client_url: str = "http://localhost:3000"

    # Storage backend for users and sessions: "redis" or "memory"
    storage_backend: str = "redis"

    # Redis configuration
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_socket_timeout_seconds: float = 5.0

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Session configuration
    session_cookie_name: str = "sid"
    session_ttl_seconds: int = 86400  # 24 hours
    session_cookie_secure: bool = False
    session_cookie_samesite: str = "lax"
    oauth_state_cookie_name: str = "oauth_state"
    oauth_state_ttl_seconds: int = 300  # 5 minutes

    # Password hashing
    bcrypt_rounds: int = 12

    # OAuth providers
    oauth_providers: list[str] = ["google", "naver"]
    oauth_http_timeout_seconds: float = 10.0

    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_callback_url: Optional[str] = None

    naver_client_id: Optional[str] = None
    naver_client_secret: Optional[str] = None
    naver_callback_url: Optional[str] = None

    # CORS configuration
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def enabled_providers(self) -> list[AuthProviderName]:
        """Providers switched on via OAUTH_PROVIDERS

        Raises:
            ConfigurationError: If an unknown provider name is listed
        """
        providers = []
        for name in self.oauth_providers:
            try:
                provider = AuthProviderName(name.strip().lower())
            except ValueError:
                raise ConfigurationError(f"Unknown OAuth provider: {name}")
            if provider is AuthProviderName.LOCAL:
                raise ConfigurationError("'local' is not an OAuth provider")
            providers.append(provider)
        return providers

    def provider_config(self, provider: AuthProviderName) -> ProviderConfig:
        """Build the immutable configuration for one OAuth provider

        Args:
            provider: Provider to configure

        Returns:
            ProviderConfig with client id, secret, callback URL and scopes

        Raises:
            ConfigurationError: If a required value is missing
        """
        if provider is AuthProviderName.GOOGLE:
            values = (self.google_client_id, self.google_client_secret, self.google_callback_url)
            scopes = GOOGLE_SCOPES
        elif provider is AuthProviderName.NAVER:
            values = (self.naver_client_id, self.naver_client_secret, self.naver_callback_url)
            scopes = ()
        else:
            raise ConfigurationError(f"No OAuth configuration for provider: {provider.value}")

        client_id, client_secret, callback_url = values
        if not all(values):
            prefix = provider.value.upper()
            raise ConfigurationError(
                f"{provider.value} provider requires: "
                f"{prefix}_CLIENT_ID, {prefix}_CLIENT_SECRET, {prefix}_CALLBACK_URL"
            )

        return ProviderConfig(
            provider=provider,
            client_id=client_id,
            client_secret=client_secret,
            callback_url=callback_url,
            scopes=scopes,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
