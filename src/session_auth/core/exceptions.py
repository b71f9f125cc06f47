"""Exception hierarchy for the Session Auth Service.

Validation failures and credential rejections are never raised across the
flow boundary; they travel as values (see ``core.auth.outcome``). The
exceptions below are raised by collaborators (directory, session store,
provider clients) and by configuration loading, and are translated into
outcomes or responses by the layer that calls them.
"""


class AuthServiceError(Exception):
    """Base class for all service errors."""
    pass


class ConfigurationError(AuthServiceError):
    """Missing or mismatched configuration (fatal at startup)."""
    pass


class SessionError(AuthServiceError):
    """Session store read/write/delete failed."""
    pass


class DirectoryError(AuthServiceError):
    """User directory backend failed."""
    pass


class DuplicateEmailError(AuthServiceError):
    """Email address is already registered."""

    def __init__(self, email: str):
        super().__init__(f"Email '{email}' already exists")
        self.email = email


class AuthenticationError(AuthServiceError):
    """Credentials were explicitly rejected.

    The message, when present, is safe to show to the client.
    """
    pass


class ProviderError(AuthServiceError):
    """Identity provider transport, protocol or token-exchange failure."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
