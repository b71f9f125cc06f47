"""Session Auth Service: local and OAuth sign-in with server-side sessions."""

__version__ = "1.0.0"
