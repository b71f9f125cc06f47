"""Credential input validation for local registration and login."""

from enum import Enum

from session_auth.core.auth.outcome import Invalid, Valid, ValidationResult
from session_auth.domain.models import Credentials

MIN_PASSWORD_LENGTH = 6

REGISTER_FIELDS_REQUIRED = "Email, password, and name are required."
PASSWORD_TOO_SHORT = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
LOGIN_FIELDS_REQUIRED = "Email and password are required."


class ValidationMode(str, Enum):
    REGISTER = "register"
    LOGIN = "login"


def _blank(value) -> bool:
    return not value or not value.strip()


def validate(credentials: Credentials, mode: ValidationMode) -> ValidationResult:
    """Check presence (and, on registration, password length) of credentials.

    Login does not re-check password length; a short password simply fails
    verification.
    """
    if mode is ValidationMode.REGISTER:
        if _blank(credentials.email) or not credentials.password or _blank(credentials.name):
            return Invalid(REGISTER_FIELDS_REQUIRED)
        if len(credentials.password) < MIN_PASSWORD_LENGTH:
            return Invalid(PASSWORD_TOO_SHORT)
        return Valid()

    if _blank(credentials.email) or not credentials.password:
        return Invalid(LOGIN_FIELDS_REQUIRED)
    return Valid()
