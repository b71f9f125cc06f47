"""Local identity verifiers (email/password).

- LocalCredentialsVerifier: checks credentials against the user directory
- LocalRegistrationVerifier: creates the account, yielding its identity
"""

import logging

from session_auth.core.auth.outcome import AuthOutcome, Rejected, Success
from session_auth.core.auth.provider import IdentityVerifier
from session_auth.core.exceptions import AuthenticationError, DuplicateEmailError
from session_auth.domain.models import AuthProviderName, Credentials
from session_auth.infrastructure.auth.user_store import UserDirectory

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Login failed."
EMAIL_ALREADY_REGISTERED = "Email is already registered."


class LocalCredentialsVerifier(IdentityVerifier):
    """Email/password login against the user directory"""

    strategy = AuthProviderName.LOCAL

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def verify(self, data: Credentials) -> AuthOutcome:
        try:
            user = await self.directory.authenticate(data.email, data.password)
        except AuthenticationError as e:
            return Rejected(str(e) or LOGIN_FAILED)
        except Exception as e:
            return self._infrastructure_error("authenticate", e)

        logger.info(f"User authenticated successfully: {user.email} ({user.user_id})")
        return Success(user.to_identity())


class LocalRegistrationVerifier(IdentityVerifier):
    """Creates a local account; the new account is the verified identity"""

    strategy = AuthProviderName.LOCAL

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def verify(self, data: Credentials) -> AuthOutcome:
        try:
            user = await self.directory.create_user(
                email=data.email,
                password=data.password,
                name=data.name,
            )
        except DuplicateEmailError:
            logger.warning(f"Registration rejected: email already registered ({data.email})")
            return Rejected(EMAIL_ALREADY_REGISTERED)
        except Exception as e:
            return self._infrastructure_error("create_user", e)

        return Success(user.to_identity())
