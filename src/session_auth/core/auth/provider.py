"""Abstract identity verifier interface.

Every way of establishing identity (local credentials, local registration,
each OAuth provider) is one ``IdentityVerifier`` subclass. The set is
closed: the flow controller is wired with concrete instances at startup,
never looked up by name at request time.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from session_auth.core.auth.outcome import AuthOutcome, InfrastructureError
from session_auth.domain.models import AuthProviderName

logger = logging.getLogger(__name__)


class IdentityVerifier(ABC):
    """Turns request input into an AuthOutcome.

    Implementations must not raise. Collaborator failures become
    ``InfrastructureError`` and explicit denials become ``Rejected``.
    """

    strategy: AuthProviderName

    @abstractmethod
    async def verify(self, data: Any) -> AuthOutcome:
        """Verify credentials or a provider callback payload.

        Args:
            data: Credentials (local strategies) or ProviderCallbackPayload

        Returns:
            Success, Rejected or InfrastructureError
        """
        pass

    def _infrastructure_error(self, stage: str, exc: BaseException) -> InfrastructureError:
        """Log a collaborator failure and wrap it as an outcome"""
        logger.error(
            f"{self.__class__.__name__} failed (provider: {self.strategy.value}, stage: {stage}): "
            f"{exc.__class__.__name__}: {exc}",
            exc_info=exc,
        )
        return InfrastructureError(cause=f"{exc.__class__.__name__}: {exc}", stage=stage)
