"""Outcome values returned across the verification and validation boundaries.

Verifiers never raise: every path ends in exactly one of ``Success``,
``Rejected`` or ``InfrastructureError``. Validation likewise returns
``Valid`` or ``Invalid``.
"""

from dataclasses import dataclass
from typing import Union

from session_auth.domain.models import VerifiedIdentity


@dataclass(frozen=True)
class Success:
    """Identity verified"""
    identity: VerifiedIdentity


@dataclass(frozen=True)
class Rejected:
    """Identity explicitly denied; ``reason`` is safe to show to the client"""
    reason: str


@dataclass(frozen=True)
class InfrastructureError:
    """A collaborator failed; ``cause`` is for logs only"""
    cause: str
    stage: str


AuthOutcome = Union[Success, Rejected, InfrastructureError]


@dataclass(frozen=True)
class Valid:
    pass


@dataclass(frozen=True)
class Invalid:
    """Input rejected before verification; ``reason`` is the client message"""
    reason: str


ValidationResult = Union[Valid, Invalid]
