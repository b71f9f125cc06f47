"""Authentication flow core.

Establishes identity via pluggable verifiers:
- local: Email/password against the user directory
- google, naver: OAuth 2.0 authorization-code flows
"""

from .flow import AuthFlowController, FlowState, JsonResult, RedirectResult
from .factory import build_auth_flow, get_auth_flow, reset_auth_flow
from .outcome import AuthOutcome, InfrastructureError, Rejected, Success
from .provider import IdentityVerifier

__all__ = [
    "AuthFlowController",
    "AuthOutcome",
    "FlowState",
    "IdentityVerifier",
    "InfrastructureError",
    "JsonResult",
    "RedirectResult",
    "Rejected",
    "Success",
    "build_auth_flow",
    "get_auth_flow",
    "reset_auth_flow",
]
