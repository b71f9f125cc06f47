"""Authentication Routes

Purpose: FastAPI routes for session-based authentication

Key Endpoints:
- POST /api/auth/register: Create account and log in
- POST /api/auth/login: Email/password login
- POST /api/auth/logout: Destroy session
- GET /api/auth/me: Current user
- GET /api/auth/{google,naver}/url: Provider authorization URL
- GET /api/auth/{google,naver}/callback: Provider callback (redirects)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.responses import Response

from session_auth.core.auth import AuthFlowController, JsonResult, get_auth_flow
from session_auth.core.auth.flow import FlowResult
from session_auth.domain.models import (
    AuthProviderName,
    Credentials,
    LoginRequest,
    ProviderCallbackPayload,
    RegisterRequest,
)
from session_auth.infrastructure.session.manager import SessionHandle

router = APIRouter(prefix="/api/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


# ============================================================================
# Helper Functions
# ============================================================================

def render(result: FlowResult, handle: SessionHandle, flow: AuthFlowController) -> Response:
    """Turn a flow result into a response carrying the handle's cookie changes"""
    if isinstance(result, JsonResult):
        response = JSONResponse(status_code=result.status_code, content=result.body)
    else:
        response = RedirectResponse(url=result.location, status_code=result.status_code)
    return flow.sessions.apply_cookies(handle, response)


async def _provider_url(
    request: Request, flow: AuthFlowController, provider: AuthProviderName
) -> Response:
    handle = flow.sessions.handle_from_cookies(request.cookies)
    result = await flow.authorization_url(handle, provider)
    return render(result, handle, flow)


async def _provider_callback(
    request: Request,
    flow: AuthFlowController,
    provider: AuthProviderName,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    error_description: Optional[str],
) -> Response:
    handle = flow.sessions.handle_from_cookies(request.cookies)
    payload = ProviderCallbackPayload(
        code=code, state=state, error=error, error_description=error_description
    )
    result = await flow.callback(handle, provider, payload)
    return render(result, handle, flow)


# ============================================================================
# Local Endpoints
# ============================================================================

@router.post("/register")
async def register(
    request: Request,
    body: Optional[RegisterRequest] = None,
    flow: AuthFlowController = Depends(get_auth_flow),
):
    """Register a local account and start a session.

    Returns:
        201 with the new user, 400 on invalid input or duplicate email
    """
    body = body or RegisterRequest()
    handle = flow.sessions.handle_from_cookies(request.cookies)
    result = await flow.register(
        handle, Credentials(email=body.email, password=body.password, name=body.name)
    )
    return render(result, handle, flow)


@router.post("/login")
async def login(
    request: Request,
    body: Optional[LoginRequest] = None,
    flow: AuthFlowController = Depends(get_auth_flow),
):
    """Log in with email and password.

    Returns:
        200 with the user, 401 on rejected credentials
    """
    body = body or LoginRequest()
    handle = flow.sessions.handle_from_cookies(request.cookies)
    result = await flow.login(handle, Credentials(email=body.email, password=body.password))
    return render(result, handle, flow)


@router.post("/logout")
async def logout(request: Request, flow: AuthFlowController = Depends(get_auth_flow)):
    """Destroy the current session and clear its cookie."""
    handle = flow.sessions.handle_from_cookies(request.cookies)
    result = await flow.logout(handle)
    return render(result, handle, flow)


@router.get("/me")
async def me(request: Request, flow: AuthFlowController = Depends(get_auth_flow)):
    """Get the user bound to the current session.

    Returns:
        200 with the user, 401 when not logged in
    """
    handle = flow.sessions.handle_from_cookies(request.cookies)
    result = await flow.me(handle)
    return render(result, handle, flow)


# ============================================================================
# Provider Endpoints
# ============================================================================

@router.get("/google/url")
async def google_url(request: Request, flow: AuthFlowController = Depends(get_auth_flow)):
    """Google authorization URL (sets the OAuth state cookie)."""
    return await _provider_url(request, flow, AuthProviderName.GOOGLE)


@router.get("/naver/url")
async def naver_url(request: Request, flow: AuthFlowController = Depends(get_auth_flow)):
    """Naver authorization URL (sets the OAuth state cookie)."""
    return await _provider_url(request, flow, AuthProviderName.NAVER)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="CSRF protection state"),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    flow: AuthFlowController = Depends(get_auth_flow),
):
    """Google OAuth callback; always redirects to the client application."""
    return await _provider_callback(
        request, flow, AuthProviderName.GOOGLE, code, state, error, error_description
    )


@router.get("/naver/callback")
async def naver_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from Naver"),
    state: Optional[str] = Query(None, description="CSRF protection state"),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    flow: AuthFlowController = Depends(get_auth_flow),
):
    """Naver OAuth callback; always redirects to the client application."""
    return await _provider_callback(
        request, flow, AuthProviderName.NAVER, code, state, error, error_description
    )
