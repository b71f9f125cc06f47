"""Authentication API Models

Purpose: Request/response models for authentication endpoints

Request fields are optional. Presence and length are checked by the
credential validator, which answers 400 with the standard envelope.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register"""

    email: Optional[str] = Field(None, examples=["jane@example.com"])
    password: Optional[str] = Field(None, examples=["secret123"])
    name: Optional[str] = Field(None, examples=["Jane Doe"])


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login"""

    email: Optional[str] = Field(None, examples=["jane@example.com"])
    password: Optional[str] = Field(None, examples=["secret123"])


class UserPayload(BaseModel):
    """Public user information"""

    id: str
    email: str
    name: str
    provider: str


class UserData(BaseModel):
    user: UserPayload


class AuthResponse(BaseModel):
    """Standard JSON envelope for local auth endpoints"""

    success: bool
    message: Optional[str] = None
    data: Optional[UserData] = None


class AuthorizationUrlResponse(BaseModel):
    """Response for GET /api/auth/{provider}/url"""

    url: str
