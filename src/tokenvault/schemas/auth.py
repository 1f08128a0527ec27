"""Pydantic schemas for the /auth API.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from read schemas (output). Every response uses
the same envelope: {"success": true, "errors": [], "data": {...}}.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# ─── Requests ───────────────────────────────────────────

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=5)
    name: str = Field(..., min_length=2, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    password: Optional[str] = Field(None, min_length=5)


class RotateRequest(BaseModel):
    revoke_old: bool = Field(default=True, alias="revokeOld", strict=True)


class RevokeRequest(BaseModel):
    token: Optional[str] = None


# ─── Reads ──────────────────────────────────────────────

class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    name: str

    model_config = {"from_attributes": True}


class TokenRead(BaseModel):
    """A token as shown in listings — truncated, never the full string."""
    token: str
    description: str
    is_active: bool = Field(serialization_alias="isActive")
    created_at: datetime = Field(serialization_alias="createdAt")
    last_used_at: datetime = Field(serialization_alias="lastUsedAt")

    model_config = {"from_attributes": True}


class AuthData(BaseModel):
    token: str
    user: UserRead


class RotateData(AuthData):
    revoked_old_token: bool = Field(serialization_alias="revokedOldToken")


class UserData(BaseModel):
    user: UserRead


class TokenList(BaseModel):
    tokens: list[TokenRead]
    count: int


# ─── Envelopes ──────────────────────────────────────────

class AuthResponse(BaseModel):
    success: bool = True
    errors: list = []
    data: AuthData


class RotateResponse(BaseModel):
    success: bool = True
    errors: list = []
    data: RotateData


class UserResponse(BaseModel):
    success: bool = True
    errors: list = []
    data: UserData


class TokenListResponse(BaseModel):
    success: bool = True
    errors: list = []
    data: TokenList


class MessageResponse(BaseModel):
    success: bool = True
    message: str
