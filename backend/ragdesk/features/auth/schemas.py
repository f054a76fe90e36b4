"""
Auth feature: Pydantic schemas for request/response models.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ── Requests ─────────────────────────────────────────────
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)
    company: str | None = None
    role: Literal["user", "admin"] = "user"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# ── Responses ────────────────────────────────────────────
class UserResponse(BaseModel):
    """Public view of a user record. Never carries the password hash."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    email: str
    role: str
    company: str
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class ProfileResponse(BaseModel):
    user: UserResponse
