"""
Auth feature: API routes.
"""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ragdesk.core.auth_gate import AuthenticatedUser
from ragdesk.core.dependencies import get_current_user, get_users
from ragdesk.features.auth.repository import UserRepository
from ragdesk.features.auth.schemas import (
    RegisterRequest,
    LoginRequest,
    AuthResponse,
    ProfileResponse,
)
from ragdesk.features.auth.service import AuthService

router = APIRouter()


@router.post("/register", response_model=AuthResponse)
async def register(data: RegisterRequest, users: UserRepository = Depends(get_users)):
    """Create an account and return a token for it."""
    service = AuthService(users)
    return await run_in_threadpool(service.register, data)


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, users: UserRepository = Depends(get_users)):
    """Exchange email and password for a token."""
    service = AuthService(users)
    return await run_in_threadpool(service.login, data)


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    current: AuthenticatedUser = Depends(get_current_user),
    users: UserRepository = Depends(get_users),
):
    service = AuthService(users)
    return {"user": await run_in_threadpool(service.get_profile, current.id)}


@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(
    current: AuthenticatedUser = Depends(get_current_user),
    users: UserRepository = Depends(get_users),
):
    """Issue a new token with a fresh expiry.

    The old token is not revoked; it stays valid until its own `exp`.
    """
    service = AuthService(users)
    return await run_in_threadpool(service.refresh, current.id)
