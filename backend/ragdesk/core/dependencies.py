"""
FastAPI dependency injection functions.

Long-lived collaborators are built once in the app lifespan and stored on
`app.state`; these dependencies hand them to routes.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette.concurrency import run_in_threadpool

from ragdesk.core.auth_gate import AuthenticatedUser, authenticate, authorize, extract_token
from ragdesk.core.exceptions import AuthError, ForbiddenError
from ragdesk.features.auth.repository import UserRepository

# Bearer token scheme for Swagger UI. Extraction itself also accepts the cookie.
bearer_scheme = HTTPBearer(auto_error=False)


def get_users(request: Request) -> UserRepository:
    """Dependency: the user record repository."""
    return request.app.state.users


def get_ingestion_service(request: Request):
    return request.app.state.ingestion


def get_rag_service(request: Request):
    return request.app.state.rag


def get_vector_index(request: Request):
    return request.app.state.vector_index


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    users: UserRepository = Depends(get_users),
) -> AuthenticatedUser:
    """Dependency: the authenticated caller.

    Reuses the user resolved by AuthGateMiddleware when it ran.

    Raises:
        AuthError: If no valid token is present or its subject was deleted.
    """
    user = getattr(request.state, "user", None)
    if isinstance(user, AuthenticatedUser):
        return user

    token = extract_token(request)
    if token is None:
        raise AuthError()

    user = await run_in_threadpool(authenticate, token, users)
    if user is None:
        raise AuthError()
    return user


def require_role(role: str):
    """Dependency factory: the caller must hold `role`.

    Not attached to any route yet.
    """

    async def _check(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if not authorize(user, role):
            raise ForbiddenError(f"{role.capitalize()} access required")
        return user

    return _check
