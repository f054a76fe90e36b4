"""
Auth Gate: token extraction, authentication, authorization and path gating.

Paths fall into three classes:
  PUBLIC     always passes.
  AUTH_ONLY  login/register pages; an authenticated caller is redirected home.
  PROTECTED  everything else; unauthenticated pages redirect to the login
             page, unauthenticated API calls get 401.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import HTTPConnection, Request
from starlette.responses import RedirectResponse, Response

from ragdesk.core.exceptions import AuthError, error_response
from ragdesk.core.security import verify_token
from ragdesk.features.auth.repository import UserRepository

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
LOGIN_PATH = "/login"
HOME_PATH = "/chat"


@dataclass(frozen=True)
class AuthenticatedUser:
    id: int
    email: str
    role: str


class PathClass(str, Enum):
    PUBLIC = "public"
    AUTH_ONLY = "auth_only"
    PROTECTED = "protected"


PUBLIC_PATHS = frozenset({"/", "/health", "/docs", "/docs/oauth2-redirect", "/redoc", "/openapi.json"})
AUTH_ONLY_PATHS = frozenset({"/login", "/register"})
PUBLIC_API_ROUTES = ("/auth/login", "/auth/register")


def is_api_path(path: str, api_prefix: str = "/api") -> bool:
    return path == api_prefix or path.startswith(api_prefix.rstrip("/") + "/")


def classify_path(path: str, api_prefix: str = "/api") -> PathClass:
    if path in PUBLIC_PATHS:
        return PathClass.PUBLIC
    if path in {api_prefix.rstrip("/") + route for route in PUBLIC_API_ROUTES}:
        return PathClass.PUBLIC
    if path in AUTH_ONLY_PATHS:
        return PathClass.AUTH_ONLY
    return PathClass.PROTECTED


def extract_token(conn: HTTPConnection) -> str | None:
    """Bearer token from the Authorization header, else the `token` cookie."""
    auth_header = conn.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token

    return conn.cookies.get(TOKEN_COOKIE) or None


def authenticate(token: str, users: UserRepository) -> AuthenticatedUser | None:
    """Verify the token and confirm its subject still exists.

    A deleted user's tokens stop working even though they are not expired.
    """
    try:
        claims = verify_token(token)
    except AuthError as e:
        logger.debug("Rejected token: %s (%s)", e.message, e.detail)
        return None

    user = users.find_by_id(claims.user_id)
    if user is None:
        logger.info("Token subject %s no longer exists", claims.user_id)
        return None

    return AuthenticatedUser(id=claims.user_id, email=claims.email, role=claims.role)


def authorize(user: AuthenticatedUser, required_role: str) -> bool:
    return user.role == required_role


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Gate every request by path class.

    Reads the user repository from `app.state.users` and forwards the
    resolved user on `request.state.user`.
    """

    def __init__(self, app, api_prefix: str = "/api", login_path: str = LOGIN_PATH, home_path: str = HOME_PATH):
        super().__init__(app)
        self.api_prefix = api_prefix
        self.login_path = login_path
        self.home_path = home_path

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        path_class = classify_path(path, self.api_prefix)

        if path_class is PathClass.PUBLIC or request.method == "OPTIONS":
            return await call_next(request)

        user = None
        token = extract_token(request)
        if token:
            user = await run_in_threadpool(authenticate, token, request.app.state.users)

        if path_class is PathClass.AUTH_ONLY:
            if user is not None:
                return RedirectResponse(self.home_path)
            return await call_next(request)

        if user is None:
            if is_api_path(path, self.api_prefix):
                return error_response(401, "Authentication required")
            return RedirectResponse(self.login_path)

        request.state.user = user
        return await call_next(request)
