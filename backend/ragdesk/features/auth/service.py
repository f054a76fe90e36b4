"""
Auth feature: Business logic for user registration, login and token refresh.
"""

import logging

from ragdesk.core.exceptions import AuthError, ConflictError
from ragdesk.core.security import hash_password, verify_password, create_access_token
from ragdesk.features.auth.models import User
from ragdesk.features.auth.repository import UserRepository
from ragdesk.features.auth.schemas import RegisterRequest, LoginRequest, UserResponse

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Handles user authentication."""

    def __init__(self, users: UserRepository):
        self.users = users

    def _session_for(self, user: User) -> dict:
        token = create_access_token(user.id, user.email, user.role)
        return {"token": token, "user": UserResponse.model_validate(user)}

    def register(self, data: RegisterRequest) -> dict:
        """Register a new user.

        Returns:
            dict with token and user data.

        Raises:
            ConflictError: If email already exists.
        """
        email = data.email.lower()
        if self.users.find_by_email(email):
            raise ConflictError("User with this email already exists")

        user = self.users.create(
            email=email,
            password=hash_password(data.password),
            name=data.name,
            role=data.role,
            company=data.company or "N/A",
        )
        logger.info("Registered user %s (id=%s, role=%s)", user.email, user.id, user.role)
        return self._session_for(user)

    def login(self, data: LoginRequest) -> dict:
        """Authenticate user and return a fresh token.

        Raises:
            AuthError: If credentials are invalid.
        """
        user = self.users.find_by_email(data.email.lower())
        if user is None or not verify_password(data.password, user.password):
            logger.info("Failed login for %s", data.email)
            raise AuthError(INVALID_CREDENTIALS)
        return self._session_for(user)

    def refresh(self, user_id: int) -> dict:
        """Issue a new token for a user that still exists."""
        user = self.users.find_by_id(user_id)
        if user is None:
            raise AuthError("Account no longer exists")
        return self._session_for(user)

    def get_profile(self, user_id: int) -> UserResponse:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise AuthError("Account no longer exists")
        return UserResponse.model_validate(user)
