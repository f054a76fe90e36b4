"""
Auth feature: user record repository.

The Auth Gate and AuthService only depend on the narrow `UserRepository`
protocol; `SqlUserRepository` is the SQLAlchemy-backed implementation.
"""

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ragdesk.core.exceptions import ConflictError
from ragdesk.features.auth.models import User

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: int) -> User | None: ...

    def create(
        self, *, email: str, password: str, name: str, role: str, company: str
    ) -> User: ...


class SqlUserRepository:
    """User records stored in a relational database."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def find_by_email(self, email: str) -> User | None:
        with self._session_factory() as session:
            return session.scalars(select(User).where(User.email == email)).first()

    def find_by_id(self, user_id: int) -> User | None:
        with self._session_factory() as session:
            return session.get(User, user_id)

    def create(
        self, *, email: str, password: str, name: str, role: str, company: str
    ) -> User:
        """Insert a user. `password` must already be hashed.

        Raises:
            ConflictError: If the email is already taken (unique constraint).
        """
        user = User(email=email, password=password, name=name, role=role, company=company)
        with self._session_factory() as session:
            session.add(user)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.info("Rejected duplicate user email %s", email)
                raise ConflictError("User with this email already exists") from e
            session.refresh(user)
        return user
