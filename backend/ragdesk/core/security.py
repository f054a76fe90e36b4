"""
Security utilities: password hashing and the JWT token codec.

Tokens are stateless: verification only needs the shared secret, never a
lookup. A token stays valid until `exp`; there is no revocation list.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt, ExpiredSignatureError, JWTError
from jose.exceptions import JWTClaimsError
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ragdesk.config import get_settings
from ragdesk.core.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)

# ── Password Hashing ────────────────────────────────────
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ── Token Claims ─────────────────────────────────────────
class TokenClaims(BaseModel):
    """Identity carried by an access token. Immutable once issued.

    Serialized with the wire names `userId`, `email`, `role`, `iat`, `exp`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: int = Field(alias="userId")
    email: str
    role: str
    issued_at: datetime = Field(alias="iat")
    expires_at: datetime = Field(alias="exp")

    @model_validator(mode="after")
    def _expiry_after_issue(self) -> "TokenClaims":
        if self.expires_at <= self.issued_at:
            raise ValueError("exp must be later than iat")
        return self

    @classmethod
    def for_user(
        cls,
        user_id: int,
        email: str,
        role: str,
        ttl: timedelta | None = None,
        issued_at: datetime | None = None,
    ) -> "TokenClaims":
        """Build claims expiring `ttl` after `issued_at` (defaults: config TTL, now).

        JWT timestamps have one-second resolution, so `issued_at` is
        truncated to whole seconds.
        """
        if ttl is None:
            ttl = timedelta(minutes=get_settings().JWT_EXPIRY_MINUTES)
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        issued_at = (issued_at or datetime.now(timezone.utc)).replace(microsecond=0)
        return cls(
            user_id=user_id,
            email=email,
            role=role,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    def to_payload(self) -> dict:
        return {
            "userId": self.user_id,
            "email": self.email,
            "role": self.role,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }


# ── JWT Token ────────────────────────────────────────────
def issue_token(claims: TokenClaims) -> str:
    """Sign claims into a compact JWT."""
    settings = get_settings()
    return jwt.encode(
        claims.to_payload(), settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def create_access_token(user_id: int, email: str, role: str) -> str:
    """Issue a token with the configured TTL, starting now."""
    return issue_token(TokenClaims.for_user(user_id=user_id, email=email, role=role))


def verify_token(token: str) -> TokenClaims:
    """Verify signature and expiry, and return the claims.

    Raises:
        TokenMalformedError: Not a JWT, or the claims are missing/mistyped.
        TokenSignatureError: Signature (or algorithm) does not match.
        TokenExpiredError: Correctly signed, but past `exp`.
    """
    settings = get_settings()
    try:
        jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as e:
        raise TokenMalformedError(detail=str(e)) from e

    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError as e:
        raise TokenExpiredError(detail=str(e)) from e
    except JWTClaimsError as e:
        raise TokenMalformedError(detail=str(e)) from e
    except JWTError as e:
        raise TokenSignatureError(detail=str(e)) from e

    try:
        return TokenClaims.model_validate(payload)
    except ValidationError as e:
        raise TokenMalformedError(detail=str(e)) from e
