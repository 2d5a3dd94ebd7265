"""Signed bearer tokens carrying a user id and an absolute expiry."""

import secrets
from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from sessionguard.utils import now


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidTokenSignatureError(TokenError):
    """Token is malformed, tampered with, or signed with another key."""


class TokenExpiredError(TokenError):
    """Token signature is valid but its expiry has passed."""


class TokenClaims(BaseModel):
    """Claims recovered from a verified token."""

    user_id: UUID
    expires_at: datetime


class TokenCodec:
    """Issues and verifies HS256 JWTs with a key injected at construction."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    def __repr__(self) -> str:
        return f"TokenCodec(algorithm={self._algorithm!r})"

    def issue(self, user_id: UUID, ttl: timedelta) -> str:
        """Sign a token for user_id that expires ttl from now.

        The random ``jti`` claim keeps tokens issued within the same second distinct.
        """
        issued_at = now()
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + ttl,
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry, returning the embedded claims.

        Raises:
            TokenExpiredError: signature is valid but the token has expired
            InvalidTokenSignatureError: anything else wrong with the token
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except JWTError as e:
            raise InvalidTokenSignatureError("Invalid token") from e

        try:
            user_id = UUID(payload["sub"])
            expires_at = datetime.fromtimestamp(payload["exp"], UTC)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenSignatureError("Invalid token") from e
        return TokenClaims(user_id=user_id, expires_at=expires_at)
