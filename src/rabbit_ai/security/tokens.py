"""JWT issuing and validation (HS256).

Tokens carry the numeric user ID in a `user_id` claim alongside the
standard `exp`, `iat` and `iss` claims.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from rabbit_ai.core.errors import InvalidTokenError

ALGORITHM = "HS256"
DEFAULT_ISSUER = "rabbit_ai"


class TokenSigner:
    """Signs and verifies access tokens with a shared secret."""

    def __init__(self, secret: str, expire_hours: int = 24, issuer: str = DEFAULT_ISSUER):
        self.secret = secret
        self.expire = timedelta(hours=expire_hours)
        self.issuer = issuer

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "user_id": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + self.expire).timestamp()),
            "iss": self.issuer,
        }
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> int:
        """Validate a token and return its user ID.

        Raises:
            InvalidTokenError: If the token is expired, malformed or unsigned.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"verify_exp": True},
            )
        except ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        user_id = payload.get("user_id")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidTokenError("Invalid token claims")
        return user_id
