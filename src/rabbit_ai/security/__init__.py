"""Password hashing and access tokens."""

from rabbit_ai.security.passwords import hash_password, verify_password
from rabbit_ai.security.tokens import TokenSigner

__all__ = ["hash_password", "verify_password", "TokenSigner"]
