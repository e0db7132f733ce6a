"""Tests for bcrypt password hashing."""

import pytest

from rabbit_ai.security.passwords import hash_password, verify_password


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("secret", rounds=4)

        assert hashed != "secret"
        assert verify_password("secret", hashed)
        assert not verify_password("wrong", hashed)

    def test_salted(self) -> None:
        assert hash_password("secret", rounds=4) != hash_password("secret", rounds=4)

    @pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
    def test_missing_or_malformed_hash(self, stored: str | None) -> None:
        assert verify_password("secret", stored) is False
