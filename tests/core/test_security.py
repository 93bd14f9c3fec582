"""Password hashing tests."""

import pytest

from taxaudit.core.security import hash_password, verify_password


def test_hash_round_trip() -> None:
    hashed = hash_password("secret1", rounds=4)

    assert hashed != "secret1"
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_long_passwords_compare_on_first_72_bytes() -> None:
    hashed = hash_password("x" * 80, rounds=4)
    assert verify_password("x" * 72, hashed)


def test_malformed_hash_never_matches() -> None:
    assert not verify_password("secret1", "not-a-bcrypt-hash")
    assert not verify_password("", "anything")


def test_empty_password_is_rejected() -> None:
    with pytest.raises(ValueError, match="cannot be empty"):
        hash_password("")
