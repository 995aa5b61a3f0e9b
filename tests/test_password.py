"""Tests for password hashing."""

import pytest

from promptminder.auth.password import (
    DIGEST_BYTES,
    SALT_BYTES,
    hash_password,
    hash_password_async,
    verify_password,
    verify_password_async,
)


def test_hash_format_is_salt_and_digest():
    """Hashes are stored as hex salt and hex digest joined by a colon."""
    stored = hash_password("hunter22")
    salt, digest = stored.split(":")
    assert len(salt) == SALT_BYTES * 2
    assert len(digest) == DIGEST_BYTES * 2
    int(salt, 16)
    int(digest, 16)


def test_same_password_gets_fresh_salt():
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first != second
    assert verify_password("hunter22", first)
    assert verify_password("hunter22", second)


def test_wrong_password_is_rejected():
    stored = hash_password("hunter22")
    assert not verify_password("hunter23", stored)
    assert not verify_password("", stored)


@pytest.mark.parametrize(
    "stored",
    ["", "no-separator", ":abcdef", "abcdef:", "salt:not-hex-at-all"],
)
def test_malformed_hash_returns_false(stored):
    """Malformed stored values never raise."""
    assert verify_password("hunter22", stored) is False


def test_blank_password_cannot_be_hashed():
    with pytest.raises(ValueError):
        hash_password("")


def test_known_vector_verifies():
    """Hashes written by earlier deployments keep verifying."""
    import hashlib

    salt = "00112233445566778899aabbccddeeff"
    digest = hashlib.pbkdf2_hmac("sha512", b"legacy-pass", salt.encode(), 10000, dklen=64).hex()
    assert verify_password("legacy-pass", f"{salt}:{digest}")


@pytest.mark.asyncio
async def test_async_wrappers_match_sync_hashing():
    stored = await hash_password_async("hunter22")
    assert verify_password("hunter22", stored)
    assert await verify_password_async("hunter22", stored) is True
    assert await verify_password_async("hunter23", stored) is False
