"""Password hashing with salted PBKDF2.

Stored format is ``<salt_hex>:<digest_hex>`` so hashes written by earlier
deployments keep verifying.
"""

import hashlib
import hmac
import secrets

from starlette.concurrency import run_in_threadpool

PBKDF2_ALGORITHM = "sha512"
PBKDF2_ITERATIONS = 10_000
SALT_BYTES = 16
DIGEST_BYTES = 64


def _derive(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        PBKDF2_ALGORITHM,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
        dklen=DIGEST_BYTES,
    ).hex()


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt."""
    if not password:
        raise ValueError("password_blank")
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}:{_derive(password, salt)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a stored hash, returning False on bad input."""
    if not password or not stored_hash or not isinstance(stored_hash, str):
        return False

    salt, sep, digest = stored_hash.partition(":")
    if not sep or not salt or not digest:
        return False

    try:
        bytes.fromhex(digest)
    except ValueError:
        return False

    return hmac.compare_digest(_derive(password, salt), digest.lower())


async def hash_password_async(password: str) -> str:
    """``hash_password`` off the event loop."""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, stored_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, stored_hash)
