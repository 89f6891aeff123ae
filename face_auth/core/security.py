"""Secret hashing for account credentials."""

import hashlib
import secrets
from typing import Optional, Tuple

from .config import settings


def generate_salt(num_bytes: Optional[int] = None) -> str:
    """Generate a random per-record salt as a hex string."""
    return secrets.token_hex(num_bytes or settings.security.salt_bytes)


def hash_secret(
    secret: str,
    salt: Optional[str] = None,
    iterations: Optional[int] = None,
) -> Tuple[str, str]:
    """
    Hash an account secret for storage.

    Uses PBKDF2-HMAC-SHA256 with a per-record salt.

    Returns:
        Tuple of (hash_hex, salt_hex)
    """
    salt = salt or generate_salt()
    iterations = iterations or settings.security.pbkdf2_iterations
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        secret.encode("utf-8"),
        bytes.fromhex(salt),
        iterations,
    )
    return digest.hex(), salt


def verify_secret(
    secret: str,
    hashed: str,
    salt: str,
    iterations: Optional[int] = None,
) -> bool:
    """
    Verify a secret against its stored hash and salt.
    """
    candidate, _ = hash_secret(secret, salt=salt, iterations=iterations)
    return secrets.compare_digest(candidate, hashed)


__all__ = [
    "generate_salt",
    "hash_secret",
    "verify_secret",
]
