"""One-time secrets for password reset and email verification.

The plaintext goes out once, by email. Only ``hash_secret(value)`` (SHA-256 hex)
is persisted.
"""

import hashlib
import re
import secrets

CODE_PATTERN = re.compile(r"[0-9]{6}")


def generate_reset_token() -> str:
    """32 random bytes, hex-encoded (64 chars)."""
    return secrets.token_hex(32)


def generate_verification_code() -> str:
    """Uniform 6-digit code in 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def is_verification_code(value: str) -> bool:
    return bool(value) and CODE_PATTERN.fullmatch(value) is not None


def hash_secret(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
