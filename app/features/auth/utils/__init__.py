from app.features.auth.utils.security import PasswordHasher, SessionIssuer
from app.features.auth.utils.one_time import (
    generate_reset_token,
    generate_verification_code,
    hash_secret,
    is_verification_code,
)

__all__ = [
    "PasswordHasher",
    "SessionIssuer",
    "generate_reset_token",
    "generate_verification_code",
    "hash_secret",
    "is_verification_code",
]
