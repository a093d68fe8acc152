import hashlib
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from app.platform.exceptions import AccountError, ErrorCode


class PasswordHasher:
    """bcrypt with a fixed cost factor, over a SHA-256 pre-hash of the password."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    @staticmethod
    def _prehash(password: str) -> bytes:
        # bcrypt only reads the first 72 bytes
        return hashlib.sha256(password.encode("utf-8")).digest()

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._prehash(password), salt).decode("utf-8")

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.
        A malformed stored hash never matches.
        """
        if not plain_password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(self._prehash(plain_password), hashed_password.encode("utf-8"))
        except ValueError:
            return False


class SessionIssuer:
    """Signs and checks short-lived JWT access tokens whose subject is a user id."""

    token_type = "access"

    def __init__(self, secret_key: str, algorithm: str = "HS256", expires_minutes: int = 15):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(minutes=expires_minutes)

    def issue(self, user_id: str, now: datetime = None) -> str:
        """Create a JWT access token"""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.expires_delta,
            "type": self.token_type,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Decode and verify a JWT access token, returning the user id it was issued for."""
        if not token:
            raise AccountError(ErrorCode.UNAUTHENTICATED, "Missing token")
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AccountError(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")
        except jwt.PyJWTError:
            raise AccountError(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")

        user_id = payload.get("sub")
        if payload.get("type") != self.token_type or not user_id:
            raise AccountError(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")
        return user_id
