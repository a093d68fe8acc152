from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from app.features.auth.models.user import User
from app.features.auth.services.credential_store import CredentialStore
from app.features.auth.utils.one_time import (
    generate_reset_token,
    generate_verification_code,
    hash_secret,
    is_verification_code,
)
from app.features.auth.utils.security import PasswordHasher, SessionIssuer
from app.platform.config import Settings
from app.platform.db.base import utcnow
from app.platform.exceptions import AccountError, ErrorCode
from app.platform.logger import get_logger
from app.platform.services.email import EmailDeliveryError, Mailer, render_template

logger = get_logger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8

RESEND_VERIFICATION_MESSAGE = "If that account exists and is unverified, a new code has been sent."
FORGOT_PASSWORD_MESSAGE = "If that account exists, a password reset link has been sent."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_CODE_MESSAGE = "Invalid or expired code"
INVALID_TOKEN_MESSAGE = "Invalid or expired token"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def normalize_email(email: Optional[str]) -> str:
    return _clean(email).lower()


def normalize_identifier(identifier: Optional[str]) -> str:
    """Emails are stored lowercased; usernames keep their case."""
    identifier = _clean(identifier)
    return identifier.lower() if "@" in identifier else identifier


class AccountService:
    """
    Registration, login, email verification and password reset.

    Every collaborator is passed in: the request-scoped store plus the
    app-scoped hasher, session issuer, mailer and settings. ``clock`` returns
    naive UTC and decides every expiry.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: SessionIssuer,
        mailer: Mailer,
        settings: Settings,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.mailer = mailer
        self.settings = settings
        self.clock = clock

    @property
    def code_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.VERIFICATION_CODE_EXPIRE_MINUTES)

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)

    # ── Registration ───────────────────────────

    async def register_user(self, username: str, email: str, password: str) -> tuple[User, str]:
        """
        Create an unverified user and its first verification code.

        Returns the user and the plaintext code; the caller sends the email.
        """
        username = _clean(username)
        email = normalize_email(email)
        password = password or ""

        if not username or not email or not password:
            raise AccountError(ErrorCode.VALIDATION, "username, email and password are required")
        if len(username) < MIN_USERNAME_LENGTH:
            raise AccountError(ErrorCode.VALIDATION, "Username must be at least 3 characters")
        if "@" not in email:
            raise AccountError(ErrorCode.VALIDATION, "Invalid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AccountError(ErrorCode.VALIDATION, "Password must be at least 8 characters")

        if await self.store.username_exists(username):
            raise AccountError(ErrorCode.CONFLICT, "Username already taken")
        if await self.store.email_exists(email):
            raise AccountError(ErrorCode.CONFLICT, "Email already registered")

        password_hash = await run_in_threadpool(self.hasher.hash, password)
        code = generate_verification_code()
        now = self.clock()

        try:
            async with self.store.transaction():
                user = await self.store.add_user(username, email, password_hash, created_at=now)
                await self.store.replace_verification_code(
                    user.id, hash_secret(code), created_at=now, expires_at=now + self.code_ttl
                )
        except IntegrityError:
            # lost a race with a concurrent signup
            raise AccountError(ErrorCode.CONFLICT, "Username or email already in use")

        logger.info(f"User registered - user: {user.id}, username: {user.username}")
        return user, code

    async def check_username_available(self, username: str) -> bool:
        username = _clean(username)
        if len(username) < MIN_USERNAME_LENGTH:
            return False
        return not await self.store.username_exists(username)

    # ── Login / profile ────────────────────────

    async def login_user(self, identifier: str, password: str) -> tuple[str, User]:
        identifier = normalize_identifier(identifier)
        if not identifier or not password:
            raise AccountError(ErrorCode.VALIDATION, "identifier and password are required")

        user = await self.store.get_user_by_identifier(identifier)
        if not user or not await run_in_threadpool(self.hasher.verify, password, user.password_hash):
            logger.warning("Login failed - invalid credentials")
            raise AccountError(ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        # unverified accounts are allowed to log in
        access_token = self.issuer.issue(user.id)
        logger.info(f"Login successful - user: {user.id}")
        return access_token, user

    async def get_profile(self, user_id: str) -> User:
        user = await self.store.get_user_by_id(user_id)
        if not user:
            raise AccountError(ErrorCode.NOT_FOUND, "User not found")
        return user

    # ── Email verification ─────────────────────

    async def verify_email(self, email: str, code: str) -> str:
        email = normalize_email(email)
        code = _clean(code)
        if not email or not code:
            raise AccountError(ErrorCode.VALIDATION, "email and code are required")
        if not is_verification_code(code):
            raise AccountError(ErrorCode.VALIDATION, "Code must be 6 digits")

        user = await self.store.get_user_by_email(email)
        if not user:
            raise AccountError(ErrorCode.INVALID_OR_EXPIRED_CODE, INVALID_CODE_MESSAGE)
        if user.is_email_verified:
            return "Email already verified"

        now = self.clock()
        async with self.store.transaction():
            consumed = await self.store.consume_verification_code(user.id, hash_secret(code), now)
            if consumed:
                await self.store.mark_email_verified(user, verified_at=now)
                await self.store.delete_verification_codes(user.id)

        if not consumed:
            # a concurrent request may have consumed the code first
            if await self.store.is_email_verified(user.id):
                return "Email already verified"
            logger.warning(f"Email verification failed - user: {user.id}")
            raise AccountError(ErrorCode.INVALID_OR_EXPIRED_CODE, INVALID_CODE_MESSAGE)

        logger.info(f"Email verified - user: {user.id}")
        return "Email verified successfully"

    async def resend_verification(self, email: str) -> str:
        email = normalize_email(email)
        if not email:
            raise AccountError(ErrorCode.VALIDATION, "email is required")

        user = await self.store.get_user_by_email(email)
        if not user or user.is_email_verified:
            logger.info("Resend verification skipped - no unverified account for address")
            return RESEND_VERIFICATION_MESSAGE

        code = generate_verification_code()
        now = self.clock()
        async with self.store.transaction():
            await self.store.replace_verification_code(
                user.id, hash_secret(code), created_at=now, expires_at=now + self.code_ttl
            )

        await run_in_threadpool(self.send_verification_email, user.email, user.username, code)
        return RESEND_VERIFICATION_MESSAGE

    def send_verification_email(self, to_email: str, username: str, code: str) -> None:
        """Deliver a verification code. Failures are logged; the user can ask for a resend."""
        html = render_template(
            "verification_code.html",
            username=username,
            code=code,
            app_name=self.settings.APP_NAME,
            expires_minutes=self.settings.VERIFICATION_CODE_EXPIRE_MINUTES,
        )
        text = (
            f"Your {self.settings.APP_NAME} verification code is {code}. "
            f"It expires in {self.settings.VERIFICATION_CODE_EXPIRE_MINUTES} minutes."
        )
        try:
            self.mailer.send(to_email, "Verify your email", html, text)
        except (EmailDeliveryError, ValueError) as e:
            logger.error(f"Verification email to {to_email} failed: {str(e)}")

    # ── Password reset ─────────────────────────

    async def forgot_password(self, identifier: str) -> str:
        identifier = normalize_identifier(identifier)
        if not identifier:
            raise AccountError(ErrorCode.VALIDATION, "identifier is required")

        user = await self.store.get_user_by_identifier(identifier)
        if not user:
            logger.info("Password reset requested for unknown account")
            return FORGOT_PASSWORD_MESSAGE

        token = generate_reset_token()
        now = self.clock()
        async with self.store.transaction():
            await self.store.replace_reset_token(
                user.id, hash_secret(token), created_at=now, expires_at=now + self.reset_ttl
            )

        logger.info(f"Password reset token issued - user: {user.id}")
        await run_in_threadpool(self.send_password_reset_email, user.email, user.username, token)
        return FORGOT_PASSWORD_MESSAGE

    def send_password_reset_email(self, to_email: str, username: str, token: str) -> None:
        base_url = self.settings.FRONTEND_URL
        if not base_url.endswith("/"):
            base_url += "/"
        reset_link = f"{base_url}reset-password?token={token}"
        html = render_template(
            "password_reset.html",
            username=username,
            reset_link=reset_link,
            app_name=self.settings.APP_NAME,
            expires_minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES,
        )
        text = (
            f"Reset your {self.settings.APP_NAME} password: {reset_link}\n"
            f"This link expires in {self.settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes."
        )
        try:
            self.mailer.send(to_email, "Reset your password", html, text)
        except (EmailDeliveryError, ValueError) as e:
            # response must not differ from the unknown-account case
            logger.error(f"Password reset email to {to_email} failed: {str(e)}")

    async def reset_password(self, token: str, new_password: str) -> str:
        token = _clean(token)
        new_password = new_password or ""
        if not token:
            raise AccountError(ErrorCode.VALIDATION, "token is required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AccountError(ErrorCode.VALIDATION, "Password must be at least 8 characters")

        token_hash = hash_secret(token)
        now = self.clock()
        record = await self.store.find_live_reset_token(token_hash, now)
        if not record:
            logger.warning("Password reset failed - invalid or expired token")
            raise AccountError(ErrorCode.INVALID_OR_EXPIRED_TOKEN, INVALID_TOKEN_MESSAGE)

        user_id = record.user_id
        password_hash = await run_in_threadpool(self.hasher.hash, new_password)
        async with self.store.transaction():
            if not await self.store.consume_reset_token(token_hash, now):
                logger.warning(f"Password reset failed - token already used - user: {user_id}")
                raise AccountError(ErrorCode.INVALID_OR_EXPIRED_TOKEN, INVALID_TOKEN_MESSAGE)
            await self.store.set_password_hash(user_id, password_hash)
            await self.store.delete_reset_tokens(user_id)

        logger.info(f"Password reset successful - user: {user_id}")
        return "Password has been reset"
