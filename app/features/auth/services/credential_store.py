from datetime import datetime
from typing import Optional

from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.password_reset import PasswordResetToken
from app.features.auth.models.user import User
from app.features.auth.models.verification_code import EmailVerificationCode
from app.platform.db.session import transaction


class CredentialStore:
    """
    Persistence for users, reset tokens and verification codes.

    Methods only stage changes on the session; callers group them with
    ``transaction()`` so each multi-step mutation commits or rolls back as one.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def transaction(self):
        return transaction(self.db)

    # ── Users ──────────────────────────────────

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_user_by_identifier(self, identifier: str) -> Optional[User]:
        """Match on username OR email."""
        result = await self.db.execute(
            select(User).where(or_(User.username == identifier, User.email == identifier)).limit(1)
        )
        return result.scalars().first()

    async def username_exists(self, username: str) -> bool:
        result = await self.db.execute(select(exists().where(User.username == username)))
        return bool(result.scalar())

    async def email_exists(self, email: str) -> bool:
        result = await self.db.execute(select(exists().where(User.email == email)))
        return bool(result.scalar())

    async def add_user(self, username: str, email: str, password_hash: str, created_at: datetime) -> User:
        """Insert an unverified user. Flushes so unique-constraint violations raise here."""
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            is_email_verified=False,
            created_at=created_at,
            updated_at=created_at,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def mark_email_verified(self, user: User, verified_at: datetime) -> None:
        user.is_email_verified = True
        user.email_verified_at = verified_at
        await self.db.flush()

    async def set_password_hash(self, user_id: str, password_hash: str) -> None:
        await self.db.execute(
            update(User).where(User.id == user_id).values(password_hash=password_hash)
        )

    async def is_email_verified(self, user_id: str) -> bool:
        """Read the flag from the database, bypassing the session's identity map."""
        result = await self.db.execute(select(User.is_email_verified).where(User.id == user_id))
        return bool(result.scalar())

    async def lock_user(self, user_id: str) -> None:
        """
        Take a row lock on the user until the transaction ends.

        Serializes writers that replace a user's code or token. SQLite has no
        row locks; its single-writer lock gives the same ordering there.
        """
        await self.db.execute(select(User.id).where(User.id == user_id).with_for_update())

    async def _delete(self, stmt) -> int:
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    # ── Email verification codes ───────────────

    async def replace_verification_code(
        self, user_id: str, code_hash: str, created_at: datetime, expires_at: datetime
    ) -> EmailVerificationCode:
        await self.lock_user(user_id)
        await self.delete_verification_codes(user_id)
        record = EmailVerificationCode(
            user_id=user_id, code_hash=code_hash, created_at=created_at, expires_at=expires_at
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def consume_verification_code(self, user_id: str, code_hash: str, now: datetime) -> bool:
        """
        Delete the matching live code. True only for the caller whose delete removed it,
        so two concurrent verifications can never both consume one code.
        """
        deleted = await self._delete(
            delete(EmailVerificationCode).where(
                EmailVerificationCode.user_id == user_id,
                EmailVerificationCode.code_hash == code_hash,
                EmailVerificationCode.expires_at > now,
            )
        )
        return deleted == 1

    async def delete_verification_codes(self, user_id: str) -> int:
        return await self._delete(
            delete(EmailVerificationCode).where(EmailVerificationCode.user_id == user_id)
        )

    # ── Password reset tokens ──────────────────

    async def replace_reset_token(
        self, user_id: str, token_hash: str, created_at: datetime, expires_at: datetime
    ) -> PasswordResetToken:
        await self.lock_user(user_id)
        await self.delete_reset_tokens(user_id)
        record = PasswordResetToken(
            user_id=user_id, token_hash=token_hash, created_at=created_at, expires_at=expires_at
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_live_reset_token(self, token_hash: str, now: datetime) -> Optional[PasswordResetToken]:
        result = await self.db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.token_hash == token_hash,
                PasswordResetToken.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def consume_reset_token(self, token_hash: str, now: datetime) -> bool:
        """Delete the token if still live; True only when this call removed it."""
        deleted = await self._delete(
            delete(PasswordResetToken).where(
                PasswordResetToken.token_hash == token_hash,
                PasswordResetToken.expires_at > now,
            )
        )
        return deleted == 1

    async def delete_reset_tokens(self, user_id: str) -> int:
        return await self._delete(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
