from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from app.platform.db.base import BaseModel, utcnow


class User(BaseModel):
    __tablename__ = "users"
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    password_reset_tokens = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    verification_codes = relationship(
        "EmailVerificationCode", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, username={self.username})>"
