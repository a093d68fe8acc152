from app.features.auth.models.user import User
from app.features.auth.models.password_reset import PasswordResetToken
from app.features.auth.models.verification_code import EmailVerificationCode

__all__ = ["User", "PasswordResetToken", "EmailVerificationCode"]
