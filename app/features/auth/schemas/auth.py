from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "email": "alice@example.com",
                "password": "password123",
            }
        }
    )


class LoginRequest(BaseModel):
    identifier: str = Field(..., description="Username or email")
    password: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"identifier": "alice", "password": "password123"}}
    )


class VerifyEmailRequest(BaseModel):
    email: str
    code: str


class ResendVerificationRequest(BaseModel):
    email: str


class ForgotPasswordRequest(BaseModel):
    # the mobile client posts the identifier under "email"
    identifier: str = Field(..., validation_alias=AliasChoices("identifier", "email"))


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., validation_alias=AliasChoices("newPassword", "new_password"))


class UserResponse(BaseModel):
    """Public user fields. The password hash never leaves the service."""

    id: str
    username: str
    email: str
    email_verified: bool = Field(serialization_alias="emailVerified")
    created_at: datetime = Field(serialization_alias="createdAt")

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=str(user.id),
            username=user.username,
            email=user.email,
            email_verified=bool(user.is_email_verified),
            created_at=user.created_at,
        )

    @field_serializer("created_at")
    def serialize_datetime(self, value, _info):
        """Convert datetime to ISO format string"""
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def public(self) -> dict:
        return self.model_dump(by_alias=True)
