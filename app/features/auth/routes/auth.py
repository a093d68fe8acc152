from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from app.features.auth.dependencies.auth import get_account_service
from app.features.auth.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from app.features.auth.services.auth_service import AccountService
from app.platform.response import api_response

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=dict,
    status_code=status.HTTP_200_OK,
    summary="Register a new user",
    description="Create an unverified account and email a 6-digit verification code",
)
async def register(
    request: RegisterRequest,
    background_tasks: BackgroundTasks,
    service: AccountService = Depends(get_account_service),
):
    """
    Register a new user account.
    The verification email goes out in the background; a failed send is only logged.
    """
    user, code = await service.register_user(request.username, request.email, request.password)

    background_tasks.add_task(service.send_verification_email, user.email, user.username, code)

    return api_response(
        data={"user": UserResponse.from_user(user).public(), "needsEmailVerification": True},
        message="Account created. Check your email for a verification code.",
    )


@router.get(
    "/check-username",
    response_model=dict,
    summary="Check username availability",
)
async def check_username(
    username: str = Query(""),
    service: AccountService = Depends(get_account_service),
):
    available = await service.check_username_available(username)
    return api_response(data={"available": available})


@router.post(
    "/verify-email",
    response_model=dict,
    summary="Verify email with code",
    description="Verify a user's email address using the code sent to their email",
)
async def verify_email(
    request: VerifyEmailRequest,
    service: AccountService = Depends(get_account_service),
):
    message = await service.verify_email(request.email, request.code)
    return api_response(message=message)


@router.post(
    "/resend-verification",
    response_model=dict,
    summary="Resend the email verification code",
)
async def resend_verification(
    request: ResendVerificationRequest,
    service: AccountService = Depends(get_account_service),
):
    message = await service.resend_verification(request.email)
    return api_response(message=message)


@router.post(
    "/login",
    response_model=dict,
    summary="Login user",
    description="Authenticate with username or email and password",
)
async def login(
    request: LoginRequest,
    service: AccountService = Depends(get_account_service),
):
    access_token, user = await service.login_user(request.identifier, request.password)
    return api_response(
        data={"accessToken": access_token, "user": UserResponse.from_user(user).public()},
        message="Login successful",
    )


@router.post(
    "/forgot-password",
    response_model=dict,
    summary="Request a password reset link",
)
async def forgot_password(
    request: ForgotPasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    """Same response whether or not the account exists."""
    message = await service.forgot_password(request.identifier)
    return api_response(message=message)


@router.post(
    "/reset-password",
    response_model=dict,
    summary="Reset password with a reset token",
)
async def reset_password(
    request: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    message = await service.reset_password(request.token, request.new_password)
    return api_response(message=message)
