from fastapi import APIRouter, Depends

from app.features.auth.dependencies.auth import get_account_service, get_current_user_id
from app.features.auth.schemas.auth import UserResponse
from app.features.auth.services.auth_service import AccountService
from app.platform.response import api_response

router = APIRouter(tags=["User Management"])


@router.get(
    "/me",
    response_model=dict,
    summary="Get current user profile",
    description="Retrieve the profile information of the currently authenticated user",
)
async def get_my_profile(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Get the current user's profile."""
    user = await service.get_profile(user_id)
    return api_response(data={"user": UserResponse.from_user(user).public()})
