"""
User routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status

from ...application.feed import FeedService
from ...application.services import UserService
from ...config import settings
from ...domain.models import Principal
from ...schemas import (
    ApiResponse,
    ChannelProfile,
    UpdateAccount,
    UserResponse,
    WatchHistoryItem,
)
from ..dependencies import (
    get_current_principal,
    get_feed_service,
    get_optional_principal,
    get_user_service,
)
from ..uploads import TempUploads, get_temp_uploads


router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_my_profile(
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service)
):
    """
    Get current user's profile

    Requires authentication.
    """
    user = await user_service.get_current_user(principal.user_id)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=UserResponse.model_validate(user),
        message="Current user fetched successfully"
    )


@router.patch("/me", response_model=ApiResponse[UserResponse])
async def update_account_details(
    account: UpdateAccount,
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service)
):
    """Update full name and/or email"""
    user = await user_service.update_account_details(
        principal.user_id,
        full_name=account.full_name,
        email=account.email
    )
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=UserResponse.model_validate(user),
        message="Account details updated successfully"
    )


@router.patch("/avatar", response_model=ApiResponse[UserResponse])
async def update_avatar(
    avatar: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    uploads: TempUploads = Depends(get_temp_uploads),
    user_service: UserService = Depends(get_user_service)
):
    """Replace the avatar image"""
    local_path = await uploads.save(
        avatar, "avatar", required=True, allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS
    )
    user = await user_service.update_avatar(principal.user_id, local_path)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=UserResponse.model_validate(user),
        message="Avatar updated successfully"
    )


@router.patch("/cover-image", response_model=ApiResponse[UserResponse])
async def update_cover_image(
    cover_image: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    uploads: TempUploads = Depends(get_temp_uploads),
    user_service: UserService = Depends(get_user_service)
):
    """Replace the cover image"""
    local_path = await uploads.save(
        cover_image, "cover_image", required=True, allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS
    )
    user = await user_service.update_cover_image(principal.user_id, local_path)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=UserResponse.model_validate(user),
        message="Cover image updated successfully"
    )


@router.get("/channel/{username}", response_model=ApiResponse[ChannelProfile])
async def get_channel_profile(
    username: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    feed_service: FeedService = Depends(get_feed_service)
):
    """
    Get a channel profile by username

    Public endpoint; is_subscribed is relative to the caller when authenticated.
    """
    profile = await feed_service.get_channel_profile(
        username,
        requester_id=principal.user_id if principal else None
    )
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=ChannelProfile.model_validate(profile),
        message="User channel fetched successfully"
    )


@router.get("/history", response_model=ApiResponse[List[WatchHistoryItem]])
async def get_watch_history(
    principal: Principal = Depends(get_current_principal),
    feed_service: FeedService = Depends(get_feed_service)
):
    """Get the current user's watch history"""
    history = await feed_service.get_watch_history(principal.user_id)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=[WatchHistoryItem.model_validate(item) for item in history],
        message="Watch history fetched successfully"
    )
