"""
Authentication routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from ...application.services import UserService
from ...config import settings
from ...domain.models import Principal
from ...schemas import (
    ApiResponse,
    ChangePassword,
    LoginData,
    RefreshTokenRequest,
    TokenData,
    UserLogin,
    UserResponse,
)
from ..dependencies import (
    clear_auth_cookies,
    get_current_principal,
    get_user_service,
    set_auth_cookies,
)
from ..uploads import TempUploads, get_temp_uploads


router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    username: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    full_name: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    uploads: TempUploads = Depends(get_temp_uploads),
    user_service: UserService = Depends(get_user_service)
):
    """
    Register a new user

    - **username**, **email**, **password**: required
    - **full_name**: optional
    - **avatar**, **cover_image**: optional image files
    """
    avatar_path = await uploads.save(avatar, "avatar", allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS)
    cover_path = await uploads.save(cover_image, "cover_image", allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS)

    user = await user_service.register(
        username=username,
        email=email,
        password=password,
        full_name=full_name,
        avatar_path=avatar_path,
        cover_image_path=cover_path
    )

    return ApiResponse(
        status=status.HTTP_201_CREATED,
        data=UserResponse.model_validate(user),
        message="User registered successfully"
    )


@router.post("/login", response_model=ApiResponse[LoginData])
async def login(
    credentials: UserLogin,
    response: Response,
    user_service: UserService = Depends(get_user_service)
):
    """
    Login with username or email and password

    Sets http-only access and refresh cookies.
    """
    user, tokens = await user_service.login(
        credentials.password,
        username=credentials.username,
        email=credentials.email
    )
    set_auth_cookies(response, tokens)

    return ApiResponse(
        status=status.HTTP_200_OK,
        data=LoginData(
            user=UserResponse.model_validate(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token
        ),
        message="User logged in successfully"
    )


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service)
):
    """Revoke the refresh token and clear both cookies"""
    await user_service.logout(principal.user_id)
    clear_auth_cookies(response)

    return ApiResponse(status=status.HTTP_200_OK, data={}, message="User logged out successfully")


@router.post("/refresh-token", response_model=ApiResponse[TokenData])
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    user_service: UserService = Depends(get_user_service)
):
    """
    Rotate the token pair

    The refresh token is read from the cookie or the request body.
    """
    token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE)
    if not token and body is not None:
        token = body.refresh_token

    tokens = await user_service.refresh(token)
    set_auth_cookies(response, tokens)

    return ApiResponse(
        status=status.HTTP_200_OK,
        data=TokenData(access_token=tokens.access_token, refresh_token=tokens.refresh_token),
        message="Access token refreshed"
    )


@router.post("/change-password", response_model=ApiResponse[dict])
async def change_password(
    password_data: ChangePassword,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service)
):
    """Change password; the current session ends"""
    await user_service.change_password(
        principal.user_id,
        password_data.old_password,
        password_data.new_password
    )
    clear_auth_cookies(response)

    return ApiResponse(status=status.HTTP_200_OK, data={}, message="Password changed successfully")
