"""
FastAPI dependencies
"""
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..application.assets import AssetManager
from ..application.feed import FeedService
from ..application.services import TokenService, UserService, VideoService
from ..config import settings
from ..domain.errors import AuthError
from ..domain.models import Principal, TokenPair
from ..infrastructure.auth import create_access_signer, create_refresh_signer
from ..infrastructure.database.connection import get_db
from ..infrastructure.database.repositories import (
    CommentRepository,
    LikeRepository,
    UserRepository,
    VideoRepository,
)
from ..infrastructure.storage import ObjectStore


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_user_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> UserRepository:
    """Get user repository dependency"""
    return UserRepository(db)


async def get_video_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> VideoRepository:
    """Get video repository dependency"""
    return VideoRepository(db)


async def get_like_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> LikeRepository:
    return LikeRepository(db)


async def get_comment_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> CommentRepository:
    return CommentRepository(db)


def get_object_store(request: Request) -> ObjectStore:
    """Object store built at startup and kept on the app state"""
    return request.app.state.object_store


def get_asset_manager(store: ObjectStore = Depends(get_object_store)) -> AssetManager:
    return AssetManager(store)


async def get_token_service(
    user_repo: UserRepository = Depends(get_user_repository)
) -> TokenService:
    """Get token service dependency"""
    return TokenService(user_repo, create_access_signer(), create_refresh_signer())


async def get_user_service(
    user_repo: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
    asset_manager: AssetManager = Depends(get_asset_manager)
) -> UserService:
    """Get user service dependency"""
    return UserService(user_repo, token_service, asset_manager)


async def get_video_service(
    video_repo: VideoRepository = Depends(get_video_repository),
    like_repo: LikeRepository = Depends(get_like_repository),
    comment_repo: CommentRepository = Depends(get_comment_repository),
    asset_manager: AssetManager = Depends(get_asset_manager)
) -> VideoService:
    """Get video service dependency"""
    return VideoService(video_repo, like_repo, comment_repo, asset_manager)


async def get_feed_service(
    video_repo: VideoRepository = Depends(get_video_repository),
    user_repo: UserRepository = Depends(get_user_repository)
) -> FeedService:
    """Get feed service dependency"""
    return FeedService(video_repo, user_repo)


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[str]:
    """Access token from the cookie, falling back to the Authorization header"""
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return None


async def get_current_principal(
    token: Optional[str] = Depends(extract_access_token),
    token_service: TokenService = Depends(get_token_service)
) -> Principal:
    """
    Get the authenticated principal from the access token

    Raises:
        AuthError: If the token is missing, invalid or expired
    """
    if not token:
        raise AuthError("Unauthorized request")
    return token_service.verify_access(token)


async def get_optional_principal(
    token: Optional[str] = Depends(extract_access_token),
    token_service: TokenService = Depends(get_token_service)
) -> Optional[Principal]:
    """
    Get the authenticated principal if a valid token is provided

    Returns None if not authenticated instead of raising
    """
    if not token:
        return None
    try:
        return token_service.verify_access(token)
    except AuthError:
        return None


def _cookie_options() -> dict:
    return {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}


def set_auth_cookies(response: Response, tokens: TokenPair) -> None:
    """Set http-only access and refresh cookies"""
    options = _cookie_options()
    response.set_cookie(settings.ACCESS_TOKEN_COOKIE, tokens.access_token, **options)
    response.set_cookie(settings.REFRESH_TOKEN_COOKIE, tokens.refresh_token, **options)


def clear_auth_cookies(response: Response) -> None:
    """Clear both auth cookies"""
    options = _cookie_options()
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE, **options)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE, **options)
