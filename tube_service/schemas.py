"""
Pydantic schemas for request/response validation
"""
from datetime import datetime
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field

# ObjectIds leave the service as 24-char hex strings
PyObjectId = Annotated[str, BeforeValidator(str)]

T = TypeVar("T")


def _id_field() -> Any:
    return Field(validation_alias=AliasChoices("_id", "id"))


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope"""
    status: int
    data: Optional[T] = None
    message: str = "Success"


class ApiErrorResponse(BaseModel):
    """Error envelope"""
    status: int
    message: str
    errors: List[str] = []


class AssetUrl(BaseModel):
    """Public part of a remote asset"""
    model_config = ConfigDict(from_attributes=True)

    url: str


class UserLogin(BaseModel):
    """User login request; username or email is required"""
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: str


class RefreshTokenRequest(BaseModel):
    """Refresh token request (the cookie is used when absent)"""
    refresh_token: Optional[str] = None


class ChangePassword(BaseModel):
    """Change password request"""
    old_password: str
    new_password: str


class UpdateAccount(BaseModel):
    """Update account details request"""
    full_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None


class UserResponse(BaseModel):
    """User as returned to its owner; never carries credentials"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: PyObjectId = _id_field()
    username: str
    email: str
    full_name: Optional[str] = None
    avatar: Optional[AssetUrl] = None
    cover_image: Optional[AssetUrl] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenData(BaseModel):
    access_token: str
    refresh_token: str


class LoginData(TokenData):
    user: UserResponse


class OwnerSummary(BaseModel):
    """Owner subset joined into video views"""
    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = _id_field()
    username: str
    full_name: Optional[str] = None
    avatar: Optional[AssetUrl] = None
    subscribers_count: Optional[int] = None
    is_subscribed: Optional[bool] = None


class VideoResponse(BaseModel):
    """Video as stored"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: PyObjectId = _id_field()
    title: str
    description: str
    video_file: Optional[AssetUrl] = None
    thumbnail: Optional[AssetUrl] = None
    duration: float = 0
    views: int = 0
    is_published: bool = False
    owner: PyObjectId
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VideoFeedItem(VideoResponse):
    """Video in a feed page, with owner details"""
    owner_details: OwnerSummary


class VideoPage(BaseModel):
    items: List[VideoFeedItem]
    total_items: int
    total_pages: int
    current_page: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class VideoDetail(BaseModel):
    """Single video relative to the requester"""
    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = _id_field()
    title: str
    description: str
    video_file: Optional[AssetUrl] = None
    thumbnail: Optional[AssetUrl] = None
    duration: float = 0
    views: int = 0
    is_published: bool = True
    created_at: Optional[datetime] = None
    likes_count: int = 0
    is_liked: bool = False
    owner: Optional[OwnerSummary] = None


class ChannelProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = _id_field()
    username: str
    full_name: Optional[str] = None
    email: str
    avatar: Optional[AssetUrl] = None
    cover_image: Optional[AssetUrl] = None
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False
    created_at: Optional[datetime] = None


class WatchHistoryItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = _id_field()
    title: str
    description: Optional[str] = None
    video_file: Optional[AssetUrl] = None
    thumbnail: Optional[AssetUrl] = None
    duration: float = 0
    views: int = 0
    created_at: Optional[datetime] = None
    owner: Optional[OwnerSummary] = None


class LikeStatus(BaseModel):
    video_id: str
    is_liked: bool
