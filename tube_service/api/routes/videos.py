"""
Video routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from ...application.feed import FeedService
from ...application.services import VideoService
from ...config import settings
from ...domain.models import Principal
from ...schemas import (
    ApiResponse,
    LikeStatus,
    VideoDetail,
    VideoFeedItem,
    VideoPage,
    VideoResponse,
)
from ..dependencies import get_current_principal, get_feed_service, get_video_service
from ..uploads import TempUploads, get_temp_uploads


router = APIRouter(prefix="/api/v1/videos", tags=["Videos"])


@router.get("", response_model=ApiResponse[VideoPage])
async def get_all_videos(
    page: int = Query(1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    query: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_type: Optional[str] = Query(None, alias="sortType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    feed_service: FeedService = Depends(get_feed_service)
):
    """
    Get published videos with search, sorting and pagination

    - **query**: full-text search on title and description
    - **sortBy**: views, created_at or duration (with **sortType** asc/desc)
    - **userId**: restrict to one channel
    """
    result = await feed_service.list_videos(
        page=page,
        limit=limit,
        query=query,
        sort_by=sort_by,
        sort_type=sort_type,
        user_id=user_id
    )
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=VideoPage(
            items=[VideoFeedItem.model_validate(item) for item in result.items],
            total_items=result.total_items,
            total_pages=result.total_pages,
            current_page=result.current_page,
            limit=result.limit,
            has_next_page=result.has_next_page,
            has_prev_page=result.has_prev_page
        ),
        message="Videos fetched successfully"
    )


@router.post("", response_model=ApiResponse[VideoResponse], status_code=status.HTTP_201_CREATED)
async def publish_video(
    title: str = Form(...),
    description: str = Form(...),
    duration: float = Form(0),
    video_file: UploadFile = File(...),
    thumbnail: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    uploads: TempUploads = Depends(get_temp_uploads),
    video_service: VideoService = Depends(get_video_service)
):
    """Upload a video and its thumbnail; the video starts unpublished"""
    video_path = await uploads.save(
        video_file, "video_file", required=True, allowed_extensions=settings.ALLOWED_VIDEO_EXTENSIONS
    )
    thumbnail_path = await uploads.save(
        thumbnail, "thumbnail", required=True, allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS
    )

    video = await video_service.publish_video(
        owner_id=principal.user_id,
        title=title,
        description=description,
        video_path=video_path,
        thumbnail_path=thumbnail_path,
        duration=duration
    )
    return ApiResponse(
        status=status.HTTP_201_CREATED,
        data=VideoResponse.model_validate(video),
        message="Video uploaded successfully"
    )


@router.get("/{video_id}", response_model=ApiResponse[VideoDetail])
async def get_video_by_id(
    video_id: str,
    principal: Principal = Depends(get_current_principal),
    feed_service: FeedService = Depends(get_feed_service)
):
    """Get one video; counts a view and records it in the watch history"""
    video = await feed_service.get_video_detail(video_id, principal.user_id)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=VideoDetail.model_validate(video),
        message="Video fetched successfully"
    )


@router.patch("/{video_id}", response_model=ApiResponse[VideoResponse])
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    uploads: TempUploads = Depends(get_temp_uploads),
    video_service: VideoService = Depends(get_video_service)
):
    """Update title, description and/or thumbnail (owner only)"""
    thumbnail_path = await uploads.save(
        thumbnail, "thumbnail", allowed_extensions=settings.ALLOWED_IMAGE_EXTENSIONS
    )
    video = await video_service.update_video(
        video_id,
        principal.user_id,
        title=title,
        description=description,
        thumbnail_path=thumbnail_path
    )
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=VideoResponse.model_validate(video),
        message="Video updated successfully"
    )


@router.delete("/{video_id}", response_model=ApiResponse[VideoResponse])
async def delete_video(
    video_id: str,
    principal: Principal = Depends(get_current_principal),
    video_service: VideoService = Depends(get_video_service)
):
    """Delete a video with its files, likes and comments (owner only)"""
    video = await video_service.delete_video(video_id, principal.user_id)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=VideoResponse.model_validate(video),
        message="Video deleted successfully"
    )


@router.patch("/{video_id}/toggle-publish", response_model=ApiResponse[VideoResponse])
async def toggle_publish_status(
    video_id: str,
    principal: Principal = Depends(get_current_principal),
    video_service: VideoService = Depends(get_video_service)
):
    """Publish or unpublish a video (owner only)"""
    video = await video_service.toggle_publish_status(video_id, principal.user_id)
    state = "published" if video.is_published else "unpublished"
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=VideoResponse.model_validate(video),
        message=f"Video is now {state}"
    )


@router.post("/{video_id}/like", response_model=ApiResponse[LikeStatus])
async def toggle_video_like(
    video_id: str,
    principal: Principal = Depends(get_current_principal),
    video_service: VideoService = Depends(get_video_service)
):
    """Like the video, or remove the like if already present"""
    is_liked = await video_service.toggle_video_like(video_id, principal.user_id)
    return ApiResponse(
        status=status.HTTP_200_OK,
        data=LikeStatus(video_id=video_id, is_liked=is_liked),
        message="Video liked" if is_liked else "Video unliked"
    )
