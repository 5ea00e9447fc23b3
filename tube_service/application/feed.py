"""
Feed aggregation - runs the view pipelines and applies their side effects
"""
import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..domain.errors import NotFoundError, ValidationError
from ..domain.models import Page
from ..domain.repositories import IUserRepository, IVideoRepository
from .pipelines import (
    build_channel_profile_pipeline,
    build_feed_pipeline,
    build_video_detail_pipeline,
    build_watch_history_pipeline,
)

logger = logging.getLogger(__name__)


def validate_pagination(page: int, limit: int) -> None:
    errors = []
    if page < 1:
        errors.append("page must be at least 1")
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        errors.append(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    if errors:
        raise ValidationError("Invalid pagination", errors=errors)


class FeedService:
    """Builds enriched video and channel views"""

    def __init__(self, video_repository: IVideoRepository, user_repository: IUserRepository):
        self.video_repo = video_repository
        self.user_repo = user_repository

    async def list_videos(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        query: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_type: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Page:
        """
        Get one page of published videos

        Args:
            page: 1-based page number
            limit: Page size (defaults to DEFAULT_PAGE_SIZE)
            query: Optional full-text search on title/description
            sort_by: views, created_at or duration
            sort_type: asc or desc
            user_id: Restrict to one owner's videos

        Returns:
            Page of videos, each with owner_details
        """
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        validate_pagination(page, limit)
        logger.debug(f"Feed page {page} (limit {limit}) query={query!r} owner={user_id} sort={sort_by}/{sort_type}")

        pipeline = build_feed_pipeline(
            query=query,
            user_id=user_id,
            sort_by=sort_by,
            sort_type=sort_type
        )
        return await self.video_repo.aggregate_paginate(pipeline, page, limit)

    async def get_video_detail(self, video_id: str, requester_id: str) -> Dict[str, Any]:
        """
        Get a single video enriched relative to the requester

        Counts the view and records it in the requester's watch history.
        """
        pipeline = build_video_detail_pipeline(video_id, requester_id)
        results = await self.video_repo.aggregate(pipeline)
        if not results:
            raise NotFoundError("Video not found")

        await self.video_repo.increment_views(video_id)
        await self.user_repo.add_to_watch_history(requester_id, video_id)

        return results[0]

    async def get_channel_profile(self, username: str, requester_id: Optional[str] = None) -> Dict[str, Any]:
        """Get a channel's public profile with subscription counts"""
        if not username or not username.strip():
            raise ValidationError("Username is missing")

        results = await self.user_repo.aggregate(
            build_channel_profile_pipeline(username, requester_id)
        )
        if not results:
            raise NotFoundError("Channel does not exist")
        return results[0]

    async def get_watch_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Get watched videos, most recently added last, each with its owner"""
        results = await self.user_repo.aggregate(build_watch_history_pipeline(user_id))
        if not results:
            raise NotFoundError("User not found")

        order = {str(video_id): index for index, video_id in enumerate(results[0].get("watch_history", []))}
        history = results[0].get("history", [])
        return sorted(history, key=lambda video: order.get(str(video["_id"]), len(order)))
