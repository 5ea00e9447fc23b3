"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Page, User, Video


class IUserRepository(ABC):
    """User repository interface"""

    @abstractmethod
    async def create(self, username: str, email: str, password_hash: str,
                     full_name: Optional[str] = None,
                     avatar: Optional[Dict[str, str]] = None,
                     cover_image: Optional[Dict[str, str]] = None) -> User:
        """Create a new user"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_username_or_email(self, username: Optional[str] = None,
                                        email: Optional[str] = None) -> Optional[User]:
        """Find user matching either the username or the email"""
        pass

    @abstractmethod
    async def exists_by_username_or_email(self, username: str, email: str) -> bool:
        """Check if user exists by username or email"""
        pass

    @abstractmethod
    async def update(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        """Update user fields and return the updated user"""
        pass

    @abstractmethod
    async def set_refresh_token_hash(self, user_id: str, token_hash: Optional[str]) -> bool:
        """Overwrite (or clear, with None) the stored refresh token fingerprint.

        Returns False when no user matched.
        """
        pass

    @abstractmethod
    async def add_to_watch_history(self, user_id: str, video_id: str) -> None:
        """Append a video to the watch history unless already present"""
        pass

    @abstractmethod
    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline over users"""
        pass


class IVideoRepository(ABC):
    """Video repository interface"""

    @abstractmethod
    async def create(self, owner_id: str, title: str, description: str,
                     video_file: Dict[str, str], thumbnail: Dict[str, str],
                     duration: float = 0, is_published: bool = False) -> Video:
        """Create a new video"""
        pass

    @abstractmethod
    async def find_by_id(self, video_id: str) -> Optional[Video]:
        """Find video by ID"""
        pass

    @abstractmethod
    async def update(self, video_id: str, updates: Dict[str, Any]) -> Optional[Video]:
        """Update video fields and return the updated video"""
        pass

    @abstractmethod
    async def delete(self, video_id: str) -> bool:
        """Delete video, returning False when nothing was deleted"""
        pass

    @abstractmethod
    async def increment_views(self, video_id: str) -> None:
        """Increment the view counter by one"""
        pass

    @abstractmethod
    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline over videos"""
        pass

    @abstractmethod
    async def aggregate_paginate(self, pipeline: List[Dict[str, Any]],
                                 page: int, limit: int) -> Page:
        """Run a pipeline and return one page of its output"""
        pass


class ILikeRepository(ABC):
    """Like repository interface"""

    @abstractmethod
    async def toggle(self, video_id: str, user_id: str) -> bool:
        """Add the like if absent, remove it if present. Returns the new state."""
        pass

    @abstractmethod
    async def delete_by_video(self, video_id: str) -> int:
        """Delete every like of a video"""
        pass


class ICommentRepository(ABC):
    """Comment repository interface"""

    @abstractmethod
    async def delete_by_video(self, video_id: str) -> int:
        """Delete every comment of a video"""
        pass
