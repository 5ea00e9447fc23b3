"""
Repository implementations - Data access layer
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...domain.errors import ConflictError, PersistenceError
from ...domain.models import Page, RemoteAsset, User, Video
from ...domain.repositories import (
    ICommentRepository,
    ILikeRepository,
    IUserRepository,
    IVideoRepository,
)
from .connection import COMMENTS, LIKES, USERS, VIDEOS
from .ids import parse_object_id

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRepository(IUserRepository):
    """User repository implementation using MongoDB"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[USERS]

    def _doc_to_user(self, doc: Optional[Dict[str, Any]]) -> Optional[User]:
        """Convert database document to User model"""
        if not doc:
            return None
        return User(
            id=str(doc["_id"]),
            username=doc["username"],
            email=doc["email"],
            full_name=doc.get("full_name"),
            password_hash=doc.get("password_hash"),
            avatar=RemoteAsset.from_document(doc.get("avatar")),
            cover_image=RemoteAsset.from_document(doc.get("cover_image")),
            refresh_token_hash=doc.get("refresh_token_hash"),
            watch_history=[str(video_id) for video_id in doc.get("watch_history", [])],
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    async def create(self, username: str, email: str, password_hash: str,
                     full_name: Optional[str] = None,
                     avatar: Optional[Dict[str, str]] = None,
                     cover_image: Optional[Dict[str, str]] = None) -> User:
        """Create a new user"""
        now = _now()
        doc = {
            "username": username.lower(),
            "email": email.lower(),
            "full_name": full_name,
            "password_hash": password_hash,
            "avatar": avatar,
            "cover_image": cover_image,
            "watch_history": [],
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError("User with this email or username already exists")
        except PyMongoError as e:
            raise PersistenceError("Failed to create user") from e

        doc["_id"] = result.inserted_id
        return self._doc_to_user(doc)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find user by ID"""
        doc = await self.collection.find_one({"_id": parse_object_id(user_id, "user id")})
        return self._doc_to_user(doc)

    async def find_by_username_or_email(self, username: Optional[str] = None,
                                        email: Optional[str] = None) -> Optional[User]:
        """Find user matching either the username or the email"""
        conditions = []
        if username:
            conditions.append({"username": username.lower()})
        if email:
            conditions.append({"email": email.lower()})
        if not conditions:
            return None

        doc = await self.collection.find_one({"$or": conditions})
        return self._doc_to_user(doc)

    async def exists_by_username_or_email(self, username: str, email: str) -> bool:
        """Check if user exists by username or email"""
        doc = await self.collection.find_one(
            {"$or": [{"username": username.lower()}, {"email": email.lower()}]},
            projection={"_id": 1}
        )
        return doc is not None

    async def update(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        """Update user fields and return the updated user"""
        update_doc = dict(updates)
        update_doc["updated_at"] = _now()
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": parse_object_id(user_id, "user id")},
                {"$set": update_doc},
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise ConflictError("User with this email or username already exists")
        except PyMongoError as e:
            raise PersistenceError("Failed to update user") from e
        return self._doc_to_user(doc)

    async def set_refresh_token_hash(self, user_id: str, token_hash: Optional[str]) -> bool:
        """Overwrite or clear the stored refresh token fingerprint"""
        if token_hash is None:
            update = {"$unset": {"refresh_token_hash": ""}}
        else:
            update = {"$set": {"refresh_token_hash": token_hash}}
        try:
            result = await self.collection.update_one(
                {"_id": parse_object_id(user_id, "user id")}, update
            )
        except PyMongoError as e:
            raise PersistenceError("Failed to store refresh token") from e
        return result.matched_count > 0

    async def add_to_watch_history(self, user_id: str, video_id: str) -> None:
        """Append a video to the watch history unless already present"""
        await self.collection.update_one(
            {"_id": parse_object_id(user_id, "user id")},
            {"$addToSet": {"watch_history": parse_object_id(video_id, "video id")}}
        )

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline over users"""
        return await self.collection.aggregate(pipeline).to_list(length=None)


class VideoRepository(IVideoRepository):
    """Video repository implementation using MongoDB"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[VIDEOS]

    def _doc_to_video(self, doc: Optional[Dict[str, Any]]) -> Optional[Video]:
        """Convert database document to Video model"""
        if not doc:
            return None
        return Video(
            id=str(doc["_id"]),
            title=doc["title"],
            description=doc.get("description", ""),
            video_file=RemoteAsset.from_document(doc.get("video_file")),
            thumbnail=RemoteAsset.from_document(doc.get("thumbnail")),
            owner=str(doc["owner"]),
            duration=doc.get("duration", 0),
            views=doc.get("views", 0),
            is_published=doc.get("is_published", False),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    async def create(self, owner_id: str, title: str, description: str,
                     video_file: Dict[str, str], thumbnail: Dict[str, str],
                     duration: float = 0, is_published: bool = False) -> Video:
        """Create a new video"""
        now = _now()
        doc = {
            "title": title,
            "description": description,
            "video_file": video_file,
            "thumbnail": thumbnail,
            "duration": duration,
            "views": 0,
            "is_published": is_published,
            "owner": parse_object_id(owner_id, "user id"),
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError("Failed to create video") from e

        doc["_id"] = result.inserted_id
        return self._doc_to_video(doc)

    async def find_by_id(self, video_id: str) -> Optional[Video]:
        """Find video by ID"""
        doc = await self.collection.find_one({"_id": parse_object_id(video_id, "video id")})
        return self._doc_to_video(doc)

    async def update(self, video_id: str, updates: Dict[str, Any]) -> Optional[Video]:
        """Update video fields and return the updated video"""
        update_doc = dict(updates)
        update_doc["updated_at"] = _now()
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": parse_object_id(video_id, "video id")},
                {"$set": update_doc},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise PersistenceError("Failed to update video") from e
        return self._doc_to_video(doc)

    async def delete(self, video_id: str) -> bool:
        """Delete video"""
        try:
            result = await self.collection.delete_one({"_id": parse_object_id(video_id, "video id")})
        except PyMongoError as e:
            raise PersistenceError("Failed to delete video") from e
        return result.deleted_count > 0

    async def increment_views(self, video_id: str) -> None:
        """Increment the view counter by one"""
        await self.collection.update_one(
            {"_id": parse_object_id(video_id, "video id")},
            {"$inc": {"views": 1}}
        )

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline over videos"""
        return await self.collection.aggregate(pipeline).to_list(length=None)

    async def aggregate_paginate(self, pipeline: List[Dict[str, Any]],
                                 page: int, limit: int) -> Page:
        """Run a pipeline and return one page of its output with the total count"""
        facet = {
            "$facet": {
                "items": [{"$skip": (page - 1) * limit}, {"$limit": limit}],
                "total": [{"$count": "count"}],
            }
        }
        result = await self.collection.aggregate(pipeline + [facet]).to_list(length=1)
        return Page.from_facet(result[0] if result else None, page, limit)


class LikeRepository(ILikeRepository):
    """Like repository implementation using MongoDB"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[LIKES]

    async def toggle(self, video_id: str, user_id: str) -> bool:
        """Add the like if absent, remove it if present"""
        key = {
            "video": parse_object_id(video_id, "video id"),
            "liked_by": parse_object_id(user_id, "user id"),
        }
        removed = await self.collection.delete_one(key)
        if removed.deleted_count:
            return False

        try:
            await self.collection.insert_one({**key, "created_at": _now()})
        except DuplicateKeyError:
            # a concurrent request already liked it
            logger.debug(f"Like on {video_id} by {user_id} already present")
        return True

    async def delete_by_video(self, video_id: str) -> int:
        """Delete every like of a video"""
        result = await self.collection.delete_many({"video": parse_object_id(video_id, "video id")})
        return result.deleted_count


class CommentRepository(ICommentRepository):
    """Comment repository implementation using MongoDB"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[COMMENTS]

    async def delete_by_video(self, video_id: str) -> int:
        """Delete every comment of a video"""
        result = await self.collection.delete_many({"video": parse_object_id(video_id, "video id")})
        return result.deleted_count
