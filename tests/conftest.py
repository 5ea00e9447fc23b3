from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

from tube_service.application.assets import AssetManager
from tube_service.application.feed import FeedService
from tube_service.application.services import TokenService, UserService, VideoService
from tube_service.domain.errors import ConflictError, DependencyError
from tube_service.domain.models import AssetKind, Page, RemoteAsset, User, Video
from tube_service.domain.repositories import (
    ICommentRepository,
    ILikeRepository,
    IUserRepository,
    IVideoRepository,
)
from tube_service.infrastructure.auth import TokenSigner, hash_password

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"


class InMemoryUserRepository(IUserRepository):
    def __init__(self):
        self.users: Dict[str, User] = {}
        self.aggregate_results: List[Dict[str, Any]] = []
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.fail_create = False

    async def create(self, username, email, password_hash, full_name=None, avatar=None, cover_image=None):
        if self.fail_create:
            raise ConflictError("User with this email or username already exists")
        now = datetime.now(timezone.utc)
        user = User(
            id=str(ObjectId()),
            username=username.lower(),
            email=email.lower(),
            full_name=full_name,
            password_hash=password_hash,
            avatar=RemoteAsset.from_document(avatar),
            cover_image=RemoteAsset.from_document(cover_image),
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    async def find_by_id(self, user_id):
        return self.users.get(user_id)

    async def find_by_username_or_email(self, username=None, email=None):
        for user in self.users.values():
            if (username and user.username == username.lower()) or (email and user.email == email.lower()):
                return user
        return None

    async def exists_by_username_or_email(self, username, email):
        return await self.find_by_username_or_email(username, email) is not None

    async def update(self, user_id, updates):
        user = self.users.get(user_id)
        if user is None:
            return None
        for other in self.users.values():
            if other.id == user_id:
                continue
            if updates.get("email") == other.email or updates.get("username") == other.username:
                raise ConflictError("User with this email or username already exists")
        for key, value in updates.items():
            if key in ("avatar", "cover_image"):
                value = RemoteAsset.from_document(value)
            setattr(user, key, value)
        return user

    async def set_refresh_token_hash(self, user_id, token_hash):
        user = self.users.get(user_id)
        if user is None:
            return False
        user.refresh_token_hash = token_hash
        return True

    async def add_to_watch_history(self, user_id, video_id):
        user = self.users.get(user_id)
        if user is not None and video_id not in user.watch_history:
            user.watch_history.append(video_id)

    async def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return list(self.aggregate_results)


class InMemoryVideoRepository(IVideoRepository):
    def __init__(self):
        self.videos: Dict[str, Video] = {}
        self.aggregate_results: List[Dict[str, Any]] = []
        self.feed_items: List[Dict[str, Any]] = []
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.fail_create = False

    async def create(self, owner_id, title, description, video_file, thumbnail, duration=0, is_published=False):
        if self.fail_create:
            raise RuntimeError("insert failed")
        video = Video(
            id=str(ObjectId()),
            title=title,
            description=description,
            video_file=RemoteAsset.from_document(video_file),
            thumbnail=RemoteAsset.from_document(thumbnail),
            owner=owner_id,
            duration=duration,
            is_published=is_published,
            created_at=datetime.now(timezone.utc),
        )
        self.videos[video.id] = video
        return video

    async def find_by_id(self, video_id):
        return self.videos.get(video_id)

    async def update(self, video_id, updates):
        video = self.videos.get(video_id)
        if video is None:
            return None
        for key, value in updates.items():
            if key in ("video_file", "thumbnail"):
                value = RemoteAsset.from_document(value)
            setattr(video, key, value)
        return video

    async def delete(self, video_id):
        return self.videos.pop(video_id, None) is not None

    async def increment_views(self, video_id):
        video = self.videos.get(video_id)
        if video is not None:
            video.views += 1

    async def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return list(self.aggregate_results)

    async def aggregate_paginate(self, pipeline, page, limit):
        self.pipelines.append(pipeline)
        items = self.feed_items[(page - 1) * limit:page * limit]
        total = [{"count": len(self.feed_items)}] if self.feed_items else []
        return Page.from_facet({"items": items, "total": total}, page, limit)


class InMemoryLikeRepository(ILikeRepository):
    def __init__(self):
        self.likes = set()

    async def toggle(self, video_id, user_id):
        key = (video_id, user_id)
        if key in self.likes:
            self.likes.remove(key)
            return False
        self.likes.add(key)
        return True

    async def delete_by_video(self, video_id):
        removed = {key for key in self.likes if key[0] == video_id}
        self.likes -= removed
        return len(removed)


class InMemoryCommentRepository(ICommentRepository):
    def __init__(self):
        self.comments: List[Dict[str, str]] = []

    async def delete_by_video(self, video_id):
        before = len(self.comments)
        self.comments = [comment for comment in self.comments if comment["video"] != video_id]
        return before - len(self.comments)


class FakeObjectStore:
    """Records stored and deleted keys; can be told to fail"""

    def __init__(self):
        self.objects: Dict[str, str] = {}
        self.deleted: List[str] = []
        self.calls: List[str] = []
        self.fail_store = False
        self.fail_delete = False

    def store(self, local_path: str, kind: AssetKind) -> RemoteAsset:
        self.calls.append(f"store:{kind.value}")
        if self.fail_store:
            raise DependencyError("storage unavailable")
        key = f"{kind.value}/{ObjectId()}"
        self.objects[key] = local_path
        return RemoteAsset(url=f"http://media.test/{key}", remote_id=key)

    def delete(self, remote_id: str, kind: Optional[AssetKind] = None) -> None:
        self.calls.append(f"delete:{remote_id}")
        if self.fail_delete:
            raise DependencyError("storage unavailable")
        self.objects.pop(remote_id, None)
        self.deleted.append(remote_id)


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def video_repo():
    return InMemoryVideoRepository()


@pytest.fixture
def like_repo():
    return InMemoryLikeRepository()


@pytest.fixture
def comment_repo():
    return InMemoryCommentRepository()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def asset_manager(object_store):
    return AssetManager(object_store)


@pytest.fixture
def access_signer():
    return TokenSigner(ACCESS_SECRET, timedelta(minutes=15))


@pytest.fixture
def refresh_signer():
    return TokenSigner(REFRESH_SECRET, timedelta(days=10))


@pytest.fixture
def token_service(user_repo, access_signer, refresh_signer):
    return TokenService(user_repo, access_signer, refresh_signer)


@pytest.fixture
def user_service(user_repo, token_service, asset_manager):
    return UserService(user_repo, token_service, asset_manager)


@pytest.fixture
def video_service(video_repo, like_repo, comment_repo, asset_manager):
    return VideoService(video_repo, like_repo, comment_repo, asset_manager)


@pytest.fixture
def feed_service(video_repo, user_repo):
    return FeedService(video_repo, user_repo)


@pytest.fixture
def temp_file(tmp_path):
    """Factory writing a throwaway upload to disk"""
    def _make(name: str = "avatar.png", content: bytes = b"data") -> str:
        path = tmp_path / f"{ObjectId()}-{name}"
        path.write_bytes(content)
        return str(path)
    return _make


@pytest.fixture
def make_user(user_repo):
    async def _make(username: str = "alice", email: str = "alice@example.com", password: str = "secret123"):
        return await user_repo.create(
            username=username,
            email=email,
            password_hash=hash_password(password),
            full_name=username.title(),
        )
    return _make


@pytest.fixture
def make_video(video_repo):
    async def _make(owner_id: str, is_published: bool = True, title: str = "Cats"):
        return await video_repo.create(
            owner_id=owner_id,
            title=title,
            description=f"{title} description",
            video_file={"url": "http://media.test/video/v1.mp4", "remote_id": f"video/{ObjectId()}"},
            thumbnail={"url": "http://media.test/image/t1.png", "remote_id": f"image/{ObjectId()}"},
            duration=12.5,
            is_published=is_published,
        )
    return _make
