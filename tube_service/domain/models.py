"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import ceil
from typing import Any, Dict, List, Optional


class AssetKind(str, Enum):
    """Remote asset resource kind"""
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"


class SortField(str, Enum):
    """Video fields a feed may be sorted on"""
    VIEWS = "views"
    CREATED_AT = "created_at"
    DURATION = "duration"


class SortType(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def direction(self) -> int:
        return 1 if self is SortType.ASC else -1


@dataclass
class RemoteAsset:
    """A binary object stored outside the primary data store"""
    url: str
    remote_id: str

    def to_document(self) -> Dict[str, str]:
        return {"url": self.url, "remote_id": self.remote_id}

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> Optional["RemoteAsset"]:
        if not doc or not doc.get("remote_id"):
            return None
        return cls(url=doc.get("url", ""), remote_id=doc["remote_id"])


@dataclass
class User:
    """User domain model"""
    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    password_hash: Optional[str] = None
    avatar: Optional[RemoteAsset] = None
    cover_image: Optional[RemoteAsset] = None
    refresh_token_hash: Optional[str] = None
    watch_history: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_owner(self, user_id: str) -> bool:
        """Check if the given user_id is this user"""
        return self.id == user_id


@dataclass
class Video:
    """Video domain model"""
    id: str
    title: str
    description: str
    video_file: RemoteAsset
    thumbnail: RemoteAsset
    owner: str
    duration: float = 0
    views: int = 0
    is_published: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_owner(self, user_id: str) -> bool:
        """Check if the given user_id owns this video"""
        return self.owner == user_id


@dataclass
class Principal:
    """Identity carried by a verified access token"""
    user_id: str
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass
class Page:
    """One page of an aggregation result"""
    items: List[Dict[str, Any]]
    total_items: int
    total_pages: int
    current_page: int
    limit: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.total_pages > 0 and self.current_page > 1

    @classmethod
    def from_facet(cls, result: Optional[Dict[str, Any]], page: int, limit: int) -> "Page":
        """Build a page from the output of a ``$facet`` items/total stage"""
        result = result or {}
        counted = result.get("total") or []
        total_items = counted[0]["count"] if counted else 0
        return cls(
            items=list(result.get("items") or []),
            total_items=total_items,
            total_pages=ceil(total_items / limit) if total_items else 0,
            current_page=page,
            limit=limit,
        )
