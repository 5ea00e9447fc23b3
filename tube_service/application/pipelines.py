"""
Aggregation pipeline builders for feed, detail, channel and history views

Every view is a single declarative pipeline; joins that fan out (owner ->
subscribers, video -> likes, history -> videos -> owner) are nested
``$lookup`` sub-pipelines rather than per-row queries.
"""
from typing import Any, Dict, List, Optional, Tuple

from ..domain.errors import ValidationError
from ..domain.models import SortField, SortType
from ..infrastructure.database.connection import LIKES, SUBSCRIPTIONS, USERS, VIDEOS
from ..infrastructure.database.ids import parse_object_id

Stage = Dict[str, Any]

SORT_FIELD_ALIASES = {
    "views": SortField.VIEWS,
    "created_at": SortField.CREATED_AT,
    "createdAt": SortField.CREATED_AT,
    "duration": SortField.DURATION,
}

OWNER_PUBLIC_PROJECTION = {"username": 1, "avatar.url": 1}


def resolve_sort(sort_by: Optional[str], sort_type: Optional[str]) -> Tuple[SortField, SortType]:
    """
    Resolve requested sort parameters against the whitelist

    Both must be given for the request to take effect; otherwise the feed is
    newest first. A supplied value outside the whitelist is rejected.
    """
    field = None
    direction = None

    if sort_by:
        field = SORT_FIELD_ALIASES.get(sort_by)
        if field is None:
            raise ValidationError(
                "Invalid sort field",
                errors=[f"sortBy must be one of: {', '.join(f.value for f in SortField)}"]
            )
    if sort_type:
        try:
            direction = SortType(sort_type.lower())
        except ValueError:
            raise ValidationError("Invalid sort type", errors=["sortType must be 'asc' or 'desc'"])

    if field is None or direction is None:
        return SortField.CREATED_AT, SortType.DESC
    return field, direction


def text_filter_stage(query: str) -> Stage:
    # $text must be the first stage; it uses the title/description text index
    return {"$match": {"$text": {"$search": query}}}


def owner_filter_stage(user_id: str) -> Stage:
    return {"$match": {"owner": parse_object_id(user_id, "user id")}}


def visibility_stage() -> Stage:
    return {"$match": {"is_published": True}}


def sort_stage(field: SortField, direction: SortType) -> Stage:
    # _id breaks ties so that page boundaries are deterministic
    return {"$sort": {field.value: direction.direction, "_id": direction.direction}}


def owner_enrichment_stages() -> List[Stage]:
    return [
        {
            "$lookup": {
                "from": USERS,
                "localField": "owner",
                "foreignField": "_id",
                "as": "owner_details",
                "pipeline": [{"$project": OWNER_PUBLIC_PROJECTION}],
            }
        },
        {"$unwind": "$owner_details"},
    ]


def build_feed_pipeline(
    query: Optional[str] = None,
    user_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None
) -> List[Stage]:
    """
    Build the public video feed pipeline

    Stages: text filter, owner filter, published only, sort, owner
    enrichment. Pagination is appended by the repository.
    """
    pipeline: List[Stage] = []

    if query and query.strip():
        pipeline.append(text_filter_stage(query.strip()))

    if user_id:
        pipeline.append(owner_filter_stage(user_id))

    pipeline.append(visibility_stage())

    field, direction = resolve_sort(sort_by, sort_type)
    pipeline.append(sort_stage(field, direction))

    pipeline.extend(owner_enrichment_stages())
    return pipeline


def _membership(requester_oid, array_path: str) -> Any:
    """Expression that is true when requester_oid appears in array_path"""
    if requester_oid is None:
        return {"$literal": False}
    return {"$in": [requester_oid, array_path]}


def build_video_detail_pipeline(video_id: str, requester_id: str) -> List[Stage]:
    """Single video with like counts and owner subscription info, relative to the requester"""
    video_oid = parse_object_id(video_id, "video id")
    requester_oid = parse_object_id(requester_id, "user id")

    return [
        {
            "$match": {
                "_id": video_oid,
                # unpublished videos are visible to their owner only
                "$or": [{"is_published": True}, {"owner": requester_oid}],
            }
        },
        {
            "$lookup": {
                "from": LIKES,
                "localField": "_id",
                "foreignField": "video",
                "as": "likes",
            }
        },
        {
            "$lookup": {
                "from": USERS,
                "localField": "owner",
                "foreignField": "_id",
                "as": "owner",
                "pipeline": [
                    {
                        "$lookup": {
                            "from": SUBSCRIPTIONS,
                            "localField": "_id",
                            "foreignField": "channel",
                            "as": "subscribers",
                        }
                    },
                    {
                        "$addFields": {
                            "subscribers_count": {"$size": "$subscribers"},
                            "is_subscribed": _membership(requester_oid, "$subscribers.subscriber"),
                        }
                    },
                    {
                        "$project": {
                            "username": 1,
                            "avatar.url": 1,
                            "subscribers_count": 1,
                            "is_subscribed": 1,
                        }
                    },
                ],
            }
        },
        {
            "$addFields": {
                "likes_count": {"$size": "$likes"},
                "owner": {"$first": "$owner"},
                "is_liked": _membership(requester_oid, "$likes.liked_by"),
            }
        },
        {
            "$project": {
                "video_file.url": 1,
                "thumbnail.url": 1,
                "title": 1,
                "description": 1,
                "views": 1,
                "duration": 1,
                "is_published": 1,
                "created_at": 1,
                "likes_count": 1,
                "is_liked": 1,
                "owner": 1,
            }
        },
    ]


def build_channel_profile_pipeline(username: str, requester_id: Optional[str] = None) -> List[Stage]:
    """Public channel profile with subscriber and subscription counts"""
    requester_oid = parse_object_id(requester_id, "user id") if requester_id else None

    return [
        {"$match": {"username": username.strip().lower()}},
        {
            "$lookup": {
                "from": SUBSCRIPTIONS,
                "localField": "_id",
                "foreignField": "channel",
                "as": "subscribers",
            }
        },
        {
            "$lookup": {
                "from": SUBSCRIPTIONS,
                "localField": "_id",
                "foreignField": "subscriber",
                "as": "subscribed_to",
            }
        },
        {
            "$addFields": {
                "subscribers_count": {"$size": "$subscribers"},
                "channels_subscribed_to_count": {"$size": "$subscribed_to"},
                "is_subscribed": _membership(requester_oid, "$subscribers.subscriber"),
            }
        },
        {
            "$project": {
                "full_name": 1,
                "username": 1,
                "email": 1,
                "avatar.url": 1,
                "cover_image.url": 1,
                "subscribers_count": 1,
                "channels_subscribed_to_count": 1,
                "is_subscribed": 1,
                "created_at": 1,
            }
        },
    ]


def build_watch_history_pipeline(user_id: str) -> List[Stage]:
    """User -> watched videos -> each video's owner"""
    return [
        {"$match": {"_id": parse_object_id(user_id, "user id")}},
        {
            "$lookup": {
                "from": VIDEOS,
                "localField": "watch_history",
                "foreignField": "_id",
                "as": "history",
                "pipeline": [
                    {
                        "$lookup": {
                            "from": USERS,
                            "localField": "owner",
                            "foreignField": "_id",
                            "as": "owner",
                            "pipeline": [
                                {"$project": {"full_name": 1, "username": 1, "avatar.url": 1}}
                            ],
                        }
                    },
                    {"$addFields": {"owner": {"$first": "$owner"}}},
                    {
                        "$project": {
                            "title": 1,
                            "description": 1,
                            "thumbnail.url": 1,
                            "video_file.url": 1,
                            "duration": 1,
                            "views": 1,
                            "created_at": 1,
                            "owner": 1,
                        }
                    },
                ],
            }
        },
        {"$project": {"watch_history": 1, "history": 1}},
    ]
