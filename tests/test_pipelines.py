import pytest
from bson import ObjectId

from tube_service.application.pipelines import (
    build_channel_profile_pipeline,
    build_feed_pipeline,
    build_video_detail_pipeline,
    build_watch_history_pipeline,
    resolve_sort,
)
from tube_service.domain.errors import InvalidReference, ValidationError
from tube_service.domain.models import Page, SortField, SortType


def _stage_names(pipeline):
    return [next(iter(stage)) for stage in pipeline]


def test_default_feed_is_published_newest_first():
    pipeline = build_feed_pipeline()

    assert pipeline[0] == {"$match": {"is_published": True}}
    assert pipeline[1] == {"$sort": {"created_at": -1, "_id": -1}}
    assert _stage_names(pipeline) == ["$match", "$sort", "$lookup", "$unwind"]


def test_search_with_sort_and_owner():
    owner = ObjectId()
    pipeline = build_feed_pipeline(query=" cats ", user_id=str(owner), sort_by="views", sort_type="desc")

    assert pipeline[0] == {"$match": {"$text": {"$search": "cats"}}}
    assert pipeline[1] == {"$match": {"owner": owner}}
    assert pipeline[2] == {"$match": {"is_published": True}}
    assert pipeline[3] == {"$sort": {"views": -1, "_id": -1}}


def test_owner_filter_never_drops_visibility():
    pipeline = build_feed_pipeline(user_id=str(ObjectId()))
    assert {"$match": {"is_published": True}} in pipeline


def test_owner_enrichment_projects_public_fields():
    lookup = build_feed_pipeline()[2]["$lookup"]

    assert lookup["from"] == "users"
    assert lookup["as"] == "owner_details"
    assert lookup["pipeline"] == [{"$project": {"username": 1, "avatar.url": 1}}]


def test_feed_rejects_malformed_owner():
    with pytest.raises(InvalidReference):
        build_feed_pipeline(user_id="not-an-id")


@pytest.mark.parametrize("sort_by,sort_type", [("password_hash", "asc"), ("views", "sideways")])
def test_sort_outside_whitelist_is_rejected(sort_by, sort_type):
    with pytest.raises(ValidationError):
        resolve_sort(sort_by, sort_type)


def test_sort_needs_both_parameters():
    assert resolve_sort("views", None) == (SortField.CREATED_AT, SortType.DESC)
    assert resolve_sort(None, "asc") == (SortField.CREATED_AT, SortType.DESC)
    assert resolve_sort("createdAt", "ASC") == (SortField.CREATED_AT, SortType.ASC)
    assert resolve_sort("duration", "asc") == (SortField.DURATION, SortType.ASC)


def test_video_detail_is_relative_to_requester():
    video_id, requester = ObjectId(), ObjectId()
    pipeline = build_video_detail_pipeline(str(video_id), str(requester))

    match = pipeline[0]["$match"]
    assert match["_id"] == video_id
    assert match["$or"] == [{"is_published": True}, {"owner": requester}]

    added = pipeline[3]["$addFields"]
    assert added["likes_count"] == {"$size": "$likes"}
    assert added["is_liked"] == {"$in": [requester, "$likes.liked_by"]}

    owner_stages = pipeline[2]["$lookup"]["pipeline"]
    assert owner_stages[1]["$addFields"]["is_subscribed"] == {"$in": [requester, "$subscribers.subscriber"]}


def test_video_detail_rejects_malformed_ids():
    with pytest.raises(InvalidReference):
        build_video_detail_pipeline("123", str(ObjectId()))


def test_channel_profile_for_anonymous_caller():
    pipeline = build_channel_profile_pipeline("Alice")

    assert pipeline[0] == {"$match": {"username": "alice"}}
    added = pipeline[3]["$addFields"]
    assert added["subscribers_count"] == {"$size": "$subscribers"}
    assert added["channels_subscribed_to_count"] == {"$size": "$subscribed_to"}
    assert added["is_subscribed"] == {"$literal": False}
    assert "password_hash" not in pipeline[4]["$project"]


def test_watch_history_joins_videos_and_owners():
    user_id = ObjectId()
    pipeline = build_watch_history_pipeline(str(user_id))

    assert pipeline[0] == {"$match": {"_id": user_id}}
    lookup = pipeline[1]["$lookup"]
    assert lookup["localField"] == "watch_history"
    assert lookup["pipeline"][0]["$lookup"]["from"] == "users"


def test_page_from_facet():
    page = Page.from_facet({"items": [{"_id": 1}], "total": [{"count": 21}]}, 2, 10)

    assert page.total_items == 21
    assert page.total_pages == 3
    assert page.has_next_page
    assert page.has_prev_page


def test_empty_page_has_no_pages():
    page = Page.from_facet({"items": [], "total": []}, 1, 10)

    assert page.total_items == 0
    assert page.total_pages == 0
    assert not page.has_next_page
    assert not page.has_prev_page


def test_empty_feed_past_first_page_has_no_neighbours():
    page = Page.from_facet({"items": [], "total": []}, 5, 10)

    assert page.current_page == 5
    assert not page.has_next_page
    assert not page.has_prev_page
