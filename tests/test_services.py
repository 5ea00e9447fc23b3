import os

import pytest
from bson import ObjectId

from tube_service.domain.errors import (
    ConflictError,
    DependencyError,
    FingerprintMismatch,
    ForbiddenError,
    InvalidPassword,
    NotFoundError,
    ValidationError,
)
from tube_service.domain.models import RemoteAsset


@pytest.mark.asyncio
async def test_register_uploads_images(user_service, user_repo, object_store, temp_file):
    avatar, cover = temp_file("avatar.png"), temp_file("cover.jpg")

    user = await user_service.register("Alice", "Alice@Example.com", "secret123", "Alice A", avatar, cover)

    assert user.username == "alice"
    assert user.email == "alice@example.com"
    assert user.password_hash != "secret123"
    assert user.avatar.remote_id in object_store.objects
    assert user.cover_image.remote_id in object_store.objects
    assert not os.path.exists(avatar)
    assert not os.path.exists(cover)


@pytest.mark.asyncio
async def test_register_without_images(user_service):
    user = await user_service.register("bob", "bob@example.com", "secret123")
    assert user.avatar is None
    assert user.cover_image is None


@pytest.mark.asyncio
async def test_register_duplicate_cleans_temp_files(user_service, make_user, object_store, temp_file):
    await make_user()
    avatar = temp_file("avatar.png")

    with pytest.raises(ConflictError):
        await user_service.register("alice", "other@example.com", "secret123", avatar_path=avatar)

    assert not os.path.exists(avatar)
    assert object_store.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("username,email,password", [
    ("", "a@example.com", "secret123"),
    ("carol", "not-an-email", "secret123"),
    ("carol", "@.", "secret123"),
    ("carol", "b o b@x.y", "secret123"),
    ("bad name!", "carol@example.com", "secret123"),
    ("ca", "carol@example.com", "secret123"),
    ("carol", "carol@example.com", "123"),
])
async def test_register_rejects_bad_input(user_service, username, email, password):
    with pytest.raises(ValidationError):
        await user_service.register(username, email, password)


@pytest.mark.asyncio
async def test_register_avatar_upload_failure(user_service, object_store, temp_file):
    object_store.fail_store = True
    avatar, cover = temp_file("avatar.png"), temp_file("cover.png")

    with pytest.raises(DependencyError):
        await user_service.register("dave", "dave@example.com", "secret123", avatar_path=avatar, cover_image_path=cover)

    assert not os.path.exists(avatar)
    assert not os.path.exists(cover)


@pytest.mark.asyncio
async def test_register_removes_uploads_when_create_fails(user_service, user_repo, object_store, temp_file):
    user_repo.fail_create = True

    with pytest.raises(ConflictError):
        await user_service.register("erin", "erin@example.com", "secret123", avatar_path=temp_file("a.png"))

    assert object_store.objects == {}
    assert len(object_store.deleted) == 1


@pytest.mark.asyncio
async def test_login_and_logout(user_service, user_repo, make_user):
    user = await make_user()

    logged_in, tokens = await user_service.login("secret123", email="alice@example.com")
    assert logged_in.id == user.id
    assert user_repo.users[user.id].refresh_token_hash is not None

    await user_service.logout(user.id)
    with pytest.raises(FingerprintMismatch):
        await user_service.refresh(tokens.refresh_token)


@pytest.mark.asyncio
async def test_change_password(user_service, token_service, make_user):
    user = await make_user()
    _, tokens = await user_service.login("secret123", username="alice")

    with pytest.raises(InvalidPassword):
        await user_service.change_password(user.id, "wrong-old", "newsecret1")

    await user_service.change_password(user.id, "secret123", "newsecret1")

    with pytest.raises(FingerprintMismatch):
        await token_service.rotate(tokens.refresh_token)
    with pytest.raises(InvalidPassword):
        await token_service.verify_credentials("secret123", username="alice")
    assert (await token_service.verify_credentials("newsecret1", username="alice")).id == user.id


@pytest.mark.asyncio
async def test_update_account_details(user_service, make_user):
    user = await make_user()

    updated = await user_service.update_account_details(user.id, full_name=" Alice B ", email="New@Example.com")

    assert updated.full_name == "Alice B"
    assert updated.email == "new@example.com"
    with pytest.raises(ValidationError):
        await user_service.update_account_details(user.id)


@pytest.mark.asyncio
async def test_update_account_details_rejects_taken_email(user_service, user_repo, make_user):
    alice = await make_user()
    bob = await make_user(username="bob", email="bob@example.com")

    with pytest.raises(ConflictError):
        await user_service.update_account_details(bob.id, email="Alice@Example.com")

    assert user_repo.users[bob.id].email == "bob@example.com"
    assert user_repo.users[alice.id].email == "alice@example.com"


@pytest.mark.asyncio
async def test_update_account_details_rejects_bad_email(user_service, make_user):
    user = await make_user()

    with pytest.raises(ValidationError):
        await user_service.update_account_details(user.id, email="b o b@x.y")


@pytest.mark.asyncio
async def test_update_avatar_replaces_old_asset(user_service, user_repo, object_store, make_user, temp_file):
    user = await make_user()
    old = RemoteAsset(url="http://media.test/image/old", remote_id="image/old")
    object_store.objects["image/old"] = "old"
    user_repo.users[user.id].avatar = old

    updated = await user_service.update_avatar(user.id, temp_file("new.png"))

    assert updated.avatar.remote_id != "image/old"
    assert updated.avatar.remote_id in object_store.objects
    assert object_store.deleted == ["image/old"]


@pytest.mark.asyncio
async def test_update_cover_image_keeps_avatar(user_service, user_repo, make_user, temp_file):
    user = await make_user()
    avatar = RemoteAsset(url="http://media.test/image/avatar", remote_id="image/avatar")
    user_repo.users[user.id].avatar = avatar

    updated = await user_service.update_cover_image(user.id, temp_file("cover.png"))

    assert updated.cover_image is not None
    assert updated.avatar == avatar


@pytest.mark.asyncio
async def test_update_avatar_upload_failure_keeps_old(user_service, user_repo, object_store, make_user, temp_file):
    user = await make_user()
    old = RemoteAsset(url="http://media.test/image/old", remote_id="image/old")
    user_repo.users[user.id].avatar = old
    object_store.fail_store = True

    with pytest.raises(DependencyError):
        await user_service.update_avatar(user.id, temp_file("new.png"))

    assert user_repo.users[user.id].avatar == old
    assert object_store.deleted == []


@pytest.mark.asyncio
async def test_publish_video_starts_unpublished(video_service, object_store, temp_file):
    owner = str(ObjectId())

    video = await video_service.publish_video(owner, "Cats", "Funny cats", temp_file("v.mp4"), temp_file("t.png"), 42.0)

    assert video.is_published is False
    assert video.owner == owner
    assert video.duration == 42.0
    assert video.video_file.remote_id.startswith("video/")
    assert video.thumbnail.remote_id.startswith("image/")


@pytest.mark.asyncio
async def test_publish_video_thumbnail_failure_removes_video(video_service, object_store, temp_file):
    real_store = object_store.store

    def store_once(local_path, kind):
        if kind.value == "image":
            object_store.fail_store = True
        return real_store(local_path, kind)

    object_store.store = store_once

    with pytest.raises(DependencyError):
        await video_service.publish_video(str(ObjectId()), "Cats", "Funny", temp_file("v.mp4"), temp_file("t.png"))

    assert object_store.objects == {}


@pytest.mark.asyncio
async def test_publish_video_requires_fields(video_service, temp_file):
    thumbnail = temp_file("t.png")
    with pytest.raises(ValidationError):
        await video_service.publish_video(str(ObjectId()), " ", "desc", None, thumbnail)
    assert not os.path.exists(thumbnail)


@pytest.mark.asyncio
async def test_delete_video_by_owner(video_service, video_repo, like_repo, comment_repo, object_store, make_video):
    owner = str(ObjectId())
    video = await make_video(owner)
    like_repo.likes.add((video.id, str(ObjectId())))
    comment_repo.comments.append({"video": video.id, "text": "nice"})

    deleted = await video_service.delete_video(video.id, owner)

    assert deleted.id == video.id
    assert video.id not in video_repo.videos
    assert sorted(object_store.deleted) == sorted([video.video_file.remote_id, video.thumbnail.remote_id])
    assert like_repo.likes == set()
    assert comment_repo.comments == []


@pytest.mark.asyncio
async def test_delete_video_by_someone_else(video_service, video_repo, object_store, make_video):
    video = await make_video(str(ObjectId()))

    with pytest.raises(ForbiddenError):
        await video_service.delete_video(video.id, str(ObjectId()))

    assert video.id in video_repo.videos
    assert object_store.deleted == []


@pytest.mark.asyncio
async def test_delete_video_survives_storage_failure(video_service, video_repo, object_store, make_video):
    owner = str(ObjectId())
    video = await make_video(owner)
    object_store.fail_delete = True

    await video_service.delete_video(video.id, owner)

    assert video.id not in video_repo.videos


@pytest.mark.asyncio
async def test_update_video_thumbnail(video_service, object_store, make_video, temp_file):
    owner = str(ObjectId())
    video = await make_video(owner)
    old_thumbnail = video.thumbnail.remote_id

    updated = await video_service.update_video(video.id, owner, title="Dogs", thumbnail_path=temp_file("t.png"))

    assert updated.title == "Dogs"
    assert updated.thumbnail.remote_id != old_thumbnail
    assert object_store.deleted == [old_thumbnail]


@pytest.mark.asyncio
async def test_update_video_forbidden_cleans_temp(video_service, make_video, temp_file):
    video = await make_video(str(ObjectId()))
    thumbnail = temp_file("t.png")

    with pytest.raises(ForbiddenError):
        await video_service.update_video(video.id, str(ObjectId()), thumbnail_path=thumbnail)

    assert not os.path.exists(thumbnail)


@pytest.mark.asyncio
async def test_toggle_publish_status(video_service, make_video):
    owner = str(ObjectId())
    video = await make_video(owner, is_published=False)

    assert (await video_service.toggle_publish_status(video.id, owner)).is_published is True
    assert (await video_service.toggle_publish_status(video.id, owner)).is_published is False
    with pytest.raises(NotFoundError):
        await video_service.toggle_publish_status(str(ObjectId()), owner)


@pytest.mark.asyncio
async def test_toggle_video_like(video_service, make_video):
    video = await make_video(str(ObjectId()))
    viewer = str(ObjectId())

    assert await video_service.toggle_video_like(video.id, viewer) is True
    assert await video_service.toggle_video_like(video.id, viewer) is False


@pytest.mark.asyncio
async def test_cannot_like_someone_elses_draft(video_service, make_video):
    video = await make_video(str(ObjectId()), is_published=False)

    with pytest.raises(NotFoundError):
        await video_service.toggle_video_like(video.id, str(ObjectId()))
