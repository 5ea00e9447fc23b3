"""
Application services - Business logic layer
"""
import logging
import re
from typing import List, Optional, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..domain.errors import (
    ConflictError,
    DependencyError,
    Expired,
    FingerprintMismatch,
    ForbiddenError,
    InvalidPassword,
    InvalidToken,
    NotFoundError,
    PersistenceError,
    SignatureInvalid,
    UserNotFound,
    ValidationError,
)
from ..domain.models import AssetKind, Principal, RemoteAsset, TokenPair, User, Video
from ..domain.repositories import (
    ICommentRepository,
    ILikeRepository,
    IUserRepository,
    IVideoRepository,
)
from ..infrastructure.auth import (
    TokenSigner,
    fingerprints_match,
    generate_token_hash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from ..infrastructure.database.ids import is_valid_id
from .assets import AssetManager, delete_local_file

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


_email_adapter = TypeAdapter(EmailStr)

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_\.]+$")
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50


def _validate_email(email: str) -> str:
    """Validate an email address and return its normalized form"""
    try:
        return _email_adapter.validate_python(email.strip()).lower()
    except PydanticValidationError as e:
        raise ValidationError(
            "Please provide a valid email address",
            errors=[error["msg"] for error in e.errors()]
        ) from e


def _validate_username(username: str) -> str:
    username = username.strip()
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
        )
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Username can only contain letters, numbers, underscores, and dots")
    return username.lower()


def _check_password(password: str) -> None:
    is_valid, error_msg = validate_password_strength(password)
    if not is_valid:
        raise ValidationError(error_msg)


class TokenService:
    """Issues, verifies, rotates and revokes access/refresh token pairs"""

    def __init__(
        self,
        user_repository: IUserRepository,
        access_signer: TokenSigner,
        refresh_signer: TokenSigner
    ):
        self.user_repo = user_repository
        self.access_signer = access_signer
        self.refresh_signer = refresh_signer

    async def issue_pair(self, user_id: str, user: Optional[User] = None) -> TokenPair:
        """
        Issue a new access/refresh pair and store the refresh fingerprint

        Any previously issued refresh token for the user stops working.

        Raises:
            PersistenceError: If the user is missing or the write fails
        """
        if user is None:
            user = await self.user_repo.find_by_id(user_id)
        if user is None:
            raise PersistenceError("Token generation failed: user not found")

        access_token = self.access_signer.sign({
            "sub": user.id,
            "type": ACCESS_TOKEN_TYPE,
            "username": user.username,
            "email": user.email,
            "full_name": user.full_name,
        })
        refresh_token = self.refresh_signer.sign({
            "sub": user.id,
            "type": REFRESH_TOKEN_TYPE,
        })

        stored = await self.user_repo.set_refresh_token_hash(user.id, generate_token_hash(refresh_token))
        if not stored:
            raise PersistenceError("Token generation failed: user not found")

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def verify_access(self, token: str) -> Principal:
        """
        Verify an access token by signature and expiry only

        Raises:
            InvalidToken: Malformed, badly signed or not an access token
            Expired: Token is past its expiry
        """
        payload = self.access_signer.verify(token)
        user_id = payload.get("sub")
        if payload.get("type") != ACCESS_TOKEN_TYPE or not user_id:
            raise InvalidToken("Invalid access token")

        return Principal(
            user_id=user_id,
            username=payload.get("username"),
            email=payload.get("email"),
            full_name=payload.get("full_name"),
        )

    async def rotate(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair

        The token must be the one currently fingerprinted on the user; a
        stale, reused or revoked token is rejected even if its signature
        is valid.

        Raises:
            SignatureInvalid, Expired, UserNotFound, FingerprintMismatch
        """
        if not refresh_token:
            raise SignatureInvalid("Refresh token is missing")

        try:
            payload = self.refresh_signer.verify(refresh_token)
        except Expired:
            raise
        except InvalidToken as e:
            raise SignatureInvalid(e.message)

        user_id = payload.get("sub")
        if payload.get("type") != REFRESH_TOKEN_TYPE or not is_valid_id(user_id):
            raise SignatureInvalid("Invalid refresh token")

        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            raise UserNotFound()

        if not fingerprints_match(refresh_token, user.refresh_token_hash):
            logger.warning(f"Rejected stale or reused refresh token for user {user_id}")
            raise FingerprintMismatch()

        return await self.issue_pair(user.id, user)

    async def revoke(self, user_id: str) -> None:
        """Clear the stored fingerprint so no outstanding refresh token works"""
        await self.user_repo.set_refresh_token_hash(user_id, None)

    async def verify_credentials(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None
    ) -> User:
        """
        Look up a user by username or email and check the password

        Raises:
            ValidationError: Neither username nor email supplied
            UserNotFound: No matching user
            InvalidPassword: Password does not match
        """
        if _is_blank(username) and _is_blank(email):
            raise ValidationError("Username or email is required")

        user = await self.user_repo.find_by_username_or_email(
            username=username.strip() if username else None,
            email=email.strip() if email else None
        )
        if user is None:
            raise UserNotFound("User does not exist")

        if not verify_password(password, user.password_hash):
            raise InvalidPassword("Invalid user credentials")

        return user


class UserService:
    """User service - registration, sessions and profile management"""

    def __init__(
        self,
        user_repository: IUserRepository,
        token_service: TokenService,
        asset_manager: AssetManager
    ):
        self.user_repo = user_repository
        self.tokens = token_service
        self.assets = asset_manager

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        avatar_path: Optional[str] = None,
        cover_image_path: Optional[str] = None
    ) -> User:
        """
        Register a new user

        Avatar and cover image are optional temp files; they are uploaded
        only after the input checks pass, and removed again if the user
        cannot be created.
        """
        pending = [path for path in (avatar_path, cover_image_path) if path]
        try:
            if any(_is_blank(value) for value in (username, email, password)):
                raise ValidationError("All fields are required")
            username = _validate_username(username)
            email = _validate_email(email)
            _check_password(password)

            if await self.user_repo.exists_by_username_or_email(username.strip(), email.strip()):
                raise ConflictError("User with email or username already exists")
        except Exception:
            for path in pending:
                delete_local_file(path)
            raise

        uploaded: List[RemoteAsset] = []
        try:
            avatar = await self._upload_required(avatar_path, "Avatar", uploaded, cover_image_path)
            cover_image = await self._upload_required(cover_image_path, "Cover image", uploaded)

            user = await self.user_repo.create(
                username=username.strip(),
                email=email.strip(),
                password_hash=hash_password(password),
                full_name=full_name.strip() if full_name else None,
                avatar=avatar.to_document() if avatar else None,
                cover_image=cover_image.to_document() if cover_image else None
            )
        except Exception:
            for asset in uploaded:
                await self.assets.remove(asset.remote_id, AssetKind.IMAGE)
            raise

        logger.info(f"Registered user {user.username}")
        return user

    async def _upload_required(
        self,
        local_path: Optional[str],
        label: str,
        uploaded: List[RemoteAsset],
        *discard_on_failure: Optional[str]
    ) -> Optional[RemoteAsset]:
        if not local_path:
            return None
        asset = await self.assets.upload(local_path)
        if asset is None:
            for path in discard_on_failure:
                if path:
                    delete_local_file(path)
            raise DependencyError(f"{label} upload failed")
        uploaded.append(asset)
        return asset

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None
    ) -> Tuple[User, TokenPair]:
        """Login with username/email and password"""
        user = await self.tokens.verify_credentials(password, username=username, email=email)
        tokens = await self.tokens.issue_pair(user.id, user)
        logger.info(f"User {user.username} logged in")
        return user, tokens

    async def logout(self, user_id: str) -> None:
        """Logout and revoke the refresh token"""
        await self.tokens.revoke(user_id)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate the token pair"""
        return await self.tokens.rotate(refresh_token)

    async def get_current_user(self, user_id: str) -> User:
        """Get user by ID"""
        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        """Change user password and end the current session"""
        user = await self.get_current_user(user_id)

        if not verify_password(old_password, user.password_hash):
            raise InvalidPassword("Invalid old password")

        _check_password(new_password)

        await self.user_repo.update(user_id, {"password_hash": hash_password(new_password)})

        # Revoke refresh token for security
        await self.tokens.revoke(user_id)

    async def update_account_details(
        self,
        user_id: str,
        full_name: Optional[str] = None,
        email: Optional[str] = None
    ) -> User:
        """Update full name and/or email"""
        updates = {}
        if full_name is not None:
            if _is_blank(full_name):
                raise ValidationError("Full name cannot be empty")
            updates["full_name"] = full_name.strip()
        if email is not None:
            updates["email"] = _validate_email(email)

        if not updates:
            raise ValidationError("No fields to update")

        user = await self.user_repo.update(user_id, updates)
        if user is None:
            raise UserNotFound()
        return user

    async def update_avatar(self, user_id: str, local_path: str) -> User:
        """Replace the avatar image"""
        return await self._replace_profile_image(user_id, "avatar", local_path, "avatar")

    async def update_cover_image(self, user_id: str, local_path: str) -> User:
        """Replace the cover image"""
        return await self._replace_profile_image(user_id, "cover_image", local_path, "cover image")

    async def _replace_profile_image(self, user_id: str, field: str, local_path: str, label: str) -> User:
        if not local_path:
            raise ValidationError(f"The {label} file is missing")

        try:
            user = await self.get_current_user(user_id)
        except Exception:
            delete_local_file(local_path)
            raise

        current: Optional[RemoteAsset] = getattr(user, field)
        updated: List[User] = []

        async def write(asset: RemoteAsset) -> None:
            result = await self.user_repo.update(user_id, {field: asset.to_document()})
            if result is None:
                raise UserNotFound()
            updated.append(result)

        asset = await self.assets.replace(
            current.remote_id if current else None,
            local_path,
            AssetKind.IMAGE,
            on_uploaded=write
        )
        if asset is None:
            raise DependencyError(f"Error while uploading {label}")

        return updated[0]


class VideoService:
    """Video service - publishing, editing and deleting videos"""

    def __init__(
        self,
        video_repository: IVideoRepository,
        like_repository: ILikeRepository,
        comment_repository: ICommentRepository,
        asset_manager: AssetManager
    ):
        self.video_repo = video_repository
        self.like_repo = like_repository
        self.comment_repo = comment_repository
        self.assets = asset_manager

    async def publish_video(
        self,
        owner_id: str,
        title: str,
        description: str,
        video_path: Optional[str],
        thumbnail_path: Optional[str],
        duration: float = 0
    ) -> Video:
        """
        Upload a video with its thumbnail and store it unpublished

        Raises:
            ValidationError: Missing text fields or files
            DependencyError: Either upload failed
        """
        try:
            if _is_blank(title) or _is_blank(description):
                raise ValidationError("Title and description are required")
            if not video_path or not thumbnail_path:
                raise ValidationError("Video file and thumbnail are required")
            if duration < 0:
                raise ValidationError("Duration cannot be negative")
        except ValidationError:
            for path in (video_path, thumbnail_path):
                if path:
                    delete_local_file(path)
            raise

        video_file = await self.assets.upload(video_path)
        if video_file is None:
            delete_local_file(thumbnail_path)
            raise DependencyError("Error uploading video file")

        thumbnail = await self.assets.upload(thumbnail_path)
        if thumbnail is None:
            await self.assets.remove(video_file.remote_id, AssetKind.VIDEO)
            raise DependencyError("Error uploading thumbnail")

        try:
            video = await self.video_repo.create(
                owner_id=owner_id,
                title=title.strip(),
                description=description.strip(),
                video_file=video_file.to_document(),
                thumbnail=thumbnail.to_document(),
                duration=duration,
                is_published=False
            )
        except Exception:
            await self.assets.remove(video_file.remote_id, AssetKind.VIDEO)
            await self.assets.remove(thumbnail.remote_id, AssetKind.IMAGE)
            raise

        logger.info(f"Video {video.id} uploaded by {owner_id}")
        return video

    async def _get_owned_video(self, video_id: str, user_id: str, action: str) -> Video:
        video = await self.video_repo.find_by_id(video_id)
        if video is None:
            raise NotFoundError("Video not found")
        if not video.is_owner(user_id):
            raise ForbiddenError(f"You are not allowed to {action} this video")
        return video

    async def update_video(
        self,
        video_id: str,
        user_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail_path: Optional[str] = None
    ) -> Video:
        """Update title, description and/or thumbnail (owner only)"""
        try:
            updates = {}
            if title is not None:
                if _is_blank(title):
                    raise ValidationError("Title cannot be empty")
                updates["title"] = title.strip()
            if description is not None:
                if _is_blank(description):
                    raise ValidationError("Description cannot be empty")
                updates["description"] = description.strip()
            if not updates and not thumbnail_path:
                raise ValidationError("No fields to update")

            video = await self._get_owned_video(video_id, user_id, "update")
        except Exception:
            if thumbnail_path:
                delete_local_file(thumbnail_path)
            raise

        if not thumbnail_path:
            updated = await self.video_repo.update(video_id, updates)
            if updated is None:
                raise NotFoundError("Video not found")
            return updated

        written: List[Video] = []

        async def write(asset: RemoteAsset) -> None:
            result = await self.video_repo.update(video_id, {**updates, "thumbnail": asset.to_document()})
            if result is None:
                raise NotFoundError("Video not found")
            written.append(result)

        asset = await self.assets.replace(
            video.thumbnail.remote_id if video.thumbnail else None,
            thumbnail_path,
            AssetKind.IMAGE,
            on_uploaded=write
        )
        if asset is None:
            raise DependencyError("Error uploading thumbnail")

        return written[0]

    async def delete_video(self, video_id: str, user_id: str) -> Video:
        """
        Delete a video (owner only)

        The document goes first; remote files, likes and comments follow
        one after another. Remote deletion failures are logged only.
        """
        video = await self._get_owned_video(video_id, user_id, "delete")

        if not await self.video_repo.delete(video_id):
            raise NotFoundError("Video not found")

        if video.video_file:
            await self.assets.remove(video.video_file.remote_id, AssetKind.VIDEO)
        if video.thumbnail:
            await self.assets.remove(video.thumbnail.remote_id, AssetKind.IMAGE)

        likes = await self.like_repo.delete_by_video(video_id)
        comments = await self.comment_repo.delete_by_video(video_id)
        logger.info(f"Deleted video {video_id} with {likes} likes and {comments} comments")

        return video

    async def toggle_publish_status(self, video_id: str, user_id: str) -> Video:
        """Flip the publish flag (owner only)"""
        video = await self._get_owned_video(video_id, user_id, "update")
        updated = await self.video_repo.update(video_id, {"is_published": not video.is_published})
        if updated is None:
            raise NotFoundError("Video not found")
        return updated

    async def toggle_video_like(self, video_id: str, user_id: str) -> bool:
        """Like or unlike a video. Returns True when the video is now liked."""
        video = await self.video_repo.find_by_id(video_id)
        if video is None or (not video.is_published and not video.is_owner(user_id)):
            raise NotFoundError("Video not found")
        return await self.like_repo.toggle(video_id, user_id)
