"""
Asset lifecycle - moves uploaded temp files to remote storage and keeps
remote objects in step with the entities that reference them
"""
import asyncio
import logging
import os
from typing import Awaitable, Callable, Iterable, Optional

from ..config import settings
from ..domain.errors import DependencyError
from ..domain.models import AssetKind, RemoteAsset
from ..infrastructure.storage import ObjectStore

logger = logging.getLogger(__name__)


def detect_kind(local_path: str,
                image_extensions: Optional[Iterable[str]] = None,
                video_extensions: Optional[Iterable[str]] = None) -> AssetKind:
    """Detect the resource kind of a file from its extension"""
    extension = os.path.splitext(local_path)[1].lower()
    if extension in (image_extensions or settings.ALLOWED_IMAGE_EXTENSIONS):
        return AssetKind.IMAGE
    if extension in (video_extensions or settings.ALLOWED_VIDEO_EXTENSIONS):
        return AssetKind.VIDEO
    return AssetKind.RAW


def delete_local_file(local_path: str) -> bool:
    """Remove a temp file, logging instead of raising"""
    if not os.path.exists(local_path):
        logger.debug(f"Local file already gone: {local_path}")
        return False
    try:
        os.remove(local_path)
        return True
    except OSError as e:
        logger.error(f"Failed to delete local file {local_path}: {e}")
        return False


class AssetManager:
    """Upload, replace and remove remote assets"""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def upload(self, local_path: str) -> Optional[RemoteAsset]:
        """
        Push a local temp file to remote storage

        The local file is deleted whatever happens. A remote failure is
        logged and reported as None.
        """
        if not local_path:
            logger.error("Upload requested without a local file path")
            return None

        try:
            kind = detect_kind(local_path)
            asset = await asyncio.to_thread(self.store.store, local_path, kind)
            logger.info(f"Uploaded {kind.value} {asset.remote_id}")
            return asset
        except (DependencyError, OSError) as e:
            logger.error(f"Upload of {local_path} failed: {e}")
            return None
        finally:
            delete_local_file(local_path)

    async def replace(
        self,
        remote_id: Optional[str],
        local_path: str,
        kind: AssetKind = AssetKind.IMAGE,
        on_uploaded: Optional[Callable[[RemoteAsset], Awaitable[object]]] = None
    ) -> Optional[RemoteAsset]:
        """
        Upload a new asset and only then remove the old one

        Args:
            remote_id: Key of the asset being replaced (may be None)
            local_path: Temp file holding the new content
            kind: Resource kind of the old asset
            on_uploaded: Entity write that must succeed before the old
                asset is removed. If it raises, the new asset is removed
                instead and the error propagates.

        Returns:
            The new asset, or None if the upload failed (old asset kept)
        """
        new_asset = await self.upload(local_path)
        if new_asset is None:
            return None

        if on_uploaded is not None:
            try:
                await on_uploaded(new_asset)
            except Exception:
                await self.remove(new_asset.remote_id, kind)
                raise

        await self.remove(remote_id, kind)
        return new_asset

    async def remove(self, remote_id: Optional[str], kind: AssetKind = AssetKind.IMAGE) -> bool:
        """Best-effort deletion of a remote asset; never raises"""
        if not remote_id:
            return False
        try:
            await asyncio.to_thread(self.store.delete, remote_id, kind)
            return True
        except DependencyError as e:
            logger.warning(f"Remote {kind.value} {remote_id} not deleted: {e}")
            return False
